"""
Map Generator
Random obstacle worlds for navigation experiments. The random stream is an
explicit seed parameter; nothing here touches global random state.
"""

import numpy as np
import logging
from typing import Dict, List, Any
from scipy.ndimage import label, generate_binary_structure

from gridnav.environment.grid_world import CostGrid
from gridnav.environment.world_builder import WorldSpec
from gridnav.utils.exceptions import ConfigurationError


class MapGenerator:
    """
    Generates ground-truth grids with randomly placed obstacles.

    With `ensure_path` enabled, worlds whose start and goal fall into
    different free-space components are rejected and regenerated.
    """

    def __init__(self, config: Dict[str, Any] = None):
        self.config = config or {}
        self.logger = logging.getLogger(__name__)

        self.width = int(self.config.get("width", 50))
        self.height = int(self.config.get("height", 50))
        self.obstacle_density = float(self.config.get("obstacle_density", 0.2))
        self.obstacle_cost = int(self.config.get("obstacle_cost", 255))
        self.obstacle_threshold = int(self.config.get("obstacle_threshold", 1))
        self.free_cost = int(self.config.get("free_cost", 0))
        self.ensure_path = bool(self.config.get("ensure_path", True))
        self.max_attempts = int(self.config.get("max_attempts", 50))
        self.seed = self.config.get("seed")
        self.connectivity = int(self.config.get("connectivity", 8))

        start = self.config.get("start", (0, 0))
        goal = self.config.get("goal", (self.width - 1, self.height - 1))
        self.start = (int(start[0]), int(start[1]))
        self.goal = (int(goal[0]), int(goal[1]))

        if not 0.0 <= self.obstacle_density < 1.0:
            raise ConfigurationError(f"obstacle_density must be in [0, 1), got {self.obstacle_density}")
        if self.obstacle_cost < self.obstacle_threshold:
            raise ConfigurationError(
                f"obstacle_cost {self.obstacle_cost} is below obstacle_threshold {self.obstacle_threshold}"
            )
        if self.free_cost >= self.obstacle_threshold:
            raise ConfigurationError(
                f"free_cost {self.free_cost} must be below obstacle_threshold {self.obstacle_threshold}"
            )

        self.rng = np.random.default_rng(self.seed)

        self.logger.info(f"Map generator initialized: {self.width}x{self.height}, "
                         f"density {self.obstacle_density}, seed {self.seed}")

    def _sample_costs(self) -> np.ndarray:

        costs = np.full((self.height, self.width), self.free_cost, dtype=np.uint8)
        obstacles = self.rng.random((self.height, self.width)) < self.obstacle_density
        costs[obstacles] = self.obstacle_cost

        for x, y in (self.start, self.goal):
            costs[y, x] = self.free_cost

        return costs

    def is_connected(self, costs: np.ndarray) -> bool:
        """Check that start and goal share a free-space component."""
        free = costs < self.obstacle_threshold
        rank = 1 if self.connectivity == 4 else 2
        structure = generate_binary_structure(2, rank)

        components, _ = label(free, structure=structure)
        start_label = components[self.start[1], self.start[0]]
        goal_label = components[self.goal[1], self.goal[0]]
        return start_label != 0 and start_label == goal_label

    def generate(self) -> WorldSpec:

        for cell in (self.start, self.goal):
            if not (0 <= cell[0] < self.width and 0 <= cell[1] < self.height):
                raise ConfigurationError(f"cell {cell} outside {self.width}x{self.height} grid")

        for attempt in range(1, self.max_attempts + 1):
            costs = self._sample_costs()

            if not self.ensure_path or self.is_connected(costs):
                grid = CostGrid.from_array(costs, self.obstacle_threshold)
                self.logger.info(f"Generated world on attempt {attempt}: "
                                 f"{grid.get_info().obstacle_cells} obstacle cells")
                return WorldSpec(ground_truth=grid, start=self.start, goal=self.goal,
                                 connectivity=self.connectivity)

            self.logger.debug(f"Attempt {attempt}: start and goal disconnected, resampling")

        raise ConfigurationError(
            f"could not generate a connected world in {self.max_attempts} attempts "
            f"(density {self.obstacle_density})"
        )

    def generate_batch(self, count: int) -> List[WorldSpec]:
        return [self.generate() for _ in range(count)]
