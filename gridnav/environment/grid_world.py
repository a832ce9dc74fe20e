"""
Grid World Model
Owns the ground-truth cost grid and the agent's partially observed belief grid.
Cells are addressed as (x, y); arrays are stored row-major as [y, x].
"""

import numpy as np
import logging
from typing import Dict, List, Tuple, Optional, Any, Iterable
from dataclasses import dataclass

from gridnav.utils.exceptions import ConfigurationError

MAX_CELL_COST = 255


@dataclass(frozen=True)
class Pose:
    """Integer cell pose of the agent."""
    x: int
    y: int

    def as_tuple(self) -> Tuple[int, int]:
        return (self.x, self.y)


@dataclass(frozen=True)
class CellChange:
    """A cell whose believed cost differs from ground truth."""
    x: int
    y: int
    cost: int


@dataclass
class GridInfo:

    width: int
    height: int
    obstacle_threshold: int
    total_cells: int
    obstacle_cells: int
    free_cells: int


class CostGrid:
    """
    2D grid of byte costs with an obstacle threshold.
    A cell with cost >= obstacle_threshold is impassable.
    """

    def __init__(self, width: int, height: int, obstacle_threshold: int,
                 costs: Optional[np.ndarray] = None, default_cost: int = 0):
        if width <= 0 or height <= 0:
            raise ValueError(f"grid dimensions must be > 0, got {width}x{height}")
        if not 0 <= obstacle_threshold <= MAX_CELL_COST:
            raise ValueError(f"obstacle_threshold must be in 0..255, got {obstacle_threshold}")

        self.logger = logging.getLogger(__name__)

        self.width = int(width)
        self.height = int(height)
        self.obstacle_threshold = int(obstacle_threshold)

        if costs is None:
            self._validate_cost(default_cost)
            self.costs = np.full((self.height, self.width), default_cost, dtype=np.uint8)
        else:
            costs = np.asarray(costs)
            if costs.shape != (self.height, self.width):
                raise ValueError(
                    f"cost array shape {costs.shape} does not match {self.height}x{self.width}"
                )
            if costs.size and (costs.min() < 0 or costs.max() > MAX_CELL_COST):
                raise ValueError("cell costs must be in 0..255")
            self.costs = costs.astype(np.uint8, copy=True)

    @classmethod
    def from_array(cls, costs: Any, obstacle_threshold: int) -> "CostGrid":
        """Build a grid from a [height, width] array of costs."""
        array = np.asarray(costs)
        if array.ndim != 2:
            raise ValueError(f"cost array must be 2D, got {array.ndim}D")
        height, width = array.shape
        return cls(width, height, obstacle_threshold, costs=array)

    def _validate_cost(self, cost: int):
        if not 0 <= int(cost) <= MAX_CELL_COST:
            raise ValueError(f"cell cost must be in 0..255, got {cost}")

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def _check_bounds(self, x: int, y: int):
        if not self.in_bounds(x, y):
            raise IndexError(f"cell ({x}, {y}) outside {self.width}x{self.height} grid")

    def cost(self, x: int, y: int) -> int:
        self._check_bounds(x, y)
        return int(self.costs[y, x])

    def set_cost(self, x: int, y: int, cost: int):
        self._check_bounds(x, y)
        self._validate_cost(cost)
        self.costs[y, x] = cost

    def is_obstacle(self, x: int, y: int) -> bool:
        return self.cost(x, y) >= self.obstacle_threshold

    def freeze(self):
        """Make the cost array read-only."""
        self.costs.setflags(write=False)

    @property
    def is_frozen(self) -> bool:
        return not self.costs.flags.writeable

    def copy(self) -> "CostGrid":
        return CostGrid(self.width, self.height, self.obstacle_threshold, costs=self.costs)

    def get_info(self) -> GridInfo:

        obstacle_cells = int(np.sum(self.costs >= self.obstacle_threshold))
        total_cells = self.width * self.height

        return GridInfo(
            width=self.width,
            height=self.height,
            obstacle_threshold=self.obstacle_threshold,
            total_cells=total_cells,
            obstacle_cells=obstacle_cells,
            free_cells=total_cells - obstacle_cells
        )


class GridWorld:
    """
    Ground truth plus the agent's working belief.

    The ground truth is frozen on construction; only the belief grid is
    ever written, and only through apply_updates().
    """

    def __init__(self, ground_truth: CostGrid, belief: Optional[CostGrid] = None,
                 default_belief_cost: int = 0):
        self.logger = logging.getLogger(__name__)

        if belief is None:
            belief = CostGrid(ground_truth.width, ground_truth.height,
                              ground_truth.obstacle_threshold,
                              default_cost=default_belief_cost)

        if (belief.width, belief.height) != (ground_truth.width, ground_truth.height):
            raise ConfigurationError(
                f"belief grid {belief.width}x{belief.height} does not match "
                f"ground truth {ground_truth.width}x{ground_truth.height}"
            )
        if belief.obstacle_threshold != ground_truth.obstacle_threshold:
            raise ConfigurationError(
                f"obstacle thresholds differ: belief {belief.obstacle_threshold}, "
                f"ground truth {ground_truth.obstacle_threshold}"
            )

        self.ground_truth = ground_truth
        self.ground_truth.freeze()
        self.belief = belief

        self.observed_mask = np.zeros((ground_truth.height, ground_truth.width), dtype=bool)

        self.update_statistics = {
            'updates_applied': 0,
            'cells_written': 0,
        }

        info = ground_truth.get_info()
        self.logger.info(f"Grid world initialized: {info.width}x{info.height}, "
                         f"obstacle threshold {info.obstacle_threshold}")
        self.logger.debug(f"Ground truth obstacles: {info.obstacle_cells}/{info.total_cells} cells")

    @property
    def width(self) -> int:
        return self.ground_truth.width

    @property
    def height(self) -> int:
        return self.ground_truth.height

    @property
    def obstacle_threshold(self) -> int:
        return self.ground_truth.obstacle_threshold

    def in_bounds(self, x: int, y: int) -> bool:
        return self.ground_truth.in_bounds(x, y)

    def true_cost(self, x: int, y: int) -> int:
        return self.ground_truth.cost(x, y)

    def believed_cost(self, x: int, y: int) -> int:
        return self.belief.cost(x, y)

    def mark_observed(self, x: int, y: int):
        self.observed_mask[y, x] = True

    def apply_updates(self, changes: Iterable[CellChange]) -> int:
        """
        Write changed costs into the belief grid.

        Returns:
            Number of cells written
        """
        written = 0
        for change in changes:
            self.belief.set_cost(change.x, change.y, change.cost)
            written += 1

        if written:
            self.update_statistics['updates_applied'] += 1
            self.update_statistics['cells_written'] += written
            self.logger.debug(f"Belief updated for {written} cells")

        return written

    def belief_matches_truth(self, mask: Optional[np.ndarray] = None) -> bool:
        """Check belief == ground truth, optionally restricted to a boolean mask."""
        equal = self.belief.costs == self.ground_truth.costs
        if mask is not None:
            equal = equal | ~mask
        return bool(np.all(equal))

    def get_statistics(self) -> Dict[str, Any]:
        stats = self.update_statistics.copy()
        stats['observed_cells'] = int(np.sum(self.observed_mask))
        stats['mismatched_cells'] = int(np.sum(self.belief.costs != self.ground_truth.costs))
        return stats

    def cells_within(self, center: Pose, radius: int) -> List[Tuple[int, int]]:
        """In-bounds cells within Chebyshev distance radius of center, dx-major."""
        cells = []
        for dx in range(-radius, radius + 1):
            for dy in range(-radius, radius + 1):
                x = center.x + dx
                y = center.y + dy
                if self.in_bounds(x, y):
                    cells.append((x, y))
        return cells
