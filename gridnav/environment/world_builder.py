"""
World Builder
Constructs navigation scenarios (ground-truth grid, start, goal) from nav2d
environment files, in-memory arrays, or the `world` section of a config.
"""

import numpy as np
import logging
from pathlib import Path
from typing import Dict, List, Tuple, Optional, Any, Union
from dataclasses import dataclass, replace

from gridnav.environment.grid_world import CostGrid, GridWorld
from gridnav.environment.grid_environment import GridEnvironment, SUPPORTED_CONNECTIVITY
from gridnav.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

NAV2D_KEYS = ("discretization(cells):", "obsthresh:", "start(cells):", "end(cells):", "environment:")


def _to_cell(values: Optional[Any], name: str) -> Tuple[int, int]:
    """Convert a 2-element sequence to an integer cell."""
    if values is None:
        raise ConfigurationError(f"{name} is required")
    data = list(values)
    if len(data) != 2:
        raise ConfigurationError(f"{name} must have 2 coordinates, got {data}")
    return (int(data[0]), int(data[1]))


@dataclass
class WorldSpec:
    """A loaded scenario: ground truth plus start and goal cells."""

    ground_truth: CostGrid
    start: Tuple[int, int]
    goal: Tuple[int, int]
    connectivity: int = 8

    def __post_init__(self):

        if self.connectivity not in SUPPORTED_CONNECTIVITY:
            raise ConfigurationError(
                f"connectivity must be one of {SUPPORTED_CONNECTIVITY}, got {self.connectivity}"
            )
        for name, cell in (("start", self.start), ("goal", self.goal)):
            if not self.ground_truth.in_bounds(*cell):
                raise ConfigurationError(
                    f"{name} {cell} outside {self.ground_truth.width}x{self.ground_truth.height} grid"
                )
        if self.ground_truth.is_obstacle(*self.start):
            raise ConfigurationError(f"start {self.start} is an obstacle cell")

    @property
    def width(self) -> int:
        return self.ground_truth.width

    @property
    def height(self) -> int:
        return self.ground_truth.height


def parse_nav2d_config(text: str) -> WorldSpec:
    """
    Parse a nav2d environment description.

    Format:
        discretization(cells): <width> <height>
        obsthresh: <threshold>
        start(cells): <x> <y>
        end(cells): <x> <y>
        environment:
        <height rows of width costs>
    """
    tokens = text.split()
    position = 0

    def expect(key: str):
        nonlocal position
        if position >= len(tokens) or tokens[position] != key:
            found = tokens[position] if position < len(tokens) else "end of file"
            raise ConfigurationError(f"expected '{key}', found '{found}'")
        position += 1

    def read_ints(count: int, what: str) -> List[int]:
        nonlocal position
        values = tokens[position:position + count]
        if len(values) != count:
            raise ConfigurationError(f"{what}: expected {count} values, found {len(values)}")
        try:
            parsed = [int(v) for v in values]
        except ValueError as e:
            raise ConfigurationError(f"{what}: {e}") from e
        position += count
        return parsed

    expect(NAV2D_KEYS[0])
    width, height = read_ints(2, "discretization")
    if width <= 0 or height <= 0:
        raise ConfigurationError(f"invalid discretization {width}x{height}")

    expect(NAV2D_KEYS[1])
    (obstacle_threshold,) = read_ints(1, "obsthresh")

    expect(NAV2D_KEYS[2])
    start = tuple(read_ints(2, "start"))

    expect(NAV2D_KEYS[3])
    goal = tuple(read_ints(2, "end"))

    expect(NAV2D_KEYS[4])
    costs = np.array(read_ints(width * height, "environment"), dtype=np.int64).reshape(height, width)

    if position != len(tokens):
        raise ConfigurationError(f"unexpected trailing data after environment: '{tokens[position]}'")

    try:
        grid = CostGrid.from_array(costs, obstacle_threshold)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    return WorldSpec(ground_truth=grid, start=start, goal=goal)


def load_nav2d_config(path: Union[str, Path]) -> WorldSpec:
    """Load a nav2d environment file."""
    path = Path(path)
    try:
        text = path.read_text()
    except OSError as e:
        raise ConfigurationError(f"cannot read environment file {path}: {e}") from e

    spec = parse_nav2d_config(text)
    logger.info(f"Loaded environment {path.name}: {spec.width}x{spec.height}, "
                f"start {spec.start}, goal {spec.goal}")
    return spec


def world_from_array(costs: Any, obstacle_threshold: int,
                     start: Tuple[int, int], goal: Tuple[int, int],
                     connectivity: int = 8) -> WorldSpec:
    """Build a scenario from a [height, width] cost array."""
    try:
        grid = CostGrid.from_array(costs, obstacle_threshold)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
    return WorldSpec(ground_truth=grid, start=_to_cell(start, "start"),
                     goal=_to_cell(goal, "goal"), connectivity=connectivity)


class WorldBuilder:
    """
    Builds GridWorld and GridEnvironment pairs from a `world` config section.

    Exactly one source is used, in order of precedence:
    `cfg_file`, inline `costs`, `random` generation.
    """

    def __init__(self, config: Dict[str, Any] = None):
        self.config = config or {}
        self.logger = logging.getLogger(__name__)

        self.connectivity = int(self.config.get("connectivity", 8))
        self.default_belief_cost = int(self.config.get("default_belief_cost", 0))

    def load_spec(self) -> WorldSpec:

        cfg_file = self.config.get("cfg_file")
        if cfg_file:
            return replace(load_nav2d_config(cfg_file), connectivity=self.connectivity)

        if self.config.get("costs") is not None:
            return world_from_array(
                self.config["costs"],
                int(self.config.get("obstacle_threshold", 1)),
                self.config.get("start"),
                self.config.get("goal"),
                connectivity=self.connectivity,
            )

        random_cfg = self.config.get("random")
        if random_cfg is not None:
            from gridnav.environment.map_generator import MapGenerator
            generator = MapGenerator({**random_cfg, "connectivity": self.connectivity})
            return generator.generate()

        raise ConfigurationError("world config needs one of 'cfg_file', 'costs' or 'random'")

    def build(self, spec: Optional[WorldSpec] = None) -> Tuple[GridWorld, GridEnvironment, WorldSpec]:
        """
        Create the world model and the planning environment for a scenario.

        Returns:
            (world, environment, spec)
        """
        if spec is None:
            spec = self.load_spec()

        if not 0 <= self.default_belief_cost <= 255:
            raise ConfigurationError(f"default_belief_cost must be in 0..255, got {self.default_belief_cost}")

        world = GridWorld(spec.ground_truth, default_belief_cost=self.default_belief_cost)
        environment = GridEnvironment(world.belief, connectivity=spec.connectivity,
                                      start=spec.start, goal=spec.goal)

        self.logger.info(f"World built: {spec.width}x{spec.height}, start {spec.start}, "
                         f"goal {spec.goal}, {spec.connectivity}-connected")
        return world, environment, spec
