"""
Navigation Loop
Drives sense -> notify -> replan -> move until the agent reaches the goal.
Every error is fatal: the loop stops, the planner is released and the
error propagates to the caller.
"""

import logging
from pathlib import Path
from typing import Dict, List, Tuple, Optional, Any, Union
from dataclasses import dataclass, field

from gridnav.environment.grid_world import GridWorld, Pose
from gridnav.environment.grid_environment import GridEnvironment
from gridnav.environment.sensor_interface import LocalSensor
from gridnav.environment.world_builder import WorldBuilder
from gridnav.planning.global_planner.planner_interface import SearchPlanner
from gridnav.planning.global_planner.anytime_planner import AnytimeRepairingPlanner
from gridnav.planning.global_planner.incremental_planner import IncrementalPlanner
from gridnav.planning.integration.change_notifier import ChangeNotifier
from gridnav.planning.integration.replan_scheduler import ReplanScheduler, TimingHistogram
from gridnav.planning.integration.execution_monitor import MotionExecutor
from gridnav.utils.config_loader import ConfigManager, SystemConfig, validate_config
from gridnav.utils.data_recorder import SolutionTraceWriter
from gridnav.utils.exceptions import (
    ConfigurationError, PlannerRejectedState, NoSolutionFound, CycleBudgetExceeded
)
from gridnav.utils.logger import setup_logging, log_exceptions

PLANNERS = {
    AnytimeRepairingPlanner.name: AnytimeRepairingPlanner,
    IncrementalPlanner.name: IncrementalPlanner,
}


@dataclass
class NavigationConfig:
    """Loop settings; mirrors the `navigation` config section."""

    planner: str = "anytime"
    time_budget: float = 0.2
    initial_eps: float = 2.0
    search_until_first_solution: bool = False
    goal_threshold: int = 0
    max_cycles: Optional[int] = None
    trace_path: Optional[str] = "sol.txt"
    planner_config: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):

        if self.time_budget <= 0:
            raise ValueError(f"time_budget must be > 0, got {self.time_budget}")
        if self.initial_eps < 1.0:
            raise ValueError(f"initial_eps must be >= 1.0, got {self.initial_eps}")
        if self.goal_threshold < 0:
            raise ValueError(f"goal_threshold must be >= 0, got {self.goal_threshold}")
        if self.max_cycles is not None and self.max_cycles <= 0:
            raise ValueError(f"max_cycles must be > 0 or None, got {self.max_cycles}")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "NavigationConfig":
        data = dict(data or {})
        known = {name: data[name] for name in cls.__dataclass_fields__ if name in data}
        return cls(**known)


@dataclass
class NavigationResult:
    """Summary of a completed run."""

    reached_goal: bool
    cycles: int
    final_pose: Pose
    trajectory: List[Tuple[int, int]]
    histogram: TimingHistogram
    statistics: Dict[str, Any] = field(default_factory=dict)


def build_planner(name: str, environment: GridEnvironment,
                  config: Dict[str, Any] = None) -> SearchPlanner:
    """Instantiate a planner by its registered name."""
    planner_class = PLANNERS.get(name)
    if planner_class is None:
        raise ConfigurationError(f"unknown planner '{name}', expected one of {sorted(PLANNERS)}")
    return planner_class(environment, config or {})


class NavigationLoop:
    """
    Online navigation through a partially known grid.

    Each cycle senses around the agent, pushes cost changes to belief and
    planner, replans under the time budget and takes one step. The planner
    is closed when run() exits, whatever the outcome.
    """

    def __init__(self, world: GridWorld, environment: GridEnvironment, planner: SearchPlanner,
                 config: Union[NavigationConfig, Dict[str, Any], None] = None,
                 sensor: Optional[LocalSensor] = None,
                 trace_writer: Optional[SolutionTraceWriter] = None):
        self.logger = logging.getLogger(__name__)

        if isinstance(config, NavigationConfig):
            self.config = config
        else:
            self.config = NavigationConfig.from_dict(config)

        if environment.start is None or environment.goal is None:
            raise ConfigurationError("environment start and goal must be set before navigation")

        self.world = world
        self.environment = environment
        self.planner = planner
        self.sensor = sensor or LocalSensor()
        self.trace_writer = trace_writer

        self.goal: Pose = environment.goal
        self.notifier = ChangeNotifier(world, environment, planner)
        self.scheduler = ReplanScheduler(planner, {"time_budget": self.config.time_budget})
        self.executor = MotionExecutor(world, environment, planner, pose=environment.start)

        self.initialized = False
        self.cycles = 0
        self.trajectory: List[Tuple[int, int]] = [environment.start.as_tuple()]

        self.logger.info(f"Navigation loop initialized: planner '{planner.name}', "
                         f"start {environment.start.as_tuple()}, goal {self.goal.as_tuple()}, "
                         f"budget {self.config.time_budget:.3f}s")

    @property
    def pose(self) -> Pose:
        return self.executor.pose

    def initialize(self):
        """Hand eps, start, goal and search mode to the planner."""
        self.planner.set_initialsolution_eps(self.config.initial_eps)

        start_id = self.environment.start_state_id
        if not self.planner.set_start(start_id):
            raise PlannerRejectedState("start", start_id)

        goal_id = self.environment.goal_state_id
        if not self.planner.set_goal(goal_id):
            raise PlannerRejectedState("goal", goal_id)

        self.planner.set_search_mode(self.config.search_until_first_solution)
        self.initialized = True

    def at_goal(self, pose: Optional[Pose] = None) -> bool:
        pose = pose or self.pose
        threshold = self.config.goal_threshold
        return abs(pose.x - self.goal.x) <= threshold and abs(pose.y - self.goal.y) <= threshold

    @log_exceptions("navigation")
    def run(self) -> NavigationResult:
        if self.trace_writer is not None and not self.trace_writer.is_open:
            self.trace_writer.open()

        summary = None
        try:
            if not self.initialized:
                self.initialize()

            while not self.at_goal():
                if self.config.max_cycles is not None and self.cycles >= self.config.max_cycles:
                    raise CycleBudgetExceeded(self.config.max_cycles, self.pose.as_tuple())
                self._run_cycle()

            # Stats line only marks a completed run.
            summary = self.scheduler.histogram.summary_line()
        finally:
            self.planner.close()
            if self.trace_writer is not None:
                self.trace_writer.close(summary)

        self.logger.info(f"Goal reached at {self.pose.as_tuple()} after {self.cycles} cycles")
        self.logger.info(self.scheduler.histogram.summary_line())

        return NavigationResult(
            reached_goal=True,
            cycles=self.cycles,
            final_pose=self.pose,
            trajectory=list(self.trajectory),
            histogram=self.scheduler.histogram,
            statistics=self.get_statistics(),
        )

    def _run_cycle(self):
        pose = self.pose

        changes = self.sensor.sense(self.world, pose)
        self.notifier.notify(changes)

        if self.trace_writer is not None:
            self.trace_writer.record_position(pose.x, pose.y)

        result = self.scheduler.replan_once()
        if not result.success:
            raise NoSolutionFound(pose.as_tuple(), self.scheduler.time_budget, self.cycles)

        if self.trace_writer is not None:
            self.trace_writer.record_plan(result.elapsed_seconds, result.solution_eps)

        new_pose = self.executor.execute_step(result.path)
        self.cycles += 1

        if new_pose is None:
            self.logger.warning(f"Cycle {self.cycles}: path has no next step, agent stays at {pose.as_tuple()}")
        else:
            self.trajectory.append(new_pose.as_tuple())
            self.logger.debug(f"Cycle {self.cycles}: {len(changes)} changes, "
                              f"{result.elapsed_seconds:.4f}s, eps={result.solution_eps:.3f}, "
                              f"moved to {new_pose.as_tuple()}")

    def get_statistics(self) -> Dict[str, Any]:
        return {
            'cycles': self.cycles,
            'world': self.world.get_statistics(),
            'sensor': self.sensor.get_statistics(),
            'notifier': self.notifier.get_statistics(),
            'scheduler': self.scheduler.get_statistics(),
            'executor': self.executor.get_statistics(),
            'planner': self.planner.get_statistics(),
        }


def run_navigation(config_or_path: Union[SystemConfig, Dict[str, Any], str, Path, None] = None,
                   configure_logging: bool = False) -> NavigationResult:
    """
    Build world, environment, planner and loop from a configuration and run it.

    Args:
        config_or_path: SystemConfig, plain dict of sections, or a YAML/JSON file path
        configure_logging: Install handlers from the `logging` section first

    Returns:
        Navigation result of the completed run
    """
    manager = ConfigManager()
    if isinstance(config_or_path, SystemConfig):
        config = config_or_path
    elif isinstance(config_or_path, dict):
        config = manager.build_config(config_or_path)
    elif config_or_path is None:
        config = manager.build_config({})
    else:
        config = manager.load_file(config_or_path)

    system_logger = setup_logging(config.logging) if configure_logging else None

    errors = validate_config(config)
    if errors:
        details = "; ".join(f"{section}: {', '.join(items)}" for section, items in errors.items())
        raise ConfigurationError(f"invalid configuration: {details}")

    nav_config = NavigationConfig.from_dict(config.navigation)

    world, environment, _ = WorldBuilder(config.world).build()

    planner_config = dict(nav_config.planner_config)
    planner_config.setdefault("initial_eps", nav_config.initial_eps)
    planner = build_planner(nav_config.planner, environment, planner_config)

    trace_writer = None
    if nav_config.trace_path:
        trace_writer = SolutionTraceWriter({"trace_path": nav_config.trace_path})

    loop = NavigationLoop(world, environment, planner, nav_config, trace_writer=trace_writer)
    result = loop.run()

    if system_logger is not None:
        metrics = dict(result.histogram.as_dict())
        metrics["cycles"] = result.cycles
        metrics["average_planning_time"] = result.statistics["scheduler"]["average_planning_time"]
        system_logger.log_performance_metrics("navigation", metrics)

    return result
