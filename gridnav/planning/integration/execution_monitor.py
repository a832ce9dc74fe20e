"""
Motion Executor
Moves the agent one step along the planned path, after checking the step
against ground truth, and keeps environment and planner on the same start.
"""

import logging
from typing import Dict, List, Optional, Any

from gridnav.environment.grid_world import GridWorld, Pose
from gridnav.environment.grid_environment import GridEnvironment
from gridnav.planning.global_planner.planner_interface import SearchPlanner
from gridnav.utils.exceptions import UnsafeMoveError, DesynchronizationError


class MotionExecutor:

    def __init__(self, world: GridWorld, environment: GridEnvironment, planner: SearchPlanner,
                 pose: Optional[Pose] = None):
        self.logger = logging.getLogger(__name__)

        self.world = world
        self.environment = environment
        self.planner = planner

        if pose is None:
            pose = environment.start
        if pose is None:
            raise ValueError("executor needs an initial pose or an environment with a start")
        self.pose: Pose = pose

        self.execution_statistics = {
            'steps_executed': 0,
            'idle_cycles': 0,
        }

    def execute_step(self, path: List[int]) -> Optional[Pose]:
        """
        Advance to path[1].

        Returns:
            The new pose, or None when the path has no next step
        """
        if len(path) <= 1:
            self.execution_statistics['idle_cycles'] += 1
            return None

        current_state = self.environment.state_of_coord(self.pose.x, self.pose.y)
        if path[0] != current_state:
            raise DesynchronizationError(
                f"path starts at state {path[0]} but the agent is at state {current_state} {self.pose.as_tuple()}"
            )

        next_state = path[1]
        if not self.environment.are_adjacent(current_state, next_state):
            raise DesynchronizationError(
                f"next state {next_state} is not reachable in one step from {self.pose.as_tuple()}"
            )

        x, y = self.environment.coord_of_state(next_state)
        true_cost = self.world.true_cost(x, y)
        if true_cost >= self.world.obstacle_threshold:
            self.logger.error(f"Unsafe step to ({x}, {y}): true cost {true_cost}")
            raise UnsafeMoveError((x, y), true_cost, self.world.obstacle_threshold)

        self.pose = Pose(x, y)
        self.environment.set_start(x, y)
        if not self.planner.set_start(next_state):
            raise DesynchronizationError("failed to update robot pose in the planner")

        self.execution_statistics['steps_executed'] += 1
        self.logger.debug(f"Moved to ({x}, {y})")
        return self.pose

    def get_statistics(self) -> Dict[str, Any]:
        return self.execution_statistics.copy()
