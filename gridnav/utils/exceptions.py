"""
Navigation Errors
Fatal conditions of the sense-replan-move loop. None of them is recovered
locally: the loop aborts with a descriptive message.
"""

from typing import Optional, Tuple


class NavigationError(RuntimeError):
    """Base class for every fatal navigation condition."""


class ConfigurationError(NavigationError):
    """Environment or scenario initialization failed before the loop started."""


class PlannerRejectedState(NavigationError):
    """The planner refused a start or goal state during initialization."""

    def __init__(self, role: str, state_id: int, message: Optional[str] = None):
        self.role = role
        self.state_id = state_id
        super().__init__(message or f"planner rejected {role} state {state_id}")


class NoSolutionFound(NavigationError):
    """A bounded-time replan returned without a path."""

    def __init__(self, pose: Tuple[int, int], time_budget: float, cycle: int):
        self.pose = pose
        self.time_budget = time_budget
        self.cycle = cycle
        super().__init__(
            f"no solution found from {pose} within {time_budget:.3f}s (cycle {cycle})"
        )


class UnsafeMoveError(NavigationError):
    """The next step of the path lands on a cell that is an obstacle in ground truth."""

    def __init__(self, cell: Tuple[int, int], true_cost: int, obstacle_threshold: int):
        self.cell = cell
        self.true_cost = true_cost
        self.obstacle_threshold = obstacle_threshold
        super().__init__(
            f"robot is commanded to move into an obstacle at {cell} "
            f"(cost {true_cost} >= threshold {obstacle_threshold})"
        )


class DesynchronizationError(NavigationError):
    """Planner and environment disagree about where the agent is."""


class CycleBudgetExceeded(NavigationError):
    """The configured maximum number of cycles ran out before reaching the goal."""

    def __init__(self, max_cycles: int, pose: Tuple[int, int]):
        self.max_cycles = max_cycles
        self.pose = pose
        super().__init__(f"goal not reached within {max_cycles} cycles (agent at {pose})")
