"""
Search Planner Contract
Every planner driven by the navigation loop implements this interface and
declares at construction which change notifications it understands.
"""

import logging
from typing import Dict, List, Tuple, Optional, Any, Iterable, FrozenSet
from enum import Enum


class InvalidationCapability(Enum):
    """Change notifications a planner can accept."""

    FULL = "full"            # discard all search effort: invalidate_all()
    TARGETED = "targeted"    # re-evaluate given states: invalidate_predecessors_of()


class SearchPlanner:
    """
    Base class for bounded-time planners over a grid environment.

    Subclasses implement replan() and whichever invalidation entry points
    match their declared capabilities.
    """

    name = "planner"

    def __init__(self, environment, capabilities: Iterable[InvalidationCapability] = (),
                 config: Dict[str, Any] = None):
        self.environment = environment
        self.config = config or {}
        self.logger = logging.getLogger(__name__)

        self.capabilities: FrozenSet[InvalidationCapability] = frozenset(capabilities)

        self.start_state_id: Optional[int] = None
        self.goal_state_id: Optional[int] = None
        self.initial_eps = 1.0
        self.find_first_solution_only = False
        self.closed = False

        self.planning_statistics = {
            'replans': 0,
            'successful_replans': 0,
            'expansions': 0,
            'full_invalidations': 0,
            'targeted_invalidations': 0,
        }

    def supports(self, capability: InvalidationCapability) -> bool:
        return capability in self.capabilities

    def _is_valid_state(self, state_id: int) -> bool:
        if not self.environment.is_valid_state(state_id):
            return False
        x, y = self.environment.coord_of_state(state_id)
        return self.environment.is_valid_cell(x, y)

    def set_start(self, state_id: int) -> bool:
        if not self._is_valid_state(state_id):
            self.logger.warning(f"{self.name}: rejected start state {state_id}")
            return False
        self.start_state_id = state_id
        return True

    def set_goal(self, state_id: int) -> bool:
        if not self._is_valid_state(state_id):
            self.logger.warning(f"{self.name}: rejected goal state {state_id}")
            return False
        self.goal_state_id = state_id
        return True

    def set_initialsolution_eps(self, eps: float):
        if eps < 1.0:
            raise ValueError(f"initial eps must be >= 1.0, got {eps}")
        self.initial_eps = float(eps)

    def set_search_mode(self, find_first_solution_only: bool):
        self.find_first_solution_only = bool(find_first_solution_only)

    def replan(self, time_budget: float) -> Tuple[bool, List[int]]:
        """
        Search for a path from start to goal within time_budget seconds.

        Returns:
            (success, path of state ids starting at the start state)
        """
        raise NotImplementedError

    def get_solution_eps(self) -> float:
        raise NotImplementedError

    def invalidate_all(self):
        raise NotImplementedError(f"{self.name} does not support full invalidation")

    def invalidate_predecessors_of(self, state_ids: Iterable[int]):
        raise NotImplementedError(f"{self.name} does not support targeted invalidation")

    def get_statistics(self) -> Dict[str, Any]:
        stats = self.planning_statistics.copy()
        stats['planner'] = self.name
        stats['capabilities'] = sorted(c.value for c in self.capabilities)
        return stats

    def close(self):
        """Release search state; the planner is unusable afterwards."""
        self.closed = True
        self.logger.debug(f"{self.name} closed")
