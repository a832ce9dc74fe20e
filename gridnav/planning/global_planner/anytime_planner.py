"""
Anytime Repairing Planner
ARA*-style anytime search: a sequence of weighted A* searches with a
shrinking suboptimality bound (eps), stopped by the per-call time budget.
Non-incremental: any world change restarts from the initial eps.
"""

import heapq
import time
import logging
from typing import Dict, List, Tuple, Optional, Any
from dataclasses import dataclass

from gridnav.planning.global_planner.planner_interface import SearchPlanner, InvalidationCapability

# Check the clock every this many expansions.
DEADLINE_CHECK_INTERVAL = 64


@dataclass
class SearchOutcome:
    """Result of one weighted A* pass."""
    path: Optional[List[int]]
    cost: float
    expansions: int
    timed_out: bool


class AnytimeRepairingPlanner(SearchPlanner):
    """
    Weighted A* with decreasing eps under a time budget.

    Declares FULL invalidation only: after invalidate_all() the next
    replan starts over at the initial eps, as it does after the start or
    goal moves.
    """

    name = "anytime"

    def __init__(self, environment, config: Dict[str, Any] = None):
        super().__init__(environment, capabilities=[InvalidationCapability.FULL], config=config)
        self.logger = logging.getLogger(__name__)

        self.eps_decrement = float(self.config.get("eps_decrement", 0.2))
        if self.eps_decrement <= 0:
            raise ValueError(f"eps_decrement must be > 0, got {self.eps_decrement}")

        self.initial_eps = float(self.config.get("initial_eps", 3.0))

        self._needs_reinit = True
        self._best_path: Optional[List[int]] = None
        self._best_cost = float('inf')
        self._solution_eps = float('inf')

        self.logger.info(f"Anytime planner initialized: eps decrement {self.eps_decrement}")

    def set_start(self, state_id: int) -> bool:
        changed = state_id != self.start_state_id
        if not super().set_start(state_id):
            return False
        if changed:
            self._needs_reinit = True
        return True

    def set_goal(self, state_id: int) -> bool:
        changed = state_id != self.goal_state_id
        if not super().set_goal(state_id):
            return False
        if changed:
            self._needs_reinit = True
        return True

    def set_initialsolution_eps(self, eps: float):
        super().set_initialsolution_eps(eps)
        self._needs_reinit = True

    def invalidate_all(self):
        self._needs_reinit = True
        self.planning_statistics['full_invalidations'] += 1
        self.logger.debug("Costs changed: search restarts from initial eps")

    def get_solution_eps(self) -> float:
        return self._solution_eps

    def replan(self, time_budget: float) -> Tuple[bool, List[int]]:
        if self.start_state_id is None or self.goal_state_id is None:
            raise RuntimeError("start and goal must be set before replanning")

        deadline = time.time() + time_budget
        self.planning_statistics['replans'] += 1

        if self._needs_reinit:
            self._needs_reinit = False
            self._best_path = None
            self._best_cost = float('inf')
            self._solution_eps = float('inf')
            eps = self.initial_eps
        elif self._best_path is not None and self._solution_eps <= 1.0:
            self.planning_statistics['successful_replans'] += 1
            return True, list(self._best_path)
        elif self._best_path is not None:
            eps = max(1.0, self._solution_eps - self.eps_decrement)
        else:
            eps = self.initial_eps

        while True:
            outcome = self._weighted_astar(eps, deadline)
            self.planning_statistics['expansions'] += outcome.expansions

            if outcome.path is None:
                if not outcome.timed_out:
                    self.logger.debug(f"Open list exhausted at eps={eps:.2f}: no path")
                    self._best_path = None
                    self._solution_eps = float('inf')
                break

            self._best_path = outcome.path
            self._best_cost = outcome.cost
            self._solution_eps = eps
            self.logger.debug(f"Solution at eps={eps:.2f}: cost {outcome.cost}, "
                              f"{len(outcome.path)} states, {outcome.expansions} expansions")

            if self.find_first_solution_only or eps <= 1.0 or time.time() >= deadline:
                break
            eps = max(1.0, eps - self.eps_decrement)

        if self._best_path is None:
            return False, []

        self.planning_statistics['successful_replans'] += 1
        return True, list(self._best_path)

    def _weighted_astar(self, eps: float, deadline: float) -> SearchOutcome:
        """One weighted A* pass from start to goal, f = g + eps * h."""
        env = self.environment
        start = self.start_state_id
        goal = self.goal_state_id

        g: Dict[int, int] = {start: 0}
        parent: Dict[int, Optional[int]] = {start: None}
        closed = set()
        counter = 0
        open_set = [(eps * env.heuristic(start, goal), counter, start)]
        expansions = 0

        while open_set:
            _, _, state = heapq.heappop(open_set)
            if state in closed:
                continue

            if state == goal:
                return SearchOutcome(self._reconstruct(parent, goal), g[goal], expansions, False)

            closed.add(state)
            expansions += 1

            if expansions % DEADLINE_CHECK_INTERVAL == 0 and time.time() >= deadline:
                return SearchOutcome(None, float('inf'), expansions, True)

            for successor, edge_cost in env.successors(state):
                if successor in closed:
                    continue
                tentative = g[state] + edge_cost
                if tentative < g.get(successor, float('inf')):
                    g[successor] = tentative
                    parent[successor] = state
                    counter += 1
                    f_cost = tentative + eps * env.heuristic(successor, goal)
                    heapq.heappush(open_set, (f_cost, counter, successor))

        return SearchOutcome(None, float('inf'), expansions, False)

    def _reconstruct(self, parent: Dict[int, Optional[int]], goal: int) -> List[int]:
        path = []
        state: Optional[int] = goal
        while state is not None:
            path.append(state)
            state = parent[state]
        path.reverse()
        return path

    def get_statistics(self) -> Dict[str, Any]:
        stats = super().get_statistics()
        stats['solution_eps'] = self._solution_eps
        stats['best_cost'] = self._best_cost
        return stats
