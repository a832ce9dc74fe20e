"""
Incremental Planner (D* Lite)
Backward search from the goal that keeps its g/rhs tables across cycles.
Cost changes are repaired by re-evaluating only the states whose outgoing
edges changed; moving the start only shifts the key modifier.

Reference: Koenig & Likhachev, "D* Lite", AAAI 2002.
"""

import heapq
import time
import logging
from typing import Dict, List, Tuple, Optional, Any, Iterable

from gridnav.planning.global_planner.planner_interface import SearchPlanner, InvalidationCapability

INF = float('inf')

# Check the clock every this many expansions.
DEADLINE_CHECK_INTERVAL = 64

Key = Tuple[float, float]


class IncrementalPlanner(SearchPlanner):
    """
    D* Lite over a grid environment.

    Supports targeted invalidation (invalidate_predecessors_of) and full
    invalidation (invalidate_all, which drops every table). The search is
    exact, so the reported suboptimality bound is always 1.0.
    """

    name = "incremental"

    def __init__(self, environment, config: Dict[str, Any] = None):
        super().__init__(environment,
                         capabilities=[InvalidationCapability.FULL, InvalidationCapability.TARGETED],
                         config=config)
        self.logger = logging.getLogger(__name__)

        self.g: Dict[int, float] = {}
        self.rhs: Dict[int, float] = {}
        self.open_heap: List[Tuple[Key, int]] = []
        self.open_keys: Dict[int, Key] = {}
        self.km = 0.0
        self.last_start: Optional[int] = None
        self.initialized = False

        self.logger.info("Incremental planner initialized")

    def set_start(self, state_id: int) -> bool:
        previous = self.start_state_id
        if not super().set_start(state_id):
            return False
        if self.initialized and previous is not None and state_id != previous:
            self.km += self.environment.heuristic(self.last_start, state_id)
            self.last_start = state_id
        return True

    def set_goal(self, state_id: int) -> bool:
        changed = state_id != self.goal_state_id
        if not super().set_goal(state_id):
            return False
        if changed:
            self.initialized = False
        return True

    def set_initialsolution_eps(self, eps: float):
        # Exact search: the bound is accepted for the contract but has no effect.
        super().set_initialsolution_eps(eps)

    def get_solution_eps(self) -> float:
        return 1.0

    def invalidate_all(self):
        self.initialized = False
        self.planning_statistics['full_invalidations'] += 1
        self.logger.debug("Search tables dropped")

    def invalidate_predecessors_of(self, state_ids: Iterable[int]):
        self.planning_statistics['targeted_invalidations'] += 1
        if not self.initialized:
            return

        count = 0
        for state_id in state_ids:
            self._update_vertex(state_id)
            count += 1
        self.logger.debug(f"Re-evaluated {count} states after cost changes")

    def _initialize(self):
        self.g.clear()
        self.rhs.clear()
        self.open_heap = []
        self.open_keys.clear()
        self.km = 0.0
        self.last_start = self.start_state_id

        self.rhs[self.goal_state_id] = 0.0
        self._push(self.goal_state_id)
        self.initialized = True

    def _calculate_key(self, state_id: int) -> Key:
        best = min(self.g.get(state_id, INF), self.rhs.get(state_id, INF))
        if best == INF:
            return (INF, INF)
        return (best + self.environment.heuristic(self.start_state_id, state_id) + self.km, best)

    def _push(self, state_id: int):
        key = self._calculate_key(state_id)
        self.open_keys[state_id] = key
        heapq.heappush(self.open_heap, (key, state_id))

    def _top_key(self) -> Key:
        while self.open_heap:
            key, state_id = self.open_heap[0]
            if self.open_keys.get(state_id) == key:
                return key
            heapq.heappop(self.open_heap)
        return (INF, INF)

    def _update_vertex(self, state_id: int):
        if state_id != self.goal_state_id:
            best = INF
            for successor, edge_cost in self.environment.successors(state_id):
                candidate = edge_cost + self.g.get(successor, INF)
                if candidate < best:
                    best = candidate
            self.rhs[state_id] = best

        self.open_keys.pop(state_id, None)
        if self.g.get(state_id, INF) != self.rhs.get(state_id, INF):
            self._push(state_id)

    def _compute_shortest_path(self, deadline: float) -> bool:
        """Expand until the start is locally consistent; False on timeout."""
        start = self.start_state_id
        expansions = 0

        while (self._top_key() < self._calculate_key(start)
               or self.rhs.get(start, INF) != self.g.get(start, INF)):
            if not self.open_keys:
                break

            k_old, state_id = heapq.heappop(self.open_heap)
            if self.open_keys.get(state_id) != k_old:
                continue
            del self.open_keys[state_id]

            k_new = self._calculate_key(state_id)
            if k_old < k_new:
                self.open_keys[state_id] = k_new
                heapq.heappush(self.open_heap, (k_new, state_id))
                continue

            expansions += 1
            g_old = self.g.get(state_id, INF)
            rhs = self.rhs.get(state_id, INF)

            if g_old > rhs:
                self.g[state_id] = rhs
                for predecessor, _ in self.environment.predecessors(state_id):
                    self._update_vertex(predecessor)
            else:
                self.g[state_id] = INF
                self._update_vertex(state_id)
                for predecessor, _ in self.environment.predecessors(state_id):
                    self._update_vertex(predecessor)

            if expansions % DEADLINE_CHECK_INTERVAL == 0 and time.time() >= deadline:
                self.planning_statistics['expansions'] += expansions
                return False

        self.planning_statistics['expansions'] += expansions
        return True

    def _extract_path(self) -> Optional[List[int]]:
        start = self.start_state_id
        if self.g.get(start, INF) == INF:
            return None

        path = [start]
        state_id = start
        for _ in range(self.environment.num_states):
            if state_id == self.goal_state_id:
                return path

            best_state, best_cost = None, INF
            for successor, edge_cost in self.environment.successors(state_id):
                candidate = edge_cost + self.g.get(successor, INF)
                if candidate < best_cost:
                    best_state, best_cost = successor, candidate

            if best_state is None:
                return None
            path.append(best_state)
            state_id = best_state

        self.logger.error("Path extraction did not reach the goal")
        return None

    def replan(self, time_budget: float) -> Tuple[bool, List[int]]:
        if self.start_state_id is None or self.goal_state_id is None:
            raise RuntimeError("start and goal must be set before replanning")

        deadline = time.time() + time_budget
        self.planning_statistics['replans'] += 1

        if not self.initialized:
            self._initialize()

        if not self._compute_shortest_path(deadline):
            self.logger.debug("Time budget exhausted before the start became consistent")
            return False, []

        path = self._extract_path()
        if path is None:
            return False, []

        self.planning_statistics['successful_replans'] += 1
        return True, path

    def get_statistics(self) -> Dict[str, Any]:
        stats = super().get_statistics()
        stats['km'] = self.km
        stats['open_states'] = len(self.open_keys)
        return stats
