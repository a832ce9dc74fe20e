import math
import logging
from typing import Dict, Tuple, Any, Callable

# Heuristics that never overestimate for a given connectivity. Step lengths
# are 1000 (cardinal), 1415 (diagonal) and 2237 (knight) per unit cost.
ADMISSIBLE_HEURISTICS = {
    4: ("euclidean", "octile", "manhattan", "zero"),
    8: ("euclidean", "octile", "zero"),
    16: ("euclidean", "zero"),
}


class GridHeuristics:

    def __init__(self, config: Dict[str, Any] = None, connectivity: int = 8,
                 cost_scale: int = 1000):
        self.config = config or {}
        self.logger = logging.getLogger(__name__)

        self.connectivity = connectivity
        self.cost_scale = cost_scale

        self.heuristic_type = self.config.get("heuristic_type", "euclidean")

        self.heuristic_functions: Dict[str, Callable[[Tuple[int, int], Tuple[int, int]], int]] = {
            "euclidean": self._euclidean_distance,
            "octile": self._octile_distance,
            "manhattan": self._manhattan_distance,
            "zero": self._zero,
        }

        if self.heuristic_type not in self.heuristic_functions:
            self.logger.warning(
                f"Unknown heuristic type: {self.heuristic_type}, using euclidean"
            )
            self.heuristic_type = "euclidean"

        admissible = ADMISSIBLE_HEURISTICS.get(connectivity, ("euclidean", "zero"))
        if self.heuristic_type not in admissible:
            self.logger.warning(
                f"{self.heuristic_type} overestimates on a {connectivity}-connected grid, using euclidean"
            )
            self.heuristic_type = "euclidean"

        self.heuristic_func = self.heuristic_functions[self.heuristic_type]

        self.logger.debug(f"Grid heuristic: {self.heuristic_type} ({connectivity}-connected)")

    def compute_heuristic(self, current: Tuple[int, int], goal: Tuple[int, int]) -> int:

        return self.heuristic_func(current, goal)

    def _euclidean_distance(self, current: Tuple[int, int], goal: Tuple[int, int]) -> int:

        return int(self.cost_scale * math.hypot(goal[0] - current[0], goal[1] - current[1]))

    def _octile_distance(self, current: Tuple[int, int], goal: Tuple[int, int]) -> int:

        dx = abs(goal[0] - current[0])
        dy = abs(goal[1] - current[1])
        diagonal = int(self.cost_scale * math.sqrt(2))

        return self.cost_scale * (dx + dy) + (diagonal - 2 * self.cost_scale) * min(dx, dy)

    def _manhattan_distance(self, current: Tuple[int, int], goal: Tuple[int, int]) -> int:

        return self.cost_scale * (abs(goal[0] - current[0]) + abs(goal[1] - current[1]))

    def _zero(self, current: Tuple[int, int], goal: Tuple[int, int]) -> int:
        return 0
