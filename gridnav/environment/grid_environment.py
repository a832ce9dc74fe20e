"""
Grid Planning Environment
Exposes the belief grid to search planners: state ids, edge costs,
successors/predecessors and the predecessor query for changed cells.
Supports 4-, 8- and 16-connected motion.
"""

import math
import logging
from typing import Dict, List, Tuple, Optional, Any, Iterable, Iterator, Set

from gridnav.environment.grid_world import CostGrid, Pose
from gridnav.planning.global_planner.heuristics import GridHeuristics

CARDINAL_MOVES = [(1, 0), (0, 1), (-1, 0), (0, -1)]
DIAGONAL_MOVES = [(1, 1), (1, -1), (-1, 1), (-1, -1)]
KNIGHT_MOVES = [(1, 2), (2, 1), (2, -1), (1, -2), (-1, -2), (-2, -1), (-2, 1), (-1, 2)]

SUPPORTED_CONNECTIVITY = (4, 8, 16)

# Integer step length per unit cell, rounded up so that the euclidean
# heuristic never overestimates a path.
COST_SCALE = 1000


def _step_length(dx: int, dy: int) -> int:
    return int(math.ceil(COST_SCALE * math.hypot(dx, dy)))


def _intermediate_cells(dx: int, dy: int) -> List[Tuple[int, int]]:
    """Cells swept by a knight move, relative to its source."""
    if abs(dx) == 2:
        return [(dx // 2, 0), (dx // 2, dy)]
    if abs(dy) == 2:
        return [(0, dy // 2), (dx, dy // 2)]
    return []


class GridEnvironment:
    """
    Planning view of the agent's belief grid.

    State ids are x + y * width. Moving from a to b costs
    (1 + max cost of the cells involved) * step length; moves touching an
    obstacle cell (including the cells a knight move sweeps) do not exist.
    """

    def __init__(self, belief: CostGrid, connectivity: int = 8,
                 start: Optional[Tuple[int, int]] = None,
                 goal: Optional[Tuple[int, int]] = None,
                 heuristic_type: str = "euclidean"):
        if connectivity not in SUPPORTED_CONNECTIVITY:
            raise ValueError(f"connectivity must be one of {SUPPORTED_CONNECTIVITY}, got {connectivity}")

        self.logger = logging.getLogger(__name__)

        self.grid = belief
        self.connectivity = connectivity

        self.moves = list(CARDINAL_MOVES)
        if connectivity >= 8:
            self.moves += DIAGONAL_MOVES
        if connectivity == 16:
            self.moves += KNIGHT_MOVES

        self.move_info = [
            (dx, dy, _step_length(dx, dy), _intermediate_cells(dx, dy))
            for dx, dy in self.moves
        ]

        self.heuristics = GridHeuristics({"heuristic_type": heuristic_type},
                                         connectivity=connectivity, cost_scale=COST_SCALE)

        self.start: Optional[Pose] = None
        self.goal: Optional[Pose] = None
        if start is not None:
            self.set_start(*start)
        if goal is not None:
            self.set_goal(*goal)

        self.logger.info(f"Grid environment initialized: {self.width}x{self.height}, "
                         f"{connectivity}-connected")

    @property
    def width(self) -> int:
        return self.grid.width

    @property
    def height(self) -> int:
        return self.grid.height

    @property
    def num_states(self) -> int:
        return self.width * self.height

    @property
    def obstacle_threshold(self) -> int:
        return self.grid.obstacle_threshold

    def cost(self, x: int, y: int) -> int:
        return self.grid.cost(x, y)

    def set_cost(self, x: int, y: int, cost: int):
        self.grid.set_cost(x, y, cost)

    def is_valid_cell(self, x: int, y: int) -> bool:
        return self.grid.in_bounds(x, y) and not self.grid.is_obstacle(x, y)

    def is_valid_state(self, state_id: int) -> bool:
        return 0 <= state_id < self.num_states

    def state_of_coord(self, x: int, y: int) -> int:
        if not self.grid.in_bounds(x, y):
            raise ValueError(f"cell ({x}, {y}) outside {self.width}x{self.height} grid")
        return x + y * self.width

    def coord_of_state(self, state_id: int) -> Tuple[int, int]:
        if not self.is_valid_state(state_id):
            raise ValueError(f"invalid state id {state_id}")
        return (state_id % self.width, state_id // self.width)

    def set_start(self, x: int, y: int) -> int:
        state_id = self.state_of_coord(x, y)
        self.start = Pose(x, y)
        return state_id

    def set_goal(self, x: int, y: int) -> int:
        state_id = self.state_of_coord(x, y)
        self.goal = Pose(x, y)
        return state_id

    @property
    def start_state_id(self) -> Optional[int]:
        if self.start is None:
            return None
        return self.state_of_coord(self.start.x, self.start.y)

    @property
    def goal_state_id(self) -> Optional[int]:
        if self.goal is None:
            return None
        return self.state_of_coord(self.goal.x, self.goal.y)

    def edge_cost(self, x: int, y: int, dx: int, dy: int) -> Optional[int]:
        """
        Cost of moving from (x, y) by (dx, dy), None if the move is blocked
        or not part of this environment's connectivity.
        """
        for mdx, mdy, length, swept in self.move_info:
            if (mdx, mdy) == (dx, dy):
                return self._move_cost(x, y, dx, dy, length, swept)
        return None

    def _move_cost(self, x: int, y: int, dx: int, dy: int, length: int,
                   swept: List[Tuple[int, int]]) -> Optional[int]:
        nx, ny = x + dx, y + dy
        if not (self.grid.in_bounds(x, y) and self.grid.in_bounds(nx, ny)):
            return None

        threshold = self.grid.obstacle_threshold
        costs = self.grid.costs
        worst = max(int(costs[y, x]), int(costs[ny, nx]))
        if worst >= threshold:
            return None

        for ix, iy in swept:
            cx, cy = x + ix, y + iy
            if not self.grid.in_bounds(cx, cy):
                return None
            cell_cost = int(costs[cy, cx])
            if cell_cost >= threshold:
                return None
            worst = max(worst, cell_cost)

        return (1 + worst) * length

    def successors(self, state_id: int) -> Iterator[Tuple[int, int]]:
        """Yield (successor id, edge cost) pairs."""
        x, y = self.coord_of_state(state_id)
        for dx, dy, length, swept in self.move_info:
            cost = self._move_cost(x, y, dx, dy, length, swept)
            if cost is not None:
                yield (x + dx) + (y + dy) * self.width, cost

    def predecessors(self, state_id: int) -> Iterator[Tuple[int, int]]:
        """Yield (predecessor id, edge cost) pairs; moves are symmetric."""
        x, y = self.coord_of_state(state_id)
        for dx, dy, length, swept in self.move_info:
            px, py = x - dx, y - dy
            cost = self._move_cost(px, py, dx, dy, length, swept)
            if cost is not None:
                yield px + py * self.width, cost

    def heuristic(self, from_state: int, to_state: int) -> int:
        return self.heuristics.compute_heuristic(self.coord_of_state(from_state),
                                                 self.coord_of_state(to_state))

    def are_adjacent(self, from_state: int, to_state: int) -> bool:
        ax, ay = self.coord_of_state(from_state)
        bx, by = self.coord_of_state(to_state)
        return (bx - ax, by - ay) in self.moves

    def predecessors_of_changed_cells(self, cells: Iterable[Tuple[int, int]]) -> Set[int]:
        """
        State ids whose outgoing edge costs depend on any of the changed cells:
        the cells themselves, every state that can move into them, and every
        state whose knight move sweeps through them.
        """
        affected: Set[int] = set()

        for cell in cells:
            cx, cy = cell[0], cell[1]
            if not self.grid.in_bounds(cx, cy):
                continue
            affected.add(cx + cy * self.width)

            for dx, dy, _, swept in self.move_info:
                sources = [(cx - dx, cy - dy)]
                sources += [(cx - ix, cy - iy) for ix, iy in swept]
                for sx, sy in sources:
                    if self.grid.in_bounds(sx, sy):
                        affected.add(sx + sy * self.width)

        return affected

    def get_info(self) -> Dict[str, Any]:

        return {
            'width': self.width,
            'height': self.height,
            'connectivity': self.connectivity,
            'obstacle_threshold': self.obstacle_threshold,
            'start': self.start.as_tuple() if self.start else None,
            'goal': self.goal.as_tuple() if self.goal else None,
        }
