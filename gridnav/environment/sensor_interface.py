import logging
from typing import Dict, List, Any

from gridnav.environment.grid_world import GridWorld, Pose, CellChange

# Fixed sensing window: +/-2 cells on both axes (5x5, clipped to the grid).
SENSOR_RADIUS = 2


class LocalSensor:
    """
    Reveals ground truth in a square window around the agent.

    sense() reports every cell in the window whose believed cost differs
    from ground truth. It never writes costs; the change notifier does.
    """

    def __init__(self, config: Dict[str, Any] = None):
        self.config = config or {}
        self.logger = logging.getLogger(__name__)

        self.radius = SENSOR_RADIUS

        self.sensor_statistics = {
            'sweeps': 0,
            'cells_examined': 0,
            'changes_reported': 0,
        }

        self.logger.info(f"Local sensor initialized: window {2 * self.radius + 1}x{2 * self.radius + 1}")

    def sense(self, world: GridWorld, pose: Pose) -> List[CellChange]:

        changes: List[CellChange] = []
        window = world.cells_within(pose, self.radius)

        for x, y in window:
            world.mark_observed(x, y)

            true_cost = world.true_cost(x, y)
            if world.believed_cost(x, y) != true_cost:
                changes.append(CellChange(x, y, true_cost))
                self.logger.debug(f"setting cost[{x}][{y}] to {true_cost}")

        self.sensor_statistics['sweeps'] += 1
        self.sensor_statistics['cells_examined'] += len(window)
        self.sensor_statistics['changes_reported'] += len(changes)

        return changes

    def get_statistics(self) -> Dict[str, Any]:
        return self.sensor_statistics.copy()
