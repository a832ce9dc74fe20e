"""
Change Notifier
Pushes sensed cost changes into the belief grid and tells the planner,
choosing the invalidation style from the planner's declared capabilities.
"""

import logging
from typing import Dict, List, Any
from enum import Enum

from gridnav.environment.grid_world import GridWorld, CellChange
from gridnav.environment.grid_environment import GridEnvironment
from gridnav.planning.global_planner.planner_interface import SearchPlanner, InvalidationCapability


class InvalidationOutcome(Enum):
    """How the planner was informed of a change set."""

    NONE = "none"                # empty change set, nothing done
    FULL = "full"
    TARGETED = "targeted"
    UNSUPPORTED = "unsupported"  # belief updated, planner not told


class ChangeNotifier:
    """
    Keeps belief grid and planner consistent with the latest sensing.

    Targeted invalidation is preferred over full invalidation when a
    planner declares both.
    """

    def __init__(self, world: GridWorld, environment: GridEnvironment, planner: SearchPlanner):
        self.logger = logging.getLogger(__name__)

        self.world = world
        self.environment = environment
        self.planner = planner

        self.notification_statistics = {
            'notifications': 0,
            'full_invalidations': 0,
            'targeted_invalidations': 0,
            'unsupported_notifications': 0,
            'states_invalidated': 0,
            'cells_updated': 0,
        }

        if not (planner.supports(InvalidationCapability.TARGETED)
                or planner.supports(InvalidationCapability.FULL)):
            self.logger.warning(f"Planner '{planner.name}' declares no invalidation capability; "
                                f"it will not be told about cost changes")

    def notify(self, changes: List[CellChange]) -> InvalidationOutcome:
        """
        Apply a cycle's change set.

        Args:
            changes: Cells whose believed cost differs from ground truth

        Returns:
            Which invalidation was issued
        """
        if not changes:
            return InvalidationOutcome.NONE

        written = self.world.apply_updates(changes)
        self.notification_statistics['notifications'] += 1
        self.notification_statistics['cells_updated'] += written

        if self.planner.supports(InvalidationCapability.TARGETED):
            cells = [(change.x, change.y) for change in changes]
            affected = self.environment.predecessors_of_changed_cells(cells)
            self.planner.invalidate_predecessors_of(affected)

            self.notification_statistics['targeted_invalidations'] += 1
            self.notification_statistics['states_invalidated'] += len(affected)
            self.logger.debug(f"{written} cells changed: {len(affected)} states re-evaluated")
            return InvalidationOutcome.TARGETED

        if self.planner.supports(InvalidationCapability.FULL):
            self.planner.invalidate_all()

            self.notification_statistics['full_invalidations'] += 1
            self.logger.debug(f"{written} cells changed: full invalidation")
            return InvalidationOutcome.FULL

        self.notification_statistics['unsupported_notifications'] += 1
        self.logger.warning(f"{written} cells changed but planner '{self.planner.name}' "
                            f"cannot be invalidated")
        return InvalidationOutcome.UNSUPPORTED

    def get_statistics(self) -> Dict[str, Any]:
        return self.notification_statistics.copy()
