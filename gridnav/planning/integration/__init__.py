"""
Planning Integration Module
Couples sensing, change notification, bounded replanning and motion.
"""

from gridnav.planning.integration.change_notifier import ChangeNotifier, InvalidationOutcome
from gridnav.planning.integration.replan_scheduler import ReplanScheduler, ReplanResult, TimingHistogram
from gridnav.planning.integration.execution_monitor import MotionExecutor
from gridnav.planning.integration.navigation_loop import (
    NavigationLoop, NavigationConfig, NavigationResult, build_planner, run_navigation
)

__all__ = [
    'ChangeNotifier',
    'InvalidationOutcome',
    'ReplanScheduler',
    'ReplanResult',
    'TimingHistogram',
    'MotionExecutor',
    'NavigationLoop',
    'NavigationConfig',
    'NavigationResult',
    'build_planner',
    'run_navigation',
]
