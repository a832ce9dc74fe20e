"""
Global Planner Module
Planner contract and the anytime and incremental grid planners.
"""

from gridnav.planning.global_planner.planner_interface import SearchPlanner, InvalidationCapability
from gridnav.planning.global_planner.heuristics import GridHeuristics
from gridnav.planning.global_planner.anytime_planner import AnytimeRepairingPlanner
from gridnav.planning.global_planner.incremental_planner import IncrementalPlanner

__all__ = [
    'SearchPlanner',
    'InvalidationCapability',
    'GridHeuristics',
    'AnytimeRepairingPlanner',
    'IncrementalPlanner',
]
