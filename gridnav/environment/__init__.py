"""
Environment Module
Grid world model, local sensing and the planning environment built on the
agent's belief grid.
"""

from gridnav.environment.grid_world import GridWorld, CostGrid, Pose, CellChange
from gridnav.environment.grid_environment import GridEnvironment
from gridnav.environment.sensor_interface import LocalSensor, SENSOR_RADIUS
from gridnav.environment.world_builder import (
    WorldBuilder, WorldSpec, parse_nav2d_config, load_nav2d_config, world_from_array
)
from gridnav.environment.map_generator import MapGenerator

__all__ = [
    'GridWorld',
    'CostGrid',
    'Pose',
    'CellChange',
    'GridEnvironment',
    'LocalSensor',
    'SENSOR_RADIUS',
    'WorldBuilder',
    'WorldSpec',
    'parse_nav2d_config',
    'load_nav2d_config',
    'world_from_array',
    'MapGenerator',
]
