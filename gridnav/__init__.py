"""
gridnav: Online Navigation in Partially Known Grid Worlds
Main package initialization.

Sense, notify and replan every cycle so the agent always holds a safe,
up-to-date path to a fixed goal.

Example:
    from gridnav.planning.integration.navigation_loop import run_navigation
    result = run_navigation("configs/scenario.yaml")
"""

import logging
import sys

# Package version
__version__ = "1.0.0"
__author__ = "gridnav Team"
__description__ = "Sense-replan-move control loop for partially known grid worlds"

# Setup basic logging
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )

# Package logger
logger = logging.getLogger(__name__)
logger.debug(f"gridnav v{__version__} package loaded")

__all__ = ['__version__', '__author__', '__description__']
