"""
Core Utilities Module
Errors, configuration, logging and trace output shared by the navigation stack.
"""

from gridnav.utils.exceptions import (
    NavigationError,
    ConfigurationError,
    PlannerRejectedState,
    NoSolutionFound,
    UnsafeMoveError,
    DesynchronizationError,
    CycleBudgetExceeded,
)
from gridnav.utils.config_loader import ConfigManager, SystemConfig, load_config, validate_config
from gridnav.utils.data_recorder import SolutionTraceWriter, TraceRecord, read_trace
from gridnav.utils.logger import SystemLogger, setup_logging, log_exceptions

__all__ = [
    # Errors
    "NavigationError",
    "ConfigurationError",
    "PlannerRejectedState",
    "NoSolutionFound",
    "UnsafeMoveError",
    "DesynchronizationError",
    "CycleBudgetExceeded",
    # Config
    "ConfigManager",
    "SystemConfig",
    "load_config",
    "validate_config",
    # Trace output
    "SolutionTraceWriter",
    "TraceRecord",
    "read_trace",
    # Logging
    "SystemLogger",
    "setup_logging",
    "log_exceptions",
]
