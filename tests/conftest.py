import logging
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from gridnav.utils.logger import COMPONENT_LOGGERS


@pytest.fixture
def restore_logging():
    """Undo setup_logging() changes to the root and component loggers."""
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if handler not in saved_handlers:
            handler.close()
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)
    for name in COMPONENT_LOGGERS.values():
        component_logger = logging.getLogger(name)
        component_logger.setLevel(logging.NOTSET)
        for handler in list(component_logger.handlers):
            component_logger.removeHandler(handler)
            handler.close()
