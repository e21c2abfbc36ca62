"""
AgentRelay logging helpers

Every component takes an optional ``logger``. When none is given it asks
``get_logger`` for a named child of the ``agentrelay`` logger, so output can be
filtered per component (``agentrelay.agent.Coordinator``,
``agentrelay.routing`` ...). The library never installs handlers on its own;
applications call ``configure_logging`` or set up logging themselves.
"""

import logging
import os
from typing import Optional, Union

ROOT_LOGGER_NAME = "agentrelay"
LOG_LEVEL_ENV = "AGENTRELAY_LOG_LEVEL"

_DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def get_logger(component: str, parent: Optional[logging.Logger] = None) -> logging.Logger:
    """
    Return a named logger for a component.

    Args:
        component: Dotted component name, e.g. "agent.Coordinator"
        parent: Optional logger to nest under (defaults to the package logger)
    """
    base = parent or logging.getLogger(ROOT_LOGGER_NAME)
    component = (component or "").strip(".")
    if not component:
        return base
    return base.getChild(component)


def configure_logging(level: Optional[Union[int, str]] = None, fmt: str = _DEFAULT_FORMAT) -> None:
    """Install a basic stream handler. Level defaults to $AGENTRELAY_LOG_LEVEL or INFO."""
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=fmt)
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(level)
