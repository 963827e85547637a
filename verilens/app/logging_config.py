"""
Process-level logging setup.

Modules never configure handlers themselves; they only create module
loggers. Entry points call ``configure_logging`` once.
"""

import logging
from typing import Optional

from verilens.app.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Install the root handler at the configured level.

    Calling it again only adjusts the level.
    """
    resolved = (level or get_settings().log_level).upper()

    logging.basicConfig(
        level=resolved,
        format=LOG_FORMAT,
    )
    logging.getLogger().setLevel(resolved)
    logging.getLogger("verilens").setLevel(resolved)
