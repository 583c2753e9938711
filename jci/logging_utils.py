"""
Logging helpers for jci.

Diagnostics go through the standard `logging` module; user-facing command
output is printed directly by the CLI.
"""

from __future__ import annotations

import logging

_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


def configure_logging(verbosity: int) -> None:
    """
    Configure the root logger from the number of `-v` flags.

    0 -> WARNING, 1 -> INFO, 2 or more -> DEBUG. Connection chatter from
    urllib3 stays at WARNING unless DEBUG was asked for.
    """
    level = _LEVELS[min(max(verbosity, 0), len(_LEVELS) - 1)]

    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if level > logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
