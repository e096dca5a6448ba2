"""Logging set-up for the command-line entry point.

Library modules only call ``logging.getLogger(__name__)``; handlers are
installed once here.
"""

from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger("marketflow")
    root.setLevel(level.upper())
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
    root.propagate = False

    # SQLAlchemy has its own echo flag; keep its loggers quiet otherwise.
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
