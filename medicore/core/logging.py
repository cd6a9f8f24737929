# medicore/core/logging.py
"""
Logging setup for the pharmacy service.

All modules log through ``logging.getLogger(__name__)``; this only wires the
``medicore`` logger to stdout once.
"""
from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
HANDLER_NAME = "medicore-stdout"


def configure_logging(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger("medicore")
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # the app module can be imported more than once (reload, tests)
    if not any(h.get_name() == HANDLER_NAME for h in logger.handlers):
        ch = logging.StreamHandler(sys.stdout)
        ch.set_name(HANDLER_NAME)
        ch.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        logger.addHandler(ch)

    return logger
