"""Package logger for modelcall. Silent unless the application configures it."""

from __future__ import annotations

import logging
from typing import TextIO

logger = logging.getLogger("modelcall")
logger.addHandler(logging.NullHandler())

_DEBUG_HANDLER_NAME = "modelcall-debug"


def enable_debug(stream: TextIO | None = None) -> logging.Handler:
    """
    Send modelcall debug logs (retries, throttle queueing, observer failures)
    to `stream`, stderr by default.

    Calling it again keeps the handler that is already installed.
    """
    logger.setLevel(logging.DEBUG)
    for handler in logger.handlers:
        if handler.get_name() == _DEBUG_HANDLER_NAME:
            return handler

    handler = logging.StreamHandler(stream)
    handler.set_name(_DEBUG_HANDLER_NAME)
    handler.setFormatter(
        logging.Formatter("%(asctime)s [modelcall] %(levelname)s %(message)s")
    )
    logger.addHandler(handler)
    return handler
