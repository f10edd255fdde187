"""Process-wide flag recording that the user pressed Ctrl+C."""

from __future__ import annotations

import logging
import signal
import threading

logger = logging.getLogger(__name__)

_INTERRUPTED = threading.Event()


def interrupted() -> bool:
    """Tell whether the program has been interrupted."""
    return _INTERRUPTED.is_set()


def set_interrupted() -> None:
    _INTERRUPTED.set()


def unset_interrupted() -> None:
    """Clear the interrupted flag."""
    _INTERRUPTED.clear()


def _handle_sigint(signum, frame) -> None:
    set_interrupted()


def set_handler() -> None:
    """Make SIGINT set the interrupted flag instead of stopping the program."""
    try:
        signal.signal(signal.SIGINT, _handle_sigint)
    except (ValueError, OSError):
        logger.error("Cannot set a control C handler")