from __future__ import annotations

import logging
import signal
import sys
import threading

from bzcgi.logutil import log_exception_throttled


logger = logging.getLogger(__name__)


_initialized = False
_lock = threading.Lock()


def init_process_globals() -> None:
    """One-time worker setup; later calls are no-ops.

    A browser closing the connection makes the server send SIGPIPE/SIGTERM.
    Ignoring them keeps a half-finished database write from being cut short.
    Output is made write-through so streamed pages reach the client at once.
    """
    global _initialized
    with _lock:
        if _initialized:
            return
        _initialized = True

    try:
        signal.signal(signal.SIGTERM, signal.SIG_IGN)
        if hasattr(signal, "SIGPIPE"):
            signal.signal(signal.SIGPIPE, signal.SIG_IGN)
    except ValueError:
        # signal.signal only works in the main thread.
        log_exception_throttled(
            logger,
            "process.signals",
            interval_seconds=300.0,
            message="Could not ignore SIGTERM/SIGPIPE outside the main thread",
        )

    reconfigure = getattr(sys.stdout, "reconfigure", None)
    if reconfigure is not None:
        reconfigure(write_through=True)

    logger.info("Process globals initialized")


def process_globals_initialized() -> bool:
    with _lock:
        return _initialized
