from __future__ import annotations

import threading
import time
from typing import Dict


_lock = threading.Lock()
_last_log: Dict[str, float] = {}


def should_log(key: str, *, interval_seconds: float) -> bool:
    now = time.monotonic()
    with _lock:
        last = _last_log.get(key)
        if last is not None and (now - last) < float(interval_seconds):
            return False
        _last_log[key] = now
        return True


def log_exception_throttled(logger, key: str, *args, interval_seconds: float, message: str) -> None:
    """Log the current exception at most once per interval per key.

    Every worker process repeats its setup, so a failure that is expected in some
    deployments (e.g. no main thread for signal handlers) would otherwise be logged
    once per worker start.
    """
    if should_log(key, interval_seconds=interval_seconds):
        logger.exception(message, *args)
