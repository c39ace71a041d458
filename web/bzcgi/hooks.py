from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List


logger = logging.getLogger(__name__)

HookFn = Callable[[Dict[str, Any]], None]

PATH_INFO_WHITELIST = "path_info_whitelist"
CGI_HEADERS = "cgi_headers"


class HookRegistry:
    """Named extension points; each callback may mutate the args it is given."""

    def __init__(self):
        self._lock = threading.Lock()
        self._hooks: Dict[str, List[HookFn]] = {}

    def register(self, name: str, fn: HookFn) -> None:
        with self._lock:
            self._hooks.setdefault(name, []).append(fn)

    def process(self, name: str, args: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            callbacks = list(self._hooks.get(name, ()))
        for fn in callbacks:
            logger.debug("Running hook %s: %s", name, getattr(fn, "__name__", fn))
            fn(args)
        return args
