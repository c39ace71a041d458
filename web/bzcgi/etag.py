from __future__ import annotations

import re
from typing import Optional


def check_etag(if_none_match: Optional[str], valid_etag: str) -> bool:
    """True when If-None-Match names `valid_etag` or is the `*` wildcard."""
    if not if_none_match:
        return False
    for candidate in re.split(r"[\s,]+", if_none_match):
        if candidate.startswith('"'):
            candidate = candidate[1:]
        if candidate.endswith('"'):
            candidate = candidate[:-1]
        if candidate == valid_etag or candidate == "*":
            return True
    return False
