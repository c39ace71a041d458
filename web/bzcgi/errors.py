from __future__ import annotations

import os
import re
from typing import Any


class CodeError(Exception):
    """Programming error inside the request layer.

    Carries a short tag naming the misuse plus any values useful in the log.
    """

    def __init__(self, tag: str, **details: Any):
        self.tag = tag
        self.details = details
        super().__init__(tag if not details else f"{tag}: {details}")


class CgiParseError(Exception):
    """The raw request could not be parsed; nothing else can run safely."""

    def __init__(self, status: int, detail: str = ""):
        self.status = int(status)
        self.detail = detail
        super().__init__(f"CGI parsing error: {status} {detail}".rstrip())


def expose_internal_errors() -> bool:
    return (os.environ.get("EXPOSE_INTERNAL_ERRORS") or "").strip().lower() in (
        "1",
        "true",
        "yes",
        "on",
    )


def clean_text(text: str, *, max_len: int = 200) -> str:
    s = (text or "").replace("\r", " ").replace("\n", " ").strip()
    # Remove other control chars.
    s = "".join(ch if (ch >= " " and ch != "\x7f") else " " for ch in s)
    s = re.sub(r"\s+", " ", s).strip()
    if max_len and len(s) > max_len:
        s = s[: max_len - 1].rstrip() + "…"
    return s


def public_error_message(
    e: Exception,
    *,
    default: str = "Internal error. Check server logs for details.",
    max_len: int = 200,
) -> str:
    """Return a user-safe error message.

    - By default, avoids leaking internal exception details.
    - A CodeError reports its tag only, never the attached details.
    - If EXPOSE_INTERNAL_ERRORS is set, returns the exception type + message.
    """
    if expose_internal_errors():
        detail = clean_text(f"{type(e).__name__}: {e}", max_len=max_len)
        return detail or default

    if isinstance(e, CodeError):
        return clean_text(f"Internal error: {e.tag}", max_len=max_len) or default

    return default
