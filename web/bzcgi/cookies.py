from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Union

from werkzeug.http import dump_cookie

from bzcgi.errors import CodeError


logger = logging.getLogger(__name__)


# Browsers drop a cookie whose expiry has already passed.
EXPIRED = datetime(1998, 9, 15, 21, 49, 0, tzinfo=timezone.utc)


@dataclass(frozen=True)
class OutgoingCookie:
    name: str
    value: str
    path: str = "/"
    domain: Optional[str] = None
    secure: bool = False
    httponly: bool = False
    expires: Optional[Union[datetime, int, float, str]] = None
    samesite: Optional[str] = None

    @property
    def is_removal(self) -> bool:
        return isinstance(self.expires, datetime) and self.expires <= datetime.now(timezone.utc)

    def header_value(self) -> str:
        return dump_cookie(
            self.name,
            self.value,
            expires=self.expires,
            path=self.path,
            domain=self.domain,
            secure=self.secure,
            httponly=self.httponly,
            samesite=self.samesite,
        )


@dataclass
class CookieQueue:
    """Cookies queued by any code during the request, written with the first header."""

    path: str = "/"
    domain: Optional[str] = None
    _cookies: List[OutgoingCookie] = field(default_factory=list, init=False)
    _drained: bool = field(default=False, init=False)

    def send(self, name: str, value: str, **options) -> OutgoingCookie:
        # An empty value would make the browser store a useless cookie.
        if not value:
            raise CodeError("cookies_need_value", name=name)
        # Scope always follows urlbase.
        options.pop("path", None)
        options.pop("domain", None)
        cookie = OutgoingCookie(
            name=name,
            value=str(value),
            path=self.path,
            domain=self.domain,
            **options,
        )
        self._cookies.append(cookie)
        logger.debug("Queued cookie %s (path=%s, domain=%s)", name, self.path, self.domain)
        return cookie

    def remove(self, name: str) -> OutgoingCookie:
        # Non-empty dummy value; send() refuses empty ones.
        return self.send(name, "X", expires=EXPIRED)

    def has(self, name: str) -> bool:
        return any(c.name == name for c in self._cookies)

    def drain(self) -> List[str]:
        """Render every queued cookie as a Set-Cookie value, once per request."""
        if self._drained:
            raise CodeError("header_already_sent", what="cookies")
        self._drained = True
        return self.render()

    def render(self) -> List[str]:
        return [c.header_value() for c in self._cookies]

    @property
    def drained(self) -> bool:
        return self._drained

    def __iter__(self) -> Iterator[OutgoingCookie]:
        return iter(list(self._cookies))

    def __len__(self) -> int:
        return len(self._cookies)
