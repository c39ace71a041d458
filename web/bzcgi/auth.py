from __future__ import annotations

from typing import Protocol

from bzcgi.config import SiteParams


class Authorizer(Protocol):
    def user_id(self) -> int: ...

    def can_login(self) -> bool: ...


class SessionAuthorizer:
    """Reads the logged-in user from the Flask session; 0 means anonymous."""

    def __init__(self, session, params: SiteParams):
        self._session = session
        self._params = params

    def user_id(self) -> int:
        try:
            return int(self._session.get("user_id") or 0)
        except (TypeError, ValueError):
            return 0

    def can_login(self) -> bool:
        return self._params.login_allowed
