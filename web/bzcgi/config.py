from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlsplit


# One week; browsers pin HTTPS for this long after the last STS response.
MAX_STS_AGE = 604800

# Longest URI some clients accept in a redirect Location.
CGI_URI_LIMIT = 8000

LOGIN_COOKIE_NAME = "Bugzilla_login_request_cookie"

STS_POLICIES = ("off", "this_domain_only", "include_subdomains")


def _env_str(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    try:
        return int((os.environ.get(name) or str(default)).strip())
    except ValueError:
        return default


@dataclass(frozen=True)
class SiteParams:
    urlbase: str = ""
    sslbase: str = ""
    attachment_base: str = ""
    inbound_proxies: str = ""
    strict_transport_security: str = "off"
    ssl_redirect: bool = False
    csp_enabled: bool = True
    login_allowed: bool = True
    cgi_uri_limit: int = CGI_URI_LIMIT
    cookie_path: str = field(init=False)
    cookie_domain: Optional[str] = field(init=False)

    def __post_init__(self) -> None:
        if self.strict_transport_security not in STS_POLICIES:
            raise ValueError(
                f"strict_transport_security must be one of {', '.join(STS_POLICIES)}"
            )
        # Cookie scope follows urlbase and is fixed for the life of the settings.
        parts = urlsplit(self.urlbase)
        object.__setattr__(self, "cookie_path", parts.path or "/")
        object.__setattr__(self, "cookie_domain", parts.hostname or None)

    @classmethod
    def from_env(cls) -> "SiteParams":
        return cls(
            urlbase=_env_str("BZ_URLBASE"),
            sslbase=_env_str("BZ_SSLBASE"),
            attachment_base=_env_str("BZ_ATTACHMENT_BASE"),
            inbound_proxies=_env_str("BZ_INBOUND_PROXIES"),
            strict_transport_security=_env_str("BZ_STRICT_TRANSPORT_SECURITY", "off").lower(),
            ssl_redirect=_env_bool("BZ_SSL_REDIRECT", False),
            csp_enabled=_env_bool("BZ_CSP", True),
            login_allowed=_env_bool("BZ_LOGIN_ALLOWED", True),
            cgi_uri_limit=_env_int("BZ_CGI_URI_LIMIT", CGI_URI_LIMIT),
        )

    def trusts_proxy(self, remote_addr: Optional[str]) -> bool:
        """True when forwarded headers from this peer may be believed."""
        trusted = [p.strip() for p in self.inbound_proxies.split(",") if p.strip()]
        if not trusted:
            return False
        if "*" in trusted:
            return True
        return (remote_addr or "").strip() in trusted

    def use_attachbase(self) -> bool:
        return bool(self.attachment_base) and self.attachment_base != self.urlbase

    def correct_urlbase(self, is_secure: bool) -> str:
        """Base URL a redirect should point at for the current connection."""
        if not self.sslbase:
            return self.urlbase
        if self.ssl_redirect:
            return self.sslbase
        return self.sslbase if is_secure else self.urlbase

    def canonical_hosts(self) -> set[str]:
        hosts = set()
        for base in (self.urlbase, self.sslbase):
            host = urlsplit(base).netloc.lower() if base else ""
            if host:
                hosts.add(host)
        return hosts


_site_params: Optional[SiteParams] = None
_lock = threading.Lock()


def get_site_params() -> SiteParams:
    global _site_params
    with _lock:
        if _site_params is None:
            _site_params = SiteParams.from_env()
        return _site_params


def reset_site_params() -> None:
    global _site_params
    with _lock:
        _site_params = None
