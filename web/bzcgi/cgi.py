"""Per-request wrapper around a Werkzeug request.

`BugzillaCgi` owns everything that lives for exactly one HTTP exchange: the
parameters (which search cleaning may rewrite), the outgoing cookie queue,
the Content-Security-Policy and the "headers already sent" flag. The Werkzeug
request is held, not subclassed.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from typing import Optional, Union

from werkzeug.datastructures import Headers
from werkzeug.exceptions import HTTPException

from bzcgi import redirects
from bzcgi.attachment import request_is_secure, url_is_attachment_base
from bzcgi.auth import Authorizer
from bzcgi.canonical import canonicalise_query
from bzcgi.config import LOGIN_COOKIE_NAME, SiteParams, get_site_params
from bzcgi.cookies import CookieQueue, OutgoingCookie
from bzcgi.csp import ContentSecurityPolicy
from bzcgi.errors import CgiParseError, CodeError
from bzcgi.etag import check_etag
from bzcgi.headers import add_security_headers, content_type_with_charset, dated_content_disposition
from bzcgi.hooks import CGI_HEADERS, HookRegistry
from bzcgi.params import ParamStore
from bzcgi.process import init_process_globals
from bzcgi.recent_search import RecentSearchStore, get_recent_search_store
from bzcgi.search_cleaner import clean_search_url


logger = logging.getLogger(__name__)


CRLF = "\r\n"


@dataclass
class RequestState:
    cookies: CookieQueue
    header_done: bool = False
    csp: Optional[ContentSecurityPolicy] = None
    content_disposition: Optional[str] = None
    multipart_in_progress: bool = False
    boundary: str = field(default_factory=lambda: "------- =_" + secrets.token_hex(8))


def split_script_path(path: str) -> tuple[str, str]:
    """`/buglist.cgi/extra` -> (`buglist.cgi`, `/extra`)."""
    stripped = (path or "").lstrip("/")
    if not stripped:
        return "", ""
    script, sep, rest = stripped.partition("/")
    return script, (sep + rest) if sep else ""


class BugzillaCgi:
    def __init__(
        self,
        request,
        *,
        authorizer: Authorizer,
        params: Optional[SiteParams] = None,
        recent_searches: Optional[RecentSearchStore] = None,
        hooks: Optional[HookRegistry] = None,
        enforce_location: bool = True,
    ):
        init_process_globals()

        self.request = request
        self.site = params or get_site_params()
        self.authorizer = authorizer
        self._recent_searches = recent_searches
        self.hooks = hooks or HookRegistry()
        self.state = RequestState(
            cookies=CookieQueue(path=self.site.cookie_path, domain=self.site.cookie_domain)
        )
        self.script_name, self.path_info = split_script_path(request.path)

        try:
            self.args = ParamStore.from_request(request)
        except HTTPException as exc:
            # Nothing can render a proper error page without parsed parameters.
            logger.warning("Unparseable %s request to %s: %s", request.method, request.path, exc)
            raise CgiParseError(exc.code or 400, exc.description or "") from exc
        except ValueError as exc:
            logger.warning("Unparseable %s request to %s: %s", request.method, request.path, exc)
            raise CgiParseError(400, str(exc)) from exc

        if enforce_location:
            self.enforce_canonical_location()

    @property
    def recent_searches(self) -> RecentSearchStore:
        if self._recent_searches is None:
            self._recent_searches = get_recent_search_store()
        return self._recent_searches

    # -- connection and URLs ------------------------------------------------

    def is_secure(self) -> bool:
        return request_is_secure(self.request, self.site)

    def relative_url(self, *, path_info: bool = True, query: bool = True) -> str:
        url = self.script_name
        if path_info:
            url += self.path_info
        qs = self.args.query_string() if query else ""
        return f"{url}?{qs}" if qs else url

    def _script_base(self) -> str:
        return self.request.host_url.rstrip("/") + self.request.script_root + "/"

    def self_url(self) -> str:
        return self._script_base() + self.relative_url()

    def url_without_path_info(self) -> str:
        return self._script_base() + self.relative_url(path_info=False)

    def url_is_attachment_base(self, bug_id: Optional[int] = None) -> bool:
        return url_is_attachment_base(self.request, self.site, bug_id)

    # -- parameters -----------------------------------------------------------

    def canonicalise_query(self, *exclude: str) -> str:
        return canonicalise_query(self.args, exclude)

    def clean_search_url(self) -> ParamStore:
        return clean_search_url(self.args)

    def should_set(self, name: str) -> bool:
        return self.args.should_set(name)

    def check_etag(self, valid_etag: str) -> bool:
        return check_etag(self.request.headers.get("If-None-Match"), valid_etag)

    # -- redirects ------------------------------------------------------------

    def enforce_canonical_location(self) -> None:
        redirects.enforce_canonical_location(self)

    def redirect_search_url(self) -> None:
        redirects.redirect_search_url(self)

    def redirect_to_https(self):
        redirects.redirect_to_https(self)

    def redirect_to_urlbase(self):
        redirects.redirect_to_urlbase(self)

    # -- cookies --------------------------------------------------------------

    def send_cookie(self, name: str, value: str, **options) -> OutgoingCookie:
        return self.state.cookies.send(name, value, **options)

    def remove_cookie(self, name: str) -> OutgoingCookie:
        return self.state.cookies.remove(name)

    def _ensure_login_request_cookie(self) -> None:
        # Login CSRF guard: anonymous visitors get a marker the login form must echo.
        if self.authorizer.user_id() or not self.authorizer.can_login():
            return
        if self.request.cookies.get(LOGIN_COOKIE_NAME):
            return
        secure = self.site.ssl_redirect or self.site.urlbase.lower().startswith("https")
        self.send_cookie(
            LOGIN_COOKIE_NAME,
            secrets.token_urlsafe(10),
            httponly=True,
            secure=secure,
        )

    # -- Content-Security-Policy ----------------------------------------------

    def content_security_policy(self, **overrides) -> Optional[ContentSecurityPolicy]:
        """The request's CSP, built on first use; later overrides are ignored."""
        if not self.site.csp_enabled:
            return None
        if self.state.csp is None:
            self.state.csp = ContentSecurityPolicy.with_overrides(**overrides)
        return self.state.csp

    def csp_nonce(self) -> str:
        csp = self.content_security_policy()
        if csp is not None and csp.has_nonce():
            return csp.nonce
        return ""

    # -- headers --------------------------------------------------------------

    def set_dated_content_disp(self, disp_type: str, prefix: str, ext: str) -> str:
        self.state.content_disposition = dated_content_disposition(disp_type, prefix, ext)
        return self.state.content_disposition

    def header(self, content_type: Optional[str] = "text/html") -> Headers:
        """Build the complete header set for the response. Allowed once."""
        if self.state.header_done:
            raise CodeError("header_already_sent", script=self.script_name)

        headers = Headers()
        if content_type:
            headers["Content-Type"] = content_type_with_charset(content_type)
        if self.state.content_disposition:
            headers["Content-Disposition"] = self.state.content_disposition

        self._ensure_login_request_cookie()
        for cookie in self.state.cookies.drain():
            headers.add("Set-Cookie", cookie)

        add_security_headers(
            headers,
            params=self.site,
            is_secure=self.is_secure(),
            on_attachment_base=self.url_is_attachment_base(),
            csp=self.content_security_policy(),
        )

        self.hooks.process(CGI_HEADERS, {"cgi": self, "headers": headers})
        self.state.header_done = True
        return headers

    def apply_headers(self, response):
        """Merge `header()` into a Flask/Werkzeug response and return it."""
        headers = self.header(response.headers.get("Content-Type"))
        for key in dict.fromkeys(k for k, _ in headers.items()):
            values = headers.getlist(key)
            if key.lower() == "set-cookie":
                for value in values:
                    response.headers.add(key, value)
            else:
                response.headers.setlist(key, values)
        return response

    # -- server push ----------------------------------------------------------

    def multipart_init(self) -> str:
        """Content-Type for a multipart/x-mixed-replace response."""
        return f'multipart/x-mixed-replace;boundary="{self.state.boundary}"'

    def multipart_start(self, content_type: str = "text/html") -> str:
        lines = [f"Content-Type: {content_type_with_charset(content_type)}"]
        if self.state.content_disposition:
            lines.append(f"Content-Disposition: {self.state.content_disposition}")
        # Every part repeats the cookies; the part may be the one the browser keeps.
        for cookie in self.state.cookies.render():
            lines.append(f"Set-Cookie: {cookie}")
        self.state.multipart_in_progress = True
        return CRLF.join(lines) + CRLF + CRLF

    def multipart_end(self) -> str:
        return f"{CRLF}--{self.state.boundary}{CRLF}"

    def multipart_final(self) -> str:
        self.state.multipart_in_progress = False
        return f"{CRLF}--{self.state.boundary}--{CRLF}"

    def close_standby_message(
        self, content_type: str, disp_type: str, prefix: str, ext: str
    ) -> Union[str, Headers, None]:
        """Swap the "please wait" part for the real one.

        Returns the chunk to stream while a multipart response is in progress.
        Otherwise sends plain headers carrying the disposition, or returns None
        if headers already went out.
        """
        self.set_dated_content_disp(disp_type, prefix, ext)
        if self.state.multipart_in_progress:
            return self.multipart_end() + self.multipart_start(content_type)
        if not self.state.header_done:
            return self.header(content_type)
        return None
