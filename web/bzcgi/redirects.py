"""Redirect decisions taken while a request is being set up or a search runs.

Every redirect ends request handling: it raises a Werkzeug HTTPException that
carries the redirect response, and the surrounding app only adds headers.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, NoReturn

from werkzeug.exceptions import abort
from werkzeug.utils import redirect

from bzcgi.hooks import PATH_INFO_WHITELIST
from bzcgi.search_cleaner import clean_search_url

if TYPE_CHECKING:
    from bzcgi.cgi import BugzillaCgi


logger = logging.getLogger(__name__)


ATTACHMENT_SCRIPT = "attachment.cgi"
PATH_INFO_SCRIPTS = ("rest.cgi",)


def emit_redirect(location: str, code: int = 302) -> NoReturn:
    logger.info("Redirecting (%s) to %s", code, location)
    abort(redirect(location, code=code))


def redirect_to_https(cgi: "BugzillaCgi") -> NoReturn:
    # The client re-POSTs after a 301; POSTDATA must not end up in the URL.
    cgi.args.delete("POSTDATA")
    # Permanent: some RPC clients only follow 301.
    emit_redirect(cgi.site.sslbase + cgi.relative_url(), code=301)


def redirect_to_urlbase(cgi: "BugzillaCgi") -> NoReturn:
    emit_redirect(cgi.site.correct_urlbase(cgi.is_secure()) + cgi.relative_url())


def do_ssl_redirect_if_required(cgi: "BugzillaCgi") -> None:
    site = cgi.site
    if not site.ssl_redirect or not site.sslbase:
        return
    if cgi.is_secure():
        return
    redirect_to_https(cgi)


def is_off_canonical_host(cgi: "BugzillaCgi") -> bool:
    if cgi.url_is_attachment_base():
        return True
    hosts = cgi.site.canonical_hosts()
    return bool(hosts) and cgi.request.host.lower() not in hosts


def path_info_whitelist(cgi: "BugzillaCgi") -> list[str]:
    whitelist = list(PATH_INFO_SCRIPTS)
    cgi.hooks.process(PATH_INFO_WHITELIST, {"whitelist": whitelist})
    return whitelist


def enforce_canonical_location(cgi: "BugzillaCgi") -> None:
    """TLS upgrade, canonical host and stray path-info checks for a new request."""
    # attachment.cgi serves the attachment origin on purpose and checks for itself.
    if cgi.script_name != ATTACHMENT_SCRIPT:
        do_ssl_redirect_if_required(cgi)
        if is_off_canonical_host(cgi):
            redirect_to_urlbase(cgi)

    if cgi.script_name and cgi.path_info:
        if cgi.script_name not in path_info_whitelist(cgi):
            emit_redirect(cgi.url_without_path_info())


def redirect_search_url(cgi: "BugzillaCgi") -> None:
    """Shorten a search URL to its list_id form and redirect to it.

    Returns normally when nothing needs to change or when the caller asked for
    no_redirect (it rewrites the URL in the browser instead).
    """
    args = cgi.args
    if args.is_empty():
        return
    # Re-displaying an old list never touches search history.
    if args.first("regetlastlist"):
        return

    user_id = cgi.authorizer.user_id()
    if user_id:
        list_id = args.first("list_id")
        if list_id and cgi.recent_searches.check_quietly(list_id, user_id):
            return
    elif cgi.request.method != "POST":
        # Logged-out GETs are left alone.
        return

    no_redirect = args.first("no_redirect")
    clean_search_url(args)

    # An empty search gets no list_id.
    if user_id and not args.is_empty():
        recent = cgi.recent_searches.create_placeholder(user_id)
        args.set("list_id", str(recent.id))

    if no_redirect:
        return

    # Long POSTed searches stay POSTs; some clients choke on long Locations.
    if cgi.request.method != "POST" or len(cgi.self_url()) < cgi.site.cgi_uri_limit:
        redirect_to_urlbase(cgi)
    else:
        logger.info("Not redirecting POSTed search: URL exceeds %s characters", cgi.site.cgi_uri_limit)
