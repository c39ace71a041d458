from __future__ import annotations

import re
from typing import Optional

from bzcgi.config import SiteParams


BUGID_TOKEN = "%bugid%"


def attachment_base_pattern(attachment_base: str, bug_id: Optional[int] = None) -> re.Pattern:
    """Anchored pattern for one bug's attachment host, or for any bug's."""
    if bug_id:
        regex = re.escape(attachment_base.replace(BUGID_TOKEN, str(bug_id), 1))
    else:
        # Escape first, then put the one live wildcard in.
        regex = re.escape(attachment_base).replace(re.escape(BUGID_TOKEN), r"\d+", 1)
    return re.compile("^" + regex)


def request_is_secure(request, params: SiteParams) -> bool:
    if request.is_secure:
        return True
    # Only a listed proxy may vouch for TLS on the client side.
    if params.trusts_proxy(request.remote_addr):
        proto = (request.headers.get("X-Forwarded-Proto") or "").strip().lower()
        return proto == "https"
    return False


def effective_url(request, params: SiteParams) -> str:
    """URL the client actually asked for.

    Behind a trusted reverse proxy the direct connection only shows the
    proxy's view, so scheme and path come from the forwarded headers instead.
    Without one the URL stops at the script name, leaving out path-info and
    the query string.
    """
    if not params.trusts_proxy(request.remote_addr):
        script = request.path.lstrip("/").partition("/")[0]
        return request.host_url.rstrip("/") + request.script_root + "/" + script
    protocol = request.headers.get("X-Forwarded-Proto") or request.scheme
    uri = request.headers.get("X-Forwarded-Uri")
    if not uri:
        uri = request.full_path if request.query_string else request.path
    return f"{protocol}://{request.host}{uri}"


def url_is_attachment_base(request, params: SiteParams, bug_id: Optional[int] = None) -> bool:
    if not params.use_attachbase():
        return False
    pattern = attachment_base_pattern(params.attachment_base, bug_id)
    return bool(pattern.match(effective_url(request, params)))
