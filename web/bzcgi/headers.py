from __future__ import annotations

import re
from datetime import date
from typing import Optional

from werkzeug.datastructures import Headers

from bzcgi.config import MAX_STS_AGE, SiteParams
from bzcgi.csp import ContentSecurityPolicy


CHARSET = "UTF-8"

_CHARSET_PARAM = re.compile(r"\bcharset\b", re.IGNORECASE)


def content_type_with_charset(content_type: str) -> str:
    if not content_type or _CHARSET_PARAM.search(content_type):
        return content_type
    return f"{content_type}; charset={CHARSET}"


def dated_content_disposition(
    disp_type: str, prefix: str, ext: str, today: Optional[date] = None
) -> str:
    """`<type>; filename="<prefix>-<YYYY-MM-DD>.<ext>"`, safe to put in a header."""
    today = today or date.today()
    filename = f"{prefix}-{today.strftime('%Y-%m-%d')}.{ext}"
    # Whitespace could split the header; backslashes and quotes could end the value.
    filename = re.sub(r"\s", "_", filename)
    filename = filename.replace("\\", "_")
    filename = filename.replace('"', '\\"')
    return f'{disp_type}; filename="{filename}"'


def strict_transport_security(policy: str) -> Optional[str]:
    if policy == "off":
        return None
    value = f"max-age={MAX_STS_AGE}"
    if policy == "include_subdomains":
        value += "; includeSubDomains"
    return value


def add_security_headers(
    headers: Headers,
    *,
    params: SiteParams,
    is_secure: bool,
    on_attachment_base: bool,
    csp: Optional[ContentSecurityPolicy] = None,
) -> Headers:
    """Protective headers every response carries.

    The attachment origin serves untrusted user content and opts out of STS and
    framing headers; everything else always gets them.
    """
    if is_secure and not on_attachment_base:
        sts = strict_transport_security(params.strict_transport_security)
        if sts:
            headers["Strict-Transport-Security"] = sts

    # Clickjacking protection for the main origin.
    if not on_attachment_base:
        headers["X-Frame-Options"] = "SAMEORIGIN"

    headers["X-XSS-Protection"] = "1; mode=block"
    headers["X-Content-Type-Options"] = "nosniff"

    if csp is not None:
        csp.add_headers(headers)
    return headers
