from __future__ import annotations

import logging
import re

from bzcgi.params import ParamStore


logger = logging.getLogger(__name__)


_CUSTOM_SEARCH_CELL = re.compile(r"\d-\d-\d", re.ASCII)
_CUSTOM_SEARCH_FIELD = re.compile(r"^[^\W\d_]\d+$", re.ASCII)
_JOIN_PARAM = re.compile(r"^j\d+$", re.ASCII)

LOGIN_FORM_LEFTOVERS = ("Bugzilla_remember", "GoAheadAndLogIn")
EMAIL_COMPANIONS = ("type", "assigned_to", "reporter", "qa_contact", "cc", "longdesc")
REUSE_SORT = "Reuse same sort as last time"


def _is_custom_search_param(name: str) -> bool:
    return bool(_CUSTOM_SEARCH_CELL.search(name) or _CUSTOM_SEARCH_FIELD.match(name))


def _is_join_param(name: str) -> bool:
    return bool(_JOIN_PARAM.match(name)) or name == "j_top"


def _token_needed(params: ParamStore) -> bool:
    return params.first("remtype") in ("asdefault", "asnamed") or params.first("remaction") == "forget"


def clean_search_url(params: ParamStore) -> ParamStore:
    """Drop parameters that query.cgi sends by default but that change nothing.

    Works in place on the request's own parameters and returns them. Running it
    a second time is a no-op.
    """
    for name in params.names():
        value = params.first(name)
        if value == "":
            params.delete(name, f"{name}_type")
            continue

        # Custom search rows left at "noop", including old boolean-chart cells.
        if value == "noop" and _is_custom_search_param(name):
            params.delete(name)
            continue

        # AND is the default join.
        if value == "AND" and _is_join_param(name):
            params.delete(name)

    params.delete(*LOGIN_FORM_LEFTOVERS)

    if not _token_needed(params):
        params.delete("token")

    for num in (1, 2, 3):
        if not params.first(f"email{num}"):
            params.delete(*(f"email{field}{num}" for field in EMAIL_COMPANIONS))
            # Companions may also be spelled email<N><field>.
            params.delete(*(f"email{num}{field}" for field in EMAIL_COMPANIONS))

    # query.cgi defaults chfieldto to "Now"; alone it restricts nothing.
    chfieldto = params.first("chfieldto")
    if (
        not params.has("chfieldfrom")
        and not params.first("chfield")
        and not params.has("chfieldvalue")
        and chfieldto
        and chfieldto.lower() == "now"
    ):
        params.delete("chfieldto")

    if params.first("cmdtype") == "doit" and not params.has("remtype"):
        params.delete("cmdtype")

    if params.first("order") == REUSE_SORT:
        params.delete("order")

    # Request bookkeeping, never part of a saved search.
    params.delete("list_id", "no_redirect")

    if params.first("query_format") and len(params.names()) == 1:
        params.delete("query_format")

    logger.debug("Cleaned search parameters: %s", params.names())
    return params
