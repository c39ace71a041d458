from __future__ import annotations

import re
from typing import Iterable

from bzcgi.params import ParamStore, url_quote


# Old boolean-chart triples; query.cgi already encodes them elsewhere in the URL.
_BOOLEAN_CHART = re.compile(r"^(field|type|value)(-\d+){3}$", re.ASCII)


def canonicalise_query(params: ParamStore, exclude: Iterable[str] = ()) -> str:
    """Sorted `key=value` serialization of the non-empty parameters.

    Two parameter sets that differ only in order produce the same string, which
    makes the result usable as the identity of a saved search.
    """
    excluded = set(exclude)
    parameters = []
    for key in sorted(params.names()):
        if key in excluded:
            continue
        if _BOOLEAN_CHART.match(key):
            continue
        esc_key = url_quote(key)
        for value in params.all(key):
            if value is None or value == "":
                continue
            parameters.append(f"{esc_key}={url_quote(value)}")
    return "&".join(parameters)
