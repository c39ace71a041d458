from __future__ import annotations

from typing import Dict, Iterable, List, Optional
from urllib.parse import quote

from werkzeug.datastructures import MultiDict


def url_quote(value: str) -> str:
    """Percent-encode a query component, leaving only unreserved characters."""
    return quote(value, safe="-_.~")


def _to_lists(data: Optional[MultiDict]) -> Dict[str, List[str]]:
    out: Dict[str, List[str]] = {}
    if data is None:
        return out
    for key in data.keys():
        out[key] = list(data.getlist(key))
    return out


class ParamStore:
    """Multi-valued request parameters with explicit accessors.

    GET requests read the query string. POST requests read the body first and
    fall back to the URL parameters for names the body does not carry, so a
    login form whose action URL holds search terms still sees both.
    """

    def __init__(
        self,
        primary: Optional[MultiDict] = None,
        url: Optional[MultiDict] = None,
        *,
        merge_url: bool = False,
    ):
        self._primary = _to_lists(primary)
        self._url = _to_lists(url) if merge_url else {}
        self.merge_url = merge_url

    @classmethod
    def from_request(cls, request) -> "ParamStore":
        if request.method == "POST":
            return cls(request.form, request.args, merge_url=True)
        return cls(request.args)

    def all(self, name: str) -> List[str]:
        values = self._primary.get(name)
        if values:
            return list(values)
        return list(self._url.get(name, []))

    def first(self, name: str, default: Optional[str] = None) -> Optional[str]:
        values = self.all(name)
        return values[0] if values else default

    def has(self, name: str) -> bool:
        return bool(self.all(name))

    def names(self) -> List[str]:
        seen = [k for k, v in self._primary.items() if v]
        for key, values in self._url.items():
            if values and key not in self._primary:
                seen.append(key)
        return seen

    def is_empty(self) -> bool:
        return not self.names()

    def set(self, name: str, *values: str) -> None:
        self._primary[name] = [str(v) for v in values]
        self._url.pop(name, None)

    def delete(self, *names: str) -> None:
        for name in names:
            self._primary.pop(name, None)
            self._url.pop(name, None)

    def items(self) -> Iterable[tuple[str, List[str]]]:
        for name in self.names():
            yield name, self.all(name)

    def query_string(self) -> str:
        """Serialize the current parameters in their own order."""
        pairs = []
        for name, values in self.items():
            for value in values:
                pairs.append(f"{url_quote(name)}={url_quote(value)}")
        return "&".join(pairs)

    def should_set(self, name: str) -> bool:
        return self.has(name) or self.has(f"defined_{name}")

    def __repr__(self) -> str:
        return f"ParamStore({dict(self.items())!r})"
