from __future__ import annotations

import secrets
from typing import Dict, List, Optional, Sequence

from werkzeug.datastructures import Headers


DEFAULT_CSP: Dict[str, List[str]] = {
    "default_src": ["self"],
    "script_src": ["self", "unsafe-inline", "unsafe-eval"],
    "style_src": ["self", "unsafe-inline"],
}

SRC_DIRECTIVES = (
    "default_src",
    "child_src",
    "connect_src",
    "font_src",
    "img_src",
    "media_src",
    "object_src",
    "script_src",
    "style_src",
    "frame_ancestors",
    "form_action",
    "base_uri",
)

OTHER_DIRECTIVES = ("sandbox", "report_uri")

# Keyword sources are quoted on the wire; host sources are not.
KEYWORDS = {"self", "none", "unsafe-inline", "unsafe-eval", "strict-dynamic"}


class ContentSecurityPolicy:
    """Directive set for one response, with an optional per-request nonce."""

    def __init__(
        self,
        *,
        report_only: bool = False,
        disable: bool = False,
        **directives: Optional[Sequence[str]],
    ):
        unknown = set(directives) - set(SRC_DIRECTIVES) - set(OTHER_DIRECTIVES)
        if unknown:
            raise ValueError(f"Unknown CSP directive(s): {', '.join(sorted(unknown))}")
        self.directives: Dict[str, List[str]] = {
            k: list(v) for k, v in directives.items() if v is not None
        }
        self.report_only = report_only
        self.disable = disable
        self._nonce: Optional[str] = None

    @classmethod
    def with_overrides(cls, **overrides: Optional[Sequence[str]]) -> "ContentSecurityPolicy":
        """Start from DEFAULT_CSP; an override of None drops that directive."""
        params: Dict[str, Optional[Sequence[str]]] = {k: list(v) for k, v in DEFAULT_CSP.items()}
        options = {k: overrides.pop(k) for k in ("report_only", "disable") if k in overrides}
        for key, value in overrides.items():
            if value is None:
                params.pop(key, None)
            else:
                params[key] = value
        return cls(**options, **params)

    def has_nonce(self) -> bool:
        return any(
            "nonce" in self.directives.get(name, ()) for name in SRC_DIRECTIVES
        )

    @property
    def nonce(self) -> str:
        if self._nonce is None:
            self._nonce = secrets.token_urlsafe(36)
        return self._nonce

    @property
    def header_name(self) -> str:
        if self.report_only:
            return "Content-Security-Policy-Report-Only"
        return "Content-Security-Policy"

    def _render_source(self, source: str) -> str:
        if source == "nonce":
            return f"'nonce-{self.nonce}'"
        if source in KEYWORDS:
            return f"'{source}'"
        return source

    def value(self) -> str:
        parts = []
        for name in SRC_DIRECTIVES + OTHER_DIRECTIVES:
            sources = self.directives.get(name)
            if sources is None:
                continue
            directive = name.replace("_", "-")
            if name in SRC_DIRECTIVES:
                rendered = " ".join(self._render_source(s) for s in sources)
            else:
                rendered = " ".join(sources)
            parts.append(f"{directive} {rendered}".rstrip())
        return "; ".join(parts)

    def add_headers(self, headers: Headers) -> None:
        if self.disable:
            return
        headers[self.header_name] = self.value()
