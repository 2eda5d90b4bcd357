"""Escaping for page text that ends up in logs or debug output."""

from __future__ import annotations

import html as html_module

LOG_SNIPPET_LENGTH = 30


def escape_html(text: str | None) -> str:
    """Escape ``& < > " '`` so *text* is inert wherever it is displayed."""
    if not text:
        return ""
    return html_module.escape(str(text), quote=True)


def log_snippet(text: str | None, length: int = LOG_SNIPPET_LENGTH) -> str:
    """First *length* characters of *text*, escaped, for log messages."""
    if not text:
        return ""
    snippet = text[:length]
    if len(text) > length:
        snippet += "..."
    return escape_html(snippet)
