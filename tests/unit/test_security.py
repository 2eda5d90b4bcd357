"""Tests for log-safe escaping."""

from __future__ import annotations

from trump_goggles.security import escape_html, log_snippet


class TestEscapeHtml:
    def test_escapes_markup(self) -> None:
        assert escape_html("<a href=\"x\">'</a>") == "&lt;a href=&quot;x&quot;&gt;&#x27;&lt;/a&gt;"

    def test_empty(self) -> None:
        assert escape_html(None) == ""
        assert escape_html("") == ""


class TestLogSnippet:
    def test_truncates(self) -> None:
        assert log_snippet("a" * 40) == "a" * 30 + "..."

    def test_short_text_unchanged(self) -> None:
        assert log_snippet("Ted Cruz") == "Ted Cruz"

    def test_escaped(self) -> None:
        assert log_snippet("<script>", length=8) == "&lt;script&gt;"
