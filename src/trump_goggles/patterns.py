"""Pattern registry: the immutable, ordered phrase → replacement table.

The table is built once from ``(key, pattern, replacement)`` rows and never
changes afterwards.  Iteration order is match priority, so it is exposed as
an ordered read-only mapping plus a matching tuple of keys.

Each entry also carries *keywords*: lower-case literal fragments of which
at least one appears in any text the pattern can match.  They drive the
cheap substring pre-check in ``TextProcessor``.  Derivation is a heuristic
over the pattern source; when it finds nothing safe the entry gets
``None`` and is always evaluated.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import TypeAlias

from trump_goggles.data.mappings import MAPPINGS

logger = logging.getLogger(__name__)

ReplacementTable: TypeAlias = 'Mapping[str, PatternEntry]'

# Source fragments that can never contribute mandatory literal text.
_LOOKAROUND = re.compile(r"\(\?<?[=!][^()]*\)")
_OPTIONAL_GROUP = re.compile(r"\((?:\?:)?[^()]*\)(?:[?*]|\{0,?\d*\})")
_CHAR_CLASS = re.compile(r"\[(?:\\.|[^\]])*\]")
_ESCAPE_LETTER = re.compile(r"\\[A-Za-z]")
_OPTIONAL_CHAR = re.compile(r"[^\W\d_](?:[?*]|\{0,?\d*\})")
_LETTER_RUN = re.compile(r"[^\W\d_]{3,}")


def derive_keywords(source: str) -> frozenset[str] | None:
    """Literal fragments of which every match of *source* contains one.

    The source is split on ``|`` (at any depth) and the first run of three
    or more letters of each piece is taken, after removing lookarounds,
    optional groups, character classes, escapes and optional characters.

    Returns:
        The lower-cased fragments, or ``None`` if some alternative has no
        usable fragment.
    """
    cleaned = _LOOKAROUND.sub(" ", source)
    cleaned = _OPTIONAL_GROUP.sub(" ", cleaned)
    cleaned = _CHAR_CLASS.sub(" ", cleaned)
    cleaned = _ESCAPE_LETTER.sub(" ", cleaned)
    cleaned = _OPTIONAL_CHAR.sub(" ", cleaned)

    keywords: set[str] = set()
    for piece in cleaned.split("|"):
        run = _LETTER_RUN.search(piece)
        if run is None:
            return None
        keywords.add(run.group(0).lower())
    return frozenset(keywords)


@dataclass(frozen=True, slots=True)
class PatternEntry:
    """One row of the table.

    Attributes:
        key: Stable identifier, unique within a registry.
        pattern: Compiled, case-insensitive, word-boundary anchored regex.
        replacement: Text substituted for every match.
        keywords: Pre-check fragments (see ``derive_keywords``), or None.
    """

    key: str
    pattern: re.Pattern[str]
    replacement: str
    keywords: frozenset[str] | None

    @classmethod
    def compile(cls, key: str, source: str, replacement: str) -> PatternEntry:
        return cls(
            key=key,
            pattern=re.compile(source, re.IGNORECASE),
            replacement=replacement,
            keywords=derive_keywords(source),
        )

    def might_match(self, lowered_text: str) -> bool:
        """Cheap pre-check against already lower-cased text.

        ``False`` means the full regex is skipped.  This can be wrong in
        the direction of skipping a real match; it never admits a
        replacement the regex would not make.
        """
        if self.keywords is None:
            return True
        return any(k in lowered_text for k in self.keywords)


class PatternRegistry:
    """Holds one frozen replacement table.

    Construction compiles every row; a malformed pattern or a duplicate
    key raises immediately, since the table ships with the package.
    """

    def __init__(self, rows: Iterable[tuple[str, str, str]] = MAPPINGS) -> None:
        entries: dict[str, PatternEntry] = {}
        for key, source, replacement in rows:
            if key in entries:
                msg = f"duplicate pattern key {key!r}"
                raise ValueError(msg)
            entries[key] = PatternEntry.compile(key, source, replacement)
        self._table: ReplacementTable = MappingProxyType(entries)
        self._keys: tuple[str, ...] = tuple(entries)
        logger.debug("Pattern registry built with %d entries", len(self._keys))

    def __len__(self) -> int:
        return len(self._keys)

    def get_replacement_table(self) -> ReplacementTable:
        """The table; the same object on every call."""
        return self._table

    def get_keys(self) -> tuple[str, ...]:
        """Keys in priority order; the same object on every call."""
        return self._keys


@lru_cache(maxsize=1)
def get_default_registry() -> PatternRegistry:
    """Registry over the packaged table, built once per process."""
    return PatternRegistry(MAPPINGS)
