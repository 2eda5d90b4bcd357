"""Text processor: applies the pattern table to strings and text nodes.

Two entry points share the same table and pre-check:

- ``process_text`` rewrites a string (plain mode, no tooltips), with a
  bounded result cache;
- ``identify_segments`` reports where the matches are without touching the
  string, for the DOM layer to wrap them individually.

A pattern that raises is logged and skipped; the remaining patterns still
apply, so one bad row never costs the whole page.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from trump_goggles.dom.nodes import Text
from trump_goggles.errors import InvalidNodeError, PatternApplicationError
from trump_goggles.patterns import PatternRegistry, ReplacementTable, get_default_registry

if TYPE_CHECKING:
    from trump_goggles.dom.nodes import Node

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 1000
# Fraction of the ceiling dropped, oldest first, once the cache overflows.
CACHE_EVICTION_RATIO = 0.25
# Texts shorter than this are never rewritten.
MIN_PROCESS_LENGTH = 2
# Texts shorter than this never pass the bailout pre-check.
MIN_LIKELY_LENGTH = 3


@dataclass(frozen=True, slots=True)
class TextSegmentConversion:
    """One match inside one string.

    ``original_text == text[start_index:end_index]`` for the string the
    segment was extracted from.
    """

    original_text: str
    converted_text: str
    start_index: int
    end_index: int


def _snippet(text: str) -> str:
    return text if len(text) <= 30 else text[:30] + "..."


class TextProcessor:
    """Pattern matching with result caching and early bailout.

    Args:
        registry: Source of the table used when callers pass none.
        cache_size: Ceiling of the ``process_text`` result cache.
    """

    def __init__(
        self,
        registry: PatternRegistry | None = None,
        *,
        cache_size: int = DEFAULT_CACHE_SIZE,
    ) -> None:
        self._registry = registry or get_default_registry()
        self._cache_size = cache_size
        self._cache: dict[tuple[str, bool], str] = {}

    @property
    def registry(self) -> PatternRegistry:
        return self._registry

    # -----------------------------------------------------------------------
    # Cache
    # -----------------------------------------------------------------------

    @property
    def cache_size(self) -> int:
        """Number of cached results."""
        return len(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()

    def _remember(self, key: tuple[str, bool], result: str) -> None:
        self._cache[key] = result
        if len(self._cache) > self._cache_size:
            evict = max(1, int(self._cache_size * CACHE_EVICTION_RATIO))
            # dicts iterate in insertion order, so the first keys are the oldest
            for old in list(self._cache)[:evict]:
                del self._cache[old]
            logger.debug("Text cache trimmed by %d entries", evict)

    # -----------------------------------------------------------------------
    # Pre-check
    # -----------------------------------------------------------------------

    def _resolve(
        self,
        table: ReplacementTable | None,
        keys: Sequence[str] | None,
    ) -> tuple[ReplacementTable, Sequence[str], bool]:
        own_table = table is None or table is self._registry.get_replacement_table()
        resolved_table = self._registry.get_replacement_table() if table is None else table
        resolved_keys = keys if keys is not None else tuple(resolved_table)
        own = own_table and (keys is None or tuple(keys) == self._registry.get_keys())
        return resolved_table, resolved_keys, own

    def is_likely_to_contain_matches(
        self,
        text: str,
        table: ReplacementTable | None = None,
        keys: Sequence[str] | None = None,
    ) -> bool:
        """Whether any pattern's keywords occur in *text*.

        May say ``False`` for text a pattern would match (accepted loss of
        recall); never lets a non-matching pattern produce a replacement.
        """
        if not text or len(text) < MIN_LIKELY_LENGTH:
            return False
        resolved_table, resolved_keys, _own = self._resolve(table, keys)
        lowered = text.lower()
        for key in resolved_keys:
            entry = resolved_table.get(key)
            if entry is not None and entry.might_match(lowered):
                return True
        return False

    # -----------------------------------------------------------------------
    # String rewriting
    # -----------------------------------------------------------------------

    def process_text(
        self,
        text: str,
        table: ReplacementTable | None = None,
        keys: Sequence[str] | None = None,
        *,
        use_cache: bool = True,
        early_bailout: bool = True,
    ) -> str:
        """Apply every pattern, in key order, to *text*.

        Replacements are sequential: each pattern sees the output of the
        previous ones.  Only results for this processor's own table are
        cached.

        Args:
            text: Input string; never modified.
            table: Table to apply; defaults to the registry's.
            keys: Priority order; defaults to the table's order.
            use_cache: Read and populate the result cache.
            early_bailout: Skip patterns whose keywords are absent.

        Returns:
            The rewritten text (the input itself when nothing matched).
        """
        if not text or len(text) < MIN_PROCESS_LENGTH:
            return text

        resolved_table, resolved_keys, own = self._resolve(table, keys)
        cacheable = use_cache and own

        # bailout results may be false negatives, so each mode has its own entry
        cache_key = (text, early_bailout)
        if cacheable:
            cached = self._cache.get(cache_key)
            if cached is not None:
                return cached

        if early_bailout and not self.is_likely_to_contain_matches(
            text, resolved_table, resolved_keys
        ):
            if cacheable:
                self._remember(cache_key, text)
            return text

        result = text
        for key in resolved_keys:
            entry = resolved_table.get(key)
            if entry is None:
                continue
            try:
                if early_bailout and not entry.might_match(result.lower()):
                    continue
                result = entry.pattern.sub(
                    lambda _m, r=entry.replacement: r, result
                )
            except Exception as exc:
                err = PatternApplicationError(key, exc)
                logger.error("Error applying pattern: %s", err)

        if cacheable:
            self._remember(cache_key, result)
        return result

    def process_text_node(
        self,
        node: Node | None,
        table: ReplacementTable | None = None,
        keys: Sequence[str] | None = None,
        *,
        use_cache: bool = True,
        early_bailout: bool = True,
    ) -> bool:
        """Rewrite a text node's data in place.

        Returns:
            ``True`` if the node's data changed; ``False`` for invalid or
            unchanged nodes.
        """
        try:
            if not isinstance(node, Text) or not node.data:
                raise InvalidNodeError(f"not a non-empty text node: {node!r}")
            original = node.data
            processed = self.process_text(
                original,
                table,
                keys,
                use_cache=use_cache,
                early_bailout=early_bailout,
            )
            if processed == original:
                return False
            node.data = processed
            logger.debug("Rewrote text node %r", _snippet(original))
            return True
        except InvalidNodeError as exc:
            logger.debug("Skipping text node: %s", exc)
            return False
        except Exception:
            logger.exception("Error processing text node")
            return False

    # -----------------------------------------------------------------------
    # Segment extraction
    # -----------------------------------------------------------------------

    def identify_segments(
        self,
        text: str,
        table: ReplacementTable | None = None,
        keys: Sequence[str] | None = None,
        *,
        early_bailout: bool = True,
    ) -> list[TextSegmentConversion]:
        """Locate matches in *text* as ordered, non-overlapping segments.

        Keys are tried in priority order.  A match is kept only when its
        range does not intersect a range already claimed by an earlier key
        (or an earlier match of the same key).  Empty matches are ignored.

        Returns:
            Segments sorted by ``start_index``; empty when nothing matched.
        """
        if not text or len(text) < MIN_PROCESS_LENGTH:
            return []

        resolved_table, resolved_keys, _own = self._resolve(table, keys)
        lowered = text.lower()
        claimed: list[tuple[int, int]] = []
        segments: list[TextSegmentConversion] = []

        for key in resolved_keys:
            entry = resolved_table.get(key)
            if entry is None:
                continue
            try:
                if early_bailout and not entry.might_match(lowered):
                    continue
                for match in entry.pattern.finditer(text):
                    start, end = match.span()
                    if start == end:
                        continue
                    if any(start < c_end and c_start < end for c_start, c_end in claimed):
                        continue
                    claimed.append((start, end))
                    segments.append(
                        TextSegmentConversion(
                            original_text=match.group(0),
                            converted_text=entry.replacement,
                            start_index=start,
                            end_index=end,
                        )
                    )
            except Exception as exc:
                err = PatternApplicationError(key, exc)
                logger.error("Error matching pattern: %s", err)

        segments.sort(key=lambda s: s.start_index)
        return segments
