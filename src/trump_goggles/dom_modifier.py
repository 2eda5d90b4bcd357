"""Splice converted segments into a text node as tooltip-carrying spans.

For ``"Hillary Clinton gave a speech"`` with one segment over the name the
text node becomes::

    <span class="tg-converted-text" data-original-text="Hillary Clinton"
          tabindex="0">Crooked Hillary</span>" gave a speech"

Segments are applied right to left so earlier indices stay valid.  The
wrapper's content is always assigned as text, never parsed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence

from trump_goggles.dom.nodes import Element, Node, Text
from trump_goggles.errors import InvalidNodeError
from trump_goggles.processed import ProcessedNodes
from trump_goggles.text_processor import TextSegmentConversion

logger = logging.getLogger(__name__)

CONVERTED_TEXT_WRAPPER_CLASS = "tg-converted-text"
ORIGINAL_TEXT_ATTR = "data-original-text"


def is_converted_wrapper(node: Node | None) -> bool:
    return isinstance(node, Element) and node.has_class(CONVERTED_TEXT_WRAPPER_CLASS)


def _validate_text_node(node: Node | None) -> Text:
    if not isinstance(node, Text):
        raise InvalidNodeError(f"expected a text node, got {node!r}")
    if not node.data:
        raise InvalidNodeError("text node has no data")
    if node.parent is None:
        raise InvalidNodeError("text node is detached")
    return node


class DOMModifier:
    """Creates wrapper spans and records them as processed."""

    def __init__(self, processed: ProcessedNodes) -> None:
        self._processed = processed

    def create_wrapper(self, node: Text, segment: TextSegmentConversion, original: str) -> Element:
        span = node.owner_document.create_element("span")
        span.set_attribute("class", CONVERTED_TEXT_WRAPPER_CLASS)
        span.set_attribute(ORIGINAL_TEXT_ATTR, original)
        span.set_attribute("tabindex", "0")
        span.text_content = segment.converted_text
        return span

    def wrap_segments(
        self,
        text_node: Node | None,
        segments: Sequence[TextSegmentConversion],
    ) -> bool:
        """Replace each segment of *text_node* with a wrapper span.

        Returns:
            ``True`` if at least one wrapper was inserted.  Invalid input
            returns ``False`` without touching the tree.
        """
        try:
            node = _validate_text_node(text_node)
        except InvalidNodeError as exc:
            logger.warning("Cannot wrap segments: %s", exc)
            return False
        if not segments:
            return False

        wrapped = 0
        try:
            for _ in self._splice(node, segments):
                wrapped += 1
        except Exception:
            logger.exception("Error wrapping segments after %d wrapper(s)", wrapped)
        return wrapped > 0

    def _splice(
        self, node: Text, segments: Sequence[TextSegmentConversion]
    ) -> Iterator[Element]:
        """Insert wrappers right to left, yielding each one once it is in the tree."""
        data = node.data
        wrapped = 0
        # rightmost first; a segment overlapping one already applied is stale
        limit = len(data)
        for segment in sorted(segments, key=lambda s: s.start_index, reverse=True):
            start, end = segment.start_index, segment.end_index
            if start < 0 or end > limit or start >= end:
                logger.warning(
                    "Skipping segment [%d, %d) outside text of length %d",
                    start,
                    end,
                    limit,
                )
                continue
            original = data[start:end]
            if original != segment.original_text:
                logger.warning(
                    "Skipping stale segment: expected %r, found %r",
                    segment.original_text[:30],
                    original[:30],
                )
                continue

            # node holds data[:limit] at this point
            middle = node.split_text(start) if start > 0 else node
            if end - start < middle.length:
                middle.split_text(end - start)

            span = self.create_wrapper(node, segment, original)
            self._processed.mark(span)
            parent = middle.parent
            assert parent is not None
            parent.replace_child(span, middle)

            limit = start
            wrapped += 1
            yield span
            if start == 0:
                break

        if wrapped:
            logger.debug("Wrapped %d segment(s) in %r", wrapped, data[:30])
