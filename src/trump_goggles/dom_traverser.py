"""Find the text nodes worth converting, synchronously or in time slices.

Both walks visit text nodes in document order and skip:

- subtrees rooted at non-rendering or interactive tags (``DEFAULT_SKIP_TAGS``);
- subtrees that are editable (``contenteditable``) or hidden with an
  inline ``display: none``;
- wrapper spans created by the modifier and anything marked processed;
- whitespace-only text.

The chunked walk yields to the event loop between chunks so a large page
never blocks other tasks for long.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Callable, Iterator
from typing import Any, TypeAlias

from trump_goggles.dom.nodes import Element, Node, Text
from trump_goggles.dom_modifier import is_converted_wrapper
from trump_goggles.processed import OperationBudget, ProcessedNodes

logger = logging.getLogger(__name__)

TextCallback: TypeAlias = 'Callable[[Text], Any]'

DEFAULT_SKIP_TAGS: frozenset[str] = frozenset(
    {
        "script",
        "style",
        "svg",
        "noscript",
        "iframe",
        "object",
        "embed",
        "input",
        "textarea",
        "select",
        "option",
        "pre",
        "code",
    }
)

DEFAULT_CHUNK_SIZE = 50
DEFAULT_TIME_SLICE_MS = 15

_DISPLAY_NONE = re.compile(r"(?:^|;)\s*display\s*:\s*none\s*(?:!important\s*)?(?:;|$)", re.I)


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def _is_contenteditable(element: Element) -> bool:
    value = element.get_attribute("contenteditable")
    return value is not None and value.strip().lower() in ("", "true", "plaintext-only")


def is_editable_node(node: Node | None) -> bool:
    """Whether *node* sits inside a form control or editable region.

    Walks the node and its ancestors.
    """
    current = node
    while current is not None:
        if isinstance(current, Element):
            if current.tag in ("input", "textarea", "select"):
                return True
            if _is_contenteditable(current):
                return True
        current = current.parent
    return False


def should_skip_element(
    element: Element,
    skip_tags: frozenset[str] = DEFAULT_SKIP_TAGS,
) -> bool:
    """Whether the subtree under *element* is excluded from conversion."""
    if element.tag in skip_tags:
        return True
    if is_converted_wrapper(element):
        return True
    if _is_contenteditable(element):
        return True
    style = element.get_attribute("style")
    return bool(style and _DISPLAY_NONE.search(style))


def _is_candidate(node: Text) -> bool:
    return bool(node.data and node.data.strip())


# ---------------------------------------------------------------------------
# Walks
# ---------------------------------------------------------------------------


class DOMTraverser:
    """Text-node walks over a live tree.

    Args:
        processed: Nodes to leave alone when ``skip_processed`` is set.
        budget: Shared circuit breaker; each node the callback reports as
            changed costs one operation and nothing runs once it is exhausted.
    """

    def __init__(
        self,
        processed: ProcessedNodes,
        budget: OperationBudget | None = None,
    ) -> None:
        self._processed = processed
        self._budget = budget

    @property
    def budget(self) -> OperationBudget | None:
        return self._budget

    def iter_text_nodes(
        self,
        root: Node,
        *,
        skip_tags: frozenset[str] = DEFAULT_SKIP_TAGS,
        skip_processed: bool = True,
    ) -> Iterator[Text]:
        """Yield candidate text nodes under *root* (inclusive) in document order.

        The tree may be edited between yields: the walk moves on from the
        next sibling captured before each yield.
        """
        if self._excluded_context(root, skip_tags, skip_processed):
            return
        if isinstance(root, Text):
            if _is_candidate(root):
                yield root
            return

        stack: list[Node] = list(reversed(root.child_nodes))
        while stack:
            node = stack.pop()
            if skip_processed and self._processed.is_processed(node):
                continue
            if isinstance(node, Element):
                if should_skip_element(node, skip_tags):
                    continue
                stack.extend(reversed(node.child_nodes))
            elif isinstance(node, Text) and _is_candidate(node):
                yield node

    def _excluded_context(
        self,
        root: Node,
        skip_tags: frozenset[str],
        skip_processed: bool,
    ) -> bool:
        # roots handed in by mutation records can sit anywhere in the page
        for node in (root, *root.ancestors()):
            if skip_processed and self._processed.is_processed(node):
                return True
            if isinstance(node, Element) and should_skip_element(node, skip_tags):
                return True
        return is_editable_node(root)

    def _visit(self, node: Text, callback: TextCallback) -> bool:
        """Run *callback* on *node*; ``False`` once the budget is spent.

        A truthy callback result counts as one operation against the budget.
        """
        if self._budget is not None and not self._budget.check():
            return False
        try:
            changed = callback(node)
        except Exception:
            logger.exception("Error processing text node %r", node)
            return True
        if changed and self._budget is not None:
            self._budget.try_consume()
        return True

    def traverse(
        self,
        root: Node | None,
        callback: TextCallback,
        *,
        skip_tags: frozenset[str] = DEFAULT_SKIP_TAGS,
        skip_processed: bool = True,
    ) -> int:
        """Call *callback* on every candidate text node under *root*.

        Returns:
            The number of nodes visited.
        """
        if root is None:
            return 0
        visited = 0
        for node in self.iter_text_nodes(
            root, skip_tags=skip_tags, skip_processed=skip_processed
        ):
            if not self._visit(node, callback):
                break
            visited += 1
        return visited

    async def process_in_chunks(
        self,
        root: Node | None,
        callback: TextCallback,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        time_slice_ms: int = DEFAULT_TIME_SLICE_MS,
        skip_tags: frozenset[str] = DEFAULT_SKIP_TAGS,
        skip_processed: bool = True,
        cancel: asyncio.Event | None = None,
    ) -> int:
        """Like ``traverse`` but yields to the loop between chunks.

        A chunk ends after *chunk_size* nodes or *time_slice_ms*
        milliseconds, whichever comes first.  Setting *cancel* stops the
        walk at the next node.

        Returns:
            The number of nodes visited.
        """
        if root is None:
            return 0
        chunk_size = max(1, chunk_size)
        slice_s = max(1, time_slice_ms) / 1000
        visited = 0
        in_chunk = 0
        deadline = time.monotonic() + slice_s

        for node in self.iter_text_nodes(
            root, skip_tags=skip_tags, skip_processed=skip_processed
        ):
            if cancel is not None and cancel.is_set():
                logger.debug("Chunked traversal cancelled after %d nodes", visited)
                break
            # A node removed while we were suspended is no longer worth visiting.
            if not root.contains(node):
                continue
            if not self._visit(node, callback):
                break
            visited += 1
            in_chunk += 1
            if in_chunk >= chunk_size or time.monotonic() >= deadline:
                await asyncio.sleep(0)
                in_chunk = 0
                deadline = time.monotonic() + slice_s

        return visited

    def reset_processed_state(self, root: Node | None) -> int:
        """Forget the processed mark of *root* and every descendant.

        Returns:
            How many marks were removed.
        """
        if root is None:
            return 0
        removed = 0
        for node in (root, *root.iter_descendants()):
            if self._processed.is_processed(node):
                self._processed.discard(node)
                removed += 1
        logger.debug("Cleared %d processed mark(s)", removed)
        return removed
