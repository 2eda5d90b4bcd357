"""Composition root: wires the pipeline onto one live document.

``Goggles`` owns every piece of shared state (processed set, operation
budget, text cache) and hands it to the components explicitly.  A typical
host does::

    goggles = Goggles()
    await goggles.start(document)
    ...
    goggles.shutdown()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any

from trump_goggles.config import Settings, get_settings
from trump_goggles.dom.mutations import MutationRecord, MutationType
from trump_goggles.dom.nodes import Document, Node, Text
from trump_goggles.dom_modifier import DOMModifier
from trump_goggles.dom_traverser import DEFAULT_SKIP_TAGS, DOMTraverser
from trump_goggles.mutation_watcher import MutationWatcher, ObserverState
from trump_goggles.patterns import PatternRegistry
from trump_goggles.processed import OperationBudget, ProcessedNodes
from trump_goggles.text_processor import TextProcessor
from trump_goggles.tooltip.capabilities import BrowserCapabilities, DefaultCapabilities
from trump_goggles.tooltip.manager import TooltipManager
from trump_goggles.tooltip.ui import Measure, TooltipUI

logger = logging.getLogger(__name__)

INTERACTIVE_TAGS = frozenset({"input", "textarea", "select", "option"})


class Goggles:
    """The page-level pipeline: initial pass, live updates, tooltips.

    Args:
        settings: Tunables; defaults to ``get_settings()``.
        registry: Pattern table; defaults to the packaged one.
        capabilities: Host adapter for the tooltip layer.
        measure: Tooltip text measurement override.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        registry: PatternRegistry | None = None,
        capabilities: BrowserCapabilities | None = None,
        measure: Measure | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        processing = self._settings.processing

        self.processed = ProcessedNodes()
        self.budget = OperationBudget(processing.max_operations)
        self.processor = TextProcessor(registry, cache_size=processing.cache_size)
        self.modifier = DOMModifier(self.processed)
        self.traverser = DOMTraverser(self.processed, self.budget)
        self.watcher = MutationWatcher(
            self._on_mutations,
            self.processed,
            self._settings.observer,
        )
        self._capabilities = capabilities or DefaultCapabilities()
        self._measure = measure

        self.tooltips: TooltipManager | None = None
        self._document: Document | None = None
        self._enabled = True
        self._processing = False
        self._cancel: asyncio.Event | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def document(self) -> Document | None:
        return self._document

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    def _default_root(self, root: Node | None) -> Node | None:
        if root is not None:
            return root
        if self._document is None:
            return None
        return self._document.body or self._document

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    async def start(self, document: Document) -> int:
        """Convert the page, then keep converting what gets added to it.

        Returns:
            The number of text nodes converted by the initial pass.
        """
        self._document = document
        if self._settings.processing.tooltips:
            ui = TooltipUI(
                document,
                self._settings.tooltip,
                self._capabilities,
                processed=self.processed,
                suppress=self.watcher.suppressed,
                measure=self._measure,
            )
            self.tooltips = TooltipManager(
                document, ui, self._settings.tooltip, self._capabilities
            )
            self.tooltips.initialize()

        converted = await self.process_page()
        if not self.watcher.start(self._default_root(None)):
            logger.error("Mutation watcher failed to start; dynamic content will not be converted")
        logger.info("Goggles started: %d text nodes converted", converted)
        return converted

    def shutdown(self) -> None:
        """Stop everything and release the page."""
        if self._cancel is not None:
            self._cancel.set()
        self.watcher.stop()
        if self.tooltips is not None:
            self.tooltips.dispose()
            self.tooltips = None
        self._enabled = False
        logger.info("Goggles shut down after %d operations", self.budget.count)

    def enable(self) -> None:
        self._enabled = True
        if self.watcher.state is ObserverState.PAUSED:
            if not self.watcher.resume():
                logger.error("Failed to resume mutation watcher")
        elif self.watcher.state is ObserverState.INACTIVE and self._document is not None:
            if not self.watcher.start(self._default_root(None)):
                logger.error("Failed to start mutation watcher")
        logger.info("Goggles enabled")

    def disable(self) -> None:
        self._enabled = False
        if self.watcher.is_active:
            self.watcher.pause()
        if self.tooltips is not None:
            self.tooltips.hide()
        logger.info("Goggles disabled")

    # -----------------------------------------------------------------------
    # Conversion
    # -----------------------------------------------------------------------

    def _convert(self, node: Text) -> int:
        """Convert one text node; returns the number of replacements made."""
        processing = self._settings.processing
        if processing.tooltips:
            segments = self.processor.identify_segments(
                node.data, early_bailout=processing.early_bailout
            )
            if not segments:
                return 0
            with self.watcher.suppressed():
                wrapped = self.modifier.wrap_segments(node, segments)
            return len(segments) if wrapped else 0

        with self.watcher.suppressed():
            changed = self.processor.process_text_node(
                node,
                use_cache=processing.use_cache,
                early_bailout=processing.early_bailout,
            )
        if changed:
            self.processed.mark(node)
        return 1 if changed else 0

    async def _run_pass(
        self,
        root: Node,
        convert: Callable[[Text], int],
        *,
        chunk_size: int,
        time_slice_ms: int,
        skip_tags: frozenset[str] = DEFAULT_SKIP_TAGS,
    ) -> None:
        """One chunked pass; ``shutdown()`` and ``disable()`` stop it between nodes."""
        self._processing = True
        self._cancel = asyncio.Event()

        def guarded(node: Text) -> int:
            if not self._enabled:
                assert self._cancel is not None
                self._cancel.set()
                return 0
            return convert(node)

        try:
            await self.traverser.process_in_chunks(
                root,
                guarded,
                chunk_size=chunk_size,
                time_slice_ms=time_slice_ms,
                skip_tags=skip_tags,
                cancel=self._cancel,
            )
        finally:
            self._processing = False
            self._cancel = None

    def _can_run(self, root: Node | None, name: str) -> bool:
        if root is not None and self._enabled and not self._processing:
            return True
        logger.debug(
            "Skipping %s (enabled=%s, processing=%s)", name, self._enabled, self._processing
        )
        return False

    async def process_page(self, root: Node | None = None) -> int:
        """Chunked pass over *root* (the body by default).

        Skipped while disabled, while another pass runs, or once the
        budget is spent.

        Returns:
            The number of text nodes converted.
        """
        root = self._default_root(root)
        if not self._can_run(root, "page processing"):
            return 0
        assert root is not None
        if self.budget.exhausted:
            logger.debug(
                "Skipping page processing, operations=%d/%d",
                self.budget.count,
                self.budget.limit,
            )
            return 0

        converted = 0

        def convert(node: Text) -> int:
            nonlocal converted
            replaced = self._convert(node)
            if replaced:
                converted += 1
            return replaced

        processing = self._settings.processing
        try:
            await self._run_pass(
                root,
                convert,
                chunk_size=processing.chunk_size,
                time_slice_ms=processing.time_slice_ms,
            )
        except Exception:
            logger.exception("Error processing page")
        logger.info(
            "Page processing completed: %d nodes converted, %d operations",
            converted,
            self.budget.count,
        )
        return converted

    async def process(
        self,
        root: Node | None = None,
        *,
        skip_interactive_elements: bool = True,
        chunk_size: int | None = None,
        time_slice_ms: int | None = None,
    ) -> int:
        """Custom pass over *root*; returns the number of replacements.

        With ``skip_interactive_elements=False`` the form-control tags are
        no longer skipped by tag, though editable content still is.
        Skipped while disabled or while another pass runs.  Failures are
        logged and reported as 0.
        """
        root = self._default_root(root)
        if not self._can_run(root, "custom processing"):
            return 0
        assert root is not None

        skip_tags = DEFAULT_SKIP_TAGS
        if not skip_interactive_elements:
            skip_tags = DEFAULT_SKIP_TAGS - INTERACTIVE_TAGS

        processing = self._settings.processing
        replacements = 0

        def convert(node: Text) -> int:
            nonlocal replacements
            replaced = self._convert(node)
            replacements += replaced
            return replaced

        try:
            await self._run_pass(
                root,
                convert,
                chunk_size=chunk_size or processing.chunk_size,
                time_slice_ms=time_slice_ms or processing.time_slice_ms,
                skip_tags=skip_tags,
            )
        except Exception:
            logger.exception("Error during custom processing")
            return 0
        logger.info("Custom processing completed with %d replacements", replacements)
        return replacements

    async def reprocess_all(self, root: Node | None = None) -> int:
        """Forget what was processed under *root*, reset the budget, run again.

        Existing wrappers stay in place and are never wrapped again.
        """
        root = self._default_root(root)
        if not self._can_run(root, "reprocessing"):
            return 0
        self.traverser.reset_processed_state(root)
        self.processor.clear_cache()
        self.budget.reset()
        if self.tooltips is not None and self.tooltips.ui.element is not None:
            self.processed.mark(self.tooltips.ui.element)
        return await self.process(root)

    # -----------------------------------------------------------------------
    # Live updates
    # -----------------------------------------------------------------------

    def _nodes_from(self, records: Iterable[MutationRecord]) -> list[Node]:
        seen: dict[int, Node] = {}
        for record in records:
            if record.type is MutationType.CHILD_LIST:
                for node in record.added_nodes:
                    if not self.processed.is_processed(node):
                        seen.setdefault(id(node), node)
            elif record.type is MutationType.CHARACTER_DATA and isinstance(record.target, Text):
                seen.setdefault(id(record.target), record.target)
        return list(seen.values())

    def _on_mutations(self, records: list[MutationRecord]) -> None:
        if not self._enabled or self.budget.exhausted:
            logger.debug("Skipping %d mutation records", len(records))
            return
        nodes = self._nodes_from(records)
        for node in nodes:
            if not self.budget.check():
                break
            if not node.is_connected:
                continue
            self.traverser.traverse(node, self._convert)
        logger.debug("Handled %d mutation records (%d nodes)", len(records), len(nodes))

    # -----------------------------------------------------------------------
    # Diagnostics
    # -----------------------------------------------------------------------

    def diagnostics(self) -> dict[str, Any]:
        return {
            "enabled": self._enabled,
            "processing": self._processing,
            "operation_count": self.budget.count,
            "operation_limit": self.budget.limit,
            "budget_exhausted": self.budget.exhausted,
            "observer_state": str(self.watcher.state),
            "pending_mutations": self.watcher.pending_count,
            "cache_size": self.processor.cache_size,
            "processed_nodes": len(self.processed),
            "tooltip_visible": bool(self.tooltips and self.tooltips.session.visible),
        }
