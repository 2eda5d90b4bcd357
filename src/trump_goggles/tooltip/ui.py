"""The single tooltip element: creation, text, placement, visibility.

The element is a ``div#tg-tooltip`` with ``role="tooltip"``, appended to the
document body on first use.  All inline styling is kept in one ordered
mapping and written back as the ``style`` attribute, so the tooltip looks
the same however the host page styles its own content.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import TypeAlias

from trump_goggles.config import TooltipConfig
from trump_goggles.dom.geometry import Rect, Size
from trump_goggles.dom.nodes import Document, Element
from trump_goggles.dom.window import DEFAULT_VIEWPORT
from trump_goggles.processed import ProcessedNodes
from trump_goggles.tooltip.capabilities import BrowserCapabilities, DefaultCapabilities
from trump_goggles.tooltip.positioning import Position, compute_position

logger = logging.getLogger(__name__)

TOOLTIP_ID = "tg-tooltip"
TOOLTIP_ROLE = "tooltip"

# Rough text metrics for 14px sans-serif with 8px/12px padding.
_CHAR_WIDTH = 7
_LINE_HEIGHT = 20
_HORIZONTAL_PADDING = 24
_VERTICAL_PADDING = 16

Measure: TypeAlias = 'Callable[[str, TooltipConfig], Size]'
Suppressor: TypeAlias = 'Callable[[], AbstractContextManager[object]]'


def estimate_size(text: str, config: TooltipConfig) -> Size:
    """Approximate rendered size of *text* inside the tooltip box."""
    inner_width = config.max_width - _HORIZONTAL_PADDING
    per_line = max(1, inner_width // _CHAR_WIDTH)
    lines = 0
    longest = 0
    for line in text.splitlines() or [""]:
        longest = max(longest, min(len(line), per_line))
        lines += max(1, -(-len(line) // per_line))
    width = min(config.max_width, longest * _CHAR_WIDTH + _HORIZONTAL_PADDING)
    height = min(config.max_height, lines * _LINE_HEIGHT + _VERTICAL_PADDING)
    return Size(width, height)


class TooltipUI:
    """Owns the tooltip element.

    Args:
        document: Document the tooltip lives in.
        config: Box limits and offset.
        capabilities: Host feature flags (z-index, pointer events, transitions).
        processed: When given, the tooltip element is marked so the
            pipeline never converts the original text it displays.
        suppress: Context factory wrapped around every write to the tree.
        measure: Size function for the tooltip text; defaults to
            ``estimate_size``.
    """

    def __init__(
        self,
        document: Document,
        config: TooltipConfig | None = None,
        capabilities: BrowserCapabilities | None = None,
        *,
        processed: ProcessedNodes | None = None,
        suppress: Suppressor | None = None,
        measure: Measure | None = None,
    ) -> None:
        self._document = document
        self._config = config or TooltipConfig()
        self._capabilities = capabilities or DefaultCapabilities()
        self._processed = processed
        self._suppress = suppress or contextlib.nullcontext
        self._measure = measure or estimate_size
        self._element: Element | None = None
        self._text = ""
        self._visible = False
        self._position: Position | None = None
        self._style: dict[str, str] = {}

    # -- state ---------------------------------------------------------------

    @property
    def element(self) -> Element | None:
        return self._element

    @property
    def is_visible(self) -> bool:
        return self._visible

    @property
    def position(self) -> Position | None:
        return self._position

    @property
    def text(self) -> str:
        return self._text

    def get_id(self) -> str:
        return TOOLTIP_ID

    def writing(self) -> AbstractContextManager[object]:
        """The write bracket used for every tree edit made by the tooltip."""
        return self._suppress()

    # -- element lifecycle ---------------------------------------------------

    def _base_style(self) -> dict[str, str]:
        caps = self._capabilities
        style = {
            "position": "fixed",
            "visibility": "hidden",
            "opacity": "0",
            "z-index": str(caps.safe_z_index()),
            "max-width": f"{self._config.max_width}px",
            "max-height": f"{self._config.max_height}px",
            "overflow": "auto",
            "overflow-wrap": "break-word",
            "white-space": "pre-wrap",
            "background-color": "rgba(32, 32, 32, 0.95)",
            "color": "#ffffff",
            "padding": "8px 12px",
            "border-radius": "4px",
            "font-size": "14px",
            "line-height": "1.4",
        }
        if caps.supports_pointer_events:
            style["pointer-events"] = "none"
        if caps.supports_transitions:
            style["transition"] = "opacity 0.2s ease-in-out"
        return style

    def _write_style(self) -> None:
        if self._element is None:
            return
        value = "; ".join(f"{k}: {v}" for k, v in self._style.items())
        with self._suppress():
            self._element.set_attribute("style", value)

    def ensure_created(self) -> Element:
        """Create and attach the tooltip element if it is not in the page."""
        if self._element is not None and self._element.is_connected:
            return self._element

        existing = self._document.get_element_by_id(TOOLTIP_ID)
        host = self._document.body or self._document.document_element or self._document
        with self._suppress():
            element = existing or self._document.create_element(
                "div",
                {"id": TOOLTIP_ID, "role": TOOLTIP_ROLE, "aria-hidden": "true"},
            )
            if self._processed is not None:
                self._processed.mark(element)
            if existing is None:
                host.append_child(element)
        self._element = element
        self._visible = False
        self._style = self._base_style()
        self._write_style()
        if self._text:
            self.set_text(self._text)
        logger.debug("Tooltip element created")
        return element

    def destroy(self) -> None:
        """Detach the element and forget all state."""
        element = self._element
        if element is not None and element.parent is not None:
            with self._suppress():
                element.parent.remove_child(element)
        if element is not None and self._processed is not None:
            self._processed.discard(element)
        self._element = None
        self._text = ""
        self._visible = False
        self._position = None
        self._style = {}

    # -- content and placement -----------------------------------------------

    def set_text(self, text: str) -> None:
        """Show *text* verbatim; it is never parsed as markup."""
        element = self.ensure_created()
        self._text = text
        with self._suppress():
            element.text_content = text

    def update_position(self, target: Element) -> Position | None:
        """Place the tooltip next to *target* inside the viewport."""
        element = self.ensure_created()
        try:
            view = self._document.default_view
            viewport = view.viewport if view is not None else Rect(0, 0, *DEFAULT_VIEWPORT)
            size = self._measure(self._text, self._config)
            position = compute_position(
                target.get_bounding_client_rect(),
                size,
                viewport,
                self._config.offset,
            )
        except Exception:
            logger.exception("Error positioning tooltip; centring in viewport")
            self._style.update(top="50%", left="50%", transform="translate(-50%, -50%)")
            self._position = None
            self._write_style()
            return None

        self._style.pop("transform", None)
        self._style["top"] = f"{position.top:g}px"
        self._style["left"] = f"{position.left:g}px"
        self._position = position
        self._write_style()
        logger.debug(
            "Tooltip placed %s at (%g, %g) for %r",
            position.placement,
            position.left,
            position.top,
            element,
        )
        return position

    # -- visibility ------------------------------------------------------------

    def show(self) -> None:
        element = self.ensure_created()
        self._style.update(visibility="visible", opacity="1")
        self._write_style()
        with self._suppress():
            element.set_attribute("aria-hidden", "false")
        self._visible = True

    def hide(self) -> None:
        element = self._element
        if element is None:
            self._visible = False
            return
        self._style.update(visibility="hidden", opacity="0")
        self._write_style()
        with self._suppress():
            element.set_attribute("aria-hidden", "true")
        self._visible = False
