"""Tooltip interaction: which wrapper, if any, currently shows its original text.

The manager listens at the document and window level (events bubble up
from wrapper spans) and drives one ``TooltipUI``.  At most one session is
active: showing a tooltip for a new wrapper first unlinks the previous one.

Every listener goes through ``_listen`` so ``dispose()`` removes exactly the
callables that were registered, including the throttled wrappers.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from trump_goggles.config import TooltipConfig
from trump_goggles.dom.events import Event, EventListener, EventTarget
from trump_goggles.dom.nodes import Document, Element, Node
from trump_goggles.dom_modifier import ORIGINAL_TEXT_ATTR, is_converted_wrapper
from trump_goggles.security import log_snippet
from trump_goggles.timing import Debouncer, Throttler
from trump_goggles.tooltip.capabilities import BrowserCapabilities, DefaultCapabilities
from trump_goggles.tooltip.ui import TooltipUI

logger = logging.getLogger(__name__)

ARIA_DESCRIBEDBY = "aria-describedby"


@dataclass
class TooltipSession:
    """Runtime state of the single tooltip.

    ``element`` is the tooltip element while the manager is initialised;
    ``reset()`` clears the per-target fields only.
    """

    element: Element | None = None
    visible: bool = False
    current_target: Element | None = None
    described_by_linked: bool = False

    def reset(self) -> None:
        self.visible = False
        self.current_target = None
        self.described_by_linked = False


def find_wrapper(node: object) -> Element | None:
    """The converted-text wrapper at or above *node*, if any."""
    if isinstance(node, Node) and not isinstance(node, Element):
        node = node.parent_element
    if not isinstance(node, Element):
        return None
    return node.closest(is_converted_wrapper)


class TooltipManager:
    """Shows a wrapper's original text on hover and keyboard focus.

    Args:
        document: Document whose wrappers get tooltips.  It must have a
            window (``Window(document)``) for scroll, resize and blur
            handling.
        ui: The tooltip element owner.
        config: Timing and geometry.
        capabilities: Host adapter for visibility and blur events.
    """

    def __init__(
        self,
        document: Document,
        ui: TooltipUI,
        config: TooltipConfig | None = None,
        capabilities: BrowserCapabilities | None = None,
    ) -> None:
        self._document = document
        self._ui = ui
        self._config = config or TooltipConfig()
        self._capabilities = capabilities or DefaultCapabilities()
        self.session = TooltipSession()

        self._listeners: list[tuple[EventTarget, str, EventListener]] = []
        self._browser_cleanup: Callable[[], None] | None = None
        self._initialized = False

        self._pending_show = Debouncer(self._show_for, self._config.show_delay_ms)
        self._throttled_pointer = Throttler(self._on_pointer_over, self._config.pointer_throttle_ms)
        self._throttled_scroll = Throttler(self._on_scroll, self._config.scroll_throttle_ms)
        self._throttled_resize = Throttler(self._on_resize, self._config.scroll_throttle_ms)

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def ui(self) -> TooltipUI:
        return self._ui

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def initialize(self) -> None:
        """Attach listeners.  Calling twice is a no-op."""
        if self._initialized:
            return
        doc = self._document
        self._listen(doc, "mouseover", self._throttled_pointer)
        self._listen(doc, "mouseout", self._on_pointer_out)
        self._listen(doc, "focusin", self._on_focus_in)
        self._listen(doc, "focusout", self._on_focus_out)
        self._listen(doc, "keydown", self._on_keydown)

        window = doc.default_view
        if window is not None:
            self._listen(window, "scroll", self._throttled_scroll)
            self._listen(window, "resize", self._throttled_resize)
            self._browser_cleanup = self._capabilities.register_browser_events(
                window, self.hide
            )
        else:
            logger.warning("Document has no window; scroll and blur handling disabled")

        self.session.element = self._ui.ensure_created()
        self._initialized = True
        logger.debug("Tooltip manager initialised with %d listeners", len(self._listeners))

    def dispose(self) -> None:
        """Remove every listener, cancel timers and destroy the tooltip."""
        for target, event_type, handler in self._listeners:
            target.remove_event_listener(event_type, handler)
        self._listeners.clear()
        if self._browser_cleanup is not None:
            self._browser_cleanup()
            self._browser_cleanup = None

        self._pending_show.cancel()
        self._throttled_pointer.cancel()
        self._throttled_scroll.cancel()
        self._throttled_resize.cancel()

        self.hide()
        self._ui.destroy()
        self.session.reset()
        self.session.element = None
        self._initialized = False
        logger.debug("Tooltip manager disposed")

    def _listen(self, target: EventTarget, event_type: str, handler: EventListener) -> None:
        target.add_event_listener(event_type, handler)
        self._listeners.append((target, event_type, handler))

    # -----------------------------------------------------------------------
    # Show / hide
    # -----------------------------------------------------------------------

    def show(self, wrapper: Element) -> None:
        """Schedule the tooltip for *wrapper* after the show delay."""
        self._pending_show(wrapper)

    def _show_for(self, wrapper: Element) -> bool:
        if not wrapper.is_connected:
            return False
        original = wrapper.get_attribute(ORIGINAL_TEXT_ATTR)
        if not original:
            return False

        previous = self.session.current_target
        if previous is not None and previous is not wrapper:
            self._unlink(previous)

        self._ui.set_text(original)
        self._ui.update_position(wrapper)
        self._ui.show()
        with self._ui.writing():
            wrapper.set_attribute(ARIA_DESCRIBEDBY, self._ui.get_id())

        self.session.element = self._ui.element
        self.session.visible = True
        self.session.current_target = wrapper
        self.session.described_by_linked = True
        logger.debug("Showing tooltip for %r", log_snippet(original))
        return True

    def hide(self) -> None:
        """Hide the tooltip and drop any pending show."""
        self._pending_show.cancel()
        if self.session.current_target is None and not self.session.visible:
            return
        self._ui.hide()
        if self.session.current_target is not None:
            self._unlink(self.session.current_target)
        self.session.reset()

    def _unlink(self, wrapper: Element) -> None:
        if wrapper.get_attribute(ARIA_DESCRIBEDBY) == self._ui.get_id():
            with self._ui.writing():
                wrapper.remove_attribute(ARIA_DESCRIBEDBY)

    # -----------------------------------------------------------------------
    # Event handlers
    # -----------------------------------------------------------------------

    def _on_pointer_over(self, event: Event) -> None:
        wrapper = find_wrapper(event.target)
        if wrapper is None:
            self.hide()
        elif wrapper is not self.session.current_target:
            self.show(wrapper)

    def _on_pointer_out(self, event: Event) -> None:
        wrapper = find_wrapper(event.target)
        if wrapper is None:
            return
        # moving between children of the same wrapper is not leaving it
        if find_wrapper(event.related_target) is wrapper:
            return
        # a queued mouseover from inside the wrapper is stale once it is left
        self._throttled_pointer.cancel()
        self.hide()

    def _on_focus_in(self, event: Event) -> None:
        wrapper = find_wrapper(event.target)
        if wrapper is not None:
            self.show(wrapper)

    def _on_focus_out(self, event: Event) -> None:
        if find_wrapper(event.target) is not None:
            self.hide()

    def _on_keydown(self, event: Event) -> None:
        if event.key in ("Escape", "Esc"):
            self.hide()

    def _target_in_viewport(self) -> bool:
        target = self.session.current_target
        view = self._document.default_view
        if target is None or view is None:
            return False
        return target.get_bounding_client_rect().intersects(view.viewport)

    def _on_scroll(self, _event: Event) -> None:
        if not self.session.visible:
            return
        if self._target_in_viewport():
            assert self.session.current_target is not None
            self._ui.update_position(self.session.current_target)
        else:
            logger.debug("Tooltip target scrolled out of view")
            self.hide()

    def _on_resize(self, _event: Event) -> None:
        if self.session.visible and self.session.current_target is not None:
            self._ui.update_position(self.session.current_target)

