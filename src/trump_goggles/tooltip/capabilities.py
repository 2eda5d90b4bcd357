"""Host capability adapter for the tooltip layer.

The tooltip only ever asks the host a handful of yes/no questions plus one
event hookup.  Hosts implement ``BrowserCapabilities``; ``DefaultCapabilities``
describes a modern browser.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, TypeAlias, runtime_checkable

from trump_goggles.dom.events import Event, EventTarget

if TYPE_CHECKING:
    from trump_goggles.dom.window import Window

logger = logging.getLogger(__name__)

MAX_SAFE_Z_INDEX = 2147483647
DEFAULT_Z_INDEX = 9999

Cleanup: TypeAlias = 'Callable[[], None]'


@runtime_checkable
class BrowserCapabilities(Protocol):
    """Feature flags and event wiring the tooltip depends on."""

    @property
    def supports_high_z_index(self) -> bool: ...

    @property
    def supports_pointer_events(self) -> bool: ...

    @property
    def supports_transitions(self) -> bool: ...

    @property
    def visibility_change_event(self) -> str | None: ...

    def safe_z_index(self) -> int: ...

    def register_browser_events(self, window: Window, hide: Callable[[], None]) -> Cleanup:
        """Call *hide* whenever the page stops being seen; return an undo."""
        ...


@dataclass(frozen=True, slots=True)
class DefaultCapabilities:
    supports_high_z_index: bool = True
    supports_pointer_events: bool = True
    supports_transitions: bool = True
    visibility_change_event: str | None = "visibilitychange"

    def safe_z_index(self) -> int:
        return MAX_SAFE_Z_INDEX if self.supports_high_z_index else DEFAULT_Z_INDEX

    def register_browser_events(self, window: Window, hide: Callable[[], None]) -> Cleanup:
        """Hide on ``visibilitychange`` to hidden and on window ``blur``."""
        document = window.document
        registered: list[tuple[EventTarget, str, Callable[[Event], None]]] = []

        if self.visibility_change_event:

            def on_visibility(_event: Event) -> None:
                if document.hidden:
                    hide()

            document.add_event_listener(self.visibility_change_event, on_visibility)
            registered.append((document, self.visibility_change_event, on_visibility))

        def on_blur(_event: Event) -> None:
            hide()

        window.add_event_listener("blur", on_blur)
        registered.append((window, "blur", on_blur))

        def cleanup() -> None:
            for target, event_type, handler in registered:
                target.remove_event_listener(event_type, handler)
            registered.clear()

        return cleanup
