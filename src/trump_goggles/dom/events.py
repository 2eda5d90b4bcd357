"""Minimal DOM event dispatch: listeners, bubbling, exact-reference removal.

Listeners are identified by ``(type, callback, capture)`` exactly as in the
browser, so a caller must keep the very callable it registered in order to
remove it.  Wrapping a handler (throttle, debounce, ``functools.partial``)
produces a different identity; callers own those wrappers.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeAlias

logger = logging.getLogger(__name__)

EventListener: TypeAlias = 'Callable[[Event], Any]'


@dataclass
class Event:
    """A dispatched event.

    ``target`` and ``current_target`` are filled in by ``dispatch_event``.
    ``key`` is only meaningful for keyboard events and ``related_target``
    for ``mouseover`` / ``mouseout`` pairs.
    """

    type: str
    bubbles: bool = True
    key: str | None = None
    related_target: Any = None
    target: Any = field(default=None, init=False)
    current_target: Any = field(default=None, init=False)
    default_prevented: bool = field(default=False, init=False)
    _propagation_stopped: bool = field(default=False, init=False, repr=False)

    def prevent_default(self) -> None:
        self.default_prevented = True

    def stop_propagation(self) -> None:
        self._propagation_stopped = True


@dataclass(frozen=True, slots=True)
class _Listener:
    callback: EventListener
    capture: bool
    passive: bool
    once: bool


class EventTarget:
    """Base class for anything that can receive events."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[_Listener]] = {}

    def add_event_listener(
        self,
        event_type: str,
        callback: EventListener,
        *,
        capture: bool = False,
        passive: bool = False,
        once: bool = False,
    ) -> None:
        """Register *callback*; a duplicate ``(type, callback, capture)`` is ignored."""
        listeners = self._listeners.setdefault(event_type, [])
        for existing in listeners:
            if existing.callback is callback and existing.capture == capture:
                return
        listeners.append(_Listener(callback, capture, passive, once))

    def remove_event_listener(
        self,
        event_type: str,
        callback: EventListener,
        *,
        capture: bool = False,
    ) -> None:
        listeners = self._listeners.get(event_type)
        if not listeners:
            return
        for i, existing in enumerate(listeners):
            if existing.callback is callback and existing.capture == capture:
                del listeners[i]
                break
        if not listeners:
            del self._listeners[event_type]

    def listener_count(self, event_type: str | None = None) -> int:
        """Number of registered listeners, optionally for one event type."""
        if event_type is not None:
            return len(self._listeners.get(event_type, ()))
        return sum(len(v) for v in self._listeners.values())

    def get_parent_target(self) -> EventTarget | None:
        """The next target on the bubbling path, or None at the top."""
        return None

    def dispatch_event(self, event: Event) -> bool:
        """Dispatch *event* with this object as target.

        Capture listeners along the path run first (outermost first), then
        target and bubble listeners (innermost first).  A listener that
        raises is logged and does not stop dispatch, matching how a host
        page reports listener errors.

        Returns:
            ``False`` if a listener called ``prevent_default``.
        """
        event.target = self
        path: list[EventTarget] = []
        current: EventTarget | None = self
        while current is not None:
            path.append(current)
            current = current.get_parent_target()

        for node in reversed(path[1:]):
            node._invoke(event, capture_phase=True)
            if event._propagation_stopped:
                return not event.default_prevented

        self._invoke(event, capture_phase=None)
        if event.bubbles and not event._propagation_stopped:
            for node in path[1:]:
                node._invoke(event, capture_phase=False)
                if event._propagation_stopped:
                    break

        event.current_target = None
        return not event.default_prevented

    def _invoke(self, event: Event, *, capture_phase: bool | None) -> None:
        listeners = self._listeners.get(event.type)
        if not listeners:
            return
        event.current_target = self
        # Snapshot: listeners may add or remove listeners while running.
        for listener in list(listeners):
            if capture_phase is not None and listener.capture != capture_phase:
                continue
            if listener.once:
                self.remove_event_listener(
                    event.type, listener.callback, capture=listener.capture
                )
            try:
                listener.callback(event)
            except Exception:
                logger.exception("Unhandled error in %r listener", event.type)
