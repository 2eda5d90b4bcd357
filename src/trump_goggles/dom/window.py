"""The window: top of the event path, owner of the viewport."""

from __future__ import annotations

from typing import TYPE_CHECKING

from trump_goggles.dom.events import Event, EventTarget
from trump_goggles.dom.geometry import Rect

if TYPE_CHECKING:
    from trump_goggles.dom.nodes import Document

DEFAULT_VIEWPORT = (1024, 768)


class Window(EventTarget):
    """Host window bound to one document.

    ``scroll``, ``resize`` and ``blur`` are host hooks: they update state
    where relevant and fire the matching event so listeners can react.
    """

    def __init__(
        self,
        document: Document,
        width: float = DEFAULT_VIEWPORT[0],
        height: float = DEFAULT_VIEWPORT[1],
    ) -> None:
        super().__init__()
        self.document = document
        self.inner_width = width
        self.inner_height = height
        document.default_view = self

    @property
    def viewport(self) -> Rect:
        return Rect(0, 0, self.inner_width, self.inner_height)

    def resize(self, width: float, height: float) -> None:
        self.inner_width = width
        self.inner_height = height
        self.dispatch_event(Event("resize", bubbles=False))

    def scroll(self) -> None:
        self.dispatch_event(Event("scroll", bubbles=False))

    def blur(self) -> None:
        self.dispatch_event(Event("blur", bubbles=False))
