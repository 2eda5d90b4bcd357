"""Live document model the conversion pipeline reads, edits and observes."""

from trump_goggles.dom.events import Event, EventTarget
from trump_goggles.dom.geometry import Rect, Size
from trump_goggles.dom.mutations import (
    MutationObserver,
    MutationObserverInit,
    MutationRecord,
    MutationType,
)
from trump_goggles.dom.nodes import (
    Document,
    Element,
    HierarchyError,
    Node,
    NodeType,
    Text,
)
from trump_goggles.dom.parser import inner_html, parse_fragment, parse_html, serialize
from trump_goggles.dom.window import Window

__all__ = [
    "Document",
    "Element",
    "Event",
    "EventTarget",
    "HierarchyError",
    "MutationObserver",
    "MutationObserverInit",
    "MutationRecord",
    "MutationType",
    "Node",
    "NodeType",
    "Rect",
    "Size",
    "Text",
    "Window",
    "inner_html",
    "parse_fragment",
    "parse_html",
    "serialize",
]
