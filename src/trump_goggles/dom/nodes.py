"""Live document model: documents, elements and text nodes.

A deliberately small subset of the browser DOM, enough for the conversion
pipeline to do what a content script does on a real page:

- text nodes with ``split_text`` and mutable ``data``;
- elements with ordered attributes and text-content assignment (which
  always creates a text node, never parses markup);
- tree edits (``append_child``, ``insert_before``, ``replace_child``,
  ``remove_child``) that each emit a mutation record to the observers of
  the owning document;
- event dispatch through ``EventTarget`` with bubbling up to the window.

Layout is not computed.  The host sets element boxes with
``set_bounding_client_rect`` when it needs geometry (tooltip placement).
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from enum import IntEnum
from typing import TYPE_CHECKING, ClassVar

from trump_goggles.dom.events import Event, EventTarget
from trump_goggles.dom.geometry import EMPTY_RECT, Rect
from trump_goggles.dom.mutations import MutationRecord, MutationType

if TYPE_CHECKING:
    from trump_goggles.dom.mutations import MutationObserver
    from trump_goggles.dom.window import Window


class NodeType(IntEnum):
    ELEMENT = 1
    TEXT = 3
    DOCUMENT = 9


class HierarchyError(ValueError):
    """An edit would produce an invalid tree (cycle, text with children...)."""


# ---------------------------------------------------------------------------
# Base node
# ---------------------------------------------------------------------------


class Node(EventTarget):
    node_type: ClassVar[NodeType]

    def __init__(self, owner: Document | None) -> None:
        super().__init__()
        self._owner = owner
        self.parent: Node | None = None
        self._children: list[Node] = []

    # -- tree navigation ---------------------------------------------------

    @property
    def owner_document(self) -> Document:
        assert self._owner is not None
        return self._owner

    @property
    def parent_element(self) -> Element | None:
        return self.parent if isinstance(self.parent, Element) else None

    @property
    def child_nodes(self) -> tuple[Node, ...]:
        return tuple(self._children)

    @property
    def first_child(self) -> Node | None:
        return self._children[0] if self._children else None

    @property
    def last_child(self) -> Node | None:
        return self._children[-1] if self._children else None

    @property
    def next_sibling(self) -> Node | None:
        if self.parent is None:
            return None
        siblings = self.parent._children
        idx = siblings.index(self)
        return siblings[idx + 1] if idx + 1 < len(siblings) else None

    @property
    def previous_sibling(self) -> Node | None:
        if self.parent is None:
            return None
        siblings = self.parent._children
        idx = siblings.index(self)
        return siblings[idx - 1] if idx > 0 else None

    @property
    def is_connected(self) -> bool:
        root: Node = self
        while root.parent is not None:
            root = root.parent
        return isinstance(root, Document)

    def ancestors(self) -> Iterator[Node]:
        """Yield the parent chain, nearest first."""
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def contains(self, other: Node | None) -> bool:
        """Inclusive descendant check, as ``Node.contains`` in the browser."""
        node = other
        while node is not None:
            if node is self:
                return True
            node = node.parent
        return False

    def iter_descendants(self) -> Iterator[Node]:
        """Yield every descendant in document order (self excluded)."""
        stack = list(reversed(self._children))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node._children))

    def get_parent_target(self) -> EventTarget | None:
        return self.parent

    @property
    def text_content(self) -> str:
        return "".join(
            n.data for n in self.iter_descendants() if isinstance(n, Text)
        )

    # -- tree edits --------------------------------------------------------

    def append_child(self, child: Node) -> Node:
        return self.insert_before(child, None)

    def insert_before(self, child: Node, reference: Node | None) -> Node:
        """Insert *child* before *reference* (append when None)."""
        self._check_insertable(child)
        if reference is not None and reference.parent is not self:
            msg = "reference node is not a child of this node"
            raise HierarchyError(msg)
        if child is reference:
            return child
        if child.parent is not None:
            child.parent.remove_child(child)
        index = len(self._children) if reference is None else self._children.index(reference)
        previous = self._children[index - 1] if index > 0 else None
        self._children.insert(index, child)
        child.parent = self
        self._notify(
            MutationRecord(
                type=MutationType.CHILD_LIST,
                target=self,
                added_nodes=(child,),
                previous_sibling=previous,
                next_sibling=reference,
            )
        )
        return child

    def remove_child(self, child: Node) -> Node:
        if child.parent is not self:
            msg = "node is not a child of this node"
            raise HierarchyError(msg)
        index = self._children.index(child)
        previous = self._children[index - 1] if index > 0 else None
        following = self._children[index + 1] if index + 1 < len(self._children) else None
        del self._children[index]
        child.parent = None
        self._notify(
            MutationRecord(
                type=MutationType.CHILD_LIST,
                target=self,
                removed_nodes=(child,),
                previous_sibling=previous,
                next_sibling=following,
            )
        )
        return child

    def replace_child(self, new_child: Node, old_child: Node) -> Node:
        """Replace *old_child* with *new_child*; one record carries both sides."""
        if old_child.parent is not self:
            msg = "node to replace is not a child of this node"
            raise HierarchyError(msg)
        self._check_insertable(new_child)
        if new_child is old_child:
            return old_child
        if new_child.parent is not None:
            new_child.parent.remove_child(new_child)
        index = self._children.index(old_child)
        previous = self._children[index - 1] if index > 0 else None
        following = self._children[index + 1] if index + 1 < len(self._children) else None
        self._children[index] = new_child
        old_child.parent = None
        new_child.parent = self
        self._notify(
            MutationRecord(
                type=MutationType.CHILD_LIST,
                target=self,
                added_nodes=(new_child,),
                removed_nodes=(old_child,),
                previous_sibling=previous,
                next_sibling=following,
            )
        )
        return old_child

    def _replace_all(self, node: Node | None) -> None:
        removed = tuple(self._children)
        if not removed and node is None:
            return
        for child in removed:
            child.parent = None
        self._children = []
        if node is not None:
            self._children.append(node)
            node.parent = self
        self._notify(
            MutationRecord(
                type=MutationType.CHILD_LIST,
                target=self,
                added_nodes=(node,) if node is not None else (),
                removed_nodes=removed,
            )
        )

    def _check_insertable(self, child: Node) -> None:
        if isinstance(child, Document):
            msg = "a document cannot be inserted into a tree"
            raise HierarchyError(msg)
        if isinstance(self, Text):
            msg = "text nodes cannot have children"
            raise HierarchyError(msg)
        if child.contains(self):
            msg = "cannot insert a node into its own subtree"
            raise HierarchyError(msg)

    def _notify(self, record: MutationRecord) -> None:
        self.owner_document._queue_mutation(record)


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


class Text(Node):
    node_type = NodeType.TEXT

    def __init__(self, data: str, owner: Document) -> None:
        super().__init__(owner)
        self._data = data

    def __repr__(self) -> str:
        snippet = self._data if len(self._data) <= 30 else self._data[:30] + "..."
        return f"<Text {snippet!r}>"

    @property
    def data(self) -> str:
        return self._data

    @data.setter
    def data(self, value: str) -> None:
        old = self._data
        self._data = value
        self._notify(
            MutationRecord(
                type=MutationType.CHARACTER_DATA,
                target=self,
                old_value=old,
            )
        )

    @property
    def length(self) -> int:
        return len(self._data)

    def split_text(self, offset: int) -> Text:
        """Split at *offset*; this node keeps ``data[:offset]``.

        The tail becomes a new text node inserted right after this one (when
        this node has a parent) and is returned.
        """
        if offset < 0 or offset > len(self._data):
            msg = f"offset {offset} outside text of length {len(self._data)}"
            raise IndexError(msg)
        tail = Text(self._data[offset:], self.owner_document)
        if self.parent is not None:
            self.parent.insert_before(tail, self.next_sibling)
        self.data = self._data[:offset]
        return tail


# ---------------------------------------------------------------------------
# Element
# ---------------------------------------------------------------------------


class Element(Node):
    node_type = NodeType.ELEMENT

    def __init__(
        self,
        tag: str,
        owner: Document,
        attributes: dict[str, str] | None = None,
    ) -> None:
        super().__init__(owner)
        self.tag = tag.lower()
        self._attrs: dict[str, str] = dict(attributes or {})
        self._rect: Rect | None = None

    def __repr__(self) -> str:
        ident = f"#{self.id}" if self.id else ""
        return f"<Element {self.tag}{ident}>"

    # -- attributes --------------------------------------------------------

    @property
    def attributes(self) -> dict[str, str]:
        """A copy of the attribute map, in insertion order."""
        return dict(self._attrs)

    def get_attribute(self, name: str) -> str | None:
        return self._attrs.get(name.lower())

    def has_attribute(self, name: str) -> bool:
        return name.lower() in self._attrs

    def set_attribute(self, name: str, value: str) -> None:
        key = name.lower()
        old = self._attrs.get(key)
        self._attrs[key] = str(value)
        self._notify(
            MutationRecord(
                type=MutationType.ATTRIBUTES,
                target=self,
                attribute_name=key,
                old_value=old,
            )
        )

    def remove_attribute(self, name: str) -> None:
        key = name.lower()
        if key not in self._attrs:
            return
        old = self._attrs.pop(key)
        self._notify(
            MutationRecord(
                type=MutationType.ATTRIBUTES,
                target=self,
                attribute_name=key,
                old_value=old,
            )
        )

    @property
    def id(self) -> str:
        return self._attrs.get("id", "")

    @property
    def class_list(self) -> tuple[str, ...]:
        return tuple(self._attrs.get("class", "").split())

    def has_class(self, class_name: str) -> bool:
        return class_name in self.class_list

    def closest(self, predicate: Callable[[Element], bool]) -> Element | None:
        """Nearest inclusive ancestor element satisfying *predicate*."""
        node: Node | None = self
        while node is not None:
            if isinstance(node, Element) and predicate(node):
                return node
            node = node.parent
        return None

    # -- content -----------------------------------------------------------

    @property
    def text_content(self) -> str:
        return super().text_content

    @text_content.setter
    def text_content(self, value: str) -> None:
        """Replace all children with one text node holding *value* verbatim."""
        value = "" if value is None else str(value)
        self._replace_all(Text(value, self.owner_document) if value else None)

    # -- layout (host supplied) ---------------------------------------------

    def get_bounding_client_rect(self) -> Rect:
        return self._rect if self._rect is not None else EMPTY_RECT

    def set_bounding_client_rect(self, rect: Rect) -> None:
        self._rect = rect


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


class Document(Node):
    node_type = NodeType.DOCUMENT

    def __init__(self) -> None:
        super().__init__(owner=None)
        self._owner = self
        self._observers: list[MutationObserver] = []
        self.default_view: Window | None = None
        self._visibility_state = "visible"

    def __repr__(self) -> str:
        return "<Document>"

    def get_parent_target(self) -> EventTarget | None:
        return self.default_view

    # -- structure -----------------------------------------------------------

    @property
    def document_element(self) -> Element | None:
        for child in self._children:
            if isinstance(child, Element):
                return child
        return None

    def _top_level(self, tag: str) -> Element | None:
        root = self.document_element
        if root is None:
            return None
        for child in root._children:
            if isinstance(child, Element) and child.tag == tag:
                return child
        return None

    @property
    def head(self) -> Element | None:
        return self._top_level("head")

    @property
    def body(self) -> Element | None:
        return self._top_level("body")

    def create_element(self, tag: str, attributes: dict[str, str] | None = None) -> Element:
        return Element(tag, self, attributes)

    def create_text_node(self, data: str) -> Text:
        return Text(data, self)

    def get_element_by_id(self, element_id: str) -> Element | None:
        for node in self.iter_descendants():
            if isinstance(node, Element) and node.id == element_id:
                return node
        return None

    def elements_with_attribute(self, name: str, value: str | None = None) -> list[Element]:
        """All elements carrying attribute *name* (optionally equal to *value*)."""
        found: list[Element] = []
        for node in self.iter_descendants():
            if not isinstance(node, Element):
                continue
            current = node.get_attribute(name)
            if current is not None and (value is None or current == value):
                found.append(node)
        return found

    def get_elements_by_class_name(self, class_name: str) -> list[Element]:
        return [
            n
            for n in self.iter_descendants()
            if isinstance(n, Element) and n.has_class(class_name)
        ]

    # -- page visibility -----------------------------------------------------

    @property
    def visibility_state(self) -> str:
        return self._visibility_state

    @property
    def hidden(self) -> bool:
        return self._visibility_state == "hidden"

    def set_visibility_state(self, state: str) -> None:
        """Host hook: change visibility and fire ``visibilitychange``."""
        if state not in ("visible", "hidden"):
            msg = f"unknown visibility state {state!r}"
            raise ValueError(msg)
        if state == self._visibility_state:
            return
        self._visibility_state = state
        self.dispatch_event(Event("visibilitychange", bubbles=False))

    # -- mutation observers -------------------------------------------------

    def _register_observer(self, observer: MutationObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def _unregister_observer(self, observer: MutationObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _queue_mutation(self, record: MutationRecord) -> None:
        for observer in list(self._observers):
            observer._enqueue(record)
