"""HTML ⇄ live document conversion.

Parsing goes through selectolax (lexbor backend) and copies the tree into
the mutable model in ``trump_goggles.dom.nodes``, walking with
``child``/``next`` iteration so text nodes are visited in document order.
Comments and doctype nodes are dropped; the model only carries what the
pipeline reads or writes.

Serialization escapes text and attribute values.  Text reaching the
output can therefore never become markup, whatever the page or the
pattern table contains.
"""

from __future__ import annotations

import html as html_module
from typing import Any

from selectolax.lexbor import LexborHTMLParser

from trump_goggles.dom.nodes import Document, Element, Node, Text
from trump_goggles.dom.window import DEFAULT_VIEWPORT, Window

# Elements whose text children are emitted verbatim
_RAW_TEXT_TAGS = frozenset(("script", "style"))

_VOID_TAGS = frozenset(
    (
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "source",
        "track",
        "wbr",
    )
)


def _is_element_tag(tag: str | None) -> bool:
    # selectolax reports special nodes with a prefixed pseudo-tag
    # ("-text", "_comment", "-document", "!doctype").
    return bool(tag) and tag[0] not in "-_!"


def _copy_children(source: Any, parent: Node, document: Document) -> None:
    child = source.child
    while child is not None:
        tag = child.tag
        if tag == "-text":
            text = child.text_content
            if text:
                parent.append_child(Text(text, document))
        elif _is_element_tag(tag):
            attrs = {
                str(k).lower(): ("" if v is None else str(v))
                for k, v in child.attributes.items()
            }
            element = Element(tag, document, attrs)
            parent.append_child(element)
            _copy_children(child, element, document)
        child = child.next


def parse_html(
    html: str,
    *,
    viewport: tuple[float, float] = DEFAULT_VIEWPORT,
) -> Document:
    """Parse *html* into a new live document with a window attached.

    Fragments are completed to a full ``html/head/body`` document, as a
    browser would.

    Args:
        html: Markup to parse (full document or fragment).
        viewport: ``(width, height)`` of the attached window.

    Returns:
        The new document; ``document.default_view`` is its window.
    """
    document = Document()
    Window(document, *viewport)

    tree = LexborHTMLParser(html or "")
    root = tree.root
    if root is None or not _is_element_tag(root.tag):
        html_el = document.append_child(document.create_element("html"))
        html_el.append_child(document.create_element("head"))
        html_el.append_child(document.create_element("body"))
        return document

    html_el = Element(root.tag, document, {
        str(k).lower(): ("" if v is None else str(v))
        for k, v in root.attributes.items()
    })
    document.append_child(html_el)
    _copy_children(root, html_el, document)
    return document


def parse_fragment(html: str, document: Document) -> list[Node]:
    """Parse *html* into detached nodes owned by *document*.

    Used to insert dynamic content the way a page script would
    (``innerHTML`` on a detached container, then append).
    """
    tree = LexborHTMLParser(html or "")
    body = tree.body
    if body is None:
        return []
    holder = Element("div", document)
    _copy_children(body, holder, document)
    nodes = list(holder.child_nodes)
    for node in nodes:
        holder.remove_child(node)
    return nodes


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def _serialize_into(node: Node, out: list[str], raw_text: bool) -> None:
    if isinstance(node, Text):
        out.append(node.data if raw_text else html_module.escape(node.data, quote=False))
        return
    if isinstance(node, Element):
        out.append(f"<{node.tag}")
        for name, value in node.attributes.items():
            out.append(f' {name}="{html_module.escape(value, quote=True)}"')
        out.append(">")
        if node.tag in _VOID_TAGS:
            return
        raw = node.tag in _RAW_TEXT_TAGS
        for child in node.child_nodes:
            _serialize_into(child, out, raw)
        out.append(f"</{node.tag}>")
        return
    for child in node.child_nodes:
        _serialize_into(child, out, False)


def serialize(node: Node) -> str:
    """Outer HTML of *node*; for a document, the full markup with doctype."""
    out: list[str] = []
    if isinstance(node, Document):
        out.append("<!DOCTYPE html>")
    _serialize_into(node, out, False)
    return "".join(out)


def inner_html(node: Node) -> str:
    out: list[str] = []
    raw = isinstance(node, Element) and node.tag in _RAW_TEXT_TAGS
    for child in node.child_nodes:
        _serialize_into(child, out, raw)
    return "".join(out)
