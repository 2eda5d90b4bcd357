"""Tests for text-node discovery and chunked traversal."""

from __future__ import annotations

import asyncio

import pytest

from trump_goggles.dom.nodes import Element, Text
from trump_goggles.dom.parser import parse_html
from trump_goggles.dom_traverser import (
    DEFAULT_SKIP_TAGS,
    DOMTraverser,
    is_editable_node,
    should_skip_element,
)
from trump_goggles.processed import OperationBudget, ProcessedNodes


def _texts(traverser: DOMTraverser, root: object, **kwargs: object) -> list[str]:
    return [n.data for n in traverser.iter_text_nodes(root, **kwargs)]  # type: ignore[arg-type]


class TestSkipRules:
    """Which subtrees are excluded."""

    def test_skip_tags(self, processed: ProcessedNodes) -> None:
        doc = parse_html(
            "<p>keep</p><script>var a;</script><style>p{}</style>"
            "<textarea>typed</textarea><pre>code</pre><code>x</code>"
        )
        assert _texts(DOMTraverser(processed), doc.body) == ["keep"]

    def test_contenteditable_subtree(self, processed: ProcessedNodes) -> None:
        doc = parse_html(
            "<div contenteditable='true'><p>draft</p></div>"
            "<div contenteditable='plaintext-only'>raw</div>"
            "<div contenteditable='false'>shown</div>"
        )
        assert _texts(DOMTraverser(processed), doc.body) == ["shown"]

    def test_display_none(self, processed: ProcessedNodes) -> None:
        doc = parse_html(
            "<div style='color: red; display:none'>hidden</div><div style='display: block'>seen</div>"
        )
        assert _texts(DOMTraverser(processed), doc.body) == ["seen"]

    def test_whitespace_only_text(self, processed: ProcessedNodes) -> None:
        doc = parse_html("<div>   <p>word</p>\n</div>")
        assert _texts(DOMTraverser(processed), doc.body) == ["word"]

    def test_wrapper_spans_skipped(self, processed: ProcessedNodes) -> None:
        doc = parse_html(
            "<p><span class='tg-converted-text' data-original-text='coffee'>covfefe</span> hot</p>"
        )
        assert _texts(DOMTraverser(processed), doc.body) == [" hot"]

    def test_processed_nodes_skipped_unless_asked(self, processed: ProcessedNodes) -> None:
        doc = parse_html("<p id='a'>one</p><p>two</p>")
        a = doc.get_element_by_id("a")
        assert a is not None
        processed.mark(a)
        traverser = DOMTraverser(processed)
        assert _texts(traverser, doc.body) == ["two"]
        assert _texts(traverser, doc.body, skip_processed=False) == ["one", "two"]

    def test_root_inside_excluded_context(self, processed: ProcessedNodes) -> None:
        """A root handed in from a mutation record is checked against its ancestors."""
        doc = parse_html("<div contenteditable><p id='inner'>typing</p></div>")
        inner = doc.get_element_by_id("inner")
        assert inner is not None
        assert _texts(DOMTraverser(processed), inner) == []

    def test_text_root(self, processed: ProcessedNodes) -> None:
        doc = parse_html("<p>solo</p>")
        assert doc.body is not None
        p = doc.body.first_child
        assert isinstance(p, Element)
        assert _texts(DOMTraverser(processed), p.first_child) == ["solo"]

    def test_predicates(self) -> None:
        doc = parse_html("<input value='x'><div contenteditable=''><b>t</b></div><em>e</em>")
        div = next(
            n for n in doc.iter_descendants() if isinstance(n, Element) and n.tag == "div"
        )
        bold = div.first_child
        em = next(n for n in doc.iter_descendants() if isinstance(n, Element) and n.tag == "em")
        assert is_editable_node(bold)
        assert not is_editable_node(em)
        assert should_skip_element(div)
        assert not should_skip_element(em)
        assert not should_skip_element(em, DEFAULT_SKIP_TAGS)


class TestTraverse:
    """Synchronous traversal."""

    def test_document_order(self, processed: ProcessedNodes) -> None:
        doc = parse_html("<div>a<p>b<em>c</em>d</p>e</div><p>f</p>")
        seen: list[str] = []
        count = DOMTraverser(processed).traverse(doc.body, lambda n: seen.append(n.data))
        assert seen == ["a", "b", "c", "d", "e", "f"]
        assert count == 6

    def test_none_root(self, processed: ProcessedNodes) -> None:
        assert DOMTraverser(processed).traverse(None, lambda n: True) == 0

    def test_budget_stops_after_limit(self, processed: ProcessedNodes) -> None:
        doc = parse_html("<p>a</p><p>b</p><p>c</p><p>d</p>")
        budget = OperationBudget(2)
        seen: list[str] = []

        def convert(node: Text) -> bool:
            seen.append(node.data)
            return True

        DOMTraverser(processed, budget).traverse(doc.body, convert)
        assert seen == ["a", "b"]
        assert budget.exhausted

    def test_budget_counts_only_changes(self, processed: ProcessedNodes) -> None:
        doc = parse_html("<p>a</p><p>b</p><p>c</p>")
        budget = OperationBudget(2)
        DOMTraverser(processed, budget).traverse(doc.body, lambda n: n.data == "b")
        assert budget.count == 1

    def test_callback_error_does_not_stop_walk(self, processed: ProcessedNodes) -> None:
        doc = parse_html("<p>a</p><p>b</p>")
        seen: list[str] = []

        def flaky(node: Text) -> None:
            seen.append(node.data)
            if node.data == "a":
                raise RuntimeError("bad node")

        DOMTraverser(processed).traverse(doc.body, flaky)
        assert seen == ["a", "b"]

    def test_edits_during_walk(self, processed: ProcessedNodes) -> None:
        """Splitting the current node does not derail the walk."""
        doc = parse_html("<p>ab</p><p>c</p>")
        seen: list[str] = []

        def split(node: Text) -> None:
            seen.append(node.data)
            if node.data == "ab":
                node.split_text(1)

        DOMTraverser(processed).traverse(doc.body, split)
        assert seen[0] == "ab"
        assert seen[-1] == "c"


class TestProcessInChunks:
    """Cooperative traversal."""

    @pytest.mark.asyncio
    async def test_visits_everything(self, processed: ProcessedNodes) -> None:
        doc = parse_html("".join(f"<p>n{i}</p>" for i in range(25)))
        seen: list[str] = []
        count = await DOMTraverser(processed).process_in_chunks(
            doc.body, lambda n: seen.append(n.data), chunk_size=10
        )
        assert count == 25
        assert seen == [f"n{i}" for i in range(25)]

    @pytest.mark.asyncio
    async def test_yields_between_chunks(self, processed: ProcessedNodes) -> None:
        doc = parse_html("".join(f"<p>n{i}</p>" for i in range(30)))
        ticks = 0
        stop = asyncio.Event()

        async def ticker() -> None:
            nonlocal ticks
            while not stop.is_set():
                ticks += 1
                await asyncio.sleep(0)

        task = asyncio.create_task(ticker())
        await DOMTraverser(processed).process_in_chunks(
            doc.body, lambda n: None, chunk_size=5
        )
        stop.set()
        await task
        assert ticks >= 5

    @pytest.mark.asyncio
    async def test_cancel(self, processed: ProcessedNodes) -> None:
        doc = parse_html("".join(f"<p>n{i}</p>" for i in range(20)))
        cancel = asyncio.Event()
        seen: list[str] = []

        def convert(node: Text) -> None:
            seen.append(node.data)
            if len(seen) == 3:
                cancel.set()

        count = await DOMTraverser(processed).process_in_chunks(
            doc.body, convert, chunk_size=2, cancel=cancel
        )
        assert count == 3
        assert seen == ["n0", "n1", "n2"]

    @pytest.mark.asyncio
    async def test_removed_nodes_skipped(self, processed: ProcessedNodes) -> None:
        doc = parse_html("<div id='box'><p>a</p><p>b</p><p>c</p></div>")
        box = doc.get_element_by_id("box")
        assert box is not None
        seen: list[str] = []

        def convert(node: Text) -> None:
            seen.append(node.data)
            if node.data == "a":
                last = box.last_child
                assert last is not None
                box.remove_child(last)

        await DOMTraverser(processed).process_in_chunks(doc.body, convert, chunk_size=1)
        assert seen == ["a", "b"]

    @pytest.mark.asyncio
    async def test_budget_respected(self, processed: ProcessedNodes) -> None:
        doc = parse_html("".join(f"<p>n{i}</p>" for i in range(10)))
        budget = OperationBudget(4)
        count = await DOMTraverser(processed, budget).process_in_chunks(
            doc.body, lambda n: True, chunk_size=3
        )
        assert count == 4
        assert budget.exhausted


class TestResetProcessedState:
    """Clearing processed marks."""

    def test_reset(self, processed: ProcessedNodes) -> None:
        doc = parse_html("<div id='a'><p id='b'>x</p></div><p id='c'>y</p>")
        for element_id in ("a", "b", "c"):
            element = doc.get_element_by_id(element_id)
            assert element is not None
            processed.mark(element)
        removed = DOMTraverser(processed).reset_processed_state(doc.get_element_by_id("a"))
        assert removed == 2
        assert len(processed) == 1
        assert DOMTraverser(processed).reset_processed_state(None) == 0
