"""End-to-end behaviour of the pipeline on a live document."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from trump_goggles.dom.events import Event
from trump_goggles.dom.mutations import MutationRecord, MutationType
from trump_goggles.dom.nodes import Element, Text
from trump_goggles.dom.parser import inner_html, parse_fragment
from trump_goggles.dom_modifier import CONVERTED_TEXT_WRAPPER_CLASS, ORIGINAL_TEXT_ATTR
from trump_goggles.mutation_watcher import ObserverState
from trump_goggles.tooltip import TOOLTIP_ID

if TYPE_CHECKING:
    from trump_goggles.dom.nodes import Document

    from .conftest import StartPage

pytestmark = pytest.mark.integration

SETTLE = 0.08


def _wrappers(doc: Document) -> list[Element]:
    return doc.get_elements_by_class_name(CONVERTED_TEXT_WRAPPER_CLASS)


def _body(doc: Document) -> Element:
    assert doc.body is not None
    return doc.body


def _by_id(doc: Document, element_id: str) -> Element:
    element = doc.get_element_by_id(element_id)
    assert element is not None
    return element


class TestInitialPass:
    """Conversion of the page as loaded."""

    @pytest.mark.asyncio
    async def test_simple_replacement_with_tooltip(self, start_page: StartPage) -> None:
        doc, goggles = await start_page("<p id='p'>Hillary Clinton gave a speech</p>")

        p = _by_id(doc, "p")
        span, rest = p.child_nodes
        assert isinstance(span, Element)
        assert span.get_attribute(ORIGINAL_TEXT_ATTR) == "Hillary Clinton"
        assert span.text_content == "Crooked Hillary"
        assert isinstance(rest, Text)
        assert rest.data == " gave a speech"
        assert p.text_content == "Crooked Hillary gave a speech"
        assert goggles.diagnostics()["operation_count"] == 1

    @pytest.mark.asyncio
    async def test_plain_mode(self, start_page: StartPage) -> None:
        doc, _goggles = await start_page(
            "<p id='p'>Hillary Clinton gave a speech</p>", tooltips=False
        )
        assert inner_html(_by_id(doc, "p")) == "Crooked Hillary gave a speech"
        assert _wrappers(doc) == []

    @pytest.mark.asyncio
    async def test_tooltip_element_never_converted(self, start_page: StartPage) -> None:
        doc, goggles = await start_page("<p>Ted Cruz</p>")
        assert goggles.tooltips is not None
        goggles.tooltips.ui.set_text("Ted Cruz")
        await goggles.reprocess_all()
        assert _by_id(doc, TOOLTIP_ID).text_content == "Ted Cruz"

    @pytest.mark.asyncio
    async def test_skipped_regions(self, start_page: StartPage) -> None:
        doc, _goggles = await start_page(
            "<div contenteditable='true'>Ted Cruz</div>"
            "<textarea>Ted Cruz</textarea>"
            "<script>var s = 'Ted Cruz';</script>"
            "<p id='p'>Ted Cruz</p>"
        )
        wrappers = _wrappers(doc)
        assert len(wrappers) == 1
        assert wrappers[0].parent is _by_id(doc, "p")

    @pytest.mark.asyncio
    async def test_large_page_chunked(self, start_page: StartPage) -> None:
        doc, goggles = await start_page("".join(f"<p>coffee {i}</p>" for i in range(120)))
        assert len(_wrappers(doc)) == 120
        assert goggles.budget.count == 120


class TestIdempotence:
    """Running again changes nothing."""

    @pytest.mark.asyncio
    async def test_second_pass_is_noop(self, start_page: StartPage) -> None:
        doc, goggles = await start_page("<p id='p'>Marco Rubio and Ted Cruz</p>")
        before = inner_html(_by_id(doc, "p"))
        assert await goggles.process_page() == 0
        assert inner_html(_by_id(doc, "p")) == before

    @pytest.mark.asyncio
    async def test_reprocess_all_keeps_wrappers(self, start_page: StartPage) -> None:
        doc, goggles = await start_page("<p id='p'>Marco Rubio and Ted Cruz</p>")
        before = inner_html(_by_id(doc, "p"))
        assert await goggles.reprocess_all() == 0
        assert inner_html(_by_id(doc, "p")) == before
        assert goggles.budget.count == 0

    @pytest.mark.asyncio
    async def test_custom_process_counts_replacements(self, start_page: StartPage) -> None:
        doc, goggles = await start_page("<p>nothing yet</p>")
        extra = doc.create_element("div")
        extra.text_content = "Ted Cruz and Marco Rubio"
        with goggles.watcher.suppressed():
            _body(doc).append_child(extra)
        assert await goggles.process(extra) == 2


class TestDynamicContent:
    """Content added after the initial pass."""

    @pytest.mark.asyncio
    async def test_added_content_converted(self, start_page: StartPage) -> None:
        doc, _goggles = await start_page("<p>static</p>")
        for node in parse_fragment("<p id='new'>Nancy Pelosi spoke</p>", doc):
            _body(doc).append_child(node)
        await asyncio.sleep(SETTLE)

        (wrapper,) = _wrappers(doc)
        assert wrapper.text_content == "Crazy Nancy"
        assert wrapper.parent is _by_id(doc, "new")

    @pytest.mark.asyncio
    async def test_text_change_converted(self, start_page: StartPage) -> None:
        doc, _goggles = await start_page("<p id='p'>Weather today</p>")
        text = _by_id(doc, "p").first_child
        assert isinstance(text, Text)
        text.data = "Chuck Schumer spoke"
        await asyncio.sleep(SETTLE)
        assert [w.text_content for w in _wrappers(doc)] == ["Cryin' Chuck"]

    @pytest.mark.asyncio
    async def test_no_feedback_loop(self, start_page: StartPage) -> None:
        """The pipeline's own edits never come back as mutations."""
        doc, goggles = await start_page("<p>static</p>")
        calls: list[list[MutationRecord]] = []
        handler = goggles.watcher._callback

        def spy(records: list[MutationRecord]) -> None:
            calls.append(records)
            handler(records)

        goggles.watcher._callback = spy
        for node in parse_fragment("<p>Ted Cruz met Jeb Bush</p>", doc):
            _body(doc).append_child(node)
        await asyncio.sleep(SETTLE * 2)

        assert len(calls) == 1
        assert len(_wrappers(doc)) == 2
        assert goggles.watcher.pending_count == 0

    @pytest.mark.asyncio
    async def test_reinserted_wrapper_not_reconverted(self, start_page: StartPage) -> None:
        doc, _goggles = await start_page(
            "<p id='p'>Hillary Clinton gave a speech</p><div id='other'></div>"
        )
        p = _by_id(doc, "p")
        _by_id(doc, "other").append_child(p)
        await asyncio.sleep(SETTLE)

        (wrapper,) = _wrappers(doc)
        assert wrapper.text_content == "Crooked Hillary"
        assert p.text_content == "Crooked Hillary gave a speech"

    @pytest.mark.asyncio
    async def test_duplicate_records_convert_once(self, start_page: StartPage) -> None:
        doc, goggles = await start_page("<p>static</p>")
        (node,) = parse_fragment("<p>more coffee</p>", doc)
        with goggles.watcher.suppressed():
            _body(doc).append_child(node)
        record = MutationRecord(MutationType.CHILD_LIST, _body(doc), added_nodes=(node,))

        goggles._on_mutations([record, record])
        goggles._on_mutations([record])

        assert len(_wrappers(doc)) == 1
        assert goggles.budget.count == 1

    @pytest.mark.asyncio
    async def test_typing_in_editable_ignored(self, start_page: StartPage) -> None:
        doc, _goggles = await start_page("<div id='ed' contenteditable>draft</div>")
        text = _by_id(doc, "ed").first_child
        assert isinstance(text, Text)
        text.data = "Dear Ted Cruz"
        await asyncio.sleep(SETTLE)
        assert _wrappers(doc) == []
        assert text.data == "Dear Ted Cruz"


class TestOperationBudget:
    """The per-page circuit breaker."""

    @pytest.mark.asyncio
    async def test_stops_converting_at_limit(self, start_page: StartPage) -> None:
        doc, goggles = await start_page(
            "".join(f"<p>coffee {i}</p>" for i in range(6)), max_operations=3
        )
        assert len(_wrappers(doc)) == 3
        diagnostics = goggles.diagnostics()
        assert diagnostics["budget_exhausted"] is True
        assert diagnostics["operation_count"] == 3

        for node in parse_fragment("<p>Ted Cruz</p>", doc):
            _body(doc).append_child(node)
        await asyncio.sleep(SETTLE)
        assert len(_wrappers(doc)) == 3

    @pytest.mark.asyncio
    async def test_tooltips_work_after_limit(self, start_page: StartPage) -> None:
        doc, goggles = await start_page(
            "".join(f"<p>coffee {i}</p>" for i in range(6)), max_operations=3
        )
        wrapper = _wrappers(doc)[0]
        wrapper.dispatch_event(Event("focusin"))
        await asyncio.sleep(SETTLE)
        assert goggles.tooltips is not None
        assert goggles.tooltips.session.visible
        assert wrapper.get_attribute("aria-describedby") == TOOLTIP_ID


class TestTooltips:
    """Tooltip behaviour on converted pages."""

    @pytest.mark.asyncio
    async def test_single_tooltip(self, start_page: StartPage) -> None:
        doc, goggles = await start_page("<p>Ted Cruz and Marco Rubio</p>")
        first, second = _wrappers(doc)
        first.dispatch_event(Event("focusin"))
        await asyncio.sleep(SETTLE)
        second.dispatch_event(Event("focusin"))
        await asyncio.sleep(SETTLE)

        assert len(doc.elements_with_attribute("role", "tooltip")) == 1
        assert doc.elements_with_attribute("aria-describedby") == [second]
        assert _by_id(doc, TOOLTIP_ID).text_content == "Marco Rubio"

    @pytest.mark.asyncio
    async def test_tooltip_writes_not_observed(self, start_page: StartPage) -> None:
        doc, goggles = await start_page("<p>Ted Cruz</p>")
        calls: list[list[MutationRecord]] = []
        goggles.watcher._callback = calls.append
        (wrapper,) = _wrappers(doc)
        wrapper.dispatch_event(Event("focusin"))
        await asyncio.sleep(SETTLE)
        doc.dispatch_event(Event("keydown", key="Escape"))
        await asyncio.sleep(SETTLE)
        assert calls == []


class TestLifecycle:
    """Enable, disable and shutdown."""

    @pytest.mark.asyncio
    async def test_shutdown_leaves_nothing_behind(self, start_page: StartPage) -> None:
        doc, goggles = await start_page("<p>Ted Cruz</p>")
        window = doc.default_view
        assert window is not None

        goggles.shutdown()

        assert doc.listener_count() == 0
        assert window.listener_count() == 0
        assert doc.get_element_by_id(TOOLTIP_ID) is None
        assert goggles.watcher.state is ObserverState.INACTIVE
        for node in parse_fragment("<p>Jeb Bush</p>", doc):
            _body(doc).append_child(node)
        await asyncio.sleep(SETTLE)
        assert len(_wrappers(doc)) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["process", "reprocess_all"])
    async def test_shutdown_stops_running_pass(
        self, start_page: StartPage, method: str
    ) -> None:
        doc, goggles = await start_page("<p>static</p>" * 20, chunk_size=1)
        goggles.watcher.stop()
        for p in _body(doc).child_nodes:
            if isinstance(p, Element) and p.tag == "p":
                p.text_content = "Ted Cruz spoke"

        task = asyncio.create_task(getattr(goggles, method)())
        await asyncio.sleep(0)
        goggles.shutdown()
        converted = await task

        assert converted <= 1
        assert len(_wrappers(doc)) <= 1
        assert goggles.diagnostics()["processing"] is False

    @pytest.mark.asyncio
    async def test_one_pass_at_a_time(self, start_page: StartPage) -> None:
        doc, goggles = await start_page("<p>static</p>", chunk_size=1)
        goggles.watcher.stop()
        for _ in range(5):
            for node in parse_fragment("<p>Jeb Bush</p>", doc):
                _body(doc).append_child(node)

        page = asyncio.create_task(goggles.process_page())
        await asyncio.sleep(0)
        assert goggles.diagnostics()["processing"] is True
        assert await goggles.process() == 0
        assert await goggles.reprocess_all() == 0

        assert await page == 5
        assert len(_wrappers(doc)) == 5

    @pytest.mark.asyncio
    async def test_disable_and_enable(self, start_page: StartPage) -> None:
        doc, goggles = await start_page("<p>static</p>")

        goggles.disable()
        assert goggles.watcher.state is ObserverState.PAUSED
        for node in parse_fragment("<p>Ted Cruz</p>", doc):
            _body(doc).append_child(node)
        await asyncio.sleep(SETTLE)
        assert _wrappers(doc) == []
        assert await goggles.process_page() == 0

        goggles.enable()
        assert goggles.watcher.is_active
        for node in parse_fragment("<p>Marco Rubio</p>", doc):
            _body(doc).append_child(node)
        await asyncio.sleep(SETTLE)
        assert [w.text_content for w in _wrappers(doc)] == ["Little Marco"]

    @pytest.mark.asyncio
    async def test_diagnostics(self, start_page: StartPage) -> None:
        _doc, goggles = await start_page("<p>Ted Cruz</p>")
        diagnostics = goggles.diagnostics()
        assert diagnostics["enabled"] is True
        assert diagnostics["observer_state"] == "active"
        assert diagnostics["operation_limit"] == 1000
        assert diagnostics["tooltip_visible"] is False
