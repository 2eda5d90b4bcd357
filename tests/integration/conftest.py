"""Integration test configuration.

Provides a factory that parses a page, starts the full pipeline on it and
shuts every started instance down after the test.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeAlias

import pytest_asyncio

from trump_goggles.content import Goggles
from trump_goggles.dom.parser import parse_html

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable

    from trump_goggles.config import Settings
    from trump_goggles.dom.nodes import Document

StartPage: TypeAlias = 'Callable[..., Awaitable[tuple[Document, Goggles]]]'


@pytest_asyncio.fixture
async def start_page(settings: Settings) -> AsyncGenerator[StartPage, None]:
    """``await start_page(html, **processing_overrides)`` -> (document, goggles)."""
    started: list[Goggles] = []

    async def _start(html: str, **processing: object) -> tuple[Document, Goggles]:
        config = settings
        if processing:
            config = settings.model_copy(
                update={"processing": settings.processing.model_copy(update=processing)}
            )
        document = parse_html(html, viewport=(1000, 800))
        goggles = Goggles(config)
        started.append(goggles)
        await goggles.start(document)
        return document, goggles

    yield _start

    for goggles in started:
        goggles.shutdown()
