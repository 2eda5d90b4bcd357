"""Shared pytest fixtures for Trump Goggles tests."""

from __future__ import annotations

import pytest
from dotenv import load_dotenv

from trump_goggles.config import ObserverConfig, ProcessingConfig, Settings, TooltipConfig
from trump_goggles.dom.nodes import Document
from trump_goggles.dom.parser import parse_html
from trump_goggles.processed import ProcessedNodes
from trump_goggles.text_processor import TextProcessor

load_dotenv()


@pytest.fixture
def settings() -> Settings:
    """Isolated settings with short timers so async tests stay fast."""
    return Settings(  # type: ignore[call-arg]
        _env_file=None,
        processing=ProcessingConfig(chunk_size=10, time_slice_ms=5),
        observer=ObserverConfig(debounce_ms=1, throttle_ms=1),
        tooltip=TooltipConfig(show_delay_ms=1, pointer_throttle_ms=1, scroll_throttle_ms=1),
    )


@pytest.fixture
def document() -> Document:
    return parse_html(
        "<html><head><title>News</title></head>"
        "<body><p id='lead'>Hillary Clinton gave a speech</p></body></html>"
    )


@pytest.fixture
def processed() -> ProcessedNodes:
    return ProcessedNodes()


@pytest.fixture
def processor() -> TextProcessor:
    return TextProcessor()
