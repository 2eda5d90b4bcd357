"""Tests for the debounce and throttle wrappers."""

from __future__ import annotations

import asyncio

import pytest

from trump_goggles.timing import Debouncer, Throttler


class TestDebouncer:
    """Trailing-edge debounce."""

    def test_without_loop_calls_immediately(self) -> None:
        calls: list[int] = []
        debounced = Debouncer(calls.append, 50)
        debounced(1)
        debounced(2)
        assert calls == [1, 2]
        assert not debounced.pending

    @pytest.mark.asyncio
    async def test_collapses_to_last_call(self) -> None:
        calls: list[int] = []
        debounced = Debouncer(calls.append, 10)
        debounced(1)
        debounced(2)
        debounced(3)
        assert debounced.pending
        await asyncio.sleep(0.05)
        assert calls == [3]

    @pytest.mark.asyncio
    async def test_cancel(self) -> None:
        calls: list[int] = []
        debounced = Debouncer(calls.append, 10)
        debounced(1)
        debounced.cancel()
        await asyncio.sleep(0.05)
        assert calls == []

    @pytest.mark.asyncio
    async def test_flush(self) -> None:
        calls: list[int] = []
        debounced = Debouncer(calls.append, 1000)
        debounced(7)
        debounced.flush()
        assert calls == [7]
        assert not debounced.pending

    def test_errors_are_contained(self) -> None:
        def broken(_value: int) -> None:
            raise RuntimeError("handler failure")

        Debouncer(broken, 10)(1)


class TestThrottler:
    """Leading call plus one trailing call per window."""

    def test_without_loop_calls_every_time(self) -> None:
        calls: list[int] = []
        throttled = Throttler(calls.append, 1000)
        throttled(1)
        throttled(2)
        assert calls == [1, 2]

    @pytest.mark.asyncio
    async def test_leading_and_trailing(self) -> None:
        calls: list[int] = []
        throttled = Throttler(calls.append, 20)
        throttled(1)
        throttled(2)
        throttled(3)
        assert calls == [1]
        assert throttled.pending
        await asyncio.sleep(0.06)
        assert calls == [1, 3]

    @pytest.mark.asyncio
    async def test_cancel_drops_trailing(self) -> None:
        calls: list[int] = []
        throttled = Throttler(calls.append, 20)
        throttled(1)
        throttled(2)
        throttled.cancel()
        await asyncio.sleep(0.06)
        assert calls == [1]
        throttled(3)
        assert calls == [1, 3]
