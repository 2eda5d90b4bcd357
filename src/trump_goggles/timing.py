"""Debounce and throttle wrappers driven by the asyncio loop.

Both are callable objects, so the exact wrapper registered as an event
listener can later be removed, and both expose ``cancel()`` so an owner can
drop pending work on shutdown.  Without a running loop the wrapped function
is called synchronously.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


def _loop_or_none() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def _safe_call(func: Callable[..., Any], args: tuple[Any, ...]) -> None:
    try:
        func(*args)
    except Exception:
        logger.exception("Deferred call to %r failed", func)


class Debouncer:
    """Call *func* once calls have stopped for *wait_ms*, with the last arguments."""

    def __init__(self, func: Callable[..., Any], wait_ms: float) -> None:
        self._func = func
        self._wait = wait_ms / 1000
        self._handle: asyncio.TimerHandle | None = None
        self._args: tuple[Any, ...] = ()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: Any) -> None:
        self._args = args
        loop = _loop_or_none()
        if loop is None:
            self._fire()
            return
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self._wait, self._fire)

    def _fire(self) -> None:
        self._handle = None
        args, self._args = self._args, ()
        _safe_call(self._func, args)

    def flush(self) -> None:
        """Run a pending call now."""
        if self._handle is not None:
            self._handle.cancel()
            self._fire()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._args = ()


class Throttler:
    """Call *func* at most once per *interval_ms*.

    The first call runs immediately.  Calls inside the window collapse into
    one trailing call, with the latest arguments, at the end of the window.
    """

    def __init__(self, func: Callable[..., Any], interval_ms: float) -> None:
        self._func = func
        self._interval = interval_ms / 1000
        self._last = float("-inf")
        self._handle: asyncio.TimerHandle | None = None
        self._args: tuple[Any, ...] = ()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: Any) -> None:
        now = time.monotonic()
        remaining = self._interval - (now - self._last)
        loop = _loop_or_none()
        if remaining <= 0 or loop is None:
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None
            self._last = now
            _safe_call(self._func, args)
            return
        self._args = args
        if self._handle is None:
            self._handle = loop.call_later(remaining, self._trailing)

    def _trailing(self) -> None:
        self._handle = None
        self._last = time.monotonic()
        args, self._args = self._args, ()
        _safe_call(self._func, args)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._args = ()
        self._last = float("-inf")
