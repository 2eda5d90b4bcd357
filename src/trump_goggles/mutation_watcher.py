"""Batched, paced observation of dynamic page content.

The watcher wraps a ``MutationObserver`` and adds what the pipeline needs on
top of raw records:

- buffering, then delivery in batches of ``batch_size`` after a debounce,
  throttled to one batch per ``throttle_ms``; an overfull buffer is
  processed at once;
- filtering of records the pipeline caused or cannot use;
- a disconnect/reconnect bracket around every write to the tree, so the
  pipeline never observes its own edits.

State machine::

    INACTIVE --start--> ACTIVE --pause--> PAUSED --resume--> ACTIVE
        ^                  |                 |
        +------stop--------+-------stop------+
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from enum import StrEnum
from typing import Any, TypeAlias

from trump_goggles.config import ObserverConfig
from trump_goggles.dom.mutations import (
    MutationObserver,
    MutationObserverInit,
    MutationRecord,
    MutationType,
)
from trump_goggles.dom.nodes import Element, Node
from trump_goggles.errors import ObserverCallbackError
from trump_goggles.processed import ProcessedNodes

logger = logging.getLogger(__name__)

BatchCallback: TypeAlias = 'Callable[[list[MutationRecord]], Any]'
RecordFilter: TypeAlias = 'Callable[[MutationRecord], bool]'

KILL_SWITCH_ID = "trump-goggles-kill-switch"


class ObserverState(StrEnum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    PAUSED = "paused"


class MutationWatcher:
    """Feeds filtered mutation batches to *callback*.

    Args:
        callback: Receives each non-empty filtered batch.  Runs with the
            observer disconnected.
        processed: Records targeting nodes in this set are dropped.
        config: Batching and pacing; defaults to ``ObserverConfig()``.
        process_filter: Optional extra predicate; records it rejects are
            dropped.
        kill_switch_id: Records targeting an element with this id are
            dropped.
    """

    def __init__(
        self,
        callback: BatchCallback,
        processed: ProcessedNodes,
        config: ObserverConfig | None = None,
        *,
        process_filter: RecordFilter | None = None,
        kill_switch_id: str | None = KILL_SWITCH_ID,
    ) -> None:
        self._callback = callback
        self._processed = processed
        self._config = config or ObserverConfig()
        self._process_filter = process_filter
        self._kill_switch_id = kill_switch_id

        self._state = ObserverState.INACTIVE
        self._observer: MutationObserver | None = None
        self._target: Node | None = None
        self._init = MutationObserverInit()

        self._buffer: list[MutationRecord] = []
        self._timer: asyncio.TimerHandle | None = None
        self._last_run = float("-inf")
        self._processing = False
        self._suppress_depth = 0

    # -----------------------------------------------------------------------
    # Introspection
    # -----------------------------------------------------------------------

    @property
    def state(self) -> ObserverState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is ObserverState.ACTIVE

    @property
    def pending_count(self) -> int:
        return len(self._buffer)

    @property
    def options(self) -> ObserverConfig:
        return self._config

    @property
    def is_connected(self) -> bool:
        return self._observer is not None and self._observer.is_observing

    def update_options(self, **changes: Any) -> ObserverConfig:
        """Merge *changes* into the pacing options (validated).

        ``process_filter`` may be passed here as well.
        """
        if "process_filter" in changes:
            self._process_filter = changes.pop("process_filter")
        if changes:
            self._config = ObserverConfig.model_validate(
                {**self._config.model_dump(), **changes}
            )
        logger.debug("Watcher options now %s", self._config)
        return self._config

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def start(self, target: Node | None, init: MutationObserverInit | None = None) -> bool:
        """Observe *target*.  Already active is success."""
        if self._state is ObserverState.ACTIVE:
            return True
        if target is None:
            logger.warning("Cannot start watcher without a target")
            return False
        self._target = target
        if init is not None:
            self._init = init
        if self._observer is None:
            self._observer = MutationObserver(self._on_records)
        try:
            self._connect()
        except Exception:
            logger.exception("Error starting mutation watcher")
            return False
        self._state = ObserverState.ACTIVE
        logger.debug("Mutation watcher started on %r", target)
        return True

    def stop(self) -> None:
        """Disconnect, cancel pending work and drop buffered records."""
        self._disconnect()
        self._cancel_timer()
        self._buffer.clear()
        self._processing = False
        self._state = ObserverState.INACTIVE
        logger.debug("Mutation watcher stopped")

    def pause(self) -> bool:
        if self._state is not ObserverState.ACTIVE:
            return False
        self._collect_pending()
        self._disconnect()
        self._cancel_timer()
        self._state = ObserverState.PAUSED
        logger.debug("Mutation watcher paused with %d pending", len(self._buffer))
        return True

    def resume(self) -> bool:
        if self._state is not ObserverState.PAUSED or self._target is None:
            return False
        try:
            if self._suppress_depth == 0:
                self._connect()
        except Exception:
            logger.exception("Error resuming mutation watcher")
            return False
        self._state = ObserverState.ACTIVE
        if self._buffer:
            self._schedule()
        return True

    def flush(self) -> None:
        """Process everything buffered now, batch after batch."""
        self._collect_pending()
        self._cancel_timer()
        while self._buffer and not self._processing:
            before = len(self._buffer)
            self._process_batch()
            if len(self._buffer) >= before:
                break

    # -----------------------------------------------------------------------
    # Feedback-loop bracket
    # -----------------------------------------------------------------------

    @contextmanager
    def suppressed(self) -> Iterator[None]:
        """Disconnect for the duration of the block, then reconnect.

        Re-entrant: only the outermost block disconnects and reconnects.
        Records that arrived before the block are kept.
        """
        outermost = self._suppress_depth == 0
        if outermost:
            self._collect_pending()
            self._disconnect()
        self._suppress_depth += 1
        try:
            yield
        finally:
            self._suppress_depth -= 1
            if outermost and self._state is ObserverState.ACTIVE and self._target is not None:
                try:
                    self._connect()
                except Exception:
                    logger.exception("Error reconnecting mutation watcher")

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    def _connect(self) -> None:
        if self._observer is not None and self._target is not None:
            self._observer.observe(self._target, self._init)

    def _disconnect(self) -> None:
        if self._observer is not None:
            self._observer.disconnect()

    def _collect_pending(self) -> None:
        """Move records the observer queued but has not delivered yet."""
        if self._observer is None or self._state is not ObserverState.ACTIVE:
            return
        records = self._observer.take_records()
        if records:
            self._buffer.extend(records)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_records(self, records: list[MutationRecord], _observer: MutationObserver) -> None:
        if self._state is not ObserverState.ACTIVE:
            return
        self._buffer.extend(records)
        if len(self._buffer) > self._config.max_buffer_size:
            logger.debug("Mutation buffer at %d, processing now", len(self._buffer))
            self._cancel_timer()
            self._process_batch()
            return
        self._schedule()

    def _schedule(self) -> None:
        if self._timer is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        since_last = (time.monotonic() - self._last_run) * 1000
        delay_ms = self._config.debounce_ms
        if since_last < self._config.throttle_ms:
            delay_ms += self._config.throttle_ms - since_last
        self._timer = loop.call_later(delay_ms / 1000, self._process_batch)

    def _accept(self, record: MutationRecord) -> bool:
        if record.type is MutationType.ATTRIBUTES:
            return False
        if self._processed.is_processed(record.target):
            return False
        if (
            self._kill_switch_id
            and isinstance(record.target, Element)
            and record.target.id == self._kill_switch_id
        ):
            return False
        if self._process_filter is not None and not self._process_filter(record):
            return False
        return True

    def _process_batch(self) -> None:
        self._timer = None
        if not self._buffer or self._processing:
            return
        if self._state is not ObserverState.ACTIVE:
            return

        self._processing = True
        self._last_run = time.monotonic()
        size = self._config.batch_size
        batch, self._buffer = self._buffer[:size], self._buffer[size:]
        try:
            records = [r for r in batch if self._accept(r)]
            if records:
                logger.debug("Processing %d of %d mutation records", len(records), len(batch))
                with self.suppressed():
                    self._callback(records)
        except Exception as exc:
            err = ObserverCallbackError(f"batch of {len(batch)} records failed: {exc}")
            logger.exception("Error processing mutations: %s", err)
        finally:
            self._processing = False
            if self._buffer and self._state is ObserverState.ACTIVE:
                self._schedule()
