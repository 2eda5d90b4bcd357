"""Mutation records and an asyncio-delivered MutationObserver.

Semantics follow the browser observer closely enough for the pipeline:

- records are queued only to observers registered *at the time of the
  mutation*; a disconnected observer never sees writes made while it was
  disconnected;
- ``disconnect()`` drops records that were queued but not yet delivered;
- delivery happens on the running asyncio loop via ``call_soon`` (the
  microtask analogue), batching every record queued before it runs.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from trump_goggles.dom.nodes import Node

logger = logging.getLogger(__name__)


class MutationType(StrEnum):
    CHILD_LIST = "childList"
    CHARACTER_DATA = "characterData"
    ATTRIBUTES = "attributes"


@dataclass(frozen=True, slots=True)
class MutationRecord:
    """One observed change.

    For ``childList`` records *target* is the parent whose children
    changed; for ``characterData`` it is the text node; for ``attributes``
    the element.
    """

    type: MutationType
    target: Node
    added_nodes: tuple[Node, ...] = ()
    removed_nodes: tuple[Node, ...] = ()
    previous_sibling: Node | None = None
    next_sibling: Node | None = None
    attribute_name: str | None = None
    old_value: str | None = None


@dataclass(frozen=True, slots=True)
class MutationObserverInit:
    child_list: bool = True
    subtree: bool = True
    character_data: bool = True
    attributes: bool = False
    character_data_old_value: bool = False
    attribute_old_value: bool = False

    def accepts(self, record_type: MutationType) -> bool:
        if record_type is MutationType.CHILD_LIST:
            return self.child_list
        if record_type is MutationType.CHARACTER_DATA:
            return self.character_data
        return self.attributes


MutationCallback: TypeAlias = 'Callable[[list[MutationRecord], "MutationObserver"], Any]'


class MutationObserver:
    """Observer over one or more targets of a single document."""

    def __init__(self, callback: MutationCallback) -> None:
        self._callback = callback
        self._queue: list[MutationRecord] = []
        self._registrations: dict[int, tuple[Node, MutationObserverInit]] = {}
        self._delivery: asyncio.Handle | None = None

    @property
    def is_observing(self) -> bool:
        return bool(self._registrations)

    def observe(self, target: Node, options: MutationObserverInit | None = None) -> None:
        """Start (or re-configure) observation of *target*."""
        init = options or MutationObserverInit()
        if not (init.child_list or init.character_data or init.attributes):
            msg = "observe() needs at least one of child_list, character_data, attributes"
            raise ValueError(msg)
        self._registrations[id(target)] = (target, init)
        target.owner_document._register_observer(self)

    def disconnect(self) -> None:
        """Stop observing everything and drop undelivered records."""
        for target, _init in self._registrations.values():
            target.owner_document._unregister_observer(self)
        self._registrations.clear()
        self._queue.clear()
        if self._delivery is not None:
            self._delivery.cancel()
            self._delivery = None

    def take_records(self) -> list[MutationRecord]:
        records, self._queue = self._queue, []
        return records

    # ------------------------------------------------------------------
    # Called by the document
    # ------------------------------------------------------------------

    def _interested_in(self, record: MutationRecord) -> MutationObserverInit | None:
        for target, init in self._registrations.values():
            if not init.accepts(record.type):
                continue
            if record.target is target or (
                init.subtree and target.contains(record.target)
            ):
                return init
        return None

    def _enqueue(self, record: MutationRecord) -> None:
        init = self._interested_in(record)
        if init is None:
            return
        if record.type is MutationType.CHARACTER_DATA and not init.character_data_old_value:
            record = _without_old_value(record)
        elif record.type is MutationType.ATTRIBUTES and not init.attribute_old_value:
            record = _without_old_value(record)
        self._queue.append(record)
        self._schedule_delivery()

    def _schedule_delivery(self) -> None:
        if self._delivery is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: records wait for take_records() or the next scheduled delivery.
            return
        self._delivery = loop.call_soon(self._deliver)

    def _deliver(self) -> None:
        self._delivery = None
        records = self.take_records()
        if not records:
            return
        try:
            self._callback(records, self)
        except Exception:
            logger.exception("MutationObserver callback failed")


def _without_old_value(record: MutationRecord) -> MutationRecord:
    if record.old_value is None:
        return record
    return MutationRecord(
        type=record.type,
        target=record.target,
        added_nodes=record.added_nodes,
        removed_nodes=record.removed_nodes,
        previous_sibling=record.previous_sibling,
        next_sibling=record.next_sibling,
        attribute_name=record.attribute_name,
        old_value=None,
    )
