"""Shared bookkeeping: which nodes are done, and how much work is left.

Both objects are owned by the ``Goggles`` composition root and injected into
the modifier, traverser and watcher, so every component sees the same view.
"""

from __future__ import annotations

import logging
import weakref
from typing import TYPE_CHECKING

from trump_goggles.errors import OperationBudgetExceeded

if TYPE_CHECKING:
    from trump_goggles.dom.nodes import Node

logger = logging.getLogger(__name__)

DEFAULT_MAX_OPERATIONS = 1000


class ProcessedNodes:
    """Weak set of nodes that must not be converted again.

    Holds wrapper elements created by the modifier and text nodes the
    plain-mode pass already rewrote.  Entries vanish with their nodes.
    """

    def __init__(self) -> None:
        self._nodes: weakref.WeakSet[Node] = weakref.WeakSet()

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node: object) -> bool:
        try:
            return node in self._nodes
        except TypeError:
            return False

    def mark(self, node: Node) -> None:
        self._nodes.add(node)

    def is_processed(self, node: Node | None) -> bool:
        return node is not None and node in self

    def discard(self, node: Node) -> None:
        self._nodes.discard(node)

    def clear(self) -> None:
        self._nodes.clear()


class OperationBudget:
    """Monotonic per-page operation counter with a fixed ceiling.

    Once exhausted it stays exhausted until ``reset()``; the trip is
    logged once.
    """

    def __init__(self, limit: int = DEFAULT_MAX_OPERATIONS) -> None:
        if limit <= 0:
            msg = f"limit must be positive, got {limit}"
            raise ValueError(msg)
        self._limit = limit
        self._count = 0
        self._tripped = False

    def __repr__(self) -> str:
        return f"OperationBudget({self._count}/{self._limit})"

    @property
    def count(self) -> int:
        return self._count

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def remaining(self) -> int:
        return max(0, self._limit - self._count)

    @property
    def exhausted(self) -> bool:
        return self._count >= self._limit

    def record(self, amount: int = 1) -> None:
        """Count *amount* operations; raises once the ceiling is passed."""
        if self.exhausted:
            self._trip()
            raise OperationBudgetExceeded(self._limit)
        self._count = min(self._limit, self._count + amount)
        if self.exhausted:
            self._trip()

    def check(self) -> bool:
        """``True`` while operations remain; logs the trip the first time it fails."""
        if self.exhausted:
            self._trip()
            return False
        return True

    def try_consume(self, amount: int = 1) -> bool:
        """``record()`` that answers instead of raising."""
        try:
            self.record(amount)
        except OperationBudgetExceeded:
            return False
        return True

    def reset(self) -> None:
        self._count = 0
        self._tripped = False

    def _trip(self) -> None:
        if self._tripped:
            return
        self._tripped = True
        logger.warning(
            "Operation budget of %d reached; no further conversions on this page",
            self._limit,
        )
