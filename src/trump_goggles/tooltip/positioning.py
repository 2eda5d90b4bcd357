"""Viewport-aware tooltip placement.

Pure geometry: given the target's box, the tooltip's size and the viewport,
return where the tooltip's top-left corner goes.  Candidates are tried in a
fixed order (above, below, right, left) and the first that fits entirely
inside the viewport wins; otherwise the above-placement is clamped into the
viewport.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from trump_goggles.dom.geometry import Rect, Size


class Placement(StrEnum):
    ABOVE = "above"
    BELOW = "below"
    RIGHT = "right"
    LEFT = "left"
    CLAMPED = "clamped"


PLACEMENT_ORDER: tuple[Placement, ...] = (
    Placement.ABOVE,
    Placement.BELOW,
    Placement.RIGHT,
    Placement.LEFT,
)


@dataclass(frozen=True, slots=True)
class Position:
    left: float
    top: float
    placement: Placement


def _candidate(placement: Placement, target: Rect, size: Size, offset: float) -> tuple[float, float]:
    match placement:
        case Placement.ABOVE:
            return target.center_x - size.width / 2, target.top - size.height - offset
        case Placement.BELOW:
            return target.center_x - size.width / 2, target.bottom + offset
        case Placement.RIGHT:
            return target.right + offset, target.center_y - size.height / 2
        case Placement.LEFT:
            return target.left - size.width - offset, target.center_y - size.height / 2
    msg = f"no candidate for {placement}"
    raise ValueError(msg)


def _fits(left: float, top: float, size: Size, viewport: Rect) -> bool:
    return (
        left >= viewport.left
        and top >= viewport.top
        and left + size.width <= viewport.right
        and top + size.height <= viewport.bottom
    )


def _clamp(value: float, low: float, high: float) -> float:
    # a box larger than the viewport pins to the low edge
    return max(low, min(value, high))


def compute_position(
    target_rect: Rect,
    tooltip_size: Size,
    viewport: Rect,
    offset: float = 8,
) -> Position:
    """Place a *tooltip_size* box next to *target_rect* inside *viewport*."""
    for placement in PLACEMENT_ORDER:
        left, top = _candidate(placement, target_rect, tooltip_size, offset)
        if _fits(left, top, tooltip_size, viewport):
            return Position(left, top, placement)

    left, top = _candidate(Placement.ABOVE, target_rect, tooltip_size, offset)
    return Position(
        _clamp(left, viewport.left, viewport.right - tooltip_size.width),
        _clamp(top, viewport.top, viewport.bottom - tooltip_size.height),
        Placement.CLAMPED,
    )
