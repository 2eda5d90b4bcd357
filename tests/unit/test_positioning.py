"""Tests for viewport-aware tooltip placement."""

from __future__ import annotations

from trump_goggles.dom.geometry import Rect, Size
from trump_goggles.tooltip.positioning import Placement, Position, compute_position

VIEWPORT = Rect(0, 0, 1000, 800)
TOOLTIP = Size(100, 40)


class TestComputePosition:
    """Placement order: above, below, right, left, then clamp."""

    def test_above_when_room(self) -> None:
        pos = compute_position(Rect(450, 400, 100, 20), TOOLTIP, VIEWPORT)
        assert pos == Position(450, 352, Placement.ABOVE)

    def test_below_near_top_edge(self) -> None:
        pos = compute_position(Rect(450, 10, 100, 20), TOOLTIP, VIEWPORT)
        assert pos == Position(450, 38, Placement.BELOW)

    def test_right_in_top_left_corner(self) -> None:
        pos = compute_position(Rect(0, 10, 40, 20), TOOLTIP, VIEWPORT)
        assert pos == Position(48, 0, Placement.RIGHT)

    def test_left_in_top_right_corner(self) -> None:
        pos = compute_position(Rect(960, 10, 40, 20), TOOLTIP, VIEWPORT)
        assert pos == Position(852, 0, Placement.LEFT)

    def test_clamped_when_nothing_fits(self) -> None:
        pos = compute_position(Rect(450, 400, 100, 20), Size(900, 700), VIEWPORT)
        assert pos == Position(50, 0, Placement.CLAMPED)

    def test_oversized_tooltip_pins_to_origin(self) -> None:
        pos = compute_position(Rect(450, 400, 100, 20), Size(1200, 900), VIEWPORT)
        assert pos == Position(0, 0, Placement.CLAMPED)

    def test_custom_offset(self) -> None:
        pos = compute_position(Rect(450, 400, 100, 20), TOOLTIP, VIEWPORT, offset=0)
        assert pos.top == 360

    def test_result_inside_viewport(self) -> None:
        for target in (
            Rect(0, 0, 10, 10),
            Rect(990, 790, 10, 10),
            Rect(500, 0, 10, 800),
        ):
            pos = compute_position(target, TOOLTIP, VIEWPORT)
            assert VIEWPORT.contains(Rect(pos.left, pos.top, TOOLTIP.width, TOOLTIP.height))
