"""Hover and focus tooltips that reveal the original text of a conversion."""

from trump_goggles.tooltip.capabilities import BrowserCapabilities, DefaultCapabilities
from trump_goggles.tooltip.manager import TooltipManager, TooltipSession
from trump_goggles.tooltip.positioning import Placement, Position, compute_position
from trump_goggles.tooltip.ui import TOOLTIP_ID, TooltipUI, estimate_size

__all__ = [
    "TOOLTIP_ID",
    "BrowserCapabilities",
    "DefaultCapabilities",
    "Placement",
    "Position",
    "TooltipManager",
    "TooltipSession",
    "TooltipUI",
    "compute_position",
    "estimate_size",
]
