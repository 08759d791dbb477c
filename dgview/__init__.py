"""Color protein structures by per-residue ΔG_op / ΔΔG_op values."""

from dgview.colors import ColorRange, estimate_range, get_color_map
from dgview.controller import RangeController
from dgview.overlay import ScalarOverlay
from dgview.scalars import Mode, ResidueKey, detect_mode, extract_scalars, structure_format
from dgview.theme import ThemeAdapter
from dgview.viewer import View

__all__ = [
  "ColorRange",
  "Mode",
  "RangeController",
  "ResidueKey",
  "ScalarOverlay",
  "ThemeAdapter",
  "View",
  "detect_mode",
  "estimate_range",
  "extract_scalars",
  "get_color_map",
  "structure_format",
]
