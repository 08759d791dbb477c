"""Interactive control of the active color range."""

from __future__ import annotations

import enum
import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Iterable, Mapping, Protocol

from dgview.colors import (
  DIVERGING_DEFAULT_MAX,
  EXCLUDED_RESIDUES,
  ONE_SIDED_DEFAULT_MAX,
  RANGE_STEP,
  ColorRange,
  RangeError,
  estimate_range,
  get_color_map,
  parse_range,
)
from dgview.scalars import Mode, ResidueKey, ScalarTable
from dgview.theme import BASIC_THEME_NAME, THEME_NAME

if TYPE_CHECKING:
  from dgview.viewer import View

logger = logging.getLogger(__name__)


class ControllerState(enum.Enum):
  IDLE = "idle"
  EDITING = "editing"


class LegendSink(Protocol):
  def refresh(self) -> None: ...


def format_bound(value: float) -> str:
  """Render a bound the way a numeric input shows it ("25", "-12.5")."""
  value = float(value)
  return str(int(value)) if value.is_integer() else repr(value)


class RangeController:
  """Own the active (vmin, vmax) and the color map derived from it.

  The range starts at the estimate for the table and mode; that estimate is
  remembered for reset. Each successful apply replaces the color map
  wholesale and re-themes the structure currently in the viewer hierarchy.
  Invalid input is ignored and only logged.

  Args:
      table: Per-residue scalar table of the loaded structure.
      mode: Mapping policy chosen at load.
      view: Viewer whose structures get re-themed. May be None for headless use.
      excluded: Residue names always colored gray.
      step: Rounding step of the estimated range.
      one_sided_default: Fallback upper bound for one-sided mode.
      diverging_default: Fallback half-width for diverging mode.

  """

  def __init__(
    self,
    table: ScalarTable,
    mode: Mode,
    *,
    view: View | None = None,
    excluded: Iterable[str] = EXCLUDED_RESIDUES,
    step: float = RANGE_STEP,
    one_sided_default: float = ONE_SIDED_DEFAULT_MAX,
    diverging_default: float = DIVERGING_DEFAULT_MAX,
  ) -> None:
    self.table = table
    self.mode = mode
    self.view = view
    self.legend: LegendSink | None = None
    self._excluded = frozenset(excluded)

    self.original_range = estimate_range(
      table,
      mode,
      step=step,
      one_sided_default=one_sided_default,
      diverging_default=diverging_default,
    )
    self.active_range = self.original_range
    self._color_map = get_color_map(table, self.active_range, mode, excluded=self._excluded)
    self.state = ControllerState.IDLE
    self.input_vmin = format_bound(self.original_range.vmin)
    self.input_vmax = format_bound(self.original_range.vmax)
    self._generation = 0

    logger.info("Initial color range for %s mode: %s to %s", mode.value, *self.original_range)

  @property
  def color_map(self) -> Mapping[ResidueKey, int]:
    return MappingProxyType(self._color_map)

  def focus(self) -> None:
    """Enter editing; nothing is recomputed."""
    self.state = ControllerState.EDITING

  def edit(self, vmin: object = None, vmax: object = None) -> None:
    """Change the pending input text of either bound."""
    self.focus()
    if vmin is not None:
      self.input_vmin = str(vmin)
    if vmax is not None:
      self.input_vmax = str(vmax)

  async def apply(self, vmin: object = None, vmax: object = None) -> bool:
    """Apply the pending inputs, or the given bounds.

    Returns:
        True if the range was applied, False if the inputs were invalid.

    """
    if vmin is not None or vmax is not None:
      self.edit(vmin, vmax)
    try:
      color_range = parse_range(self.input_vmin, self.input_vmax)
    except RangeError as e:
      logger.warning("Invalid vmin/vmax values: %s", e)
      return False

    await self._apply_range(color_range)
    return True

  async def reset(self) -> bool:
    """Restore the range estimated at load and apply it."""
    self.input_vmin = format_bound(self.original_range.vmin)
    self.input_vmax = format_bound(self.original_range.vmax)
    return await self.apply()

  async def _apply_range(self, color_range: ColorRange) -> None:
    logger.info("Applying new color range: %s to %s", *color_range)
    self._generation += 1
    generation = self._generation

    self.active_range = color_range
    self._color_map = get_color_map(self.table, color_range, self.mode, excluded=self._excluded)
    self.state = ControllerState.IDLE

    await self._retheme()

    # A later apply may have completed while this one was re-theming
    if generation == self._generation and self.legend is not None:
      self.legend.refresh()

  async def _retheme(self) -> None:
    """Toggle the basic theme and back; components only re-evaluate on a strategy change."""
    if self.view is None:
      return
    structures = self.view.hierarchy.structures
    if not structures:
      return
    components = structures[0].components
    try:
      await self.view.update_representations_theme(components, color=BASIC_THEME_NAME)
      await self.view.update_representations_theme(components, color=THEME_NAME)
    except Exception:
      logger.exception("Failed to update theme")
