"""Per-structure ΔG overlay session.

A session owns everything derived from one loaded structure: the scalar
table, the range controller with its color map, the theme registered with
the viewer and the legend. Closing the session drops all of it together.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Sequence

from dgview.config import nest_config
from dgview.controller import RangeController
from dgview.legend import RangeLegend
from dgview.scalars import Mode, extract_scalars
from dgview.structure import StructureRef
from dgview.theme import THEME_NAME, ThemeAdapter

if TYPE_CHECKING:
  from dgview.viewer import View

logger = logging.getLogger(__name__)


class ScalarOverlay:
  """Color a viewer's structure by the per-residue scalar in its B-factor column.

  Args:
      view: The viewer the structure is loaded into.
      content: Raw PDB text carrying the scalar. Empty content gives an inert
          overlay: nothing is colored and no legend is shown.
      mode: Mapping policy, fixed for the lifetime of the session.
      **config: Flat config overrides (see ``dgview.config.nest_config``).

  """

  def __init__(self, view: View, content: str, mode: Mode = Mode.ONE_SIDED, **config: Any) -> None:
    self.view = view
    self.mode = mode
    self.config = nest_config(**config)
    range_config = self.config["range"]

    self.table = extract_scalars(content)
    self.controller = RangeController(
      self.table,
      mode,
      view=view,
      excluded=self.config["colors"]["excluded_residues"],
      step=range_config["step"],
      one_sided_default=range_config["one_sided_default_max"],
      diverging_default=range_config["diverging_default_max"],
    )
    self.adapter = ThemeAdapter(lambda: self.controller.color_map, mode)
    self.legend: RangeLegend | None = None
    self.structure: StructureRef | None = None
    self._poll_task: asyncio.Task[None] | None = None

  async def open(self, files: Sequence[tuple[str, str, str | None]]) -> None:
    """Register the theme, load the files and start waiting for the structure.

    Args:
        files: (content, format, label) for each file to load.

    """
    self.view.themes.add(self.adapter.provider())
    queued = [await self.view.load_structure(data, fmt, label=label) for data, fmt, label in files]
    if not any(queued):
      logger.warning("No structure could be loaded; overlay stays inactive.")
      return
    self._poll_task = asyncio.ensure_future(self._wait_for_structure())

  @property
  def ready(self) -> bool:
    return self.structure is not None

  async def wait_ready(self) -> None:
    """Wait until the structure pass has run (or the session was closed)."""
    if self._poll_task is not None:
      await asyncio.wait({self._poll_task})

  async def _wait_for_structure(self) -> None:
    interval = self.config["polling"]["interval"]
    while True:
      await asyncio.sleep(interval)
      structures = self.view.hierarchy.structures
      if structures:
        break
    try:
      await self._on_structure_ready(structures[0])
    except Exception:
      logger.exception("Structure pass failed for %s", structures[0].data.label)

  async def _on_structure_ready(self, ref: StructureRef) -> None:
    self.structure = ref
    self.adapter.attach_metadata(ref.data)

    if not self.controller.color_map:
      logger.info("No residues carry a scalar value; overlay stays inactive.")
      return

    try:
      await self.view.update_representations_theme(ref.components, color=THEME_NAME)
    except Exception:
      logger.exception("Failed to apply the %s theme", THEME_NAME)

    display_config = self.config["display"]
    self.legend = RangeLegend(
      self.controller,
      collapsed=display_config["panel_collapsed"],
      step=self.config["range"]["step"],
    )
    self.controller.legend = self.legend
    if display_config["legend"]:
      self.legend.show()

  async def apply(self, vmin: object = None, vmax: object = None) -> bool:
    return await self.controller.apply(vmin, vmax)

  async def reset(self) -> bool:
    return await self.controller.reset()

  def close(self) -> None:
    """Stop polling, unregister the theme and drop the derived state."""
    if self._poll_task is not None and not self._poll_task.done():
      self._poll_task.cancel()
    self.view.themes.remove(THEME_NAME)
    self.controller.legend = None
    self.controller.view = None
    self.legend = None
    self.structure = None
