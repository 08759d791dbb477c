"""Legend and range control panel shown next to the viewer."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Coroutine

import ipywidgets as W
from IPython.display import display

from dgview.colors import GREEN, ORANGE, PURPLE, RANGE_STEP, WHITE, pack_rgb
from dgview.scalars import Mode

if TYPE_CHECKING:
  from dgview.controller import RangeController

NOTE = "Gray: Proline / No data"
PANEL_TITLE = "ΔG Color Settings"

_STYLE = """
<style>
  .dg-legend {
    display: inline-block; background: rgba(255,255,255,0.95); padding: 8px 10px;
    border-radius: 6px; box-shadow: 0 1px 6px rgba(0,0,0,0.15); border: 1px solid rgba(0,0,0,0.1);
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
    font-size: 10px; min-width: 140px; margin: 4px;
  }
  .dg-legend-title { font-weight: 600; margin-bottom: 6px; font-size: 11px; color: #000; }
  .dg-colorbar { width: 120px; height: 10px; border-radius: 3px; border: 1px solid rgba(0,0,0,0.1); }
  .dg-legend-labels { display: flex; justify-content: space-between; font-size: 9px; margin-top: 3px; color: #333; }
  .dg-legend-note { margin-top: 5px; font-size: 8px; color: #666; }
</style>
"""


def to_hex(rgb: tuple[int, int, int]) -> str:
  return f"#{pack_rgb(rgb):06X}"


def legend_title(mode: Mode) -> str:
  """HTML title of the legend, ΔΔG for diverging data."""
  if mode is Mode.DIVERGING:
    return "ΔΔG<sub>op</sub> (kJ/mol)"
  return "ΔG<sub>op</sub> (kJ/mol)"


def gradient_css(mode: Mode) -> str:
  """CSS background of the color bar for a mode."""
  if mode is Mode.DIVERGING:
    stops = (GREEN, WHITE, PURPLE)
  else:
    stops = (WHITE, ORANGE)
  return f"linear-gradient(to right, {', '.join(to_hex(c) for c in stops)})"


def format_label(value: float) -> str:
  return f"{value:.0f}"


class RangeLegend:
  """Legend plus the Min/Max control panel bound to a RangeController.

  Editing an input calls ``controller.edit``; Apply and Reset run
  ``controller.apply`` / ``controller.reset`` on the kernel's event loop.
  ``refresh()`` is called by the controller after every successful apply and
  redraws the legend and the inputs from the controller's state.
  """

  def __init__(self, controller: RangeController, *, collapsed: bool = True, step: float = RANGE_STEP) -> None:
    self.controller = controller
    self.expanded = not collapsed
    self.step = step
    self._shown = False
    self._syncing = False
    self._pending: set[asyncio.Task[Any]] = set()

    vmin, vmax = controller.active_range
    self.legend_view = W.HTML(value=self.legend_html())
    self.vmin_input = W.FloatText(value=vmin, step=step, description="Min:", layout=W.Layout(width="150px"))
    self.vmax_input = W.FloatText(value=vmax, step=step, description="Max:", layout=W.Layout(width="150px"))
    self.apply_button = W.Button(description="Apply", button_style="warning", layout=W.Layout(width="70px"))
    self.reset_button = W.Button(description="Reset", layout=W.Layout(width="70px"))
    self.toggle_button = W.Button(description=self.toggle_symbol, layout=W.Layout(width="32px"))

    self.vmin_input.observe(lambda change: self._on_input(vmin=change["new"]), names="value")
    self.vmax_input.observe(lambda change: self._on_input(vmax=change["new"]), names="value")
    self.apply_button.on_click(lambda _: self._run(self.controller.apply()))
    self.reset_button.on_click(lambda _: self._run(self.controller.reset()))
    self.toggle_button.on_click(lambda _: self.toggle_panel())

    self.content = W.VBox(
      [self.vmin_input, self.vmax_input, W.HBox([self.apply_button, self.reset_button])],
      layout=W.Layout(display=self._content_display),
    )
    self.panel = W.VBox(
      [W.HBox([W.HTML(f"<b>{PANEL_TITLE}</b>"), self.toggle_button], layout=W.Layout(align_items="center")), self.content],
    )
    self.widget = W.HBox([self.panel, self.legend_view], layout=W.Layout(align_items="flex-start", gap="8px"))

  @property
  def labels(self) -> tuple[str, str]:
    vmin, vmax = self.controller.active_range
    return format_label(vmin), format_label(vmax)

  @property
  def toggle_symbol(self) -> str:
    return "−" if self.expanded else "+"

  @property
  def _content_display(self) -> str | None:
    return None if self.expanded else "none"

  def toggle_panel(self) -> bool:
    """Collapse or expand the control panel and return the new expanded state."""
    self.expanded = not self.expanded
    self.toggle_button.description = self.toggle_symbol
    self.toggle_button.tooltip = "Collapse" if self.expanded else "Expand"
    self.content.layout.display = self._content_display
    return self.expanded

  def legend_html(self) -> str:
    vmin_label, vmax_label = self.labels
    return f"""{_STYLE}
<div class="dg-legend">
  <div class="dg-legend-title">{legend_title(self.controller.mode)}</div>
  <div class="dg-colorbar" style="background: {gradient_css(self.controller.mode)};"></div>
  <div class="dg-legend-labels"><span>{vmin_label}</span><span>{vmax_label}</span></div>
  <div class="dg-legend-note">{NOTE}</div>
</div>"""

  def show(self) -> None:
    """Display the legend; only legends with at least one colored residue are shown."""
    if not self.controller.color_map or self._shown:
      return
    display(self.widget)
    self._shown = True

  def refresh(self) -> None:
    """Redraw the legend and reset the inputs to the active range."""
    self.legend_view.value = self.legend_html()
    vmin, vmax = self.controller.active_range
    self._syncing = True
    try:
      self.vmin_input.value = vmin
      self.vmax_input.value = vmax
    finally:
      self._syncing = False

  def _on_input(self, **bounds: float) -> None:
    if not self._syncing:
      self.controller.edit(**bounds)

  def _run(self, coro: Coroutine[Any, Any, bool]) -> asyncio.Task[bool] | None:
    """Schedule a controller coroutine on the running loop, or run it to completion."""
    try:
      loop = asyncio.get_running_loop()
    except RuntimeError:
      asyncio.run(coro)
      return None
    task = loop.create_task(coro)
    self._pending.add(task)
    task.add_done_callback(self._pending.discard)
    return task
