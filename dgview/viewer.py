"""Notebook structure viewer with pluggable residue color themes."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import uuid
from typing import TYPE_CHECKING, Any, Iterable, Sequence

import numpy as np
from IPython.display import HTML, Javascript, display

from dgview.config import nest_config
from dgview.fetch import fetch_structure
from dgview.scalars import detect_mode, read_structure_text, structure_format
from dgview.structure import (
  Hierarchy,
  Location,
  StructureComponent,
  StructureRef,
  make_structure_ref,
  parse_structure,
)
from dgview.theme import ColorTheme, ColorThemeRegistry

if TYPE_CHECKING:
  from dgview.overlay import ScalarOverlay

try:
  from google.colab import output as colab_output  # type: ignore[import-not-found]

  _is_colab = True
except Exception:  # pragma: no cover - optional runtime  # noqa: BLE001
  colab_output = None
  _is_colab = False

IS_COLAB = _is_colab

logger = logging.getLogger(__name__)

_VIEWER_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <title>dgview</title>
    <!-- DATA_INJECTION_POINT -->
  </head>
  <body>
    <div id="app" style="font-family: sans-serif; font-size: 11px;"></div>
    <script>
      (function() {
        const state = {structures: {}};
        const app = document.getElementById('app');

        function toHex(color) {
          return '#' + color.toString(16).padStart(6, '0');
        }

        function render() {
          app.innerHTML = '';
          for (const [label, structure] of Object.entries(state.structures)) {
            const row = document.createElement('div');
            row.textContent = label + ' (' + structure.format + ')';
            for (const [key, colors] of Object.entries(structure.components)) {
              const strip = document.createElement('div');
              strip.title = key;
              strip.style.display = 'flex';
              strip.style.height = '12px';
              for (const color of colors) {
                const cell = document.createElement('span');
                cell.style.flex = '1';
                cell.style.background = toHex(color);
                strip.appendChild(cell);
              }
              row.appendChild(strip);
            }
            app.appendChild(row);
          }
        }

        function handleMessage(msg) {
          if (typeof msg === 'string') msg = JSON.parse(msg);
          if (!msg || !msg.type) return;
          if (msg.type === 'dgviewAddStructure') {
            state.structures[msg.label] = {format: msg.format, components: {}};
          } else if (msg.type === 'dgviewColorUpdate') {
            if (!state.structures[msg.label]) state.structures[msg.label] = {format: '', components: {}};
            state.structures[msg.label].components[msg.component] = msg.colors;
          } else if (msg.type === 'dgviewClearAll') {
            state.structures = {};
          } else {
            return;
          }
          render();
        }

        for (const s of window.viewerConfig.structures || []) {
          state.structures[s.label] = {format: s.format, components: {}};
        }
        render();

        window.dgviewState = state;
        window.dgviewHandleMessage = handleMessage;
        window.addEventListener('message', (event) => handleMessage(event.data));
        window.parent.postMessage({type: 'dgview_ready', viewer_id: window.viewerConfig.viewer_id}, '*');
      })();
    </script>
  </body>
</html>
"""


def evaluate_theme(theme: ColorTheme, component: StructureComponent) -> np.ndarray:
  """Evaluate a theme over every atom of a component.

  Group themes are called once per residue and the color is shared by the
  residue's atoms; uniform themes are called once.
  """
  hierarchy = component.structure.hierarchy
  elements = component.elements
  colors = np.empty(len(elements), dtype=np.int64)
  if theme.granularity == "uniform":
    colors.fill(theme.color(Location(hierarchy, int(elements[0]))))
    return colors

  last_residue = -1
  color = 0
  for j, element in enumerate(elements):
    if theme.granularity == "group":
      residue = int(hierarchy.residue_index[element])
      if residue != last_residue:
        color = theme.color(Location(hierarchy, int(element)))
        last_residue = residue
    else:
      color = theme.color(Location(hierarchy, int(element)))
    colors[j] = color
  return colors


class View:
  """A structure viewer whose residue colors come from registered themes.

  Structures are added asynchronously: ``load_structure`` returns once the
  text is parsed, and the structure shows up in ``hierarchy.structures`` on a
  later turn of the event loop.

  The notebook page consumes the add/color/clear messages and draws each
  component's per-atom colors as a strip. It does no 3D rendering.
  """

  def __init__(self, size: tuple[int, int] = (800, 600), *, id: str | None = None, **config: Any) -> None:
    """Initialize a viewer.

    Args:
        size: Width and height of the viewer in pixels.
        id: Viewer id; a random one is generated if omitted.
        **config: Flat config overrides (see ``dgview.config.nest_config``).

    """
    self.config = nest_config(size=size, **config)
    self.config["viewer_id"] = str(id) if id is not None else str(uuid.uuid4())
    self.themes = ColorThemeRegistry()
    self.hierarchy = Hierarchy()
    self._is_live = False

  @property
  def viewer_id(self) -> str:
    return self.config["viewer_id"]

  async def load_structure(self, data: str, fmt: str = "pdb", *, label: str | None = None) -> bool:
    """Parse structure text and queue it for the hierarchy.

    Args:
        data: Structure file content.
        fmt: Format tag from ``structure_format``.
        label: Display name of the structure.

    Returns:
        True if the structure was parsed and queued.

    """
    structure = parse_structure(data, fmt)
    if structure is None:
      return False
    ref = make_structure_ref(structure, label=label, fmt=fmt)
    asyncio.get_running_loop().call_soon(self._commit_structure, ref, data)
    return True

  def _commit_structure(self, ref: StructureRef, data: str) -> None:
    self.hierarchy.structures.append(ref)
    logger.info(
      "Loaded structure %s: %d atoms, %d residues.",
      ref.data.label,
      ref.data.hierarchy.atom_count,
      ref.data.hierarchy.residue_count,
    )
    self._send_message(
      {
        "type": "dgviewAddStructure",
        "label": ref.data.label,
        "format": ref.data.format,
        "data": data,
      },
    )

  async def update_representations_theme(
    self,
    components: Iterable[StructureComponent],
    *,
    color: str,
  ) -> None:
    """Apply a named color theme to components.

    Components keep the output of their current theme; applying the theme
    they already use does not re-evaluate it.

    Raises:
        KeyError: If no theme is registered under ``color``.

    """
    provider = self.themes.get(color)
    if provider is None:
      raise KeyError(f"Unknown color theme '{color}'")

    for component in components:
      if component.theme_name == color:
        continue
      ctx = {"structure": component.structure}
      if not provider.is_applicable(ctx):
        logger.warning("Color theme '%s' does not apply to component %s.", color, component.key)
        continue
      theme = provider.factory(ctx, provider.default_values())
      component.colors = evaluate_theme(theme, component)
      component.theme_name = color
      self._send_message(
        {
          "type": "dgviewColorUpdate",
          "label": component.structure.label,
          "component": component.key,
          "colors": component.colors.tolist(),
        },
      )
      await asyncio.sleep(0)

  async def from_files(self, paths: Sequence[str | os.PathLike[str]], **config: Any) -> ScalarOverlay:
    """Load structure files and color the first one by its B-factor scalar.

    Unreadable files count as empty. The mode is diverging only for a single
    ΔΔG/difference file.

    Returns:
        The overlay session owning the color state.

    """
    from dgview.overlay import ScalarOverlay

    contents = [read_structure_text(p) for p in paths]
    overlay = ScalarOverlay(self, contents[0] if contents else "", detect_mode(paths), **config)
    files = [
      (content, structure_format(p), os.path.basename(os.fspath(p)))
      for p, content in zip(paths, contents)
      if content
    ]
    await overlay.open(files)
    return overlay

  async def from_accession(self, accession: str, cache_dir: str | os.PathLike[str] = ".") -> bool:
    """Load a PDB entry (4-character code) or an AlphaFold DB model (UniProt id).

    Returns:
        True if the structure was downloaded and queued.

    """
    filepath = fetch_structure(accession, cache_dir)
    if filepath is None:
      return False
    return await self.load_structure(
      read_structure_text(filepath),
      structure_format(filepath),
      label=accession.upper(),
    )

  def _send_message(self, message_dict: dict[str, object]) -> None:
    """Send a message to a displayed viewer; nothing is sent before ``show()``.

    Args:
        message_dict: The message to send.

    """
    if not self._is_live:
      return
    if IS_COLAB:
      self._send_colab_message(message_dict)
    else:
      self._send_jupyter_message(self.viewer_id, json.dumps(message_dict))

  def _send_colab_message(self, message_dict: dict[str, object]) -> None:
    """Send a message to the viewer in a Colab environment.

    Args:
        message_dict: The message to send.

    """
    json_data = json.dumps(message_dict)
    json_data_escaped = json_data.replace("\\", "\\\\").replace("`", "\\`").replace("$", "\\$")
    js_code = f"window.dgviewHandleMessage && window.dgviewHandleMessage(`{json_data_escaped}`);"
    if colab_output:
      try:
        colab_output.eval_js(js_code, ignore_result=True)
      except Exception:
        logger.exception("Error sending message to Colab")

  def _send_jupyter_message(self, viewer_id: str, message_json: str) -> None:
    """Send a message to the viewer in a Jupyter environment.

    Messages are queued until the iframe reports ready.

    Args:
        viewer_id: The ID of the viewer.
        message_json: The message to send, as a JSON string.

    """
    js_code = f"""
        (function() {{
            if (!window.dgview_queue) window.dgview_queue = {{}};
            if (!window.dgview_ready_flags) window.dgview_ready_flags = {{}};
            if (!window.dgview_queue['{viewer_id}']) {{
                window.dgview_queue['{viewer_id}'] = [];
            }}
            let msg = {message_json};
            if (window.dgview_ready_flags['{viewer_id}'] === true) {{
                let iframe = document.querySelector('iframe[data-viewer-id="{viewer_id}"]');
                if (iframe && iframe.contentWindow) {{
                    iframe.contentWindow.postMessage(msg, '*');
                }} else {{
                    window.dgview_queue['{viewer_id}'].push(msg);
                }}
            }} else {{
                window.dgview_queue['{viewer_id}'].push(msg);
            }}
        }})();
        """
    _ = display(Javascript(js_code))

  def show(self) -> None:
    """Display the viewer. Structures already loaded are embedded; later ones are streamed."""
    if self._is_live:
      return

    viewer_config = {
      "size": self.config["display"]["size"],
      "viewer_id": self.viewer_id,
      "structures": [
        {"label": ref.data.label, "format": ref.data.format} for ref in self.hierarchy.structures
      ],
    }
    injection_scripts = f"""
        <script id="viewer-config">
          window.viewerConfig = {json.dumps(viewer_config)};
        </script>
        """
    final_html = _VIEWER_TEMPLATE.replace("<!-- DATA_INJECTION_POINT -->", injection_scripts)
    if IS_COLAB:
      _ = display(HTML(final_html))
    else:
      self._display_jupyter_viewer(final_html)
    self._is_live = True

  def _display_jupyter_viewer(self, final_html: str) -> None:
    """Display the viewer in an iframe and flush queued messages once it is ready.

    Args:
        final_html: The viewer page with config injected.

    """
    final_html_escaped = final_html.replace('"', "&quot;").replace("'", "&#39;")
    width, height = self.config["display"]["size"]
    handshake_script = f"""
        <script>
            if (!window.dgview_queue) window.dgview_queue = {{}};
            if (!window.dgview_ready_flags) window.dgview_ready_flags = {{}};
            window.dgview_ready_flags['{self.viewer_id}'] = false;
            if (!window.dgview_message_listener_added) {{
                window.addEventListener('message', (event) => {{
                    if (event.data && event.data.type === 'dgview_ready' && event.data.viewer_id) {{
                        let viewerId = event.data.viewer_id;
                        window.dgview_ready_flags[viewerId] = true;
                        let iframe = document.querySelector(`iframe[data-viewer-id="${{viewerId}}"]`);
                        let queue = window.dgview_queue[viewerId];
                        if (iframe && iframe.contentWindow && queue) {{
                            while (queue.length > 0) {{
                                iframe.contentWindow.postMessage(queue.shift(), '*');
                            }}
                        }}
                    }}
                }});
                window.dgview_message_listener_added = true;
            }}
        </script>
        """
    iframe_html = f"""
        <iframe
            data-viewer-id="{self.viewer_id}"
            srcdoc="{final_html_escaped}"
            style="width: {width}px; height: {height}px; border: none;"
            sandbox="allow-scripts allow-same-origin"
        ></iframe>
        {handshake_script}
        """
    _ = display(HTML(iframe_html))

  def clear(self) -> None:
    """Remove all structures from the viewer."""
    if self._is_live:
      self._send_message({"type": "dgviewClearAll"})
    self.hierarchy.structures.clear()
