"""Configuration defaults for the ΔG overlay viewer."""

from __future__ import annotations

import copy
from typing import Any

# ============================================================================
# CONFIG DEFAULTS - Single source of truth
# ============================================================================

DEFAULT_CONFIG: dict[str, Any] = {
  "display": {
    "size": [800, 600],
    "legend": True,
    "panel_collapsed": True,
  },
  "colors": {
    "excluded_residues": ["PRO"],
  },
  "range": {
    "step": 5,
    "one_sided_default_max": 50,
    "diverging_default_max": 25,
  },
  "polling": {
    "interval": 0.1,
  },
}


def nest_config(**flat: Any) -> dict[str, Any]:
  """Convert flat kwargs to nested config.

  Unknown keys are ignored. Keys left as None keep their defaults.

  Args:
      **flat: Flat overrides such as ``size=(600, 400)`` or ``poll_interval=0.05``.

  Returns:
      A deep copy of DEFAULT_CONFIG with the overrides applied.

  """
  config = copy.deepcopy(DEFAULT_CONFIG)
  flat = {k: v for k, v in flat.items() if v is not None}

  # Display
  if "size" in flat: config["display"]["size"] = list(flat["size"])
  if "legend" in flat: config["display"]["legend"] = bool(flat["legend"])
  if "panel_collapsed" in flat: config["display"]["panel_collapsed"] = bool(flat["panel_collapsed"])

  # Colors
  if "excluded_residues" in flat:
    config["colors"]["excluded_residues"] = [str(r).upper() for r in flat["excluded_residues"]]

  # Range
  if "range_step" in flat: config["range"]["step"] = flat["range_step"]
  if "one_sided_default_max" in flat: config["range"]["one_sided_default_max"] = flat["one_sided_default_max"]
  if "diverging_default_max" in flat: config["range"]["diverging_default_max"] = flat["diverging_default_max"]

  # Polling
  if "poll_interval" in flat: config["polling"]["interval"] = float(flat["poll_interval"])

  return config
