"""Range estimation and value-to-color mapping for ΔG overlays."""

from __future__ import annotations

import logging
import math
from typing import Iterable, NamedTuple

import numpy as np

from dgview.scalars import Mode, ResidueKey, ScalarTable

logger = logging.getLogger(__name__)

# --- Color System Constants ---

WHITE = (255, 255, 255)
ORANGE = (246, 133, 31)   # #F6851F
GREEN = (102, 187, 69)    # #66BB45
PURPLE = (177, 98, 167)   # #B162A7
GRAY = 0x969696           # proline / no data
FALLBACK_GRAY = 0xCCCCCC  # residue the viewer could not resolve

EXCLUDED_RESIDUES = frozenset({"PRO"})
"""Residues always drawn gray; their scalar carries no meaning here."""

RANGE_STEP = 5
ONE_SIDED_DEFAULT_MAX = 50
DIVERGING_DEFAULT_MAX = 25

ColorMap = dict[ResidueKey, int]


class RangeError(ValueError):
  """Raised for color range bounds that are not finite or not increasing."""


class ColorRange(NamedTuple):
  """Normalization bounds, vmin < vmax."""

  vmin: float
  vmax: float


def parse_range(vmin: object, vmax: object) -> ColorRange:
  """Validate user-entered bounds.

  Args:
      vmin: Lower bound, as a number or numeric text.
      vmax: Upper bound, as a number or numeric text.

  Returns:
      The validated range.

  Raises:
      RangeError: If either bound is not a finite number or vmin >= vmax.

  """
  try:
    low = float(vmin)  # type: ignore[arg-type]
    high = float(vmax)  # type: ignore[arg-type]
  except (TypeError, ValueError) as e:
    raise RangeError(f"non-numeric bounds {vmin!r}, {vmax!r}") from e
  if not (math.isfinite(low) and math.isfinite(high)):
    raise RangeError(f"non-finite bounds {low}, {high}")
  if low >= high:
    raise RangeError(f"vmin {low} must be below vmax {high}")
  return ColorRange(low, high)


def _ceil_to_step(value: float, step: float) -> float:
  return math.ceil(value / step) * step


def estimate_range(
  table: ScalarTable,
  mode: Mode,
  *,
  step: float = RANGE_STEP,
  one_sided_default: float = ONE_SIDED_DEFAULT_MAX,
  diverging_default: float = DIVERGING_DEFAULT_MAX,
) -> ColorRange:
  """Compute the default range for a table.

  NaN and exact-zero values are placeholders for "no measurement" and do not
  take part in the extrema. One-sided ranges start at 0 and end at the largest
  value rounded up to ``step``; diverging ranges are symmetric around 0.

  Args:
      table: Per-residue scalar table.
      mode: Mapping policy.
      step: Rounding step for the upper bound.
      one_sided_default: Upper bound used when no value gives a positive bound.
      diverging_default: Half-width used when no value is usable.

  Returns:
      The estimated ColorRange.

  """
  values = np.array([s.value for s in table.values()], dtype=float)
  values = values[np.isfinite(values) & (values != 0)]

  if mode is Mode.DIVERGING:
    vmax = _ceil_to_step(float(np.abs(values).max()), step) if values.size else 0
    vmax = vmax or diverging_default
    return ColorRange(-vmax, vmax)

  vmax = _ceil_to_step(float(values.max()), step) if values.size else 0
  if vmax <= 0:
    vmax = one_sided_default
  return ColorRange(0, vmax)


def _lerp(c1: Iterable[int], c2: Iterable[int], t: np.ndarray) -> np.ndarray:
  c1 = np.asarray(tuple(c1), dtype=float)
  c2 = np.asarray(tuple(c2), dtype=float)
  return c1 + (c2 - c1) * t[..., None]


def _round_half_up(x: np.ndarray) -> np.ndarray:
  return np.floor(x + 0.5).astype(int)


def interpolate_color(
  c1: tuple[int, int, int],
  c2: tuple[int, int, int],
  t: float,
) -> tuple[int, int, int]:
  """Linearly interpolate two RGB triples, rounding each channel half-up."""
  r, g, b = _round_half_up(_lerp(c1, c2, np.asarray(t, dtype=float))).tolist()
  return r, g, b


def pack_rgb(rgb: tuple[int, int, int]) -> int:
  """Pack an RGB triple into 0xRRGGBB."""
  r, g, b = rgb
  return (int(r) << 16) | (int(g) << 8) | int(b)


def unpack_rgb(color: int) -> tuple[int, int, int]:
  """Split 0xRRGGBB into an RGB triple."""
  return (color >> 16) & 0xFF, (color >> 8) & 0xFF, color & 0xFF


def _map_values(
  values: np.ndarray,
  gray: np.ndarray,
  color_range: ColorRange,
  mode: Mode,
) -> np.ndarray:
  """Vectorized core shared by get_color_map and color_for_value."""
  gray = gray | np.isnan(values)
  vmin, vmax = color_range
  with np.errstate(invalid="ignore"):
    t = np.clip((values - vmin) / (vmax - vmin), 0.0, 1.0)
  t = np.where(gray, 0.0, t)

  if mode is Mode.DIVERGING:
    lower = (t < 0.5)[..., None]
    rgb = np.where(lower, _lerp(GREEN, WHITE, t * 2), _lerp(WHITE, PURPLE, (t - 0.5) * 2))
  else:
    rgb = _lerp(WHITE, ORANGE, t)

  rgb = _round_half_up(rgb)
  packed = (rgb[..., 0] << 16) | (rgb[..., 1] << 8) | rgb[..., 2]
  return np.where(gray, GRAY, packed)


def color_for_value(
  value: float,
  color_range: ColorRange,
  mode: Mode,
  res_name: str | None = None,
  *,
  excluded: Iterable[str] = EXCLUDED_RESIDUES,
) -> int:
  """Map one value to a packed color."""
  gray = np.array([res_name in set(excluded)])
  return int(_map_values(np.array([value], dtype=float), gray, color_range, mode)[0])


def get_color_map(
  table: ScalarTable,
  color_range: ColorRange,
  mode: Mode,
  *,
  excluded: Iterable[str] = EXCLUDED_RESIDUES,
) -> ColorMap:
  """Color every residue of a table.

  Excluded residue names (proline by default) and NaN values map to GRAY.
  Other values are normalized into [0, 1] over ``color_range`` (clamped) and
  run through the white-orange gradient (one-sided) or the
  green-white-purple gradient (diverging, white at the midpoint).

  Args:
      table: Per-residue scalar table.
      color_range: Active normalization range.
      mode: Mapping policy.
      excluded: Residue names that are always gray.

  Returns:
      A new dict with one packed 0xRRGGBB color per table key.

  """
  if not table:
    return {}
  excluded = set(excluded)
  keys = list(table)
  values = np.array([table[k].value for k in keys], dtype=float)
  gray = np.array([table[k].res_name in excluded for k in keys])
  colors = _map_values(values, gray, color_range, mode)
  return dict(zip(keys, colors.tolist()))
