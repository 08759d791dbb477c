"""Color themes: the viewer's registry and the ΔG residue theme adapter."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable, Literal, Mapping

from dgview.colors import FALLBACK_GRAY
from dgview.scalars import DEFAULT_CHAIN, Mode, ResidueKey
from dgview.structure import AtomicHierarchy, Location, Structure

logger = logging.getLogger(__name__)

THEME_NAME = "dg_color"
BASIC_THEME_NAME = "element-symbol"
METADATA_KEY = "dGop"

Granularity = Literal["uniform", "group", "atom"]


@dataclasses.dataclass
class ColorTheme:
  """Result of a theme factory: the per-location color function."""

  color: Callable[[Location], int]
  granularity: Granularity = "group"
  props: dict[str, Any] = dataclasses.field(default_factory=dict)
  description: str = ""


@dataclasses.dataclass
class ColorThemeProvider:
  """Named, registrable color strategy."""

  name: str
  label: str
  category: str
  factory: Callable[[dict[str, Any], dict[str, Any]], ColorTheme]
  get_params: Callable[[], dict[str, Any]] = dict
  default_values: Callable[[], dict[str, Any]] = dict
  is_applicable: Callable[[dict[str, Any]], bool] = lambda ctx: True


class ColorThemeRegistry:
  """Registry of color theme providers, keyed by name."""

  def __init__(self) -> None:
    self._providers: dict[str, ColorThemeProvider] = {}
    for provider in BUILTIN_THEMES:
      self.add(provider)

  def add(self, provider: ColorThemeProvider) -> None:
    if provider.name in self._providers:
      logger.debug("Replacing color theme '%s'.", provider.name)
    self._providers[provider.name] = provider

  def remove(self, name: str) -> None:
    self._providers.pop(name, None)

  def get(self, name: str) -> ColorThemeProvider | None:
    return self._providers.get(name)

  def has(self, name: str) -> bool:
    return name in self._providers

  __contains__ = has

  @property
  def names(self) -> list[str]:
    return list(self._providers)


# --- Built-in themes ---

ELEMENT_COLORS = {
  "C": 0x909090,
  "N": 0x3050F8,
  "O": 0xFF0D0D,
  "S": 0xFFFF30,
  "P": 0xFF8000,
  "H": 0xFFFFFF,
}
DEFAULT_ELEMENT_COLOR = 0xFF1493


def _element_symbol_factory(ctx: dict[str, Any], props: dict[str, Any]) -> ColorTheme:
  def color(location: Location) -> int:
    return ELEMENT_COLORS.get(location.hierarchy.elements[location.element], DEFAULT_ELEMENT_COLOR)

  return ColorTheme(color=color, granularity="atom", props=props, description="Color by element symbol")


def _uniform_factory(ctx: dict[str, Any], props: dict[str, Any]) -> ColorTheme:
  value = props.get("value", FALLBACK_GRAY)
  return ColorTheme(color=lambda location: value, granularity="uniform", props=props)


BUILTIN_THEMES = (
  ColorThemeProvider(BASIC_THEME_NAME, "Element Symbol", "Atom Property", _element_symbol_factory),
  ColorThemeProvider(
    "uniform",
    "Uniform",
    "Misc",
    _uniform_factory,
    default_values=lambda: {"value": FALLBACK_GRAY},
  ),
)


# --- ΔG residue theme ---


class ThemeAdapter:
  """Color viewer locations from the active per-residue color map.

  The viewer addresses atoms through its own hierarchy; the adapter walks a
  location back up to (chain, residue name, sequence number) so the lookup
  uses the same ResidueKey the text parser produced. The color map itself is
  owned elsewhere and fetched through ``color_map`` on every call, so the
  adapter always sees the most recently applied range.
  """

  def __init__(self, color_map: Callable[[], Mapping[ResidueKey, int]], mode: Mode) -> None:
    self._color_map = color_map
    self.mode = mode

  @property
  def label(self) -> str:
    return "ΔΔGop" if self.mode is Mode.DIVERGING else "ΔGop"

  def resolve_key(self, location: Location) -> ResidueKey:
    """Map a viewer location to its ResidueKey.

    Raises:
        IndexError: If the element is outside the hierarchy.
        AttributeError: If the location does not carry a hierarchy.

    """
    hierarchy = location.hierarchy
    element = int(location.element)
    if not 0 <= element < hierarchy.atom_count:
      raise IndexError(f"element {element} out of range")
    residue_index = int(hierarchy.residue_index[element])
    chain_index = int(hierarchy.chain_index[element])
    chain_id = hierarchy.chain_ids[chain_index] or DEFAULT_CHAIN
    return ResidueKey(chain_id, hierarchy.residue_names[residue_index], int(hierarchy.seq_ids[residue_index]))

  def color(self, location: Location) -> int:
    """Return the packed color for a location, or FALLBACK_GRAY if it cannot be resolved."""
    try:
      key = self.resolve_key(location)
    except (AttributeError, IndexError, TypeError, ValueError) as e:
      logger.debug("Could not resolve location %r: %s", getattr(location, "element", location), e)
      return FALLBACK_GRAY
    return self._color_map().get(key, FALLBACK_GRAY)

  def factory(self, ctx: dict[str, Any], props: dict[str, Any]) -> ColorTheme:
    description = "Color by ΔΔG" if self.mode is Mode.DIVERGING else "Color by ΔG"
    return ColorTheme(color=self.color, granularity="group", props=props, description=description)

  def provider(self) -> ColorThemeProvider:
    """Build the provider registered with the viewer under THEME_NAME."""
    return ColorThemeProvider(THEME_NAME, self.label, "Residue Property", self.factory)

  def attach_metadata(self, structure: Structure) -> dict[str, float]:
    """Store the per-residue value table on a structure for hover labels."""
    data = derive_residue_metadata(structure.hierarchy)
    structure.static_property_data[METADATA_KEY] = {"value": data, "props": {}}
    structure.labels["hover"] = self.label
    structure.labels["occupancy"] = "confidence"
    logger.info("dGop data stored for %d residues. Sample keys: %s", len(data), list(data)[:5])
    return data


def derive_residue_metadata(hierarchy: AtomicHierarchy) -> dict[str, float]:
  """Collect the B-factor of the first CA atom of each residue.

  Args:
      hierarchy: The viewer's atomic hierarchy.

  Returns:
      Values keyed "{chain}_{seq}", in atom order.

  """
  data: dict[str, float] = {}
  for i, atom_name in enumerate(hierarchy.atom_names):
    if atom_name != "CA":
      continue
    chain_id = hierarchy.chain_ids[hierarchy.chain_index[i]] or DEFAULT_CHAIN
    key = f"{chain_id}_{hierarchy.seq_ids[hierarchy.residue_index[i]]}"
    if key not in data:
      data[key] = float(hierarchy.b_iso[i])
  return data
