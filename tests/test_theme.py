from unittest.mock import MagicMock

import numpy as np
import pytest
from conftest import atom_line, make_pdb

from dgview.colors import FALLBACK_GRAY, GRAY
from dgview.scalars import Mode, ResidueKey
from dgview.structure import AtomicHierarchy, Location, Structure, make_structure_ref, parse_structure
from dgview.theme import (
  BASIC_THEME_NAME,
  METADATA_KEY,
  THEME_NAME,
  ColorThemeRegistry,
  ThemeAdapter,
  derive_residue_metadata,
)


def _hierarchy(pdb: str) -> AtomicHierarchy:
  structure = parse_structure(pdb, "pdb")
  assert structure is not None
  return AtomicHierarchy.from_gemmi(structure[0])


def _blank_chain_hierarchy() -> AtomicHierarchy:
  return AtomicHierarchy(
    chain_ids=[""],
    residue_names=["ALA"],
    seq_ids=np.array([12]),
    residue_kinds=["polymer"],
    atom_names=["N", "CA"],
    elements=["N", "C"],
    b_iso=np.array([23.5, 23.5]),
    residue_index=np.array([0, 0]),
    chain_index=np.array([0, 0]),
  )


def test_from_gemmi(pdb_text: str) -> None:
  """Test flattening of a gemmi model."""
  hierarchy = _hierarchy(pdb_text)
  assert hierarchy.atom_count == 15
  assert hierarchy.residue_count == 5
  assert hierarchy.chain_ids == ["A", "B"]
  assert hierarchy.residue_names[:3] == ["ALA", "GLY", "PRO"]
  assert hierarchy.atom_names[:3] == ["N", "CA", "C"]
  assert hierarchy.residue_index[3] == 1
  assert hierarchy.chain_index[-1] == 1
  assert hierarchy.b_iso[4] == pytest.approx(23.0)


def test_resolve_key(pdb_text: str) -> None:
  """Test walking an atom back to its residue key."""
  hierarchy = _hierarchy(pdb_text)
  adapter = ThemeAdapter(dict, Mode.ONE_SIDED)
  assert adapter.resolve_key(Location(hierarchy, 4)) == ResidueKey("A", "GLY", 2)
  assert adapter.resolve_key(Location(hierarchy, 14)) == ResidueKey("B", "LEU", 1)


def test_resolve_key_blank_chain() -> None:
  """Test that a blank chain id resolves to the default chain."""
  adapter = ThemeAdapter(dict, Mode.ONE_SIDED)
  assert adapter.resolve_key(Location(_blank_chain_hierarchy(), 1)) == ResidueKey("A", "ALA", 12)


def test_color_uses_current_map(pdb_text: str) -> None:
  """Test that the adapter reads the color map on every call."""
  hierarchy = _hierarchy(pdb_text)
  color_maps = [{ResidueKey("A", "ALA", 1): 0x123456}]
  adapter = ThemeAdapter(lambda: color_maps[-1], Mode.ONE_SIDED)
  assert adapter.color(Location(hierarchy, 0)) == 0x123456
  color_maps.append({ResidueKey("A", "ALA", 1): GRAY})
  assert adapter.color(Location(hierarchy, 2)) == GRAY


@pytest.mark.parametrize("element", [-1, 15, 1000])
def test_color_out_of_range(pdb_text: str, element: int) -> None:
  """Test the fallback for elements outside the hierarchy."""
  adapter = ThemeAdapter(lambda: {ResidueKey("A", "ALA", 1): 0x123456}, Mode.ONE_SIDED)
  assert adapter.color(Location(_hierarchy(pdb_text), element)) == FALLBACK_GRAY


def test_color_unresolvable_location() -> None:
  """Test the fallback for locations without hierarchy data."""
  adapter = ThemeAdapter(lambda: {}, Mode.ONE_SIDED)
  assert adapter.color(Location(None, 0)) == FALLBACK_GRAY  # type: ignore[arg-type]
  assert adapter.color(MagicMock(hierarchy=MagicMock(atom_count="x"))) == FALLBACK_GRAY


def test_color_unknown_key(pdb_text: str) -> None:
  """Test the fallback for residues missing from the color map."""
  adapter = ThemeAdapter(lambda: {}, Mode.ONE_SIDED)
  assert adapter.color(Location(_hierarchy(pdb_text), 0)) == FALLBACK_GRAY


def test_provider() -> None:
  """Test the registered provider and its theme."""
  adapter = ThemeAdapter(lambda: {}, Mode.DIVERGING)
  provider = adapter.provider()
  assert provider.name == THEME_NAME
  assert provider.label == "ΔΔGop"
  assert provider.category == "Residue Property"
  assert provider.get_params() == {}
  assert provider.default_values() == {}
  assert provider.is_applicable({})
  theme = provider.factory({}, {})
  assert theme.granularity == "group"
  assert theme.description == "Color by ΔΔG"
  assert ThemeAdapter(lambda: {}, Mode.ONE_SIDED).label == "ΔGop"


def test_registry() -> None:
  """Test adding, replacing and removing providers."""
  registry = ColorThemeRegistry()
  assert BASIC_THEME_NAME in registry
  assert not registry.has(THEME_NAME)
  registry.add(ThemeAdapter(lambda: {}, Mode.ONE_SIDED).provider())
  registry.add(ThemeAdapter(lambda: {}, Mode.DIVERGING).provider())
  assert registry.get(THEME_NAME).label == "ΔΔGop"
  registry.remove(THEME_NAME)
  registry.remove(THEME_NAME)
  assert registry.get(THEME_NAME) is None
  assert THEME_NAME not in registry.names


def test_derive_residue_metadata_first_ca() -> None:
  """Test that only the first CA of each residue is kept."""
  pdb = "\n".join(
    [
      atom_line(1, "N", "ALA", "A", 1, "5.00", element="N"),
      atom_line(2, "CA", "ALA", "A", 1, "10.00"),
      atom_line(3, "CA", "ALA", "A", 1, "99.00"),
      atom_line(4, "CA", "GLY", "B", 7, "-3.50"),
    ],
  )
  assert derive_residue_metadata(_hierarchy(pdb)) == {"A_1": 10.0, "B_7": -3.5}


def test_attach_metadata(pdb_text: str) -> None:
  """Test that metadata and labels are stored on the structure."""
  ref = make_structure_ref(parse_structure(pdb_text, "pdb"), label="x.pdb")
  adapter = ThemeAdapter(lambda: {}, Mode.DIVERGING)
  data = adapter.attach_metadata(ref.data)
  assert ref.data.static_property_data[METADATA_KEY] == {"value": data, "props": {}}
  assert data["A_1"] == pytest.approx(12.0)
  assert data["A_3"] == pytest.approx(40.0)
  assert ref.data.labels == {"hover": "ΔΔGop", "occupancy": "confidence"}


def test_attach_metadata_empty_structure() -> None:
  """Test the metadata pass on a structure without atoms."""
  structure = Structure(
    AtomicHierarchy(
      chain_ids=[],
      residue_names=[],
      seq_ids=np.array([], dtype=int),
      residue_kinds=[],
      atom_names=[],
      elements=[],
      b_iso=np.array([]),
      residue_index=np.array([], dtype=int),
      chain_index=np.array([], dtype=int),
    ),
  )
  assert ThemeAdapter(lambda: {}, Mode.ONE_SIDED).attach_metadata(structure) == {}


def test_components(pdb_text: str) -> None:
  """Test the polymer/ligand/water split."""
  pdb = pdb_text.replace("END\n", "") + "\n".join(
    [
      atom_line(16, "C1", "LIG", "C", 1, "1.00", record="HETATM"),
      atom_line(17, "O", "HOH", "W", 1, "1.00", element="O", record="HETATM"),
    ],
  )
  ref = make_structure_ref(parse_structure(pdb, "pdb"))
  assert [c.key for c in ref.components] == ["polymer", "ligand", "water"]
  assert ref.components[0].elements.tolist() == list(range(15))
  assert ref.components[1].elements.tolist() == [15]
  assert ref.components[2].elements.tolist() == [16]
