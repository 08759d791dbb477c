"""Hierarchical structure model exposed by the viewer.

Structures are parsed with gemmi and flattened into per-atom, per-residue and
per-chain arrays so that a render pass can address an atom by a single
integer and walk back up to its residue and chain.
"""

from __future__ import annotations

import logging
from typing import Any, NamedTuple

import gemmi
import numpy as np

logger = logging.getLogger(__name__)

COMPONENT_KINDS = ("polymer", "ligand", "water")


class AtomicHierarchy:
  """Flattened chain → residue → atom tables of one gemmi model."""

  def __init__(
    self,
    *,
    chain_ids: list[str],
    residue_names: list[str],
    seq_ids: np.ndarray,
    residue_kinds: list[str],
    atom_names: list[str],
    elements: list[str],
    b_iso: np.ndarray,
    residue_index: np.ndarray,
    chain_index: np.ndarray,
  ) -> None:
    self.chain_ids = chain_ids
    self.residue_names = residue_names
    self.seq_ids = seq_ids
    self.residue_kinds = residue_kinds
    self.atom_names = atom_names
    self.elements = elements
    self.b_iso = b_iso
    self.residue_index = residue_index
    self.chain_index = chain_index

  @property
  def atom_count(self) -> int:
    return len(self.atom_names)

  @property
  def residue_count(self) -> int:
    return len(self.residue_names)

  @classmethod
  def from_gemmi(cls, model: gemmi.Model) -> AtomicHierarchy:
    """Flatten a gemmi model.

    Args:
        model: The model to flatten, usually the first of a structure.

    Returns:
        The flattened hierarchy.

    """
    chain_ids: list[str] = []
    residue_names: list[str] = []
    seq_ids: list[int] = []
    residue_kinds: list[str] = []
    atom_names: list[str] = []
    elements: list[str] = []
    b_iso: list[float] = []
    residue_index: list[int] = []
    chain_index: list[int] = []

    for ci, chain in enumerate(model):
      chain_ids.append(chain.name)
      for residue in chain:
        ri = len(residue_names)
        residue_names.append(residue.name)
        seq_ids.append(residue.seqid.num)
        residue_kinds.append(_residue_kind(residue))
        for atom in residue:
          atom_names.append(atom.name)
          elements.append(atom.element.name)
          b_iso.append(atom.b_iso)
          residue_index.append(ri)
          chain_index.append(ci)

    return cls(
      chain_ids=chain_ids,
      residue_names=residue_names,
      seq_ids=np.array(seq_ids, dtype=int),
      residue_kinds=residue_kinds,
      atom_names=atom_names,
      elements=elements,
      b_iso=np.array(b_iso, dtype=float),
      residue_index=np.array(residue_index, dtype=int),
      chain_index=np.array(chain_index, dtype=int),
    )


def _residue_kind(residue: gemmi.Residue) -> str:
  if residue.name == "HOH":
    return "water"
  residue_info = gemmi.find_tabulated_residue(residue.name)
  if residue_info is not None and (residue_info.is_amino_acid() or residue_info.is_nucleic_acid()):
    return "polymer"
  return "ligand"


class Location(NamedTuple):
  """Opaque per-atom handle passed to color themes."""

  hierarchy: AtomicHierarchy
  element: int


class Structure:
  """A loaded structure plus the properties attached to it after load."""

  def __init__(self, hierarchy: AtomicHierarchy, label: str | None = None, fmt: str = "pdb") -> None:
    self.hierarchy = hierarchy
    self.label = label
    self.format = fmt
    self.static_property_data: dict[str, dict[str, Any]] = {}
    self.labels: dict[str, str] = {}


class StructureComponent:
  """A renderable subset of a structure with its cached theme output."""

  def __init__(self, key: str, structure: Structure, elements: np.ndarray) -> None:
    self.key = key
    self.structure = structure
    self.elements = elements
    self.theme_name: str | None = None
    self.colors: np.ndarray | None = None


class StructureRef:
  """Entry of the viewer hierarchy: structure data and its components."""

  def __init__(self, data: Structure, components: list[StructureComponent]) -> None:
    self.data = data
    self.components = components


class Hierarchy:
  """Structures currently loaded in a viewer."""

  def __init__(self) -> None:
    self.structures: list[StructureRef] = []


def build_components(structure: Structure) -> list[StructureComponent]:
  """Split a structure into polymer, ligand and water components, skipping empty ones."""
  hierarchy = structure.hierarchy
  atom_kinds = np.array([hierarchy.residue_kinds[r] for r in hierarchy.residue_index], dtype=object)
  components = []
  for kind in COMPONENT_KINDS:
    elements = np.flatnonzero(atom_kinds == kind)
    if elements.size:
      components.append(StructureComponent(kind, structure, elements))
  return components


def parse_structure(data: str, fmt: str = "pdb") -> gemmi.Structure | None:
  """Parse structure text with gemmi.

  Args:
      data: File content.
      fmt: Format tag; "mmcif" reads mmCIF, anything else is read as PDB.

  Returns:
      The parsed structure, or None if it could not be read or has no atoms.

  """
  try:
    if fmt == "mmcif":
      doc = gemmi.cif.read_string(data)
      structure = gemmi.make_structure_from_block(doc.sole_block())
    else:
      structure = gemmi.read_pdb_string(data)
  except Exception as e:  # noqa: BLE001
    logger.warning("Could not parse %s structure: %s", fmt, e)
    return None

  # gemmi reads unrecognized text as one empty model
  if len(structure) == 0 or structure[0].count_atom_sites() == 0:
    logger.warning("Structure has no atoms.")
    return None
  return structure


def make_structure_ref(structure: gemmi.Structure, label: str | None = None, fmt: str = "pdb") -> StructureRef:
  """Wrap the first model of a gemmi structure for the viewer hierarchy."""
  data = Structure(AtomicHierarchy.from_gemmi(structure[0]), label=label, fmt=fmt)
  return StructureRef(data, build_components(data))
