"""Per-residue scalar extraction from fixed-width PDB coordinate records.

The ΔG_op (or ΔΔG_op) value of each residue travels in the B-factor column of
the ATOM/HETATM records. Only the columns needed to identify the residue and
read that value are sliced; everything else in the record is ignored.
"""

from __future__ import annotations

import enum
import logging
import math
import os
from types import MappingProxyType
from typing import Iterable, Mapping, NamedTuple

logger = logging.getLogger(__name__)

RECORD_TAGS = ("ATOM", "HETATM")
DEFAULT_CHAIN = "A"

# 0-based slices of the PDB fixed columns (1-based: 18-20, 22, 23-26, 61-66)
_RES_NAME = slice(17, 20)
_CHAIN_ID = slice(21, 22)
_RES_SEQ = slice(22, 26)
_B_FACTOR = slice(60, 66)

MMCIF_EXTENSIONS = {"cif", "mmcif", "mcif"}
DIVERGING_MARKERS = ("ddg", "diff")


class Mode(enum.Enum):
  """Color mapping policy, fixed when the structure is loaded."""

  ONE_SIDED = "one-sided"
  DIVERGING = "diverging"


class ResidueKey(NamedTuple):
  """Identity of a residue shared by the text parser and the viewer model."""

  chain: str
  res_name: str
  seq_num: int

  def __str__(self) -> str:
    return f"{self.chain}_{self.res_name}_{self.seq_num}"


class ScalarSample(NamedTuple):
  """Scalar value read for one residue. ``value`` is NaN when missing."""

  key: ResidueKey
  value: float
  res_name: str


ScalarTable = Mapping[ResidueKey, ScalarSample]


def parse_scalar(text: str) -> float:
  """Parse a B-factor field, returning NaN for blank, "nan" or malformed text."""
  text = text.strip().lower()
  if not text or text == "nan":
    return math.nan
  try:
    return float(text)
  except ValueError:
    return math.nan


def _parse_record(line: str) -> ScalarSample | None:
  """Slice one ATOM/HETATM line, or return None if it lacks a residue number."""
  try:
    seq_num = int(line[_RES_SEQ].strip())
  except ValueError:
    return None
  chain = line[_CHAIN_ID].strip() or DEFAULT_CHAIN
  res_name = line[_RES_NAME].strip()
  key = ResidueKey(chain, res_name, seq_num)
  return ScalarSample(key, parse_scalar(line[_B_FACTOR]), res_name)


def extract_scalars(text: str) -> ScalarTable:
  """Build the per-residue scalar table from raw PDB text.

  The first record seen for a residue wins; later atoms of the same residue
  are ignored even when their value differs.

  Args:
      text: Raw content of a PDB-format file. May be empty.

  Returns:
      A read-only mapping from ResidueKey to ScalarSample.

  """
  table: dict[ResidueKey, ScalarSample] = {}
  skipped = 0
  for line in text.splitlines():
    if not line.startswith(RECORD_TAGS):
      continue
    sample = _parse_record(line)
    if sample is None:
      skipped += 1
      continue
    if sample.key not in table:
      table[sample.key] = sample

  if skipped:
    logger.debug("Skipped %d coordinate records without a residue number.", skipped)
  logger.info("Extracted scalars for %d residues.", len(table))
  return MappingProxyType(table)


def read_structure_text(path: str | os.PathLike[str]) -> str:
  """Read a structural file, treating any read failure as empty content."""
  try:
    with open(path, encoding="utf-8") as f:
      return f.read()
  except (OSError, UnicodeDecodeError) as e:
    logger.warning("Could not read structure file %s: %s", path, e)
    return ""


def structure_format(path: str | os.PathLike[str]) -> str:
  """Return the format tag for a file, folding mmCIF variants into "mmcif"."""
  extension = os.path.splitext(os.fspath(path))[1].lstrip(".").lower()
  if extension in MMCIF_EXTENSIONS:
    return "mmcif"
  return extension


def detect_mode(paths: Iterable[str | os.PathLike[str]]) -> Mode:
  """Choose diverging mode for a single ΔΔG/difference file, one-sided otherwise."""
  paths = [os.fspath(p).lower() for p in paths]
  if len(paths) == 1 and any(marker in paths[0] for marker in DIVERGING_MARKERS):
    return Mode.DIVERGING
  return Mode.ONE_SIDED
