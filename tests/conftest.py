import pytest


def atom_line(
  serial: int,
  name: str,
  res_name: str,
  chain: str,
  seq: int,
  b: str,
  *,
  element: str = "C",
  record: str = "ATOM",
  x: float = 0.0,
) -> str:
  """Format a fixed-width PDB coordinate record with a raw B-factor field."""
  atom_name = f" {name:<3}" if len(name) < 4 else name
  return (
    f"{record:<6}{serial:>5} {atom_name} {res_name:>3} {chain:1}{seq:>4}    "
    f"{x:8.3f}{0.0:8.3f}{0.0:8.3f}{1.0:6.2f}{b:>6}          {element:>2}"
  )


def make_pdb(*residues: tuple[str, str, int, str]) -> str:
  """Build N/CA/C atoms for each (chain, res_name, seq, b) residue."""
  lines = []
  serial = 1
  for i, (chain, res_name, seq, b) in enumerate(residues):
    for name, element in (("N", "N"), ("CA", "C"), ("C", "C")):
      lines.append(atom_line(serial, name, res_name, chain, seq, b, element=element, x=3.8 * i + serial * 0.1))
      serial += 1
  lines.append("END")
  return "\n".join(lines) + "\n"


@pytest.fixture
def pdb_text() -> str:
  return make_pdb(
    ("A", "ALA", 1, "12.00"),
    ("A", "GLY", 2, "23.00"),
    ("A", "PRO", 3, "40.00"),
    ("A", "SER", 4, ""),
    ("B", "LEU", 1, "0.00"),
  )
