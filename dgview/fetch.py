"""Download structures by accession from RCSB or AlphaFold DB."""

from __future__ import annotations

import logging
import os
import urllib.error
import urllib.request

logger = logging.getLogger(__name__)

RCSB_URL = "https://files.rcsb.org/download/{code}.cif"
AFDB_URL = "https://alphafold.ebi.ac.uk/files/AF-{code}-F1-model_v6.cif"


def is_pdb_id(accession: str) -> bool:
  return len(accession) == 4 and accession.isalnum()


def accession_url(accession: str) -> tuple[str, str]:
  """Return (url, local filename) for an accession.

  Four-character codes are PDB entries; anything else is a UniProt id
  served by AlphaFold DB.
  """
  code = accession.upper()
  if is_pdb_id(code):
    return RCSB_URL.format(code=code), f"{code}.cif"
  return AFDB_URL.format(code=code), f"AF-{code}.cif"


def fetch_structure(accession: str, cache_dir: str | os.PathLike[str] = ".") -> str | None:
  """Download a structure unless it is already cached.

  Args:
      accession: PDB code or UniProt id.
      cache_dir: Directory holding downloaded files.

  Returns:
      Path of the local mmCIF file, or None if the download failed.

  """
  url, filename = accession_url(accession)
  filepath = os.path.join(cache_dir, filename)
  if os.path.exists(filepath):
    return filepath

  try:
    urllib.request.urlretrieve(url, filepath)
  except urllib.error.HTTPError:
    logger.warning("Could not download %s (URL: %s).", accession, url)
    return None
  except (urllib.error.URLError, OSError) as e:
    logger.warning("An error occurred while downloading %s: %s", accession, e)
    return None
  return filepath
