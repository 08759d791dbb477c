import os
import urllib.error
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from dgview.fetch import accession_url, fetch_structure, is_pdb_id


@pytest.mark.parametrize(
  ("accession", "url", "filename"),
  [
    ("1abc", "https://files.rcsb.org/download/1ABC.cif", "1ABC.cif"),
    ("P69905", "https://alphafold.ebi.ac.uk/files/AF-P69905-F1-model_v6.cif", "AF-P69905.cif"),
  ],
)
def test_accession_url(accession: str, url: str, filename: str) -> None:
  assert accession_url(accession) == (url, filename)


def test_is_pdb_id() -> None:
  assert is_pdb_id("1ABC")
  assert not is_pdb_id("1AB")
  assert not is_pdb_id("P69905")


@patch("urllib.request.urlretrieve")
def test_fetch_downloads(mock_urlretrieve: MagicMock, tmp_path: Path) -> None:
  """Test that a missing file is downloaded into the cache directory."""
  path = fetch_structure("1abc", tmp_path)
  assert path == os.path.join(tmp_path, "1ABC.cif")
  mock_urlretrieve.assert_called_once_with("https://files.rcsb.org/download/1ABC.cif", path)


@patch("urllib.request.urlretrieve")
def test_fetch_uses_cache(mock_urlretrieve: MagicMock, tmp_path: Path) -> None:
  """Test that cached files are not downloaded again."""
  (tmp_path / "1ABC.cif").write_text("data_1ABC\n")
  assert fetch_structure("1ABC", tmp_path) == os.path.join(tmp_path, "1ABC.cif")
  mock_urlretrieve.assert_not_called()


@patch("urllib.request.urlretrieve")
def test_fetch_http_error(mock_urlretrieve: MagicMock, tmp_path: Path) -> None:
  """Test that a failed download returns None."""
  mock_urlretrieve.side_effect = urllib.error.HTTPError("url", 404, "Not Found", {}, None)
  assert fetch_structure("1abc", tmp_path) is None


@patch("urllib.request.urlretrieve")
def test_fetch_network_error(mock_urlretrieve: MagicMock, tmp_path: Path) -> None:
  mock_urlretrieve.side_effect = urllib.error.URLError("no route")
  assert fetch_structure("P69905", tmp_path) is None
