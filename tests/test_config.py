from dgview.config import DEFAULT_CONFIG, nest_config


def test_nest_config_defaults() -> None:
  """Test that no overrides give a copy of the defaults."""
  config = nest_config()
  assert config == DEFAULT_CONFIG
  config["range"]["step"] = 1
  assert DEFAULT_CONFIG["range"]["step"] == 5


def test_nest_config_overrides() -> None:
  """Test that flat keys land in their sections."""
  config = nest_config(
    size=(600, 400),
    legend=False,
    excluded_residues=["pro", "gly"],
    range_step=2,
    one_sided_default_max=30,
    poll_interval="0.5",
    unknown=1,
  )
  assert config["display"]["size"] == [600, 400]
  assert config["display"]["legend"] is False
  assert config["colors"]["excluded_residues"] == ["PRO", "GLY"]
  assert config["range"]["step"] == 2
  assert config["range"]["one_sided_default_max"] == 30
  assert config["range"]["diverging_default_max"] == 25
  assert config["polling"]["interval"] == 0.5


def test_nest_config_ignores_none() -> None:
  config = nest_config(size=None, poll_interval=None)
  assert config["display"]["size"] == [800, 600]
  assert config["polling"]["interval"] == 0.1
