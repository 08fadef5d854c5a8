"""Tests for Config validation."""

import pytest

from cellcanvas.config import Config


def test_defaults():
    config = Config()
    assert config.data_path is None
    assert (config.canvas_width, config.canvas_height) == (900, 650)
    assert config.to_dict()["port"] == 8050


def test_data_path_is_resolved(tmp_path):
    path = tmp_path / "data.json"
    path.write_text("{}", encoding="utf-8")
    config = Config(data_path=str(path))
    assert config.data_path == path.resolve()
    assert config.to_dict()["data_path"] == str(path.resolve())


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config(data_path=tmp_path / "missing.json")


@pytest.mark.parametrize("kwargs, match", [
    ({"canvas_width": 0}, "Canvas size"),
    ({"canvas_height": -5}, "Canvas size"),
    ({"seed": -1}, "Seed"),
])
def test_invalid_values(kwargs, match):
    with pytest.raises(ValueError, match=match):
        Config(**kwargs)


def test_unsupported_suffix(tmp_path):
    path = tmp_path / "data.csv"
    path.write_text("", encoding="utf-8")
    with pytest.raises(ValueError, match=".json or .h5ad"):
        Config(data_path=path)
