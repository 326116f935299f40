from pathlib import Path

import pytest

from glb_extractor import config_utils
from glb_extractor.config_utils import ExtractorConfig, load_config


def test_repository_config_matches_defaults():
    assert load_config(Path(__file__).resolve().parents[1] / "config" / "extractor.yml") == ExtractorConfig()


def test_defaults_when_no_config_file(monkeypatch, tmp_path):
    monkeypatch.setattr(config_utils, "CONFIG_PATH", tmp_path / "missing.yml")

    assert load_config() == ExtractorConfig()


def test_partial_override(tmp_path):
    path = tmp_path / "extractor.yml"
    path.write_text(
        "extractor:\n"
        "  generator: studio-export\n"
        "  synthetic_material:\n"
        "    roughness_factor: 1\n"
        "  output:\n"
        "    textures_suffix: _images\n"
    )

    config = load_config(path)

    assert config.generator == "studio-export"
    assert config.synthetic_material.roughness_factor == 1.0
    assert config.synthetic_material.saturation == 0.75
    assert config.output.textures_suffix == "_images"
    assert config.output.materials_suffix == "_materials"


def test_missing_extractor_section(tmp_path):
    path = tmp_path / "other.yml"
    path.write_text("something_else: {}\n")

    with pytest.raises(ValueError, match="extractor"):
        load_config(path)


def test_non_mapping_subsection(tmp_path):
    path = tmp_path / "bad.yml"
    path.write_text("extractor:\n  output: [a, b]\n")

    with pytest.raises(ValueError, match="extractor.output"):
        load_config(path)


def test_explicit_missing_path(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yml")
