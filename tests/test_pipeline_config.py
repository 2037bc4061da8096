from pathlib import Path

import pytest

from lane_occupancy.config import (
    PipelineConfig, StructuringElement, GridConfig, ConfigurationError, load_pipeline_config
)
from lane_occupancy.config.pipeline_config import CONFIG_ENV_VAR

REPO_CONFIG = Path(__file__).parent.parent / "config" / "occupancy_config.yaml"


def test_defaults():
    config = PipelineConfig()
    assert config.threshold.lower_input == 13
    assert config.threshold.upper_output == 175
    assert (config.morphology.erosion.rows, config.morphology.erosion.cols) == (1, 2)
    assert (config.morphology.dilation.rows, config.morphology.dilation.cols) == (2, 6)
    assert config.camera.image_shape == (544, 1024)
    assert config.camera.intrinsic_matrix[0, 0] == 595.0
    assert config.grid.shape == (400, 600)
    assert config.subscriber.receive_timeout_sec == 5.0


def test_repository_config_matches_defaults():
    assert load_pipeline_config(REPO_CONFIG) == PipelineConfig()


def test_partial_yaml_keeps_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("grid:\n  x_limits: [-2, 2]\n  resolution: 0.01\ncamera:\n  pitch_deg: -20\n")
    config = load_pipeline_config(path)
    assert config.grid.cols == 400
    assert config.grid.rows == 400
    assert config.camera.pitch_deg == -20
    assert config.camera.fx == 595.0


def test_env_var_selects_config(tmp_path, monkeypatch):
    path = tmp_path / "env.yaml"
    path.write_text("subscriber:\n  port: 6000\n")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    assert load_pipeline_config().subscriber.port == 6000


def test_missing_explicit_config(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_pipeline_config(tmp_path / "missing.yaml")


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_pipeline_config(path) == PipelineConfig()


@pytest.mark.parametrize("data", [
    {"grid": {"resolution": 0}},
    {"grid": {"x_limits": [5, -1]}},
    {"camera": {"image_width": 0}},
    {"camera": {"focal": 600}},
    {"morphology": {"erosion": {"rows": 0, "cols": 2}}},
    {"morphology": {"reconstruction_connectivity": 6}},
    {"subscriber": {"receive_timeout_sec": 0}},
    {"threshold": {"lower_input": 200}},
    {"unknown_section": {}},
    {"grid": [1, 2]},
    {"grid": {"x_limits": [0, 1], "y_limits": [0, 0.004], "resolution": 0.01}},
    {"grid": {"resolution": 100}},
])
def test_invalid_values_are_rejected(data):
    with pytest.raises(ConfigurationError):
        PipelineConfig.from_dict(data)


def test_structuring_element_anchors():
    assert StructuringElement(1, 2).anchor() == (0, 0)
    assert StructuringElement(2, 6).anchor(reflected=True) == (3, 1)
    assert StructuringElement(3, 3).anchor() == StructuringElement(3, 3).anchor(reflected=True) == (1, 1)


def test_grid_limits_become_float_tuples():
    grid = GridConfig(x_limits=[-1, 5], y_limits=[-2, 2])
    assert grid.x_limits == (-1.0, 5.0)
