"""Tests for environment-driven configuration (config.py)."""
from __future__ import annotations

import os

import pytest

from usda_timeline.config import DEFAULT_CONFIG, TimelineConfig

_VARS = (
    "USDA_TIMELINE_CONVERT_Z_UP",
    "USDA_TIMELINE_SPHERE_RADIUS",
    "USDA_TIMELINE_CUBE_SIZE",
    "USDA_TIMELINE_CUBE_OPACITY",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults():
    assert DEFAULT_CONFIG == TimelineConfig()
    assert DEFAULT_CONFIG.convert_z_up is True
    assert DEFAULT_CONFIG.default_sphere_radius == 1.0
    assert DEFAULT_CONFIG.default_cube_size == 1.0
    assert DEFAULT_CONFIG.default_cube_opacity == 1.0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"default_sphere_radius": 0.0},
        {"default_cube_size": -1.0},
        {"default_cube_opacity": 1.5},
        {"default_cube_opacity": -0.1},
    ],
)
def test_invalid_values_rejected(kwargs):
    with pytest.raises(ValueError):
        TimelineConfig(**kwargs)


class TestFromEnv:
    def test_unset_gives_defaults(self, clean_env, tmp_path):
        assert TimelineConfig.from_env(tmp_path / "missing.env") == TimelineConfig()

    def test_reads_variables(self, clean_env, tmp_path):
        clean_env.setenv("USDA_TIMELINE_CONVERT_Z_UP", "off")
        clean_env.setenv("USDA_TIMELINE_SPHERE_RADIUS", "0.25")
        clean_env.setenv("USDA_TIMELINE_CUBE_OPACITY", "0.5")
        config = TimelineConfig.from_env(tmp_path / "missing.env")
        assert config.convert_z_up is False
        assert config.default_sphere_radius == pytest.approx(0.25)
        assert config.default_cube_size == 1.0
        assert config.default_cube_opacity == pytest.approx(0.5)

    @pytest.mark.parametrize(
        "name, value",
        [
            ("USDA_TIMELINE_CONVERT_Z_UP", "maybe"),
            ("USDA_TIMELINE_CUBE_SIZE", "big"),
            ("USDA_TIMELINE_CUBE_OPACITY", "2"),
        ],
    )
    def test_bad_values_raise(self, clean_env, tmp_path, name, value):
        clean_env.setenv(name, value)
        with pytest.raises(ValueError):
            TimelineConfig.from_env(tmp_path / "missing.env")

    def test_dotenv_file(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("USDA_TIMELINE_CUBE_SIZE=4\nUSDA_TIMELINE_CONVERT_Z_UP=false\n")
        try:
            config = TimelineConfig.from_env(env_file)
        finally:
            for name in _VARS:
                os.environ.pop(name, None)
        assert config.default_cube_size == pytest.approx(4.0)
        assert config.convert_z_up is False

    def test_environment_overrides_dotenv(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("USDA_TIMELINE_SPHERE_RADIUS=9\n")
        clean_env.setenv("USDA_TIMELINE_SPHERE_RADIUS", "3")
        assert TimelineConfig.from_env(env_file).default_sphere_radius == pytest.approx(3.0)
