"""Runtime configuration for parsing and geometry extraction."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

_ENV_PREFIX = "USDA_TIMELINE_"
_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class TimelineConfig:
    convert_z_up: bool = True
    default_sphere_radius: float = 1.0
    default_cube_size: float = 1.0
    default_cube_opacity: float = 1.0

    def __post_init__(self) -> None:
        if self.default_sphere_radius <= 0.0:
            raise ValueError("TimelineConfig requires default_sphere_radius > 0")
        if self.default_cube_size <= 0.0:
            raise ValueError("TimelineConfig requires default_cube_size > 0")
        if not 0.0 <= self.default_cube_opacity <= 1.0:
            raise ValueError("TimelineConfig requires 0 <= default_cube_opacity <= 1")

    @classmethod
    def from_env(cls, dotenv_path: str | Path | None = None) -> "TimelineConfig":
        """Build a config from ``USDA_TIMELINE_*`` variables (after loading .env)."""
        load_dotenv(dotenv_path)
        return cls(
            convert_z_up=_env_bool(f"{_ENV_PREFIX}CONVERT_Z_UP", True),
            default_sphere_radius=_env_float(f"{_ENV_PREFIX}SPHERE_RADIUS", 1.0),
            default_cube_size=_env_float(f"{_ENV_PREFIX}CUBE_SIZE", 1.0),
            default_cube_opacity=_env_float(f"{_ENV_PREFIX}CUBE_OPACITY", 1.0),
        )


DEFAULT_CONFIG = TimelineConfig()
