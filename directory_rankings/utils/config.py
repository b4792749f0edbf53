"""Configuration loading and validation.

Loads YAML config files and provides typed access to ranking and proximity
parameters.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List

import yaml


@dataclass
class StoreConfig:
    backend: str = "sqlite"
    path: str = "directory.db"


@dataclass
class RankingConfig:
    score_precision: int = 8


@dataclass
class ProximityConfig:
    min_profiles: int = 10
    max_radius: float = 30.0
    candidate_radii: List[float] = field(default_factory=lambda: [2, 5, 10, 15, 20, 25, 30])
    default_radius: float = 5.0


@dataclass
class JobConfig:
    batch_size: int = 10
    delay: float = 0.0
    batch_pause: float = 0.0
    progress_dir: str = ".progress"
    max_retries: int = 3
    retry_wait: float = 0.5


@dataclass
class HooksConfig:
    recompute_on_save: bool = True


@dataclass
class ExportConfig:
    formats: List[str] = field(default_factory=lambda: ["csv"])
    output_dir: str = "./output"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str = ""
    console: bool = True


@dataclass
class AppConfig:
    """Top-level configuration."""
    name: str = "directory-rankings"
    version: str = "0.1.0"

    store: StoreConfig = field(default_factory=StoreConfig)
    ranking: RankingConfig = field(default_factory=RankingConfig)
    proximity: ProximityConfig = field(default_factory=ProximityConfig)
    job: JobConfig = field(default_factory=JobConfig)
    hooks: HooksConfig = field(default_factory=HooksConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_SECTIONS = {
    "store": StoreConfig,
    "ranking": RankingConfig,
    "proximity": ProximityConfig,
    "job": JobConfig,
    "hooks": HooksConfig,
    "export": ExportConfig,
    "logging": LoggingConfig,
}


def _build_dataclass(cls, data: dict):
    """Build a dataclass from a dict, ignoring unknown keys."""
    if data is None:
        return cls()
    field_names = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in data.items() if k in field_names}
    return cls(**filtered)


def load_config(path: str | Path) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to YAML configuration file.

    Returns:
        Fully populated AppConfig object.
    """
    path = Path(path)
    with open(path, "r") as f:
        raw = yaml.safe_load(f)

    if raw is None:
        return AppConfig()

    app_raw = raw.get("app", {}) or {}
    config = AppConfig(
        name=app_raw.get("name", "directory-rankings"),
        version=app_raw.get("version", "0.1.0"),
    )

    for section, cls in _SECTIONS.items():
        if section in raw:
            setattr(config, section, _build_dataclass(cls, raw[section]))

    return config


def save_config(config: AppConfig, path: str | Path) -> None:
    """Save configuration to a YAML file."""

    def _to_dict(obj):
        if dataclasses.is_dataclass(obj):
            return {f.name: _to_dict(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
        elif isinstance(obj, (list, tuple)):
            return [_to_dict(v) for v in obj]
        elif isinstance(obj, dict):
            return {k: _to_dict(v) for k, v in obj.items()}
        elif isinstance(obj, Enum):
            return obj.value
        else:
            return obj

    data = {"app": {"name": config.name, "version": config.version}}
    for section in _SECTIONS:
        data[section] = _to_dict(getattr(config, section))

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)
