"""Configuration management for unsupviz.

Supports loading configuration from:
1. CLI arguments (highest priority)
2. Config file (YAML), optionally named by $UNSUPVIZ_CONFIG
3. Built-in defaults (lowest priority)
"""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from unsupviz.models.schemas import (
    DistanceMetric,
    InitMethod,
    LinkageMethod,
    PrincipalComponent,
)
from unsupviz.utils.random_source import DEFAULT_SEED_KEY, PCA_SEED_KEY

CONFIG_ENV_VAR = "UNSUPVIZ_CONFIG"


class DatasetConfig(BaseModel):
    """Point-set generation configuration."""

    shape: str = Field(default="gaussian", description="Name of the point-set shape")
    count: int | None = Field(
        default=None,
        ge=0,
        description="Number of points (None uses the shape's default)",
    )


class AlgorithmConfig(BaseModel):
    """Parameters read once by an engine at start.

    Algorithm parameters are not range-checked here: the engines decide
    whether a value is rejected (ConfigurationError) or degrades gracefully.
    """

    epsilon: float = Field(default=8.0, description="DBSCAN neighborhood radius")
    min_pts: int = Field(default=4, description="DBSCAN core-point threshold")
    k: int = Field(default=4, description="Number of K-Means centroids")
    linkage_method: LinkageMethod = LinkageMethod.SINGLE
    distance_metric: DistanceMetric = DistanceMetric.EUCLIDEAN
    init_method: InitMethod = InitMethod.FORGY
    principal_component: PrincipalComponent = PrincipalComponent.PC1
    max_iterations: int = Field(
        default=300,
        ge=1,
        description="K-Means fast-forward stops after this many iterations",
    )
    seed_key: str = Field(default=DEFAULT_SEED_KEY, description="Clustering seed key")
    pca_seed_key: str = Field(default=PCA_SEED_KEY, description="PCA seed key")
    domain_min: float = Field(default=0.0, description="Lower bound for reseeding")
    domain_max: float = Field(default=100.0, description="Upper bound for reseeding")


class PlaybackConfig(BaseModel):
    """Autoplay and history configuration."""

    interval: float = Field(
        default=1.0, gt=0.0, description="Seconds between autoplay steps"
    )
    history_limit: int | None = Field(
        default=None, ge=1, description="Maximum snapshots kept for stepping back"
    )


class Config(BaseModel):
    """Root configuration model."""

    dataset: DatasetConfig = Field(default_factory=DatasetConfig)
    algorithm: AlgorithmConfig = Field(default_factory=AlgorithmConfig)
    playback: PlaybackConfig = Field(default_factory=PlaybackConfig)


# Default config paths to search (in order)
CONFIG_SEARCH_PATHS = [
    Path("./unsupviz_config.yaml"),
    Path("./unsupviz_config.yml"),
    Path.home() / ".unsupviz" / "config.yaml",
]


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from file or return defaults.

    Args:
        config_path: Explicit path to config file. If None, uses
            $UNSUPVIZ_CONFIG or searches default locations.

    Returns:
        Config object with loaded or default values.
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR) or None

    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        return _load_config_from_file(path)

    # Search default locations
    for search_path in CONFIG_SEARCH_PATHS:
        if search_path.exists():
            return _load_config_from_file(search_path)

    return Config()


def _load_config_from_file(path: Path) -> Config:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML config file.

    Returns:
        Config object with loaded values.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return Config(**data)


def merge_cli_overrides(
    config: Config, **overrides: str | int | float | bool | None
) -> Config:
    """Merge CLI argument overrides into configuration.

    Args:
        config: Base configuration object.
        **overrides: Key-value pairs to override. Keys use a double
                     underscore for nesting (e.g., "algorithm__k",
                     "dataset__shape").

    Returns:
        New Config object with overrides applied.
    """
    config_dict = config.model_dump()

    for key, value in overrides.items():
        if value is None:
            continue

        parts = key.split("__")
        if len(parts) == 1:
            if key in config_dict:
                config_dict[key] = value
        elif len(parts) == 2:
            section, field = parts
            if section in config_dict and field in config_dict[section]:
                config_dict[section][field] = value

    return Config(**config_dict)
