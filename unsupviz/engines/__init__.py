"""Resumable algorithm engines for unsupviz."""

from unsupviz.engines.base import (
    BaseEngine,
    ConfigurationError,
    EngineError,
    EngineNotStartedError,
    StepResult,
)
from unsupviz.engines.dbscan import DBSCANEngine
from unsupviz.engines.hierarchical import HACEngine
from unsupviz.engines.kmeans import KMeansEngine
from unsupviz.engines.pca import PCAEngine

__all__ = [
    "BaseEngine",
    "StepResult",
    "EngineError",
    "ConfigurationError",
    "EngineNotStartedError",
    "DBSCANEngine",
    "HACEngine",
    "KMeansEngine",
    "PCAEngine",
]
