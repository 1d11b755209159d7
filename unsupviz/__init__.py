"""unsupviz - step-by-step unsupervised learning.

Resumable, rewindable engines for K-Means, DBSCAN, hierarchical
agglomerative clustering and 2-D PCA, driven one unit of work at a time.
"""

from unsupviz.config import Config, load_config
from unsupviz.controller import Algorithm, StepController
from unsupviz.engines.base import StepResult

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "Algorithm",
    "StepController",
    "StepResult",
    "Config",
    "load_config",
]
