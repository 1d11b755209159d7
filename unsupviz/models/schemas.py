"""Pydantic schemas for unsupviz engine state.

This module defines the value types and per-engine state models:
- Point: immutable 2-D point with an optional identity index
- PointState / LinkageMethod / DistanceMetric / InitMethod / PrincipalComponent
- ClusterNode: immutable node of the agglomerative merge tree
- DBSCANState, HACState, KMeansState, PCAState: full mutable engine state

Engine states are plain data. A snapshot is ``state.model_copy(deep=True)``;
immutable values (points, tree nodes) may be shared between copies, mutable
containers never are.
"""

from enum import Enum, IntEnum
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Value Types
# =============================================================================


class Point(NamedTuple):
    """A 2-D point. ``index`` is the stable identity of a generated point."""

    x: float
    y: float
    index: int | None = None

    def __deepcopy__(self, memo: dict[int, Any]) -> "Point":
        return self


class PointState(str, Enum):
    """DBSCAN classification of a single point."""

    UNVISITED = "UNVISITED"
    CORE = "CORE"
    BORDER = "BORDER"
    NOISE = "NOISE"


class LinkageMethod(str, Enum):
    """Distance between two clusters in agglomerative clustering."""

    SINGLE = "single"  # nearest members
    COMPLETE = "complete"  # farthest members
    AVERAGE = "average"  # mean over all cross pairs


class DistanceMetric(str, Enum):
    """Point-to-point metric used by K-Means."""

    EUCLIDEAN = "euclidean"
    MANHATTAN = "manhattan"


class InitMethod(str, Enum):
    """K-Means centroid initialization."""

    FORGY = "forgy"
    RANDOM_PARTITION = "random_partition"
    KMEANS_PLUS_PLUS = "kmeans++"


class PrincipalComponent(str, Enum):
    """Axis used for the final PCA projection."""

    PC1 = "pc1"
    PC2 = "pc2"


class PCAStage(IntEnum):
    """The seven named PCA stages, in execution order."""

    RAW = 0
    MEAN = 1
    CENTERED = 2
    COVARIANCE = 3
    ELLIPSE = 4
    EIGENVECTORS = 5
    PROJECTED = 6


# =============================================================================
# Hierarchical Clustering Models
# =============================================================================


class ClusterNode(BaseModel):
    """A node of the agglomerative merge tree.

    Leaves have no children and ``merge_distance is None``. A merged node has
    exactly two children whose member sets partition its own.
    """

    id: int = Field(description="Leaf: point index. Merged: N + merge number")
    members: frozenset[int] = Field(description="Indices of member points")
    children: tuple["ClusterNode", ...] = Field(default=())
    merge_distance: float | None = Field(default=None)
    color_id: int | None = Field(default=None)

    model_config = ConfigDict(frozen=True)

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @property
    def size(self) -> int:
        return len(self.members)

    def __deepcopy__(self, memo: dict[int, Any] | None = None) -> "ClusterNode":
        # Nodes are immutable; copies of a forest share them.
        return self


class MergeRecord(BaseModel):
    """One agglomerative merge, in the order it happened."""

    left_id: int
    right_id: int
    node_id: int
    distance: float
    size: int
    color_id: int | None = None

    model_config = ConfigDict(frozen=True)


# =============================================================================
# PCA Models
# =============================================================================


class Covariance(BaseModel):
    """Symmetric 2x2 covariance matrix ``[[xx, xy], [xy, yy]]``."""

    xx: float
    yy: float
    xy: float

    model_config = ConfigDict(frozen=True)


class CovarianceEllipse(BaseModel):
    """One-sigma ellipse of the covariance, centered on the origin."""

    radius_major: float = Field(description="sqrt(lambda1)")
    radius_minor: float = Field(description="sqrt(lambda2)")
    angle_degrees: float = Field(description="Rotation of the major axis")

    model_config = ConfigDict(frozen=True)


# =============================================================================
# Engine States
# =============================================================================


class EngineState(BaseModel):
    """Fields shared by every engine state."""

    points: list[Point] = Field(default_factory=list)
    terminal: bool = False
    message: str = ""


class DBSCANState(EngineState):
    """Resumable DBSCAN state.

    ``cluster_ids`` uses 0 for unassigned/noise. ``queue`` is the FIFO of
    point indices awaiting evaluation for the cluster currently growing.
    """

    point_states: list[PointState] = Field(default_factory=list)
    cluster_ids: list[int] = Field(default_factory=list)
    visited: set[int] = Field(default_factory=set)
    scan_cursor: int = 0
    queue: list[int] = Field(default_factory=list)
    cluster_count: int = 0
    active_index: int | None = Field(
        default=None, description="Point evaluated by the last step"
    )
    neighbors: list[int] = Field(
        default_factory=list, description="Neighborhood of the active point"
    )

    @property
    def noise_count(self) -> int:
        return sum(1 for s in self.point_states if s == PointState.NOISE)

    def cluster_sizes(self) -> dict[int, int]:
        """Number of points per cluster id (noise excluded)."""
        sizes: dict[int, int] = {}
        for cluster_id in self.cluster_ids:
            if cluster_id:
                sizes[cluster_id] = sizes.get(cluster_id, 0) + 1
        return sizes


class HACState(EngineState):
    """Resumable agglomerative clustering state."""

    forest: list[ClusterNode] = Field(default_factory=list)
    merge_count: int = 0
    next_color_id: int = 0
    merges: list[MergeRecord] = Field(default_factory=list)

    def color_of(self, index: int) -> int | None:
        """Color id of the forest node containing point ``index``."""
        for node in self.forest:
            if index in node.members:
                return node.color_id
        return None


class KMeansState(EngineState):
    """Resumable K-Means state. ``assignment`` is None before iteration 1."""

    centroids: list[Point] = Field(default_factory=list)
    assignment: list[int | None] = Field(default_factory=list)
    iteration: int = 0
    converged: bool = False

    def clusters(self) -> list[list[int]]:
        """Member point indices per centroid."""
        groups: list[list[int]] = [[] for _ in self.centroids]
        for i, label in enumerate(self.assignment):
            if label is not None:
                groups[label].append(i)
        return groups


class PCAState(EngineState):
    """PCA state, populated stage by stage."""

    stage: PCAStage = PCAStage.RAW
    component: PrincipalComponent = PrincipalComponent.PC1
    mean: Point | None = None
    centered: list[Point] = Field(default_factory=list)
    covariance: Covariance | None = None
    eigenvalues: tuple[float, float] | None = None
    eigenvectors: tuple[Point, Point] | None = None
    ellipse: CovarianceEllipse | None = None
    projections: list[float] = Field(
        default_factory=list, description="1-D coordinates along the axis"
    )
    projected: list[Point] = Field(
        default_factory=list, description="Centered points dropped onto the axis"
    )
    degenerate: bool = Field(
        default=False, description="Axis-aligned fallback was used"
    )
