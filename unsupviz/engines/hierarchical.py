"""Agglomerative (bottom-up) hierarchical clustering, one merge per step.

The forest starts as one leaf per point. Every step merges the two forest
nodes with the smallest linkage distance into a new node whose id is
``N + merge_count``, so ids match the row numbering of a scipy-style linkage
matrix. Ties are broken by the lowest ``(id, id)`` pair.
"""

import logging

import numpy as np

from unsupviz.engines.base import BaseEngine
from unsupviz.models.schemas import (
    ClusterNode,
    HACState,
    LinkageMethod,
    MergeRecord,
    Point,
)
from unsupviz.utils.geometry import distance_matrix, mean_point

logger = logging.getLogger(__name__)


class HACEngine(BaseEngine[HACState]):
    """Hierarchical agglomerative clustering with single, complete or average linkage.

    Cluster-to-cluster distances live in a ``(2N - 1, 2N - 1)`` array indexed
    by node id. A merged node's row is derived from its children's rows with
    the Lance-Williams update, so each step only scans the live forest.
    """

    name = "hierarchical"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._distances: np.ndarray = np.empty((0, 0))
        self._linkage: np.ndarray = np.empty((0, 0))

    @property
    def linkage_method(self) -> LinkageMethod:
        return LinkageMethod(self.config.linkage_method)

    def _initial_state(self, points: list[Point]) -> HACState:
        n = len(points)
        self._distances = distance_matrix(points)
        # Rows of merged nodes are filled in as the merges happen.
        self._linkage = np.full((max(2 * n - 1, 0),) * 2, np.inf)
        self._linkage[:n, :n] = self._distances

        forest = [ClusterNode(id=i, members=frozenset([i])) for i in range(n)]
        state = HACState(
            points=points,
            forest=forest,
            message=(
                f"{len(forest)} singleton clusters, "
                f"{self.linkage_method.value} linkage."
            ),
        )
        if len(forest) <= 1:
            state.terminal = True
            state.message = "Nothing to merge."
        return state

    def linkage_distance(self, a: ClusterNode, b: ClusterNode) -> float:
        """Distance between two clusters under the configured linkage.

        Computed directly from the member points.
        """
        block = self._distances[np.ix_(sorted(a.members), sorted(b.members))]
        if self.linkage_method == LinkageMethod.SINGLE:
            return float(block.min())
        if self.linkage_method == LinkageMethod.COMPLETE:
            return float(block.max())
        return float(block.mean())

    def _closest_pair(self, forest: list[ClusterNode]) -> tuple[ClusterNode, ClusterNode, float]:
        by_id = {node.id: node for node in forest}
        ids = sorted(by_id)
        block = self._linkage[np.ix_(ids, ids)]
        block[np.tril_indices(len(ids))] = np.inf

        distance = block.min()
        # argwhere is row-major over ascending ids: the first hit is the lowest pair.
        i, j = np.argwhere(block == distance)[0]
        return by_id[ids[i]], by_id[ids[j]], float(distance)

    def _link(
        self, left: ClusterNode, right: ClusterNode, node: ClusterNode, others: list[int]
    ) -> None:
        if not others:
            return
        to_left = self._linkage[left.id, others]
        to_right = self._linkage[right.id, others]
        if self.linkage_method == LinkageMethod.SINGLE:
            row = np.minimum(to_left, to_right)
        elif self.linkage_method == LinkageMethod.COMPLETE:
            row = np.maximum(to_left, to_right)
        else:
            row = (left.size * to_left + right.size * to_right) / node.size
        self._linkage[node.id, others] = row
        self._linkage[others, node.id] = row

    def _advance(self, state: HACState) -> None:
        left, right, distance = self._closest_pair(state.forest)

        # A growing cluster keeps its color while absorbing single points.
        if left.size == 1 and right.size > 1:
            color_id = right.color_id
        elif right.size == 1 and left.size > 1:
            color_id = left.color_id
        else:
            color_id = state.next_color_id
            state.next_color_id += 1

        node = ClusterNode(
            id=len(self.points) + state.merge_count,
            members=left.members | right.members,
            children=(left, right),
            merge_distance=distance,
            color_id=color_id,
        )
        state.forest = [n for n in state.forest if n.id not in (left.id, right.id)]
        self._link(left, right, node, [n.id for n in state.forest])
        state.forest.append(node)
        state.merge_count += 1
        state.merges.append(
            MergeRecord(
                left_id=left.id,
                right_id=right.id,
                node_id=node.id,
                distance=distance,
                size=node.size,
                color_id=color_id,
            )
        )

        state.message = (
            f"Merged {left.id} and {right.id} into {node.id} at distance "
            f"{distance:.3f}; {len(state.forest)} clusters remain."
        )
        if len(state.forest) <= 1:
            state.terminal = True
            state.message += " All points are in one cluster."

    # ---------------------------------------------------------------- geometry

    def cluster_center(self, node: ClusterNode) -> Point:
        """Mean of the node's member points."""
        return mean_point([self.points[i] for i in sorted(node.members)])

    def connection_points(self, a: ClusterNode, b: ClusterNode) -> tuple[Point, Point]:
        """The two points a merge line between ``a`` and ``b`` is drawn through.

        Single linkage uses the closest cross pair, complete linkage the
        farthest, average linkage the two cluster centers.
        """
        if self.linkage_method == LinkageMethod.AVERAGE:
            return self.cluster_center(a), self.cluster_center(b)

        pairs = ((i, j) for i in sorted(a.members) for j in sorted(b.members))
        if self.linkage_method == LinkageMethod.SINGLE:
            i, j = min(pairs, key=lambda p: self._distances[p[0], p[1]])
        else:
            i, j = max(pairs, key=lambda p: self._distances[p[0], p[1]])
        return self.points[i], self.points[j]


def linkage_matrix(merges: list[MergeRecord]) -> np.ndarray:
    """Merge log as an ``(m, 4)`` array of ``[left, right, distance, size]``.

    The layout matches ``scipy.cluster.hierarchy.linkage`` output.
    """
    if not merges:
        return np.empty((0, 4), dtype=float)
    return np.array(
        [[m.left_id, m.right_id, m.distance, m.size] for m in merges], dtype=float
    )


def leaf_order(root: ClusterNode) -> list[int]:
    """Point indices in dendrogram order (left subtree first)."""
    order: list[int] = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_leaf:
            order.append(node.id)
        else:
            stack.extend(reversed(node.children))
    return order

