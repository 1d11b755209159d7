"""Resumable DBSCAN.

Cluster expansion, normally written as recursion, is reified as an explicit
FIFO queue stored in the engine state. Each ``step`` performs exactly one of:

(a) queue non-empty: dequeue one point and apply the claim rules to it
(b) queue empty: advance the scan cursor to the next unvisited point and
    classify it as a new core point (seeding the queue) or provisional noise

Noise is provisional: a later cluster may reclaim a noise point as border.
A point already claimed by a cluster is never reassigned (first claim wins).

``fast_forward`` runs the classic scan-and-expand loop instead of the
two-phase split, sharing the same claim rules so both paths end in the same
labelling.
"""

import logging
from collections import deque

from unsupviz.engines.base import BaseEngine, ConfigurationError
from unsupviz.models.schemas import DBSCANState, Point, PointState
from unsupviz.utils.geometry import euclidean

logger = logging.getLogger(__name__)


class DBSCANEngine(BaseEngine[DBSCANState]):
    """Density-based clustering with one-neighbor-at-a-time expansion.

    Example:
        >>> engine = DBSCANEngine(AlgorithmConfig(epsilon=2.0, min_pts=2))
        >>> engine.start(points)
        >>> while not engine.step().terminal:
        ...     pass
        >>> engine.state.cluster_ids
    """

    name = "dbscan"

    @property
    def epsilon(self) -> float:
        return self.config.epsilon

    @property
    def min_pts(self) -> int:
        return self.config.min_pts

    def _validate(self, points: list[Point]) -> None:
        if self.min_pts < 1:
            raise ConfigurationError(f"min_pts must be >= 1, got {self.min_pts}")
        if self.epsilon <= 0:
            logger.warning(
                f"epsilon={self.epsilon} leaves every neighborhood empty; "
                "all points will be noise"
            )

    def _initial_state(self, points: list[Point]) -> DBSCANState:
        n = len(points)
        state = DBSCANState(
            points=points,
            point_states=[PointState.UNVISITED] * n,
            cluster_ids=[0] * n,
            message=(
                f"Ready to scan {n} points "
                f"(eps={self.epsilon}, min_pts={self.min_pts})."
            ),
        )
        self._settle(state)
        return state

    def region_query(self, index: int) -> list[int]:
        """Indices strictly closer than epsilon to point ``index``, itself excluded.

        Brute force, O(N) per query, ascending index order.
        """
        origin = self.points[index]
        return [
            i
            for i, other in enumerate(self.points)
            if i != index and euclidean(origin, other) < self.epsilon
        ]

    # ------------------------------------------------------------------ rules

    def _claim(self, state: DBSCANState, index: int, cluster_id: int) -> list[int] | None:
        """Apply the expansion rules to a dequeued point.

        Returns:
            None if the point had already been visited, otherwise the
            not-yet-visited neighbors to append to the queue (empty unless
            the point turned out to be a core point).
        """
        if index in state.visited:
            if state.cluster_ids[index] == 0 or state.point_states[index] == PointState.NOISE:
                state.cluster_ids[index] = cluster_id
                state.point_states[index] = PointState.BORDER
            return None

        state.visited.add(index)
        state.cluster_ids[index] = cluster_id
        state.point_states[index] = PointState.BORDER

        neighbors = self.region_query(index)
        if len(neighbors) < self.min_pts:
            return []
        state.point_states[index] = PointState.CORE
        return [n for n in neighbors if n not in state.visited]

    def _settle(self, state: DBSCANState) -> None:
        """Move the cursor past visited points and detect termination."""
        if state.queue:
            return
        n = len(state.points)
        while state.scan_cursor < n and state.scan_cursor in state.visited:
            state.scan_cursor += 1
        if state.scan_cursor >= n:
            self._finish(state, state.message)

    def _finish(self, state: DBSCANState, prefix: str) -> None:
        state.terminal = True
        summary = (
            f"DBSCAN found {state.cluster_count} clusters "
            f"({state.noise_count} noise points)."
        )
        state.message = f"{prefix} {summary}".strip() if prefix else summary

    # ---------------------------------------------------------------- stepping

    def _advance(self, state: DBSCANState) -> None:
        if state.queue:
            self._expand_one(state)
        else:
            self._scan_next(state)
        self._settle(state)

    def _scan_next(self, state: DBSCANState) -> None:
        index = state.scan_cursor
        state.visited.add(index)
        neighbors = self.region_query(index)
        state.active_index = index
        state.neighbors = neighbors

        if len(neighbors) >= self.min_pts:
            state.cluster_count += 1
            state.point_states[index] = PointState.CORE
            state.cluster_ids[index] = state.cluster_count
            state.queue = list(neighbors)
            state.message = (
                f"Point {index} has {len(neighbors)} neighbors: core point, "
                f"starting cluster {state.cluster_count}."
            )
        else:
            state.point_states[index] = PointState.NOISE
            state.message = (
                f"Point {index} has {len(neighbors)} neighbors: marked as noise for now."
            )

    def _expand_one(self, state: DBSCANState) -> None:
        index = state.queue.pop(0)
        cluster_id = state.cluster_count
        previous_id = state.cluster_ids[index]
        state.active_index = index

        expansion = self._claim(state, index, cluster_id)
        if expansion is None:
            state.neighbors = []
            if previous_id != state.cluster_ids[index]:
                state.message = f"Point {index} was noise; now a border point of cluster {cluster_id}."
            else:
                state.message = (
                    f"Point {index} already belongs to cluster {previous_id}; left unchanged."
                )
            return

        state.neighbors = expansion
        if state.point_states[index] == PointState.CORE:
            state.queue.extend(expansion)
            state.message = (
                f"Point {index} is a core point of cluster {cluster_id}; "
                f"queued {len(expansion)} new neighbors."
            )
        else:
            state.message = f"Point {index} joins cluster {cluster_id} as a border point."

    # ------------------------------------------------------------ fast forward

    def _run_to_completion(self, state: DBSCANState) -> None:
        # Finish any expansion already in progress.
        pending = deque(state.queue)
        state.queue = []
        self._expand_all(state, pending, state.cluster_count)

        for index in range(state.scan_cursor, len(state.points)):
            if index in state.visited:
                continue
            state.visited.add(index)
            neighbors = self.region_query(index)
            if len(neighbors) < self.min_pts:
                state.point_states[index] = PointState.NOISE
                continue
            state.cluster_count += 1
            state.point_states[index] = PointState.CORE
            state.cluster_ids[index] = state.cluster_count
            self._expand_all(state, deque(neighbors), state.cluster_count)

        state.scan_cursor = len(state.points)
        state.active_index = None
        state.neighbors = []
        self._finish(state, "")

    def _expand_all(self, state: DBSCANState, queue: deque[int], cluster_id: int) -> None:
        while queue:
            expansion = self._claim(state, queue.popleft(), cluster_id)
            if expansion:
                queue.extend(expansion)
