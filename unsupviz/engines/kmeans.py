"""K-Means (Lloyd's algorithm), one full assign-and-update iteration per step."""

import logging

from unsupviz.engines.base import BaseEngine, ConfigurationError
from unsupviz.models.schemas import DistanceMetric, InitMethod, KMeansState, Point
from unsupviz.utils.geometry import DistanceFn, get_metric, mean_point

logger = logging.getLogger(__name__)


class KMeansEngine(BaseEngine[KMeansState]):
    """K-Means with Forgy, random-partition or k-means++ initialization.

    Initialization draws from the random source right after it is reseeded
    at ``start``, so a configuration always produces the same centroids.
    Empty clusters are reseeded to a uniform point in the domain rather
    than dropped, which keeps exactly ``k`` centroids at all times.
    """

    name = "kmeans"

    @property
    def k(self) -> int:
        return self.config.k

    @property
    def metric(self) -> DistanceFn:
        return get_metric(self.config.distance_metric)

    @property
    def init_method(self) -> InitMethod:
        return InitMethod(self.config.init_method)

    def _validate(self, points: list[Point]) -> None:
        if self.k <= 0:
            raise ConfigurationError(f"k must be >= 1, got {self.k}")
        if self.k > len(points):
            logger.warning(
                f"k={self.k} exceeds the {len(points)} points; "
                "some centroids will stay empty and be reseeded every iteration"
            )

    def _initial_state(self, points: list[Point]) -> KMeansState:
        centroids = self.initialize_centroids(points)
        return KMeansState(
            points=points,
            centroids=centroids,
            assignment=[None] * len(points),
            message=(
                f"Initialized {self.k} centroids with {self.init_method.value} "
                f"({DistanceMetric(self.config.distance_metric).value} distance)."
            ),
        )

    # ---------------------------------------------------------- initialization

    def initialize_centroids(self, points: list[Point]) -> list[Point]:
        """Choose the starting centroids with the configured method.

        Returns:
            Exactly ``k`` centroids.
        """
        if self.init_method == InitMethod.RANDOM_PARTITION:
            centroids = self._random_partition(points)
        elif self.init_method == InitMethod.KMEANS_PLUS_PLUS:
            centroids = self._kmeans_plus_plus(points)
        else:
            centroids = self._forgy(points)

        while len(centroids) < self.k:
            centroids.append(self._random_domain_point())
        return centroids

    def _forgy(self, points: list[Point]) -> list[Point]:
        # Fisher-Yates shuffle, then take the first k.
        shuffled = list(points)
        current = len(shuffled)
        while current != 0:
            random_index = self.random.next_index(current)
            current -= 1
            shuffled[current], shuffled[random_index] = shuffled[random_index], shuffled[current]
        return [Point(p.x, p.y) for p in shuffled[: self.k]]

    def _random_partition(self, points: list[Point]) -> list[Point]:
        groups: list[list[Point]] = [[] for _ in range(self.k)]
        for point in points:
            groups[self.random.next_index(self.k)].append(point)
        return self._update_centroids(groups)

    def _kmeans_plus_plus(self, points: list[Point]) -> list[Point]:
        if not points:
            return []
        metric = self.metric
        first = points[self.random.next_index(len(points))]
        centroids = [Point(first.x, first.y)]

        nearest = [float("inf")] * len(points)
        while len(centroids) < self.k:
            latest = centroids[-1]
            for i, point in enumerate(points):
                nearest[i] = min(nearest[i], metric(point, latest))

            total = sum(d * d for d in nearest)
            threshold = self.random.next() * total
            chosen = len(points) - 1
            cumulative = 0.0
            for i, d in enumerate(nearest):
                cumulative += d * d
                if cumulative >= threshold:
                    chosen = i
                    break
            centroids.append(Point(points[chosen].x, points[chosen].y))
        return centroids

    def _random_domain_point(self) -> Point:
        low = self.config.domain_min
        high = self.config.domain_max
        return Point(self.random.uniform(low, high), self.random.uniform(low, high))

    # ----------------------------------------------------------------- lloyd

    def assign(self, centroids: list[Point]) -> list[int]:
        """Index of the nearest centroid for every point; ties go to the lowest index."""
        metric = self.metric
        labels = []
        for point in self.points:
            best_index = 0
            best_distance = float("inf")
            for i, centroid in enumerate(centroids):
                distance = metric(point, centroid)
                if distance < best_distance:
                    best_distance = distance
                    best_index = i
            labels.append(best_index)
        return labels

    def _update_centroids(self, groups: list[list[Point]]) -> list[Point]:
        return [mean_point(group) if group else self._random_domain_point() for group in groups]

    def _advance(self, state: KMeansState) -> None:
        state.iteration += 1
        labels = self.assign(state.centroids)
        state.assignment = list(labels)

        groups: list[list[Point]] = [[] for _ in state.centroids]
        for point, label in zip(self.points, labels):
            groups[label].append(point)
        empty = sum(1 for group in groups if not group)
        new_centroids = self._update_centroids(groups)

        if new_centroids == state.centroids:
            state.converged = True
            state.terminal = True
            state.message = f"Converged after {state.iteration} iterations."
            return

        state.centroids = new_centroids
        state.message = f"Iteration {state.iteration}: assigned points and moved centroids."
        if empty:
            state.message += f" Reseeded {empty} empty clusters."
        if state.iteration >= self.config.max_iterations:
            state.terminal = True
            state.message += f" Stopped at the {self.config.max_iterations}-iteration limit."
            logger.warning(
                f"K-Means did not converge within {self.config.max_iterations} iterations"
            )


def inertia(state: KMeansState, metric: DistanceFn) -> float:
    """Sum of squared distances from each assigned point to its centroid."""
    total = 0.0
    for point, label in zip(state.points, state.assignment):
        if label is not None:
            total += metric(point, state.centroids[label]) ** 2
    return total
