"""Closed-form 2-D geometry helpers shared by the engines."""

import math
from collections.abc import Callable, Sequence

import numpy as np

from unsupviz.models.schemas import DistanceMetric, Point

DistanceFn = Callable[[Point, Point], float]


def euclidean(a: Point, b: Point) -> float:
    return math.sqrt((a.x - b.x) ** 2 + (a.y - b.y) ** 2)


def manhattan(a: Point, b: Point) -> float:
    return abs(a.x - b.x) + abs(a.y - b.y)


METRICS: dict[DistanceMetric, DistanceFn] = {
    DistanceMetric.EUCLIDEAN: euclidean,
    DistanceMetric.MANHATTAN: manhattan,
}


def get_metric(metric: DistanceMetric | str) -> DistanceFn:
    """Look up a distance function by metric name.

    Raises:
        ValueError: If the metric is unknown.
    """
    return METRICS[DistanceMetric(metric)]


def mean_point(points: Sequence[Point]) -> Point:
    """Coordinate-wise average. The caller guarantees ``points`` is non-empty."""
    sum_x = sum(p.x for p in points)
    sum_y = sum(p.y for p in points)
    return Point(sum_x / len(points), sum_y / len(points))


def dot(a: Point, b: Point) -> float:
    return a.x * b.x + a.y * b.y


def norm(v: Point) -> float:
    return math.sqrt(v.x * v.x + v.y * v.y)


def distance_matrix(points: Sequence[Point]) -> np.ndarray:
    """Symmetric ``(n, n)`` array of pairwise Euclidean distances."""
    coords = np.array([(p.x, p.y) for p in points], dtype=float).reshape(-1, 2)
    diff = coords[:, None, :] - coords[None, :, :]
    return np.sqrt((diff**2).sum(axis=-1))
