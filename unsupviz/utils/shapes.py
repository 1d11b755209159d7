"""Synthetic 2-D point sets for the engines.

Every generator draws exclusively from the supplied RandomSource, so a point
set is reproducible from the seed key alone. Points live in the 100x100 box
(moons and clamped shapes included) and carry their position as ``index``.

Shapes:
- random: uniform in the box
- gaussian: four well-separated Gaussian blobs
- moons: two interleaved half circles
- circle: three concentric rings
- spiral: two-turn Archimedean spiral (no randomness)
- elongated: a 45-degree rotated, stretched Gaussian cloud
- diagonal: two Gaussian clusters on the anti-diagonal
- scurve: a thin noisy sine segment
"""

import logging
import math
from collections.abc import Callable

from unsupviz.models.schemas import Point
from unsupviz.utils.random_source import RandomSource

logger = logging.getLogger(__name__)

BOX_MIN = 0.0
BOX_MAX = 100.0

# Point counts used when the caller does not ask for a specific size
DEFAULT_COUNT = 75
CIRCLE_COUNT = 400


def _clamp(value: float) -> float:
    return max(BOX_MIN, min(BOX_MAX, value))


def _gaussian(rng: RandomSource) -> float:
    """Standard normal sample via Box-Muller, rejecting zero draws."""
    u = 0.0
    v = 0.0
    while u == 0.0:
        u = rng.next()
    while v == 0.0:
        v = rng.next()
    return math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)


def random_points(count: int, rng: RandomSource) -> list[tuple[float, float]]:
    return [(rng.next() * 100, rng.next() * 100) for _ in range(count)]


def moons(count: int, rng: RandomSource) -> list[tuple[float, float]]:
    radius = 20.0
    thickness = 3.0
    separation = -5.0
    n_upper = count // 2
    n_lower = count - n_upper

    raw: list[tuple[float, float]] = []
    for i in range(n_upper):
        angle = (i / max(n_upper - 1, 1)) * math.pi
        r = radius + (rng.next() - 0.5) * thickness
        raw.append((r * math.cos(angle), r * math.sin(angle)))
    for i in range(n_lower):
        angle = (i / max(n_lower - 1, 1)) * math.pi
        r = radius + (rng.next() - 0.5) * thickness
        raw.append(
            (r * math.cos(angle) - radius + separation, -r * math.sin(angle) - separation)
        )

    return [(x + 50, y + 45) for x, y in raw]


def concentric_circles(count: int, rng: RandomSource) -> list[tuple[float, float]]:
    center = 50.0
    radii = [10.0, 28.0, 46.0]
    noise = 0.3
    per_ring = count // len(radii)

    result: list[tuple[float, float]] = []
    for ring, radius in enumerate(radii):
        n = per_ring
        if ring == len(radii) - 1:
            n = count - per_ring * (len(radii) - 1)
        for i in range(n):
            angle = (i / n) * 2 * math.pi
            r = radius + (rng.next() * noise - noise / 2)
            result.append((center + r * math.cos(angle), center + r * math.sin(angle)))
    return result


def gaussian_blobs(count: int, rng: RandomSource) -> list[tuple[float, float]]:
    n_blobs = 4
    min_distance = 35.0
    std_dev = 4.5

    centers: list[tuple[float, float]] = []
    while len(centers) < n_blobs:
        x = 15 + rng.next() * 70
        y = 15 + rng.next() * 70
        if all(math.hypot(cx - x, cy - y) >= min_distance for cx, cy in centers):
            centers.append((x, y))

    result: list[tuple[float, float]] = []
    for i in range(count):
        cx, cy = centers[i % n_blobs]
        result.append((cx + _gaussian(rng) * std_dev, cy + _gaussian(rng) * std_dev))
    return result


def elongated_cloud(count: int, rng: RandomSource) -> list[tuple[float, float]]:
    angle = math.pi / 4
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)

    result: list[tuple[float, float]] = []
    for _ in range(count):
        # Long axis along x, short axis along y, then rotate.
        x_raw = _gaussian(rng) * 25
        y_raw = _gaussian(rng) * 5
        x_rot = x_raw * cos_a - y_raw * sin_a
        y_rot = x_raw * sin_a + y_raw * cos_a
        result.append((_clamp(50 + x_rot), _clamp(50 + y_rot)))
    return result


def diagonal_clusters(count: int, rng: RandomSource) -> list[tuple[float, float]]:
    first = count // 2
    result: list[tuple[float, float]] = []
    for i in range(count):
        cx, cy = (25.0, 75.0) if i < first else (75.0, 25.0)
        result.append(
            (_clamp(cx + _gaussian(rng) * 6), _clamp(cy + _gaussian(rng) * 6))
        )
    return result


def thin_s_curve(count: int, rng: RandomSource) -> list[tuple[float, float]]:
    result: list[tuple[float, float]] = []
    for _ in range(count):
        t = rng.next()
        x = 20 + t * 60
        y = 50 + 30 * math.sin((t - 0.5) * math.pi * 1.5)
        noise_x = (rng.next() - 0.5) * 4
        noise_y = (rng.next() - 0.5) * 4
        result.append((_clamp(x + noise_x), _clamp(y + noise_y)))
    return result


def spiral(count: int, rng: RandomSource) -> list[tuple[float, float]]:
    max_radius = 40.0
    max_angle = 4 * math.pi
    result: list[tuple[float, float]] = []
    for i in range(count):
        t = i / count
        angle = t * max_angle
        r = t * max_radius
        result.append((50 + r * math.cos(angle), 50 + r * math.sin(angle)))
    return result


SHAPES: dict[str, Callable[[int, RandomSource], list[tuple[float, float]]]] = {
    "random": random_points,
    "gaussian": gaussian_blobs,
    "moons": moons,
    "circle": concentric_circles,
    "spiral": spiral,
    "elongated": elongated_cloud,
    "diagonal": diagonal_clusters,
    "scurve": thin_s_curve,
}


def default_point_count(shape: str) -> int:
    """Point count used for a shape when none is requested."""
    return CIRCLE_COUNT if shape == "circle" else DEFAULT_COUNT


def generate_points(shape: str, count: int, rng: RandomSource) -> list[Point]:
    """Generate an ordered point set for a named shape.

    Args:
        shape: One of ``SHAPES``.
        count: Number of points.
        rng: Shared random source; consumed, never reseeded here.

    Returns:
        Points with ``index`` equal to their position.

    Raises:
        ValueError: If the shape is unknown or the count is negative.
    """
    if shape not in SHAPES:
        raise ValueError(f"Unknown shape '{shape}'. Available: {sorted(SHAPES)}")
    if count < 0:
        raise ValueError(f"Point count must be >= 0, got {count}")

    coords = SHAPES[shape](count, rng)
    logger.debug(f"Generated {len(coords)} points for shape '{shape}'")
    return [Point(x, y, i) for i, (x, y) in enumerate(coords)]
