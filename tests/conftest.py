"""Shared pytest fixtures for unsupviz tests."""

import pytest

from fixtures.point_sets import (
    COLLINEAR,
    RECLAIMED_NOISE,
    TWO_PAIRS,
    TWO_TIGHT_TRIPLES,
    as_points,
)
from unsupviz.config import AlgorithmConfig, Config
from unsupviz.models.schemas import Point
from unsupviz.utils.random_source import RandomSource
from unsupviz.utils.shapes import generate_points


@pytest.fixture
def sample_config() -> Config:
    """Create a default configuration."""
    return Config()


@pytest.fixture
def algorithm_config() -> AlgorithmConfig:
    """Create default algorithm parameters."""
    return AlgorithmConfig()


@pytest.fixture
def random_source() -> RandomSource:
    """Create a random source with the default key."""
    return RandomSource()


@pytest.fixture
def gaussian_points() -> list[Point]:
    """Four Gaussian blobs, 80 points."""
    return generate_points("gaussian", 80, RandomSource())


@pytest.fixture
def moons_points() -> list[Point]:
    """Two interleaved moons, 60 points."""
    return generate_points("moons", 60, RandomSource())


@pytest.fixture
def elongated_points() -> list[Point]:
    """Rotated elongated cloud, 75 points."""
    return generate_points("elongated", 75, RandomSource())


@pytest.fixture
def two_tight_triples() -> list[Point]:
    return as_points(TWO_TIGHT_TRIPLES)


@pytest.fixture
def two_pairs() -> list[Point]:
    return as_points(TWO_PAIRS)


@pytest.fixture
def reclaimed_noise() -> list[Point]:
    return as_points(RECLAIMED_NOISE)


@pytest.fixture
def collinear() -> list[Point]:
    return as_points(COLLINEAR)
