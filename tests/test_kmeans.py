"""Tests for the K-Means engine."""

import pytest

from unsupviz.config import AlgorithmConfig
from unsupviz.engines.base import ConfigurationError
from unsupviz.engines.kmeans import KMeansEngine, inertia
from unsupviz.models.schemas import DistanceMetric, InitMethod, Point
from unsupviz.utils.geometry import euclidean


def _engine(**kwargs) -> KMeansEngine:
    return KMeansEngine(AlgorithmConfig(**kwargs))


TWO_GROUPS = [
    Point(0.0, 0.0, 0),
    Point(1.0, 0.0, 1),
    Point(10.0, 0.0, 2),
    Point(11.0, 0.0, 3),
]


class TestInitialization:
    """Tests for centroid initialization."""

    @pytest.mark.parametrize("method", list(InitMethod))
    def test_exactly_k_centroids(self, gaussian_points: list[Point], method: InitMethod) -> None:
        """Test that every method produces k centroids and no assignment."""
        engine = _engine(k=4, init_method=method)
        state = engine.start(gaussian_points)
        assert len(state.centroids) == 4
        assert state.assignment == [None] * len(gaussian_points)
        assert state.iteration == 0

    def test_forgy_picks_distinct_data_points(self, gaussian_points: list[Point]) -> None:
        """Test that Forgy centroids are distinct input coordinates."""
        engine = _engine(k=4, init_method=InitMethod.FORGY)
        state = engine.start(gaussian_points)
        coords = {(p.x, p.y) for p in gaussian_points}
        assert all((c.x, c.y) in coords for c in state.centroids)
        assert len(set(state.centroids)) == 4

    def test_kmeans_plus_plus_picks_data_points(self, gaussian_points: list[Point]) -> None:
        """Test that k-means++ centroids are input coordinates."""
        engine = _engine(k=4, init_method=InitMethod.KMEANS_PLUS_PLUS)
        state = engine.start(gaussian_points)
        coords = {(p.x, p.y) for p in gaussian_points}
        assert all((c.x, c.y) in coords for c in state.centroids)

    def test_centroids_carry_no_index(self, gaussian_points: list[Point]) -> None:
        """Test that centroids are plain coordinates."""
        engine = _engine(k=3)
        state = engine.start(gaussian_points)
        assert all(c.index is None for c in state.centroids)

    @pytest.mark.parametrize("method", list(InitMethod))
    def test_initialization_is_deterministic(
        self, gaussian_points: list[Point], method: InitMethod
    ) -> None:
        """Test that restarting reproduces the same centroids."""
        engine = _engine(k=4, init_method=method)
        first = engine.start(gaussian_points).centroids
        second = engine.start(gaussian_points).centroids
        assert first == second

    def test_invalid_k(self, gaussian_points: list[Point]) -> None:
        """Test that k <= 0 is rejected."""
        for k in (0, -2):
            with pytest.raises(ConfigurationError):
                _engine(k=k).start(gaussian_points)


class TestLloydIteration:
    """Tests for single iterations."""

    def test_two_groups_converge(self) -> None:
        """Test convergence to the two group means."""
        engine = _engine(k=2)
        engine.start(TWO_GROUPS)
        state = engine.fast_forward().snapshot
        assert state.converged
        assert sorted((c.x, c.y) for c in state.centroids) == [(0.5, 0.0), (10.5, 0.0)]
        labels = state.assignment
        assert labels[0] == labels[1] != labels[2] == labels[3]
        assert "Converged" in state.message

    def test_step_assigns_points(self, gaussian_points: list[Point]) -> None:
        """Test that one step assigns every point and counts the iteration."""
        engine = _engine(k=4)
        engine.start(gaussian_points)
        state = engine.step().snapshot
        assert state.iteration == 1
        assert all(label in range(4) for label in state.assignment)
        assert sum(len(members) for members in state.clusters()) == len(gaussian_points)

    def test_ties_go_to_lowest_centroid(self) -> None:
        """Test that equidistant centroids resolve to the first one."""
        engine = _engine(k=2)
        engine.start(TWO_GROUPS)
        assert engine.assign([Point(5.0, 0.0), Point(5.0, 0.0)]) == [0, 0, 0, 0]

    @pytest.mark.parametrize(
        "metric,expected",
        [(DistanceMetric.EUCLIDEAN, 0), (DistanceMetric.MANHATTAN, 1)],
    )
    def test_metric_changes_assignment(self, metric: DistanceMetric, expected: int) -> None:
        """Test that the metric decides the nearest centroid."""
        engine = _engine(k=2, distance_metric=metric)
        engine.start([Point(0.0, 0.0, 0)])
        assert engine.assign([Point(3.0, 3.0), Point(0.0, 5.0)]) == [expected]

    @pytest.mark.parametrize("method", list(InitMethod))
    def test_gaussian_blobs_converge(
        self, gaussian_points: list[Point], method: InitMethod
    ) -> None:
        """Test that four blobs converge within a small number of iterations."""
        engine = _engine(k=4, init_method=method)
        engine.start(gaussian_points)
        state = engine.fast_forward().snapshot
        assert state.converged
        assert state.iteration <= 30

    def test_convergence_repeats_centroids(self, gaussian_points: list[Point]) -> None:
        """Test that the converging step leaves the centroids unchanged."""
        engine = _engine(k=4)
        engine.start(gaussian_points)
        previous = engine.snapshot().centroids
        while not engine.step().terminal:
            previous = engine.snapshot().centroids
        assert engine.state.centroids == previous


class TestMoreCentroidsThanPoints:
    """Tests for k larger than the point count."""

    def test_runs_with_reseeded_centroids(self) -> None:
        """Test that the engine keeps k centroids and stops at the iteration cap."""
        points = [Point(10.0, 10.0, 0), Point(20.0, 20.0, 1)]
        engine = _engine(k=3, max_iterations=5)
        state = engine.start(points)
        assert len(state.centroids) == 3

        state = engine.fast_forward().snapshot
        assert state.terminal
        assert not state.converged
        assert state.iteration == 5
        assert len(state.centroids) == 3
        assert "limit" in state.message

    def test_reseeded_centroids_in_domain(self) -> None:
        """Test that empty clusters are reseeded inside the domain."""
        engine = _engine(k=5, max_iterations=3, domain_min=40.0, domain_max=60.0)
        engine.start([Point(0.0, 0.0, 0)])
        state = engine.fast_forward().snapshot
        for centroid in state.centroids[1:]:
            assert 40.0 <= centroid.x < 60.0
            assert 40.0 <= centroid.y < 60.0

    def test_empty_point_set(self) -> None:
        """Test that no points still produce k centroids and terminate."""
        engine = _engine(k=2, max_iterations=2)
        engine.start([])
        state = engine.fast_forward().snapshot
        assert len(state.centroids) == 2
        assert state.terminal


class TestKMeansStepping:
    """Tests for step-back and determinism."""

    def test_step_back_restores_previous_state(self, gaussian_points: list[Point]) -> None:
        """Test that every iteration can be undone exactly."""
        engine = _engine(k=4, init_method=InitMethod.RANDOM_PARTITION)
        engine.start(gaussian_points)
        while not engine.is_terminal:
            before = engine.snapshot()
            engine.step()
            engine.step_back()
            assert engine.snapshot() == before
            engine.step()

    def test_step_back_replays_random_reseeding(self) -> None:
        """Test that re-stepping after a step back draws the same reseed points."""
        points = [Point(10.0, 10.0, 0), Point(20.0, 20.0, 1)]
        engine = _engine(k=3, max_iterations=10)
        engine.start(points)
        engine.step()
        after_first = engine.step().snapshot
        engine.step_back()
        assert engine.step().snapshot == after_first

    def test_determinism(self, gaussian_points: list[Point]) -> None:
        """Test that two runs end in the same assignment."""
        runs = []
        for _ in range(2):
            engine = _engine(k=4, init_method=InitMethod.KMEANS_PLUS_PLUS)
            engine.start(gaussian_points)
            runs.append(engine.fast_forward().snapshot)
        assert runs[0].assignment == runs[1].assignment
        assert runs[0].centroids == runs[1].centroids


class TestInertia:
    """Tests for inertia function."""

    def test_inertia_of_two_groups(self) -> None:
        """Test the sum of squared distances after convergence."""
        engine = _engine(k=2)
        engine.start(TWO_GROUPS)
        state = engine.fast_forward().snapshot
        assert inertia(state, euclidean) == pytest.approx(1.0)

    def test_inertia_before_assignment(self, gaussian_points: list[Point]) -> None:
        """Test that unassigned points contribute nothing."""
        engine = _engine(k=4)
        state = engine.start(gaussian_points)
        assert inertia(state, euclidean) == 0.0
