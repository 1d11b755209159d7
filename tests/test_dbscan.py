"""Tests for the resumable DBSCAN engine."""

import pytest

from unsupviz.config import AlgorithmConfig
from unsupviz.engines.base import ConfigurationError, EngineNotStartedError
from unsupviz.engines.dbscan import DBSCANEngine
from unsupviz.models.schemas import DBSCANState, Point, PointState


def _engine(epsilon: float, min_pts: int) -> DBSCANEngine:
    return DBSCANEngine(AlgorithmConfig(epsilon=epsilon, min_pts=min_pts))


def _step_to_end(engine: DBSCANEngine) -> DBSCANState:
    while engine.step().advanced:
        pass
    return engine.snapshot()


def _assert_complete(state: DBSCANState) -> None:
    for point_state, cluster_id in zip(state.point_states, state.cluster_ids):
        assert point_state in (PointState.CORE, PointState.BORDER, PointState.NOISE)
        if point_state == PointState.NOISE:
            assert cluster_id == 0
        else:
            assert cluster_id != 0


class TestRegionQuery:
    """Tests for neighborhood queries."""

    def test_excludes_self_ascending(self, reclaimed_noise: list[Point]) -> None:
        """Test that neighbors exclude the point itself and are ordered by index."""
        engine = _engine(1.5, 2)
        engine.start(reclaimed_noise)
        assert engine.region_query(1) == [0, 2]
        assert engine.region_query(0) == [1]

    def test_strict_radius(self, reclaimed_noise: list[Point]) -> None:
        """Test that a point exactly epsilon away is not a neighbor."""
        engine = _engine(1.0, 2)
        engine.start(reclaimed_noise)
        assert engine.region_query(1) == []


class TestDBSCANScenarios:
    """Tests on small hand-made point sets."""

    def test_two_tight_groups(self, two_tight_triples: list[Point]) -> None:
        """Test that two tight groups give two clusters and no noise."""
        engine = _engine(2.0, 2)
        engine.start(two_tight_triples)
        state = _step_to_end(engine)
        assert state.cluster_count == 2
        assert state.noise_count == 0
        assert state.cluster_ids == [1, 1, 1, 2, 2, 2]
        assert "found 2 clusters" in state.message

    def test_two_pairs_with_min_pts_one(self, two_pairs: list[Point]) -> None:
        """Test that a single neighbor suffices when min_pts is 1."""
        engine = _engine(2.0, 1)
        engine.start(two_pairs)
        result = engine.fast_forward()
        assert result.snapshot.cluster_count == 2
        assert result.snapshot.noise_count == 0

    def test_two_pairs_are_noise_with_min_pts_two(self, two_pairs: list[Point]) -> None:
        """Test that neighbor counts exclude the point itself."""
        engine = _engine(2.0, 2)
        engine.start(two_pairs)
        state = engine.fast_forward().snapshot
        assert state.cluster_count == 0
        assert state.point_states == [PointState.NOISE] * 4

    def test_noise_is_reclaimed_as_border(self, reclaimed_noise: list[Point]) -> None:
        """Test the exact step sequence of a noise point later claimed as border."""
        engine = _engine(1.5, 2)
        engine.start(reclaimed_noise)

        state = engine.step().snapshot
        assert state.point_states[0] == PointState.NOISE
        assert state.queue == []
        assert state.active_index == 0

        state = engine.step().snapshot
        assert state.point_states[1] == PointState.CORE
        assert state.cluster_ids[1] == 1
        assert state.queue == [0, 2]

        state = engine.step().snapshot
        assert state.point_states[0] == PointState.BORDER
        assert state.cluster_ids[0] == 1
        assert state.queue == [2]

        state = engine.step().snapshot
        assert state.point_states[2] == PointState.CORE
        assert state.queue == [3]

        result = engine.step()
        assert result.terminal
        assert result.snapshot.point_states == [
            PointState.BORDER,
            PointState.CORE,
            PointState.CORE,
            PointState.BORDER,
        ]
        assert result.snapshot.cluster_ids == [1, 1, 1, 1]

    def test_claimed_point_not_reassigned(self) -> None:
        """Test that the first cluster to claim a border point keeps it."""
        # Point 4 is a border point within reach of both plus-shaped groups.
        coords = [
            (0, 0), (1, 0), (1, 1), (1, -1),
            (2, 0),
            (3, 0), (4, 0), (3, 1), (3, -1),
        ]
        points = [Point(float(x), float(y), i) for i, (x, y) in enumerate(coords)]

        engine = _engine(1.1, 3)
        engine.start(points)
        stepped = _step_to_end(engine)
        assert stepped.cluster_count == 2
        assert stepped.point_states[4] == PointState.BORDER
        assert stepped.cluster_ids[4] == 1
        assert stepped.cluster_ids[5:] == [2, 2, 2, 2]

        engine.start(points)
        assert engine.fast_forward().snapshot.cluster_ids == stepped.cluster_ids

    def test_non_positive_epsilon_gives_all_noise(self, two_tight_triples: list[Point]) -> None:
        """Test that epsilon <= 0 leaves every point as noise."""
        for epsilon in (0.0, -1.0):
            engine = _engine(epsilon, 1)
            engine.start(two_tight_triples)
            state = _step_to_end(engine)
            assert state.point_states == [PointState.NOISE] * 6
            assert state.cluster_ids == [0] * 6

    def test_empty_dataset_is_terminal(self) -> None:
        """Test that an empty point set starts finished."""
        engine = _engine(2.0, 2)
        state = engine.start([])
        assert state.terminal
        assert "found 0 clusters" in state.message


class TestDBSCANProperties:
    """Tests for whole-run properties on generated data."""

    @pytest.mark.parametrize(
        "epsilon,min_pts", [(5.0, 3), (8.0, 4), (12.0, 6), (3.0, 1)]
    )
    def test_step_and_fast_forward_agree(
        self, moons_points: list[Point], epsilon: float, min_pts: int
    ) -> None:
        """Test that stepping to the end matches one fast-forward."""
        stepped = _engine(epsilon, min_pts)
        stepped.start(moons_points)
        stepped_state = _step_to_end(stepped)

        fast = _engine(epsilon, min_pts)
        fast.start(moons_points)
        fast_state = fast.fast_forward().snapshot

        assert stepped_state.point_states == fast_state.point_states
        assert stepped_state.cluster_ids == fast_state.cluster_ids
        assert stepped_state.cluster_count == fast_state.cluster_count

    def test_fast_forward_mid_expansion(self, gaussian_points: list[Point]) -> None:
        """Test that fast-forwarding from the middle of an expansion still agrees."""
        reference = _engine(8.0, 4)
        reference.start(gaussian_points)
        expected = reference.fast_forward().snapshot

        engine = _engine(8.0, 4)
        engine.start(gaussian_points)
        while not engine.state.queue:
            engine.step()
        engine.step()
        state = engine.fast_forward().snapshot

        assert state.point_states == expected.point_states
        assert state.cluster_ids == expected.cluster_ids

    def test_completeness(self, gaussian_points: list[Point]) -> None:
        """Test that every point ends classified with a consistent cluster id."""
        engine = _engine(8.0, 4)
        engine.start(gaussian_points)
        _assert_complete(_step_to_end(engine))

    def test_determinism(self, gaussian_points: list[Point]) -> None:
        """Test that two runs produce identical assignments."""
        runs = []
        for _ in range(2):
            engine = _engine(8.0, 4)
            engine.start(gaussian_points)
            runs.append(engine.fast_forward().snapshot.cluster_ids)
        assert runs[0] == runs[1]


class TestDBSCANStepping:
    """Tests for the step, step-back and no-op contract."""

    def test_step_back_restores_previous_state(self, moons_points: list[Point]) -> None:
        """Test that every step can be undone exactly."""
        engine = _engine(8.0, 4)
        engine.start(moons_points)
        while not engine.is_terminal:
            before = engine.snapshot()
            engine.step()
            after = engine.snapshot()
            assert engine.step_back().advanced
            assert engine.snapshot() == before
            engine.step()
            assert engine.snapshot() == after

    def test_step_back_after_fast_forward(self, moons_points: list[Point]) -> None:
        """Test that one step back undoes a whole fast-forward."""
        engine = _engine(8.0, 4)
        initial = engine.start(moons_points)
        engine.fast_forward()
        engine.step_back()
        assert engine.snapshot() == initial

    def test_snapshots_are_independent(self, two_tight_triples: list[Point]) -> None:
        """Test that later steps do not mutate an earlier snapshot."""
        engine = _engine(2.0, 2)
        first = engine.start(two_tight_triples)
        engine.fast_forward()
        assert first.point_states == [PointState.UNVISITED] * 6
        assert first.visited == set()

    def test_step_on_terminal_is_noop(self, two_tight_triples: list[Point]) -> None:
        """Test that stepping a finished engine reports no progress."""
        engine = _engine(2.0, 2)
        engine.start(two_tight_triples)
        engine.fast_forward()
        result = engine.step()
        assert not result.advanced
        assert result.message.startswith("Nothing to do")
        assert not engine.fast_forward().advanced

    def test_step_back_without_history_is_noop(self, two_tight_triples: list[Point]) -> None:
        """Test that stepping back at the start reports no progress."""
        engine = _engine(2.0, 2)
        engine.start(two_tight_triples)
        assert not engine.step_back().advanced

    def test_invalid_min_pts(self, two_pairs: list[Point]) -> None:
        """Test that min_pts below 1 is rejected."""
        with pytest.raises(ConfigurationError):
            _engine(2.0, 0).start(two_pairs)

    def test_not_started(self) -> None:
        """Test that driving an unstarted engine raises."""
        engine = _engine(2.0, 2)
        with pytest.raises(EngineNotStartedError):
            engine.step()
        with pytest.raises(EngineNotStartedError):
            engine.step_back()
        with pytest.raises(EngineNotStartedError):
            engine.fast_forward()

    def test_restart_clears_history(self, two_tight_triples: list[Point]) -> None:
        """Test that start() discards previous history."""
        engine = _engine(2.0, 2)
        engine.start(two_tight_triples)
        engine.step()
        engine.start(two_tight_triples)
        assert len(engine.history) == 0
