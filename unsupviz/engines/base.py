"""Base engine interface for unsupviz.

Every algorithm is an explicit state machine driven through the same
contract:

- ``start(points)`` resets all state and reseeds the random source
- ``step()`` performs exactly one unit of work
- ``fast_forward()`` runs to completion, returning only the terminal state
- ``step_back()`` restores the state recorded before the last step

Invalid calls (stepping a finished engine, stepping back with no history)
are reported through ``StepResult.advanced`` rather than raised.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from unsupviz.config import AlgorithmConfig
from unsupviz.history import HistoryStore
from unsupviz.models.schemas import EngineState, Point
from unsupviz.utils.random_source import RandomSource

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=EngineState)


class EngineError(Exception):
    """Base exception for engine errors."""

    pass


class ConfigurationError(EngineError):
    """Raised when algorithm parameters cannot be run at all."""

    pass


class EngineNotStartedError(EngineError):
    """Raised when an engine is driven before ``start`` was called."""

    pass


@dataclass
class StepResult(Generic[S]):
    """Outcome of a step, step back or fast forward call."""

    snapshot: S
    advanced: bool
    message: str

    @property
    def terminal(self) -> bool:
        return self.snapshot.terminal


class BaseEngine(ABC, Generic[S]):
    """Abstract base class for resumable algorithm engines.

    Subclasses implement ``_initial_state`` and ``_advance``; the base class
    owns history recording, random-state capture and no-op reporting.
    """

    name = "engine"
    records_history = True

    def __init__(
        self,
        config: AlgorithmConfig | None = None,
        random_source: RandomSource | None = None,
        history_limit: int | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Algorithm parameters, read once at ``start``.
            random_source: Shared random source. A private one is created if
                omitted.
            history_limit: Maximum number of snapshots kept for stepping back.
        """
        self.config = config or AlgorithmConfig()
        self.random = random_source or RandomSource(self.seed_key)
        self.history: HistoryStore[S] = HistoryStore(max_entries=history_limit)
        self.points: list[Point] = []
        self._state: S | None = None

    @property
    def seed_key(self) -> str:
        return self.config.seed_key

    @property
    def started(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> S:
        """The live state. Mutated in place by the engine."""
        if self._state is None:
            raise EngineNotStartedError(f"{self.name} engine has not been started")
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self.state.terminal

    def start(self, points: Sequence[Point]) -> S:
        """Reset the engine onto a new point set.

        Args:
            points: Input points; copied, never mutated.

        Returns:
            Snapshot of the initial state.

        Raises:
            ConfigurationError: If the parameters cannot run on these points.
        """
        self.points = list(points)
        self._validate(self.points)
        self.random.seed(self.seed_key)
        self.history.clear()
        self._state = self._initial_state(self.points)
        logger.info(f"Started {self.name} on {len(self.points)} points")
        return self.snapshot()

    def snapshot(self) -> S:
        """Independent deep copy of the current state."""
        return self.state.model_copy(deep=True)

    def step(self) -> StepResult[S]:
        """Advance by exactly one unit of work."""
        state = self.state
        if state.terminal:
            return self._no_op("already finished")

        if self.records_history:
            self.history.push(state, self.random.get_state())
        self._advance(state)
        logger.debug(f"{self.name} step: {state.message}")
        if state.terminal:
            logger.info(f"{self.name} finished: {state.message}")
        return StepResult(self.snapshot(), True, state.message)

    def step_back(self) -> StepResult[S]:
        """Restore the state recorded before the most recent step."""
        if not self.started:
            raise EngineNotStartedError(f"{self.name} engine has not been started")
        entry = self.history.pop()
        if entry is None:
            return self._no_op("no earlier state to return to")

        # The popped copy is owned by nobody else, so it becomes the live state.
        self._state = entry.state
        if entry.random_state is not None:
            self.random.set_state(entry.random_state)
        logger.debug(f"{self.name} stepped back ({len(self.history)} entries left)")
        return StepResult(self.snapshot(), True, self._state.message)

    def fast_forward(self) -> StepResult[S]:
        """Run to completion without producing intermediate snapshots.

        The state before fast-forwarding is recorded as a single history
        entry, so one ``step_back`` returns to it.
        """
        state = self.state
        if state.terminal:
            return self._no_op("already finished")

        if self.records_history:
            self.history.push(state, self.random.get_state())
        self._run_to_completion(state)
        logger.info(f"{self.name} fast-forwarded: {state.message}")
        return StepResult(self.snapshot(), True, state.message)

    def _run_to_completion(self, state: S) -> None:
        while not state.terminal:
            self._advance(state)

    def _no_op(self, reason: str) -> StepResult[S]:
        logger.debug(f"{self.name}: ignored call, {reason}")
        return StepResult(self.snapshot(), False, f"Nothing to do: {reason}.")

    def _validate(self, points: list[Point]) -> None:
        """Reject parameters that cannot run. Default accepts everything."""

    @abstractmethod
    def _initial_state(self, points: list[Point]) -> S:
        """Build the state for a fresh run."""
        ...

    @abstractmethod
    def _advance(self, state: S) -> None:
        """Perform one unit of work on ``state`` in place."""
        ...
