"""Step controller coordinating the dataset, the active engine and playback.

The controller owns the shared random source and exactly one engine at a
time. It is the boundary a UI (or the CLI) drives:

1. ``load_dataset``: reseed and generate a point set
2. ``select``: discard the current engine and create a new one
3. ``start`` / ``step`` / ``step_back`` / ``fast_forward``: delegate
4. ``autoplay``: step at a fixed cadence until the engine finishes
"""

import logging
import time
from collections.abc import Callable, Iterator
from enum import Enum
from typing import Any

from unsupviz.config import Config
from unsupviz.engines.base import BaseEngine, EngineNotStartedError, StepResult
from unsupviz.engines.dbscan import DBSCANEngine
from unsupviz.engines.hierarchical import HACEngine
from unsupviz.engines.kmeans import KMeansEngine
from unsupviz.engines.pca import PCAEngine
from unsupviz.models.schemas import Point
from unsupviz.utils.random_source import RandomSource
from unsupviz.utils.shapes import default_point_count, generate_points

logger = logging.getLogger(__name__)


class Algorithm(str, Enum):
    """Algorithms the controller can drive."""

    KMEANS = "kmeans"
    DBSCAN = "dbscan"
    HIERARCHICAL = "hierarchical"
    PCA = "pca"


ENGINES: dict[Algorithm, type[BaseEngine[Any]]] = {
    Algorithm.KMEANS: KMeansEngine,
    Algorithm.DBSCAN: DBSCANEngine,
    Algorithm.HIERARCHICAL: HACEngine,
    Algorithm.PCA: PCAEngine,
}


class StepController:
    """Drives one engine at a time over a generated point set.

    Example:
        >>> controller = StepController()
        >>> controller.select("dbscan")
        >>> controller.load_dataset("moons")
        >>> controller.start()
        >>> result = controller.fast_forward()
        >>> result.message
    """

    def __init__(self, config: Config | None = None) -> None:
        """Initialize the controller.

        Args:
            config: Configuration object. If None, uses defaults.
        """
        self.config = config or Config()
        self.random = RandomSource(self.config.algorithm.seed_key)
        self.points: list[Point] = []
        self.algorithm: Algorithm | None = None
        self.engine: BaseEngine[Any] | None = None

    @property
    def active_engine(self) -> BaseEngine[Any]:
        if self.engine is None:
            raise EngineNotStartedError("No algorithm selected")
        return self.engine

    def load_dataset(self, shape: str | None = None, count: int | None = None) -> list[Point]:
        """Reseed the random source with the dataset key and generate a new point set.

        The active engine, if any, is replaced by a fresh unstarted one.

        Args:
            shape: Shape name. Defaults to the configured shape.
            count: Number of points. Defaults to the configured count, then
                to the shape's default.

        Returns:
            The generated points.
        """
        shape = shape or self.config.dataset.shape
        if count is None:
            count = self.config.dataset.count
        if count is None:
            count = default_point_count(shape)

        # Points depend only on shape and count, never on the selected engine.
        self.random.seed(self.config.algorithm.seed_key)
        self.points = generate_points(shape, count, self.random)
        logger.info(f"Loaded {len(self.points)} points of shape '{shape}'")

        if self.algorithm is not None:
            self.select(self.algorithm)
        return self.points

    def select(self, algorithm: Algorithm | str) -> BaseEngine[Any]:
        """Discard the current engine and its history, then create a new one.

        Raises:
            ValueError: If the algorithm name is unknown.
        """
        algorithm = Algorithm(algorithm)
        if self.algorithm is not None and self.algorithm != algorithm:
            logger.info(f"Switching from {self.algorithm.value} to {algorithm.value}")

        engine_cls = ENGINES[algorithm]
        self.engine = engine_cls(
            config=self.config.algorithm,
            random_source=self.random,
            history_limit=self.config.playback.history_limit,
        )
        self.algorithm = algorithm
        return self.engine

    def start(self) -> Any:
        """Start the active engine on the loaded points.

        Loads the configured dataset first if none was loaded.
        """
        engine = self.active_engine
        if not self.points:
            self.load_dataset()
            engine = self.active_engine
        return engine.start(self.points)

    def step(self) -> StepResult[Any]:
        return self.active_engine.step()

    def step_back(self) -> StepResult[Any]:
        return self.active_engine.step_back()

    def fast_forward(self) -> StepResult[Any]:
        return self.active_engine.fast_forward()

    def autoplay(
        self,
        interval: float | None = None,
        max_steps: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> Iterator[StepResult[Any]]:
        """Step at a fixed cadence until the engine is terminal.

        Closing the generator cancels playback; the engine keeps whatever
        state it had reached.

        Args:
            interval: Seconds between steps. Defaults to the configured value.
            max_steps: Stop after this many steps even if not finished.
            sleep: Pause function, replaceable in tests.

        Yields:
            One StepResult per step.
        """
        engine = self.active_engine
        if interval is None:
            interval = self.config.playback.interval

        steps = 0
        while not engine.is_terminal:
            if max_steps is not None and steps >= max_steps:
                logger.info(f"Autoplay stopped after {steps} steps")
                return
            if steps:
                sleep(interval)
            result = engine.step()
            steps += 1
            yield result
