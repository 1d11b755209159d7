"""Two-dimensional PCA as a fixed sequence of presentation stages.

All derived quantities are closed-form functions of the raw points, so the
engine keeps no history: stepping back rebuilds the previous stage from
scratch.
"""

import logging
import math

from unsupviz.engines.base import BaseEngine, ConfigurationError, EngineNotStartedError, StepResult
from unsupviz.models.schemas import (
    Covariance,
    CovarianceEllipse,
    PCAStage,
    PCAState,
    Point,
    PrincipalComponent,
)
from unsupviz.utils.geometry import dot, mean_point, norm

logger = logging.getLogger(__name__)

# Off-diagonal covariance below this fraction of the largest variance is treated as zero
EIGEN_TOLERANCE = 1e-6


def covariance(centered: list[Point]) -> Covariance:
    """Unbiased (N-1) covariance of already-centered points.

    Fewer than two points have no spread; the result is all zeros.
    """
    n = len(centered)
    if n < 2:
        return Covariance(xx=0.0, yy=0.0, xy=0.0)
    return Covariance(
        xx=sum(p.x * p.x for p in centered) / (n - 1),
        yy=sum(p.y * p.y for p in centered) / (n - 1),
        xy=sum(p.x * p.y for p in centered) / (n - 1),
    )


def eigen_decomposition(
    cov: Covariance,
) -> tuple[tuple[float, float], tuple[Point, Point], bool]:
    """Closed-form eigen solution of a symmetric 2x2 matrix.

    Args:
        cov: Covariance matrix.

    Returns:
        ``((lambda1, lambda2), (v1, v2), fallback)`` with ``lambda1 >= lambda2``,
        ``v1``/``v2`` orthonormal, and ``fallback`` set when the off-diagonal
        term was negligible and axis-aligned vectors were used.
    """
    trace = cov.xx + cov.yy
    determinant = cov.xx * cov.yy - cov.xy * cov.xy
    # Clamp rounding noise; the discriminant of a real symmetric matrix is >= 0.
    discriminant = math.sqrt(max(trace * trace - 4 * determinant, 0.0))
    lambda1 = (trace + discriminant) / 2
    lambda2 = (trace - discriminant) / 2

    if abs(cov.xy) > EIGEN_TOLERANCE * max(abs(cov.xx), abs(cov.yy)):
        raw = Point(1.0, -(cov.xx - lambda1) / cov.xy)
        length = norm(raw)
        v1 = Point(raw.x / length, raw.y / length)
        fallback = False
    else:
        # Deliberately not a fixed (1, 0): PC1 must stay the larger-variance axis.
        v1 = Point(1.0, 0.0) if cov.xx >= cov.yy else Point(0.0, 1.0)
        fallback = True

    v2 = Point(-v1.y, v1.x)
    return (lambda1, lambda2), (v1, v2), fallback


def covariance_ellipse(
    eigenvalues: tuple[float, float], eigenvectors: tuple[Point, Point]
) -> CovarianceEllipse:
    """One-sigma ellipse: radii are the square roots of the eigenvalues."""
    v1 = eigenvectors[0]
    return CovarianceEllipse(
        radius_major=math.sqrt(max(eigenvalues[0], 0.0)),
        radius_minor=math.sqrt(max(eigenvalues[1], 0.0)),
        angle_degrees=math.degrees(math.atan2(v1.y, v1.x)),
    )


def project(centered: list[Point], axis: Point) -> tuple[list[float], list[Point]]:
    """Project centered points onto a unit axis.

    Returns:
        The 1-D coordinates along the axis and the corresponding 2-D points.
    """
    scalars = [dot(p, axis) for p in centered]
    projected = [
        Point(s * axis.x, s * axis.y, p.index) for s, p in zip(scalars, centered)
    ]
    return scalars, projected


class PCAEngine(BaseEngine[PCAState]):
    """Stage-by-stage PCA.

    Stages: raw data, mean, centered data, covariance and eigen solution,
    ellipse, eigenvectors, projection onto the selected component.
    """

    name = "pca"
    records_history = False

    @property
    def seed_key(self) -> str:
        return self.config.pca_seed_key

    @property
    def component(self) -> PrincipalComponent:
        return PrincipalComponent(self.config.principal_component)

    def _validate(self, points: list[Point]) -> None:
        if not points:
            raise ConfigurationError("PCA needs at least one point")

    def _initial_state(self, points: list[Point]) -> PCAState:
        return PCAState(
            points=points,
            component=self.component,
            message=f"Raw data: {len(points)} points.",
        )

    def _advance(self, state: PCAState) -> None:
        if state.stage == PCAStage.RAW:
            state.mean = mean_point(state.points)
            state.message = f"Mean is ({state.mean.x:.2f}, {state.mean.y:.2f})."
        elif state.stage == PCAStage.MEAN:
            mean = state.mean
            state.centered = [Point(p.x - mean.x, p.y - mean.y, p.index) for p in state.points]
            state.message = "Centered the data on the origin."
        elif state.stage == PCAStage.CENTERED:
            self._solve(state)
        elif state.stage == PCAStage.COVARIANCE:
            state.ellipse = covariance_ellipse(state.eigenvalues, state.eigenvectors)
            state.message = (
                f"Covariance ellipse: radii {state.ellipse.radius_major:.2f} and "
                f"{state.ellipse.radius_minor:.2f}, rotated {state.ellipse.angle_degrees:.1f} degrees."
            )
        elif state.stage == PCAStage.ELLIPSE:
            v1, v2 = state.eigenvectors
            state.message = (
                f"Principal axes: PC1 ({v1.x:.3f}, {v1.y:.3f}), "
                f"PC2 ({v2.x:.3f}, {v2.y:.3f})."
            )
        elif state.stage == PCAStage.EIGENVECTORS:
            axis = state.eigenvectors[0 if state.component == PrincipalComponent.PC1 else 1]
            state.projections, state.projected = project(state.centered, axis)
            state.terminal = True
            state.message = f"Projected onto {state.component.value.upper()}. PCA complete."

        state.stage = PCAStage(state.stage + 1)

    def _solve(self, state: PCAState) -> None:
        cov = covariance(state.centered)
        eigenvalues, eigenvectors, fallback = eigen_decomposition(cov)
        state.covariance = cov
        state.eigenvalues = eigenvalues
        state.eigenvectors = eigenvectors
        state.degenerate = fallback
        if fallback:
            logger.warning(
                f"Covariance off-diagonal {cov.xy:.3g} is negligible; "
                "using axis-aligned eigenvectors"
            )
        state.message = (
            f"Covariance xx={cov.xx:.2f}, yy={cov.yy:.2f}, xy={cov.xy:.2f}; "
            f"eigenvalues {eigenvalues[0]:.2f} and {eigenvalues[1]:.2f}."
        )

    def replay(self, stage: PCAStage) -> PCAState:
        """Recompute the state at ``stage`` from the raw points."""
        state = self._initial_state(self.points)
        while state.stage < stage:
            self._advance(state)
        return state

    def step_back(self) -> StepResult[PCAState]:
        """Return to the previous stage by replaying from the raw data."""
        if not self.started:
            raise EngineNotStartedError(f"{self.name} engine has not been started")
        if self.state.stage == PCAStage.RAW:
            return self._no_op("already at the raw data")

        self._state = self.replay(PCAStage(self.state.stage - 1))
        logger.debug(f"{self.name} stepped back to stage {self._state.stage.name}")
        return StepResult(self.snapshot(), True, self._state.message)
