"""Ordinary kriging.

Best linear unbiased prediction under an unknown constant mean. The
kriging system is built in covariance form, C(h) = sill - gamma(h),
augmented with a Lagrange multiplier for the constraint sum(weights) = 1:

    [ C   1 ] [ lambda ]   [ c_t ]
    [ 1'  0 ] [   mu   ] = [  1  ]

The system is factored once per sample set and model and reused for every
target. Prediction variance is sill - lambda'c_t - mu.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import pandas as pd
from scipy.linalg import LinAlgError, cho_factor, cho_solve, lu_factor, lu_solve
from scipy.spatial.distance import cdist

from krigsmith.objects.pointset import SpatialPointSet
from krigsmith.primitives.base import BaseSpatialModel, Targets, as_target_coordinates
from krigsmith.primitives.variogram_models import (
    AnyVariogramModel,
    NestedVariogramModel,
    VariogramModel,
    variogram_matrix,
)
from krigsmith.utils.errors import (
    SingularKrigingSystemError,
    raise_insufficient_data,
    raise_parameter_error,
)

logger = logging.getLogger(__name__)

# Systems with a larger 2-norm condition number are treated as singular.
DEFAULT_CONDITION_LIMIT = 1.0 / np.finfo(np.float64).eps


@dataclass(frozen=True)
class KrigingPoint:
    """Prediction at a single target location."""

    location: tuple[float, float]
    predicted: float
    prediction_variance: float


@dataclass
class KrigingResult:
    """Container for kriging predictions and diagnostics.

    Arrays are in target order. Targets listed in ``failures`` hold NaN
    predictions and variances.

    Attributes:
        locations: Target coordinates (n_targets, 2).
        predictions: Predicted values at target locations.
        variance: Kriging variance (prediction uncertainty), >= 0.
        weights: Optional kriging weights (n_targets, n_samples).
        lagrange_multiplier: Optional Lagrange multiplier per target.
        failures: Target index -> error for targets that could not be solved.
    """

    locations: np.ndarray
    predictions: np.ndarray
    variance: np.ndarray
    weights: Optional[np.ndarray] = None
    lagrange_multiplier: Optional[np.ndarray] = None
    failures: dict[int, SingularKrigingSystemError] = field(default_factory=dict)

    @property
    def succeeded(self) -> np.ndarray:
        """Boolean mask of targets with a prediction."""
        mask = np.ones(len(self.predictions), dtype=bool)
        mask[list(self.failures)] = False
        return mask

    @property
    def records(self) -> tuple[KrigingPoint, ...]:
        """One KrigingPoint per successful target, in target order."""
        return tuple(
            KrigingPoint(
                location=(float(self.locations[i, 0]), float(self.locations[i, 1])),
                predicted=float(self.predictions[i]),
                prediction_variance=float(self.variance[i]),
            )
            for i in np.flatnonzero(self.succeeded)
        )

    def raise_for_failures(self) -> None:
        """Raise the first target failure, if any."""
        if self.failures:
            index = min(self.failures)
            raise self.failures[index]

    def to_frame(self) -> pd.DataFrame:
        """Tabular view keyed by target order."""
        return pd.DataFrame(
            {
                "x": self.locations[:, 0],
                "y": self.locations[:, 1],
                "predicted": self.predictions,
                "variance": self.variance,
                "failed": ~self.succeeded,
            }
        )

    def __repr__(self) -> str:
        """String representation."""
        ok = self.succeeded
        mean_pred = float(self.predictions[ok].mean()) if ok.any() else float("nan")
        mean_var = float(self.variance[ok].mean()) if ok.any() else float("nan")
        return (
            f"KrigingResult(n_predictions={len(self.predictions)}, "
            f"mean_prediction={mean_pred:.4f}, mean_variance={mean_var:.4f}, "
            f"n_failed={len(self.failures)})"
        )


class OrdinaryKriging(BaseSpatialModel):
    """Ordinary Kriging interpolation.

    Assumes a constant but unknown mean.

    Attributes:
        variogram_model: Fitted variogram model.
        exact_values: Return the sample value (and zero variance) for targets
            coinciding with a sample instead of solving for them.
        condition_limit: Condition number above which the system is singular.
    """

    def __init__(
        self,
        variogram_model: AnyVariogramModel,
        exact_values: bool = True,
        condition_limit: float = DEFAULT_CONDITION_LIMIT,
    ):
        """Initialize Ordinary Kriging.

        Args:
            variogram_model: Fitted VariogramModel or NestedVariogramModel.
            exact_values: Snap targets that coincide with a sample to its value.
            condition_limit: Condition number above which the system is singular.
        """
        super().__init__()
        if not isinstance(variogram_model, (VariogramModel, NestedVariogramModel)):
            raise_parameter_error(
                "variogram_model",
                type(variogram_model).__name__,
                constraint="VariogramModel or NestedVariogramModel",
            )
        if not condition_limit > 1:
            raise_parameter_error(
                "condition_limit", condition_limit, constraint="condition_limit > 1"
            )
        self.variogram_model = variogram_model
        self.exact_values = exact_values
        self.condition_limit = condition_limit
        self.coordinates: Optional[np.ndarray] = None
        self.values: Optional[np.ndarray] = None
        self.condition_number: Optional[float] = None
        self._cho = None
        self._lu = None
        self._ones_solution: Optional[np.ndarray] = None
        self._singular_error: Optional[SingularKrigingSystemError] = None

        self.tags["exact_interpolator"] = True

    def fit(self, points: SpatialPointSet) -> "OrdinaryKriging":
        """Build and factor the kriging system for a sample set.

        A singular system does not raise here; it is recorded and every
        target of a later predict() call is reported as failed.

        Args:
            points: SpatialPointSet with sample locations and values.

        Returns:
            Self for method chaining.

        Raises:
            InsufficientDataError: If the point set is empty.
        """
        if points.n_samples < 1:
            raise_insufficient_data(
                "kriging", required="at least 1 sample", received="0 samples"
            )

        self.coordinates = points.coordinates
        self.values = points.values
        self._cho = None
        self._lu = None
        self._ones_solution = None
        self._singular_error = None
        n = points.n_samples

        # Covariance C(h) = sill - gamma(h); gamma(0) = 0 puts the sill on the diagonal
        sill = self.variogram_model.sill
        C = sill - variogram_matrix(self.variogram_model, self.coordinates)

        K_aug = np.zeros((n + 1, n + 1))
        K_aug[:n, :n] = C
        K_aug[:n, n] = 1.0
        K_aug[n, :n] = 1.0

        # Collocated samples give identical rows since gamma(0) = 0, with or without a nugget
        duplicates = _collocated_pairs(self.coordinates)
        self.condition_number = float(np.linalg.cond(K_aug))
        if (
            duplicates
            or not np.isfinite(self.condition_number)
            or self.condition_number > self.condition_limit
        ):
            self._singular_error = self._singular(
                f"Kriging system is singular to working precision "
                f"(condition number {self.condition_number:.3g}, "
                f"limit {self.condition_limit:.3g})",
                duplicates,
            )
            logger.warning(self._singular_error.message)
            self._fitted = True
            return self

        try:
            # Positive-definite covariance: Cholesky plus a Schur complement
            self._cho = cho_factor(C, lower=True, check_finite=False)
            self._ones_solution = cho_solve(self._cho, np.ones(n), check_finite=False)
            method = "cholesky"
        except LinAlgError:
            self._lu = lu_factor(K_aug, check_finite=False)
            method = "lu"

        logger.debug(
            f"Factored {n}-sample kriging system via {method} "
            f"(condition number {self.condition_number:.3g})"
        )
        self._fitted = True
        return self

    def _singular(
        self, message: str, duplicates: list[tuple[int, int]]
    ) -> SingularKrigingSystemError:
        details = {"condition_number": self.condition_number, "n_samples": len(self.values)}
        if duplicates:
            details["collocated_samples"] = duplicates
            message += f"; collocated samples {duplicates[:5]}"
        return SingularKrigingSystemError(
            message,
            suggestion="Deduplicate or jitter collocated samples, or add a nugget.",
            details=details,
        )

    def _solve(self, rhs: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Weights (n, m) and multipliers (m,) for covariance vectors (n, m)."""
        n = rhs.shape[0]
        if self._cho is not None:
            x = cho_solve(self._cho, rhs, check_finite=False)
            y = self._ones_solution
            mu = (x.sum(axis=0) - 1.0) / y.sum()
            weights = x - np.outer(y, mu)
            return weights, mu

        rhs_aug = np.vstack([rhs, np.ones((1, rhs.shape[1]))])
        solution = lu_solve(self._lu, rhs_aug, check_finite=False)
        return solution[:n], solution[n]

    def predict(
        self,
        query_points: Targets,
        return_weights: bool = False,
    ) -> KrigingResult:
        """Predict at target locations.

        Args:
            query_points: SpatialPointSet, (m, 2) array or a single (x, y).
            return_weights: Whether to keep the (m, n) weight matrix.

        Returns:
            KrigingResult with predictions and variance in target order.

        Raises:
            ValueError: If model not fitted.
        """
        self._check_fitted()

        targets = as_target_coordinates(query_points)
        n_targets = len(targets)
        n_samples = len(self.values)

        predictions = np.full(n_targets, np.nan)
        variances = np.full(n_targets, np.nan)
        weights_out = np.full((n_targets, n_samples), np.nan) if return_weights else None
        mu_out = np.full(n_targets, np.nan) if return_weights else None
        failures: dict[int, SingularKrigingSystemError] = {}

        if self._singular_error is not None:
            for t in range(n_targets):
                failures[t] = self._singular_error
            logger.warning(f"Kriging system singular; {n_targets} target(s) not predicted")
            return KrigingResult(
                locations=targets,
                predictions=predictions,
                variance=variances,
                weights=weights_out,
                lagrange_multiplier=mu_out,
                failures=failures,
            )

        sill = self.variogram_model.sill
        k = sill - variogram_matrix(self.variogram_model, self.coordinates, targets)
        weights, mu = self._solve(k)

        pred = weights.T @ self.values
        var = sill - np.sum(weights * k, axis=0) - mu
        var = np.maximum(var, 0.0)

        if self.exact_values:
            hit_sample, hit_target = np.nonzero(cdist(self.coordinates, targets) == 0.0)
            for i, t in zip(hit_sample, hit_target):
                pred[t] = self.values[i]
                var[t] = 0.0
                weights[:, t] = 0.0
                weights[i, t] = 1.0
                mu[t] = 0.0

        bad = ~(np.isfinite(pred) & np.isfinite(var))
        for t in np.flatnonzero(bad):
            failures[int(t)] = SingularKrigingSystemError(
                f"Kriging solve for target {int(t)} at {tuple(targets[t])} "
                f"produced non-finite values",
                details={"target_index": int(t), "location": tuple(targets[t])},
            )
        if failures:
            logger.warning(f"{len(failures)} of {n_targets} kriging target(s) failed")

        ok = ~bad
        predictions[ok] = pred[ok]
        variances[ok] = var[ok]
        if return_weights:
            weights_out[ok] = weights.T[ok]
            mu_out[ok] = mu[ok]

        return KrigingResult(
            locations=targets,
            predictions=predictions,
            variance=variances,
            weights=weights_out,
            lagrange_multiplier=mu_out,
            failures=failures,
        )

    def __repr__(self) -> str:
        """String representation."""
        n = len(self.values) if self.values is not None else 0
        return f"OrdinaryKriging({self.variogram_model!r}, n_samples={n})"


def _collocated_pairs(coordinates: np.ndarray) -> list[tuple[int, int]]:
    distances = cdist(coordinates, coordinates)
    i, j = np.nonzero(np.triu(distances == 0.0, k=1))
    return [(int(a), int(b)) for a, b in zip(i, j)]


def ordinary_kriging(
    points: SpatialPointSet,
    variogram_model: AnyVariogramModel,
    query_points: Targets,
    return_weights: bool = False,
) -> KrigingResult:
    """Fit ordinary kriging on ``points`` and predict at ``query_points``."""
    return OrdinaryKriging(variogram_model).fit(points).predict(
        query_points, return_weights=return_weights
    )
