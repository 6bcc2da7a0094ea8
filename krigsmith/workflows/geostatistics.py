"""Unified geostatistical workflow interface.

Provides high-level interface for complete interpolation workflows:
- Empirical variogram estimation
- Variogram model fitting
- Kriging estimation
- Cross-validation of kriging or IDW
"""

import logging
from dataclasses import dataclass
from typing import Literal, Optional, Sequence

import numpy as np
import pandas as pd

from krigsmith.objects.pointset import SpatialPointSet
from krigsmith.primitives.base import Targets
from krigsmith.primitives.interpolation import IDWInterpolator
from krigsmith.primitives.kriging import KrigingResult, OrdinaryKriging
from krigsmith.primitives.kriging_cv import CrossValidationResult, cross_validate
from krigsmith.primitives.variogram import (
    EmpiricalVariogram,
    compute_experimental_variogram,
    validate_directions,
)
from krigsmith.primitives.variogram_fit import (
    FITTING_SCHEMES,
    DEFAULT_MAX_ITER,
    DEFAULT_TOLERANCE,
    VariogramFitResult,
    fit_variogram_model,
)
from krigsmith.primitives.variogram_models import (
    VARIOGRAM_MODELS,
    AnyVariogramModel,
    VariogramModel,
)
from krigsmith.utils.errors import raise_parameter_error

logger = logging.getLogger(__name__)

KRIGING_MEANS = ("ordinary",)


@dataclass(frozen=True)
class InterpolationConfig:
    """Configuration surface for an interpolation run.

    Attributes:
        cutoff: Maximum pair distance for the empirical variogram. None uses
            one third of the largest pairwise distance.
        width: Lag bin width. None uses cutoff / 15.
        directions: (angle, tolerance) pairs in degrees for directional
            variograms. Empty for an omnidirectional variogram.
        model_type: Variogram model family to fit.
        fitting_scheme: 'weighted' (N/h²), 'ordinary' or 'cressie'.
        kriging_mean: Only 'ordinary' (unknown constant mean) is supported.
        idw_power: IDW exponent.
        cv_folds: Number of cross-validation folds. None means leave-one-out.
        cv_shuffle: Assign samples to folds at random instead of in
            contiguous blocks.
        cv_seed: Seed for the random fold assignment.
        fit_tolerance: Convergence tolerance for the variogram fit.
        max_iter: Evaluation cap for the variogram fit.
        fit_anisotropy: Fit geometric anisotropy (needs ``directions``).
    """

    cutoff: Optional[float] = None
    width: Optional[float] = None
    directions: Sequence[tuple[float, float]] = ()
    model_type: str = "exponential"
    fitting_scheme: str = "weighted"
    kriging_mean: str = "ordinary"
    idw_power: float = 2.0
    cv_folds: Optional[int] = None
    cv_shuffle: bool = False
    cv_seed: int = 0
    fit_tolerance: float = DEFAULT_TOLERANCE
    max_iter: int = DEFAULT_MAX_ITER
    fit_anisotropy: bool = False

    def __post_init__(self) -> None:
        """Validate InterpolationConfig parameters."""
        if self.cutoff is not None and not self.cutoff > 0:
            raise_parameter_error("cutoff", self.cutoff, constraint="cutoff > 0")
        if self.width is not None and not self.width > 0:
            raise_parameter_error("width", self.width, constraint="width > 0")
        if self.model_type not in VARIOGRAM_MODELS:
            raise_parameter_error(
                "model_type", self.model_type, valid_values=list(VARIOGRAM_MODELS)
            )
        if self.fitting_scheme not in FITTING_SCHEMES:
            raise_parameter_error(
                "fitting_scheme", self.fitting_scheme, valid_values=list(FITTING_SCHEMES)
            )
        if self.kriging_mean not in KRIGING_MEANS:
            raise_parameter_error(
                "kriging_mean", self.kriging_mean, valid_values=list(KRIGING_MEANS)
            )
        if not np.isfinite(self.idw_power) or self.idw_power <= 0:
            raise_parameter_error("idw_power", self.idw_power, constraint="idw_power > 0")
        if self.cv_folds is not None and self.cv_folds < 2:
            raise_parameter_error(
                "cv_folds",
                self.cv_folds,
                constraint="cv_folds >= 2",
                suggestion="Use cv_folds=None for leave-one-out.",
            )
        if not self.fit_tolerance > 0:
            raise_parameter_error(
                "fit_tolerance", self.fit_tolerance, constraint="fit_tolerance > 0"
            )
        if self.max_iter < 1:
            raise_parameter_error("max_iter", self.max_iter, constraint="max_iter >= 1")
        if self.fit_anisotropy and not self.directions:
            raise_parameter_error(
                "fit_anisotropy",
                self.fit_anisotropy,
                constraint="requires at least one entry in directions",
            )
        object.__setattr__(
            self, "directions", tuple(validate_directions(self.directions))
        )


@dataclass
class GeostatisticalResult:
    """Results from geostatistical estimation workflow.

    Attributes:
        estimates: Estimated values at target locations (NaN where failed).
        variance: Estimation variance (uncertainty).
        kriging_result: Full KrigingResult, including per-target failures.
        empirical_variogram: Empirical variogram the model was fitted to.
        fit_result: Variogram fit diagnostics (None for a supplied model).
        variogram_model: Variogram model used for kriging.
        cv_result: Cross-validation results (if validation performed).
    """

    estimates: np.ndarray
    variance: np.ndarray
    kriging_result: KrigingResult
    empirical_variogram: Optional[EmpiricalVariogram] = None
    fit_result: Optional[VariogramFitResult] = None
    variogram_model: Optional[AnyVariogramModel] = None
    cv_result: Optional[CrossValidationResult] = None

    def to_frame(self) -> pd.DataFrame:
        """Estimates keyed by target order."""
        return self.kriging_result.to_frame()

    def __repr__(self) -> str:
        """String representation."""
        cv_str = f", CV RMSE={self.cv_result.rmse:.3f}" if self.cv_result else ""
        return (
            f"GeostatisticalResult(n_estimates={len(self.estimates)}, "
            f"mean={np.nanmean(self.estimates):.2f}, "
            f"n_failed={len(self.kriging_result.failures)}{cv_str})"
        )


def default_initial_model(
    empirical: EmpiricalVariogram, model_type: str = "exponential"
) -> VariogramModel:
    """Starting guess for a fit from the empirical variogram.

    Partial sill is the spread of the empirical semivariances, range a
    quarter of the largest lag and nugget the smallest semivariance.
    """
    gamma = empirical.semivariance
    if model_type == "nugget":
        return VariogramModel("nugget", nugget=float(max(np.mean(gamma), 0.0)))

    max_lag = float(np.max(empirical.mean_distance))
    return VariogramModel(
        model_type,
        nugget=float(max(np.min(gamma), 0.0)),
        partial_sill=float(max(np.max(gamma) - np.min(gamma), 0.0)),
        range_param=0.25 * max_lag if max_lag > 0 else float(empirical.cutoff),
    )


class GeostatisticalModel:
    """Unified interface for geostatistical interpolation workflows.

    Handles the complete workflow from samples to estimates:
    1. Empirical variogram
    2. Variogram model fitting
    3. Ordinary kriging estimation
    4. Cross-validation (optional)

    Intermediate results are cached, so calling ``estimate`` several times
    fits the variogram once.

    Example:
        >>> from krigsmith import SpatialPointSet
        >>> from krigsmith.workflows.geostatistics import (
        ...     GeostatisticalModel, InterpolationConfig
        ... )
        >>>
        >>> model = GeostatisticalModel(
        ...     points, InterpolationConfig(model_type="spherical", cv_folds=5)
        ... )
        >>> results = model.estimate(grid_points, validate=True)
        >>> print(f"RMSE: {results.cv_result.rmse:.2f}")
    """

    def __init__(
        self,
        points: SpatialPointSet,
        config: Optional[InterpolationConfig] = None,
        initial_model: Optional[AnyVariogramModel] = None,
        variogram_model: Optional[AnyVariogramModel] = None,
    ):
        """Initialize geostatistical model.

        Args:
            points: SpatialPointSet with sample locations and values.
            config: InterpolationConfig (defaults apply when None).
            initial_model: Starting model for the fit. Derived from the
                empirical variogram when None.
            variogram_model: Pre-fitted variogram model; skips fitting.
        """
        self.points = points
        self.config = config or InterpolationConfig()
        self.initial_model = initial_model
        self.variogram_model = variogram_model

        # Will be set during fit
        self._empirical: Optional[EmpiricalVariogram] = None
        self._fit_result: Optional[VariogramFitResult] = None
        self._kriging_model: Optional[OrdinaryKriging] = None

    def compute_variogram(self) -> EmpiricalVariogram:
        """Compute (or return the cached) empirical variogram."""
        if self._empirical is None:
            self._empirical = compute_experimental_variogram(
                self.points,
                cutoff=self.config.cutoff,
                width=self.config.width,
                directions=self.config.directions or None,
            )
        return self._empirical

    def fit_variogram(self) -> VariogramFitResult:
        """Fit the configured model family to the empirical variogram."""
        if self._fit_result is not None:
            return self._fit_result

        empirical = self.compute_variogram()
        initial = self.initial_model
        if initial is None:
            initial = default_initial_model(empirical, self.config.model_type)

        self._fit_result = fit_variogram_model(
            empirical,
            initial,
            scheme=self.config.fitting_scheme,
            fit_anisotropy=self.config.fit_anisotropy,
            tol=self.config.fit_tolerance,
            max_iter=self.config.max_iter,
        )
        return self._fit_result

    def _resolve_variogram(self) -> AnyVariogramModel:
        if self.variogram_model is not None:
            return self.variogram_model
        return self.fit_variogram().model

    def _fit_kriging(self) -> OrdinaryKriging:
        """Fit kriging model to data."""
        if self._kriging_model is None:
            self._kriging_model = OrdinaryKriging(
                variogram_model=self._resolve_variogram()
            ).fit(self.points)
        return self._kriging_model

    def cross_validate(
        self, method: Literal["kriging", "idw"] = "kriging"
    ) -> CrossValidationResult:
        """Cross-validate ordinary kriging or IDW with the configured folds."""
        if method == "kriging":
            model = self._resolve_variogram()
        elif method == "idw":
            power = self.config.idw_power

            def model() -> IDWInterpolator:
                return IDWInterpolator(power=power)

        else:
            raise_parameter_error("method", method, valid_values=["kriging", "idw"])

        return cross_validate(
            self.points,
            model,
            n_folds=self.config.cv_folds,
            shuffle=self.config.cv_shuffle,
            random_state=self.config.cv_seed,
        )

    def estimate(
        self,
        query_points: Targets,
        validate: bool = False,
        return_weights: bool = False,
    ) -> GeostatisticalResult:
        """Estimate values at target locations.

        Args:
            query_points: SpatialPointSet, (m, 2) array or a single (x, y).
            validate: Also cross-validate the kriging model.
            return_weights: Keep the kriging weights on the result.

        Returns:
            GeostatisticalResult with estimates, variance, and diagnostics.
        """
        kriging = self._fit_kriging()
        result = kriging.predict(query_points, return_weights=return_weights)

        cv_result = self.cross_validate("kriging") if validate else None

        logger.info(
            f"Estimated {len(result.predictions)} target(s), "
            f"{len(result.failures)} failed"
        )

        return GeostatisticalResult(
            estimates=result.predictions,
            variance=result.variance,
            kriging_result=result,
            empirical_variogram=self._empirical,
            fit_result=self._fit_result,
            variogram_model=kriging.variogram_model,
            cv_result=cv_result,
        )
