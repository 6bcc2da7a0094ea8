"""Weighted nonlinear least-squares fitting of variogram models.

Minimizes ``sum_k w_k * (gamma_emp(h_k) - gamma_model(h_k))**2`` over the
free model parameters with a bounded trust-region solver:

- ``weighted``: w_k = N_k / h_k**2 (pair count over squared mean lag)
- ``ordinary``: w_k = 1
- ``cressie``: w_k = N_k / gamma_model(h_k)**2

Weights whose denominator is zero are zero: zero-lag bins from collocated
samples drop out of the weighted objectives.

Nugget and partial sill are bounded below by 0, the range strictly above 0
and above by ``max_range_factor`` times the largest empirical lag.
"""

import logging
import warnings
from dataclasses import dataclass, replace
from typing import Literal, Optional

import numpy as np
from scipy.optimize import least_squares

from krigsmith.primitives.geometry import Anisotropy
from krigsmith.primitives.variogram import EmpiricalVariogram
from krigsmith.primitives.variogram_models import (
    AnyVariogramModel,
    NestedVariogramModel,
    VariogramModel,
    predict_variogram,
)
from krigsmith.utils.errors import (
    FitDidNotConvergeWarning,
    raise_insufficient_data,
    raise_parameter_error,
)

logger = logging.getLogger(__name__)

FittingScheme = Literal["weighted", "ordinary", "cressie"]

FITTING_SCHEMES = ("weighted", "ordinary", "cressie")

# Relative decrease of the weighted sum of squares below which the fit stops.
DEFAULT_TOLERANCE = 1e-8

# Cap on objective evaluations.
DEFAULT_MAX_ITER = 200

# Smallest anisotropy ratio the fitter will explore.
MIN_ANISOTROPY_RATIO = 1e-3

# Initial ratio when fitting anisotropy without a starting value.
INITIAL_ANISOTROPY_RATIO = 0.5


@dataclass
class VariogramFitResult:
    """Fitted variogram model with goodness-of-fit diagnostics.

    Attributes:
        model: Fitted VariogramModel or NestedVariogramModel.
        converged: False when the iteration cap was hit; ``model`` then holds
            the best iterate found.
        scheme: Weighting scheme used.
        weighted_sse: Final weighted sum of squared residuals.
        r_squared: Unweighted coefficient of determination.
        n_points: Number of empirical points fitted.
        n_free: Number of free parameters.
        dof: Residual degrees of freedom (n_points - n_free).
        n_iterations: Objective evaluations used.
        message: Solver termination message.
    """

    model: AnyVariogramModel
    converged: bool
    scheme: str
    weighted_sse: float
    r_squared: float
    n_points: int
    n_free: int
    dof: int
    n_iterations: int
    message: str = ""

    @property
    def did_not_converge(self) -> bool:
        return not self.converged

    def predict(
        self, distances: np.ndarray, directions: Optional[np.ndarray] = None
    ) -> np.ndarray:
        """Evaluate the fitted model."""
        return predict_variogram(self.model, distances, directions)

    def __repr__(self) -> str:
        """String representation."""
        status = "converged" if self.converged else "NOT converged"
        return (
            f"VariogramFitResult({self.model!r}, {status}, scheme={self.scheme}, "
            f"wsse={self.weighted_sse:.4g}, r²={self.r_squared:.4f}, dof={self.dof})"
        )


@dataclass(frozen=True)
class _Slot:
    """One free parameter: which component and attribute it writes."""

    component: int
    name: str
    lower: float
    upper: float


def _components(initial: AnyVariogramModel) -> list[VariogramModel]:
    if isinstance(initial, NestedVariogramModel):
        return list(initial.components)
    return [initial]


def _assemble(
    initial: AnyVariogramModel, components: list[VariogramModel]
) -> AnyVariogramModel:
    if isinstance(initial, NestedVariogramModel):
        return NestedVariogramModel(components=tuple(components))
    return components[0]


def _initial_anisotropy(
    component: VariogramModel, empirical: EmpiricalVariogram
) -> Anisotropy:
    if component.anisotropy is not None:
        return component.anisotropy
    # Longest correlation where semivariance grows slowest: lowest mean gamma
    directions = np.unique(empirical.direction[np.isfinite(empirical.direction)])
    mean_gamma = [
        empirical.semivariance[empirical.direction == d].mean() for d in directions
    ]
    return Anisotropy(
        major_direction=float(directions[int(np.argmin(mean_gamma))]),
        minor_range_ratio=INITIAL_ANISOTROPY_RATIO,
    )


def _build_slots(
    components: list[VariogramModel],
    nested: bool,
    max_range: float,
    fit_nugget: Optional[bool],
    fit_sill: bool,
    fit_range: bool,
    fit_anisotropy: bool,
) -> list[_Slot]:
    slots = []
    min_range = max_range * 1e-9
    for c, component in enumerate(components):
        if component.model_type == "nugget":
            if fit_nugget is not False:
                slots.append(_Slot(c, "nugget", 0.0, np.inf))
            continue

        # Structured components in a nested model keep their nugget; the
        # nugget structure belongs in a 'nugget' component.
        if not nested:
            free_nugget = fit_nugget if fit_nugget is not None else component.nugget > 0
            if free_nugget:
                slots.append(_Slot(c, "nugget", 0.0, np.inf))
        if fit_sill:
            slots.append(_Slot(c, "partial_sill", 0.0, np.inf))
        if fit_range:
            slots.append(_Slot(c, "range_param", min_range, max_range))
        if fit_anisotropy:
            slots.append(_Slot(c, "major_direction", -np.inf, np.inf))
            slots.append(_Slot(c, "minor_range_ratio", MIN_ANISOTROPY_RATIO, 1.0))
    return slots


def _read(component: VariogramModel, name: str) -> float:
    if name in ("major_direction", "minor_range_ratio"):
        return float(getattr(component.anisotropy, name))
    return float(getattr(component, name))


def _apply(
    components: list[VariogramModel], slots: list[_Slot], theta: np.ndarray
) -> list[VariogramModel]:
    changes: dict[int, dict[str, float]] = {}
    for slot, value in zip(slots, theta):
        changes.setdefault(slot.component, {})[slot.name] = float(value)

    updated = []
    for c, component in enumerate(components):
        params = changes.get(c)
        if not params:
            updated.append(component)
            continue
        direction = params.pop("major_direction", None)
        ratio = params.pop("minor_range_ratio", None)
        if direction is not None or ratio is not None:
            current = component.anisotropy
            params["anisotropy"] = Anisotropy(
                major_direction=direction if direction is not None else current.major_direction,
                minor_range_ratio=ratio if ratio is not None else current.minor_range_ratio,
            )
        updated.append(replace(component, **params))
    return updated


def _inverse_square_weights(n_pairs: np.ndarray, scale: np.ndarray) -> np.ndarray:
    """N / scale**2, with zero weight where scale**2 is zero.

    Zero-lag bins (collocated samples) carry no information about the model
    shape and drop out of the weighted objective.
    """
    squared = np.asarray(scale, dtype=np.float64) ** 2
    weights = np.zeros_like(squared)
    positive = squared > 0
    weights[positive] = n_pairs[positive] / squared[positive]
    return weights


def _residuals(
    model: AnyVariogramModel,
    empirical: EmpiricalVariogram,
    scheme: str,
) -> np.ndarray:
    h = empirical.mean_distance
    directions = empirical.direction if empirical.is_directional else None
    gamma_model = predict_variogram(model, h, directions)
    diff = empirical.semivariance - gamma_model

    if scheme == "weighted":
        weights = _inverse_square_weights(empirical.n_pairs, h)
    elif scheme == "cressie":
        weights = _inverse_square_weights(empirical.n_pairs, gamma_model)
    else:
        weights = np.ones_like(h)
    return np.sqrt(weights) * diff


def fit_variogram_model(
    empirical: EmpiricalVariogram,
    initial: AnyVariogramModel,
    scheme: FittingScheme = "weighted",
    fit_nugget: Optional[bool] = None,
    fit_sill: bool = True,
    fit_range: bool = True,
    fit_anisotropy: bool = False,
    tol: float = DEFAULT_TOLERANCE,
    max_iter: int = DEFAULT_MAX_ITER,
    max_range_factor: float = 10.0,
) -> VariogramFitResult:
    """Fit a theoretical variogram model to an empirical variogram.

    The model family is fixed by ``initial``; only its parameters move.
    Nested models are fitted jointly, each component contributing its own
    partial sill and range (and 'nugget' components their nugget).

    Args:
        empirical: EmpiricalVariogram from :func:`compute_experimental_variogram`.
        initial: Starting VariogramModel or NestedVariogramModel.
        scheme: 'weighted' (N/h², default), 'ordinary' (unweighted) or
            'cressie' (N/gamma²).
        fit_nugget: Whether the nugget of a single structured model is free.
            None (default) frees it only when the initial nugget is > 0, so a
            zero initial nugget means "no nugget structure".
        fit_sill: Whether partial sills are free.
        fit_range: Whether ranges are free.
        fit_anisotropy: Also fit major direction and minor/major ratio. Needs
            a directional empirical variogram and a single VariogramModel.
            Bins are evaluated at their cone axis, so on sampled data the
            direction is resolved to about the cone tolerance.
        tol: Relative decrease of the weighted sum of squares (and step size)
            below which the fit is considered converged.
        max_iter: Maximum number of objective evaluations.
        max_range_factor: Upper bound for ranges as a multiple of the largest
            empirical lag.

    Returns:
        VariogramFitResult. On non-convergence the best iterate is returned
        with ``converged=False`` and a FitDidNotConvergeWarning is emitted.

    Raises:
        InsufficientDataError: Fewer than 2 empirical points, or fewer points
            (with a positive mean lag, under 'weighted') than free parameters.
        InvalidParameterError: Invalid scheme, tolerance, iteration cap or
            anisotropy request, or a 'cressie' starting model that is zero at
            a positive lag.

    Example:
        >>> ev = compute_experimental_variogram(points, cutoff=2.0, width=1.0)
        >>> fit = fit_variogram_model(
        ...     ev, VariogramModel("exponential", partial_sill=2.0, range_param=1.0)
        ... )
        >>> fit.converged, fit.model
    """
    if scheme not in FITTING_SCHEMES:
        raise_parameter_error("scheme", scheme, valid_values=list(FITTING_SCHEMES))
    if not np.isfinite(tol) or tol <= 0:
        raise_parameter_error("tol", tol, constraint="tol > 0")
    if max_iter < 1:
        raise_parameter_error("max_iter", max_iter, constraint="max_iter >= 1")
    if not np.isfinite(max_range_factor) or max_range_factor <= 0:
        raise_parameter_error(
            "max_range_factor", max_range_factor, constraint="max_range_factor > 0"
        )
    if not isinstance(initial, (VariogramModel, NestedVariogramModel)):
        raise_parameter_error(
            "initial",
            type(initial).__name__,
            constraint="VariogramModel or NestedVariogramModel",
        )

    n_points = len(empirical)
    if n_points < 2:
        raise_insufficient_data(
            "variogram fitting",
            required="at least 2 non-empty lag bins",
            received=f"{n_points} bins (cutoff={empirical.cutoff:.4g}, width={empirical.width:.4g})",
            suggestion="Increase the cutoff or decrease the lag width.",
        )

    nested = isinstance(initial, NestedVariogramModel)
    if fit_anisotropy:
        if nested:
            raise_parameter_error(
                "fit_anisotropy",
                fit_anisotropy,
                constraint="anisotropy fitting supports a single VariogramModel",
            )
        if not empirical.is_directional:
            raise_parameter_error(
                "fit_anisotropy",
                fit_anisotropy,
                constraint="requires a directional empirical variogram",
                suggestion="Pass directions=[(angle, tolerance), ...] when computing it.",
            )

    components = _components(initial)
    if fit_anisotropy:
        components = [
            c if c.model_type == "nugget"
            else replace(c, anisotropy=_initial_anisotropy(c, empirical))
            for c in components
        ]

    max_range = max_range_factor * float(np.max(empirical.mean_distance))
    if max_range <= 0:
        max_range = max_range_factor * float(np.max(empirical.upper))

    slots = _build_slots(
        components, nested, max_range, fit_nugget, fit_sill, fit_range, fit_anisotropy
    )
    n_free = len(slots)

    if n_points < n_free:
        raise_insufficient_data(
            "variogram fitting",
            required=f"at least {n_free} empirical points for {n_free} free parameters",
            received=f"{n_points} points",
            suggestion="Fix some parameters or use more lag bins.",
            free_parameters=[s.name for s in slots],
        )

    if scheme == "weighted":
        n_zero_lag = int(np.count_nonzero(empirical.mean_distance <= 0))
        if n_zero_lag and n_points - n_zero_lag < n_free:
            raise_insufficient_data(
                "variogram fitting",
                required=f"at least {n_free} bins with a positive mean lag",
                received=f"{n_points - n_zero_lag} bins ({n_zero_lag} at zero lag)",
                suggestion="Zero-lag bins get no weight under N/h²; add lag bins.",
            )

    if scheme == "cressie":
        start = _assemble(initial, components)
        gamma_start = predict_variogram(
            start,
            empirical.mean_distance,
            empirical.direction if empirical.is_directional else None,
        )
        zero = np.flatnonzero((empirical.mean_distance > 0) & (gamma_start <= 0))
        if zero.size:
            raise_parameter_error(
                "initial",
                repr(start),
                constraint=(
                    "cressie weighting needs a positive model semivariance at every "
                    f"lag; zero at mean lag {empirical.mean_distance[zero[0]]:.4g}"
                ),
                suggestion="Start from a positive partial sill or nugget.",
            )

    def objective(theta: np.ndarray) -> np.ndarray:
        model = _assemble(initial, _apply(components, slots, theta))
        return _residuals(model, empirical, scheme)

    if n_free == 0:
        fitted = _assemble(initial, components)
        converged, n_iterations, message = True, 0, "no free parameters"
    else:
        lower = np.array([s.lower for s in slots])
        upper = np.array([s.upper for s in slots])
        x0 = np.clip([_read(components[s.component], s.name) for s in slots], lower, upper)

        solution = least_squares(
            objective,
            x0,
            bounds=(lower, upper),
            method="trf",
            x_scale="jac",
            ftol=tol,
            xtol=tol,
            gtol=tol,
            max_nfev=max_iter,
        )
        fitted = _assemble(initial, _apply(components, slots, solution.x))
        converged = bool(solution.status > 0)
        n_iterations = int(solution.nfev)
        message = str(solution.message)
        logger.debug(f"least_squares status={solution.status}: {message}")

    residuals = _residuals(fitted, empirical, scheme)
    weighted_sse = float(np.sum(residuals**2))

    predicted = predict_variogram(
        fitted,
        empirical.mean_distance,
        empirical.direction if empirical.is_directional else None,
    )
    ss_res = np.sum((empirical.semivariance - predicted) ** 2)
    ss_tot = np.sum((empirical.semivariance - np.mean(empirical.semivariance)) ** 2)
    r_squared = float(1 - ss_res / ss_tot) if ss_tot > 0 else 0.0

    result = VariogramFitResult(
        model=fitted,
        converged=converged,
        scheme=scheme,
        weighted_sse=weighted_sse,
        r_squared=r_squared,
        n_points=n_points,
        n_free=n_free,
        dof=n_points - n_free,
        n_iterations=n_iterations,
        message=message,
    )

    if converged:
        logger.info(f"Fitted {result!r}")
    else:
        logger.warning(
            f"Variogram fit did not converge within {max_iter} evaluations; "
            f"returning best iterate {fitted!r}"
        )
        warnings.warn(
            f"Variogram fit did not converge within max_iter={max_iter} "
            f"evaluations (wsse={weighted_sse:.4g}); best iterate returned.",
            FitDidNotConvergeWarning,
            stacklevel=2,
        )

    return result
