"""Theoretical variogram models.

Closed-form semivariance functions, the parameter container used by the
fitter and the kriging system, and nested (summed) structures.

All models satisfy gamma(0) = 0: the nugget is a discontinuity at the
origin and only applies for h > 0.
"""

from dataclasses import dataclass, replace
from typing import Callable, Optional, Union

import numpy as np

from krigsmith.primitives.geometry import (
    Anisotropy,
    effective_distance,
    pairwise_distances,
)
from krigsmith.utils.errors import raise_parameter_error


def _exponential_model(
    h: np.ndarray, nugget: float, partial_sill: float, range_param: float
) -> np.ndarray:
    """Exponential variogram model.

    Args:
        h: Distance (lag).
        nugget: Nugget effect.
        partial_sill: Partial sill (sill - nugget).
        range_param: Range parameter.

    Returns:
        Semi-variance values.
    """
    gamma = nugget + partial_sill * (1.0 - np.exp(-h / range_param))
    return np.where(h > 0, gamma, 0.0)


def _spherical_model(
    h: np.ndarray, nugget: float, partial_sill: float, range_param: float
) -> np.ndarray:
    """Spherical variogram model.

    Reaches the sill exactly at ``h = range_param`` and stays flat beyond.

    Args:
        h: Distance (lag).
        nugget: Nugget effect.
        partial_sill: Partial sill (sill - nugget).
        range_param: Range parameter.

    Returns:
        Semi-variance values.
    """
    h_scaled = np.minimum(h / range_param, 1.0)
    gamma = nugget + partial_sill * (1.5 * h_scaled - 0.5 * h_scaled**3)
    return np.where(h > 0, gamma, 0.0)


def _gaussian_model(
    h: np.ndarray, nugget: float, partial_sill: float, range_param: float
) -> np.ndarray:
    """Gaussian variogram model."""
    gamma = nugget + partial_sill * (1.0 - np.exp(-((h / range_param) ** 2)))
    return np.where(h > 0, gamma, 0.0)


def _nugget_model(
    h: np.ndarray, nugget: float, partial_sill: float, range_param: float
) -> np.ndarray:
    """Pure nugget: constant for h > 0."""
    return np.where(h > 0, nugget, 0.0)


# Model registry
VARIOGRAM_MODELS: dict[str, Callable] = {
    "exponential": _exponential_model,
    "spherical": _spherical_model,
    "gaussian": _gaussian_model,
    "nugget": _nugget_model,
}


@dataclass(frozen=True)
class VariogramModel:
    """Container for variogram model parameters.

    Attributes:
        model_type: One of 'exponential', 'spherical', 'gaussian', 'nugget'.
        nugget: Nugget effect (discontinuity at the origin), >= 0.
        partial_sill: Structured variance (sill - nugget), >= 0. Must be 0
            for the 'nugget' model.
        range_param: Range parameter (correlation length), > 0.
        anisotropy: Optional geometric anisotropy. ``range_param`` is then
            the range along the major direction.
    """

    model_type: str
    nugget: float = 0.0
    partial_sill: float = 0.0
    range_param: float = 1.0
    anisotropy: Optional[Anisotropy] = None

    def __post_init__(self) -> None:
        """Validate VariogramModel parameters."""
        if self.model_type not in VARIOGRAM_MODELS:
            raise_parameter_error(
                "model_type",
                self.model_type,
                valid_values=list(VARIOGRAM_MODELS),
            )

        if not np.isfinite(self.nugget) or self.nugget < 0:
            raise_parameter_error("nugget", self.nugget, constraint="nugget >= 0")

        if not np.isfinite(self.partial_sill) or self.partial_sill < 0:
            raise_parameter_error(
                "partial_sill", self.partial_sill, constraint="partial_sill >= 0"
            )

        if not np.isfinite(self.range_param) or self.range_param <= 0:
            raise_parameter_error(
                "range_param",
                self.range_param,
                constraint="range_param > 0",
                suggestion="Express the range in the projection's linear unit.",
            )

        if self.model_type == "nugget" and self.partial_sill != 0:
            raise_parameter_error(
                "partial_sill",
                self.partial_sill,
                constraint="partial_sill == 0 for the 'nugget' model",
                suggestion="Put the variance in 'nugget' or use a NestedVariogramModel.",
            )

    @property
    def sill(self) -> float:
        """Total sill (nugget + partial sill)."""
        return self.nugget + self.partial_sill

    @property
    def is_anisotropic(self) -> bool:
        return self.anisotropy is not None and not self.anisotropy.is_isotropic

    def predict(
        self, distances: np.ndarray, directions: Optional[np.ndarray] = None
    ) -> np.ndarray:
        """Semivariance at the given lags. See :func:`predict_variogram`."""
        return predict_variogram(self, distances, directions)

    def covariance(
        self, distances: np.ndarray, directions: Optional[np.ndarray] = None
    ) -> np.ndarray:
        """Covariance C(h) = sill - gamma(h) under second-order stationarity."""
        return self.sill - predict_variogram(self, distances, directions)

    def with_params(self, **changes) -> "VariogramModel":
        """Copy with some parameters replaced."""
        return replace(self, **changes)

    def __repr__(self) -> str:
        """String representation."""
        aniso_str = f", {self.anisotropy!r}" if self.anisotropy is not None else ""
        return (
            f"VariogramModel(type={self.model_type}, nugget={self.nugget:.4f}, "
            f"partial_sill={self.partial_sill:.4f}, range={self.range_param:.4f}"
            f"{aniso_str})"
        )


@dataclass(frozen=True)
class NestedVariogramModel:
    """Nested variogram structure: the sum of several component models.

    Typical use is a nugget component plus one or two structured
    components at different ranges.

    Attributes:
        components: Component VariogramModels, ordered from short to long range.
    """

    components: tuple[VariogramModel, ...]

    model_type = "sum"

    def __post_init__(self) -> None:
        """Validate nested variogram."""
        components = tuple(self.components)
        if len(components) == 0:
            raise_parameter_error(
                "components", components, constraint="at least one component"
            )
        for component in components:
            if not isinstance(component, VariogramModel):
                raise_parameter_error(
                    "components",
                    type(component).__name__,
                    constraint="every component must be a VariogramModel",
                )
        object.__setattr__(self, "components", components)

    @property
    def nugget(self) -> float:
        """Total nugget effect (sum of all component nuggets)."""
        return sum(comp.nugget for comp in self.components)

    @property
    def partial_sill(self) -> float:
        return sum(comp.partial_sill for comp in self.components)

    @property
    def sill(self) -> float:
        """Total sill (sum of all component sills)."""
        return sum(comp.sill for comp in self.components)

    @property
    def range_param(self) -> float:
        """Maximum range (largest range among components)."""
        return max(comp.range_param for comp in self.components)

    @property
    def is_anisotropic(self) -> bool:
        return any(comp.is_anisotropic for comp in self.components)

    def predict(
        self, distances: np.ndarray, directions: Optional[np.ndarray] = None
    ) -> np.ndarray:
        """Sum of component semivariances."""
        return predict_variogram(self, distances, directions)

    def covariance(
        self, distances: np.ndarray, directions: Optional[np.ndarray] = None
    ) -> np.ndarray:
        return self.sill - predict_variogram(self, distances, directions)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"NestedVariogramModel(n_components={len(self.components)}, "
            f"nugget={self.nugget:.4f}, sill={self.sill:.4f}, "
            f"max_range={self.range_param:.4f})"
        )


AnyVariogramModel = Union[VariogramModel, NestedVariogramModel]


def predict_variogram(
    variogram_model: AnyVariogramModel,
    distances: np.ndarray,
    directions: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Predict variogram values at given lags.

    For anisotropic models with ``directions`` given, each lag is first
    converted to its effective isotropic length. Without ``directions`` the
    distances are taken as already effective (for instance measured between
    anisotropically transformed coordinates).

    Args:
        variogram_model: VariogramModel or NestedVariogramModel.
        distances: Lag distances (any shape).
        directions: Optional lag directions in degrees, same shape as distances.

    Returns:
        Semi-variance values with the shape of ``distances``.
    """
    distances = np.asarray(distances, dtype=np.float64)

    if isinstance(variogram_model, NestedVariogramModel):
        gamma = np.zeros_like(distances)
        for component in variogram_model.components:
            gamma = gamma + predict_variogram(component, distances, directions)
        return gamma

    h = distances
    if directions is not None and variogram_model.is_anisotropic:
        h = effective_distance(distances, directions, variogram_model.anisotropy)

    model_func = VARIOGRAM_MODELS[variogram_model.model_type]
    return model_func(
        h,
        variogram_model.nugget,
        variogram_model.partial_sill,
        variogram_model.range_param,
    )


def variogram_matrix(
    variogram_model: AnyVariogramModel,
    a: np.ndarray,
    b: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Semivariance between every point of ``a`` and every point of ``b``.

    Each component's anisotropy is applied to the coordinates before
    distances are measured, so fitting and kriging see the same geometry.
    """
    if isinstance(variogram_model, NestedVariogramModel):
        gamma = None
        for component in variogram_model.components:
            term = variogram_matrix(component, a, b)
            gamma = term if gamma is None else gamma + term
        return gamma

    distances = pairwise_distances(a, b, anisotropy=variogram_model.anisotropy)
    return predict_variogram(variogram_model, distances)
