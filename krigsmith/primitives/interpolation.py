"""Inverse distance weighting.

Deterministic baseline predictor used for comparison with kriging and as
a cross-validation reference.
"""

import logging
from typing import Optional

import numpy as np
from scipy.spatial.distance import cdist
from sklearn.neighbors import KDTree

from krigsmith.objects.pointset import SpatialPointSet
from krigsmith.primitives.base import BaseSpatialModel, Targets, as_target_coordinates
from krigsmith.utils.errors import raise_insufficient_data, raise_parameter_error

logger = logging.getLogger(__name__)


def idw_interpolate(
    sample_points: SpatialPointSet,
    query_points: Targets,
    power: float = 2.0,
    k: Optional[int] = None,
) -> np.ndarray:
    """Inverse Distance Weighted (IDW) interpolation.

    Estimates values at query locations as a weighted average of sample
    values, with weights ``w_i = d_i ** -power``. A query that coincides
    with a sample returns that sample's value exactly (the mean, if several
    samples share the location).

    Args:
        sample_points: SpatialPointSet with sample locations and values.
        query_points: SpatialPointSet, (m, 2) array or a single (x, y).
        power: IDW exponent (typically 2.0). Higher values give more weight
               to closer points.
        k: Use only the k nearest samples. None uses every sample.

    Returns:
        Estimated values at query points (m,).

    Raises:
        InvalidParameterError: If power or k is invalid.
        InsufficientDataError: If there are no samples.

    Example:
        >>> points = SpatialPointSet(
        ...     coordinates=np.array([[0.0, 0.0], [1.0, 0.0]]),
        ...     values=np.array([10.0, 12.0]),
        ... )
        >>> idw_interpolate(points, [[0.0, 0.0], [0.5, 0.0]])
        array([10., 11.])
    """
    if not np.isfinite(power) or power <= 0:
        raise_parameter_error("power", power, constraint="power > 0")
    if k is not None and k < 1:
        raise_parameter_error("k", k, constraint="k >= 1 or None")

    n_samples = sample_points.n_samples
    if n_samples == 0:
        raise_insufficient_data(
            "IDW interpolation", required="at least 1 sample", received="0 samples"
        )

    sample_coords = sample_points.coordinates
    sample_values = sample_points.values
    query_coords = as_target_coordinates(query_points)

    if k is None or k >= n_samples:
        distances = cdist(query_coords, sample_coords)
        neighbor_values = np.broadcast_to(sample_values, distances.shape)
    else:
        tree = KDTree(sample_coords)
        distances, indices = tree.query(query_coords, k=k)
        neighbor_values = sample_values[indices]

    exact = distances == 0.0
    has_exact = exact.any(axis=1)

    estimates = np.empty(len(query_coords))

    # Exact hits: mean of the coincident samples, no division by zero
    if has_exact.any():
        hits = exact[has_exact]
        estimates[has_exact] = (neighbor_values[has_exact] * hits).sum(axis=1) / hits.sum(
            axis=1
        )

    rest = ~has_exact
    if rest.any():
        weights = distances[rest] ** -power
        weights /= weights.sum(axis=1, keepdims=True)
        estimates[rest] = (neighbor_values[rest] * weights).sum(axis=1)

    logger.debug(
        f"IDW estimated {len(query_coords)} target(s) from {n_samples} sample(s), "
        f"{int(has_exact.sum())} exact hit(s)"
    )
    return estimates


class IDWInterpolator(BaseSpatialModel):
    """Inverse distance weighting in the fit/predict protocol."""

    def __init__(self, power: float = 2.0, k: Optional[int] = None):
        super().__init__()
        if not np.isfinite(power) or power <= 0:
            raise_parameter_error("power", power, constraint="power > 0")
        if k is not None and k < 1:
            raise_parameter_error("k", k, constraint="k >= 1 or None")
        self.power = power
        self.k = k
        self.points: Optional[SpatialPointSet] = None
        self.tags["exact_interpolator"] = True

    def fit(self, points: SpatialPointSet) -> "IDWInterpolator":
        if points.n_samples < 1:
            raise_insufficient_data(
                "IDW interpolation", required="at least 1 sample", received="0 samples"
            )
        self.points = points
        self._fitted = True
        return self

    def predict(self, query_points: Targets) -> np.ndarray:
        self._check_fitted()
        return idw_interpolate(self.points, query_points, power=self.power, k=self.k)

    def __repr__(self) -> str:
        return f"IDWInterpolator(power={self.power}, k={self.k})"
