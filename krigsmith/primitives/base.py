"""Base interface for spatial predictors.

Predictors follow a fit/predict protocol: ``fit`` takes a SpatialPointSet
and returns self, ``predict`` takes target locations.
"""

from typing import Any, Sequence, Union

import numpy as np

from krigsmith.objects.pointset import SpatialPointSet

Targets = Union[SpatialPointSet, np.ndarray, Sequence[float], Sequence[Sequence[float]]]


def as_target_coordinates(targets: Targets) -> np.ndarray:
    """Coerce prediction targets to an (m, 2) float array."""
    if isinstance(targets, SpatialPointSet):
        return targets.coordinates
    coords = np.asarray(targets, dtype=np.float64)
    if coords.ndim == 1:
        coords = coords.reshape(1, -1)
    if coords.ndim != 2 or coords.shape[1] != 2:
        raise ValueError(
            f"Targets must be a SpatialPointSet or have shape (m, 2), got {coords.shape}"
        )
    if not np.all(np.isfinite(coords)):
        raise ValueError("Target coordinates must be finite")
    return coords


class BaseSpatialModel:
    """Base class for fit/predict spatial models."""

    def __init__(self) -> None:
        self._fitted = False
        self.tags: dict[str, Any] = {
            "supports_3d": False,
            "requires_projected_crs": True,
            "exact_interpolator": False,
        }

    @property
    def is_fitted(self) -> bool:
        """Whether fit() has been called."""
        return self._fitted

    def _check_fitted(self) -> None:
        if not self.is_fitted:
            raise ValueError(f"{type(self).__name__} not fitted. Call fit() first.")

    def fit(self, points: SpatialPointSet) -> "BaseSpatialModel":
        raise NotImplementedError

    def predict(self, query_points: Targets):
        raise NotImplementedError

    def fit_predict(self, points: SpatialPointSet, query_points: Targets):
        """Fit on ``points`` and predict at ``query_points``."""
        return self.fit(points).predict(query_points)
