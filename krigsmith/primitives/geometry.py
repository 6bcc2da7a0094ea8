"""Pairwise geometry for planar samples.

Distances, unsigned directions and the geometric anisotropy transform.
Angles are in degrees, counterclockwise from the +x (east) axis, and
directions are unsigned: h and -h share a direction in [0, 180).
"""

from dataclasses import dataclass
from typing import NamedTuple, Optional, Sequence, Union

import numpy as np
from numba import njit, prange
from scipy.spatial.distance import cdist

from krigsmith.utils.errors import raise_parameter_error

ArrayLike2D = Union[np.ndarray, Sequence[float], Sequence[Sequence[float]]]


def _check_ratio(minor_range_ratio: float) -> None:
    if not 0.0 < minor_range_ratio <= 1.0:
        raise_parameter_error(
            "minor_range_ratio",
            minor_range_ratio,
            constraint="0 < minor_range_ratio <= 1",
            suggestion="Use the minor range divided by the major range.",
        )


@dataclass(frozen=True)
class Anisotropy:
    """Geometric anisotropy as a major direction and a minor/major range ratio.

    Attributes:
        major_direction: Direction of longest correlation, degrees in [0, 180).
        minor_range_ratio: Minor range divided by major range, in (0, 1].
    """

    major_direction: float
    minor_range_ratio: float

    def __post_init__(self) -> None:
        """Validate Anisotropy parameters."""
        if not np.isfinite(self.major_direction):
            raise_parameter_error(
                "major_direction", self.major_direction, constraint="finite angle in degrees"
            )
        _check_ratio(self.minor_range_ratio)
        object.__setattr__(
            self, "major_direction", normalize_direction(self.major_direction)
        )

    @property
    def is_isotropic(self) -> bool:
        return self.minor_range_ratio == 1.0

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"Anisotropy(major_direction={self.major_direction:.1f}°, "
            f"minor_range_ratio={self.minor_range_ratio:.3f})"
        )


class PairLags(NamedTuple):
    """All unordered sample pairs i < j in row-major order."""

    i: np.ndarray
    j: np.ndarray
    distance: np.ndarray
    direction: np.ndarray
    semivariance: np.ndarray


def normalize_direction(angle):
    """Map angles in degrees onto the unsigned range [0, 180)."""
    normalized = np.mod(angle, 180.0)
    # np.mod can round tiny negatives up to exactly 180
    normalized = np.where(normalized >= 180.0, 0.0, normalized)
    if np.ndim(normalized) == 0:
        return float(normalized)
    return normalized


def angular_difference(a, b):
    """Unsigned difference between two undirected angles, in [0, 90]."""
    diff = np.abs(normalize_direction(np.asarray(a, dtype=float) - b))
    result = np.minimum(diff, 180.0 - diff)
    if np.ndim(result) == 0:
        return float(result)
    return result


def _as_points(points: ArrayLike2D) -> np.ndarray:
    array = np.asarray(points, dtype=np.float64)
    if array.ndim == 1:
        array = array.reshape(1, -1)
    if array.ndim != 2 or array.shape[1] != 2:
        raise_parameter_error("points", array.shape, constraint="shape (n, 2) or (2,)")
    return array


def anisotropic_transform(
    points: ArrayLike2D,
    major_direction: float,
    minor_range_ratio: float,
) -> np.ndarray:
    """Map coordinates into the space where anisotropic correlation is isotropic.

    Rotates so the major axis lies along +x, then stretches the y axis by
    ``1 / minor_range_ratio``.

    Args:
        points: A single (x, y) pair or an array of shape (n, 2).
        major_direction: Major anisotropy direction in degrees.
        minor_range_ratio: Minor/major range ratio in (0, 1].

    Returns:
        Transformed coordinates with the same shape as the input.
    """
    _check_ratio(minor_range_ratio)
    if not np.isfinite(major_direction):
        raise_parameter_error(
            "major_direction", major_direction, constraint="finite angle in degrees"
        )
    single = np.ndim(points) == 1
    coords = _as_points(points)

    angle_rad = np.deg2rad(major_direction)
    cos_a = np.cos(angle_rad)
    sin_a = np.sin(angle_rad)

    transformed = np.empty_like(coords)
    transformed[:, 0] = coords[:, 0] * cos_a + coords[:, 1] * sin_a
    transformed[:, 1] = (-coords[:, 0] * sin_a + coords[:, 1] * cos_a) / minor_range_ratio

    return transformed[0] if single else transformed


def distance(a: ArrayLike2D, b: ArrayLike2D, anisotropy: Optional[Anisotropy] = None) -> float:
    """Euclidean distance between two points, optionally in anisotropic space."""
    a = _as_points(a)
    b = _as_points(b)
    if anisotropy is not None:
        a = anisotropic_transform(a, anisotropy.major_direction, anisotropy.minor_range_ratio)
        b = anisotropic_transform(b, anisotropy.major_direction, anisotropy.minor_range_ratio)
    dx = b[0, 0] - a[0, 0]
    dy = b[0, 1] - a[0, 1]
    return float(np.sqrt(dx * dx + dy * dy))


def direction(a: ArrayLike2D, b: ArrayLike2D) -> float:
    """Unsigned direction of the vector a -> b in degrees, in [0, 180)."""
    a = _as_points(a)
    b = _as_points(b)
    angle = np.degrees(np.arctan2(b[0, 1] - a[0, 1], b[0, 0] - a[0, 0]))
    return normalize_direction(angle)


def effective_distance(
    distances: np.ndarray,
    directions: np.ndarray,
    anisotropy: Optional[Anisotropy],
) -> np.ndarray:
    """Length of lag vectors after the anisotropic transform.

    Equivalent to transforming both endpoints and measuring, but works from
    lag length and direction alone.
    """
    distances = np.asarray(distances, dtype=np.float64)
    if anisotropy is None or anisotropy.is_isotropic:
        return distances
    theta = np.deg2rad(np.asarray(directions, dtype=np.float64) - anisotropy.major_direction)
    scale = np.sqrt(
        np.cos(theta) ** 2 + (np.sin(theta) / anisotropy.minor_range_ratio) ** 2
    )
    return distances * scale


def pairwise_distances(
    a: ArrayLike2D,
    b: Optional[ArrayLike2D] = None,
    anisotropy: Optional[Anisotropy] = None,
) -> np.ndarray:
    """Distance matrix between two point arrays (or within one).

    Args:
        a: Points of shape (n, 2).
        b: Points of shape (m, 2); defaults to ``a``.
        anisotropy: Optional anisotropy applied to both arrays first.

    Returns:
        Matrix of shape (n, m).
    """
    a = _as_points(a)
    b = a if b is None else _as_points(b)
    if anisotropy is not None and not anisotropy.is_isotropic:
        a = anisotropic_transform(a, anisotropy.major_direction, anisotropy.minor_range_ratio)
        b = anisotropic_transform(b, anisotropy.major_direction, anisotropy.minor_range_ratio)
    return cdist(a, b)


@njit(parallel=True, cache=True)
def _pair_lags_kernel(coordinates, values, out_i, out_j, out_dist, out_dir, out_semi):
    """Fill per-pair arrays; each row i writes its own contiguous slice."""
    n = coordinates.shape[0]
    for row in prange(n - 1):
        # prange may hand out unsigned indices; keep the offset arithmetic signed
        i = np.int64(row)
        offset = i * n - (i * (i + 1)) // 2
        for j in range(i + 1, n):
            k = offset + j - i - 1
            dx = coordinates[j, 0] - coordinates[i, 0]
            dy = coordinates[j, 1] - coordinates[i, 1]
            angle = np.arctan2(dy, dx) * 180.0 / np.pi
            angle = angle % 180.0
            if angle >= 180.0:
                angle = 0.0
            diff = values[i] - values[j]
            out_i[k] = i
            out_j[k] = j
            out_dist[k] = np.sqrt(dx * dx + dy * dy)
            out_dir[k] = angle
            out_semi[k] = 0.5 * diff * diff


def pairwise_lags(coordinates: np.ndarray, values: np.ndarray) -> PairLags:
    """Enumerate every unordered pair i < j with its lag geometry and semivariance.

    Pairs come out in row-major order (0,1), (0,2), ..., (1,2), ... regardless
    of how the parallel loop is scheduled. Cost is O(n^2) in memory and time.
    """
    coordinates = np.ascontiguousarray(coordinates, dtype=np.float64)
    values = np.ascontiguousarray(values, dtype=np.float64)
    n = coordinates.shape[0]
    n_pairs = n * (n - 1) // 2

    out_i = np.empty(n_pairs, dtype=np.int64)
    out_j = np.empty(n_pairs, dtype=np.int64)
    out_dist = np.empty(n_pairs, dtype=np.float64)
    out_dir = np.empty(n_pairs, dtype=np.float64)
    out_semi = np.empty(n_pairs, dtype=np.float64)

    if n_pairs > 0:
        _pair_lags_kernel(coordinates, values, out_i, out_j, out_dist, out_dir, out_semi)

    return PairLags(out_i, out_j, out_dist, out_dir, out_semi)
