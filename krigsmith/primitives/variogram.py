"""Empirical variogram estimation.

Binned (isotropic or directional) semivariance and the raw variogram cloud,
computed from every unordered sample pair within the cutoff.

Pair enumeration is exact and O(n^2); it suits monitoring networks of tens
to a few hundred stations. Larger inputs are accepted but logged.
"""

import logging
from dataclasses import dataclass
from typing import Literal, Optional, Sequence

import numpy as np
import pandas as pd

from krigsmith.objects.pointset import SpatialPointSet
from krigsmith.primitives.geometry import (
    PairLags,
    angular_difference,
    normalize_direction,
    pairwise_lags,
)
from krigsmith.utils.errors import raise_insufficient_data, raise_parameter_error

logger = logging.getLogger(__name__)

# Cutoff used when none is given: this fraction of the largest pairwise distance.
DEFAULT_CUTOFF_FRACTION = 1.0 / 3.0

# Number of lag bins used to derive a default width from the cutoff.
DEFAULT_N_LAGS = 15

# Above this many samples the all-pairs enumeration gets logged as a warning.
PAIR_WARNING_THRESHOLD = 5000

Direction = tuple[float, float]


@dataclass(frozen=True)
class LagBin:
    """A distance interval, optionally restricted to a direction cone.

    Attributes:
        lower: Lower distance bound.
        upper: Upper distance bound.
        direction: Cone axis in degrees, or None for omnidirectional bins.
        tolerance: Half-width of the cone in degrees.
    """

    lower: float
    upper: float
    direction: Optional[float] = None
    tolerance: Optional[float] = None


@dataclass(frozen=True)
class EmpiricalVariogramPoint:
    """Aggregated semivariance for one non-empty lag bin.

    Attributes:
        bin: The lag bin.
        mean_distance: Mean pair distance actually observed in the bin.
        semivariance: Mean of 0.5 * (z_i - z_j)^2 over pairs in the bin.
        n_pairs: Number of pairs in the bin (always >= 1).
    """

    bin: LagBin
    mean_distance: float
    semivariance: float
    n_pairs: int


@dataclass(frozen=True)
class CloudPoint:
    """Semivariance of a single sample pair."""

    distance: float
    direction: float
    semivariance: float


@dataclass(frozen=True, eq=False)
class EmpiricalVariogram:
    """Ordered empirical variogram.

    Rows are grouped by direction (in the order requested) and sorted by
    increasing mean distance within each group. ``direction`` and
    ``tolerance`` are NaN for omnidirectional variograms.

    Attributes:
        lower: Lower bin bounds.
        upper: Upper bin bounds.
        mean_distance: Mean observed pair distance per bin.
        semivariance: Mean semivariance per bin.
        n_pairs: Pair count per bin.
        direction: Direction per bin (degrees) or NaN.
        tolerance: Angular tolerance per bin (degrees) or NaN.
        cutoff: Maximum pair distance considered.
        width: Lag width used to build the bins (NaN for explicit boundaries).
    """

    lower: np.ndarray
    upper: np.ndarray
    mean_distance: np.ndarray
    semivariance: np.ndarray
    n_pairs: np.ndarray
    direction: np.ndarray
    tolerance: np.ndarray
    cutoff: float
    width: float

    def __len__(self) -> int:
        return len(self.semivariance)

    @property
    def is_directional(self) -> bool:
        return bool(np.any(np.isfinite(self.direction)))

    @property
    def points(self) -> tuple[EmpiricalVariogramPoint, ...]:
        """One EmpiricalVariogramPoint per row."""
        result = []
        for k in range(len(self)):
            directional = np.isfinite(self.direction[k])
            lag_bin = LagBin(
                lower=float(self.lower[k]),
                upper=float(self.upper[k]),
                direction=float(self.direction[k]) if directional else None,
                tolerance=float(self.tolerance[k]) if directional else None,
            )
            result.append(
                EmpiricalVariogramPoint(
                    bin=lag_bin,
                    mean_distance=float(self.mean_distance[k]),
                    semivariance=float(self.semivariance[k]),
                    n_pairs=int(self.n_pairs[k]),
                )
            )
        return tuple(result)

    def to_frame(self) -> pd.DataFrame:
        """Tabular view for plotting."""
        return pd.DataFrame(
            {
                "lower": self.lower,
                "upper": self.upper,
                "mean_distance": self.mean_distance,
                "semivariance": self.semivariance,
                "n_pairs": self.n_pairs,
                "direction": self.direction,
                "tolerance": self.tolerance,
            }
        )

    def __repr__(self) -> str:
        """String representation."""
        n_dirs = len(np.unique(self.direction[np.isfinite(self.direction)]))
        dir_str = f", n_directions={n_dirs}" if n_dirs else ""
        return (
            f"EmpiricalVariogram(n_bins={len(self)}, cutoff={self.cutoff:.4f}"
            f"{dir_str}, n_pairs={int(self.n_pairs.sum())})"
        )


@dataclass(frozen=True, eq=False)
class VariogramCloud:
    """Unaggregated semivariance of every qualifying sample pair.

    Attributes:
        i: First sample index of each pair.
        j: Second sample index of each pair (i < j).
        distance: Pair distance.
        direction: Pair direction in degrees, [0, 180).
        semivariance: 0.5 * (z_i - z_j)^2.
        cutoff: Maximum pair distance considered.
    """

    i: np.ndarray
    j: np.ndarray
    distance: np.ndarray
    direction: np.ndarray
    semivariance: np.ndarray
    cutoff: float

    def __len__(self) -> int:
        return len(self.distance)

    @property
    def points(self) -> tuple[CloudPoint, ...]:
        return tuple(
            CloudPoint(distance=float(d), direction=float(a), semivariance=float(s))
            for d, a, s in zip(self.distance, self.direction, self.semivariance)
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "i": self.i,
                "j": self.j,
                "distance": self.distance,
                "direction": self.direction,
                "semivariance": self.semivariance,
            }
        )

    def __repr__(self) -> str:
        """String representation."""
        return f"VariogramCloud(n_pairs={len(self)}, cutoff={self.cutoff:.4f})"


def default_cutoff(points: SpatialPointSet) -> float:
    """One third of the largest pairwise distance between samples."""
    return points.max_distance() * DEFAULT_CUTOFF_FRACTION


def default_width(cutoff: float) -> float:
    """Lag width giving DEFAULT_N_LAGS bins up to the cutoff."""
    return cutoff / DEFAULT_N_LAGS


def lag_boundaries(cutoff: float, width: float) -> np.ndarray:
    """Bin edges 0, width, 2*width, ... with the last edge at the cutoff.

    Args:
        cutoff: Maximum lag distance (> 0).
        width: Lag width (> 0).

    Returns:
        Increasing array of edges starting at 0 and ending at ``cutoff``.
    """
    if not np.isfinite(cutoff) or cutoff <= 0:
        raise_parameter_error("cutoff", cutoff, constraint="cutoff > 0")
    if not np.isfinite(width) or width <= 0:
        raise_parameter_error("width", width, constraint="width > 0")

    n_bins = max(int(np.ceil(cutoff / width - 1e-9)), 1)
    edges = np.arange(n_bins + 1, dtype=np.float64) * width
    edges[-1] = cutoff
    return edges


def _validate_points(points: SpatialPointSet, operation: str) -> None:
    if points.n_samples < 2:
        raise_insufficient_data(
            operation,
            required="at least 2 samples",
            received=f"{points.n_samples} samples",
        )
    if points.n_samples > PAIR_WARNING_THRESHOLD:
        n_pairs = points.n_samples * (points.n_samples - 1) // 2
        logger.warning(
            f"Enumerating {n_pairs:,} sample pairs for {points.n_samples:,} samples; "
            "all-pairs variogram cost grows quadratically."
        )


def _resolve_cutoff(points: SpatialPointSet, cutoff: Optional[float]) -> float:
    if cutoff is None:
        cutoff = default_cutoff(points)
        if cutoff <= 0:
            raise_insufficient_data(
                "default cutoff",
                required="samples at distinct locations",
                received="all samples collocated",
            )
        return cutoff
    if not np.isfinite(cutoff) or cutoff <= 0:
        raise_parameter_error("cutoff", cutoff, constraint="cutoff > 0")
    return float(cutoff)


def validate_directions(directions: Sequence[Direction]) -> list[Direction]:
    """Check (angle, tolerance) pairs and normalize angles to [0, 180)."""
    validated = []
    for entry in directions:
        try:
            angle, tolerance = entry
            angle, tolerance = float(angle), float(tolerance)
        except (TypeError, ValueError):
            raise_parameter_error(
                "directions",
                entry,
                constraint="each direction is a numeric (angle, tolerance) pair",
            )
        if not np.isfinite(angle):
            raise_parameter_error("direction angle", angle, constraint="finite")
        if not np.isfinite(tolerance) or not 0 < tolerance <= 90:
            raise_parameter_error(
                "direction tolerance",
                tolerance,
                constraint="0 < tolerance <= 90 degrees",
            )
        validated.append((normalize_direction(angle), float(tolerance)))
    return validated


def _assign_bins(
    distances: np.ndarray, edges: np.ndarray, closed: str
) -> np.ndarray:
    """Bin index per distance, -1 when outside [edges[0], edges[-1]].

    closed='right': (lower, upper], with the first bin also taking its lower edge.
    closed='left': [lower, upper), with the last bin also taking its upper edge.
    """
    n_bins = len(edges) - 1
    if closed == "right":
        idx = np.searchsorted(edges, distances, side="left") - 1
        idx = np.where(distances == edges[0], 0, idx)
    else:
        idx = np.searchsorted(edges, distances, side="right") - 1
        idx = np.where(distances == edges[-1], n_bins - 1, idx)
    outside = (distances < edges[0]) | (distances > edges[-1])
    return np.where(outside, -1, idx)


def _aggregate(
    lags: PairLags,
    mask: np.ndarray,
    edges: np.ndarray,
    closed: str,
    direction: float,
    tolerance: float,
) -> list[tuple]:
    distances = lags.distance[mask]
    semivariances = lags.semivariance[mask]
    bin_index = _assign_bins(distances, edges, closed)
    keep = bin_index >= 0
    distances = distances[keep]
    semivariances = semivariances[keep]
    bin_index = bin_index[keep]

    n_bins = len(edges) - 1
    counts = np.bincount(bin_index, minlength=n_bins)
    dist_sums = np.bincount(bin_index, weights=distances, minlength=n_bins)
    semi_sums = np.bincount(bin_index, weights=semivariances, minlength=n_bins)

    rows = []
    for k in np.flatnonzero(counts):
        rows.append(
            (
                edges[k],
                edges[k + 1],
                dist_sums[k] / counts[k],
                semi_sums[k] / counts[k],
                counts[k],
                direction,
                tolerance,
            )
        )
    rows.sort(key=lambda row: row[2])
    return rows


def compute_experimental_variogram(
    points: SpatialPointSet,
    cutoff: Optional[float] = None,
    width: Optional[float] = None,
    directions: Optional[Sequence[Direction]] = None,
    boundaries: Optional[Sequence[float]] = None,
    closed: Literal["right", "left"] = "right",
) -> EmpiricalVariogram:
    """Compute the binned empirical semivariogram.

    Every unordered pair (i, j) with distance <= cutoff contributes
    0.5 * (z_i - z_j)^2 to the bin containing its distance (and, for
    directional variograms, to every direction cone containing its
    direction). Bins without pairs are omitted.

    Args:
        points: SpatialPointSet in a planar projection.
        cutoff: Maximum pair distance. Defaults to one third of the largest
            pairwise distance.
        width: Lag width. Defaults to cutoff / 15.
        directions: Optional (angle, tolerance) pairs in degrees. A pair falls
            in a cone when its unsigned direction is within ``tolerance`` of
            ``angle``; overlapping cones each receive the pair.
        boundaries: Explicit increasing bin edges. The last edge is the cutoff;
            cannot be combined with ``cutoff`` or ``width``.
        closed: Which side of each interval is closed. 'right' uses
            (lower, upper] with zero-distance pairs in the first bin; 'left'
            uses [lower, upper) with the last bin closed at the cutoff.

    Returns:
        EmpiricalVariogram ordered by direction, then mean distance.

    Raises:
        InsufficientDataError: If fewer than 2 samples are given.
        InvalidParameterError: If cutoff, width, boundaries or directions are invalid.

    Example:
        >>> ev = compute_experimental_variogram(points, cutoff=2.0, width=1.0)
        >>> ev.mean_distance, ev.semivariance, ev.n_pairs
    """
    if closed not in ("right", "left"):
        raise_parameter_error("closed", closed, valid_values=["right", "left"])

    _validate_points(points, "variogram estimation")

    if boundaries is not None:
        if cutoff is not None or width is not None:
            raise_parameter_error(
                "boundaries",
                list(boundaries),
                constraint="boundaries cannot be combined with cutoff or width",
                suggestion="Make the last edge the cutoff.",
            )
        edges = np.asarray(boundaries, dtype=np.float64)
        if edges.ndim != 1 or len(edges) < 2 or np.any(np.diff(edges) <= 0):
            raise_parameter_error(
                "boundaries",
                edges.tolist(),
                constraint="at least two strictly increasing edges",
            )
        if edges[0] < 0:
            raise_parameter_error("boundaries", edges.tolist(), constraint="edges >= 0")
        cutoff = float(edges[-1])
        width = float("nan")
    else:
        cutoff = _resolve_cutoff(points, cutoff)
        width = default_width(cutoff) if width is None else width
        edges = lag_boundaries(cutoff, width)

    lags = pairwise_lags(points.coordinates, points.values)
    within = lags.distance <= cutoff

    rows = []
    if directions:
        for angle, tolerance in validate_directions(directions):
            in_cone = within & (angular_difference(lags.direction, angle) <= tolerance)
            rows.extend(_aggregate(lags, in_cone, edges, closed, angle, tolerance))
    else:
        rows = _aggregate(lags, within, edges, closed, np.nan, np.nan)

    columns = list(zip(*rows)) if rows else [()] * 7
    result = EmpiricalVariogram(
        lower=np.asarray(columns[0], dtype=np.float64),
        upper=np.asarray(columns[1], dtype=np.float64),
        mean_distance=np.asarray(columns[2], dtype=np.float64),
        semivariance=np.asarray(columns[3], dtype=np.float64),
        n_pairs=np.asarray(columns[4], dtype=np.int64),
        direction=np.asarray(columns[5], dtype=np.float64),
        tolerance=np.asarray(columns[6], dtype=np.float64),
        cutoff=float(cutoff),
        width=float(width),
    )

    logger.info(
        f"Computed empirical variogram: {len(result)} non-empty bins from "
        f"{int(within.sum())} pairs within cutoff {cutoff:.4g}"
    )
    if len(result) < 2:
        logger.warning(
            f"Only {len(result)} non-empty lag bin(s) with cutoff={cutoff:.4g}, "
            f"width={width:.4g}; a variogram model cannot be fitted to this."
        )

    return result


def compute_directional_variogram(
    points: SpatialPointSet,
    direction: float,
    angle_tolerance: float = 22.5,
    cutoff: Optional[float] = None,
    width: Optional[float] = None,
    closed: Literal["right", "left"] = "right",
) -> EmpiricalVariogram:
    """Compute the empirical variogram in a single direction.

    Useful for detecting anisotropy by comparing variograms in different directions.

    Args:
        points: SpatialPointSet with sample locations and values.
        direction: Direction angle in degrees (0 = east, counterclockwise).
        angle_tolerance: Tolerance for direction in degrees (default: 22.5°).
        cutoff: Maximum lag distance.
        width: Lag width.
        closed: Interval closure, see :func:`compute_experimental_variogram`.

    Returns:
        EmpiricalVariogram for the one direction cone.
    """
    return compute_experimental_variogram(
        points,
        cutoff=cutoff,
        width=width,
        directions=[(direction, angle_tolerance)],
        closed=closed,
    )


def compute_variogram_cloud(
    points: SpatialPointSet,
    cutoff: Optional[float] = None,
    directions: Optional[Sequence[Direction]] = None,
) -> VariogramCloud:
    """Per-pair semivariances without aggregation.

    Args:
        points: SpatialPointSet with sample locations and values.
        cutoff: Maximum pair distance (default: one third of the largest).
        directions: Optional (angle, tolerance) cones; a pair is kept when it
            lies in at least one cone. Each pair appears once.

    Returns:
        VariogramCloud in pair order (0,1), (0,2), ..., (1,2), ...
    """
    _validate_points(points, "variogram cloud")
    cutoff = _resolve_cutoff(points, cutoff)

    lags = pairwise_lags(points.coordinates, points.values)
    keep = lags.distance <= cutoff
    if directions:
        in_any = np.zeros_like(keep)
        for angle, tolerance in validate_directions(directions):
            in_any |= angular_difference(lags.direction, angle) <= tolerance
        keep &= in_any

    logger.debug(f"Variogram cloud: {int(keep.sum())} of {len(keep)} pairs kept")

    return VariogramCloud(
        i=lags.i[keep],
        j=lags.j[keep],
        distance=lags.distance[keep],
        direction=lags.direction[keep],
        semivariance=lags.semivariance[keep],
        cutoff=cutoff,
    )
