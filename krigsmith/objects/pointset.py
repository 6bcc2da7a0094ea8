"""Point-referenced samples in a planar projection.

Layer 1 objects: immutable data, no numerics beyond validation.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Sequence

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class Sample:
    """A single measurement at a projected location.

    Attributes:
        x: Easting in the projection's linear unit.
        y: Northing in the projection's linear unit.
        value: Measured quantity.
        covariates: Optional named auxiliary measurements.
        sample_id: Optional identifier from the ingestion layer.
    """

    x: float
    y: float
    value: float
    covariates: Mapping[str, float] = field(default_factory=dict)
    sample_id: Optional[Any] = None

    def __post_init__(self) -> None:
        """Validate Sample coordinates."""
        if not (np.isfinite(self.x) and np.isfinite(self.y)):
            raise ValueError(
                f"Sample coordinates must be finite, got ({self.x}, {self.y})"
            )
        object.__setattr__(self, "covariates", MappingProxyType(dict(self.covariates)))

    @property
    def coordinates(self) -> tuple[float, float]:
        """(x, y) pair."""
        return (self.x, self.y)


def _readonly(array: np.ndarray) -> np.ndarray:
    array = np.array(array, dtype=np.float64, copy=True)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class SpatialPointSet:
    """Ordered samples sharing one planar projection.

    Arrays are copied and frozen on construction, so a point set can be
    shared read-only across an analysis run.

    Attributes:
        coordinates: Projected coordinates (n_samples, 2).
        values: Measured values (n_samples,).
        ids: Optional sample identifiers (n_samples,).
        covariates: Optional mapping of covariate name to (n_samples,) array.
    """

    coordinates: np.ndarray
    values: np.ndarray
    ids: Optional[tuple] = None
    covariates: Mapping[str, np.ndarray] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate SpatialPointSet parameters."""
        coordinates = np.asarray(self.coordinates, dtype=np.float64)
        values = np.asarray(self.values, dtype=np.float64).ravel()

        if coordinates.ndim != 2 or coordinates.shape[1] != 2:
            raise ValueError(
                f"coordinates must have shape (n_samples, 2), got {coordinates.shape}"
            )

        if len(coordinates) != len(values):
            raise ValueError(
                f"Coordinates ({len(coordinates)}) and values ({len(values)}) "
                f"must have same length"
            )

        if not np.all(np.isfinite(coordinates)):
            bad = np.flatnonzero(~np.all(np.isfinite(coordinates), axis=1))
            raise ValueError(
                f"coordinates must be finite; non-finite rows at indices {bad.tolist()}"
            )

        object.__setattr__(self, "coordinates", _readonly(coordinates))
        object.__setattr__(self, "values", _readonly(values))

        if self.ids is not None:
            ids = tuple(self.ids)
            if len(ids) != len(values):
                raise ValueError(
                    f"ids ({len(ids)}) and values ({len(values)}) must have same length"
                )
            object.__setattr__(self, "ids", ids)

        covariates = {}
        for name, column in dict(self.covariates).items():
            column = np.asarray(column, dtype=np.float64).ravel()
            if len(column) != len(values):
                raise ValueError(
                    f"Covariate '{name}' has {len(column)} entries, "
                    f"expected {len(values)}"
                )
            covariates[name] = _readonly(column)
        object.__setattr__(self, "covariates", MappingProxyType(covariates))

    @classmethod
    def from_samples(cls, samples: Iterable[Sample]) -> "SpatialPointSet":
        """Build a point set from Sample objects, keeping their order."""
        samples = list(samples)
        coordinates = np.array([s.coordinates for s in samples], dtype=np.float64)
        values = np.array([s.value for s in samples], dtype=np.float64)

        covariate_names = sorted({name for s in samples for name in s.covariates})
        covariates = {
            name: np.array([s.covariates.get(name, np.nan) for s in samples])
            for name in covariate_names
        }

        ids = None
        if any(s.sample_id is not None for s in samples):
            ids = tuple(s.sample_id for s in samples)

        return cls(
            coordinates=coordinates.reshape(-1, 2),
            values=values,
            ids=ids,
            covariates=covariates,
        )

    @classmethod
    def from_mapping(cls, records: Mapping[Any, Any]) -> "SpatialPointSet":
        """Build a point set from the ingestion layer's id -> record mapping.

        Each record is either a ``(coordinates, value)`` or
        ``(coordinates, value, covariates)`` tuple, or a mapping with keys
        ``coordinates``, ``value`` and optionally ``covariates``.
        """
        samples = []
        for sample_id, record in records.items():
            if isinstance(record, Mapping):
                coords = record["coordinates"]
                value = record["value"]
                covariates = record.get("covariates") or {}
            else:
                coords, value, *rest = record
                covariates = rest[0] if rest and rest[0] is not None else {}
            x, y = coords
            samples.append(
                Sample(
                    x=float(x),
                    y=float(y),
                    value=float(value),
                    covariates=dict(covariates),
                    sample_id=sample_id,
                )
            )
        return cls.from_samples(samples)

    @classmethod
    def from_dataframe(
        cls,
        frame: pd.DataFrame,
        x: str = "x",
        y: str = "y",
        value: str = "value",
        covariates: Optional[Sequence[str]] = None,
    ) -> "SpatialPointSet":
        """Build a point set from a DataFrame with projected coordinate columns."""
        missing = [c for c in (x, y, value, *(covariates or ())) if c not in frame.columns]
        if missing:
            raise ValueError(
                f"Columns {missing} not found in DataFrame. "
                f"Available columns: {list(frame.columns)}"
            )
        return cls(
            coordinates=frame[[x, y]].to_numpy(dtype=np.float64),
            values=frame[value].to_numpy(dtype=np.float64),
            ids=tuple(frame.index),
            covariates={c: frame[c].to_numpy(dtype=np.float64) for c in covariates or ()},
        )

    def __len__(self) -> int:
        return len(self.values)

    @property
    def n_samples(self) -> int:
        """Number of samples."""
        return len(self.values)

    @property
    def samples(self) -> tuple[Sample, ...]:
        """Samples in order."""
        ids = self.ids if self.ids is not None else (None,) * self.n_samples
        return tuple(
            Sample(
                x=float(xy[0]),
                y=float(xy[1]),
                value=float(v),
                covariates={name: float(col[i]) for name, col in self.covariates.items()},
                sample_id=ids[i],
            )
            for i, (xy, v) in enumerate(zip(self.coordinates, self.values))
        )

    def subset(self, indices: Sequence[int] | np.ndarray) -> "SpatialPointSet":
        """Return a new point set holding the given sample indices, in that order."""
        indices = np.asarray(indices, dtype=np.intp)
        ids = None
        if self.ids is not None:
            ids = tuple(self.ids[i] for i in indices)
        return SpatialPointSet(
            coordinates=self.coordinates[indices],
            values=self.values[indices],
            ids=ids,
            covariates={name: col[indices] for name, col in self.covariates.items()},
        )

    def max_distance(self) -> float:
        """Largest pairwise Euclidean distance between samples."""
        from scipy.spatial.distance import pdist

        if self.n_samples < 2:
            return 0.0
        return float(pdist(self.coordinates).max())

    def to_frame(self) -> pd.DataFrame:
        """Tabular view with x, y, value and covariate columns."""
        data = {
            "x": self.coordinates[:, 0],
            "y": self.coordinates[:, 1],
            "value": self.values,
        }
        data.update(self.covariates)
        index = list(self.ids) if self.ids is not None else None
        return pd.DataFrame(data, index=index)

    def __repr__(self) -> str:
        """String representation."""
        covariate_str = (
            f", covariates={sorted(self.covariates)}" if self.covariates else ""
        )
        return f"SpatialPointSet(n_samples={self.n_samples}{covariate_str})"
