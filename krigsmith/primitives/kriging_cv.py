"""Cross-validation for spatial predictors.

Provides leave-one-out and k-fold cross-validation for kriging (or any
fit/predict model such as IDW) to assess prediction quality and validate
variogram model choice.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold

from krigsmith.objects.pointset import SpatialPointSet
from krigsmith.primitives.base import BaseSpatialModel
from krigsmith.primitives.kriging import KrigingResult, OrdinaryKriging
from krigsmith.primitives.variogram_models import NestedVariogramModel, VariogramModel
from krigsmith.utils.errors import (
    SingularKrigingSystemError,
    raise_insufficient_data,
    raise_parameter_error,
)

logger = logging.getLogger(__name__)

ModelFactory = Callable[[], BaseSpatialModel]


@dataclass(frozen=True)
class CrossValidationRecord:
    """Held-out prediction for one sample."""

    sample_index: int
    observed: float
    predicted: float
    residual: float
    fold: int


@dataclass
class CrossValidationResult:
    """Results from cross-validation.

    Attributes:
        records: One CrossValidationRecord per sample, in sample order.
        predictions: Cross-validated predictions (n_samples,).
        errors: Prediction errors (observed - predicted).
        mae: Mean Absolute Error.
        rmse: Root Mean Squared Error.
        r2: Coefficient of determination (R²).
        mean_error: Mean error (bias).
        std_error: Standard deviation of errors.
        n_folds: Number of folds used.
        fold_assignment: Fold index of every sample (n_samples,).
    """

    records: tuple[CrossValidationRecord, ...]
    predictions: np.ndarray
    errors: np.ndarray
    mae: float
    rmse: float
    r2: float
    mean_error: float
    std_error: float
    n_folds: int
    fold_assignment: np.ndarray

    def to_frame(self) -> pd.DataFrame:
        """One row per sample with observed, predicted, residual and fold."""
        return pd.DataFrame(
            {
                "sample_index": [r.sample_index for r in self.records],
                "observed": [r.observed for r in self.records],
                "predicted": [r.predicted for r in self.records],
                "residual": [r.residual for r in self.records],
                "fold": [r.fold for r in self.records],
            }
        )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"CrossValidationResult(n_folds={self.n_folds}, MAE={self.mae:.4f}, "
            f"RMSE={self.rmse:.4f}, R²={self.r2:.4f}, Bias={self.mean_error:.4f})"
        )


def _as_factory(
    model: Union[VariogramModel, NestedVariogramModel, ModelFactory],
) -> ModelFactory:
    if isinstance(model, (VariogramModel, NestedVariogramModel)):
        return lambda: OrdinaryKriging(variogram_model=model)
    if not callable(model):
        raise_parameter_error(
            "model",
            type(model).__name__,
            constraint="a variogram model or a callable returning an unfitted predictor",
        )
    return model


def _fold_predictions(
    predictor: BaseSpatialModel,
    test_points: SpatialPointSet,
    fold: int,
    test_idx: np.ndarray,
) -> np.ndarray:
    output = predictor.predict(test_points)
    if not isinstance(output, KrigingResult):
        return np.asarray(output, dtype=np.float64)

    if output.failures:
        position = min(output.failures)
        cause = output.failures[position]
        raise SingularKrigingSystemError(
            f"Kriging system singular in fold {fold} at held-out sample "
            f"{int(test_idx[position])}: {cause.message}",
            suggestion=cause.suggestion,
            details={
                "fold": fold,
                "sample_index": int(test_idx[position]),
                **cause.details,
            },
        ) from cause
    return output.predictions


def cross_validate(
    points: SpatialPointSet,
    model: Union[VariogramModel, NestedVariogramModel, ModelFactory],
    n_folds: Optional[int] = None,
    shuffle: bool = False,
    random_state: Optional[int] = 0,
) -> CrossValidationResult:
    """Perform k-fold cross-validation for a spatial predictor.

    Splits the sample indices into ``n_folds`` folds with scikit-learn's
    ``KFold``: contiguous blocks of sample order by default, or a seeded
    random assignment when ``shuffle`` is set. For each fold a fresh
    predictor is fitted on the remaining samples and predicts the held-out
    ones. Folds run sequentially and records come back in sample order, so
    repeated runs are identical.

    Args:
        points: SpatialPointSet with sample locations and values.
        model: Fitted variogram model (ordinary kriging is used), or a
            zero-argument callable returning an unfitted predictor, e.g.
            ``lambda: IDWInterpolator(power=2)``.
        n_folds: Number of folds; None means leave-one-out (k = n).
        shuffle: Assign samples to folds at random.
        random_state: Seed for the random assignment.

    Returns:
        CrossValidationResult with per-sample records and metrics.

    Raises:
        InvalidParameterError: If n_folds < 2.
        InsufficientDataError: If n_folds exceeds the number of samples.
        SingularKrigingSystemError: If a fold's kriging system is singular.

    Example:
        >>> from krigsmith.primitives.kriging_cv import cross_validate
        >>> from krigsmith.primitives.variogram_models import VariogramModel
        >>>
        >>> model = VariogramModel("exponential", partial_sill=2.0, range_param=1.0)
        >>> cv_result = cross_validate(points, model, n_folds=5)
        >>> print(f"RMSE: {cv_result.rmse:.2f}, R²: {cv_result.r2:.3f}")
    """
    n_samples = points.n_samples
    k = n_samples if n_folds is None else n_folds

    if k < 2:
        raise_parameter_error(
            "n_folds",
            k,
            constraint=f"2 <= n_folds <= n_samples ({n_samples})",
            suggestion="Use n_folds=None for leave-one-out.",
        )
    if k > n_samples:
        raise_insufficient_data(
            f"{k}-fold cross-validation",
            required=f"at least {k} samples",
            received=f"{n_samples} samples",
            n_folds=k,
        )

    factory = _as_factory(model)
    values = points.values
    predictions = np.empty(n_samples)
    fold_assignment = np.empty(n_samples, dtype=np.intp)

    kf = KFold(n_splits=k, shuffle=shuffle, random_state=random_state if shuffle else None)

    for fold, (train_idx, test_idx) in enumerate(kf.split(points.coordinates)):
        train_points = points.subset(train_idx)
        test_points = points.subset(test_idx)

        predictor = factory()
        predictor.fit(train_points)
        predictions[test_idx] = _fold_predictions(predictor, test_points, fold, test_idx)
        fold_assignment[test_idx] = fold

        logger.debug(
            f"Fold {fold}: trained on {len(train_idx)}, predicted {len(test_idx)} sample(s)"
        )

    # Compute errors
    errors = values - predictions

    # Compute metrics
    mae = float(np.mean(np.abs(errors)))
    rmse = float(np.sqrt(np.mean(errors**2)))
    mean_error = float(np.mean(errors))
    std_error = float(np.std(errors))

    # R²
    ss_res = np.sum(errors**2)
    ss_tot = np.sum((values - np.mean(values)) ** 2)
    r2 = float(1.0 - (ss_res / ss_tot)) if ss_tot > 0 else 0.0

    records = tuple(
        CrossValidationRecord(
            sample_index=i,
            observed=float(values[i]),
            predicted=float(predictions[i]),
            residual=float(errors[i]),
            fold=int(fold_assignment[i]),
        )
        for i in range(n_samples)
    )

    logger.info(
        f"Cross-validation ({k} folds, {n_samples} samples): "
        f"RMSE={rmse:.4f}, MAE={mae:.4f}, bias={mean_error:.4f}"
    )

    return CrossValidationResult(
        records=records,
        predictions=predictions,
        errors=errors,
        mae=mae,
        rmse=rmse,
        r2=r2,
        mean_error=mean_error,
        std_error=std_error,
        n_folds=k,
        fold_assignment=fold_assignment,
    )


def leave_one_out_cross_validation(
    points: SpatialPointSet,
    model: Union[VariogramModel, NestedVariogramModel, ModelFactory],
) -> CrossValidationResult:
    """Perform leave-one-out cross-validation (k = n).

    For each sample point, fit on all other points and predict at that point.
    """
    return cross_validate(points, model, n_folds=None)


def k_fold_cross_validation(
    points: SpatialPointSet,
    model: Union[VariogramModel, NestedVariogramModel, ModelFactory],
    n_folds: int = 5,
    shuffle: bool = True,
    random_state: Optional[int] = 0,
) -> CrossValidationResult:
    """Perform k-fold cross-validation with seeded random fold assignment.

    More efficient than leave-one-out for large datasets.
    """
    return cross_validate(
        points, model, n_folds=n_folds, shuffle=shuffle, random_state=random_state
    )
