"""Layer 2: Primitives - Algorithm interfaces and pure operations.

This layer holds the numerical core: geometry, empirical variograms,
variogram models and fitting, kriging, IDW and cross-validation. It can
import numpy, scipy, numba, pandas and scikit-learn. No file I/O or plotting.
"""

from krigsmith.primitives.base import BaseSpatialModel, as_target_coordinates
from krigsmith.primitives.geometry import (
    Anisotropy,
    PairLags,
    anisotropic_transform,
    angular_difference,
    direction,
    distance,
    effective_distance,
    normalize_direction,
    pairwise_distances,
    pairwise_lags,
)
from krigsmith.primitives.interpolation import IDWInterpolator, idw_interpolate
from krigsmith.primitives.kriging import (
    KrigingPoint,
    KrigingResult,
    OrdinaryKriging,
    ordinary_kriging,
)
from krigsmith.primitives.kriging_cv import (
    CrossValidationRecord,
    CrossValidationResult,
    cross_validate,
    k_fold_cross_validation,
    leave_one_out_cross_validation,
)
from krigsmith.primitives.variogram import (
    CloudPoint,
    EmpiricalVariogram,
    EmpiricalVariogramPoint,
    LagBin,
    VariogramCloud,
    compute_directional_variogram,
    compute_experimental_variogram,
    compute_variogram_cloud,
    default_cutoff,
    default_width,
    lag_boundaries,
    validate_directions,
)
from krigsmith.primitives.variogram_fit import (
    FITTING_SCHEMES,
    VariogramFitResult,
    fit_variogram_model,
)
from krigsmith.primitives.variogram_models import (
    VARIOGRAM_MODELS,
    NestedVariogramModel,
    VariogramModel,
    predict_variogram,
    variogram_matrix,
)

__all__ = [
    # Base
    "BaseSpatialModel",
    "as_target_coordinates",
    # Geometry
    "Anisotropy",
    "PairLags",
    "angular_difference",
    "anisotropic_transform",
    "direction",
    "distance",
    "effective_distance",
    "normalize_direction",
    "pairwise_distances",
    "pairwise_lags",
    # Variogram
    "CloudPoint",
    "EmpiricalVariogram",
    "EmpiricalVariogramPoint",
    "LagBin",
    "VariogramCloud",
    "compute_directional_variogram",
    "compute_experimental_variogram",
    "compute_variogram_cloud",
    "default_cutoff",
    "default_width",
    "lag_boundaries",
    "validate_directions",
    # Models and fitting
    "FITTING_SCHEMES",
    "NestedVariogramModel",
    "VARIOGRAM_MODELS",
    "VariogramFitResult",
    "VariogramModel",
    "fit_variogram_model",
    "predict_variogram",
    "variogram_matrix",
    # Kriging
    "KrigingPoint",
    "KrigingResult",
    "OrdinaryKriging",
    "ordinary_kriging",
    # Interpolation
    "IDWInterpolator",
    "idw_interpolate",
    # Cross-validation
    "CrossValidationRecord",
    "CrossValidationResult",
    "cross_validate",
    "k_fold_cross_validation",
    "leave_one_out_cross_validation",
]
