"""KrigSmith: geostatistical interpolation for planar point data.

Layered package:
- objects: immutable sample containers
- primitives: variograms, model fitting, kriging, IDW, cross-validation
- workflows: configured end-to-end runs
- utils: errors
"""

from krigsmith.objects import Sample, SpatialPointSet
from krigsmith.primitives import (
    Anisotropy,
    CrossValidationRecord,
    CrossValidationResult,
    EmpiricalVariogram,
    IDWInterpolator,
    KrigingResult,
    NestedVariogramModel,
    OrdinaryKriging,
    VariogramCloud,
    VariogramFitResult,
    VariogramModel,
    compute_directional_variogram,
    compute_experimental_variogram,
    compute_variogram_cloud,
    cross_validate,
    fit_variogram_model,
    idw_interpolate,
    k_fold_cross_validation,
    leave_one_out_cross_validation,
)
from krigsmith.utils import (
    FitDidNotConvergeWarning,
    InsufficientDataError,
    InvalidParameterError,
    KrigSmithError,
    SingularKrigingSystemError,
)
from krigsmith.workflows import (
    GeostatisticalModel,
    GeostatisticalResult,
    InterpolationConfig,
)

__version__ = "0.1.0"

__all__ = [
    "Anisotropy",
    "CrossValidationRecord",
    "CrossValidationResult",
    "EmpiricalVariogram",
    "FitDidNotConvergeWarning",
    "GeostatisticalModel",
    "GeostatisticalResult",
    "IDWInterpolator",
    "InsufficientDataError",
    "InterpolationConfig",
    "InvalidParameterError",
    "KrigSmithError",
    "KrigingResult",
    "NestedVariogramModel",
    "OrdinaryKriging",
    "Sample",
    "SingularKrigingSystemError",
    "SpatialPointSet",
    "VariogramCloud",
    "VariogramFitResult",
    "VariogramModel",
    "compute_directional_variogram",
    "compute_experimental_variogram",
    "compute_variogram_cloud",
    "cross_validate",
    "fit_variogram_model",
    "idw_interpolate",
    "k_fold_cross_validation",
    "leave_one_out_cross_validation",
    "__version__",
]
