"""Layer 4: Workflows - Public entry points.

Workflows chain the primitives into a complete interpolation run driven
by an InterpolationConfig.
"""

from krigsmith.workflows.geostatistics import (
    GeostatisticalModel,
    GeostatisticalResult,
    InterpolationConfig,
    default_initial_model,
)

__all__ = [
    "GeostatisticalModel",
    "GeostatisticalResult",
    "InterpolationConfig",
    "default_initial_model",
]
