"""Layer 1: Objects - Immutable data representations.

This layer contains only data structures. No plotting and no I/O.
Only standard library + numpy + pandas.
"""

from krigsmith.objects.pointset import Sample, SpatialPointSet

__all__ = [
    "Sample",
    "SpatialPointSet",
]
