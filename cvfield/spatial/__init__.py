"""
Spatial lookup over the reference point set.

Provides the reference point set (coordinates + histogram) and the
bucket grid used for 27-cell neighbourhood queries.
"""

from cvfield.spatial.reference_points import ReferencePointSet
from cvfield.spatial.spatial_index import (
    DEFAULT_CELL_SIZE,
    DEFAULT_GRID_SIZE,
    DEFAULT_OFFSET,
    SpatialIndex,
)

__all__ = [
    "DEFAULT_CELL_SIZE",
    "DEFAULT_GRID_SIZE",
    "DEFAULT_OFFSET",
    "ReferencePointSet",
    "SpatialIndex",
]
