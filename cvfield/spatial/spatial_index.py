"""
Fixed-resolution 3D bucket grid over a reference point set.

Each point lands in bucket ``floor(axis / cell_size) + offset`` per axis.
With the defaults (cell 25, offset 6, 12 cells per axis) the grid spans
[-150, 150) on each axis, which covers a radius-98 sphere with at least one
spare cell on every side, so the 3x3x3 neighbourhood of any point on or near
the sphere stays inside the grid.

A neighbourhood query looks at 27 buckets instead of every reference point.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Sequence, Tuple

import numpy as np

from cvfield.errors import InvalidConfiguration, OutOfRange
from cvfield.spatial.reference_points import ReferencePointSet

logger = logging.getLogger(__name__)

Bucket = Tuple[int, int, int]

DEFAULT_CELL_SIZE = 25.0
DEFAULT_OFFSET = 6
DEFAULT_GRID_SIZE = 12

_NEIGHBOR_OFFSETS: List[Bucket] = [
    (dx, dy, dz)
    for dx in (-1, 0, 1)
    for dy in (-1, 0, 1)
    for dz in (-1, 0, 1)
]


class SpatialIndex:
    """Read-only bucket grid mapping cells to reference point indices."""

    def __init__(
        self,
        buckets: Dict[Bucket, List[int]],
        cell_size: float,
        offset: int,
        grid_size: int,
        point_count: int,
    ):
        self._buckets = buckets
        self.cell_size = cell_size
        self.offset = offset
        self.grid_size = grid_size
        self._point_count = point_count

    @classmethod
    def build(
        cls,
        reference_points: ReferencePointSet | np.ndarray,
        cell_size: float = DEFAULT_CELL_SIZE,
        offset: int = DEFAULT_OFFSET,
        grid_size: int = DEFAULT_GRID_SIZE,
    ) -> SpatialIndex:
        """Bucket every reference point.

        Raises:
            InvalidConfiguration: cell_size <= 0 or grid_size < 3.
            OutOfRange: a point falls outside the grid; the cell size and
                offset do not cover the reference extent.
        """
        if cell_size <= 0:
            raise InvalidConfiguration(f"cell_size must be positive, got {cell_size}")
        if grid_size < 3:
            raise InvalidConfiguration(f"grid_size must be >= 3, got {grid_size}")

        if isinstance(reference_points, ReferencePointSet):
            points = reference_points.points
        else:
            points = np.asarray(reference_points, dtype=np.float64).reshape(-1, 3)

        index = cls({}, float(cell_size), int(offset), int(grid_size), len(points))
        for i, xyz in enumerate(points):
            bucket = index.bucket_of(xyz)
            index._buckets.setdefault(bucket, []).append(i)

        logger.debug(
            "Spatial index: %d points in %d/%d buckets (cell=%.1f, offset=%d)",
            len(points), len(index._buckets), grid_size ** 3, cell_size, offset,
        )
        return index

    def __len__(self) -> int:
        return self._point_count

    @property
    def occupied_buckets(self) -> List[Bucket]:
        return sorted(self._buckets)

    def _check(self, bucket: Bucket) -> None:
        for axis in bucket:
            if axis < 0 or axis >= self.grid_size:
                raise OutOfRange(
                    f"Bucket {bucket} outside grid [0, {self.grid_size}) "
                    f"(cell_size={self.cell_size}, offset={self.offset})"
                )

    def bucket_of(self, xyz: Sequence[float]) -> Bucket:
        """Bucket coordinate of a point; raises OutOfRange outside the grid."""
        bucket = (
            math.floor(xyz[0] / self.cell_size) + self.offset,
            math.floor(xyz[1] / self.cell_size) + self.offset,
            math.floor(xyz[2] / self.cell_size) + self.offset,
        )
        self._check(bucket)
        return bucket

    def bucket(self, bucket: Bucket) -> List[int]:
        """Indices stored in a single bucket."""
        self._check(bucket)
        return list(self._buckets.get(tuple(bucket), ()))

    def neighborhood(self, bucket: Bucket) -> np.ndarray:
        """Indices in the 3x3x3 block of buckets centred on *bucket*.

        Raises:
            OutOfRange: any of the 27 buckets lies outside the grid.
        """
        bx, by, bz = bucket
        probes = [(bx + dx, by + dy, bz + dz) for dx, dy, dz in _NEIGHBOR_OFFSETS]
        for probe in probes:
            self._check(probe)

        found = [i for p in probes for i in self._buckets.get(p, ())]
        return np.array(found, dtype=np.intp)
