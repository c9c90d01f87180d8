"""
Reference point set for density maps.

Fixed coordinates sampled from a reference surface, each carrying a
mutable hit count (its histogram value).  The set also tracks the running
maximum over all counts so consumers can normalise without a full scan.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

import numpy as np

from cvfield.errors import InvalidConfiguration
from cvfield.geometry.icosphere import icosphere_points

logger = logging.getLogger(__name__)


class ReferencePointSet:
    """Immutable coordinates plus a per-point histogram and running maximum."""

    def __init__(self, points: np.ndarray):
        pts = np.array(points, dtype=np.float64)
        if pts.ndim != 2 or pts.shape[1] != 3:
            raise InvalidConfiguration(
                f"Reference points must have shape (n, 3), got {pts.shape}"
            )
        if not np.all(np.isfinite(pts)):
            raise InvalidConfiguration("Reference points must be finite")
        pts.setflags(write=False)
        self._points = pts
        self._histogram = np.zeros(len(pts), dtype=np.float64)
        self._max_value = 0.0

    @classmethod
    def icosphere(cls, radius: float = 98.0, detail: int = 5) -> ReferencePointSet:
        """Build the set from a subdivided icosahedron."""
        points = icosphere_points(radius, detail)
        logger.info(
            "Reference icosphere: %d points (radius=%.1f, detail=%d)",
            len(points), radius, detail,
        )
        return cls(points)

    def __len__(self) -> int:
        return len(self._points)

    @property
    def points(self) -> np.ndarray:
        """Read-only (n, 3) coordinates."""
        return self._points

    @property
    def histogram(self) -> np.ndarray:
        """Read-only view of the hit counts."""
        view = self._histogram.view()
        view.setflags(write=False)
        return view

    @property
    def max_value(self) -> float:
        return self._max_value

    def coordinate(self, index: int) -> np.ndarray:
        return self._points[index]

    def histogram_value(self, index: int) -> float:
        return float(self._histogram[index])

    def set_histogram_value(self, index: int, value: float) -> None:
        previous = self._histogram[index]
        self._histogram[index] = value
        if value > self._max_value:
            self._max_value = float(value)
        elif previous == self._max_value and value < previous:
            self._max_value = float(max(self._histogram.max(), 0.0))

    def increment(self, indices: Iterable[int]) -> int:
        """Add one hit per occurrence of each index.

        Returns:
            Number of increments applied (repeated indices count each time).
        """
        idx = np.asarray(indices, dtype=np.intp)
        if idx.size == 0:
            return 0
        np.add.at(self._histogram, idx, 1.0)
        peak = float(self._histogram[idx].max())
        if peak > self._max_value:
            self._max_value = peak
        return int(idx.size)

    def clear_histogram(self) -> None:
        self._histogram[:] = 0.0
        self._max_value = 0.0

    def load_histogram(self, values: Iterable[float], max_value: Optional[float] = None) -> None:
        """Replace every hit count, e.g. when restoring a checkpoint."""
        arr = np.asarray(list(values), dtype=np.float64)
        if arr.shape != self._histogram.shape:
            raise InvalidConfiguration(
                f"Histogram length {arr.shape} does not match {len(self)} points"
            )
        self._histogram[:] = arr
        true_max = float(max(arr.max(initial=0.0), 0.0))
        if max_value is not None and abs(float(max_value) - true_max) > 1e-9:
            raise InvalidConfiguration(
                f"Stored maximum {max_value} disagrees with histogram maximum {true_max}"
            )
        self._max_value = true_max

    def normalized(self) -> np.ndarray:
        """Hit counts divided by the running maximum (all zero when empty)."""
        if self._max_value <= 0.0:
            return np.zeros_like(self._histogram)
        return self._histogram / self._max_value
