"""
Reference icosphere used as the density-map surface.

An icosahedron whose faces are each split into (detail + 1) segments per
edge, with every grid point pushed out onto the sphere.  Points shared
between faces are emitted once.
"""

from __future__ import annotations

import math
from typing import Dict, List, Tuple

import numpy as np

from cvfield.errors import InvalidConfiguration

_PHI = (1.0 + math.sqrt(5.0)) / 2.0

_ICOSAHEDRON_VERTICES: List[Tuple[float, float, float]] = [
    (-1, _PHI, 0),
    (1, _PHI, 0),
    (-1, -_PHI, 0),
    (1, -_PHI, 0),
    (0, -1, _PHI),
    (0, 1, _PHI),
    (0, -1, -_PHI),
    (0, 1, -_PHI),
    (_PHI, 0, -1),
    (_PHI, 0, 1),
    (-_PHI, 0, -1),
    (-_PHI, 0, 1),
]

_ICOSAHEDRON_FACES: List[Tuple[int, int, int]] = [
    (0, 11, 5), (0, 5, 1), (0, 1, 7), (0, 7, 10), (0, 10, 11),
    (1, 5, 9), (5, 11, 4), (11, 10, 2), (10, 7, 6), (7, 1, 8),
    (3, 9, 4), (3, 4, 2), (3, 2, 6), (3, 6, 8), (3, 8, 9),
    (4, 9, 5), (2, 4, 11), (6, 2, 10), (8, 6, 7), (9, 8, 1),
]


def _face_grid(a: np.ndarray, b: np.ndarray, c: np.ndarray, cols: int) -> List[np.ndarray]:
    """Lattice points of one triangular face, before projection."""
    points: List[np.ndarray] = []
    for i in range(cols + 1):
        aj = a + (c - a) * (i / cols)
        bj = b + (c - b) * (i / cols)
        rows = cols - i
        for j in range(rows + 1):
            if rows == 0:
                points.append(aj)
            else:
                points.append(aj + (bj - aj) * (j / rows))
    return points


def icosphere_points(radius: float = 98.0, detail: int = 5) -> np.ndarray:
    """Return the unique vertices of a subdivided icosahedron on a sphere.

    Args:
        radius: Sphere radius.
        detail: Extra subdivisions per face edge (0 = plain icosahedron).

    Returns:
        (10 * (detail + 1)**2 + 2, 3) float64 array, in face order.
    """
    if detail < 0:
        raise InvalidConfiguration(f"detail must be >= 0, got {detail}")
    if radius <= 0:
        raise InvalidConfiguration(f"radius must be positive, got {radius}")

    base = np.array(_ICOSAHEDRON_VERTICES, dtype=np.float64)
    cols = detail + 1

    seen: Dict[Tuple[float, float, float], int] = {}
    out: List[np.ndarray] = []
    for ia, ib, ic in _ICOSAHEDRON_FACES:
        for p in _face_grid(base[ia], base[ib], base[ic], cols):
            scaled = p * (radius / np.linalg.norm(p))
            key = (round(scaled[0], 6), round(scaled[1], 6), round(scaled[2], 6))
            if key in seen:
                continue
            seen[key] = len(out)
            out.append(scaled)

    return np.array(out, dtype=np.float64)
