"""
Closed-form current-vector-field (CVF) vertex formulas.

Each vertex is a rotation matrix applied to a point on a basis current
loop.  The matrices come straight from GUTCP:

  BECVF      Eq (1.84)   TransformMode.BASIC, single rotation
  OCVF       Eq (1.95)   TransformMode.EXTENDED, single rotation
  Y00 BECVF  Eq (1.103)  TransformMode.BASIC, m-matrix after n-matrix
  Y00 OCVF   Eq (1.109)  TransformMode.EXTENDED, m-matrix after n-matrix

The literal constants (0.70711, 0.707, 1.414, 2.828) are part of the
geometry and are reproduced as written, approximations included.  The two
matrix families do not share a common rotation primitive, so each matrix
is spelled out entry by entry.
"""

import math
from enum import Enum
from typing import Union

import numpy as np

from cvfield.errors import InvalidConfiguration


class TransformMode(Enum):
    """Which family of CVF matrices to use."""

    BASIC = 1  # BECVF
    EXTENDED = 2  # OCVF

    @classmethod
    def parse(cls, value: Union["TransformMode", int, str]) -> "TransformMode":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            aliases = {
                "basic": cls.BASIC,
                "becvf": cls.BASIC,
                "extended": cls.EXTENDED,
                "ocvf": cls.EXTENDED,
            }
            if key in aliases:
                return aliases[key]
            raise InvalidConfiguration(f"Unknown transform mode {value!r}")
        try:
            return cls(value)
        except ValueError:
            raise InvalidConfiguration(f"Unknown transform mode {value!r}") from None


def _require_count(name: str, value: int, minimum: int = 1) -> None:
    if value < minimum:
        raise InvalidConfiguration(f"{name} must be >= {minimum}, got {value}")


def _angle(index: int, count: int) -> float:
    return 2.0 * math.pi * index / count


def _frozen(vec: np.ndarray) -> np.ndarray:
    vec.setflags(write=False)
    return vec


# ── Single-rotation CVF ───────────────────────────────────────────────────


def ring_rotation(mode: TransformMode, theta: float) -> np.ndarray:
    """Return the 3x3 CVF rotation matrix for ring angle *theta* (radians)."""
    mode = TransformMode.parse(mode)
    c, s = math.cos(theta), math.sin(theta)

    if mode is TransformMode.BASIC:
        # GUTCP Eq (1.84)
        return np.array([
            [0.5 + 0.5*c,    -0.5 + 0.5*c,   -0.70711*s],
            [-0.5 + 0.5*c,   0.5 + 0.5*c,    -0.70711*s],
            [0.70711*s,      0.70711*s,      c],
        ], dtype=np.float64)

    # GUTCP Eq (1.95)
    half = math.cos(theta * 0.5)
    return np.array([
        [
            0.25 * (1.0 + 3.0*c),
            0.25 * (-1.0 + c + 2.0 * 1.414 * s),
            0.25 * (-1.414 + 1.414 * c - 2.0 * s),
        ],
        [
            0.25 * (-1.0 + c - 2.0 * 1.414 * s),
            0.25 * (1.0 + 3.0*c),
            0.25 * (1.414 - 1.414 * c - 2.0 * s),
        ],
        [
            0.5 * (((-1 + c) / 1.414) + s),
            0.25 * (1.414 - 1.414 * c + 2.0 * s),
            half * half,
        ],
    ], dtype=np.float64)


def ring_basis(mode: TransformMode, radius: float, phi: float) -> np.ndarray:
    """Return the un-rotated basis loop point at loop angle *phi*."""
    mode = TransformMode.parse(mode)
    c, s = math.cos(phi), math.sin(phi)
    if mode is TransformMode.BASIC:
        return np.array([0.0, radius * c, -radius * s], dtype=np.float64)
    return np.array(
        [0.707 * radius * c, 0.707 * radius * c, -radius * s], dtype=np.float64
    )


def vertex_for_ring(
    mode: TransformMode,
    radius: float,
    i_theta: int,
    THETA: int,
    i_phi: int,
    PHI: int,
) -> np.ndarray:
    """Compute one vertex of a BECVF/OCVF current ring.

    Args:
        mode: BASIC (BECVF) or EXTENDED (OCVF).
        radius: Loop radius (typically 100.0).
        i_theta: Ring index in [0, THETA).
        THETA: Number of current rings.
        i_phi: Point index along the loop in [0, PHI).
        PHI: Number of points per loop.

    Returns:
        Read-only (3,) float64 vertex.
    """
    _require_count("THETA", THETA)
    _require_count("PHI", PHI)
    rot = ring_rotation(mode, _angle(i_theta, THETA))
    basis = ring_basis(mode, radius, _angle(i_phi, PHI))
    return _frozen(rot @ basis)


# ── Y00 (compound) CVF ────────────────────────────────────────────────────


def compound_m_rotation(angle: float) -> np.ndarray:
    """The Y00 m-matrix; identical for both transform modes."""
    c, s = math.cos(angle), math.sin(angle)
    half = math.cos(0.5 * angle)
    return np.array([
        [
            0.25 * (1.0 + 3.0 * c),
            0.25 * (-1.0 + c + 2.828 * s),
            0.25 * (-1.414 + 1.414 * c - 2.0 * s),
        ],
        [
            0.25 * (-1.0 + c - 2.828 * s),
            0.25 * (1.0 + 3.0 * c),
            0.25 * (1.414 - 1.414 * c - 2.0 * s),
        ],
        [
            0.5 * (0.707 * (-1.0 + c) + s),
            0.25 * (1.414 - 1.414 * c + 2.0 * s),
            half * half,
        ],
    ], dtype=np.float64)


def compound_n_rotation(mode: TransformMode, angle: float) -> np.ndarray:
    """The Y00 n-matrix; its form depends on the transform mode."""
    mode = TransformMode.parse(mode)
    c, s = math.cos(angle), math.sin(angle)

    if mode is TransformMode.BASIC:
        # GUTCP Eq (1.103)
        return np.array([
            [0.5 + 0.5 * c,    -0.5 + 0.5 * c,   -s * 0.707],
            [-0.5 + 0.5 * c,   0.5 + 0.5 * c,    -s * 0.707],
            [s * 0.707,        s * 0.707,        c],
        ], dtype=np.float64)

    # GUTCP Eq (1.109)
    return np.array([
        [0.5 * c - 0.5 * s,    0.707 * c + 0.707 * s,   0.5 * c - 0.5 * s],
        [-0.5 * c - 0.5 * s,   0.707 * c - 0.707 * s,   -0.5 * c - 0.5 * s],
        [-0.707,               0.0,                     0.707],
    ], dtype=np.float64)


def compound_basis(mode: TransformMode, radius: float, phi: float) -> np.ndarray:
    """Basis loop point for the Y00 geometries."""
    mode = TransformMode.parse(mode)
    c, s = math.cos(phi), math.sin(phi)
    if mode is TransformMode.BASIC:
        return np.array([0.0, radius * c, -radius * s], dtype=np.float64)
    return np.array([radius * c, radius * s, 0.0], dtype=np.float64)


def vertex_for_compound(
    mode: TransformMode,
    radius: float,
    i_n: int,
    N: int,
    i_m: int,
    M: int,
    i_phi: int,
    PHI: int,
) -> np.ndarray:
    """Compute one vertex of a Y00 CVF.

    The basis point is rotated by the n-matrix (angle 2*pi*i_n/N) and the
    result by the m-matrix (angle 2*pi*i_m/M).

    Returns:
        Read-only (3,) float64 vertex.
    """
    _require_count("N", N)
    _require_count("M", M)
    _require_count("PHI", PHI)
    basis = compound_basis(mode, radius, _angle(i_phi, PHI))
    t = compound_n_rotation(mode, _angle(i_n, N)) @ basis
    return _frozen(compound_m_rotation(_angle(i_m, M)) @ t)
