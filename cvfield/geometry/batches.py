"""
Batch generators that emit CVF geometry one closed loop at a time.

Every loop is returned as its own pair of flat arrays (positions, uvs)
because the consumer draws each ring as an independent closed polyline:
the first and last vertex are adjacent in the rendered topology, never
coincident.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, NamedTuple, Union

import numpy as np

from cvfield.errors import InvalidConfiguration
from cvfield.geometry.cvf import (
    TransformMode,
    vertex_for_compound,
    vertex_for_ring,
)

logger = logging.getLogger(__name__)


class FieldKind(Enum):
    """The four renderable CVF geometries."""

    BECVF = 1  # GUTCP Eq (1.84)
    OCVF = 2  # GUTCP Eq (1.95)
    Y00_BECVF = 3  # GUTCP Eq (1.103)
    Y00_OCVF = 4  # GUTCP Eq (1.109)

    @property
    def mode(self) -> TransformMode:
        if self in (FieldKind.BECVF, FieldKind.Y00_BECVF):
            return TransformMode.BASIC
        return TransformMode.EXTENDED

    @property
    def is_compound(self) -> bool:
        return self in (FieldKind.Y00_BECVF, FieldKind.Y00_OCVF)


class LoopGeometry(NamedTuple):
    """One closed loop: flat xyz positions and matching flat uv pairs."""

    positions: np.ndarray  # (3 * count,)
    uvs: np.ndarray  # (2 * count,)

    @property
    def count(self) -> int:
        return len(self.positions) // 3

    def vertices(self) -> np.ndarray:
        """Positions viewed as a (count, 3) array."""
        return self.positions.reshape(-1, 3)


def _require(name: str, value: int, minimum: int) -> None:
    if value < minimum:
        raise InvalidConfiguration(f"{name} must be >= {minimum}, got {value}")


def generate_ring_batch(
    mode: TransformMode,
    radius: float,
    THETA: int,
    PHI: int,
) -> List[LoopGeometry]:
    """Generate THETA BECVF/OCVF rings of PHI points each.

    The uv of point (i_theta, i_phi) is (i_theta/(THETA-1), i_phi/(PHI-1)),
    a 0..1 lookup across rings and along each ring.
    """
    _require("THETA", THETA, 2)
    _require("PHI", PHI, 2)
    mode = TransformMode.parse(mode)

    loops: List[LoopGeometry] = []
    for i_theta in range(THETA):
        positions = np.empty(PHI * 3, dtype=np.float64)
        uvs = np.empty(PHI * 2, dtype=np.float64)
        for i_phi in range(PHI):
            positions[3 * i_phi:3 * i_phi + 3] = vertex_for_ring(
                mode, radius, i_theta, THETA, i_phi, PHI
            )
            uvs[2 * i_phi] = i_theta / (THETA - 1)
            uvs[2 * i_phi + 1] = i_phi / (PHI - 1)
        loops.append(LoopGeometry(positions, uvs))

    logger.debug("Generated %d %s rings of %d points", THETA, mode.name, PHI)
    return loops


def generate_compound_batch(
    mode: TransformMode,
    radius: float,
    N: int,
    M: int,
    PHI: int,
) -> List[LoopGeometry]:
    """Generate the N x M loops of a Y00 CVF.

    Loop indices run 1..M (outer) and 1..N (inner), inclusive.  Both uv
    components are i_phi/(PHI-1): the consumer only needs a 0..1 ramp along
    each loop.
    """
    _require("N", N, 1)
    _require("M", M, 1)
    _require("PHI", PHI, 2)
    mode = TransformMode.parse(mode)

    loops: List[LoopGeometry] = []
    for i_m in range(1, M + 1):
        for i_n in range(1, N + 1):
            positions = np.empty(PHI * 3, dtype=np.float64)
            uvs = np.empty(PHI * 2, dtype=np.float64)
            for i_phi in range(PHI):
                positions[3 * i_phi:3 * i_phi + 3] = vertex_for_compound(
                    mode, radius, i_n, N, i_m, M, i_phi, PHI
                )
                ramp = i_phi / (PHI - 1)
                uvs[2 * i_phi] = ramp
                uvs[2 * i_phi + 1] = ramp
            loops.append(LoopGeometry(positions, uvs))

    logger.debug("Generated %d Y00 %s loops of %d points", N * M, mode.name, PHI)
    return loops


def generate_field_geometry(
    kind: Union[FieldKind, int],
    radius: float,
    THETA: int,
    PHI: int,
) -> List[LoopGeometry]:
    """Generate the loops for any of the four field kinds.

    Single-rotation kinds use THETA rings directly.  Y00 kinds use
    N = M = THETA // 5 loops per axis.
    """
    try:
        kind = FieldKind(kind)
    except ValueError:
        raise InvalidConfiguration(f"Unknown field kind {kind!r}") from None

    if not kind.is_compound:
        return generate_ring_batch(kind.mode, radius, THETA, PHI)

    n_m = THETA // 5
    if n_m < 1:
        raise InvalidConfiguration(
            f"THETA must be >= 5 for {kind.name} geometry, got {THETA}"
        )
    return generate_compound_batch(kind.mode, radius, n_m, n_m, PHI)
