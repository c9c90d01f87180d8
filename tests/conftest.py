"""
Shared test fixtures for the cvfield test suite.
"""

import numpy as np
import pytest

from cvfield.config.density_config import DensityConfig
from cvfield.geometry.cvf import TransformMode, vertex_for_compound
from cvfield.spatial.reference_points import ReferencePointSet
from cvfield.spatial.spatial_index import SpatialIndex


def brute_force_histogram(points, N, M, PHI, mode=TransformMode.BASIC, radius=98.0, hit_radius=15.0):
    """O(points x N x M x PHI) reference scan without the spatial index."""
    pts = np.asarray(points, dtype=np.float64)
    hist = np.zeros(len(pts))
    hit_triples = 0
    for i_phi in range(PHI):
        for i_m in range(M):
            for i_n in range(N):
                v = vertex_for_compound(mode, radius, i_n, N, i_m, M, i_phi, PHI)
                close = np.sum((pts - v) ** 2, axis=1) < hit_radius ** 2
                hist[close] += 1
                if close.any():
                    hit_triples += 1
    return hist, hit_triples


@pytest.fixture
def small_sphere():
    """162-point reference icosphere of radius 98."""
    return ReferencePointSet.icosphere(98.0, 3)


@pytest.fixture
def sphere_index(small_sphere):
    return SpatialIndex.build(small_sphere, cell_size=25.0, offset=6, grid_size=12)


@pytest.fixture
def fresh_config(monkeypatch):
    """A DensityConfig singleton rebuilt with no overlay file."""
    monkeypatch.delenv("CVFIELD_CONFIG", raising=False)
    DensityConfig._instance = None
    yield DensityConfig()
    DensityConfig._instance = None
