"""
CVF geometry generation.

Closed-form vertex formulas for the BECVF/OCVF fields and their Y00
compositions, batch loop generators, and the reference icosphere.
"""

from cvfield.geometry.batches import (
    FieldKind,
    LoopGeometry,
    generate_compound_batch,
    generate_field_geometry,
    generate_ring_batch,
)
from cvfield.geometry.cvf import TransformMode, vertex_for_compound, vertex_for_ring
from cvfield.geometry.icosphere import icosphere_points

__all__ = [
    "FieldKind",
    "LoopGeometry",
    "TransformMode",
    "generate_compound_batch",
    "generate_field_geometry",
    "generate_ring_batch",
    "icosphere_points",
    "vertex_for_compound",
    "vertex_for_ring",
]
