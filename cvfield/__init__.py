"""
cvfield: current-vector-field orbital geometry and density maps.

Generates GUTCP current-vector-field loops from closed-form rotation
formulas and accumulates a density histogram of the generated points
over a reference icosphere.
"""

__version__ = "0.1.0"
