"""
Mesh Simplification using Quadric Error Metrics (QEM)
=====================================================

Greedy pair contraction over indexed triangle primitives, after
"Surface Simplification Using Quadric Error Metrics"
by Michael Garland and Paul S. Heckbert (SIGGRAPH 1997).
"""

from .document import Accessor, Document, Mesh, Primitive
from .qem import QuadricErrorMetrics
from .mesh_decimator import MeshDecimator
from .scheduler import CollapseScheduler
from .simplify import SIMPLIFY_DEFAULTS, SimplifyOptions, simplify, simplify_primitive
from .weld import weld, weld_primitive

__version__ = "1.0.0"
__all__ = [
    "Accessor", "Document", "Mesh", "Primitive",
    "QuadricErrorMetrics", "MeshDecimator", "CollapseScheduler",
    "SIMPLIFY_DEFAULTS", "SimplifyOptions", "simplify", "simplify_primitive",
    "weld", "weld_primitive",
]
