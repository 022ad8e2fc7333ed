"""
Simplify Transform
==================

Document-level entry point: filters unsupported primitives, welds the
rest and runs the decimator on each of them.

References:
- http://www.cs.cmu.edu/~./garland/Papers/quadrics.pdf
- https://github.com/sp4cerat/Fast-Quadric-Mesh-Simplification
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Dict, Optional

from .document import Document, Primitive, Transform
from .mesh_decimator import MeshDecimator
from .qem import CostHook
from .weld import weld_primitive

logger = logging.getLogger(__name__)

NAME = 'simplify'


@dataclass
class SimplifyOptions:
    """
    Options for `simplify`.

    Attributes:
        target: Fraction (0, 1] of vertices to keep.
        distance_threshold: Threshold for merging vertices without a shared
            edge. 0 only contracts existing edges, preserving topology. Above
            0, every vertex pair is compared, so cost grows quadratically.
        seam_penalty: Reserved. Penalty for contracting edges used by a
            single face; currently inert.
        inversion_penalty: Reserved. Penalty for contractions that flip a
            neighboring face; currently inert.
        attribute_weights: Reserved. Per-semantic error multipliers;
            currently inert.
        cost_hook: Optional callable (a, b, result, cost, is_seam) -> cost
            adjusting each merge cost before scheduling.
    """
    target: float = 0.10
    distance_threshold: float = 0.0
    seam_penalty: float = 0.0
    inversion_penalty: float = math.inf
    attribute_weights: Dict[str, float] = field(default_factory=dict)
    cost_hook: Optional[CostHook] = None

    def validate(self):
        if not 0 < self.target <= 1:
            raise ValueError(f"target must be in (0, 1], got {self.target}")
        if self.distance_threshold < 0:
            raise ValueError(f"distance_threshold must be >= 0, got {self.distance_threshold}")


SIMPLIFY_DEFAULTS = SimplifyOptions()


def simplify(options: Optional[SimplifyOptions] = None, **overrides) -> Transform:
    """
    Mesh simplification with Quadric Error Metrics.

    Args:
        options: Base options, defaults to SIMPLIFY_DEFAULTS
        **overrides: Individual option fields replacing those in `options`

    Returns:
        Transform callable mutating a Document in place
    """
    options = replace(options or SIMPLIFY_DEFAULTS, **overrides)
    options.validate()

    if (options.seam_penalty != SIMPLIFY_DEFAULTS.seam_penalty
            or options.inversion_penalty != SIMPLIFY_DEFAULTS.inversion_penalty
            or options.attribute_weights):
        logger.debug(f"{NAME}: seam, inversion and attribute penalties are not implemented; ignoring.")

    def simplify_transform(document: Document):
        for mesh in document.list_meshes():
            for prim in mesh.list_primitives():
                simplify_primitive(prim, options)

    simplify_transform.__name__ = NAME
    return simplify_transform


def simplify_primitive(prim: Primitive,
                       options: SimplifyOptions = SIMPLIFY_DEFAULTS) -> Optional[MeshDecimator]:
    """
    Simplify one primitive in place.

    Returns:
        The decimator that ran, holding collapse history and vertex
        errors, or None if the primitive was skipped
    """
    # Morph target simplification not yet implemented.
    if prim.list_targets():
        logger.warning(f"{NAME}: Skipping primitive; simplifying morph targets not supported.")
        return None

    # TRIANGLES draw mode supported; other modes not yet implemented.
    if prim.get_mode() != Primitive.Mode.TRIANGLES:
        logger.warning(f"{NAME}: Skipping primitive; non-TRIANGLES modes not supported.")
        return None

    # Tangents cannot be interpolated; they must be regenerated afterwards.
    if prim.get_attribute('TANGENT') is not None:
        logger.warning(f"{NAME}: Removing tangents. Regenerate them if necessary.")
        prim.remove_attribute('TANGENT')

    # Pair contraction requires indices and unique vertices.
    weld_primitive(prim, tolerance=0)

    face_count = prim.get_face_count()
    vertex_count = prim.get_vertex_count()

    decimator = MeshDecimator(
        distance_threshold=options.distance_threshold,
        cost_hook=options.cost_hook
    )
    decimator.decimate(prim, target_ratio=options.target)

    logger.info(f"{NAME}: {face_count} -> {prim.get_face_count()} faces, "
                f"{len(decimator.get_collapse_history())} of {vertex_count} vertices merged.")
    return decimator
