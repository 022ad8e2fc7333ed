"""
Vertex Welding
==============

Merges duplicate vertices and ensures every primitive is indexed, which
pair contraction requires.
"""

import logging

import numpy as np
from scipy.spatial import cKDTree

from .document import Accessor, Document, Primitive, Transform

logger = logging.getLogger(__name__)


def weld(tolerance: float = 0.0) -> Transform:
    """
    Create a transform welding every primitive of a document.

    Args:
        tolerance: 0 merges vertices whose attributes are identical. Larger
                   values merge vertices whose positions and attributes all
                   agree within `tolerance`.

    Returns:
        Transform callable
    """
    if tolerance < 0:
        raise ValueError(f"tolerance must be >= 0, got {tolerance}")

    def weld_transform(document: Document):
        for mesh in document.list_meshes():
            for prim in mesh.list_primitives():
                weld_primitive(prim, tolerance)

    weld_transform.__name__ = 'weld'
    return weld_transform


def _exact_representatives(prim: Primitive) -> np.ndarray:
    """Map each vertex to the first vertex with an identical attribute tuple."""
    keys = np.hstack([
        np.asarray(prim.get_attribute(s).get_array(), dtype=np.float64).reshape(prim.get_vertex_count(), -1)
        for s in prim.list_semantics()
    ])
    _, first, inverse = np.unique(keys, axis=0, return_index=True, return_inverse=True)
    return first[inverse.reshape(-1)]


def _tolerance_representatives(prim: Primitive, tolerance: float) -> np.ndarray:
    """Map each vertex to the lowest index of its group of near-coincident vertices."""
    positions = np.asarray(prim.get_attribute('POSITION').get_array(), dtype=np.float64)
    others = [
        np.asarray(prim.get_attribute(s).get_array(), dtype=np.float64).reshape(len(positions), -1)
        for s in prim.list_semantics() if s != 'POSITION'
    ]

    parent = np.arange(len(positions))

    def find(i):
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    for i, j in cKDTree(positions).query_pairs(tolerance):
        if all(np.allclose(attr[i], attr[j], rtol=0, atol=tolerance) for attr in others):
            root_i, root_j = find(i), find(j)
            if root_i != root_j:
                parent[max(root_i, root_j)] = min(root_i, root_j)

    return np.array([find(i) for i in range(len(positions))], dtype=np.int64)


def weld_primitive(prim: Primitive, tolerance: float = 0.0):
    """
    Weld a single primitive in place.

    Primitives with nothing to merge keep their buffers untouched, apart
    from gaining an index buffer if they had none.
    """
    vertex_count = prim.get_vertex_count()
    indices = prim.get_indices()
    if indices is None:
        indices = Accessor(np.arange(vertex_count, dtype=np.uint32))
        prim.set_indices(indices)

    if vertex_count == 0:
        return

    if tolerance > 0:
        representatives = _tolerance_representatives(prim, tolerance)
    else:
        representatives = _exact_representatives(prim)

    kept = np.flatnonzero(representatives == np.arange(vertex_count))
    if len(kept) == vertex_count:
        return

    # Surviving vertices keep their relative order
    remap = np.full(vertex_count, -1, dtype=np.int64)
    remap[kept] = np.arange(len(kept))
    remap = remap[representatives]

    for semantic in prim.list_semantics():
        accessor = prim.get_attribute(semantic)
        accessor.set_array(accessor.get_array()[kept])

    old_indices = indices.get_array()
    indices.set_array(remap[old_indices].astype(old_indices.dtype))

    logger.debug(f"Welded {vertex_count} -> {len(kept)} vertices")
