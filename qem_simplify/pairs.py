"""
Vertex and Pair Records
=======================

Vertex records carry attributes, an accumulated error quadric and the
canonical list of collapse partners. Candidate pairs are enumerated from
mesh edges and, optionally, from spatial proximity.

A pair (i, j) is always recorded under the lower index, so an unordered
pair is stored once.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

import numpy as np

from .document import Primitive


@dataclass(eq=False)
class Vertex:
    """Mutable vertex state for one simplification run."""
    index: int
    attributes: Dict[str, np.ndarray]
    quadric: np.ndarray = field(default_factory=lambda: np.zeros((4, 4)))
    pairs: List[int] = field(default_factory=list)
    parent: Optional[int] = None  # union-find link, None until absorbed

    @property
    def position(self) -> np.ndarray:
        return self.attributes['POSITION']

    @property
    def is_absorbed(self) -> bool:
        return self.parent is not None


@dataclass(eq=False)
class Pair:
    """Candidate contraction between two vertices."""
    vertices: List[int]
    result: Optional[Vertex] = None
    cost: float = 0.0
    is_seam: bool = False
    version: int = 0
    active: bool = True

    def other(self, index: int) -> int:
        a, b = self.vertices
        return b if a == index else a


def list_vertices(prim: Primitive) -> List[Vertex]:
    """Build a vertex record for every element of the primitive's attributes."""
    arrays = {
        semantic: np.asarray(prim.get_attribute(semantic).get_array(), dtype=np.float64)
        for semantic in prim.list_semantics()
    }
    return [
        Vertex(index=i, attributes={s: array[i].copy() for s, array in arrays.items()})
        for i in range(prim.get_vertex_count())
    ]


def _add_canonical_pair(vertices: List[Vertex], known: List[Set[int]], i: int, j: int) -> bool:
    low, high = (i, j) if i < j else (j, i)
    if high in known[low]:
        return False
    known[low].add(high)
    vertices[low].pairs.append(high)
    return True


def collect_edge_pairs(vertices: List[Vertex], faces: np.ndarray) -> int:
    """
    Record one pair per mesh edge.

    Args:
        vertices: Vertex records, updated in place
        faces: (M, 3) array of face indices

    Returns:
        Number of pairs added
    """
    known = [set(v.pairs) for v in vertices]
    added = 0
    for a, b, c in np.asarray(faces).reshape(-1, 3).tolist():
        for i, j in ((a, b), (b, c), (c, a)):
            if i != j and _add_canonical_pair(vertices, known, i, j):
                added += 1
    return added


def collect_proximity_pairs(vertices: List[Vertex], distance_threshold: float) -> int:
    """
    Record a pair for every two vertices closer than `distance_threshold`.

    Compares every vertex against every other one, so the cost grows with
    the square of the vertex count. Keep thresholds small on large meshes.

    Returns:
        Number of pairs added (edges already recorded are not counted)
    """
    if distance_threshold <= 0 or len(vertices) < 2:
        return 0

    known = [set(v.pairs) for v in vertices]
    positions = np.array([v.position for v in vertices])
    added = 0
    for i in range(1, len(vertices)):
        distances = np.linalg.norm(positions[:i] - positions[i], axis=1)
        for j in np.flatnonzero(distances < distance_threshold).tolist():
            if _add_canonical_pair(vertices, known, i, j):
                added += 1
    return added


def find_seam_edges(faces: np.ndarray) -> Set[Tuple[int, int]]:
    """Find all seam edges (edges with only one adjacent face)."""
    edge_count = {}
    for face in np.asarray(faces).reshape(-1, 3).tolist():
        for i in range(3):
            edge = tuple(sorted([face[i], face[(i + 1) % 3]]))
            edge_count[edge] = edge_count.get(edge, 0) + 1

    return {edge for edge, count in edge_count.items() if count == 1}


def build_pairs(vertices: List[Vertex], seam_edges: Set[Tuple[int, int]]) -> List[Pair]:
    """Create a Pair for every recorded partner, in vertex order."""
    return [
        Pair(vertices=[v.index, j], is_seam=(v.index, j) in seam_edges)
        for v in vertices
        for j in v.pairs
    ]
