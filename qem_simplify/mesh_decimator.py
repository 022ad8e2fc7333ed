"""
Mesh Decimator
==============

Greedy pair contraction over a single triangle primitive. Pairs are popped
from a priority queue by ascending quadric cost, contracted, and the costs
of every pair touching the surviving vertex are re-evaluated.
"""

import logging
from typing import Callable, Dict, List, Optional, Set

import numpy as np

from .document import Primitive
from .pairs import (Pair, Vertex, build_pairs, collect_edge_pairs,
                    collect_proximity_pairs, find_seam_edges, list_vertices)
from .qem import CostHook, QuadricErrorMetrics
from .scheduler import CollapseScheduler

logger = logging.getLogger(__name__)


def compute_target_count(vertex_count: int, target_ratio: float) -> int:
    """Vertices to keep, rounded half up."""
    return int(np.floor(vertex_count * target_ratio + 0.5))


class MeshDecimator:
    """
    Mesh simplification using Quadric Error Metrics (QEM).

    Implements iterative pair contraction with:
    - Priority queue keyed on merge cost, with lazy invalidation
    - Union-find links from absorbed vertices to their survivor
    - Optional proximity pairs between vertices that share no edge
    - Degenerate face removal on rebuild

    The primitive must be indexed, in TRIANGLES mode, and welded.
    """

    def __init__(self, distance_threshold: float = 0.0,
                 cost_hook: Optional[CostHook] = None):
        """
        Initialize the mesh decimator.

        Args:
            distance_threshold: Vertices closer than this may be merged even
                                without a shared edge. 0 disables it. The scan
                                is quadratic in the vertex count.
            cost_hook: Optional cost adjustment, see QuadricErrorMetrics
        """
        self.distance_threshold = distance_threshold
        self.qem = QuadricErrorMetrics(cost_hook=cost_hook)

        # State variables (initialized per decimation)
        self._vertices: Optional[List[Vertex]] = None
        self._faces: Optional[np.ndarray] = None
        self._deleted_faces: Optional[np.ndarray] = None
        self._vertex_faces: Optional[Dict[int, Set[int]]] = None
        self._pairs: Optional[List[Pair]] = None
        self._vertex_pairs: Optional[Dict[int, List[Pair]]] = None
        self._scheduler: Optional[CollapseScheduler] = None
        self._modified_vertices: Optional[Set[int]] = None
        self._collapse_history: Optional[List[dict]] = None

    def decimate(self, prim: Primitive, target_ratio: float,
                 progress_callback: Optional[Callable[[float], None]] = None):
        """
        Simplify the primitive in place.

        Args:
            prim: Indexed TRIANGLES primitive with a POSITION attribute
            target_ratio: Fraction (0, 1] of the vertex count to keep
            progress_callback: Optional callback for progress updates
        """
        if not 0 < target_ratio <= 1:
            raise ValueError(f"target_ratio must be in (0, 1], got {target_ratio}")

        self._initialize(prim)

        n = len(self._vertices)
        target_count = compute_target_count(n, target_ratio)
        vertices_to_remove = n - target_count
        deleted_count = 0
        last_progress = 0.0

        logger.debug(f"Starting decimation: {n} -> {target_count} vertices, "
                     f"{len(self._pairs)} candidate pairs")

        while n - deleted_count > target_count:
            pair = self._scheduler.pop()

            if pair is None:
                logger.debug("No more valid pairs to collapse")
                break

            a, b = (self._find(i) for i in pair.vertices)
            if a == b:
                continue  # Already contracted through another pair

            self._collapse_pair(pair, a, b)
            deleted_count += 1

            if not deleted_count % 100:
                logger.debug(f"Deleted: {deleted_count} of {vertices_to_remove} vertices.")

            if progress_callback is not None:
                progress = deleted_count / max(1, vertices_to_remove)
                if progress - last_progress >= 0.05:  # Update every 5%
                    progress_callback(min(1.0, progress))
                    last_progress = progress

        self._rebuild_primitive(prim, deleted_count)

    def _initialize(self, prim: Primitive):
        """Initialize all data structures for decimation."""
        self._vertices = list_vertices(prim)
        self._faces = np.array(prim.get_indices().get_array(), dtype=np.int64).reshape(-1, 3)

        # Input faces that are already degenerate never survive the rebuild
        f = self._faces
        self._deleted_faces = (f[:, 0] == f[:, 1]) | (f[:, 1] == f[:, 2]) | (f[:, 2] == f[:, 0])
        live_faces = f[~self._deleted_faces]

        self._vertex_faces = {i: set() for i in range(len(self._vertices))}
        for fi in np.flatnonzero(~self._deleted_faces).tolist():
            for vi in f[fi].tolist():
                self._vertex_faces[vi].add(fi)

        self.qem.accumulate_quadrics(self._vertices, f)

        edge_pairs = collect_edge_pairs(self._vertices, live_faces)
        proximity_pairs = collect_proximity_pairs(self._vertices, self.distance_threshold)
        if proximity_pairs:
            logger.debug(f"Added {proximity_pairs} proximity pairs to {edge_pairs} edge pairs")

        self._pairs = build_pairs(self._vertices, find_seam_edges(live_faces))
        self._vertex_pairs = {i: [] for i in range(len(self._vertices))}
        for pair in self._pairs:
            a, b = pair.vertices
            pair.result, pair.cost = self.qem.merge(self._vertices[a], self._vertices[b], pair.is_seam)
            self._vertex_pairs[a].append(pair)
            self._vertex_pairs[b].append(pair)

        self._scheduler = CollapseScheduler(self._pairs)
        self._modified_vertices = set()
        self._collapse_history = []

    def _find(self, index: int) -> int:
        """Resolve a vertex index to the vertex that absorbed it."""
        root = index
        while self._vertices[root].parent is not None:
            root = self._vertices[root].parent
        while index != root:
            self._vertices[index].parent, index = root, self._vertices[index].parent
        return root

    def _collapse_pair(self, pair: Pair, a: int, b: int):
        """
        Contract b into a.

        a takes the attributes of the pair's merge result and the summed
        quadric. Faces and pairs referencing b are rewritten to a.
        """
        survivor = self._vertices[a]
        absorbed = self._vertices[b]

        survivor.attributes = {s: v.copy() for s, v in pair.result.attributes.items()}
        survivor.quadric = survivor.quadric + absorbed.quadric
        absorbed.parent = a
        self._modified_vertices.add(a)

        # Faces: rewrite b -> a, drop those that lost their area
        for fi in self._vertex_faces.pop(b):
            if self._deleted_faces[fi]:
                continue
            face = self._faces[fi]
            face[face == b] = a
            if face[0] == face[1] or face[1] == face[2] or face[2] == face[0]:
                self._deleted_faces[fi] = True
            else:
                self._vertex_faces[a].add(fi)

        # Pairs: tombstone resolved ones, re-evaluate the rest against a
        affected = self._vertex_pairs.pop(b) + self._vertex_pairs[a]
        self._vertex_pairs[a] = []
        for other_pair in dict.fromkeys(affected):
            if not other_pair.active:
                continue
            x, y = (self._find(i) for i in other_pair.vertices)
            if x == y:
                self._scheduler.discard(other_pair)
                continue
            other_pair.vertices = [x, y]
            other = self._vertices[other_pair.other(a)]
            other_pair.result, other_pair.cost = self.qem.merge(survivor, other, other_pair.is_seam)
            self._scheduler.update(other_pair)
            self._vertex_pairs[a].append(other_pair)

        self._collapse_history.append({
            'pair': (a, b),
            'cost': pair.cost,
            'survivor': pair.result.index
        })

    def _rebuild_primitive(self, prim: Primitive, deleted_count: int):
        """Write surviving faces and merged attributes back to the primitive."""
        face_count = len(self._faces)
        num_faces_deleted = int(np.count_nonzero(self._deleted_faces))

        logger.debug(f"Removed {num_faces_deleted} of {face_count} faces, "
                     f"{deleted_count} of {len(self._vertices)} vertices.")

        for i in sorted(self._modified_vertices):
            for semantic in prim.list_semantics():
                prim.get_attribute(semantic).set_element(i, self._vertices[i].attributes[semantic])

        indices = prim.get_indices()
        compacted = self._faces[~self._deleted_faces].reshape(-1)
        indices.set_array(compacted.astype(indices.get_array().dtype))

        # TODO: prune vertices no longer referenced by any face (needs a remap of every attribute)

    def get_collapse_history(self) -> List[dict]:
        """Get the history of contractions performed."""
        return self._collapse_history.copy() if self._collapse_history else []

    def get_vertex_errors(self) -> np.ndarray:
        """
        Quadric error of every vertex after the last decimation.

        Each survivor is scored at its final position against the summed
        quadrics of the original faces around every vertex it absorbed, so
        the values measure drift from the input surface. Absorbed vertices
        report the error of their survivor.

        Returns:
            (N,) array indexed like the primitive's vertex buffers
        """
        if self._vertices is None:
            raise ValueError("No decimation has been run")

        errors = np.zeros(len(self._vertices))
        for i in range(len(self._vertices)):
            root = self._vertices[self._find(i)]
            errors[i] = self.qem.compute_error(root.quadric, root.position)
        return errors
