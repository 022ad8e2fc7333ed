"""
Quadric Error Metrics (QEM) Implementation
==========================================

Per-vertex error quadrics and the endpoint merge cost used to rank
candidate pairs.

Based on: "Surface Simplification Using Quadric Error Metrics"
by Michael Garland and Paul S. Heckbert (SIGGRAPH 1997)
"""

from typing import Callable, List, Optional, Tuple

import numpy as np

from .pairs import Vertex

# (a, b, result, cost, is_seam) -> adjusted cost
CostHook = Callable[[Vertex, Vertex, Vertex, float, bool], float]


class QuadricErrorMetrics:
    """
    Implements Quadric Error Metrics for mesh simplification.

    The fundamental quadric Q for a plane ax + by + cz + d = 0 is the 4x4 matrix:
    Q = p * p^T where p = [a, b, c, d]^T

    The error of a vertex v = [x, y, z, 1]^T with respect to Q is:
    error(v) = v^T * Q * v

    When merging a pair (v1, v2), the combined quadric is:
    Q_new = Q1 + Q2

    Only the two endpoint positions are candidates for the merged vertex.
    """

    def __init__(self, cost_hook: Optional[CostHook] = None):
        """
        Initialize QEM calculator.

        Args:
            cost_hook: Optional callable adjusting the cost of each merge.
                       Receives (a, b, result, cost, is_seam) and returns
                       the cost to schedule with.
        """
        self.cost_hook = cost_hook

    def compute_face_planes(self, positions: np.ndarray, faces: np.ndarray) -> np.ndarray:
        """
        Compute plane coefficients for every triangle.

        For a face (a, b, c) the normal is cross(c - b, a - b). Normals whose
        squared length exceeds 1 are scaled to unit length; shorter normals
        are used as-is, so small triangles weigh less.

        Args:
            positions: (N, 3) array of vertex positions
            faces: (M, 3) array of face indices

        Returns:
            (M, 4) array of plane coefficients [a, b, c, d] with
            d = -dot(normal, position_a)
        """
        a = positions[faces[:, 0]]
        b = positions[faces[:, 1]]
        c = positions[faces[:, 2]]

        normals = np.cross(c - b, a - b)
        length_sq = np.einsum('ij,ij->i', normals, normals)
        scale = np.ones_like(length_sq)
        long_normals = length_sq > 1
        scale[long_normals] = 1.0 / np.sqrt(length_sq[long_normals])
        normals = normals * scale[:, None]

        d = -np.einsum('ij,ij->i', normals, a)
        return np.column_stack([normals, d])

    def compute_face_plane(self, v0: np.ndarray, v1: np.ndarray, v2: np.ndarray) -> np.ndarray:
        """Plane coefficients [a, b, c, d] of a single triangle (v0, v1, v2)."""
        positions = np.array([v0, v1, v2], dtype=np.float64)
        return self.compute_face_planes(positions, np.array([[0, 1, 2]]))[0]

    def compute_fundamental_quadric(self, plane: np.ndarray) -> np.ndarray:
        """
        Compute the fundamental error quadric for a plane.

        Q = p * p^T where p = [a, b, c, d]

        Args:
            plane: Plane coefficients [a, b, c, d]

        Returns:
            4x4 symmetric matrix Q
        """
        return np.outer(plane, plane)

    def compute_vertex_quadrics(self, positions: np.ndarray, faces: np.ndarray) -> np.ndarray:
        """
        Compute error quadrics for all vertices.

        For each vertex, the quadric is the sum of fundamental quadrics
        of all faces incident to that vertex.

        Args:
            positions: (N, 3) array of vertex positions
            faces: (M, 3) array of face indices

        Returns:
            (N, 4, 4) array of vertex quadrics
        """
        positions = np.asarray(positions, dtype=np.float64)
        faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
        quadrics = np.zeros((len(positions), 4, 4))
        if len(faces) == 0:
            return quadrics

        planes = self.compute_face_planes(positions, faces)
        face_quadrics = np.einsum('fi,fj->fij', planes, planes)
        for corner in range(3):
            np.add.at(quadrics, faces[:, corner], face_quadrics)

        return quadrics

    def accumulate_quadrics(self, vertices: List[Vertex], faces: np.ndarray):
        """Add the face quadrics of `faces` into each vertex's running quadric."""
        positions = np.array([v.position for v in vertices], dtype=np.float64)
        quadrics = self.compute_vertex_quadrics(positions, faces)
        for vertex, Q in zip(vertices, quadrics):
            vertex.quadric += Q

    def compute_error(self, Q: np.ndarray, v: np.ndarray) -> float:
        """
        Compute the quadric error for a vertex position.

        error = v^T * Q * v where v is [x, y, z, 1]

        Args:
            Q: 4x4 quadric matrix
            v: 3D vertex position

        Returns:
            Quadric error value
        """
        v_homo = np.array([v[0], v[1], v[2], 1.0])
        error = v_homo @ Q @ v_homo
        return max(0.0, float(error))  # Clamp rounding noise

    def merge(self, a: Vertex, b: Vertex, is_seam: bool = False) -> Tuple[Vertex, float]:
        """
        Evaluate merging vertices a and b.

        Both endpoint positions are scored under Q = Qa + Qb and the cheaper
        one wins; a wins ties.

        Args:
            a, b: Vertex records of the pair
            is_seam: Whether the pair is a seam edge, passed to the cost hook

        Returns:
            Tuple of (surviving vertex record, cost)
        """
        Q = a.quadric + b.quadric
        a_cost = self.compute_error(Q, a.position)
        b_cost = self.compute_error(Q, b.position)

        result, cost = (a, a_cost) if a_cost <= b_cost else (b, b_cost)

        if self.cost_hook is not None:
            cost = self.cost_hook(a, b, result, cost, is_seam)

        return result, cost
