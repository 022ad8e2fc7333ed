"""
Mesh Evaluation Module
======================

Compares a simplified primitive with its original:
- Face and referenced-vertex counts, degenerate faces
- Hausdorff and Chamfer distance between sampled surfaces
- Surface area change
"""

from typing import Dict, Tuple

import numpy as np
import trimesh
from scipy.spatial import cKDTree

from .document import Primitive
from .utils import get_primitive_info, primitive_to_trimesh

# (label, metric key, format spec, scale)
REPORT_SECTIONS = (
    ("COUNTS", (
        ("Faces before", 'original_faces', 'd', 1),
        ("Faces after", 'simplified_faces', 'd', 1),
        ("Vertices before", 'original_vertices', 'd', 1),
        ("Vertices after", 'simplified_vertices', 'd', 1),
        ("Faces kept (%)", 'face_reduction_ratio', '.2f', 100),
        ("Degenerate faces", 'degenerate_faces', 'd', 1),
    )),
    ("SURFACE DEVIATION", (
        ("Hausdorff", 'hausdorff_distance', '.6f', 1),
        ("  original -> simplified", 'hausdorff_forward', '.6f', 1),
        ("  simplified -> original", 'hausdorff_backward', '.6f', 1),
        ("Chamfer", 'chamfer_distance', '.6f', 1),
        ("Area change (%)", 'area_error', '.4f', 100),
    )),
)


class MeshEvaluator:
    """
    Measures how far a simplified primitive drifted from its original.

    Distances are computed between point samples of both surfaces, so they
    are estimates whose accuracy grows with `sample_points`.
    """

    def __init__(self, sample_points: int = 10000, seed: int = 0):
        """
        Args:
            sample_points: Points sampled per surface for distance metrics
            seed: Random seed for surface sampling
        """
        self.sample_points = sample_points
        self.seed = seed

    def compute_all_metrics(self, original: Primitive,
                            simplified: Primitive) -> Dict[str, float]:
        """
        Compute every metric for a pair of primitives.

        Vertex counts only include vertices referenced by a face, since
        simplification leaves absorbed vertices in the buffers.

        Returns:
            Dictionary of metric names to values
        """
        before = get_primitive_info(original)
        after = get_primitive_info(simplified)
        original_mesh = primitive_to_trimesh(original)
        simplified_mesh = primitive_to_trimesh(simplified)

        hausdorff, forward, backward = self.hausdorff_distance(original_mesh, simplified_mesh)
        original_area = float(original_mesh.area)
        simplified_area = float(simplified_mesh.area)

        return {
            'original_faces': before['faces'],
            'simplified_faces': after['faces'],
            'original_vertices': before['referenced_vertices'],
            'simplified_vertices': after['referenced_vertices'],
            'degenerate_faces': after['degenerate_faces'],
            'face_reduction_ratio': after['faces'] / max(1, before['faces']),
            'vertex_reduction_ratio': after['referenced_vertices'] / max(1, before['referenced_vertices']),
            'hausdorff_distance': hausdorff,
            'hausdorff_forward': forward,
            'hausdorff_backward': backward,
            'chamfer_distance': self.chamfer_distance(original_mesh, simplified_mesh),
            'original_area': original_area,
            'simplified_area': simplified_area,
            'area_error': abs(simplified_area - original_area) / max(original_area, 1e-10),
        }

    def _sample(self, mesh: trimesh.Trimesh) -> np.ndarray:
        """Sample the surface, or fall back to vertices when there is none."""
        if len(mesh.faces) == 0 or mesh.area <= 0:
            return np.asarray(mesh.vertices)
        points, _ = trimesh.sample.sample_surface(mesh, self.sample_points, seed=self.seed)
        return points

    def _nearest_distances(self, mesh1: trimesh.Trimesh,
                           mesh2: trimesh.Trimesh) -> Tuple[np.ndarray, np.ndarray]:
        """Distances from samples of mesh1 to mesh2 and back."""
        points1 = self._sample(mesh1)
        points2 = self._sample(mesh2)
        forward, _ = cKDTree(points2).query(points1)
        backward, _ = cKDTree(points1).query(points2)
        return forward, backward

    def hausdorff_distance(self, mesh1: trimesh.Trimesh,
                           mesh2: trimesh.Trimesh) -> Tuple[float, float, float]:
        """
        Symmetric Hausdorff distance between two surfaces.

        Returns:
            Tuple of (symmetric, mesh1 -> mesh2, mesh2 -> mesh1)
        """
        forward, backward = self._nearest_distances(mesh1, mesh2)
        forward_max, backward_max = float(forward.max()), float(backward.max())
        return max(forward_max, backward_max), forward_max, backward_max

    def chamfer_distance(self, mesh1: trimesh.Trimesh, mesh2: trimesh.Trimesh) -> float:
        """Sum of the mean squared nearest-sample distances in both directions."""
        forward, backward = self._nearest_distances(mesh1, mesh2)
        return float(np.mean(forward ** 2) + np.mean(backward ** 2))

    def generate_report(self, metrics: Dict[str, float], method_name: str = "QEM") -> str:
        """
        Format metrics as a plain-text report.

        Metrics missing from `metrics` are shown as n/a. A 'runtime' entry,
        if present, is appended in seconds.
        """
        rule = "=" * 60
        lines = [rule, f"Mesh Simplification Report - {method_name}", rule]

        for heading, rows in REPORT_SECTIONS:
            lines += ["", heading, "-" * 40]
            for label, key, spec, scale in rows:
                value = metrics.get(key)
                text = "n/a" if value is None else format(value * scale, spec)
                lines.append(f"  {label:<26}{text:>14}")

        if 'runtime' in metrics:
            lines += ["", f"  {'Runtime (s)':<26}{metrics['runtime']:>14.4f}"]

        lines += ["", rule]
        return "\n".join(lines)
