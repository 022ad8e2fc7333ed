"""
Mesh Visualization Module
=========================

Matplotlib renderings of primitives: before/after panels and per-vertex
quadric error heatmaps.
"""

import logging
from typing import Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
from mpl_toolkits.mplot3d.art3d import Poly3DCollection

from .document import Primitive

logger = logging.getLogger(__name__)

LIGHT_DIRECTION = np.array([1, 1, 2]) / np.sqrt(6)


def _primitive_arrays(prim: Primitive) -> Tuple[np.ndarray, np.ndarray]:
    vertices = np.asarray(prim.get_attribute('POSITION').get_array(), dtype=np.float64)
    indices = prim.get_indices()
    faces = indices.get_array() if indices is not None else np.arange(len(vertices))
    return vertices, np.asarray(faces, dtype=np.int64).reshape(-1, 3)


def _fit_unit_cube(vertices: np.ndarray) -> np.ndarray:
    """Center on the mean vertex and scale the largest offset to 1."""
    if not len(vertices):
        return vertices
    centered = vertices - vertices.mean(axis=0)
    extent = np.abs(centered).max()
    return centered / extent if extent > 0 else centered


def _save(fig: plt.Figure, save_path: Optional[str], what: str):
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Saved {what} to {save_path}")


class MeshVisualizer:
    """Plots for inspecting simplification results."""

    def __init__(self, figsize: Tuple[int, int] = (14, 7)):
        self.figsize = figsize
        self.error_colormap = plt.get_cmap('RdYlGn_r')

    def plot_mesh_comparison(self, original: Primitive,
                             simplified: Primitive,
                             title: str = "Mesh Comparison",
                             show_wireframe: bool = True,
                             save_path: Optional[str] = None) -> plt.Figure:
        """
        Draw the original and simplified primitive in two 3D panels.

        Args:
            original: Primitive before simplification
            simplified: Primitive after simplification
            title: Figure title
            show_wireframe: Outline each face in black
            save_path: Where to write the figure, if given

        Returns:
            The matplotlib figure
        """
        fig, axes = plt.subplots(1, 2, figsize=self.figsize, subplot_kw={'projection': '3d'})

        panels = zip(axes, (original, simplified), ("Original", "Simplified"))
        for ax, prim, label in panels:
            panel_title = f"{label}\n({prim.get_face_count()} faces)"
            self._draw_primitive(ax, prim, panel_title, show_wireframe)

        fig.suptitle(title, fontsize=14, fontweight='bold')
        fig.tight_layout()
        _save(fig, save_path, "comparison")
        return fig

    def _draw_primitive(self, ax, prim: Primitive, title: str, show_wireframe: bool,
                        vertex_values: Optional[np.ndarray] = None):
        """Add a primitive's faces to a 3D axis, shaded or colored by vertex values."""
        vertices, faces = _primitive_arrays(prim)
        triangles = _fit_unit_cube(vertices)[faces]

        if vertex_values is None:
            colors = self._shade(triangles)
        else:
            colors = self.error_colormap(vertex_values[faces].mean(axis=1))

        if len(triangles):
            # Y-up to Z-up
            ax.add_collection3d(Poly3DCollection(
                triangles[..., [2, 0, 1]],
                facecolors=colors,
                edgecolors='black' if show_wireframe else 'none',
                linewidths=0.1 if show_wireframe else 0,
                alpha=0.9
            ))

        for set_limits in (ax.set_xlim, ax.set_ylim, ax.set_zlim):
            set_limits(-1, 1)
        ax.set_box_aspect([1, 1, 1])
        ax.set_xlabel('X')
        ax.set_ylabel('Y')
        ax.set_zlabel('Z')
        ax.set_title(title, fontsize=10)

    def _shade(self, triangles: np.ndarray) -> np.ndarray:
        """Blue-gray Lambert shading from a fixed light."""
        normals = np.cross(triangles[:, 1] - triangles[:, 0], triangles[:, 2] - triangles[:, 0])
        lengths = np.linalg.norm(normals, axis=1, keepdims=True)
        normals = np.divide(normals, lengths, out=np.zeros_like(normals), where=lengths > 1e-10)

        intensity = np.clip(normals @ LIGHT_DIRECTION, 0.2, 1.0)
        base = np.array([0.3, 0.4, 0.6])
        gain = np.array([0.4, 0.4, 0.3])
        rgb = base + intensity[:, None] * gain
        return np.column_stack([rgb, np.ones(len(triangles))])

    def plot_error_heatmap(self, prim: Primitive,
                           vertex_errors: np.ndarray,
                           title: str = "Vertex Error Heatmap",
                           save_path: Optional[str] = None) -> plt.Figure:
        """
        Color each face by the mean quadric error of its corners.

        Args:
            prim: Primitive to draw
            vertex_errors: One error value per vertex, e.g. from
                           MeshDecimator.get_vertex_errors
            title: Figure title
            save_path: Where to write the figure, if given

        Returns:
            The matplotlib figure
        """
        fig = plt.figure(figsize=self.figsize)
        ax = fig.add_subplot(1, 1, 1, projection='3d')

        low, high = float(vertex_errors.min()), float(vertex_errors.max())
        span = high - low
        normalized = (vertex_errors - low) / span if span > 0 else np.zeros_like(vertex_errors)

        self._draw_primitive(ax, prim, title, show_wireframe=False, vertex_values=normalized)

        mappable = plt.cm.ScalarMappable(cmap=self.error_colormap, norm=plt.Normalize(low, high))
        mappable.set_array([])
        colorbar = fig.colorbar(mappable, ax=ax, shrink=0.6, pad=0.1)
        colorbar.set_label('Quadric Error')

        _save(fig, save_path, "heatmap")
        return fig
