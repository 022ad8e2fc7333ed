"""
Utility Functions
=================

Loading and saving documents through trimesh, sample document creation
and logging setup.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import numpy as np
import trimesh

from .document import Document, Mesh, Primitive

logger = logging.getLogger(__name__)

LOG_FORMAT = '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'


def configure_logging(level: str = 'INFO', log_file: Optional[str] = None):
    """
    Configure logging for the qem_simplify package.

    Args:
        level: Level name, e.g. 'DEBUG' or 'WARNING'
        log_file: Optional file to log to in addition to stdout
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    package_logger = logging.getLogger('qem_simplify')
    package_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)


def primitive_from_trimesh(mesh: trimesh.Trimesh) -> Primitive:
    """
    Convert a trimesh object into an indexed TRIANGLES primitive.

    Vertices map to POSITION, vertex normals to NORMAL, texture coordinates
    to TEXCOORD_0 and per-vertex colors to COLOR_0.
    """
    attributes = {
        'POSITION': np.asarray(mesh.vertices, dtype=np.float32),
        'NORMAL': np.asarray(mesh.vertex_normals, dtype=np.float32),
    }

    visual = mesh.visual
    if isinstance(visual, trimesh.visual.TextureVisuals) and visual.uv is not None:
        attributes['TEXCOORD_0'] = np.asarray(visual.uv, dtype=np.float32)
    elif visual.kind == 'vertex':
        attributes['COLOR_0'] = np.asarray(visual.vertex_colors, dtype=np.float32) / 255.0

    indices = np.asarray(mesh.faces, dtype=np.uint32).reshape(-1)
    return Primitive(attributes, indices=indices)


def primitive_to_trimesh(prim: Primitive) -> trimesh.Trimesh:
    """
    Convert a primitive back to trimesh.

    Vertices are kept as-is, including those no face references.
    """
    positions = prim.get_attribute('POSITION').get_array()
    indices = prim.get_indices()
    faces = indices.get_array() if indices is not None else np.arange(len(positions))
    faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)

    kwargs = {}
    normal = prim.get_attribute('NORMAL')
    if normal is not None:
        kwargs['vertex_normals'] = normal.get_array()

    texcoord = prim.get_attribute('TEXCOORD_0')
    color = prim.get_attribute('COLOR_0')
    if texcoord is not None:
        kwargs['visual'] = trimesh.visual.TextureVisuals(uv=texcoord.get_array())
    elif color is not None:
        kwargs['vertex_colors'] = np.clip(color.get_array() * 255.0, 0, 255).astype(np.uint8)

    return trimesh.Trimesh(vertices=positions, faces=faces, process=False, **kwargs)


def document_from_trimesh(geometry, name: str = "mesh") -> Document:
    """Wrap a Trimesh or a Scene as a Document, one Mesh per geometry."""
    if isinstance(geometry, trimesh.Scene):
        meshes = [
            Mesh(key, [primitive_from_trimesh(geom)])
            for key, geom in geometry.geometry.items()
            if isinstance(geom, trimesh.Trimesh)
        ]
        if not meshes:
            raise ValueError("No valid meshes found in scene")
        return Document(meshes)

    return Document([Mesh(name, [primitive_from_trimesh(geometry)])])


def load_document(path: str) -> Document:
    """
    Load a document from file.

    Supports: glTF/GLB, OBJ, PLY, STL, OFF, and other formats supported by trimesh.

    Args:
        path: Path to mesh file

    Returns:
        Loaded document
    """
    geometry = trimesh.load(path)
    if not isinstance(geometry, (trimesh.Trimesh, trimesh.Scene)):
        raise ValueError(f"No triangle mesh found in {path}")

    document = document_from_trimesh(geometry, name=Path(path).stem)
    logger.debug(f"Loaded {len(document.list_meshes())} meshes from {path}")
    return document


def save_document(document: Document, path: str):
    """
    Save a document to file.

    A single primitive is exported directly; several become a scene for
    glTF/GLB output and are concatenated otherwise.
    """
    meshes = [
        primitive_to_trimesh(prim)
        for mesh in document.list_meshes()
        for prim in mesh.list_primitives()
        if prim.get_mode() == Primitive.Mode.TRIANGLES
    ]
    if not meshes:
        raise ValueError("Document has no triangle primitives to save")

    if len(meshes) == 1:
        meshes[0].export(path)
    elif Path(path).suffix.lower() in ('.glb', '.gltf'):
        trimesh.Scene(meshes).export(path)
    else:
        trimesh.util.concatenate(meshes).export(path)

    logger.info(f"Saved document to: {path}")


def create_sample_mesh(mesh_type: str = "sphere", seed: int = 0) -> trimesh.Trimesh:
    """
    Create a sample mesh for testing.

    Args:
        mesh_type: Type of mesh to create:
            - "sphere": Icosphere
            - "torus": Torus
            - "cube": Subdivided cube
            - "cylinder": Cylinder
            - "grid": Open wavy surface with boundaries
        seed: Random seed for the grid noise

    Returns:
        Generated trimesh object
    """
    if mesh_type == "torus":
        mesh = trimesh.creation.torus(major_radius=1.0, minor_radius=0.3,
                                      major_sections=32, minor_sections=16)
    elif mesh_type == "cube":
        mesh = trimesh.creation.box(extents=[1, 1, 1])
        for _ in range(2):
            mesh = mesh.subdivide()
    elif mesh_type == "cylinder":
        mesh = trimesh.creation.cylinder(radius=0.5, height=2.0, sections=32)
    elif mesh_type == "grid":
        mesh = create_grid_mesh(seed=seed)
    else:
        mesh = trimesh.creation.icosphere(subdivisions=3, radius=1.0)

    logger.debug(f"Created {mesh_type} mesh: {len(mesh.vertices)} vertices, {len(mesh.faces)} faces")
    return mesh


def create_grid_mesh(rows: int = 20, cols: int = 20, seed: int = 0) -> trimesh.Trimesh:
    """
    Create a wavy open surface grid, two triangles per cell.

    Args:
        rows: Number of rows in the grid
        cols: Number of columns in the grid
        seed: Random seed for the vertex noise

    Returns:
        Open surface mesh
    """
    x = np.linspace(-1, 1, cols)
    y = np.linspace(-1, 1, rows)
    X, Y = np.meshgrid(x, y)
    Z = 0.2 * np.sin(3 * X) * np.cos(3 * Y)

    vertices = np.column_stack([X.flatten(), Y.flatten(), Z.flatten()])
    vertices += np.random.default_rng(seed).normal(scale=0.01, size=vertices.shape)

    faces = []
    for i in range(rows - 1):
        for j in range(cols - 1):
            idx = i * cols + j
            faces.append([idx, idx + 1, idx + cols])
            faces.append([idx + 1, idx + cols + 1, idx + cols])

    return trimesh.Trimesh(vertices=vertices, faces=np.array(faces), process=False)


def create_sample_document(mesh_type: str = "sphere") -> Document:
    """Create a single-primitive document from `create_sample_mesh`."""
    return document_from_trimesh(create_sample_mesh(mesh_type), name=mesh_type)


def get_primitive_info(prim: Primitive) -> dict:
    """
    Get summary information about a primitive.

    Args:
        prim: Input primitive

    Returns:
        Dictionary of primitive properties
    """
    indices = prim.get_indices()
    faces = (np.asarray(indices.get_array()).reshape(-1, 3)
             if indices is not None else np.zeros((0, 3), dtype=int))
    degenerate = ((faces[:, 0] == faces[:, 1]) | (faces[:, 1] == faces[:, 2])
                  | (faces[:, 2] == faces[:, 0]))

    return {
        'vertices': prim.get_vertex_count(),
        'faces': prim.get_face_count(),
        'referenced_vertices': len(np.unique(faces)),
        'degenerate_faces': int(np.count_nonzero(degenerate)),
        'semantics': prim.list_semantics(),
        'mode': prim.get_mode(),
    }
