"""
Document Model
==============

Minimal numpy-backed mesh document modelled on glTF: a document holds
meshes, a mesh holds primitives, and a primitive holds named vertex
attributes, an optional index buffer, a draw mode and morph targets.

Transforms are plain callables taking a Document and mutating it in place.
"""

import logging
from typing import Callable, Dict, List, Optional

import numpy as np

logger = logging.getLogger(__name__)


class Accessor:
    """
    Typed view over a 1D or 2D numpy array.

    Scalar accessors (index buffers) store a flat array; vector accessors
    store one row per element.
    """

    def __init__(self, array: np.ndarray):
        self._array = np.asarray(array)

    def get_count(self) -> int:
        return len(self._array)

    def get_element_size(self) -> int:
        return 1 if self._array.ndim == 1 else self._array.shape[1]

    def get_element(self, index: int) -> np.ndarray:
        """Return a copy of element `index`."""
        return np.array(self._array[index], copy=True)

    def set_element(self, index: int, values) -> None:
        self._array[index] = values

    def get_array(self) -> np.ndarray:
        return self._array

    def set_array(self, array: np.ndarray) -> None:
        self._array = np.asarray(array)

    def clone(self) -> "Accessor":
        return Accessor(self._array.copy())


class Primitive:
    """A single draw call: attributes + indices + draw mode."""

    class Mode:
        POINTS = 0
        LINES = 1
        LINE_LOOP = 2
        LINE_STRIP = 3
        TRIANGLES = 4
        TRIANGLE_STRIP = 5
        TRIANGLE_FAN = 6

    def __init__(self, attributes: Dict[str, np.ndarray],
                 indices: Optional[np.ndarray] = None,
                 mode: int = Mode.TRIANGLES,
                 targets: Optional[List[Dict[str, np.ndarray]]] = None):
        self._attributes: Dict[str, Accessor] = {
            semantic: Accessor(array) for semantic, array in attributes.items()
        }
        self._indices = Accessor(indices) if indices is not None else None
        self._mode = mode
        self._targets = list(targets) if targets else []

    def list_semantics(self) -> List[str]:
        return list(self._attributes.keys())

    def get_attribute(self, semantic: str) -> Optional[Accessor]:
        return self._attributes.get(semantic)

    def set_attribute(self, semantic: str, accessor: Accessor) -> None:
        self._attributes[semantic] = accessor

    def remove_attribute(self, semantic: str) -> None:
        self._attributes.pop(semantic, None)

    def get_indices(self) -> Optional[Accessor]:
        return self._indices

    def set_indices(self, accessor: Optional[Accessor]) -> None:
        self._indices = accessor

    def get_mode(self) -> int:
        return self._mode

    def list_targets(self) -> List[Dict[str, np.ndarray]]:
        return list(self._targets)

    def get_vertex_count(self) -> int:
        position = self.get_attribute('POSITION')
        return position.get_count() if position is not None else 0

    def get_face_count(self) -> int:
        """Number of triangles, for TRIANGLES mode primitives."""
        if self._indices is not None:
            return self._indices.get_count() // 3
        return self.get_vertex_count() // 3

    def clone(self) -> "Primitive":
        prim = Primitive({}, mode=self._mode, targets=self._targets)
        for semantic, accessor in self._attributes.items():
            prim.set_attribute(semantic, accessor.clone())
        if self._indices is not None:
            prim.set_indices(self._indices.clone())
        return prim


class Mesh:
    def __init__(self, name: str = "", primitives: Optional[List[Primitive]] = None):
        self.name = name
        self._primitives = list(primitives) if primitives else []

    def list_primitives(self) -> List[Primitive]:
        return list(self._primitives)

    def add_primitive(self, prim: Primitive) -> "Mesh":
        self._primitives.append(prim)
        return self


Transform = Callable[["Document"], None]


class Document:
    """Container of meshes that transforms operate on."""

    def __init__(self, meshes: Optional[List[Mesh]] = None):
        self._meshes = list(meshes) if meshes else []

    def list_meshes(self) -> List[Mesh]:
        return list(self._meshes)

    def add_mesh(self, mesh: Mesh) -> "Document":
        self._meshes.append(mesh)
        return self

    def transform(self, *transforms: Transform) -> "Document":
        """Apply each transform to this document, in order."""
        for transform in transforms:
            name = getattr(transform, '__name__', type(transform).__name__)
            logger.debug(f"Applying transform: {name}")
            transform(self)
        return self

    def clone(self) -> "Document":
        return Document([
            Mesh(mesh.name, [prim.clone() for prim in mesh.list_primitives()])
            for mesh in self._meshes
        ])
