"""Triangle mesh model and the loader boundary."""
from __future__ import annotations

import logging
import pathlib
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np
import trimesh

logger = logging.getLogger(__name__)


class MeshError(Exception):
    """Raised when a mesh cannot be used for slicing."""


class EmptyMeshError(MeshError):
    """Raised when a mesh has no vertices, no triangles or no extent."""


class MeshLoadError(MeshError):
    """Raised when a model file cannot be read into a mesh."""


@dataclass(frozen=True, eq=False)
class BoundingBox:
    minimum: np.ndarray
    maximum: np.ndarray

    @property
    def size(self) -> np.ndarray:
        return self.maximum - self.minimum

    @property
    def center(self) -> np.ndarray:
        return (self.minimum + self.maximum) / 2.0

    @property
    def largest_dimension(self) -> float:
        return float(np.max(self.size))


@dataclass(frozen=True, eq=False)
class Mesh:
    """Vertex positions plus an optional triangle index buffer.

    With ``faces`` left as ``None`` the vertices are an unindexed triangle
    soup, consumed three at a time.
    """

    vertices: np.ndarray
    faces: np.ndarray | None = None

    def __post_init__(self) -> None:
        vertices = np.array(self.vertices, dtype=np.float64).reshape(-1, 3)
        object.__setattr__(self, "vertices", vertices)

        if self.faces is None:
            if len(vertices) % 3 != 0:
                raise MeshError(
                    f"Unindexed mesh needs a multiple of 3 vertices, got {len(vertices)}"
                )
            return

        faces = np.array(self.faces, dtype=np.int64).reshape(-1, 3)
        if faces.size and (faces.min() < 0 or faces.max() >= len(vertices)):
            raise MeshError(
                f"Face index out of range for {len(vertices)} vertices "
                f"(min {faces.min()}, max {faces.max()})"
            )
        object.__setattr__(self, "faces", faces)

    @classmethod
    def from_triangles(cls, triangles: Iterable[Sequence[Sequence[float]]]) -> "Mesh":
        soup = np.array(list(triangles), dtype=np.float64).reshape(-1, 3)
        return cls(vertices=soup)

    @property
    def triangle_count(self) -> int:
        if self.faces is None:
            return len(self.vertices) // 3
        return len(self.faces)

    @property
    def is_empty(self) -> bool:
        return len(self.vertices) == 0 or self.triangle_count == 0

    @property
    def triangles(self) -> np.ndarray:
        """Triangle corners as a ``(M, 3, 3)`` array."""
        if self.faces is None:
            return self.vertices.reshape(-1, 3, 3)
        return self.vertices[self.faces]

    def bounds(self) -> BoundingBox:
        if len(self.vertices) == 0:
            raise EmptyMeshError("Mesh has no vertices")
        return BoundingBox(
            minimum=self.vertices.min(axis=0),
            maximum=self.vertices.max(axis=0),
        )

    def transformed(self, vertices: np.ndarray) -> "Mesh":
        """Return a mesh with new vertex positions and the same topology."""
        faces = None if self.faces is None else self.faces.copy()
        return Mesh(vertices=vertices, faces=faces)


def load_mesh(path: str | pathlib.Path) -> Mesh:
    model_path = pathlib.Path(path)
    if not model_path.exists():
        raise MeshLoadError(f"Model file not found: {model_path}")

    try:
        loaded = trimesh.load(str(model_path), force="mesh")
    except Exception as exc:
        raise MeshLoadError(f"Failed to load model {model_path}: {exc}") from exc

    if not isinstance(loaded, trimesh.Trimesh):
        raise MeshLoadError(
            f"Model {model_path} did not load as a triangle mesh (got {type(loaded).__name__})"
        )

    logger.info(
        "Loaded %s: %d vertices, %d triangles",
        model_path.name,
        len(loaded.vertices),
        len(loaded.faces),
    )
    return Mesh(vertices=np.asarray(loaded.vertices), faces=np.asarray(loaded.faces))
