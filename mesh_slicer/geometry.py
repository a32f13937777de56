from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from .config import PrinterConfig, ScalingConfig
from .mesh import BoundingBox, EmptyMeshError, Mesh

logger = logging.getLogger(__name__)

# Maps source +Y onto +Z and source +Z onto -Y.
Y_UP_TO_Z_UP = np.array(
    [
        [1.0, 0.0, 0.0],
        [0.0, 0.0, -1.0],
        [0.0, 1.0, 0.0],
    ]
)


@dataclass(frozen=True, eq=False)
class PreparedMesh:
    mesh: Mesh
    scale: float
    translation: np.ndarray

    @property
    def bounds(self) -> BoundingBox:
        return self.mesh.bounds()

    @property
    def is_identity(self) -> bool:
        return self.scale == 1.0 and bool(np.allclose(self.translation, 0.0, atol=1e-9))


def _bounds(vertices: np.ndarray) -> BoundingBox:
    return BoundingBox(minimum=vertices.min(axis=0), maximum=vertices.max(axis=0))


def fit_scale(largest_dimension: float, printer: PrinterConfig, scaling: ScalingConfig) -> float:
    """Uniform scale factor that brings a model into the printable size range."""
    if largest_dimension <= 0:
        raise EmptyMeshError("Mesh has zero extent; cannot scale it for printing")

    envelope = scaling.envelope(printer)
    if largest_dimension < scaling.min_size:
        return scaling.target_size / largest_dimension
    if largest_dimension > envelope:
        return envelope / largest_dimension
    return 1.0


def prepare_mesh(
    mesh: Mesh,
    printer: PrinterConfig,
    scaling: ScalingConfig,
    *,
    y_up: bool = False,
) -> PreparedMesh:
    """Orient, scale and place a mesh in bed space.

    The input mesh is left untouched. The returned mesh has its XY center on
    the bed center and its lowest point at Z=0.
    """
    if mesh.is_empty:
        raise EmptyMeshError(
            f"Mesh has {len(mesh.vertices)} vertices and {mesh.triangle_count} triangles; nothing to slice"
        )

    vertices = mesh.vertices.copy()
    if y_up:
        vertices = vertices @ Y_UP_TO_Z_UP.T

    bounds = _bounds(vertices)
    scale = fit_scale(bounds.largest_dimension, printer, scaling)
    if scale != 1.0:
        logger.info(
            "Scaling model by %.3f (largest dimension %.3f mm -> %.3f mm)",
            scale,
            bounds.largest_dimension,
            bounds.largest_dimension * scale,
        )
        vertices = vertices * scale
        bounds = _bounds(vertices)

    bed_x, bed_y = printer.bed_center
    center = bounds.center
    translation = np.array(
        [bed_x - center[0], bed_y - center[1], -bounds.minimum[2]],
        dtype=np.float64,
    )
    vertices = vertices + translation

    min_z = float(vertices[:, 2].min())
    if min_z < 0.0:
        logger.debug("Correcting Z drift of %.3g mm after placement", min_z)
        vertices[:, 2] -= min_z
        translation[2] -= min_z

    return PreparedMesh(mesh=mesh.transformed(vertices), scale=scale, translation=translation)
