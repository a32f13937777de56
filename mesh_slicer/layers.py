"""Plane/triangle intersection and the per-layer segment generator."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterator, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from .mesh import Mesh

Point3 = Tuple[float, float, float]

logger = logging.getLogger(__name__)


class Segment(NamedTuple):
    start: Point3
    end: Point3


@dataclass
class LayerSegments:
    index: int
    z: float
    segments: List[Segment]


def intersect_edge(p0: Sequence[float], p1: Sequence[float], plane_z: float) -> Optional[Point3]:
    """Point where edge ``p0``-``p1`` meets the plane, or ``None``.

    Edges parallel to the plane, including edges lying in it, never cross.
    """
    z0 = p0[2]
    z1 = p1[2]
    if not ((z0 <= plane_z <= z1) or (z1 <= plane_z <= z0)):
        return None
    if z0 == z1:
        return None
    t = (plane_z - z0) / (z1 - z0)
    return (
        p0[0] + t * (p1[0] - p0[0]),
        p0[1] + t * (p1[1] - p0[1]),
        plane_z,
    )


def intersect_triangle(
    a: Sequence[float],
    b: Sequence[float],
    c: Sequence[float],
    plane_z: float,
    tolerance: float = 1e-9,
) -> Optional[Segment]:
    """Segment cut from triangle ``abc`` by the plane, or ``None``.

    A plane passing through a vertex hits two edges at the same point; such
    hits are merged. Anything other than two distinct points is skipped.

    An edge lying in the plane is shared with a neighbouring triangle. Only
    the triangle below the plane emits it, so each such edge is cut once.
    """
    on_plane = [vertex for vertex in (a, b, c) if vertex[2] == plane_z]
    if len(on_plane) == 2 and max(a[2], b[2], c[2]) > plane_z:
        return None

    points: List[Point3] = []
    for p0, p1 in ((a, b), (b, c), (c, a)):
        hit = intersect_edge(p0, p1, plane_z)
        if hit is None:
            continue
        if any(math.dist(hit, seen) <= tolerance for seen in points):
            continue
        points.append(hit)

    if len(points) != 2:
        return None
    return Segment(points[0], points[1])


def layer_heights(
    min_z: float,
    max_z: float,
    layer_height: float,
    first_layer_height: float | None = None,
) -> List[float]:
    """Slicing plane heights in ascending order.

    The first plane sits ``first_layer_height`` above ``min_z``; later planes
    are spaced by ``layer_height``. With equal heights this gives
    ``ceil((max_z - min_z) / layer_height)`` planes.
    """
    if layer_height <= 0:
        raise ValueError(f"layer_height must be positive, got {layer_height}")
    first = layer_height if first_layer_height is None else first_layer_height
    span = max_z - min_z
    if span <= 0:
        return []

    # Absorb float noise such as 10 / 0.2 == 50.00000000000001.
    remaining = (span - first) / layer_height
    count = max(0, math.ceil(remaining - 1e-9)) + 1
    # Each height comes from its index so rounding never accumulates.
    offset = first - layer_height
    return [min_z + offset + (i + 1) * layer_height for i in range(count)]


def slice_layers(
    mesh: Mesh,
    heights: Sequence[float],
    tolerance: float = 1e-9,
) -> Iterator[LayerSegments]:
    """Yield the raw intersection segments of each plane, lowest first.

    Triangles are bucketed by Z extent so each plane only visits the
    triangles that can reach it.
    """
    triangles = mesh.triangles
    z_values = triangles[:, :, 2]
    tri_min = z_values.min(axis=1)
    tri_max = z_values.max(axis=1)

    for index, z in enumerate(heights):
        candidates = np.nonzero((tri_min <= z) & (tri_max >= z))[0]
        segments: List[Segment] = []
        for tri_index in candidates:
            a, b, c = triangles[tri_index].tolist()
            segment = intersect_triangle(a, b, c, z, tolerance)
            if segment is not None:
                segments.append(segment)
        logger.debug(
            "Layer %d at Z=%.3f: %d candidate triangles, %d segments",
            index,
            z,
            len(candidates),
            len(segments),
        )
        yield LayerSegments(index=index, z=float(z), segments=segments)
