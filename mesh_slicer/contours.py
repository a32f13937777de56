from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from shapely import STRtree, remove_repeated_points
from shapely.geometry import LineString, Point as ShapelyPoint

from .layers import Point3, Segment

logger = logging.getLogger(__name__)


@dataclass
class Contour:
    z: float
    points: List[Point3]

    def is_closed(self, tolerance: float = 1e-3) -> bool:
        if len(self.points) < 2:
            return False
        return math.dist(self.points[0], self.points[-1]) < tolerance

    @property
    def perimeter(self) -> float:
        if len(self.points) < 2:
            return 0.0
        return LineString(self.xy()).length

    def xy(self) -> List[Tuple[float, float]]:
        return [(x, y) for x, y, _ in self.points]


@dataclass
class LinkResult:
    contours: List[Contour] = field(default_factory=list)
    discarded: int = 0


def _close(coords: List[Tuple[float, float]]) -> List[Tuple[float, float]]:
    if coords and coords[0] != coords[-1]:
        coords.append(coords[0])
    return coords


def _simplify_coords(coords: Sequence[Tuple[float, float]], tolerance: float) -> List[Tuple[float, float]]:
    simplified = LineString(coords).simplify(tolerance, preserve_topology=False)
    return _close(list(simplified.coords))


def simplify_loop(points: Sequence[Point3], tolerance: float) -> List[Point3]:
    """Drop duplicate and collinear points of a closed loop, seam included.

    Simplification pins both ends of a line, so the loop is simplified again
    starting from a surviving corner to let the old seam point go too.
    Returns the simplified loop closed on its first point, or an empty list
    when fewer than three corners remain.
    """
    if len(points) < 4 or len(set(points)) < 3:
        return []
    z = points[0][2]
    line = LineString([(x, y) for x, y, _ in points])
    if tolerance > 0:
        line = remove_repeated_points(line, tolerance)
    coords = _simplify_coords(list(line.coords), tolerance)
    if len(coords) < 4:
        return []

    ring = coords[:-1]
    pivot = len(ring) // 2
    coords = _simplify_coords(ring[pivot:] + ring[: pivot + 1], tolerance)
    if len(coords) < 4:
        return []
    return [(float(x), float(y), z) for x, y in coords]


class _EndpointIndex:
    """Spatial index over segment endpoints with per-segment use flags."""

    def __init__(self, segments: Sequence[Segment], tolerance: float) -> None:
        self.segments = segments
        self.tolerance = tolerance
        self.used = [False] * len(segments)
        endpoints = []
        for segment in segments:
            endpoints.append(ShapelyPoint(segment.start[0], segment.start[1]))
            endpoints.append(ShapelyPoint(segment.end[0], segment.end[1]))
        self._tree = STRtree(endpoints)

    def take_next(self, tail: Point3) -> Optional[Point3]:
        """Consume a segment touching ``tail`` and return its far endpoint.

        Segments whose start matches win over segments whose end matches.
        """
        hits = self._tree.query(
            ShapelyPoint(tail[0], tail[1]),
            predicate="dwithin",
            distance=self.tolerance,
        )
        reversed_match: Optional[int] = None
        for hit in sorted(int(h) for h in hits):
            segment_index, side = divmod(hit, 2)
            if self.used[segment_index]:
                continue
            segment = self.segments[segment_index]
            near = segment.start if side == 0 else segment.end
            if math.dist(near, tail) >= self.tolerance:
                continue
            if side == 0:
                self.used[segment_index] = True
                return segment.end
            if reversed_match is None:
                reversed_match = segment_index

        if reversed_match is None:
            return None
        self.used[reversed_match] = True
        return self.segments[reversed_match].start


def link_segments(
    segments: Sequence[Segment],
    tolerance: float = 1e-3,
    collinear_tolerance: float = 0.0,
) -> LinkResult:
    """Chain one layer's segments into closed contours.

    Chains are grown greedily from a seed segment until no segment touches
    the tail. Chains that do not end where they started are discarded.
    """
    result = LinkResult()
    if not segments:
        return result

    z = segments[0].start[2]
    index = _EndpointIndex(segments, tolerance)

    for seed in range(len(segments) - 1, -1, -1):
        if index.used[seed]:
            continue
        index.used[seed] = True
        chain: List[Point3] = [segments[seed].start, segments[seed].end]

        while True:
            far = index.take_next(chain[-1])
            if far is None:
                break
            chain.append(far)

        contour = Contour(z=z, points=chain)
        if len(chain) < 4 or not contour.is_closed(tolerance):
            result.discarded += 1
            continue

        chain[-1] = chain[0]
        if collinear_tolerance > 0:
            contour.points = simplify_loop(chain, collinear_tolerance)
            if not contour.points:
                result.discarded += 1
                continue
        result.contours.append(contour)

    if result.discarded:
        logger.debug(
            "Layer Z=%.3f: linked %d contours, discarded %d open chains",
            z,
            len(result.contours),
            result.discarded,
        )
    return result
