"""End-to-end slicing: prepare, slice, link and emit."""
from __future__ import annotations

import logging
import pathlib
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .config import SlicerConfig
from .contours import Contour, link_segments
from .gcode import GcodeGenerator
from .geometry import PreparedMesh, prepare_mesh
from .layers import layer_heights, slice_layers
from .mesh import Mesh, load_mesh

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

Y_UP_SUFFIXES = {".glb", ".gltf"}


class ProgressReporter:
    """Forward percentages to a callback, clamped to 0..100 and never decreasing."""

    def __init__(self, callback: Optional[ProgressCallback] = None) -> None:
        self._callback = callback
        self.percent = 0.0

    def report(self, percent: float) -> None:
        percent = max(self.percent, min(100.0, float(percent)))
        self.percent = percent
        if self._callback is not None:
            self._callback(percent)


@dataclass
class Layer:
    index: int
    z: float
    height: float
    contours: List[Contour] = field(default_factory=list)


@dataclass
class SliceStats:
    layers: int
    time_ms: int
    filename: str | None = None
    filament_mm: float = 0.0
    estimated_print_seconds: float = 0.0
    discarded_contours: int = 0


@dataclass
class SliceResult:
    gcode: str
    stats: SliceStats
    layers: List[Layer]
    prepared: PreparedMesh

    @property
    def lines(self) -> List[str]:
        return self.gcode.splitlines()


def slice_mesh(
    mesh: Mesh,
    config: SlicerConfig,
    *,
    y_up: bool = False,
    progress: Optional[ProgressCallback] = None,
    filename: str | None = None,
) -> SliceResult:
    started = time.perf_counter()
    reporter = ProgressReporter(progress)
    reporter.report(5)

    prepared = prepare_mesh(mesh, config.printer, config.scaling, y_up=y_up)
    reporter.report(20)

    process = config.process
    sampling = config.sampling
    bounds = prepared.bounds
    heights = layer_heights(
        float(bounds.minimum[2]),
        float(bounds.maximum[2]),
        process.layer_height,
        process.first_layer_height,
    )
    total = len(heights)
    logger.info(
        "Slicing %d triangles into %d layers of %.3f mm",
        prepared.mesh.triangle_count,
        total,
        process.layer_height,
    )

    layers: List[Layer] = []
    discarded = 0
    for layer_segments in slice_layers(prepared.mesh, heights, sampling.degenerate_tolerance):
        linked = link_segments(
            layer_segments.segments,
            tolerance=sampling.link_tolerance,
            collinear_tolerance=sampling.collinear_tolerance,
        )
        discarded += linked.discarded
        height = process.first_layer_height if layer_segments.index == 0 else process.layer_height
        layers.append(
            Layer(
                index=layer_segments.index,
                z=layer_segments.z,
                height=height,
                contours=linked.contours,
            )
        )
        reporter.report(20 + 60 * (layer_segments.index + 1) / total)

    if discarded:
        logger.warning(
            "Discarded %d unclosed contours; the mesh may be non-manifold or have holes",
            discarded,
        )

    generator = GcodeGenerator(config.printer, process, sampling)
    generator.emit_header()
    for layer in layers:
        generator.emit_layer(layer.index, layer.z, layer.contours, layer.height)
    generator.emit_footer()
    gcode = "\n".join(generator.generate())
    reporter.report(95)

    stats = SliceStats(
        layers=generator.layer_count,
        time_ms=int(round((time.perf_counter() - started) * 1000)),
        filename=filename,
        filament_mm=generator.extruder_position,
        estimated_print_seconds=generator.elapsed_time_seconds,
        discarded_contours=discarded,
    )
    logger.info(
        "Sliced %d layers in %d ms, %.1f mm filament, estimated print time %s",
        stats.layers,
        stats.time_ms,
        stats.filament_mm,
        generator.formatted_elapsed_time(),
    )
    reporter.report(100)
    return SliceResult(gcode=gcode, stats=stats, layers=layers, prepared=prepared)


def slice_file(
    path: str | pathlib.Path,
    config: SlicerConfig,
    *,
    y_up: bool | None = None,
    progress: Optional[ProgressCallback] = None,
) -> SliceResult:
    model_path = pathlib.Path(path)
    mesh = load_mesh(model_path)
    if y_up is None:
        y_up = model_path.suffix.lower() in Y_UP_SUFFIXES
    return slice_mesh(mesh, config, y_up=y_up, progress=progress, filename=model_path.name)
