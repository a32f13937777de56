from __future__ import annotations

import logging
import math
from typing import Iterable, List, Sequence, Tuple

from .config import ProcessConfig, PrinterConfig, SamplingConfig
from .contours import Contour

Point = Tuple[float, float]

logger = logging.getLogger(__name__)

LAYER_MARKER = "; LAYER"


def _distance(a: Point, b: Point) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def extrusion_length(
    distance: float,
    layer_height: float,
    line_width: float,
    filament_diameter: float,
) -> float:
    """Filament length whose volume fills a bead of the given size.

    The bead is ``distance * layer_height * line_width``; the result is that
    volume over the filament cross-section.
    """
    filament_area = math.pi * (filament_diameter / 2.0) ** 2
    return distance * layer_height * line_width / filament_area


def count_layer_markers(gcode: str | Iterable[str]) -> int:
    lines = gcode.splitlines() if isinstance(gcode, str) else gcode
    return sum(1 for line in lines if line.startswith(LAYER_MARKER))


class GcodeGenerator:
    def __init__(
        self,
        printer: PrinterConfig,
        process: ProcessConfig,
        sampling: SamplingConfig | None = None,
    ) -> None:
        self.printer = printer
        self.process = process
        self.sampling = sampling or SamplingConfig()
        self._gcode: List[str] = []
        self._position: Point | None = None
        self._z_height: float = 0.0
        self._extruder: float = 0.0
        self._layer_count: int = 0
        self._elapsed_time: float = 0.0

    def _emit(self, line: str) -> None:
        self._gcode.append(line)

    def _format_xy(self, point: Point) -> str:
        x, y = point
        return f"X{x:.3f} Y{y:.3f}"

    def _travel(self, point: Point, feedrate: float) -> None:
        if self._position is not None:
            self._accumulate_motion_time(_distance(self._position, point), feedrate)
        self._emit(f"G1 {self._format_xy(point)} F{feedrate:.0f}")
        self._position = point

    def _extrude(self, point: Point, layer_height: float, feedrate: float) -> None:
        distance = _distance(self._position, point)
        if distance < self.sampling.min_move:
            return
        self._extruder += extrusion_length(
            distance,
            layer_height,
            self.process.wall_thickness,
            self.printer.filament_diameter,
        )
        self._accumulate_motion_time(distance, feedrate)
        self._emit(f"G1 {self._format_xy(point)} E{self._extruder:.5f} F{feedrate:.0f}")
        self._position = point

    def _set_z(self, z: float, feedrate: float) -> None:
        self._accumulate_motion_time(abs(self._z_height - z), feedrate)
        self._emit(f"G1 Z{z:.3f} F{feedrate:.0f}")
        self._z_height = z

    def _accumulate_motion_time(self, distance: float, feedrate: float) -> None:
        if distance <= 0 or feedrate <= 0:
            return
        speed_mm_s = feedrate / 60.0
        self._elapsed_time += distance / speed_mm_s

    def emit_comment(self, text: str) -> None:
        self._emit(f"; {text}")

    def emit_header(self) -> None:
        process = self.process
        self.emit_comment(f"Printer: {self.printer.name}")
        self.emit_comment(f"Layer height: {process.layer_height:.3f} mm (first {process.first_layer_height:.3f} mm)")
        self.emit_comment(f"Wall thickness: {process.wall_thickness:.3f} mm x {process.wall_count}")
        self.emit_comment(f"Infill density: {process.infill_density * 100:.0f}%")
        self.emit_comment(f"Filament diameter: {self.printer.filament_diameter:.2f} mm")
        for line in self.printer.render_block(self.printer.start_gcode):
            self._emit(line)
        self._emit("G92 E0")
        self._extruder = 0.0

    def emit_footer(self) -> None:
        for line in self.printer.render_block(self.printer.end_gcode):
            self._emit(line)

    def emit_layer(self, index: int, z: float, contours: Sequence[Contour], layer_height: float) -> None:
        feedrates = self.printer.feedrates
        print_feed = feedrates.print_feedrate
        if index == 0:
            print_feed *= self.process.first_layer_speed_ratio

        self._emit(f"{LAYER_MARKER} {index} Z={z:.3f}")
        self._layer_count += 1
        self._set_z(z, feedrates.travel_feedrate)
        if index == 1 and self.process.fan_speed > 0:
            self._emit(f"M106 S{self.process.fan_speed}")

        for contour in contours:
            points = contour.xy()
            if len(points) < 2:
                continue
            self._travel(points[0], feedrates.travel_feedrate)
            for point in points[1:]:
                self._extrude(point, layer_height, print_feed)

    def generate(self) -> List[str]:
        return self._gcode

    @property
    def extruder_position(self) -> float:
        return self._extruder

    @property
    def layer_count(self) -> int:
        return self._layer_count

    @property
    def elapsed_time_seconds(self) -> float:
        return self._elapsed_time

    def formatted_elapsed_time(self) -> str:
        return _format_duration(self._elapsed_time)


def _format_duration(seconds: float) -> str:
    total_seconds = max(0.0, float(seconds))
    if total_seconds < 60.0:
        return f"{total_seconds:.1f}s"
    rounded = int(round(total_seconds))
    hours, remainder = divmod(rounded, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    return f"{minutes}m {secs:02d}s"
