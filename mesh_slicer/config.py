from __future__ import annotations

import pathlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

import yaml


@dataclass(frozen=True)
class Feedrates:
    print_mm_s: float
    travel_mm_s: float

    @property
    def print_feedrate(self) -> float:
        return self.print_mm_s * 60.0

    @property
    def travel_feedrate(self) -> float:
        return self.travel_mm_s * 60.0


@dataclass(frozen=True)
class Temperatures:
    nozzle: float
    bed: float


@dataclass(frozen=True)
class Retraction:
    distance_mm: float
    speed_mm_s: float

    @property
    def feedrate(self) -> float:
        return self.speed_mm_s * 60.0


@dataclass(frozen=True)
class PrinterConfig:
    name: str
    bed_width: float
    bed_depth: float
    max_height: float
    nozzle_diameter: float
    filament_diameter: float
    feedrates: Feedrates
    temperatures: Temperatures
    retraction: Retraction
    start_gcode: List[str] = field(default_factory=list)
    end_gcode: List[str] = field(default_factory=list)

    @property
    def bed_center(self) -> tuple[float, float]:
        return self.bed_width / 2.0, self.bed_depth / 2.0

    def template_values(self) -> Dict[str, float]:
        return {
            "nozzle_temp": self.temperatures.nozzle,
            "bed_temp": self.temperatures.bed,
            "retract_distance": self.retraction.distance_mm,
            "retract_feedrate": self.retraction.feedrate,
            "bed_width": self.bed_width,
            "bed_depth": self.bed_depth,
            "max_height": self.max_height,
            "travel_feedrate": self.feedrates.travel_feedrate,
            "print_feedrate": self.feedrates.print_feedrate,
        }

    def render_block(self, lines: List[str]) -> List[str]:
        """Fill ``{placeholder}`` fields of a start/end block from this profile."""
        values = self.template_values()
        rendered: List[str] = []
        for line in lines:
            try:
                rendered.append(line.format_map(values))
            except (KeyError, IndexError, ValueError) as exc:
                raise ConfigError(
                    f"Invalid placeholder in G-code line '{line}' of printer '{self.name}': {exc}"
                ) from exc
        return rendered


@dataclass(frozen=True)
class ProcessConfig:
    layer_height: float = 0.2
    first_layer_height: float = 0.2
    wall_count: int = 1
    wall_thickness: float = 0.4
    infill_density: float = 0.0
    fan_speed: int = 255
    first_layer_speed_ratio: float = 1.0


@dataclass(frozen=True)
class ScalingConfig:
    min_size: float = 10.0
    target_size: float = 60.0
    bed_margin: float = 10.0
    max_size: float | None = None

    def envelope(self, printer: PrinterConfig) -> float:
        if self.max_size is not None:
            return self.max_size
        smallest = min(printer.bed_width, printer.bed_depth, printer.max_height)
        return smallest - 2.0 * self.bed_margin


@dataclass(frozen=True)
class SamplingConfig:
    link_tolerance: float = 1e-3
    collinear_tolerance: float = 1e-4
    degenerate_tolerance: float = 1e-9
    min_move: float = 1e-3


@dataclass(frozen=True)
class RenderingConfig:
    line_width: float = 0.35


@dataclass(frozen=True)
class SlicerConfig:
    printer: PrinterConfig
    process: ProcessConfig = field(default_factory=ProcessConfig)
    scaling: ScalingConfig = field(default_factory=ScalingConfig)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    rendering: RenderingConfig = field(default_factory=RenderingConfig)


class ConfigError(Exception):
    """Raised when configuration values are missing or invalid."""


def _require(mapping: Mapping[str, Any], key: str) -> Any:
    if key not in mapping:
        raise ConfigError(f"Missing required configuration key: {key}")
    return mapping[key]


def _positive(value: Any, key: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{key}' must be a number, got {value!r}") from exc
    if not number > 0:
        raise ConfigError(f"'{key}' must be greater than zero, got {number}")
    return number


def _ratio(value: Any, key: str, low: float = 0.0, high: float = 1.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{key}' must be a number, got {value!r}") from exc
    if not low <= number <= high:
        raise ConfigError(f"'{key}' must be between {low} and {high}, got {number}")
    return number


def _gcode_block(raw: Any, key: str) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        return [line.strip() for line in raw.strip().splitlines()]
    if not isinstance(raw, list):
        raise ConfigError(f"'{key}' must be a list of G-code commands.")
    return [str(line) for line in raw]


def _parse_printer_config(printer_raw: Dict[str, Any], fallback_name: str | None = None) -> PrinterConfig:
    bed = _require(printer_raw, "bed_size_mm")
    feedrates_raw = _require(printer_raw, "feedrates_mm_s")
    temperatures_raw = printer_raw.get("temperatures_c", {})
    retraction_raw = printer_raw.get("retraction", {})

    feedrates = Feedrates(
        print_mm_s=_positive(_require(feedrates_raw, "print"), "feedrates_mm_s.print"),
        travel_mm_s=_positive(_require(feedrates_raw, "travel"), "feedrates_mm_s.travel"),
    )
    temperatures = Temperatures(
        nozzle=float(temperatures_raw.get("nozzle", 200.0)),
        bed=float(temperatures_raw.get("bed", 60.0)),
    )
    retraction = Retraction(
        distance_mm=float(retraction_raw.get("distance_mm", 2.0)),
        speed_mm_s=_positive(retraction_raw.get("speed_mm_s", 45.0), "retraction.speed_mm_s"),
    )

    printer = PrinterConfig(
        name=str(printer_raw.get("name", fallback_name or "Printer")),
        bed_width=_positive(_require(bed, "width"), "bed_size_mm.width"),
        bed_depth=_positive(_require(bed, "depth"), "bed_size_mm.depth"),
        max_height=_positive(_require(bed, "max_height"), "bed_size_mm.max_height"),
        nozzle_diameter=_positive(printer_raw.get("nozzle_diameter_mm", 0.4), "nozzle_diameter_mm"),
        filament_diameter=_positive(printer_raw.get("filament_diameter_mm", 1.75), "filament_diameter_mm"),
        feedrates=feedrates,
        temperatures=temperatures,
        retraction=retraction,
        start_gcode=_gcode_block(printer_raw.get("start_gcode"), "start_gcode"),
        end_gcode=_gcode_block(printer_raw.get("end_gcode"), "end_gcode"),
    )
    # Surface bad placeholders at load time rather than mid-slice.
    printer.render_block(printer.start_gcode)
    printer.render_block(printer.end_gcode)
    return printer


def _parse_process_config(process_raw: Dict[str, Any], printer: PrinterConfig) -> ProcessConfig:
    layer_height = _positive(process_raw.get("layer_height_mm", 0.2), "layer_height_mm")
    first_layer_height = _positive(
        process_raw.get("first_layer_height_mm", layer_height), "first_layer_height_mm"
    )
    wall_count = int(process_raw.get("wall_count", 1))
    if wall_count < 1:
        raise ConfigError(f"'wall_count' must be at least 1, got {wall_count}")
    fan_speed = int(process_raw.get("fan_speed", 255))
    if not 0 <= fan_speed <= 255:
        raise ConfigError(f"'fan_speed' must be between 0 and 255, got {fan_speed}")
    return ProcessConfig(
        layer_height=layer_height,
        first_layer_height=first_layer_height,
        wall_count=wall_count,
        wall_thickness=_positive(
            process_raw.get("wall_thickness_mm", printer.nozzle_diameter), "wall_thickness_mm"
        ),
        infill_density=_ratio(process_raw.get("infill_density", 0.0), "infill_density"),
        fan_speed=fan_speed,
        first_layer_speed_ratio=_ratio(
            process_raw.get("first_layer_speed_ratio", 1.0), "first_layer_speed_ratio", low=0.05
        ),
    )


def _parse_scaling_config(scaling_raw: Dict[str, Any], printer: PrinterConfig) -> ScalingConfig:
    max_size_raw = scaling_raw.get("max_size_mm")
    scaling = ScalingConfig(
        min_size=_positive(scaling_raw.get("min_size_mm", 10.0), "min_size_mm"),
        target_size=_positive(scaling_raw.get("target_size_mm", 60.0), "target_size_mm"),
        bed_margin=float(scaling_raw.get("bed_margin_mm", 10.0)),
        max_size=None if max_size_raw is None else _positive(max_size_raw, "max_size_mm"),
    )
    envelope = scaling.envelope(printer)
    if envelope <= 0:
        raise ConfigError(
            f"Bed margin {scaling.bed_margin} mm leaves no printable envelope on '{printer.name}'."
        )
    if scaling.target_size > envelope:
        raise ConfigError(
            f"Target size {scaling.target_size} mm exceeds the printable envelope of {envelope} mm."
        )
    return scaling


def parse_config(raw: Mapping[str, Any], profile: str | None = None) -> SlicerConfig:
    printer_raw: Dict[str, Any]
    printer_profile_name: str | None = None

    if "printers" in raw:
        printers_section = raw.get("printers")
        if not isinstance(printers_section, dict) or not printers_section:
            raise ConfigError("'printers' must be a non-empty mapping of profiles.")

        if profile is None:
            default_profile = raw.get("default_printer")
            if default_profile:
                if default_profile not in printers_section:
                    available = ", ".join(sorted(printers_section))
                    raise ConfigError(
                        f"Default printer profile '{default_profile}' not found. Available profiles: {available}"
                    )
                printer_profile_name = str(default_profile)
            else:
                printer_profile_name = next(iter(printers_section))
        else:
            if profile not in printers_section:
                available = ", ".join(sorted(printers_section))
                raise ConfigError(
                    f"Printer profile '{profile}' not found. Available profiles: {available}"
                )
            printer_profile_name = str(profile)

        printer_raw = printers_section[printer_profile_name]
        if not isinstance(printer_raw, dict):
            raise ConfigError(f"Printer profile '{printer_profile_name}' must be a mapping of settings.")
    else:
        if profile is not None:
            raise ConfigError(
                "Printer profile specified but configuration does not define any profiles."
            )
        printer_raw = _require(raw, "printer")

    printer = _parse_printer_config(printer_raw, fallback_name=printer_profile_name)
    process = _parse_process_config(raw.get("process") or {}, printer)
    scaling = _parse_scaling_config(raw.get("scaling") or {}, printer)

    sampling_raw = raw.get("sampling") or {}
    sampling = SamplingConfig(
        link_tolerance=_positive(sampling_raw.get("link_tolerance_mm", 1e-3), "link_tolerance_mm"),
        collinear_tolerance=float(sampling_raw.get("collinear_tolerance_mm", 1e-4)),
        degenerate_tolerance=_positive(
            sampling_raw.get("degenerate_tolerance_mm", 1e-9), "degenerate_tolerance_mm"
        ),
        min_move=float(sampling_raw.get("min_move_mm", 1e-3)),
    )

    rendering_raw = raw.get("rendering") or {}
    rendering = RenderingConfig(
        line_width=float(rendering_raw.get("preview_line_width_mm", 0.35)),
    )

    return SlicerConfig(
        printer=printer,
        process=process,
        scaling=scaling,
        sampling=sampling,
        rendering=rendering,
    )


def load_config(path: str | pathlib.Path, profile: str | None = None) -> SlicerConfig:
    config_path = pathlib.Path(path)
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration file {config_path} must contain a mapping.")

    return parse_config(raw, profile=profile)
