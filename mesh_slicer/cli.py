from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import List

from .config import ConfigError, SlicerConfig, load_config
from .mesh import MeshError
from .preview import render_layer
from .slicer import SliceResult, slice_file

logger = logging.getLogger(__name__)


def write_gcode(result: SliceResult, output_path: Path) -> int:
    lines = result.lines
    output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    logger.info("Wrote %d G-code lines to %s", len(lines), output_path)
    return len(lines)


def _with_layer_height(config: SlicerConfig, layer_height: float) -> SlicerConfig:
    if layer_height <= 0:
        raise ConfigError(f"Layer height must be greater than zero, got {layer_height}")
    process = dataclasses.replace(
        config.process,
        layer_height=layer_height,
        first_layer_height=layer_height,
    )
    return dataclasses.replace(config, process=process)


def _log_progress(percent: float) -> None:
    logger.debug("Progress: %.0f%%", percent)


def slice_model_to_gcode(
    model_path: Path,
    output_path: Path,
    config: SlicerConfig,
    *,
    y_up: bool | None,
    preview_layer: int | None = None,
    preview_file: Path | None = None,
) -> SliceResult:
    result = slice_file(model_path, config, y_up=y_up, progress=_log_progress)
    write_gcode(result, output_path)

    if preview_layer is not None or preview_file:
        index = preview_layer if preview_layer is not None else len(result.layers) // 2
        if not 0 <= index < len(result.layers):
            raise ValueError(f"Preview layer {index} out of range (0..{len(result.layers) - 1})")
        render_layer(
            result.layers[index],
            config.printer,
            config.rendering,
            str(preview_file) if preview_file else None,
        )
    return result


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Slice a triangle mesh into single-wall FDM G-code.")
    parser.add_argument("model", type=Path, help="Path to the source model (GLB, STL, OBJ, ...)")
    parser.add_argument("--config", type=Path, default=Path("config.yaml"), help="Path to slicer configuration YAML")
    parser.add_argument(
        "--printer-profile",
        type=str,
        default=None,
        help="Name of the printer profile to use from the configuration file",
    )
    parser.add_argument("--output", type=Path, default=Path("output.gcode"), help="Destination G-code file")
    parser.add_argument(
        "--y-up",
        dest="y_up",
        action="store_true",
        help="Treat the model as Y-up and rotate it onto the bed (default for GLB/glTF)",
    )
    parser.add_argument(
        "--z-up",
        dest="y_up",
        action="store_false",
        help="Treat the model as already Z-up",
    )
    parser.set_defaults(y_up=None)
    parser.add_argument(
        "--layer-height",
        type=float,
        default=None,
        help="Override the configured layer height in mm",
    )
    parser.add_argument(
        "--preview-layer",
        type=int,
        default=None,
        help="Render a matplotlib preview of this layer index",
    )
    parser.add_argument(
        "--preview-file",
        type=Path,
        default=None,
        help="Optional path to save the preview instead of displaying it",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper()), format="[%(levelname)s] %(message)s")

    try:
        config = load_config(args.config, profile=args.printer_profile)
        if args.layer_height is not None:
            config = _with_layer_height(config, args.layer_height)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1

    try:
        result = slice_model_to_gcode(
            args.model,
            args.output,
            config,
            y_up=args.y_up,
            preview_layer=args.preview_layer,
            preview_file=args.preview_file,
        )
    except MeshError as exc:
        logger.error("Failed to slice model: %s", exc)
        return 1
    except Exception as exc:  # pragma: no cover - CLI surface
        logger.error("Failed to slice model: %s", exc)
        return 1

    logger.info("%s: %d layers in %d ms", result.stats.filename, result.stats.layers, result.stats.time_ms)
    return 0


if __name__ == "__main__":
    sys.exit(main())
