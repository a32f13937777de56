"""Naive planar mesh slicer producing single-wall FDM G-code."""

__all__ = [
    "config",
    "mesh",
    "geometry",
    "layers",
    "contours",
    "gcode",
    "slicer",
    "preview",
    "cli",
]
