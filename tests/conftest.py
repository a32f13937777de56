from pathlib import Path

import numpy as np
import pytest

from mesh_slicer.config import load_config, parse_config
from mesh_slicer.mesh import Mesh

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config.yaml"

CUBE_FACES = [
    [0, 2, 1], [0, 3, 2],  # bottom
    [4, 5, 6], [4, 6, 7],  # top
    [0, 1, 5], [0, 5, 4],  # front
    [1, 2, 6], [1, 6, 5],  # right
    [2, 3, 7], [2, 7, 6],  # back
    [3, 0, 4], [3, 4, 7],  # left
]


def box_vertices(origin=(0.0, 0.0, 0.0), size=(10.0, 10.0, 10.0)):
    x0, y0, z0 = origin
    sx, sy, sz = size
    return np.array(
        [
            [x0, y0, z0],
            [x0 + sx, y0, z0],
            [x0 + sx, y0 + sy, z0],
            [x0, y0 + sy, z0],
            [x0, y0, z0 + sz],
            [x0 + sx, y0, z0 + sz],
            [x0 + sx, y0 + sy, z0 + sz],
            [x0, y0 + sy, z0 + sz],
        ]
    )


def box_mesh(origin=(0.0, 0.0, 0.0), size=(10.0, 10.0, 10.0)) -> Mesh:
    return Mesh(vertices=box_vertices(origin, size), faces=CUBE_FACES)


def box_triangles(origin=(0.0, 0.0, 0.0), size=(10.0, 10.0, 10.0)):
    vertices = box_vertices(origin, size)
    return [vertices[face].tolist() for face in CUBE_FACES]


def ringed_box_mesh(size=10.0, ring_z=5.0) -> Mesh:
    """Box whose side walls are split by a horizontal vertex ring."""
    corners = [(0.0, 0.0), (size, 0.0), (size, size), (0.0, size)]
    vertices = [(x, y, z) for z in (0.0, ring_z, size) for x, y in corners]
    faces = [[0, 2, 1], [0, 3, 2], [8, 9, 10], [8, 10, 11]]
    for low, high in ((0, 4), (4, 8)):
        for i in range(4):
            j = (i + 1) % 4
            faces.append([low + i, low + j, high + j])
            faces.append([low + i, high + j, high + i])
    return Mesh(vertices=np.array(vertices), faces=faces)


def minimal_config_dict():
    return {
        "printer": {
            "name": "Test Printer",
            "bed_size_mm": {"width": 220, "depth": 220, "max_height": 250},
            "nozzle_diameter_mm": 0.4,
            "filament_diameter_mm": 1.75,
            "temperatures_c": {"nozzle": 205, "bed": 55},
            "feedrates_mm_s": {"print": 50, "travel": 100},
            "retraction": {"distance_mm": 2, "speed_mm_s": 45},
            "start_gcode": ["; start", "M104 S{nozzle_temp:.0f}", "G28", "G90", "M82"],
            "end_gcode": ["; end", "G91", "G1 E-{retract_distance} F{retract_feedrate:.0f}", "G90", "M84"],
        },
        "process": {"layer_height_mm": 0.2, "wall_thickness_mm": 0.4},
    }


@pytest.fixture
def cube():
    return box_mesh()


@pytest.fixture
def config():
    return parse_config(minimal_config_dict())


@pytest.fixture
def repo_config():
    return load_config(REPO_CONFIG)
