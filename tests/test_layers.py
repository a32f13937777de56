import math

import numpy as np
import pytest

from mesh_slicer.layers import intersect_edge, intersect_triangle, layer_heights, slice_layers
from mesh_slicer.mesh import Mesh

from conftest import box_mesh, ringed_box_mesh


def test_intersect_edge_crossing():
    point = intersect_edge((0.0, 0.0, 0.0), (10.0, 20.0, 10.0), 2.5)
    assert point == pytest.approx((2.5, 5.0, 2.5))
    # Direction of the edge does not matter.
    assert intersect_edge((10.0, 20.0, 10.0), (0.0, 0.0, 0.0), 2.5) == pytest.approx((2.5, 5.0, 2.5))


def test_intersect_edge_no_crossing():
    assert intersect_edge((0.0, 0.0, 0.0), (1.0, 1.0, 1.0), 1.5) is None
    assert intersect_edge((0.0, 0.0, 2.0), (1.0, 1.0, 3.0), 1.5) is None


def test_intersect_edge_parallel_to_plane_is_not_a_crossing():
    assert intersect_edge((0.0, 0.0, 1.0), (5.0, 0.0, 1.0), 1.0) is None


def test_intersect_edge_touching_endpoint():
    assert intersect_edge((1.0, 2.0, 5.0), (3.0, 4.0, 0.0), 5.0) == (1.0, 2.0, 5.0)


def test_intersect_edge_sets_plane_z_exactly():
    point = intersect_edge((0.0, 0.0, 0.1), (0.0, 0.0, 0.7), 0.3)
    assert point[2] == 0.3


def test_intersect_triangle_segment():
    segment = intersect_triangle((0, 0, 0), (10, 0, 0), (0, 0, 10), 5.0)
    assert segment is not None
    assert sorted(map(tuple, segment)) == [pytest.approx((0.0, 0.0, 5.0)), pytest.approx((5.0, 0.0, 5.0))]
    assert math.dist(segment.start, segment.end) == pytest.approx(5.0)


def test_intersect_triangle_above_or_below():
    assert intersect_triangle((0, 0, 1), (1, 0, 1), (0, 1, 2), 0.5) is None
    assert intersect_triangle((0, 0, 1), (1, 0, 1), (0, 1, 2), 2.5) is None


def test_intersect_triangle_coplanar_is_skipped():
    assert intersect_triangle((0, 0, 3), (1, 0, 3), (0, 1, 3), 3.0) is None


def test_intersect_triangle_through_vertex():
    # The plane passes through B and cuts edge CA.
    segment = intersect_triangle((0, 0, 0), (4, 0, 5), (0, 4, 10), 5.0)
    assert segment is not None
    points = sorted(map(tuple, segment))
    assert points[0] == pytest.approx((0.0, 2.0, 5.0))
    assert points[1] == pytest.approx((4.0, 0.0, 5.0))


def test_intersect_triangle_touching_single_vertex_is_skipped():
    assert intersect_triangle((0, 0, 0), (1, 0, 0), (0, 0, 4), 4.0) is None


def test_intersect_triangle_collinear_is_skipped():
    assert intersect_triangle((0, 0, 0), (5, 5, 5), (10, 10, 10), 2.0) is None
    assert intersect_triangle((0, 0, 0), (5, 5, 5), (10, 10, 10), 5.0) is None


def test_intersect_triangle_in_plane_edge_belongs_to_lower_triangle():
    below = intersect_triangle((0, 0, 5), (10, 0, 5), (0, 0, 0), 5.0)
    assert below is not None
    assert sorted(map(tuple, below)) == [pytest.approx((0.0, 0.0, 5.0)), pytest.approx((10.0, 0.0, 5.0))]
    assert intersect_triangle((0, 0, 5), (10, 0, 5), (0, 0, 9), 5.0) is None


def test_layer_heights_match_layer_count():
    heights = layer_heights(0.0, 10.0, 0.2)
    assert len(heights) == 50
    assert heights[0] == pytest.approx(0.2)
    assert heights[-1] == 10.0
    assert all(b > a for a, b in zip(heights, heights[1:]))


def test_layer_heights_partial_top_layer():
    heights = layer_heights(1.0, 2.05, 0.2)
    assert len(heights) == math.ceil(1.05 / 0.2)
    assert heights[0] == pytest.approx(1.2)


def test_layer_heights_first_layer():
    heights = layer_heights(0.0, 1.0, 0.2, first_layer_height=0.3)
    assert heights[0] == pytest.approx(0.3)
    assert heights[1] == pytest.approx(0.5)
    assert heights[-1] == pytest.approx(1.1)
    assert len(heights) == 5


def test_layer_heights_flat_mesh():
    assert layer_heights(3.0, 3.0, 0.2) == []


def test_layer_heights_rejects_bad_height():
    with pytest.raises(ValueError):
        layer_heights(0.0, 1.0, 0.0)


def test_slice_layers_cube():
    mesh = box_mesh()
    heights = layer_heights(0.0, 10.0, 0.2)
    layers = list(slice_layers(mesh, heights))
    assert [layer.index for layer in layers] == list(range(50))
    for layer in layers[:-1]:
        # Two triangles per side face cross every interior plane.
        assert len(layer.segments) == 8
        assert all(segment.start[2] == layer.z for segment in layer.segments)
    # The top plane only meets the upper edges of the side faces.
    assert len(layers[-1].segments) == 4


def test_slice_layers_is_lazy():
    mesh = box_mesh()
    generator = slice_layers(mesh, [1.0, 2.0])
    first = next(generator)
    assert first.z == 1.0
    assert next(generator).z == 2.0
    with pytest.raises(StopIteration):
        next(generator)


def test_slice_layers_matches_brute_force():
    rng = np.random.default_rng(7)
    soup = rng.uniform(0, 20, size=(60, 3))
    mesh = Mesh(vertices=soup)
    heights = layer_heights(0.0, 20.0, 0.5)
    for layer in slice_layers(mesh, heights):
        expected = []
        for a, b, c in mesh.triangles.tolist():
            segment = intersect_triangle(a, b, c, layer.z)
            if segment is not None:
                expected.append(segment)
        assert layer.segments == expected


def test_slice_layers_cuts_an_edge_ring_once():
    mesh = ringed_box_mesh()
    layer = next(slice_layers(mesh, [5.0]))
    # One wall edge per side, never a second copy from the band above.
    assert len(layer.segments) == 4
    lengths = [math.dist(segment.start, segment.end) for segment in layer.segments]
    assert lengths == pytest.approx([10.0] * 4)
