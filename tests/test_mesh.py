import numpy as np
import pytest
import trimesh

from mesh_slicer.mesh import EmptyMeshError, Mesh, MeshError, MeshLoadError, load_mesh

from conftest import CUBE_FACES, box_mesh, box_triangles, box_vertices


def test_indexed_and_soup_meshes_agree():
    indexed = box_mesh()
    soup = Mesh.from_triangles(box_triangles())
    assert indexed.triangle_count == soup.triangle_count == 12
    assert np.allclose(indexed.triangles, soup.triangles)
    assert soup.faces is None


def test_bounds():
    bounds = box_mesh(origin=(1.0, -2.0, 3.0), size=(4.0, 5.0, 6.0)).bounds()
    assert np.allclose(bounds.minimum, [1.0, -2.0, 3.0])
    assert np.allclose(bounds.maximum, [5.0, 3.0, 9.0])
    assert np.allclose(bounds.center, [3.0, 0.5, 6.0])
    assert bounds.largest_dimension == 6.0


def test_out_of_range_index():
    with pytest.raises(MeshError, match="out of range"):
        Mesh(vertices=box_vertices(), faces=[[0, 1, 8]])
    with pytest.raises(MeshError):
        Mesh(vertices=box_vertices(), faces=[[0, -1, 2]])


def test_soup_needs_whole_triangles():
    with pytest.raises(MeshError, match="multiple of 3"):
        Mesh(vertices=[[0, 0, 0], [1, 0, 0]])


def test_empty_mesh_bounds():
    empty = Mesh(vertices=np.zeros((0, 3)))
    assert empty.is_empty
    with pytest.raises(EmptyMeshError):
        empty.bounds()


def test_transformed_keeps_topology():
    mesh = box_mesh()
    moved = mesh.transformed(mesh.vertices + 1.0)
    assert np.array_equal(moved.faces, mesh.faces)
    assert moved.faces is not mesh.faces
    assert np.allclose(moved.bounds().minimum, [1.0, 1.0, 1.0])


def test_load_mesh_from_stl(tmp_path):
    path = tmp_path / "cube.stl"
    trimesh.Trimesh(vertices=box_vertices(), faces=CUBE_FACES).export(str(path))
    mesh = load_mesh(path)
    assert mesh.triangle_count == 12
    assert np.allclose(mesh.bounds().size, [10.0, 10.0, 10.0])


def test_load_missing_file(tmp_path):
    with pytest.raises(MeshLoadError, match="not found"):
        load_mesh(tmp_path / "nothing.glb")


def test_load_unsupported_file(tmp_path):
    path = tmp_path / "model.unknownformat"
    path.write_text("not a mesh", encoding="utf-8")
    with pytest.raises(MeshLoadError):
        load_mesh(path)
