import numpy as np
import pytest
import trimesh

from meshdecimate.halfedge import HalfEdgeMesh
from meshdecimate.mesh_decimator import DecimationReport
from meshdecimate.utils import (
    boundary_vertices,
    create_grid_mesh,
    create_sample_mesh,
    decimate_trimesh,
    from_trimesh,
    get_mesh_info,
    load_mesh,
    save_mesh,
    to_trimesh,
)


def test_grid_mesh_layout():
    mesh = create_grid_mesh(4, 5, width=4.0, height=3.0)
    assert len(mesh.vertices) == 20
    assert len(mesh.faces) == 2 * 3 * 4
    np.testing.assert_allclose(mesh.bounds, [[-2.0, -1.5, 0.0], [2.0, 1.5, 0.0]])
    # Faces are counter-clockwise seen from +Z
    assert np.all(mesh.face_normals[:, 2] > 0.0)


def test_grid_noise_is_seeded():
    a = create_grid_mesh(5, 5, noise=0.1, seed=7)
    b = create_grid_mesh(5, 5, noise=0.1, seed=7)
    np.testing.assert_array_equal(a.vertices, b.vertices)
    assert np.any(a.vertices[:, 2] != 0.0)


def test_boundary_vertices_of_grid():
    mesh = create_grid_mesh(4, 4)
    border = boundary_vertices(mesh.faces)
    assert sorted(border.tolist()) == [0, 1, 2, 3, 4, 7, 8, 11, 12, 13, 14, 15]


def test_from_trimesh_tags_boundary():
    mesh = create_grid_mesh(4, 4)
    hemesh = from_trimesh(mesh, tag_boundary=True)
    assert isinstance(hemesh, HalfEdgeMesh)
    assert hemesh.nr_triangles == 18
    tagged = [v for v, vertex in enumerate(hemesh.vertices) if vertex.ref != 0]
    assert tagged == boundary_vertices(mesh.faces).tolist()


def test_from_trimesh_keeps_given_refs():
    mesh = create_grid_mesh(3, 3)
    refs = np.zeros(9, dtype=int)
    refs[0] = 7
    refs[4] = 3
    hemesh = from_trimesh(mesh, refs=refs, tag_boundary=True)
    assert hemesh.vertices[0].ref == 7
    assert hemesh.vertices[4].ref == 3
    assert hemesh.vertices[1].ref == 1


def test_round_trip_through_trimesh():
    mesh = trimesh.creation.icosphere(subdivisions=1)
    result = to_trimesh(from_trimesh(mesh))
    np.testing.assert_allclose(result.vertices, mesh.vertices)
    np.testing.assert_array_equal(result.faces, mesh.faces)
    assert result.is_watertight


def test_decimate_trimesh():
    mesh = trimesh.creation.icosphere(subdivisions=2)
    result, report = decimate_trimesh(mesh, maxtriangles=120, placement="optimal")
    assert isinstance(report, DecimationReport)
    assert len(result.faces) <= 120
    assert len(result.faces) == report.final_triangles
    assert result.is_watertight
    # Input is left unchanged
    assert len(mesh.faces) == 320


def test_save_and_load(tmp_path):
    mesh = create_grid_mesh(3, 3)
    path = str(tmp_path / "grid.ply")
    save_mesh(from_trimesh(mesh), path)
    loaded = load_mesh(path)
    assert len(loaded.faces) == 8
    assert loaded.area == pytest.approx(mesh.area)


@pytest.mark.parametrize("kind", ["sphere", "torus", "cube", "bunny", "grid"])
def test_sample_meshes_build(kind):
    mesh = create_sample_mesh(kind)
    assert len(mesh.faces) > 0
    hemesh = from_trimesh(mesh)
    hemesh.check_valid()


def test_unknown_sample_mesh():
    with pytest.raises(ValueError):
        create_sample_mesh("teapot")


def test_mesh_info():
    info = get_mesh_info(trimesh.creation.icosphere(subdivisions=1))
    assert info['faces'] == 80
    assert info['is_watertight']
    assert info['boundary_vertices'] == 0
    assert info['euler_number'] == 2
    info = get_mesh_info(create_grid_mesh(3, 3))
    assert info['volume'] == 'N/A (not watertight)'
    assert info['boundary_vertices'] == 8
