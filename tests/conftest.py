import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from meshdecimate.halfedge import HalfEdgeMesh
from meshdecimate.utils import create_grid_mesh, from_trimesh


def grid(rows, cols, width=None, height=None, **kwargs):
    """Planar grid half-edge mesh with unit spacing, centered on the origin."""
    mesh = create_grid_mesh(rows, cols,
                            width=float(cols - 1) if width is None else width,
                            height=float(rows - 1) if height is None else height)
    return from_trimesh(mesh, **kwargs)


@pytest.fixture
def strip():
    """2 x 5 strip: 8 triangles, 10 boundary vertices, no interior vertex."""
    return grid(2, 5)


@pytest.fixture
def square():
    """3 x 3 grid with a single interior vertex (index 4)."""
    return grid(3, 3)


@pytest.fixture
def tetrahedron():
    vertices = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [0.0, 0.0, 1.0],
    ])
    faces = np.array([
        [0, 2, 1],
        [0, 1, 3],
        [1, 2, 3],
        [0, 3, 2],
    ])
    return HalfEdgeMesh.from_arrays(vertices, faces)


@pytest.fixture
def octahedron():
    vertices = np.array([
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [-1.0, 0.0, 0.0],
        [0.0, -1.0, 0.0],
        [0.0, 0.0, 1.0],
        [0.0, 0.0, -1.0],
    ])
    faces = []
    for i in range(4):
        j = (i + 1) % 4
        faces.append([i, j, 4])
        faces.append([j, i, 5])
    return HalfEdgeMesh.from_arrays(vertices, np.array(faces))


@pytest.fixture
def hexagon():
    """Planar fan of six triangles around vertex 0."""
    angles = np.arange(6) * np.pi / 3.0
    ring = np.column_stack([np.cos(angles), np.sin(angles), np.zeros(6)])
    vertices = np.vstack([[0.0, 0.0, 0.0], ring])
    faces = [[0, k + 1, (k + 1) % 6 + 1] for k in range(6)]
    return HalfEdgeMesh.from_arrays(vertices, np.array(faces))


@pytest.fixture
def disk():
    """Planar 6 x 6 grid whose boundary vertices carry a reference tag."""
    return grid(6, 6, width=2.0, height=2.0, tag_boundary=True)


@pytest.fixture
def book():
    """Three triangles sharing the edge (0, 1)."""
    vertices = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.5, 1.0, 0.0],
        [0.5, -0.5, 0.8],
        [0.5, -0.5, -0.8],
    ])
    faces = np.array([
        [0, 1, 2],
        [1, 0, 3],
        [0, 1, 4],
    ])
    return HalfEdgeMesh.from_arrays(vertices, faces)
