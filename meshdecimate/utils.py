"""
Utility Functions
=================

Mesh loading and saving, conversion between trimesh objects and
half-edge meshes, and sample mesh creation.
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np
import trimesh

from .halfedge import HalfEdgeMesh
from .mesh_decimator import DecimationReport, MeshDecimator

logger = logging.getLogger(__name__)


def load_mesh(path: str) -> trimesh.Trimesh:
    """
    Load a mesh from file.

    Supports: OBJ, PLY, STL, OFF, and other formats supported by trimesh.

    Args:
        path: Path to mesh file

    Returns:
        Loaded trimesh object
    """
    mesh = trimesh.load(path, force='mesh')

    if isinstance(mesh, trimesh.Scene):
        # Convert scene to single mesh
        meshes = [geom for geom in mesh.geometry.values()
                  if isinstance(geom, trimesh.Trimesh)]
        if not meshes:
            raise ValueError(f"No valid meshes found in {path}")
        mesh = trimesh.util.concatenate(meshes)

    logger.info("Loaded %s: %d vertices, %d faces", path, len(mesh.vertices),
                len(mesh.faces))
    return mesh


def save_mesh(mesh, path: str):
    """
    Save a mesh to file.

    Args:
        mesh: Mesh to save, a trimesh object or a half-edge mesh
        path: Output path, the format is deduced from its extension
    """
    if isinstance(mesh, HalfEdgeMesh):
        mesh = to_trimesh(mesh)
    mesh.export(path)
    logger.info("Saved mesh to: %s", path)


def boundary_edges(faces: np.ndarray) -> np.ndarray:
    """Sorted vertex pairs of the edges used by a single face, (K, 2)."""
    faces = np.asarray(faces, dtype=int).reshape(-1, 3)
    edges = np.sort(faces[:, [0, 1, 1, 2, 2, 0]].reshape(-1, 2), axis=1)
    unique, counts = np.unique(edges, axis=0, return_counts=True)
    return unique[counts == 1].reshape(-1, 2)


def boundary_vertices(faces: np.ndarray) -> np.ndarray:
    """Indices of vertices lying on an edge used by a single face."""
    return np.unique(boundary_edges(faces))


def from_trimesh(mesh: trimesh.Trimesh,
                 refs: Optional[Sequence[int]] = None,
                 writable: Optional[Sequence[bool]] = None,
                 tag_boundary: bool = False) -> HalfEdgeMesh:
    """
    Build a half-edge mesh from a trimesh object.

    Args:
        mesh: Input mesh
        refs: Optional per-vertex reference tags
        writable: Optional per-face mask of the region to decimate
        tag_boundary: Give reference tag 1 to boundary vertices without one

    Returns:
        Half-edge mesh
    """
    vertices = np.asarray(mesh.vertices, dtype=float)
    faces = np.asarray(mesh.faces, dtype=int)
    if refs is None:
        refs = np.zeros(len(vertices), dtype=int)
    else:
        refs = np.array(refs, dtype=int)
    if tag_boundary:
        border = boundary_vertices(faces)
        refs[border] = np.where(refs[border] == 0, 1, refs[border])
    return HalfEdgeMesh.from_arrays(vertices, faces, refs=refs, writable=writable)


def to_trimesh(hemesh: HalfEdgeMesh) -> trimesh.Trimesh:
    """Convert the live triangles of a half-edge mesh to trimesh."""
    vertices, faces, _ = hemesh.to_arrays()
    return trimesh.Trimesh(vertices=vertices, faces=faces, process=False)


def decimate_trimesh(mesh: trimesh.Trimesh,
                     tag_boundary: bool = False,
                     **options) -> Tuple[trimesh.Trimesh, DecimationReport]:
    """
    Decimate a trimesh object.

    Args:
        mesh: Input mesh, left unchanged
        tag_boundary: Constrain boundary vertices, see :func:`from_trimesh`
        **options: Decimation options (size, maxtriangles, placement, ...)

    Returns:
        Tuple of (decimated mesh, report)
    """
    decimator = MeshDecimator(options)
    hemesh = from_trimesh(mesh, tag_boundary=tag_boundary)
    report = decimator.decimate(hemesh)
    return to_trimesh(hemesh), report


def create_grid_mesh(rows: int = 20, cols: int = 20,
                     width: float = 2.0, height: float = 2.0,
                     amplitude: float = 0.0, noise: float = 0.0,
                     seed: Optional[int] = None) -> trimesh.Trimesh:
    """
    Create an open grid surface for testing boundary preservation.

    Vertices are laid out row by row, ``rows`` by ``cols``, centered on
    the origin.

    Args:
        rows: Number of rows of vertices
        cols: Number of columns of vertices
        width: Extent along X
        height: Extent along Y
        amplitude: Height of the sine wave applied along Z, 0 for a plane
        noise: Standard deviation of random perturbation along Z
        seed: Seed of the random generator used for noise

    Returns:
        Open surface mesh with ``2 * (rows - 1) * (cols - 1)`` faces
    """
    # Create grid vertices
    x = np.linspace(-0.5 * width, 0.5 * width, cols)
    y = np.linspace(-0.5 * height, 0.5 * height, rows)
    X, Y = np.meshgrid(x, y)

    # Create wavy surface
    Z = amplitude * np.sin(3 * X) * np.cos(3 * Y)

    # Flatten to vertex array
    vertices = np.column_stack([X.flatten(), Y.flatten(), Z.flatten()])
    if noise > 0.0:
        rng = np.random.default_rng(seed)
        vertices[:, 2] += rng.normal(scale=noise, size=len(vertices))

    # Create faces (two triangles per grid cell)
    faces = []
    for i in range(rows - 1):
        for j in range(cols - 1):
            idx = i * cols + j
            faces.append([idx, idx + 1, idx + cols])
            faces.append([idx + 1, idx + cols + 1, idx + cols])

    return trimesh.Trimesh(vertices=vertices, faces=np.array(faces).reshape(-1, 3),
                           process=False)


def create_sample_mesh(mesh_type: str = "sphere") -> trimesh.Trimesh:
    """
    Create a sample mesh for testing.

    Args:
        mesh_type: Type of mesh to create:
            - "sphere": Icosphere
            - "torus": Torus
            - "cube": Subdivided cube
            - "cylinder": Cylinder
            - "bunny": Approximation of the Stanford Bunny
            - "grid": Wavy open surface

    Returns:
        Generated trimesh object
    """
    if mesh_type == "sphere":
        mesh = trimesh.creation.icosphere(subdivisions=4, radius=1.0)
    elif mesh_type == "torus":
        mesh = trimesh.creation.torus(major_radius=1.0, minor_radius=0.3,
                                      major_sections=64, minor_sections=32)
    elif mesh_type == "cube":
        mesh = trimesh.creation.box(extents=[1, 1, 1])
        # Subdivide for more faces
        for _ in range(3):
            mesh = mesh.subdivide()
    elif mesh_type == "cylinder":
        mesh = trimesh.creation.cylinder(radius=0.5, height=2.0, sections=64)
    elif mesh_type == "bunny":
        mesh = _create_bunny_approximation()
    elif mesh_type == "grid":
        mesh = create_grid_mesh(40, 40, amplitude=0.2, noise=0.01, seed=0)
    else:
        raise ValueError(f"Unknown sample mesh: {mesh_type}")

    logger.info("Created %s mesh: %d vertices, %d faces", mesh_type,
                len(mesh.vertices), len(mesh.faces))
    return mesh


def _create_bunny_approximation() -> trimesh.Trimesh:
    """
    Create a bunny-like mesh by blending ellipsoids.

    Parts are separate closed surfaces; the result is a valid input with
    several connected components.
    """
    meshes = []

    # Body (ellipsoid)
    body = trimesh.creation.icosphere(subdivisions=3, radius=1.0)
    body.vertices[:, 0] *= 0.8
    body.vertices[:, 2] *= 0.7
    meshes.append(body)

    # Head
    head = trimesh.creation.icosphere(subdivisions=3, radius=0.5)
    head.vertices += np.array([0, 1.3, 0.3])
    meshes.append(head)

    # Ears, elongated in Y
    for x in (-0.2, 0.2):
        ear = trimesh.creation.icosphere(subdivisions=2, radius=0.15)
        ear.vertices[:, 1] *= 3.0
        ear.vertices += np.array([x, 2.1, 0.4])
        meshes.append(ear)

    return trimesh.util.concatenate(meshes)


def get_mesh_info(mesh: trimesh.Trimesh) -> dict:
    """
    Get comprehensive information about a mesh.

    Args:
        mesh: Input mesh

    Returns:
        Dictionary of mesh properties
    """
    info = {
        'vertices': len(mesh.vertices),
        'faces': len(mesh.faces),
        'edges': len(mesh.edges_unique),
        'is_watertight': mesh.is_watertight,
        'is_winding_consistent': mesh.is_winding_consistent,
        'euler_number': mesh.euler_number,
        'area': float(mesh.area),
        'bounds': mesh.bounds.tolist(),
        'scale': float(mesh.scale),
        'boundary_vertices': len(boundary_vertices(mesh.faces)),
    }
    if mesh.is_watertight:
        info['volume'] = float(mesh.volume)
    else:
        info['volume'] = 'N/A (not watertight)'
    return info
