"""
Triangle Quality
================

Shape and dihedral measures used by the post-collapse swap pass and by
the evaluation tools.
"""

import numpy as np

from .halfedge import (
    BOUNDARY,
    NONMANIFOLD,
    HalfEdge,
    HalfEdgeMesh,
)


def triangle_normal(p0: np.ndarray, p1: np.ndarray, p2: np.ndarray) -> np.ndarray:
    """Unit normal of a triangle, zero vector if it is degenerate."""
    normal = np.cross(p1 - p0, p2 - p0)
    norm_length = np.linalg.norm(normal)
    if norm_length < 1e-20:
        return np.zeros(3)
    return normal / norm_length


def shape_quality(p0: np.ndarray, p1: np.ndarray, p2: np.ndarray) -> float:
    """
    Normalized shape quality of a triangle.

    Equals 1 for an equilateral triangle and 0 for a degenerate one:
    ``4 * sqrt(3) * area / (l01^2 + l12^2 + l20^2)``.
    """
    area = 0.5 * np.linalg.norm(np.cross(p1 - p0, p2 - p0))
    lengths = (np.dot(p1 - p0, p1 - p0) + np.dot(p2 - p1, p2 - p1)
               + np.dot(p0 - p2, p0 - p2))
    if lengths <= 0.0:
        return 0.0
    return float(4.0 * np.sqrt(3.0) * area / lengths)


def check_swap(o: np.ndarray, d: np.ndarray, a: np.ndarray, n: np.ndarray,
               min_cos: float = 0.95) -> float:
    """
    Evaluate swapping the diagonal (o, d) of triangles (o, d, a) and
    (d, o, n) into (a, n).

    The swap is accepted only if both triangle pairs, before and after
    the swap, are nearly coplanar (cosine between normals at least
    ``min_cos``), neither new triangle is inverted, and the worst shape
    quality improves.

    Returns:
        The quality gain if the swap is accepted, -1.0 otherwise
    """
    n1 = triangle_normal(o, d, a)
    n2 = triangle_normal(d, o, n)
    if not n1.any() or not n2.any() or np.dot(n1, n2) < min_cos:
        return -1.0
    m1 = triangle_normal(o, n, a)
    m2 = triangle_normal(n, d, a)
    if not m1.any() or not m2.any() or np.dot(m1, m2) < min_cos:
        return -1.0
    average = n1 + n2
    if np.dot(m1, average) <= 0.0 or np.dot(m2, average) <= 0.0:
        return -1.0
    before = min(shape_quality(o, d, a), shape_quality(d, o, n))
    after = min(shape_quality(o, n, a), shape_quality(n, d, a))
    if after <= before:
        return -1.0
    return after - before


def dihedral_quality(mesh: HalfEdgeMesh, t: int) -> float:
    """
    Minimal cosine between the normal of triangle ``t`` and the normals of
    its manifold neighbors.  Values close to -1 reveal folded or inverted
    triangles on smooth surfaces.
    """
    points = mesh.triangle_points(t)
    normal = triangle_normal(*points)
    ret = 1.0
    for i in range(3):
        h = HalfEdge(t, i)
        if mesh.has_attributes(h, BOUNDARY | NONMANIFOLD):
            continue
        other = mesh.sym(h).tri
        dot = float(np.dot(normal, triangle_normal(*mesh.triangle_points(other))))
        if dot < ret:
            ret = dot
    return ret
