"""
Quadric Error Metrics (QEM) Implementation
==========================================

Vertex error quadrics and placement of the point resulting from an edge
contraction.

The quadric of a plane ``n.x + d = 0`` (``n`` unit normal) is stored as
the triple (A, b, c) = (n n^T, d n, d^2); the squared distance of a point
``x`` to the plane is then ``x^T A x + 2 b^T x + c``.  A vertex quadric is
the sum of the quadrics of the planes of its triangles.  Quadrics also
carry the area of the triangles they were built from, and two quadrics
are merged with an area-weighted average instead of a plain sum, so that
costs keep the scale of a squared distance and can be compared against a
squared length tolerance.

Based on: "Surface Simplification Using Quadric Error Metrics"
by Michael Garland and Paul S. Heckbert (SIGGRAPH 1997)
"""

import logging
import warnings
from enum import Enum
from typing import Dict, Tuple, Union

import numpy as np

from .halfedge import BOUNDARY, NONMANIFOLD, HalfEdge, HalfEdgeMesh

logger = logging.getLogger(__name__)


class Placement(Enum):
    """Strategy used to place the vertex resulting from a contraction."""
    VERTEX = "vertex"      # cheaper endpoint
    MIDDLE = "middle"      # middle of the edge
    EDGE = "edge"          # minimum of the quadric on the edge
    OPTIMAL = "optimal"    # unconstrained minimum of the quadric

    @classmethod
    def parse(cls, value: Union["Placement", str]) -> "Placement":
        """Accept an enum member or a case-insensitive member name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                pass
        raise ValueError(f"Unknown placement: {value!r}")


class Quadric:
    """Error quadric of a vertex: ``value(x) = x^T A x + 2 b^T x + c``."""

    __slots__ = ("A", "b", "c", "area")

    def __init__(self):
        self.A = np.zeros((3, 3))
        self.b = np.zeros(3)
        self.c = 0.0
        self.area = 0.0

    def add_error(self, normal: np.ndarray, d: float, weight: float):
        """Accumulate the plane ``normal.x + d = 0`` with area ``weight``."""
        self.A += np.outer(normal, normal)
        self.b += d * normal
        self.c += d * d
        self.area += weight

    @classmethod
    def merge(cls, q1: "Quadric", q2: "Quadric") -> "Quadric":
        """
        Area-weighted combination of two quadrics.

        The result is a convex combination of ``q1`` and ``q2``, its area
        is the sum of both areas.  Both areas must be positive.
        """
        assert q1.area > 0.0, q1
        assert q2.area > 0.0, q2
        total = q1.area + q2.area
        l1 = q1.area / total
        l2 = q2.area / total
        ret = cls()
        ret.A = l1 * q1.A + l2 * q2.A
        ret.b = l1 * q1.b + l2 * q2.b
        ret.c = l1 * q1.c + l2 * q2.c
        ret.area = total
        return ret

    def value(self, point: np.ndarray) -> float:
        return float(point @ self.A @ point + 2.0 * np.dot(self.b, point) + self.c)

    def copy(self) -> "Quadric":
        ret = Quadric()
        ret.A = self.A.copy()
        ret.b = self.b.copy()
        ret.c = self.c
        ret.area = self.area
        return ret

    def __repr__(self):
        return (f"Quadric(A={self.A.tolist()}, b={self.b.tolist()}, "
                f"c={self.c}, area={self.area})")


class QuadricErrorMetrics:
    """
    Builds vertex quadrics on a half-edge mesh and evaluates contractions.

    Triangle planes are weighted by ``2 * area / tolerance``.  Boundary
    and non-manifold edges additionally contribute a *fin* plane, which
    contains the edge and is orthogonal to its triangle; it is scaled by
    ``boundary_weight`` so that contractions moving boundary vertices off
    their boundary line are penalized.
    """

    def __init__(self, placement: Placement = Placement.EDGE,
                 boundary_weight: float = 100.0, tolerance: float = 1.0):
        """
        Initialize QEM calculator.

        Args:
            placement: Position strategy for contracted vertices
            boundary_weight: Multiplier of boundary fin planes.
                            Higher values preserve boundaries better.
            tolerance: Squared length used to normalize triangle weights
        """
        self.placement = Placement.parse(placement)
        self.boundary_weight = boundary_weight
        self.tolerance = tolerance

    def compute_face_plane(self, p0: np.ndarray, p1: np.ndarray,
                           p2: np.ndarray) -> Tuple[np.ndarray, float, float]:
        """
        Compute the plane of a triangle.

        Args:
            p0, p1, p2: Triangle vertices as 3D points

        Returns:
            Tuple of (unit normal, d, weight) with ``normal.x + d = 0`` on
            the plane.  A degenerate triangle gives a zero normal and zero
            weight.
        """
        normal = np.cross(p1 - p0, p2 - p0)
        # This is twice the area
        norm_length = np.linalg.norm(normal)
        if norm_length <= 1e-20:
            return np.zeros(3), 0.0, 0.0
        normal = normal / norm_length
        d = -np.dot(normal, p0)
        return normal, d, norm_length / self.tolerance

    def compute_fin_plane(self, p0: np.ndarray, p1: np.ndarray,
                          face_normal: np.ndarray) -> Tuple[np.ndarray, float]:
        """
        Virtual plane through edge (p0, p1), orthogonal to its triangle.

        The plane vector is not normalized: its squared norm scales the
        penalty with the squared edge length.
        """
        vec = self.boundary_weight * np.cross(p1 - p0, face_normal)
        return vec, -np.dot(vec, p0)

    def compute_vertex_quadrics(self, mesh: HalfEdgeMesh) -> Dict[int, Quadric]:
        """
        Compute initial error quadrics for all vertices of writable
        triangles.

        Args:
            mesh: Half-edge mesh

        Returns:
            Dictionary mapping vertex index to its quadric
        """
        quadrics: Dict[int, Quadric] = {}
        normals = {}
        for t in mesh.real_triangles():
            tri = mesh.triangles[t]
            if not tri.writable:
                continue
            normal, d, weight = self.compute_face_plane(*mesh.triangle_points(t))
            normals[t] = normal
            for v in tri.v:
                q = quadrics.get(v)
                if q is None:
                    q = quadrics[v] = Quadric()
                q.add_error(normal, d, weight)

        # Penalty for boundary and non-manifold edges
        nr_fins = 0
        for t, normal in normals.items():
            for i in range(3):
                h = HalfEdge(t, i)
                if not mesh.has_attributes(h, BOUNDARY | NONMANIFOLD):
                    continue
                v1 = mesh.origin(h)
                v2 = mesh.destination(h)
                vec, d = self.compute_fin_plane(mesh.xyz(v1), mesh.xyz(v2), normal)
                quadrics[v1].add_error(vec, d, 0.0)
                quadrics[v2].add_error(vec, d, 0.0)
                nr_fins += 1
        logger.debug("Computed %d quadrics, %d fin planes", len(quadrics), nr_fins)
        return quadrics

    def compute_error(self, q: Quadric, point: np.ndarray) -> float:
        """Quadric error at ``point``, clamped to non-negative."""
        return max(0.0, q.value(point))

    def edge_cost(self, p1: np.ndarray, p2: np.ndarray,
                  q1: Quadric, q2: Quadric) -> float:
        """Cost of an edge: the merged quadric at the cheaper endpoint."""
        q3 = Quadric.merge(q1, q2)
        return min(q3.value(p1), q3.value(p2))

    def optimal_placement(self, p1: np.ndarray, p2: np.ndarray,
                          q1: Quadric, q2: Quadric, q3: Quadric,
                          ref1: int = 0, ref2: int = 0) -> Tuple[np.ndarray, int]:
        """
        Compute the position of the vertex replacing edge (p1, p2).

        Args:
            p1, p2: Edge endpoint positions
            q1, q2: Endpoint quadrics
            q3: Merged quadric
            ref1, ref2: Endpoint reference tags

        Returns:
            Tuple of (position, keep) where ``keep`` is 0 or 1, the
            endpoint whose identity is carried by the new vertex
        """
        placement = self.placement
        if ref1 != 0 and ref2 != 0:
            # Never average two constrained locations
            placement = Placement.VERTEX
        if placement == Placement.VERTEX:
            return self._cheaper_endpoint(p1, p2, q3, ref1, ref2)

        keep = 0 if ref1 != 0 else 1
        if placement == Placement.MIDDLE:
            return 0.5 * (p1 + p2), keep

        if placement == Placement.OPTIMAL:
            try:
                with warnings.catch_warnings():
                    warnings.simplefilter("ignore")
                    # Check if matrix is well-conditioned
                    if np.linalg.cond(q3.A) < 1e10:
                        return np.linalg.solve(q3.A, -q3.b), keep
            except np.linalg.LinAlgError:
                pass

        # Minimize q3(p1 + s (p2 - p1)) for s in [0, 1]
        direction = p2 - p1
        den = float(direction @ q3.A @ direction)
        num = float(np.dot(q3.b, direction) + direction @ q3.A @ p1)
        if den > 1e-20 * abs(num):
            s = min(1.0, max(0.0, -num / den))
            return p1 + s * direction, keep
        return self._cheaper_endpoint(p1, p2, q3, ref1, ref2)

    def _cheaper_endpoint(self, p1: np.ndarray, p2: np.ndarray, q3: Quadric,
                          ref1: int, ref2: int) -> Tuple[np.ndarray, int]:
        # A tagged vertex is not discarded for an untagged one
        if (ref1 != 0) != (ref2 != 0):
            return (p1.copy(), 0) if ref1 != 0 else (p2.copy(), 1)
        if q3.value(p2) < q3.value(p1):
            return p2.copy(), 1
        return p1.copy(), 0
