"""
Half-Edge Mesh
==============

Triangle mesh topology with local edit operators (edge collapse, vertex
split, edge swap) and the legality predicates needed to use them safely.

A half-edge is the pair ``(triangle index, local index)``.  Local edge
``i`` of triangle ``(v0, v1, v2)`` goes from ``v[i+1]`` to ``v[i+2]`` and
its apex is ``v[i]``, so ``next``/``prev`` are index arithmetic and no
object references cycles are created.

The mesh is closed by *outer* triangles.  Every boundary or non-manifold
real half-edge is glued to an outer triangle whose third corner is the
sentinel vertex ``OUTER_VERTEX``; outer triangles are glued to each other
around every vertex, so that rotating around a vertex never falls off the
surface.  Non-manifold edges (three or more incident triangles, or two
triangles with inconsistent orientation) keep a small map listing every
real half-edge of the edge, shared by all the outer triangles of that
edge.  Manifold edges only store a single adjacent half-edge.

Vertices record one triangle per fan in ``Vertex.link``; only
non-manifold vertices have more than one fan.
"""

import logging
from dataclasses import dataclass, field
from enum import IntFlag
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Sequence, Set, Tuple

import numpy as np

from .exceptions import TopologyError

logger = logging.getLogger(__name__)

# Reserved index of the vertex bounding the mesh
OUTER_VERTEX = -1


class EdgeAttributes(IntFlag):
    """Half-edge attributes."""
    BOUNDARY = 1 << 0      # edge lies on a boundary
    OUTER = 1 << 1         # edge belongs to an outer triangle
    SWAPPED = 1 << 2       # edge has been swapped
    MARKED = 1 << 3        # general purpose mark
    QUAD = 1 << 4          # inner edge of a quadrangle
    NONMANIFOLD = 1 << 5   # edge is shared by more than two triangles


BOUNDARY = EdgeAttributes.BOUNDARY
OUTER = EdgeAttributes.OUTER
SWAPPED = EdgeAttributes.SWAPPED
MARKED = EdgeAttributes.MARKED
QUAD = EdgeAttributes.QUAD
NONMANIFOLD = EdgeAttributes.NONMANIFOLD

_NEXT = (1, 2, 0)
_PREV = (2, 0, 1)


class HalfEdge(NamedTuple):
    """Handle to the local edge ``local`` of triangle ``tri``."""
    tri: int
    local: int


@dataclass(eq=False)
class Vertex:
    """Mesh vertex."""
    xyz: np.ndarray
    ref: int = 0
    readable: bool = True
    writable: bool = True
    alive: bool = True
    link: List[int] = field(default_factory=list)

    def clone(self, xyz: Optional[Sequence[float]] = None) -> "Vertex":
        """Copy reference tag and flags, optionally at another location."""
        position = self.xyz if xyz is None else xyz
        return Vertex(np.array(position, dtype=float), ref=self.ref,
                      readable=self.readable, writable=self.writable)


class Triangle:
    """Mesh triangle: vertex indices, adjacency and per-edge attributes."""

    __slots__ = ("v", "adj", "attrs", "outer", "writable", "alive")

    def __init__(self, v0: int, v1: int, v2: int, outer: bool = False,
                 writable: bool = True):
        self.v = [v0, v1, v2]
        self.adj: List[Optional[HalfEdge]] = [None, None, None]
        if outer:
            self.attrs = [int(OUTER)] * 3
        else:
            self.attrs = [0, 0, 0]
        self.outer = outer
        self.writable = writable and not outer
        self.alive = True

    def __repr__(self):
        kind = "outer" if self.outer else "real"
        return f"Triangle({self.v[0]}, {self.v[1]}, {self.v[2]}, {kind})"


class HalfEdgeMesh:
    """
    Triangle mesh stored as flat vertex and triangle tables.

    Removed vertices and triangles are flagged dead and their slots are
    not reused, so indices held by callers stay meaningful.
    """

    def __init__(self):
        self.vertices: List[Vertex] = []
        self.triangles: List[Triangle] = []
        # outer triangle of a non-manifold edge -> {real triangle: local}
        self._nonmanifold: Dict[int, Dict[int, int]] = {}
        self._nr_triangles = 0

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_arrays(cls, vertices: np.ndarray, faces: np.ndarray,
                    refs: Optional[Sequence[int]] = None,
                    writable: Optional[Sequence[bool]] = None) -> "HalfEdgeMesh":
        """
        Build a mesh from vertex coordinates and triangle indices.

        Args:
            vertices: (N, 3) array of vertex positions
            faces: (M, 3) array of counter-clockwise vertex indices
            refs: Optional per-vertex reference tags (non-zero = constrained)
            writable: Optional per-face mask of the region to be modified

        Returns:
            The half-edge mesh, with adjacency and outer triangles built
        """
        mesh = cls()
        vertices = np.asarray(vertices, dtype=float).reshape(-1, 3)
        faces = np.asarray(faces, dtype=int).reshape(-1, 3)
        for i, xyz in enumerate(vertices):
            mesh.add_vertex(xyz, ref=0 if refs is None else int(refs[i]))
        for fi, face in enumerate(faces):
            a, b, c = (int(x) for x in face)
            if a == b or b == c or c == a:
                raise TopologyError(f"Face {fi} is degenerate: {face.tolist()}")
            mesh._add_triangle(a, b, c,
                               writable=True if writable is None else bool(writable[fi]))
        mesh.build_adjacency()
        mesh.update_vertex_flags()
        return mesh

    def add_vertex(self, xyz, ref: int = 0) -> int:
        """Append a vertex (a :class:`Vertex` or a position) and return its index."""
        if isinstance(xyz, Vertex):
            vertex = xyz
        else:
            vertex = Vertex(np.array(xyz, dtype=float), ref=ref)
        self.vertices.append(vertex)
        return len(self.vertices) - 1

    def _add_triangle(self, v0: int, v1: int, v2: int, outer: bool = False,
                      writable: bool = True) -> int:
        self.triangles.append(Triangle(v0, v1, v2, outer=outer, writable=writable))
        if not outer:
            self._nr_triangles += 1
        return len(self.triangles) - 1

    def build_adjacency(self):
        """Glue real triangles, then close boundaries and non-manifold
        edges with outer triangles and record vertex fans."""
        edges: Dict[Tuple[int, int], List[HalfEdge]] = {}
        incident: Dict[int, List[int]] = {}
        for t, tri in enumerate(self.triangles):
            if not tri.alive or tri.outer:
                continue
            for i in range(3):
                h = HalfEdge(t, i)
                a, b = self.origin(h), self.destination(h)
                edges.setdefault((min(a, b), max(a, b)), []).append(h)
                incident.setdefault(tri.v[i], []).append(t)

        nr_boundary = 0
        nr_nonmanifold = 0
        for hes in edges.values():
            if len(hes) == 2 and self.origin(hes[0]) == self.destination(hes[1]):
                self._glue(hes[0], hes[1])
            elif len(hes) == 1:
                self._close(hes[0], BOUNDARY)
                nr_boundary += 1
            else:
                links = {h.tri: h.local for h in hes}
                for h in hes:
                    self._nonmanifold[self._close(h, NONMANIFOLD)] = links
                nr_nonmanifold += 1

        for v, vertex in enumerate(self.vertices):
            vertex.link = []
            pending = set(incident.get(v, ()))
            while pending:
                start = self._rewind_fan(self._edge_from(min(pending), v))
                pending -= self._close_fan(start)
                vertex.link.append(start.tri)

        logger.debug("Adjacency built: %d triangles, %d boundary edges, "
                     "%d non-manifold edges", self._nr_triangles, nr_boundary,
                     nr_nonmanifold)

    def _glue(self, h1: HalfEdge, h2: HalfEdge):
        self.triangles[h1.tri].adj[h1.local] = h2
        self.triangles[h2.tri].adj[h2.local] = h1

    def _close(self, h: HalfEdge, attr: int) -> int:
        """Glue an outer triangle to the open half-edge ``h``."""
        o = self._add_triangle(OUTER_VERTEX, self.destination(h), self.origin(h),
                               outer=True)
        oh = HalfEdge(o, 0)
        self._glue(h, oh)
        self.set_attributes(h, attr)
        self.set_attributes(oh, attr)
        return o

    def _rewind_fan(self, h: HalfEdge) -> HalfEdge:
        """Rotate clockwise around the origin of ``h`` through real
        triangles, stop at the first edge of an open fan."""
        cur = h
        while True:
            p = self.prev(cur)
            s = self.triangles[p.tri].adj[p.local]
            if self.triangles[s.tri].outer:
                return cur
            cur = s
            if cur == h:
                return h

    def _close_fan(self, start: HalfEdge) -> Set[int]:
        fan = set()
        cur = start
        while True:
            fan.add(cur.tri)
            s = self.triangles[cur.tri].adj[cur.local]
            if self.triangles[s.tri].outer:
                # Open fan: glue the outer triangles of both ends
                g = self.triangles[start.tri].adj[_PREV[start.local]]
                self._glue(HalfEdge(s.tri, 1), HalfEdge(g.tri, 2))
                return fan
            cur = self.next(s)
            if cur == start:
                return fan

    def update_vertex_flags(self):
        """Derive vertex readable/writable flags from triangle flags.

        A vertex is readable when one of its triangles is writable, and
        writable when all of them are.
        """
        seen = [False] * len(self.vertices)
        readable = [False] * len(self.vertices)
        writable = [True] * len(self.vertices)
        for tri in self.triangles:
            if not tri.alive or tri.outer:
                continue
            for v in tri.v:
                seen[v] = True
                if tri.writable:
                    readable[v] = True
                else:
                    writable[v] = False
        for v, vertex in enumerate(self.vertices):
            vertex.readable = readable[v]
            vertex.writable = seen[v] and writable[v]

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def nr_triangles(self) -> int:
        """Number of live real triangles."""
        return self._nr_triangles

    def real_triangles(self) -> Iterator[int]:
        for t, tri in enumerate(self.triangles):
            if tri.alive and not tri.outer:
                yield t

    def xyz(self, v: int) -> np.ndarray:
        return self.vertices[v].xyz

    def triangle_points(self, t: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        v = self.triangles[t].v
        return self.vertices[v[0]].xyz, self.vertices[v[1]].xyz, self.vertices[v[2]].xyz

    def is_outer(self, h: HalfEdge) -> bool:
        return self.triangles[h.tri].outer

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def next(self, h: HalfEdge) -> HalfEdge:
        return HalfEdge(h.tri, _NEXT[h.local])

    def prev(self, h: HalfEdge) -> HalfEdge:
        return HalfEdge(h.tri, _PREV[h.local])

    def sym(self, h: HalfEdge) -> HalfEdge:
        """Opposite half-edge; on the outer triangle for boundary and
        non-manifold edges."""
        return self.triangles[h.tri].adj[h.local]

    def origin(self, h: HalfEdge) -> int:
        return self.triangles[h.tri].v[_NEXT[h.local]]

    def destination(self, h: HalfEdge) -> int:
        return self.triangles[h.tri].v[_PREV[h.local]]

    def apex(self, h: HalfEdge) -> int:
        return self.triangles[h.tri].v[h.local]

    def next_origin(self, h: HalfEdge) -> HalfEdge:
        """Next half-edge counter-clockwise around the origin, within the
        current fan."""
        return self.next(self.sym(h))

    def next_apex(self, h: HalfEdge) -> HalfEdge:
        """Next half-edge counter-clockwise with the same apex."""
        return self.next(self.next_origin(self.prev(h)))

    def next_origin_loop(self, h: HalfEdge) -> HalfEdge:
        """
        Next half-edge around the origin, visiting every fan.

        On a vertex with a single fan this is :meth:`next_origin`.  On a
        non-manifold vertex the fans are chained in the order of
        ``Vertex.link``, so repeated calls always come back to ``h``.
        """
        v = self.origin(h)
        if v == OUTER_VERTEX or len(self.vertices[v].link) <= 1:
            return self.next_origin(h)
        ring = self._multi_fan_ring(v)
        return ring[(ring.index(h) + 1) % len(ring)]

    def iter_ring(self, h: HalfEdge) -> Iterator[HalfEdge]:
        """Yield ``h`` and the following half-edges given by
        :meth:`next_origin_loop` until ``h`` comes back."""
        v = self.origin(h)
        if v != OUTER_VERTEX and len(self.vertices[v].link) > 1:
            ring = self._multi_fan_ring(v)
            k = ring.index(h)
            yield from ring[k:]
            yield from ring[:k]
            return
        cur = h
        while True:
            yield cur
            cur = self.next_origin(cur)
            if cur == h:
                return

    def fan_edges(self, v: int) -> List[HalfEdge]:
        """All half-edges starting from ``v``, real and outer, every fan."""
        link = self.vertices[v].link
        if len(link) == 1:
            return self._fan_cycle(v, link[0])
        return self._multi_fan_ring(v)

    def _multi_fan_ring(self, v: int) -> List[HalfEdge]:
        ring = []
        for t in self.vertices[v].link:
            ring.extend(self._fan_cycle(v, t))
        return ring

    def _fan_cycle(self, v: int, t: int) -> List[HalfEdge]:
        start = self._edge_from(t, v)
        ret = [start]
        cur = self.next_origin(start)
        while cur != start:
            ret.append(cur)
            cur = self.next_origin(cur)
        return ret

    def _edge_from(self, t: int, v: int) -> HalfEdge:
        """Half-edge of triangle ``t`` whose origin is ``v``."""
        return HalfEdge(t, _PREV[self.triangles[t].v.index(v)])

    def neighbors(self, v: int) -> Set[int]:
        """Vertices connected to ``v`` by an edge, the sentinel included."""
        return {self.destination(h) for h in self.fan_edges(v)}

    def find(self, v: int, w: int) -> Optional[HalfEdge]:
        """Half-edge from ``v`` to ``w``, taken from a real triangle if
        possible."""
        found = None
        for h in self.fan_edges(v):
            if self.destination(h) == w:
                if not self.triangles[h.tri].outer:
                    return h
                found = h
        return found

    def nonmanifold_fans(self, h: HalfEdge) -> List[HalfEdge]:
        """Real half-edges sharing the non-manifold edge of ``h``."""
        t = h.tri if self.triangles[h.tri].outer else self.sym(h).tri
        return [HalfEdge(tri, local) for tri, local in self._nonmanifold[t].items()]

    def canonical(self, h: HalfEdge) -> HalfEdge:
        """Single representative of the undirected edge of ``h``: the real
        side of a boundary edge, the smallest real half-edge otherwise."""
        tri = self.triangles[h.tri]
        if tri.attrs[h.local] & NONMANIFOLD:
            return min(self.nonmanifold_fans(h))
        s = tri.adj[h.local]
        s_outer = self.triangles[s.tri].outer
        if tri.outer and not s_outer:
            return s
        if s_outer and not tri.outer:
            return h
        return min(h, s)

    # ------------------------------------------------------------------
    # Attributes
    # ------------------------------------------------------------------

    def has_attributes(self, h: HalfEdge, attr: int) -> bool:
        return bool(self.triangles[h.tri].attrs[h.local] & attr)

    def set_attributes(self, h: HalfEdge, attr: int):
        self.triangles[h.tri].attrs[h.local] |= int(attr)

    def clear_attributes(self, h: HalfEdge, attr: int):
        self.triangles[h.tri].attrs[h.local] &= ~int(attr)

    def mark_edge(self, h: HalfEdge):
        """Set MARKED on both sides of the undirected edge of ``h``."""
        if self.has_attributes(h, NONMANIFOLD):
            for e in self.nonmanifold_fans(h):
                self.set_attributes(e, MARKED)
                self.set_attributes(self.sym(e), MARKED)
        else:
            self.set_attributes(h, MARKED)
            self.set_attributes(self.sym(h), MARKED)

    def unmark_all(self):
        mask = ~int(MARKED)
        for tri in self.triangles:
            if tri.alive:
                tri.attrs = [a & mask for a in tri.attrs]

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def area(self, h: HalfEdge) -> float:
        """Area of the triangle of ``h``, 0 for outer triangles."""
        if self.triangles[h.tri].outer:
            return 0.0
        p0, p1, p2 = self.triangle_points(h.tri)
        return 0.5 * float(np.linalg.norm(np.cross(p1 - p0, p2 - p0)))

    def normal(self, h: HalfEdge) -> np.ndarray:
        """Non-normalized normal of the triangle of ``h`` (twice its area)."""
        p0, p1, p2 = self.triangle_points(h.tri)
        return np.cross(p1 - p0, p2 - p0)

    # ------------------------------------------------------------------
    # Legality checks
    # ------------------------------------------------------------------

    def check_new_ring_normals(self, h: HalfEdge, point: np.ndarray) -> bool:
        """
        Check that no triangle around the origin of ``h`` is inverted or
        becomes degenerate if the origin is moved to ``point``.

        Triangles containing the destination of ``h`` are skipped, they
        are removed when the edge is collapsed.

        Returns:
            False if the new position produces an inverted triangle
        """
        v = self.origin(h)
        d = self.destination(h)
        for e in self.fan_edges(v):
            tri = self.triangles[e.tri]
            if tri.outer or d in tri.v:
                continue
            # e goes from v to destination(e), apex(e) closes the triangle
            p1 = self.vertices[self.destination(e)].xyz
            p2 = self.vertices[self.apex(e)].xyz
            old = np.cross(p1 - self.vertices[v].xyz, p2 - self.vertices[v].xyz)
            new = np.cross(p1 - point, p2 - point)
            if np.dot(old, new) <= 1e-12 * np.dot(old, old):
                return False
        return True

    def _has_triangle(self, v: int, a: int, b: int) -> bool:
        for e in self.fan_edges(v):
            d = self.destination(e)
            c = self.apex(e)
            if (d == a and c == b) or (d == b and c == a):
                return True
        return False

    def can_collapse(self, h: HalfEdge, point: np.ndarray) -> bool:
        """
        Tell whether the edge ``h`` can be contracted into ``point``.

        The link condition must hold: origin and destination may only
        share the apices of the two triangles incident to the edge (the
        outer sentinel counts as a vertex, so two boundaries are never
        pinched), and these apices must not form a triangle with both
        endpoints.  Non-manifold edges are rejected, and no surviving
        triangle may be inverted.
        """
        tri = self.triangles[h.tri]
        if tri.outer:
            return False
        s = tri.adj[h.local]
        for e in (h, self.next(h), self.prev(h), s, self.next(s), self.prev(s)):
            if self.triangles[e.tri].attrs[e.local] & NONMANIFOLD:
                return False
        v1 = self.origin(h)
        v2 = self.destination(h)
        a1 = self.apex(h)
        a2 = self.apex(s)
        if a1 == a2:
            return False
        common = self.neighbors(v1) & self.neighbors(v2)
        common.discard(a1)
        common.discard(a2)
        if common:
            return False
        if self._has_triangle(v1, a1, a2) and self._has_triangle(v2, a1, a2):
            return False
        return self.check_new_ring_normals(h, point) and self.check_new_ring_normals(s, point)

    def can_swap(self, h: HalfEdge) -> bool:
        """Tell whether the diagonal of ``h`` can be flipped."""
        tri = self.triangles[h.tri]
        s = tri.adj[h.local]
        if s is None or tri.outer or self.triangles[s.tri].outer:
            return False
        if tri.attrs[h.local] & (BOUNDARY | NONMANIFOLD):
            return False
        for e in (self.next(h), self.prev(h), self.next(s), self.prev(s)):
            if self.triangles[e.tri].attrs[e.local] & NONMANIFOLD:
                return False
        a = self.apex(h)
        n = self.apex(s)
        return a != n and n not in self.neighbors(a)

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def collapse(self, h: HalfEdge, vertex: Vertex) -> HalfEdge:
        """
        Contract edge ``h`` into a new vertex.

        Origin and destination are removed, the triangles incident to the
        edge are deleted and their other neighbors are glued together.
        :meth:`can_collapse` must have returned True, no check is done
        here.

        Args:
            h: Edge to contract, on a real triangle
            vertex: The resulting vertex, appended to the mesh

        Returns:
            Half-edge starting from the new vertex whose apex is the apex
            of ``h``
        """
        s = self.sym(h)
        v1 = self.origin(h)
        v2 = self.destination(h)
        a1 = self.apex(h)
        a2 = self.apex(s)
        s1 = self.sym(self.next(h))
        s2 = self.sym(self.prev(h))
        t1 = self.sym(self.next(s))
        t2 = self.sym(self.prev(s))
        old_links = self.vertices[v1].link + self.vertices[v2].link
        touched = {e.tri for e in self.fan_edges(v1)}
        touched.update(e.tri for e in self.fan_edges(v2))

        v3 = self.add_vertex(vertex)
        for t in touched:
            tv = self.triangles[t].v
            for i in range(3):
                if tv[i] == v1 or tv[i] == v2:
                    tv[i] = v3
        self._glue_merged(s1, s2)
        self._glue_merged(t1, t2)
        for t in (h.tri, s.tri):
            tri = self.triangles[t]
            tri.alive = False
            if not tri.outer:
                self._nr_triangles -= 1
        for v in (v1, v2):
            self.vertices[v].alive = False
            self.vertices[v].link = []

        self._relink(a1, h.tri, s2.tri if self.triangles[s1.tri].outer else s1.tri)
        if a2 != OUTER_VERTEX:
            self._relink(a2, s.tri, t2.tri if self.triangles[t1.tri].outer else t1.tri)
        self.vertices[v3].link = self._fans_of(
            v3, old_links + [s1.tri, s2.tri, t1.tri, t2.tri])
        return self.next(s1)

    def _glue_merged(self, x: HalfEdge, y: HalfEdge):
        self._glue(x, y)
        mixed = self.triangles[x.tri].outer != self.triangles[y.tri].outer
        for e in (x, y):
            self.clear_attributes(e, BOUNDARY | SWAPPED | MARKED)
            if mixed:
                self.set_attributes(e, BOUNDARY)

    def _relink(self, v: int, dead: int, replacement: int):
        link = self.vertices[v].link
        for i, t in enumerate(link):
            if t == dead:
                link[i] = replacement

    def _fans_of(self, v: int, candidates: Iterable[int]) -> List[int]:
        link = []
        seen: Set[int] = set()
        for t in candidates:
            tri = self.triangles[t]
            if t in seen or not tri.alive or v not in tri.v:
                continue
            seen.update(e.tri for e in self._fan_cycle(v, t))
            link.append(t)
        return link

    def split(self, h: HalfEdge, vertex: Vertex) -> HalfEdge:
        """
        Duplicate the origin A of ``h = (A, B)`` into a new vertex N.

        Triangle (A, B, C) becomes (N, B, C) and triangles (A, N, C) and
        (N, A, B) are inserted, C being the apex of ``h``.  This is the
        inverse of :meth:`collapse`; new triangles are not checked for
        inversion.

        Returns:
            Half-edge from A to N whose apex is C
        """
        tri = self.triangles[h.tri]
        g = self.prev(h)
        if tri.outer or self.has_attributes(h, NONMANIFOLD) or self.has_attributes(g, NONMANIFOLD):
            raise TopologyError(f"Cannot split {h}")
        a = self.origin(h)
        b = self.destination(h)
        c = self.apex(h)
        x_h = self.sym(h)
        x_g = self.sym(g)
        n = self.add_vertex(vertex)
        tri.v[_NEXT[h.local]] = n

        ta = self._add_triangle(c, a, n, writable=tri.writable)
        tb = self._add_triangle(b, n, a, writable=tri.writable)
        self._glue(HalfEdge(ta, 0), HalfEdge(tb, 0))
        self._glue(HalfEdge(ta, 1), g)
        self._glue(HalfEdge(ta, 2), x_g)
        self._glue(HalfEdge(tb, 1), x_h)
        self._glue(HalfEdge(tb, 2), h)
        self.triangles[ta].attrs[2] = tri.attrs[g.local] & ~int(MARKED)
        self.triangles[tb].attrs[1] = tri.attrs[h.local] & ~int(MARKED)
        self.clear_attributes(h, BOUNDARY | SWAPPED)
        self.clear_attributes(g, BOUNDARY | SWAPPED)

        self._relink(a, h.tri, ta)
        self.vertices[n].link = [h.tri]
        return HalfEdge(ta, 0)

    def swap(self, h: HalfEdge) -> HalfEdge:
        """
        Flip the diagonal shared by the two triangles adjacent to ``h``.

        Returns:
            The swapped edge; it has the same origin and apex as ``h``

        Raises:
            TopologyError: if ``h`` is a boundary, outer or non-manifold
            edge, or if the new diagonal already exists
        """
        if not self.can_swap(h):
            raise TopologyError(f"Cannot swap {h}")
        s = self.sym(h)
        o = self.origin(h)
        d = self.destination(h)
        a = self.apex(h)
        n = self.apex(s)
        x1, ax1 = self.sym(self.next(h)), self.triangles[h.tri].attrs[_NEXT[h.local]]
        x2, ax2 = self.sym(self.prev(h)), self.triangles[h.tri].attrs[_PREV[h.local]]
        y1, ay1 = self.sym(self.next(s)), self.triangles[s.tri].attrs[_NEXT[s.local]]
        y2, ay2 = self.sym(self.prev(s)), self.triangles[s.tri].attrs[_PREV[s.local]]

        t = self.triangles[h.tri]
        u = self.triangles[s.tri]
        t.v = [a, o, n]
        u.v = [a, n, d]
        self._glue(HalfEdge(h.tri, 0), y1)
        self._glue(HalfEdge(h.tri, 1), HalfEdge(s.tri, 2))
        self._glue(HalfEdge(h.tri, 2), x2)
        self._glue(HalfEdge(s.tri, 0), y2)
        self._glue(HalfEdge(s.tri, 1), x1)
        t.attrs = [ay1, int(SWAPPED), ax2]
        u.attrs = [ay2, ax1, int(SWAPPED)]

        self._relink(o, s.tri, h.tri)
        self._relink(d, h.tri, s.tri)
        return HalfEdge(h.tri, 0)

    # ------------------------------------------------------------------
    # Export and validation
    # ------------------------------------------------------------------

    def live_vertices(self) -> List[int]:
        """Sorted indices of the vertices used by a live real triangle."""
        used = set()
        for t in self.real_triangles():
            used.update(self.triangles[t].v)
        return sorted(used)

    def to_arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Compact the live part of the mesh.

        Returns:
            Tuple of (vertices (N, 3), faces (M, 3), refs (N,)), vertices
            are ordered as in :meth:`live_vertices`
        """
        order = self.live_vertices()
        remap = {v: i for i, v in enumerate(order)}
        faces = [[remap[v] for v in self.triangles[t].v] for t in self.real_triangles()]
        vertices = np.array([self.vertices[v].xyz for v in order], dtype=float).reshape(-1, 3)
        refs = np.array([self.vertices[v].ref for v in order], dtype=int)
        faces_array = np.array(faces, dtype=int).reshape(-1, 3)
        return vertices, faces_array, refs

    def check_valid(self):
        """
        Verify structural invariants.

        Raises:
            TopologyError: on the first inconsistency found
        """
        seen_faces = set()
        count = 0
        for t, tri in enumerate(self.triangles):
            if not tri.alive:
                continue
            for i in range(3):
                h = HalfEdge(t, i)
                s = tri.adj[i]
                if s is None:
                    raise TopologyError(f"{h} is not glued")
                other = self.triangles[s.tri]
                if not other.alive:
                    raise TopologyError(f"{h} glued to removed triangle {s.tri}")
                if other.adj[s.local] != h:
                    raise TopologyError(f"sym(sym({h})) != {h}")
                if self.origin(s) != self.destination(h) or self.destination(s) != self.origin(h):
                    raise TopologyError(f"{h} and {s} do not share endpoints")
            for v in tri.v:
                if v != OUTER_VERTEX and not self.vertices[v].alive:
                    raise TopologyError(f"Triangle {t} uses removed vertex {v}")
            if tri.outer:
                if tri.v.count(OUTER_VERTEX) != 1:
                    raise TopologyError(f"Outer triangle {t} is malformed: {tri.v}")
                continue
            count += 1
            if len(set(tri.v)) != 3 or OUTER_VERTEX in tri.v:
                raise TopologyError(f"Triangle {t} is degenerate: {tri.v}")
            key = frozenset(tri.v)
            if key in seen_faces:
                raise TopologyError(f"Triangle {t} is duplicated: {tri.v}")
            seen_faces.add(key)
        if count != self._nr_triangles:
            raise TopologyError(f"Triangle count mismatch: {count} != {self._nr_triangles}")
        for v, vertex in enumerate(self.vertices):
            if not vertex.alive:
                continue
            for t in vertex.link:
                if not self.triangles[t].alive or v not in self.triangles[t].v:
                    raise TopologyError(f"Vertex {v} has a stale link to triangle {t}")
