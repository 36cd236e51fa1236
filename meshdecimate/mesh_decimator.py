"""
Mesh Decimator
==============

Main mesh simplification class that performs iterative edge contraction
using Quadric Error Metrics, ordered by a red-black cost tree.

Edges are seeded with a cheap estimate (the merged quadric evaluated at
the better endpoint).  The real placement and its legality are only
computed when an edge reaches the front of the tree; edges which cannot
be contracted are skipped, not removed, and are retried after the next
contraction has changed their neighborhood.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

import numpy as np

from .halfedge import MARKED, NONMANIFOLD, OUTER_VERTEX, HalfEdge, HalfEdgeMesh
from .options import DecimationOptions
from .qem import Quadric, QuadricErrorMetrics
from .quality import check_swap
from .sorted_tree import RedBlackSortedTree

logger = logging.getLogger(__name__)


@dataclass
class DecimationReport:
    """Counters of a decimation run."""
    contracted: int = 0
    not_processed: int = 0
    swapped: int = 0
    could_contract: int = 0
    other: int = 0
    initial_triangles: int = 0
    final_triangles: int = 0

    def summary(self) -> str:
        return "\n".join([
            f"Number of contracted edges: {self.contracted}",
            f"Number of rejected contractions: {self.not_processed}",
            f"Number of swapped edges: {self.swapped}",
            f"Number of edges which could have been contracted: {self.could_contract}",
            f"Number of other edges not contracted: {self.other}",
            f"Triangles: {self.initial_triangles} -> {self.final_triangles}",
        ])


@dataclass
class _Candidate:
    """A contraction which passed all checks."""
    edge: HalfEdge
    quadric: Quadric
    position: np.ndarray
    keep: int


class MeshDecimator:
    """
    Mesh simplification using Quadric Error Metrics (QEM).

    Implements iterative edge collapse with:
    - Cost tree keyed by an endpoint estimate, lazily re-validated
    - Boundary preservation through fin planes and reference tags
    - Link condition and normal inversion checks
    - Optional edge swaps around contracted vertices

    The mesh given to :meth:`decimate` is modified in place.
    """

    def __init__(self, options: Optional[Mapping[str, Any]] = None, **kwargs):
        """
        Initialize the mesh decimator.

        Args:
            options: Mapping of decimation options, see
                     :class:`DecimationOptions`
            **kwargs: Options given as keyword arguments

        Raises:
            ConfigurationError: if options are invalid
        """
        self.options = DecimationOptions.from_dict(options, **kwargs)
        self.qem = QuadricErrorMetrics(placement=self.options.placement,
                                       boundary_weight=self.options.boundary_weight,
                                       tolerance=self.options.tolerance)

        # State variables (initialized per decimation)
        self._mesh: Optional[HalfEdgeMesh] = None
        self._quadrics: Dict[int, Quadric] = {}
        self._tree = RedBlackSortedTree()
        self._collapse_history: List[dict] = []
        self._report = DecimationReport()

    def decimate(self, mesh: HalfEdgeMesh,
                 quadric_checkpoint: Optional[str] = None,
                 progress_callback: Optional[Callable[[float], None]] = None) -> DecimationReport:
        """
        Contract edges until the tolerance or the triangle target is reached.

        Edges incident to a vertex whose writable triangles all have zero
        area are never contracted.

        Args:
            mesh: Half-edge mesh, modified in place
            quadric_checkpoint: Optional path where initial quadrics are saved
            progress_callback: Optional callback for progress updates, it
                               may raise to interrupt the run

        Returns:
            Counters of the run
        """
        self._mesh = mesh
        self._collapse_history = []
        self._report = DecimationReport(initial_triangles=mesh.nr_triangles)
        logger.info("Running decimation on %d triangles", mesh.nr_triangles)

        self._quadrics = self.qem.compute_vertex_quadrics(mesh)
        logger.info("Computed quadrics for %d vertices", len(self._quadrics))
        if quadric_checkpoint is not None:
            self.save_quadrics(quadric_checkpoint)

        self._compute_tree()
        logger.info("Cost tree seeded with %d edges", len(self._tree))

        self._contract_all_edges(progress_callback)

        self._finish_report()
        if progress_callback is not None:
            progress_callback(1.0)
        return self._report

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def _compute_tree(self):
        mesh = self._mesh
        self._tree.clear()
        mesh.unmark_all()
        for t in list(mesh.real_triangles()):
            if not mesh.triangles[t].writable:
                continue
            for i in range(3):
                h = HalfEdge(t, i)
                if mesh.has_attributes(h, MARKED):
                    continue
                mesh.mark_edge(h)
                self._insert_edge(h)
        mesh.unmark_all()

    def _insert_edge(self, h: HalfEdge):
        mesh = self._mesh
        v1 = mesh.origin(h)
        v2 = mesh.destination(h)
        if v1 == OUTER_VERTEX or v2 == OUTER_VERTEX:
            return
        if not (mesh.vertices[v1].readable and mesh.vertices[v2].readable):
            return
        if not (self._has_area(v1) and self._has_area(v2)):
            return
        self._tree.insert(mesh.canonical(h), self._cost(v1, v2))

    def _has_area(self, v: int) -> bool:
        # Vertices only bound to zero-area triangles have an empty quadric
        return self._quadrics[v].area > 0.0

    def _cost(self, v1: int, v2: int) -> float:
        q1 = self._quadrics.get(v1)
        q2 = self._quadrics.get(v2)
        assert q1 is not None, v1
        assert q2 is not None, v2
        return self.qem.edge_cost(self._mesh.xyz(v1), self._mesh.xyz(v2), q1, q2)

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def _contract_all_edges(self, progress_callback: Optional[Callable[[float], None]]):
        mesh = self._mesh
        tree = self._tree
        options = self.options
        target = options.maxtriangles if options.count_mode else 0
        check_cost = options.size is not None
        tolerance = options.tolerance
        debug = logger.isEnabledFor(logging.DEBUG)
        initial = mesh.nr_triangles
        last_progress = 0.0

        while len(tree) > 0 and mesh.nr_triangles > target:
            handle = tree.first()
            cost = tree.get_key(handle) if check_cost else -1.0
            candidate = None
            while handle is not None and cost <= tolerance:
                candidate = self._can_process_edge(handle)
                if candidate is not None:
                    break
                self._report.not_processed += 1
                if debug:
                    logger.debug("Edge not contracted: %s", handle)
                handle = tree.next()
                if handle is not None and check_cost:
                    cost = tree.get_key(handle)
            if candidate is None:
                break

            self._contract(candidate, tree.get_key(handle))

            if progress_callback is not None:
                if options.count_mode:
                    progress = (initial - mesh.nr_triangles) / max(1, initial - target)
                else:
                    progress = 1.0 - mesh.nr_triangles / max(1, initial)
                if progress - last_progress >= 0.05:  # Update every 5%
                    progress_callback(min(1.0, progress))
                    last_progress = progress

    def _can_process_edge(self, h: HalfEdge) -> Optional[_Candidate]:
        """Compute placement of ``h`` and check that it can be contracted."""
        mesh = self._mesh
        if mesh.has_attributes(h, NONMANIFOLD):
            return None
        v1 = mesh.origin(h)
        v2 = mesh.destination(h)
        assert v1 != v2, h
        if not (mesh.vertices[v1].writable and mesh.vertices[v2].writable):
            return None
        s = mesh.sym(h)
        if not mesh.triangles[h.tri].writable:
            return None
        if not mesh.is_outer(s) and not mesh.triangles[s.tri].writable:
            return None
        q1 = self._quadrics[v1]
        q2 = self._quadrics[v2]
        q3 = Quadric.merge(q1, q2)
        position, keep = self.qem.optimal_placement(
            mesh.xyz(v1), mesh.xyz(v2), q1, q2, q3,
            mesh.vertices[v1].ref, mesh.vertices[v2].ref)
        if not mesh.can_collapse(h, position):
            return None
        return _Candidate(h, q3, position, keep)

    def _remove_triangle_edges(self, h: HalfEdge):
        mesh = self._mesh
        for e in (h, mesh.next(h), mesh.prev(h)):
            removed = self._tree.discard(mesh.canonical(e))
            assert mesh.canonical(e) not in self._tree, removed

    def _contract(self, candidate: _Candidate, key: float):
        mesh = self._mesh
        h = candidate.edge
        v1 = mesh.origin(h)
        v2 = mesh.destination(h)
        apex = mesh.apex(h)
        s = mesh.sym(h)

        # Remove all edges of both triangles from the tree
        self._remove_triangle_edges(h)
        if not mesh.is_outer(s):
            self._remove_triangle_edges(s)

        kept = mesh.vertices[v2 if candidate.keep else v1]
        v3 = len(mesh.vertices)
        mesh.collapse(h, kept.clone(candidate.position))
        self._report.contracted += 1
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Contract edge (%d, %d) into %d at %s", v1, v2, v3,
                         candidate.position)
        self._collapse_history.append({
            'edge': (v1, v2),
            'vertex': v3,
            'cost': key,
            'error': candidate.quadric.value(candidate.position),
            'position': candidate.position.copy(),
        })

        # Update edge costs
        del self._quadrics[v1]
        del self._quadrics[v2]
        self._quadrics[v3] = candidate.quadric
        spoke = mesh.find(v3, apex)
        assert spoke is not None, f"{v3} not connected to {apex}"
        for e in mesh.iter_ring(spoke):
            d = mesh.destination(e)
            if d == OUTER_VERTEX or not mesh.vertices[d].readable:
                continue
            if not self._has_area(d):
                continue
            self._tree.update(mesh.canonical(e), self._cost(d, v3))

        if self.options.swap:
            self._swap_around(v3, spoke)

    # ------------------------------------------------------------------
    # Edge swaps
    # ------------------------------------------------------------------

    def _swap_around(self, v3: int, spoke: HalfEdge):
        """Swap edges opposite ``v3`` while it improves triangle quality."""
        mesh = self._mesh
        apex = mesh.destination(spoke)
        h = mesh.next(spoke)
        assert mesh.apex(h) == v3
        while True:
            if self._prepare_swap(h):
                h = mesh.swap(h)
                self._report.swapped += 1
                if logger.isEnabledFor(logging.DEBUG):
                    logger.debug("Swapped edge around %d: %s", v3, h)
                self._reinsert_swapped(h)
            else:
                h = mesh.next_apex(h)
                if mesh.origin(h) == apex:
                    break

    def _prepare_swap(self, h: HalfEdge) -> bool:
        mesh = self._mesh
        if mesh.is_outer(h) or not mesh.can_swap(h):
            return False
        s = mesh.sym(h)
        if not (mesh.triangles[h.tri].writable and mesh.triangles[s.tri].writable):
            return False
        points = [mesh.xyz(v) for v in (mesh.origin(h), mesh.destination(h),
                                        mesh.apex(h), mesh.apex(s))]
        if check_swap(*points, min_cos=self.options.swap_threshold) < 0.0:
            return False
        self._remove_triangle_edges(h)
        self._remove_triangle_edges(s)
        return True

    def _reinsert_swapped(self, h: HalfEdge):
        mesh = self._mesh
        diagonal = mesh.next(h)
        s = mesh.sym(diagonal)
        for e in (h, diagonal, mesh.prev(h), mesh.next(s), mesh.prev(s)):
            if mesh.canonical(e) not in self._tree:
                self._insert_edge(e)

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def _finish_report(self):
        tolerance = self.options.tolerance
        could_contract = 0
        for _, key in self._tree:
            if key > tolerance:
                break
            could_contract += 1
        report = self._report
        report.could_contract = could_contract
        report.other = len(self._tree) - could_contract
        report.final_triangles = self._mesh.nr_triangles
        for line in report.summary().splitlines():
            logger.info(line)

    @property
    def report(self) -> DecimationReport:
        return self._report

    def get_collapse_history(self) -> List[dict]:
        """Get the history of edge collapses performed."""
        return self._collapse_history.copy()

    def vertex_errors(self) -> np.ndarray:
        """
        Compute the quadric error at each live vertex of the decimated mesh.

        Useful for error visualization after decimation.  Values are
        ordered as the vertices returned by ``HalfEdgeMesh.to_arrays``;
        vertices without a quadric get 0.
        """
        mesh = self._mesh
        order = mesh.live_vertices()
        errors = np.zeros(len(order))
        for i, v in enumerate(order):
            q = self._quadrics.get(v)
            if q is not None:
                errors[i] = self.qem.compute_error(q, mesh.xyz(v))
        return errors

    # ------------------------------------------------------------------
    # Quadric checkpoint
    # ------------------------------------------------------------------

    def save_quadrics(self, path: str):
        """Save current vertex quadrics in a compressed ``.npz`` archive."""
        indices = np.array(sorted(self._quadrics), dtype=int)
        quadrics = [self._quadrics[v] for v in indices]
        np.savez_compressed(
            path,
            vertices=indices,
            A=np.array([q.A for q in quadrics]).reshape(-1, 3, 3),
            b=np.array([q.b for q in quadrics]).reshape(-1, 3),
            c=np.array([q.c for q in quadrics], dtype=float),
            area=np.array([q.area for q in quadrics], dtype=float),
        )
        logger.info("Saved %d quadrics to %s", len(indices), path)

    @staticmethod
    def load_quadrics(path: str) -> Dict[int, Quadric]:
        """Load quadrics written by :meth:`save_quadrics`."""
        ret = {}
        with np.load(path) as data:
            for v, A, b, c, area in zip(data['vertices'], data['A'], data['b'],
                                        data['c'], data['area']):
                q = Quadric()
                q.A = A.copy()
                q.b = b.copy()
                q.c = float(c)
                q.area = float(area)
                ret[int(v)] = q
        return ret

