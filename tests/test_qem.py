import numpy as np
import pytest

from meshdecimate.qem import Placement, Quadric, QuadricErrorMetrics


def plane_quadric(planes, area=1.0):
    """Quadric of planes given as (normal, d) pairs."""
    q = Quadric()
    for normal, d in planes:
        q.add_error(np.asarray(normal, dtype=float), d, 0.0)
    q.area = area
    return q


X_PLANE = ((1.0, 0.0, 0.0), 0.0)
Y_PLANE = ((0.0, 1.0, 0.0), -0.3)
Z_PLANE = ((0.0, 0.0, 1.0), -0.2)


def test_add_error_and_value():
    q = plane_quadric([X_PLANE])
    assert q.value(np.array([2.0, 5.0, -1.0])) == pytest.approx(4.0)
    assert q.value(np.array([0.0, 1.0, 1.0])) == pytest.approx(0.0)


def test_merge_is_area_weighted():
    q1 = plane_quadric([X_PLANE], area=1.0)
    q2 = plane_quadric([Z_PLANE], area=3.0)
    q3 = Quadric.merge(q1, q2)
    assert q3.area == pytest.approx(4.0)
    np.testing.assert_allclose(q3.A, 0.25 * q1.A + 0.75 * q2.A)
    np.testing.assert_allclose(q3.b, 0.25 * q1.b + 0.75 * q2.b)
    assert q3.c == pytest.approx(0.25 * q1.c + 0.75 * q2.c)


def test_merge_commutative_and_associative():
    q1 = plane_quadric([X_PLANE], area=1.0)
    q2 = plane_quadric([Y_PLANE], area=2.0)
    q3 = plane_quadric([Z_PLANE, X_PLANE], area=0.5)
    a = Quadric.merge(q1, q2)
    b = Quadric.merge(q2, q1)
    np.testing.assert_allclose(a.A, b.A)
    np.testing.assert_allclose(a.b, b.b)
    left = Quadric.merge(Quadric.merge(q1, q2), q3)
    right = Quadric.merge(q1, Quadric.merge(q2, q3))
    np.testing.assert_allclose(left.A, right.A)
    np.testing.assert_allclose(left.b, right.b)
    assert left.c == pytest.approx(right.c)
    assert left.area == pytest.approx(right.area)


def test_merge_requires_positive_area():
    with pytest.raises(AssertionError):
        Quadric.merge(plane_quadric([X_PLANE], area=0.0), plane_quadric([X_PLANE]))


def test_copy_is_independent():
    q = plane_quadric([X_PLANE])
    c = q.copy()
    c.A[0, 0] = 7.0
    assert q.A[0, 0] == 1.0


def test_face_plane():
    qem = QuadricErrorMetrics(tolerance=4.0)
    normal, d, weight = qem.compute_face_plane(
        np.array([0.0, 0.0, 1.0]), np.array([1.0, 0.0, 1.0]), np.array([0.0, 1.0, 1.0]))
    np.testing.assert_allclose(normal, [0.0, 0.0, 1.0])
    assert d == pytest.approx(-1.0)
    assert weight == pytest.approx(0.25)


def test_degenerate_face_plane():
    qem = QuadricErrorMetrics()
    p = np.array([1.0, 1.0, 1.0])
    normal, d, weight = qem.compute_face_plane(p, 2 * p, 3 * p)
    assert not normal.any()
    assert d == 0.0
    assert weight == 0.0


def test_fin_plane_contains_edge():
    qem = QuadricErrorMetrics(boundary_weight=100.0)
    p0 = np.array([0.0, 0.0, 0.0])
    p1 = np.array([1.0, 0.0, 0.0])
    vec, d = qem.compute_fin_plane(p0, p1, np.array([0.0, 0.0, 1.0]))
    np.testing.assert_allclose(vec, [0.0, -100.0, 0.0])
    assert d == pytest.approx(0.0)
    q = Quadric()
    q.add_error(vec, d, 0.0)
    assert q.value(np.array([0.5, 0.0, 3.0])) == pytest.approx(0.0)
    assert q.value(np.array([0.5, 0.1, 0.0])) == pytest.approx(100.0)


def test_placement_parse():
    assert Placement.parse("optimal") is Placement.OPTIMAL
    assert Placement.parse(" Middle ") is Placement.MIDDLE
    assert Placement.parse(Placement.EDGE) is Placement.EDGE
    with pytest.raises(ValueError):
        Placement.parse("centroid")
    with pytest.raises(ValueError):
        Placement.parse(2)


@pytest.fixture
def line_case():
    """Quadric x^2 on the segment from (-1, 0, 0) to (2, 0, 0)."""
    q1 = plane_quadric([X_PLANE])
    q2 = plane_quadric([X_PLANE])
    return np.array([-1.0, 0.0, 0.0]), np.array([2.0, 0.0, 0.0]), q1, q2, Quadric.merge(q1, q2)


def place(placement, case, ref1=0, ref2=0):
    p1, p2, q1, q2, q3 = case
    return QuadricErrorMetrics(placement=placement).optimal_placement(
        p1, p2, q1, q2, q3, ref1, ref2)


def test_vertex_placement_picks_cheaper_endpoint(line_case):
    position, keep = place(Placement.VERTEX, line_case)
    np.testing.assert_allclose(position, [-1.0, 0.0, 0.0])
    assert keep == 0


def test_vertex_placement_tie_keeps_first():
    q = plane_quadric([X_PLANE])
    q3 = Quadric.merge(q, q)
    qem = QuadricErrorMetrics(placement=Placement.VERTEX)
    position, keep = qem.optimal_placement(
        np.array([-1.0, 0.0, 0.0]), np.array([1.0, 0.0, 0.0]), q, q, q3)
    np.testing.assert_allclose(position, [-1.0, 0.0, 0.0])
    assert keep == 0


def test_vertex_placement_keeps_tagged_endpoint(line_case):
    position, keep = place(Placement.VERTEX, line_case, ref1=0, ref2=3)
    np.testing.assert_allclose(position, [2.0, 0.0, 0.0])
    assert keep == 1


def test_middle_placement(line_case):
    position, keep = place(Placement.MIDDLE, line_case)
    np.testing.assert_allclose(position, [0.5, 0.0, 0.0])
    assert keep == 1


def test_edge_placement_minimizes_on_segment(line_case):
    position, keep = place(Placement.EDGE, line_case)
    np.testing.assert_allclose(position, [0.0, 0.0, 0.0], atol=1e-12)
    assert keep == 1


def test_edge_placement_clamps_to_segment():
    q = plane_quadric([((1.0, 0.0, 0.0), -5.0)])
    q3 = Quadric.merge(q, q)
    qem = QuadricErrorMetrics(placement=Placement.EDGE)
    position, _ = qem.optimal_placement(
        np.array([0.0, 0.0, 0.0]), np.array([1.0, 0.0, 0.0]), q, q, q3)
    np.testing.assert_allclose(position, [1.0, 0.0, 0.0])


def test_edge_placement_falls_back_to_vertex():
    # Quadric constant along the edge direction
    q = plane_quadric([Z_PLANE])
    q3 = Quadric.merge(q, q)
    qem = QuadricErrorMetrics(placement=Placement.EDGE)
    p1 = np.array([0.0, 0.0, 0.0])
    p2 = np.array([1.0, 0.0, 0.0])
    position, _ = qem.optimal_placement(p1, p2, q, q, q3)
    np.testing.assert_allclose(position, p1)


def test_optimal_placement_solves_full_rank_system():
    q1 = plane_quadric([X_PLANE, Y_PLANE, Z_PLANE])
    q2 = plane_quadric([X_PLANE, Y_PLANE, Z_PLANE], area=2.0)
    q3 = Quadric.merge(q1, q2)
    qem = QuadricErrorMetrics(placement=Placement.OPTIMAL)
    position, _ = qem.optimal_placement(
        np.array([-1.0, 0.0, 0.0]), np.array([1.0, 1.0, 1.0]), q1, q2, q3)
    np.testing.assert_allclose(position, [0.0, 0.3, 0.2], atol=1e-12)
    assert q3.value(position) == pytest.approx(0.0, abs=1e-12)


def test_optimal_placement_singular_falls_back_to_edge(line_case):
    position, _ = place(Placement.OPTIMAL, line_case)
    np.testing.assert_allclose(position, [0.0, 0.0, 0.0], atol=1e-12)


def test_both_tagged_forces_vertex(line_case):
    for placement in Placement:
        position, keep = place(placement, line_case, ref1=1, ref2=2)
        np.testing.assert_allclose(position, [-1.0, 0.0, 0.0])
        assert keep == 0


def test_tagged_first_endpoint_is_kept(line_case):
    _, keep = place(Placement.EDGE, line_case, ref1=5, ref2=0)
    assert keep == 0


def test_edge_cost_is_min_over_endpoints(line_case):
    p1, p2, q1, q2, q3 = line_case
    qem = QuadricErrorMetrics()
    assert qem.edge_cost(p1, p2, q1, q2) == pytest.approx(min(q3.value(p1), q3.value(p2)))
    assert qem.edge_cost(p1, p2, q1, q2) == pytest.approx(1.0)


def test_compute_error_is_non_negative():
    q = Quadric()
    q.c = -1e-9
    assert QuadricErrorMetrics().compute_error(q, np.zeros(3)) == 0.0


def test_vertex_quadrics_vanish_on_planar_patch(strip):
    qem = QuadricErrorMetrics()
    quadrics = qem.compute_vertex_quadrics(strip)
    assert sorted(quadrics) == list(range(10))
    for v, q in quadrics.items():
        assert q.area > 0.0
        assert q.value(strip.xyz(v)) == pytest.approx(0.0, abs=1e-9)


def test_vertex_quadrics_penalize_leaving_boundary(strip):
    quadrics = QuadricErrorMetrics(boundary_weight=100.0).compute_vertex_quadrics(strip)
    # Bottom middle vertex, moved along the boundary or across it
    v = 2
    along = strip.xyz(v) + np.array([0.3, 0.0, 0.0])
    across = strip.xyz(v) + np.array([0.0, 0.3, 0.0])
    assert quadrics[v].value(along) == pytest.approx(0.0, abs=1e-9)
    assert quadrics[v].value(across) > 100.0


def test_vertex_quadrics_skip_read_only_triangles(square):
    faces = [square.triangles[t].v for t in square.real_triangles()]
    assert len(faces) == 8
    square.triangles[0].writable = False
    quadrics = QuadricErrorMetrics().compute_vertex_quadrics(square)
    used = set()
    for t in list(square.real_triangles())[1:]:
        used.update(square.triangles[t].v)
    assert set(quadrics) == used
