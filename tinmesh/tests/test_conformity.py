import numpy as np

from tinmesh.core.conformity import (
    build_edge_to_tri_map, check_mesh_conformity, count_boundary_loops,
    find_delaunay_violations, missing_edges,
)


SQUARE = np.array([[0, 0], [1, 0], [1, 1], [0, 1], [0.5, 0.5]], dtype=float)


def test_valid_fan_passes():
    tris = np.array([[0, 1, 4], [1, 2, 4], [2, 3, 4], [3, 0, 4]])
    ok, msgs = check_mesh_conformity(SQUARE, tris)
    assert ok, msgs
    assert count_boundary_loops(tris) == 1


def test_detects_problems():
    assert check_mesh_conformity(SQUARE, np.empty((0, 3), dtype=int))[0] is False
    ok, msgs = check_mesh_conformity(SQUARE, [[0, 1, 9]])
    assert not ok and 'out of range' in msgs[0]
    ok, msgs = check_mesh_conformity(SQUARE, [[0, 4, 1]])
    assert not ok and 'inverted' in msgs[0]
    ok, msgs = check_mesh_conformity(SQUARE, [[0, 1, 4], [1, 4, 0]])
    assert not ok and any('Duplicate' in m for m in msgs)
    ok, msgs = check_mesh_conformity(SQUARE, [[0, 1, 4], [1, 2, 4], [0, 4, 2]], reject_inverted=False)
    assert not ok
    ok, msgs = check_mesh_conformity(SQUARE, [[0, 1, 4], [1, 4, 3], [2, 3, 4], [4, 1, 3]])
    assert not ok and any('Non-manifold' in m for m in msgs)


def test_degenerate_triangle_flagged():
    pts = np.array([[0, 0], [1, 0], [2, 0]], dtype=float)
    ok, msgs = check_mesh_conformity(pts, [[0, 1, 2]])
    assert not ok and 'near-zero area' in msgs[0]


def test_delaunay_violation_and_fixed_edges():
    pts = np.array([[0, 0], [1, 0], [1.1, 1.1], [0, 1]], dtype=float)
    tris = np.array([[0, 1, 2], [0, 2, 3]])
    assert find_delaunay_violations(pts, tris) == [(0, 2)]
    assert find_delaunay_violations(pts, tris, fixed_edges=[(2, 0)]) == []


def test_missing_edges_and_edge_map():
    tris = np.array([[0, 1, 4], [1, 2, 4]])
    emap = build_edge_to_tri_map(tris)
    assert emap[(1, 4)] == {0, 1}
    assert missing_edges(tris, [(4, 0), (0, 2), (2, 1)]) == [(0, 2)]
