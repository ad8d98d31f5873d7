import numpy as np
import pytest

from tinmesh import (
    Breakline, BreaklinePath, IncrementalDelaunayBuilder, InsufficientVertices, MalformedInput,
    RawPoint, SourceTag, TriangulationConfig, format_diagnostics_table, triangulate_surface,
)
from tinmesh.core.conformity import check_mesh_conformity, find_delaunay_violations
from tinmesh.core.engine import gather_inputs


def hexagon_with_square():
    return np.array([[0, 0, 0], [3, 0, 0], [3, 3, 1], [0, 3, 1], [1.5, -1, 0], [1.5, 4, 1]], dtype=float)


class TestScenarios:
    def test_scenario_a(self):
        pts = [(0, 0, 0), (1, 0, 0), (1.1, 1.1, 0), (0, 1, 0)]
        mesh, diag = triangulate_surface(pts)
        assert mesh.n_triangles == 2
        assert (1, 3) in mesh.edges()
        assert diag.conflicting_constraints == []

    def test_scenario_b(self):
        pts = [(0, 0, 0), (1, 0, 0), (1.1, 1.1, 0), (0, 1, 0)]
        mesh, diag = triangulate_surface(pts, paths=[(0, 2)])
        assert mesh.n_triangles == 2
        assert (0, 2) in mesh.edges()
        assert mesh.constraint_edges.tolist() == [[0, 2]]
        assert diag.conflicting_constraints == []

    def test_scenario_c(self):
        mesh, diag = triangulate_surface(hexagon_with_square(), paths=[(0, 2), (1, 3)])
        assert diag.conflicting_constraints == [((1, 3), (0, 2))]
        assert mesh.n_triangles == 4
        assert set(mesh.used_vertices().tolist()) == set(range(6))
        ok, msgs = check_mesh_conformity(mesh.vertices, mesh.triangles)
        assert ok, msgs
        levels = [lvl for lvl, _ in diag.messages()]
        assert 'warning' in levels

    def test_scenario_d(self, grid_points):
        clip = [(0, 0), (0.5, 0), (0.5, 1), (0, 1)]
        mesh, diag = triangulate_surface(grid_points, clip_polygon=clip)
        assert mesh.n_triangles > 0
        assert np.all(mesh.centroids[:, 0] <= 0.5)
        assert diag.triangles_removed_by_clip == diag.triangles_before_filter - diag.triangles_final


def test_coordinate_breaklines_are_honored(grid_points):
    ridge = Breakline([(0.05, 0.33, 1.0), (0.52, 0.41, 1.2), (0.95, 0.37, 1.1)], source_ref='ridge')
    pit = Breakline([(0.3, 0.6, 0), (0.7, 0.6, 0), (0.7, 0.85, 0), (0.3, 0.85, 0)], closed=True, source_ref='pit')
    res = triangulate_surface(grid_points, breaklines=[ridge, pit], config=TriangulationConfig(validate_output=True))
    mesh, diag = res.mesh, res.diagnostics
    assert diag.raw_vertex_count == len(grid_points) + 7
    assert diag.constraint_edge_count == 2 + 4
    edges = mesh.edges()
    for a, b in mesh.constraint_edges.tolist():
        assert (a, b) in edges
    n = len(grid_points)
    assert mesh.vertices[n, 2] == pytest.approx(1.0)
    fixed = [tuple(e) for e in mesh.constraint_edges.tolist()]
    assert find_delaunay_violations(mesh.vertices, mesh.triangles, fixed) == []
    ok, msgs = check_mesh_conformity(mesh.vertices, mesh.triangles)
    assert ok, msgs


def test_gather_inputs_tags_and_paths():
    raws, paths = gather_inputs([(0, 0), RawPoint(1, 0, 0, SourceTag.HOLE_COLLAR, 'DH1')],
                                breaklines=[Breakline([(0, 1), (1, 1)], closed=False, source_ref='bl')],
                                paths=[(0, 1)])
    assert [r.source_tag for r in raws] == [SourceTag.RAW_POINT, SourceTag.HOLE_COLLAR,
                                            SourceTag.BREAKLINE_VERTEX, SourceTag.BREAKLINE_VERTEX]
    assert raws[2].source_ref == 'bl'
    assert [p.raw_indices for p in paths] == [(0, 1), (2, 3)]


def test_mesh_arrays_are_read_only(grid_points):
    mesh, _ = triangulate_surface(grid_points, paths=[(0, 24)])
    for arr in (mesh.vertices, mesh.triangles, mesh.normals, mesh.centroids, mesh.constraint_edges):
        with pytest.raises(ValueError):
            arr[...] = 0


def test_normals_and_centroids(grid_points):
    mesh, _ = triangulate_surface(grid_points)
    assert np.allclose(np.linalg.norm(mesh.normals, axis=1), 1.0)
    assert np.all(mesh.normals[:, 2] > 0)
    expected = mesh.vertices[mesh.triangles].mean(axis=1)
    assert np.allclose(mesh.centroids, expected)
    assert mesh.min_angles.shape == (mesh.n_triangles,)


def test_duplicates_merged_and_counted():
    pts = [(0, 0, 0), (1, 0, 0), (0, 1, 0), (1, 1, 0), (1, 1 + 1e-9, 5)]
    mesh, diag = triangulate_surface(pts)
    assert diag.raw_vertex_count == 5
    assert diag.canonical_vertex_count == 4
    assert diag.duplicate_vertices_merged == 1
    assert mesh.n_vertices == 4


def test_degenerate_and_duplicate_breaklines_counted():
    pts = [(0, 0), (1, 0), (1, 1), (0, 1), (1, 1 + 1e-9)]
    _, diag = triangulate_surface(pts, paths=[(0, 2, 4), (2, 0)])
    assert diag.degenerate_constraints_dropped == 1
    assert diag.duplicate_constraints_merged == 1
    assert diag.constraint_edge_count == 1


def test_constraint_lost_to_filter_is_reported(grid_points):
    wall = Breakline([(0.8, 0.1, 0), (0.8, 0.9, 0)])
    clip = [(0, 0), (0.5, 0), (0.5, 1), (0, 1)]
    mesh, diag = triangulate_surface(grid_points, breaklines=[wall], clip_polygon=clip)
    n = len(grid_points)
    assert diag.constraints_removed_by_filter == [(n, n + 1)]
    assert [n, n + 1] in mesh.constraint_edges.tolist()
    assert (n, n + 1) not in mesh.edges()


def test_filter_counts_add_up(grid_points):
    cfg = TriangulationConfig(min_angle_deg=25.0, max_edge_length=0.3)
    _, diag = triangulate_surface(grid_points, clip_polygon=[(0, 0), (0.7, 0), (0.7, 1), (0, 1)], config=cfg)
    removed = diag.triangles_removed_by_clip + diag.triangles_removed_by_angle + diag.triangles_removed_by_length
    assert diag.triangles_before_filter == diag.triangles_final + removed
    assert len(diag.removals) == removed


def test_injected_builder_is_used(grid_points):
    calls = []

    class Recording(IncrementalDelaunayBuilder):
        def build(self, points_xy):
            calls.append(len(points_xy))
            return super().build(points_xy)
    a, _ = triangulate_surface(grid_points, builder=Recording())
    b, _ = triangulate_surface(grid_points)
    assert calls == [len(grid_points)]
    as_set = lambda m: {tuple(sorted(t)) for t in m.triangles.tolist()}
    assert as_set(a) == as_set(b)


def test_deterministic_output(rng):
    pts = rng.uniform(0, 50, size=(200, 3))
    paths = [tuple(range(0, 10)), (20, 30, 40, 20)]
    m1, d1 = triangulate_surface(pts, paths=paths)
    m2, d2 = triangulate_surface(pts, paths=paths)
    assert np.array_equal(m1.triangles, m2.triangles)
    assert d1.conflicting_constraints == d2.conflicting_constraints


def test_timings_and_table(grid_points):
    _, diag = triangulate_surface(grid_points)
    for stage in ('collect', 'extract', 'build', 'enforce', 'filter', 'emit'):
        assert stage in diag.timings
        assert diag.timings[stage] >= 0.0
    table = format_diagnostics_table(diag)
    assert 'enforce' in table and 'total' in table
    assert 'triangles final' in table
    assert format_diagnostics_table({}) == "<no timings>"


@pytest.mark.parametrize('pts', [
    [(0, 0), (1, 1)],
    [(0, 0), (1, 0), (0, 0)],
    [(0, 0), (1, 1), (2, 2), (3, 3)],
])
def test_insufficient_vertices(pts):
    with pytest.raises(InsufficientVertices):
        triangulate_surface(pts)


@pytest.mark.parametrize('kwargs', [
    dict(points=[(0, 0), (1, 0), (np.nan, 1)]),
    dict(points=[(0, 0), (1, 0), (0, 1)], paths=[(0,)]),
    dict(points=[(0, 0), (1, 0), (0, 1)], paths=[(0, 3)]),
    dict(points=[(0, 0), (1, 0), (0, 1)], breaklines=[Breakline([(0.2, 0.2)])]),
    dict(points=[(0, 0), (1, 0), (0, 1)], clip_polygon=[(0, 0), (1, 1)]),
    dict(points=[(0, 0), (1, 0), (0, 1)], config=TriangulationConfig(dedup_tolerance=-1)),
    dict(points=[(0, 0), (1, 0), (0, 1)], config=TriangulationConfig(min_angle_deg=75)),
    dict(points=[(0, 0), (1, 0), (0, 1)], config=TriangulationConfig(clip_mode='both')),
])
def test_malformed_input(kwargs):
    with pytest.raises(MalformedInput):
        triangulate_surface(**kwargs)


def test_breakline_path_passed_as_breakline_is_rejected():
    with pytest.raises(MalformedInput):
        triangulate_surface([(0, 0), (1, 0), (0, 1)], breaklines=[BreaklinePath((0, 1))])
