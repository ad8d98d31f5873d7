import numpy as np
import pytest

from tinmesh.core.conformity import check_mesh_conformity
from tinmesh.core.config import TriangulationConfig
from tinmesh.core.context import CancelToken, TriangulationContext
from tinmesh.core.delaunay import ScipyDelaunayBuilder
from tinmesh.core.engine import triangulate, triangulate_surface
from tinmesh.core.errors import Cancelled


class CountdownToken(CancelToken):
    """Fires once ``stage`` has been checked more than ``after`` times."""

    def __init__(self, stage, after):
        super().__init__()
        self.stage = stage
        self.after = after
        self.seen = 0

    def raise_if_cancelled(self, stage):
        if stage == self.stage:
            self.seen += 1
            if self.seen > self.after:
                self.cancel()
        super().raise_if_cancelled(stage)


def hexagon_with_square():
    return np.array([[0, 0, 0], [3, 0, 0], [3, 3, 1], [0, 3, 1], [1.5, -1, 0], [1.5, 4, 1]], dtype=float)


def test_token_flag():
    tok = CancelToken()
    assert not tok.cancelled
    tok.raise_if_cancelled('anything')
    tok.cancel()
    assert tok.cancelled
    with pytest.raises(Cancelled) as exc:
        tok.raise_if_cancelled('delaunay')
    assert exc.value.stage == 'delaunay'
    assert exc.value.partial is None


def test_cancelled_before_start_without_partial(grid_points):
    tok = CancelToken()
    tok.cancel()
    with pytest.raises(Cancelled) as exc:
        triangulate_surface(grid_points, cancel=tok)
    assert exc.value.partial is None


def test_best_effort_before_triangulation(grid_points):
    tok = CancelToken()
    tok.cancel()
    cfg = TriangulationConfig(best_effort_on_cancel=True)
    with pytest.raises(Cancelled) as exc:
        triangulate_surface(grid_points, cancel=tok, config=cfg)
    partial = exc.value.partial
    assert partial is not None
    assert partial.mesh.n_triangles == 0
    assert partial.mesh.n_vertices == len(grid_points)
    assert partial.diagnostics.is_partial


def test_best_effort_during_enforcement_keeps_placed_constraints():
    tok = CountdownToken('constraint enforcement', after=1)
    cfg = TriangulationConfig(best_effort_on_cancel=True)
    with pytest.raises(Cancelled) as exc:
        triangulate_surface(hexagon_with_square(), paths=[(0, 2), (4, 5)], cancel=tok, config=cfg)
    assert exc.value.stage == 'constraint enforcement'
    mesh, diag = exc.value.partial
    assert diag.cancelled_stage == 'constraint enforcement'
    assert (0, 2) in mesh.edges()
    assert mesh.constraint_edges.tolist() == [[0, 2]]
    assert diag.conflicting_constraints == []
    ok, msgs = check_mesh_conformity(mesh.vertices, mesh.triangles)
    assert ok, msgs
    assert diag.messages()[0][0] == 'warning'


def test_best_effort_during_filter_returns_unfiltered_mesh(grid_points):
    tok = CountdownToken('clip filter', after=0)
    cfg = TriangulationConfig(best_effort_on_cancel=True)
    with pytest.raises(Cancelled) as exc:
        triangulate_surface(grid_points, clip_polygon=[(0, 0), (0.5, 0), (0.5, 1), (0, 1)],
                            cancel=tok, config=cfg)
    mesh, diag = exc.value.partial
    assert diag.triangles_final == diag.triangles_before_filter == mesh.n_triangles
    assert diag.removals == []
    assert 'build' in diag.timings


def test_context_is_independent_per_call(grid_points):
    ctx_a = TriangulationContext(config=TriangulationConfig(max_edge_length=0.2))
    ctx_b = TriangulationContext()
    assert isinstance(ctx_b.builder, ScipyDelaunayBuilder)
    ctx_a.cancel.cancel()
    with pytest.raises(Cancelled):
        triangulate(ctx_a, grid_points)
    mesh, _ = triangulate(ctx_b, grid_points)
    assert mesh.n_triangles > 0
