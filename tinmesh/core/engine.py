"""Surface triangulation pipeline.

collect vertices -> extract constraints -> Delaunay -> enforce constraints
-> (optional conformity check) -> filters -> emit.

Everything a run needs lives in its TriangulationContext; the module holds
no state, so concurrent calls from several threads are independent.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np

from .config import TriangulationConfig
from .conformity import check_mesh_conformity, find_delaunay_violations, missing_edges
from .constraints import Breakline, BreaklinePath, ConstraintSet, extract_constraints
from .context import CancelToken, TriangulationContext
from .emitter import Diagnostics, Mesh, emit_mesh
from .enforce import ConstraintEnforcer, EnforcementReport, enforce_constraints
from .errors import Cancelled, MalformedInput
from .filters import FilterResult, apply_filters, validate_clip_polygon
from .stats import StageTimer
from .vertices import RawPoint, SourceTag, VertexSet, as_raw_points, collect_vertices


@dataclass(frozen=True)
class TriangulationResult:
    mesh: Mesh
    diagnostics: Diagnostics

    def __iter__(self):
        # allows ``mesh, diag = triangulate_surface(...)``
        return iter((self.mesh, self.diagnostics))


def _as_breakline(item, index: int) -> Breakline:
    if isinstance(item, Breakline):
        return item
    if isinstance(item, BreaklinePath):
        raise MalformedInput(f"Breakline {index} is a BreaklinePath; pass it through 'paths'")
    # bare coordinate sequence: open polyline
    return Breakline(vertices=item, closed=False)


def _as_path(item, index: int, n_points: int) -> BreaklinePath:
    if isinstance(item, BreaklinePath):
        path = item
    else:
        try:
            path = BreaklinePath(tuple(int(i) for i in item))
        except (TypeError, ValueError) as exc:
            raise MalformedInput(f"Path {index} is not a sequence of point indices: {item!r}") from exc
    for r in path.raw_indices:
        if r < 0 or r >= n_points:
            raise MalformedInput(f"Path {index} references point {r}; only {n_points} points were given")
    return path


def gather_inputs(points, breaklines: Iterable = (), paths: Iterable = ()) -> Tuple[List[RawPoint], List[BreaklinePath]]:
    """Flatten all inputs into one raw point list plus index paths.

    Raw points keep their order and come first; the vertices of every
    coordinate breakline follow, tagged BREAKLINE_VERTEX. Index paths refer
    to ``points`` only.
    """
    raws = as_raw_points(points)
    n_points = len(raws)
    out_paths = [_as_path(p, i, n_points) for i, p in enumerate(paths or ())]
    for i, item in enumerate(breaklines or ()):
        bl = _as_breakline(item, i)
        verts = as_raw_points(bl.vertices, default_tag=SourceTag.BREAKLINE_VERTEX)
        if len(verts) < 2:
            raise MalformedInput(f"Breakline {i} ({bl.source_ref!r}) has fewer than 2 vertices")
        start = len(raws)
        for v in verts:
            ref = v.source_ref if v.source_ref is not None else bl.source_ref
            raws.append(RawPoint(v.x, v.y, v.z, v.source_tag, ref))
        out_paths.append(BreaklinePath(tuple(range(start, len(raws))), closed=bl.closed, source_ref=bl.source_ref))
    return raws, out_paths


class _Run:
    """Intermediate products of one run, kept for best-effort results."""

    def __init__(self):
        self.vertex_set: Optional[VertexSet] = None
        self.constraints: Optional[ConstraintSet] = None
        self.enforcer: Optional[ConstraintEnforcer] = None
        self.triangles: Optional[np.ndarray] = None


def _partial_result(run: _Run, stage: str, timer: StageTimer) -> Optional[TriangulationResult]:
    if run.vertex_set is None:
        return None
    constraints = run.constraints or ConstraintSet()
    if run.enforcer is not None:
        tris = run.enforcer.tri.triangles
        report = run.enforcer.report
    else:
        tris = np.empty((0, 3), dtype=np.int32)
        report = EnforcementReport()
    mesh, diag = emit_mesh(run.vertex_set, tris, constraints, report, None, timer.timings)
    diag.cancelled_stage = stage
    return TriangulationResult(mesh, diag)


def _validate(ctx: TriangulationContext, points, triangles, report: EnforcementReport) -> None:
    log = ctx.logger
    ok, msgs = check_mesh_conformity(points, triangles, reject_inverted=True)
    if not ok:
        for m in msgs:
            log.warning("Conformity: %s", m)
    absent = missing_edges(triangles, report.fixed_edges)
    if absent:
        log.warning("%d placed constraint edge(s) missing from the mesh: %s", len(absent), absent[:10])
    bad = find_delaunay_violations(points, triangles, report.fixed_edges)
    if bad:
        log.warning("%d unconstrained edge(s) violate the Delaunay criterion: %s", len(bad), bad[:10])
    if ok and not absent and not bad:
        log.info("Constrained mesh passed conformity and Delaunay checks")


def triangulate(ctx: TriangulationContext, points, breaklines: Iterable = (), paths: Iterable = (),
                clip_polygon=None) -> TriangulationResult:
    """Run the full pipeline under ``ctx``.

    Raises
    ------
    InsufficientVertices
        Fewer than three distinct, non-collinear vertices.
    MalformedInput
        Non-finite coordinates, short breaklines, bad indices or clip polygon.
    Cancelled
        ``ctx.cancel`` fired; ``partial`` is set when the config asks for it.
    """
    cfg = ctx.config
    log = ctx.logger
    timer = StageTimer()
    run = _Run()
    ring = validate_clip_polygon(clip_polygon)
    try:
        with timer.stage('collect'):
            raws, all_paths = gather_inputs(points, breaklines, paths)
            run.vertex_set = collect_vertices(raws, cfg.dedup_tolerance)
        vset = run.vertex_set
        with timer.stage('extract'):
            run.constraints = extract_constraints(vset, all_paths)
        ctx.check('delaunay')
        with timer.stage('build'):
            tri = ctx.builder.build(vset.xy)
        if tri.n_vertices != vset.canonical_count:
            raise RuntimeError(f"Builder returned {tri.n_vertices} vertices, expected {vset.canonical_count}")
        ctx.check('delaunay')
        run.enforcer = ConstraintEnforcer(tri)
        with timer.stage('enforce'):
            report = enforce_constraints(tri, run.constraints.edges, check=ctx.check, enforcer=run.enforcer)
        run.triangles = tri.triangles
        if cfg.validate_output:
            with timer.stage('validate'):
                _validate(ctx, vset.points, run.triangles, report)
        with timer.stage('filter'):
            filtered: FilterResult = apply_filters(vset.points, run.triangles, ring, cfg, check=ctx.check)
        with timer.stage('emit'):
            mesh, diag = emit_mesh(vset, run.triangles, run.constraints, report, filtered)
    except Cancelled as exc:
        log.warning("Triangulation cancelled during %s", exc.stage)
        if cfg.best_effort_on_cancel and exc.partial is None:
            exc.partial = _partial_result(run, exc.stage, timer)
        raise
    diag.timings = dict(timer.timings)
    log.info("Triangulation finished: %d/%d triangles kept, %d conflicts",
             diag.triangles_final, diag.triangles_before_filter, len(diag.conflicting_constraints))
    return TriangulationResult(mesh, diag)


def triangulate_surface(points, breaklines: Iterable = (), paths: Iterable = (), clip_polygon=None, *,
                        config: Optional[TriangulationConfig] = None,
                        cancel: Optional[CancelToken] = None,
                        builder=None) -> TriangulationResult:
    """Triangulate a surface from points and breaklines.

    Parameters
    ----------
    points : sequence of RawPoint, (x, y[, z]) tuples or an (N,2)/(N,3) array
        Hole collars and survey points.
    breaklines : sequence of Breakline
        Coordinate polylines/polygons; their vertices join the point set.
    paths : sequence of BreaklinePath or index sequences
        Breaklines given as indices into ``points``.
    clip_polygon : sequence of (x, y[, z]) or None
        Boundary applied after triangulation; see ``TriangulationConfig.clip_mode``.
    config : TriangulationConfig or None
    cancel : CancelToken or None
        Set from another thread to abort the call.
    builder : DelaunayBuilder or None
        Defaults to ScipyDelaunayBuilder.

    Returns
    -------
    TriangulationResult
        ``mesh`` and ``diagnostics``.
    """
    ctx = TriangulationContext(config=config or TriangulationConfig(),
                               cancel=cancel or CancelToken(),
                               builder=builder)
    return triangulate(ctx, points, breaklines, paths, clip_polygon)


__all__ = ['TriangulationResult', 'gather_inputs', 'triangulate', 'triangulate_surface']
