"""Delaunay builders.

The constraint enforcer only needs ``build(points_xy) -> Triangulation``; any
object with that method can be passed as a builder. Two are provided:

* ScipyDelaunayBuilder (default): Qhull via scipy.spatial.Delaunay, followed
  by insertion of any vertex Qhull dropped as coplanar and a Lawson sweep with
  the exact incircle predicate.
* IncrementalDelaunayBuilder: pure-Python point-by-point insertion on the
  Triangulation structure; used as the fallback when Qhull returns flat
  simplices.
"""
from __future__ import annotations

from typing import Optional, Protocol

import numpy as np
from scipy.spatial import Delaunay, QhullError

from .errors import InsufficientVertices
from .geometry import orient
from .logging_utils import get_logger
from .triangulation import Triangulation

logger = get_logger('tinmesh.delaunay')


class DelaunayBuilder(Protocol):
    def build(self, points_xy) -> Triangulation:  # pragma: no cover - interface
        ...


def _first_non_collinear(pts: np.ndarray):
    """Indices (i, j, k) of the first non-collinear triple in input order, or None."""
    n = len(pts)
    if n < 3:
        return None
    i = 0
    j = next((k for k in range(1, n) if pts[k, 0] != pts[i, 0] or pts[k, 1] != pts[i, 1]), None)
    if j is None:
        return None
    for k in range(j + 1, n):
        if orient(pts[i], pts[j], pts[k]) != 0:
            return i, j, k
    return None


def _as_xy(points_xy) -> np.ndarray:
    pts = np.asarray(points_xy, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[1] < 2:
        raise ValueError("points must have shape (N,2)")
    return np.ascontiguousarray(pts[:, :2])


class IncrementalDelaunayBuilder:
    """Point-by-point Delaunay insertion (walk location + Lawson flips)."""

    def build(self, points_xy) -> Triangulation:
        pts = _as_xy(points_xy)
        seed = _first_non_collinear(pts)
        if seed is None:
            raise InsufficientVertices(len(pts), "All vertices are collinear or coincident; no surface can be formed")
        i, j, k = seed
        tri = Triangulation(pts, np.array([[i, j, k]], dtype=np.int32))
        for v in range(len(pts)):
            if v in (i, j, k):
                continue
            tri.insert_vertex(v)
        logger.info("Incremental Delaunay: %d vertices -> %d triangles (%d flips)",
                    len(pts), tri.n_triangles, tri.flip_count)
        return tri


class ScipyDelaunayBuilder:
    """Qhull-backed builder with exact-predicate post-processing."""

    def __init__(self, qhull_options: Optional[str] = None):
        self.qhull_options = qhull_options

    def build(self, points_xy) -> Triangulation:
        pts = _as_xy(points_xy)
        n = len(pts)
        if _first_non_collinear(pts) is None:
            raise InsufficientVertices(n, "All vertices are collinear or coincident; no surface can be formed")
        try:
            dela = Delaunay(pts, qhull_options=self.qhull_options)
        except QhullError as exc:
            logger.warning("Qhull failed (%s); falling back to incremental insertion", exc)
            return IncrementalDelaunayBuilder().build(pts)
        simplices = np.asarray(dela.simplices, dtype=np.int32)
        flat = sum(1 for a, b, c in simplices if orient(pts[a], pts[b], pts[c]) == 0)
        if flat:
            logger.warning("Qhull returned %d flat simplices; falling back to incremental insertion", flat)
            return IncrementalDelaunayBuilder().build(pts)
        tri = Triangulation(pts, simplices)
        missing = sorted(set(range(n)) - tri.used_vertices())
        if missing:
            logger.info("Inserting %d vertices left out by Qhull", len(missing))
            for v in missing:
                tri.insert_vertex(v)
        flips = tri.legalize_all()
        if flips:
            logger.debug("Exact incircle sweep performed %d flips after Qhull", flips)
        logger.info("Delaunay: %d vertices -> %d triangles", n, tri.n_triangles)
        return tri


__all__ = ['DelaunayBuilder', 'ScipyDelaunayBuilder', 'IncrementalDelaunayBuilder']
