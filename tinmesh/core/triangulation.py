"""Edge-adjacency triangulation structure with flips, point insertion and Lawson legalization.

Triangles are stored as counter-clockwise vertex triples. Three maps are kept in
sync with every topological change:

* ``edge_map``: normalized edge ``(min, max)`` -> set of incident triangle ids
* ``v_map``: vertex id -> set of incident triangle ids
* ``boundary``: normalized edges with exactly one incident triangle

so that "which triangles share edge (a,b)" and "flip edge (a,b)" cost O(1)
amortized. Flips reuse the two triangle slots they replace; insertions append.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Set, Tuple

import numpy as np

from .conformity import boundary_edges_from_map, build_edge_to_tri_map, build_vertex_to_tri_map
from .geometry import ensure_positive_orientation, incircle, normalize_edge, orient
from .logging_utils import get_logger

Edge = Tuple[int, int]

logger = get_logger('tinmesh.triangulation')


class Triangulation:
    def __init__(self, points, triangles):
        """Adjacency-queryable planar triangulation.

        Parameters
        ----------
        points : (N,2) float array-like
            Vertex XY positions (extra columns are ignored).
        triangles : (M,3) int array-like
            Triangle rows; re-oriented counter-clockwise on load.
        """
        arr = np.asarray(points, dtype=np.float64)
        if arr.ndim != 2 or arr.shape[1] < 2:
            raise ValueError("points must have shape (N,2)")
        self.points = np.ascontiguousarray(arr[:, :2])
        self._xy: List[Tuple[float, float]] = [(float(x), float(y)) for x, y in self.points]
        tris = ensure_positive_orientation(self.points, triangles)
        self.tris: List[Tuple[int, int, int]] = [tuple(int(v) for v in t) for t in tris]
        self.flip_count = 0
        self._last_tri = 0
        self._update_maps()

    # --- maps ---
    def _update_maps(self):
        self.edge_map = build_edge_to_tri_map(self.tris)
        self.v_map = build_vertex_to_tri_map(self.tris)
        self.boundary = boundary_edges_from_map(self.edge_map)

    def _add_triangle_to_maps(self, t_idx: int):
        a, b, c = self.tris[t_idx]
        for e in ((a, b), (b, c), (c, a)):
            key = normalize_edge(*e)
            s = self.edge_map.setdefault(key, set())
            s.add(t_idx)
            if len(s) == 1:
                self.boundary.add(key)
            else:
                self.boundary.discard(key)
        for v in (a, b, c):
            self.v_map.setdefault(v, set()).add(t_idx)

    def _remove_triangle_from_maps(self, t_idx: int):
        a, b, c = self.tris[t_idx]
        for e in ((a, b), (b, c), (c, a)):
            key = normalize_edge(*e)
            s = self.edge_map.get(key)
            if s is not None:
                s.discard(t_idx)
                if not s:
                    del self.edge_map[key]
                    self.boundary.discard(key)
                elif len(s) == 1:
                    self.boundary.add(key)
        for v in (a, b, c):
            s = self.v_map.get(v)
            if s is not None:
                s.discard(t_idx)
                if not s:
                    del self.v_map[v]

    def _set_triangle(self, t_idx: int, tri: Tuple[int, int, int]):
        if t_idx == len(self.tris):
            self.tris.append(tri)
        else:
            self._remove_triangle_from_maps(t_idx)
            self.tris[t_idx] = tri
        self._add_triangle_to_maps(t_idx)

    # --- queries ---
    @property
    def n_vertices(self) -> int:
        return len(self._xy)

    @property
    def n_triangles(self) -> int:
        return len(self.tris)

    def xy(self, v: int) -> Tuple[float, float]:
        return self._xy[v]

    def edges(self) -> List[Edge]:
        return list(self.edge_map.keys())

    def has_edge(self, a: int, b: int) -> bool:
        return normalize_edge(a, b) in self.edge_map

    def edge_triangles(self, a: int, b: int) -> Tuple[int, ...]:
        return tuple(self.edge_map.get(normalize_edge(a, b), ()))

    def is_boundary_edge(self, a: int, b: int) -> bool:
        return normalize_edge(a, b) in self.boundary

    def vertex_triangles(self, v: int) -> Set[int]:
        return self.v_map.get(v, set())

    def apex(self, t_idx: int, a: int, b: int) -> Optional[int]:
        """Third vertex of triangle t_idx if it contains the directed edge a->b."""
        p, q, r = self.tris[t_idx]
        if p == a and q == b:
            return r
        if q == a and r == b:
            return p
        if r == a and p == b:
            return q
        return None

    def opposite_vertices(self, a: int, b: int) -> Tuple[Optional[int], Optional[int]]:
        """Apexes (c, d) of the triangles left and right of the directed edge a->b."""
        c = d = None
        for t in self.edge_map.get(normalize_edge(a, b), ()):
            left = self.apex(t, a, b)
            if left is not None:
                c = left
            else:
                d = self.apex(t, b, a)
        return c, d

    def is_convex_quad(self, a: int, b: int) -> bool:
        """True when the two triangles sharing (a,b) form a strictly convex quadrilateral."""
        c, d = self.opposite_vertices(a, b)
        if c is None or d is None:
            return False
        xy = self._xy
        o_a = orient(xy[c], xy[d], xy[a])
        o_b = orient(xy[c], xy[d], xy[b])
        return (o_a > 0 and o_b < 0) or (o_a < 0 and o_b > 0)

    def is_locally_delaunay(self, a: int, b: int) -> bool:
        c, d = self.opposite_vertices(a, b)
        if c is None or d is None:
            return True
        xy = self._xy
        return incircle(xy[a], xy[b], xy[c], xy[d]) <= 0

    # --- modifications ---
    def flip(self, a: int, b: int) -> Edge:
        """Replace edge (a,b) by the diagonal (c,d) joining the opposite apexes.

        The caller is responsible for the quadrilateral being strictly convex
        (see is_convex_quad). Returns the new normalized edge.
        """
        key = normalize_edge(a, b)
        ts = self.edge_map.get(key)
        if not ts or len(ts) != 2:
            raise ValueError(f"Edge {key} is not flippable (not shared by 2 triangles)")
        t1, t2 = tuple(ts)
        c = self.apex(t1, a, b)
        if c is None:
            t1, t2 = t2, t1
            c = self.apex(t1, a, b)
        d = self.apex(t2, b, a)
        if c is None or d is None:
            raise RuntimeError(f"Inconsistent adjacency around edge {key}")
        # quad (a, d, b, c) is counter-clockwise
        self._set_triangle(t1, (a, d, c))
        self._set_triangle(t2, (d, b, c))
        self.flip_count += 1
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("flip %s -> %s", key, normalize_edge(c, d))
        return normalize_edge(c, d)

    def legalize(self, edges: Iterable[Edge], fixed: Optional[Set[Edge]] = None) -> int:
        """Lawson flip sweep starting from ``edges``; edges in ``fixed`` are never flipped.

        Every flipped edge pushes the four edges of its quadrilateral back on
        the stack, so on return all edges reachable from the seeds are
        locally Delaunay (or fixed). Returns the number of flips.
        """
        fixed = fixed or set()
        stack = [normalize_edge(*e) for e in edges]
        flips = 0
        while stack:
            e = stack.pop()
            if e in fixed or len(self.edge_map.get(e, ())) != 2:
                continue
            a, b = e
            if self.is_locally_delaunay(a, b) or not self.is_convex_quad(a, b):
                continue
            c, d = self.opposite_vertices(a, b)
            self.flip(a, b)
            flips += 1
            stack.extend((normalize_edge(a, c), normalize_edge(c, b),
                          normalize_edge(b, d), normalize_edge(d, a)))
        return flips

    def legalize_all(self, fixed: Optional[Set[Edge]] = None) -> int:
        return self.legalize(self.edges(), fixed)

    def locate(self, p) -> Tuple[str, object]:
        """Locate point p: ('triangle', t), ('edge', (a,b)), ('vertex', v) or ('outside', None)."""
        q = (float(p[0]), float(p[1]))
        if not self.tris:
            return 'outside', None
        t = self._last_tri if self._last_tri < len(self.tris) else 0
        max_steps = 4 * len(self.tris) + 16
        for step in range(max_steps):
            verts = self.tris[t]
            o = self._edge_orients(verts, q)
            # rotate the starting edge so the walk cannot cycle on ties
            moved = False
            for k in range(3):
                i = (k + step) % 3
                if o[i] < 0:
                    a, b = verts[(i + 1) % 3], verts[(i + 2) % 3]
                    nxt = [s for s in self.edge_map.get(normalize_edge(a, b), ()) if s != t]
                    if not nxt:
                        return 'outside', None
                    t = nxt[0]
                    moved = True
                    break
            if not moved:
                self._last_tri = t
                return self._classify(verts, o, t)
        # walk did not converge (non-Delaunay input); scan everything
        for t, verts in enumerate(self.tris):
            o = self._edge_orients(verts, q)
            if min(o) >= 0:
                return self._classify(verts, o, t)
        return 'outside', None

    def _edge_orients(self, verts, q):
        xy = self._xy
        a, b, c = verts
        return (orient(xy[b], xy[c], q), orient(xy[c], xy[a], q), orient(xy[a], xy[b], q))

    @staticmethod
    def _classify(verts, o, t):
        zeros = [i for i in range(3) if o[i] == 0]
        if not zeros:
            return 'triangle', t
        if len(zeros) == 1:
            i = zeros[0]
            return 'edge', normalize_edge(verts[(i + 1) % 3], verts[(i + 2) % 3])
        nonzero = [i for i in range(3) if o[i] != 0][0]
        return 'vertex', verts[nonzero]

    def insert_vertex(self, v: int, fixed: Optional[Set[Edge]] = None) -> int:
        """Insert existing vertex ``v`` (a row of points not yet used) and re-legalize.

        Handles points strictly inside a triangle, on an edge, and outside the
        current hull. Returns the number of legalizing flips.
        """
        xy = self._xy
        kind, where = self.locate(xy[v])
        seeds: List[Edge] = []
        if kind == 'vertex':
            raise ValueError(f"Vertex {v} coincides with existing vertex {where}")
        if kind == 'triangle':
            t = where
            a, b, c = self.tris[t]
            self._set_triangle(t, (a, b, v))
            self._set_triangle(len(self.tris), (b, c, v))
            self._set_triangle(len(self.tris), (c, a, v))
            seeds = [(a, b), (b, c), (c, a)]
        elif kind == 'edge':
            a, b = where
            for t in list(self.edge_map.get(where, ())):
                p, q = (a, b) if self.apex(t, a, b) is not None else (b, a)
                r = self.apex(t, p, q)
                self._set_triangle(t, (p, v, r))
                self._set_triangle(len(self.tris), (v, q, r))
                seeds.extend([(q, r), (r, p)])
        else:
            visible = []
            for a, b in sorted(self.boundary):
                t = next(iter(self.edge_map[(a, b)]))
                p, q = (a, b) if self.apex(t, a, b) is not None else (b, a)
                # interior lies left of p->q; v must be strictly right of it
                if orient(xy[p], xy[q], xy[v]) < 0:
                    visible.append((p, q))
            if not visible:
                raise RuntimeError(f"Cannot insert vertex {v}: no visible hull edge")
            for p, q in visible:
                self._set_triangle(len(self.tris), (q, p, v))
                seeds.extend([(p, q), (q, v), (v, p)])
        # next walk starts next to the newest vertex
        self._last_tri = len(self.tris) - 1
        return self.legalize(seeds, fixed)

    def active_triangles(self) -> np.ndarray:
        return np.asarray(self.tris, dtype=np.int32).reshape(-1, 3)

    @property
    def triangles(self) -> np.ndarray:
        return self.active_triangles()

    def used_vertices(self) -> Set[int]:
        return set(self.v_map.keys())


__all__ = ['Triangulation']
