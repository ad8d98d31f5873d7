"""Constraint edge insertion by edge flipping.

Each constraint segment (a, b) is forced into the triangulation in three steps:

1. Walk from ``a`` toward ``b`` and collect every edge the open segment
   crosses. A vertex lying exactly on the segment ends the current piece: the
   piece up to that vertex is inserted first and the walk resumes from it.
2. Flip crossed edges whose quadrilateral is strictly convex; a new diagonal
   that still crosses the segment goes back on the queue, the others are
   remembered. This terminates for any piece without a vertex on it.
3. Mark the piece as fixed and re-legalize the remembered diagonals with
   Lawson flips that never touch fixed edges.

If a crossed edge is itself an already placed constraint the current
constraint is blocked: a ConstraintConflict is recorded, the pieces placed so
far stay in the mesh and the blocked piece is left untouched. Constraints are
processed in the order given, so an earlier constraint always wins.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from .geometry import normalize_edge, orient, point_on_open_segment, segments_cross
from .logging_utils import get_logger
from .triangulation import Triangulation

Edge = Tuple[int, int]

logger = get_logger('tinmesh.enforce')


@dataclass(frozen=True)
class ConstraintConflict:
    """Constraint ``edge`` could not be completed because it crosses ``blocking``."""
    edge: Edge
    blocking: Edge
    reached: int

    def as_tuple(self) -> Tuple[Edge, Edge]:
        return self.edge, self.blocking


@dataclass
class EnforcementReport:
    inserted: List[Edge] = field(default_factory=list)
    already_present: int = 0
    conflicts: List[ConstraintConflict] = field(default_factory=list)
    split_constraints: Dict[Edge, List[Edge]] = field(default_factory=dict)
    fixed_edges: Set[Edge] = field(default_factory=set)
    flips: int = 0
    legalize_flips: int = 0

    @property
    def conflicting_edges(self) -> Set[Edge]:
        return {c.edge for c in self.conflicts}


class _Blocked(Exception):
    def __init__(self, blocking: Edge):
        self.blocking = blocking


class ConstraintEnforcer:
    """Inserts constraint edges into a Triangulation, in order."""

    def __init__(self, tri: Triangulation, fixed: Optional[Set[Edge]] = None):
        self.tri = tri
        self.fixed: Set[Edge] = set(fixed or ())
        self.report = EnforcementReport(fixed_edges=self.fixed)

    # --- walk ---
    def _first_step(self, a: int, b: int):
        """From vertex a toward b: ('vertex', v) on the segment, or ('edge', (p, q)) crossed first.

        (p, q) is oriented with p right and q left of a->b.
        """
        xy = self.tri.xy
        pa, pb = xy(a), xy(b)
        for t in self.tri.vertex_triangles(a):
            tri = self.tri.tris[t]
            i = tri.index(a)
            p, q = tri[(i + 1) % 3], tri[(i + 2) % 3]
            o_p = orient(pa, pb, xy(p))
            o_q = orient(pa, pb, xy(q))
            if o_p == 0 and point_on_open_segment(xy(p), pa, pb) or p == b:
                return 'vertex', p
            if o_q == 0 and point_on_open_segment(xy(q), pa, pb) or q == b:
                return 'vertex', q
            if o_p < 0 < o_q:
                return 'edge', (p, q)
        raise RuntimeError(f"Segment walk from vertex {a} toward {b} found no triangle")

    def _crossings(self, a: int, b: int) -> Tuple[List[Edge], int]:
        """Edges crossed by segment a->stop and the vertex ``stop`` where the piece ends.

        ``stop`` is ``b`` or the first vertex lying exactly on the segment.
        """
        xy = self.tri.xy
        pa, pb = xy(a), xy(b)
        kind, what = self._first_step(a, b)
        if kind == 'vertex':
            return [], what
        p, q = what
        crossed = [(p, q)]
        while True:
            # triangle beyond (p, q): directed edge q->p with apex r
            ts = [t for t in self.tri.edge_triangles(p, q) if self.tri.apex(t, q, p) is not None]
            if not ts:
                raise RuntimeError(f"Segment ({a}, {b}) leaves the triangulation across ({p}, {q})")
            r = self.tri.apex(ts[0], q, p)
            if r == b:
                return crossed, b
            o_r = orient(pa, pb, xy(r))
            if o_r == 0:
                return crossed, r
            if o_r < 0:
                p = r
            else:
                q = r
            crossed.append((p, q))

    # --- insertion ---
    def _insert_piece(self, a: int, b: int, crossed: List[Edge]) -> List[Edge]:
        """Flip away every crossed edge; returns the new diagonals that do not cross a-b."""
        xy = self.tri.xy
        pa, pb = xy(a), xy(b)
        queue = deque(crossed)
        created: List[Edge] = []
        stalls = 0
        while queue:
            p, q = queue.popleft()
            if not self.tri.is_convex_quad(p, q):
                queue.append((p, q))
                stalls += 1
                if stalls > len(queue):
                    raise RuntimeError(f"No convex flip available while inserting ({a}, {b})")
                continue
            stalls = 0
            c, d = self.tri.flip(p, q)
            self.report.flips += 1
            if (c, d) != normalize_edge(a, b) and segments_cross(pa, pb, xy(c), xy(d)):
                queue.append((c, d))
            else:
                created.append((c, d))
        return created

    def _corridor_edges(self, edges: List[Edge]) -> List[Edge]:
        """All edges of the triangles incident to ``edges``, sorted.

        The triangles around a re-triangulated corridor also changed on their
        outer edges, which must be re-checked along with the new diagonals.
        """
        seeds: Set[Edge] = set()
        for e in edges:
            for t in self.tri.edge_triangles(*e):
                x, y, z = self.tri.tris[t]
                seeds.update((normalize_edge(x, y), normalize_edge(y, z), normalize_edge(z, x)))
        return sorted(seeds)

    def insert(self, a: int, b: int) -> bool:
        """Force constraint (a, b); returns False when it was blocked by a fixed edge."""
        key = normalize_edge(a, b)
        if self.tri.has_edge(a, b):
            self.fixed.add(key)
            self.report.already_present += 1
            self.report.inserted.append(key)
            return True
        pieces: List[Edge] = []
        current = a
        try:
            while current != b:
                crossed, stop = self._crossings(current, b)
                blocking = next((normalize_edge(*e) for e in crossed if normalize_edge(*e) in self.fixed), None)
                if blocking is not None:
                    raise _Blocked(blocking)
                if crossed:
                    created = self._insert_piece(current, stop, crossed)
                else:
                    created = []
                piece = normalize_edge(current, stop)
                if not self.tri.has_edge(*piece):
                    raise RuntimeError(f"Constraint piece {piece} missing after flips")
                self.fixed.add(piece)
                pieces.append(piece)
                self.report.legalize_flips += self.tri.legalize(self._corridor_edges(created + [piece]), self.fixed)
                current = stop
        except _Blocked as blk:
            conflict = ConstraintConflict(edge=key, blocking=blk.blocking, reached=current)
            self.report.conflicts.append(conflict)
            logger.warning("Constraint %s blocked by constraint %s (placed up to vertex %d)",
                           key, blk.blocking, current)
            if pieces:
                self.report.split_constraints[key] = pieces
            return False
        if len(pieces) > 1:
            self.report.split_constraints[key] = pieces
            logger.debug("Constraint %s passes through vertices; split into %s", key, pieces)
        self.report.inserted.append(key)
        return True

    def insert_all(self, edges: Sequence[Edge], check: Optional[Callable[[str], None]] = None) -> EnforcementReport:
        """Insert ``edges`` in order; ``check`` runs before each one and may raise to abort.

        On abort the triangulation is valid and ``report`` covers the edges
        processed so far.
        """
        for a, b in edges:
            if check is not None:
                check('constraint enforcement')
            self.insert(int(a), int(b))
        return self.report


def enforce_constraints(tri: Triangulation, edges: Sequence[Edge],
                        check: Optional[Callable[[str], None]] = None,
                        enforcer: Optional[ConstraintEnforcer] = None) -> EnforcementReport:
    """Insert ``edges`` into ``tri`` in order (mutates ``tri``).

    ``check`` is called before every edge with the stage name and may raise
    to abort (cancellation). Pass an ``enforcer`` bound to ``tri`` to keep
    access to its report when the run is aborted.
    """
    if enforcer is None:
        enforcer = ConstraintEnforcer(tri)
    elif enforcer.tri is not tri:
        raise ValueError("enforcer is bound to a different triangulation")
    rep = enforcer.insert_all(edges, check)
    logger.info("Constraints: %d inserted (%d already present), %d conflicting, %d flips",
                len(rep.inserted), rep.already_present, len(rep.conflicts), rep.flips + rep.legalize_flips)
    return rep


__all__ = ['ConstraintConflict', 'EnforcementReport', 'ConstraintEnforcer', 'enforce_constraints']
