"""Vertex collection and tolerance-based deduplication.

Raw points from every source (hole collars, breakline vertices, loose survey
points) are snapped onto a dense canonical vertex array. Snapping uses a
uniform grid whose cell size equals the tolerance, so each point only checks
the 3x3 block of cells around it.

The first point registered in a cluster becomes its canonical representative.
When a point is within tolerance of more than one canonical vertex, the one
with the smallest canonical id wins. The result is deterministic for a fixed
input order but changes if the input is reordered.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np

from .constants import DEFAULT_DEDUP_TOLERANCE
from .errors import InsufficientVertices, MalformedInput
from .logging_utils import get_logger

logger = get_logger('tinmesh.vertices')


class SourceTag(Enum):
    HOLE_COLLAR = 'hole_collar'
    BREAKLINE_VERTEX = 'breakline_vertex'
    RAW_POINT = 'raw_point'


@dataclass(frozen=True)
class RawPoint:
    x: float
    y: float
    z: float = 0.0
    source_tag: SourceTag = SourceTag.RAW_POINT
    source_ref: Any = None


@dataclass(frozen=True)
class Vertex:
    id: int
    x: float
    y: float
    z: float
    source_tag: SourceTag
    source_ref: Any = None


@dataclass
class VertexSet:
    """Canonical vertices plus the raw -> canonical index map."""
    vertices: List[Vertex]
    points: np.ndarray            # (N,3) float64
    raw_to_canonical: np.ndarray  # (R,) int64
    tolerance: float

    @property
    def raw_count(self) -> int:
        return int(self.raw_to_canonical.shape[0])

    @property
    def canonical_count(self) -> int:
        return len(self.vertices)

    @property
    def duplicates_merged(self) -> int:
        return self.raw_count - self.canonical_count

    @property
    def xy(self) -> np.ndarray:
        return self.points[:, :2]

    def canonical_id(self, raw_index: int) -> int:
        if raw_index < 0 or raw_index >= self.raw_count:
            raise MalformedInput(f"Raw vertex index {raw_index} out of range [0, {self.raw_count})")
        return int(self.raw_to_canonical[raw_index])

    def as_raw_points(self) -> List[RawPoint]:
        return [RawPoint(v.x, v.y, v.z, v.source_tag, v.source_ref) for v in self.vertices]


def _coerce(item, index: int, default_tag: SourceTag) -> RawPoint:
    if isinstance(item, RawPoint):
        rp = item
    elif isinstance(item, Vertex):
        rp = RawPoint(item.x, item.y, item.z, item.source_tag, item.source_ref)
    else:
        try:
            coords = [float(c) for c in item]
        except (TypeError, ValueError) as exc:
            raise MalformedInput(f"Point {index} is not a coordinate sequence: {item!r}") from exc
        if len(coords) not in (2, 3):
            raise MalformedInput(f"Point {index} must have 2 or 3 coordinates, got {len(coords)}")
        rp = RawPoint(coords[0], coords[1], coords[2] if len(coords) == 3 else 0.0, default_tag)
    if not (math.isfinite(rp.x) and math.isfinite(rp.y) and math.isfinite(rp.z)):
        raise MalformedInput(f"Point {index} has non-finite coordinates ({rp.x}, {rp.y}, {rp.z})")
    return rp


def as_raw_points(points, default_tag: SourceTag = SourceTag.RAW_POINT) -> List[RawPoint]:
    """Coerce RawPoints, (x,y[,z]) tuples or an (N,2)/(N,3) array into RawPoints.

    Raises MalformedInput on non-finite coordinates.
    """
    if points is None:
        return []
    if isinstance(points, np.ndarray):
        arr = np.asarray(points, dtype=np.float64)
        if arr.size == 0:
            return []
        if arr.ndim != 2 or arr.shape[1] not in (2, 3):
            raise MalformedInput(f"point array must have shape (N,2) or (N,3), got {arr.shape}")
        points = arr.tolist()
    return [_coerce(p, i, default_tag) for i, p in enumerate(points)]


class _SnapGrid:
    """Uniform hash grid over canonical XY positions."""

    def __init__(self, tolerance: float):
        self.tol = float(tolerance)
        self.tol2 = self.tol * self.tol
        self.cells: Dict[Tuple[int, int], List[int]] = {}
        self.exact: Dict[Tuple[float, float], int] = {}

    def _key(self, x: float, y: float) -> Tuple[int, int]:
        return (math.floor(x / self.tol), math.floor(y / self.tol))

    def find(self, x: float, y: float, xy: List[Tuple[float, float]]) -> Optional[int]:
        if self.tol == 0.0:
            return self.exact.get((x, y))
        kx, ky = self._key(x, y)
        best = None
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for cid in self.cells.get((kx + dx, ky + dy), ()):
                    if best is not None and cid >= best:
                        continue
                    cx, cy = xy[cid]
                    if (cx - x) ** 2 + (cy - y) ** 2 <= self.tol2:
                        best = cid
        return best

    def add(self, cid: int, x: float, y: float) -> None:
        if self.tol == 0.0:
            self.exact[(x, y)] = cid
        else:
            self.cells.setdefault(self._key(x, y), []).append(cid)


def collect_vertices(raw_points: Iterable, tolerance: float = DEFAULT_DEDUP_TOLERANCE,
                     require_minimum: bool = True) -> VertexSet:
    """Snap raw points onto canonical vertices.

    Parameters
    ----------
    raw_points : iterable
        RawPoints, coordinate tuples or an (N,2)/(N,3) array, in a stable order.
    tolerance : float
        Planar snap distance. 0 merges exact XY duplicates only.
    require_minimum : bool
        Raise InsufficientVertices when fewer than 3 canonical vertices result.

    Returns
    -------
    VertexSet
    """
    tol = float(tolerance)
    if not math.isfinite(tol) or tol < 0.0:
        raise MalformedInput(f"tolerance must be a finite value >= 0, got {tolerance!r}")
    raws = as_raw_points(raw_points)
    grid = _SnapGrid(tol)
    xy: List[Tuple[float, float]] = []
    vertices: List[Vertex] = []
    mapping = np.empty((len(raws),), dtype=np.int64)
    for i, rp in enumerate(raws):
        x, y = float(rp.x), float(rp.y)
        cid = grid.find(x, y, xy)
        if cid is None:
            cid = len(vertices)
            vertices.append(Vertex(cid, x, y, float(rp.z), rp.source_tag, rp.source_ref))
            xy.append((x, y))
            grid.add(cid, x, y)
        mapping[i] = cid
    points = np.array([[v.x, v.y, v.z] for v in vertices], dtype=np.float64).reshape(-1, 3)
    vset = VertexSet(vertices=vertices, points=np.ascontiguousarray(points),
                     raw_to_canonical=mapping, tolerance=tol)
    logger.info("Deduplication: %d raw -> %d canonical vertices (tolerance=%g)",
                vset.raw_count, vset.canonical_count, tol)
    if require_minimum and vset.canonical_count < 3:
        raise InsufficientVertices(vset.canonical_count)
    return vset


__all__ = ['SourceTag', 'RawPoint', 'Vertex', 'VertexSet', 'as_raw_points', 'collect_vertices']
