"""Breakline constraint extraction.

Breakline entities (open polylines and closed polygons) are resolved through
the deduplication map into unordered canonical vertex pairs. Segments that
collapse under the snap tolerance are dropped and counted; repeated segments
are merged. The surviving edges keep their first-extraction order, which is
also the order in which the enforcer inserts them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Sequence, Tuple

import numpy as np

from .errors import MalformedInput
from .geometry import normalize_edge
from .logging_utils import get_logger
from .vertices import VertexSet

logger = get_logger('tinmesh.constraints')

Edge = Tuple[int, int]


@dataclass(frozen=True)
class Breakline:
    """A drawn polyline/polygon given by coordinates (x, y[, z])."""
    vertices: Sequence[Sequence[float]]
    closed: bool = False
    source_ref: Any = None


@dataclass(frozen=True)
class BreaklinePath:
    """A breakline given as indices into the raw point list."""
    raw_indices: Tuple[int, ...]
    closed: bool = False
    source_ref: Any = None


@dataclass
class ConstraintSet:
    edges: List[Edge] = field(default_factory=list)
    sources: Dict[Edge, Any] = field(default_factory=dict)
    degenerate_dropped: int = 0
    duplicates_merged: int = 0

    def __len__(self) -> int:
        return len(self.edges)

    def __iter__(self) -> Iterator[Edge]:
        return iter(self.edges)

    def __contains__(self, edge) -> bool:
        a, b = edge
        return normalize_edge(int(a), int(b)) in self.sources

    def as_array(self) -> np.ndarray:
        return np.asarray(self.edges, dtype=np.int32).reshape(-1, 2)


def paths_from_index_pairs(pairs: Iterable[Sequence[int]], source_ref: Any = None) -> List[BreaklinePath]:
    """Wrap raw-index constraint pairs ``[start, end]`` as two-vertex open paths."""
    out = []
    for i, pair in enumerate(pairs):
        if len(pair) != 2:
            raise MalformedInput(f"Constraint pair {i} must have exactly 2 indices, got {pair!r}")
        out.append(BreaklinePath((int(pair[0]), int(pair[1])), closed=False, source_ref=source_ref))
    return out


def _path_edges(ids: List[int], closed: bool) -> Iterator[Tuple[int, int]]:
    for i in range(len(ids) - 1):
        yield ids[i], ids[i + 1]
    if closed and len(ids) >= 3:
        yield ids[-1], ids[0]


def extract_constraints(vertex_set: VertexSet, paths: Iterable[BreaklinePath]) -> ConstraintSet:
    """Build the de-duplicated constraint edge set from breakline paths.

    Parameters
    ----------
    vertex_set : VertexSet
        Output of collect_vertices; provides the raw -> canonical map.
    paths : iterable of BreaklinePath
        Processed in order; edges keep the order in which they first appear.

    Returns
    -------
    ConstraintSet

    Raises
    ------
    MalformedInput
        A path with fewer than two vertices or a raw index out of range.
    """
    result = ConstraintSet()
    for p_idx, path in enumerate(paths):
        raw = list(path.raw_indices)
        if len(raw) < 2:
            raise MalformedInput(f"Breakline {p_idx} ({path.source_ref!r}) has fewer than 2 vertices")
        ids = [vertex_set.canonical_id(int(r)) for r in raw]
        # An explicit repeat of the first vertex is the polygon closure itself.
        if path.closed and len(ids) > 2 and ids[-1] == ids[0]:
            ids = ids[:-1]
        for a, b in _path_edges(ids, path.closed):
            if a == b:
                result.degenerate_dropped += 1
                logger.debug("Dropped degenerate constraint segment on vertex %d (breakline %d)", a, p_idx)
                continue
            key = normalize_edge(a, b)
            if key in result.sources:
                result.duplicates_merged += 1
                continue
            result.sources[key] = path.source_ref
            result.edges.append(key)
    if result.degenerate_dropped:
        logger.warning("%d breakline segment(s) collapsed under the snap tolerance and were dropped",
                       result.degenerate_dropped)
    logger.info("Extracted %d constraint edges (%d duplicates merged)",
                len(result.edges), result.duplicates_merged)
    return result


__all__ = ['Breakline', 'BreaklinePath', 'ConstraintSet', 'paths_from_index_pairs', 'extract_constraints']
