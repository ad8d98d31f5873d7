"""Triangle filter pipeline: clip boundary, minimum angle, maximum edge length.

Stages run in that fixed order and each one only sees the survivors of the
previous stage, so every removed triangle carries exactly one reason (the
first rule it failed).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from .config import TriangulationConfig
from .constants import EPS_LENGTH, EPS_MIN_ANGLE_DEG
from .errors import MalformedInput
from .geometry import (
    points_in_polygon, polygon_signed_area, triangles_centroids, triangles_max_edge_lengths, triangles_min_angles,
)
from .logging_utils import get_logger

logger = get_logger('tinmesh.filters')


class RemovalReason(Enum):
    CLIP = 'clip'
    MIN_ANGLE = 'min_angle'
    MAX_EDGE_LENGTH = 'max_edge_length'


@dataclass(frozen=True)
class Removal:
    triangle: Tuple[int, int, int]
    reason: RemovalReason
    value: Optional[float] = None


@dataclass
class FilterResult:
    keep: np.ndarray
    removals: List[Removal] = field(default_factory=list)

    def count(self, reason: RemovalReason) -> int:
        return sum(1 for r in self.removals if r.reason is reason)

    @property
    def removed_by_clip(self) -> int:
        return self.count(RemovalReason.CLIP)

    @property
    def removed_by_angle(self) -> int:
        return self.count(RemovalReason.MIN_ANGLE)

    @property
    def removed_by_length(self) -> int:
        return self.count(RemovalReason.MAX_EDGE_LENGTH)


def validate_clip_polygon(polygon) -> Optional[np.ndarray]:
    if polygon is None:
        return None
    ring = np.asarray(polygon, dtype=np.float64)
    if ring.ndim != 2 or ring.shape[1] < 2:
        raise MalformedInput(f"clip polygon must be a sequence of (x, y[, z]) vertices, got shape {ring.shape}")
    ring = ring[:, :2]
    if not np.all(np.isfinite(ring)):
        raise MalformedInput("clip polygon has non-finite coordinates")
    if len(ring) > 1 and np.array_equal(ring[0], ring[-1]):
        ring = ring[:-1]
    if len(ring) < 3:
        raise MalformedInput(f"clip polygon needs at least 3 distinct vertices, got {len(ring)}")
    if polygon_signed_area(ring) == 0.0:
        raise MalformedInput("clip polygon has zero area")
    return ring


def _chunks(idx: np.ndarray, size: int):
    for s in range(0, len(idx), size):
        yield idx[s:s + size]


def _run_stage(stage: str, keep: np.ndarray, removals: List[Removal], triangles: np.ndarray,
               reject: Callable[[np.ndarray], Tuple[np.ndarray, Optional[np.ndarray]]],
               reason: RemovalReason, check: Optional[Callable[[str], None]], chunk_size: int) -> int:
    """Apply ``reject`` to the current survivors chunk by chunk; returns the number removed."""
    removed = 0
    for chunk in _chunks(np.nonzero(keep)[0], chunk_size):
        if check is not None:
            check(stage)
        mask, values = reject(triangles[chunk])
        for j in np.nonzero(mask)[0]:
            t = int(chunk[j])
            keep[t] = False
            removals.append(Removal(tuple(int(v) for v in triangles[t]), reason,
                                    None if values is None else float(values[j])))
            removed += 1
    return removed


def apply_filters(points, triangles, clip_polygon=None, config: Optional[TriangulationConfig] = None,
                  check: Optional[Callable[[str], None]] = None) -> FilterResult:
    """Run the three-stage filter pipeline.

    Parameters
    ----------
    points : (N,3) float array
        Canonical vertices (z used only by the 3D angle/length options).
    triangles : (M,3) int array
    clip_polygon : sequence of vertices or None
    config : TriangulationConfig
        Supplies clip_mode, min_angle_deg, max_edge_length, the 3D switches
        and filter_chunk.
    check : callable or None
        Called with the stage name before each chunk of ``config.filter_chunk``
        surviving triangles (not before every triangle unless filter_chunk
        is 1); may raise to cancel.

    Returns
    -------
    FilterResult
        ``keep`` mask over the input rows plus one Removal per dropped triangle.
    """
    cfg = (config or TriangulationConfig()).validate()
    pts = np.asarray(points, dtype=np.float64)
    if pts.shape[1] == 2:
        pts = np.column_stack((pts, np.zeros(len(pts))))
    T = np.asarray(triangles, dtype=np.int32).reshape(-1, 3)
    keep = np.ones((T.shape[0],), dtype=bool)
    removals: List[Removal] = []
    ring = validate_clip_polygon(clip_polygon)

    if ring is not None:
        remove_inside = cfg.clip_mode == 'inside'

        def clip_reject(rows):
            inside = points_in_polygon(triangles_centroids(pts[:, :2], rows), ring)
            return (inside if remove_inside else ~inside), None
        n = _run_stage('clip filter', keep, removals, T, clip_reject, RemovalReason.CLIP,
                       check, cfg.filter_chunk)
        logger.info("Clip (%s): removed %d triangles", cfg.clip_mode, n)

    if cfg.angle_filter_enabled:
        threshold = float(cfg.min_angle_deg)
        angle_pts = pts if cfg.consider_3d_angle else pts[:, :2]

        def angle_reject(rows):
            angles = triangles_min_angles(angle_pts, rows)
            return angles < threshold - EPS_MIN_ANGLE_DEG, angles
        n = _run_stage('angle filter', keep, removals, T, angle_reject, RemovalReason.MIN_ANGLE,
                       check, cfg.filter_chunk)
        logger.info("Min angle < %.3g deg: removed %d triangles", threshold, n)

    if cfg.length_filter_enabled:
        limit = float(cfg.max_edge_length)
        length_pts = pts if cfg.consider_3d_length else pts[:, :2]

        def length_reject(rows):
            longest = triangles_max_edge_lengths(length_pts, rows)
            return longest > limit + EPS_LENGTH, longest
        n = _run_stage('edge length filter', keep, removals, T, length_reject, RemovalReason.MAX_EDGE_LENGTH,
                       check, cfg.filter_chunk)
        logger.info("Edge length > %.3g: removed %d triangles", limit, n)

    return FilterResult(keep=keep, removals=removals)


__all__ = ['RemovalReason', 'Removal', 'FilterResult', 'validate_clip_polygon', 'apply_filters']
