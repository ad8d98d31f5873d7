"""Configuration objects for surface triangulation."""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Optional

from .constants import DEFAULT_DEDUP_TOLERANCE, FILTER_CHUNK
from .errors import MalformedInput

CLIP_MODES = ('outside', 'inside')


@dataclass(frozen=True)
class TriangulationConfig:
    """Parameters for one triangulation call.

    Attributes
    ----------
    dedup_tolerance : float
        Planar distance under which raw points snap to the same canonical
        vertex. ``0`` keeps only exact XY duplicates together.
    min_angle_deg : float or None
        Remove triangles whose smallest internal angle is below this value.
        ``None`` or ``0`` disables the stage.
    max_edge_length : float or None
        Remove triangles whose longest edge exceeds this value. ``None`` or
        ``0`` disables the stage.
    clip_mode : str
        ``'outside'`` removes triangles whose centroid is outside the clip
        polygon, ``'inside'`` removes those inside it.
    consider_3d_angle, consider_3d_length : bool
        Measure angles / edge lengths on the XYZ triangle instead of its
        planar projection.
    best_effort_on_cancel : bool
        Attach a partial result to ``Cancelled`` instead of discarding it.
    validate_output : bool
        Run the conformity checker on the constrained mesh and log problems.
    filter_chunk : int
        Triangles each filter stage processes between two cancellation
        checks. ``1`` checks before every triangle.
    """
    dedup_tolerance: float = DEFAULT_DEDUP_TOLERANCE
    min_angle_deg: Optional[float] = None
    max_edge_length: Optional[float] = None
    clip_mode: str = 'outside'
    consider_3d_angle: bool = False
    consider_3d_length: bool = False
    best_effort_on_cancel: bool = False
    validate_output: bool = False
    filter_chunk: int = FILTER_CHUNK

    def validate(self) -> 'TriangulationConfig':
        tol = float(self.dedup_tolerance)
        if not math.isfinite(tol) or tol < 0.0:
            raise MalformedInput(f"dedup_tolerance must be a finite value >= 0, got {self.dedup_tolerance!r}")
        for label, value in (('min_angle_deg', self.min_angle_deg), ('max_edge_length', self.max_edge_length)):
            if value is None:
                continue
            v = float(value)
            if not math.isfinite(v) or v < 0.0:
                raise MalformedInput(f"{label} must be a finite value >= 0, got {value!r}")
        if self.min_angle_deg is not None and float(self.min_angle_deg) > 60.0:
            # no triangle has a smallest angle above 60 degrees
            raise MalformedInput(f"min_angle_deg must not exceed 60, got {self.min_angle_deg!r}")
        if isinstance(self.filter_chunk, bool) or not isinstance(self.filter_chunk, int) or self.filter_chunk < 1:
            raise MalformedInput(f"filter_chunk must be an integer >= 1, got {self.filter_chunk!r}")
        if self.clip_mode not in CLIP_MODES:
            raise MalformedInput(f"clip_mode must be one of {CLIP_MODES}, got {self.clip_mode!r}")
        return self

    @property
    def angle_filter_enabled(self) -> bool:
        return bool(self.min_angle_deg)

    @property
    def length_filter_enabled(self) -> bool:
        return bool(self.max_edge_length)

    def with_overrides(self, **overrides) -> 'TriangulationConfig':
        return replace(self, **overrides)


__all__ = ['TriangulationConfig', 'CLIP_MODES']
