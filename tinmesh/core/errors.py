"""Exception types raised by the triangulation engine.

Only input problems and cancellation abort a call. Degenerate or conflicting
breakline segments are recorded in the diagnostics instead of being raised.
"""
from __future__ import annotations

from typing import Any, Optional


class TinMeshError(Exception):
    """Base class for all tinmesh errors."""


class InsufficientVertices(TinMeshError):
    """Fewer than three usable (distinct, non-collinear) canonical vertices."""

    def __init__(self, count: int, message: Optional[str] = None):
        self.count = int(count)
        super().__init__(message or f"At least 3 distinct vertices are required, got {self.count}")


class MalformedInput(TinMeshError, ValueError):
    """Input that cannot be interpreted (non-finite coordinates, short paths, bad indices)."""


class Cancelled(TinMeshError):
    """Raised when a CancelToken fires during a triangulation.

    ``partial`` holds a best-effort TriangulationResult only when the caller
    asked for one (``TriangulationConfig.best_effort_on_cancel``).
    """

    def __init__(self, stage: str, partial: Any = None):
        self.stage = stage
        self.partial = partial
        super().__init__(f"Triangulation cancelled during {stage}")


__all__ = ['TinMeshError', 'InsufficientVertices', 'MalformedInput', 'Cancelled']
