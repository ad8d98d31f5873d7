"""Central numerical tolerances and small geometry constants.

This module centralizes tiny numeric thresholds used across the codebase so
they can be tuned consistently and referenced without scattering literals.
"""
from __future__ import annotations

# Geometry tolerances
EPS_AREA: float = 1e-12           # minimum positive (absolute) triangle area
EPS_MIN_ANGLE_DEG: float = 1e-9   # tolerance for min-angle comparisons (degrees)
EPS_LENGTH: float = 1e-12         # tolerance for edge-length comparisons

# Vertex snapping
DEFAULT_DEDUP_TOLERANCE: float = 1e-6   # planar snap distance in working units

# Floating-point filter bounds for the orientation / incircle predicates
# (Shewchuk's static error bounds, eps = 2**-53).
_EPS_MACHINE: float = 1.1102230246251565e-16
ORIENT_ERRBOUND: float = (3.0 + 16.0 * _EPS_MACHINE) * _EPS_MACHINE
INCIRCLE_ERRBOUND: float = (10.0 + 96.0 * _EPS_MACHINE) * _EPS_MACHINE

# Default triangles handled per cancellation check in the filter pipeline
FILTER_CHUNK: int = 256

__all__ = [
    'EPS_AREA',
    'EPS_MIN_ANGLE_DEG',
    'EPS_LENGTH',
    'DEFAULT_DEDUP_TOLERANCE',
    'ORIENT_ERRBOUND',
    'INCIRCLE_ERRBOUND',
    'FILTER_CHUNK',
]
