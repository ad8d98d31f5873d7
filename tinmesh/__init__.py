"""Public package API for tinmesh, a breakline-constrained surface triangulator.

This facade provides a stable, flat import surface on top of the internal
implementation package ``tinmesh.core``.

Example
-------
    from tinmesh import triangulate_surface, Breakline, TriangulationConfig

    result = triangulate_surface(points, breaklines=[Breakline(line, closed=False)],
                                 config=TriangulationConfig(max_edge_length=50.0))
    mesh, diagnostics = result

The deeper modules (``tinmesh.core.*``) are considered internal and may
change; rely on this layer for public symbols.
"""
from importlib import import_module as _imp
import logging as _logging

try:  # runtime version export
    from importlib.metadata import version as _pkg_version, PackageNotFoundError as _NotFound
    __version__ = _pkg_version("tinmesh")  # populated when installed
except _NotFound:  # pragma: no cover - source checkout
    __version__ = "0.0.0+dev"

_logging.getLogger(__name__).addHandler(_logging.NullHandler())

_geom = _imp('tinmesh.core.geometry')
_const = _imp('tinmesh.core.constants')
_conf = _imp('tinmesh.core.conformity')
_tri = _imp('tinmesh.core.triangulation')
_stats = _imp('tinmesh.core.stats')

from .core.config import TriangulationConfig, CLIP_MODES
from .core.constraints import Breakline, BreaklinePath, ConstraintSet, extract_constraints, paths_from_index_pairs
from .core.context import CancelToken, TriangulationContext
from .core.delaunay import DelaunayBuilder, IncrementalDelaunayBuilder, ScipyDelaunayBuilder
from .core.emitter import Diagnostics, Mesh, emit_mesh
from .core.enforce import ConstraintConflict, ConstraintEnforcer, EnforcementReport, enforce_constraints
from .core.engine import TriangulationResult, triangulate, triangulate_surface
from .core.errors import Cancelled, InsufficientVertices, MalformedInput, TinMeshError
from .core.filters import FilterResult, Removal, RemovalReason, apply_filters
from .core.jobs import TriangulationJob, submit_triangulation
from .core.logging_utils import configure_logging, get_logger
from .core.stats import format_diagnostics_table
from .core.triangulation import Triangulation
from .core.vertices import RawPoint, SourceTag, Vertex, VertexSet, collect_vertices

# Tolerances
EPS_AREA = _const.EPS_AREA
DEFAULT_DEDUP_TOLERANCE = _const.DEFAULT_DEDUP_TOLERANCE

# Namespace submodules for exploratory users
geometry = _geom
conformity = _conf
triangulation = _tri
stats = _stats
constants = _const

__all__ = [
    '__version__',
    # entry points
    'triangulate_surface', 'triangulate', 'submit_triangulation', 'TriangulationJob', 'TriangulationResult',
    # configuration / context
    'TriangulationConfig', 'CLIP_MODES', 'TriangulationContext', 'CancelToken',
    # input records
    'RawPoint', 'Vertex', 'VertexSet', 'SourceTag', 'Breakline', 'BreaklinePath', 'ConstraintSet',
    # stages
    'collect_vertices', 'extract_constraints', 'paths_from_index_pairs',
    'DelaunayBuilder', 'ScipyDelaunayBuilder', 'IncrementalDelaunayBuilder', 'Triangulation',
    'ConstraintEnforcer', 'ConstraintConflict', 'EnforcementReport', 'enforce_constraints',
    'apply_filters', 'FilterResult', 'Removal', 'RemovalReason',
    'emit_mesh', 'Mesh', 'Diagnostics', 'format_diagnostics_table',
    # errors
    'TinMeshError', 'InsufficientVertices', 'MalformedInput', 'Cancelled',
    # logging
    'configure_logging', 'get_logger',
    # tolerances
    'EPS_AREA', 'DEFAULT_DEDUP_TOLERANCE',
    # submodules / namespaces
    'geometry', 'conformity', 'triangulation', 'stats', 'constants',
]
