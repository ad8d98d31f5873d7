"""Final mesh assembly and diagnostics record.

The emitter takes the constrained triangulation and the filter mask and
produces an immutable Mesh (read-only numpy arrays) plus the Diagnostics
record that the calling UI turns into success/warning messages.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .enforce import EnforcementReport
from .filters import FilterResult, Removal
from .geometry import (
	triangles_centroids, triangles_circumradii, triangles_max_edge_lengths,
	triangles_min_angles, triangles_normals,
)
from .logging_utils import get_logger

Edge = Tuple[int, int]

logger = get_logger('tinmesh.emitter')


def _readonly(arr, dtype):
	out = np.array(arr, dtype=dtype, copy=True)
	out.flags.writeable = False
	return out


@dataclass(frozen=True)
class Mesh:
	"""Surviving triangles over the canonical vertex array.

	``vertices`` keeps every canonical vertex so ids stay stable even when
	filtering leaves some of them unreferenced.
	"""
	vertices: np.ndarray          # (N,3) float64
	triangles: np.ndarray         # (M,3) int32, counter-clockwise in XY
	normals: np.ndarray           # (M,3) unit, non-negative Z
	centroids: np.ndarray         # (M,3)
	constraint_edges: np.ndarray  # (K,2) int32, normalized
	min_angles: np.ndarray        # (M,) degrees, planar
	max_edge_lengths: np.ndarray  # (M,) planar
	circumradii: np.ndarray       # (M,) planar

	@property
	def n_vertices(self) -> int:
		return int(self.vertices.shape[0])

	@property
	def n_triangles(self) -> int:
		return int(self.triangles.shape[0])

	def edges(self) -> set:
		out = set()
		for a, b, c in self.triangles.tolist():
			out.add((min(a, b), max(a, b)))
			out.add((min(b, c), max(b, c)))
			out.add((min(c, a), max(c, a)))
		return out

	def used_vertices(self) -> np.ndarray:
		return np.unique(self.triangles.reshape(-1))


@dataclass
class Diagnostics:
	raw_vertex_count: int = 0
	canonical_vertex_count: int = 0
	constraint_edge_count: int = 0
	degenerate_constraints_dropped: int = 0
	duplicate_constraints_merged: int = 0
	conflicting_constraints: List[Tuple[Edge, Edge]] = field(default_factory=list)
	split_constraints: Dict[Edge, List[Edge]] = field(default_factory=dict)
	constraints_removed_by_filter: List[Edge] = field(default_factory=list)
	triangles_before_filter: int = 0
	triangles_removed_by_clip: int = 0
	triangles_removed_by_angle: int = 0
	triangles_removed_by_length: int = 0
	triangles_final: int = 0
	removals: List[Removal] = field(default_factory=list)
	flips: int = 0
	timings: Dict[str, float] = field(default_factory=dict)
	# set on best-effort results attached to Cancelled
	cancelled_stage: Optional[str] = None

	@property
	def duplicate_vertices_merged(self) -> int:
		return self.raw_vertex_count - self.canonical_vertex_count

	@property
	def is_partial(self) -> bool:
		return self.cancelled_stage is not None

	def summary_counts(self) -> Dict[str, Any]:
		return {
			'raw vertices': self.raw_vertex_count,
			'canonical vertices': self.canonical_vertex_count,
			'constraint edges': self.constraint_edge_count,
			'degenerate dropped': self.degenerate_constraints_dropped,
			'duplicates merged': self.duplicate_constraints_merged,
			'conflicts': len(self.conflicting_constraints),
			'triangles before filter': self.triangles_before_filter,
			'removed (clip)': self.triangles_removed_by_clip,
			'removed (angle)': self.triangles_removed_by_angle,
			'removed (length)': self.triangles_removed_by_length,
			'triangles final': self.triangles_final,
			'flips': self.flips,
		}

	def messages(self) -> List[Tuple[str, str]]:
		"""(level, text) lines for a UI; level is 'success' or 'warning'."""
		out: List[Tuple[str, str]] = []
		if self.is_partial:
			out.append(('warning', f"Triangulation cancelled during {self.cancelled_stage}; result is partial"))
		else:
			out.append(('success', f"Surface created: {self.triangles_final} triangles from "
								   f"{self.canonical_vertex_count} vertices"))
		if self.duplicate_vertices_merged:
			out.append(('warning', f"{self.duplicate_vertices_merged} duplicate point(s) merged"))
		if self.degenerate_constraints_dropped:
			out.append(('warning', f"{self.degenerate_constraints_dropped} breakline segment(s) shorter than "
								   f"the snap tolerance were dropped"))
		for edge, blocking in self.conflicting_constraints:
			out.append(('warning', f"Breakline segment {edge} crosses breakline segment {blocking} "
								   f"and was not fully honored"))
		if self.constraints_removed_by_filter:
			out.append(('warning', f"{len(self.constraints_removed_by_filter)} breakline segment(s) "
								   f"lost all triangles to filtering"))
		removed = self.triangles_removed_by_clip + self.triangles_removed_by_angle + self.triangles_removed_by_length
		if removed:
			out.append(('success', f"Filtered {removed} triangle(s): clip={self.triangles_removed_by_clip}, "
								   f"angle={self.triangles_removed_by_angle}, "
								   f"length={self.triangles_removed_by_length}"))
		return out


def build_mesh(points, triangles, constraint_edges: Sequence[Edge]) -> Mesh:
	pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
	T = np.asarray(triangles, dtype=np.int32).reshape(-1, 3)
	C = np.asarray(sorted(constraint_edges), dtype=np.int32).reshape(-1, 2)
	return Mesh(
		vertices=_readonly(pts, np.float64),
		triangles=_readonly(T, np.int32),
		normals=_readonly(triangles_normals(pts, T), np.float64),
		centroids=_readonly(triangles_centroids(pts, T), np.float64),
		constraint_edges=_readonly(C, np.int32),
		min_angles=_readonly(triangles_min_angles(pts[:, :2], T), np.float64),
		max_edge_lengths=_readonly(triangles_max_edge_lengths(pts[:, :2], T), np.float64),
		circumradii=_readonly(triangles_circumradii(pts, T), np.float64),
	)


def emit_mesh(vertex_set, triangles, constraints, report: EnforcementReport,
			  filtered: Optional[FilterResult] = None,
			  timings: Optional[Dict[str, float]] = None) -> Tuple[Mesh, Diagnostics]:
	"""Assemble the final Mesh and its Diagnostics.

	Parameters
	----------
	vertex_set : VertexSet
	triangles : (M,3) int array
		Constrained triangulation before filtering.
	constraints : ConstraintSet
		Extraction result (for the dropped/merged counters).
	report : EnforcementReport
		Placed constraint pieces, conflicts and flip counts.
	filtered : FilterResult or None
		Keep mask and removals; ``None`` keeps every triangle.
	timings : dict or None
		Stage durations in seconds.
	"""
	T = np.asarray(triangles, dtype=np.int32).reshape(-1, 3)
	if filtered is None:
		keep = np.ones((T.shape[0],), dtype=bool)
		removals: List[Removal] = []
	else:
		keep = filtered.keep
		removals = list(filtered.removals)
	survivors = T[keep]
	accepted = sorted(report.fixed_edges)
	mesh = build_mesh(vertex_set.points, survivors, accepted)
	present = mesh.edges()
	lost = [e for e in accepted if e not in present]

	diag = Diagnostics(
		raw_vertex_count=vertex_set.raw_count,
		canonical_vertex_count=vertex_set.canonical_count,
		constraint_edge_count=len(constraints),
		degenerate_constraints_dropped=constraints.degenerate_dropped,
		duplicate_constraints_merged=constraints.duplicates_merged,
		conflicting_constraints=[c.as_tuple() for c in report.conflicts],
		split_constraints={k: list(v) for k, v in report.split_constraints.items()},
		constraints_removed_by_filter=lost,
		triangles_before_filter=int(T.shape[0]),
		triangles_removed_by_clip=filtered.removed_by_clip if filtered is not None else 0,
		triangles_removed_by_angle=filtered.removed_by_angle if filtered is not None else 0,
		triangles_removed_by_length=filtered.removed_by_length if filtered is not None else 0,
		triangles_final=mesh.n_triangles,
		removals=removals,
		flips=report.flips + report.legalize_flips,
		timings=dict(timings or {}),
	)
	if lost:
		logger.warning("%d constraint edge(s) have no surviving triangle after filtering", len(lost))
	logger.info("Emitted mesh: %d triangles, %d constraint edges", mesh.n_triangles, len(accepted))
	return mesh, diag


__all__ = ['Mesh', 'Diagnostics', 'build_mesh', 'emit_mesh']
