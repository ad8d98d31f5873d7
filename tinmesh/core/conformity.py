"""Mesh validity checks: adjacency maps, conformity and the Delaunay criterion."""
from __future__ import annotations
from collections import defaultdict, deque
import numpy as np
from .constants import EPS_AREA
from .geometry import triangles_signed_areas, incircle, normalize_edge
from .logging_utils import get_logger

__all__ = [
	'build_edge_to_tri_map','build_vertex_to_tri_map','boundary_edges_from_map',
	'check_mesh_conformity','find_delaunay_violations','missing_edges','count_boundary_loops'
]

def build_edge_to_tri_map(triangles):
	edge_map = {}
	for t_idx, tri in enumerate(triangles):
		for i in range(3):
			a = int(tri[i]); b = int(tri[(i+1)%3])
			edge_map.setdefault(normalize_edge(a, b), set()).add(t_idx)
	return edge_map

def build_vertex_to_tri_map(triangles):
	v_map = {}
	for t_idx, tri in enumerate(triangles):
		for v in tri:
			v_map.setdefault(int(v), set()).add(t_idx)
	return v_map

def boundary_edges_from_map(edge_map):
	return {e for e, s in edge_map.items() if len(s) == 1}

def count_boundary_loops(triangles):
	"""Number of connected components formed by boundary edges."""
	edge_map = build_edge_to_tri_map(triangles)
	adj = defaultdict(list)
	for a, b in boundary_edges_from_map(edge_map):
		adj[a].append(b); adj[b].append(a)
	visited = set(); loops = 0
	for v in adj:
		if v in visited: continue
		loops += 1
		dq = deque([v]); visited.add(v)
		while dq:
			u = dq.popleft()
			for w in adj[u]:
				if w not in visited:
					visited.add(w); dq.append(w)
	return loops

def check_mesh_conformity(points, triangles, verbose=False, reject_inverted=True,
						  reject_boundary_loops=False):
	"""Validate a triangle mesh.

	Checks index range, near-zero and (optionally) inverted planar areas,
	duplicate triangles, non-manifold edges and (optionally) more than one
	boundary loop. Returns (ok, messages).
	"""
	triangles = np.ascontiguousarray(np.asarray(triangles, dtype=np.int32)).reshape(-1, 3)
	msgs = []
	ok = True
	if triangles.size == 0:
		return False, ["No active triangles."]
	points = np.ascontiguousarray(np.asarray(points, dtype=np.float64))
	npts = len(points)
	if triangles.max() >= npts or triangles.min() < 0:
		return False, ["Triangle indices out of range."]
	areas = triangles_signed_areas(points, triangles)
	abs_areas = np.abs(areas)
	zero_mask = abs_areas < EPS_AREA
	if np.any(zero_mask):
		for li in np.nonzero(zero_mask)[0][:50]:
			msgs.append(f"Triangle {int(li)} has near-zero area ({abs_areas[li]:.3e}).")
		ok = False
	if reject_inverted:
		inv_mask = areas <= -EPS_AREA
		if np.any(inv_mask):
			for li in np.nonzero(inv_mask)[0][:50]:
				msgs.append(f"Triangle {int(li)} has negative signed area (inverted): {areas[li]:.3e}")
			ok = False
	sorted_tris = np.sort(triangles, axis=1)
	_, tri_counts = np.unique(sorted_tris, axis=0, return_counts=True)
	if np.any(tri_counts > 1):
		msgs.append("Duplicate triangles detected.")
		ok = False
	edges = np.vstack((triangles[:, [0, 1]], triangles[:, [1, 2]], triangles[:, [2, 0]])).astype(np.int64)
	edges.sort(axis=1)
	uniq_edges, counts = np.unique(edges, axis=0, return_counts=True)
	nm_mask = counts > 2
	if np.any(nm_mask):
		for e, c in zip(uniq_edges[nm_mask][:10], counts[nm_mask][:10]):
			msgs.append(f"Non-manifold edge ({int(e[0])}, {int(e[1])}) shared by >2 triangles (count={int(c)}).")
		ok = False
	if reject_boundary_loops:
		loops = count_boundary_loops(triangles)
		if loops > 1:
			msgs.append(f"Multiple boundary loops detected: {loops}")
			ok = False
	if verbose:
		logger = get_logger('tinmesh.conformity')
		for m in msgs:
			logger.info("Conformity: %s", m)
	return ok, msgs

def find_delaunay_violations(points, triangles, fixed_edges=()):
	"""Interior edges whose opposite apex lies strictly inside the neighbour's circumcircle.

	Edges in fixed_edges (either orientation) are skipped. Returns a list of
	normalized edges.
	"""
	pts = np.asarray(points, dtype=np.float64)[:, :2]
	tris = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
	fixed = {normalize_edge(int(a), int(b)) for a, b in fixed_edges}
	edge_map = build_edge_to_tri_map(tris)
	bad = []
	for e, ts in edge_map.items():
		if len(ts) != 2 or e in fixed:
			continue
		t1, t2 = (tris[t] for t in ts)
		d = [int(v) for v in t2 if int(v) not in e][0]
		a, b, c = (int(v) for v in t1)
		s = incircle(pts[a], pts[b], pts[c], pts[d])
		# t1 rows are counter-clockwise: positive means strictly inside
		if s > 0:
			bad.append(e)
	return bad

def missing_edges(triangles, edges):
	"""Edges (either orientation) that are not an edge of any triangle."""
	present = set(build_edge_to_tri_map(np.asarray(triangles).reshape(-1, 3)).keys())
	return [normalize_edge(int(a), int(b)) for a, b in edges if normalize_edge(int(a), int(b)) not in present]
