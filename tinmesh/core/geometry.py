"""Geometry primitives: robust planar predicates and vectorized triangle metrics.

The scalar predicates ``orient`` and ``incircle`` first evaluate the
determinant in floating point and compare it against a static error bound;
only when the result is too close to zero to trust its sign do they fall back
to exact rational arithmetic. Their sign is therefore always exact, which the
flip and walk logic in the constraint enforcer relies on.
"""
from __future__ import annotations
from fractions import Fraction
import numpy as np
from matplotlib.path import Path
from .constants import ORIENT_ERRBOUND, INCIRCLE_ERRBOUND

__all__ = [
	'orient','incircle','segments_cross','point_on_open_segment',
	'triangle_area','ensure_positive_orientation','points_in_polygon',
	'triangles_min_angles','triangles_signed_areas','triangles_edge_lengths','triangles_max_edge_lengths',
	'triangles_circumradii','triangles_centroids','triangles_normals','polygon_signed_area','normalize_edge'
]

_TINY = 5e-324


def _signed(value):
	"""Float carrying the sign of an exact Fraction (never underflows to 0 for nonzero input)."""
	if value == 0:
		return 0.0
	f = float(value)
	if f == 0.0:
		return _TINY if value > 0 else -_TINY
	return f


def orient(a, b, c):
	"""2D orientation (signed area * 2) for points a,b,c.

	Returns a positive value when (a,b,c) are counter-clockwise, negative when clockwise,
	and zero when colinear. The sign is exact.
	"""
	ax, ay = float(a[0]), float(a[1])
	bx, by = float(b[0]), float(b[1])
	cx, cy = float(c[0]), float(c[1])
	detleft = (ax - cx) * (by - cy)
	detright = (ay - cy) * (bx - cx)
	det = detleft - detright
	errbound = ORIENT_ERRBOUND * (abs(detleft) + abs(detright))
	if det > errbound or -det > errbound:
		return det
	fax, fay = Fraction(ax), Fraction(ay)
	fbx, fby = Fraction(bx), Fraction(by)
	fcx, fcy = Fraction(cx), Fraction(cy)
	return _signed((fax - fcx) * (fby - fcy) - (fay - fcy) * (fbx - fcx))


def incircle(a, b, c, d):
	"""In-circle test for point d against the circle through a,b,c.

	For counter-clockwise (a,b,c) the result is positive when d lies strictly
	inside the circle, negative outside and zero when the four points are
	cocircular. The sign flips for clockwise input. The sign is exact.
	"""
	ax, ay = float(a[0]), float(a[1])
	bx, by = float(b[0]), float(b[1])
	cx, cy = float(c[0]), float(c[1])
	dx, dy = float(d[0]), float(d[1])
	adx, ady = ax - dx, ay - dy
	bdx, bdy = bx - dx, by - dy
	cdx, cdy = cx - dx, cy - dy
	bdxcdy = bdx * cdy; cdxbdy = cdx * bdy
	cdxady = cdx * ady; adxcdy = adx * cdy
	adxbdy = adx * bdy; bdxady = bdx * ady
	alift = adx * adx + ady * ady
	blift = bdx * bdx + bdy * bdy
	clift = cdx * cdx + cdy * cdy
	det = alift * (bdxcdy - cdxbdy) + blift * (cdxady - adxcdy) + clift * (adxbdy - bdxady)
	permanent = ((abs(bdxcdy) + abs(cdxbdy)) * alift
				 + (abs(cdxady) + abs(adxcdy)) * blift
				 + (abs(adxbdy) + abs(bdxady)) * clift)
	errbound = INCIRCLE_ERRBOUND * permanent
	if det > errbound or -det > errbound:
		return det
	fdx, fdy = Fraction(dx), Fraction(dy)
	fadx, fady = Fraction(ax) - fdx, Fraction(ay) - fdy
	fbdx, fbdy = Fraction(bx) - fdx, Fraction(by) - fdy
	fcdx, fcdy = Fraction(cx) - fdx, Fraction(cy) - fdy
	exact = ((fadx * fadx + fady * fady) * (fbdx * fcdy - fcdx * fbdy)
			 + (fbdx * fbdx + fbdy * fbdy) * (fcdx * fady - fadx * fcdy)
			 + (fcdx * fcdx + fcdy * fcdy) * (fadx * fbdy - fbdx * fady))
	return _signed(exact)


def segments_cross(p1, p2, p3, p4):
	"""Return True if segment p1-p2 properly crosses p3-p4.

	Both segments must have their endpoints strictly on opposite sides of the
	other segment's supporting line; touching at an endpoint or colinear
	overlap does not count.
	"""
	o1 = orient(p1, p2, p3); o2 = orient(p1, p2, p4)
	if o1 == 0 or o2 == 0 or (o1 > 0) == (o2 > 0):
		return False
	o3 = orient(p3, p4, p1); o4 = orient(p3, p4, p2)
	if o3 == 0 or o4 == 0 or (o3 > 0) == (o4 > 0):
		return False
	return True


def point_on_open_segment(p, a, b):
	"""True when p lies on segment a-b, strictly between its endpoints."""
	if orient(a, b, p) != 0:
		return False
	ax, ay = float(a[0]), float(a[1])
	bx, by = float(b[0]), float(b[1])
	px, py = float(p[0]), float(p[1])
	if ax != bx:
		return min(ax, bx) < px < max(ax, bx)
	return min(ay, by) < py < max(ay, by)


def triangle_area(p0, p1, p2):
	"""Signed planar area of a triangle (positive when counter-clockwise)."""
	return 0.5 * ((float(p1[0]) - float(p0[0])) * (float(p2[1]) - float(p0[1]))
				  - (float(p1[1]) - float(p0[1])) * (float(p2[0]) - float(p0[0])))


def triangles_edge_lengths(points, tris):
	"""Per-triangle edge lengths as an (M,3) array: |p1-p2|, |p0-p2|, |p0-p1|.

	points may be (N,2) or (N,3); lengths are measured in that dimension.
	"""
	pts = np.asarray(points, dtype=np.float64)
	T = np.asarray(tris, dtype=np.int64).reshape(-1, 3)
	if T.size == 0:
		return np.empty((0, 3), dtype=float)
	p0 = pts[T[:, 0]]
	p1 = pts[T[:, 1]]
	p2 = pts[T[:, 2]]
	a = np.linalg.norm(p1 - p2, axis=1)
	b = np.linalg.norm(p0 - p2, axis=1)
	c = np.linalg.norm(p0 - p1, axis=1)
	return np.column_stack((a, b, c))


def triangles_min_angles(points, tris):
	"""Vectorized per-triangle minimum internal angle (degrees).

	points: (N,2) or (N,3) float array
	tris:   (M,3) int array
	Returns: (M,) float64 array of min angles.
	"""
	L = triangles_edge_lengths(points, tris)
	if L.shape[0] == 0:
		return np.empty((0,), dtype=float)
	a, b, c = L[:, 0], L[:, 1], L[:, 2]
	eps = 1e-20
	def angle_opposite(A, B, C):
		# angle opposite to side A, with adjacent sides B and C
		denom = 2.0 * B * C + eps
		cosang = (B*B + C*C - A*A) / denom
		cosang = np.clip(cosang, -1.0, 1.0)
		return np.degrees(np.arccos(cosang))
	A = angle_opposite(a, b, c)
	B = angle_opposite(b, c, a)
	C = angle_opposite(c, a, b)
	return np.minimum(A, np.minimum(B, C))


def triangles_max_edge_lengths(points, tris):
	L = triangles_edge_lengths(points, tris)
	if L.shape[0] == 0:
		return np.empty((0,), dtype=float)
	return L.max(axis=1)


def triangles_signed_areas(points, tris):
	"""Vectorized signed planar area for a batch of triangles.

	points: (N,2) or (N,3) float array (only x,y are used)
	tris:   (M,3) int array
	Returns: (M,) float64 array of signed areas (0.5 * cross).
	"""
	pts = np.asarray(points, dtype=np.float64)[:, :2]
	T = np.asarray(tris, dtype=np.int64).reshape(-1, 3)
	if T.size == 0:
		return np.empty((0,), dtype=float)
	p0 = pts[T[:, 0]]; p1 = pts[T[:, 1]]; p2 = pts[T[:, 2]]
	e1 = p1 - p0; e2 = p2 - p0
	return 0.5 * (e1[:, 0] * e2[:, 1] - e1[:, 1] * e2[:, 0])


def triangles_circumradii(points, tris):
	"""Planar circumradius R = abc / (4 * area); inf for degenerate rows."""
	pts = np.asarray(points, dtype=np.float64)[:, :2]
	L = triangles_edge_lengths(pts, tris)
	if L.shape[0] == 0:
		return np.empty((0,), dtype=float)
	area = np.abs(triangles_signed_areas(pts, tris))
	with np.errstate(divide='ignore', invalid='ignore'):
		R = L[:, 0] * L[:, 1] * L[:, 2] / (4.0 * area)
	R[area == 0.0] = np.inf
	return R


def triangles_centroids(points, tris):
	pts = np.asarray(points, dtype=np.float64)
	T = np.asarray(tris, dtype=np.int64).reshape(-1, 3)
	if T.size == 0:
		return np.empty((0, pts.shape[1]), dtype=float)
	return (pts[T[:, 0]] + pts[T[:, 1]] + pts[T[:, 2]]) / 3.0


def triangles_normals(points, tris):
	"""Unit normals of 3D triangles, oriented toward +Z.

	Normals with a negative Z component are negated; rows of zero-area
	triangles are returned as zeros.
	"""
	pts = np.asarray(points, dtype=np.float64)
	T = np.asarray(tris, dtype=np.int64).reshape(-1, 3)
	if T.size == 0:
		return np.empty((0, 3), dtype=float)
	p0 = pts[T[:, 0]]; p1 = pts[T[:, 1]]; p2 = pts[T[:, 2]]
	n = np.cross(p1 - p0, p2 - p0)
	n[n[:, 2] < 0.0] *= -1.0
	norms = np.linalg.norm(n, axis=1)
	out = np.zeros_like(n)
	ok = norms > 0.0
	out[ok] = n[ok] / norms[ok, None]
	return out


def ensure_positive_orientation(points, triangles):
	"""Return a copy of triangles with every row counter-clockwise in XY."""
	tris = np.asarray(triangles, dtype=np.int32).reshape(-1, 3).copy()
	if tris.size == 0:
		return tris
	areas = triangles_signed_areas(points, tris)
	flip = areas < 0.0
	if np.any(flip):
		tris[flip, 1], tris[flip, 2] = tris[flip, 2].copy(), tris[flip, 1].copy()
	return tris


def polygon_signed_area(polygon):
	P = np.asarray(polygon, dtype=float)[:, :2]
	if P.shape[0] < 3:
		return 0.0
	x = P[:, 0]; y = P[:, 1]
	return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def points_in_polygon(xy, polygon):
	"""Vectorized point-in-polygon (even-odd crossing rule) through matplotlib.path.Path.

	xy: (K,2) query points; polygon: (P,2) closed ring (closing vertex optional).
	Returns a boolean array of length K.
	"""
	q = np.asarray(xy, dtype=np.float64).reshape(-1, 2)
	if q.shape[0] == 0:
		return np.zeros((0,), dtype=bool)
	ring = np.asarray(polygon, dtype=np.float64)[:, :2]
	path = Path(ring)
	return np.asarray(path.contains_points(q, radius=0.0), dtype=bool)


def normalize_edge(u, v):
	"""
	Return a normalized edge representation as (min, max).

	This ensures that edges (u, v) and (v, u) are represented
	the same way, useful for edge-based data structures.
	"""
	return (min(u, v), max(u, v))
