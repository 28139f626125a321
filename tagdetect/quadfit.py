"""Fitting a quadrilateral to a cluster of boundary points."""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from tagdetect.clusters import Point
from tagdetect.homography import Quad
from tagdetect.linefit import compute_lfps, fit_line
from tagdetect.segment import quad_segment_maxima
from tagdetect.threshold import QuadThreshParams

_MIN_POINTS = 24
_CENTER_NOISE_X = 0.05118
_CENTER_NOISE_Y = -0.028581
_QUADRANTS = np.array(
    [[-1 * (2 << 15), 0], [2 * (2 << 15), 2 << 15]], dtype=np.float32
)

# Compare-and-swap sequences used for short runs of points.
_NETWORKS = {
    2: ((0, 1),),
    3: ((0, 1), (1, 2), (0, 1)),
    4: ((0, 1), (2, 3), (0, 2), (1, 3), (1, 2)),
    5: ((0, 1), (3, 4), (1, 2), (0, 1), (0, 3), (2, 4), (1, 2), (2, 3), (1, 2)),
}


def _f32(v: float) -> float:
    return float(np.float32(v))


def ptsort(points: Sequence[Point]) -> List[Point]:
    """Return the points ordered by ``slope``, smallest first.

    Short runs go through fixed swap networks and longer ones through a
    merge sort that takes from the right half on ties.
    """
    pts = list(points)
    n = len(pts)
    if n <= 1:
        return pts

    network = _NETWORKS.get(n)
    if network is not None:
        for a, b in network:
            if pts[a].slope - pts[b].slope > 0:
                pts[a], pts[b] = pts[b], pts[a]
        return pts

    half = n // 2
    left = ptsort(pts[:half])
    right = ptsort(pts[half:])
    merged: List[Point] = []
    i = j = 0
    while i < len(left) and j < len(right):
        if left[i].slope - right[j].slope < 0:
            merged.append(left[i])
            i += 1
        else:
            merged.append(right[j])
            j += 1
    merged.extend(left[i:])
    merged.extend(right[j:])
    return merged


def _assign_slopes(cluster: Sequence[Point]) -> bool:
    """Give every point an angle key around the cluster centre.

    Returns True when the gradients point inwards, i.e. the border is reversed.
    """
    xs = np.array([p.x for p in cluster], dtype=np.int64)
    ys = np.array([p.y for p in cluster], dtype=np.int64)
    gx = np.array([p.gx for p in cluster], dtype=np.float32)
    gy = np.array([p.gy for p in cluster], dtype=np.float32)

    xmin, xmax = int(xs.min()), int(xs.max())
    ymin, ymax = int(ys.min()), int(ys.max())
    cx = np.float32((xmin + xmax) * 0.5 + _CENTER_NOISE_X)
    cy = np.float32((ymin + ymax) * 0.5 + _CENTER_NOISE_Y)

    dx = xs.astype(np.float32) - cx
    dy = ys.astype(np.float32) - cy
    dot = float(np.sum((dx * gx + dy * gy).astype(np.float64)))

    quadrant = _QUADRANTS[(dy > 0).astype(np.intp), (dx > 0).astype(np.intp)]
    flip = dy < 0
    dx = np.where(flip, -dx, dx)
    dy = np.where(flip, -dy, dy)
    swap = dx < 0
    ndx = np.where(swap, dy, dx)
    ndy = np.where(swap, -dx, dy)
    with np.errstate(divide="ignore", invalid="ignore"):
        slopes = (quadrant + ndy / ndx).astype(np.float32)

    for p, s in zip(cluster, slopes.tolist()):
        p.slope = s
    return dot < 0


def _dedupe(points: Sequence[Point]) -> List[Point]:
    if not points:
        return []
    unique = [points[0]]
    for prev, p in zip(points, points[1:]):
        if p.x != prev.x or p.y != prev.y:
            unique.append(p)
    return unique


def _sqrt_or_nan(v: float) -> float:
    return math.sqrt(v) if v >= 0 else math.nan


def _triangle_area(a: np.ndarray, b: np.ndarray, c: np.ndarray) -> float:
    la = math.hypot(b[0] - a[0], b[1] - a[1])
    lb = math.hypot(c[0] - b[0], c[1] - b[1])
    lc = math.hypot(a[0] - c[0], a[1] - c[1])
    s = (la + lb + lc) / 2
    return _sqrt_or_nan(s * (s - la) * (s - lb) * (s - lc))


def fit_quad(
    params: Optional[QuadThreshParams],
    im: np.ndarray,
    cluster: Sequence[Point],
    tag_width: int,
    normal_border: bool = True,
    reversed_border: bool = False,
) -> Optional[Quad]:
    """Fit a quad to a cluster of boundary points, or return None.

    The points receive their ``slope``; the cluster sequence itself is left
    unchanged. Quads that are too small, too skewed, wound the wrong way or
    of an unwanted border polarity are rejected.
    """
    params = params or QuadThreshParams()
    if len(cluster) < _MIN_POINTS:
        return None

    xs = [p.x for p in cluster]
    ys = [p.y for p in cluster]
    if (max(xs) - min(xs)) * (max(ys) - min(ys)) < tag_width:
        return None

    is_reversed = _assign_slopes(cluster)
    if not reversed_border and is_reversed:
        return None
    if not normal_border and not is_reversed:
        return None

    points = _dedupe(ptsort(cluster))
    if len(points) < _MIN_POINTS:
        return None

    lfps = compute_lfps(points, im)
    indices = quad_segment_maxima(lfps, params)
    if indices is None:
        return None

    max_mse = _f32(params.max_line_fit_mse)
    lines = []
    for i in range(4):
        line = fit_line(lfps, indices[i], indices[(i + 1) % 4])
        if line.mse > max_mse:
            return None
        lines.append(line)

    corners: List[Tuple[float, float]] = []
    for i in range(4):
        a, b = lines[i], lines[(i + 1) % 4]
        a00, a01 = a.ny, -b.ny
        a10, a11 = -a.nx, b.nx
        b0 = b.ex - a.ex
        b1 = b.ey - a.ey
        det = a00 * a11 - a10 * a01
        if abs(det) < 0.001:
            return None
        w00 = a11 / det
        w01 = -a01 / det
        l0 = w00 * b0 + w01 * b1
        corners.append((a.ex + l0 * a00, a.ey + l0 * a10))

    p = np.array(corners, dtype=np.float32).astype(np.float64)

    area = _triangle_area(p[0], p[1], p[2]) + _triangle_area(p[2], p[3], p[0])
    if area < 0.95 * tag_width * tag_width:
        return None

    cos_crit = _f32(params.cos_critical_rad)
    for i in range(4):
        p0, p1, p2 = p[i], p[(i + 1) % 4], p[(i + 2) % 4]
        dx1, dy1 = p1[0] - p0[0], p1[1] - p0[1]
        dx2, dy2 = p2[0] - p1[0], p2[1] - p1[1]
        denom = math.sqrt((dx1 * dx1 + dy1 * dy1) * (dx2 * dx2 + dy2 * dy2))
        num = dx1 * dx2 + dy1 * dy2
        if denom == 0:
            cos_dtheta = math.nan if num == 0 else math.copysign(math.inf, num)
        else:
            cos_dtheta = num / denom
        if cos_dtheta > cos_crit or cos_dtheta < -cos_crit or dx1 * dy2 < dy1 * dx2:
            return None

    return Quad(p=p, reversed_border=is_reversed)