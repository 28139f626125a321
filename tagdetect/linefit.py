"""Weighted line fitting over contiguous runs of contour points."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from tagdetect.clusters import Point


def _sqrtf(v: float) -> float:
    """Square root computed in single precision."""
    return float(np.sqrt(np.float32(v)))


@dataclass(frozen=True)
class LineFitMoments:
    """Weighted first and second moments of a set of points."""

    mx: float = 0.0
    my: float = 0.0
    mxx: float = 0.0
    myy: float = 0.0
    mxy: float = 0.0
    w: float = 0.0

    def __add__(self, other: "LineFitMoments") -> "LineFitMoments":
        return LineFitMoments(
            self.mx + other.mx,
            self.my + other.my,
            self.mxx + other.mxx,
            self.myy + other.myy,
            self.mxy + other.mxy,
            self.w + other.w,
        )

    def __sub__(self, other: "LineFitMoments") -> "LineFitMoments":
        return LineFitMoments(
            self.mx - other.mx,
            self.my - other.my,
            self.mxx - other.mxx,
            self.myy - other.myy,
            self.mxy - other.mxy,
            self.w - other.w,
        )


@dataclass(frozen=True)
class LineFit:
    """A fitted line: a point ``(ex, ey)`` on it and its unit normal ``(nx, ny)``.

    ``err`` is the total squared error and ``mse`` the mean squared error.
    """

    ex: float
    ey: float
    nx: float
    ny: float
    err: float
    mse: float


def compute_lfps(cluster: Sequence[Point], im: np.ndarray) -> List[LineFitMoments]:
    """Cumulative moments of the cluster's points, in order.

    Entry ``j`` covers points ``0..j`` inclusive. Each point is weighted by
    one plus the image gradient magnitude at its pixel, where that can be
    measured away from the image border.
    """
    arr = np.asarray(im)
    if arr.ndim != 2:
        raise ValueError("expected a two-dimensional image")
    height, width = arr.shape

    out: List[LineFitMoments] = []
    running = LineFitMoments()
    for p in cluster:
        x = p.x * 0.5 + 0.5
        y = p.y * 0.5 + 0.5
        ix, iy = int(x), int(y)
        weight = 1.0
        if 0 < ix and ix + 1 < width and 0 < iy and iy + 1 < height:
            grad_x = int(arr[iy, ix + 1]) - int(arr[iy, ix - 1])
            grad_y = int(arr[iy + 1, ix]) - int(arr[iy - 1, ix])
            weight = math.sqrt(grad_x * grad_x + grad_y * grad_y) + 1.0
        running = running + LineFitMoments(
            weight * x,
            weight * y,
            weight * x * x,
            weight * y * y,
            weight * x * y,
            weight,
        )
        out.append(running)
    return out


def fit_line(lfps: Sequence[LineFitMoments], i0: int, i1: int) -> LineFit:
    """Fit a line to points ``i0..i1`` inclusive, wrapping when ``i1 < i0``."""
    sz = len(lfps)
    if i0 == i1:
        raise ValueError("a line needs two distinct end indices")
    if not (0 <= i0 < sz and 0 <= i1 < sz):
        raise ValueError("line end indices out of range")

    if i0 < i1:
        n = i1 - i0 + 1
        moments = lfps[i1]
        if i0 > 0:
            moments = moments - lfps[i0 - 1]
    else:
        moments = (lfps[sz - 1] - lfps[i0 - 1]) + lfps[i1]
        n = sz - i0 + i1 + 1

    if n < 2:
        raise ValueError("a line needs at least two points")

    w = moments.w
    ex = moments.mx / w
    ey = moments.my / w
    cxx = moments.mxx / w - ex * ex
    cxy = moments.mxy / w - ex * ey
    cyy = moments.myy / w - ey * ey

    root = _sqrtf((cxx - cyy) * (cxx - cyy) + 4 * cxy * cxy)
    eig_small = 0.5 * (cxx + cyy - root)
    eig = 0.5 * (cxx + cyy + root)

    nx1, ny1 = cxx - eig, cxy
    m1 = nx1 * nx1 + ny1 * ny1
    nx2, ny2 = cxy, cyy - eig
    m2 = nx2 * nx2 + ny2 * ny2
    if m1 > m2:
        nx, ny, m = nx1, ny1, m1
    else:
        nx, ny, m = nx2, ny2, m2

    length = _sqrtf(m)
    if length == 0:
        nx = ny = math.nan
    else:
        nx /= length
        ny /= length

    return LineFit(ex, ey, nx, ny, n * eig_small, eig_small)