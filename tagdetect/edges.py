"""Snapping the edges of a candidate quad to nearby image gradients."""

from __future__ import annotations

import math
from typing import List, Sequence, Tuple

import numpy as np

from tagdetect.homography import Quad

_STEP = 0.25
_GRADIENT_RANGE = 1.0
_MIN_SAMPLES = 16
_MIN_DET = 0.001

Line = Tuple[float, float, float, float]
_NAN_LINE: Line = (math.nan, math.nan, math.nan, math.nan)


def _offsets(search: float) -> np.ndarray:
    """Offsets along the normal, accumulated the same way as a stepping loop."""
    values: List[float] = []
    n = -search
    while n <= search:
        values.append(n)
        n += _STEP
    return np.array(values, dtype=np.float64)


def _fit_edge(
    data: np.ndarray,
    pa: Sequence[float],
    pb: Sequence[float],
    reversed_border: bool,
    offsets: np.ndarray,
) -> Line:
    """Fit a line ``(ex, ey, nx, ny)`` to strong gradients near edge ``pa``-``pb``."""
    height, width = data.shape
    nx = float(pb[1]) - float(pa[1])
    ny = -float(pb[0]) + float(pa[0])
    mag = math.sqrt(nx * nx + ny * ny)
    if mag == 0 or not math.isfinite(mag):
        return _NAN_LINE
    nx /= mag
    ny /= mag
    if reversed_border:
        nx, ny = -nx, -ny

    nsamples = max(_MIN_SAMPLES, int(mag / 8))

    mx = my = mxx = mxy = myy = 0.0
    count = 0
    for s in range(nsamples):
        alpha = (1.0 + s) / (nsamples + 1)
        x0 = alpha * float(pa[0]) + (1 - alpha) * float(pb[0])
        y0 = alpha * float(pa[1]) + (1 - alpha) * float(pb[1])

        x1 = (x0 + (offsets + _GRADIENT_RANGE) * nx).astype(np.int64)
        y1 = (y0 + (offsets + _GRADIENT_RANGE) * ny).astype(np.int64)
        x2 = (x0 + (offsets - _GRADIENT_RANGE) * nx).astype(np.int64)
        y2 = (y0 + (offsets - _GRADIENT_RANGE) * ny).astype(np.int64)
        valid = (
            (x1 >= 0) & (x1 < width) & (y1 >= 0) & (y1 < height)
            & (x2 >= 0) & (x2 < width) & (y2 >= 0) & (y2 < height)
        )
        if not valid.any():
            continue
        g1 = data[y1[valid], x1[valid]]
        g2 = data[y2[valid], x2[valid]]
        keep = g1 >= g2
        ns = offsets[valid][keep].tolist()
        weights = ((g2[keep] - g1[keep]) ** 2).astype(np.float64).tolist()

        mn = 0.0
        mcount = 0.0
        for weight, n in zip(weights, ns):
            mn += weight * n
            mcount += weight
        if mcount == 0:
            continue

        n0 = mn / mcount
        bestx = x0 + n0 * nx
        besty = y0 + n0 * ny
        mx += bestx
        my += besty
        mxx += bestx * bestx
        mxy += bestx * besty
        myy += besty * besty
        count += 1

    if count == 0:
        return _NAN_LINE

    ex, ey = mx / count, my / count
    cxx = mxx / count - ex * ex
    cxy = mxy / count - ex * ey
    cyy = myy / count - ey * ey
    theta = 0.5 * float(np.arctan2(np.float32(-2 * cxy), np.float32(cyy - cxx)))
    return (
        ex,
        ey,
        float(np.cos(np.float32(theta))),
        float(np.sin(np.float32(theta))),
    )


def refine_edges(im: np.ndarray, quad: Quad, quad_decimate: float = 1.0) -> None:
    """Move the quad's corners onto lines fitted to strong nearby gradients.

    Each edge is re-fitted by searching along its normal, up to
    ``quad_decimate + 1`` pixels either side, for the intensity step from
    the dark inside to the light outside (reversed for reversed borders).
    Corners whose neighbouring lines are nearly parallel, or could not be
    fitted, are left where they were. The quad is updated in place.
    """
    arr = np.asarray(im)
    if arr.ndim != 2:
        raise ValueError("expected a two-dimensional image")
    data = arr.astype(np.int32)
    offsets = _offsets(float(np.float32(quad_decimate)) + 1.0)

    p = quad.p
    lines = [
        _fit_edge(data, p[edge], p[(edge + 1) % 4], quad.reversed_border, offsets)
        for edge in range(4)
    ]

    new_p = p.copy()
    for i in range(4):
        li, lj = lines[i], lines[(i + 1) % 4]
        a00, a01 = li[3], -lj[3]
        a10, a11 = -li[2], lj[2]
        b0 = -li[0] + lj[0]
        b1 = -li[1] + lj[1]
        det = a00 * a11 - a10 * a01
        if abs(det) > _MIN_DET:
            w00 = a11 / det
            w01 = -a01 / det
            l0 = w00 * b0 + w01 * b1
            new_p[i, 0] = float(np.float32(li[0] + l0 * a00))
            new_p[i, 1] = float(np.float32(li[1] + l0 * a10))
    quad.p = new_p