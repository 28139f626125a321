"""Partitioning an ordered contour into the four sides of a quad."""

from __future__ import annotations

import heapq
import itertools
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from tagdetect.linefit import LineFitMoments, fit_line
from tagdetect.threshold import QuadThreshParams

Corners = Tuple[int, int, int, int]

_FILTER_SIGMA = 1.0
_FILTER_CUTOFF = 0.05


def _f32(v: float) -> float:
    return float(np.float32(v))


def _filter_weights() -> List[float]:
    half = int(math.sqrt(-math.log(_FILTER_CUTOFF) * 2 * _FILTER_SIGMA * _FILTER_SIGMA) + 1)
    size = 2 * half + 1
    return [
        _f32(math.exp(-(j * j) / (2 * _FILTER_SIGMA * _FILTER_SIGMA)))
        for j in range(-(size // 2), size // 2 + 1)
    ]


def quad_segment_maxima(
    lfps: Sequence[LineFitMoments], params: Optional[QuadThreshParams] = None
) -> Optional[Corners]:
    """Choose four corner indices among the local maxima of line-fit error.

    Returns the indices in ascending order, or None when no acceptable quad
    can be fitted.
    """
    params = params or QuadThreshParams()
    sz = len(lfps)
    ksz = min(20, sz // 12)
    if ksz < 2:
        return None

    errs = np.array(
        [fit_line(lfps, (i + sz - ksz) % sz, (i + ksz) % sz).err for i in range(sz)],
        dtype=np.float64,
    )

    weights = _filter_weights()
    half = len(weights) // 2
    smoothed = np.zeros(sz, dtype=np.float64)
    for offset, weight in enumerate(weights):
        smoothed += np.roll(errs, -(offset - half)) * weight
    errs = smoothed

    is_max = (errs > np.roll(errs, -1)) & (errs > np.roll(errs, 1))
    maxima = [int(i) for i in np.nonzero(is_max)[0]]
    if len(maxima) < 4:
        return None

    if len(maxima) > params.max_nmaxima:
        ranked = sorted((float(errs[i]) for i in maxima), reverse=True)
        cutoff = ranked[params.max_nmaxima]
        maxima = [i for i in maxima if errs[i] > cutoff]

    max_mse = _f32(params.max_line_fit_mse)
    max_dot = _f32(params.cos_critical_rad)
    n = len(maxima)

    best_error = math.inf
    best: Optional[Corners] = None
    for m0, i0 in enumerate(maxima[: max(n - 3, 0)]):
        for m1, i1 in enumerate(maxima[m0 + 1 : n - 2], start=m0 + 1):
            line01 = fit_line(lfps, i0, i1)
            if line01.mse > max_mse:
                continue
            for m2, i2 in enumerate(maxima[m1 + 1 : n - 1], start=m1 + 1):
                line12 = fit_line(lfps, i1, i2)
                if line12.mse > max_mse:
                    continue
                dot = line01.nx * line12.nx + line01.ny * line12.ny
                if abs(dot) > max_dot:
                    continue
                for i3 in maxima[m2 + 1 :]:
                    line23 = fit_line(lfps, i2, i3)
                    if line23.mse > max_mse:
                        continue
                    line30 = fit_line(lfps, i3, i0)
                    if line30.mse > max_mse:
                        continue
                    err = line01.err + line12.err + line23.err + line30.err
                    if err < best_error:
                        best_error = err
                        best = (i0, i1, i2, i3)

    if best is None or not best_error / sz < max_mse:
        return None
    return best


def quad_segment_agg(lfps: Sequence[LineFitMoments]) -> Optional[Corners]:
    """Find four corners by repeatedly removing the vertex that fits best.

    Returns the surviving vertex indices in ascending order, or None if the
    candidates run out first.
    """
    sz = len(lfps)
    if sz < 4:
        raise ValueError("need at least four points to segment a quad")

    counter = itertools.count()
    heap: List[Tuple[float, int, int, int, int]] = []

    def push(i: int, left: int, right: int) -> None:
        mse = fit_line(lfps, left, right).mse
        heapq.heappush(heap, (_f32(mse), next(counter), i, left, right))

    is_vertex = [True] * sz
    lefts = [(i - 1) % sz for i in range(sz)]
    rights = [(i + 1) % sz for i in range(sz)]
    for i in range(sz):
        push(i, lefts[i], rights[i])

    nvertices = sz
    while nvertices > 4:
        if not heap:
            return None
        _, _, i, left, right = heapq.heappop(heap)
        if not (is_vertex[i] and is_vertex[left] and is_vertex[right]):
            continue

        is_vertex[i] = False
        rights[left] = right
        lefts[right] = left

        push(left, lefts[left], right)
        push(right, left, rights[right])
        nvertices -= 1

    corners = [i for i, alive in enumerate(is_vertex) if alive]
    return tuple(corners)  # type: ignore[return-value]