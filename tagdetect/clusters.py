"""Grouping of black/white boundary points by the regions they separate."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import numpy as np

from tagdetect.threshold import UNKNOWN, UnionFind

_MASK64 = (1 << 64) - 1
_MIN_REGION = 25

# (dx, dy) steps examined from each pixel, in order.
_STEPS = ((1, 0), (0, 1), (-1, 1), (1, 1))

ClusterEntry = Tuple[int, int, List["Point"]]


@dataclass(slots=True)
class Point:
    """A boundary point; ``x`` and ``y`` are twice the pixel coordinate.

    ``gx`` and ``gy`` give the gradient direction (-255, 0 or 255) and
    ``slope`` is filled in later when points are ordered around a quad.
    """

    x: int
    y: int
    gx: int
    gy: int
    slope: float = 0.0


def u64hash_2(x: int) -> int:
    """Multiplicative hash of a 64-bit value to 32 bits."""
    return ((2654435761 * x) & _MASK64) >> 32


def merge_clusters(c1: Sequence[ClusterEntry], c2: Sequence[ClusterEntry]) -> List[ClusterEntry]:
    """Merge two lists of ``(hash, id, points)`` sorted by ``(hash, id)``.

    Entries with the same hash and id are combined, the points of ``c1``
    first.
    """
    out: List[ClusterEntry] = []
    i1 = i2 = 0
    while i1 < len(c1) and i2 < len(c2):
        h1, id1, p1 = c1[i1]
        h2, id2, p2 = c2[i2]
        if h1 == h2 and id1 == id2:
            out.append((h1, id1, [*p1, *p2]))
            i1 += 1
            i2 += 1
        elif (h2, id2) < (h1, id1):
            out.append(c2[i2])
            i2 += 1
        else:
            out.append(c1[i1])
            i1 += 1
    out.extend(c1[i1:])
    out.extend(c2[i2:])
    return out


def gradient_clusters(threshim: np.ndarray, uf: UnionFind, nthreads: int = 1) -> List[List[Point]]:
    """Collect boundary points between large black and white regions.

    Each cluster holds the points lying between one pair of regions of at
    least 25 pixels. ``nthreads`` sets how the rows are split into chunks,
    which fixes the order of the returned clusters.
    """
    if nthreads < 1:
        raise ValueError("nthreads must be at least 1")
    arr = np.asarray(threshim)
    if arr.ndim != 2:
        raise ValueError("expected a two-dimensional image")
    data = arr.astype(np.int32)
    h, w = data.shape
    if len(uf) != w * h:
        raise ValueError("union-find size does not match the image")
    if h < 3 or w < 3:
        return []

    nclustermap = int(0.2 * w * h)
    sz = h - 1
    chunksize = 1 + sz // nthreads
    task_starts = range(1, sz, chunksize)
    map_size = max(1, nclustermap // (sz // chunksize + 1))

    reps_list = [uf.get_representative(i) for i in range(w * h)]
    size_of_root: Dict[int, int] = {}
    sizes_list = []
    for r in reps_list:
        if r not in size_of_root:
            size_of_root[r] = uf.get_set_size(r)
        sizes_list.append(size_of_root[r])
    reps = np.array(reps_list, dtype=np.int64).reshape(h, w)
    sizes = np.array(sizes_list, dtype=np.int64).reshape(h, w)

    v0 = data[1 : h - 1, 1 : w - 1]
    eligible = (v0 != UNKNOWN) & (sizes[1 : h - 1, 1 : w - 1] >= _MIN_REGION)

    ys_all, xs_all, steps_all = [], [], []
    for step, (dx, dy) in enumerate(_STEPS):
        v1 = data[1 + dy : h - 1 + dy, 1 + dx : w - 1 + dx]
        s1 = sizes[1 + dy : h - 1 + dy, 1 + dx : w - 1 + dx]
        ys, xs = np.nonzero(eligible & (v0 + v1 == 255) & (s1 >= _MIN_REGION))
        ys_all.append(ys + 1)
        xs_all.append(xs + 1)
        steps_all.append(np.full(len(ys), step, dtype=np.int64))

    ys = np.concatenate(ys_all)
    xs = np.concatenate(xs_all)
    steps = np.concatenate(steps_all)
    order = np.lexsort((steps, xs, ys))

    tasks: List[Dict[int, List[Point]]] = [{} for _ in task_starts]
    for y, x, step in zip(ys[order].tolist(), xs[order].tolist(), steps[order].tolist()):
        dx, dy = _STEPS[step]
        r0 = int(reps[y, x])
        r1 = int(reps[y + dy, x + dx])
        cluster_id = (r1 << 32) + r0 if r0 < r1 else (r0 << 32) + r1
        delta = int(data[y + dy, x + dx]) - int(data[y, x])
        point = Point(2 * x + dx, 2 * y + dy, dx * delta, dy * delta)
        tasks[(y - 1) // chunksize].setdefault(cluster_id, []).append(point)

    lists: List[List[ClusterEntry]] = [
        sorted(
            ((u64hash_2(cid) % map_size, cid, pts) for cid, pts in task.items()),
            key=lambda entry: (entry[0], entry[1]),
        )
        for task in tasks
    ]
    if not lists:
        return []

    while len(lists) > 1:
        merged = [merge_clusters(lists[i], lists[i + 1]) for i in range(0, len(lists) - 1, 2)]
        if len(lists) % 2:
            merged.append(lists[-1])
        lists = merged

    return [points for _, _, points in lists[0]]