"""Adaptive image thresholding and connected-component labelling."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np

from tagdetect.mathutil import to_radians

_TILE_SIZE = 4
_BAYER_TILE_SIZE = 32
_MAX_DIMENSION = 32768
UNKNOWN = 127


@dataclass
class QuadThreshParams:
    """Tuning parameters for quad detection on the thresholded image."""

    min_cluster_pixels: int = 5
    max_nmaxima: int = 10
    critical_rad: float = 0.0
    cos_critical_rad: float = math.cos(to_radians(10.0))
    max_line_fit_mse: float = 10.0
    min_white_black_diff: int = 5
    deglitch: bool = False


class UnionFind:
    """Disjoint sets over the integers ``0 .. n-1``, joined by size."""

    def __init__(self, n: int) -> None:
        if n < 0:
            raise ValueError("number of elements must not be negative")
        self._parent: List[int] = list(range(n))
        self._size: List[int] = [1] * n

    def __len__(self) -> int:
        return len(self._parent)

    def get_representative(self, i: int) -> int:
        """Return the root of the set holding ``i``."""
        parent = self._parent
        root = i
        while parent[root] != root:
            root = parent[root]
        while parent[i] != root:
            parent[i], i = root, parent[i]
        return root

    def get_set_size(self, i: int) -> int:
        """Return the number of elements in the set holding ``i``."""
        return self._size[self.get_representative(i)]

    def connect(self, a: int, b: int) -> int:
        """Join the sets of ``a`` and ``b``; return the new representative."""
        ra = self.get_representative(a)
        rb = self.get_representative(b)
        if ra == rb:
            return ra
        if self._size[ra] > self._size[rb]:
            self._parent[rb] = ra
            self._size[ra] += self._size[rb]
            return ra
        self._parent[ra] = rb
        self._size[rb] += self._size[ra]
        return rb


def _as_gray(im: np.ndarray) -> np.ndarray:
    arr = np.asarray(im)
    if arr.ndim != 2:
        raise ValueError("expected a two-dimensional grayscale image")
    return arr.astype(np.uint8, copy=False)


def _window_reduce(a: np.ndarray, op: Callable) -> np.ndarray:
    """Reduce each full 3x3 window of ``a`` with ``op``; output is two smaller."""
    rows, cols = a.shape[0] - 2, a.shape[1] - 2
    return op.reduce([a[dy:dy + rows, dx:dx + cols] for dy in range(3) for dx in range(3)])


def _filter3x3(a: np.ndarray, op: Callable, fill: int) -> np.ndarray:
    """Reduce the in-bounds 3x3 neighbourhood of every element."""
    return _window_reduce(np.pad(a, 1, constant_values=fill), op)


def threshold(im: np.ndarray, params: Optional[QuadThreshParams] = None) -> np.ndarray:
    """Binarise ``im`` using min/max statistics of 4x4 tiles.

    Pixels become 255 or 0; whole tiles whose 3x3 tile neighbourhood has too
    little contrast become 127. Partial tiles at the right and bottom edges
    reuse the statistics of the nearest full tile and are always binarised.
    """
    params = params or QuadThreshParams()
    img = _as_gray(im)
    h, w = img.shape
    if w >= _MAX_DIMENSION or h >= _MAX_DIMENSION:
        raise ValueError("image dimensions must be below 32768")
    tw, th = w // _TILE_SIZE, h // _TILE_SIZE
    if tw == 0 or th == 0:
        raise ValueError("image must be at least 4x4 pixels")

    data = img.astype(np.int32)
    tiles = data[: th * _TILE_SIZE, : tw * _TILE_SIZE].reshape(th, _TILE_SIZE, tw, _TILE_SIZE)
    tmax = _filter3x3(tiles.max(axis=(1, 3)), np.maximum, 0)
    tmin = _filter3x3(tiles.min(axis=(1, 3)), np.minimum, 255)

    ty = np.minimum(np.arange(h) // _TILE_SIZE, th - 1)
    tx = np.minimum(np.arange(w) // _TILE_SIZE, tw - 1)
    pmax = tmax[ty[:, None], tx[None, :]]
    pmin = tmin[ty[:, None], tx[None, :]]
    thresh = pmin + (pmax - pmin) // 2

    out = np.where(data > thresh, 255, 0).astype(np.uint8)

    low = (tmax - tmin) < params.min_white_black_diff
    low_px = np.repeat(np.repeat(low, _TILE_SIZE, axis=0), _TILE_SIZE, axis=1)
    full = out[: th * _TILE_SIZE, : tw * _TILE_SIZE]
    full[low_px] = UNKNOWN

    if params.deglitch and h >= 3 and w >= 3:
        tmp = np.zeros_like(out)
        tmp[1:-1, 1:-1] = _window_reduce(out, np.maximum)
        out[1:-1, 1:-1] = _window_reduce(tmp, np.minimum)

    return out


def threshold_bayer(im: np.ndarray) -> np.ndarray:
    """Binarise a Bayer-pattern image into 0/1 values.

    Statistics are gathered separately for each of the four 2x2 Bayer
    positions over 32x32 tiles and their 3x3 tile neighbourhood.
    """
    img = _as_gray(im)
    h, w = img.shape
    size = _BAYER_TILE_SIZE
    tw, th = w // size + 1, h // size + 1
    half = size // 2

    data = img.astype(np.int32)
    hi = np.zeros((th * size, tw * size), dtype=np.int32)
    lo = np.full((th * size, tw * size), 255, dtype=np.int32)
    hi[:h, :w] = data
    lo[:h, :w] = data

    tmax = np.empty((4, th, tw), dtype=np.int32)
    tmin = np.empty((4, th, tw), dtype=np.int32)
    for py in (0, 1):
        for px in (0, 1):
            idx = 2 * py + px
            tmax[idx] = hi[py::2, px::2].reshape(th, half, tw, half).max(axis=(1, 3))
            tmin[idx] = lo[py::2, px::2].reshape(th, half, tw, half).min(axis=(1, 3))

    for idx in range(4):
        tmax[idx] = _filter3x3(tmax[idx], np.maximum, 0)
        tmin[idx] = _filter3x3(tmin[idx], np.minimum, 255)

    diff = tmax - tmin
    halfdiff = np.where(diff >= 0, diff // 2, -((-diff) // 2))
    thresh = (tmin + halfdiff) & 0xFF

    ys = np.arange(h)
    xs = np.arange(w)
    bayer = 2 * (ys & 1)[:, None] + (xs & 1)[None, :]
    per_pixel = thresh[bayer, (ys // size)[:, None], (xs // size)[None, :]]
    return (data > per_pixel).astype(np.uint8)


# (dy, dx) offsets of the four neighbours a pixel may be joined to, in order.
_NEIGHBOURS = ((0, -1), (-1, 0), (-1, -1), (-1, 1))


def connected_components(threshim: np.ndarray) -> UnionFind:
    """Label connected regions of a thresholded image.

    Black pixels are 4-connected, white pixels 8-connected, and pixels
    marked 127 are left on their own. Pixels in the first and last columns
    are only joined from their neighbours.
    """
    arr = np.asarray(threshim)
    if arr.ndim != 2:
        raise ValueError("expected a two-dimensional image")
    data = arr.astype(np.int32)
    h, w = data.shape
    uf = UnionFind(w * h)
    if w < 3 or h < 1:
        return uf

    pixels = []
    targets = []
    kinds = []

    v = data[0, 1 : w - 1]
    left = data[0, 0 : w - 2]
    xs = np.nonzero((v != UNKNOWN) & (left == v))[0] + 1
    pixels.append(xs)
    targets.append(xs - 1)
    kinds.append(np.zeros(len(xs), dtype=np.int64))

    if h > 1:
        v = data[1:, 1 : w - 1]
        left = data[1:, 0 : w - 2]
        up_left = data[:-1, 0 : w - 2]
        up = data[:-1, 1 : w - 1]
        up_right = data[:-1, 2:w]

        first = np.zeros(v.shape, dtype=bool)
        first[:, 0] = True
        valid = v != UNKNOWN
        white = valid & (v == 255)

        masks = (
            valid & (left == v),
            valid & (first | ~((left == up_left) & (up_left == up))) & (up == v),
            white & (first | ~((left == up_left) | (up == up_left))) & (up_left == v),
            white & (up != up_right) & (up_right == v),
        )
        for kind, (mask, (dy, dx)) in enumerate(zip(masks, _NEIGHBOURS)):
            ys, xs = np.nonzero(mask)
            y = ys + 1
            x = xs + 1
            pixels.append(y * w + x)
            targets.append((y + dy) * w + x + dx)
            kinds.append(np.full(len(ys), kind, dtype=np.int64))

    all_pixels = np.concatenate(pixels)
    all_targets = np.concatenate(targets)
    all_kinds = np.concatenate(kinds)
    order = np.lexsort((all_kinds, all_pixels))
    for a, b in zip(all_pixels[order].tolist(), all_targets[order].tolist()):
        uf.connect(a, b)
    return uf