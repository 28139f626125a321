"""Quadrilaterals and the homographies that map tag space onto them."""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import numpy as np

_SINGULAR_EPSILON = 1e-10


class HomographyError(ValueError):
    """Raised when a quad's homography cannot be computed or inverted."""


def homography_compute2(c: Sequence[Sequence[float]]) -> np.ndarray:
    """Compute the 3x3 homography from four ``(x, y, px, py)`` correspondences.

    Solves the 8x8 linear system by Gaussian elimination with partial
    pivoting. A singular system emits a ``RuntimeWarning`` and yields a
    matrix that may hold non-finite entries.
    """
    corr = np.asarray(c, dtype=np.float64)
    if corr.shape != (4, 4):
        raise ValueError("expected four correspondences of four values each")

    rows = []
    for x, y, px, py in corr:
        rows.append([x, y, 1.0, 0.0, 0.0, 0.0, -x * px, -y * px, px])
        rows.append([0.0, 0.0, 0.0, x, y, 1.0, -x * py, -y * py, py])
    a = np.array(rows, dtype=np.float64)

    with np.errstate(divide="ignore", invalid="ignore"):
        for col in range(8):
            column = np.abs(a[col:8, col])
            best = int(np.argmax(column))
            max_val = column[best]
            if max_val < _SINGULAR_EPSILON:
                warnings.warn("matrix is singular", RuntimeWarning, stacklevel=2)
            pivot = col + best if max_val > 0 else col
            if pivot != col:
                a[[col, pivot], col:] = a[[pivot, col], col:]

            factors = a[col + 1:8, col] / a[col, col]
            a[col + 1:8, col] = 0.0
            a[col + 1:8, col + 1:] -= np.outer(factors, a[col, col + 1:])

        for col in range(7, -1, -1):
            total = float(a[col, col + 1:8] @ a[col + 1:8, 8])
            a[col, 8] = (a[col, 8] - total) / a[col, col]

    sol = a[:, 8]
    return np.array(
        [
            [sol[0], sol[1], sol[2]],
            [sol[3], sol[4], sol[5]],
            [sol[6], sol[7], 1.0],
        ],
        dtype=np.float64,
    )


def homography_project(h: np.ndarray, x: float, y: float) -> Tuple[float, float]:
    """Project the point ``(x, y)`` through homography ``h``."""
    xx = h[0, 0] * x + h[0, 1] * y + h[0, 2]
    yy = h[1, 0] * x + h[1, 1] * y + h[1, 2]
    zz = h[2, 0] * x + h[2, 1] * y + h[2, 2]
    return float(xx / zz), float(yy / zz)


def _tag_corner(i: int) -> Tuple[float, float]:
    x = -1.0 if i in (0, 3) else 1.0
    y = -1.0 if i in (0, 1) else 1.0
    return x, y


@dataclass
class Quad:
    """Four image-space corners plus the tag-to-image homography.

    ``h`` maps tag coordinates (``[-1, 1]`` at the black corners) to pixels;
    ``h_inv`` maps pixels back to tag coordinates.
    """

    p: np.ndarray = field(default_factory=lambda: np.zeros((4, 2)))
    reversed_border: bool = False
    h: Optional[np.ndarray] = None
    h_inv: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        self.p = np.array(self.p, dtype=np.float64).reshape(4, 2)

    def update_homographies(self) -> None:
        """Recompute ``h`` and ``h_inv`` from the corners.

        Raises HomographyError if the homography is degenerate.
        """
        corr = [(*_tag_corner(i), self.p[i, 0], self.p[i, 1]) for i in range(4)]
        self.h = None
        self.h_inv = None

        h = homography_compute2(corr)
        if not np.all(np.isfinite(h)):
            raise HomographyError("homography is not finite")
        try:
            h_inv = np.linalg.inv(h)
        except np.linalg.LinAlgError as exc:
            raise HomographyError("homography is not invertible") from exc
        if not np.all(np.isfinite(h_inv)):
            raise HomographyError("homography inverse is not finite")

        self.h = h
        self.h_inv = h_inv

    def copy(self) -> "Quad":
        """Return an independent copy of this quad."""
        return Quad(
            p=self.p.copy(),
            reversed_border=self.reversed_border,
            h=None if self.h is None else self.h.copy(),
            h_inv=None if self.h_inv is None else self.h_inv.copy(),
        )