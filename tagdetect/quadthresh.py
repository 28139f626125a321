"""Finding candidate tag quads in a grayscale image."""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence

import numpy as np

from tagdetect.clusters import Point, gradient_clusters
from tagdetect.homography import Quad
from tagdetect.quadfit import fit_quad
from tagdetect.threshold import QuadThreshParams, connected_components, threshold

_NO_FAMILY_WIDTH = 1000000
_MIN_TAG_WIDTH = 3


def fit_quads(
    params: Optional[QuadThreshParams],
    families: Iterable[Any],
    quad_decimate: float,
    clusters: Sequence[Sequence[Point]],
    im: np.ndarray,
) -> List[Quad]:
    """Fit a quad to every suitably sized cluster.

    ``families`` are objects with ``width_at_border`` and ``reversed_border``;
    they fix the smallest tag worth keeping and which border polarities are
    accepted. ``quad_decimate`` is the factor by which ``im`` was shrunk.
    """
    params = params or QuadThreshParams()
    if quad_decimate <= 0:
        raise ValueError("quad_decimate must be positive")
    arr = np.asarray(im)
    if arr.ndim != 2:
        raise ValueError("expected a two-dimensional image")
    h, w = arr.shape

    normal_border = False
    reversed_border = False
    min_tag_width = _NO_FAMILY_WIDTH
    for family in families:
        min_tag_width = min(min_tag_width, int(family.width_at_border))
        normal_border |= not family.reversed_border
        reversed_border |= bool(family.reversed_border)
    min_tag_width = max(_MIN_TAG_WIDTH, int(min_tag_width / quad_decimate))

    max_points = 3 * (2 * w + 2 * h)
    quads: List[Quad] = []
    for cluster in clusters:
        if len(cluster) < params.min_cluster_pixels or len(cluster) > max_points:
            continue
        quad = fit_quad(params, arr, cluster, min_tag_width, normal_border, reversed_border)
        if quad is not None:
            quads.append(quad)
    return quads


def quad_thresh(
    params: Optional[QuadThreshParams],
    families: Iterable[Any],
    quad_decimate: float,
    im: np.ndarray,
    nthreads: int = 1,
) -> List[Quad]:
    """Threshold ``im``, cluster its edges and fit quads to the clusters."""
    params = params or QuadThreshParams()
    threshim = threshold(im, params)
    uf = connected_components(threshim)
    clusters = gradient_clusters(threshim, uf, nthreads)
    return fit_quads(params, list(families), quad_decimate, clusters, im)