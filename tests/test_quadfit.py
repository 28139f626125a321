import random

import numpy as np
import pytest

from tagdetect.clusters import Point, gradient_clusters
from tagdetect.quadfit import fit_quad, ptsort
from tagdetect.threshold import QuadThreshParams, connected_components, threshold


def _square_image(fg, bg, size=100, lo=30, hi=70):
    im = np.full((size, size), bg, dtype=np.uint8)
    im[lo:hi, lo:hi] = fg
    return im


def _largest_cluster(im):
    th = threshold(im)
    uf = connected_components(th)
    clusters = gradient_clusters(th, uf)
    return max(clusters, key=len)


def _near(quad, expected, tol=0.5):
    return all(
        min(np.hypot(quad.p[:, 0] - ex, quad.p[:, 1] - ey)) < tol for ex, ey in expected
    )


EXPECTED = [(30, 30), (70, 30), (70, 70), (30, 70)]


@pytest.mark.parametrize("n", [0, 1, 2, 3, 4, 5, 6, 7, 8, 13, 40])
def test_ptsort_orders_by_slope(n):
    rng = random.Random(n)
    pts = [Point(i, i, 0, 0, rng.uniform(-10, 10)) for i in range(n)]
    out = ptsort(pts)
    slopes = [p.slope for p in out]
    assert slopes == sorted(slopes)
    assert sorted(p.x for p in out) == list(range(n))


def test_ptsort_leaves_input_order():
    pts = [Point(i, 0, 0, 0, float(-i)) for i in range(10)]
    ptsort(pts)
    assert [p.x for p in pts] == list(range(10))


def test_fit_quad_black_square():
    im = _square_image(0, 255)
    quad = fit_quad(QuadThreshParams(), im, _largest_cluster(im), 8, True, False)
    assert quad is not None
    assert quad.reversed_border is False
    assert _near(quad, EXPECTED)


def test_fit_quad_winding_invariant():
    im = _square_image(0, 255)
    quad = fit_quad(None, im, _largest_cluster(im), 8, True, False)
    p = quad.p
    for i in range(4):
        d1 = p[(i + 1) % 4] - p[i]
        d2 = p[(i + 2) % 4] - p[(i + 1) % 4]
        assert d1[0] * d2[1] - d1[1] * d2[0] >= 0


def test_fit_quad_does_not_shrink_cluster():
    im = _square_image(0, 255)
    cluster = _largest_cluster(im)
    before = [(p.x, p.y) for p in cluster]
    fit_quad(None, im, cluster, 8, True, False)
    assert [(p.x, p.y) for p in cluster] == before


def test_fit_quad_rejects_reversed_when_not_wanted():
    im = _square_image(255, 0)
    assert fit_quad(None, im, _largest_cluster(im), 8, True, False) is None


def test_fit_quad_accepts_reversed_when_wanted():
    im = _square_image(255, 0)
    quad = fit_quad(None, im, _largest_cluster(im), 8, False, True)
    assert quad is not None
    assert quad.reversed_border is True
    assert _near(quad, EXPECTED)


def test_fit_quad_rejects_normal_when_only_reversed_wanted():
    im = _square_image(0, 255)
    assert fit_quad(None, im, _largest_cluster(im), 8, False, True) is None


def test_fit_quad_too_few_points():
    im = _square_image(0, 255)
    cluster = [Point(2 * i, 2 * i, 255, 0) for i in range(10)]
    assert fit_quad(None, im, cluster, 3, True, False) is None


def test_fit_quad_too_small_for_tag_width():
    im = _square_image(0, 255)
    assert fit_quad(None, im, _largest_cluster(im), 100, True, False) is None