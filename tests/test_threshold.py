import numpy as np
import pytest

from tagdetect.threshold import (
    QuadThreshParams,
    UnionFind,
    connected_components,
    threshold,
    threshold_bayer,
)


def test_union_find_starts_as_singletons():
    uf = UnionFind(5)
    assert [uf.get_representative(i) for i in range(5)] == [0, 1, 2, 3, 4]
    assert [uf.get_set_size(i) for i in range(5)] == [1, 1, 1, 1, 1]
    assert len(uf) == 5


def test_union_find_connect_merges_sets():
    uf = UnionFind(6)
    uf.connect(0, 1)
    uf.connect(2, 3)
    uf.connect(1, 3)
    assert uf.get_representative(0) == uf.get_representative(3)
    assert uf.get_set_size(2) == 4
    assert uf.get_representative(4) != uf.get_representative(0)
    assert uf.get_set_size(5) == 1


def test_union_find_connect_is_idempotent():
    uf = UnionFind(3)
    root = uf.connect(0, 1)
    assert uf.connect(1, 0) == root
    assert uf.get_set_size(0) == 2


def test_union_find_rejects_negative_size():
    with pytest.raises(ValueError):
        UnionFind(-1)


def test_threshold_uniform_image_is_low_contrast():
    im = np.full((8, 8), 100, dtype=np.uint8)
    out = threshold(im)
    assert out.shape == im.shape
    assert (out == 127).all()


def test_threshold_partial_tiles_are_always_binarised():
    im = np.full((10, 10), 100, dtype=np.uint8)
    out = threshold(im)
    assert (out[:8, :8] == 127).all()
    assert (out[8:, :] == 0).all()
    assert (out[:, 8:] == 0).all()


def test_threshold_binarises_near_edges():
    im = np.zeros((16, 16), dtype=np.uint8)
    im[:, 8:] = 200
    out = threshold(im)
    decided = out != 127
    assert decided.any()
    assert set(np.unique(out).tolist()) <= {0, 127, 255}
    assert np.array_equal(out[decided] == 255, im[decided] > 0)


def test_threshold_contrast_parameter():
    im = np.full((16, 16), 100, dtype=np.uint8)
    im[:, 8:] = 103
    strict = threshold(im)
    loose = threshold(im, QuadThreshParams(min_white_black_diff=2))
    assert (strict == 127).all()
    assert (loose[:, 4:12] != 127).all()


def test_threshold_deglitch_fills_isolated_dark_pixel():
    im = np.full((16, 16), 200, dtype=np.uint8)
    im[8, 8] = 0
    plain = threshold(im)
    cleaned = threshold(im, QuadThreshParams(deglitch=True))
    assert plain[8, 8] == 0
    assert cleaned[8, 8] == 255


def test_threshold_rejects_small_or_bad_images():
    with pytest.raises(ValueError):
        threshold(np.zeros((3, 10), dtype=np.uint8))
    with pytest.raises(ValueError):
        threshold(np.zeros((8, 8, 3), dtype=np.uint8))


def test_threshold_bayer_splits_two_levels():
    im = np.full((64, 64), 10, dtype=np.uint8)
    im[:, 32:] = 240
    out = threshold_bayer(im)
    assert out.shape == im.shape
    assert np.array_equal(out, (im == 240).astype(np.uint8))


def test_threshold_bayer_uniform_image_is_zero():
    im = np.full((40, 40), 77, dtype=np.uint8)
    assert (threshold_bayer(im) == 0).all()


def _index(w, y, x):
    return y * w + x


def test_connected_components_separates_blobs():
    img = np.zeros((8, 8), dtype=np.uint8)
    img[1:3, 1:3] = 255
    img[5:7, 5:7] = 255
    uf = connected_components(img)
    assert len(uf) == 64
    a = {uf.get_representative(_index(8, y, x)) for y in (1, 2) for x in (1, 2)}
    b = {uf.get_representative(_index(8, y, x)) for y in (5, 6) for x in (5, 6)}
    assert len(a) == 1 and len(b) == 1
    assert a != b
    assert uf.get_set_size(_index(8, 1, 1)) == 4


def test_white_pixels_are_eight_connected():
    img = np.zeros((6, 6), dtype=np.uint8)
    img[1, 1] = 255
    img[2, 2] = 255
    uf = connected_components(img)
    assert uf.get_representative(_index(6, 1, 1)) == uf.get_representative(_index(6, 2, 2))


def test_black_pixels_are_four_connected():
    img = np.full((6, 6), 255, dtype=np.uint8)
    img[1, 1] = 0
    img[2, 2] = 0
    uf = connected_components(img)
    assert uf.get_representative(_index(6, 1, 1)) != uf.get_representative(_index(6, 2, 2))


def test_unknown_pixels_stay_alone():
    img = np.full((6, 6), 127, dtype=np.uint8)
    uf = connected_components(img)
    assert all(uf.get_set_size(i) == 1 for i in range(36))