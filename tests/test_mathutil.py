import math

import pytest

from tagdetect.mathutil import (
    dclamp,
    dequals_mag,
    iclamp,
    mod2pi,
    mod2pi_positive,
    mod2pi_ref,
    mod360,
    mod360_positive,
    mod_positive,
    sgn,
    theta_to_int,
    to_degrees,
    to_radians,
)


def test_to_radians_half_turn():
    assert to_radians(180) == pytest.approx(math.pi)


@pytest.mark.parametrize("deg", [-720.0, -33.5, 0.0, 12.25, 359.0])
def test_degree_radian_round_trip(deg):
    assert to_degrees(to_radians(deg)) == pytest.approx(deg)


def test_dequals_mag():
    assert dequals_mag(1.0, 1.05, 0.1)
    assert not dequals_mag(1.0, 1.2, 0.1)


def test_sgn_zero_is_positive():
    assert sgn(0.0) == 1.0
    assert sgn(-0.5) == -1.0
    assert sgn(3.0) == 1.0


@pytest.mark.parametrize("angle", [-10.0, -math.pi, -0.1, 0.0, 1.0, math.pi, 7.5, 100.0])
def test_mod2pi_positive_range_and_equivalence(angle):
    r = mod2pi_positive(angle)
    assert 0.0 <= r < 2 * math.pi
    assert math.cos(r) == pytest.approx(math.cos(angle))
    assert math.sin(r) == pytest.approx(math.sin(angle))


@pytest.mark.parametrize("angle", [-10.0, -0.1, 0.0, 1.0, 3.0, 7.5, 100.0])
def test_mod2pi_range_and_equivalence(angle):
    r = mod2pi(angle)
    assert -math.pi <= r < math.pi
    assert math.cos(r) == pytest.approx(math.cos(angle))
    assert math.sin(r) == pytest.approx(math.sin(angle))


@pytest.mark.parametrize("ref,angle", [(0.0, 6.0), (10.0, -3.0), (-4.0, 4.0)])
def test_mod2pi_ref_within_pi(ref, angle):
    r = mod2pi_ref(ref, angle)
    assert abs(r - ref) <= math.pi
    assert math.sin(r) == pytest.approx(math.sin(angle))


def test_mod360_wraps_to_symmetric_range():
    assert mod360(190.0) == pytest.approx(-170.0)
    for angle in (-1000.0, -180.0, 0.0, 179.0, 540.0):
        r = mod360(angle)
        assert -180.0 <= r < 180.0
        assert (r - angle) % 360.0 == pytest.approx(0.0)


def test_mod360_positive_range():
    for angle in (-1000.0, -1.0, 0.0, 359.5, 720.0):
        r = mod360_positive(angle)
        assert 0.0 <= r < 360.0
        assert (r - angle) % 360.0 == pytest.approx(0.0)


def test_mod_positive_negative_input():
    assert mod_positive(-1, 5) == 4
    for v in range(-20, 20):
        r = mod_positive(v, 7)
        assert 0 <= r < 7
        assert (r - v) % 7 == 0


def test_theta_to_int_in_range():
    for k in range(-50, 50):
        theta = k * 0.37
        v = theta_to_int(theta, 16)
        assert 0 <= v < 16


def test_theta_to_int_zero_angle_maps_to_first_bin():
    assert theta_to_int(0.0, 8) == 0


def test_theta_to_int_rejects_nonpositive_bins():
    with pytest.raises(ValueError):
        theta_to_int(1.0, 0)


def test_iclamp():
    assert iclamp(5, 0, 3) == 3
    assert iclamp(-5, 0, 3) == 0
    assert iclamp(2, 0, 3) == 2


def test_dclamp():
    assert dclamp(5.5, 0.0, 3.0) == 3.0
    assert dclamp(-5.5, 0.0, 3.0) == 0.0
    assert dclamp(1.5, 0.0, 3.0) == 1.5