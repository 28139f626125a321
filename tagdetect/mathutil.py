"""Small numeric helpers: angle wrapping, clamping and comparisons."""

from __future__ import annotations

import math

TWO_PI = 2.0 * math.pi


def to_radians(x: float) -> float:
    """Convert degrees to radians."""
    return x * (math.pi / 180.0)


def to_degrees(x: float) -> float:
    """Convert radians to degrees."""
    return x * (180.0 / math.pi)


def dequals_mag(a: float, b: float, thresh: float) -> bool:
    """True when ``a`` and ``b`` differ by less than ``thresh``."""
    return abs(a - b) < thresh


def sgn(v: float) -> float:
    """Sign of ``v``, where zero counts as positive."""
    return 1.0 if v >= 0 else -1.0


def mod2pi_positive(vin: float) -> float:
    """Map an angle to [0, 2*pi)."""
    return vin - TWO_PI * math.floor(vin / TWO_PI)


def mod2pi(vin: float) -> float:
    """Map an angle to [-pi, pi)."""
    return mod2pi_positive(vin + math.pi) - math.pi


def mod2pi_ref(ref: float, vin: float) -> float:
    """Return an angle equivalent to ``vin`` that lies within pi of ``ref``."""
    return ref + mod2pi(vin - ref)


def mod360_positive(vin: float) -> float:
    """Map an angle in degrees to [0, 360)."""
    return vin - 360.0 * math.floor(vin / 360.0)


def mod360(vin: float) -> float:
    """Map an angle in degrees to [-180, 180)."""
    return mod360_positive(vin + 180.0) - 180.0


def mod_positive(vin: int, mod: int) -> int:
    """Integer modulus whose result has the sign of ``mod``."""
    return vin % mod


def theta_to_int(theta: float, max_value: int) -> int:
    """Quantise an angle into one of ``max_value`` equal bins over a full turn."""
    if max_value <= 0:
        raise ValueError("max_value must be positive")
    theta = mod2pi_ref(math.pi, theta)
    v = int(theta / TWO_PI * max_value)
    if v == max_value:
        v = 0
    if not 0 <= v < max_value:
        raise ValueError(f"angle {theta!r} did not map into [0, {max_value})")
    return v


def iclamp(v: int, minv: int, maxv: int) -> int:
    """Clamp an integer to [minv, maxv]."""
    return max(minv, min(v, maxv))


def dclamp(a: float, minv: float, maxv: float) -> float:
    """Clamp a float to [minv, maxv]."""
    if a < minv:
        return minv
    if a > maxv:
        return maxv
    return a