"""Compact series coefficients for the fast per-pixel evaluator.

The raw B, C, D coefficients live at wildly different magnitudes. They are
folded here into eight plain floats (two vec4 uniforms on a GPU), relative
to the normalized pixel offset delta in [-1, 1] where dc = radius * delta.
"""

from dataclasses import dataclass
from typing import Tuple

import mpmath
import numpy as np

from .orbit import SeriesCoefficients
from .scaled import ScaledFloat, binary_exponent


@dataclass(frozen=True)
class CompactCoefficients:
    """poly1 = (B.re, B.im, C.re, C.im), poly2 = (D.re, D.im, poly_limit, norm_exponent)."""

    poly1: Tuple[float, float, float, float]
    poly2: Tuple[float, float, float, float]

    @property
    def poly_limit(self) -> int:
        return int(self.poly2[2])

    @property
    def norm_exponent(self) -> int:
        return int(self.poly2[3])

    def as_float32(self) -> Tuple[np.ndarray, np.ndarray]:
        """Reduced precision copies for upload as shader uniforms."""
        return (
            np.array(self.poly1, dtype=np.float32),
            np.array(self.poly2, dtype=np.float32),
        )


def radius_log2(radius) -> float:
    """Exact log2 of the view radius, finite even for radii below 1e-308."""
    with mpmath.workdps(30):
        r = mpmath.mpf(radius)
        if r <= 0:
            raise ValueError(f"radius must be positive, got {radius!r}")
        return float(mpmath.log(r, 2))


def radius_exponent(radius) -> int:
    """Nearest integer to log2 of the view radius."""
    with mpmath.workdps(30):
        r = mpmath.mpf(radius)
        if r <= 0:
            raise ValueError(f"radius must be positive, got {radius!r}")
        return binary_exponent(r)


def scale_coefficients(coefficients: SeriesCoefficients, radius) -> CompactCoefficients:
    """Normalize the raw coefficients by max|B| and by powers of the radius.

    Each higher order gets one more factor of the radius, since the
    evaluator feeds delta rather than dc into the polynomial.
    """
    with mpmath.workdps(30):
        r = ScaledFloat.from_mpf(mpmath.mpf(radius))

    peak = coefficients.b.max_abs()
    if peak.is_zero():
        norm_exponent = 0
    else:
        norm_exponent = ScaledFloat.normalized(peak.mantissa, peak.exponent).exponent
    norm_scale = ScaledFloat(1.0, -norm_exponent)

    b = coefficients.b * norm_scale
    c = coefficients.c * (r * norm_scale)
    d = coefficients.d * (r * r * norm_scale)

    return CompactCoefficients(
        poly1=(b.real.to_float(), b.imag.to_float(), c.real.to_float(), c.imag.to_float()),
        poly2=(
            d.real.to_float(),
            d.imag.to_float(),
            float(coefficients.poly_limit),
            float(norm_exponent),
        ),
    )
