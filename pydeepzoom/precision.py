"""Working precision selection for the arbitrary precision reference orbit."""

from decimal import Decimal, InvalidOperation, localcontext
import logging
import math

import mpmath

logger = logging.getLogger(__name__)

# Radius of the default full view; zoom factor is INITIAL_RADIUS / radius.
INITIAL_RADIUS = "2.0"

BASE_PRECISION = 32
PRECISION_SLOPE = 1.5

# Extra digits kept beyond the significant digits of a stored coordinate
GUARD_DIGITS = 10


def log10_zoom(radius, initial_radius=INITIAL_RADIUS) -> float:
    """log10 of the zoom factor for a radius given as a string or number.

    Computed with mpmath so radii far below the double range still work.
    """
    with mpmath.workdps(30):
        r = mpmath.mpf(radius)
        if r <= 0:
            raise ValueError(f"radius must be positive, got {radius!r}")
        return float(mpmath.log10(mpmath.mpf(initial_radius) / r))


def precision_for_zoom(zoom_log10: float, base: int = BASE_PRECISION,
                       slope: float = PRECISION_SLOPE) -> int:
    """Decimal digits needed to resolve a view zoomed by 10**zoom_log10.

    Never returns less than ``base``, and is non-decreasing in zoom depth.
    """
    return max(base, base + int(math.ceil(slope * max(0.0, zoom_log10))))


def coordinate_digits(*values: str) -> int:
    """Digits needed to hold every given decimal string without truncation."""
    digits = 0
    for value in values:
        try:
            sign, coeffs, exponent = Decimal(value).as_tuple()
        except InvalidOperation:
            raise ValueError(f"not a decimal number: {value!r}") from None
        if not isinstance(exponent, int):
            raise ValueError(f"not a finite number: {value!r}")
        # fractional places for tiny values, significant digits otherwise
        digits = max(digits, len(coeffs), -exponent)
    return digits


class PrecisionManager:
    """Tracks the working precision for the current area.

    The precision follows the zoom depth, but is never narrowed below what
    the stored center coordinates need, otherwise re-parsing the center at
    the working precision would silently move it.
    """

    def __init__(self, base: int = BASE_PRECISION, slope: float = PRECISION_SLOPE):
        self.base = base
        self.slope = slope
        self._digits = base

    @property
    def digits(self) -> int:
        return self._digits

    def required(self, center_re: str, center_im: str, radius: str) -> int:
        from_zoom = precision_for_zoom(log10_zoom(radius), self.base, self.slope)
        from_center = coordinate_digits(center_re, center_im) + GUARD_DIGITS
        return max(from_zoom, from_center)

    def update(self, center_re: str, center_im: str, radius: str) -> int:
        """Recompute the precision for a new area and return it."""
        digits = self.required(center_re, center_im, radius)
        if digits != self._digits:
            logger.debug("working precision %d -> %d digits", self._digits, digits)
            self._digits = digits
        return digits


def add_decimal_strings(a: str, b: str, precision: int = 100) -> str:
    """Add two decimal strings with arbitrary precision."""
    with localcontext() as ctx:
        ctx.prec = precision
        return str(Decimal(a) + Decimal(b))


def mul_decimal_string(a: str, factor, precision: int = 100) -> str:
    """Multiply decimal string by a float or decimal string."""
    with localcontext() as ctx:
        ctx.prec = precision
        return str(Decimal(a) * Decimal(str(factor)))
