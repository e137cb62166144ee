"""Reference orbit computation for deep zoom rendering.

Uses mpmath for arbitrary precision to compute the reference orbit Z_n at
the view center. Each pixel then only tracks its perturbation
dz_n = z_n - Z_n in double precision, which stays representable at zooms
far beyond the Float64 limit (~10^15).

While the orbit is iterated, the coefficients of the truncated series

    dz_n ~ B_n * dc + C_n * dc^2 + D_n * dc^3

are accumulated in scaled-float arithmetic so that pixels can skip the
first ``poly_limit`` iterations with a single polynomial evaluation.
"""

from dataclasses import dataclass
from math import comb
import logging
from typing import Optional, Tuple

import numpy as np

try:
    import mpmath
except ImportError:
    raise ImportError(
        "mpmath is required for deep zoom: pip install mpmath"
    )

from .config import ESCAPE_RADIUS_SQ, ORBIT_CAPACITY, SERIES_TOLERANCE, SUPPORTED_POWERS
from .scaled import ZERO_EXPONENT, ScaledComplex, ScaledFloat, binary_exponent

logger = logging.getLogger(__name__)

# Row written after the last orbit point; marks "orbit ran out".
SENTINEL = (-1.0, -1.0, -1.0)

# Margin added to the requested precision for intermediate rounding
EXTRA_DIGITS = 20


@dataclass(frozen=True)
class SeriesCoefficients:
    """Series coefficients of dz at iteration ``poly_limit``."""

    b: ScaledComplex = ScaledComplex.ZERO
    c: ScaledComplex = ScaledComplex.ZERO
    d: ScaledComplex = ScaledComplex.ZERO
    poly_limit: int = 0


def orbit_scale(z) -> int:
    """Shared binary exponent of both parts of an mpc value."""
    scale = max(binary_exponent(z.real), binary_exponent(z.imag))
    if scale == ZERO_EXPONENT:
        return 0
    return scale


class ReferenceOrbit:
    """Computes an arbitrary precision reference orbit for perturbation rendering.

    In Mandelbrot mode the orbit starts at z=0 and c is the center. In Julia
    mode the orbit starts at the center and c is the fixed seed.
    """

    def __init__(self, center_re: str, center_im: str, radius: str = "2.0",
                 power: int = 2, precision_digits: int = 50,
                 julia_seed: Optional[Tuple[str, str]] = None):
        """Initialize reference orbit calculator.

        Args:
            center_re: Real part of center as decimal string (e.g., "-0.75")
            center_im: Imaginary part of center as decimal string (e.g., "0.1")
            radius: View radius as decimal string, used by the series test
            power: Exponent p of z -> z^p + c, one of 2, 3, 4
            precision_digits: Decimal digits of precision for mpmath
            julia_seed: (re, im) decimal strings of c for Julia mode
        """
        if power not in SUPPORTED_POWERS:
            raise ValueError(f"power must be one of {SUPPORTED_POWERS}, got {power}")
        self.center_re_str = center_re
        self.center_im_str = center_im
        self.radius_str = radius
        self.power = power
        self.precision_digits = precision_digits
        self.julia_seed = julia_seed
        self.working_digits = precision_digits + EXTRA_DIGITS

        # Parse inputs with full precision
        with mpmath.workdps(self.working_digits):
            self._center = mpmath.mpc(mpmath.mpf(center_re), mpmath.mpf(center_im))
            self._radius = mpmath.mpf(radius)
            if julia_seed is not None:
                self._seed = mpmath.mpc(mpmath.mpf(julia_seed[0]), mpmath.mpf(julia_seed[1]))
            else:
                self._seed = None
        if not self._radius > 0:
            raise ValueError(f"radius must be positive, got {radius!r}")

        # Populated by compute()
        self._points: list = []
        self._escaped: bool = False
        self._escape_iteration: int = -1
        self._coefficients = SeriesCoefficients()

    @property
    def is_julia(self) -> bool:
        return self._seed is not None

    @property
    def radius(self):
        return self._radius

    def compute(self, imax: int, escape_radius_sq: float = ESCAPE_RADIUS_SQ,
                capacity: int = ORBIT_CAPACITY,
                series_tolerance: float = SERIES_TOLERANCE,
                use_series: bool = True) -> int:
        """Compute reference orbit and series coefficients up to imax iterations.

        The series is trusted at iteration i while i == 0 or
        max|C| > series_tolerance * 2^rexp * max|D|. The first failure
        freezes ``poly_limit`` for good.

        Args:
            imax: Maximum iterations to compute
            escape_radius_sq: Escape radius squared for bailout check
            capacity: Maximum number of orbit points to store
            series_tolerance: Ratio required between the C and D terms
            use_series: Accumulate coefficients past iteration 0

        Returns:
            Actual orbit length (may be less than imax if orbit escapes)
        """
        if imax < 1:
            raise ValueError(f"imax must be positive, got {imax}")
        points = []
        self._escaped = False
        self._escape_iteration = -1

        with mpmath.workdps(self.working_digits):
            if self.is_julia:
                z = self._center
                c = self._seed
                b = ScaledComplex.ONE
            else:
                z = mpmath.mpc(0, 0)
                c = self._center
                b = ScaledComplex.ZERO
            cc = dd = ScaledComplex.ZERO

            radius_exp = binary_exponent(self._radius)
            limit = ScaledFloat.normalized(float(series_tolerance), radius_exp)
            snapshot = SeriesCoefficients(b, cc, dd, 0)
            tracking = use_series

            for i in range(min(imax, capacity)):
                scale = orbit_scale(z)
                x = float(mpmath.ldexp(z.real, -scale))
                y = float(mpmath.ldexp(z.imag, -scale))
                points.append((x, y, float(scale)))

                if tracking:
                    f = ScaledComplex(ScaledFloat(x, scale), ScaledFloat(y, scale))
                    nb, nc, nd = self._advance_series(f, b, cc, dd)
                    if i == 0 or nc.max_abs() > limit * nd.max_abs():
                        snapshot = SeriesCoefficients(b, cc, dd, i)
                        b, cc, dd = nb, nc, nd
                    else:
                        tracking = False

                if z.real * z.real + z.imag * z.imag > escape_radius_sq:
                    self._escaped = True
                    self._escape_iteration = i
                    break

                if self.power == 2:
                    z = z * z + c
                else:
                    z = z ** self.power + c

        self._points = points
        self._coefficients = snapshot
        logger.debug(
            "reference orbit: %d points, escaped=%s, poly limit=%d",
            len(points), self._escaped, snapshot.poly_limit,
        )
        return len(points)

    def _advance_series(self, f: ScaledComplex, b: ScaledComplex,
                        c: ScaledComplex, d: ScaledComplex):
        """One step of the B, C, D recurrences around orbit value f.

        For p=2 this is B <- 2fB + 1, C <- 2fC + B^2, D <- 2(fD + CB),
        all evaluated from the previous step's values.
        """
        p = self.power
        powers = [ScaledComplex.ONE]
        for _ in range(p - 1):
            powers.append(powers[-1] * f)
        lead = powers[p - 1] * p
        b2 = b * b

        nb = lead * b
        if not self.is_julia:
            nb = nb + ScaledComplex.ONE
        nc = lead * c + powers[p - 2] * comb(p, 2) * b2
        nd = lead * d + powers[p - 2] * (2 * comb(p, 2)) * (b * c)
        if p >= 3:
            nd = nd + powers[p - 3] * comb(p, 3) * (b2 * b)
        return nb, nc, nd

    def get_orbit_arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Get the reference orbit as numpy Float64 arrays.

        Returns:
            Tuple of (x_array, y_array, scale_array) of length orbit_length.
            The true orbit value is (x + iy) * 2**scale.
        """
        if not self._points:
            raise ValueError("Must call compute() before get_orbit_arrays()")
        table = np.array(self._points, dtype=np.float64)
        return table[:, 0], table[:, 1], table[:, 2]

    def orbit_buffer(self) -> np.ndarray:
        """Orbit as an (orbit_length + 1, 3) array ending in the sentinel row."""
        if not self._points:
            raise ValueError("Must call compute() before orbit_buffer()")
        return np.array(self._points + [SENTINEL], dtype=np.float64)

    @property
    def orbit_length(self) -> int:
        """Length of computed orbit."""
        return len(self._points)

    @property
    def escaped(self) -> bool:
        """Whether the reference point escaped."""
        return self._escaped

    @property
    def escape_iteration(self) -> int:
        """Iteration at which reference escaped (-1 if didn't escape)."""
        return self._escape_iteration

    @property
    def coefficients(self) -> SeriesCoefficients:
        return self._coefficients
