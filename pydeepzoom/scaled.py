"""Scaled floating-point numbers for deep zoom bookkeeping.

A ``ScaledFloat`` stores a value as ``mantissa * 2**exponent`` where the
mantissa is a plain double kept near unit magnitude. The exponent is an
unbounded Python int, so products of coefficients that would overflow or
underflow a double (a zoom of 10^500 needs exponents around -1660) stay
representable with ~53 bits of mantissa.
"""

from __future__ import annotations

from dataclasses import dataclass
import math

import mpmath

# Binary exponent reported for an exact zero. Any real exponent is larger.
ZERO_EXPONENT = -10000


def _ldexp(mantissa: float, exponent: int) -> float:
    """``mantissa * 2**exponent`` that saturates to inf instead of raising."""
    try:
        return math.ldexp(mantissa, exponent)
    except OverflowError:
        return math.copysign(math.inf, mantissa)


def binary_exponent(value) -> int:
    """Nearest integer to log2(|value|) for an mpmath (or plain) real.

    Zero has no exponent and reports ``ZERO_EXPONENT``.
    """
    if not value:
        return ZERO_EXPONENT
    mantissa, exponent = mpmath.frexp(value)
    return int(exponent) + int(round(math.log2(abs(float(mantissa)))))


@dataclass(frozen=True)
class ScaledFloat:
    """A real number stored as (mantissa, binary exponent)."""

    mantissa: float
    exponent: int = 0

    @classmethod
    def normalized(cls, mantissa: float, exponent: int) -> "ScaledFloat":
        if mantissa == 0.0 or not math.isfinite(mantissa):
            return cls(mantissa, exponent)
        shift = round(math.log2(abs(mantissa)))
        return cls(math.ldexp(mantissa, -shift), exponent + shift)

    @classmethod
    def from_float(cls, value: float) -> "ScaledFloat":
        return cls.normalized(float(value), 0)

    @classmethod
    def from_mpf(cls, value) -> "ScaledFloat":
        """Convert an arbitrary precision real without passing through a double."""
        if not value:
            return cls(0.0, 0)
        exponent = binary_exponent(value)
        return cls(float(mpmath.ldexp(value, -exponent)), exponent)

    def to_float(self) -> float:
        return _ldexp(self.mantissa, self.exponent)

    def _aligned(self, other: "ScaledFloat"):
        # a zero operand must not drag a tiny value up to its exponent
        if self.mantissa == 0.0:
            exponent = other.exponent
        elif other.mantissa == 0.0:
            exponent = self.exponent
        else:
            exponent = max(self.exponent, other.exponent)
        return (
            _ldexp(self.mantissa, self.exponent - exponent),
            _ldexp(other.mantissa, other.exponent - exponent),
            exponent,
        )

    def __add__(self, other: "ScaledFloat") -> "ScaledFloat":
        a, b, exponent = self._aligned(other)
        return ScaledFloat.normalized(a + b, exponent)

    def __sub__(self, other: "ScaledFloat") -> "ScaledFloat":
        a, b, exponent = self._aligned(other)
        return ScaledFloat.normalized(a - b, exponent)

    def __mul__(self, other) -> "ScaledFloat":
        if not isinstance(other, ScaledFloat):
            other = ScaledFloat.from_float(other)
        # a zero product keeps the summed exponent, log2(0) is undefined
        return ScaledFloat.normalized(
            self.mantissa * other.mantissa, self.exponent + other.exponent
        )

    __rmul__ = __mul__

    def __neg__(self) -> "ScaledFloat":
        return ScaledFloat(-self.mantissa, self.exponent)

    def __abs__(self) -> "ScaledFloat":
        return ScaledFloat(abs(self.mantissa), self.exponent)

    def __gt__(self, other: "ScaledFloat") -> bool:
        a, b, _ = self._aligned(other)
        return a > b

    def __lt__(self, other: "ScaledFloat") -> bool:
        return other > self

    def max(self, other: "ScaledFloat") -> "ScaledFloat":
        return self if self > other else other

    def is_zero(self) -> bool:
        return self.mantissa == 0.0


ScaledFloat.ZERO = ScaledFloat(0.0, 0)
ScaledFloat.ONE = ScaledFloat(1.0, 0)


@dataclass(frozen=True)
class ScaledComplex:
    """A complex number whose parts are ``ScaledFloat`` values."""

    real: ScaledFloat
    imag: ScaledFloat

    @classmethod
    def from_complex(cls, value: complex) -> "ScaledComplex":
        return cls(ScaledFloat.from_float(value.real), ScaledFloat.from_float(value.imag))

    def __add__(self, other: "ScaledComplex") -> "ScaledComplex":
        return ScaledComplex(self.real + other.real, self.imag + other.imag)

    def __sub__(self, other: "ScaledComplex") -> "ScaledComplex":
        return ScaledComplex(self.real - other.real, self.imag - other.imag)

    def __mul__(self, other) -> "ScaledComplex":
        if isinstance(other, ScaledComplex):
            # (a + bi)(c + di) = (ac - bd) + (ad + bc)i
            return ScaledComplex(
                self.real * other.real - self.imag * other.imag,
                self.real * other.imag + self.imag * other.real,
            )
        return ScaledComplex(self.real * other, self.imag * other)

    __rmul__ = __mul__

    def max_abs(self) -> ScaledFloat:
        """max(|re|, |im|), the magnitude measure used by the series test."""
        return abs(self.real).max(abs(self.imag))

    def to_complex(self) -> complex:
        return complex(self.real.to_float(), self.imag.to_float())


ScaledComplex.ZERO = ScaledComplex(ScaledFloat.ZERO, ScaledFloat.ZERO)
ScaledComplex.ONE = ScaledComplex(ScaledFloat.ONE, ScaledFloat.ZERO)
