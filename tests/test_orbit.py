"""Tests for the arbitrary precision reference orbit and its series."""

import numpy as np
import pytest

from pydeepzoom.orbit import SENTINEL, ReferenceOrbit
from pydeepzoom.scaled import ScaledComplex


def test_escaping_orbit_values_and_length():
    # c = 1: 0, 1, 2, 5, 26
    orbit = ReferenceOrbit("1.0", "0.0", "2.0")
    length = orbit.compute(100)

    assert length == 5
    assert orbit.escaped
    assert orbit.escape_iteration == 4
    x, y, scale = orbit.get_orbit_arrays()
    values = x * np.exp2(scale)
    assert values == pytest.approx([0.0, 1.0, 2.0, 5.0, 26.0])
    assert np.all(y == 0.0)
    # mantissas are stored divided by a power of two near their magnitude
    assert scale[-1] == 5
    assert x[-1] == pytest.approx(26 / 32)


def test_non_escaping_orbit_runs_to_cap():
    orbit = ReferenceOrbit("-0.5", "0.0", "2.0")
    assert orbit.compute(128) == 128
    assert not orbit.escaped
    assert orbit.escape_iteration == -1


def test_capacity_truncates_orbit():
    orbit = ReferenceOrbit("-0.5", "0.0", "2.0")
    assert orbit.compute(128, capacity=20) == 20
    assert not orbit.escaped


def test_orbit_buffer_ends_with_sentinel():
    orbit = ReferenceOrbit("1.0", "0.0", "2.0")
    orbit.compute(100)
    buffer = orbit.orbit_buffer()
    assert buffer.shape == (6, 3)
    assert tuple(buffer[-1]) == SENTINEL


def test_buffer_requires_compute():
    orbit = ReferenceOrbit("1.0", "0.0")
    with pytest.raises(ValueError):
        orbit.orbit_buffer()


def test_series_coefficients_for_known_orbit():
    # c = -0.5: B2 = 2c + 1 = 0, C2 = 1, D2 = 0; the C/D check fails at i = 3
    orbit = ReferenceOrbit("-0.5", "0.0", "2.0")
    orbit.compute(128)
    coefficients = orbit.coefficients

    assert coefficients.poly_limit == 2
    assert coefficients.b.to_complex() == 0
    assert coefficients.c.to_complex() == 1
    assert coefficients.d.to_complex() == 0


def test_series_disabled_stops_at_zero():
    orbit = ReferenceOrbit("-0.5", "0.0", "2.0")
    orbit.compute(128, use_series=False)
    assert orbit.coefficients.poly_limit == 0
    assert orbit.coefficients.b == ScaledComplex.ZERO


def test_immediate_escape_has_no_series():
    orbit = ReferenceOrbit("30.0", "0.0", "2.0", julia_seed=("0.0", "0.0"))
    assert orbit.compute(50) == 1
    assert orbit.escape_iteration == 0
    assert orbit.coefficients.poly_limit == 0


def test_series_is_deterministic():
    def build():
        orbit = ReferenceOrbit(
            "-0.743643887037151", "0.131825904205330", "1e-20", precision_digits=70
        )
        orbit.compute(400)
        return orbit

    first, second = build(), build()
    assert first.coefficients == second.coefficients
    assert first.coefficients.poly_limit > 2
    np.testing.assert_array_equal(first.orbit_buffer(), second.orbit_buffer())


def test_deep_series_tracks_derivative():
    # B_n = dZ_n/dc, compare against a finite difference in c
    orbit = ReferenceOrbit("-0.75", "0.1", "1e-6", precision_digits=40)
    orbit.compute(10, use_series=True, series_tolerance=1e-300)
    n = orbit.coefficients.poly_limit
    assert n == 9

    h = 1e-7
    c = complex(-0.75, 0.1)
    z_plus = z_minus = 0j
    for _ in range(n):
        z_plus = z_plus * z_plus + c + h
        z_minus = z_minus * z_minus + c - h
    derivative = (z_plus - z_minus) / (2 * h)
    assert orbit.coefficients.b.to_complex() == pytest.approx(derivative, rel=1e-5)


def test_julia_orbit_starts_at_center():
    orbit = ReferenceOrbit("0.25", "0.5", "1.5", julia_seed=("-0.8", "0.156"))
    orbit.compute(10)
    x, y, scale = orbit.get_orbit_arrays()
    assert x[0] * 2.0 ** scale[0] == pytest.approx(0.25)
    assert y[0] * 2.0 ** scale[0] == pytest.approx(0.5)
    z1 = complex(0.25, 0.5) ** 2 + complex(-0.8, 0.156)
    assert x[1] * 2.0 ** scale[1] == pytest.approx(z1.real)
    assert y[1] * 2.0 ** scale[1] == pytest.approx(z1.imag)


@pytest.mark.parametrize("power", [3, 4])
def test_higher_powers(power):
    orbit = ReferenceOrbit("0.3", "0.2", "1.0", power=power)
    orbit.compute(3)
    x, y, scale = orbit.get_orbit_arrays()
    c = complex(0.3, 0.2)
    expected = [0j, c, c ** power + c]
    got = [complex(a, b) * 2.0 ** s for a, b, s in zip(x, y, scale)]
    assert got == pytest.approx(expected)


def test_rejects_unsupported_power():
    with pytest.raises(ValueError):
        ReferenceOrbit("0.0", "0.0", power=5)


def test_rejects_bad_radius():
    with pytest.raises(ValueError):
        ReferenceOrbit("0.0", "0.0", radius="0")


def test_series_limit_stays_frozen_after_first_failure():
    orbit = ReferenceOrbit("-0.5", "0.0", "1.0")
    calls = []

    def advance(f, b, c, d):
        calls.append(len(calls))
        # |C| = |D| fails the tolerance at i = 3 only
        d_next = ScaledComplex.ONE if len(calls) == 4 else ScaledComplex.ZERO
        return ScaledComplex.ONE, ScaledComplex.ONE, d_next

    orbit._advance_series = advance
    orbit.compute(20)

    assert orbit.coefficients.poly_limit == 2
    # nothing is evaluated after the failure, even though later steps would pass
    assert len(calls) == 4
