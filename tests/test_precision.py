"""Tests for working precision selection and decimal helpers."""

from decimal import Decimal

import pytest

from pydeepzoom.precision import (
    BASE_PRECISION, GUARD_DIGITS, PrecisionManager, add_decimal_strings,
    coordinate_digits, log10_zoom, mul_decimal_string, precision_for_zoom,
)


def test_base_precision_at_no_zoom():
    assert precision_for_zoom(0.0) == BASE_PRECISION
    assert precision_for_zoom(-3.0) == BASE_PRECISION


def test_precision_never_decreases_with_depth():
    digits = [precision_for_zoom(z / 4) for z in range(0, 4000)]
    assert digits == sorted(digits)
    assert precision_for_zoom(1000.0) == BASE_PRECISION + 1500


def test_log10_zoom_for_tiny_radius():
    assert log10_zoom("2.0") == pytest.approx(0.0, abs=1e-12)
    assert log10_zoom("2e-500") == pytest.approx(500.0)


def test_log10_zoom_rejects_non_positive():
    with pytest.raises(ValueError):
        log10_zoom("0")
    with pytest.raises(ValueError):
        log10_zoom("-1.5")


def test_coordinate_digits():
    assert coordinate_digits("-0.5") == 1
    assert coordinate_digits("1.25e-40") == 42
    assert coordinate_digits("-1.7687788330000000000000000001") == 29
    with pytest.raises(ValueError):
        coordinate_digits("not a number")
    with pytest.raises(ValueError):
        coordinate_digits("inf")


def test_manager_follows_zoom():
    manager = PrecisionManager()
    assert manager.update("-0.5", "0.0", "2.0") == BASE_PRECISION
    deep = manager.update("-0.5", "0.0", "2e-100")
    assert deep == precision_for_zoom(log10_zoom("2e-100"))
    assert manager.digits == deep


def test_manager_keeps_digits_for_stored_center():
    center = "-0.5000000000000000000000000000000000000000000000000000000000001"
    manager = PrecisionManager()
    digits = manager.update(center, "0.0", "2.0")
    assert digits >= coordinate_digits(center) + GUARD_DIGITS
    assert digits > BASE_PRECISION


def test_decimal_helpers_keep_digits():
    a = "-1.7687788330000000000000000001"
    b = "0.0000000000000000000000000002"
    assert Decimal(add_decimal_strings(a, b)) == Decimal("-1.7687788329999999999999999999")
    assert Decimal(mul_decimal_string("2e-300", 0.5)) == Decimal("1e-300")
