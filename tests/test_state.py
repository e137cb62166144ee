"""Tests for the reference state and its GPU-facing exports."""

import numpy as np
import pytest

from pydeepzoom.config import DEFAULT_CONFIG, ORBIT_CAPACITY, ORBIT_TEXTURE_SIZE
from pydeepzoom.precision import precision_for_zoom
from pydeepzoom.state import build_reference_state


@pytest.fixture(scope="module")
def escaping_state():
    # c = 1 escapes at iteration 4
    return build_reference_state("1.0", "0.0", "0.5", max_iterations=100)


def test_state_summary(escaping_state):
    state = escaping_state
    assert state.orbit_length == 5
    assert state.escaped
    assert state.reference_iterations == 4
    assert state.orbit.shape == (6, 3)
    assert len(state.points) == 6
    assert state.radius_log2 == pytest.approx(-1.0)
    assert state.escape_radius_sq == DEFAULT_CONFIG.escape_radius_sq


def test_orbit_is_read_only(escaping_state):
    with pytest.raises(ValueError):
        escaping_state.orbit[0, 0] = 1.0
    with pytest.raises(AttributeError):
        escaping_state.radius = "1.0"


def test_orbit_texture_layout(escaping_state):
    texture = escaping_state.orbit_texture()
    assert texture.shape == (ORBIT_TEXTURE_SIZE, ORBIT_TEXTURE_SIZE)
    assert texture.dtype == np.float32
    assert escaping_state.orbit.dtype == np.float64
    flat = texture.ravel()
    np.testing.assert_array_equal(flat[:18], escaping_state.orbit.astype(np.float32).ravel())
    # sentinel row and padding
    assert np.all(flat[15:] == -1.0)


def test_full_orbit_fits_texture():
    assert (ORBIT_CAPACITY + 1) * 3 <= ORBIT_TEXTURE_SIZE * ORBIT_TEXTURE_SIZE


def test_texture_too_small(escaping_state):
    with pytest.raises(ValueError):
        escaping_state.orbit_texture(size=4)


def test_shader_uniforms(escaping_state):
    uniforms = escaping_state.shader_uniforms(center_offset=0.25, color_scale=2.0)
    # r = 0.5 has radius exponent -1
    np.testing.assert_allclose(uniforms["uState"], [0.25, 2.0, 0.0, 100.0])
    assert uniforms["poly1"].dtype == np.float32
    assert uniforms["poly2"][2] == escaping_state.compact.poly_limit
    assert uniforms["poly2"].shape == (4,)


def test_precision_follows_zoom():
    state = build_reference_state("-0.5", "0.0", "2e-100", max_iterations=10)
    assert state.precision_digits >= precision_for_zoom(100.0) - 1


def test_explicit_precision_is_kept():
    state = build_reference_state("-0.5", "0.0", "2.0", max_iterations=10, precision_digits=80)
    assert state.precision_digits == 80


def test_rejects_bad_iteration_cap():
    with pytest.raises(ValueError):
        build_reference_state("-0.5", "0.0", "2.0", max_iterations=0)


def test_summary(escaping_state):
    summary = escaping_state.summary()
    assert summary.startswith("orbit 5, poly@")
    assert summary.endswith(f"precision {escaping_state.precision_digits} digits")


def test_uniform_radius_exponent_is_integral():
    state = build_reference_state("-0.5", "0.0", "3e-5", max_iterations=10)
    # log2(3e-5) ~ -15.02
    assert state.shader_uniforms()["uState"][2] == -14.0
    assert state.radius_log2 == pytest.approx(-15.02, abs=0.01)
