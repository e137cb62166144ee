"""Tests for the reference point search."""

from pydeepzoom.cache import OrbitCache
from pydeepzoom.config import DEFAULT_CONFIG
from pydeepzoom.search import find_best_reference
from pydeepzoom.state import build_reference_state
from pydeepzoom.view import ViewParams

SEARCHING = DEFAULT_CONFIG.with_overrides(search_reference=True)


def test_bounded_reference_is_kept():
    state = build_reference_state("-0.5", "0.0", "0.5", max_iterations=100)
    assert not state.escaped
    assert find_best_reference(state) is state


def test_escaping_reference_is_replaced():
    # c = 0.3 lies just outside the cardioid, most of the area around it is inside
    state = build_reference_state("0.3", "0.0", "0.5", max_iterations=100)
    assert state.escaped

    best = find_best_reference(state)
    assert best is not state
    assert best.reference_iterations > state.reference_iterations
    assert best.radius == state.radius
    assert best.max_iterations == state.max_iterations
    assert best.precision_digits == state.precision_digits


def test_cache_keeps_searched_reference():
    view = ViewParams("0.3", "0.0", "0.5", 100)
    cache = OrbitCache(SEARCHING)
    state = cache.get(view, deep=True)
    assert (state.center_re, state.center_im) != (view.center_re, view.center_im)
    # drift is measured from the requested view, not the searched center
    assert cache.get(view.pan(0.1, 0.0), deep=True) is state
    assert cache.builds == 1
