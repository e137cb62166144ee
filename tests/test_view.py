"""Tests for view parameters and navigation."""

from decimal import Decimal, localcontext

import pytest

from pydeepzoom.view import DEFAULT_RADIUS, ViewParams, pixel_offset


def test_pixel_offset_uses_longer_side():
    assert pixel_offset(0, 0, 4, 2) == (-0.75, 0.25)
    assert pixel_offset(3, 1, 4, 2) == (0.75, -0.25)
    # y grows upwards
    top = pixel_offset(0, 0, 2, 4)
    bottom = pixel_offset(0, 3, 2, 4)
    assert top[1] > 0 > bottom[1]
    assert top == (-0.25, 0.75)


def test_world_point():
    view = ViewParams("-0.5", "0.0", "2.0")
    re, im = view.world_point(0.75, -0.5)
    assert Decimal(re) == Decimal("1.0")
    assert Decimal(im) == Decimal("-1.0")


def test_zoom_in_keeps_target_fixed():
    view = ViewParams("-0.5", "0.0", "2.0")
    target = view.world_point(0.5, 0.25)
    zoomed = view.zoom_in(0.5, 0.25, factor=0.5)
    assert Decimal(zoomed.radius) == Decimal("1.0")
    after = zoomed.world_point(0.5, 0.25)
    assert [Decimal(v) for v in after] == [Decimal(v) for v in target]


def test_zoom_out_at_center():
    view = ViewParams("-0.5", "0.0", "1.0")
    out = view.zoom_out()
    assert Decimal(out.radius) == Decimal("2.0")
    assert Decimal(out.center_re) == Decimal("-0.5")


def test_deep_zoom_keeps_every_digit():
    view = ViewParams("-1.7687788330000000000000000001", "-0.001738996", "1e-40")
    for _ in range(100):
        view = view.zoom_in(0.3, -0.2)
    # 100 halvings past 1e-40
    with localcontext() as ctx:
        ctx.prec = 200
        assert Decimal(view.radius) == Decimal("1e-40") / Decimal(2) ** 100
    assert view.zoom_log10 == pytest.approx(40.3 + 100 * 0.30103, abs=0.01)
    assert Decimal(view.center_re) != Decimal("-1.7687788330000000000000000001")
    assert len(view.center_re.replace("-", "").replace(".", "")) > 60


def test_pan():
    view = ViewParams("-0.5", "0.0", "2.0")
    moved = view.pan(1.0, -0.25)
    assert Decimal(moved.center_re) == Decimal("1.5")
    assert Decimal(moved.center_im) == Decimal("-0.5")
    assert moved.radius == view.radius


def test_reset_keeps_mode():
    view = ViewParams("0.1", "0.2", "1e-30", 5000, power=3, julia_seed=("-0.8", "0.156"))
    reset = view.reset()
    assert reset.radius == DEFAULT_RADIUS
    assert reset.max_iterations == 256
    assert reset.power == 3
    assert reset.julia_seed == ("-0.8", "0.156")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"radius": "0"},
        {"radius": "-1e-5"},
        {"radius": "wide"},
        {"center_re": "left"},
        {"max_iterations": 0},
    ],
)
def test_invalid_views(kwargs):
    with pytest.raises(ValueError):
        ViewParams(**kwargs)


def test_bad_zoom_factors():
    view = ViewParams()
    with pytest.raises(ValueError):
        view.zoom_in(factor=2.0)
    with pytest.raises(ValueError):
        view.zoom_out(factor=0.5)


def test_pixel_world_point():
    view = ViewParams("-0.5", "0.0", "2.0")
    re, im = view.pixel_world_point(6.5, 0.5, 8, 2)
    assert Decimal(re) == Decimal("1.0")
    assert Decimal(im) == 0
