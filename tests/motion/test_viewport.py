import pytest

from ken_burns_studio.motion import (
    CENTER,
    FocusPoint,
    build_metrics,
    normalize_focus_point,
)


def test_metrics_same_aspect_fill_stage():
    m = build_metrics(2560, 1440, 1280, 720)
    assert m.base_scale == pytest.approx(0.5)
    assert (m.display_width, m.display_height) == (1280, 720)
    assert (m.offset_x, m.offset_y) == (0, 0)


def test_metrics_square_source_is_pillarboxed():
    m = build_metrics(1000, 1000, 1280, 720)
    assert m.base_scale == pytest.approx(0.72)
    assert m.display_width == pytest.approx(720)
    assert m.offset_x == pytest.approx(280)
    assert m.offset_y == pytest.approx(0)
    assert m.base_scale == pytest.approx(m.display_width / m.natural_width)


def test_metrics_portrait_source():
    m = build_metrics(720, 1440, 1280, 720)
    assert m.base_scale == pytest.approx(0.5)
    assert m.offset_x == pytest.approx((1280 - 360) / 2)


@pytest.mark.parametrize("w,h", [(0, 100), (100, 0), (-5, 10)])
def test_metrics_reject_non_positive(w, h):
    with pytest.raises(ValueError):
        build_metrics(w, h)


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, CENTER),
        ({}, CENTER),
        ({"x": "left", "y": 10}, CENTER),
        ({"x": True, "y": 10}, CENTER),
        ({"x": float("nan"), "y": 10}, CENTER),
        ({"x": 150, "y": -5}, FocusPoint(100, 0)),
        ((25, 75), FocusPoint(25, 75)),
        (FocusPoint(10, 20), FocusPoint(10, 20)),
    ],
)
def test_normalize_focus_point(raw, expected):
    assert normalize_focus_point(raw) == expected
