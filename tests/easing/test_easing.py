import numpy as np
import pytest

from ken_burns_studio.easing import cubic_bezier, ease_in_out


def test_endpoints():
    assert ease_in_out(0.0) == pytest.approx(0.0, abs=1e-6)
    assert ease_in_out(1.0) == pytest.approx(1.0, abs=1e-6)


def test_monotonic_non_decreasing():
    ys = [ease_in_out(x) for x in np.linspace(0, 1, 501)]
    diffs = np.diff(ys)
    assert np.all(diffs >= -1e-9)


def test_symmetric_about_midpoint():
    assert ease_in_out(0.5) == pytest.approx(0.5, abs=1e-6)
    for x in (0.1, 0.25, 0.4):
        assert ease_in_out(x) + ease_in_out(1 - x) == pytest.approx(1.0, abs=1e-5)


def test_slow_start_and_end():
    assert ease_in_out(0.1) < 0.1
    assert ease_in_out(0.9) > 0.9


def test_deterministic():
    xs = np.linspace(0, 1, 37)
    assert [ease_in_out(x) for x in xs] == [ease_in_out(x) for x in xs]


def test_linear_control_points_are_identity():
    linear = cubic_bezier(1 / 3, 1 / 3, 2 / 3, 2 / 3)
    for x in np.linspace(0, 1, 11):
        assert linear(x) == pytest.approx(x, abs=1e-6)
