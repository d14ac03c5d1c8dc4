"""Cubic-bezier timing curves.

The solver matches the CSS ``cubic-bezier()`` timing function so that an
interactive preview and an exported video ease identically.
"""
from __future__ import annotations

from typing import Callable

NEWTON_ITERATIONS = 8
EPSILON = 1e-6


def cubic_bezier(p1x: float, p1y: float, p2x: float, p2y: float) -> Callable[[float], float]:
    """Return ``ease(x)`` for the curve through ``(0,0)``, ``P1``, ``P2``, ``(1,1)``.

    Parameters
    ----------
    p1x, p1y, p2x, p2y:
        Control points of the timing function, e.g. ``0.42, 0, 0.58, 1`` for
        the standard ease-in-out.

    The returned callable solves ``x(t) = x`` with Newton-Raphson, starting
    at ``t = x``, and evaluates ``y(t)``.
    """
    cx = 3 * p1x
    bx = 3 * (p2x - p1x) - cx
    ax = 1 - cx - bx
    cy = 3 * p1y
    by = 3 * (p2y - p1y) - cy
    ay = 1 - cy - by

    def sample_x(t: float) -> float:
        return ((ax * t + bx) * t + cx) * t

    def sample_y(t: float) -> float:
        return ((ay * t + by) * t + cy) * t

    def sample_dx(t: float) -> float:
        return (3 * ax * t + 2 * bx) * t + cx

    def solve_x(x: float) -> float:
        t = x
        for _ in range(NEWTON_ITERATIONS):
            err = sample_x(t) - x
            if abs(err) < EPSILON:
                return t
            d = sample_dx(t)
            if abs(d) < EPSILON:
                break
            t -= err / d
        return t

    def ease(x: float) -> float:
        return sample_y(solve_x(x))

    return ease


ease_in_out = cubic_bezier(0.42, 0.0, 0.58, 1.0)
