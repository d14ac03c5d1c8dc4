"""Pan/zoom geometry shared by previews and exports.

Everything here is pure: the same focus point, metrics and zoom always map
to the same transform and crop rectangle, so a preview surface and the
frame renderer cannot drift apart.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Tuple

from .config import VIEWPORT
from .easing import ease_in_out

if TYPE_CHECKING:  # pragma: no cover - for type hints only
    from .plan import MotionConfig

ZOOM_IN = "zoom-in"
ZOOM_OUT = "zoom-out"
PING_PONG = "ping-pong"
MOTION_STYLES = (PING_PONG, ZOOM_IN, ZOOM_OUT)


def clamp(value: float, lo: float, hi: float) -> float:
    return min(max(value, lo), hi)


@dataclass(frozen=True)
class FocusPoint:
    """Zoom target in percent of the displayed image (not the stage)."""

    x: float = 50.0
    y: float = 50.0


CENTER = FocusPoint()


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def normalize_focus_point(value: Any) -> FocusPoint:
    """Default a missing focus point to the centre and clamp it to ``[0, 100]``.

    Accepts a :class:`FocusPoint`, a mapping with ``x``/``y`` keys or an
    ``(x, y)`` pair. Anything without two numeric coordinates is treated as
    unset.
    """
    if isinstance(value, FocusPoint):
        x, y = value.x, value.y
    elif isinstance(value, dict):
        x, y = value.get("x"), value.get("y")
    elif isinstance(value, (tuple, list)) and len(value) == 2:
        x, y = value
    else:
        return CENTER
    if not (_is_number(x) and _is_number(y)):
        return CENTER
    return FocusPoint(clamp(float(x), 0.0, 100.0), clamp(float(y), 0.0, 100.0))


@dataclass(frozen=True)
class ViewportMetrics:
    """How a source of ``natural_*`` pixels is fitted into the stage."""

    stage_width: float
    stage_height: float
    display_width: float
    display_height: float
    offset_x: float
    offset_y: float
    natural_width: float
    natural_height: float
    base_scale: float


def build_metrics(
    natural_width: float,
    natural_height: float,
    stage_width: float = VIEWPORT[0],
    stage_height: float = VIEWPORT[1],
) -> ViewportMetrics:
    """Aspect-fit ``natural_width x natural_height`` into the stage and center it."""
    if natural_width <= 0 or natural_height <= 0:
        raise ValueError(
            f"image dimensions must be positive, got {natural_width}x{natural_height}"
        )
    if stage_width <= 0 or stage_height <= 0:
        raise ValueError(
            f"stage dimensions must be positive, got {stage_width}x{stage_height}"
        )
    base_scale = min(stage_width / natural_width, stage_height / natural_height)
    display_width = natural_width * base_scale
    display_height = natural_height * base_scale
    return ViewportMetrics(
        stage_width=stage_width,
        stage_height=stage_height,
        display_width=display_width,
        display_height=display_height,
        offset_x=(stage_width - display_width) / 2,
        offset_y=(stage_height - display_height) / 2,
        natural_width=natural_width,
        natural_height=natural_height,
        base_scale=base_scale,
    )


@dataclass(frozen=True)
class Transform:
    """Stage-space ``translate(dx, dy) scale(s)`` about ``origin``."""

    origin_x: float
    origin_y: float
    translate_x: float = 0.0
    translate_y: float = 0.0
    scale: float = 1.0

    @property
    def transform_origin(self) -> str:
        return f"{self.origin_x}px {self.origin_y}px"

    @property
    def css(self) -> str:
        if self.scale == 1:
            return "scale(1) translate(0px, 0px)"
        return f"translate({self.translate_x}px, {self.translate_y}px) scale({self.scale})"

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        """Map a pre-transform stage point to where it is drawn."""
        return (
            self.origin_x + (x - self.origin_x) * self.scale + self.translate_x,
            self.origin_y + (y - self.origin_y) * self.scale + self.translate_y,
        )


def ken_burns_transform(
    focus_point: Any, metrics: Optional[ViewportMetrics], scale: float
) -> Transform:
    """Return the transform that zooms ``scale`` times into ``focus_point``.

    The focus point is moved towards the stage centre, then each axis is
    pulled back so the scaled image never uncovers stage area beyond its
    edges.
    """
    if metrics is None or not metrics.stage_width or not metrics.stage_height:
        cx = metrics.stage_width / 2 if metrics else 0.0
        cy = metrics.stage_height / 2 if metrics else 0.0
        return Transform(cx, cy)

    point = normalize_focus_point(focus_point)
    origin_x = metrics.offset_x + point.x / 100 * metrics.display_width
    origin_y = metrics.offset_y + point.y / 100 * metrics.display_height

    if scale == 1:
        return Transform(origin_x, origin_y)

    translate_x = metrics.stage_width / 2 - origin_x
    translate_y = metrics.stage_height / 2 - origin_y

    left = origin_x + (metrics.offset_x - origin_x) * scale + translate_x
    top = origin_y + (metrics.offset_y - origin_y) * scale + translate_y
    right = left + metrics.display_width * scale
    bottom = top + metrics.display_height * scale

    if left > 0:
        translate_x -= left
    if right < metrics.stage_width:
        translate_x += metrics.stage_width - right
    if top > 0:
        translate_y -= top
    if bottom < metrics.stage_height:
        translate_y += metrics.stage_height - bottom

    return Transform(origin_x, origin_y, translate_x, translate_y, scale)


@dataclass(frozen=True)
class CropRect:
    """Region of the source raster, in source pixels."""

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def lerp(self, other: "CropRect", t: float) -> "CropRect":
        return CropRect(
            self.left + (other.left - self.left) * t,
            self.top + (other.top - self.top) * t,
            self.width + (other.width - self.width) * t,
            self.height + (other.height - self.height) * t,
        )


def compute_crop_rect(transform: Transform, metrics: ViewportMetrics, scale: float) -> CropRect:
    """Project the visible stage back onto the source raster.

    Solves ``transform.apply(p) == (0, 0)`` for the pre-transform stage
    point ``p`` and converts it into source pixels. Only the position is
    clamped. The size is always ``stage / (scale * base_scale)``, so for a
    source whose aspect differs from the stage the rectangle can be wider
    or taller than the source itself. Use :func:`pixel_bounds` for a box
    that is guaranteed to fit the raster.
    """
    pre_x = (-transform.translate_x - (1 - scale) * transform.origin_x) / scale
    pre_y = (-transform.translate_y - (1 - scale) * transform.origin_y) / scale

    width = metrics.stage_width / scale / metrics.base_scale
    height = metrics.stage_height / scale / metrics.base_scale
    left = (pre_x - metrics.offset_x) / metrics.base_scale
    top = (pre_y - metrics.offset_y) / metrics.base_scale

    left = clamp(left, 0.0, max(0.0, metrics.natural_width - width))
    top = clamp(top, 0.0, max(0.0, metrics.natural_height - height))
    return CropRect(left, top, width, height)


def zoom_endpoints(style: str, zoom: float) -> Tuple[float, float]:
    """Return ``(start_zoom, end_zoom)``; ping-pong peaks at ``end_zoom``."""
    if style == ZOOM_OUT:
        return zoom, 1.0
    return 1.0, zoom


def eased_progress(style: str, t: float, ease: Callable[[float], float] = ease_in_out) -> float:
    """Map clip time ``t`` in ``[0, 1]`` to the eased start→end blend factor.

    Ping-pong runs the forward half on ``2t`` and the backward half on
    ``2(1 - t)``, so both halves meet at the end state when ``t = 0.5`` and
    the path returns to the start state at ``t = 1``.
    """
    t = clamp(t, 0.0, 1.0)
    if style == PING_PONG:
        local = t / 0.5 if t <= 0.5 else (1 - t) / 0.5
        return ease(local)
    return ease(t)


def preview_zoom(style: str, zoom: float, t: float) -> float:
    start, end = zoom_endpoints(style, zoom)
    return start + (end - start) * eased_progress(style, t)


def resting_zoom(style: str, zoom: float, lock_zoom: bool) -> float:
    """Zoom a preview settles on once playback finishes."""
    return zoom_endpoints(style, zoom)[1] if lock_zoom else 1.0


def default_single_progress(style: str) -> float:
    """Instant captured by a single-frame export: the most zoomed-in one."""
    if style == PING_PONG:
        return 0.5
    if style == ZOOM_OUT:
        return 0.0
    return 1.0


@dataclass(frozen=True)
class MotionPath:
    """Start/end states of one image's motion, resolved once per render."""

    style: str
    start_zoom: float
    end_zoom: float
    start_rect: CropRect
    end_rect: CropRect

    @classmethod
    def build(cls, config: "MotionConfig", metrics: ViewportMetrics) -> "MotionPath":
        start_zoom, end_zoom = zoom_endpoints(config.motion_style, config.zoom)
        start = ken_burns_transform(config.target, metrics, start_zoom)
        end = ken_burns_transform(config.target, metrics, end_zoom)
        return cls(
            style=config.motion_style,
            start_zoom=start_zoom,
            end_zoom=end_zoom,
            start_rect=compute_crop_rect(start, metrics, start_zoom),
            end_rect=compute_crop_rect(end, metrics, end_zoom),
        )

    def sample(self, t: float) -> Tuple[float, CropRect]:
        """Return ``(zoom, rect)`` at ``t``; both follow one eased factor."""
        p = eased_progress(self.style, t)
        zoom = self.start_zoom + (self.end_zoom - self.start_zoom) * p
        return zoom, self.start_rect.lerp(self.end_rect, p)


def pixel_bounds(rect: CropRect, width: int, height: int) -> Tuple[int, int, int, int]:
    """Snap ``rect`` outwards to whole pixels inside a ``width x height`` raster.

    Returns a Pillow-style ``(left, top, right, bottom)`` box that is at
    least one pixel wide and tall.
    """
    left = math.floor(rect.left)
    top = math.floor(rect.top)
    right = math.ceil(rect.left + rect.width)
    bottom = math.ceil(rect.top + rect.height)

    left = int(clamp(left, 0, max(0, width - 1)))
    top = int(clamp(top, 0, max(0, height - 1)))
    right = int(clamp(right, left + 1, width))
    bottom = int(clamp(bottom, top + 1, height))
    return left, top, right, bottom
