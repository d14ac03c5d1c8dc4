"""Per-image motion settings and export plans."""
from __future__ import annotations

import json
import logging
import math
import re
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .config import DEFAULT_DURATION, DEFAULT_FADE, DEFAULT_ZOOM
from .motion import (
    MOTION_STYLES,
    PING_PONG,
    ZOOM_IN,
    ZOOM_OUT,
    FocusPoint,
    normalize_focus_point,
)


@dataclass(frozen=True)
class MotionConfig:
    """Resolved motion settings for one image."""

    duration: float = DEFAULT_DURATION
    zoom: float = DEFAULT_ZOOM
    motion_style: str = PING_PONG
    fade_duration: float = DEFAULT_FADE
    lock_zoom: bool = False
    focus_point: Optional[FocusPoint] = None
    preset: str = "custom"

    @property
    def target(self) -> FocusPoint:
        """Focus point actually used for rendering (centre when unset)."""
        return normalize_focus_point(self.focus_point)


@dataclass(frozen=True)
class MotionPreset:
    id: str
    label: str
    duration: float
    zoom: float
    motion_style: str


MOTION_PRESETS: Dict[str, MotionPreset] = {
    p.id: p
    for p in (
        MotionPreset("custom", "Custom 6s", 6, 1.8, PING_PONG),
        MotionPreset("drift15", "15s Drift", 15, 1.5, ZOOM_IN),
        MotionPreset("focus30", "30s Focus", 30, 2.0, ZOOM_IN),
        MotionPreset("linger60", "60s Linger", 60, 1.3, ZOOM_IN),
    )
}

DEFAULT_CONFIG = MotionConfig()

# Keys that turn a preset-derived config into a custom one when edited.
_CORE_MOTION_KEYS = ("duration", "zoom", "motion_style", "fade_duration")

_ALIASES = {
    "motionStyle": "motion_style",
    "fadeDuration": "fade_duration",
    "lockZoom": "lock_zoom",
    "targetPoint": "focus_point",
    "focusPoint": "focus_point",
    "target_point": "focus_point",
}


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


def safe_duration(value: Any, default: float = DEFAULT_DURATION) -> float:
    parsed = _to_float(value)
    if parsed is not None and parsed > 0:
        return parsed
    if value is not None:
        logging.warning("invalid duration %r – using %.2fs", value, default)
    return default


def safe_zoom(value: Any, default: float = DEFAULT_ZOOM) -> float:
    parsed = _to_float(value)
    if parsed is not None and parsed > 0:
        return parsed
    if value is not None:
        logging.warning("invalid zoom %r – using %.2f", value, default)
    return default


def safe_fade(value: Any, default: float = DEFAULT_FADE) -> float:
    parsed = _to_float(value)
    if parsed is not None and parsed >= 0:
        return parsed
    return default


def _normalize_keys(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return {_ALIASES.get(k, k): v for k, v in raw.items()}


class AutoFocusCycle:
    """Alternates zoom-in/zoom-out for images that have no focus point.

    The position in the cycle is explicit state: pass ``state`` back in to
    resume a persisted cycle. ``advance`` is safe to call from several
    threads.
    """

    ORDER = (ZOOM_IN, ZOOM_OUT)

    def __init__(self, state: int = 0):
        self._state = int(state)
        self._lock = threading.Lock()

    @property
    def state(self) -> int:
        return self._state

    def peek(self) -> str:
        return self.ORDER[self._state % len(self.ORDER)]

    def advance(self) -> str:
        with self._lock:
            style = self.ORDER[self._state % len(self.ORDER)]
            self._state += 1
        return style


def resolve_motion_config(
    raw: Optional[Mapping[str, Any]] = None,
    defaults: MotionConfig = DEFAULT_CONFIG,
    auto_focus: Optional[AutoFocusCycle] = None,
) -> MotionConfig:
    """Merge ``raw`` overrides onto ``defaults`` and sanitize every value.

    Accepts both snake_case and the camelCase keys used by JSON manifests.
    Zero, negative or non-numeric durations and zooms fall back to the
    defaults instead of failing, so a batch render survives a partially
    invalid plan.
    """
    data = _normalize_keys(raw or {})

    preset_id = data.get("preset")
    preset = MOTION_PRESETS.get(preset_id) if preset_id else None
    base: Dict[str, Any] = {}
    if preset is not None:
        base.update(
            duration=preset.duration, zoom=preset.zoom, motion_style=preset.motion_style
        )
    base.update({k: v for k, v in data.items() if k != "preset"})

    focus = base.get("focus_point", defaults.focus_point)
    focus_point = normalize_focus_point(focus) if focus is not None else None

    style = base.get("motion_style")
    if style is None:
        if focus_point is None and auto_focus is not None:
            style = auto_focus.advance()
        else:
            style = defaults.motion_style
    if style not in MOTION_STYLES:
        logging.warning("unknown motion style %r – using %s", style, PING_PONG)
        style = PING_PONG

    config = MotionConfig(
        duration=safe_duration(base.get("duration"), defaults.duration),
        zoom=safe_zoom(base.get("zoom"), defaults.zoom),
        motion_style=style,
        fade_duration=safe_fade(base.get("fade_duration"), defaults.fade_duration),
        lock_zoom=bool(base.get("lock_zoom", defaults.lock_zoom)),
        focus_point=focus_point,
    )
    if preset is not None:
        matches = (config.duration, config.zoom, config.motion_style) == (
            preset.duration,
            preset.zoom,
            preset.motion_style,
        )
        label = preset.id if matches else "custom"
    elif any(k in data for k in _CORE_MOTION_KEYS):
        label = "custom"
    else:
        label = defaults.preset
    return replace(config, preset=label)


@dataclass
class ImageEntry:
    """One image of an export plan, in presentation order."""

    id: str
    file_name: str
    config: Dict[str, Any] = field(default_factory=dict)


def safe_slug(value: str) -> str:
    return re.sub(r"[^a-z0-9_-]", "_", str(value), flags=re.IGNORECASE).lower()


def _parse_entry(item: Any, index: int) -> ImageEntry:
    if isinstance(item, str):
        return ImageEntry(id=Path(item).stem, file_name=item)
    if not isinstance(item, Mapping):
        raise ValueError(f"plan entry {index} must be a mapping or a file name")
    file_name = item.get("fileName") or item.get("file_name")
    if not file_name:
        raise ValueError(f"plan entry {index} has no file name")
    image_id = item.get("id") or Path(file_name).stem
    config = item.get("config") or {}
    if not isinstance(config, Mapping):
        raise ValueError(f"plan entry {index} config must be a mapping")
    return ImageEntry(id=str(image_id), file_name=str(file_name), config=dict(config))


def parse_plan(data: Any) -> tuple[List[ImageEntry], MotionConfig]:
    """Return ``(entries, defaults)`` from already-decoded plan data."""
    defaults = DEFAULT_CONFIG
    if isinstance(data, Mapping):
        if data.get("defaults"):
            defaults = resolve_motion_config(data["defaults"])
        items = data.get("images") or data.get("plan") or []
    else:
        items = data or []
    if not isinstance(items, list):
        raise ValueError("plan images must be a list")
    return [_parse_entry(item, i) for i, item in enumerate(items)], defaults


def load_plan(path: str | Path) -> tuple[List[ImageEntry], MotionConfig]:
    """Load a YAML or JSON export plan."""
    path = Path(path)
    with open(path, "r", encoding="utf8") as fh:
        if path.suffix.lower() == ".json":
            data = json.load(fh)
        else:
            data = yaml.safe_load(fh)
    return parse_plan(data)
