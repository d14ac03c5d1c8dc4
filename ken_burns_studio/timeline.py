"""Cross-fade compositing of per-image clips into one video."""
from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .config import FADE_EPSILON, RenderSettings
from .encoder import ffmpeg_for, run_ffmpeg, with_codec_fallback
from .errors import CompositionError
from .motion import clamp


@dataclass(frozen=True)
class ClipDescriptor:
    """An encoded clip and the timing it was rendered with."""

    index: int
    duration: float
    fade_duration: float
    path: Optional[Path] = None


def _fmt(seconds: float) -> str:
    return format(round(seconds, 6), "f").rstrip("0").rstrip(".") or "0"


@dataclass(frozen=True)
class Transition:
    """One pairwise ``xfade`` between the running output and the next clip."""

    index: int
    input_label: str
    next_label: str
    output_label: str
    duration: float
    offset: float

    def to_filter(self) -> str:
        return (
            f"{self.input_label}{self.next_label}xfade=transition=fade:"
            f"duration={_fmt(self.duration)}:offset={_fmt(self.offset)}{self.output_label}"
        )


@dataclass
class TimelinePlan:
    transitions: List[Transition] = field(default_factory=list)
    total_duration: float = 0.0
    output_label: str = "0:v"

    @property
    def offsets(self) -> List[float]:
        return [t.offset for t in self.transitions]

    @property
    def fades(self) -> List[float]:
        return [t.duration for t in self.transitions]


def effective_fade(
    declared: float, current: float, following: float, epsilon: float = FADE_EPSILON
) -> float:
    """Clamp a declared fade so it stays shorter than both neighbouring clips."""
    return clamp(declared, 0.0, max(0.0, min(current, following) - epsilon))


def plan_crossfades(clips: Sequence[ClipDescriptor], epsilon: float = FADE_EPSILON) -> TimelinePlan:
    """Compute fade offsets for merging *clips* in order.

    Offsets are accumulated pair by pair: each fade is clamped against its
    two neighbours, so the running output duration is not simply the sum of
    durations minus the sum of declared fades.
    """
    if not clips:
        raise CompositionError("No clips were generated to combine.")

    running = clips[0].duration
    plan = TimelinePlan(total_duration=running)
    last = "[0:v]"
    for i in range(len(clips) - 1):
        current, following = clips[i], clips[i + 1]
        fade = effective_fade(current.fade_duration, current.duration, following.duration, epsilon)
        offset = max(0.0, running - fade)
        out = f"[v{i + 1}]"
        plan.transitions.append(
            Transition(
                index=i,
                input_label=last,
                next_label=f"[{i + 1}:v]",
                output_label=out,
                duration=fade,
                offset=offset,
            )
        )
        last = out
        running += following.duration - fade

    plan.total_duration = running
    if plan.transitions:
        plan.output_label = last
    return plan


def build_filter_graph(plan: TimelinePlan) -> str:
    """Render *plan* as an ffmpeg ``-filter_complex`` description."""
    return ";".join(t.to_filter() for t in plan.transitions)


def build_combine_command(
    ffmpeg: str,
    clip_paths: Sequence[str | Path],
    plan: TimelinePlan,
    output_path: str | Path,
    codec: str,
    settings: RenderSettings,
) -> List[str]:
    cmd = [ffmpeg, "-y"]
    for path in clip_paths:
        cmd += ["-i", str(path)]
    graph = build_filter_graph(plan)
    if graph:
        cmd += ["-filter_complex", graph]
    cmd += [
        "-map", plan.output_label,
        "-c:v", codec,
        "-pix_fmt", "yuv420p",
        "-r", str(settings.fps),
        *settings.codec_options(codec),
        "-an",
        str(output_path),
    ]
    return cmd


def combine_clips(
    clips: Sequence[ClipDescriptor],
    output_path: str | Path,
    settings: Optional[RenderSettings] = None,
) -> Path:
    """Merge *clips* into *output_path* with a cross-fade at every boundary.

    A single clip is copied verbatim; no filter graph is run.
    """
    settings = settings or RenderSettings()
    if not clips:
        raise CompositionError("No clips were generated to combine.")
    missing = [c.index for c in clips if c.path is None]
    if missing:
        raise CompositionError(f"clips {missing} have no encoded file")

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if len(clips) == 1:
        shutil.copyfile(clips[0].path, output_path)
        return output_path

    plan = plan_crossfades(clips)
    ffmpeg = ffmpeg_for(settings, "combine clips")

    def _combine(codec: str) -> Path:
        logging.info("Combining %d clips into final video with %s...", len(clips), codec)
        cmd = build_combine_command(
            ffmpeg, [c.path for c in clips], plan, output_path, codec, settings
        )
        run_ffmpeg(cmd, "combine clips")
        logging.info("Finished combining clips with %s.", codec)
        return output_path

    return with_codec_fallback(_combine, settings, "combine clips")
