"""Frame rasterization for one image's motion path."""
from __future__ import annotations

import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from .config import RenderSettings
from .errors import ImageReadError
from .motion import MotionPath, build_metrics, clamp, pixel_bounds
from .plan import MotionConfig

RESAMPLE = Image.LANCZOS


def frame_count(duration: float, fps: int) -> int:
    """Number of frames for ``duration`` seconds, never fewer than two."""
    return max(2, math.ceil(duration * fps))


def frame_progress(frame: int, total: int) -> float:
    """Normalized time of ``frame``: 0 for the first frame, 1 for the last."""
    return frame / (total - 1) if total > 1 else 0.0


def frame_name(image_index: int, frame: int) -> str:
    return f"img-{image_index}-frame-{frame:04d}.png"


def frame_pattern(frames_dir: str | Path, image_index: int) -> str:
    """printf-style pattern matching :func:`frame_name` for ffmpeg inputs."""
    return os.path.join(str(frames_dir), f"img-{image_index}-frame-%04d.png")


def load_working_image(path: str | Path, oversample: int = 1) -> Image.Image:
    """Open ``path`` and upscale it by ``oversample`` with a Lanczos kernel.

    Raises
    ------
    ImageReadError
        If the file is missing, cannot be decoded or has no dimensions.
    """
    name = os.path.basename(str(path))
    try:
        with Image.open(path) as src:
            src.load()
            img = src.convert("RGB")
    except FileNotFoundError as e:
        raise ImageReadError(name, "file not found") from e
    except (UnidentifiedImageError, OSError) as e:
        raise ImageReadError(name, str(e) or "undecodable") from e

    w, h = img.size
    if not w or not h:
        raise ImageReadError(name, "unable to read dimensions")

    factor = max(1, int(oversample))
    if factor == 1:
        return img
    return img.resize((max(1, round(w * factor)), max(1, round(h * factor))), RESAMPLE)


def render_frame(
    working: Image.Image, path: MotionPath, t: float, size: Tuple[int, int]
) -> Image.Image:
    """Crop the motion path at time ``t`` out of ``working`` and resize to ``size``."""
    _, rect = path.sample(t)
    box = pixel_bounds(rect, working.width, working.height)
    return working.crop(box).resize(size, RESAMPLE)


def _frame_jobs(
    config: MotionConfig,
    image_index: int,
    frames_dir: Path,
    fps: int,
    single_progress: Optional[float],
    output_path: Optional[str | Path],
) -> List[Tuple[float, Path]]:
    if single_progress is not None:
        out = Path(output_path) if output_path else frames_dir / f"img-{image_index}-frame-single.png"
        return [(clamp(single_progress, 0.0, 1.0), out)]
    total = frame_count(config.duration, fps)
    return [
        (frame_progress(frame, total), frames_dir / frame_name(image_index, frame))
        for frame in range(total)
    ]


def generate_frames(
    image_path: str | Path,
    config: MotionConfig,
    image_index: int,
    frames_dir: str | Path,
    settings: Optional[RenderSettings] = None,
    single_progress: Optional[float] = None,
    output_path: Optional[str | Path] = None,
    workers: int = 1,
) -> List[Path]:
    """Write the frames of one image's motion path and return their paths.

    Parameters
    ----------
    image_path:
        Source raster.
    config:
        Resolved motion settings (see :func:`plan.resolve_motion_config`).
    image_index:
        Position of the image in the plan; used in frame file names.
    frames_dir:
        Directory receiving ``img-{index}-frame-{n:04d}.png`` files.
    single_progress:
        When given, render only the instant ``t`` in ``[0, 1]`` (preview or
        thumbnail) to ``output_path`` or ``img-{index}-frame-single.png``.
    workers:
        Render frames on a thread pool of this size. Frames are independent
        crops of one shared read-only raster.
    """
    settings = settings or RenderSettings()
    frames_dir = Path(frames_dir)
    frames_dir.mkdir(parents=True, exist_ok=True)
    logging.info("Preparing frames for image %d", image_index)

    working = load_working_image(image_path, settings.oversample)
    metrics = build_metrics(working.width, working.height, *settings.size)
    path = MotionPath.build(config, metrics)

    jobs = _frame_jobs(config, image_index, frames_dir, settings.fps, single_progress, output_path)
    logging.info(
        "Generating %d frame%s for image %d",
        len(jobs),
        "" if len(jobs) == 1 else "s",
        image_index,
    )

    def _render(job: Tuple[float, Path]) -> Path:
        t, out = job
        out.parent.mkdir(parents=True, exist_ok=True)
        render_frame(working, path, t, settings.size).save(out)
        return out

    if workers > 1 and len(jobs) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            rendered = list(pool.map(_render, jobs))
    else:
        rendered = [_render(job) for job in jobs]

    logging.info("Frame generation complete for image %d", image_index)
    return rendered
