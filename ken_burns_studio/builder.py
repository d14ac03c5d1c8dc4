"""Core building logic for Ken Burns slideshow exports."""
from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

from .config import RenderSettings
from .encoder import encode_clip
from .errors import ExportError, KenBurnsError
from .frames import generate_frames
from .motion import default_single_progress
from .plan import (
    DEFAULT_CONFIG,
    AutoFocusCycle,
    ImageEntry,
    MotionConfig,
    resolve_motion_config,
    safe_slug,
)
from .timeline import ClipDescriptor, combine_clips
from .utils import ms_timestamp


class RenderWorkspace:
    """Transient storage owned by a single render request.

    Every request gets its own directory, and inside it frames and clips are
    partitioned by image index, so concurrent requests (or a retry after a
    crash) never read each other's frames. Used as a context manager the
    directory is removed on exit unless ``keep`` is set.
    """

    def __init__(self, root: str | Path | None = None, keep: bool = False):
        if root is not None:
            Path(root).mkdir(parents=True, exist_ok=True)
        self.path = Path(tempfile.mkdtemp(prefix="kenburns-", dir=root))
        self.keep = keep

    def frames_dir(self, image_index: int) -> Path:
        path = self.path / "frames" / f"img-{image_index}"
        if path.exists():
            # leftovers from an aborted batch for this index
            shutil.rmtree(path)
        path.mkdir(parents=True)
        return path

    def clip_path(self, image_index: int) -> Path:
        clips = self.path / "clips"
        clips.mkdir(parents=True, exist_ok=True)
        return clips / f"clip-{image_index}.mp4"

    def discard_frames(self, image_index: int) -> None:
        shutil.rmtree(self.path / "frames" / f"img-{image_index}", ignore_errors=True)

    def cleanup(self) -> None:
        shutil.rmtree(self.path, ignore_errors=True)

    def __enter__(self) -> "RenderWorkspace":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self.keep:
            self.cleanup()


def resolve_entries(
    entries: Sequence[ImageEntry],
    defaults: MotionConfig = DEFAULT_CONFIG,
    auto_focus: Optional[AutoFocusCycle] = None,
) -> List[MotionConfig]:
    return [resolve_motion_config(e.config, defaults, auto_focus) for e in entries]


def export_video(
    entries: Sequence[ImageEntry],
    images_dir: str | Path,
    output_path: str | Path,
    settings: Optional[RenderSettings] = None,
    defaults: MotionConfig = DEFAULT_CONFIG,
    auto_focus: Optional[AutoFocusCycle] = None,
    workers: int = 1,
    keep_temp: bool = False,
) -> Path:
    """Render every entry into a clip and cross-fade them into *output_path*.

    Images are processed one after another; all clips must exist before
    they are combined. Any failure aborts the whole export with an
    :class:`ExportError` naming the failing stage.
    """
    settings = settings or RenderSettings()
    if not entries:
        raise ExportError("plan", "Invalid export plan provided.")
    images_dir = Path(images_dir)
    configs = resolve_entries(entries, defaults, auto_focus)

    with RenderWorkspace(settings.temp_root, keep=keep_temp) as ws:
        logging.info("Render workspace: %s", ws.path)
        clips: List[ClipDescriptor] = []
        for i, (entry, config) in enumerate(zip(entries, configs)):
            logging.info("Processing image %d/%d: %s", i + 1, len(entries), entry.file_name)
            stage = f"frames for {entry.file_name}"
            try:
                frames_dir = ws.frames_dir(i)
                generate_frames(
                    images_dir / entry.file_name,
                    config,
                    i,
                    frames_dir,
                    settings,
                    workers=workers,
                )
                stage = f"encode {entry.file_name}"
                clip = encode_clip(frames_dir, i, ws.clip_path(i), config.duration, settings)
            except (KenBurnsError, OSError) as e:
                raise ExportError(stage, str(e)) from e
            if not keep_temp:
                ws.discard_frames(i)
            clips.append(ClipDescriptor(i, config.duration, config.fade_duration, clip))

        logging.info("All clips generated. Combining into final video...")
        try:
            final = combine_clips(clips, output_path, settings)
        except (KenBurnsError, OSError) as e:
            raise ExportError("combine", str(e)) from e

    logging.info("Export complete: %s", final)
    return final


def default_video_name() -> str:
    return f"ken-burns-effect-{ms_timestamp()}.mp4"


def default_frame_name(entry: ImageEntry, index: int) -> str:
    slug = safe_slug(entry.id or Path(entry.file_name or f"image-{index}").stem)
    return f"frame-{slug}-{ms_timestamp()}.png"


def export_frame(
    entries: Sequence[ImageEntry],
    image_id: str,
    images_dir: str | Path,
    output_path: str | Path,
    settings: Optional[RenderSettings] = None,
    defaults: MotionConfig = DEFAULT_CONFIG,
    progress: Optional[float] = None,
) -> Path:
    """Render a single still of *image_id* for a quick preview.

    Without *progress* the still shows the most zoomed-in instant of the
    entry's motion style.
    """
    settings = settings or RenderSettings()
    index = next((i for i, e in enumerate(entries) if e.id == image_id), -1)
    if index == -1:
        raise KeyError(f"Requested image not found in the plan: {image_id}")
    entry = entries[index]
    config = resolve_motion_config(entry.config, defaults)
    if progress is None:
        progress = default_single_progress(config.motion_style)

    output_path = Path(output_path)
    try:
        rendered = generate_frames(
            Path(images_dir) / entry.file_name,
            config,
            index,
            output_path.parent,
            settings,
            single_progress=progress,
            output_path=output_path,
        )
    except (KenBurnsError, OSError) as e:
        raise ExportError(f"frame for {entry.file_name}", str(e)) from e
    return rendered[0]
