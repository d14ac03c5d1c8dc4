"""Video encoding with a hardware codec and a software fallback."""
from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Sequence, TypeVar

from .bin_config import resolve_ffmpeg
from .config import RenderSettings
from .errors import EncodeError, EncoderUnavailableError, FFmpegError
from .frames import frame_pattern

T = TypeVar("T")

# Substrings ffmpeg prints when the requested encoder cannot be used.
_UNAVAILABLE_SIGNATURES = (
    "unknown encoder",
    "no nvenc capable devices",
    "cannot find nvenc",
    "cannot load libnvidia-encode",
)


def is_codec_unavailable_error(error: Optional[BaseException]) -> bool:
    """Return True if *error* says the encoder is missing or unsupported."""
    if error is None:
        return False
    parts = [str(error), getattr(error, "stderr", None), getattr(error, "stdout", None)]
    message = " | ".join(p for p in parts if isinstance(p, str) and p).lower()
    if not message:
        return False
    if any(sig in message for sig in _UNAVAILABLE_SIGNATURES):
        return True
    return "nvenc" in message and "not available" in message


def with_codec_fallback(
    encode: Callable[[str], T], settings: RenderSettings, stage: str
) -> T:
    """Run ``encode(codec)`` with the preferred codec, retrying once on software.

    Only an encoder-unavailable failure triggers the retry; any other failure,
    or a failing retry, raises :class:`EncodeError` for *stage*.
    """
    codec = settings.preferred_codec
    try:
        return encode(codec)
    except (OSError, EncodeError) as err:
        if not is_codec_unavailable_error(err):
            if isinstance(err, EncodeError):
                raise
            raise EncodeError(stage, str(err)) from err
        if codec == settings.fallback_codec:
            raise EncoderUnavailableError(stage, codec) from err
        logging.warning(
            "%s unavailable during %s, falling back to %s",
            codec,
            stage,
            settings.fallback_codec,
        )

    try:
        return encode(settings.fallback_codec)
    except (OSError, EncodeError) as err:
        if is_codec_unavailable_error(err):
            raise EncoderUnavailableError(stage, settings.fallback_codec) from err
        if isinstance(err, EncodeError):
            raise
        raise EncodeError(stage, str(err)) from err


def ffmpeg_for(settings: RenderSettings, stage: str) -> str:
    """Resolved ffmpeg executable for *settings*, or :class:`EncodeError`."""
    ffmpeg = resolve_ffmpeg(settings.ffmpeg_binary)
    if ffmpeg is None:
        raise EncodeError(stage, "ffmpeg binary not found")
    return ffmpeg


def run_ffmpeg(cmd: Sequence[str], stage: str) -> None:
    """Run an ffmpeg command, raising :class:`FFmpegError` on failure."""
    logging.debug("ffmpeg command: %s", " ".join(cmd))
    result = subprocess.run(list(cmd), capture_output=True)
    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace")
        logging.error("ffmpeg failed during %s: %s", stage, stderr[-1000:])
        raise FFmpegError(stage, result.returncode, stderr)


def build_encode_command(
    ffmpeg: str,
    pattern: str,
    output_path: str | Path,
    duration: float,
    codec: str,
    settings: RenderSettings,
) -> List[str]:
    """ffmpeg argv turning a numbered PNG sequence into one clip."""
    return [
        ffmpeg, "-y",
        "-framerate", str(settings.fps),
        "-i", pattern,
        "-t", str(duration),
        "-c:v", codec,
        "-pix_fmt", "yuv420p",
        "-r", str(settings.fps),
        *settings.codec_options(codec),
        "-an",
        str(output_path),
    ]


def encode_clip(
    frames_dir: str | Path,
    image_index: int,
    output_path: str | Path,
    duration: float,
    settings: Optional[RenderSettings] = None,
) -> Path:
    """Encode the frames of *image_index* in *frames_dir* into a clip of *duration* seconds."""
    settings = settings or RenderSettings()
    pattern = frame_pattern(frames_dir, image_index)
    if not os.path.isfile(pattern % 0):
        raise EncodeError("encode clip", f"no frames to encode in {frames_dir}")
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    stage = f"encode clip {output_path.name}"
    ffmpeg = ffmpeg_for(settings, stage)

    def _encode(codec: str) -> Path:
        logging.info(
            "Encoding clip %s (%.2fs) using %s", output_path.name, duration, codec
        )
        cmd = build_encode_command(ffmpeg, pattern, output_path, duration, codec, settings)
        run_ffmpeg(cmd, stage)
        if not output_path.exists() or output_path.stat().st_size == 0:
            raise EncodeError(stage, f"output missing or empty: {output_path}")
        logging.info("Finished encoding clip %s using %s", output_path.name, codec)
        return output_path

    return with_codec_fallback(_encode, settings, stage)
