"""Configuration helpers for ken_burns_studio."""
from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from typing import List, Tuple

# Video characteristics shared by every rendered clip.
FPS = 30
VIEWPORT: Tuple[int, int] = (1280, 720)
DEFAULT_DURATION = 6.0
DEFAULT_ZOOM = 1.8
DEFAULT_FADE = 0.5
FADE_EPSILON = 0.01


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    try:
        value = int(float(os.environ.get(name, "")))
    except ValueError:
        return default
    return max(minimum, value)


# Sources are upscaled by this factor before cropping.
RENDER_OVERSAMPLE = _env_int("RENDER_OVERSAMPLE", 2)

NVENC_CODEC = os.environ.get("NVENC_CODEC") or "h264_nvenc"
CPU_FALLBACK_CODEC = "libx264"
USE_NVENC = os.environ.get("USE_NVENC") != "false"

PLAN_EXTS = {".yaml", ".yml", ".json"}


@dataclass
class RenderSettings:
    """Everything a render request needs besides the plan itself."""

    fps: int = FPS
    size: Tuple[int, int] = VIEWPORT
    oversample: int = RENDER_OVERSAMPLE
    use_nvenc: bool = USE_NVENC
    nvenc_codec: str = NVENC_CODEC
    fallback_codec: str = CPU_FALLBACK_CODEC
    nvenc_preset: str = "p5"
    nvenc_rate_control: str = "vbr"
    nvenc_cq: str = "19"
    x264_preset: str = "veryfast"
    x264_crf: str = "18"
    ffmpeg_binary: str | None = None
    temp_root: str = field(default_factory=tempfile.gettempdir)

    @property
    def preferred_codec(self) -> str:
        return self.nvenc_codec if self.use_nvenc else self.fallback_codec

    @classmethod
    def from_env(cls, **overrides) -> "RenderSettings":
        """Build settings from ``NVENC_*``/``X264_*`` environment variables."""
        env = os.environ
        values = dict(
            oversample=_env_int("RENDER_OVERSAMPLE", 2),
            use_nvenc=env.get("USE_NVENC") != "false",
            nvenc_codec=env.get("NVENC_CODEC") or "h264_nvenc",
            nvenc_preset=env.get("NVENC_PRESET") or "p5",
            nvenc_rate_control=env.get("NVENC_RATE_CONTROL") or "vbr",
            nvenc_cq=env.get("NVENC_CQ") or "19",
            x264_preset=env.get("X264_PRESET") or "veryfast",
            x264_crf=env.get("X264_CRF") or "18",
            ffmpeg_binary=env.get("FFMPEG_BINARY") or None,
        )
        if env.get("KEN_BURNS_TEMP"):
            values["temp_root"] = env["KEN_BURNS_TEMP"]
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def codec_options(self, codec: str) -> List[str]:
        """Return codec-specific ffmpeg flags."""
        if codec == self.nvenc_codec:
            return [
                "-preset", self.nvenc_preset,
                "-rc:v", self.nvenc_rate_control,
                "-cq", self.nvenc_cq,
            ]
        return ["-preset", self.x264_preset, "-crf", self.x264_crf]
