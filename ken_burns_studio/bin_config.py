"""Locate the ffmpeg executable used for every encode and merge.

Candidates are tried in order: an explicit CLI argument, the
``FFMPEG_BINARY`` environment variable, ``ffmpeg`` on ``PATH`` and finally
the binary shipped with ``imageio-ffmpeg``.
"""
from __future__ import annotations

import os
import shutil
from typing import Optional

import imageio_ffmpeg


def _find_executable(candidate: str | None) -> Optional[str]:
    """Absolute path of *candidate* if it is a file or a command on ``PATH``."""
    if not candidate:
        return None
    if os.path.isfile(candidate):
        return os.path.abspath(candidate)
    return shutil.which(candidate)


def _bundled_ffmpeg() -> Optional[str]:
    try:
        return imageio_ffmpeg.get_ffmpeg_exe()
    except RuntimeError:
        return None


def resolve_ffmpeg(cli_path: str | None = None) -> Optional[str]:
    """Return the first usable ffmpeg candidate, or ``None``.

    The bundled binary is only looked up when nothing else matched.
    """
    for cand in (cli_path, os.environ.get("FFMPEG_BINARY"), "ffmpeg"):
        path = _find_executable(cand)
        if path:
            return path
    return _find_executable(_bundled_ffmpeg())
