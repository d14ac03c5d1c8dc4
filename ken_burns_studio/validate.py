"""Argument validation helpers for the ken_burns_studio CLI."""
from __future__ import annotations

import os
import shutil
from argparse import Namespace
from typing import List

from .config import PLAN_EXTS


def parse_size(value: str) -> tuple[int, int]:
    w, h = value.lower().split("x")
    return int(w), int(h)


def validate_args(args: Namespace) -> List[str]:
    """Validate parsed CLI arguments.

    Returns a list of human readable error messages. The caller should abort
    if the list is non-empty.
    """
    errors: List[str] = []
    if not os.path.isfile(args.plan):
        errors.append(f"plan {args.plan} not found")
    elif os.path.splitext(args.plan)[1].lower() not in PLAN_EXTS:
        errors.append(f"plan must be one of {sorted(PLAN_EXTS)}")
    if args.fps <= 0:
        errors.append("--fps must be > 0")
    if args.workers < 1:
        errors.append("--workers must be >= 1")
    if args.oversample is not None and args.oversample < 1:
        errors.append("--oversample must be >= 1")
    if args.size:
        try:
            w, h = parse_size(args.size)
        except ValueError:
            errors.append("--size format WxH")
        else:
            if w <= 0 or h <= 0:
                errors.append("--size must be positive")
    if args.progress is not None and not args.frame:
        errors.append("--progress requires --frame")
    if args.ffmpeg and not (os.path.isfile(args.ffmpeg) or shutil.which(args.ffmpeg)):
        errors.append(f"--ffmpeg {args.ffmpeg} not found")
    if args.auto_focus_state is not None and args.auto_focus_state < 0:
        errors.append("--auto-focus-state must be >= 0")
    return errors
