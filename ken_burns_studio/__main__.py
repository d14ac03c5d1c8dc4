"""Command line interface for ken_burns_studio."""
from __future__ import annotations

import argparse
import itertools
import logging
import os
import sys
from datetime import datetime
from pathlib import Path

import yaml

from .bin_config import resolve_ffmpeg
from .builder import default_frame_name, default_video_name, export_frame, export_video
from .config import FPS, RenderSettings
from .errors import ExportError
from .plan import AutoFocusCycle, load_plan
from .validate import parse_size, validate_args


def _progress_type(x: str) -> float:
    v = float(x)
    if not (0.0 <= v <= 1.0):
        raise argparse.ArgumentTypeError("--progress must be within [0,1]")
    return v


def _first_free(path: Path) -> Path:
    """*path* itself, or a timestamped/numbered sibling when it already exists."""
    if not path.exists():
        return path
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    stems = itertools.chain([f"{path.stem}_{stamp}"], (f"{path.stem}_{n}" for n in itertools.count(2)))
    return next(c for c in (path.with_name(s + path.suffix) for s in stems) if not c.exists())


def _resolve_out_path(args: argparse.Namespace, default_name: str, base_folder: str) -> str:
    """Pick the export file from ``--output``, ``--out-naming`` and ``--out-prefix``.

    ``--output`` naming a file (it has a suffix and is not an existing
    directory) is used as is; otherwise the default name is placed inside
    it, or inside *base_folder* when no output is given. ``keep`` never
    overwrites an existing file; ``auto`` prefixes the default name.
    """
    target = Path(args.output) if args.output else Path(base_folder)
    if args.output and target.suffix and not target.is_dir():
        out = target
    elif args.out_naming == "auto":
        out = target / f"{args.out_prefix or ''}{default_name}"
    else:
        out = target / default_name
    out.parent.mkdir(parents=True, exist_ok=True)
    if args.out_naming == "keep":
        out = _first_free(out)
    return str(out)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Render a Ken Burns style slideshow")
    parser.add_argument("plan", help="YAML/JSON plan listing images and their motion")
    parser.add_argument("--images", help="Folder with the plan's images (default: plan folder)")
    parser.add_argument("--preset", action="append", default=[], help="Path to YAML preset overriding defaults")
    parser.add_argument(
        "--output",
        help="Path to output file or directory. If existing, a timestamp/counter is appended.",
    )
    parser.add_argument(
        "--out-naming",
        choices=["auto", "keep"],
        default="auto",
        help="Naming policy for output file",
    )
    parser.add_argument("--out-prefix", default="", help="Prefix for auto naming")
    parser.add_argument("--frame", metavar="IMAGE_ID", help="Export a single still of this image instead of a video")
    parser.add_argument("--progress", type=_progress_type, default=None, help="Instant in [0,1] captured by --frame")
    parser.add_argument("--fps", type=int, default=FPS)
    parser.add_argument("--size", help="Output size WxH (default 1280x720)")
    parser.add_argument("--oversample", type=int, default=None, help="Source upscale factor before cropping")
    parser.add_argument("--no-nvenc", action="store_true", help="Encode with libx264 only")
    parser.add_argument("--workers", type=int, default=1, help="Threads rendering frames of one image")
    parser.add_argument("--ffmpeg", help="Path to ffmpeg binary")
    parser.add_argument("--keep-temp", action="store_true", help="Keep intermediate frames and clips")
    parser.add_argument(
        "--auto-focus",
        action="store_true",
        help="Alternate zoom-in/zoom-out for images without focus point or motion style",
    )
    parser.add_argument("--auto-focus-state", type=int, default=None, help="Resume the alternation at this step")
    parser.add_argument("--validate", action="store_true", help="Validate arguments and exit")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = _build_parser()
    pre, _ = parser.parse_known_args(argv)
    for path in pre.preset:
        with open(path, "r", encoding="utf8") as fh:
            data = yaml.safe_load(fh) or {}
        parser.set_defaults(**{k.replace("-", "_"): v for k, v in data.items()})
    return parser.parse_args(argv)


def _settings_from_args(args: argparse.Namespace) -> RenderSettings:
    return RenderSettings.from_env(
        fps=args.fps,
        size=parse_size(args.size) if args.size else None,
        oversample=args.oversample,
        use_nvenc=False if args.no_nvenc else None,
        ffmpeg_binary=resolve_ffmpeg(args.ffmpeg),
    )


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(message)s")
    errs = validate_args(args)
    if errs:
        for e in errs:
            print(f"validation error: {e}", file=sys.stderr)
        raise SystemExit(1)
    if args.validate:
        return

    entries, defaults = load_plan(args.plan)
    images_dir = args.images or str(Path(args.plan).parent)
    base_folder = os.path.join(images_dir, "exports")
    settings = _settings_from_args(args)

    try:
        if args.frame:
            index = next((i for i, e in enumerate(entries) if e.id == args.frame), 0)
            name = default_frame_name(entries[index], index) if entries else "frame.png"
            out_path = _resolve_out_path(args, name, base_folder)
            out = export_frame(
                entries, args.frame, images_dir, out_path, settings, defaults, args.progress
            )
        else:
            auto_focus = None
            if args.auto_focus or args.auto_focus_state is not None:
                auto_focus = AutoFocusCycle(args.auto_focus_state or 0)
            out_path = _resolve_out_path(args, default_video_name(), base_folder)
            out = export_video(
                entries,
                images_dir,
                out_path,
                settings,
                defaults,
                auto_focus=auto_focus,
                workers=args.workers,
                keep_temp=args.keep_temp,
            )
            if auto_focus is not None:
                logging.info("auto-focus state: %d", auto_focus.state)
    except (ExportError, KeyError) as e:
        print(f"export failed: {e}", file=sys.stderr)
        raise SystemExit(1)
    print(out)


if __name__ == "__main__":  # pragma: no cover
    main()
