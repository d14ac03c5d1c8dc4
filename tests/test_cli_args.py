import os
import stat

import pytest

from ken_burns_studio import __main__ as kb_main
from ken_burns_studio.__main__ import parse_args
from ken_burns_studio.validate import validate_args


def _plan(tmp_path, text="images:\n  - a.png\n"):
    plan = tmp_path / "plan.yaml"
    plan.write_text(text, encoding="utf8")
    return plan


def test_defaults(tmp_path):
    args = parse_args([str(_plan(tmp_path))])
    assert args.fps == 30
    assert args.workers == 1
    assert args.frame is None
    assert args.out_naming == "auto"
    assert validate_args(args) == []


def test_yaml_preset_sets_defaults(tmp_path):
    preset = tmp_path / "preset.yaml"
    preset.write_text("fps: 24\nworkers: 4\nout-prefix: demo-\n", encoding="utf8")
    args = parse_args([str(_plan(tmp_path)), "--preset", str(preset)])
    assert (args.fps, args.workers, args.out_prefix) == (24, 4, "demo-")
    args = parse_args([str(_plan(tmp_path)), "--preset", str(preset), "--fps", "12"])
    assert args.fps == 12


def test_progress_out_of_range(tmp_path):
    with pytest.raises(SystemExit):
        parse_args([str(_plan(tmp_path)), "--frame", "a", "--progress", "1.5"])


@pytest.mark.parametrize(
    "extra,needle",
    [
        (["--fps", "0"], "--fps"),
        (["--workers", "0"], "--workers"),
        (["--size", "wide"], "--size"),
        (["--size", "0x10"], "--size"),
        (["--progress", "0.5"], "--progress requires --frame"),
        (["--oversample", "0"], "--oversample"),
    ],
)
def test_validate_errors(tmp_path, capsys, extra, needle):
    with pytest.raises(SystemExit):
        kb_main.main([str(_plan(tmp_path)), "--validate", *extra])
    assert needle in capsys.readouterr().err


def test_missing_plan(tmp_path, capsys):
    with pytest.raises(SystemExit):
        kb_main.main([str(tmp_path / "nope.yaml"), "--validate"])
    assert "not found" in capsys.readouterr().err


def test_validate_only_returns(tmp_path, capsys):
    kb_main.main([str(_plan(tmp_path)), "--validate"])
    assert capsys.readouterr().out == ""


def test_frame_export_end_to_end(tmp_path, capsys):
    np = pytest.importorskip("numpy")
    from PIL import Image

    Image.fromarray(np.full((72, 128, 3), 200, dtype=np.uint8)).save(tmp_path / "a.png")
    plan = _plan(tmp_path, "images:\n  - id: a\n    fileName: a.png\n    config:\n      zoom: 2\n")
    kb_main.main([str(plan), "--frame", "a", "--size", "64x36", "--oversample", "1"])
    out = capsys.readouterr().out.strip()
    assert out.startswith(str(tmp_path / "exports"))
    assert out.endswith(".png")
    with Image.open(out) as im:
        assert im.size == (64, 36)


def test_frame_export_unknown_id(tmp_path, capsys):
    with pytest.raises(SystemExit):
        kb_main.main([str(_plan(tmp_path)), "--frame", "zzz"])
    assert "export failed" in capsys.readouterr().err


def test_missing_ffmpeg_binary_is_rejected(tmp_path, capsys):
    with pytest.raises(SystemExit):
        kb_main.main([str(_plan(tmp_path)), "--validate", "--ffmpeg", str(tmp_path / "no-ffmpeg")])
    assert "--ffmpeg" in capsys.readouterr().err


@pytest.mark.skipif(os.name == "nt", reason="needs a POSIX shell script")
def test_ffmpeg_option_drives_encode_and_merge(tmp_path, capsys):
    np = pytest.importorskip("numpy")
    from PIL import Image

    for name in ("a.png", "b.png"):
        Image.fromarray(np.full((72, 128, 3), 90, dtype=np.uint8)).save(tmp_path / name)
    plan = _plan(
        tmp_path,
        "defaults:\n  duration: 0.2\n"
        "images:\n  - a.png\n  - b.png\n",
    )
    log = tmp_path / "ffmpeg-calls.log"
    fake = tmp_path / "fake-ffmpeg"
    # records its argv and writes a placeholder to the output argument
    fake.write_text(
        "#!/bin/sh\n"
        f'echo "$@" >> "{log}"\n'
        'for last; do :; done\n'
        'printf mp4 > "$last"\n',
        encoding="utf8",
    )
    fake.chmod(fake.stat().st_mode | stat.S_IEXEC)

    kb_main.main([
        str(plan), "--no-nvenc", "--ffmpeg", str(fake),
        "--size", "64x36", "--oversample", "1", "--fps", "10",
        "--output", str(tmp_path / "final.mp4"),
    ])

    calls = log.read_text(encoding="utf8").splitlines()
    assert len(calls) == 3
    assert sum("-framerate" in c for c in calls) == 2
    assert "-filter_complex" in calls[-1]
    assert all("libx264" in c for c in calls)
    assert capsys.readouterr().out.strip() == str(tmp_path / "final.mp4")
    assert (tmp_path / "final.mp4").read_text() == "mp4"
