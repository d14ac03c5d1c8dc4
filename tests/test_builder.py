from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from ken_burns_studio import builder
from ken_burns_studio.builder import RenderWorkspace, export_frame, export_video
from ken_burns_studio.config import RenderSettings
from ken_burns_studio.errors import ExportError, ImageReadError
from ken_burns_studio.plan import AutoFocusCycle, ImageEntry


def _settings(tmp_path):
    return RenderSettings(fps=10, size=(64, 36), oversample=1, temp_root=str(tmp_path / "tmp"))


def _image(path: Path, color) -> Path:
    Image.fromarray(np.full((72, 128, 3), color, dtype=np.uint8)).save(path)
    return path


@pytest.fixture
def fake_encoding(monkeypatch):
    calls = {"encode": [], "combine": []}

    def fake_encode(frames_dir, image_index, output_path, duration, settings=None):
        frames = sorted(Path(frames_dir).glob(f"img-{image_index}-frame-*.png"))
        calls["encode"].append((frames, duration))
        Path(output_path).write_bytes(b"clip")
        return Path(output_path)

    def fake_combine(clips, output_path, settings=None):
        calls["combine"].append(list(clips))
        Path(output_path).write_bytes(b"final")
        return Path(output_path)

    monkeypatch.setattr(builder, "encode_clip", fake_encode)
    monkeypatch.setattr(builder, "combine_clips", fake_combine)
    return calls


def test_workspaces_are_isolated(tmp_path):
    a = RenderWorkspace(tmp_path)
    b = RenderWorkspace(tmp_path)
    assert a.path != b.path
    a.cleanup()
    b.cleanup()


def test_workspace_clears_leftover_frames(tmp_path):
    with RenderWorkspace(tmp_path) as ws:
        stale = ws.frames_dir(0) / "img-0-frame-0099.png"
        stale.write_bytes(b"old")
        fresh = ws.frames_dir(0)
        assert list(fresh.iterdir()) == []
        path = ws.path
    assert not path.exists()


def test_workspace_kept_on_request(tmp_path):
    with RenderWorkspace(tmp_path, keep=True) as ws:
        ws.clip_path(0).write_bytes(b"x")
    assert ws.path.exists()
    ws.cleanup()


def test_export_video_runs_stages_in_order(tmp_path, fake_encoding):
    _image(tmp_path / "a.png", (255, 0, 0))
    _image(tmp_path / "b.png", (0, 255, 0))
    entries = [
        ImageEntry("a", "a.png", {"duration": 0.5, "fadeDuration": 0.2}),
        ImageEntry("b", "b.png", {"duration": 1.0}),
    ]
    out = export_video(entries, tmp_path, tmp_path / "out.mp4", _settings(tmp_path))
    assert out.read_bytes() == b"final"
    assert [len(frames) for frames, _ in fake_encoding["encode"]] == [5, 10]
    assert [d for _, d in fake_encoding["encode"]] == [0.5, 1.0]
    clips = fake_encoding["combine"][0]
    assert [(c.index, c.duration, c.fade_duration) for c in clips] == [(0, 0.5, 0.2), (1, 1.0, 0.5)]
    # per-request workspace is removed afterwards
    assert list((tmp_path / "tmp").iterdir()) == []


def test_export_video_auto_focus(tmp_path, fake_encoding):
    for name in ("a.png", "b.png", "c.png"):
        _image(tmp_path / name, (10, 10, 10))
    entries = [ImageEntry(n, f"{n}.png", {"duration": 0.2}) for n in "abc"]
    cycle = AutoFocusCycle()
    export_video(entries, tmp_path, tmp_path / "out.mp4", _settings(tmp_path), auto_focus=cycle)
    assert cycle.state == 3


def test_export_video_missing_image(tmp_path, fake_encoding):
    entries = [ImageEntry("a", "missing.png")]
    with pytest.raises(ExportError) as exc:
        export_video(entries, tmp_path, tmp_path / "out.mp4", _settings(tmp_path))
    assert isinstance(exc.value.__cause__, ImageReadError)
    assert "missing.png" in exc.value.stage
    assert fake_encoding["combine"] == []


def test_export_video_empty_plan(tmp_path):
    with pytest.raises(ExportError) as exc:
        export_video([], tmp_path, tmp_path / "out.mp4")
    assert exc.value.stage == "plan"


def test_export_frame_default_progress(tmp_path, monkeypatch):
    _image(tmp_path / "a.png", (0, 0, 255))
    seen = {}
    real = builder.generate_frames

    def spy(*args, **kwargs):
        seen["progress"] = kwargs["single_progress"]
        return real(*args, **kwargs)

    monkeypatch.setattr(builder, "generate_frames", spy)
    entries = [ImageEntry("a", "a.png", {"motionStyle": "zoom-out"})]
    out = export_frame(entries, "a", tmp_path, tmp_path / "still.png", _settings(tmp_path))
    assert out == tmp_path / "still.png"
    assert seen["progress"] == 0.0
    with Image.open(out) as im:
        assert im.size == (64, 36)


def test_export_frame_unknown_id(tmp_path):
    with pytest.raises(KeyError):
        export_frame([ImageEntry("a", "a.png")], "zzz", tmp_path, tmp_path / "x.png")


def test_default_names():
    assert builder.default_video_name().startswith("ken-burns-effect-")
    name = builder.default_frame_name(ImageEntry("My Pic", "pic.png"), 0)
    assert name.startswith("frame-my_pic-") and name.endswith(".png")


def test_export_frame_unwritable_output(tmp_path):
    _image(tmp_path / "a.png", (0, 0, 255))
    blocker = tmp_path / "blocker"
    blocker.write_bytes(b"not a directory")
    entries = [ImageEntry("a", "a.png")]
    with pytest.raises(ExportError) as exc:
        export_frame(entries, "a", tmp_path, blocker / "still.png", _settings(tmp_path))
    assert isinstance(exc.value.__cause__, OSError)
    assert exc.value.stage == "frame for a.png"
