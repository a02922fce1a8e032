import json

from frameread.cli import build_config, build_parser, main
from frameread.profiler import Profiler, profiler


def test_defaults():
    args = build_parser().parse_args(["--input", "clip.mp4"])
    config = build_config(args)

    assert config.frame_interval == 1.0
    assert config.init_timeout == 10.0
    assert config.language == "eng"
    assert config.gpu is None


def test_device_and_timeout_mapping():
    args = build_parser().parse_args(["--input", "clip.mp4", "--ocr-device", "cpu", "--init-timeout", "0", "--interval", "2.5"])
    config = build_config(args)

    assert config.gpu is False
    assert config.init_timeout is None
    assert config.frame_interval == 2.5


def test_rejected_input_exits_with_error(tmp_path, capsys):
    notes = tmp_path / "notes.txt"
    notes.write_text("not a video")

    assert main(["--input", str(notes), "--no-display"]) == 1
    assert "Invalid file type" in capsys.readouterr().err


def test_profiler_is_a_singleton_and_saves_summary(tmp_path):
    output = tmp_path / "profile.json"
    assert Profiler() is profiler
    try:
        profiler.enable(str(output))
        with profiler.timed("extract_frames"):
            pass
        profiler.add_metric("extract_frames", 0.5)
        profiler.save_results()
    finally:
        profiler.reset()

    summary = json.loads(output.read_text())
    assert summary["metrics"]["extract_frames"]["count"] == 2
    assert summary["metrics"]["extract_frames"]["max"] == 0.5
    assert not profiler.enabled
