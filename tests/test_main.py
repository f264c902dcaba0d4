import yaml

import main
from conftest import FakeEncoder
from webmoji.domain.models import SourceMedia
from webmoji.pipeline import batch_pipeline
from webmoji.utils.tool_locator import Tools


def _install(monkeypatch, encoder, ffmpeg_available=True):
    monkeypatch.setattr(Tools, "verify", staticmethod(lambda: ffmpeg_available))
    monkeypatch.setattr(main, "TwoPassEncoder", lambda **kwargs: encoder)
    monkeypatch.setattr(
        batch_pipeline,
        "probe_media",
        lambda path: SourceMedia(path=path, duration=5.0, width=640, height=480),
    )


def test_successful_run_writes_report(tmp_path, monkeypatch):
    source = tmp_path / "clip.mp4"
    source.write_bytes(b"video")
    report = tmp_path / "report.yaml"
    _install(monkeypatch, FakeEncoder())

    exit_code = main.main([str(source), "--report", str(report), "-j", "1"])

    assert exit_code == 0
    assert (tmp_path / "clip.emoji.webm").is_file()
    assert (tmp_path / "clip.sticker.webm").is_file()
    assert yaml.safe_load(report.read_text(encoding="utf-8"))["status"] == "success"


def test_failed_run_exit_code(tmp_path, monkeypatch):
    source = tmp_path / "clip.mp4"
    source.write_bytes(b"video")
    _install(monkeypatch, FakeEncoder(size_for=lambda plan, crf: plan.max_bytes + 1))

    assert main.main([str(source), "--max-attempts", "2", "--no-sticker"]) == 2
    assert not (tmp_path / "clip.emoji.webm").exists()


def test_missing_ffmpeg(tmp_path, monkeypatch):
    encoder = FakeEncoder()
    _install(monkeypatch, encoder, ffmpeg_available=False)

    assert main.main([str(tmp_path / "clip.mp4")]) == 2
    assert encoder.calls == []
