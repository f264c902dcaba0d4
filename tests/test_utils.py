import subprocess
from pathlib import Path

import pytest

from webmoji.utils.ffmpeg_utils import last_stderr_line, run_cmd
from webmoji.utils.format_utils import contains_any_extensions, format_seconds, formatted_size
from webmoji.utils.tool_locator import Tools


@pytest.mark.parametrize(
    "size, expected",
    [(0, "0 B"), (512, "512 B"), (1536, "1.50 KB"), (65536, "64 KB"), (2097152, "2 MB")],
)
def test_formatted_size(size, expected):
    assert formatted_size(size) == expected


def test_format_seconds():
    assert format_seconds(4.2071) == "4.21s"


def test_contains_any_extensions():
    assert contains_any_extensions(Path("clip.MP4"), [".mp4"])
    assert contains_any_extensions(Path("clip.mkv"), ["mkv"])
    assert not contains_any_extensions(Path("clip.txt"), [".mp4", ".mkv"])


def test_last_stderr_line():
    result = subprocess.CompletedProcess([], 1, "", "first\n  last line  \n\n")

    assert last_stderr_line(result) == "last line"
    assert last_stderr_line(None) == ""


def test_run_cmd_missing_executable(tmp_path):
    assert run_cmd([str(tmp_path / "no-such-tool")]) is None


def test_run_cmd_empty_command():
    assert run_cmd([]) is None


def test_resolve_prefers_configured_directory(tmp_path):
    (tmp_path / "ffprobe").write_bytes(b"")

    assert Tools._resolve("ffprobe", tmp_path) == str(tmp_path / "ffprobe")
    assert Tools._resolve("ffmpeg", tmp_path) == "ffmpeg"
    assert Tools._resolve("ffmpeg", None) == "ffmpeg"
