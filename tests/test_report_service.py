from pathlib import Path

import pytest
import yaml

from webmoji.domain.exceptions import (
    PassTwoFailedException,
    SearchExhaustedException,
    UnreadableMediaException,
)
from webmoji.domain.models import (
    BatchItem,
    BatchResult,
    EncodeAttempt,
    FinalArtifact,
    ItemOutcome,
    OutputKind,
)
from webmoji.services.report_service import BatchReport, OutcomeStatus, describe_outcome, summarize


def _ok(index, name):
    item = BatchItem(index=index, input_path=Path(name), kinds=(OutputKind.EMOJI,))
    artifact = FinalArtifact(
        path=Path(name).with_suffix(".emoji.webm"),
        kind=OutputKind.EMOJI,
        crf=26,
        byte_size=50_000,
        attempts=(EncodeAttempt(18, 90_000), EncodeAttempt(22, 70_000), EncodeAttempt(26, 50_000)),
    )
    return ItemOutcome(item=item, artifacts=[artifact])


def _failed(index, name, error):
    item = BatchItem(index=index, input_path=Path(name), kinds=(OutputKind.EMOJI,))
    return ItemOutcome(item=item, errors=[error])


def _result(*outcomes):
    result = BatchResult()
    # Record in reverse to mimic workers finishing out of order.
    for outcome in reversed(outcomes):
        result.record(outcome)
    return result


@pytest.mark.parametrize(
    "outcomes, status, exit_code",
    [
        ((), OutcomeStatus.SUCCESS, 0),
        ((_ok(0, "a.mp4"), _ok(1, "b.mp4")), OutcomeStatus.SUCCESS, 0),
        ((_ok(0, "a.mp4"), _failed(1, "b.mp4", UnreadableMediaException("bad"))), OutcomeStatus.PARTIAL_FAILURE, 1),
        ((_failed(0, "a.mp4", UnreadableMediaException("bad")),), OutcomeStatus.TOTAL_FAILURE, 2),
    ],
)
def test_summarize_exit_codes(outcomes, status, exit_code):
    exit_outcome = summarize(_result(*outcomes))

    assert exit_outcome.status is status
    assert exit_outcome.exit_code == exit_code
    assert exit_outcome.succeeded + exit_outcome.failed == len(outcomes)


def test_summary_lines_follow_input_order():
    exit_outcome = summarize(
        _result(_ok(0, "a.mp4"), _failed(1, "b.mp4", UnreadableMediaException("ffprobe failed")), _ok(2, "c.mp4"))
    )

    assert [line.split()[0] for line in exit_outcome.lines] == ["OK", "FAILED", "OK"]
    assert exit_outcome.lines[0].startswith("OK      a.mp4 -> a.emoji.webm")
    assert "CRF 26" in exit_outcome.lines[0]
    assert exit_outcome.lines[1] == "FAILED  b.mp4: probe: ffprobe failed"


def test_failed_line_lists_written_artifacts():
    outcome = _ok(0, "a.mp4")
    outcome.errors.append(SearchExhaustedException(crf=63, byte_size=300_000, max_bytes=262_144, attempts=12))

    line = describe_outcome(outcome)

    assert line.startswith("FAILED  a.mp4: search: No CRF fits")
    assert "(written: a.emoji.webm" in line


def test_unexpected_errors_are_labelled():
    line = describe_outcome(_failed(0, "a.mp4", RuntimeError("kaput")))

    assert line == "FAILED  a.mp4: unexpected: kaput"


def test_yaml_report(tmp_path):
    exhausted = SearchExhaustedException(
        crf=63, byte_size=70_000, max_bytes=65_536, attempts=12, path=Path("b.emoji.webm")
    )
    result = _result(_ok(0, "a.mp4"), _failed(1, "b.mp4", exhausted))
    report_path = tmp_path / "reports" / "run.yaml"

    BatchReport(report_path).write(result)

    with report_path.open(encoding="utf-8") as f:
        report = yaml.safe_load(f)
    assert report["status"] == "partial_failure"
    assert (report["succeeded"], report["failed"]) == (1, 1)
    first, second = report["items"]
    assert first["input"] == "a.mp4"
    assert first["status"] == "success"
    assert first["outputs"][0]["kind"] == "emoji"
    assert first["outputs"][0]["tried_crfs"] == [18, 22, 26]
    assert second["status"] == "failed"
    assert second["errors"][0]["stage"] == "search"
    assert second["errors"][0]["type"] == "SearchExhaustedException"
    assert second["errors"][0]["best_effort"] == {
        "crf": 63,
        "size_bytes": 70_000,
        "max_bytes": 65_536,
        "attempts": 12,
        "path": "b.emoji.webm",
    }


def test_yaml_report_lists_attempts_of_encoder_failures(tmp_path):
    error = PassTwoFailedException(1, "Conversion failed!")
    error.attempts = (EncodeAttempt(18, 90_000), EncodeAttempt(22, error=str(error)))
    report_path = tmp_path / "run.yaml"

    BatchReport(report_path).write(_result(_failed(0, "a.mp4", error)))

    entry = yaml.safe_load(report_path.read_text(encoding="utf-8"))["items"][0]["errors"][0]
    assert entry["stage"] == "encode"
    assert entry["attempts"] == [
        {"crf": 18, "size_bytes": 90_000, "error": None},
        {"crf": 22, "size_bytes": None, "error": str(error)},
    ]
