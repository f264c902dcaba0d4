"""
This module turns a `BatchResult` into what the user sees at the end of a run:
one line per item, an overall outcome that decides the process exit status, and
optionally a machine-readable YAML report.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List

import yaml
from loguru import logger

from ..config.common import EXIT_PARTIAL_FAILURE, EXIT_SUCCESS, EXIT_TOTAL_FAILURE
from ..domain.exceptions import EncodingException, SearchExhaustedException
from ..domain.models import BatchResult, ItemOutcome
from ..utils.format_utils import formatted_size


class OutcomeStatus(Enum):
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"
    TOTAL_FAILURE = "total_failure"


_EXIT_CODES = {
    OutcomeStatus.SUCCESS: EXIT_SUCCESS,
    OutcomeStatus.PARTIAL_FAILURE: EXIT_PARTIAL_FAILURE,
    OutcomeStatus.TOTAL_FAILURE: EXIT_TOTAL_FAILURE,
}


@dataclass(frozen=True)
class ExitOutcome:
    """The process-level verdict of a batch run."""

    status: OutcomeStatus
    lines: List[str]
    succeeded: int
    failed: int

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self.status]


def describe_error(error: Exception) -> str:
    """Returns ``stage: reason`` for an item failure."""
    stage = getattr(error, "stage", "unexpected")
    return f"{stage}: {error}"


def describe_outcome(outcome: ItemOutcome) -> str:
    """Builds the one-line summary of an item."""
    name = str(outcome.item.input_path)
    written = ", ".join(
        f"{artifact.path} ({formatted_size(artifact.byte_size)}, CRF {artifact.crf})"
        for artifact in outcome.artifacts
    )
    if outcome.succeeded:
        return f"OK      {name} -> {written}"

    reasons = "; ".join(describe_error(e) for e in outcome.errors)
    line = f"FAILED  {name}: {reasons}"
    if written:
        line += f" (written: {written})"
    return line


def summarize(result: BatchResult) -> ExitOutcome:
    """
    Summarizes a batch into per-item lines and an overall outcome.

    The run is a success only if every item succeeded; an empty batch counts as
    a success. Otherwise it is a partial failure when at least one item
    succeeded, and a total failure when none did.
    """
    outcomes = result.outcomes()
    lines = [describe_outcome(outcome) for outcome in outcomes]
    failed = len(result.failed)
    succeeded = len(outcomes) - failed

    if failed == 0:
        status = OutcomeStatus.SUCCESS
    elif succeeded > 0:
        status = OutcomeStatus.PARTIAL_FAILURE
    else:
        status = OutcomeStatus.TOTAL_FAILURE

    return ExitOutcome(status=status, lines=lines, succeeded=succeeded, failed=failed)


def log_summary(exit_outcome: ExitOutcome):
    for line in exit_outcome.lines:
        if line.startswith("OK"):
            logger.info(line)
        else:
            logger.error(line)

    total = exit_outcome.succeeded + exit_outcome.failed
    if exit_outcome.status is OutcomeStatus.SUCCESS:
        logger.success(f"All {total} file(s) processed successfully.")
    else:
        logger.error(f"{exit_outcome.failed} of {total} file(s) failed.")


class BatchReport:
    """
    Writes a batch result as a YAML document.

    The document lists every item in input order with its status, the clips
    written and, for failures, the stage and reason. Oversized best-effort
    results of an exhausted search are included with their CRF and size, and
    encoder failures list the attempts made before and including the failed one.
    """

    def __init__(self, report_path: Path):
        self.report_path = report_path

    @staticmethod
    def _error_entry(error: Exception) -> Dict:
        entry = {
            "stage": getattr(error, "stage", "unexpected"),
            "type": type(error).__name__,
            "reason": str(error),
        }
        if isinstance(error, SearchExhaustedException):
            entry["best_effort"] = {
                "crf": error.crf,
                "size_bytes": error.byte_size,
                "max_bytes": error.max_bytes,
                "attempts": error.attempts,
                "path": str(error.path) if error.path else None,
            }
        elif isinstance(error, EncodingException) and error.attempts:
            entry["attempts"] = [
                {"crf": attempt.crf, "size_bytes": attempt.byte_size, "error": attempt.error}
                for attempt in error.attempts
            ]
        return entry

    def build(self, result: BatchResult) -> Dict:
        exit_outcome = summarize(result)
        items = []
        for outcome in result.outcomes():
            items.append(
                {
                    "input": str(outcome.item.input_path),
                    "status": outcome.status.value,
                    "outputs": [
                        {
                            "kind": str(artifact.kind),
                            "path": str(artifact.path),
                            "crf": artifact.crf,
                            "size_bytes": artifact.byte_size,
                            "size": formatted_size(artifact.byte_size),
                            "tried_crfs": [a.crf for a in artifact.attempts],
                        }
                        for artifact in outcome.artifacts
                    ],
                    "errors": [self._error_entry(e) for e in outcome.errors],
                }
            )
        return {
            "generated_at": datetime.now().isoformat(timespec="seconds"),
            "status": exit_outcome.status.value,
            "succeeded": exit_outcome.succeeded,
            "failed": exit_outcome.failed,
            "items": items,
        }

    def write(self, result: BatchResult):
        """Writes the report, creating parent directories as needed."""
        self.report_path.parent.mkdir(parents=True, exist_ok=True)
        with self.report_path.open("w", encoding="utf-8") as f:
            yaml.dump(
                self.build(result),
                f,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
                indent=4,
                width=220,
            )
        logger.info(f"Report written to {self.report_path}")
