import threading
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import pytest

from webmoji.domain.models import EncodePlan, OutputKind, PlanOptions, SourceMedia
from webmoji.services.planner import plan


class FakeEncoder:
    """
    Stands in for `TwoPassEncoder`: writes a file of the size chosen by
    `size_for(plan, crf)` to the plan's output path and records every call.
    """

    def __init__(
        self,
        size_for: Callable[[EncodePlan, int], int] = lambda plan, crf: 1024,
        error: Optional[Exception] = None,
    ):
        self.size_for = size_for
        self.error = error
        self.calls: List[Tuple[Path, OutputKind, int]] = []
        self._lock = threading.Lock()

    def encode(self, plan: EncodePlan, crf: int) -> int:
        with self._lock:
            self.calls.append((plan.source.path, plan.kind, crf))
        if self.error is not None:
            raise self.error
        size = self.size_for(plan, crf)
        plan.output_path.parent.mkdir(parents=True, exist_ok=True)
        plan.output_path.write_bytes(b"\0" * size)
        return size


@pytest.fixture
def make_source(tmp_path):
    def _make(name="clip.mp4", duration=10.0, width=1920, height=1080, directory=None) -> SourceMedia:
        directory = directory or tmp_path
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_bytes(b"not really a video")
        return SourceMedia(path=path, duration=duration, width=width, height=height)

    return _make


@pytest.fixture
def make_plan(make_source):
    def _make(kind=OutputKind.EMOJI, options=PlanOptions(), **source_kwargs) -> EncodePlan:
        return plan(make_source(**source_kwargs), kind, options)

    return _make
