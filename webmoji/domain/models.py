"""
Defines the value objects that flow through the clip generation pipeline.

The immutable types (`SourceMedia`, `EncodePlan`, `EncodeAttempt`, `FinalArtifact`,
`BatchItem`) are created once and only read afterwards. `ItemOutcome` and
`BatchResult` are built up by the batch scheduler while workers complete and
are read once at the end by the result reporter.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..config.video import (
    DEFAULT_CRF_STEP,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_START_CRF,
    EMOJI_BOUNDING_BOX,
    MAX_CLIP_SECONDS,
    MAX_CRF,
    MAX_EMOJI_BYTES,
    MAX_STICKER_BYTES,
    MIN_CRF,
    STICKER_BOUNDING_BOX,
)
from .exceptions import ConfigurationException


class OutputKind(Enum):
    """
    The variants of clip the messaging platform accepts.

    Each kind carries its own constants. Callers branch on the member itself
    rather than on subclasses.
    """

    EMOJI = "emoji"
    STICKER = "sticker"

    @property
    def max_side(self) -> int:
        """The bounding box side in pixels the output must fit into."""
        return _MAX_SIDES[self]

    @property
    def max_bytes(self) -> int:
        """The platform's size ceiling for this kind."""
        return _MAX_BYTES[self]

    @property
    def max_seconds(self) -> float:
        return MAX_CLIP_SECONDS

    @property
    def must_be_square(self) -> bool:
        """The platform supports rectangular stickers, but not emoji."""
        return self is OutputKind.EMOJI

    @property
    def file_suffix(self) -> str:
        """The stem suffix of output files, e.g. ``clip.emoji.webm``."""
        return self.value

    def __str__(self) -> str:
        return self.value


_MAX_SIDES = {OutputKind.EMOJI: EMOJI_BOUNDING_BOX, OutputKind.STICKER: STICKER_BOUNDING_BOX}
_MAX_BYTES = {OutputKind.EMOJI: MAX_EMOJI_BYTES, OutputKind.STICKER: MAX_STICKER_BYTES}


@dataclass(frozen=True)
class SourceMedia:
    """
    Facts about an input file, as reported once by ffprobe.

    `width` and `height` are the displayed frame size, i.e. after the stream's
    rotation is applied.
    """

    path: Path
    duration: float
    width: int
    height: int


@dataclass(frozen=True)
class PlanOptions:
    """
    User-supplied options shared by every item of a batch.

    Attributes:
        begin: Start of the trim window in seconds, or None for the start of the source.
        end: End of the trim window in seconds, or None for an automatic end.
        filter: A custom FFmpeg filter expression run before the mandatory scaling.
        ffmpeg_args: Extra arguments spliced verbatim between the input and the
                     output arguments of both passes.
        publisher: Value for the ``publisher`` metadata tag, if any.
        output_dir: Directory for all outputs, or None to write next to each input.
    """

    begin: Optional[float] = None
    end: Optional[float] = None
    filter: Optional[str] = None
    ffmpeg_args: Tuple[str, ...] = ()
    publisher: Optional[str] = None
    output_dir: Optional[Path] = None


@dataclass(frozen=True)
class EncodePlan:
    """
    Everything the two-pass encoder needs for one (source, kind) pair.

    Invariants: ``end > begin``, ``end - begin <= kind.max_seconds`` and the
    longer of ``width``/``height`` never exceeds ``kind.max_side``. With a
    ``user_filter`` the frame reaching the scaler may differ from the source,
    so ``width``/``height`` are only the expected size and the encoder fits the
    filtered frame into the box itself.
    """

    source: SourceMedia
    kind: OutputKind
    output_path: Path
    begin: float
    end: float
    width: int
    height: int
    user_filter: Optional[str] = None
    extra_args: Tuple[str, ...] = ()
    publisher: Optional[str] = None

    @property
    def duration(self) -> float:
        return self.end - self.begin

    @property
    def max_bytes(self) -> int:
        return self.kind.max_bytes


@dataclass(frozen=True)
class SearchPolicy:
    """
    Tunables of the CRF search.

    The search starts at ``start_crf`` and, after each size miss, moves
    ``crf_step`` towards stronger compression, for at most ``max_attempts``
    two-pass encodes. ``keep_oversized`` keeps the last oversized artifact on
    disk when the search is exhausted instead of deleting it.
    """

    start_crf: int = DEFAULT_START_CRF
    crf_step: int = DEFAULT_CRF_STEP
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    keep_oversized: bool = False

    def validate(self) -> "SearchPolicy":
        if not MIN_CRF <= self.start_crf <= MAX_CRF:
            raise ConfigurationException(
                f"Start CRF must be within [{MIN_CRF}, {MAX_CRF}], got {self.start_crf}"
            )
        if self.crf_step < 1:
            raise ConfigurationException(f"CRF step must be at least 1, got {self.crf_step}")
        if self.max_attempts < 1:
            raise ConfigurationException(
                f"Max attempts must be at least 1, got {self.max_attempts}"
            )
        return self


@dataclass(frozen=True)
class EncodeAttempt:
    """
    The result of a single two-pass encode at one CRF: either the size of the
    produced file or, when the encoder failed, the failure reason.
    """

    crf: int
    byte_size: Optional[int] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def fits(self, max_bytes: int) -> bool:
        return self.byte_size is not None and self.byte_size <= max_bytes


@dataclass(frozen=True)
class FinalArtifact:
    """A clip that satisfied its kind's size ceiling."""

    path: Path
    kind: OutputKind
    crf: int
    byte_size: int
    attempts: Tuple[EncodeAttempt, ...]


@dataclass(frozen=True)
class BatchItem:
    """One input file and the kinds to generate from it."""

    index: int
    input_path: Path
    kinds: Tuple[OutputKind, ...]

    @property
    def name(self) -> str:
        return self.input_path.name


class ItemStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class ItemOutcome:
    """
    The terminal state of a batch item.

    An item succeeds only when every requested kind produced an artifact.
    Artifacts of kinds that did succeed are kept even when another kind failed.
    """

    item: BatchItem
    artifacts: List[FinalArtifact] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)

    @property
    def status(self) -> ItemStatus:
        return ItemStatus.FAILED if self.errors else ItemStatus.SUCCESS

    @property
    def succeeded(self) -> bool:
        return self.status is ItemStatus.SUCCESS

    @property
    def paths(self) -> List[Path]:
        return [artifact.path for artifact in self.artifacts]


@dataclass
class BatchResult:
    """
    Outcomes of all batch items keyed by item index.

    The content does not depend on the order in which workers finished:
    `outcomes()` always lists items in input order.
    """

    _outcomes: Dict[int, ItemOutcome] = field(default_factory=dict)

    def record(self, outcome: ItemOutcome):
        self._outcomes[outcome.item.index] = outcome

    def outcomes(self) -> List[ItemOutcome]:
        return [self._outcomes[index] for index in sorted(self._outcomes)]

    def __len__(self) -> int:
        return len(self._outcomes)

    @property
    def succeeded(self) -> List[ItemOutcome]:
        return [outcome for outcome in self.outcomes() if outcome.succeeded]

    @property
    def failed(self) -> List[ItemOutcome]:
        return [outcome for outcome in self.outcomes() if not outcome.succeeded]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed
