"""
Defines custom exception types for webmoji.

These exceptions allow for specific and expressive error handling throughout the
clip generation pipeline. Every exception carries a ``stage`` attribute naming the
pipeline step it originated from, which the batch scheduler records against the
failing item and the result reporter shows to the user.

All custom exceptions inherit from the base `WebmojiException`.
"""
from pathlib import Path
from typing import Optional, Tuple


class WebmojiException(Exception):
    """Base class for all custom exceptions in webmoji."""

    stage = "unknown"


class ConfigurationException(WebmojiException):
    """
    Raised when the requested run cannot start because of invalid settings.

    Examples are an empty or duplicated list of output kinds, or a quality
    search policy outside of the encoder's CRF range.
    """

    stage = "config"


# --- Probe Specific Exceptions ---
class ProbeException(WebmojiException):
    """
    Base class for exceptions raised while inspecting a source file with ffprobe.

    Probing failures are permanent for the file: they are never retried.
    """

    stage = "probe"


class UnreadableMediaException(ProbeException):
    """
    Raised when ffprobe exits with a non-zero status, or when its output does
    not contain a usable duration or frame size.
    """

    pass


class MissingVideoStreamException(ProbeException):
    """Raised when the probed file does not report any video stream."""

    pass


# --- Planning Specific Exceptions ---
class PlanException(WebmojiException):
    """
    Base class for exceptions raised while deriving the encode plan.

    These errors are permanent but user-fixable, e.g. by choosing another
    trim window.
    """

    stage = "plan"


class DurationExceededException(PlanException):
    """
    Raised when explicit trim bounds select a clip longer than the platform allows.

    The clip is never silently truncated when the user gave both bounds.
    """

    def __init__(self, begin: float, end: float, max_seconds: float):
        self.begin = begin
        self.end = end
        self.max_seconds = max_seconds
        super().__init__(
            f"Trim window [{begin:g}s, {end:g}s] is {end - begin:g}s long, "
            f"but clips may not exceed {max_seconds:g}s"
        )


class InvalidTrimWindowException(PlanException):
    """Raised when the trim window is empty or starts beyond the end of the source."""

    pass


# --- Encoding Specific Exceptions ---
class EncodingException(WebmojiException):
    """
    Base class for exceptions raised by the two-pass FFmpeg encode.

    An encoder crash is not a quality-search condition: the search controller
    propagates these instead of trying another CRF. It records the attempts made
    for the plan so far in `attempts`, the failed one last.
    """

    stage = "encode"
    attempts: Tuple = ()


class PassOneFailedException(EncodingException):
    """Raised when the analysis pass of the two-pass encode exits non-zero."""

    def __init__(self, exit_code: Optional[int], detail: str = ""):
        self.exit_code = exit_code
        message = f"First encoding pass failed (exit code {exit_code})"
        super().__init__(f"{message}: {detail}" if detail else message)


class PassTwoFailedException(EncodingException):
    """Raised when the output pass of the two-pass encode exits non-zero."""

    def __init__(self, exit_code: Optional[int], detail: str = ""):
        self.exit_code = exit_code
        message = f"Second encoding pass failed (exit code {exit_code})"
        super().__init__(f"{message}: {detail}" if detail else message)


class OutputMissingException(EncodingException):
    """Raised when FFmpeg reported success but did not produce the output file."""

    pass


# --- Search Specific Exceptions ---
class SearchExhaustedException(WebmojiException):
    """
    Raised when no CRF within the attempt budget produced a small enough file.

    The best-effort result is kept on the exception instead of being dropped, so
    the caller can report it or decide to accept it.

    Attributes:
        crf: The last (most compressed) CRF that was tried.
        byte_size: The size produced by that CRF.
        max_bytes: The size ceiling that was not met.
        attempts: How many two-pass encodes were run.
        path: The oversized artifact, if it was kept on disk.
    """

    stage = "search"

    def __init__(
        self,
        crf: int,
        byte_size: int,
        max_bytes: int,
        attempts: int,
        path: Optional[Path] = None,
    ):
        self.crf = crf
        self.byte_size = byte_size
        self.max_bytes = max_bytes
        self.attempts = attempts
        self.path = path
        super().__init__(
            f"No CRF fits into {max_bytes} bytes after {attempts} attempt(s); "
            f"the last attempt (CRF {crf}) was {byte_size} bytes"
        )


# --- Scheduling Specific Exceptions ---
class CollisionException(WebmojiException):
    """
    Raised when an item's output path is already taken and overwriting is disabled.

    The path is either an existing file on disk or the output of an earlier item
    of the same batch.
    """

    stage = "collision"

    def __init__(self, path: Path, reason: str = "already exists"):
        self.path = path
        super().__init__(f"Output file {path} {reason} (use --overwrite to replace it)")


class CancelledItemException(WebmojiException):
    """Raised for items that were never started because the batch was cancelled."""

    stage = "cancelled"
