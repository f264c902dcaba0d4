"""
Derives an `EncodePlan` from probed source facts, the output kind and user options.

The planner decides three things: which part of the source is used (the trim
window), how large the output frame is (fit-to-box downscaling) and where the
output is written. It also assembles the FFmpeg video filter chain from those
decisions.
"""
from fractions import Fraction
from pathlib import Path
from typing import Optional, Tuple

from loguru import logger

from ..config.video import OUTPUT_EXTENSION, PAD_COLOR
from ..domain.exceptions import DurationExceededException, InvalidTrimWindowException
from ..domain.models import EncodePlan, OutputKind, PlanOptions, SourceMedia


def output_path_for(input_path: Path, kind: OutputKind, output_dir: Optional[Path] = None) -> Path:
    """
    Returns where the clip of `kind` generated from `input_path` is written.

    The name is ``{input_stem}.{kind}.webm``, placed in `output_dir` if given,
    otherwise next to the input.
    """
    directory = output_dir if output_dir is not None else input_path.parent
    return directory / f"{input_path.stem}.{kind.file_suffix}.{OUTPUT_EXTENSION}"


def trim_window(
    duration: float,
    begin: Optional[float],
    end: Optional[float],
    max_seconds: float,
) -> Tuple[float, float]:
    """
    Resolves the ``[begin, end]`` range of the source used for the clip.

    Missing bounds are filled in automatically: the window starts at 0 and ends
    `max_seconds` after the start, never past the end of the source. When the
    user gave both bounds the window is used as is, and a window longer than
    `max_seconds` is rejected instead of silently truncated.

    Raises:
        InvalidTrimWindowException: If the window is empty or starts past the end
                                    of the source.
        DurationExceededException: If explicit bounds span more than `max_seconds`.
    """
    start = 0.0 if begin is None else float(begin)
    if start >= duration:
        raise InvalidTrimWindowException(
            f"Trim start {start:g}s is not before the end of the source ({duration:g}s)"
        )

    if end is None:
        stop = min(duration, start + max_seconds)
    else:
        stop = float(end)

    if stop <= start:
        raise InvalidTrimWindowException(
            f"Trim end {stop:g}s must be greater than trim start {start:g}s"
        )
    if stop - start > max_seconds:
        raise DurationExceededException(start, stop, max_seconds)
    return start, stop


def _round_half_up_even(value: Fraction) -> int:
    """Rounds to the nearest even integer, resolving ties upwards."""
    return 2 * int((value / 2 + Fraction(1, 2)) // 1)


def scaled_dimensions(width: int, height: int, max_side: int) -> Tuple[int, int]:
    """
    Computes the output frame size that fits into a `max_side` square.

    The aspect ratio is kept and the longer side becomes `max_side`. Sources
    that already fit are never upscaled and keep their exact size. Downscaled
    sizes are rounded to even numbers because the yuv420p chroma subsampling of
    the encoder needs them, then clamped to the box again.
    """
    longest = max(width, height)
    if longest <= max_side:
        return width, height

    scale = Fraction(max_side, longest)
    scaled_width = _round_half_up_even(width * scale)
    scaled_height = _round_half_up_even(height * scale)
    return (
        min(max(scaled_width, 2), max_side),
        min(max(scaled_height, 2), max_side),
    )


def build_video_filter(plan: EncodePlan) -> str:
    """
    Builds the ``-filter:v`` chain for a plan.

    A user filter runs first, so it can crop or recolour the source, and the
    mandatory scaling always runs after it. Without a user filter the planned
    size is used as is. With one, the filtered frame's shape is unknown until
    FFmpeg runs it, so the scaler gets a box-fit expression that keeps the
    filtered aspect ratio without upscaling. Emoji are finally padded to a
    transparent square.
    """
    filters = []
    if plan.user_filter:
        side = plan.kind.max_side
        filters.append(plan.user_filter)
        # Commas inside the expressions are escaped from the filter chain.
        filters.append(
            f"scale=w=min({side}\\,iw):h=min({side}\\,ih)"
            ":force_original_aspect_ratio=decrease:force_divisible_by=2:flags=lanczos"
        )
    else:
        filters.append(f"scale={plan.width}:{plan.height}:flags=lanczos")
    if plan.kind.must_be_square:
        side = plan.kind.max_side
        filters.append(f"pad={side}:{side}:-1:-1:color={PAD_COLOR}")
    return ",".join(filters)


def plan(media: SourceMedia, kind: OutputKind, options: PlanOptions) -> EncodePlan:
    """
    Derives the encode plan for one source file and output kind.

    Args:
        media: The probed source facts.
        kind: The output kind to generate.
        options: The user options shared by the batch.

    Returns:
        The immutable `EncodePlan`.

    Raises:
        PlanException: If the trim window violates the kind's constraints.
    """
    begin, end = trim_window(media.duration, options.begin, options.end, kind.max_seconds)
    width, height = scaled_dimensions(media.width, media.height, kind.max_side)

    encode_plan = EncodePlan(
        source=media,
        kind=kind,
        output_path=output_path_for(media.path, kind, options.output_dir),
        begin=begin,
        end=end,
        width=width,
        height=height,
        user_filter=options.filter,
        extra_args=tuple(options.ffmpeg_args),
        publisher=options.publisher,
    )
    logger.debug(
        f"Planned {kind} for {media.path.name}: [{begin:g}s, {end:g}s] ({encode_plan.duration:g}s), "
        f"{media.width}x{media.height} -> {width}x{height}"
    )
    return encode_plan
