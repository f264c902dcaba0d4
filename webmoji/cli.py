"""
Command-Line Interface (CLI) setup for webmoji.

This module uses Python's `argparse` to define and parse the command-line
arguments that control the application's behavior. Everything after a bare
``--`` is passed verbatim to FFmpeg.
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .config.common import CONFIGURED_CONCURRENCY, DEFAULT_LOG_LEVEL
from .config.video import (
    DEFAULT_CRF_STEP,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_START_CRF,
    MAX_CLIP_SECONDS,
    MAX_CRF,
)
from .domain.media import parse_timestamp
from .domain.models import OutputKind


def _timestamp(text: str) -> float:
    try:
        return parse_timestamp(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid integer: '{text}'") from e
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def _crf(text: str) -> int:
    try:
        value = int(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid integer: '{text}'") from e
    if not 0 <= value <= MAX_CRF:
        raise argparse.ArgumentTypeError(f"must be within [0, {MAX_CRF}], got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="webmoji",
        description=(
            "Generate size-constrained WebM emoji and stickers from videos using "
            "two-pass VP9 encoding. Arguments after '--' are passed to ffmpeg "
            "between the input and output arguments."
        ),
    )
    parser.add_argument(
        "inputs", nargs="+", type=Path,
        help="Input video files, or directories whose video files are all converted.",
    )
    parser.add_argument(
        "-o", "--output-dir", type=Path, default=None,
        help="Directory for the outputs. Defaults to the directory of each input.",
    )
    parser.add_argument("--no-emoji", action="store_true", help="Don't generate an emoji.")
    parser.add_argument("--no-sticker", action="store_true", help="Don't generate a sticker.")
    parser.add_argument(
        "--begin", type=_timestamp, default=None,
        help="Start of the clip ([[HH:]MM:]SS[.fff]). Defaults to the start of the video.",
    )
    parser.add_argument(
        "--end", type=_timestamp, default=None,
        help=f"End of the clip ([[HH:]MM:]SS[.fff]). Defaults to {MAX_CLIP_SECONDS:g}s after the start.",
    )
    parser.add_argument(
        "--filter", type=str, default=None,
        help="Custom ffmpeg video filter, applied before the mandatory scaling.",
    )
    parser.add_argument(
        "--publisher", type=str, default=None,
        help="Value of the 'publisher' metadata tag of the outputs.",
    )
    parser.add_argument(
        "--overwrite", action="store_true", help="Overwrite existing output files without asking."
    )
    parser.add_argument(
        "-j", "--concurrency", type=_positive_int, default=CONFIGURED_CONCURRENCY,
        help="Number of files processed in parallel. Defaults to the number of CPUs.",
    )
    parser.add_argument(
        "--start-crf", type=_crf, default=DEFAULT_START_CRF,
        help="CRF value the quality search starts from.",
    )
    parser.add_argument(
        "--crf-step", type=_positive_int, default=DEFAULT_CRF_STEP,
        help="How much the CRF grows after an oversized attempt.",
    )
    parser.add_argument(
        "--max-attempts", type=_positive_int, default=DEFAULT_MAX_ATTEMPTS,
        help="Maximum number of two-pass encodes per output.",
    )
    parser.add_argument(
        "--keep-oversized", action="store_true",
        help="Keep the last oversized output when no CRF fits.",
    )
    parser.add_argument(
        "--report", type=Path, default=None, help="Write a YAML report of the run to this file."
    )
    parser.add_argument(
        "--temp-work-dir", type=str, default=None,
        help="Directory for the two-pass statistics files.",
    )
    parser.add_argument(
        "--log-level", type=str, default=DEFAULT_LOG_LEVEL,
        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set the logging level.",
    )
    parser.add_argument(
        "--debug", dest="debug_mode", action="store_true",
        help="Enable debug logging, including the ffmpeg command lines. Overrides --log-level.",
    )
    return parser


def get_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parses command-line arguments for webmoji.

    Args:
        argv: The arguments to parse. Defaults to ``sys.argv[1:]``.

    Returns:
        argparse.Namespace: The parsed arguments. Besides the declared options it
                            holds ``kinds`` (the requested `OutputKind` values)
                            and ``ffmpeg_args`` (everything after ``--``).
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    ffmpeg_args: List[str] = []
    if "--" in argv:
        split_at = argv.index("--")
        argv, ffmpeg_args = argv[:split_at], argv[split_at + 1:]

    parser = build_parser()
    args = parser.parse_args(argv)
    args.ffmpeg_args = ffmpeg_args

    args.kinds = [
        kind
        for kind, disabled in ((OutputKind.EMOJI, args.no_emoji), (OutputKind.STICKER, args.no_sticker))
        if not disabled
    ]
    if not args.kinds:
        parser.error("Nothing to do: both --no-emoji and --no-sticker were given.")

    if args.begin is not None and args.end is not None and args.end <= args.begin:
        parser.error(f"--end ({args.end:g}s) must be greater than --begin ({args.begin:g}s).")

    # Validate temp_work_dir if provided. If it doesn't exist, try to create it.
    if args.temp_work_dir:
        temp_dir_path = Path(args.temp_work_dir)
        if not temp_dir_path.is_dir():
            try:
                temp_dir_path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                parser.error(
                    f"The specified temporary working directory '{args.temp_work_dir}' "
                    f"is not a valid directory and could not be created: {e}"
                )
        args.temp_work_dir = temp_dir_path.resolve()

    return args
