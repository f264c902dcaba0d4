"""
This module defines the TwoPassEncoder, which runs a constant-quality two-pass
VP9 encode for an `EncodePlan` at a given CRF and measures the result.

Both passes share a statistics file that lives in a private temporary directory.
The directory is created right before the first pass and removed after the
second one on every exit path, so repeated attempts never leave encoder side
files behind.
"""

import os
import tempfile
import time
from pathlib import Path
from typing import List, Optional

from loguru import logger

from ..config.common import DEFAULT_FF_OPTIONS, ENCODED_BY_TAG
from ..config.video import VIDEO_ENCODER
from ..domain.exceptions import (
    OutputMissingException,
    PassOneFailedException,
    PassTwoFailedException,
)
from ..domain.models import EncodePlan
from ..utils.ffmpeg_utils import last_stderr_line, run_cmd
from ..utils.format_utils import format_seconds, formatted_size
from ..utils.tool_locator import Tools
from .planner import build_video_filter

PASS_LOG_PREFIX = "ffmpeg2pass"


def format_timestamp(seconds: float) -> str:
    """Formats seconds for FFmpeg's -ss/-to with millisecond precision."""
    text = f"{seconds:.3f}".rstrip("0").rstrip(".")
    return text or "0"


class TwoPassEncoder:
    """
    Runs the analysis and output passes of a VP9 encode.

    One instance can be shared by all workers: it holds no per-item state. Every
    call to `encode` gets its own statistics directory.

    Attributes:
        ffmpeg_cmd: The ffmpeg command or path.
        temp_dir: Where the statistics directories are created (None for the
                  system default).
        show_cmd: If True, each command line is logged at DEBUG level.
    """

    def __init__(
        self,
        ffmpeg_cmd: Optional[str] = None,
        temp_dir: Optional[Path] = None,
        show_cmd: bool = True,
    ):
        self.ffmpeg_cmd = ffmpeg_cmd or Tools.ffmpeg()
        self.temp_dir = temp_dir
        self.show_cmd = show_cmd

    def build_common_args(self, plan: EncodePlan, pass_log_file: Path) -> List[str]:
        """
        Builds the arguments shared by both passes.

        The user's extra arguments are spliced in after everything this program
        sets and before the per-pass output arguments, so they can override the
        defaults. Their effect is not validated.
        """
        args = [self.ffmpeg_cmd, *DEFAULT_FF_OPTIONS, "-y", "-i", str(plan.source.path)]
        args += ["-ss", format_timestamp(plan.begin), "-to", format_timestamp(plan.end)]
        if plan.publisher:
            args += ["-metadata", f"publisher={plan.publisher}"]
        args += [
            "-metadata",
            f"encoded_by={ENCODED_BY_TAG}",
            "-fps_mode",
            "passthrough",
            "-vcodec",
            VIDEO_ENCODER,
            # Constant quality two-pass: bitrate zero and the quality set by -crf.
            "-b:v",
            "0",
            "-an",
            "-filter:v",
            build_video_filter(plan),
            "-passlogfile",
            str(pass_log_file),
        ]
        args += list(plan.extra_args)
        return args

    def build_pass_args(
        self, plan: EncodePlan, crf: int, pass_number: int, pass_log_file: Path
    ) -> List[str]:
        """
        Builds the full command line of one pass.

        Pass 1 discards its video output; pass 2 writes the real clip to the
        plan's output path.
        """
        args = self.build_common_args(plan, pass_log_file)
        args += ["-crf", str(crf), "-pass", str(pass_number)]
        if pass_number == 1:
            args += ["-f", "null", os.devnull]
        else:
            args.append(str(plan.output_path))
        return args

    def encode(self, plan: EncodePlan, crf: int) -> int:
        """
        Encodes the plan at `crf` and returns the size of the produced file.

        Args:
            plan: What to encode and where to write it.
            crf: The quality parameter of this attempt.

        Returns:
            The byte size of the file written to `plan.output_path`.

        Raises:
            PassOneFailedException: If the analysis pass exits non-zero.
            PassTwoFailedException: If the output pass exits non-zero. The partial
                                    output file is removed.
            OutputMissingException: If FFmpeg succeeded without writing the output.
        """
        start = time.monotonic()
        plan.output_path.parent.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(prefix=".webmoji_2pass_", dir=self.temp_dir) as stats_dir:
            pass_log_file = Path(stats_dir) / PASS_LOG_PREFIX

            res = run_cmd(
                self.build_pass_args(plan, crf, 1, pass_log_file),
                src_file_for_log=plan.source.path,
                show_cmd=self.show_cmd,
            )
            if res is None or res.returncode != 0:
                raise PassOneFailedException(
                    res.returncode if res is not None else None, last_stderr_line(res)
                )

            completed = False
            try:
                res = run_cmd(
                    self.build_pass_args(plan, crf, 2, pass_log_file),
                    src_file_for_log=plan.source.path,
                    show_cmd=self.show_cmd,
                )
                if res is None or res.returncode != 0:
                    raise PassTwoFailedException(
                        res.returncode if res is not None else None, last_stderr_line(res)
                    )
                if not plan.output_path.is_file():
                    raise OutputMissingException(
                        f"FFmpeg reported success but {plan.output_path} was not written"
                    )
                byte_size = plan.output_path.stat().st_size
                completed = True
            finally:
                if not completed:
                    plan.output_path.unlink(missing_ok=True)

        logger.debug(
            f"CRF {crf} for {plan.output_path.name} generated {formatted_size(byte_size)} "
            f"in {format_seconds(time.monotonic() - start)}"
        )
        return byte_size
