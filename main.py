"""
Main entry point for webmoji.

This script parses command-line arguments, checks that FFmpeg is available and
runs the batch pipeline that turns every input video into an emoji and/or a
sticker clip. The process exit status reflects the outcome of the batch.
"""

import sys
from typing import List, Optional

from loguru import logger

from webmoji.cli import get_args
from webmoji.config.common import EXIT_TOTAL_FAILURE, LOGGER_FORMAT
from webmoji.domain.exceptions import ConfigurationException
from webmoji.domain.models import PlanOptions, SearchPolicy
from webmoji.pipeline.batch_pipeline import BatchPipeline
from webmoji.services.report_service import BatchReport, log_summary, summarize
from webmoji.services.two_pass import TwoPassEncoder
from webmoji.utils.tool_locator import Tools


# Configure the logger for initial setup.
# The level is overridden later by command-line arguments.
logger.remove()
logger.add(sys.stderr, level="INFO", format=LOGGER_FORMAT)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function to start clip generation.

    This function performs the following steps:
    1. Parses command-line arguments.
    2. Configures the global logger based on the arguments.
    3. Verifies that FFmpeg can be executed.
    4. Runs the batch pipeline over all inputs.
    5. Logs the per-item summary and optionally writes the YAML report.

    Returns:
        The process exit code: 0 if every item succeeded, 1 if some failed and
        2 if none succeeded or the run could not start.
    """
    args = get_args(argv)

    effective_log_level = "DEBUG" if args.debug_mode else args.log_level
    logger.remove()
    logger.add(sys.stderr, level=effective_log_level, format=LOGGER_FORMAT)

    logger.debug(f"Parsed arguments: {args}")

    if not Tools.verify():
        return EXIT_TOTAL_FAILURE

    options = PlanOptions(
        begin=args.begin,
        end=args.end,
        filter=args.filter,
        ffmpeg_args=tuple(args.ffmpeg_args),
        publisher=args.publisher,
        output_dir=args.output_dir,
    )
    policy = SearchPolicy(
        start_crf=args.start_crf,
        crf_step=args.crf_step,
        max_attempts=args.max_attempts,
        keep_oversized=args.keep_oversized,
    )

    try:
        pipeline = BatchPipeline(
            args.inputs,
            args.kinds,
            options=options,
            policy=policy,
            concurrency=args.concurrency,
            overwrite=args.overwrite,
            encoder=TwoPassEncoder(temp_dir=args.temp_work_dir),
        )
    except ConfigurationException as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_TOTAL_FAILURE

    result = pipeline.run()

    exit_outcome = summarize(result)
    log_summary(exit_outcome)

    if args.report:
        try:
            BatchReport(args.report).write(result)
        except OSError as e:
            logger.error(f"Could not write report to {args.report}: {e}")

    return exit_outcome.exit_code


if __name__ == "__main__":
    sys.exit(main())
