"""
This module defines the QualitySearch controller, which finds a CRF whose two-pass
encode fits into the size ceiling of the plan's output kind.

The search walks the CRF in one direction only, towards stronger compression,
and accepts the first value that fits. Undershooting the ceiling is acceptable;
overshooting it never is. Each item's search state is local to one `search`
call and never shared between workers.
"""
import time
from typing import Iterator, List

from loguru import logger

from ..config.video import MAX_CRF
from ..domain.exceptions import EncodingException, SearchExhaustedException
from ..domain.models import EncodeAttempt, EncodePlan, FinalArtifact, SearchPolicy
from ..utils.format_utils import format_seconds, formatted_size
from .two_pass import TwoPassEncoder


def crf_schedule(policy: SearchPolicy) -> Iterator[int]:
    """
    Yields the CRF values the search tries, in order.

    The sequence starts at ``policy.start_crf`` and grows by ``policy.crf_step``.
    It is strictly increasing, ends with `MAX_CRF` at the latest and holds at
    most ``policy.max_attempts`` values.

    >>> list(crf_schedule(SearchPolicy(start_crf=55, crf_step=4, max_attempts=10)))
    [55, 59, 63]
    """
    crf = policy.start_crf
    for _ in range(policy.max_attempts):
        yield crf
        if crf >= MAX_CRF:
            return
        crf = min(crf + policy.crf_step, MAX_CRF)


class QualitySearch:
    """
    Drives the `TwoPassEncoder` until the output fits its kind's size ceiling.

    States per item: an attempt is run at the current CRF. If the encoder fails,
    the search stops and the error propagates, since a crashing encoder is not
    something another CRF can fix. If the output fits, the search is satisfied
    and the file stays on disk as the final artifact. Otherwise the oversized
    file is removed and the next, more compressed CRF is tried. When the
    schedule runs out, `SearchExhaustedException` reports the last attempt.
    """

    def __init__(self, encoder: TwoPassEncoder, policy: SearchPolicy = SearchPolicy()):
        self.encoder = encoder
        self.policy = policy.validate()

    def search(self, plan: EncodePlan) -> FinalArtifact:
        """
        Runs the search for one plan.

        Args:
            plan: The plan to encode.

        Returns:
            The `FinalArtifact` of the first CRF whose output fits.

        Raises:
            EncodingException: If any two-pass encode fails.
            SearchExhaustedException: If no scheduled CRF produced a fitting file.
        """
        start = time.monotonic()
        max_bytes = plan.max_bytes
        attempts: List[EncodeAttempt] = []

        logger.info(
            f"Searching a CRF for {plan.output_path.name} to fit into {formatted_size(max_bytes)}"
        )

        for crf in crf_schedule(self.policy):
            if attempts:
                # The previous attempt missed; its file must not outlive it.
                plan.output_path.unlink(missing_ok=True)

            try:
                byte_size = self.encoder.encode(plan, crf)
            except EncodingException as e:
                attempts.append(EncodeAttempt(crf=crf, error=str(e)))
                e.attempts = tuple(attempts)
                raise

            attempt = EncodeAttempt(crf=crf, byte_size=byte_size)
            attempts.append(attempt)

            if attempt.fits(max_bytes):
                logger.info(
                    f"Found a fitting CRF {crf} for {plan.output_path.name}: "
                    f"{formatted_size(attempt.byte_size)} after {len(attempts)} attempt(s) "
                    f"in {format_seconds(time.monotonic() - start)}"
                )
                return FinalArtifact(
                    path=plan.output_path,
                    kind=plan.kind,
                    crf=crf,
                    byte_size=attempt.byte_size,
                    attempts=tuple(attempts),
                )

            logger.info(
                f"CRF {crf} for {plan.output_path.name} is too big: "
                f"{formatted_size(attempt.byte_size)} > {formatted_size(max_bytes)}"
            )

        last = attempts[-1]
        kept_path = None
        if self.policy.keep_oversized:
            kept_path = plan.output_path
            logger.warning(f"Keeping oversized result at {kept_path}")
        else:
            plan.output_path.unlink(missing_ok=True)

        raise SearchExhaustedException(
            crf=last.crf,
            byte_size=last.byte_size,
            max_bytes=max_bytes,
            attempts=len(attempts),
            path=kept_path,
        )
