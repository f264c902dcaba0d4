"""
The batch pipeline fans the per-file pipeline (probe, plan, CRF search) out over
all requested inputs with a bounded pool of worker threads.

Workers spend their time waiting for ffprobe and ffmpeg subprocesses, so threads
give real parallelism here. A failure of one item, at any stage, is recorded
against that item only; the pool always drains completely before `run` returns.
"""
import concurrent.futures
import os
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from ..config.video import VIDEO_EXTENSIONS
from ..domain.exceptions import (
    CancelledItemException,
    CollisionException,
    ConfigurationException,
    WebmojiException,
)
from ..domain.media import probe_media
from ..domain.models import (
    BatchItem,
    BatchResult,
    ItemOutcome,
    OutputKind,
    PlanOptions,
    SearchPolicy,
)
from ..services.planner import output_path_for, plan
from ..services.quality_search import QualitySearch
from ..services.two_pass import TwoPassEncoder
from ..utils.format_utils import contains_any_extensions

_OUTPUT_SUFFIXES = tuple(f".{kind.file_suffix}" for kind in OutputKind)


def default_concurrency() -> int:
    """Returns the number of CPUs this process may run on, at least 1."""
    try:
        return max(1, len(os.sched_getaffinity(0)))
    except AttributeError:
        pass
    cpu_count = os.cpu_count()
    if cpu_count is None:
        logger.warning(
            "Failed to query the system's available parallelism. Falling back to 1 worker."
        )
        return 1
    return cpu_count


def _is_generated_output(path: Path) -> bool:
    """True for files this program wrote, e.g. ``clip.emoji.webm``."""
    return Path(path.stem).suffix in _OUTPUT_SUFFIXES


def collect_input_files(inputs: Iterable[Path]) -> List[Path]:
    """
    Expands the user's input paths into the list of files to process.

    A directory stands for the video files directly inside it (sorted, not
    recursive), skipping clips generated by this program. Any other path is
    kept as given, even if it does not exist: probing reports it as a failure
    of that one item.
    """
    files: List[Path] = []
    for input_path in inputs:
        input_path = Path(input_path)
        if not input_path.is_dir():
            files.append(input_path)
            continue
        found = sorted(
            p
            for p in input_path.iterdir()
            if p.is_file()
            and contains_any_extensions(p, VIDEO_EXTENSIONS)
            and not _is_generated_output(p)
        )
        logger.debug(f"Found {len(found)} video file(s) in {input_path}")
        if not found:
            logger.warning(f"No video files found in directory {input_path}")
        files.extend(found)
    return files


def _validate_kinds(kinds: Sequence[OutputKind]) -> Tuple[OutputKind, ...]:
    if not kinds:
        raise ConfigurationException("No output kinds were requested")
    if len(set(kinds)) != len(kinds):
        raise ConfigurationException(
            f"Duplicate output kinds found, but they must be unique: {[str(k) for k in kinds]}"
        )
    return tuple(kinds)


class BatchPipeline:
    """
    Runs the clip generation pipeline for a batch of inputs.

    Attributes:
        inputs: Files or directories given by the user.
        kinds: The output kinds generated for every input.
        options: Trim, filter and output options shared by all items.
        policy: The CRF search policy.
        concurrency: Maximum number of items processed at the same time.
        overwrite: Whether existing output files may be replaced.
        encoder: The two-pass encoder shared by all workers.
    """

    def __init__(
        self,
        inputs: Sequence[Path],
        kinds: Sequence[OutputKind],
        options: PlanOptions = PlanOptions(),
        policy: SearchPolicy = SearchPolicy(),
        concurrency: Optional[int] = None,
        overwrite: bool = False,
        encoder: Optional[TwoPassEncoder] = None,
    ):
        self.inputs = [Path(p) for p in inputs]
        self.kinds = _validate_kinds(kinds)
        self.options = options
        self.policy = policy.validate()
        self.concurrency = concurrency if concurrency is not None else default_concurrency()
        if self.concurrency < 1:
            raise ConfigurationException(f"Concurrency must be at least 1, got {self.concurrency}")
        self.overwrite = overwrite
        self.encoder = encoder or TwoPassEncoder()
        self.cancel_event = threading.Event()

    def request_cancel(self):
        """
        Stops dispatching new items. Items already running finish normally so
        that no encoder is interrupted while writing its output.
        """
        self.cancel_event.set()

    def build_items(self) -> List[BatchItem]:
        return [
            BatchItem(index=i, input_path=path, kinds=self.kinds)
            for i, path in enumerate(collect_input_files(self.inputs))
        ]

    def output_paths(self, item: BatchItem) -> List[Path]:
        return [
            output_path_for(item.input_path, kind, self.options.output_dir).resolve()
            for kind in item.kinds
        ]

    def _plan_dispatch(
        self, items: Sequence[BatchItem]
    ) -> Tuple[List[List[BatchItem]], Dict[int, CollisionException]]:
        """
        Resolves output path collisions before anything is dispatched.

        Returns the lanes of work (each lane runs sequentially on one worker) and
        the items rejected because of a collision. Without overwrite, an output
        path that exists on disk or that an earlier item already claimed rejects
        the item. With overwrite, items sharing an output path are put in the
        same lane in input order, so the later one replaces the earlier one and
        no two workers ever write the same file.
        """
        lanes: List[List[BatchItem]] = []
        claimed: Dict[Path, int] = {}
        rejected: Dict[int, CollisionException] = {}

        for item in items:
            paths = self.output_paths(item)

            if not self.overwrite:
                existing = next((p for p in paths if p.exists()), None)
                if existing is not None:
                    rejected[item.index] = CollisionException(existing)
                    continue
                taken = next((p for p in paths if p in claimed), None)
                if taken is not None:
                    rejected[item.index] = CollisionException(
                        taken, "is also the output of an earlier input"
                    )
                    continue

            hit_lanes = sorted({claimed[p] for p in paths if p in claimed})
            if not hit_lanes:
                lane_index = len(lanes)
                lanes.append([item])
            else:
                lane_index = hit_lanes[0]
                for other in hit_lanes[1:]:
                    lanes[lane_index].extend(lanes[other])
                    lanes[other] = []
                lanes[lane_index].append(item)
                lanes[lane_index].sort(key=lambda batch_item: batch_item.index)
                logger.warning(
                    f"{item.name} writes to the same output as an earlier input; it will overwrite it"
                )
            for lane_item in lanes[lane_index]:
                for p in self.output_paths(lane_item):
                    claimed[p] = lane_index

        return [lane for lane in lanes if lane], rejected

    def process_single_item(self, item: BatchItem) -> ItemOutcome:
        """
        Runs probe, plan and CRF search for every kind of one item.

        Never raises: every failure is recorded on the returned outcome.
        """
        outcome = ItemOutcome(item=item)
        logger.info(f"Processing {item.input_path}")

        try:
            media = probe_media(item.input_path)
        except WebmojiException as e:
            logger.error(f"{item.name}: {e.stage} failed: {e}")
            outcome.errors.append(e)
            return outcome
        except Exception as e:
            logger.exception(f"{item.name}: unexpected error while probing: {e}")
            outcome.errors.append(e)
            return outcome

        search = QualitySearch(self.encoder, self.policy)
        for kind in item.kinds:
            try:
                artifact = search.search(plan(media, kind, self.options))
            except WebmojiException as e:
                logger.error(f"{item.name} ({kind}): {e.stage} failed: {e}")
                outcome.errors.append(e)
            except Exception as e:
                logger.exception(f"{item.name} ({kind}): unexpected error: {e}")
                outcome.errors.append(e)
            else:
                outcome.artifacts.append(artifact)
                logger.success(f"Saved {kind} at {artifact.path}")
        return outcome

    def _run_lane(self, lane: Sequence[BatchItem]) -> List[ItemOutcome]:
        outcomes = []
        for item in lane:
            if self.cancel_event.is_set():
                outcomes.append(ItemOutcome(item=item, errors=[CancelledItemException("Batch was cancelled")]))
                continue
            outcomes.append(self.process_single_item(item))
        return outcomes

    def _record_lane(self, result: BatchResult, future, lane: Sequence[BatchItem]):
        try:
            outcomes = future.result()
        except concurrent.futures.CancelledError:
            outcomes = [
                ItemOutcome(item=item, errors=[CancelledItemException("Batch was cancelled")])
                for item in lane
            ]
        except Exception as e:
            logger.exception(f"Worker failed unexpectedly: {e}")
            outcomes = [ItemOutcome(item=item, errors=[e]) for item in lane]
        for outcome in outcomes:
            result.record(outcome)

    def run(self) -> BatchResult:
        """
        Processes all items and returns their outcomes.

        On Ctrl+C, items that have not started are recorded as cancelled while
        the running ones are allowed to finish.
        """
        result = BatchResult()
        items = self.build_items()
        if not items:
            logger.warning("No input files to process.")
            return result

        lanes, rejected = self._plan_dispatch(items)
        by_index = {item.index: item for item in items}
        for index, collision in rejected.items():
            logger.error(f"{by_index[index].name}: {collision}")
            result.record(ItemOutcome(item=by_index[index], errors=[collision]))

        if not lanes:
            return result

        max_workers = min(self.concurrency, len(lanes))
        logger.info(
            f"Processing {len(items)} file(s) into {', '.join(map(str, self.kinds))} "
            f"with {max_workers} worker(s)"
        )

        with concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="webmoji"
        ) as executor:
            futures = {executor.submit(self._run_lane, lane): lane for lane in lanes}
            try:
                for future in concurrent.futures.as_completed(futures):
                    self._record_lane(result, future, futures[future])
            except KeyboardInterrupt:
                logger.warning(
                    "Interrupted: waiting for running items to finish, pending items are cancelled."
                )
                self.request_cancel()
                for future in futures:
                    future.cancel()
                for future, lane in futures.items():
                    self._record_lane(result, future, lane)

        logger.info(f"Finished processing {len(items)} file(s).")
        return result
