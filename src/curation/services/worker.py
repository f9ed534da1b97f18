"""Refinement worker loop.

Each iteration asks the planner for one unit of work, generates it into
drafts, releases the lease, checkpoints, then runs one pipeline batch. Idle
iterations stretch the sleep interval and send a heartbeat checkpoint every
couple of minutes so the worker still reports healthy.
"""

import logging
import threading
import time
from typing import Callable, Optional

from curation.config import WorkerSettings
from curation.models import CheckpointState
from curation.pipeline.orchestrator import PipelineOrchestrator
from curation.planner.work_planner import WorkPlanner
from curation.services.checkpoint import CheckpointService
from curation.services.content_processor import ContentProcessor

logger = logging.getLogger(__name__)


class RefinementWorker:
    """Runs planner -> processor -> pipeline until stopped.

    Args:
        planner: Work planner holding the lease repository
        processor: Content processor wired to the source registry
        orchestrator: Lifecycle orchestrator
        checkpoints: Checkpoint service for progress and health
        settings: Loop timing (base/min/max interval, heartbeat)
        wait: Called with seconds between iterations; defaults to waiting on the stop event
        monotonic: Clock used for heartbeat spacing
    """

    def __init__(
        self,
        planner: WorkPlanner,
        processor: ContentProcessor,
        orchestrator: PipelineOrchestrator,
        checkpoints: CheckpointService,
        settings: Optional[WorkerSettings] = None,
        wait: Optional[Callable[[float], object]] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.planner = planner
        self.processor = processor
        self.orchestrator = orchestrator
        self.checkpoints = checkpoints
        self.settings = settings or WorkerSettings()
        self.monotonic = monotonic

        self._stop_event = threading.Event()
        self._wait = wait or self._stop_event.wait
        self._last_state: Optional[CheckpointState] = None
        self._last_checkpoint_at = 0.0

        self.consecutive_empty = 0
        self.work_items_processed = 0

    def stop(self) -> None:
        logger.info("Stop requested; finishing current iteration")
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def next_interval_ms(self) -> float:
        """Sleep before the next iteration, growing 1.5x per idle iteration up to a cap."""
        s = self.settings
        steps = min(self.consecutive_empty, s.max_backoff_steps)
        interval = s.base_interval_ms * (s.backoff_multiplier**steps)
        return max(s.min_interval_ms, min(interval, s.max_interval_ms))

    def run_once(self) -> bool:
        """One loop iteration. Returns True if any work or pipeline progress happened."""
        did_work = False

        work_item = self.planner.get_next_work()
        if work_item is not None:
            try:
                drafts = self.processor.process(work_item)
                self.work_items_processed += 1
                self._checkpoint(
                    CheckpointState(
                        last_processed_id=work_item.id,
                        last_processed_type=work_item.content_type.value,
                        metadata={
                            "drafts_created": len(drafts),
                            "work_items_processed": self.work_items_processed,
                        },
                    )
                )
                did_work = True
            except Exception as e:
                logger.error(
                    f"Failed to process work item {work_item.id}: {str(e)[:200]}",
                    extra={"work_id": work_item.id, "content_type": work_item.content_type.value},
                    exc_info=True,
                )
                self.checkpoints.save_error_state(e, {"work_id": work_item.id})
            finally:
                self.planner.mark_work_complete(work_item.id)

        summary = self.orchestrator.process_batch()
        if summary.succeeded:
            did_work = True

        return did_work

    def run(self, max_iterations: Optional[int] = None) -> int:
        """Loop until ``stop()`` or ``max_iterations``. Returns iterations run."""
        self._last_state = self.checkpoints.restore_state()
        self.planner.cleanup_stale_work()
        self._last_checkpoint_at = self.monotonic()

        logger.info("Refinement worker started", extra={"service": self.checkpoints.service_name})

        iterations = 0
        while not self.stopped:
            try:
                did_work = self.run_once()
            except Exception as e:
                logger.error(f"Worker iteration failed: {str(e)[:200]}", exc_info=True)
                self.checkpoints.save_error_state(e)
                did_work = False

            if did_work:
                self.consecutive_empty = 0
            else:
                self.consecutive_empty += 1
                self._heartbeat_if_due()

            iterations += 1
            if max_iterations is not None and iterations >= max_iterations:
                break

            interval_ms = self.next_interval_ms()
            logger.debug(f"Sleeping {interval_ms:.0f}ms", extra={"consecutive_empty": self.consecutive_empty})
            self._wait(interval_ms / 1000)

        logger.info(
            "Refinement worker stopped",
            extra={"iterations": iterations, "work_items_processed": self.work_items_processed},
        )
        return iterations

    def _checkpoint(self, state: CheckpointState) -> None:
        self._last_state = self.checkpoints.save_state(state)
        self._last_checkpoint_at = self.monotonic()

    def _heartbeat_if_due(self) -> None:
        if self.monotonic() - self._last_checkpoint_at < self.settings.heartbeat_interval_seconds:
            return

        previous = self._last_state or CheckpointState()
        self._checkpoint(
            previous.model_copy(
                update={
                    "metadata": {
                        **previous.metadata,
                        "heartbeat": True,
                        "consecutive_empty": self.consecutive_empty,
                    }
                }
            )
        )
        logger.debug("Heartbeat checkpoint saved")
