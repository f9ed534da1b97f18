"""Lifecycle orchestrator.

Moves one item one stage forward per ``process_item`` call:

    DRAFT --normalization--> CANDIDATE --validation--> VALIDATED --approval--> APPROVED

Steps return a ``StepResult`` for deterministic outcomes and raise for
transient ones. Deterministic failures are not retried: the item gets one
failure record and is parked in its stage. Exceptions are retried under the
``RetryPolicy``; once attempts run out the item gets one failure record too.
Every attempt emits a metrics record.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Sequence

from curation.config import PipelineConfig
from curation.exceptions import StageConflictError
from curation.models import (
    BatchSummary,
    ContentItem,
    DataType,
    FailureRecord,
    MetricsRecord,
    PipelineResult,
    Stage,
    StepResult,
)
from curation.pipeline.steps import ApprovalStep, NormalizationStep, QualityCheck, ValidationStep
from curation.storage.base import ApprovalRepository, PipelineRepository, ValidationRepository
from curation.utils.logging_config import pipeline_stage_logger
from curation.utils.retry import RetryPolicy

logger = logging.getLogger(__name__)

STAGE_NAMES: Dict[Stage, str] = {
    Stage.DRAFT: "normalization",
    Stage.CANDIDATE: "validation",
    Stage.VALIDATED: "approval",
}


class PipelineOrchestrator:
    """Drives items through normalization, validation and approval.

    Args:
        repository: Lifecycle partitions and failure/metrics sinks
        normalization: DRAFT -> CANDIDATE step
        validation: CANDIDATE -> VALIDATED step
        approval: VALIDATED -> APPROVED step
        config: Batch size, auto-approval, retry attempts, worker threads
        retry_policy: Overrides the policy derived from ``config.retry_attempts``
    """

    def __init__(
        self,
        repository: PipelineRepository,
        normalization: NormalizationStep,
        validation: ValidationStep,
        approval: ApprovalStep,
        config: Optional[PipelineConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.repository = repository
        self.config = config or PipelineConfig()
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=self.config.retry_attempts)
        self._steps: Dict[Stage, Callable[[ContentItem], StepResult]] = {
            Stage.DRAFT: normalization.normalize,
            Stage.CANDIDATE: validation.validate,
            Stage.VALIDATED: approval.approve,
        }

    @classmethod
    def build(
        cls,
        repository: PipelineRepository,
        validation_repository: ValidationRepository,
        approval_repository: ApprovalRepository,
        config: Optional[PipelineConfig] = None,
        quality_checks: Sequence[QualityCheck] = (),
        retry_policy: Optional[RetryPolicy] = None,
    ) -> "PipelineOrchestrator":
        """Wire the standard steps to their repositories."""
        config = config or PipelineConfig()
        return cls(
            repository=repository,
            normalization=NormalizationStep(),
            validation=ValidationStep(validation_repository, quality_checks),
            approval=ApprovalStep(approval_repository, auto_approval=config.auto_approval),
            config=config,
            retry_policy=retry_policy,
        )

    def process_batch(self) -> BatchSummary:
        """Process one batch per stage: drafts, candidates, then validated items.

        Validated items are only picked up when auto-approval is on; otherwise
        they wait in the review queue.
        """
        stages = [Stage.DRAFT, Stage.CANDIDATE]
        if self.config.auto_approval:
            stages.append(Stage.VALIDATED)

        summary = BatchSummary()
        for stage in stages:
            items = self.repository.fetch_by_stage(stage, self.config.batch_size)
            if not items:
                continue

            with pipeline_stage_logger(STAGE_NAMES[stage], items=len(items)):
                for result in self._process_many(items):
                    summary.add(stage, result)

        if summary.processed:
            logger.info(
                f"Batch complete: {summary.succeeded}/{summary.processed} succeeded",
                extra=summary.model_dump(),
            )
        return summary

    def _process_many(self, items: List[ContentItem]) -> List[PipelineResult]:
        if self.config.max_workers <= 1 or len(items) == 1:
            return [self.process_item(item) for item in items]

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            return list(executor.map(self.process_item, items))

    def process_item(self, item: ContentItem) -> PipelineResult:
        """Attempt the one transition out of ``item.stage``.

        The item is re-read first; if it has already moved on or disappeared,
        nothing is written and a failed result carrying its actual stage is
        returned.
        """
        current = self.repository.get_item(item.id)
        if current is None or current.stage != item.stage:
            actual = current.stage if current else item.stage
            logger.info(
                f"Skipping stale item {item.id}",
                extra={"item_id": item.id, "expected": item.stage.value, "actual": actual.value},
            )
            return PipelineResult(
                success=False,
                new_state=actual,
                errors=[f"Item is no longer in stage {item.stage.value}"],
                stage_name=STAGE_NAMES.get(item.stage),
            )

        if current.stage == Stage.APPROVED:
            return PipelineResult(
                success=False, new_state=Stage.APPROVED, errors=["Item is already approved"]
            )

        stage_name = STAGE_NAMES[current.stage]
        step = self._steps[current.stage]
        attempt = 0

        while True:
            attempt += 1
            start = time.perf_counter()
            try:
                step_result = step(current)
                if not step_result.success:
                    return self._step_failed(current, step_result, stage_name, start)

                next_stage = current.stage.next()
                self.repository.advance(
                    current.id, current.stage, next_stage, step_result.payload or current.payload
                )
            except StageConflictError as e:
                duration_ms = self._elapsed_ms(start)
                self._record_metrics(stage_name, current.data_type, 0, 1, duration_ms)
                logger.info(f"Item {current.id} moved concurrently: {e}", extra={"item_id": current.id})
                actual = self.repository.get_item(current.id)
                return PipelineResult(
                    success=False,
                    new_state=actual.stage if actual else current.stage,
                    errors=[str(e)],
                    duration_ms=duration_ms,
                    stage_name=stage_name,
                )
            except Exception as e:
                duration_ms = self._elapsed_ms(start)
                self._record_metrics(stage_name, current.data_type, 0, 1, duration_ms)
                message = f"{type(e).__name__}: {str(e)[:500]}"

                if not self.retry_policy.should_retry(attempt):
                    self.repository.record_failure(
                        FailureRecord(
                            item_id=current.id,
                            data_type=current.data_type,
                            stage=current.stage,
                            error_message=message,
                        )
                    )
                    logger.error(
                        f"{stage_name} failed for {current.id} after {attempt} attempts",
                        extra={"item_id": current.id, "stage": stage_name, "error": message},
                    )
                    return PipelineResult(
                        success=False,
                        new_state=current.stage,
                        errors=[message],
                        duration_ms=duration_ms,
                        stage_name=stage_name,
                    )

                logger.warning(
                    f"{stage_name} attempt {attempt}/{self.retry_policy.max_attempts} failed for {current.id}: {message}",
                    extra={"item_id": current.id, "stage": stage_name, "attempt": attempt},
                )
                self.retry_policy.wait(attempt)
                continue

            duration_ms = self._elapsed_ms(start)
            self._record_metrics(stage_name, current.data_type, 1, 0, duration_ms)
            logger.debug(
                f"Promoted {current.id} to {next_stage.value}",
                extra={"item_id": current.id, "stage": stage_name},
            )
            return PipelineResult(
                success=True, new_state=next_stage, duration_ms=duration_ms, stage_name=stage_name
            )

    def _step_failed(
        self, item: ContentItem, step_result: StepResult, stage_name: str, start: float
    ) -> PipelineResult:
        duration_ms = self._elapsed_ms(start)
        self._record_metrics(stage_name, item.data_type, 0, 1, duration_ms)

        if not step_result.pending_review:
            self.repository.record_failure(
                FailureRecord(
                    item_id=item.id,
                    data_type=item.data_type,
                    stage=item.stage,
                    error_message="; ".join(step_result.errors),
                    deterministic=True,
                )
            )
            logger.info(
                f"{stage_name} rejected {item.id}",
                extra={"item_id": item.id, "stage": stage_name, "errors": step_result.errors},
            )

        return PipelineResult(
            success=False,
            new_state=item.stage,
            errors=step_result.errors,
            duration_ms=duration_ms,
            stage_name=stage_name,
            pending_review=step_result.pending_review,
        )

    def _record_metrics(
        self, stage_name: str, data_type: DataType, processed: int, failed: int, duration_ms: float
    ) -> None:
        self.repository.record_metrics(
            MetricsRecord(
                stage=stage_name,
                data_type=data_type,
                processed=processed,
                failed=failed,
                avg_duration_ms=round(duration_ms, 2),
            )
        )

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return (time.perf_counter() - start) * 1000
