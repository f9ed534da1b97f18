"""Lifecycle models: stages, stored items, results and bookkeeping records."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from curation.models.content import ContentType, utc_now


class DataType(str, Enum):
    """Partition key of lifecycle items."""

    ORTHOGRAPHY = "orthography"
    MEANING = "meaning"
    UTTERANCE = "utterance"
    RULE = "rule"
    EXERCISE = "exercise"

    @classmethod
    def from_content_type(cls, content_type: ContentType) -> "DataType":
        if content_type == ContentType.GRAMMAR:
            return cls.RULE
        return cls(content_type.value)

    def to_content_type(self) -> ContentType:
        if self == DataType.RULE:
            return ContentType.GRAMMAR
        return ContentType(self.value)


class Stage(str, Enum):
    """Lifecycle stage. Items only ever move one step forward."""

    DRAFT = "DRAFT"
    CANDIDATE = "CANDIDATE"
    VALIDATED = "VALIDATED"
    APPROVED = "APPROVED"

    @property
    def order(self) -> int:
        return _STAGE_ORDER.index(self)

    def next(self) -> Optional["Stage"]:
        """Successor stage, or None for APPROVED."""
        idx = self.order + 1
        return _STAGE_ORDER[idx] if idx < len(_STAGE_ORDER) else None

    def is_after(self, other: "Stage") -> bool:
        return self.order > other.order


_STAGE_ORDER = [Stage.DRAFT, Stage.CANDIDATE, Stage.VALIDATED, Stage.APPROVED]


class ContentItem(BaseModel):
    """An item in one lifecycle partition."""

    id: str
    data_type: DataType
    stage: Stage = Stage.DRAFT
    payload: Dict[str, Any]
    created_at: datetime = Field(default_factory=utc_now)


class StepResult(BaseModel):
    """Deterministic outcome of one pipeline step.

    Transient failures are raised instead of returned.
    """

    success: bool
    errors: List[str] = Field(default_factory=list)
    payload: Optional[Dict[str, Any]] = Field(
        default=None, description="Payload to carry into the next stage"
    )
    pending_review: bool = False

    @classmethod
    def ok(cls, payload: Optional[Dict[str, Any]] = None) -> "StepResult":
        return cls(success=True, payload=payload)

    @classmethod
    def failed(cls, errors: List[str]) -> "StepResult":
        return cls(success=False, errors=errors)


class PipelineResult(BaseModel):
    """Outcome of one ``process_item`` call."""

    model_config = ConfigDict(frozen=True)

    success: bool
    new_state: Stage
    errors: List[str] = Field(default_factory=list)
    duration_ms: float = 0.0
    stage_name: Optional[str] = None
    pending_review: bool = False


class BatchSummary(BaseModel):
    """Counts for one ``process_batch`` run."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    by_stage: Dict[str, int] = Field(default_factory=dict)

    def add(self, stage: Stage, result: PipelineResult) -> None:
        self.processed += 1
        if result.success:
            self.succeeded += 1
        else:
            self.failed += 1
        self.by_stage[stage.value] = self.by_stage.get(stage.value, 0) + 1


class FailureRecord(BaseModel):
    """Terminal failure of an item at a stage; the item stays parked there."""

    item_id: str
    data_type: DataType
    stage: Stage
    error_message: str
    deterministic: bool = False
    recorded_at: datetime = Field(default_factory=utc_now)


class MetricsRecord(BaseModel):
    """One attempt's worth of pipeline metrics."""

    stage: str
    data_type: DataType
    processed: int
    failed: int
    avg_duration_ms: float
    recorded_at: datetime = Field(default_factory=utc_now)


class ReviewQueueEntry(BaseModel):
    """A validated item waiting for operator approval."""

    item_id: str
    data_type: DataType
    priority: int
    queued_at: datetime = Field(default_factory=utc_now)


class GenerationCost(BaseModel):
    """Spend attributed to one generation call."""

    source_name: str
    content_type: ContentType
    language: str
    tokens: int = 0
    cost_usd: float = 0.0
    recorded_at: datetime = Field(default_factory=utc_now)


class Lease(BaseModel):
    """In-progress marker guarding one work id."""

    work_id: str
    acquired_at: datetime

    def is_stale(self, now: datetime, stale_after_seconds: float) -> bool:
        return (now - self.acquired_at).total_seconds() > stale_after_seconds
