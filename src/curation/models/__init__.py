"""Pydantic models shared across the curation engine."""

from curation.models.checkpoint import CheckpointState
from curation.models.content import (
    ContentType,
    GeneratedContent,
    SourceMetadata,
    SourceRequest,
    WorkItem,
    WorkPriority,
)
from curation.models.curriculum import (
    ConceptStatus,
    ConceptType,
    CurriculumEdge,
    CurriculumNode,
    CurriculumStats,
    UserConceptProgress,
)
from curation.models.pipeline import (
    BatchSummary,
    ContentItem,
    DataType,
    FailureRecord,
    GenerationCost,
    Lease,
    MetricsRecord,
    PipelineResult,
    ReviewQueueEntry,
    Stage,
    StepResult,
)

__all__ = [
    "BatchSummary",
    "CheckpointState",
    "ConceptStatus",
    "ConceptType",
    "ContentItem",
    "ContentType",
    "CurriculumEdge",
    "CurriculumNode",
    "CurriculumStats",
    "DataType",
    "FailureRecord",
    "GeneratedContent",
    "GenerationCost",
    "Lease",
    "MetricsRecord",
    "PipelineResult",
    "ReviewQueueEntry",
    "SourceMetadata",
    "SourceRequest",
    "Stage",
    "StepResult",
    "UserConceptProgress",
    "WorkItem",
    "WorkPriority",
]
