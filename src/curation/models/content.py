"""Work planning and content generation models."""

from datetime import UTC, datetime
from enum import Enum, IntEnum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from curation import CEFR_LEVELS, SUPPORTED_LANGUAGES


def utc_now() -> datetime:
    return datetime.now(UTC)


class ContentType(str, Enum):
    """Kinds of content a source adapter can generate."""

    ORTHOGRAPHY = "orthography"
    MEANING = "meaning"
    UTTERANCE = "utterance"
    GRAMMAR = "grammar"
    EXERCISE = "exercise"


class WorkPriority(IntEnum):
    """Planner priority; lower value means more urgent."""

    CRITICAL = 1
    HIGH = 2
    MEDIUM = 3
    LOW = 4


class WorkItem(BaseModel):
    """A single unit of generation work chosen by the planner.

    The ``id`` doubles as the lease key, so two planners computing the same gap
    produce the same id and only one of them can hold it.
    """

    id: str = Field(..., description="Deterministic work id, also the lease key")
    content_type: ContentType
    language: str
    level: Optional[str] = None
    priority: WorkPriority
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("language")
    @classmethod
    def validate_language(cls, v: str) -> str:
        if v not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {v}")
        return v

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in CEFR_LEVELS:
            raise ValueError(f"Unsupported level: {v}")
        return v


class SourceRequest(BaseModel):
    """What an adapter is asked to produce."""

    content_type: ContentType
    language: str
    level: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_work_item(cls, work_item: WorkItem) -> "SourceRequest":
        return cls(
            content_type=work_item.content_type,
            language=work_item.language,
            level=work_item.level,
            metadata=dict(work_item.metadata),
        )


class SourceMetadata(BaseModel):
    """Provenance attached to every generated payload."""

    source_name: str
    generated_at: datetime = Field(default_factory=utc_now)
    tokens: Optional[int] = None
    cost: Optional[float] = Field(default=None, ge=0, description="Estimated cost in USD")
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class GeneratedContent(BaseModel):
    """Raw adapter output, before it enters the lifecycle as a draft."""

    content_type: ContentType
    language: str
    level: Optional[str] = None
    data: Dict[str, Any]
    source_metadata: SourceMetadata
