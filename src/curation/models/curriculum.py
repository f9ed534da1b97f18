"""Curriculum graph and learner progress models."""

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from curation import CURRICULUM_LEVELS


class ConceptType(str, Enum):
    ORTHOGRAPHY = "orthography"
    VOCABULARY = "vocabulary"
    GRAMMAR = "grammar"
    PRONUNCIATION = "pronunciation"


class ConceptStatus(str, Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class CurriculumNode(BaseModel):
    """A learnable concept and its prerequisites.

    A node is unlockable when every ``prerequisites_and`` entry is completed
    and, if ``prerequisites_or`` is non-empty, at least one of those is too.
    """

    concept_id: str = Field(..., min_length=1)
    language: str = Field(..., min_length=2, max_length=2)
    level: str
    concept_type: ConceptType
    title: str = ""
    description: Optional[str] = None
    estimated_duration_minutes: Optional[int] = Field(default=None, ge=0)
    priority_order: int = 0
    is_optional: bool = False
    prerequisites_and: List[str] = Field(default_factory=list)
    prerequisites_or: List[str] = Field(default_factory=list)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        if v not in CURRICULUM_LEVELS:
            raise ValueError(f"Level must be one of {CURRICULUM_LEVELS}, got {v}")
        return v

    def all_prerequisites(self) -> List[str]:
        return [*self.prerequisites_and, *self.prerequisites_or]


class CurriculumEdge(BaseModel):
    from_concept: str
    to_concept: str
    kind: Literal["and", "or"]


class UserConceptProgress(BaseModel):
    user_id: str
    concept_id: str
    language: str
    status: ConceptStatus = ConceptStatus.LOCKED
    progress_percentage: int = Field(default=0, ge=0, le=100)
    completed_at: Optional[datetime] = None
    accuracy_percentage: Optional[float] = Field(default=None, ge=0, le=100)


class CurriculumStats(BaseModel):
    user_id: str
    language: str
    total_concepts: int = 0
    completed: int = 0
    in_progress: int = 0
    unlocked: int = 0
    locked: int = 0

    @property
    def completion_percentage(self) -> float:
        if self.total_concepts == 0:
            return 0.0
        return round(self.completed / self.total_concepts * 100, 2)
