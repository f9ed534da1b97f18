"""Repository interfaces and the reference storage backends."""

from curation.storage.base import (
    ApprovalRepository,
    CheckpointRepository,
    ContentProcessorRepository,
    CurriculumRepository,
    GapAnalysisRepository,
    LeaseRepository,
    MeaningUtteranceCount,
    PipelineRepository,
    ValidationRepository,
)
from curation.storage.checkpoint_file import FileCheckpointRepository
from curation.storage.memory import InMemoryStore

__all__ = [
    "ApprovalRepository",
    "CheckpointRepository",
    "ContentProcessorRepository",
    "CurriculumRepository",
    "FileCheckpointRepository",
    "GapAnalysisRepository",
    "InMemoryStore",
    "LeaseRepository",
    "MeaningUtteranceCount",
    "PipelineRepository",
    "ValidationRepository",
]
