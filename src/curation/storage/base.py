"""Narrow repository interfaces the engine depends on.

Each component receives only the interface it needs, so a SQL backend can be
dropped in behind the same methods. ``InMemoryStore`` implements all of them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from curation.models import (
    CheckpointState,
    ContentItem,
    CurriculumNode,
    DataType,
    FailureRecord,
    GenerationCost,
    MetricsRecord,
    ReviewQueueEntry,
    Stage,
    UserConceptProgress,
)


@dataclass(frozen=True)
class MeaningUtteranceCount:
    """Approved utterance count for one approved meaning."""

    meaning_id: str
    word: str
    language: str
    level: str
    count: int


class PipelineRepository(ABC):
    """Lifecycle partitions plus failure and metrics bookkeeping."""

    @abstractmethod
    def fetch_by_stage(self, stage: Stage, limit: int) -> List[ContentItem]:
        """Oldest items in ``stage``, skipping items parked by a failure record."""

    @abstractmethod
    def get_item(self, item_id: str) -> Optional[ContentItem]:
        """Current copy of an item wherever it lives, or None."""

    @abstractmethod
    def advance(
        self,
        item_id: str,
        from_stage: Stage,
        to_stage: Stage,
        payload: Dict[str, Any],
    ) -> ContentItem:
        """Insert into ``to_stage`` and remove from ``from_stage`` atomically.

        Raises:
            StageConflictError: If the item is not currently in ``from_stage``
        """

    @abstractmethod
    def record_failure(self, failure: FailureRecord) -> None:
        ...

    @abstractmethod
    def record_metrics(self, metrics: MetricsRecord) -> None:
        ...


class ValidationRepository(ABC):
    """Lookups the quality gate needs.

    Duplicate checks only count items that are further along the lifecycle or
    were created earlier, so two simultaneous drafts of the same word don't
    reject each other.
    """

    @abstractmethod
    def check_duplicate_meaning(self, word: str, language: str, level: str, exclude_id: str) -> bool:
        ...

    @abstractmethod
    def check_duplicate_utterance(self, text: str, language: str, exclude_id: str) -> bool:
        ...

    @abstractmethod
    def check_duplicate_rule(self, title: str, language: str, level: str, exclude_id: str) -> bool:
        ...

    @abstractmethod
    def check_duplicate_orthography(self, letter: str, language: str, exclude_id: str) -> bool:
        ...

    @abstractmethod
    def meaning_exists(self, meaning_id: str) -> bool:
        ...


class ApprovalRepository(ABC):
    @abstractmethod
    def count_approved(self, data_type: DataType) -> int:
        ...

    @abstractmethod
    def queue_for_review(self, entry: ReviewQueueEntry) -> None:
        ...


class GapAnalysisRepository(ABC):
    """Aggregate reads over approved content. Each call is a single read."""

    @abstractmethod
    def approved_counts_by_language_level(self, data_type: DataType) -> Dict[Tuple[str, str], int]:
        """Approved item counts keyed by ``(language, level)``; absent pairs mean zero."""

    @abstractmethod
    def approved_utterance_counts_by_meaning(self) -> List[MeaningUtteranceCount]:
        """One entry per approved meaning, including meanings with no utterances."""


class LeaseRepository(ABC):
    @abstractmethod
    def try_acquire(self, work_id: str, now: datetime, stale_after_seconds: float) -> bool:
        """Atomically take the lease unless a live one exists; stale ones are reclaimed."""

    @abstractmethod
    def release(self, work_id: str) -> None:
        ...

    @abstractmethod
    def delete_stale(self, now: datetime, max_age_seconds: float) -> int:
        ...


class ContentProcessorRepository(ABC):
    @abstractmethod
    def insert_draft(self, data_type: DataType, payload: Dict[str, Any]) -> ContentItem:
        ...

    @abstractmethod
    def record_generation_cost(self, cost: GenerationCost) -> None:
        ...


class CheckpointRepository(ABC):
    @abstractmethod
    def save_checkpoint(self, service_name: str, state: CheckpointState) -> None:
        ...

    @abstractmethod
    def load_checkpoint(self, service_name: str) -> Optional[CheckpointState]:
        ...


class CurriculumRepository(ABC):
    @abstractmethod
    def list_nodes(self, language: str) -> List[CurriculumNode]:
        """All nodes of a language ordered by ``priority_order``."""

    @abstractmethod
    def save_node(self, node: CurriculumNode) -> None:
        ...

    @abstractmethod
    def save_nodes_checked(
        self,
        language: str,
        nodes: List[CurriculumNode],
        validator: Callable[[List[CurriculumNode]], Any],
    ) -> None:
        """Merge ``nodes`` into the language graph and store them atomically.

        ``validator`` receives the merged graph and raises to reject it. No
        other writer may touch the language between the check and the write.
        """

    @abstractmethod
    def list_progress(self, user_id: str, language: str) -> List[UserConceptProgress]:
        ...

    @abstractmethod
    def insert_progress_if_absent(self, rows: List[UserConceptProgress]) -> int:
        """Insert rows whose (user, concept, language) key is new; returns how many were inserted."""

    @abstractmethod
    def update_progress(self, row: UserConceptProgress) -> None:
        ...
