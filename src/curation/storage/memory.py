"""Thread-safe in-memory implementation of every repository interface.

Used by the tests and by the CLI worker, which snapshots it to a JSON file
between runs. All mutations happen under one re-entrant lock, which is what
makes ``advance`` and ``try_acquire`` atomic.
"""

import logging
import threading
import uuid
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from curation.exceptions import StageConflictError
from curation.models import (
    CheckpointState,
    ContentItem,
    CurriculumNode,
    DataType,
    FailureRecord,
    GenerationCost,
    Lease,
    MetricsRecord,
    ReviewQueueEntry,
    Stage,
    UserConceptProgress,
)
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
from curation.utils.file_io import read_json, write_json

logger = logging.getLogger(__name__)

# Payload fields that identify a duplicate, per data type
_DUPLICATE_KEYS: Dict[DataType, Tuple[str, ...]] = {
    DataType.MEANING: ("word", "language", "level"),
    DataType.UTTERANCE: ("text", "language"),
    DataType.RULE: ("title", "language", "level"),
    DataType.ORTHOGRAPHY: ("letter", "language"),
}


class InMemoryStore(
    PipelineRepository,
    ValidationRepository,
    ApprovalRepository,
    GapAnalysisRepository,
    LeaseRepository,
    ContentProcessorRepository,
    CheckpointRepository,
    CurriculumRepository,
):
    """All engine storage in process memory."""

    def __init__(self):
        self._lock = threading.RLock()
        self._partitions: Dict[Stage, Dict[str, ContentItem]] = {stage: {} for stage in Stage}
        self._sequence: Dict[str, int] = {}
        self._next_sequence = 0
        self._parked: Dict[str, Stage] = {}

        self.failures: List[FailureRecord] = []
        self.metrics: List[MetricsRecord] = []
        self.review_queue: List[ReviewQueueEntry] = []
        self.generation_costs: List[GenerationCost] = []

        self._leases: Dict[str, Lease] = {}
        self._checkpoints: Dict[str, CheckpointState] = {}
        self._nodes: Dict[str, Dict[str, CurriculumNode]] = {}
        self._progress: Dict[Tuple[str, str, str], UserConceptProgress] = {}

    # ------------------------------------------------------------------
    # Content items
    # ------------------------------------------------------------------

    def add_item(self, item: ContentItem) -> ContentItem:
        """Place an item directly into its stage's partition (seeding and tests)."""
        with self._lock:
            for partition in self._partitions.values():
                partition.pop(item.id, None)
            self._partitions[item.stage][item.id] = item
            if item.id not in self._sequence:
                self._sequence[item.id] = self._next_sequence
                self._next_sequence += 1
            return item

    def insert_draft(self, data_type: DataType, payload: Dict[str, Any]) -> ContentItem:
        item = ContentItem(id=str(uuid.uuid4()), data_type=data_type, stage=Stage.DRAFT, payload=payload)
        return self.add_item(item)

    def items_in_stage(self, stage: Stage, data_type: Optional[DataType] = None) -> List[ContentItem]:
        with self._lock:
            items = list(self._partitions[stage].values())
        if data_type is not None:
            items = [item for item in items if item.data_type == data_type]
        return sorted(items, key=lambda item: self._sequence.get(item.id, 0))

    def fetch_by_stage(self, stage: Stage, limit: int) -> List[ContentItem]:
        with self._lock:
            items = [
                item
                for item in self.items_in_stage(stage)
                if self._parked.get(item.id) != stage
            ]
        return items[:limit]

    def get_item(self, item_id: str) -> Optional[ContentItem]:
        with self._lock:
            for partition in self._partitions.values():
                if item_id in partition:
                    return partition[item_id]
        return None

    def advance(
        self,
        item_id: str,
        from_stage: Stage,
        to_stage: Stage,
        payload: Dict[str, Any],
    ) -> ContentItem:
        with self._lock:
            current = self._partitions[from_stage].get(item_id)
            if current is None:
                found = self.get_item(item_id)
                raise StageConflictError(item_id, from_stage.value, found.stage.value if found else None)

            moved = current.model_copy(update={"stage": to_stage, "payload": payload})
            self._partitions[to_stage][item_id] = moved
            del self._partitions[from_stage][item_id]
            self._parked.pop(item_id, None)
            return moved

    def record_failure(self, failure: FailureRecord) -> None:
        with self._lock:
            self.failures.append(failure)
            self._parked[failure.item_id] = failure.stage

    def clear_failure(self, item_id: str) -> None:
        """Release a parked item so the next batch picks it up again."""
        with self._lock:
            self._parked.pop(item_id, None)

    def record_metrics(self, metrics: MetricsRecord) -> None:
        with self._lock:
            self.metrics.append(metrics)

    # ------------------------------------------------------------------
    # Validation lookups
    # ------------------------------------------------------------------

    def _has_duplicate(self, data_type: DataType, key: Tuple[Any, ...], exclude_id: str) -> bool:
        fields = _DUPLICATE_KEYS[data_type]
        with self._lock:
            own_sequence = self._sequence.get(exclude_id)
            for stage, partition in self._partitions.items():
                for item in partition.values():
                    if item.id == exclude_id or item.data_type != data_type:
                        continue
                    if tuple(item.payload.get(f) for f in fields) != key:
                        continue
                    if stage in (Stage.VALIDATED, Stage.APPROVED):
                        return True
                    if own_sequence is None or self._sequence.get(item.id, 0) < own_sequence:
                        return True
        return False

    def check_duplicate_meaning(self, word: str, language: str, level: str, exclude_id: str) -> bool:
        return self._has_duplicate(DataType.MEANING, (word, language, level), exclude_id)

    def check_duplicate_utterance(self, text: str, language: str, exclude_id: str) -> bool:
        return self._has_duplicate(DataType.UTTERANCE, (text, language), exclude_id)

    def check_duplicate_rule(self, title: str, language: str, level: str, exclude_id: str) -> bool:
        return self._has_duplicate(DataType.RULE, (title, language, level), exclude_id)

    def check_duplicate_orthography(self, letter: str, language: str, exclude_id: str) -> bool:
        return self._has_duplicate(DataType.ORTHOGRAPHY, (letter, language), exclude_id)

    def meaning_exists(self, meaning_id: str) -> bool:
        item = self.get_item(meaning_id)
        return (
            item is not None
            and item.data_type == DataType.MEANING
            and item.stage != Stage.DRAFT
        )

    # ------------------------------------------------------------------
    # Approval
    # ------------------------------------------------------------------

    def count_approved(self, data_type: DataType) -> int:
        return len(self.items_in_stage(Stage.APPROVED, data_type))

    def queue_for_review(self, entry: ReviewQueueEntry) -> None:
        with self._lock:
            if any(existing.item_id == entry.item_id for existing in self.review_queue):
                return
            self.review_queue.append(entry)

    # ------------------------------------------------------------------
    # Gap analysis
    # ------------------------------------------------------------------

    def approved_counts_by_language_level(self, data_type: DataType) -> Dict[Tuple[str, str], int]:
        counts: Counter = Counter()
        for item in self.items_in_stage(Stage.APPROVED, data_type):
            counts[(item.payload.get("language"), item.payload.get("level"))] += 1
        return dict(counts)

    def approved_utterance_counts_by_meaning(self) -> List[MeaningUtteranceCount]:
        with self._lock:
            meanings = self.items_in_stage(Stage.APPROVED, DataType.MEANING)
            per_meaning = Counter(
                item.payload.get("meaning_id")
                for item in self.items_in_stage(Stage.APPROVED, DataType.UTTERANCE)
            )
        return [
            MeaningUtteranceCount(
                meaning_id=meaning.id,
                word=str(meaning.payload.get("word", "")),
                language=str(meaning.payload.get("language")),
                level=str(meaning.payload.get("level")),
                count=per_meaning.get(meaning.id, 0),
            )
            for meaning in meanings
        ]

    # ------------------------------------------------------------------
    # Leases
    # ------------------------------------------------------------------

    def try_acquire(self, work_id: str, now: datetime, stale_after_seconds: float) -> bool:
        with self._lock:
            existing = self._leases.get(work_id)
            if existing is not None and not existing.is_stale(now, stale_after_seconds):
                return False
            if existing is not None:
                logger.info(f"Reclaiming stale lease {work_id}", extra={"acquired_at": existing.acquired_at.isoformat()})
            self._leases[work_id] = Lease(work_id=work_id, acquired_at=now)
            return True

    def release(self, work_id: str) -> None:
        with self._lock:
            self._leases.pop(work_id, None)

    def delete_stale(self, now: datetime, max_age_seconds: float) -> int:
        with self._lock:
            stale = [
                work_id
                for work_id, lease in self._leases.items()
                if lease.is_stale(now, max_age_seconds)
            ]
            for work_id in stale:
                del self._leases[work_id]
        return len(stale)

    def get_lease(self, work_id: str) -> Optional[Lease]:
        with self._lock:
            return self._leases.get(work_id)

    # ------------------------------------------------------------------
    # Generation cost
    # ------------------------------------------------------------------

    def record_generation_cost(self, cost: GenerationCost) -> None:
        with self._lock:
            self.generation_costs.append(cost)

    # ------------------------------------------------------------------
    # Checkpoints
    # ------------------------------------------------------------------

    def save_checkpoint(self, service_name: str, state: CheckpointState) -> None:
        with self._lock:
            self._checkpoints[service_name] = state

    def load_checkpoint(self, service_name: str) -> Optional[CheckpointState]:
        with self._lock:
            return self._checkpoints.get(service_name)

    # ------------------------------------------------------------------
    # Curriculum
    # ------------------------------------------------------------------

    def list_nodes(self, language: str) -> List[CurriculumNode]:
        with self._lock:
            nodes = list(self._nodes.get(language, {}).values())
        return sorted(nodes, key=lambda node: (node.priority_order, node.concept_id))

    def save_node(self, node: CurriculumNode) -> None:
        with self._lock:
            self._nodes.setdefault(node.language, {})[node.concept_id] = node

    def save_nodes_checked(
        self,
        language: str,
        nodes: List[CurriculumNode],
        validator: Callable[[List[CurriculumNode]], Any],
    ) -> None:
        with self._lock:
            merged = {node.concept_id: node for node in self.list_nodes(language)}
            merged.update((node.concept_id, node) for node in nodes)
            validator(list(merged.values()))
            graph = self._nodes.setdefault(language, {})
            for node in nodes:
                graph[node.concept_id] = node

    def list_progress(self, user_id: str, language: str) -> List[UserConceptProgress]:
        with self._lock:
            return [
                row
                for (row_user, _, row_language), row in self._progress.items()
                if row_user == user_id and row_language == language
            ]

    def insert_progress_if_absent(self, rows: List[UserConceptProgress]) -> int:
        inserted = 0
        with self._lock:
            for row in rows:
                key = (row.user_id, row.concept_id, row.language)
                if key not in self._progress:
                    self._progress[key] = row
                    inserted += 1
        return inserted

    def update_progress(self, row: UserConceptProgress) -> None:
        with self._lock:
            self._progress[(row.user_id, row.concept_id, row.language)] = row

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize content, leases, checkpoints and curriculum state."""
        with self._lock:
            items = [
                item.model_dump(mode="json")
                for stage in Stage
                for item in self.items_in_stage(stage)
            ]
            return {
                "items": items,
                "parked": {item_id: stage.value for item_id, stage in self._parked.items()},
                "failures": [f.model_dump(mode="json") for f in self.failures],
                "review_queue": [e.model_dump(mode="json") for e in self.review_queue],
                "generation_costs": [c.model_dump(mode="json") for c in self.generation_costs],
                "leases": [lease.model_dump(mode="json") for lease in self._leases.values()],
                "checkpoints": {
                    name: state.model_dump(mode="json") for name, state in self._checkpoints.items()
                },
                "nodes": [
                    node.model_dump(mode="json")
                    for language in self._nodes
                    for node in self.list_nodes(language)
                ],
                "progress": [row.model_dump(mode="json") for row in self._progress.values()],
            }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryStore":
        store = cls()
        for raw in data.get("items", []):
            store.add_item(ContentItem.model_validate(raw))
        store._parked = {item_id: Stage(stage) for item_id, stage in data.get("parked", {}).items()}
        store.failures = [FailureRecord.model_validate(f) for f in data.get("failures", [])]
        store.review_queue = [ReviewQueueEntry.model_validate(e) for e in data.get("review_queue", [])]
        store.generation_costs = [GenerationCost.model_validate(c) for c in data.get("generation_costs", [])]
        for raw in data.get("leases", []):
            lease = Lease.model_validate(raw)
            store._leases[lease.work_id] = lease
        for name, raw in data.get("checkpoints", {}).items():
            store._checkpoints[name] = CheckpointState.model_validate(raw)
        for raw in data.get("nodes", []):
            store.save_node(CurriculumNode.model_validate(raw))
        store.insert_progress_if_absent(
            [UserConceptProgress.model_validate(row) for row in data.get("progress", [])]
        )
        return store

    def save(self, file_path: Union[str, Path]) -> None:
        write_json(self.to_dict(), file_path)
        logger.info(f"Saved store snapshot to {file_path}")

    @classmethod
    def load(cls, file_path: Union[str, Path]) -> "InMemoryStore":
        """Load a snapshot, or start empty if the file doesn't exist yet."""
        file_path = Path(file_path)
        if not file_path.exists():
            logger.info(f"No store snapshot at {file_path}, starting empty")
            return cls()
        store = cls.from_dict(read_json(file_path))
        logger.info(f"Loaded store snapshot from {file_path}")
        return store
