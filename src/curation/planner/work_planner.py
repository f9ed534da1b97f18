"""Gap-analysis work planner.

Compares approved content counts against per-level targets and hands out the
single most urgent unit of generation work, guarded by a lease so concurrent
workers don't generate the same thing twice.

Gaps are checked in a fixed waterfall and the first hit wins:

1. orthography: a language with no approved orthography lessons (CRITICAL)
2. meaning: a (language, level) pair below ``meanings_per_level`` (HIGH)
3. utterance: an approved meaning below ``utterances_per_meaning`` (MEDIUM)
4. grammar: a (language, level) pair below ``grammar_rules_per_level`` (MEDIUM)
5. exercise: a (language, level) pair below ``exercises_per_level`` (LOW)

Within a check, lower CEFR levels come first, then the least-populated
candidate, then supported-language order.
"""

import logging
from datetime import UTC, datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from curation import CEFR_LEVELS, SUPPORTED_LANGUAGES
from curation.config import ContentTargets
from curation.models import ContentType, DataType, WorkItem, WorkPriority
from curation.storage.base import GapAnalysisRepository, LeaseRepository

logger = logging.getLogger(__name__)

LEASE_STALE_AFTER_SECONDS = 60 * 60
DEFAULT_GRAMMAR_CATEGORY = "general"


class WorkPlanner:
    """Produces the next WorkItem and manages its lease."""

    def __init__(
        self,
        gap_repository: GapAnalysisRepository,
        lease_repository: LeaseRepository,
        targets: Optional[ContentTargets] = None,
        languages: Sequence[str] = SUPPORTED_LANGUAGES,
        levels: Sequence[str] = CEFR_LEVELS,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
        lease_stale_after_seconds: float = LEASE_STALE_AFTER_SECONDS,
    ):
        self.gap_repository = gap_repository
        self.lease_repository = lease_repository
        self.targets = targets or ContentTargets()
        self.languages = list(languages)
        self.levels = list(levels)
        self.clock = clock
        self.lease_stale_after_seconds = lease_stale_after_seconds

    def get_next_work(self) -> Optional[WorkItem]:
        """Return the highest-priority gap as a leased WorkItem.

        Returns None when there is no gap, or when the top gap is already
        leased by another worker. A leased top gap does not fall through to a
        lower-priority one.
        """
        work_item = self.find_next_gap()
        if work_item is None:
            logger.debug("No content gaps found")
            return None

        if not self.lease_repository.try_acquire(
            work_item.id, self.clock(), self.lease_stale_after_seconds
        ):
            logger.info(
                f"Work {work_item.id} already in progress",
                extra={"work_id": work_item.id, "content_type": work_item.content_type.value},
            )
            return None

        logger.info(
            f"Planned work {work_item.id}",
            extra={
                "work_id": work_item.id,
                "content_type": work_item.content_type.value,
                "priority": work_item.priority.name,
            },
        )
        return work_item

    def mark_work_complete(self, work_id: str) -> None:
        self.lease_repository.release(work_id)

    def cleanup_stale_work(self, max_age_hours: float = 1.0) -> int:
        removed = self.lease_repository.delete_stale(self.clock(), max_age_hours * 3600)
        if removed:
            logger.info(f"Removed {removed} stale work leases")
        return removed

    def find_next_gap(self) -> Optional[WorkItem]:
        """Run the gap waterfall without touching leases."""
        for check in (
            self._find_orthography_gap,
            self._find_meaning_gap,
            self._find_utterance_gap,
            self._find_grammar_gap,
            self._find_exercise_gap,
        ):
            work_item = check()
            if work_item is not None:
                return work_item
        return None

    def _find_orthography_gap(self) -> Optional[WorkItem]:
        counts = self.gap_repository.approved_counts_by_language_level(DataType.ORTHOGRAPHY)
        covered = {language for (language, _), count in counts.items() if count > 0}

        for language in self.languages:
            if language not in covered:
                return WorkItem(
                    id=f"ortho_{language}",
                    content_type=ContentType.ORTHOGRAPHY,
                    language=language,
                    level="A1",
                    priority=WorkPriority.CRITICAL,
                )
        return None

    def _find_meaning_gap(self) -> Optional[WorkItem]:
        gap = self._lowest_level_gap(DataType.MEANING, self.targets.meanings_per_level)
        if gap is None:
            return None
        language, level, count = gap
        return WorkItem(
            id=f"meaning_{language}_{level}",
            content_type=ContentType.MEANING,
            language=language,
            level=level,
            priority=WorkPriority.HIGH,
            metadata={"current_count": count, "target": self.targets.meanings_per_level},
        )

    def _find_utterance_gap(self) -> Optional[WorkItem]:
        target = self.targets.utterances_per_meaning
        level_rank = {level: i for i, level in enumerate(self.levels)}
        language_rank = {language: i for i, language in enumerate(self.languages)}

        candidates = [
            row
            for row in self.gap_repository.approved_utterance_counts_by_meaning()
            if row.count < target and row.level in level_rank and row.language in language_rank
        ]
        if not candidates:
            return None

        row = min(
            candidates,
            key=lambda r: (level_rank[r.level], r.count, language_rank[r.language], r.meaning_id),
        )
        return WorkItem(
            id=f"utterance_{row.meaning_id}",
            content_type=ContentType.UTTERANCE,
            language=row.language,
            level=row.level,
            priority=WorkPriority.MEDIUM,
            metadata={"meaning_id": row.meaning_id, "word": row.word, "current_count": row.count},
        )

    def _find_grammar_gap(self) -> Optional[WorkItem]:
        gap = self._lowest_level_gap(DataType.RULE, self.targets.grammar_rules_per_level)
        if gap is None:
            return None
        language, level, count = gap
        category = DEFAULT_GRAMMAR_CATEGORY
        return WorkItem(
            id=f"grammar_{language}_{level}_{category}",
            content_type=ContentType.GRAMMAR,
            language=language,
            level=level,
            priority=WorkPriority.MEDIUM,
            metadata={"category": category, "current_count": count},
        )

    def _find_exercise_gap(self) -> Optional[WorkItem]:
        gap = self._lowest_level_gap(DataType.EXERCISE, self.targets.exercises_per_level)
        if gap is None:
            return None
        language, level, count = gap
        return WorkItem(
            id=f"exercise_{language}_{level}",
            content_type=ContentType.EXERCISE,
            language=language,
            level=level,
            priority=WorkPriority.LOW,
            metadata={"current_count": count},
        )

    def _lowest_level_gap(self, data_type: DataType, target: int) -> Optional[Tuple[str, str, int]]:
        """Pick the under-target (language, level) pair: lowest level, then fewest items."""
        counts: Dict[Tuple[str, str], int] = self.gap_repository.approved_counts_by_language_level(data_type)

        gaps: List[Tuple[int, int, int, str, str]] = []
        for level_idx, level in enumerate(self.levels):
            for language_idx, language in enumerate(self.languages):
                count = counts.get((language, level), 0)
                if count < target:
                    gaps.append((level_idx, count, language_idx, language, level))

        if not gaps:
            return None
        _, count, _, language, level = min(gaps)
        return language, level, count
