"""Curriculum prerequisite graph.

Each language has a DAG of concepts. A concept unlocks once every AND
prerequisite is completed and, if it has OR prerequisites, at least one of
those is. Learner progress rows move locked -> unlocked -> in_progress ->
completed; this module owns the locked -> unlocked flip.
"""

import logging
import threading
from collections import OrderedDict, deque
from datetime import UTC, datetime
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from curation.exceptions import (
    CurriculumCycleError,
    DuplicateConceptError,
    UnknownPrerequisiteError,
)
from curation.models import (
    ConceptStatus,
    CurriculumEdge,
    CurriculumNode,
    CurriculumStats,
    UserConceptProgress,
)
from curation.storage.base import CurriculumRepository

logger = logging.getLogger(__name__)

DEFAULT_MAX_CACHED_LANGUAGES = 5


def is_concept_unlocked(node: CurriculumNode, completed: Set[str]) -> bool:
    """AND prerequisites all completed, and OR prerequisites empty or any completed."""
    if not all(prereq in completed for prereq in node.prerequisites_and):
        return False
    if not node.prerequisites_or:
        return True
    return any(prereq in completed for prereq in node.prerequisites_or)


def topological_sort(nodes: List[CurriculumNode], language: str) -> List[str]:
    """Order concept ids so every prerequisite precedes its dependents.

    Kahn's algorithm over the union of AND and OR edges. Ties resolve in the
    order ``nodes`` are given.

    Raises:
        DuplicateConceptError: If two nodes share a concept id
        UnknownPrerequisiteError: If a node names a concept not in ``nodes``
        CurriculumCycleError: If the edges contain a cycle, self-loops included
    """
    known: Set[str] = set()
    for node in nodes:
        if node.concept_id in known:
            raise DuplicateConceptError(language, node.concept_id)
        known.add(node.concept_id)

    in_degree: Dict[str, int] = {node.concept_id: 0 for node in nodes}
    dependents: Dict[str, List[str]] = {node.concept_id: [] for node in nodes}

    for node in nodes:
        for prereq in dict.fromkeys(node.all_prerequisites()):
            if prereq not in known:
                raise UnknownPrerequisiteError(language, node.concept_id, prereq)
            dependents[prereq].append(node.concept_id)
            in_degree[node.concept_id] += 1

    queue = deque(concept_id for concept_id, degree in in_degree.items() if degree == 0)
    order: List[str] = []

    while queue:
        concept_id = queue.popleft()
        order.append(concept_id)
        for dependent in dependents[concept_id]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    if len(order) < len(nodes):
        unresolved = [concept_id for concept_id, degree in in_degree.items() if degree > 0]
        raise CurriculumCycleError(language, unresolved)

    return order


class CurriculumGraphService:
    """Graph queries and learner progress transitions for one store.

    Graphs are cached per language with no TTL; call ``clear_cache`` after
    editing nodes out of band. ``save_node`` invalidates automatically.
    """

    def __init__(
        self,
        repository: CurriculumRepository,
        max_cached_languages: int = DEFAULT_MAX_CACHED_LANGUAGES,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        self.repository = repository
        self.max_cached_languages = max_cached_languages
        self.clock = clock
        self._cache: "OrderedDict[str, List[CurriculumNode]]" = OrderedDict()
        self._cache_lock = threading.Lock()
        # Bumped on every invalidation; a load only caches if its generation is unchanged.
        self._generations: Dict[str, int] = {}
        self._epoch = 0

    # ------------------------------------------------------------------
    # Graph
    # ------------------------------------------------------------------

    def get_graph_for_language(self, language: str) -> List[CurriculumNode]:
        """All nodes of ``language`` ordered by ``priority_order``."""
        with self._cache_lock:
            if language in self._cache:
                self._cache.move_to_end(language)
                return list(self._cache[language])
            generation = self._generation(language)

        nodes = self.repository.list_nodes(language)

        with self._cache_lock:
            if self._generation(language) != generation:
                logger.debug(f"Curriculum graph for {language} changed during load, not caching")
                return list(nodes)
            self._cache[language] = nodes
            self._cache.move_to_end(language)
            while len(self._cache) > self.max_cached_languages:
                evicted, _ = self._cache.popitem(last=False)
                logger.debug(f"Evicted curriculum graph cache for {evicted}")
        return list(nodes)

    def _generation(self, language: str) -> Tuple[int, int]:
        return self._epoch, self._generations.get(language, 0)

    def clear_cache(self, language: Optional[str] = None) -> None:
        with self._cache_lock:
            if language is None:
                self._cache.clear()
                self._epoch += 1
            else:
                self._cache.pop(language, None)
                self._generations[language] = self._generations.get(language, 0) + 1

    def get_topological_order(self, language: str) -> List[str]:
        return topological_sort(self.get_graph_for_language(language), language)

    def get_graph_edges(self, language: str) -> List[CurriculumEdge]:
        edges = []
        for node in self.get_graph_for_language(language):
            edges.extend(
                CurriculumEdge(from_concept=p, to_concept=node.concept_id, kind="and")
                for p in node.prerequisites_and
            )
            edges.extend(
                CurriculumEdge(from_concept=p, to_concept=node.concept_id, kind="or")
                for p in node.prerequisites_or
            )
        return edges

    def save_node(self, node: CurriculumNode) -> None:
        """Add or replace a node, refusing writes that break the DAG.

        Raises:
            UnknownPrerequisiteError: If a prerequisite is not in the graph
            CurriculumCycleError: If the write would introduce a cycle
        """
        self.repository.save_nodes_checked(
            node.language, [node], lambda graph: topological_sort(graph, node.language)
        )
        self.clear_cache(node.language)
        logger.info(f"Saved curriculum node {node.concept_id} ({node.language})")

    def save_nodes(self, nodes: Iterable[CurriculumNode]) -> int:
        """Validate a whole batch as one graph per language, then write it.

        Every language is checked before any is written, and each write
        re-checks its language atomically against the stored graph.
        """
        by_language: Dict[str, Dict[str, CurriculumNode]] = {}
        for node in nodes:
            by_language.setdefault(node.language, {})[node.concept_id] = node

        for language, incoming in by_language.items():
            merged = {n.concept_id: n for n in self.repository.list_nodes(language)}
            merged.update(incoming)
            topological_sort(list(merged.values()), language)

        count = 0
        for language, incoming in by_language.items():
            self.repository.save_nodes_checked(
                language,
                list(incoming.values()),
                lambda graph, language=language: topological_sort(graph, language),
            )
            count += len(incoming)
            self.clear_cache(language)
        return count

    # ------------------------------------------------------------------
    # Learner progress
    # ------------------------------------------------------------------

    def get_completed_concepts(self, user_id: str, language: str) -> Set[str]:
        return {
            row.concept_id
            for row in self.repository.list_progress(user_id, language)
            if row.status == ConceptStatus.COMPLETED
        }

    def is_concept_unlocked(self, node: CurriculumNode, completed: Set[str]) -> bool:
        return is_concept_unlocked(node, completed)

    def get_available_concepts(self, user_id: str, language: str) -> List[CurriculumNode]:
        """Unlockable, not-yet-completed concepts by ascending ``priority_order``."""
        completed = self.get_completed_concepts(user_id, language)
        available = [
            node
            for node in self.get_graph_for_language(language)
            if node.concept_id not in completed and is_concept_unlocked(node, completed)
        ]
        return sorted(available, key=lambda node: node.priority_order)

    def get_next_concept(self, user_id: str, language: str) -> Optional[CurriculumNode]:
        available = self.get_available_concepts(user_id, language)
        return available[0] if available else None

    def initialize_user_progress(self, user_id: str, language: str) -> List[str]:
        """Create a locked row per concept (existing rows untouched), then unlock.

        Returns:
            Concept ids that were unlocked
        """
        rows = [
            UserConceptProgress(user_id=user_id, concept_id=node.concept_id, language=language)
            for node in self.get_graph_for_language(language)
        ]
        inserted = self.repository.insert_progress_if_absent(rows)
        logger.info(
            f"Initialized {inserted} progress rows for user {user_id} ({language})",
            extra={"user_id": user_id, "language": language},
        )
        return self.unlock_available_concepts(user_id, language)

    def unlock_available_concepts(self, user_id: str, language: str) -> List[str]:
        """Flip locked rows whose prerequisites are now met to unlocked.

        Returns:
            Concept ids flipped by this call
        """
        progress = {row.concept_id: row for row in self.repository.list_progress(user_id, language)}
        completed = {cid for cid, row in progress.items() if row.status == ConceptStatus.COMPLETED}

        unlocked = []
        for node in self.get_graph_for_language(language):
            row = progress.get(node.concept_id)
            if row is None or row.status != ConceptStatus.LOCKED:
                continue
            if is_concept_unlocked(node, completed):
                self.repository.update_progress(row.model_copy(update={"status": ConceptStatus.UNLOCKED}))
                unlocked.append(node.concept_id)

        if unlocked:
            logger.info(
                f"Unlocked {len(unlocked)} concepts for user {user_id}",
                extra={"user_id": user_id, "language": language, "concepts": unlocked},
            )
        return unlocked

    def complete_concept(
        self,
        user_id: str,
        concept_id: str,
        language: str,
        accuracy_percentage: Optional[float] = None,
    ) -> List[str]:
        """Mark a concept completed and unlock whatever that enables.

        Returns:
            Concept ids newly unlocked
        """
        if not any(node.concept_id == concept_id for node in self.get_graph_for_language(language)):
            raise KeyError(f"Unknown concept {concept_id} for language {language}")

        rows = {row.concept_id: row for row in self.repository.list_progress(user_id, language)}
        row = rows.get(concept_id) or UserConceptProgress(
            user_id=user_id, concept_id=concept_id, language=language
        )
        self.repository.update_progress(
            row.model_copy(
                update={
                    "status": ConceptStatus.COMPLETED,
                    "progress_percentage": 100,
                    "completed_at": self.clock(),
                    "accuracy_percentage": accuracy_percentage,
                }
            )
        )
        return self.unlock_available_concepts(user_id, language)

    def get_user_stats(self, user_id: str, language: str) -> CurriculumStats:
        progress = {row.concept_id: row.status for row in self.repository.list_progress(user_id, language)}
        stats = CurriculumStats(user_id=user_id, language=language)

        for node in self.get_graph_for_language(language):
            stats.total_concepts += 1
            status = progress.get(node.concept_id, ConceptStatus.LOCKED)
            if status == ConceptStatus.COMPLETED:
                stats.completed += 1
            elif status == ConceptStatus.IN_PROGRESS:
                stats.in_progress += 1
            elif status == ConceptStatus.UNLOCKED:
                stats.unlocked += 1
            else:
                stats.locked += 1
        return stats
