"""Unit tests for the in-memory store's atomic operations and snapshots."""

import threading

import pytest

from curation.exceptions import StageConflictError
from curation.models import (
    ConceptStatus,
    ConceptType,
    CurriculumNode,
    DataType,
    FailureRecord,
    Stage,
    UserConceptProgress,
)


class TestAdvance:
    """Test partition moves."""

    def test_moves_item_between_partitions(self, store, add_item, meaning_payload):
        item = add_item(DataType.MEANING, meaning_payload)

        moved = store.advance(item.id, Stage.DRAFT, Stage.CANDIDATE, {**meaning_payload, "word": "Casa"})

        assert moved.stage == Stage.CANDIDATE
        assert store.items_in_stage(Stage.DRAFT) == []
        assert store.get_item(item.id).payload["word"] == "Casa"
        assert store.get_item(item.id).created_at == item.created_at

    def test_conflict_when_item_not_in_expected_stage(self, store, add_item, meaning_payload):
        item = add_item(DataType.MEANING, meaning_payload, stage=Stage.CANDIDATE)

        with pytest.raises(StageConflictError) as exc_info:
            store.advance(item.id, Stage.DRAFT, Stage.CANDIDATE, meaning_payload)

        assert exc_info.value.actual_stage == "CANDIDATE"
        assert len(store.items_in_stage(Stage.CANDIDATE)) == 1

    def test_failure_parks_item_until_cleared(self, store, add_item, meaning_payload):
        item = add_item(DataType.MEANING, meaning_payload)
        store.record_failure(
            FailureRecord(item_id=item.id, data_type=DataType.MEANING, stage=Stage.DRAFT, error_message="bad")
        )

        assert store.fetch_by_stage(Stage.DRAFT, 10) == []

        store.clear_failure(item.id)
        assert [i.id for i in store.fetch_by_stage(Stage.DRAFT, 10)] == [item.id]

    def test_fetch_respects_limit_and_insertion_order(self, store, add_item, meaning_payload):
        ids = [add_item(DataType.MEANING, {**meaning_payload, "word": f"w{i}"}).id for i in range(5)]

        assert [i.id for i in store.fetch_by_stage(Stage.DRAFT, 3)] == ids[:3]


class TestDuplicates:
    """Test duplicate lookups used by validation."""

    def test_approved_item_is_duplicate(self, store, add_item, meaning_payload):
        add_item(DataType.MEANING, meaning_payload, stage=Stage.APPROVED)
        candidate = add_item(DataType.MEANING, meaning_payload, stage=Stage.CANDIDATE)

        assert store.check_duplicate_meaning("casa", "ES", "A1", candidate.id)

    def test_only_the_later_of_two_drafts_is_duplicate(self, store, add_item, meaning_payload):
        first = add_item(DataType.MEANING, meaning_payload, stage=Stage.CANDIDATE)
        second = add_item(DataType.MEANING, meaning_payload, stage=Stage.CANDIDATE)

        assert not store.check_duplicate_meaning("casa", "ES", "A1", first.id)
        assert store.check_duplicate_meaning("casa", "ES", "A1", second.id)

    def test_different_level_is_not_duplicate(self, store, add_item, meaning_payload):
        add_item(DataType.MEANING, meaning_payload, stage=Stage.APPROVED)
        candidate = add_item(DataType.MEANING, {**meaning_payload, "level": "A2"}, stage=Stage.CANDIDATE)

        assert not store.check_duplicate_meaning("casa", "ES", "A2", candidate.id)

    def test_meaning_exists_ignores_drafts(self, store, add_item, meaning_payload):
        draft = add_item(DataType.MEANING, meaning_payload)
        approved = add_item(DataType.MEANING, {**meaning_payload, "word": "sol"}, stage=Stage.APPROVED)

        assert not store.meaning_exists(draft.id)
        assert store.meaning_exists(approved.id)
        assert not store.meaning_exists("missing")


class TestLeases:
    def test_only_one_concurrent_acquirer_wins(self, store, clock):
        results = []
        barrier = threading.Barrier(8)

        def acquire():
            barrier.wait()
            results.append(store.try_acquire("meaning_EN_A1", clock(), 3600))

        threads = [threading.Thread(target=acquire) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1


class TestGapAggregates:
    def test_counts_by_language_level(self, store, add_item, meaning_payload):
        add_item(DataType.MEANING, meaning_payload, stage=Stage.APPROVED)
        add_item(DataType.MEANING, {**meaning_payload, "word": "sol"}, stage=Stage.APPROVED)
        add_item(DataType.MEANING, {**meaning_payload, "word": "mar"}, stage=Stage.CANDIDATE)

        assert store.approved_counts_by_language_level(DataType.MEANING) == {("ES", "A1"): 2}

    def test_utterance_counts_include_meanings_without_utterances(self, store, add_item, meaning_payload):
        casa = add_item(DataType.MEANING, meaning_payload, stage=Stage.APPROVED)
        sol = add_item(DataType.MEANING, {**meaning_payload, "word": "sol"}, stage=Stage.APPROVED)
        add_item(
            DataType.UTTERANCE,
            {"text": "Mi casa es grande.", "language": "ES", "meaning_id": casa.id},
            stage=Stage.APPROVED,
        )

        counts = {row.meaning_id: row.count for row in store.approved_utterance_counts_by_meaning()}

        assert counts == {casa.id: 1, sol.id: 0}



def curriculum_node(concept_id, language="EN", and_=()):
    return CurriculumNode(
        concept_id=concept_id,
        language=language,
        level="A1",
        concept_type=ConceptType.VOCABULARY,
        title=concept_id,
        prerequisites_and=list(and_),
    )


class TestCurriculum:
    def test_checked_save_sees_merged_graph(self, store):
        store.save_node(curriculum_node("a"))
        seen = []

        store.save_nodes_checked("EN", [curriculum_node("b", and_=["a"])], lambda graph: seen.extend(graph))

        assert sorted(n.concept_id for n in seen) == ["a", "b"]
        assert [n.concept_id for n in store.list_nodes("EN")] == ["a", "b"]

    def test_rejected_checked_save_writes_nothing(self, store):
        def reject(graph):
            raise ValueError("no")

        with pytest.raises(ValueError):
            store.save_nodes_checked("EN", [curriculum_node("a")], reject)

        assert store.list_nodes("EN") == []

    def test_progress_keyed_by_language(self, store):
        rows = [
            UserConceptProgress(user_id="u1", concept_id="alphabet", language=language)
            for language in ["EN", "ES"]
        ]

        assert store.insert_progress_if_absent(rows) == 2

        store.update_progress(rows[1].model_copy(update={"status": ConceptStatus.COMPLETED}))

        assert store.list_progress("u1", "EN")[0].status == ConceptStatus.LOCKED
        assert store.list_progress("u1", "ES")[0].status == ConceptStatus.COMPLETED


class TestSnapshots:
    def test_save_and_load(self, store, add_item, meaning_payload, clock, tmp_path):
        item = add_item(DataType.MEANING, meaning_payload, stage=Stage.VALIDATED)
        store.try_acquire("ortho_EN", clock(), 3600)
        path = tmp_path / "store.json"

        store.save(path)
        restored = type(store).load(path)

        assert restored.get_item(item.id).stage == Stage.VALIDATED
        assert restored.get_lease("ortho_EN") is not None

    def test_load_missing_file_starts_empty(self, store, tmp_path):
        restored = type(store).load(tmp_path / "missing.json")
        assert restored.items_in_stage(Stage.DRAFT) == []
