"""Unit tests for the gap-analysis work planner."""

import pytest

from curation import CEFR_LEVELS, SUPPORTED_LANGUAGES
from curation.config import ContentTargets
from curation.models import ContentType, DataType, WorkPriority
from curation.planner.work_planner import WorkPlanner
from curation.storage.base import GapAnalysisRepository, MeaningUtteranceCount


class FakeGapRepository(GapAnalysisRepository):
    """Scripted aggregate counts; every call is counted."""

    def __init__(self):
        self.counts = {data_type: {} for data_type in DataType}
        self.utterances = []
        self.calls = 0

    def fill(self, data_type, value):
        self.counts[data_type] = {
            (language, level): value for language in SUPPORTED_LANGUAGES for level in CEFR_LEVELS
        }

    def approved_counts_by_language_level(self, data_type):
        self.calls += 1
        return dict(self.counts[data_type])

    def approved_utterance_counts_by_meaning(self):
        self.calls += 1
        return list(self.utterances)


@pytest.fixture
def targets():
    return ContentTargets(
        meanings_per_level=100, utterances_per_meaning=3, grammar_rules_per_level=20, exercises_per_level=50
    )


@pytest.fixture
def gaps(targets):
    """Repository where every type is at target, so no gap exists."""
    repo = FakeGapRepository()
    repo.fill(DataType.ORTHOGRAPHY, 26)
    repo.fill(DataType.MEANING, targets.meanings_per_level)
    repo.fill(DataType.RULE, targets.grammar_rules_per_level)
    repo.fill(DataType.EXERCISE, targets.exercises_per_level)
    return repo


@pytest.fixture
def planner(gaps, store, clock, targets):
    return WorkPlanner(gaps, store, targets=targets, clock=clock)


class TestGapWaterfall:
    """Test which gap wins."""

    def test_no_gaps_returns_none(self, planner):
        assert planner.get_next_work() is None

    def test_orthography_gap_is_critical(self, planner, gaps):
        gaps.counts[DataType.ORTHOGRAPHY].pop(("IT", "A1"))

        work = planner.get_next_work()

        assert work.id == "ortho_IT"
        assert work.content_type == ContentType.ORTHOGRAPHY
        assert work.priority == WorkPriority.CRITICAL

    def test_orthography_gap_blocks_every_other_type(self, planner, gaps):
        gaps.counts = {data_type: {} for data_type in DataType}

        work = planner.get_next_work()

        assert work.content_type == ContentType.ORTHOGRAPHY
        assert work.id == "ortho_EN"

    def test_meaning_gap_for_underfilled_pair(self, planner, gaps):
        """EN A1 at 40 of 100 with everything else full plans EN A1 meanings."""
        gaps.counts[DataType.MEANING][("EN", "A1")] = 40

        work = planner.get_next_work()

        assert work.id == "meaning_EN_A1"
        assert work.content_type == ContentType.MEANING
        assert (work.language, work.level) == ("EN", "A1")
        assert work.priority == WorkPriority.HIGH

    def test_meaning_gap_prefers_lower_level(self, planner, gaps):
        gaps.counts[DataType.MEANING][("EN", "A2")] = 0
        gaps.counts[DataType.MEANING][("SL", "A1")] = 99

        assert planner.get_next_work().id == "meaning_SL_A1"

    def test_meaning_gap_prefers_least_populated_within_level(self, planner, gaps):
        gaps.counts[DataType.MEANING][("ES", "B1")] = 50
        gaps.counts[DataType.MEANING][("PT", "B1")] = 10

        assert planner.get_next_work().id == "meaning_PT_B1"

    def test_missing_pair_counts_as_zero(self, planner, gaps):
        gaps.counts[DataType.MEANING].pop(("SL", "C2"))

        assert planner.get_next_work().id == "meaning_SL_C2"

    def test_utterance_gap(self, planner, gaps):
        gaps.utterances = [
            MeaningUtteranceCount(meaning_id="m-b1", word="cielo", language="ES", level="B1", count=0),
            MeaningUtteranceCount(meaning_id="m-a1-full", word="sol", language="ES", level="A1", count=3),
            MeaningUtteranceCount(meaning_id="m-a1", word="casa", language="ES", level="A1", count=2),
        ]

        work = planner.get_next_work()

        assert work.id == "utterance_m-a1"
        assert work.priority == WorkPriority.MEDIUM
        assert work.metadata["meaning_id"] == "m-a1"
        assert work.metadata["word"] == "casa"

    def test_grammar_gap(self, planner, gaps):
        gaps.counts[DataType.RULE][("IT", "A2")] = 5

        work = planner.get_next_work()

        assert work.id == "grammar_IT_A2_general"
        assert work.content_type == ContentType.GRAMMAR
        assert work.metadata["category"] == "general"

    def test_exercise_gap_is_low_priority(self, planner, gaps):
        gaps.counts[DataType.EXERCISE][("EN", "C1")] = 49

        work = planner.get_next_work()

        assert work.id == "exercise_EN_C1"
        assert work.priority == WorkPriority.LOW

    def test_stops_at_first_gap(self, planner, gaps):
        """Lower-priority checks are not run once a gap is found."""
        gaps.counts[DataType.MEANING][("EN", "A1")] = 0

        planner.get_next_work()

        assert gaps.calls == 2


class TestWorkLease:
    """Test lease acquisition and release."""

    def test_leased_work_not_handed_out_twice(self, planner, gaps):
        gaps.counts[DataType.MEANING][("EN", "A1")] = 0

        assert planner.get_next_work().id == "meaning_EN_A1"
        assert planner.get_next_work() is None

    def test_completed_work_can_be_planned_again(self, planner, gaps):
        gaps.counts[DataType.MEANING][("EN", "A1")] = 0

        work = planner.get_next_work()
        planner.mark_work_complete(work.id)

        assert planner.get_next_work().id == work.id

    def test_stale_lease_is_reclaimed(self, planner, gaps, clock):
        gaps.counts[DataType.MEANING][("EN", "A1")] = 0
        planner.get_next_work()

        clock.advance(minutes=59)
        assert planner.get_next_work() is None

        clock.advance(minutes=2)
        assert planner.get_next_work().id == "meaning_EN_A1"

    def test_cleanup_stale_work(self, planner, gaps, store, clock):
        gaps.counts[DataType.MEANING][("EN", "A1")] = 0
        planner.get_next_work()
        clock.advance(hours=2)

        assert planner.cleanup_stale_work(max_age_hours=1) == 1
        assert store.get_lease("meaning_EN_A1") is None

    def test_cleanup_keeps_live_leases(self, planner, gaps, store):
        gaps.counts[DataType.MEANING][("EN", "A1")] = 0
        planner.get_next_work()

        assert planner.cleanup_stale_work() == 0
        assert store.get_lease("meaning_EN_A1") is not None
