"""Integration tests for the refinement worker loop on an in-memory store."""

import itertools
import time
from unittest.mock import MagicMock

import pytest

from curation.config import PipelineConfig, WorkerSettings
from curation.models import BatchSummary, DataType, Stage
from curation.pipeline.orchestrator import PipelineOrchestrator
from curation.planner.work_planner import WorkPlanner
from curation.services.checkpoint import CheckpointService
from curation.services.content_processor import ContentProcessor
from curation.services.worker import RefinementWorker
from curation.sources.registry import SourceRegistry
from curation.sources.rule_based import RuleBasedAdapter
from curation.utils.retry import RetryPolicy

pytestmark = pytest.mark.integration


@pytest.fixture
def waits():
    return []


@pytest.fixture
def checkpoints(store, clock):
    return CheckpointService(store, service_name="worker-test", clock=clock)


@pytest.fixture
def make_worker(store, clock, checkpoints, waits):
    def _make(planner=None, processor=None, monotonic=time.monotonic, **pipeline):
        registry = SourceRegistry()
        registry.register(RuleBasedAdapter())
        orchestrator = PipelineOrchestrator.build(
            store,
            store,
            store,
            PipelineConfig(**{"batch_size": 50, "auto_approval": True, **pipeline}),
            retry_policy=RetryPolicy(sleep=lambda _: None),
        )
        return RefinementWorker(
            planner=planner or WorkPlanner(store, store, languages=["EN"], clock=clock),
            processor=processor or ContentProcessor(registry, store),
            orchestrator=orchestrator,
            checkpoints=checkpoints,
            settings=WorkerSettings(),
            wait=waits.append,
            monotonic=monotonic,
        )

    return _make


class TestWorkerLoop:
    def test_orthography_generated_and_approved_in_one_iteration(self, store, make_worker, checkpoints):
        worker = make_worker()

        assert worker.run_once()

        approved = store.items_in_stage(Stage.APPROVED, DataType.ORTHOGRAPHY)
        assert len(approved) == 26
        assert {item.payload["language"] for item in approved} == {"EN"}
        assert store.get_lease("ortho_EN") is None
        assert checkpoints.restore_state().last_processed_id == "ortho_EN"
        assert checkpoints.restore_state().metadata["drafts_created"] == 26

    def test_manual_approval_leaves_items_queued(self, store, make_worker):
        make_worker(auto_approval=False).run_once()

        assert len(store.items_in_stage(Stage.VALIDATED)) == 26
        assert store.items_in_stage(Stage.APPROVED) == []
        assert store.review_queue == []

    def test_idle_iterations_back_off(self, make_worker, waits):
        planner = MagicMock()
        planner.get_next_work.return_value = None
        worker = make_worker(planner=planner)

        assert worker.run(max_iterations=3) == 3

        assert waits == [7.5, 11.25]
        assert worker.consecutive_empty == 3

    def test_interval_capped(self, make_worker):
        worker = make_worker()
        worker.consecutive_empty = 50
        assert worker.next_interval_ms() == 30000

        worker.consecutive_empty = 2
        assert worker.next_interval_ms() == 11250

        worker.consecutive_empty = 0
        assert worker.next_interval_ms() == 5000

    def test_heartbeat_when_idle(self, make_worker, checkpoints):
        planner = MagicMock()
        planner.get_next_work.return_value = None
        worker = make_worker(planner=planner, monotonic=itertools.count(0, 100).__next__)

        worker.run(max_iterations=3)

        state = checkpoints.restore_state()
        assert state.metadata["heartbeat"] is True
        assert state.metadata["consecutive_empty"] == 2

    def test_processor_failure_saves_error_and_releases_lease(self, store, make_worker, checkpoints):
        processor = MagicMock()
        processor.process.side_effect = RuntimeError("adapter exploded")
        worker = make_worker(processor=processor)

        assert not worker.run_once()

        state = checkpoints.restore_state()
        assert state.metadata["last_error"] == "RuntimeError: adapter exploded"
        assert state.metadata["work_id"] == "ortho_EN"
        assert store.get_lease("ortho_EN") is None

    def test_iteration_crash_does_not_stop_loop(self, make_worker, checkpoints, waits):
        planner = MagicMock()
        planner.get_next_work.side_effect = [ConnectionError("store down"), None]
        worker = make_worker(planner=planner)

        assert worker.run(max_iterations=2) == 2

        assert checkpoints.restore_state().metadata["last_error"] == "ConnectionError: store down"
        assert waits == [7.5]

    def test_stop_ends_loop(self, make_worker):
        planner = MagicMock()
        planner.get_next_work.return_value = None
        worker = make_worker(planner=planner)
        worker.stop()

        assert worker.run() == 0

    def test_pipeline_progress_counts_as_work(self, make_worker):
        planner = MagicMock()
        planner.get_next_work.return_value = None
        orchestrator = MagicMock()
        orchestrator.process_batch.return_value = BatchSummary(processed=1, succeeded=1)
        worker = make_worker(planner=planner)
        worker.orchestrator = orchestrator

        assert worker.run_once()
