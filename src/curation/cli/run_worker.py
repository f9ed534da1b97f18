"""CLI for the refinement worker.

Usage:
    python -m curation.cli.run_worker \
        --store data/store.json \
        --checkpoint-file data/checkpoints.json \
        --auto-approval \
        --max-iterations 100

    # Only push existing drafts through the pipeline, no generation
    python -m curation.cli.run_worker --store data/store.json --drain

Features:
- Rule-based orthography generation always; LLM generation when OPENAI_API_KEY is set
- Optional LLM quality judge in the validation gate (--judge)
- Graceful shutdown on SIGINT/SIGTERM; the store snapshot is saved on exit
- Progress bar with tqdm in --drain mode
"""

import argparse
import logging
import os
import signal
import sys

from tqdm import tqdm

from curation import config
from curation.config import ContentTargets, PipelineConfig, WorkerSettings
from curation.pipeline.orchestrator import PipelineOrchestrator
from curation.planner.work_planner import WorkPlanner
from curation.services.checkpoint import CheckpointService
from curation.services.content_processor import ContentProcessor
from curation.services.worker import RefinementWorker
from curation.sources.llm_adapter import LLMSourceAdapter
from curation.sources.registry import SourceRegistry
from curation.sources.rule_based import RuleBasedAdapter
from curation.storage.checkpoint_file import FileCheckpointRepository
from curation.storage.memory import InMemoryStore
from curation.utils.llm_client import LLMClient
from curation.utils.logging_config import configure_logging
from curation.validators.llm_judge import LLMQualityJudge

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Plan, generate and curate language learning content",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--store", default=config.STORE_PATH, help="JSON snapshot of the content store")
    parser.add_argument(
        "--checkpoint-file", default=config.CHECKPOINT_PATH, help="JSON file for worker checkpoints"
    )
    parser.add_argument("--auto-approval", action="store_true", help="Approve validated items automatically")
    parser.add_argument("--batch-size", type=int, help="Items per stage per batch")
    parser.add_argument("--retry-attempts", type=int, help="Attempts per pipeline transition")
    parser.add_argument("--workers", type=int, help="Threads used to process a batch")
    parser.add_argument("--max-iterations", type=int, help="Stop after this many loop iterations")
    parser.add_argument("--once", action="store_true", help="Run a single iteration and exit")
    parser.add_argument("--drain", action="store_true", help="Only run pipeline batches until nothing moves")
    parser.add_argument("--judge", action="store_true", help="Add the LLM quality judge to validation")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Logging level (default: INFO)")
    parser.add_argument("--log-file", help="Optional log file path")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    return parser.parse_args(argv)


def build_pipeline_config(args: argparse.Namespace) -> PipelineConfig:
    pipeline_config = PipelineConfig.from_env()
    overrides = {
        "auto_approval": args.auto_approval or pipeline_config.auto_approval,
        "batch_size": args.batch_size,
        "retry_attempts": args.retry_attempts,
        "max_workers": args.workers,
    }
    return pipeline_config.model_copy(update={k: v for k, v in overrides.items() if v is not None})


def build_worker(store: InMemoryStore, args: argparse.Namespace) -> RefinementWorker:
    """Wire planner, registry, processor, orchestrator and checkpoints."""
    registry = SourceRegistry()
    registry.register(RuleBasedAdapter())

    llm_client = None
    if os.getenv("OPENAI_API_KEY"):
        llm_client = LLMClient(model=config.LLM_MODEL)
        registry.register(LLMSourceAdapter(llm_client))
    else:
        logger.warning("OPENAI_API_KEY not set; only rule-based generation is available")

    quality_checks = []
    if (args.judge or config.QUALITY_JUDGE_ENABLED) and llm_client is not None:
        quality_checks.append(LLMQualityJudge(llm_client))

    orchestrator = PipelineOrchestrator.build(
        repository=store,
        validation_repository=store,
        approval_repository=store,
        config=build_pipeline_config(args),
        quality_checks=quality_checks,
    )
    return RefinementWorker(
        planner=WorkPlanner(store, store, targets=ContentTargets.from_env()),
        processor=ContentProcessor(registry, store),
        orchestrator=orchestrator,
        checkpoints=CheckpointService(FileCheckpointRepository(args.checkpoint_file)),
        settings=WorkerSettings.from_env(),
    )


def drain(orchestrator: PipelineOrchestrator) -> int:
    """Run batches until one makes no progress. Returns items promoted."""
    promoted = 0
    with tqdm(desc="Draining pipeline", unit="item") as pbar:
        while True:
            summary = orchestrator.process_batch()
            promoted += summary.succeeded
            pbar.update(summary.succeeded)
            pbar.set_postfix(failed=summary.failed)
            if summary.succeeded == 0:
                break
    return promoted


def main(argv=None) -> int:
    args = parse_args(argv)

    configure_logging(
        level=args.log_level,
        log_file=args.log_file,
        json_format=args.json_logs or config.LOG_FORMAT == "json",
    )

    store = InMemoryStore.load(args.store)
    worker = build_worker(store, args)

    signal.signal(signal.SIGINT, lambda *_: worker.stop())
    signal.signal(signal.SIGTERM, lambda *_: worker.stop())

    try:
        if args.drain:
            promoted = drain(worker.orchestrator)
            logger.info(f"Drain complete: {promoted} items promoted")
        else:
            max_iterations = 1 if args.once else args.max_iterations
            worker.run(max_iterations=max_iterations)
    except Exception as e:
        logger.error(f"Worker crashed: {e}", exc_info=True)
        return 1
    finally:
        store.save(args.store)

    return 0


if __name__ == "__main__":
    sys.exit(main())
