"""Content lifecycle: DRAFT -> CANDIDATE -> VALIDATED -> APPROVED."""

from curation.pipeline.orchestrator import PipelineOrchestrator

__all__ = ["PipelineOrchestrator"]
