from curation.services.checkpoint import CheckpointService
from curation.services.content_processor import ContentProcessor
from curation.services.worker import RefinementWorker

__all__ = ["CheckpointService", "ContentProcessor", "RefinementWorker"]
