"""VALIDATED -> APPROVED."""

import logging
from typing import Dict

from curation.models import ContentItem, DataType, ReviewQueueEntry, StepResult
from curation.storage.base import ApprovalRepository

logger = logging.getLogger(__name__)

# Lower number is reviewed first
REVIEW_PRIORITY: Dict[DataType, int] = {
    DataType.ORTHOGRAPHY: 1,
    DataType.MEANING: 2,
    DataType.UTTERANCE: 3,
    DataType.RULE: 4,
    DataType.EXERCISE: 5,
}
DEFAULT_REVIEW_PRIORITY = 10


class ApprovalStep:
    """Approves automatically when enabled, otherwise queues for an operator."""

    def __init__(self, repository: ApprovalRepository, auto_approval: bool = False):
        self.repository = repository
        self.auto_approval = auto_approval

    def approve(self, item: ContentItem) -> StepResult:
        if self.auto_approval:
            return StepResult.ok(dict(item.payload))

        priority = REVIEW_PRIORITY.get(item.data_type, DEFAULT_REVIEW_PRIORITY)
        self.repository.queue_for_review(
            ReviewQueueEntry(item_id=item.id, data_type=item.data_type, priority=priority)
        )
        logger.info(
            f"Queued {item.data_type.value} {item.id} for review",
            extra={"item_id": item.id, "priority": priority},
        )
        return StepResult(success=False, errors=["Awaiting manual review"], pending_review=True)
