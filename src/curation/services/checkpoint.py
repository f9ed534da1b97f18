"""Worker checkpoints and liveness."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Dict, Optional, Union

from curation.config import SERVICE_NAME
from curation.models import CheckpointState
from curation.storage.base import CheckpointRepository

logger = logging.getLogger(__name__)

HEALTH_THRESHOLD = timedelta(minutes=5)


class CheckpointService:
    """Saves and restores a worker's last known progress.

    The worker counts as healthy while its newest checkpoint is younger than
    ``health_threshold``; idle workers keep it fresh with heartbeats.
    """

    def __init__(
        self,
        repository: CheckpointRepository,
        service_name: str = SERVICE_NAME,
        health_threshold: timedelta = HEALTH_THRESHOLD,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        self.repository = repository
        self.service_name = service_name
        self.health_threshold = health_threshold
        self.clock = clock

    def save_state(self, state: CheckpointState) -> CheckpointState:
        state = state.model_copy(update={"timestamp": self.clock()})
        self.repository.save_checkpoint(self.service_name, state)
        logger.debug(
            "Checkpoint saved",
            extra={"service": self.service_name, "last_processed_id": state.last_processed_id},
        )
        return state

    def restore_state(self) -> Optional[CheckpointState]:
        state = self.repository.load_checkpoint(self.service_name)
        if state is None:
            logger.info(f"No checkpoint found for {self.service_name}")
        else:
            logger.info(
                f"Restored checkpoint for {self.service_name}",
                extra={"last_processed_id": state.last_processed_id, "timestamp": state.timestamp.isoformat()},
            )
        return state

    def save_error_state(
        self, error: Union[Exception, str], context: Optional[Dict[str, Any]] = None
    ) -> CheckpointState:
        """Record an error against the latest checkpoint, keeping its progress fields."""
        previous = self.repository.load_checkpoint(self.service_name) or CheckpointState()
        message = f"{type(error).__name__}: {error}" if isinstance(error, Exception) else error
        now = self.clock()

        metadata = {
            **previous.metadata,
            "last_error": message[:500],
            "last_error_at": now.isoformat(),
            **(context or {}),
        }
        return self.save_state(previous.model_copy(update={"metadata": metadata}))

    def get_last_checkpoint_time(self) -> Optional[datetime]:
        state = self.repository.load_checkpoint(self.service_name)
        return state.timestamp if state else None

    def is_service_healthy(self) -> bool:
        last = self.get_last_checkpoint_time()
        if last is None:
            return False
        return self.clock() - last < self.health_threshold
