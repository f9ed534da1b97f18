"""
JSON-file checkpoint repository.

Keeps one checkpoint per service name in a small JSON file so a worker can
resume and report health across restarts without a database.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Union

from curation.models import CheckpointState
from curation.storage.base import CheckpointRepository
from curation.utils.file_io import read_json, write_json

logger = logging.getLogger(__name__)


class FileCheckpointRepository(CheckpointRepository):
    """Checkpoint persistence backed by a JSON file."""

    def __init__(self, checkpoint_file: Union[str, Path] = "checkpoints.json"):
        """
        Initialize checkpoint repository.

        Args:
            checkpoint_file: Path to checkpoint JSON file
        """
        self.checkpoint_file = Path(checkpoint_file)
        self._lock = threading.Lock()
        self._checkpoints: Dict[str, CheckpointState] = {}
        self._load()

    def _load(self) -> None:
        if not self.checkpoint_file.exists():
            logger.info(f"Checkpoint file not found: {self.checkpoint_file}. Starting fresh.")
            return

        try:
            data = read_json(self.checkpoint_file)
        except json.JSONDecodeError as e:
            # A corrupt file must not stop the worker; the next save rewrites it
            logger.error(f"Failed to parse checkpoint file {self.checkpoint_file}: {e}")
            return

        for service_name, raw in data.items():
            self._checkpoints[service_name] = CheckpointState.model_validate(raw)

        logger.info(f"Loaded {len(self._checkpoints)} checkpoints from {self.checkpoint_file}")

    def save_checkpoint(self, service_name: str, state: CheckpointState) -> None:
        with self._lock:
            self._checkpoints[service_name] = state
            write_json(
                {name: cp.model_dump(mode="json") for name, cp in self._checkpoints.items()},
                self.checkpoint_file,
            )

    def load_checkpoint(self, service_name: str) -> Optional[CheckpointState]:
        with self._lock:
            return self._checkpoints.get(service_name)
