"""Worker checkpoint model."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from curation.models.content import utc_now


class CheckpointState(BaseModel):
    """Last known progress of a worker, persisted after every unit of work."""

    last_processed_id: Optional[str] = None
    last_processed_type: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = {
        "json_schema_extra": {
            "example": {
                "last_processed_id": "meaning_EN_A1",
                "last_processed_type": "meaning",
                "timestamp": "2026-01-01T00:00:00+00:00",
                "metadata": {"items_processed": 12},
            }
        }
    }
