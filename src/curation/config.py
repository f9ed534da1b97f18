"""Runtime configuration loaded from the environment.

An env file is loaded once at import (``ENV_FILE`` selects which one); values
are then read with ``os.getenv`` and exposed both as module constants and as
typed settings models.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv(os.getenv("ENV_FILE"), override=True)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


# General
PRODUCT = os.getenv("PRODUCT", "curation-engine")
ENV = os.getenv("ENV", "dev")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")

# LLM
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")
QUALITY_JUDGE_ENABLED = _env_bool("QUALITY_JUDGE_ENABLED")

# Worker
SERVICE_NAME = os.getenv("SERVICE_NAME", "refinement_service")
STORE_PATH = os.getenv("STORE_PATH", "data/store.json")
CHECKPOINT_PATH = os.getenv("CHECKPOINT_PATH", "data/checkpoints.json")


class ContentTargets(BaseModel):
    """Per-level content volume targets used by gap analysis."""

    meanings_per_level: int = Field(default=100, ge=1)
    utterances_per_meaning: int = Field(default=3, ge=1)
    grammar_rules_per_level: int = Field(default=20, ge=1)
    exercises_per_level: int = Field(default=50, ge=1)

    @classmethod
    def from_env(cls) -> "ContentTargets":
        return cls(
            meanings_per_level=_env_int("MEANINGS_PER_LEVEL", 100),
            utterances_per_meaning=_env_int("UTTERANCES_PER_MEANING", 3),
            grammar_rules_per_level=_env_int("GRAMMAR_RULES_PER_LEVEL", 20),
            exercises_per_level=_env_int("EXERCISES_PER_LEVEL", 50),
        )


class PipelineConfig(BaseModel):
    """Lifecycle orchestrator settings."""

    batch_size: int = Field(default=10, ge=1, description="Items fetched per stage per batch")
    auto_approval: bool = Field(default=False, description="Approve validated items automatically")
    retry_attempts: int = Field(default=3, ge=1, description="Attempts per transition")
    max_workers: int = Field(default=1, ge=1, description="Threads used to process one batch")

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        return cls(
            batch_size=_env_int("PIPELINE_BATCH_SIZE", 10),
            auto_approval=_env_bool("AUTO_APPROVAL"),
            retry_attempts=_env_int("PIPELINE_RETRY_ATTEMPTS", 3),
            max_workers=_env_int("PIPELINE_MAX_WORKERS", 1),
        )


class WorkerSettings(BaseModel):
    """Refinement worker loop timing."""

    base_interval_ms: int = Field(default=5000, ge=1)
    min_interval_ms: int = Field(default=1000, ge=0)
    max_interval_ms: int = Field(default=30000, ge=1)
    backoff_multiplier: float = Field(default=1.5, ge=1.0)
    max_backoff_steps: int = Field(default=5, ge=0)
    heartbeat_interval_seconds: int = Field(default=120, ge=1)

    @classmethod
    def from_env(cls) -> "WorkerSettings":
        return cls(base_interval_ms=_env_int("LOOP_INTERVAL_MS", 5000))
