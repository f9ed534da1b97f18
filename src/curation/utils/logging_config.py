"""Structured logging for the curation worker and pipeline.

Every module logs through ``logging.getLogger(__name__)`` and passes context
via ``extra=``. ``JsonFormatter`` folds those extra fields into one JSON object
per line so worker logs can be shipped and queried.
"""

import json
import logging
import sys
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

# Attributes every LogRecord carries; anything else came in through ``extra=``
_STANDARD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


class JsonFormatter(logging.Formatter):
    """Render a record as a single JSON line.

    Keys: ``timestamp`` (ISO 8601 UTC), ``level``, ``logger``, ``message``,
    optional ``exception`` and an ``extra`` object with the caller's context.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = {
            k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, ensure_ascii=False, default=str)


def configure_logging(
    level: Union[str, int] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    json_format: bool = True,
    console_output: bool = True,
) -> None:
    """Configure the root logger for a worker or CLI process.

    Args:
        level: Logging level name or number (default: INFO)
        log_file: Optional file to log to in addition to the console
        json_format: Use ``JsonFormatter`` instead of the plain text format
        console_output: Log to stdout (default: True)

    Example:
        >>> configure_logging(level="DEBUG", log_file="logs/worker.log")
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if json_format:
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logging.info(
        f"Logging configured: level={logging.getLevelName(level)}, json_format={json_format}"
    )


@contextmanager
def pipeline_stage_logger(stage_name: str, **context):
    """Log entry, completion (with duration) and failure of a pipeline stage.

    Exceptions are logged and re-raised.

    Example:
        >>> with pipeline_stage_logger("validation", item_id="abc") as logger:
        ...     logger.info("Checking duplicates")
    """
    logger = logging.getLogger(f"curation.stage.{stage_name}")
    start_time = datetime.now(UTC)
    logger.debug(
        f"Starting pipeline stage: {stage_name}",
        extra={"stage": stage_name, "status": "started", **context},
    )

    try:
        yield logger
    except Exception as e:
        duration_ms = (datetime.now(UTC) - start_time).total_seconds() * 1000
        logger.error(
            f"Failed pipeline stage: {stage_name}",
            extra={
                "stage": stage_name,
                "status": "failed",
                "duration_ms": round(duration_ms, 2),
                "error": str(e)[:200],
                **context,
            },
            exc_info=True,
        )
        raise

    duration_ms = (datetime.now(UTC) - start_time).total_seconds() * 1000
    logger.debug(
        f"Completed pipeline stage: {stage_name}",
        extra={
            "stage": stage_name,
            "status": "completed",
            "duration_ms": round(duration_ms, 2),
            **context,
        },
    )
