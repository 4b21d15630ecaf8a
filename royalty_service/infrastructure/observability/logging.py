"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def __init__(self, *args: Any, service_name: str = "royalty-service", **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name


def setup_logging(level: str = "INFO", service_name: str = "royalty-service") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s",
        service_name=service_name,
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_statement_event(
    event: str,
    user_id: str,
    statement_id: str | None,
    entries: int,
    duration_ms: float,
    **fields: Any,
) -> None:
    """Log structured statement lifecycle outcome (ingested / reprocessed / deleted)"""
    logging.info(
        f"Statement {event}",
        extra={
            "user_id": user_id,
            "statement_id": statement_id,
            "step": f"statement_{event}",
            "entries": entries,
            "duration_ms": duration_ms,
            **fields,
        },
    )


def log_harvest(
    user_id: str,
    statements_created: int,
    entries_created: int,
    duplicates_skipped: int,
    error_count: int,
) -> None:
    """Log a completed mailbox harvest run"""
    logging.info(
        "Harvest completed",
        extra={
            "user_id": user_id,
            "step": "harvest_complete",
            "statements_created": statements_created,
            "entries_created": entries_created,
            "duplicates_skipped": duplicates_skipped,
            "error_count": error_count,
        },
    )
