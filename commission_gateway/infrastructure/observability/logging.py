"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger.json import JsonFormatter

from commission_gateway.domain.models import CommissionResult


class CustomJsonFormatter(JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def __init__(self, *args: Any, service: str = "commission-gateway", **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.service = service

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service


def setup_logging(level: str = "INFO", service: str = "commission-gateway") -> None:
    """Configure structured JSON logging on stderr (stdout carries commission output)"""
    logger = logging.getLogger()
    logger.setLevel(level.upper())

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s",
        service=service,
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_commission(result: CommissionResult, source: str, duration_ms: float) -> None:
    """Log structured commission outcome for analysis"""
    logging.info(
        "Commission calculated",
        extra={
            "source": source,
            "bin": result.transaction.bin,
            "currency": result.transaction.currency,
            "country_code": result.country_code,
            "region": "eu" if result.is_eu else "non_eu",
            "rate": result.rate,
            "commission": result.commission,
            "duration_ms": duration_ms,
        },
    )
