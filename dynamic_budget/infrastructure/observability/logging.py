"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from dynamic_budget.config import settings

logger = logging.getLogger("dynamic_budget")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers
    root.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)


def _money(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def log_sync(
    item_id: str,
    user_id: int,
    added_count: int,
    variable_spend: Decimal,
    large_expenses: int,
    balance: Optional[Decimal],
    duration_ms: float,
) -> None:
    """Log structured sync outcome"""
    logger.info(
        "Sync completed",
        extra={
            "item_id": item_id,
            "user_id": user_id,
            "step": "sync_complete",
            "added_count": added_count,
            "variable_spend": _money(variable_spend),
            "large_expenses": large_expenses,
            "balance": _money(balance),
            "duration_ms": duration_ms,
        },
    )


def log_decision(
    user_id: int,
    transaction_id: int,
    decision: str,
    effect: str,
    balance_delta: Decimal,
    balance: Optional[Decimal],
) -> None:
    """Log structured decision outcome"""
    logger.info(
        "Decision applied",
        extra={
            "user_id": user_id,
            "transaction_id": transaction_id,
            "step": "decision_applied",
            "decision": decision,
            "effect": effect,
            "balance_delta": _money(balance_delta),
            "balance": _money(balance),
        },
    )


def log_finalize(
    user_id: int,
    pay_cycle_days: int,
    days_until_next_paycheck: int,
    total_recurring_costs: Decimal,
    balance: Decimal,
) -> None:
    """Log structured period finalization"""
    logger.info(
        "Period finalized",
        extra={
            "user_id": user_id,
            "step": "period_finalized",
            "pay_cycle_days": pay_cycle_days,
            "days_until_next_paycheck": days_until_next_paycheck,
            "total_recurring_costs": _money(total_recurring_costs),
            "balance": _money(balance),
        },
    )
