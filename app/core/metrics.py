"""
Domain metrics for the booking system
"""

import time
import logging
from contextlib import asynccontextmanager

from prometheus_client import Counter, Histogram, REGISTRY

from app.core.exceptions import BuslineException

logger = logging.getLogger(__name__)

SLOW_OPERATION_SECONDS = 5.0


def _counter(name: str, documentation: str, labels):
    # Re-importing the module (tests, reload) must not register twice
    try:
        return Counter(name, documentation, labels)
    except ValueError:
        return REGISTRY._names_to_collectors[name]


def _histogram(name: str, documentation: str, labels):
    try:
        return Histogram(name, documentation, labels)
    except ValueError:
        return REGISTRY._names_to_collectors[name]


OPERATIONS_TOTAL = _counter(
    "busline_operations_total",
    "Booking domain operations by outcome",
    ["operation", "outcome"]
)
OPERATION_DURATION = _histogram(
    "busline_operation_duration_seconds",
    "Booking domain operation duration",
    ["operation"]
)
BOOKING_TRANSITIONS = _counter(
    "busline_booking_transitions_total",
    "Booking status transitions",
    ["from_status", "to_status"]
)
PAYMENTS_TOTAL = _counter(
    "busline_payments_total",
    "Payment attempts by method and outcome",
    ["method", "outcome"]
)
SWEPT_LOCKS = _counter(
    "busline_seat_locks_swept_total",
    "Expired seat locks reclaimed",
    ["source"]
)


@asynccontextmanager
async def track_operation(operation: str):
    """
    Count and time a domain operation.

    Business rejections are counted as "rejected", anything else that escapes
    as "error".
    """
    start_time = time.time()
    try:
        yield
    except BuslineException as e:
        OPERATIONS_TOTAL.labels(operation=operation, outcome="rejected").inc()
        logger.info(f"{operation} rejected: {e.code}")
        raise
    except Exception as e:
        OPERATIONS_TOTAL.labels(operation=operation, outcome="error").inc()
        logger.error(f"Failed {operation} operation: {e}")
        raise
    else:
        OPERATIONS_TOTAL.labels(operation=operation, outcome="success").inc()
    finally:
        duration = time.time() - start_time
        OPERATION_DURATION.labels(operation=operation).observe(duration)
        if duration > SLOW_OPERATION_SECONDS:
            logger.warning(f"Slow {operation} operation: {duration:.2f}s")


def record_transition(from_status: str, to_status: str):
    if from_status != to_status:
        BOOKING_TRANSITIONS.labels(from_status=from_status, to_status=to_status).inc()


def record_payment(method: str, outcome: str):
    PAYMENTS_TOTAL.labels(method=method, outcome=outcome).inc()


def record_swept_locks(count: int, source: str):
    if count:
        SWEPT_LOCKS.labels(source=source).inc(count)
