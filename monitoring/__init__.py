"""monitoring package"""
from .logger import (
    logger,
    metrics,
    timed,
    start_metrics_server,
    get_logger,
    PRICE_REQUESTS,
    PRICE_LATENCY,
    RULES_INERT,
    PERSISTENCE_FAILURES,
)

__all__ = [
    "logger", "metrics", "timed", "start_metrics_server", "get_logger",
    "PRICE_REQUESTS", "PRICE_LATENCY", "RULES_INERT", "PERSISTENCE_FAILURES",
]
