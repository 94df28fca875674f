"""
monitoring/logger.py
structlog setup and the pricing/billing Prometheus metrics.

Metrics are registered on first use so that importing the pricing engine in
tests or the CLI never touches the default registry.
"""
import functools
import logging
import time
from typing import Any, Callable, Sequence


def get_logger(name: str):
    """Return a structlog logger bound to `name`."""
    import structlog
    return structlog.get_logger(name)


def _configure_logging() -> None:
    import structlog
    if structlog.is_configured():
        return
    from config.settings import settings
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(message)s",
    )


_configure_logging()


# ── Prometheus metrics ────────────────────────────────────────────────────────

class _LazyMetric:
    """Registers a prometheus_client metric the first time it is touched."""

    def __init__(self, kind: str, name: str, doc: str, labels: Sequence[str], **kwargs: Any) -> None:
        self._spec = (kind, name, doc, tuple(labels), kwargs)
        self._metric = None

    def _get(self):
        if self._metric is None:
            import prometheus_client
            kind, name, doc, labels, kwargs = self._spec
            self._metric = getattr(prometheus_client, kind)(name, doc, labels, **kwargs)
        return self._metric

    def __getattr__(self, attr: str):
        # labels / inc / observe are forwarded to the real metric
        return getattr(self._get(), attr)


PRICE_REQUESTS = _LazyMetric(
    "Counter", "postal_pricing_requests_total",
    "Price calculations by service type and outcome", ["service_type", "status"],
)
PRICE_LATENCY = _LazyMetric(
    "Histogram", "postal_pricing_duration_seconds",
    "Pricing stage latency", ["stage"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0),
)
RULES_INERT = _LazyMetric(
    "Counter", "postal_pricing_inert_rules_total",
    "Pricing rules loaded as inert, by offending field", ["reason"],
)
PERSISTENCE_FAILURES = _LazyMetric(
    "Counter", "postal_pricing_persistence_failures_total",
    "Payment/invoice persistence failures", ["operation"],
)

metrics = {
    "price_requests":       PRICE_REQUESTS,
    "price_latency":        PRICE_LATENCY,
    "rules_inert":          RULES_INERT,
    "persistence_failures": PERSISTENCE_FAILURES,
}


def start_metrics_server(port: int = 9090) -> None:
    from prometheus_client import start_http_server
    try:
        start_http_server(port)
    except OSError as exc:
        get_logger("monitoring").warning("Metrics port unavailable", port=port, error=str(exc))
        return
    get_logger("monitoring").info("Prometheus metrics server started", port=port)


def timed(stage: str) -> Callable:
    """Record the wrapped call's duration in PRICE_LATENCY under `stage`."""
    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                PRICE_LATENCY.labels(stage=stage).observe(time.perf_counter() - started)
        return wrapper
    return decorator


logger = get_logger("postal_pricing")
