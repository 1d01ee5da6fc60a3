"""
Prometheus mirror of load test outcomes.

Every outcome recorded by the MetricsCollector is also observed here, so a
long run can be watched live by scraping METRICS_PORT. Metrics live in a
dedicated registry to keep them apart from the client library defaults.

Metrics:
- loadtest_http_requests_total: requests by name and status
- loadtest_http_request_duration_seconds: request latency by name
- loadtest_http_request_failures_total: failed requests by name
- loadtest_checks_total: named checks by result
- loadtest_iterations_total: completed scenario iterations
- loadtest_vus: active virtual users
"""

import logging
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

from txload.metrics.collector import CHECKS, HTTP_REQ_DURATION, HTTP_REQ_FAILED, ITERATIONS, VUS
from txload.models.outcome import RequestOutcome

logger = logging.getLogger(__name__)

registry = CollectorRegistry()

# =============================================================================
# HTTP Metrics
# =============================================================================

loadtest_http_requests_total = Counter(
    "loadtest_http_requests_total",
    "Total HTTP requests issued by virtual users",
    ["name", "status"],
    registry=registry,
)

loadtest_http_request_duration_seconds = Histogram(
    "loadtest_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["name"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
    registry=registry,
)

loadtest_http_request_failures_total = Counter(
    "loadtest_http_request_failures_total",
    "HTTP requests that timed out, errored or returned a status outside 200-399",
    ["name"],
    registry=registry,
)

# =============================================================================
# Scenario Metrics
# =============================================================================

loadtest_checks_total = Counter(
    "loadtest_checks_total",
    "Named checks evaluated by the scenario",
    ["check", "result"],  # result: pass/fail
    registry=registry,
)

loadtest_iterations_total = Counter(
    "loadtest_iterations_total",
    "Completed scenario iterations",
    registry=registry,
)

loadtest_vus = Gauge(
    "loadtest_vus",
    "Active virtual users",
    registry=registry,
)


def observe_outcome(outcome: RequestOutcome) -> None:
    """
    Mirror one recorded outcome into the Prometheus registry.

    Args:
        outcome: Outcome just recorded by the collector
    """
    try:
        name = outcome.tags.get("name", "unknown")
        if outcome.metric_name == HTTP_REQ_DURATION:
            loadtest_http_request_duration_seconds.labels(name=name).observe(float(outcome.value) / 1000)
            loadtest_http_requests_total.labels(name=name, status=outcome.tags.get("status", "0")).inc()
        elif outcome.metric_name == HTTP_REQ_FAILED:
            if outcome.value:
                loadtest_http_request_failures_total.labels(name=name).inc()
        elif outcome.metric_name == CHECKS:
            result = "pass" if outcome.value else "fail"
            loadtest_checks_total.labels(check=outcome.tags.get("check", ""), result=result).inc()
        elif outcome.metric_name == ITERATIONS:
            loadtest_iterations_total.inc(float(outcome.value))
        elif outcome.metric_name == VUS:
            loadtest_vus.set(float(outcome.value))
    except Exception as e:
        logger.error(f"Failed to mirror outcome {outcome.metric_name}: {e}")


def start_metrics_server(port: int) -> None:
    """Expose the registry on http://0.0.0.0:<port>/metrics"""
    start_http_server(port, registry=registry)
    logger.info(f"[METRICS] Prometheus endpoint listening on :{port}")
