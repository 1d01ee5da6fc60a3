"""Tests for the Prometheus mirror"""
from txload.metrics.collector import CHECKS, HTTP_REQ_DURATION, HTTP_REQ_FAILED, ITERATIONS, VUS, MetricsCollector
from txload.observability.metrics import observe_outcome, registry
from txload.models.outcome import RequestOutcome


def sample(name, labels=None):
    return registry.get_sample_value(name, labels or {}) or 0.0


def test_request_outcomes_mirrored():
    labels = {"name": "mirror_create", "status": "201"}
    before = sample("loadtest_http_requests_total", labels)

    observe_outcome(RequestOutcome(HTTP_REQ_DURATION, 250.0, tags={"name": "mirror_create", "status": "201"}))

    assert sample("loadtest_http_requests_total", labels) == before + 1
    assert sample("loadtest_http_request_duration_seconds_sum", {"name": "mirror_create"}) >= 0.25


def test_failures_only_counted_when_true():
    labels = {"name": "mirror_get"}
    before = sample("loadtest_http_request_failures_total", labels)

    observe_outcome(RequestOutcome(HTTP_REQ_FAILED, False, tags={"name": "mirror_get"}))
    observe_outcome(RequestOutcome(HTTP_REQ_FAILED, True, tags={"name": "mirror_get"}))

    assert sample("loadtest_http_request_failures_total", labels) == before + 1


def test_checks_iterations_and_vus():
    check_labels = {"check": "mirror check", "result": "fail"}
    checks_before = sample("loadtest_checks_total", check_labels)
    iterations_before = sample("loadtest_iterations_total")

    observe_outcome(RequestOutcome(CHECKS, False, tags={"check": "mirror check"}))
    observe_outcome(RequestOutcome(ITERATIONS, 1.0))
    observe_outcome(RequestOutcome(VUS, 7.0))

    assert sample("loadtest_checks_total", check_labels) == checks_before + 1
    assert sample("loadtest_iterations_total") == iterations_before + 1
    assert sample("loadtest_vus") == 7.0


def test_collector_observer_wiring():
    collector = MetricsCollector(observer=observe_outcome)
    before = sample("loadtest_iterations_total")

    collector.add(ITERATIONS, 1.0)

    assert sample("loadtest_iterations_total") == before + 1
