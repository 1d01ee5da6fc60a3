"""Outcome collection, checks and threshold evaluation

This module provides the thread-safe metrics collector shared by all
workers, the named check helper used by scenarios, and the threshold
expressions evaluated at the end of a run.
"""

from txload.metrics.collector import (
    BUILTIN_METRICS,
    CHECKS,
    HTTP_REQ_DURATION,
    HTTP_REQ_FAILED,
    HTTP_REQS,
    ITERATION_DURATION,
    ITERATIONS,
    VUS,
    MetricsCollector,
    MetricSummary,
    percentile,
)
from txload.metrics.checks import check
from txload.metrics.thresholds import ThresholdExpression, parse_threshold

__all__ = [
    # Collector
    "MetricsCollector",
    "MetricSummary",
    "percentile",
    # Metric names
    "BUILTIN_METRICS",
    "CHECKS",
    "HTTP_REQ_DURATION",
    "HTTP_REQ_FAILED",
    "HTTP_REQS",
    "ITERATION_DURATION",
    "ITERATIONS",
    "VUS",
    # Checks
    "check",
    # Thresholds
    "ThresholdExpression",
    "parse_threshold",
]
