"""
Metrics collector for load test outcomes.

Workers call record() concurrently; the log is an append-only list per
metric name guarded by a single lock. Aggregates are computed from the
raw samples at run end, so threshold evaluation is deterministic for a
fixed set of outcomes.

Built-in metrics:
- http_req_duration: request latency in milliseconds (trend)
- http_req_failed: True when a request failed (rate)
- http_reqs: request count (counter)
- checks: True when a named check passed (rate)
- iterations / iteration_duration: completed scenario iterations
- vus: active workers, sampled every scheduler tick (gauge)
"""

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from txload.metrics.thresholds import (
    ThresholdExpression,
    check_supported,
    evaluate_threshold,
    parse_threshold,
)
from txload.models.outcome import MetricType, RequestOutcome, ThresholdResult

logger = logging.getLogger(__name__)

HTTP_REQ_DURATION = "http_req_duration"
HTTP_REQ_FAILED = "http_req_failed"
HTTP_REQS = "http_reqs"
CHECKS = "checks"
ITERATIONS = "iterations"
ITERATION_DURATION = "iteration_duration"
VUS = "vus"

BUILTIN_METRICS: Dict[str, MetricType] = {
    HTTP_REQ_DURATION: MetricType.TREND,
    HTTP_REQ_FAILED: MetricType.RATE,
    HTTP_REQS: MetricType.COUNTER,
    CHECKS: MetricType.RATE,
    ITERATIONS: MetricType.COUNTER,
    ITERATION_DURATION: MetricType.TREND,
    VUS: MetricType.GAUGE,
}


def percentile(sorted_values: Sequence[float], pct: float) -> float:
    """
    Percentile with linear interpolation between closest ranks.

    Args:
        sorted_values: Samples in ascending order
        pct: Percentile between 0 and 100

    Returns:
        Interpolated value, 0.0 for an empty sequence
    """
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])

    rank = (len(sorted_values) - 1) * pct / 100.0
    lower = math.floor(rank)
    upper = math.ceil(rank)
    if lower == upper:
        return float(sorted_values[lower])
    fraction = rank - lower
    return sorted_values[lower] + (sorted_values[upper] - sorted_values[lower]) * fraction


@dataclass
class MetricSummary:
    """Aggregates of one metric, shaped by its type"""
    name: str
    metric_type: MetricType
    count: int
    values: Dict[str, float] = field(default_factory=dict)


class MetricsCollector:
    """
    Thread-safe, append-only outcome log keyed by metric name.

    Safe to share between asyncio tasks and OS threads; every append happens
    under one lock so concurrent writers never lose an update.
    """

    def __init__(self, metric_types: Optional[Mapping[str, MetricType]] = None, observer=None):
        """
        Args:
            metric_types: Extra metric declarations merged over the built-ins
            observer: Optional callable receiving every recorded outcome
                (used to mirror samples into Prometheus)
        """
        self._lock = threading.Lock()
        self._log: Dict[str, List[RequestOutcome]] = {}
        self._types: Dict[str, MetricType] = dict(BUILTIN_METRICS)
        if metric_types:
            self._types.update(metric_types)
        self._observer = observer
        self.started_at: Optional[float] = None
        self.finished_at: Optional[float] = None

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record(self, outcome: RequestOutcome) -> None:
        """Append one outcome to the log for its metric name"""
        with self._lock:
            if outcome.metric_name not in self._types:
                self._types[outcome.metric_name] = (
                    MetricType.RATE if isinstance(outcome.value, bool) else MetricType.TREND
                )
            self._log.setdefault(outcome.metric_name, []).append(outcome)

        if self._observer is not None:
            try:
                self._observer(outcome)
            except Exception as e:
                logger.error(f"[METRICS] Failed to mirror outcome {outcome.metric_name}: {e}")

    def add(self, metric_name: str, value: Union[float, bool], **tags: str) -> RequestOutcome:
        """Build and record an outcome stamped with the current time"""
        outcome = RequestOutcome(metric_name=metric_name, value=value, timestamp=time.time(), tags=tags)
        self.record(outcome)
        return outcome

    def mark_started(self) -> None:
        self.started_at = time.time()

    def mark_finished(self) -> None:
        self.finished_at = time.time()

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def outcomes(self, metric_name: str) -> List[RequestOutcome]:
        """Snapshot of the outcomes recorded for one metric"""
        with self._lock:
            return list(self._log.get(metric_name, []))

    def metric_names(self) -> List[str]:
        with self._lock:
            return sorted(self._log)

    def metric_type(self, metric_name: str) -> Optional[MetricType]:
        with self._lock:
            return self._types.get(metric_name)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(entries) for entries in self._log.values())

    def run_duration(self) -> float:
        """Seconds between mark_started and mark_finished, or the sample span"""
        if self.started_at is not None:
            end = self.finished_at if self.finished_at is not None else time.time()
            return max(end - self.started_at, 0.0)

        with self._lock:
            timestamps = [o.timestamp for entries in self._log.values() for o in entries]
        if len(timestamps) < 2:
            return 0.0
        return max(timestamps) - min(timestamps)

    def aggregate(self, metric_name: str, aggregate: str, percentile_value: Optional[float] = None) -> float:
        """
        Compute one aggregate over every sample of a metric.

        Args:
            metric_name: Metric to aggregate
            aggregate: avg, min, max, med, p, rate, count or value
            percentile_value: Percentile for aggregate "p"

        Returns:
            The aggregate; 0.0 when the metric has no samples
        """
        entries = self.outcomes(metric_name)
        metric_type = self.metric_type(metric_name) or MetricType.TREND
        values = [float(o.value) for o in entries]

        if not values:
            return 0.0

        if aggregate == "count":
            return float(sum(values)) if metric_type == MetricType.COUNTER else float(len(values))
        if aggregate == "rate":
            if metric_type == MetricType.COUNTER:
                duration = self.run_duration()
                return sum(values) / duration if duration > 0 else 0.0
            return sum(1 for v in values if v) / len(values)
        if aggregate == "value":
            return values[-1]
        if aggregate == "avg":
            return sum(values) / len(values)
        if aggregate == "min":
            return min(values)
        if aggregate == "max":
            return max(values)
        if aggregate == "med":
            return percentile(sorted(values), 50.0)
        if aggregate == "p":
            return percentile(sorted(values), percentile_value if percentile_value is not None else 50.0)

        raise ValueError(f"Unknown aggregate: {aggregate}")

    def summarize(self) -> Dict[str, MetricSummary]:
        """Per-metric aggregates for the end-of-run report"""
        summaries: Dict[str, MetricSummary] = {}
        for name in self.metric_names():
            metric_type = self.metric_type(name)
            entries = self.outcomes(name)
            summary = MetricSummary(name=name, metric_type=metric_type, count=len(entries))

            if metric_type == MetricType.TREND:
                ordered = sorted(float(o.value) for o in entries)
                summary.values = {
                    "avg": sum(ordered) / len(ordered) if ordered else 0.0,
                    "min": ordered[0] if ordered else 0.0,
                    "med": percentile(ordered, 50.0),
                    "max": ordered[-1] if ordered else 0.0,
                    "p(90)": percentile(ordered, 90.0),
                    "p(95)": percentile(ordered, 95.0),
                }
            elif metric_type == MetricType.RATE:
                passes = sum(1 for o in entries if o.value)
                summary.values = {
                    "rate": passes / len(entries) if entries else 0.0,
                    "passes": float(passes),
                    "fails": float(len(entries) - passes),
                }
            elif metric_type == MetricType.COUNTER:
                summary.values = {
                    "count": self.aggregate(name, "count"),
                    "rate": self.aggregate(name, "rate"),
                }
            else:
                gauge_values = [float(o.value) for o in entries]
                summary.values = {
                    "value": gauge_values[-1] if gauge_values else 0.0,
                    "min": min(gauge_values) if gauge_values else 0.0,
                    "max": max(gauge_values) if gauge_values else 0.0,
                }
            summaries[name] = summary
        return summaries

    def tag_breakdown(self, metric_name: str, tag: str) -> Dict[str, Tuple[int, int]]:
        """
        Count truthy/falsy samples of a rate metric grouped by one tag.

        Returns:
            Mapping of tag value to (passes, fails), in first-seen order
        """
        breakdown: Dict[str, List[int]] = {}
        for outcome in self.outcomes(metric_name):
            key = outcome.tags.get(tag, "")
            counts = breakdown.setdefault(key, [0, 0])
            counts[0 if outcome.value else 1] += 1
        return {key: (counts[0], counts[1]) for key, counts in breakdown.items()}

    # ------------------------------------------------------------------
    # Thresholds
    # ------------------------------------------------------------------

    def validate_thresholds(self, thresholds: Mapping[str, Iterable[str]]) -> List[ThresholdExpression]:
        """
        Parse every threshold and check it fits its metric type.

        Unknown metric names are assumed to be trends, matching how record()
        types a metric first seen with a numeric value.

        Raises:
            ThresholdExpressionError: for malformed or mismatched expressions
        """
        parsed = []
        for metric_name, expressions in thresholds.items():
            metric_type = self.metric_type(metric_name) or MetricType.TREND
            for expression in expressions:
                threshold = parse_threshold(metric_name, expression)
                check_supported(threshold, metric_type)
                parsed.append(threshold)
        return parsed

    def evaluate(self, thresholds: Mapping[str, Iterable[str]]) -> List[ThresholdResult]:
        """Evaluate every threshold expression against the recorded outcomes"""
        results = []
        for threshold in self.validate_thresholds(thresholds):
            results.append(evaluate_threshold(threshold, self))
        return results

    @staticmethod
    def passed(results: Iterable[ThresholdResult]) -> bool:
        """The run passes iff every threshold passes"""
        return all(result.passed for result in results)


__all__ = [
    "BUILTIN_METRICS",
    "CHECKS",
    "HTTP_REQ_DURATION",
    "HTTP_REQ_FAILED",
    "HTTP_REQS",
    "ITERATIONS",
    "ITERATION_DURATION",
    "VUS",
    "MetricSummary",
    "MetricsCollector",
    "percentile",
]
