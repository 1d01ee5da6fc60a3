"""Threshold expressions

A threshold is a pass/fail assertion over one aggregate of one metric:

    http_req_duration: ["p(95)<2000"]
    http_req_failed:   ["rate<0.01"]

Grammar: ``<aggregate> <op> <number>`` where aggregate is avg, min, max,
med, p(N), rate, count or value, and op is <, <=, >, >=, == or !=.
"""

import logging
import operator
import re
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

from txload.exceptions import ThresholdExpressionError
from txload.models.outcome import MetricType, ThresholdResult

logger = logging.getLogger(__name__)

_EXPRESSION_RE = re.compile(
    r"^\s*(?P<aggregate>avg|min|max|med|count|rate|value|p\(\s*(?P<percentile>\d+(?:\.\d+)?)\s*\))"
    r"\s*(?P<op><=|>=|==|!=|<|>)"
    r"\s*(?P<bound>-?\d+(?:\.\d+)?)\s*$"
)

OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}

# Aggregates each metric type can be asserted on; "p" stands for any p(N)
SUPPORTED_AGGREGATES: Dict[MetricType, frozenset] = {
    MetricType.TREND: frozenset({"avg", "min", "max", "med", "p"}),
    MetricType.RATE: frozenset({"rate"}),
    MetricType.COUNTER: frozenset({"count", "rate"}),
    MetricType.GAUGE: frozenset({"value"}),
}


class AggregateSource(Protocol):
    def aggregate(self, metric_name: str, aggregate: str, percentile_value: Optional[float] = None) -> float:
        ...


@dataclass(frozen=True)
class ThresholdExpression:
    """Parsed form of one threshold expression"""
    metric_name: str
    expression: str
    aggregate: str
    op: str
    bound: float
    percentile: Optional[float] = None

    @property
    def aggregate_kind(self) -> str:
        """Aggregate name with any percentile collapsed to 'p'"""
        return "p" if self.percentile is not None else self.aggregate

    def compare(self, observed: float) -> bool:
        return OPERATORS[self.op](observed, self.bound)


def parse_threshold(metric_name: str, expression: str) -> ThresholdExpression:
    """
    Parse one threshold expression.

    Raises:
        ThresholdExpressionError: if the expression does not match the grammar
            or the percentile is outside 0-100
    """
    match = _EXPRESSION_RE.match(expression or "")
    if not match:
        raise ThresholdExpressionError(
            message=f"Cannot parse threshold {expression!r} for {metric_name}",
            metric_name=metric_name,
            expression=expression
        )

    percentile = None
    aggregate = match.group("aggregate")
    if match.group("percentile") is not None:
        percentile = float(match.group("percentile"))
        if not 0.0 <= percentile <= 100.0:
            raise ThresholdExpressionError(
                message=f"Percentile must be between 0 and 100, got {percentile}",
                metric_name=metric_name,
                expression=expression
            )
        aggregate = "p"

    return ThresholdExpression(
        metric_name=metric_name,
        expression=expression,
        aggregate=aggregate,
        op=match.group("op"),
        bound=float(match.group("bound")),
        percentile=percentile,
    )


def check_supported(threshold: ThresholdExpression, metric_type: MetricType) -> None:
    """Raise ThresholdExpressionError when the aggregate does not apply to the metric type"""
    if threshold.aggregate_kind not in SUPPORTED_AGGREGATES[metric_type]:
        raise ThresholdExpressionError(
            message=(
                f"Aggregate {threshold.aggregate!r} is not available on {metric_type.value} "
                f"metric {threshold.metric_name}"
            ),
            metric_name=threshold.metric_name,
            expression=threshold.expression
        )


def evaluate_threshold(threshold: ThresholdExpression, source: AggregateSource) -> ThresholdResult:
    """Compute the aggregate behind a threshold and compare it to the bound"""
    observed = source.aggregate(threshold.metric_name, threshold.aggregate, threshold.percentile)
    passed = threshold.compare(observed)

    log = logger.info if passed else logger.warning
    log(
        f"[THRESHOLD] {threshold.metric_name}: {threshold.expression} "
        f"observed={observed:.4f} -> {'PASS' if passed else 'FAIL'}"
    )
    return ThresholdResult(
        metric_name=threshold.metric_name,
        expression=threshold.expression,
        passed=passed,
        observed=observed,
    )
