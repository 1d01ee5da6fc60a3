"""Tests for threshold expression parsing and evaluation"""
import pytest

from txload.exceptions import ThresholdExpressionError
from txload.metrics.thresholds import check_supported, evaluate_threshold, parse_threshold
from txload.models.outcome import MetricType


class StaticSource:
    """Aggregate source returning a fixed value and remembering the request"""

    def __init__(self, value):
        self.value = value
        self.requests = []

    def aggregate(self, metric_name, aggregate, percentile_value=None):
        self.requests.append((metric_name, aggregate, percentile_value))
        return self.value


class TestParseThreshold:
    """Test the threshold grammar"""

    def test_percentile(self):
        threshold = parse_threshold("http_req_duration", "p(95)<2000")
        assert threshold.aggregate == "p"
        assert threshold.percentile == 95.0
        assert threshold.op == "<"
        assert threshold.bound == 2000.0

    def test_rate(self):
        threshold = parse_threshold("http_req_failed", "rate<0.01")
        assert threshold.aggregate == "rate"
        assert threshold.percentile is None
        assert threshold.bound == 0.01

    @pytest.mark.parametrize("expression,op", [
        ("avg<=100", "<="),
        ("max > 5", ">"),
        ("min>=1", ">="),
        ("count==10", "=="),
        ("med != 3", "!="),
        ("p(99.9) < 1500", "<"),
    ])
    def test_operators_and_whitespace(self, expression, op):
        assert parse_threshold("m", expression).op == op

    @pytest.mark.parametrize("expression", [
        "",
        "p95<2000",
        "p(95)",
        "rate<<0.01",
        "stddev<5",
        "p(95)<fast",
    ])
    def test_malformed(self, expression):
        with pytest.raises(ThresholdExpressionError) as exc_info:
            parse_threshold("http_req_duration", expression)
        assert exc_info.value.field == "thresholds.http_req_duration"

    def test_percentile_out_of_range(self):
        with pytest.raises(ThresholdExpressionError):
            parse_threshold("http_req_duration", "p(101)<2000")

    def test_compare(self):
        threshold = parse_threshold("m", "p(95)<2000")
        assert threshold.compare(1999.9)
        assert not threshold.compare(2000.0)


class TestCheckSupported:
    """Aggregates must fit the metric type"""

    def test_percentile_on_trend(self):
        check_supported(parse_threshold("m", "p(90)<1"), MetricType.TREND)

    def test_rate_on_counter(self):
        check_supported(parse_threshold("m", "rate>1"), MetricType.COUNTER)

    @pytest.mark.parametrize("expression,metric_type", [
        ("p(95)<1", MetricType.RATE),
        ("avg<1", MetricType.GAUGE),
        ("value<1", MetricType.TREND),
        ("rate<1", MetricType.TREND),
    ])
    def test_mismatch(self, expression, metric_type):
        with pytest.raises(ThresholdExpressionError):
            check_supported(parse_threshold("m", expression), metric_type)


class TestEvaluateThreshold:
    """Test evaluation against an aggregate source"""

    def test_pass(self):
        source = StaticSource(1200.0)
        result = evaluate_threshold(parse_threshold("http_req_duration", "p(95)<2000"), source)
        assert result.passed
        assert result.observed == 1200.0
        assert source.requests == [("http_req_duration", "p", 95.0)]

    def test_fail(self):
        result = evaluate_threshold(parse_threshold("http_req_failed", "rate<0.01"), StaticSource(0.02))
        assert not result.passed
        assert result.expression == "rate<0.01"
