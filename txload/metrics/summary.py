"""End-of-run summary report"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from txload.metrics.collector import CHECKS, MetricsCollector, MetricSummary
from txload.models.outcome import MetricType, ThresholdResult

logger = logging.getLogger(__name__)

WIDTH = 80


def _format_metric(summary: MetricSummary) -> str:
    values = summary.values
    if summary.metric_type == MetricType.TREND:
        return " ".join(f"{key}={value:.2f}ms" for key, value in values.items())
    if summary.metric_type == MetricType.RATE:
        return (
            f"{values['rate'] * 100:.2f}% "
            f"✓ {int(values['passes'])} ✗ {int(values['fails'])}"
        )
    if summary.metric_type == MetricType.COUNTER:
        return f"{values['count']:.0f} {values['rate']:.2f}/s"
    return f"{values['value']:.0f} min={values['min']:.0f} max={values['max']:.0f}"


def render_summary(
    collector: MetricsCollector,
    results: List[ThresholdResult],
    passed: bool,
    interrupted_iterations: int = 0
) -> str:
    """
    Human-readable report of checks, metric aggregates and thresholds.

    Args:
        collector: Collector holding every outcome of the run
        results: Threshold evaluation results
        passed: Overall run status
        interrupted_iterations: Iterations cut off at the grace deadline

    Returns:
        Multi-line summary text
    """
    lines = [
        "=" * WIDTH,
        "LOAD TEST SUMMARY",
        "=" * WIDTH,
    ]

    checks = collector.tag_breakdown(CHECKS, "check")
    if checks:
        lines += ["", "CHECKS:"]
        for name, (passes, fails) in checks.items():
            mark = "✓" if fails == 0 else "✗"
            lines.append(f"  {mark} {name} ({passes}/{passes + fails})")

    lines += ["", "METRICS:"]
    for name, summary in collector.summarize().items():
        lines.append(f"  {name:.<28}: {_format_metric(summary)}")

    if results:
        lines += ["", "THRESHOLDS:"]
        for result in results:
            mark = "✅ PASS" if result.passed else "❌ FAIL"
            observed = f"{result.observed:.4f}" if result.observed is not None else "n/a"
            lines.append(f"  {mark} {result.metric_name}: {result.expression} (observed {observed})")

    lines += [
        "",
        f"Run duration: {collector.run_duration():.1f}s",
        f"Interrupted iterations: {interrupted_iterations}",
        f"Run status: {'passed' if passed else 'failed'}",
        "=" * WIDTH,
    ]
    return "\n".join(lines)


def build_summary(
    collector: MetricsCollector,
    results: List[ThresholdResult],
    passed: bool,
    interrupted_iterations: int = 0
) -> Dict[str, Any]:
    """Same content as render_summary(), as JSON-ready data"""
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "status": "passed" if passed else "failed",
        "run_duration_seconds": round(collector.run_duration(), 3),
        "interrupted_iterations": interrupted_iterations,
        "metrics": {
            name: {"type": summary.metric_type.value, "count": summary.count, "values": summary.values}
            for name, summary in collector.summarize().items()
        },
        "checks": {
            name: {"passes": passes, "fails": fails}
            for name, (passes, fails) in collector.tag_breakdown(CHECKS, "check").items()
        },
        "thresholds": [
            {
                "metric": result.metric_name,
                "expression": result.expression,
                "passed": result.passed,
                "observed": result.observed,
            }
            for result in results
        ],
    }


def export_summary(path: Path, summary: Dict[str, Any], indent: Optional[int] = 2) -> None:
    """Write a build_summary() payload to disk as JSON"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(summary, f, indent=indent)
    logger.info(f"[SUMMARY] Exported to {path}")
