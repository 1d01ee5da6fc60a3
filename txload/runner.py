"""Load test runner

Wires the pieces of one run together:

    MetricsCollector <- TransactionApiClient <- scenario <- WorkerPool <- RampScheduler

Thresholds are validated against the collector before any worker starts,
evaluated once every worker has stopped, and the summary is printed.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

import httpx

from txload.api_client import TransactionApiClient
from txload.metrics.collector import MetricsCollector, MetricSummary
from txload.metrics.summary import build_summary, export_summary, render_summary
from txload.models.outcome import ThresholdResult
from txload.models.run_config import RunConfig
from txload.observability.metrics import observe_outcome, start_metrics_server
from txload.scenarios.transactions import TransactionScenario
from txload.scheduler.ramp import RampScheduler
from txload.scheduler.worker_pool import Scenario, WorkerPool

logger = logging.getLogger(__name__)

EXIT_PASSED = 0
EXIT_THRESHOLDS_FAILED = 1
EXIT_CONFIG_ERROR = 2

ScenarioFactory = Callable[[TransactionApiClient, MetricsCollector], Scenario]


@dataclass
class RunReport:
    """Result of one load test run"""
    passed: bool
    threshold_results: List[ThresholdResult]
    metrics: Dict[str, MetricSummary]
    summary_text: str
    completed_iterations: int = 0
    interrupted_iterations: int = 0
    failed_iterations: int = 0
    exported_to: Optional[Path] = field(default=None)

    @property
    def status(self) -> str:
        return "passed" if self.passed else "failed"

    @property
    def exit_code(self) -> int:
        return EXIT_PASSED if self.passed else EXIT_THRESHOLDS_FAILED


async def run_load_test(
    config: RunConfig,
    base_url: str,
    timeout: float = 60.0,
    scenario_factory: ScenarioFactory = TransactionScenario,
    collector: Optional[MetricsCollector] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    metrics_port: int = 0,
    summary_path: Optional[Path] = None,
    print_summary: bool = True,
    clock: Callable[[], float] = time.monotonic
) -> RunReport:
    """
    Execute one ramping load test against base_url.

    Args:
        config: Stages, grace period and thresholds
        base_url: Root of the transaction API
        timeout: Per-request timeout in seconds
        scenario_factory: Builds the per-iteration scenario from client and collector
        collector: Collector to record into (a Prometheus-mirrored one by default)
        transport: Optional httpx transport, used by tests to mock the API
        metrics_port: >0 serves live Prometheus metrics on that port
        summary_path: When set, the JSON summary is written there
        print_summary: Print the text summary to stdout
        clock: Monotonic clock for the scheduler

    Returns:
        RunReport with threshold results and the overall status

    Raises:
        ConfigurationError: if a threshold does not fit its metric
    """
    if collector is None:
        collector = MetricsCollector(observer=observe_outcome)

    # Fatal before the run starts
    collector.validate_thresholds(config.thresholds)

    if metrics_port:
        start_metrics_server(metrics_port)

    logger.info(f"[RUNNER] Target {base_url}, {len(config.stages)} stages, up to {config.max_target} VUs")

    async with TransactionApiClient(base_url, collector, timeout=timeout, transport=transport) as client:
        scenario = scenario_factory(client, collector)
        pool = WorkerPool(scenario, collector, think_time=config.think_time, clock=clock)
        scheduler = RampScheduler(config, pool, collector, clock=clock)

        collector.mark_started()
        try:
            await scheduler.run()
        finally:
            collector.mark_finished()

    results = collector.evaluate(config.thresholds)
    passed = collector.passed(results)

    summary_text = render_summary(collector, results, passed, pool.interrupted_iterations)
    if print_summary:
        print(summary_text)

    if summary_path is not None:
        export_summary(summary_path, build_summary(collector, results, passed, pool.interrupted_iterations))

    report = RunReport(
        passed=passed,
        threshold_results=results,
        metrics=collector.summarize(),
        summary_text=summary_text,
        completed_iterations=pool.completed_iterations,
        interrupted_iterations=pool.interrupted_iterations,
        failed_iterations=pool.failed_iterations,
        exported_to=summary_path,
    )
    logger.info(f"[RUNNER] Run {report.status} after {report.completed_iterations} iterations")
    return report
