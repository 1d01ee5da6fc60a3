"""Tests for the virtual-user worker pool"""
import asyncio
import time

import pytest

from txload.metrics.collector import ITERATION_DURATION, ITERATIONS
from txload.scheduler.worker_pool import IterationContext, WorkerPool


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class RecordingScenario:
    """Scenario that records each iteration and optionally blocks"""

    def __init__(self, duration: float = 0.0, gate: asyncio.Event = None, fail_first: bool = False):
        self.duration = duration
        self.gate = gate
        self.fail_first = fail_first
        self.calls = []

    async def __call__(self, context: IterationContext) -> None:
        self.calls.append(context)
        if self.fail_first and len(self.calls) == 1:
            raise ValueError("broken iteration")
        if self.gate is not None:
            await self.gate.wait()
        if self.duration:
            await asyncio.sleep(self.duration)


async def settle(seconds: float = 0.05) -> None:
    await asyncio.sleep(seconds)


@pytest.mark.asyncio
async def test_spawned_workers_run_iterations(collector):
    scenario = RecordingScenario()
    pool = WorkerPool(scenario, collector, think_time=0.01)

    assert pool.spawn(3) == 3
    await settle(0.1)

    assert pool.active_count == 3
    assert {c.worker_id for c in scenario.calls} == {1, 2, 3}

    await pool.shutdown(grace=1.0)
    assert pool.active_count == 0
    assert len(collector.outcomes(ITERATIONS)) == pool.completed_iterations
    assert len(collector.outcomes(ITERATION_DURATION)) == pool.completed_iterations


@pytest.mark.asyncio
async def test_iteration_numbers_increase_per_worker(collector):
    scenario = RecordingScenario()
    pool = WorkerPool(scenario, collector, think_time=0.01)
    pool.spawn(1)
    await settle(0.1)
    await pool.shutdown(grace=1.0)

    iterations = [c.iteration for c in scenario.calls]
    assert iterations == list(range(len(iterations)))


@pytest.mark.asyncio
async def test_retire_cancels_idle_workers_immediately(collector):
    scenario = RecordingScenario()
    pool = WorkerPool(scenario, collector, think_time=10.0)
    pool.spawn(3)
    await settle()

    workers = pool.workers
    assert all(not w.busy for w in workers)

    assert pool.retire(2) == 2
    assert pool.active_count == 1
    assert pool.retiring_count == 0

    await settle()
    cancelled = [w for w in workers if w.task.cancelled()]
    assert len(cancelled) == 2
    assert pool.interrupted_iterations == 0

    await pool.shutdown(grace=1.0)


@pytest.mark.asyncio
async def test_retire_lets_busy_worker_finish_iteration(collector):
    gate = asyncio.Event()
    scenario = RecordingScenario(gate=gate)
    pool = WorkerPool(scenario, collector, think_time=0.0)
    pool.spawn(1)
    await settle()

    worker = pool.workers[0]
    assert worker.busy

    pool.retire(1)
    assert pool.active_count == 0
    assert pool.retiring_count == 1
    assert not worker.task.done()

    gate.set()
    await settle()

    assert worker.task.done()
    assert not worker.task.cancelled()
    assert len(scenario.calls) == 1
    assert pool.completed_iterations == 1
    assert pool.interrupted_iterations == 0
    assert pool.retiring_count == 0


@pytest.mark.asyncio
async def test_enforce_grace_cancels_overrunning_worker(collector):
    clock = FakeClock()
    scenario = RecordingScenario(gate=asyncio.Event())
    pool = WorkerPool(scenario, collector, think_time=0.0, clock=clock)
    pool.spawn(1)
    await settle()

    worker = pool.workers[0]
    pool.retire(1)

    clock.now = 4.0
    assert pool.enforce_grace(5.0) == 0
    assert not worker.task.done()

    clock.now = 5.0
    assert pool.enforce_grace(5.0) == 1
    await asyncio.gather(worker.task, return_exceptions=True)

    assert worker.task.cancelled()
    assert pool.interrupted_iterations == 1
    assert pool.completed_iterations == 0


@pytest.mark.asyncio
async def test_shutdown_cuts_off_in_flight_iterations_at_grace(collector):
    scenario = RecordingScenario(gate=asyncio.Event())
    pool = WorkerPool(scenario, collector, think_time=0.0)
    pool.spawn(2)
    await settle()

    started = time.monotonic()
    await pool.shutdown(grace=0.2)
    elapsed = time.monotonic() - started

    assert 0.15 <= elapsed < 1.0
    assert pool.interrupted_iterations == 2
    assert pool.active_count == 0
    assert pool.retiring_count == 0


@pytest.mark.asyncio
async def test_no_new_iterations_after_shutdown(collector):
    scenario = RecordingScenario(duration=0.05)
    pool = WorkerPool(scenario, collector, think_time=0.0)
    pool.spawn(2)
    await settle(0.12)

    await pool.shutdown(grace=1.0)
    calls_at_shutdown = len(scenario.calls)

    await settle(0.2)
    assert len(scenario.calls) == calls_at_shutdown
    assert pool.interrupted_iterations == 0
    assert pool.completed_iterations == calls_at_shutdown
    assert pool.spawn(1) == 0


@pytest.mark.asyncio
async def test_scenario_exception_does_not_stop_worker(collector):
    scenario = RecordingScenario(fail_first=True)
    pool = WorkerPool(scenario, collector, think_time=0.01)
    pool.spawn(1)
    await settle(0.1)
    await pool.shutdown(grace=1.0)

    assert len(scenario.calls) > 1
    assert pool.failed_iterations == 1
    assert pool.completed_iterations == len(scenario.calls) - 1
    assert collector.aggregate(ITERATIONS, "count") == pool.completed_iterations


@pytest.mark.asyncio
async def test_failed_iterations_are_not_completed(collector):
    contexts = []

    async def always_broken(context):
        contexts.append(context)
        raise RuntimeError("backend exploded")

    pool = WorkerPool(always_broken, collector, think_time=0.01)
    pool.spawn(1)
    await settle(0.1)
    await pool.shutdown(grace=1.0)

    assert pool.failed_iterations == len(contexts) >= 2
    assert pool.completed_iterations == 0
    assert collector.aggregate(ITERATIONS, "count") == 0
    assert collector.outcomes(ITERATION_DURATION) == []
    assert [c.iteration for c in contexts] == list(range(len(contexts)))


@pytest.mark.asyncio
async def test_scale_to(collector):
    pool = WorkerPool(RecordingScenario(), collector, think_time=10.0)

    pool.scale_to(4)
    assert pool.active_count == 4

    await settle()
    pool.scale_to(1)
    assert pool.active_count == 1

    pool.scale_to(1)
    assert pool.active_count == 1

    await pool.shutdown(grace=1.0)
