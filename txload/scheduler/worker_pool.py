"""Virtual-user worker pool

Each worker is an asyncio task looping over the scenario:

    run iteration -> record iteration metrics -> think time -> repeat

The pool owns the worker lifecycle. Idle workers (sleeping between
iterations) are cancelled as soon as they are retired. Busy workers only
stop at the top of their next iteration, unless they overrun the grace
period and are force-cancelled.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from txload.metrics.collector import ITERATION_DURATION, ITERATIONS, MetricsCollector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IterationContext:
    """Identity of one scenario iteration"""
    worker_id: int
    iteration: int


Scenario = Callable[[IterationContext], Awaitable[None]]


class Worker:
    """State of a single virtual user"""

    def __init__(self, worker_id: int):
        self.worker_id = worker_id
        self.busy = False
        self.iterations = 0
        self.stop_requested = False
        self.retire_requested_at: Optional[float] = None
        self.task: Optional[asyncio.Task] = None

    @property
    def name(self) -> str:
        return f"vu-{self.worker_id}"

    def __repr__(self) -> str:
        return f"<Worker {self.name} busy={self.busy} iterations={self.iterations}>"


class WorkerPool:
    """
    Pool of virtual users running the same scenario.

    Must be used from inside a running event loop.
    """

    def __init__(
        self,
        scenario: Scenario,
        collector: MetricsCollector,
        think_time: float = 1.0,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            scenario: Coroutine function run once per iteration
            collector: Receives iterations / iteration_duration samples
            think_time: Seconds each worker sleeps between iterations
            clock: Monotonic clock used for grace deadlines
        """
        self._scenario = scenario
        self._collector = collector
        self._think_time = think_time
        self._clock = clock

        self._active: Dict[int, Worker] = {}
        self._retiring: Dict[int, Worker] = {}
        self._next_id = 1
        self._accepting = True

        self.completed_iterations = 0
        self.failed_iterations = 0
        self.interrupted_iterations = 0

    @property
    def active_count(self) -> int:
        """Workers that will keep starting new iterations"""
        return len(self._active)

    @property
    def retiring_count(self) -> int:
        """Retired workers still finishing their current iteration"""
        return len(self._retiring)

    @property
    def workers(self) -> List[Worker]:
        return list(self._active.values())

    # ------------------------------------------------------------------
    # Scaling
    # ------------------------------------------------------------------

    def spawn(self, count: int) -> int:
        """Start `count` new workers; returns how many were started"""
        if not self._accepting or count <= 0:
            return 0

        for _ in range(count):
            worker = Worker(self._next_id)
            self._next_id += 1
            worker.task = asyncio.create_task(self._run_worker(worker), name=worker.name)
            self._active[worker.worker_id] = worker

        logger.debug(f"[POOL] Spawned {count} workers (active={self.active_count})")
        return count

    def retire(self, count: int) -> int:
        """
        Retire `count` workers, idle ones first.

        Idle workers are cancelled immediately. Busy workers finish their
        current iteration and are tracked until enforce_grace() or
        shutdown() cuts them off.
        """
        if count <= 0:
            return 0

        # Idle before busy, newest first
        candidates = sorted(self._active.values(), key=lambda w: (w.busy, -w.worker_id))[:count]
        for worker in candidates:
            del self._active[worker.worker_id]
            worker.stop_requested = True
            if worker.busy:
                worker.retire_requested_at = self._clock()
                self._retiring[worker.worker_id] = worker
            elif worker.task is not None:
                worker.task.cancel()

        logger.debug(
            f"[POOL] Retired {len(candidates)} workers "
            f"(active={self.active_count}, retiring={self.retiring_count})"
        )
        return len(candidates)

    def scale_to(self, target: int) -> None:
        """Spawn or retire workers so that active_count == target"""
        difference = target - self.active_count
        if difference > 0:
            self.spawn(difference)
        elif difference < 0:
            self.retire(-difference)

    def enforce_grace(self, grace: float) -> int:
        """
        Force-cancel retiring workers whose iteration overran the grace period.

        Returns:
            Number of workers cancelled
        """
        now = self._clock()
        cancelled = 0
        for worker in list(self._retiring.values()):
            if worker.task is None or worker.task.done():
                self._retiring.pop(worker.worker_id, None)
                continue
            if now - worker.retire_requested_at >= grace:
                logger.warning(
                    f"[POOL] {worker.name} exceeded graceful ramp-down of {grace:.1f}s, cancelling"
                )
                worker.task.cancel()
                cancelled += 1
        return cancelled

    async def shutdown(self, grace: float) -> None:
        """
        Stop every worker.

        No new iterations start after this is called. Idle workers are
        cancelled at once; busy workers get up to `grace` seconds to finish
        their iteration before being cancelled.
        """
        self._accepting = False
        workers = list(self._active.values()) + list(self._retiring.values())

        for worker in self._active.values():
            worker.stop_requested = True
            worker.retire_requested_at = self._clock()
            if not worker.busy and worker.task is not None:
                worker.task.cancel()
            self._retiring[worker.worker_id] = worker
        self._active.clear()

        tasks = [w.task for w in workers if w.task is not None and not w.task.done()]
        if tasks:
            busy = sum(1 for w in workers if w.busy)
            logger.info(f"[POOL] Waiting up to {grace:.1f}s for {busy} in-flight iterations")
            _, pending = await asyncio.wait(tasks, timeout=grace)
            if pending:
                logger.warning(f"[POOL] Cancelling {len(pending)} workers at graceful ramp-down cutoff")
                for task in pending:
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        self._retiring.clear()
        logger.info(
            f"[POOL] Shut down: {self.completed_iterations} complete, "
            f"{self.interrupted_iterations} interrupted iterations"
        )

    # ------------------------------------------------------------------
    # Worker loop
    # ------------------------------------------------------------------

    async def _run_worker(self, worker: Worker) -> None:
        """Main loop of one virtual user"""
        logger.debug(f"[POOL] {worker.name} started")
        try:
            while not worker.stop_requested:
                await self._run_iteration(worker)
                if worker.stop_requested:
                    break
                await asyncio.sleep(self._think_time)
        except asyncio.CancelledError:
            logger.debug(f"[POOL] {worker.name} cancelled after {worker.iterations} iterations")
            raise
        finally:
            self._active.pop(worker.worker_id, None)
            self._retiring.pop(worker.worker_id, None)

    async def _run_iteration(self, worker: Worker) -> None:
        context = IterationContext(worker_id=worker.worker_id, iteration=worker.iterations)
        worker.busy = True
        started = time.perf_counter()
        try:
            await self._scenario(context)
        except asyncio.CancelledError:
            self.interrupted_iterations += 1
            raise
        except Exception as e:
            # A broken iteration is counted as failed only; the worker keeps going
            worker.iterations += 1
            self.failed_iterations += 1
            logger.error(
                f"[POOL] {worker.name} iteration {context.iteration} raised "
                f"{type(e).__name__}: {e}",
                exc_info=True
            )
            return
        finally:
            worker.busy = False

        duration_ms = (time.perf_counter() - started) * 1000
        worker.iterations += 1
        self.completed_iterations += 1
        self._collector.add(ITERATIONS, 1.0, worker=worker.name)
        self._collector.add(ITERATION_DURATION, duration_ms, worker=worker.name)
