"""Ramp scheduling of virtual users

RampSchedule is the pure ramp curve: how many workers should be active at
a given elapsed time. RampScheduler drives a WorkerPool along that curve
on a fixed tick, then performs the graceful ramp-down at the end.
"""

import asyncio
import logging
import math
import time
from typing import Callable, Optional, Sequence

from txload.metrics.collector import VUS, MetricsCollector
from txload.models.run_config import RunConfig, Stage
from txload.scheduler.worker_pool import WorkerPool

logger = logging.getLogger(__name__)


class RampSchedule:
    """
    Piecewise-linear concurrency curve over a sequence of stages.

    Example:
        schedule = RampSchedule([Stage(duration=120, target=100), Stage(duration=300, target=100)])
        schedule.active_worker_count(60)   # 50
        schedule.active_worker_count(200)  # 100
    """

    def __init__(self, stages: Sequence[Stage], start_vus: int = 0, graceful_ramp_down: float = 0.0):
        self.stages = tuple(stages)
        self.start_vus = start_vus
        self.graceful_ramp_down = graceful_ramp_down

    @classmethod
    def from_config(cls, config: RunConfig) -> "RampSchedule":
        return cls(config.stages, start_vus=config.start_vus, graceful_ramp_down=config.graceful_ramp_down)

    @property
    def total_duration(self) -> float:
        return sum(stage.duration for stage in self.stages)

    def active_worker_count(self, elapsed: float) -> int:
        """
        Target concurrency at `elapsed` seconds into the run.

        Interpolates linearly between the targets bracketing `elapsed` and
        rounds down, so the result never leaves [min, max] of the two
        targets. Before the run it is start_vus; after the last stage the
        last target holds until the grace period expires, then 0.
        """
        if elapsed < 0:
            return self.start_vus

        previous = self.start_vus
        stage_start = 0.0
        for stage in self.stages:
            stage_end = stage_start + stage.duration
            if elapsed < stage_end:
                fraction = (elapsed - stage_start) / stage.duration
                value = previous + (stage.target - previous) * fraction
                return int(math.floor(value))
            previous = stage.target
            stage_start = stage_end

        if elapsed < stage_start + self.graceful_ramp_down:
            return previous
        return 0


class RampScheduler:
    """
    Drives a WorkerPool along a RampSchedule.

    Every tick the pool is scaled to the current target, retiring workers
    that overran the grace period are cancelled, and the `vus` gauge is
    sampled. When the stages are exhausted the scheduler stops itself.
    """

    def __init__(
        self,
        config: RunConfig,
        pool: WorkerPool,
        collector: Optional[MetricsCollector] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            config: Immutable run configuration
            pool: Worker pool to scale
            collector: Receives `vus` samples (optional)
            clock: Monotonic clock for the run clock
        """
        self.config = config
        self.schedule = RampSchedule.from_config(config)
        self.pool = pool
        self.collector = collector
        self._clock = clock

        self._started_at: Optional[float] = None
        self._task: Optional[asyncio.Task] = None
        self._last_target: Optional[int] = None
        self._shutdown_started = False
        self._finished = asyncio.Event()

        logger.info(
            f"[SCHEDULER] Initialized with {len(config.stages)} stages, "
            f"total={self.schedule.total_duration:.1f}s, grace={config.graceful_ramp_down:.1f}s"
        )

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._finished.is_set()

    def elapsed(self) -> float:
        """Seconds since start(), 0 before the run"""
        if self._started_at is None:
            return 0.0
        return self._clock() - self._started_at

    async def start(self) -> None:
        """Begin the run clock and the tick loop"""
        if self._task is not None:
            logger.warning("[SCHEDULER] Already started")
            return

        self._started_at = self._clock()
        self._task = asyncio.create_task(self._tick_loop(), name="ramp-scheduler")
        logger.info("[SCHEDULER] Run started")

    async def wait(self) -> None:
        """Block until the stages are done and all workers have stopped"""
        await self._finished.wait()

    async def stop(self) -> None:
        """
        Enter graceful ramp-down.

        No worker starts a new iteration after this; in-flight iterations
        get up to graceful_ramp_down seconds before being cancelled.
        Safe to call more than once. Re-raises the error that stopped the
        tick loop, if any.
        """
        if not self._shutdown_started and self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        await self._shutdown_pool()

        if self._task is not None and self._task.done() and not self._task.cancelled():
            error = self._task.exception()
            if error is not None:
                raise error

    async def run(self) -> None:
        """Run the full ramp: start, wait for the stages, stop"""
        await self.start()
        try:
            await self.wait()
        finally:
            await self.stop()

    def tick(self, elapsed: float) -> int:
        """Apply the target for `elapsed` to the pool; returns the target"""
        target = self.schedule.active_worker_count(elapsed)
        if target != self._last_target:
            logger.info(f"[SCHEDULER] t={elapsed:.1f}s target={target} (active={self.pool.active_count})")
            self._last_target = target

        self.pool.scale_to(target)
        self.pool.enforce_grace(self.config.graceful_ramp_down)

        if self.collector is not None:
            self.collector.add(VUS, float(self.pool.active_count + self.pool.retiring_count))
        return target

    async def _tick_loop(self) -> None:
        total = self.schedule.total_duration
        try:
            while True:
                elapsed = self.elapsed()
                if elapsed >= total:
                    break
                self.tick(elapsed)
                await asyncio.sleep(min(self.config.tick_interval, total - elapsed))
            logger.info(f"[SCHEDULER] All stages complete after {self.elapsed():.1f}s")
        except Exception as e:
            logger.error(f"[SCHEDULER] Tick loop failed: {e}", exc_info=True)
            raise
        finally:
            await self._shutdown_pool()

    async def _shutdown_pool(self) -> None:
        if self._shutdown_started:
            await self._finished.wait()
            return
        self._shutdown_started = True
        try:
            await self.pool.shutdown(self.config.graceful_ramp_down)
        finally:
            self._finished.set()
            logger.info("[SCHEDULER] Stopped")
