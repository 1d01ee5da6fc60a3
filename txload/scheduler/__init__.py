"""Virtual-user scheduling

This module provides the ramp curve, the tick-driven scheduler that
follows it, and the worker pool that owns virtual-user lifecycles.
"""

from txload.scheduler.ramp import RampSchedule, RampScheduler
from txload.scheduler.worker_pool import IterationContext, Scenario, Worker, WorkerPool

__all__ = [
    "RampSchedule",
    "RampScheduler",
    "IterationContext",
    "Scenario",
    "Worker",
    "WorkerPool",
]
