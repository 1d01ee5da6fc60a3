"""Outcome records exchanged between workers and the metrics collector"""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Union


class MetricType(str, Enum):
    """Metric kinds, each with its own set of aggregates"""
    COUNTER = "counter"
    GAUGE = "gauge"
    RATE = "rate"
    TREND = "trend"


@dataclass(frozen=True)
class RequestOutcome:
    """
    One observation reported by a worker.

    A duration is a float (milliseconds for trends), a check or failure
    flag is a bool. Never mutated after creation.
    """
    metric_name: str
    value: Union[float, bool]
    timestamp: float = field(default_factory=time.time)
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ThresholdResult:
    """Pass/fail of a single threshold expression at run end"""
    metric_name: str
    expression: str
    passed: bool
    observed: Optional[float] = None
