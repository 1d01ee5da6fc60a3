"""Run configuration models with validation"""
import re
from datetime import timedelta
from typing import Any, Dict, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from txload.exceptions import ConfigurationError, StageError
from txload.metrics.thresholds import parse_threshold

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")

_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Any, field: str = "duration", error_cls: Type[ConfigurationError] = ConfigurationError) -> float:
    """
    Convert a duration to seconds.

    Accepts numbers (seconds), timedelta, and strings such as "30s",
    "2m", "500ms", "1h" or "1m30s". A bare numeric string is seconds.

    Raises:
        ConfigurationError: on unparsable or negative durations
    """
    if isinstance(value, bool):
        raise error_cls(f"Invalid {field}: {value!r}", field=field, value=value)

    if isinstance(value, timedelta):
        seconds = value.total_seconds()
    elif isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        text = value.strip().lower()
        try:
            seconds = float(text)
        except ValueError:
            parts = _DURATION_PART_RE.findall(text)
            if not parts or "".join(number + unit for number, unit in parts) != text:
                raise error_cls(f"Invalid {field}: {value!r}", field=field, value=value)
            seconds = sum(float(number) * _UNIT_SECONDS[unit] for number, unit in parts)
    else:
        raise error_cls(f"Invalid {field}: {value!r}", field=field, value=value)

    if seconds < 0:
        raise error_cls(f"{field} cannot be negative: {value!r}", field=field, value=value)
    return seconds


class Stage(BaseModel):
    """One segment of the ramp curve: reach `target` workers over `duration` seconds"""
    model_config = ConfigDict(frozen=True)

    duration: float
    target: int

    @field_validator("duration", mode="before")
    @classmethod
    def validate_duration(cls, v: Any) -> float:
        return parse_duration(v, field="stage duration", error_cls=StageError)

    @field_validator("target", mode="before")
    @classmethod
    def validate_target(cls, v: Any) -> int:
        if isinstance(v, bool) or not isinstance(v, (int, float, str)):
            raise StageError(f"Stage target must be an integer, got {v!r}", value=v)
        try:
            target = int(v)
        except ValueError as e:
            raise StageError(f"Stage target must be an integer, got {v!r}", value=v) from e
        if target < 0:
            raise StageError(f"Stage target cannot be negative, got {target}", value=v)
        return target


class RunConfig(BaseModel):
    """
    Static configuration for one load test run.

    Created once before the run and read-only afterwards; passed explicitly
    to the scheduler, worker pool and collector.
    """
    model_config = ConfigDict(frozen=True)

    stages: Tuple[Stage, ...]
    graceful_ramp_down: float = 30.0
    thresholds: Dict[str, Tuple[str, ...]] = Field(default_factory=dict)
    start_vus: int = Field(default=0, ge=0)
    tick_interval: float = Field(default=1.0, gt=0)
    think_time: float = Field(default=1.0, ge=0)

    @field_validator("stages", mode="before")
    @classmethod
    def coerce_stages(cls, v: Any) -> Tuple[Stage, ...]:
        if not v:
            raise StageError("At least one stage is required", value=v)
        stages = []
        for index, stage in enumerate(v):
            if isinstance(stage, Stage):
                stages.append(stage)
            elif isinstance(stage, dict):
                stages.append(Stage(**stage))
            elif isinstance(stage, (tuple, list)) and len(stage) == 2:
                stages.append(Stage(duration=stage[0], target=stage[1]))
            else:
                raise StageError(f"Cannot interpret stage {stage!r}", stage_index=index, value=stage)
        return tuple(stages)

    @field_validator("graceful_ramp_down", mode="before")
    @classmethod
    def validate_grace(cls, v: Any) -> float:
        return parse_duration(v, field="graceful_ramp_down")

    @field_validator("thresholds", mode="before")
    @classmethod
    def coerce_thresholds(cls, v: Any) -> Dict[str, Tuple[str, ...]]:
        if v is None:
            return {}
        return {
            name: (expressions,) if isinstance(expressions, str) else tuple(expressions)
            for name, expressions in dict(v).items()
        }

    @model_validator(mode="after")
    def validate_run(self) -> "RunConfig":
        """Reject an empty ramp and malformed thresholds before the run starts"""
        if self.total_duration <= 0:
            raise StageError("Total stage duration must be positive", value=self.total_duration)
        for metric_name, expressions in self.thresholds.items():
            for expression in expressions:
                parse_threshold(metric_name, expression)
        return self

    @property
    def total_duration(self) -> float:
        """Sum of all stage durations in seconds"""
        return sum(stage.duration for stage in self.stages)

    @property
    def max_target(self) -> int:
        return max([self.start_vus] + [stage.target for stage in self.stages])
