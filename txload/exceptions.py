"""
Standardized exception hierarchy for txload
Provides rich context and consistent logging for configuration and request errors
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)


class LoadTestError(Exception):
    """
    Base exception for all txload errors

    Provides:
    - Automatic timestamping
    - Structured context
    - Automatic logging

    Example:
        raise LoadTestError(
            message="Scheduler failed to start",
            operation="start",
            context={"stages": 3}
        )
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        log_level: int = logging.ERROR
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        # Auto-log on creation
        self._log_error(log_level)

    def _log_error(self, log_level: int) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,  # Avoid conflict with logging's 'message' field
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.log(log_level, f"{self.__class__.__name__}: {self.message}", extra=log_data, exc_info=self.cause)
        else:
            logger.log(log_level, f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for reports"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "operation": self.operation,
            "context": self.context,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Configuration Errors (fatal, before the run)
# ==========================================

class ConfigurationError(LoadTestError):
    """
    Raised when run configuration is invalid

    Examples:
    - Unparsable PORT
    - Negative stage duration
    - Malformed threshold expression

    Example:
        raise ConfigurationError(
            message="PORT must be an integer",
            field="PORT",
            value="abc"
        )
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            context={"field": field, "value": value},
            **kwargs
        )


class StageError(ConfigurationError):
    """Ramp stage has an invalid duration or target"""

    def __init__(self, message: str, stage_index: Optional[int] = None, **kwargs):
        self.stage_index = stage_index
        kwargs.setdefault("field", f"stages[{stage_index}]" if stage_index is not None else "stages")
        super().__init__(message=message, **kwargs)


class ThresholdExpressionError(ConfigurationError):
    """Threshold expression cannot be parsed or does not fit its metric"""

    def __init__(
        self,
        message: str,
        metric_name: Optional[str] = None,
        expression: Optional[str] = None,
        **kwargs
    ):
        self.metric_name = metric_name
        self.expression = expression
        super().__init__(
            message=message,
            field=f"thresholds.{metric_name}" if metric_name else "thresholds",
            value=expression,
            **kwargs
        )


# ==========================================
# Request Errors (recorded, never fatal)
# ==========================================

class RequestFailedError(LoadTestError):
    """
    Describes a single failed HTTP call

    Never propagated out of the API client: the client records a failed
    outcome and hands this to the scenario as the response's error.
    """

    def __init__(
        self,
        message: str,
        request_name: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs
    ):
        self.request_name = request_name
        self.status_code = status_code
        kwargs.setdefault("log_level", logging.DEBUG)
        super().__init__(
            message=message,
            operation=request_name,
            context={"request_name": request_name, "status_code": status_code},
            **kwargs
        )
