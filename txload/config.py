"""Configuration management"""
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

from txload.exceptions import ConfigurationError

load_dotenv()

# Target API
# PORT is kept as the raw string; parse_port() validates it before the run starts
PORT: str = os.getenv("PORT", "80")
TARGET_HOST: str = os.getenv("TARGET_HOST", "localhost")

# HTTP client
# Same per-request default as k6 (60s)
REQUEST_TIMEOUT_SECONDS: str = os.getenv("REQUEST_TIMEOUT_SECONDS", "60")

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# Observability
# 0 disables the live Prometheus endpoint
METRICS_PORT: str = os.getenv("METRICS_PORT", "0")

# Reporting
SUMMARY_EXPORT_PATH: Optional[Path] = (
    Path(os.environ["SUMMARY_EXPORT_PATH"]) if os.getenv("SUMMARY_EXPORT_PATH") else None
)


def parse_port(value: str, field: str = "PORT", allow_zero: bool = False) -> int:
    """Parse a TCP port number, raising ConfigurationError when invalid"""
    try:
        port = int(value.strip())
    except (ValueError, AttributeError) as e:
        raise ConfigurationError(
            message=f"{field} must be an integer, got {value!r}",
            field=field,
            value=value,
            cause=e
        )

    lower = 0 if allow_zero else 1
    if not lower <= port <= 65535:
        raise ConfigurationError(
            message=f"{field} must be between {lower} and 65535, got {port}",
            field=field,
            value=value
        )
    return port


def parse_timeout(value: str) -> float:
    """Parse the request timeout in seconds"""
    try:
        timeout = float(value)
    except (ValueError, TypeError) as e:
        raise ConfigurationError(
            message=f"REQUEST_TIMEOUT_SECONDS must be a number, got {value!r}",
            field="REQUEST_TIMEOUT_SECONDS",
            value=value,
            cause=e
        )
    if timeout <= 0:
        raise ConfigurationError(
            message="REQUEST_TIMEOUT_SECONDS must be positive",
            field="REQUEST_TIMEOUT_SECONDS",
            value=value
        )
    return timeout


def get_base_url(host: Optional[str] = None, port: Optional[str] = None) -> str:
    """Build the target base URL, e.g. http://localhost:80"""
    return f"http://{host or TARGET_HOST}:{parse_port(port if port is not None else PORT)}"


def get_request_timeout() -> float:
    return parse_timeout(REQUEST_TIMEOUT_SECONDS)


def get_metrics_port() -> int:
    return parse_port(METRICS_PORT, field="METRICS_PORT", allow_zero=True)


# Validation
def validate_config() -> None:
    """Validate configuration before the run starts"""
    if not TARGET_HOST:
        raise ConfigurationError("TARGET_HOST is required", field="TARGET_HOST", value=TARGET_HOST)
    parse_port(PORT)
    get_request_timeout()
    get_metrics_port()
