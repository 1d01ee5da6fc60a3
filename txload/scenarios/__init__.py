"""Load test scenarios"""

from txload.scenarios.transactions import (
    DEFAULT_STAGES,
    DEFAULT_THRESHOLDS,
    SAMPLE_TRANSACTION,
    UPDATED_TRANSACTION,
    TransactionScenario,
    default_run_config,
)

__all__ = [
    "DEFAULT_STAGES",
    "DEFAULT_THRESHOLDS",
    "SAMPLE_TRANSACTION",
    "UPDATED_TRANSACTION",
    "TransactionScenario",
    "default_run_config",
]
