"""Named boolean checks over a response

Mirrors the check() helper load test scripts are written against: each
predicate is evaluated independently, recorded as one `checks` outcome and
never raises into the scenario.
"""

import logging
from typing import Any, Callable, Mapping

from txload.metrics.collector import CHECKS, MetricsCollector

logger = logging.getLogger(__name__)


def check(
    collector: MetricsCollector,
    subject: Any,
    predicates: Mapping[str, Callable[[Any], bool]],
    **tags: str
) -> bool:
    """
    Evaluate each named predicate against subject and record the result.

    A predicate that raises counts as a failed check.

    Returns:
        True if every predicate passed
    """
    all_passed = True
    for name, predicate in predicates.items():
        try:
            passed = bool(predicate(subject))
        except Exception as e:
            logger.debug(f"[CHECK] '{name}' raised {type(e).__name__}: {e}")
            passed = False

        if not passed:
            all_passed = False
            logger.debug(f"[CHECK] '{name}' failed")
        collector.add(CHECKS, passed, check=name, **tags)
    return all_passed
