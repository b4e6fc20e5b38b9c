"""Health status, issue severity and collection state enumerations."""

from enum import Enum
from typing import Iterable


class HealthStatus(Enum):
    """Overall health of a Windows host."""

    HEALTHY = "HEALTHY"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"

    def to_emoji(self) -> str:
        """
        Convert status to emoji representation.

        Returns:
            str: Emoji representing the health status
        """
        return {
            HealthStatus.HEALTHY: "🟢",
            HealthStatus.WARNING: "🟡",
            HealthStatus.CRITICAL: "🔴",
        }[self]


class Severity(Enum):
    """Severity of a single finding."""

    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class CollectionState(Enum):
    """Lifecycle of one host collection."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"


def derive_status(issues: Iterable) -> HealthStatus:
    """
    Derive overall host status from its issues.

    CRITICAL if any issue is critical, WARNING if any issue exists,
    HEALTHY otherwise. Issue order does not matter.
    """
    severities = {issue.severity for issue in issues}
    if Severity.CRITICAL in severities:
        return HealthStatus.CRITICAL
    if severities:
        return HealthStatus.WARNING
    return HealthStatus.HEALTHY
