"""Metric and report data structures shared by probes, collectors and reporting."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import time

from .status import CollectionState, HealthStatus, Severity, derive_status


@dataclass(frozen=True)
class MetricSample:
    """Single typed measurement produced by a probe."""

    name: str
    value: Any
    unit: Optional[str] = None
    subject: Optional[str] = None  # drive, adapter, service, process, port or log channel
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class Issue:
    """Warning or critical finding attached to a host report."""

    severity: Severity
    message: str
    metric: str


@dataclass(frozen=True)
class ProbeError:
    """Why a probe produced no samples."""

    probe: str
    kind: str  # transport, parse, timeout, skipped, internal
    message: str


@dataclass
class ProbeResult:
    """Outcome of one probe run: samples on success, an error otherwise."""

    probe_name: str
    samples: List[MetricSample] = field(default_factory=list)
    error: Optional[ProbeError] = None
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class HostReport:
    """Collection result for one target in one run."""

    target_name: str
    host: str
    environment: Optional[str]
    collection_state: CollectionState
    samples: List[MetricSample] = field(default_factory=list)
    issues: List[Issue] = field(default_factory=list)
    probe_errors: List[ProbeError] = field(default_factory=list)
    attempts: int = 1
    duration: float = 0.0
    timestamp: Optional[float] = None

    def __post_init__(self):
        """Set timestamp if not provided."""
        if self.timestamp is None:
            self.timestamp = time.time()

    @property
    def status(self) -> HealthStatus:
        return derive_status(self.issues)

    @property
    def warnings(self) -> List[Issue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    @property
    def critical_issues(self) -> List[Issue]:
        return [i for i in self.issues if i.severity == Severity.CRITICAL]

    @property
    def transport_failure(self) -> bool:
        """True when nothing was collected and every probe failed at the transport level."""
        return (
            self.collection_state == CollectionState.FAILED
            and bool(self.probe_errors)
            and all(e.kind in ("transport", "timeout") for e in self.probe_errors)
        )

    def samples_named(self, name: str) -> List[MetricSample]:
        return [s for s in self.samples if s.name == name]


@dataclass
class FleetReport:
    """Ordered per-host reports for one run plus run-level metadata."""

    hosts: List[HostReport]
    started_at: float
    finished_at: float
    summary: Dict[str, int] = field(default_factory=dict)

    @property
    def duration(self) -> float:
        return self.finished_at - self.started_at

    @property
    def any_critical(self) -> bool:
        return any(h.status == HealthStatus.CRITICAL for h in self.hosts)
