"""Error taxonomy for health collection."""


class HealthCheckError(Exception):
    """Base class for all health check errors."""


class ConfigurationError(HealthCheckError):
    """Missing or invalid configuration. Aborts the run before any host is contacted."""


class TransportError(HealthCheckError):
    """
    Remote execution failed: connection, authentication, timeout or non-zero exit.

    Retryable at the fleet level (whole-host retry), never within a single
    collection pass.
    """

    def __init__(self, message: str, timed_out: bool = False, exit_status: int = None):
        super().__init__(message)
        self.timed_out = timed_out
        self.exit_status = exit_status


class ProbeParseError(HealthCheckError):
    """Remote command succeeded but its output could not be parsed."""


class HostTimeoutError(HealthCheckError):
    """Host wall-clock deadline exceeded. Partial results are preserved."""


class HostUnreachableError(TransportError):
    """Every probe of a collection attempt failed at the transport level."""

    def __init__(self, report):
        errors = "; ".join(e.message for e in report.probe_errors[:3])
        super().__init__(f"Host {report.target_name} unreachable: {errors}")
        self.report = report
