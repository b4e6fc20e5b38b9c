"""Threshold rules mapping metric samples to warning and critical issues."""

from typing import Any, Callable, Dict, List, Mapping, Optional

from ..config.models import ThresholdConfig
from ..utils.metrics import Issue, MetricSample
from ..utils.status import Severity


# Fixed bounds that are not configurable per environment
CPU_CRITICAL_PERCENT = 95.0
PAGE_FILE_WARNING_PERCENT = 75.0
MEMORY_PAGES_PER_SEC_WARNING = 1000.0
DISK_QUEUE_LENGTH_WARNING = 2.0
PROCESSOR_QUEUE_PER_CPU_WARNING = 2.0
EVENT_LOG_WARNING_COUNTS = {
    ("System", "error"): 5,
    ("Application", "error"): 10,
    ("Security", "warning"): 5,
}


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def format_number(value: float) -> str:
    """Render 85.0 as '85' and 92.5 as '92.5'."""
    value = round(float(value), 2)
    if value.is_integer():
        return str(int(value))
    return str(value)


class ThresholdEvaluator:
    """
    Pure, deterministic threshold evaluation.

    Every rule is total: values that cannot be interpreted produce no issues.
    For percentage metrics a critical issue supersedes the warning for the
    same sample.
    """

    @staticmethod
    def evaluate(
        metric_name: str,
        value: Any,
        thresholds: ThresholdConfig,
        subject: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None
    ) -> List[Issue]:
        """
        Evaluate one metric value against thresholds.

        Args:
            metric_name: Sample name (e.g. "cpu_usage", "disk_usage")
            value: Sample value
            thresholds: Resolved thresholds for the host
            subject: Drive, service, process, port or channel the value belongs to
            details: Supplementary sample fields

        Returns:
            List[Issue]: Zero or more issues
        """
        rule = _RULES.get(metric_name)
        if rule is None:
            return []
        try:
            return rule(value, thresholds, subject, details or {})
        except (TypeError, ValueError, KeyError, AttributeError, ArithmeticError):
            return []

    @staticmethod
    def evaluate_sample(sample: MetricSample, thresholds: ThresholdConfig) -> List[Issue]:
        return ThresholdEvaluator.evaluate(
            sample.name, sample.value, thresholds, subject=sample.subject, details=sample.details
        )


def _percentage(
    metric: str,
    value: Any,
    warning: float,
    critical: float,
    label: str
) -> List[Issue]:
    usage = _as_float(value)
    if usage is None:
        return []
    if usage > critical:
        return [Issue(Severity.CRITICAL, f"Critical {label}: {format_number(usage)}%", metric)]
    if usage > warning:
        return [Issue(Severity.WARNING, f"High {label}: {format_number(usage)}%", metric)]
    return []


def _cpu(value, thresholds, subject, details):
    return _percentage("cpu_usage", value, thresholds.cpu_warning, CPU_CRITICAL_PERCENT, "CPU usage")


def _memory(value, thresholds, subject, details):
    return _percentage(
        "memory_usage", value, thresholds.memory_warning, thresholds.memory_critical, "memory usage"
    )


def _page_file(value, thresholds, subject, details):
    usage = _as_float(value)
    if usage is not None and usage > PAGE_FILE_WARNING_PERCENT:
        return [Issue(Severity.WARNING, f"High page file usage: {format_number(usage)}%", "page_file_usage")]
    return []


def _disk(value, thresholds, subject, details):
    return _percentage(
        "disk_usage", value, thresholds.disk_warning, thresholds.disk_critical,
        f"disk usage on {subject or 'unknown drive'}"
    )


def _network_adapter(value, thresholds, subject, details):
    if value != "Connected":
        return [Issue(Severity.WARNING, f"Network adapter {subject} appears disconnected", "network_adapter")]
    return []


def _service(value, thresholds, subject, details):
    if value == "NotFound":
        return [Issue(Severity.WARNING, f"Service {subject} not found on system", "service_status")]
    if value != "Running" and details.get("start_type") == "Auto":
        display_name = details.get("display_name") or subject
        return [Issue(
            Severity.CRITICAL,
            f"Critical service {subject} ({display_name}) is {value}",
            "service_status"
        )]
    return []


def _process(value, thresholds, subject, details):
    if value is True:
        return []
    if details.get("critical"):
        return [Issue(Severity.CRITICAL, f"Critical process {subject} is not running", "process_status")]
    return [Issue(Severity.WARNING, f"Process {subject} is not running", "process_status")]


def _port(value, thresholds, subject, details):
    if value is True:
        return []
    return [Issue(Severity.WARNING, f"Port {subject} is not listening", "port_status")]


def _event_log(value, thresholds, subject, details):
    level = details.get("level")
    limit = EVENT_LOG_WARNING_COUNTS.get((subject, level))
    count = _as_float(value)
    if limit is None or count is None or count <= limit:
        return []
    hours = details.get("timeframe_hours", thresholds.event_log_hours)
    return [Issue(
        Severity.WARNING,
        f"Found {int(count)} {str(subject).lower()} {level}s in last {hours} hours",
        "event_log_count"
    )]


def _windows_update(value, thresholds, subject, details):
    issues = []
    important = _as_float(details.get("important_updates"))
    if important is not None and important > 0:
        issues.append(Issue(
            Severity.WARNING,
            f"Found {int(important)} important/critical Windows updates pending",
            "windows_update"
        ))
    service_status = details.get("windows_update_service_status", "Unknown")
    if service_status != "Running":
        issues.append(Issue(Severity.WARNING, f"Windows Update service is {service_status}", "windows_update"))
    if not details.get("last_search_success", True):
        issues.append(Issue(
            Severity.WARNING,
            f"Windows Update search failed: {details.get('error') or 'Unknown error'}",
            "windows_update"
        ))
    return issues


def _processor_queue(value, thresholds, subject, details):
    length = _as_float(value)
    processors = _as_float(details.get("processor_count")) or 1.0
    if length is not None and length > processors * PROCESSOR_QUEUE_PER_CPU_WARNING:
        return [Issue(
            Severity.WARNING, f"High processor queue length: {format_number(length)}", "processor_queue_length"
        )]
    return []


def _paging_rate(value, thresholds, subject, details):
    rate = _as_float(value)
    if rate is not None and rate > MEMORY_PAGES_PER_SEC_WARNING:
        return [Issue(
            Severity.WARNING, f"High memory paging rate: {format_number(rate)} pages/sec",
            "memory_pages_per_sec"
        )]
    return []


def _disk_queue(value, thresholds, subject, details):
    length = _as_float(value)
    if length is not None and length > DISK_QUEUE_LENGTH_WARNING:
        return [Issue(Severity.WARNING, f"High disk queue length: {format_number(length)}", "disk_queue_length")]
    return []


_RULES: Dict[str, Callable[..., List[Issue]]] = {
    "cpu_usage": _cpu,
    "memory_usage": _memory,
    "page_file_usage": _page_file,
    "disk_usage": _disk,
    "network_adapter": _network_adapter,
    "service_status": _service,
    "process_status": _process,
    "port_status": _port,
    "event_log_count": _event_log,
    "windows_update": _windows_update,
    "processor_queue_length": _processor_queue,
    "memory_pages_per_sec": _paging_rate,
    "disk_queue_length": _disk_queue,
}
