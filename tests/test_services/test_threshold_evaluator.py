"""Tests for ThresholdEvaluator."""

import pytest

from winhealth.config.models import ThresholdConfig
from winhealth.services.threshold_evaluator import ThresholdEvaluator, format_number
from winhealth.utils.status import Severity


def evaluate(name, value, thresholds, subject=None, **details):
    return ThresholdEvaluator.evaluate(name, value, thresholds, subject=subject, details=details)


class TestPercentageRules:
    """Warning/critical bounds for CPU, memory and disk."""

    @pytest.mark.parametrize("value,expected", [
        (50, []),
        (80, []),
        (80.1, [Severity.WARNING]),
        (90, [Severity.WARNING]),
        (90.1, [Severity.CRITICAL]),
        (100, [Severity.CRITICAL]),
    ])
    def test_memory_boundaries(self, thresholds, value, expected):
        issues = evaluate("memory_usage", value, thresholds)
        assert [i.severity for i in issues] == expected

    @pytest.mark.parametrize("value,expected", [
        (79.9, []),
        (80, []),
        (81, [Severity.WARNING]),
        (90, [Severity.WARNING]),
        (91, [Severity.CRITICAL]),
    ])
    def test_disk_boundaries(self, thresholds, value, expected):
        issues = evaluate("disk_usage", value, thresholds, subject="D:")
        assert [i.severity for i in issues] == expected

    def test_cpu_warning_example(self, thresholds):
        issues = evaluate("cpu_usage", 85, thresholds)

        assert len(issues) == 1
        assert issues[0].severity == Severity.WARNING
        assert issues[0].message == "High CPU usage: 85%"

    def test_cpu_critical_is_fixed_at_95(self):
        relaxed = ThresholdConfig(cpu_warning=90)

        assert [i.severity for i in evaluate("cpu_usage", 95, relaxed)] == [Severity.WARNING]
        issues = evaluate("cpu_usage", 95.5, relaxed)
        assert [i.severity for i in issues] == [Severity.CRITICAL]
        assert issues[0].message == "Critical CPU usage: 95.5%"

    def test_disk_critical_supersedes_warning(self, thresholds):
        issues = evaluate("disk_usage", 92, thresholds, subject="C:")

        assert len(issues) == 1
        assert issues[0].severity == Severity.CRITICAL
        assert issues[0].message == "Critical disk usage on C:: 92%"

    def test_environment_threshold_applies(self):
        production = ThresholdConfig(disk_warning=70)
        issues = evaluate("disk_usage", 75, production, subject="C:")
        assert [i.severity for i in issues] == [Severity.WARNING]

    @pytest.mark.parametrize("value", [None, "n/a", True, {"x": 1}])
    def test_uninterpretable_values_yield_nothing(self, thresholds, value):
        assert evaluate("memory_usage", value, thresholds) == []

    def test_page_file_warning(self, thresholds):
        assert evaluate("page_file_usage", 75, thresholds) == []
        issues = evaluate("page_file_usage", 76, thresholds)
        assert issues[0].message == "High page file usage: 76%"
        assert issues[0].severity == Severity.WARNING


class TestServiceAndProcessRules:
    """Presence checks."""

    def test_service_not_found_is_single_warning(self, thresholds):
        issues = evaluate("service_status", "NotFound", thresholds, subject="BITS")

        assert len(issues) == 1
        assert issues[0].severity == Severity.WARNING
        assert "BITS" in issues[0].message
        assert "not found" in issues[0].message

    def test_stopped_automatic_service_is_critical(self, thresholds):
        issues = evaluate(
            "service_status", "Stopped", thresholds, subject="Spooler",
            display_name="Print Spooler", start_type="Auto"
        )

        assert [i.severity for i in issues] == [Severity.CRITICAL]
        assert issues[0].message == "Critical service Spooler (Print Spooler) is Stopped"

    def test_stopped_manual_service_is_ignored(self, thresholds):
        assert evaluate("service_status", "Stopped", thresholds, subject="Themes", start_type="Manual") == []

    def test_running_service_is_ignored(self, thresholds):
        assert evaluate("service_status", "Running", thresholds, subject="BITS", start_type="Auto") == []

    def test_missing_process_warning(self, thresholds):
        issues = evaluate("process_status", False, thresholds, subject="explorer", critical=False)
        assert [i.severity for i in issues] == [Severity.WARNING]
        assert issues[0].message == "Process explorer is not running"

    def test_missing_critical_process(self, thresholds):
        issues = evaluate("process_status", False, thresholds, subject="winlogon", critical=True)
        assert [i.severity for i in issues] == [Severity.CRITICAL]

    def test_port_not_listening(self, thresholds):
        assert evaluate("port_status", True, thresholds, subject="3389") == []
        issues = evaluate("port_status", False, thresholds, subject="5985")
        assert issues[0].message == "Port 5985 is not listening"

    def test_disconnected_adapter(self, thresholds):
        assert evaluate("network_adapter", "Connected", thresholds, subject="Ethernet") == []
        issues = evaluate("network_adapter", "Media Disconnected", thresholds, subject="Ethernet 2")
        assert issues[0].message == "Network adapter Ethernet 2 appears disconnected"


class TestCounterRules:
    """Event logs, updates and performance counters."""

    @pytest.mark.parametrize("channel,level,limit", [
        ("System", "error", 5),
        ("Application", "error", 10),
        ("Security", "warning", 5),
    ])
    def test_event_log_limits(self, thresholds, channel, level, limit):
        assert evaluate("event_log_count", limit, thresholds, subject=channel, level=level, timeframe_hours=24) == []
        issues = evaluate(
            "event_log_count", limit + 1, thresholds, subject=channel, level=level, timeframe_hours=24
        )
        assert len(issues) == 1
        assert issues[0].message == f"Found {limit + 1} {channel.lower()} {level}s in last 24 hours"

    def test_windows_update_findings(self, thresholds):
        issues = evaluate(
            "windows_update", 4, thresholds,
            important_updates=2, windows_update_service_status="Stopped", last_search_success=True
        )
        messages = [i.message for i in issues]
        assert "Found 2 important/critical Windows updates pending" in messages
        assert "Windows Update service is Stopped" in messages
        assert all(i.severity == Severity.WARNING for i in issues)

    def test_windows_update_search_failure(self, thresholds):
        issues = evaluate(
            "windows_update", -1, thresholds,
            important_updates=-1, windows_update_service_status="Running",
            last_search_success=False, error="Access denied"
        )
        assert [i.message for i in issues] == ["Windows Update search failed: Access denied"]

    def test_processor_queue_scales_with_cpu_count(self, thresholds):
        assert evaluate("processor_queue_length", 8, thresholds, processor_count=4) == []
        issues = evaluate("processor_queue_length", 9, thresholds, processor_count=4)
        assert issues[0].message == "High processor queue length: 9"

    def test_paging_and_disk_queue(self, thresholds):
        assert evaluate("memory_pages_per_sec", 1000, thresholds) == []
        assert len(evaluate("memory_pages_per_sec", 1500.25, thresholds)) == 1
        assert evaluate("disk_queue_length", 2, thresholds) == []
        assert len(evaluate("disk_queue_length", 3, thresholds)) == 1

    def test_unknown_metric_yields_nothing(self, thresholds):
        assert evaluate("memory_available_bytes", 1, thresholds) == []
        assert evaluate("system_info", 3.5, thresholds) == []


def test_evaluate_sample_uses_subject_and_details(thresholds, sample):
    issues = ThresholdEvaluator.evaluate_sample(sample("disk_usage", 95, subject="E:"), thresholds)
    assert issues[0].message == "Critical disk usage on E:: 95%"


@pytest.mark.parametrize("value,expected", [(85.0, "85"), (92.5, "92.5"), (33.333, "33.33"), (7, "7")])
def test_format_number(value, expected):
    assert format_number(value) == expected
