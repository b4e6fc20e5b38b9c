"""Tests for probe output parsers."""

import json

import pytest

from winhealth.config.models import ThresholdConfig
from winhealth.probes.disk_probe import DiskUsageProbe
from winhealth.probes.eventlog_probe import EventLogSummaryProbe
from winhealth.probes.network_probe import NetworkInterfacesProbe, PortStatusProbe
from winhealth.probes.performance_probe import CpuUsageProbe, MemoryUsageProbe, PerformanceCountersProbe
from winhealth.probes.service_probe import ProcessStatusProbe, ServiceStatusProbe
from winhealth.probes.system_probe import SystemInfoProbe
from winhealth.probes.update_probe import WindowsUpdateProbe
from winhealth.utils.errors import ProbeParseError


class TestSystemAndPerformance:

    def test_system_info(self, logger, thresholds):
        stdout = json.dumps({
            "hostname": "WIN-SERVER-01",
            "domain": "corp.local",
            "os_name": "Windows Server 2022 Standard",
            "os_version": "2009",
            "uptime_days": 12.5,
            "processor_count": 4,
        })

        samples = SystemInfoProbe(logger).parse(stdout, thresholds)

        assert len(samples) == 1
        assert samples[0].name == "system_info"
        assert samples[0].value == 12.5
        assert samples[0].details["hostname"] == "WIN-SERVER-01"
        assert samples[0].details["os_build"] is None

    def test_system_info_requires_hostname(self, logger, thresholds):
        with pytest.raises(ProbeParseError, match="hostname"):
            SystemInfoProbe(logger).parse('{"uptime_days": 1}', thresholds)

    @pytest.mark.parametrize("stdout,expected", [("85\r\n", 85.0), ("12,5", 12.5), (" 3.2 ", 3.2)])
    def test_cpu(self, logger, thresholds, stdout, expected):
        samples = CpuUsageProbe(logger).parse(stdout, thresholds)
        assert samples[0].name == "cpu_usage"
        assert samples[0].value == expected

    @pytest.mark.parametrize("stdout", ["", "   ", "N/A"])
    def test_cpu_rejects_garbage(self, logger, thresholds, stdout):
        with pytest.raises(ProbeParseError):
            CpuUsageProbe(logger).parse(stdout, thresholds)

    def test_memory_yields_memory_and_page_file(self, logger, thresholds):
        stdout = json.dumps({
            "total_gb": 16.0, "free_gb": 4.0, "used_gb": 12.0,
            "used_percent": 75.0, "page_file_used_percent": 20.5, "page_file_size_gb": 2.0,
        })

        memory, page_file = MemoryUsageProbe(logger).parse(stdout, thresholds)

        assert (memory.name, memory.value) == ("memory_usage", 75.0)
        assert memory.details["total_gb"] == 16.0
        assert (page_file.name, page_file.value) == ("page_file_usage", 20.5)

    def test_memory_missing_field(self, logger, thresholds):
        with pytest.raises(ProbeParseError, match="used_percent"):
            MemoryUsageProbe(logger).parse('{"total_gb": 16}', thresholds)

    def test_performance_counters(self, logger, thresholds):
        stdout = json.dumps({
            "processor_queue_length": 3,
            "memory_pages_per_sec": 120.5,
            "memory_available_bytes": 4294967296,
            "disk_queue_length": 0,
            "processor_count": 8,
        })

        samples = PerformanceCountersProbe(logger).parse(stdout, thresholds)

        assert [s.name for s in samples] == [
            "processor_queue_length", "memory_pages_per_sec", "memory_available_bytes", "disk_queue_length"
        ]
        assert samples[0].details == {"processor_count": 8}


class TestDiskAndNetwork:

    def test_single_disk_object_is_normalized(self, logger, thresholds):
        stdout = json.dumps({"drive": "C:", "used_percent": 92.0, "size_gb": 100, "free_gb": 8})

        samples = DiskUsageProbe(logger).parse(stdout, thresholds)

        assert len(samples) == 1
        assert samples[0].subject == "C:"
        assert samples[0].value == 92.0

    def test_multiple_disks_keep_order(self, logger, thresholds):
        stdout = json.dumps([
            {"drive": "C:", "used_percent": 40},
            {"drive": "D:", "used_percent": 85.5},
        ])

        samples = DiskUsageProbe(logger).parse(stdout, thresholds)

        assert [(s.subject, s.value) for s in samples] == [("C:", 40.0), ("D:", 85.5)]

    def test_disk_rejects_non_json(self, logger, thresholds):
        with pytest.raises(ProbeParseError, match="Invalid JSON"):
            DiskUsageProbe(logger).parse("Get-CimInstance : Access denied", thresholds)

    def test_network_adapter_status_mapping(self, logger, thresholds):
        stdout = json.dumps([
            {"name": "Ethernet", "description": "vmxnet3", "status": 2, "ip_addresses": "10.0.0.5"},
            {"name": None, "description": "Backup NIC", "status": 7},
        ])

        first, second = NetworkInterfacesProbe(logger).parse(stdout, thresholds)

        assert (first.subject, first.value) == ("Ethernet", "Connected")
        assert first.details["ip_addresses"] == ["10.0.0.5"]
        assert (second.subject, second.value) == ("Backup NIC", "Media Disconnected")

    def test_ports(self, logger):
        thresholds = ThresholdConfig(check_ports=[3389, 5985])
        stdout = json.dumps([{"port": 3389, "listening": True}, {"port": 5985, "listening": False}])

        samples = PortStatusProbe(logger).parse(stdout, thresholds)

        assert [(s.subject, s.value) for s in samples] == [("3389", True), ("5985", False)]

    def test_port_script_embeds_configured_ports(self, logger):
        script = PortStatusProbe(logger).build_script(ThresholdConfig(check_ports=[80, 443]))
        assert script.startswith("$portsToCheck = @(80, 443)")

    def test_no_ports_configured(self, logger):
        assert PortStatusProbe(logger).parse("", ThresholdConfig(check_ports=[])) == []


class TestServicesAndProcesses:

    def test_services(self, logger, thresholds):
        stdout = json.dumps([
            {"name": "Spooler", "display_name": "Print Spooler", "status": "Running", "start_type": "Auto"},
            {"name": "BITS", "display_name": "Service not found", "status": "NotFound", "start_type": "Unknown"},
        ])

        samples = ServiceStatusProbe(logger).parse(stdout, thresholds)

        assert [(s.subject, s.value) for s in samples] == [("Spooler", "Running"), ("BITS", "NotFound")]
        assert samples[0].details["start_type"] == "Auto"

    def test_service_script_quotes_names(self, logger):
        script = ServiceStatusProbe(logger).build_script(ThresholdConfig(check_services=["O'Brien", "BITS"]))
        assert script.startswith("$servicesToCheck = @('O''Brien', 'BITS')")

    def test_processes_carry_criticality(self, logger):
        thresholds = ThresholdConfig(check_processes=["explorer", {"name": "winlogon", "critical": True}])
        stdout = json.dumps([
            {"name": "explorer", "running": False, "count": 0},
            {"name": "winlogon", "running": True, "count": 1},
        ])

        explorer, winlogon = ProcessStatusProbe(logger).parse(stdout, thresholds)

        assert explorer.value is False
        assert explorer.details == {"count": 0, "critical": False}
        assert winlogon.details["critical"] is True

    def test_process_running_must_be_boolean(self, logger, thresholds):
        with pytest.raises(ProbeParseError):
            ProcessStatusProbe(logger).parse('[{"name": "csrss", "running": "yes"}]', thresholds)


class TestEventsAndUpdates:

    def test_event_counts_default_to_zero(self, logger, thresholds):
        stdout = json.dumps({"system_errors": 7, "application_errors": None, "timeframe_hours": 48})

        samples = EventLogSummaryProbe(logger).parse(stdout, thresholds)

        assert [(s.subject, s.details["level"], s.value) for s in samples] == [
            ("System", "error", 7),
            ("Application", "error", 0),
            ("Security", "warning", 0),
        ]
        assert all(s.details["timeframe_hours"] == 48 for s in samples)

    def test_event_script_uses_lookback(self, logger):
        script = EventLogSummaryProbe(logger).build_script(ThresholdConfig(event_log_hours=8))
        assert script.startswith("$hoursBack = 8")

    def test_windows_update(self, logger, thresholds):
        stdout = json.dumps({
            "pending_updates_count": 5,
            "important_updates": 2,
            "optional_updates": 3,
            "windows_update_service_status": "Running",
            "last_search_success": True,
        })

        sample, = WindowsUpdateProbe(logger).parse(stdout, thresholds)

        assert sample.value == 5
        assert sample.details["important_updates"] == 2
        assert sample.details["error"] is None

    def test_windows_update_requires_count(self, logger, thresholds):
        with pytest.raises(ProbeParseError):
            WindowsUpdateProbe(logger).parse('{"important_updates": 1}', thresholds)
