"""JSON report schema and console summary rendering."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..services.threshold_evaluator import format_number
from ..utils.metrics import FleetReport, HostReport, MetricSample


def iso_timestamp(epoch: float) -> str:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


class ReportFormatter:
    """
    Pure, order-preserving transforms from reports to the persisted JSON
    layout and to the human-readable console summary.
    """

    # ------------------------------------------------------------------
    # JSON
    # ------------------------------------------------------------------

    def host_to_dict(self, report: HostReport) -> Dict[str, Any]:
        """
        Serialize one host report.

        Top-level keys: health_check, system_info, performance_metrics,
        network, services, processes, events, windows_update, issues, collection.
        """
        warnings = [i.message for i in report.warnings]
        critical = [i.message for i in report.critical_issues]

        return {
            "health_check": {
                "timestamp": iso_timestamp(report.timestamp),
                "hostname": report.target_name,
                "target": report.host,
                "environment": report.environment,
                "status": report.status.value,
                "summary": {
                    "total_warnings": len(warnings),
                    "total_critical": len(critical),
                    "total_issues": len(warnings) + len(critical),
                },
            },
            "system_info": self._system_info(report),
            "performance_metrics": {
                "cpu": self._cpu(report),
                "memory": self._memory(report),
                "disk_usage": [
                    {"drive": s.subject, "used_percent": s.value, **s.details}
                    for s in report.samples_named("disk_usage")
                ],
                "performance_counters": self._performance_counters(report),
            },
            "network": {
                "interfaces": [
                    {"name": s.subject, "status": s.value, **s.details}
                    for s in report.samples_named("network_adapter")
                ],
                "ports": [
                    {"port": self._port_number(s.subject), "listening": s.value}
                    for s in report.samples_named("port_status")
                ],
            },
            "services": [
                {
                    "name": s.subject,
                    "display_name": s.details.get("display_name"),
                    "status": s.value,
                    "start_type": s.details.get("start_type"),
                }
                for s in report.samples_named("service_status")
            ],
            "processes": [
                {"name": s.subject, "running": s.value, "count": s.details.get("count", 0)}
                for s in report.samples_named("process_status")
            ],
            "events": self._events(report),
            "windows_update": self._windows_update(report),
            "issues": {
                "warnings": warnings,
                "critical": critical,
            },
            "collection": {
                "state": report.collection_state.value,
                "attempts": report.attempts,
                "duration_seconds": round(report.duration, 2),
                "errors": [
                    {"probe": e.probe, "kind": e.kind, "message": e.message}
                    for e in report.probe_errors
                ],
            },
        }

    def fleet_to_dict(self, fleet: FleetReport) -> Dict[str, Any]:
        return {
            "run": {
                "started_at": iso_timestamp(fleet.started_at),
                "finished_at": iso_timestamp(fleet.finished_at),
                "duration_seconds": round(fleet.duration, 2),
                "summary": dict(fleet.summary),
            },
            "hosts": [self.host_to_dict(host) for host in fleet.hosts],
        }

    def _first(self, report: HostReport, name: str) -> Optional[MetricSample]:
        samples = report.samples_named(name)
        return samples[0] if samples else None

    def _system_info(self, report: HostReport) -> Dict[str, Any]:
        sample = self._first(report, "system_info")
        return dict(sample.details) if sample else {}

    def _cpu(self, report: HostReport) -> Optional[Dict[str, Any]]:
        sample = self._first(report, "cpu_usage")
        return {"usage_percent": sample.value} if sample else None

    def _memory(self, report: HostReport) -> Optional[Dict[str, Any]]:
        memory = self._first(report, "memory_usage")
        if memory is None:
            return None
        result = {"used_percent": memory.value, **memory.details}
        page_file = self._first(report, "page_file_usage")
        if page_file is not None:
            result["page_file_used_percent"] = page_file.value
            result.update(page_file.details)
        return result

    def _performance_counters(self, report: HostReport) -> Dict[str, Any]:
        counters = {}
        for name in ("processor_queue_length", "memory_pages_per_sec", "memory_available_bytes", "disk_queue_length"):
            sample = self._first(report, name)
            if sample is not None:
                counters[name] = sample.value
        return counters

    def _events(self, report: HostReport) -> Dict[str, Any]:
        samples = report.samples_named("event_log_count")
        if not samples:
            return {}
        events: Dict[str, Any] = {}
        for sample in samples:
            key = f"{str(sample.subject).lower()}_{sample.details.get('level')}s"
            events[key] = sample.value
            events["timeframe_hours"] = sample.details.get("timeframe_hours")
        return events

    def _windows_update(self, report: HostReport) -> Dict[str, Any]:
        sample = self._first(report, "windows_update")
        if sample is None:
            return {}
        return {"pending_updates_count": sample.value, **sample.details}

    @staticmethod
    def _port_number(subject: Optional[str]) -> Any:
        try:
            return int(subject)
        except (TypeError, ValueError):
            return subject

    # ------------------------------------------------------------------
    # Console
    # ------------------------------------------------------------------

    def console_summary(self, report: HostReport) -> str:
        """Render the per-host summary block printed after each run."""
        info = self._system_info(report)
        cpu = self._first(report, "cpu_usage")
        memory = self._first(report, "memory_usage")
        page_file = self._first(report, "page_file_usage")

        lines = [
            "=== WINDOWS VM HEALTH CHECK SUMMARY ===",
            f"Host: {report.target_name}",
            f"Status: {report.status.to_emoji()} {report.status.value}",
            f"Timestamp: {iso_timestamp(report.timestamp)}",
            f"Collection: {report.collection_state.value} (attempts: {report.attempts})",
            "",
            "System Info:",
            f"- OS: {self._text(info.get('os_name'))}",
            f"- Version: {self._text(info.get('os_version'))}",
            f"- Domain: {self._text(info.get('domain'))}",
            f"- Uptime: {self._text(info.get('uptime_days'))} days",
            f"- Memory: {self._text(info.get('total_memory_gb'))} GB",
            f"- Processors: {self._text(info.get('processor_count'))}",
            "",
            "Performance Metrics:",
            f"- CPU Usage: {self._percent(cpu)}",
            f"- Memory Usage: {self._percent(memory)}",
            f"- Page File Usage: {self._percent(page_file)}",
        ]

        lines += self._list_section("Warnings", [i.message for i in report.warnings])
        lines += self._list_section("Critical Issues", [i.message for i in report.critical_issues])
        lines += self._list_section(
            "Failed Probes",
            [f"{e.probe} [{e.kind}]: {e.message}" for e in report.probe_errors]
        )
        return "\n".join(lines)

    def fleet_summary(self, fleet: FleetReport) -> str:
        """One-line fleet totals followed by each host block."""
        summary = fleet.summary
        header = (
            f"Fleet: {summary.get('total', 0)} host(s) | {summary.get('healthy', 0)} healthy | "
            f"{summary.get('warning', 0)} warning | {summary.get('critical', 0)} critical | "
            f"{summary.get('failed', 0)} failed | {summary.get('timed_out', 0)} timed out | "
            f"{fleet.duration:.1f}s"
        )
        blocks = [self.console_summary(host) for host in fleet.hosts]
        return "\n\n".join([header] + blocks)

    @staticmethod
    def _text(value: Any) -> str:
        return "n/a" if value is None or value == "" else str(value)

    @staticmethod
    def _percent(sample: Optional[MetricSample]) -> str:
        if sample is None:
            return "n/a"
        return f"{format_number(sample.value)}%"

    @staticmethod
    def _list_section(title: str, items: List[str]) -> List[str]:
        if not items:
            return []
        return ["", f"{title} ({len(items)}):"] + [f"- {item}" for item in items]
