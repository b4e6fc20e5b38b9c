"""Merges per-host results into a fleet report."""

import logging
from typing import Dict, List, Sequence

from ..utils.metrics import FleetReport, HostReport
from ..utils.status import CollectionState, HealthStatus


class ReportAggregator:
    """Builds the FleetReport and its run-level summary counts."""

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger(__name__)

    def aggregate(
        self,
        host_reports: Sequence[HostReport],
        started_at: float,
        finished_at: float
    ) -> FleetReport:
        """
        Aggregate host reports without reordering them.

        Args:
            host_reports: One report per dispatched target, in target order
            started_at: Run start (epoch seconds)
            finished_at: Run end (epoch seconds)

        Returns:
            FleetReport: Ordered hosts plus summary counts
        """
        hosts: List[HostReport] = list(host_reports)
        summary = self.summarize(hosts)

        self.logger.info(
            f"Fleet summary: {summary['total']} host(s), {summary['healthy']} healthy, "
            f"{summary['warning']} warning, {summary['critical']} critical, "
            f"{summary['failed']} failed, {summary['timed_out']} timed out"
        )

        return FleetReport(hosts=hosts, started_at=started_at, finished_at=finished_at, summary=summary)

    @staticmethod
    def summarize(hosts: Sequence[HostReport]) -> Dict[str, int]:
        """
        Count hosts per outcome.

        Hosts that produced no samples (FAILED, or TIMED_OUT before anything
        was collected) count as failed; every other host counts under its
        derived status. Timed-out hosts are additionally counted on their own.
        """
        summary = {"total": len(hosts), "healthy": 0, "warning": 0, "critical": 0, "failed": 0, "timed_out": 0}

        for host in hosts:
            if host.collection_state == CollectionState.TIMED_OUT:
                summary["timed_out"] += 1

            if host.collection_state == CollectionState.FAILED or not host.samples:
                summary["failed"] += 1
            elif host.status == HealthStatus.CRITICAL:
                summary["critical"] += 1
            elif host.status == HealthStatus.WARNING:
                summary["warning"] += 1
            else:
                summary["healthy"] += 1

        return summary
