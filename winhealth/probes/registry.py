"""Probe name to implementation mapping."""

import logging
from typing import Dict, List, Sequence, Type

from ..utils.errors import ConfigurationError
from .base import BaseProbe
from .disk_probe import DiskUsageProbe
from .eventlog_probe import EventLogSummaryProbe
from .network_probe import NetworkInterfacesProbe, PortStatusProbe
from .performance_probe import CpuUsageProbe, MemoryUsageProbe, PerformanceCountersProbe
from .service_probe import ProcessStatusProbe, ServiceStatusProbe
from .system_probe import SystemInfoProbe
from .update_probe import WindowsUpdateProbe


PROBE_CLASSES: Dict[str, Type[BaseProbe]] = {
    probe.name: probe
    for probe in (
        SystemInfoProbe,
        CpuUsageProbe,
        MemoryUsageProbe,
        DiskUsageProbe,
        NetworkInterfacesProbe,
        ServiceStatusProbe,
        ProcessStatusProbe,
        PortStatusProbe,
        EventLogSummaryProbe,
        WindowsUpdateProbe,
        PerformanceCountersProbe,
    )
}


def build_probes(names: Sequence[str], logger: logging.Logger) -> List[BaseProbe]:
    """
    Instantiate probes in the configured order.

    Raises:
        ConfigurationError: If a probe name is unknown
    """
    unknown = [name for name in names if name not in PROBE_CLASSES]
    if unknown:
        raise ConfigurationError(f"Unknown probe(s): {', '.join(unknown)}")
    return [PROBE_CLASSES[name](logger) for name in names]
