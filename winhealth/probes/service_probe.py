"""Windows service and process presence probes."""

from typing import List

from ..config.models import ThresholdConfig
from ..utils.errors import ProbeParseError
from ..utils.metrics import MetricSample
from .base import BaseProbe, as_list, load_json, ps_list, require


SERVICE_SCRIPT = r"""
$serviceResults = @()
foreach ($serviceName in $servicesToCheck) {
  $service = Get-Service -Name $serviceName -ErrorAction SilentlyContinue
  if ($service) {
    $serviceResults += @{
      name = $service.Name
      display_name = $service.DisplayName
      status = $service.Status.ToString()
      start_type = (Get-CimInstance -ClassName Win32_Service -Filter "Name='$($service.Name)'").StartMode
    }
  } else {
    $serviceResults += @{
      name = $serviceName
      display_name = "Service not found"
      status = "NotFound"
      start_type = "Unknown"
    }
  }
}
ConvertTo-Json -InputObject @($serviceResults) -Depth 2 -Compress
"""

PROCESS_SCRIPT = r"""
$processResults = @()
foreach ($processName in $processesToCheck) {
  $processes = @(Get-Process -Name $processName -ErrorAction SilentlyContinue)
  $processResults += @{
    name = $processName
    running = ($processes.Count -gt 0)
    count = $processes.Count
  }
}
ConvertTo-Json -InputObject @($processResults) -Depth 2 -Compress
"""

SERVICE_NOT_FOUND = "NotFound"


class ServiceStatusProbe(BaseProbe):
    """State and start mode of each configured service."""

    name = "services"

    def build_script(self, thresholds: ThresholdConfig) -> str:
        return f"$servicesToCheck = {ps_list(thresholds.check_services)}\n" + SERVICE_SCRIPT

    def parse(self, stdout: str, thresholds: ThresholdConfig) -> List[MetricSample]:
        if not thresholds.check_services:
            return []

        samples = []
        for service in as_list(load_json(stdout)):
            samples.append(MetricSample(
                name="service_status",
                value=str(require(service, "status")),
                subject=str(require(service, "name")),
                details={
                    "display_name": service.get("display_name"),
                    "start_type": service.get("start_type") or "Unknown",
                },
            ))
        return samples


class ProcessStatusProbe(BaseProbe):
    """Whether each configured process has at least one running instance."""

    name = "processes"

    def build_script(self, thresholds: ThresholdConfig) -> str:
        names = [process.name for process in thresholds.check_processes]
        return f"$processesToCheck = {ps_list(names)}\n" + PROCESS_SCRIPT

    def parse(self, stdout: str, thresholds: ThresholdConfig) -> List[MetricSample]:
        if not thresholds.check_processes:
            return []

        critical = {p.name.lower(): p.critical for p in thresholds.check_processes}
        samples = []
        for process in as_list(load_json(stdout)):
            name = str(require(process, "name"))
            running = require(process, "running")
            if not isinstance(running, bool):
                raise ProbeParseError(f"Process {name} has non-boolean running state {running!r}")
            samples.append(MetricSample(
                name="process_status",
                value=running,
                subject=name,
                details={
                    "count": process.get("count", 0),
                    "critical": critical.get(name.lower(), False),
                },
            ))
        return samples
