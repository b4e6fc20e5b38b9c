"""CPU, memory and performance counter probes."""

from typing import List

from ..config.models import ThresholdConfig
from ..utils.errors import ProbeParseError
from ..utils.metrics import MetricSample
from .base import BaseProbe, as_object, load_json, require, to_float


CPU_SCRIPT = r"""
$cpu = Get-CimInstance -ClassName Win32_Processor | Measure-Object -Property LoadPercentage -Average
[math]::Round($cpu.Average, 1)
"""

MEMORY_SCRIPT = r"""
$memory = Get-CimInstance -ClassName Win32_OperatingSystem
$totalMemory = $memory.TotalVisibleMemorySize * 1KB
$freeMemory = $memory.FreePhysicalMemory * 1KB
$usedMemory = $totalMemory - $freeMemory
$usedPercent = [math]::Round(($usedMemory / $totalMemory) * 100, 1)

$pageFile = Get-CimInstance -ClassName Win32_PageFileUsage | Select-Object -First 1
$pageFileUsedPercent = if ($pageFile -and $pageFile.AllocatedBaseSize -gt 0) {
  [math]::Round(($pageFile.CurrentUsage / $pageFile.AllocatedBaseSize) * 100, 1)
} else { 0 }

$result = @{
  total_gb = [math]::Round($totalMemory / 1GB, 2)
  free_gb = [math]::Round($freeMemory / 1GB, 2)
  used_gb = [math]::Round($usedMemory / 1GB, 2)
  used_percent = $usedPercent
  page_file_used_percent = $pageFileUsedPercent
  page_file_size_gb = if ($pageFile) { [math]::Round($pageFile.AllocatedBaseSize / 1KB, 2) } else { 0 }
}
ConvertTo-Json -InputObject $result -Compress
"""

PERFORMANCE_COUNTERS_SCRIPT = r"""
$result = @{
  processor_queue_length = (Get-Counter "\System\Processor Queue Length").CounterSamples[0].CookedValue
  memory_pages_per_sec = (Get-Counter "\Memory\Pages/sec").CounterSamples[0].CookedValue
  memory_available_bytes = (Get-Counter "\Memory\Available Bytes").CounterSamples[0].CookedValue
  disk_queue_length = (Get-Counter "\PhysicalDisk(_Total)\Current Disk Queue Length").CounterSamples[0].CookedValue
  processor_count = [int]$env:NUMBER_OF_PROCESSORS
}
ConvertTo-Json -InputObject $result -Compress
"""


class CpuUsageProbe(BaseProbe):
    """Average processor load across all sockets."""

    name = "cpu"

    def build_script(self, thresholds: ThresholdConfig) -> str:
        return CPU_SCRIPT

    def parse(self, stdout: str, thresholds: ThresholdConfig) -> List[MetricSample]:
        text = (stdout or "").strip()
        if not text:
            raise ProbeParseError("Empty CPU output")
        # Some locales print a decimal comma
        usage = to_float(text.replace(",", "."), "cpu_usage")
        return [MetricSample(name="cpu_usage", value=usage, unit="%")]


class MemoryUsageProbe(BaseProbe):
    """Physical memory and page file utilisation."""

    name = "memory"

    def build_script(self, thresholds: ThresholdConfig) -> str:
        return MEMORY_SCRIPT

    def parse(self, stdout: str, thresholds: ThresholdConfig) -> List[MetricSample]:
        data = as_object(load_json(stdout))
        used_percent = to_float(require(data, "used_percent"), "used_percent")
        page_file_percent = to_float(data.get("page_file_used_percent", 0), "page_file_used_percent")

        return [
            MetricSample(
                name="memory_usage",
                value=used_percent,
                unit="%",
                details={
                    "total_gb": data.get("total_gb"),
                    "free_gb": data.get("free_gb"),
                    "used_gb": data.get("used_gb"),
                },
            ),
            MetricSample(
                name="page_file_usage",
                value=page_file_percent,
                unit="%",
                details={"page_file_size_gb": data.get("page_file_size_gb")},
            ),
        ]


class PerformanceCountersProbe(BaseProbe):
    """Queue lengths and paging rate from Windows performance counters."""

    name = "performance_counters"

    COUNTERS = {
        "processor_queue_length": None,
        "memory_pages_per_sec": "pages/sec",
        "memory_available_bytes": "bytes",
        "disk_queue_length": None,
    }

    def build_script(self, thresholds: ThresholdConfig) -> str:
        return PERFORMANCE_COUNTERS_SCRIPT

    def parse(self, stdout: str, thresholds: ThresholdConfig) -> List[MetricSample]:
        data = as_object(load_json(stdout))
        processor_count = int(to_float(data.get("processor_count", 1), "processor_count")) or 1

        samples = []
        for counter, unit in self.COUNTERS.items():
            value = to_float(require(data, counter), counter)
            details = {"processor_count": processor_count} if counter == "processor_queue_length" else {}
            samples.append(MetricSample(name=counter, value=value, unit=unit, details=details))
        return samples
