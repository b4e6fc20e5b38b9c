"""Operating system and hardware inventory probe."""

from typing import List

from ..config.models import ThresholdConfig
from ..utils.metrics import MetricSample
from .base import BaseProbe, as_object, load_json, require, to_float


SYSTEM_INFO_SCRIPT = r"""
$computerInfo = Get-ComputerInfo
$os = Get-CimInstance Win32_OperatingSystem
$uptime = (Get-Date) - $os.LastBootUpTime
$result = @{
  hostname = $env:COMPUTERNAME
  domain = $computerInfo.CsDomain
  os_name = $computerInfo.WindowsProductName
  os_version = $computerInfo.WindowsVersion
  os_build = $computerInfo.WindowsBuildLabEx
  architecture = [string]$computerInfo.CsProcessors[0].Architecture
  total_memory_gb = [math]::Round($computerInfo.CsTotalPhysicalMemory / 1GB, 2)
  processor_count = $computerInfo.CsNumberOfProcessors
  processor_name = $computerInfo.CsProcessors[0].Name
  uptime_days = [math]::Round($uptime.TotalDays, 2)
  last_boot_time = $os.LastBootUpTime.ToUniversalTime().ToString("yyyy-MM-ddTHH:mm:ssZ")
  windows_directory = $computerInfo.WindowsDirectory
  system_drive = $env:SystemDrive
}
ConvertTo-Json -InputObject $result -Depth 3 -Compress
"""


class SystemInfoProbe(BaseProbe):
    """Collects host identity, OS version and uptime."""

    name = "system_info"

    FIELDS = (
        "hostname", "domain", "os_name", "os_version", "os_build", "architecture",
        "total_memory_gb", "processor_count", "processor_name", "uptime_days",
        "last_boot_time", "windows_directory", "system_drive",
    )

    def build_script(self, thresholds: ThresholdConfig) -> str:
        return SYSTEM_INFO_SCRIPT

    def parse(self, stdout: str, thresholds: ThresholdConfig) -> List[MetricSample]:
        data = as_object(load_json(stdout))
        require(data, "hostname")
        uptime = to_float(require(data, "uptime_days"), "uptime_days")

        return [MetricSample(
            name="system_info",
            value=uptime,
            unit="days",
            details={field: data.get(field) for field in self.FIELDS},
        )]
