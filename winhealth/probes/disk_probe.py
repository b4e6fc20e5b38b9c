"""Fixed drive usage probe."""

from typing import List

from ..config.models import ThresholdConfig
from ..utils.metrics import MetricSample
from .base import BaseProbe, as_list, load_json, require, to_float


DISK_SCRIPT = r"""
$disks = Get-CimInstance -ClassName Win32_LogicalDisk -Filter "DriveType=3"
$diskInfo = @()
foreach ($disk in $disks) {
  if (-not $disk.Size) { continue }
  $usedSpace = $disk.Size - $disk.FreeSpace
  $diskInfo += @{
    drive = $disk.DeviceID
    size_gb = [math]::Round($disk.Size / 1GB, 2)
    free_gb = [math]::Round($disk.FreeSpace / 1GB, 2)
    used_gb = [math]::Round($usedSpace / 1GB, 2)
    used_percent = [math]::Round(($usedSpace / $disk.Size) * 100, 1)
    file_system = $disk.FileSystem
    volume_name = $disk.VolumeName
  }
}
ConvertTo-Json -InputObject @($diskInfo) -Depth 3 -Compress
"""


class DiskUsageProbe(BaseProbe):
    """One sample per local fixed drive."""

    name = "disk"

    def build_script(self, thresholds: ThresholdConfig) -> str:
        return DISK_SCRIPT

    def parse(self, stdout: str, thresholds: ThresholdConfig) -> List[MetricSample]:
        samples = []
        for disk in as_list(load_json(stdout)):
            drive = str(require(disk, "drive"))
            samples.append(MetricSample(
                name="disk_usage",
                value=to_float(require(disk, "used_percent"), "used_percent"),
                unit="%",
                subject=drive,
                details={
                    "size_gb": disk.get("size_gb"),
                    "free_gb": disk.get("free_gb"),
                    "used_gb": disk.get("used_gb"),
                    "file_system": disk.get("file_system"),
                    "volume_name": disk.get("volume_name"),
                },
            ))
        return samples
