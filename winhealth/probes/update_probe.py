"""Windows Update pending updates probe."""

from typing import List

from ..config.models import ThresholdConfig
from ..utils.metrics import MetricSample
from .base import BaseProbe, as_object, load_json, require, to_float


WINDOWS_UPDATE_SCRIPT = r"""
$wuService = Get-Service -Name "wuauserv" -ErrorAction SilentlyContinue
$serviceStatus = if ($wuService) { $wuService.Status.ToString() } else { "NotFound" }
try {
  $updateSession = New-Object -ComObject Microsoft.Update.Session
  $updateSearcher = $updateSession.CreateUpdateSearcher()
  $searchResult = $updateSearcher.Search("IsInstalled=0")

  $result = @{
    pending_updates_count = $searchResult.Updates.Count
    important_updates = 0
    optional_updates = 0
    windows_update_service_status = $serviceStatus
    last_search_success = $true
  }

  foreach ($update in $searchResult.Updates) {
    if ($update.MsrcSeverity -eq "Important" -or $update.MsrcSeverity -eq "Critical") {
      $result.important_updates++
    } else {
      $result.optional_updates++
    }
  }
} catch {
  $result = @{
    pending_updates_count = -1
    important_updates = -1
    optional_updates = -1
    windows_update_service_status = $serviceStatus
    last_search_success = $false
    error = $_.Exception.Message
  }
}
ConvertTo-Json -InputObject $result -Compress
"""


class WindowsUpdateProbe(BaseProbe):
    """Pending update counts and Windows Update service state."""

    name = "windows_update"

    def build_script(self, thresholds: ThresholdConfig) -> str:
        return WINDOWS_UPDATE_SCRIPT

    def parse(self, stdout: str, thresholds: ThresholdConfig) -> List[MetricSample]:
        data = as_object(load_json(stdout))
        pending = int(to_float(require(data, "pending_updates_count"), "pending_updates_count"))

        return [MetricSample(
            name="windows_update",
            value=pending,
            unit="updates",
            details={
                "important_updates": int(to_float(data.get("important_updates", 0), "important_updates")),
                "optional_updates": int(to_float(data.get("optional_updates", 0), "optional_updates")),
                "windows_update_service_status": data.get("windows_update_service_status") or "Unknown",
                "last_search_success": bool(data.get("last_search_success", False)),
                "error": data.get("error"),
            },
        )]
