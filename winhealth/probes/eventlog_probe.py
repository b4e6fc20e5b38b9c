"""Event log error and warning counts."""

from typing import List

from ..config.models import ThresholdConfig
from ..utils.metrics import MetricSample
from .base import BaseProbe, as_object, load_json, to_float


EVENT_LOG_SCRIPT = r"""
$startTime = (Get-Date).AddHours(-$hoursBack)

function Count-Events($logName, $levels) {
  $events = Get-WinEvent -FilterHashtable @{LogName=$logName; Level=$levels; StartTime=$startTime} -ErrorAction SilentlyContinue
  if ($events) { @($events).Count } else { 0 }
}

$result = @{
  system_errors = Count-Events 'System' @(1, 2)
  application_errors = Count-Events 'Application' @(1, 2)
  security_warnings = Count-Events 'Security' @(3)
  timeframe_hours = $hoursBack
}
ConvertTo-Json -InputObject $result -Compress
"""

# output field -> (channel, level)
EVENT_CHANNELS = {
    "system_errors": ("System", "error"),
    "application_errors": ("Application", "error"),
    "security_warnings": ("Security", "warning"),
}


class EventLogSummaryProbe(BaseProbe):
    """Counts critical/error and warning entries per log channel in the lookback window."""

    name = "event_logs"

    def build_script(self, thresholds: ThresholdConfig) -> str:
        return f"$hoursBack = {int(thresholds.event_log_hours)}\n" + EVENT_LOG_SCRIPT

    def parse(self, stdout: str, thresholds: ThresholdConfig) -> List[MetricSample]:
        data = as_object(load_json(stdout))
        hours = int(data.get("timeframe_hours") or thresholds.event_log_hours)

        samples = []
        for field, (channel, level) in EVENT_CHANNELS.items():
            # Missing counts mean Get-WinEvent found nothing
            count = int(to_float(data.get(field) or 0, field))
            samples.append(MetricSample(
                name="event_log_count",
                value=count,
                unit="events",
                subject=channel,
                details={"level": level, "timeframe_hours": hours},
            ))
        return samples
