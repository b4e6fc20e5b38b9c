"""Network adapter and listening port probes."""

from typing import List

from ..config.models import ThresholdConfig
from ..utils.errors import ProbeParseError
from ..utils.metrics import MetricSample
from .base import BaseProbe, as_list, load_json, ps_list, require


NETWORK_SCRIPT = r"""
$adapters = Get-CimInstance -ClassName Win32_NetworkAdapter -Filter "NetEnabled=true"
$networkInfo = @()
foreach ($adapter in $adapters) {
  $config = Get-CimInstance -ClassName Win32_NetworkAdapterConfiguration -Filter "Index=$($adapter.Index)"
  $networkInfo += @{
    name = $adapter.NetConnectionID
    description = $adapter.Description
    mac_address = $adapter.MACAddress
    status = [int]$adapter.NetConnectionStatus
    ip_addresses = @($config.IPAddress)
    dhcp_enabled = [bool]$config.DHCPEnabled
  }
}
ConvertTo-Json -InputObject @($networkInfo) -Depth 3 -Compress
"""

PORT_SCRIPT = r"""
$portResults = @()
$listeningPorts = netstat -an | Select-String ":(\d+)\s+\S+\s+LISTENING" | ForEach-Object {
  [int]($_.Matches[0].Groups[1].Value)
}
foreach ($port in $portsToCheck) {
  $portResults += @{
    port = $port
    listening = ($listeningPorts -contains $port)
  }
}
ConvertTo-Json -InputObject @($portResults) -Depth 2 -Compress
"""

# Win32_NetworkAdapter.NetConnectionStatus
CONNECTION_STATUS = {
    0: "Disconnected",
    1: "Connecting",
    2: "Connected",
    3: "Disconnecting",
    4: "Hardware Not Present",
    5: "Hardware Disabled",
    6: "Hardware Malfunction",
    7: "Media Disconnected",
    8: "Authenticating",
    9: "Authentication Succeeded",
    10: "Authentication Failed",
    11: "Invalid Address",
    12: "Credentials Required",
}


class NetworkInterfacesProbe(BaseProbe):
    """One sample per enabled network adapter."""

    name = "network"

    def build_script(self, thresholds: ThresholdConfig) -> str:
        return NETWORK_SCRIPT

    def parse(self, stdout: str, thresholds: ThresholdConfig) -> List[MetricSample]:
        samples = []
        for adapter in as_list(load_json(stdout)):
            name = adapter.get("name") or require(adapter, "description")
            code = require(adapter, "status")
            try:
                code = int(code)
            except (TypeError, ValueError) as e:
                raise ProbeParseError(f"Adapter {name} has invalid status {code!r}") from e

            ip_addresses = adapter.get("ip_addresses") or []
            if isinstance(ip_addresses, str):
                ip_addresses = [ip_addresses]

            samples.append(MetricSample(
                name="network_adapter",
                value=CONNECTION_STATUS.get(code, f"Unknown ({code})"),
                subject=str(name),
                details={
                    "description": adapter.get("description"),
                    "mac_address": adapter.get("mac_address"),
                    "ip_addresses": list(ip_addresses),
                    "dhcp_enabled": adapter.get("dhcp_enabled"),
                    "status_code": code,
                },
            ))
        return samples


class PortStatusProbe(BaseProbe):
    """Listening state of each configured TCP port."""

    name = "ports"

    def build_script(self, thresholds: ThresholdConfig) -> str:
        return f"$portsToCheck = {ps_list(thresholds.check_ports)}\n" + PORT_SCRIPT

    def parse(self, stdout: str, thresholds: ThresholdConfig) -> List[MetricSample]:
        if not thresholds.check_ports:
            return []

        samples = []
        for item in as_list(load_json(stdout)):
            port = require(item, "port")
            listening = require(item, "listening")
            if not isinstance(listening, bool):
                raise ProbeParseError(f"Port {port} has non-boolean listening state {listening!r}")
            samples.append(MetricSample(
                name="port_status",
                value=listening,
                subject=str(port),
            ))
        return samples
