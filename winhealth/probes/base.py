"""Base probe abstract class for all remote health queries."""

from abc import ABC, abstractmethod
from functools import wraps
from concurrent.futures import Executor
from typing import Any, Dict, Iterable, List, Optional
import asyncio
import json
import logging
import time

from ..config.models import TargetConfig, ThresholdConfig
from ..transport.base import CommandResult, RemoteTransport
from ..utils.errors import ProbeParseError, TransportError
from ..utils.metrics import MetricSample, ProbeError, ProbeResult


def safe_probe(func):
    """
    Decorator turning unexpected probe exceptions into an error result.

    Transport and parse failures are handled inside collect; anything else
    reaching this wrapper is a bug in the probe and is reported as an
    ``internal`` error instead of crashing the host collection.
    """
    @wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except Exception as e:
            self.logger.error(f"Probe {self.name} crashed: {e}", exc_info=True)
            return ProbeResult(
                probe_name=self.name,
                error=ProbeError(probe=self.name, kind="internal", message=f"{type(e).__name__}: {e}"),
            )
    return wrapper


class BaseProbe(ABC):
    """
    One remote query and its raw-to-typed parser.

    Probes are stateless: the same instance is shared by every host and run.
    """

    name: str = ""

    def __init__(self, logger: logging.Logger):
        self.logger = logger.getChild(self.__class__.__name__)

    @abstractmethod
    def build_script(self, thresholds: ThresholdConfig) -> str:
        """Return the PowerShell script for this probe."""

    @abstractmethod
    def parse(self, stdout: str, thresholds: ThresholdConfig) -> List[MetricSample]:
        """
        Parse raw command output into samples.

        Raises:
            ProbeParseError: If the output is malformed
        """

    @safe_probe
    async def collect(
        self,
        target: TargetConfig,
        transport: RemoteTransport,
        thresholds: ThresholdConfig,
        timeout: float,
        executor: Optional[Executor] = None
    ) -> ProbeResult:
        """
        Run the probe against one host.

        Args:
            target: Host being probed
            transport: Open transport to that host
            thresholds: Resolved thresholds and check lists for the host
            timeout: Seconds allowed for the remote call
            executor: Thread pool for the blocking transport call (default executor if None)

        Returns:
            ProbeResult: Samples, or an error and no samples
        """
        start = time.monotonic()
        try:
            result = await self._execute(transport, self.build_script(thresholds), timeout, executor)
            samples = self.parse(result.stdout, thresholds)
        except TransportError as e:
            kind = "timeout" if e.timed_out else "transport"
            self.logger.warning(f"{self.name} failed on {target.name}: {e}")
            return ProbeResult(
                probe_name=self.name,
                error=ProbeError(probe=self.name, kind=kind, message=str(e)),
                duration=time.monotonic() - start,
            )
        except ProbeParseError as e:
            self.logger.warning(f"{self.name} returned unparseable output on {target.name}: {e}")
            return ProbeResult(
                probe_name=self.name,
                error=ProbeError(probe=self.name, kind="parse", message=str(e)),
                duration=time.monotonic() - start,
            )

        self.logger.debug(f"{self.name} collected {len(samples)} sample(s) from {target.name}")
        return ProbeResult(probe_name=self.name, samples=samples, duration=time.monotonic() - start)

    async def _execute(
        self,
        transport: RemoteTransport,
        script: str,
        timeout: float,
        executor: Optional[Executor] = None
    ) -> CommandResult:
        """Run the blocking transport call in a worker thread under a deadline."""
        loop = asyncio.get_running_loop()
        try:
            result = await asyncio.wait_for(
                loop.run_in_executor(executor, transport.run_powershell, script, timeout),
                timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise TransportError(f"{self.name} timed out after {timeout:.1f}s", timed_out=True) from e

        if result.exit_status != 0:
            raise TransportError(
                f"{self.name} exited with status {result.exit_status}: {result.stderr.strip()[:200]}",
                exit_status=result.exit_status
            )
        return result


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def load_json(stdout: str) -> Any:
    """Decode ConvertTo-Json output."""
    text = (stdout or "").strip().lstrip('\ufeff')
    if not text:
        raise ProbeParseError("Empty output")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ProbeParseError(f"Invalid JSON: {e.msg} in {text[:200]!r}") from e


def as_list(payload: Any) -> List[Dict[str, Any]]:
    """
    Normalize a JSON payload to a list of objects.

    ConvertTo-Json collapses single-element arrays into a bare object and
    empty pipelines into nothing.
    """
    if payload is None:
        return []
    if isinstance(payload, dict):
        return [payload]
    if isinstance(payload, list):
        items = [item for item in payload if item is not None]
        for item in items:
            if not isinstance(item, dict):
                raise ProbeParseError(f"Expected objects, got {type(item).__name__}")
        return items
    raise ProbeParseError(f"Expected object or array, got {type(payload).__name__}")


def as_object(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ProbeParseError(f"Expected object, got {type(payload).__name__}")
    return payload


def require(item: Dict[str, Any], key: str) -> Any:
    if key not in item:
        raise ProbeParseError(f"Missing field: {key}")
    return item[key]


def to_float(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise ProbeParseError(f"Field {field} is not numeric: {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ProbeParseError(f"Field {field} is not numeric: {value!r}") from e


def ps_list(values: Iterable[Any]) -> str:
    """Render a PowerShell array literal, single-quoting strings."""
    rendered = []
    for value in values:
        if isinstance(value, int):
            rendered.append(str(value))
        else:
            rendered.append("'" + str(value).replace("'", "''") + "'")
    return "@(" + ", ".join(rendered) + ")"
