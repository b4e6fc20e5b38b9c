"""Shared pytest configuration and fixtures."""

import asyncio
import time

import pytest

from winhealth.config.models import TargetConfig, ThresholdConfig
from winhealth.probes.base import BaseProbe
from winhealth.transport.base import CommandResult, RemoteTransport
from winhealth.utils.errors import TransportError
from winhealth.utils.logger import setup_logger
from winhealth.utils.metrics import MetricSample, ProbeError, ProbeResult


class FakeTransport(RemoteTransport):
    """Returns canned output for each script; records what it ran."""

    def __init__(self, target, logger, outputs=None, error=None, delay=0.0):
        super().__init__(target, logger)
        self.outputs = outputs or {}
        self.error = error
        self.delay = delay
        self.scripts = []
        self.closed = False

    def run_powershell(self, script, timeout):
        self.scripts.append(script)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        for marker, output in self.outputs.items():
            if marker in script:
                if isinstance(output, CommandResult):
                    return output
                return CommandResult(stdout=output)
        return CommandResult(stdout="")

    def close(self):
        self.closed = True


class StaticProbe(BaseProbe):
    """Probe that skips the transport and returns fixed samples after an optional delay."""

    def __init__(self, logger, name, samples=None, error_kind=None, delay=0.0):
        super().__init__(logger)
        self.name = name
        self._samples = samples or []
        self._error_kind = error_kind
        self._delay = delay

    def build_script(self, thresholds):
        return f"# {self.name}"

    def parse(self, stdout, thresholds):
        return list(self._samples)

    async def collect(self, target, transport, thresholds, timeout, executor=None):
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error_kind:
            return ProbeResult(
                probe_name=self.name,
                error=ProbeError(probe=self.name, kind=self._error_kind, message=f"{self.name} failed"),
            )
        return ProbeResult(probe_name=self.name, samples=list(self._samples))


@pytest.fixture
def logger():
    """Create logger for tests."""
    return setup_logger("test", "DEBUG")


@pytest.fixture
def thresholds():
    """Default thresholds."""
    return ThresholdConfig()


@pytest.fixture
def target():
    """Single WinRM target."""
    return TargetConfig(name="win-server-01", host="10.1.1.10", password="secret")


@pytest.fixture
def make_target():
    """Factory for targets with unique names."""
    def _make(name, environment=None, **kwargs):
        return TargetConfig(name=name, host=f"{name}.example.local", environment=environment, **kwargs)
    return _make


@pytest.fixture
def fake_transport(logger, target):
    """Factory for FakeTransport bound to the default target."""
    def _make(outputs=None, error=None, delay=0.0):
        return FakeTransport(target, logger, outputs=outputs, error=error, delay=delay)
    return _make


@pytest.fixture
def static_probe(logger):
    """Factory for StaticProbe."""
    def _make(name, samples=None, error_kind=None, delay=0.0):
        return StaticProbe(logger, name, samples=samples, error_kind=error_kind, delay=delay)
    return _make


@pytest.fixture
def sample():
    """Factory for MetricSample."""
    def _make(name, value, subject=None, **details):
        return MetricSample(name=name, value=value, subject=subject, details=details)
    return _make


@pytest.fixture
def unreachable_factory(logger):
    """Transport factory whose transports always fail to connect."""
    def _factory(target):
        return FakeTransport(target, logger, error=TransportError(f"Cannot reach {target.host}"))
    return _factory


@pytest.fixture
def transport_factory(logger):
    """Factory for per-target FakeTransport factories."""
    def _make(outputs=None, error=None, delay=0.0):
        def _factory(target):
            return FakeTransport(target, logger, outputs=outputs, error=error, delay=delay)
        return _factory
    return _make
