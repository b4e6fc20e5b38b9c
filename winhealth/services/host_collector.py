"""Runs every configured probe against one host and builds its report."""

import asyncio
import logging
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence

from ..config.models import TargetConfig, ThresholdConfig
from ..probes.base import BaseProbe
from ..transport.base import RemoteTransport, create_transport
from ..utils.errors import HostTimeoutError, TransportError
from ..utils.metrics import HostReport, Issue, MetricSample, ProbeError, ProbeResult
from ..utils.status import CollectionState
from .threshold_evaluator import ThresholdEvaluator


TransportFactory = Callable[[TargetConfig], RemoteTransport]


class HostCollector:
    """
    Sequential probe runner for a single host.

    Each collection moves PENDING -> RUNNING -> COMPLETE | FAILED | TIMED_OUT.
    A failing probe never stops the others. When the host deadline passes,
    or the collection is cancelled, the remaining probes are skipped and
    everything already collected is kept.

    Blocking transport calls run on the collector's own thread pool so that
    calls abandoned after a timeout never starve other hosts or the
    default executor.
    """

    # Closing after a cancellation must not hold the host much longer
    CANCELLED_CLOSE_TIMEOUT = 1.0

    def __init__(
        self,
        probes: Sequence[BaseProbe],
        logger: logging.Logger,
        transport_factory: Optional[TransportFactory] = None,
        probe_timeout: float = 60.0,
        host_timeout: float = 300.0,
        max_threads: Optional[int] = None,
        close_timeout: float = 5.0,
        executor: Optional[Executor] = None
    ):
        """
        Initialize host collector.

        Args:
            probes: Probes to run, in order
            logger: Logger instance
            transport_factory: Builds a transport for a target (defaults to create_transport)
            probe_timeout: Seconds allowed per probe
            host_timeout: Wall-clock seconds allowed for the whole host
            max_threads: Size of the transport thread pool (ignored when executor is given)
            close_timeout: Seconds allowed for closing a transport
            executor: Thread pool for blocking transport calls
        """
        self.probes = list(probes)
        self.logger = logger.getChild(self.__class__.__name__)
        self.transport_factory = transport_factory or (lambda target: create_transport(target, logger))
        self.probe_timeout = probe_timeout
        self.host_timeout = host_timeout
        self.close_timeout = close_timeout
        self.executor = executor or ThreadPoolExecutor(
            max_workers=max_threads, thread_name_prefix="winhealth-transport"
        )

    async def collect(
        self,
        target: TargetConfig,
        thresholds: ThresholdConfig,
        deadline: Optional[float] = None,
        attempt: int = 1
    ) -> HostReport:
        """
        Collect all probes from one host.

        Args:
            target: Host to collect from
            thresholds: Resolved thresholds for the host's environment
            deadline: Absolute event-loop time after which nothing new starts
                (run-level deadline); combined with the host timeout
            attempt: Attempt number, recorded in the report

        Returns:
            HostReport: Always returned, also when the collection is cancelled
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        timestamp = time.time()
        host_deadline = started + self.host_timeout
        if deadline is not None:
            host_deadline = min(host_deadline, deadline)

        state = CollectionState.RUNNING
        self.logger.debug(f"{target.name}: {CollectionState.PENDING.value} -> {state.value} (attempt {attempt})")

        samples: List[MetricSample] = []
        errors: List[ProbeError] = []
        timed_out = False

        try:
            transport = self.transport_factory(target)
        except TransportError as e:
            self.logger.error(f"Cannot create transport for {target.name}: {e}")
            errors = [ProbeError(probe=p.name, kind="transport", message=str(e)) for p in self.probes]
            transport = None

        if transport is not None:
            completed = 0
            cancelled = False
            try:
                for probe in self.probes:
                    remaining = self._remaining(loop, host_deadline, target)
                    result = await self._run_probe(probe, target, transport, thresholds, remaining)
                    completed += 1

                    if result.ok:
                        samples.extend(result.samples)
                    else:
                        errors.append(result.error)
                        # Bounded by the host deadline rather than the probe timeout
                        if result.error.kind == "timeout" and remaining <= self.probe_timeout:
                            raise HostTimeoutError(f"Host deadline exceeded during {probe.name}")

            except HostTimeoutError as e:
                timed_out = True
                skipped = self.probes[completed:]
                self.logger.warning(f"{target.name}: {e}; skipping {len(skipped)} probe(s)")
                errors.extend(ProbeError(probe=p.name, kind="skipped", message=str(e)) for p in skipped)

            except asyncio.CancelledError:
                # Cancelled past the run deadline: report what was gathered instead of nothing
                timed_out = cancelled = True
                unfinished = self.probes[completed:]
                self.logger.warning(
                    f"{target.name}: collection cancelled with {len(samples)} sample(s); "
                    f"dropping {len(unfinished)} probe(s)"
                )
                errors.extend(
                    ProbeError(
                        probe=p.name,
                        kind="timeout" if i == 0 else "skipped",
                        message="Collection cancelled at run deadline"
                    )
                    for i, p in enumerate(unfinished)
                )

            finally:
                await self._close(
                    transport, target,
                    self.CANCELLED_CLOSE_TIMEOUT if cancelled else self.close_timeout
                )

        if timed_out:
            state = CollectionState.TIMED_OUT
        elif not samples:
            state = CollectionState.FAILED
        else:
            state = CollectionState.COMPLETE

        # Each sample is evaluated independently; issues are only concatenated
        issues: List[Issue] = []
        for sample in samples:
            issues.extend(ThresholdEvaluator.evaluate_sample(sample, thresholds))

        report = HostReport(
            target_name=target.name,
            host=target.host,
            environment=target.environment,
            collection_state=state,
            samples=samples,
            issues=issues,
            probe_errors=errors,
            attempts=attempt,
            duration=loop.time() - started,
            timestamp=timestamp,
        )

        self.logger.info(
            f"{target.name}: {state.value}, status {report.status.value}, "
            f"{len(samples)} sample(s), {len(issues)} issue(s), {len(errors)} probe error(s)"
        )
        return report

    def _remaining(self, loop: asyncio.AbstractEventLoop, host_deadline: float, target: TargetConfig) -> float:
        remaining = host_deadline - loop.time()
        if remaining <= 0:
            raise HostTimeoutError(f"Host deadline exceeded for {target.name}")
        return remaining

    async def _run_probe(
        self,
        probe: BaseProbe,
        target: TargetConfig,
        transport: RemoteTransport,
        thresholds: ThresholdConfig,
        remaining: float
    ) -> ProbeResult:
        """Run one probe, bounded by both the probe timeout and the host deadline."""
        try:
            return await asyncio.wait_for(
                probe.collect(
                    target, transport, thresholds, min(self.probe_timeout, remaining), executor=self.executor
                ),
                timeout=remaining
            )
        except asyncio.TimeoutError:
            return ProbeResult(
                probe_name=probe.name,
                error=ProbeError(
                    probe=probe.name,
                    kind="timeout",
                    message=f"{probe.name} did not finish within {remaining:.1f}s"
                ),
            )

    async def _close(self, transport: RemoteTransport, target: TargetConfig, timeout: float) -> None:
        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(loop.run_in_executor(self.executor, transport.close), timeout=timeout)
        except asyncio.TimeoutError:
            self.logger.warning(f"Closing transport for {target.name} did not finish within {timeout:.1f}s")
        except Exception as e:
            self.logger.warning(f"Error closing transport for {target.name}: {e}")
