"""Concurrent fan-out of host collections across the fleet."""

import asyncio
import logging
from typing import Callable, List, Optional, Sequence

from ..config.models import HealthCheckConfig, TargetConfig, ThresholdConfig
from ..probes.registry import build_probes
from ..utils.errors import HostUnreachableError
from ..utils.metrics import HostReport, ProbeError
from ..utils.status import CollectionState
from .host_collector import HostCollector, TransportFactory
from .retry_handler import RetryHandler


# Transport threads per worker slot. An abandoned transport call holds its thread until it returns
THREADS_PER_WORKER = 2


class FleetOrchestrator:
    """
    Runs one HostCollector task per target under a bounded worker pool.

    Hosts that cannot be reached at all are retried with exponential backoff.
    Results come back in target order whatever the completion order, and
    every dispatched target gets exactly one report.
    """

    def __init__(
        self,
        collector: HostCollector,
        logger: logging.Logger,
        max_workers: int = 10,
        retry_handler: Optional[RetryHandler] = None,
        run_timeout: Optional[float] = None,
        cancel_grace: float = 5.0
    ):
        """
        Initialize fleet orchestrator.

        Args:
            collector: Shared host collector
            logger: Logger instance
            max_workers: Maximum hosts collected concurrently
            retry_handler: Backoff policy for unreachable hosts (default: no retries)
            run_timeout: Seconds after which no new probe starts anywhere
            cancel_grace: Seconds past the run deadline before stragglers are cancelled
        """
        self.collector = collector
        self.logger = logger.getChild(self.__class__.__name__)
        self.max_workers = max_workers
        self.retry_handler = retry_handler or RetryHandler(max_attempts=1)
        self.run_timeout = run_timeout
        self.cancel_grace = cancel_grace

    @classmethod
    def from_config(
        cls,
        config: HealthCheckConfig,
        logger: logging.Logger,
        transport_factory: Optional[TransportFactory] = None
    ) -> "FleetOrchestrator":
        """Build the orchestrator, its collector and probes from configuration."""
        collection = config.collection
        collector = HostCollector(
            build_probes(collection.probes, logger),
            logger,
            transport_factory=transport_factory,
            probe_timeout=collection.probe_timeout_seconds,
            host_timeout=collection.host_timeout_seconds,
            max_threads=collection.max_workers * THREADS_PER_WORKER,
        )
        retry_handler = RetryHandler(
            max_attempts=collection.retry_attempts + 1,
            base_delay=collection.retry_base_delay_seconds,
            max_delay=collection.retry_max_delay_seconds,
        )
        return cls(
            collector,
            logger,
            max_workers=collection.max_workers,
            retry_handler=retry_handler,
            run_timeout=collection.run_timeout_seconds,
        )

    async def run(
        self,
        targets: Sequence[TargetConfig],
        thresholds_for: Callable[[TargetConfig], ThresholdConfig]
    ) -> List[HostReport]:
        """
        Collect every target concurrently.

        Args:
            targets: Hosts to collect, in report order
            thresholds_for: Resolves thresholds for a target

        Returns:
            List[HostReport]: One report per target, in input order
        """
        if not targets:
            self.logger.info("No targets to collect")
            return []

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.run_timeout if self.run_timeout else None
        semaphore = asyncio.Semaphore(self.max_workers)

        self.logger.info(
            f"Collecting {len(targets)} host(s) with {self.max_workers} worker(s)"
            + (f", run deadline {self.run_timeout:.0f}s" if self.run_timeout else "")
        )

        tasks = [
            asyncio.create_task(
                self._collect_host(target, thresholds_for(target), semaphore, deadline),
                name=f"collect:{target.name}"
            )
            for target in targets
        ]

        wait_timeout = None if deadline is None else max(0.0, deadline - loop.time()) + self.cancel_grace
        done, pending = await asyncio.wait(tasks, timeout=wait_timeout)

        if pending:
            self.logger.warning(f"Run deadline reached, cancelling {len(pending)} host task(s)")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        # Buffered and reordered to match the input
        reports = []
        for target, task in zip(targets, tasks):
            if task.cancelled():
                reports.append(self._placeholder_report(
                    target, CollectionState.TIMED_OUT, "timeout", "Cancelled at run deadline"
                ))
            elif task.exception() is not None:
                error = task.exception()
                self.logger.error(f"Collection crashed for {target.name}: {error}", exc_info=error)
                reports.append(self._placeholder_report(
                    target, CollectionState.FAILED, "internal", f"{type(error).__name__}: {error}"
                ))
            else:
                reports.append(task.result())

        return reports

    async def _collect_host(
        self,
        target: TargetConfig,
        thresholds: ThresholdConfig,
        semaphore: asyncio.Semaphore,
        deadline: Optional[float]
    ) -> HostReport:
        loop = asyncio.get_running_loop()

        async def attempt(number: int) -> HostReport:
            # The slot is held per attempt so backoff sleeps do not block other hosts
            async with semaphore:
                report = await self.collector.collect(target, thresholds, deadline=deadline, attempt=number)
            if report.transport_failure:
                raise HostUnreachableError(report)
            return report

        def can_retry(delay: float) -> bool:
            return deadline is None or loop.time() + delay < deadline

        try:
            return await self.retry_handler.run(
                attempt,
                exceptions=(HostUnreachableError,),
                can_retry=can_retry,
                logger=self.logger,
            )
        except HostUnreachableError as e:
            return e.report

    def _placeholder_report(
        self,
        target: TargetConfig,
        state: CollectionState,
        kind: str,
        message: str
    ) -> HostReport:
        """Report for a host whose task produced nothing usable."""
        return HostReport(
            target_name=target.name,
            host=target.host,
            environment=target.environment,
            collection_state=state,
            probe_errors=[
                ProbeError(probe=probe.name, kind=kind, message=message)
                for probe in self.collector.probes
            ],
        )
