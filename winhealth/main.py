"""Main application entry point for the Windows fleet health check."""

import argparse
import asyncio
import logging
import signal
import sys
import time
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from .config.loader import ConfigLoader
from .config.models import HealthCheckConfig
from .config.settings import Settings
from .workflow import HealthCheckWorkflow, filter_targets
from .utils.errors import ConfigurationError
from .utils.logger import setup_logger
from .utils.metrics import FleetReport
from .utils.status import HealthStatus


EXIT_OK = 0
EXIT_CRITICAL = 1
EXIT_CONFIG_ERROR = 2


def compute_exit_code(fleet: FleetReport, config: HealthCheckConfig, fail_on_critical: bool = False) -> int:
    """
    Exit status for a finished run.

    A CRITICAL host fails the run when --fail-on-critical was given or its
    environment sets fail_on_critical; otherwise the check is observational.
    """
    if not fleet.any_critical:
        return EXIT_OK
    for host in fleet.hosts:
        if host.status != HealthStatus.CRITICAL:
            continue
        if fail_on_critical or config.thresholds_for_environment(host.environment).fail_on_critical:
            return EXIT_CRITICAL
    return EXIT_OK


class HealthCheckApp:
    """
    Main health check application.

    Runs the workflow once or on the configured cron schedule.
    """

    def __init__(
        self,
        config_path: str = "config/config.yaml",
        fail_on_critical: bool = False,
        write_files: Optional[bool] = None,
        output_dir: Optional[str] = None,
        limit: Optional[str] = None,
        log_level: str = "INFO"
    ):
        """
        Initialize the application.

        Args:
            config_path: Path to configuration file
            fail_on_critical: Exit 1 on any CRITICAL host regardless of environment
            write_files: Overrides reporting.write_files
            output_dir: Overrides reporting.output_dir
            limit: Comma-separated target names or environments to check

        Raises:
            ConfigurationError: If configuration or --limit is invalid
        """
        self.config_path = config_path
        self.fail_on_critical = fail_on_critical
        self.logger = setup_logger("winhealth", log_level)
        self.scheduler = None
        self._stop_event: Optional[asyncio.Event] = None

        self.logger.info("=" * 60)
        self.logger.info("Windows Fleet Health Check")
        self.logger.info("=" * 60)

        self.logger.info(f"Loading configuration from {self.config_path}")
        self.config = ConfigLoader.load_from_file(self.config_path)
        self.targets = filter_targets(self.config.targets, limit)
        self.logger.info(f"Configuration loaded: {len(self.targets)} target(s) selected")

        self.workflow = HealthCheckWorkflow(
            self.config,
            self.logger,
            write_files=write_files,
            output_dir=output_dir
        )

    async def run_cycle(self) -> int:
        """
        Execute one complete run and print the console summary.

        Returns:
            int: Exit code for the run
        """
        try:
            self.logger.info("Starting health check cycle")
            start_time = time.time()

            final_state = await self.workflow.run(self.targets)

            fleet = final_state["fleet_report"]
            errors = final_state.get("errors", [])

            print(final_state.get("console_summary", ""))

            self.logger.info("=" * 60)
            self.logger.info("Health check cycle completed")
            self.logger.info(f"Duration: {time.time() - start_time:.1f}s")
            self.logger.info(f"Report files: {len(final_state.get('report_paths', []))}")
            if errors:
                self.logger.warning(f"Errors encountered: {len(errors)}")
            self.logger.info("=" * 60)

            return compute_exit_code(fleet, self.config, self.fail_on_critical)

        except Exception as e:
            self.logger.error(
                "Health check cycle failed",
                exc_info=True,
                extra={
                    "error_type": type(e).__name__,
                    "error_message": str(e)
                }
            )
            raise

    def _build_trigger(self) -> CronTrigger:
        # "minute hour day month day_of_week", validated at load time
        minute, hour, day, month, day_of_week = self.config.monitoring.schedule.split()
        return CronTrigger(minute=minute, hour=hour, day=day, month=month, day_of_week=day_of_week)

    def _request_stop(self, signum: int) -> None:
        self.logger.info(f"Received {signal.Signals(signum).name}, initiating graceful shutdown...")
        if self._stop_event is not None:
            self._stop_event.set()

    async def run_scheduled(self) -> None:
        """
        Run cycles on the configured cron schedule until SIGINT/SIGTERM.

        The first cycle runs immediately on startup.
        """
        schedule = self.config.monitoring.schedule
        self._stop_event = asyncio.Event()

        loop = asyncio.get_running_loop()
        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(signum, self._request_stop, signum)

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.run_cycle,
            trigger=self._build_trigger(),
            id='health_check_cycle',
            name='Windows Fleet Health Check',
            max_instances=1,  # No overlapping runs
            coalesce=True,
            misfire_grace_time=300
        )
        self.scheduler.start()
        self.logger.info(f"Scheduler started with cron: {schedule}")
        self.logger.info("Next run time: " + str(
            self.scheduler.get_job('health_check_cycle').next_run_time
        ))

        self.logger.info("Running initial health check cycle immediately...")
        try:
            await self.run_cycle()
        except Exception as e:
            self.logger.warning(f"Initial cycle failed, continuing on schedule: {e}")

        try:
            self.logger.info("Scheduler running. Press Ctrl+C to exit.")
            await self._stop_event.wait()
        finally:
            if self.scheduler.running:
                self.scheduler.shutdown(wait=False)
            self.logger.info("Scheduler stopped")


def main():
    """
    CLI entry point.

    Parses command-line arguments and runs the health check.
    """
    parser = argparse.ArgumentParser(
        description='Agentless health checks for Windows servers over WinRM or SSH',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run on the configured schedule (default)
  winhealth

  # Run once and exit
  winhealth --run-once

  # Only staging hosts, fail the run on any critical host
  winhealth --run-once --limit staging --fail-on-critical

  # Use custom config file, do not write report files
  winhealth --config /path/to/config.yaml --run-once --no-write
        """
    )

    parser.add_argument(
        '--config',
        default=Settings.config_path(),
        help='Path to configuration file (default: config/config.yaml or WINHEALTH_CONFIG env var)'
    )

    parser.add_argument(
        '--run-once',
        action='store_true',
        help='Run one health check cycle and exit (no scheduler)'
    )

    parser.add_argument(
        '--log-level',
        default=Settings.log_level(),
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: INFO or LOG_LEVEL env var)'
    )

    parser.add_argument(
        '--fail-on-critical',
        action='store_true',
        help='Exit 1 if any host is CRITICAL, whatever its environment says'
    )

    parser.add_argument(
        '--no-write',
        action='store_true',
        help='Do not write JSON report files'
    )

    parser.add_argument(
        '--output-dir',
        help='Directory for JSON reports (overrides reporting.output_dir)'
    )

    parser.add_argument(
        '--limit',
        help='Comma-separated target names or environments to check'
    )

    args = parser.parse_args()

    try:
        app = HealthCheckApp(
            config_path=args.config,
            fail_on_critical=args.fail_on_critical,
            write_files=False if args.no_write else None,
            output_dir=args.output_dir,
            limit=args.limit,
            log_level=args.log_level
        )
    except ConfigurationError as e:
        logging.getLogger("winhealth").error(f"Invalid configuration: {e}")
        sys.exit(EXIT_CONFIG_ERROR)

    try:
        if args.run_once:
            sys.exit(asyncio.run(app.run_cycle()))
        else:
            asyncio.run(app.run_scheduled())
    except Exception as e:
        app.logger.error(f"Application failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
