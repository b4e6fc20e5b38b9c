"""LangGraph workflow for one health check run."""

import time
import logging
from typing import Dict, List, Optional, Sequence

from langgraph.graph import StateGraph, END

from .state import HealthCheckState
from .config.models import HealthCheckConfig, TargetConfig
from .reporting.aggregator import ReportAggregator
from .reporting.formatter import ReportFormatter
from .reporting.writer import ReportWriter
from .services.fleet_orchestrator import FleetOrchestrator
from .utils.errors import ConfigurationError
from .utils.logger import setup_logger


def filter_targets(targets: Sequence[TargetConfig], limit: Optional[str]) -> List[TargetConfig]:
    """
    Select targets by a comma-separated list of target names or environments.

    Raises:
        ConfigurationError: If a pattern matches no target
    """
    if not limit:
        return list(targets)

    patterns = [p.strip() for p in limit.split(",") if p.strip()]
    unmatched = [
        p for p in patterns
        if not any(t.name == p or t.environment == p for t in targets)
    ]
    if unmatched:
        raise ConfigurationError(f"--limit matched no targets: {', '.join(unmatched)}")

    return [t for t in targets if t.name in patterns or t.environment in patterns]


class HealthCheckWorkflow:
    """
    LangGraph pipeline for a single run.

    collect (fleet fan-out) → aggregate → write_reports → summarize → END
    """

    def __init__(
        self,
        config: HealthCheckConfig,
        logger: logging.Logger = None,
        orchestrator: FleetOrchestrator = None,
        write_files: Optional[bool] = None,
        output_dir: Optional[str] = None
    ):
        """
        Initialize the workflow.

        Args:
            config: Validated configuration
            logger: Optional logger instance
            orchestrator: Prebuilt orchestrator (defaults to one built from config)
            write_files: Overrides reporting.write_files
            output_dir: Overrides reporting.output_dir
        """
        self.config = config
        self.logger = logger or setup_logger("workflow")

        self.orchestrator = orchestrator or FleetOrchestrator.from_config(config, self.logger)
        self.aggregator = ReportAggregator(self.logger)
        self.formatter = ReportFormatter()
        self.write_files = config.reporting.write_files if write_files is None else write_files
        self.writer = ReportWriter(
            output_dir or config.reporting.output_dir,
            formatter=self.formatter,
            logger=self.logger
        )

        self.targets: List[TargetConfig] = list(config.targets)
        self.graph = self._build_graph()

    def _build_graph(self):
        """
        Construct the LangGraph workflow.

        Returns:
            Compiled StateGraph
        """
        workflow = StateGraph(HealthCheckState)

        workflow.add_node("collect", self._collect)
        workflow.add_node("aggregate", self._aggregate)
        workflow.add_node("write_reports", self._write_reports)
        workflow.add_node("summarize", self._summarize)

        workflow.set_entry_point("collect")

        workflow.add_edge("collect", "aggregate")
        workflow.add_edge("aggregate", "write_reports")
        workflow.add_edge("write_reports", "summarize")
        workflow.add_edge("summarize", END)

        return workflow.compile()

    async def _collect(self, state: HealthCheckState) -> Dict:
        self.logger.info(f"Starting health check of {len(self.targets)} target(s)")

        reports = await self.orchestrator.run(self.targets, self.config.thresholds_for)

        return {"host_reports": reports}

    async def _aggregate(self, state: HealthCheckState) -> Dict:
        fleet = self.aggregator.aggregate(
            state.get("host_reports", []),
            started_at=state["run_start"],
            finished_at=time.time()
        )
        return {"fleet_report": fleet}

    async def _write_reports(self, state: HealthCheckState) -> Dict:
        """
        Persist JSON reports.

        A write failure is recorded in state; the run still produces its summary.
        """
        if not self.write_files:
            self.logger.info("Report files disabled, skipping write")
            return {"report_paths": []}

        try:
            paths = self.writer.write(state["fleet_report"])
        except OSError as e:
            self.logger.error(f"Failed to write reports: {e}", exc_info=True)
            return {"report_paths": [], "errors": [f"write_reports: {e}"]}

        return {"report_paths": paths}

    async def _summarize(self, state: HealthCheckState) -> Dict:
        summary = self.formatter.fleet_summary(state["fleet_report"])
        self.logger.debug(f"Summary generated: {len(summary)} characters")
        return {"console_summary": summary}

    async def run(self, targets: Optional[Sequence[TargetConfig]] = None) -> HealthCheckState:
        """
        Execute one run.

        Args:
            targets: Subset of targets to check (default: all configured targets)

        Returns:
            HealthCheckState: Final workflow state
        """
        if targets is not None:
            self.targets = list(targets)

        initial_state: HealthCheckState = {
            "run_start": time.time(),
            "host_reports": [],
            "report_paths": [],
            "errors": [],
        }

        final_state = await self.graph.ainvoke(initial_state)

        fleet = final_state.get("fleet_report")
        if fleet is not None:
            self.logger.info(
                f"Run finished in {fleet.duration:.1f}s",
                extra={"summary": fleet.summary}
            )

        return final_state
