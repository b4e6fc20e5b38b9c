"""LangGraph state definition for the health check run."""

from typing import TypedDict, List, Annotated
from pathlib import Path
import operator

from .utils.metrics import FleetReport, HostReport


class HealthCheckState(TypedDict, total=False):
    """
    Shared state across the LangGraph run pipeline.

    Each node adds its output: host reports from collection, the fleet
    report from aggregation, then file paths and the console text.
    """

    # Collection phase
    run_start: float  # Timestamp when the run started
    host_reports: List[HostReport]  # One per target, in target order

    # Aggregation
    fleet_report: FleetReport

    # Output
    report_paths: List[Path]
    console_summary: str

    # Metadata
    errors: Annotated[List[str], operator.add]  # Cumulative errors (auto-append across nodes)
