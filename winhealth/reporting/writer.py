"""Persists JSON health reports to disk."""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import List, Set

from ..utils.metrics import FleetReport
from .formatter import ReportFormatter


class ReportWriter:
    """Writes one JSON file per host per run plus a fleet summary file."""

    def __init__(self, output_dir: str, formatter: ReportFormatter = None, logger: logging.Logger = None):
        self.output_dir = Path(output_dir)
        self.formatter = formatter or ReportFormatter()
        self.logger = logger or logging.getLogger(__name__)

    def write(self, fleet: FleetReport) -> List[Path]:
        """
        Write all reports of a run.

        Args:
            fleet: Aggregated fleet report

        Returns:
            List[Path]: Host report paths in host order, then the fleet summary path
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.fromtimestamp(fleet.started_at).strftime('%Y-%m-%d_%H%M%S')

        paths = []
        # Names are compared case-insensitively; "fleet" is taken by the summary file
        used = {"fleet"}
        for host in fleet.hosts:
            name = self._unique_name(self._safe_name(host.target_name), used)
            path = self.output_dir / f"{name}_health_{stamp}.json"
            self._dump(path, self.formatter.host_to_dict(host))
            paths.append(path)

        summary_path = self.output_dir / f"fleet_health_{stamp}.json"
        self._dump(summary_path, self.formatter.fleet_to_dict(fleet))
        paths.append(summary_path)

        self.logger.info(f"Wrote {len(paths)} report file(s) to {self.output_dir}")
        return paths

    @staticmethod
    def _safe_name(name: str) -> str:
        return re.sub(r'[^A-Za-z0-9_.-]', '_', name)

    @staticmethod
    def _unique_name(name: str, used: Set[str]) -> str:
        """Suffix _2, _3, ... until the name is free, then reserve it."""
        candidate, n = name, 2
        while candidate.lower() in used:
            candidate = f"{name}_{n}"
            n += 1
        used.add(candidate.lower())
        return candidate

    @staticmethod
    def _dump(path: Path, payload: dict) -> None:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
            f.write("\n")
