# reporter.py
# Prints results as they arrive and saves finished reports as text, JSON and CSV

from __future__ import annotations
import csv
import json
import os
from datetime import datetime, timezone
from typing import List, Optional

from rich.console import Console

from models import PortRange, ProbeResult, ScanReport, Target


def _ensure_parent(path: str):
    parent = os.path.dirname(os.path.abspath(path))
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)


def format_result(r: ProbeResult) -> str:
    if r.is_open:
        if r.service:
            return f"Port {r.port:5} OPEN  ({r.service})"
        return f"Port {r.port:5} OPEN"
    return f"Port {r.port:5} CLOSED/FILTERED"


class Reporter:
    def __init__(self, colorize: bool = True, console: Optional[Console] = None):
        self.colorize = colorize
        self.console = console or Console(no_color=not colorize, highlight=False, soft_wrap=True)
        self.generated_at = datetime.now(timezone.utc)

    def _line(self, text: str, style: Optional[str] = None):
        self.console.print(text, style=style if self.colorize else None, markup=False, highlight=False)

    def header(self, target: Target, ports: PortRange, concurrency: int):
        self._line(
            f"Scanning {len(ports)} ports ({ports.start} → {ports.end}) on {target} (concurrency limit {concurrency})",
            style="bold cyan",
        )
        self._line("")

    def emit(self, r: ProbeResult):
        """Streaming output: one line per OPEN port, in completion order."""
        if r.is_open:
            self._line(format_result(r), style="green")

    def closed(self, report: ScanReport):
        for r in report.results:
            if not r.is_open:
                self._line(format_result(r), style="dim")

    def summary(self, report: ScanReport):
        self._line(self.summary_line(report), style="bold")

    @staticmethod
    def summary_line(report: ScanReport) -> str:
        n_open = len(report.open_results())
        n_closed = report.total - n_open
        status = "Scan cancelled" if report.cancelled else "Scan finished"
        line = (
            f"{status}: {n_open} open, {n_closed} closed/filtered, "
            f"{report.total} scanned in {report.elapsed_s:.2f}s"
        )
        if report.cancelled:
            line += f" ({len(report.ports) - report.total} not scanned)"
        return line

    def to_text(self, report: ScanReport, open_only: bool = True) -> str:
        lines: List[str] = []
        lines.append("== portsweep report ==")
        lines.append(f"Generated (UTC): {self.generated_at.isoformat()}")
        lines.append(f"Target: {report.target} | Ports: {report.ports}")
        lines.append("")
        shown = report.open_results() if open_only else list(report.results)
        if not shown:
            lines.append("No open ports found.")
        for r in shown:
            lines.append(format_result(r))
        lines.append("")
        lines.append(self.summary_line(report))
        return "\n".join(lines)

    def to_json(self, report: ScanReport) -> str:
        doc = {
            "meta": {
                "generated_utc": self.generated_at.isoformat(),
                "tool": "portsweep",
            },
            **report.to_dict(),
        }
        return json.dumps(doc, indent=2)

    def save_text(self, report: ScanReport, path: str):
        _ensure_parent(path)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.to_text(report))

    def save_json(self, report: ScanReport, path: str):
        _ensure_parent(path)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.to_json(report))

    def save_csv(self, report: ScanReport, path: str):
        _ensure_parent(path)
        with open(path, "w", newline="", encoding="utf-8") as f:
            w = csv.writer(f)
            w.writerow(["target", "port", "state", "service", "elapsed_s"])
            for r in report.results:
                w.writerow([str(report.target), r.port, r.state.value, r.service or "", r.elapsed_s])
