# ui.py
# Live progress bar using rich

from __future__ import annotations
from typing import Optional

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn

from models import ProbeResult


class ProgressUI:
    def __init__(self, total_ports: int, console: Optional[Console] = None):
        self.total_ports = total_ports
        self.open_found = 0
        # Share the reporter's console so result lines print above the bar
        self._progress = Progress(
            TextColumn("{task.fields[open]} open", style="green"),
            TimeElapsedColumn(),
            BarColumn(bar_width=40, style="blue", complete_style="cyan"),
            MofNCompleteColumn(),
            console=console,
            transient=True,
        )
        self._task = None

    def start(self):
        self._task = self._progress.add_task("scan", total=self.total_ports, open=0)
        self._progress.start()

    def stop(self):
        self._progress.stop()

    def advance(self, result: ProbeResult):
        if result.is_open:
            self.open_found += 1
        if self._task is not None:
            self._progress.update(self._task, advance=1, open=self.open_found)
