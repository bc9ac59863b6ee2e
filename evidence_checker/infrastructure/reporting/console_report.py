"""Rich console report for gate results."""

from collections import OrderedDict
from typing import Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ...domain.models.gap import Gap, GapType, remediation_text
from ...domain.models.gate_result import GateReport

SEVERITY_STYLE = {
    "blocking": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "dim",
}


class ConsoleReport:
    """Prints a gate report grouped by gap type.

    The report lists what is wrong and how to address it. It never states
    that anything was fixed.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(record=True)

    def display(self, report: GateReport, case_name: str = "", chain_hash: Optional[str] = None) -> None:
        """Display the full report."""
        if report.passed:
            header = "[bold green]✔ All gates pass[/bold green]"
            style = "green"
        else:
            header = f"[bold red]✘ {report.blocking_count} blocking gap(s)[/bold red]"
            style = "red"
        title = f"Evidence check: {case_name}" if case_name else "Evidence check"
        self.console.print(Panel(header, title=title, border_style=style))

        self._display_gates(report)
        self._display_gaps(report.gaps)

        if chain_hash:
            self.console.print(f"\n[dim]Audit chain: {chain_hash}[/dim]")

    def _display_gates(self, report: GateReport) -> None:
        table = Table(title="📊 Gates", show_header=True, header_style="bold cyan")
        table.add_column("Gate", style="cyan", no_wrap=True)
        table.add_column("Result")
        table.add_column("Blocking", justify="right")
        table.add_column("Gaps", justify="right")
        for status in report.gates:
            result = "[green]pass[/green]" if status.passed else "[red]fail[/red]"
            table.add_row(status.gate, result, str(status.blocking), str(status.total))
        self.console.print(table)

    def _display_gaps(self, gaps: List[Gap]) -> None:
        if not gaps:
            return
        grouped: Dict[GapType, List[Gap]] = OrderedDict()
        for gap in gaps:
            grouped.setdefault(gap.type, []).append(gap)

        for gap_type, items in grouped.items():
            severity = items[0].severity.value
            table = Table(
                title=f"{gap_type.value} ({len(items)})",
                title_style=SEVERITY_STYLE.get(severity, ""),
                show_header=True,
                header_style="bold",
            )
            table.add_column("Id", no_wrap=True)
            table.add_column("Target", no_wrap=True)
            table.add_column("Message")
            for gap in items:
                table.add_row(gap.gap_id, gap.target.describe(), gap.message)
            self.console.print(table)
            self.console.print(f"  [bold]Remediation:[/bold] {remediation_text(gap_type)}")

    def export_text(self) -> str:
        """Plain text of everything printed so far."""
        return self.console.export_text()
