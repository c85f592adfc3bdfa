from __future__ import annotations

from collections.abc import Sequence

from rich import box
from rich.console import Console
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from quantlens.contracts import Reporter
from quantlens.models import PlanRow, QuantileReport


def _format_optional(value: int | None) -> str:
    return "-" if value is None else f"{value:,}"


class RichReporter(Reporter):
    """Render quantile reports and memory plans using Rich tables."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def render(self, report: QuantileReport) -> None:
        self._console.print()
        self._console.print(f"Quantiles for {report.source}", style="bold underline")
        self._console.print(Rule(style="dim"))

        self._console.print(self._build_finder_section(report))
        self._console.print()

        self._console.print(f"Quantiles ({len(report.phis)})", style="bold")
        self._console.print(Rule(style="dim"))
        if not report.phis:
            self._console.print("[dim]None[/dim]")
            return
        self._console.print(self._build_quantile_table(report))

    def render_plan(self, rows: Sequence[PlanRow]) -> None:
        self._console.print()
        self._console.print("Memory plan", style="bold underline")
        self._console.print(Rule(style="dim"))

        table = Table(
            box=box.SIMPLE_HEAD,
            show_header=True,
            header_style="bold",
            padding=(0, 2),
        )
        table.add_column("quantiles", justify="right")
        table.add_column("n", justify="right")
        table.add_column("epsilon", justify="right")
        table.add_column("delta", justify="right")
        table.add_column("known n")
        table.add_column("b", justify="right")
        table.add_column("k", justify="right")
        table.add_column("memory", justify="right")

        for row in rows:
            exact = row.b == 1
            table.add_row(
                str(row.quantiles),
                _format_optional(row.n),
                f"{row.epsilon:g}",
                f"{row.delta:g}",
                str(row.known_n).lower(),
                Text(str(row.b), style="yellow" if exact else ""),
                _format_optional(row.k),
                _format_optional(row.memory),
            )
        self._console.print(table)

    @staticmethod
    def _build_finder_section(report: QuantileReport) -> Table:
        table = Table.grid(padding=(0, 3))
        table.add_column("Field", style="bold cyan")
        table.add_column("Value")

        table.add_row("finder:", report.finder)
        table.add_row("b:", _format_optional(report.b))
        table.add_row("k:", _format_optional(report.k))
        table.add_row("size:", f"{report.size:,}")
        table.add_row("memory:", f"{report.memory:,}")
        table.add_row("total_memory:", f"{report.total_memory:,}")
        return table

    @staticmethod
    def _build_quantile_table(report: QuantileReport) -> Table:
        table = Table(
            box=box.SIMPLE_HEAD,
            show_header=True,
            header_style="bold",
            padding=(0, 2),
        )
        table.add_column("phi", justify="right")
        table.add_column("quantile", justify="right")
        for phi, value in zip(report.phis, report.quantiles):
            table.add_row(f"{phi:.4f}", f"{value:.6g}")
        return table
