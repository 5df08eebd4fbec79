"""Terminal dashboard — renders a cycle's results with rich."""

from __future__ import annotations

from datetime import datetime, timedelta

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from servermon.health.models import CheckResult, Status

_STATUS_BADGES: dict[Status, tuple[str, str]] = {
    Status.UP: ("✓ UP", "green"),
    Status.DOWN: ("✗ DOWN", "red"),
    Status.UNHEALTHY: ("⚠ UNHEALTHY", "yellow"),
    Status.DEGRADED: ("⚠ DEGRADED", "yellow"),
    Status.MAINTENANCE: ("ℹ MAINTENANCE", "blue"),
    Status.ERROR: ("⚠ ERROR", "red"),
}

COLUMNS = ("Server Name", "Type", "Target", "Status", "Code", "Last Check", "Details")


def column_widths(terminal_width: int) -> list[int]:
    """Fixed widths for the first six columns, the rest goes to Details."""
    if terminal_width < 100:
        widths = [14, 7, 25, 10, 6, 12]
    elif terminal_width < 140:
        widths = [18, 8, 35, 17, 8, 12]
    elif terminal_width < 180:
        widths = [22, 8, 45, 17, 8, 12]
    else:
        widths = [25, 8, 55, 17, 8, 12]
    # 7 columns → 8 borders + padding
    widths.append(max(10, terminal_width - sum(widths) - 9 - 2 * len(COLUMNS)))
    return widths


def format_status(status: Status) -> Text:
    label, style = _STATUS_BADGES.get(status, (status.value.upper(), ""))
    return Text(label, style=style)


def format_details(result: CheckResult) -> str:
    if result.kind == "ssh" and not result.detail_lines:
        return "OK" if result.status is Status.UP else "-"
    return " | ".join(result.detail_lines) if result.detail_lines else "-"


def format_time(ts: datetime) -> str:
    return ts.astimezone().strftime("%H:%M:%S")


def summary_panel(results: list[CheckResult], interval: float, now: datetime | None = None) -> Panel:
    now = now or datetime.now().astimezone()
    healthy = sum(1 for r in results if r.status.is_healthy)
    total = len(results)
    style = "green" if healthy == total else "red"
    next_check = format_time(now + timedelta(seconds=interval))
    body = Text.assemble(
        (f"Uptime: {healthy}/{total} servers UP", style),
        "\n",
        f"Refresh: every {interval:g}s | Next check at {next_check}",
    )
    return Panel(body, title="SERVER MONITORING DASHBOARD", border_style="white")


def results_table(results: list[CheckResult], terminal_width: int) -> Table:
    table = Table(border_style="cyan", header_style="cyan", show_lines=False, expand=False)
    for title, width in zip(COLUMNS, column_widths(terminal_width)):
        table.add_column(title, width=width, overflow="fold")

    current_group: str | None = None
    for result in results:
        if result.group and result.group != current_group:
            table.add_row()
            table.add_row(Text(result.group, style="bold white"))
            current_group = result.group
        elif current_group and not result.group:
            current_group = None
            table.add_row()

        table.add_row(
            Text(result.name, style="white"),
            Text(result.kind, style="bright_black"),
            Text(result.display_target, style="bright_black"),
            format_status(result.status),
            Text(result.code_label, style="bright_black"),
            Text(format_time(result.checked_at), style="bright_black"),
            Text(format_details(result), style="bright_black"),
        )
    return table


def render(results: list[CheckResult], interval: float, console: Console | None = None) -> None:
    """Clear the screen and draw the summary + results table."""
    console = console or Console()
    console.clear()
    console.print(
        Group(
            summary_panel(results, interval),
            Text(""),
            results_table(results, console.width),
            Text(f"\nLast updated: {format_time(datetime.now().astimezone())}", style="dim"),
            Text("Press Ctrl+C to exit\n", style="dim"),
        )
    )
