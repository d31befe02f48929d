"""Rich Formatting Utilities for CLI Output"""

from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_warning(message: str):
    """Print warning message with yellow styling"""
    console.print(f"[yellow]⚠ {message}[/yellow]")


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]")


def create_plan_items_table(items: list[dict[str, Any]]) -> Table:
    """Create a formatted table for generated plan items"""
    table = Table(title="Plan Items", box=box.ROUNDED)

    table.add_column("ID", justify="left", style="cyan", no_wrap=True)
    table.add_column("Date", justify="center", style="magenta")
    table.add_column("Time", justify="center", style="magenta")
    table.add_column("Status", justify="center", style="yellow")
    table.add_column("Category", justify="left", style="green")
    table.add_column("Topic", justify="left", style="white")

    for item in items:
        topic = item.get("topic") or "—"
        table.add_row(
            str(item.get("id", ""))[:8],  # Short ID
            str(item.get("scheduled_date", "")),
            str(item.get("scheduled_time") or "—"),
            item.get("status", ""),
            item.get("category") or "—",
            topic[:50] + "..." if len(topic) > 50 else topic,
        )

    return table


def create_job_stats_panel(stats: dict[str, Any]) -> Panel:
    """Create formatted panel for queue statistics"""
    by_status = stats.get("by_status", {})
    content = f"""
📦 [bold blue]Queue[/bold blue]

• Total Jobs: [blue]{stats.get("total_jobs", 0)}[/blue]
• Queue Depth: [cyan]{stats.get("queue_depth", 0)}[/cyan]
• Due Now: [yellow]{stats.get("due_now", 0)}[/yellow]
• Completed: [green]{by_status.get("completed", 0)}[/green]
• Failed: [red]{by_status.get("failed", 0)}[/red]
• Failed (last hour): [red]{stats.get("failed_last_hour", 0)}[/red]
"""

    return Panel(content, title="Job Stats", border_style="green")
