"""Content Ops CLI - Main Entry Point"""

from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from api.config.settings import settings

from .client.base import ContentOpsClient, ContentOpsError
from .commands import jobs, plans
from .utils.formatting import print_error, print_info

console = Console()

# Create main Typer app
app = typer.Typer(
    name="content-ops",
    help="📦 Content Ops - background jobs and content plan CLI",
    rich_markup_mode="rich",
)

# Add command subapps
app.add_typer(jobs.app, name="jobs")
app.add_typer(plans.app, name="plans")


@app.command()
def status(
    api_url: str = typer.Option(None, "--api-url", help="Content Ops API base URL"),
):
    """📊 Check API, database and queue health"""
    base_url = api_url or f"http://{settings.host}:{settings.port}"
    print_info(f"Checking connection to: {base_url}")

    try:
        with ContentOpsClient(base_url) as client:
            health = client.health_check()
    except ContentOpsError as e:
        print_error(f"Failed to connect: {e}")
        raise typer.Exit(1) from None

    queue = health.get("queue") or {}
    database = health.get("database") or {}
    console.print(Panel(
        f"🚀 [green]Connected[/green]\n\n"
        f"• Version: [cyan]{health.get('version', 'unknown')}[/cyan]\n"
        f"• Environment: [yellow]{health.get('environment', 'unknown')}[/yellow]\n"
        f"• Database: [blue]{'up' if database.get('connected') else 'down'}[/blue]\n"
        f"• Queue Depth: [cyan]{queue.get('queue_depth', 0)}[/cyan]\n"
        f"• Failed (last hour): [red]{queue.get('failed_last_hour', 0)}[/red]",
        title="System Status",
        border_style="green" if health.get("ok") else "red",
    ))


def _version_callback(value: bool):
    if value:
        from . import __version__
        console.print(f"Content Ops CLI v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
):
    """
    📦 Content Ops CLI

    Run the background job worker, inspect the queue and generate
    content plan items.
    """


if __name__ == "__main__":
    app()
