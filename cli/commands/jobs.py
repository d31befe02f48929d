"""Job Commands - Run the worker and inspect the queue"""

import asyncio
import signal

import typer
from rich.console import Console

from api.config.logging import setup_logging
from api.config.settings import settings
from api.infra.database import get_database
from api.v1.infra.jobs import registry_init as _job_handlers  # noqa: F401
from api.v1.infra.jobs.service import JobService
from api.v1.infra.jobs.worker import JobWorker
from api.v1.plans.registry_init import init_plan_registries

from ..client.base import ContentOpsClient, ContentOpsError
from ..utils.formatting import (
    create_job_stats_panel,
    print_error,
    print_info,
    print_success,
)

console = Console()
app = typer.Typer(name="jobs", help="Background job worker and queue commands")


def _api_url() -> str:
    return f"http://{settings.host}:{settings.port}"


async def _run_worker() -> None:
    worker = JobWorker(settings)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda: asyncio.ensure_future(worker.stop()))
    try:
        await worker.start()
    finally:
        await get_database(settings).close()


async def _run_tick() -> int:
    worker = JobWorker(settings)
    try:
        return await worker.tick()
    finally:
        await get_database(settings).close()


async def _run_cleanup() -> int:
    database = get_database(settings)
    try:
        async with database.SessionLocal() as session:
            return await JobService(settings).cleanup_old_jobs(session)
    finally:
        await database.close()


@app.command("worker")
def run_worker():
    """⚙️ Run the job worker until interrupted"""
    setup_logging()
    init_plan_registries()
    print_info(
        f"Worker polling every {settings.job_poll_interval_s}s "
        f"(batch size {settings.job_batch_size})"
    )
    asyncio.run(_run_worker())


@app.command("tick")
def run_tick():
    """⏱️ Run a single worker tick and exit"""
    setup_logging()
    init_plan_registries()
    processed = asyncio.run(_run_tick())
    print_success(f"Processed {processed} job(s)")


@app.command("cleanup")
def run_cleanup():
    """🧹 Delete finished jobs past the retention period"""
    setup_logging()
    deleted = asyncio.run(_run_cleanup())
    print_success(
        f"Deleted {deleted} job(s) older than {settings.job_cleanup_after_days} days"
    )


@app.command("stats")
def show_stats(
    api_url: str = typer.Option(None, "--api-url", help="Content Ops API base URL"),
):
    """📊 Show queue statistics from a running API"""
    try:
        with ContentOpsClient(api_url or _api_url()) as client:
            stats = client.get_job_stats()
            console.print(create_job_stats_panel(stats))
    except ContentOpsError as e:
        print_error(f"Failed to get job stats: {e}")
        raise typer.Exit(1) from None


@app.command("retry")
def retry_job(
    job_id: str = typer.Argument(..., help="ID of a failed job"),
    api_url: str = typer.Option(None, "--api-url", help="Content Ops API base URL"),
):
    """🔁 Send a failed job back to the queue"""
    try:
        with ContentOpsClient(api_url or _api_url()) as client:
            client.retry_job(job_id)
            print_success(f"Job {job_id} queued for retry")
    except ContentOpsError as e:
        print_error(f"Failed to retry job: {e}")
        raise typer.Exit(1) from None
