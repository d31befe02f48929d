"""Plan Commands - Generate plan items from the command line"""

import asyncio
from uuid import UUID

import typer
from rich.console import Console

from api.config.logging import setup_logging
from api.config.settings import settings
from api.infra.database import get_database
from api.v1.core.exceptions import ContentOpsException
from api.v1.core.security import string_to_uuid
from api.v1.plans.capabilities import get_plan_item_capabilities
from api.v1.plans.generator import GenerationResult, PlanGenerator
from api.v1.plans.registry_init import init_plan_registries
from api.v1.plans.schemas import SlotOverrides
from api.v1.plans.topics import get_topic_dispatcher

from ..utils.formatting import (
    create_plan_items_table,
    print_error,
    print_info,
    print_success,
    print_warning,
)

console = Console()
app = typer.Typer(name="plans", help="Content plan commands")


async def _generate(
    plan_id: UUID,
    owner_id: UUID,
    start: str,
    end: str | None,
    overrides: SlotOverrides,
) -> GenerationResult:
    database = get_database(settings)
    dispatcher = get_topic_dispatcher(settings)
    generator = PlanGenerator(
        settings, get_plan_item_capabilities(), dispatcher=dispatcher
    )
    try:
        async with database.SessionLocal() as session:
            result = await generator.generate(
                session, plan_id, owner_id, start, end, overrides
            )
        # Detached topic assignments must finish before the loop closes
        await dispatcher.drain()
        return result
    finally:
        await database.close()


@app.command("generate")
def generate(
    plan_id: str = typer.Argument(..., help="Plan ID"),
    start: str = typer.Option(..., "--start", "-s", help="First day (YYYY-MM-DD)"),
    end: str = typer.Option(None, "--end", "-e", help="Last day (YYYY-MM-DD)"),
    owner: str = typer.Option(
        None, "--owner", "-o", help="Plan owner (defaults to the dev user)"
    ),
    times: list[str] = typer.Option(
        None, "--time", "-t", help="Posting time per slot, repeatable"
    ),
    topics: list[str] = typer.Option(
        None, "--topic", help="Topic per slot, repeatable"
    ),
    categories: list[str] = typer.Option(
        None, "--category", help="Category per slot, repeatable"
    ),
):
    """🗓️ Generate items for a plan over a date window"""
    setup_logging()
    init_plan_registries()

    try:
        parsed_plan_id = UUID(plan_id)
    except ValueError:
        print_error(f"Invalid plan ID: {plan_id}")
        raise typer.Exit(1) from None

    owner_id = string_to_uuid(owner or settings.dev_user_id)
    overrides = SlotOverrides(times=times, topics=topics, categories=categories)

    print_info(f"Generating items for plan {plan_id} from {start}...")
    try:
        result = asyncio.run(
            _generate(parsed_plan_id, owner_id, start, end, overrides)
        )
    except ContentOpsException as e:
        print_error(f"Generation failed: {e.message}")
        raise typer.Exit(1) from None

    if result.window.skipped_today:
        print_warning("Trigger time already passed today, started tomorrow")

    console.print(
        create_plan_items_table([item.model_dump() for item in result.items])
    )
    print_success(
        f"Created {len(result.items)} item(s) over {result.days} day(s) "
        f"({result.window.start} → {result.window.end})"
    )
