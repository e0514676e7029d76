"""Command-line interface for Memoizable.

This module provides commands for creating the memories table and for
inspecting the memories stored for a subject.
"""

import asyncio
import json
import sys
from typing import Any, NoReturn

import click

from memoizable.core.config import get_settings
from memoizable.core.logging import configure_logging, get_logger


def _run(coro: Any) -> Any:
    return asyncio.run(coro)


@click.group()
@click.version_option(version="0.1.0", prog_name="Memoizable")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    default=None,
    help="Set log level (overrides environment)",
)
def cli(log_level: str | None) -> None:
    """Memoizable - versioned snapshots of database records."""
    settings = get_settings()
    if log_level:
        settings = settings.model_copy(update={"log_level": log_level})
    configure_logging(settings)


@cli.command("init-db")
def init_db() -> None:
    """Create the memories table."""
    from memoizable.infrastructure.persistence.database import (
        close_database,
        init_database,
    )

    logger = get_logger(__name__)

    async def _init() -> None:
        try:
            await init_database()
        finally:
            await close_database()

    try:
        _run(_init())
    except RuntimeError as e:
        logger.error("Database initialization failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo("Database initialized")


@cli.command()
@click.argument("subject_type")
@click.argument("subject_id")
@click.option("--state", default=None, help="Only list memories with this state")
@click.option("--limit", type=int, default=None, help="Maximum number of memories")
def history(subject_type: str, subject_id: str, state: str | None, limit: int | None) -> None:
    """List a subject's memories, newest first."""
    from memoizable.infrastructure.persistence.database import (
        close_database,
        get_db_manager,
    )
    from memoizable.infrastructure.persistence.repositories import MemoryRepository

    async def _list() -> list[Any]:
        try:
            async with get_db_manager().session() as session:
                return await MemoryRepository(session).list_for_subject(
                    subject_type, subject_id, state=state, limit=limit
                )
        finally:
            await close_database()

    memories = _run(_list())
    if not memories:
        click.echo(f"No memories for {subject_type} {subject_id}")
        return

    for memory in memories:
        click.echo(
            f"{memory.id}\t{memory.created_at.isoformat()}\t"
            f"{memory.state or '-'}\t{memory.created_by or '-'}"
        )


@cli.command()
@click.argument("memory_id", type=int)
@click.option("--field", default=None, help="Show one materialized field")
def show(memory_id: int, field: str | None) -> None:
    """Print a memory's payload as JSON."""
    from pydantic_core import to_jsonable_python

    from memoizable.core.memory.views import materialize
    from memoizable.infrastructure.persistence.database import (
        close_database,
        get_db_manager,
    )
    from memoizable.infrastructure.persistence.repositories import MemoryRepository

    async def _get() -> Any:
        try:
            async with get_db_manager().session() as session:
                return await MemoryRepository(session).get_by_id(memory_id)
        finally:
            await close_database()

    memory = _run(_get())
    if memory is None:
        click.echo(f"Memory {memory_id} not found", err=True)
        sys.exit(1)

    value: Any = memory.payload
    if field is not None:
        value = materialize(memory.payload, field)
        value = getattr(value, "raw", value)
    click.echo(json.dumps(to_jsonable_python(value), indent=2, sort_keys=True))


@cli.command()
def info() -> None:
    """Display configuration information."""
    settings = get_settings()

    click.echo(f"{settings.app_name} v{settings.app_version}")
    click.echo(f"Environment: {settings.environment}")
    click.echo(f"Database: {settings.database_url}")
    click.echo(f"Excluded attributes: {', '.join(settings.excluded_attributes)}")
    click.echo(f"State attribute: {settings.state_attribute}")
    if settings.captures_inline:
        click.echo("Capture: synchronous")
    else:
        click.echo(f"Capture: deferred ({settings.capture_delay_seconds}s)")


def main() -> NoReturn:
    """Main entry point for the CLI."""
    cli()
    sys.exit(0)


if __name__ == "__main__":
    main()
