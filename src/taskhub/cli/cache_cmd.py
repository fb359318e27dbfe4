"""CLI commands for the shared Redis cache.

Usage:
    taskhub cache ping
    taskhub cache get task:42
    taskhub cache ttl user:7
    taskhub cache key tasks:status PENDING page:1 limit:10
    taskhub cache purge "tasks:all:*"
    taskhub cache invalidate task 42
"""

from __future__ import annotations

import asyncio

import orjson
import typer

from taskhub.cache.invalidation import EntityChange, EntityKind
from taskhub.cache.keys import build_key
from taskhub.cache.redis import TTL_MISSING, TTL_NO_EXPIRY
from taskhub.errors import CacheUnavailableError, KeyConstructionError
from taskhub.persistence.repositories import CommentRepository, TaskRepository, UserRepository
from taskhub.runtime import open_data_layer

app = typer.Typer(help="Inspect and purge the shared Redis cache")


@app.command("ping")
def ping() -> None:
    """Check that Redis is reachable."""
    from rich.console import Console

    console = Console()

    async def _ping() -> bool:
        async with open_data_layer() as layer:
            return await layer.cache.health_check()

    if not asyncio.run(_ping()):
        console.print("[red]Redis unreachable[/red]")
        raise typer.Exit(code=1)
    console.print("[green]PONG[/green]")


@app.command("get")
def get(key: str = typer.Argument(..., help="Exact cache key")) -> None:
    """Print the cached JSON value stored under KEY."""
    from rich.console import Console

    console = Console()

    async def _get() -> object:
        async with open_data_layer() as layer:
            return await layer.cache.get(key)

    value = asyncio.run(_get())
    if value is None:
        console.print(f"[yellow]Not cached:[/yellow] {key}")
        raise typer.Exit(code=1)
    typer.echo(orjson.dumps(value, option=orjson.OPT_INDENT_2).decode())


@app.command("ttl")
def ttl(key: str = typer.Argument(..., help="Exact cache key")) -> None:
    """Print the seconds left before KEY expires."""
    from rich.console import Console

    console = Console()

    async def _ttl() -> int:
        async with open_data_layer() as layer:
            return await layer.cache.ttl_remaining(key)

    remaining = asyncio.run(_ttl())
    if remaining == TTL_MISSING:
        console.print(f"[yellow]Not cached:[/yellow] {key}")
        raise typer.Exit(code=1)
    if remaining == TTL_NO_EXPIRY:
        console.print(f"[red]No expiry set:[/red] {key}")
        return
    console.print(f"{key}: {remaining}s")


@app.command("key")
def key(
    namespace: str = typer.Argument(..., help="Key namespace, e.g. tasks:assignee"),
    parts: list[str] = typer.Argument(None, help="Key parts in order"),
) -> None:
    """Print the cache key built from NAMESPACE and PARTS."""
    try:
        typer.echo(build_key(namespace, *(parts or [])))
    except KeyConstructionError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.command("purge")
def purge(pattern: str = typer.Argument(..., help="Glob pattern, e.g. 'tasks:all:*'")) -> None:
    """Delete every cache key matching PATTERN."""
    from rich.console import Console

    console = Console()

    async def _purge() -> int:
        async with open_data_layer() as layer:
            return await layer.cache.delete_pattern(pattern, strict=True)

    try:
        deleted = asyncio.run(_purge())
    except CacheUnavailableError as e:
        console.print(f"[red]Purge failed:[/red] {e}")
        raise typer.Exit(code=1) from e
    console.print(f"[green]Deleted {deleted} key(s)[/green] matching {pattern}")


@app.command("invalidate")
def invalidate(
    entity: EntityKind = typer.Argument(..., help="Entity kind: user, task or comment"),
    entity_id: str = typer.Argument(..., help="Entity id"),
) -> None:
    """Drop every cache entry that depends on one entity.

    The current row is read from the database so relations (creator,
    assignee, task) are cleared too; if the row is gone only id-keyed
    entries and list patterns are cleared.
    """
    from rich.console import Console

    console = Console()
    repositories = {
        EntityKind.USER: UserRepository,
        EntityKind.TASK: TaskRepository,
        EntityKind.COMMENT: CommentRepository,
    }

    async def _invalidate() -> tuple[int, list[str]]:
        async with open_data_layer() as layer:
            row = await repositories[entity](layer.origin).get(entity_id)
            change = EntityChange.deleted(entity_id, row or {})
            report = await layer.invalidate(entity, change)
            return report.deleted, report.failed

    deleted, failed = asyncio.run(_invalidate())
    console.print(f"[green]Deleted {deleted} key(s)[/green] for {entity.value} {entity_id}")
    if failed:
        console.print(f"[red]Failed targets:[/red] {', '.join(failed)}")
        raise typer.Exit(code=1)
