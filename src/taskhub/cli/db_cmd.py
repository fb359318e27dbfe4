"""CLI commands for the origin database.

Usage:
    taskhub db check
    taskhub db init
"""

from __future__ import annotations

import asyncio

import typer

from taskhub.config import settings
from taskhub.persistence.db import close_db, create_engine, health_check, init_db

app = typer.Typer(help="Check and initialize the origin database")


@app.command("check")
def check() -> None:
    """Check database connectivity."""
    from rich.console import Console

    console = Console()

    async def _check() -> bool:
        engine = create_engine(settings)
        try:
            return await health_check(engine)
        finally:
            await close_db(engine)

    if not asyncio.run(_check()):
        console.print("[red]Database unreachable[/red]")
        raise typer.Exit(code=1)
    console.print("[green]Database OK[/green]")


@app.command("init")
def init() -> None:
    """Create the users, tasks and comments tables if missing."""
    from rich.console import Console

    console = Console()

    async def _init() -> None:
        engine = create_engine(settings)
        try:
            await init_db(engine)
        finally:
            await close_db(engine)

    asyncio.run(_init())
    console.print("[green]Tables created[/green]")
