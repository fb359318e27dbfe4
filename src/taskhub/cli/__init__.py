"""CLI commands for taskhub.

Provides command-line interface using Typer:
- taskhub cache: Inspect and purge the shared Redis cache
- taskhub db: Check and initialize the origin database

Usage:
    taskhub --help
    taskhub cache ping
    taskhub cache key tasks:assignee u1
    taskhub cache invalidate task 42
    taskhub db init
"""

import typer

from taskhub.cli.cache_cmd import app as cache_app
from taskhub.cli.db_cmd import app as db_app
from taskhub.config import settings
from taskhub.observability.logging import configure_logging

# Main CLI application
app = typer.Typer(
    name="taskhub",
    help="taskhub: batched read-through cache for users, tasks and comments",
    no_args_is_help=True,
)

# Add subcommands
app.add_typer(cache_app, name="cache")
app.add_typer(db_app, name="db")


@app.callback()
def callback(
    log_level: str = typer.Option(settings.log_level, "--log-level", help="Log level"),
) -> None:
    """taskhub: batched read-through cache for users, tasks and comments."""
    configure_logging(json_format=settings.log_json, level=log_level)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
