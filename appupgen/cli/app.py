"""Main Typer application: imports and registers all CLI commands.

Entry point: ``appupgen`` (configured via pyproject.toml scripts).

Commands: generate, plan, diff, compare, chunks.
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from appupgen.config import settings
from appupgen.cli.commands.generate import generate_cmd
from appupgen.cli.commands.inspect import chunks_cmd, compare_cmd, diff_cmd
from appupgen.cli.commands.plan import plan_cmd

app = typer.Typer(
    name="appupgen",
    help="Appupgen: generate reversible .appup files from two releases.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def configure(
    log_level: str = typer.Option(
        settings.log_level, "--log-level", "-L", help="Logging level (DEBUG, INFO, WARNING...)."
    ),
) -> None:
    """Install the Rich log handler for every command."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, rich_tracebacks=True)],
        force=True,
    )


# Register subcommands
app.command(name="generate", help="Compare two releases and generate .appup files.")(generate_cmd)
app.command(name="plan", help="Plan one application from two ebin directories.")(plan_cmd)
app.command(name="diff", help="Diff two artifact directories.")(diff_cmd)
app.command(name="compare", help="Compare two artifacts of one module.")(compare_cmd)
app.command(name="chunks", help="List the chunks of an artifact.")(chunks_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
