"""``appupgen plan OLD_EBIN NEW_EBIN``: plan one application.

Prints the rendered appup for two ebin directories of the same
application, or writes it with ``--output``.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from appupgen.config import settings
from appupgen.core.appup_writer import render_appup, write_appup
from appupgen.core.fragments import load_fragment
from appupgen.core.planner import AppupPlanner
from appupgen.core.purge import parse_purge_option
from appupgen.core.supervision import ErlangNodeRuntime
from appupgen.cli.render import HANDLED_ERRORS, fail

console = Console()


def plan_cmd(
    old_dir: Path = typer.Argument(..., help="ebin directory of the previous version."),
    new_dir: Path = typer.Argument(..., help="ebin directory of the current version."),
    application: str = typer.Option(..., "--app", "-a", help="Application name."),
    old_version: str = typer.Option(..., "--old-version", help="Previous application version."),
    new_version: str = typer.Option(..., "--new-version", help="Current application version."),
    pre: Path = typer.Option(None, "--pre", help="A .appup.pre.src fragment file."),
    post: Path = typer.Option(None, "--post", help="A .appup.post.src fragment file."),
    purge: str = typer.Option(None, "--purge", "-g", help="Per-module purge types."),
    output: Path = typer.Option(None, "--output", "-o", help="Write the appup here."),
    supervisors: bool = typer.Option(
        True,
        "--supervisors/--no-supervisors",
        help="Evaluate supervisor init/1 with erl to diff child specs.",
    ),
) -> None:
    """Plan the upgrade of one application between two ebin directories."""
    runtime = None
    if supervisors:
        runtime = ErlangNodeRuntime(
            settings.erl_executable,
            timeout=settings.init_timeout_seconds,
            code_paths=settings.erl_code_paths,
        )
    try:
        planner = AppupPlanner(
            purge=parse_purge_option(purge, default=settings.default_purge),
            runtime=runtime,
            extension=settings.artifact_extension,
            volatile=settings.volatile_chunks,
            strict_roles=settings.strict_roles,
        )
        plan = planner.plan_directories(
            application,
            old_version,
            new_version,
            old_dir,
            new_dir,
            (load_fragment(pre), load_fragment(post)),
        )
    except HANDLED_ERRORS as exc:
        raise fail(console, exc) from exc

    if output is not None:
        written = write_appup(
            output, application, old_version, new_version, plan.upgrade, plan.downgrade
        )
        console.print(f"[green]Wrote[/green] {written}")
        return
    # Plain print keeps the Erlang text intact for redirection.
    typer.echo(render_appup(application, old_version, new_version, plan.upgrade, plan.downgrade))
