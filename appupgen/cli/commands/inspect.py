"""Inspection commands: ``diff``, ``compare`` and ``chunks``."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from appupgen.config import settings
from appupgen.core.comparator import compare_artifacts
from appupgen.core.container import read_index
from appupgen.core.directory_differ import diff_directories
from appupgen.cli.render import HANDLED_ERRORS, fail

console = Console()


def diff_cmd(
    old_dir: Path = typer.Argument(..., help="Previous artifact directory."),
    new_dir: Path = typer.Argument(..., help="Current artifact directory."),
) -> None:
    """Show which modules were added, deleted or changed."""
    try:
        diff = diff_directories(
            old_dir,
            new_dir,
            extension=settings.artifact_extension,
            volatile=settings.volatile_chunks,
        )
    except HANDLED_ERRORS as exc:
        raise fail(console, exc) from exc

    table = Table(title=f"{old_dir} -> {new_dir}")
    table.add_column("Module", style="cyan")
    table.add_column("Status")
    for name in sorted(diff.only_new):
        table.add_row(name, "[green]added[/green]")
    for name in diff.changed_names:
        table.add_row(name, "[yellow]changed[/yellow]")
    for name in sorted(diff.only_old):
        table.add_row(name, "[red]deleted[/red]")
    if not table.row_count:
        console.print(f"[dim]No differences ({len(diff.unchanged)} identical modules).[/dim]")
        return
    console.print(table)
    console.print(f"[dim]{len(diff.unchanged)} identical modules[/dim]")


def compare_cmd(
    artifact_a: Path = typer.Argument(..., help="First artifact."),
    artifact_b: Path = typer.Argument(..., help="Second artifact."),
) -> None:
    """Compare two artifacts of the same module, ignoring volatile chunks."""
    try:
        result = compare_artifacts(artifact_a, artifact_b, volatile=settings.volatile_chunks)
    except HANDLED_ERRORS as exc:
        raise fail(console, exc) from exc
    if result.equal:
        console.print(f"[green]{result.module}: equal[/green]")
    else:
        console.print(f"[yellow]{result.module}: different[/yellow] ({result.reason})")


def chunks_cmd(
    artifact: Path = typer.Argument(..., help="Artifact to index."),
) -> None:
    """List the chunks of an artifact."""
    try:
        index = read_index(artifact)
    except HANDLED_ERRORS as exc:
        raise fail(console, exc) from exc

    volatile = settings.volatile_chunks
    table = Table(title=f"Module {index.module}")
    table.add_column("Tag", style="cyan")
    table.add_column("Offset", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Volatile", justify="center")
    for entry in index.entries:
        table.add_row(
            entry.tag,
            str(entry.offset),
            str(entry.size),
            "[dim]yes[/dim]" if entry.tag in volatile else "",
        )
    console.print(table)
