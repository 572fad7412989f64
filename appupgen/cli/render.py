"""Shared Rich rendering and error reporting for CLI commands."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from appupgen.core.call_graph import CallGraphClosedError
from appupgen.core.comparator import ModuleIdentityMismatchError
from appupgen.core.container import ContainerError
from appupgen.core.directory_differ import DirectoryError
from appupgen.core.etf import TermDecodeError
from appupgen.core.fragments import FragmentError
from appupgen.core.inverter import NotInvertibleError
from appupgen.core.purge import PurgeOptionError
from appupgen.core.release import ReleaseError
from appupgen.core.roles import UnresolvedRoleError
from appupgen.core.term_text import TermSyntaxError
from appupgen.models.plan import AppPlan

# Every error the engine raises on purpose; anything else is a bug and
# keeps its traceback.
HANDLED_ERRORS = (
    CallGraphClosedError,
    ContainerError,
    DirectoryError,
    FragmentError,
    ModuleIdentityMismatchError,
    NotInvertibleError,
    PurgeOptionError,
    ReleaseError,
    TermDecodeError,
    TermSyntaxError,
    UnresolvedRoleError,
)

_CHANGE_STYLE = {"added": "green", "upgraded": "cyan", "removed": "red"}


def fail(console: Console, exc: Exception) -> typer.Exit:
    """Print *exc* in red and return the exit to raise."""
    console.print(f"[bold red]{type(exc).__name__}:[/bold red] {exc}")
    return typer.Exit(code=1)


def plans_table(plans: list[AppPlan]) -> Table:
    table = Table(title="Application Plans")
    table.add_column("Application", style="cyan")
    table.add_column("Change")
    table.add_column("Old", style="dim")
    table.add_column("New", style="green")
    table.add_column("Up", justify="right")
    table.add_column("Down", justify="right")
    table.add_column("Written To")
    for plan in plans:
        style = _CHANGE_STYLE.get(plan.change.value, "white")
        table.add_row(
            plan.application,
            f"[{style}]{plan.change.value}[/{style}]",
            plan.old_version,
            plan.new_version or "-",
            str(len(plan.upgrade)),
            str(len(plan.downgrade)),
            str(plan.written_to) if plan.written_to else "[dim]not written[/dim]",
        )
    return table
