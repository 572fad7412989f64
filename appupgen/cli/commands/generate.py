"""``appupgen generate``: compare two releases and write ``.appup`` files.

Finds the current release, deduces (or takes) the previous version,
diffs the applications of both ``.rel`` files and writes one appup per
added or upgraded application that does not already ship one.
"""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console

from appupgen.config import settings
from appupgen.core.appup_writer import write_appup
from appupgen.core.fragments import load_fragments
from appupgen.core.planner import AppupPlanner, Fragments
from appupgen.core.purge import parse_purge_option
from appupgen.core.release import (
    ReleaseError,
    current_release,
    deduce_previous_version,
    diff_releases,
    existing_appups,
    load_release,
    source_ebin_dir,
)
from appupgen.core.supervision import ErlangNodeRuntime
from appupgen.cli.render import HANDLED_ERRORS, fail, plans_table
from appupgen.models.plan import AppPlan
from appupgen.models.release import AppChange, AppChangeKind

console = Console()
logger = logging.getLogger(__name__)


def _release_name(name: str | None, release_dir: Path) -> str:
    if name:
        return name
    candidates = sorted(p.name for p in release_dir.iterdir() if p.is_dir()) if release_dir.is_dir() else []
    if len(candidates) != 1:
        raise ReleaseError(
            f"Cannot tell which release to use in {release_dir} ({candidates}), pass --name"
        )
    return candidates[0]


def _appup_path(change: AppChange, target_dir: Path | None) -> Path | None:
    if target_dir is not None:
        return target_dir / f"{change.application}.appup"
    ebin = source_ebin_dir(change.application, settings.build_dir, settings.checkouts_dir)
    if ebin is None:
        return None
    return ebin / f"{change.application}.appup"


def _fragments(change: AppChange) -> Fragments:
    ebin = source_ebin_dir(change.application, settings.build_dir, settings.checkouts_dir)
    if ebin is None:
        return (None, None)
    return load_fragments(ebin.parent)


def generate_cmd(
    name: str = typer.Option(
        None, "--name", "-n", help="Release name (defaults to the only release in the release dir)."
    ),
    current: Path = typer.Option(
        None, "--current", "-c", help="Location of the current release."
    ),
    previous: Path = typer.Option(
        None, "--previous", "-p", help="Location of the previous release."
    ),
    previous_version: str = typer.Option(
        None, "--previous-version", help="Version of the previous release."
    ),
    target_dir: Path = typer.Option(
        None, "--target-dir", "-t", help="Directory to write the .appup files to."
    ),
    purge: str = typer.Option(
        None,
        "--purge",
        "-g",
        help="Per-module purge types, e.g. 'default=soft;m1=soft/brutal;m2=brutal'.",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Plan every application but write nothing."
    ),
    supervisors: bool = typer.Option(
        True,
        "--supervisors/--no-supervisors",
        help="Evaluate supervisor init/1 with erl to diff child specs.",
    ),
) -> None:
    """Compare two releases and generate the .appup files."""
    try:
        rel_name = _release_name(name, settings.release_dir)
        current_path = current or settings.release_dir / rel_name
        new = current_release(rel_name, current_path)
        previous_path = previous or current_path
        old_version = previous_version or deduce_previous_version(
            rel_name, new.version, current_path, previous_path
        )
        old = load_release(rel_name, old_version, previous_path)
        if old.version == new.version:
            raise ReleaseError(
                f"Current ({new.version}) and previous ({old.version}) release versions are the same"
            )
        if old.name != new.name:
            raise ReleaseError(
                f"Current ({new.name}) and previous ({old.name}) release names are not the same"
            )
        console.print(
            f"Release [cyan]{rel_name}[/cyan]: "
            f"[dim]{old.version}[/dim] -> [green]{new.version}[/green]"
        )

        diff = diff_releases(old, new, platform_apps=settings.platform_apps)
        diff = diff.without(existing_appups(current_path))

        planner = AppupPlanner(
            purge=parse_purge_option(purge, default=settings.default_purge),
            runtime=ErlangNodeRuntime(
                settings.erl_executable,
                timeout=settings.init_timeout_seconds,
                code_paths=settings.erl_code_paths,
            )
            if supervisors
            else None,
            extension=settings.artifact_extension,
            volatile=settings.volatile_chunks,
            strict_roles=settings.strict_roles,
        )

        plans: list[AppPlan] = []
        for change in diff.changes:
            if change.kind == AppChangeKind.REMOVED:
                plans.append(planner.plan_change(change, previous_path, current_path))
                continue
            path = _appup_path(change, target_dir)
            if path is None:
                logger.warning(
                    "unable to generate appup for non-existing application %s", change.application
                )
                continue
            plan = planner.plan_change(change, previous_path, current_path, _fragments(change))
            if not dry_run:
                written = write_appup(
                    path,
                    plan.application,
                    plan.old_version,
                    plan.new_version,
                    plan.upgrade,
                    plan.downgrade,
                )
                plan = plan.model_copy(update={"written_to": written})
            plans.append(plan)
    except HANDLED_ERRORS as exc:
        raise fail(console, exc) from exc

    if not plans:
        console.print("[dim]No application changes.[/dim]")
        return
    console.print(plans_table(plans))
