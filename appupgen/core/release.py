"""Release discovery and release-level diffing.

A release directory follows the relx layout::

    <rel_path>/releases/<vsn>/<name>.rel
    <rel_path>/releases/start_erl.data        (ERTS_VSN REL_VSN)
    <rel_path>/lib/<app>-<app_vsn>/ebin/*.beam
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from appupgen.core.term_text import TermSyntaxError, consult
from appupgen.core.terms import is_atom
from appupgen.models.release import AppChange, AppChangeKind, ReleaseDiff, ReleaseInfo

logger = logging.getLogger(__name__)


class ReleaseError(RuntimeError):
    """Raised when a release cannot be found, read or disambiguated."""


def version_key(version: str) -> list[Any]:
    """Sort key ordering ``1.0.9`` before ``1.0.10``."""
    return [(0, int(part)) if part.isdigit() else (1, part) for part in re.split(r"[.\-+]", version)]


def release_versions(name: str, rel_path: str | Path) -> list[str]:
    """Versions under ``releases/`` that carry a ``<name>.rel`` file."""
    releases = Path(rel_path) / "releases"
    if not releases.is_dir():
        return []
    versions = [d.name for d in releases.iterdir() if (d / f"{name}.rel").is_file()]
    return sorted(versions, key=version_key)


def parse_release(terms: list[Any], path: Path) -> ReleaseInfo:
    if len(terms) != 1:
        raise ReleaseError(f"{path}: expected exactly one release term")
    term = terms[0]
    if not (
        isinstance(term, tuple)
        and len(term) == 4
        and is_atom(term[0], "release")
        and isinstance(term[1], tuple)
        and len(term[1]) == 2
        and isinstance(term[3], list)
    ):
        raise ReleaseError(f"{path}: not a {{release, {{Name, Vsn}}, Erts, Apps}} term")
    erts = term[2][1] if isinstance(term[2], tuple) and len(term[2]) == 2 else ""
    applications: dict[str, str] = {}
    for app in term[3]:
        if not (isinstance(app, tuple) and len(app) >= 2 and isinstance(app[1], str)):
            raise ReleaseError(f"{path}: bad application entry {app!r}")
        applications[str(app[0])] = str(app[1])
    return ReleaseInfo(
        name=str(term[1][0]),
        version=str(term[1][1]),
        erts_version=str(erts),
        applications=applications,
        path=path,
    )


def load_release(name: str, version: str, rel_path: str | Path) -> ReleaseInfo:
    path = Path(rel_path) / "releases" / version / f"{name}.rel"
    try:
        terms = consult(path)
    except (OSError, TermSyntaxError) as exc:
        raise ReleaseError(f"Cannot read release file {path}: {exc}") from exc
    return parse_release(terms, path)


def current_version(name: str, rel_path: str | Path) -> str:
    """The version ``start_erl.data`` points at, else the highest one."""
    start_erl = Path(rel_path) / "releases" / "start_erl.data"
    if start_erl.is_file():
        fields = start_erl.read_text(encoding="utf-8").split()
        if len(fields) == 2:
            return fields[1]
    versions = release_versions(name, rel_path)
    if not versions:
        raise ReleaseError(f"No release {name!r} found in {rel_path}")
    return versions[-1]


def current_release(name: str, rel_path: str | Path) -> ReleaseInfo:
    return load_release(name, current_version(name, rel_path), rel_path)


def deduce_previous_version(
    name: str, current: str, current_path: str | Path, previous_path: str | Path
) -> str:
    """Pick the version to upgrade from when none was given.

    A separate previous release path must hold exactly one version; a
    shared path must hold exactly two, the previous being the one that
    is not *current*.
    """
    versions = release_versions(name, previous_path)
    same_path = Path(current_path).resolve() == Path(previous_path).resolve()
    if not versions and not same_path:
        raise ReleaseError(f"No release {name!r} found in {previous_path}")
    if len(versions) == 1 and not same_path:
        return versions[0]
    if len(versions) == 2 and same_path:
        others = [v for v in versions if v != current]
        if len(others) == 1:
            return others[0]
    if len(versions) < 2 and same_path:
        raise ReleaseError(
            f"Only {len(versions)} version(s) present in {previous_path} ({versions}), "
            "expecting at least 2"
        )
    raise ReleaseError(
        f"More than one candidate version in {previous_path} ({', '.join(versions)}), "
        "use --previous-version to choose which version to upgrade from"
    )


def exclude_platform_apps(applications: dict[str, str], platform_apps: Iterable[str]) -> dict[str, str]:
    excluded = set(platform_apps)
    return {app: vsn for app, vsn in applications.items() if app not in excluded}


def diff_releases(
    old: ReleaseInfo, new: ReleaseInfo, *, platform_apps: Iterable[str] = ()
) -> ReleaseDiff:
    platform = set(platform_apps)
    old_apps = exclude_platform_apps(old.applications, platform)
    new_apps = exclude_platform_apps(new.applications, platform)
    logger.debug("previous version apps: %s", old_apps)
    logger.debug("current version apps: %s", new_apps)

    added = [
        AppChange(kind=AppChangeKind.ADDED, application=app, new_version=new_apps[app])
        for app in sorted(new_apps.keys() - old_apps.keys())
    ]
    removed = [
        AppChange(kind=AppChangeKind.REMOVED, application=app, old_version=old_apps[app])
        for app in sorted(old_apps.keys() - new_apps.keys())
    ]
    upgraded = [
        AppChange(
            kind=AppChangeKind.UPGRADED,
            application=app,
            old_version=old_apps[app],
            new_version=new_apps[app],
        )
        for app in sorted(new_apps.keys() & old_apps.keys())
        if old_apps[app] != new_apps[app]
    ]
    logger.debug("added: %s", [c.application for c in added])
    logger.debug("upgraded: %s", [c.application for c in upgraded])
    logger.debug("removed: %s", [c.application for c in removed])
    return ReleaseDiff(added=added, upgraded=upgraded, removed=removed)


def app_ebin_dir(rel_path: str | Path, application: str, version: str) -> Path:
    return Path(rel_path) / "lib" / f"{application}-{version}" / "ebin"


def existing_appups(rel_path: str | Path) -> set[str]:
    """Applications that already ship an ``.appup`` under ``lib/``."""
    lib = Path(rel_path) / "lib"
    if not lib.is_dir():
        return set()
    found = {p.stem for p in lib.rglob("*.appup") if p.is_file()}
    logger.debug("apps that already have .appups: %s", sorted(found))
    return found


def source_ebin_dir(application: str, build_dir: str | Path, checkouts_dir: str | Path) -> Path | None:
    """The build tree ebin directory of *application* (deps, lib, checkouts)."""
    candidates = [
        Path(build_dir) / "deps" / application / "ebin",
        Path(build_dir) / "lib" / application / "ebin",
        Path(checkouts_dir) / application / "ebin",
    ]
    for candidate in candidates:
        if candidate.is_dir():
            return candidate
    return None
