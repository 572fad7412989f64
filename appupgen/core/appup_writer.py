"""Rendering and writing of ``.appup`` files."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from appupgen.core.term_text import format_instruction_list, format_term
from appupgen.models.instructions import Instruction

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"


def render_appup(
    application: str,
    old_version: str,
    new_version: str,
    upgrade: list[Instruction],
    downgrade: list[Instruction],
    *,
    now: datetime | None = None,
) -> str:
    """The text of ``<application>.appup``.

    Example output::

        %% appup generated for relapp by appupgen (2024/01/10 14:35:19)
        {"1.0.34",
         [{"1.0.33",
           [{load_module,relapp_srv,brutal_purge,brutal_purge,[]}]}],
         [{"1.0.33",
           [{load_module,relapp_srv,brutal_purge,brutal_purge,[]}]}]}.
    """
    stamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    old = format_term(old_version)
    up = format_instruction_list(upgrade, indent=3)
    down = format_instruction_list(downgrade, indent=3)
    return (
        f"%% appup generated for {application} by appupgen ({stamp})\n"
        f"{{{format_term(new_version)},\n"
        f" [{{{old},\n   {up}}}],\n"
        f" [{{{old},\n   {down}}}]}}.\n"
    )


def write_appup(
    path: str | Path,
    application: str,
    old_version: str,
    new_version: str,
    upgrade: list[Instruction],
    downgrade: list[Instruction],
    *,
    now: datetime | None = None,
) -> Path:
    """Render and write the appup to *path*, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        render_appup(application, old_version, new_version, upgrade, downgrade, now=now),
        encoding="utf-8",
    )
    logger.info("generated appup (%s <-> %s) for %s in %s", old_version, new_version, application, path)
    return path
