"""Appupgen CLI: Typer-based command-line interface.

Provides the ``appupgen`` command with subcommands for generating appups
for a whole release, planning a single application, and inspecting
directory diffs, artifact comparisons and chunk tables.

All output uses Rich for formatted terminal display.
"""
