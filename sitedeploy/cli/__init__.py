"""Sitedeploy CLI — Typer-based command-line interface.

Provides the ``sitedeploy`` command with subcommands for planning and
running deploys, listing environments and reading deploy history.

All output uses Rich for formatted terminal display.
"""
