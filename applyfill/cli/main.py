#!/usr/bin/env python3
"""Main CLI entry point for applyfill."""
from __future__ import annotations

import logging
import sys

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

# Settings read the environment at import time, so .env must be loaded first.
load_dotenv()

from .. import __version__  # noqa: E402
from .commands import detect, fill, profile, scan  # noqa: E402

console = Console()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(version=__version__, prog_name="applyfill")
def cli(verbose: bool):
    """
    applyfill - fill job applications from a candidate profile.

    Scans the open application form, maps each field to the profile and
    fills it. Nothing is ever submitted.
    """
    configure_logging(verbose)


cli.add_command(fill.fill_command)
cli.add_command(scan.scan_command)
cli.add_command(detect.detect_command)
cli.add_command(profile.profile_command)


def main():
    """Entry point for the CLI."""
    try:
        cli(standalone_mode=False)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except click.exceptions.Abort:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
