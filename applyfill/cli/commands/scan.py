"""Show what the scanner and classifier see on a page."""
from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ...classifier import summarize
from ...config import get_settings
from ...context import FillContext
from ...mapper import map_fields
from ...platforms import collect_page_info, get_active_handler
from ...profile import CandidateProfile, load_profile_file
from ..browser import open_page

console = Console()


@click.command(name="scan")
@click.argument("url")
@click.option("--profile", "profile_path", type=click.Path(exists=True, dir_okay=False), help="Also map fields against this profile export")
@click.option("--frames", is_flag=True, help="Include cross-origin frames")
def scan_command(url: str, profile_path: Optional[str], frames: bool):
    """
    List the fields on URL with their classification.

    Nothing is written to the page.
    """
    asyncio.run(_scan(url, profile_path, frames))


async def _scan(url: str, profile_path: Optional[str], frames: bool):
    settings = get_settings()
    if frames:
        settings = replace(settings, scan_cross_origin_frames=True)
    profile = load_profile_file(profile_path) if profile_path else None

    async with open_page(url, headless=True) as page:
        info = await collect_page_info(page)
        handler = get_active_handler(info)
        ctx = FillContext(profile=profile or CandidateProfile(), settings=settings, platform=handler.name)
        fields = await handler.detect_fields(page, ctx)
        mapped = map_fields(fields, profile, ctx) if profile is not None else None

    table = Table(title=f"{len(fields)} field(s) via {handler.name}", show_header=True, header_style="bold cyan", border_style="cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Label", style="white", max_width=45)
    table.add_column("Type")
    table.add_column("Identifier", style="yellow")
    table.add_column("Confidence", justify="right")
    if mapped is not None:
        table.add_column("Status")
        table.add_column("Value", max_width=30)

    for index, field in enumerate(fields):
        row = [
            str(index),
            field.label or field.placeholder or field.name or "-",
            field.field_type,
            field.identifier,
            f"{field.confidence:.2f}",
        ]
        if mapped is not None:
            row += [mapped[index].status, str(mapped[index].value or "")]
        table.add_row(*row)
    console.print(table)

    counts = summarize(fields)
    console.print(", ".join(f"{key}: {value}" for key, value in counts.items()))
