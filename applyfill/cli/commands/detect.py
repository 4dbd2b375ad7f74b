"""Identify the applicant tracking system behind a page."""
from __future__ import annotations

import asyncio

import click
from rich.console import Console
from rich.panel import Panel

from ...platforms import collect_page_info, detect_ats, get_active_handler
from ..browser import open_page

console = Console()


@click.command(name="detect")
@click.argument("url")
def detect_command(url: str):
    """Report which platform handler would fill URL."""
    asyncio.run(_detect(url))


async def _detect(url: str):
    async with open_page(url, headless=True) as page:
        info = await collect_page_info(page)
    handler = get_active_handler(info)
    ats = detect_ats(info)
    markers = ", ".join(sorted(info.markers)) or "none"
    console.print(Panel(
        f"Handler: [bold cyan]{handler.name}[/bold cyan]\n"
        f"ATS: [yellow]{ats[0] if ats else 'unknown'}[/yellow]"
        + (f" (confidence {ats[1]:.2f})" if ats else "")
        + f"\nHost: {info.hostname}\nMarkers: [dim]{markers}[/dim]",
        title="Detection",
        border_style="cyan",
    ))
