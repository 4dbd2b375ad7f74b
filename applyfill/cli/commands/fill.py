"""Fill an application form in a browser."""
from __future__ import annotations

import asyncio
import json
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ...config import get_settings
from ...engine import AutofillEngine
from ...models import FillResult
from ..browser import open_page

console = Console()

STATUS_STYLES = {
    "filled": "green",
    "skipped": "yellow",
    "failed": "red",
    "needs_review": "cyan",
}


@click.command(name="fill")
@click.argument("url")
@click.option("--profile", "profile_path", type=click.Path(exists=True, dir_okay=False), help="Profile export JSON to use instead of the profile service")
@click.option("--all-pages", is_flag=True, help="Advance through multi-step forms (never submits)")
@click.option("--headless/--headed", default=None, help="Override PLAYWRIGHT_HEADLESS")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
def fill_command(url: str, profile_path: Optional[str], all_pages: bool, headless: Optional[bool], as_json: bool):
    """
    Fill the application form at URL from the candidate profile.

    The form is left open for review; nothing is submitted.

    Examples:

      applyfill fill https://boards.greenhouse.io/acme/jobs/123

      applyfill fill https://jobs.lever.co/acme/abc/apply --profile me.json --headed
    """
    asyncio.run(_fill(url, profile_path, all_pages, headless, as_json))


async def _fill(url: str, profile_path: Optional[str], all_pages: bool, headless: Optional[bool], as_json: bool):
    engine = AutofillEngine(profile_path=profile_path)
    headed = not (get_settings().playwright_headless if headless is None else headless)
    try:
        async with open_page(url, headless=headless) as page:
            with console.status("[bold blue]Filling application..."):
                if all_pages:
                    result = await engine.run_all_pages(page)
                else:
                    result = await engine.run(page)

            if as_json:
                console.print_json(json.dumps(result.to_dict()))
            else:
                display_result(result)

            if headed and engine.can_undo:
                if click.confirm("Undo the changes made on this page?", default=False):
                    restored = await engine.undo()
                    console.print(f"[yellow]Restored {restored['restored']} field(s)[/yellow] ({restored['failed']} failed)")
                click.pause("Review the form in the browser, then press any key to close it.")
    finally:
        await engine.close()


def display_result(result: FillResult) -> None:
    console.print(Panel(
        f"[bold cyan]{result.platform}[/bold cyan]\n\n"
        f"Filled: [green]{result.filled}[/green] / {result.total}\n"
        f"Skipped: [yellow]{result.skipped}[/yellow]   Failed: [red]{result.failed}[/red]\n"
        f"Needs AI: {result.needs_ai}   Needs file: {result.needs_file}\n"
        f"Duration: {result.duration_ms:.0f}ms",
        title="Autofill",
        border_style="cyan",
    ))

    table = Table(show_header=True, header_style="bold cyan", border_style="cyan")
    table.add_column("Field", style="white", max_width=40)
    table.add_column("Identifier", style="dim")
    table.add_column("Value", max_width=30)
    table.add_column("Status")
    table.add_column("Note", style="dim", max_width=30)
    for detail in result.details:
        style = STATUS_STYLES.get(detail.status, "white")
        table.add_row(
            detail.field,
            detail.identifier,
            detail.value,
            f"[{style}]{detail.status}[/{style}]",
            detail.error or "",
        )
    console.print(table)
