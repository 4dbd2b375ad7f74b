"""Inspect the candidate profile the engine will use."""
from __future__ import annotations

import asyncio
import json
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ...profile import CandidateProfile, ProfileClient, load_profile_file, readiness_issues

console = Console()


@click.command(name="profile")
@click.option("--profile", "profile_path", type=click.Path(exists=True, dir_okay=False), help="Profile export JSON instead of the profile service")
@click.option("--json", "as_json", is_flag=True, help="Dump the parsed profile as JSON")
def profile_command(profile_path: Optional[str], as_json: bool):
    """Load the profile and report whether it is ready for autofill."""
    profile = load_profile_file(profile_path) if profile_path else asyncio.run(ProfileClient().fetch())
    if as_json:
        console.print_json(json.dumps(profile.to_dict(), default=str))
        return
    display_profile(profile)


def display_profile(profile: CandidateProfile) -> None:
    table = Table(title="Candidate profile", show_header=False, border_style="cyan")
    table.add_column("Section", style="bold cyan")
    table.add_column("Summary", style="white")
    table.add_row("Name", profile.full_name or "-")
    table.add_row("Email", profile.personal.email or "-")
    table.add_row("Phone", profile.personal.phone or "-")
    table.add_row("Licenses", str(len(profile.credentials.licenses)))
    table.add_row("Certifications", str(len(profile.credentials.certifications)))
    table.add_row("Education", str(len(profile.education)))
    table.add_row("Work experience", str(len(profile.work_experience)))
    table.add_row("Documents", ", ".join(doc.document_type for doc in profile.documents) or "-")
    console.print(table)

    issues = readiness_issues(profile)
    if issues:
        console.print(f"[yellow]Not ready:[/yellow] {', '.join(issues)}")
    else:
        console.print("[green]✓[/green] Profile ready for autofill")
