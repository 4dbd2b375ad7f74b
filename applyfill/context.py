"""Explicit per-pass state shared by the mapper, fillers and screening pass."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Set

from .config import Settings, get_settings
from .models import JobContext
from .profile import CandidateProfile


def element_key(tag: str, element_id: str, name: str, x: float, y: float) -> str:
    """Identity for an element that survives re-scans within one pass."""

    return f"{tag.lower()}:{element_id or name}:{round(x)}:{round(y)}"


def field_key(field: Any) -> str:
    return element_key(field.tag, field.element_id, field.name, field.rect.x, field.rect.y)


@dataclass
class FillContext:
    """Everything one autofill pass needs besides the page itself.

    A fresh context is created per pass so nothing leaks between pages or
    between concurrent passes on different tabs.
    """

    profile: CandidateProfile
    settings: Settings = field(default_factory=get_settings)
    job: JobContext = field(default_factory=JobContext)
    platform: str = "generic"
    today: date = field(default_factory=date.today)
    # Elements already written by the main pipeline, keyed by a stable id.
    claimed: Set[str] = field(default_factory=set)
    # Vertical positions of screening questions answered this pass.
    answered_positions: List[float] = field(default_factory=list)
    # Sections parsed from the resume when the profile has none.
    resume_education: List[Dict[str, Any]] = field(default_factory=list)
    resume_experience: List[Dict[str, Any]] = field(default_factory=list)
    # Entries already filled per repeatable section ("education", "experience").
    section_progress: Dict[str, int] = field(default_factory=dict)
    _cancel: asyncio.Event = field(default_factory=asyncio.Event)

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def claim(self, key: Optional[str]) -> None:
        if key:
            self.claimed.add(key)

    def is_claimed(self, key: Optional[str]) -> bool:
        return bool(key) and key in self.claimed

    def mark_answered(self, y: float) -> None:
        self.answered_positions.append(y)

    def near_answered(self, y: float, tolerance: float = 40.0) -> bool:
        return any(abs(y - answered) < tolerance for answered in self.answered_positions)

    @property
    def fill_delay(self) -> float:
        return self.settings.fill_delay_seconds
