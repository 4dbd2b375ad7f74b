"""Trigger questions whose answer reveals dependent fields."""
from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Pattern, Sequence, Tuple

logger = logging.getLogger(__name__)

DEPENDENT_TIMEOUT_MS = 3000
POLL_INTERVAL_SECONDS = 0.2


@dataclass(frozen=True)
class ConditionalPattern:
    trigger: Pattern[str]
    yes_value: str
    dependent_selectors: Tuple[str, ...] = field(default_factory=tuple)


CONDITIONAL_PATTERNS: Sequence[ConditionalPattern] = (
    ConditionalPattern(
        re.compile(r"do you have a dea", re.IGNORECASE),
        "Yes",
        ('input[name*="dea" i]', 'input[id*="dea" i]'),
    ),
    ConditionalPattern(
        re.compile(r"do you require (?:visa |work )?sponsor", re.IGNORECASE),
        "Yes",
        ('select[name*="visa" i]', 'input[name*="visa" i]'),
    ),
    ConditionalPattern(
        re.compile(r"do you have (?:a )?(?:collaborative|collaborating)", re.IGNORECASE),
        "Yes",
        ('input[name*="physician" i]', 'input[name*="collaborat" i]'),
    ),
    ConditionalPattern(
        re.compile(r"(?:prescriptive|prescribing) authority", re.IGNORECASE),
        "Yes",
        ('input[name*="prescri" i]', 'select[name*="schedule" i]'),
    ),
    ConditionalPattern(
        re.compile(r"(?:malpractice|liability) (?:claim|history)", re.IGNORECASE),
        "No",
        ('textarea[name*="claim" i]', 'input[name*="details" i]'),
    ),
    ConditionalPattern(
        re.compile(r"are you (?:currently|legally) (?:authorized|eligible)", re.IGNORECASE),
        "Yes",
    ),
    ConditionalPattern(
        re.compile(r"have you (?:ever )?been (?:convicted|charged)", re.IGNORECASE),
        "No",
        ('textarea[name*="explain" i]', 'textarea[name*="details" i]'),
    ),
    ConditionalPattern(
        re.compile(r"do you have (?:a )?(?:disability|disabilities)", re.IGNORECASE),
        "I do not wish to answer",
    ),
    ConditionalPattern(
        re.compile(r"telehealth (?:experience|capable)", re.IGNORECASE),
        "Yes",
        ('input[name*="platform" i]', 'select[name*="platform" i]'),
    ),
)


def get_conditional_pattern(label: str) -> Optional[ConditionalPattern]:
    text = (label or "").strip()
    for pattern in CONDITIONAL_PATTERNS:
        if pattern.trigger.search(text):
            return pattern
    return None


def reveals_dependents(label: str, value: object) -> Optional[ConditionalPattern]:
    """Pattern whose dependents should appear after ``label`` was answered ``value``."""

    pattern = get_conditional_pattern(label)
    if pattern is None or not pattern.dependent_selectors:
        return None
    if str(value or "").strip().lower() != pattern.yes_value.lower():
        return None
    return pattern


async def wait_for_dependents(page: Any, pattern: ConditionalPattern, timeout_ms: int = DEPENDENT_TIMEOUT_MS) -> int:
    """Poll until a dependent field is visible; returns how many appeared."""

    selector = ", ".join(pattern.dependent_selectors)
    deadline = time.monotonic() + timeout_ms / 1000.0
    while True:
        visible = 0
        try:
            for handle in await page.query_selector_all(selector):
                if await handle.is_visible():
                    visible += 1
        except Exception as exc:
            logger.debug(f"Dependent lookup failed: {exc}")
        if visible or time.monotonic() >= deadline:
            return visible
        await asyncio.sleep(POLL_INTERVAL_SECONDS)
