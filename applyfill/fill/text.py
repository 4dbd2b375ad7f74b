"""Text input filling with a bounded three-tier escalation.

1. ``execCommand('insertText')`` after focus/clear. Goes through the editor's
   own input pipeline, so React/Vue/Angular listeners see a real edit.
2. Native value setter plus synthetic ``input``/``change``/``blur`` events,
   for frameworks that shadow the element's ``value`` property.
3. Character-by-character typing as the last resort.

Each tier is verified before escalating; after the last tier an unverified
value is still reported as filled but flagged as uncertain, because several
frameworks commit values asynchronously.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

from ..errors import FillError
from .dom import read_value, set_native_value, values_match

logger = logging.getLogger(__name__)

UNCERTAIN_MESSAGE = "Value set but verification uncertain"
SETTLE_SECONDS = 0.05
TYPING_DELAY_MS = 20

INSERT_TEXT_JS = """
(el, value) => {
    el.focus();
    if (typeof el.select === 'function') {
        el.select();
    } else if (el.isContentEditable) {
        const range = document.createRange();
        range.selectNodeContents(el);
        const selection = window.getSelection();
        selection.removeAllRanges();
        selection.addRange(range);
    }
    document.execCommand('delete', false);
    return document.execCommand('insertText', false, value);
}
"""

INPUT_KIND_JS = """
(el) => {
    if (el.getAttribute('contenteditable') === 'true' ||
        el.closest('.ck-editor, .ql-container, .ProseMirror, [class*="tinymce"]')) {
        return 'rich_text';
    }
    const autocomplete = (el.getAttribute('aria-autocomplete') || '').toLowerCase();
    if (el.getAttribute('role') === 'combobox' || autocomplete === 'list' || autocomplete === 'both' ||
        el.closest('[class*="typeahead"], [class*="autocomplete"], [class*="combobox"]')) {
        return 'typeahead';
    }
    return 'plain';
}
"""


@dataclass(slots=True)
class TextFillOutcome:
    verified: bool
    tier: int
    message: Optional[str] = None


async def _insert_text(element: Any, value: str) -> None:
    await element.evaluate(INSERT_TEXT_JS, value)


async def _native_setter(element: Any, value: str) -> None:
    await set_native_value(element, value)


async def _simulate_typing(element: Any, value: str) -> None:
    await element.fill("")
    await element.type(value, delay=TYPING_DELAY_MS)


TEXT_STRATEGIES: Sequence[Callable[[Any, str], Awaitable[None]]] = (
    _insert_text,
    _native_setter,
    _simulate_typing,
)


async def detect_input_kind(element: Any) -> str:
    try:
        kind = await element.evaluate(INPUT_KIND_JS)
    except Exception:
        return "plain"
    return kind or "plain"


async def fill_text(element: Any, value: str) -> TextFillOutcome:
    """Write ``value`` and verify it, escalating through at most three tiers."""

    errors = []
    for tier, strategy in enumerate(TEXT_STRATEGIES, start=1):
        try:
            await strategy(element, value)
        except Exception as exc:
            logger.debug(f"Text tier {tier} raised: {exc}")
            errors.append(str(exc))
            continue
        await asyncio.sleep(SETTLE_SECONDS)
        if values_match(await read_value(element), value):
            return TextFillOutcome(verified=True, tier=tier)
        logger.debug(f"Text tier {tier} did not verify; escalating")

    if len(errors) == len(TEXT_STRATEGIES):
        raise FillError(f"All text strategies failed: {errors[-1]}")
    return TextFillOutcome(verified=False, tier=len(TEXT_STRATEGIES), message=UNCERTAIN_MESSAGE)
