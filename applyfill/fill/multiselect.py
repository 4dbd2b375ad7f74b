"""Native ``<select multiple>`` and chip/tag inputs."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Sequence

from .typeahead import TypeaheadConfig, fill_typeahead

logger = logging.getLogger(__name__)

CHIP_TYPEAHEAD = TypeaheadConfig(typing_delay_ms=80, dropdown_timeout_ms=2000, clear_first=True)

NATIVE_MULTI_JS = """
(el, values) => {
    const wanted = values.map((v) => v.toLowerCase().trim());
    let matched = 0;
    for (const option of el.options) {
        const text = (option.textContent || '').toLowerCase().trim();
        const value = (option.value || '').toLowerCase().trim();
        if (wanted.some((v) => (text && (text.includes(v) || v.includes(text))) || (value && (value.includes(v) || v.includes(value))))) {
            option.selected = true;
            matched += 1;
        }
    }
    if (matched) {
        el.dispatchEvent(new Event('input', {bubbles: true}));
        el.dispatchEvent(new Event('change', {bubbles: true}));
    }
    return matched;
}
"""

CHIP_STATE_JS = """
(el) => {
    const isNativeMulti = el.tagName === 'SELECT' && el.multiple;
    const container = el.closest('[class*="chip"], [class*="tag"], [class*="multi"], [class*="token"]') || el.parentElement || el;
    const chips = Array.from(container.querySelectorAll(
        '.chip, .tag, [class*="chip"], [class*="tag"], [class*="badge"], [class*="pill"], [class*="token"]'
    )).map((chip) => (chip.textContent || '').toLowerCase().trim()).filter(Boolean);
    return {isNativeMulti, chips};
}
"""

CHIP_INPUT_JS = """
(el) => {
    if (el.tagName === 'INPUT' || el.getAttribute('contenteditable') === 'true') return el;
    const selectors = ['input[type="text"]', 'input:not([type="hidden"])', '[contenteditable="true"]', 'input[role="combobox"]'];
    for (const selector of selectors) {
        const found = el.querySelector(selector);
        if (found) return found;
    }
    return null;
}
"""


def split_values(value: object) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [part.strip() for part in str(value or "").split(",") if part.strip()]


def chip_exists(chips: Sequence[str], value: str) -> bool:
    wanted = value.lower().strip()
    return any(wanted in chip or chip in wanted for chip in chips)


async def fill_multiselect(element: Any, value: object) -> bool:
    values = split_values(value)
    if not values:
        return False

    state = await element.evaluate(CHIP_STATE_JS)
    if state.get("isNativeMulti"):
        matched = await element.evaluate(NATIVE_MULTI_JS, values)
        return bool(matched)

    chip_input = (await element.evaluate_handle(CHIP_INPUT_JS)).as_element()
    if chip_input is None:
        return False
    chips = state.get("chips") or []
    filled = 0
    for item in values:
        if chip_exists(chips, item):
            continue
        if not await fill_typeahead(chip_input, item, CHIP_TYPEAHEAD):
            await chip_input.fill(item)
            await chip_input.press("Enter")
            await asyncio.sleep(0.2)
        filled += 1
        await asyncio.sleep(0.3)
    logger.debug(f"Added {filled} chip(s)")
    return filled > 0 or all(chip_exists(chips, item) for item in values)
