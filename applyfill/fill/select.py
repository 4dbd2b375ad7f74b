"""Native selects and custom dropdown overlays."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Mapping, Optional, Sequence

from ..options import find_best_option
from .dom import read_value, set_native_value, values_match
from .typeahead import click_option, wait_for_options

logger = logging.getLogger(__name__)

CUSTOM_OPTION_SELECTOR = (
    '[role="option"], [data-automation-id*="promptOption"], li[role="presentation"], .dropdown-option, '
    '[class*="option"]'
)
OVERLAY_SELECTOR = (
    '[role="listbox"], [class*="menu"], [class*="dropdown"], [class*="popover"], [class*="portal"], '
    '[class*="options"], [data-automation-id*="popup"]'
)
OPEN_WAIT_SECONDS = 0.3
OVERLAY_TIMEOUT_MS = 2000

SELECT_INFO_JS = """
(el) => ({
    native: el.tagName === 'SELECT',
    multiple: !!el.multiple,
    options: el.tagName === 'SELECT'
        ? Array.from(el.options).map((o) => ({text: (o.text || '').trim(), value: o.value || ''}))
        : [],
})
"""

FIND_TRIGGER_JS = """
(el) => {
    const visible = (node) => {
        const rect = node.getBoundingClientRect();
        return rect.width > 0 && rect.height > 0;
    };
    if (el.tagName !== 'SELECT' && visible(el)) return el;
    const selector = '[role="combobox"], [role="button"], button, [aria-haspopup], [class*="select"], [class*="dropdown"]';
    let scope = el.parentElement;
    for (let depth = 0; scope && depth < 3; depth++) {
        for (const node of scope.querySelectorAll(selector)) {
            if (node !== el && !node.contains(el) && visible(node)) return node;
        }
        scope = scope.parentElement;
    }
    return el;
}
"""

SYNC_DISPLAY_JS = """
(el, text) => {
    const wanted = text.toLowerCase();
    if (el.tagName === 'SELECT') {
        const option = Array.from(el.options).find((o) => (o.text || '').trim().toLowerCase() === wanted);
        if (option && el.value !== option.value) {
            el.value = option.value;
            el.dispatchEvent(new Event('change', {bubbles: true}));
        }
    }
    const root = el.closest('[role="combobox"]') || el.parentElement;
    if (!root) return false;
    if ((root.innerText || '').toLowerCase().includes(wanted)) return false;
    let best = null;
    let bestDepth = -1;
    const walk = (node, depth) => {
        for (const child of node.children) {
            const rect = child.getBoundingClientRect();
            if (rect.width === 0 || rect.height === 0) continue;
            const tag = child.tagName.toUpperCase();
            const leaf = child.children.length === 0 && (child.textContent || '').trim();
            if (leaf && !['INPUT', 'SELECT', 'SVG', 'PATH', 'OPTION'].includes(tag) && depth > bestDepth) {
                best = child;
                bestDepth = depth;
            }
            walk(child, depth + 1);
        }
    };
    walk(root, 0);
    if (!best) return false;
    best.textContent = text;
    return true;
}
"""


def choose_native_option(options: Sequence[Mapping[str, str]], value: str) -> Optional[int]:
    """Index of the option for ``value``: exact value/text, then substring either way."""

    wanted = (value or "").strip().lower()
    if not wanted:
        return None
    for index, option in enumerate(options):
        if option.get("value", "").lower() == wanted or option.get("text", "").strip().lower() == wanted:
            return index
    for index, option in enumerate(options):
        text = option.get("text", "").strip().lower()
        if text and (wanted in text or text in wanted):
            return index
    texts = [option.get("text", "") for option in options]
    best = find_best_option(value, texts)
    return texts.index(best) if best is not None else None


async def fill_native_select(element: Any, options: List[Mapping[str, str]], value: str) -> bool:
    index = choose_native_option(options, value)
    if index is None:
        logger.debug(f"No native option matched {value!r}")
        return False
    try:
        await element.select_option(index=index)
    except Exception as exc:
        logger.debug(f"select_option failed ({exc}); using native setter")
        await set_native_value(element, options[index].get("value", ""))
    return values_match(await read_value(element), options[index].get("text", ""))


async def fill_custom_dropdown(element: Any, value: str) -> bool:
    """Open an overlay menu, click the best option, then sync the visible display."""

    trigger_handle = await element.evaluate_handle(FIND_TRIGGER_JS)
    trigger = trigger_handle.as_element() or element
    await trigger.click()
    await asyncio.sleep(OPEN_WAIT_SECONDS)

    options = await wait_for_options(
        element, CUSTOM_OPTION_SELECTOR, OVERLAY_TIMEOUT_MS, container=None, portals=OVERLAY_SELECTOR
    )
    if not options:
        logger.debug("Custom dropdown did not render any options")
        return False

    best = find_best_option(value, options)
    if best is None:
        await element.press("Escape")
        return False
    if not await click_option(element, options.index(best)):
        return False
    await asyncio.sleep(0.1)
    try:
        synced = await element.evaluate(SYNC_DISPLAY_JS, best)
    except Exception as exc:
        logger.debug(f"Display sync failed: {exc}")
        synced = False
    if synced:
        logger.debug(f"Forced display text to {best!r}")
    return True


async def fill_select(element: Any, value: str) -> bool:
    """Select ``value`` on a native select, falling back to the overlay path.

    Frameworks that render only an overlay leave the native select with zero
    options; those go straight to :func:`fill_custom_dropdown`.
    """

    info = await element.evaluate(SELECT_INFO_JS)
    options = [option for option in info.get("options") or [] if option.get("text") or option.get("value")]
    if info.get("native") and options:
        if await fill_native_select(element, options, value):
            return True
        return False
    return await fill_custom_dropdown(element, value)


async def fill_option_menu(
    element: Any,
    value: str,
    option_selector: str,
    *,
    open_wait: float = OPEN_WAIT_SECONDS,
    timeout_ms: int = OVERLAY_TIMEOUT_MS,
) -> bool:
    """Native select when possible, else click open a menu and pick from ``option_selector``."""

    info = await element.evaluate(SELECT_INFO_JS)
    if info.get("native") and info.get("options"):
        return await fill_select(element, value)

    await element.click()
    await asyncio.sleep(open_wait)
    options = await wait_for_options(element, option_selector, timeout_ms, container=None, portals="body")
    best = find_best_option(value, options)
    if best is None:
        logger.debug(f"Menu offered no option for {value!r}")
        await element.press("Escape")
        return False
    clicked = await click_option(element, options.index(best))
    await asyncio.sleep(0.2)
    return clicked
