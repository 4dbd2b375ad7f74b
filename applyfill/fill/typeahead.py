"""Type-to-search inputs whose options appear in a dropdown or portal."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from .dom import set_native_value

logger = logging.getLogger(__name__)

DEFAULT_OPTION_SELECTOR = (
    '[role="option"], [role="listbox"] li, .autocomplete-option, .typeahead-option, .suggestions li, '
    '.dropdown-item, ul[class*="suggest"] li, [class*="menu-item"], [class*="option"]'
)
PORTAL_SELECTOR = (
    '[role="listbox"], [class*="dropdown-menu"], [class*="suggestions"], [class*="popover"], [class*="portal"]'
)
CONTAINER_SELECTOR = (
    '[class*="typeahead"], [class*="autocomplete"], [class*="combobox"], [role="combobox"], [class*="search"]'
)
SEARCH_PREFIX_LENGTH = 5
POLL_INTERVAL_SECONDS = 0.2


@dataclass(slots=True)
class TypeaheadConfig:
    typing_delay_ms: int = 100
    dropdown_timeout_ms: int = 3000
    option_selector: str = DEFAULT_OPTION_SELECTOR
    clear_first: bool = True


COLLECT_OPTIONS_JS = """
(el, args) => {
    const visible = (node) => {
        const rect = node.getBoundingClientRect();
        return rect.width > 0 && rect.height > 0;
    };
    const found = [];
    const push = (node) => {
        if (node instanceof HTMLElement && visible(node) && !found.includes(node)) found.push(node);
    };
    const container = args.container ? el.closest(args.container) : null;
    if (container) container.querySelectorAll(args.selector).forEach(push);
    document.querySelectorAll(args.portals).forEach((portal) => {
        if (!(portal instanceof HTMLElement) || !visible(portal)) return;
        const before = found.length;
        portal.querySelectorAll(args.selector).forEach(push);
        if (found.length === before) Array.from(portal.children).forEach(push);
    });
    window.__applyfillOptions = found;
    return found.map((node) => (node.textContent || '').replace(/\\s+/g, ' ').trim());
}
"""

CLICK_OPTION_JS = """
(el, index) => {
    const option = (window.__applyfillOptions || [])[index];
    if (!option) return false;
    option.scrollIntoView({block: 'nearest'});
    option.dispatchEvent(new MouseEvent('mousedown', {bubbles: true}));
    option.dispatchEvent(new MouseEvent('mouseup', {bubbles: true}));
    option.click();
    return true;
}
"""


def score_option(option_text: str, value: str) -> float:
    """Rank a dropdown option: exact > startswith > contains > reverse contains."""

    text = (option_text or "").strip().lower()
    wanted = (value or "").strip().lower()
    if not text or not wanted:
        return 0.0
    if text == wanted:
        return 2.0
    if text.startswith(wanted):
        return len(wanted) / len(text) + 0.5
    if wanted in text:
        return len(wanted) / len(text) + 0.3
    if text in wanted:
        return len(text) / len(wanted) + 0.2
    return 0.0


def best_option_index(options: Sequence[str], value: str) -> Optional[int]:
    best_index: Optional[int] = None
    best_score = 0.0
    for index, option in enumerate(options):
        score = score_option(option, value)
        if score >= 2.0:
            return index
        if score > best_score:
            best_index, best_score = index, score
    return best_index


async def collect_options(
    element: Any,
    selector: str = DEFAULT_OPTION_SELECTOR,
    *,
    container: Optional[str] = CONTAINER_SELECTOR,
    portals: str = PORTAL_SELECTOR,
) -> List[str]:
    try:
        options = await element.evaluate(
            COLLECT_OPTIONS_JS, {"selector": selector, "container": container, "portals": portals}
        )
    except Exception as exc:
        logger.debug(f"Option collection failed: {exc}")
        return []
    return [str(option) for option in options or []]


async def wait_for_options(
    element: Any,
    selector: str,
    timeout_ms: int,
    *,
    container: Optional[str] = CONTAINER_SELECTOR,
    portals: str = PORTAL_SELECTOR,
) -> List[str]:
    deadline = time.monotonic() + timeout_ms / 1000.0
    while True:
        options = await collect_options(element, selector, container=container, portals=portals)
        if options or time.monotonic() >= deadline:
            return options
        await asyncio.sleep(POLL_INTERVAL_SECONDS)


async def click_option(element: Any, index: int) -> bool:
    try:
        return bool(await element.evaluate(CLICK_OPTION_JS, index))
    except Exception as exc:
        logger.debug(f"Option click failed: {exc}")
        return False


async def fill_typeahead(element: Any, value: str, config: Optional[TypeaheadConfig] = None) -> bool:
    """Type a short prefix, then pick the best suggestion.

    With no dropdown the full value is written directly; with a dropdown but
    no matching option, Enter accepts whatever the widget highlighted.
    """

    cfg = config or TypeaheadConfig()
    if not value:
        return False

    await element.focus()
    if cfg.clear_first:
        await element.fill("")
    await element.type(value[:SEARCH_PREFIX_LENGTH], delay=cfg.typing_delay_ms)

    options = await wait_for_options(element, cfg.option_selector, cfg.dropdown_timeout_ms)
    if not options:
        logger.debug("No typeahead dropdown appeared; writing full value")
        await set_native_value(element, value)
        return True

    index = best_option_index(options, value)
    if index is not None and await click_option(element, index):
        await asyncio.sleep(0.1)
        return True

    await element.press("Enter")
    await asyncio.sleep(0.1)
    return True
