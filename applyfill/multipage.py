"""Navigation helpers for multi-step applications.

The engine fills one page, then advances with the Next/Continue button until
it reaches the last page. Submit buttons are located only so the last page can
be recognised; they are never clicked.
"""
from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Any, Optional, Sequence

logger = logging.getLogger(__name__)

MAX_PAGES = 10
PAGE_TIMEOUT_MS = 60_000
DOM_SETTLE_SECONDS = 2.0
POLL_INTERVAL_SECONDS = 0.5

NEXT_BUTTON_PATTERNS: Sequence[str] = (
    r"^next$",
    r"^continue$",
    r"^save\s*&?\s*continue$",
    r"^save\s+and\s+continue$",
    r"^proceed$",
    r"^next\s+step$",
    r"^go\s+to\s+next",
    r"^move\s+forward$",
    r"^save\s+&?\s*next$",
    r"^next\s+page$",
    r"^forward$",
)

SUBMIT_BUTTON_PATTERNS: Sequence[str] = (
    r"^submit\s*(application)?$",
    r"^apply(\s+now)?$",
    r"^send\s*(application)?$",
    r"^complete\s*(application)?$",
    r"^finish$",
    r"^done$",
    r"^submit\s+your\s+application$",
    r"^review\s+and\s+submit$",
    r"^confirm\s+and\s+submit$",
)

NEXT_BUTTON_SELECTORS: Sequence[str] = (
    '[data-automation-id="bottom-navigation-next-button"]',
    '[data-automation-id="pageFooterNextButton"]',
    'button[data-uxi-element-id="next"]',
    '.application-form button[type="submit"]',
    "button.btn-next",
    "button.next-btn",
    '[data-testid="next-button"]',
    "a.next-step",
    "#next-button",
    ".step-navigation button:last-child",
)

SUBMIT_BUTTON_SELECTORS: Sequence[str] = (
    '[data-automation-id="bottom-navigation-submit-button"]',
    'button[data-uxi-element-id="submit"]',
    "#submit_app",
    "button.submit-application",
    '[data-testid="submit-button"]',
    'input[type="submit"][value*="Submit"]',
)

REVIEW_HEADING_RE = re.compile(r"review|summary|confirm|final|submission", re.IGNORECASE)
STEP_RE = re.compile(r"step\s+(\d+)\s*(?:of|/)\s*(\d+)", re.IGNORECASE)

FIND_BUTTON_JS = """
({selectors, include, exclude}) => {
    const textOf = (el) => el.tagName === 'INPUT'
        ? (el.value || el.getAttribute('aria-label') || '')
        : ((el.textContent || '').trim() || el.getAttribute('aria-label') || '');
    const visible = (el) => {
        const style = getComputedStyle(el);
        if (el.offsetParent === null && style.position !== 'fixed') return false;
        if (style.display === 'none' || style.visibility === 'hidden') return false;
        const rect = el.getBoundingClientRect();
        return rect.width > 0 && rect.height > 0;
    };
    const enabled = (el) => !el.hasAttribute('disabled')
        && el.getAttribute('aria-disabled') !== 'true'
        && !el.classList.contains('disabled');
    for (const selector of selectors) {
        const el = document.querySelector(selector);
        if (el && visible(el) && enabled(el)) return el;
    }
    const includeRes = include.map((p) => new RegExp(p, 'i'));
    const excludeRes = exclude.map((p) => new RegExp(p, 'i'));
    const candidates = document.querySelectorAll(
        'button, input[type="submit"], input[type="button"], a[role="button"], a.btn, [role="button"]'
    );
    for (const el of candidates) {
        const text = textOf(el).trim();
        if (!text || !visible(el) || !enabled(el)) continue;
        if (excludeRes.some((re) => re.test(text))) continue;
        if (includeRes.some((re) => re.test(text))) return el;
    }
    return null;
}
"""

PAGE_SIGNALS_JS = """
() => ({
    text: (document.body && document.body.innerText || '').slice(0, 20000),
    headings: Array.from(document.querySelectorAll('h1, h2, h3, [role="heading"]'))
        .map((h) => (h.textContent || '').trim())
        .filter(Boolean),
})
"""

FIELD_SIGNATURE_JS = """
() => Array.from(document.querySelectorAll('input, select, textarea'))
    .filter((el) => !['hidden', 'submit', 'button'].includes((el.type || '').toLowerCase()))
    .map((el) => `${el.tagName}:${el.name || el.id || ''}:${(el.type || '').toLowerCase()}`)
    .sort()
    .join('|')
"""

OBSERVE_MUTATIONS_JS = """
() => {
    if (!window.__applyfillObserver) {
        window.__applyfillObserver = new MutationObserver((records) => {
            for (const record of records) {
                if (record.type === "attributes" || record.addedNodes.length) {
                    window.__applyfillMutations = (window.__applyfillMutations || 0) + 1;
                }
            }
        });
        window.__applyfillObserver.observe(document.body, {
            childList: true,
            subtree: true,
            attributes: true,
            attributeFilter: ["style", "class", "hidden", "aria-hidden"],
        });
    }
    window.__applyfillMutations = 0;
}
"""

MUTATION_COUNT_JS = "() => window.__applyfillMutations || 0"


async def _find_button(page: Any, selectors: Sequence[str], include: Sequence[str], exclude: Sequence[str]) -> Any:
    try:
        handle = await page.evaluate_handle(
            FIND_BUTTON_JS, {"selectors": list(selectors), "include": list(include), "exclude": list(exclude)}
        )
    except Exception as exc:
        logger.debug(f"Button lookup failed: {exc}")
        return None
    return handle.as_element()


async def find_next_button(page: Any) -> Any:
    # Submit-looking buttons are excluded even when they also read like "Next".
    return await _find_button(page, NEXT_BUTTON_SELECTORS, NEXT_BUTTON_PATTERNS, SUBMIT_BUTTON_PATTERNS)


async def find_submit_button(page: Any) -> Any:
    return await _find_button(page, SUBMIT_BUTTON_SELECTORS, SUBMIT_BUTTON_PATTERNS, ())


def step_position(text: str) -> Optional[tuple[int, int]]:
    """Parse "Step N of M" (or "step N/M") from page text."""

    match = STEP_RE.search(text or "")
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def looks_final(text: str, headings: Sequence[str]) -> bool:
    position = step_position(text)
    if position is not None and position[0] == position[1]:
        return True
    return any(REVIEW_HEADING_RE.search(heading) for heading in headings)


async def is_last_page(page: Any) -> bool:
    """True on the final page: submit without next, "step N of N" or a review heading."""

    has_submit = await find_submit_button(page) is not None
    has_next = await find_next_button(page) is not None
    if has_submit and not has_next:
        logger.debug("Last page: submit button present, no next button")
        return True
    try:
        signals = await page.evaluate(PAGE_SIGNALS_JS)
    except Exception:
        return False
    return looks_final(signals.get("text", ""), signals.get("headings", []))


async def field_signature(page: Any) -> str:
    try:
        return str(await page.evaluate(FIELD_SIGNATURE_JS) or "")
    except Exception:
        return ""


async def wait_for_dom_change(page: Any, timeout_seconds: float) -> bool:
    """Watch the page for structural changes after a pass.

    Returns ``True`` once mutations were seen and then stopped for one poll
    interval, or when the window closes with mutations pending.
    """

    try:
        await page.evaluate(OBSERVE_MUTATIONS_JS)
    except Exception as exc:
        logger.debug(f"Could not observe mutations: {exc}")
        return False

    seen = 0
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        await asyncio.sleep(POLL_INTERVAL_SECONDS)
        try:
            count = int(await page.evaluate(MUTATION_COUNT_JS) or 0)
        except Exception:
            return False
        if count and count == seen:
            return True
        seen = count
    return seen > 0


async def advance_page(
    page: Any,
    pages_advanced: int = 0,
    *,
    timeout_ms: int = PAGE_TIMEOUT_MS,
    settle_seconds: float = DOM_SETTLE_SECONDS,
) -> bool:
    """Click Next and wait until a different set of fields is on the page.

    Returns ``False`` when there is no Next button, the page limit is reached
    or the fields never change within ``timeout_ms``.
    """

    if pages_advanced >= MAX_PAGES:
        logger.warning(f"Reached the {MAX_PAGES}-page limit; not advancing")
        return False
    button = await find_next_button(page)
    if button is None:
        logger.warning("No next button found; cannot advance")
        return False

    before = await field_signature(page)
    try:
        await button.scroll_into_view_if_needed()
        await asyncio.sleep(0.3)
        await button.click()
    except Exception as exc:
        logger.warning(f"Next button click failed: {exc}")
        return False

    deadline = time.monotonic() + timeout_ms / 1000
    while time.monotonic() < deadline:
        await asyncio.sleep(POLL_INTERVAL_SECONDS)
        after = await field_signature(page)
        if after and after != before:
            await asyncio.sleep(settle_seconds)
            logger.info("Page advanced; new fields detected")
            return True
    logger.warning(f"Page advance timed out after {timeout_ms}ms")
    return False
