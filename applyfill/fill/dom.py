"""Small DOM helpers shared by the field fillers.

Every helper goes through ``element.evaluate`` and treats evaluation errors as
"nothing there", matching how the scanner tolerates detached nodes.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

READ_VALUE_JS = """
(el) => {
    const type = (el.getAttribute('type') || '').toLowerCase();
    if (type === 'checkbox' || type === 'radio') {
        return el.checked ? 'true' : 'false';
    }
    if (el.tagName === 'SELECT') {
        const option = el.options[el.selectedIndex];
        return option ? (option.text || option.value || '').trim() : '';
    }
    if (el.isContentEditable) {
        return (el.innerText || el.textContent || '').trim();
    }
    return el.value !== undefined ? String(el.value) : (el.textContent || '').trim();
}
"""

NATIVE_SETTER_JS = """
(el, value) => {
    const proto = el.tagName === 'TEXTAREA'
        ? window.HTMLTextAreaElement.prototype
        : el.tagName === 'SELECT'
            ? window.HTMLSelectElement.prototype
            : window.HTMLInputElement.prototype;
    const descriptor = Object.getOwnPropertyDescriptor(proto, 'value');
    if (descriptor && descriptor.set) {
        descriptor.set.call(el, value);
    } else {
        el.value = value;
    }
    el.dispatchEvent(new Event('input', {bubbles: true}));
    el.dispatchEvent(new Event('change', {bubbles: true}));
    el.dispatchEvent(new Event('blur', {bubbles: true}));
    return el.value;
}
"""

DISPATCH_EVENTS_JS = """
(el) => {
    for (const type of ['input', 'change', 'blur']) {
        el.dispatchEvent(new Event(type, {bubbles: true}));
    }
}
"""

SCROLL_INTO_VIEW_JS = "(el) => el.scrollIntoView({block: 'center', inline: 'nearest'})"

VERIFY_PREFIX_LENGTH = 5


def values_match(actual: Optional[str], expected: Optional[str]) -> bool:
    """Case-insensitive verification used after every fill attempt.

    Masked inputs (phones, dates) often reformat what was typed, so a
    containment check on the first characters is accepted as well.
    """

    actual_text = (actual or "").strip().lower()
    expected_text = (expected or "").strip().lower()
    if not expected_text:
        return not actual_text
    if actual_text == expected_text:
        return True
    if not actual_text:
        return False
    return expected_text[:VERIFY_PREFIX_LENGTH] in actual_text


async def read_value(element: Any) -> str:
    try:
        value = await element.evaluate(READ_VALUE_JS)
    except Exception:
        return ""
    return "" if value is None else str(value)


async def set_native_value(element: Any, value: str) -> None:
    await element.evaluate(NATIVE_SETTER_JS, value)


async def dispatch_events(element: Any) -> None:
    try:
        await element.evaluate(DISPATCH_EVENTS_JS)
    except Exception as exc:
        logger.debug(f"Event dispatch failed: {exc}")


async def scroll_into_view(element: Any) -> None:
    try:
        await element.evaluate(SCROLL_INTO_VIEW_JS)
    except Exception:
        pass
