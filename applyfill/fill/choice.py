"""Radio groups and checkboxes."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

from ..options import find_best_option, is_affirmative, is_negative

logger = logging.getLogger(__name__)

RADIO_GROUP_JS = """
(el) => {
    const labelOf = (radio) => {
        if (radio.id) {
            const explicit = document.querySelector(`label[for="${CSS.escape(radio.id)}"]`);
            if (explicit) return (explicit.textContent || '').trim();
        }
        const wrapping = radio.closest('label');
        if (wrapping) return (wrapping.textContent || '').trim();
        const next = radio.nextElementSibling;
        if (next && next.tagName !== 'INPUT') return (next.textContent || '').trim();
        return radio.getAttribute('aria-label') || '';
    };
    const root = el.form || el.getRootNode() || document;
    const members = el.name
        ? Array.from(root.querySelectorAll('input[type="radio"]')).filter((r) => r.name === el.name)
        : [el];
    window.__applyfillRadios = members;
    return members.map((r) => ({label: labelOf(r), value: r.value || '', checked: r.checked}));
}
"""

RADIO_MEMBER_JS = "(el, index) => (window.__applyfillRadios || [])[index] || null"

CLICK_LABEL_JS = """
(el) => {
    const label = (el.id && document.querySelector(`label[for="${CSS.escape(el.id)}"]`)) || el.closest('label');
    (label || el).click();
    return el.checked;
}
"""

CHECKED_JS = "(el) => !!el.checked"


def choose_radio(members: Sequence[Mapping[str, Any]], value: str) -> Optional[int]:
    """Pick the group member whose label or value represents ``value``."""

    wanted = (value or "").strip().lower()
    if not wanted:
        return None
    for index, member in enumerate(members):
        if str(member.get("label", "")).strip().lower() == wanted or str(member.get("value", "")).lower() == wanted:
            return index

    affirmative, negative = is_affirmative(wanted), is_negative(wanted)
    if affirmative or negative:
        for index, member in enumerate(members):
            for text in (str(member.get("label", "")), str(member.get("value", ""))):
                if (affirmative and is_affirmative(text.split(",")[0])) or (negative and is_negative(text.split(",")[0])):
                    return index

    labels = [str(member.get("label", "")) for member in members]
    best = find_best_option(value, labels)
    return labels.index(best) if best is not None else None


async def fill_radio(element: Any, value: str) -> bool:
    members = await element.evaluate(RADIO_GROUP_JS)
    index = choose_radio(members or [], value)
    if index is None:
        logger.debug(f"No radio option matched {value!r}")
        return False
    handle = await element.evaluate_handle(RADIO_MEMBER_JS, index)
    target = handle.as_element() if handle is not None else None
    if target is None:
        return False
    try:
        await target.click()
    except Exception as exc:
        # Styled radios are often zero-size; their label takes the click instead.
        logger.debug(f"Radio click failed ({exc}); clicking label")
        await target.evaluate(CLICK_LABEL_JS)
    return bool(await target.evaluate(CHECKED_JS))


async def fill_checkbox(element: Any, value: str) -> bool:
    wanted = is_affirmative(value) or (bool(value) and not is_negative(value))
    checked = bool(await element.evaluate(CHECKED_JS))
    if checked != wanted:
        try:
            await element.click()
        except Exception as exc:
            logger.debug(f"Checkbox click failed ({exc}); clicking label")
            await element.evaluate(CLICK_LABEL_JS)
    return bool(await element.evaluate(CHECKED_JS)) == wanted
