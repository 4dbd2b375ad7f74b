"""Date fields: native inputs, split month/day/year groups, pickers and text."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from ..dates import MONTH_NAMES, detect_date_format, format_date, parse_date
from .dom import read_value, set_native_value, values_match
from .text import fill_text

logger = logging.getLogger(__name__)

DATE_KIND_JS = """
(el) => {
    const type = (el.getAttribute('type') || '').toLowerCase();
    const hints = [
        el.getAttribute('placeholder'),
        el.getAttribute('aria-label'),
        el.getAttribute('data-date-format'),
        el.getAttribute('data-format'),
    ];
    const formatted = el.closest('[data-date-format]');
    if (formatted) hints.push(formatted.getAttribute('data-date-format'));
    const label = el.parentElement && el.parentElement.querySelector('label');
    if (label) hints.push(label.textContent);

    let kind = 'text';
    if (type === 'date' || type === 'month') {
        kind = type;
    } else if (el.closest('[class*="datepicker"], [class*="date-picker"], [class*="flatpickr"], [class*="react-datepicker"]')) {
        kind = 'picker';
    } else {
        const group = el.closest('fieldset, .form-group, .date-group, [class*="date"], [class*="birth"]');
        if (group && group.querySelectorAll('input:not([type="hidden"]), select').length >= 2) {
            const text = Array.from(group.querySelectorAll('input, select'))
                .map((n) => `${n.name} ${n.id} ${n.getAttribute('placeholder') || ''} ${n.getAttribute('aria-label') || ''}`)
                .join(' ')
                .toLowerCase();
            if (/month|\\bmm\\b/.test(text) && /year|yyyy|\\byy\\b/.test(text)) kind = 'split';
        }
    }
    return {kind, hints: hints.filter(Boolean)};
}
"""

FILL_SPLIT_DATE_JS = """
(el, parts) => {
    const group = el.closest('fieldset, .form-group, .date-group, [class*="date"], [class*="birth"]');
    if (!group) return 0;
    const hintOf = (node) => {
        const label = node.id ? document.querySelector(`label[for="${CSS.escape(node.id)}"]`) : null;
        return (`${node.name} ${node.id} ${node.getAttribute('placeholder') || ''} ` +
                `${node.getAttribute('aria-label') || ''} ${label ? label.textContent : ''}`).toLowerCase();
    };
    const setValue = (node, value) => {
        const proto = node.tagName === 'SELECT' ? HTMLSelectElement.prototype : HTMLInputElement.prototype;
        const setter = Object.getOwnPropertyDescriptor(proto, 'value').set;
        setter.call(node, value);
        node.dispatchEvent(new Event('input', {bubbles: true}));
        node.dispatchEvent(new Event('change', {bubbles: true}));
    };
    const monthName = parts.monthName.toLowerCase();
    let filled = 0;
    for (const node of group.querySelectorAll('input:not([type="hidden"]), select')) {
        const hint = hintOf(node);
        let part = null;
        if (/month|\\bmm\\b/.test(hint)) part = 'month';
        else if (/day|\\bdd\\b/.test(hint)) part = 'day';
        else if (/year|yyyy|\\byy\\b/.test(hint)) part = 'year';
        if (!part) continue;
        if (node.tagName === 'SELECT') {
            const option = Array.from(node.options).find((o) => {
                const text = (o.text || '').trim().toLowerCase();
                const value = (o.value || '').toLowerCase();
                if (part === 'month') {
                    return [text, value].some((t) => t === String(parts.month) || t === parts.monthPadded ||
                        t === monthName || t === monthName.slice(0, 3));
                }
                if (part === 'day') return [text, value].some((t) => t === String(parts.day) || t === parts.dayPadded);
                return [text, value].some((t) => t === String(parts.year));
            });
            if (option) {
                setValue(node, option.value);
                filled += 1;
            }
        } else {
            const value = part === 'month' ? parts.monthPadded : part === 'day' ? parts.dayPadded : String(parts.year);
            setValue(node, value);
            filled += 1;
        }
    }
    return filled;
}
"""

PICKER_HIDDEN_INPUT_JS = """
(el, iso) => {
    const picker = el.closest('[class*="datepicker"], [class*="date-picker"], [class*="flatpickr"], [class*="react-datepicker"]');
    const hidden = picker && picker.querySelector('input[type="hidden"]');
    if (!hidden) return false;
    hidden.value = iso;
    hidden.dispatchEvent(new Event('change', {bubbles: true}));
    return true;
}
"""


def split_parts(value: object) -> Dict[str, Any]:
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError(f"Unparseable date: {value!r}")
    return {
        "month": parsed.month,
        "monthPadded": f"{parsed.month:02d}",
        "monthName": MONTH_NAMES[parsed.month - 1],
        "day": parsed.day,
        "dayPadded": f"{parsed.day:02d}",
        "year": parsed.year,
    }


async def fill_date(element: Any, value: str) -> Tuple[bool, Optional[str]]:
    """Write a canonical date in whatever shape the widget expects.

    Returns ``(written, note)`` like the plain text path: an unverified text
    write still counts as written and carries the uncertainty note.
    """

    parsed = parse_date(value)
    if parsed is None:
        logger.debug(f"Date value {value!r} not parseable; writing as text")
        outcome = await fill_text(element, value)
        return True, outcome.message

    info = await element.evaluate(DATE_KIND_JS)
    kind = info.get("kind", "text")
    hints = info.get("hints") or []

    if kind == "date":
        iso = parsed.isoformat()
        await set_native_value(element, iso)
        return values_match(await read_value(element), iso), None
    if kind == "month":
        month_value = format_date(parsed, "YYYY-MM")
        await set_native_value(element, month_value)
        return values_match(await read_value(element), month_value), None
    if kind == "split":
        filled = await element.evaluate(FILL_SPLIT_DATE_JS, split_parts(parsed))
        logger.debug(f"Split date filled {filled} part(s)")
        if filled:
            return True, None

    formatted = format_date(parsed, detect_date_format(hints))
    if kind == "picker":
        await element.evaluate(PICKER_HIDDEN_INPUT_JS, parsed.isoformat())
    outcome = await fill_text(element, formatted)
    if kind == "picker":
        await element.press("Escape")
    return True, outcome.message
