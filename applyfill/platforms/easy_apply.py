"""Modal "easy apply" flows on job boards: Indeed and LinkedIn.

Both render React inputs inside a dialog; plain text is written with the
native setter so React sees the change, and LinkedIn comboboxes are typeaheads.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from ..context import FillContext
from ..fill.dom import read_value, set_native_value, values_match
from ..fill.select import fill_option_menu
from ..fill.typeahead import TypeaheadConfig, fill_typeahead
from ..models import MappedField
from .base import PageInfo, PlatformHandler

logger = logging.getLogger(__name__)

INDEED_OPTIONS = '[class*="dropdown"] [role="option"], [class*="menu"] li'
LINKEDIN_OPTIONS = '[class*="artdeco-dropdown"] li, [role="option"], [class*="dropdown-option"]'
LINKEDIN_TYPEAHEAD = TypeaheadConfig(typing_delay_ms=150, dropdown_timeout_ms=3000)

LINKEDIN_TYPEAHEAD_JS = """
(el) => el.getAttribute('role') === 'combobox'
    || !!el.closest('[class*="typeahead"]')
    || el.classList.contains('artdeco-typeahead-input')
"""


def detect_indeed(info: PageInfo) -> bool:
    return info.host_matches("indeed.com") or info.url_contains("indeedapply")


def detect_linkedin(info: PageInfo) -> bool:
    return info.host_matches("linkedin.com") and info.url_contains("/jobs/", "/apply/", "easyapply")


async def _react_text(field: MappedField) -> Optional[bool]:
    if field.fill_method != "text" or field.tag not in {"input", "textarea"}:
        return None
    value = str(field.value)
    await field.element.focus()
    await set_native_value(field.element, value)
    return values_match(await read_value(field.element), value)


async def indeed_fill_field(page: Any, field: MappedField, ctx: FillContext) -> Optional[bool]:
    return await _react_text(field)


async def indeed_dropdown(element: Any, value: str, ctx: FillContext) -> bool:
    return await fill_option_menu(element, value, INDEED_OPTIONS)


async def linkedin_fill_field(page: Any, field: MappedField, ctx: FillContext) -> Optional[bool]:
    try:
        is_typeahead = bool(await field.element.evaluate(LINKEDIN_TYPEAHEAD_JS))
    except Exception:
        is_typeahead = False
    if is_typeahead and await fill_typeahead(field.element, str(field.value), LINKEDIN_TYPEAHEAD):
        return True
    return await _react_text(field)


async def linkedin_dropdown(element: Any, value: str, ctx: FillContext) -> bool:
    return await fill_option_menu(element, value, LINKEDIN_OPTIONS)


INDEED_HANDLER = PlatformHandler(
    name="Indeed",
    detect=detect_indeed,
    fill_field=indeed_fill_field,
    handle_dropdown=indeed_dropdown,
)

LINKEDIN_HANDLER = PlatformHandler(
    name="LinkedIn",
    detect=detect_linkedin,
    fill_field=linkedin_fill_field,
    handle_dropdown=linkedin_dropdown,
    typeahead=LINKEDIN_TYPEAHEAD,
)
