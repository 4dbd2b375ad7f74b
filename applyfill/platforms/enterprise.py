"""Enterprise suites that wrap their forms in frames or framework widgets: iCIMS, Taleo and ADP."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

from ..classifier import classify_fields
from ..context import FillContext
from ..fill.select import fill_option_menu
from ..models import ClassifiedField, MappedField
from ..scanner import scan
from .base import PageInfo, PlatformHandler

logger = logging.getLogger(__name__)

ICIMS_MARKER = '[class*="iCIMS"]'
TALEO_MARKERS = ('[class*="taleo"]', '[id*="taleo"]', "#requisitionDescriptionInterface")
ADP_MARKERS = ('[class*="adp-"]', "[data-adp]")

TALEO_OPTIONS = '[class*="dropdown"] li, [class*="menu"] li, [role="option"]'
MAT_OPTIONS = "mat-option"

MAT_SELECT_JS = "(el) => el.tagName === 'MAT-SELECT' || !!el.closest('mat-select')"
MAT_TRIGGER_JS = "(el) => el.closest('mat-select') || el"


async def detect_framed_fields(page: Any, ctx: FillContext) -> List[ClassifiedField]:
    """Scan including cross-origin frames; these suites host the form in an iframe."""

    fields = await scan(page, include_cross_origin=True)
    framed = sum(1 for field in fields if field.from_iframe)
    if framed:
        logger.debug(f"{framed} field(s) found inside frames")
    return classify_fields(fields)


def detect_icims(info: PageInfo) -> bool:
    return info.host_matches("icims.com") or info.has_marker(ICIMS_MARKER)


def detect_taleo(info: PageInfo) -> bool:
    return (
        info.url_contains("taleo.net", "taleo.", "oracle.com/careers", "oraclecloud.com/hcmui")
        or info.has_marker(*TALEO_MARKERS)
    )


def detect_adp(info: PageInfo) -> bool:
    return info.host_matches("adp.com") or info.url_contains("workforcenow") or info.has_marker(*ADP_MARKERS)


async def taleo_dropdown(element: Any, value: str, ctx: FillContext) -> bool:
    return await fill_option_menu(element, value, TALEO_OPTIONS, open_wait=0.5)


async def _is_mat_select(element: Any) -> bool:
    try:
        return bool(await element.evaluate(MAT_SELECT_JS))
    except Exception:
        return False


async def adp_dropdown(element: Any, value: str, ctx: FillContext) -> bool:
    if await _is_mat_select(element):
        trigger = (await element.evaluate_handle(MAT_TRIGGER_JS)).as_element() or element
        return await fill_option_menu(trigger, value, MAT_OPTIONS)
    return await fill_option_menu(element, value, MAT_OPTIONS)


async def adp_fill_field(page: Any, field: MappedField, ctx: FillContext) -> Optional[bool]:
    if field.fill_method != "text" or not await _is_mat_select(field.element):
        return None
    filled = await adp_dropdown(field.element, str(field.value), ctx)
    await asyncio.sleep(0.1)
    return filled


ICIMS_HANDLER = PlatformHandler(
    name="iCIMS",
    detect=detect_icims,
    detect_fields=detect_framed_fields,
    dom_markers=(ICIMS_MARKER,),
)

TALEO_HANDLER = PlatformHandler(
    name="Taleo",
    detect=detect_taleo,
    detect_fields=detect_framed_fields,
    handle_dropdown=taleo_dropdown,
    dom_markers=TALEO_MARKERS,
)

ADP_HANDLER = PlatformHandler(
    name="ADP",
    detect=detect_adp,
    fill_field=adp_fill_field,
    handle_dropdown=adp_dropdown,
    dom_markers=ADP_MARKERS,
)
