"""Workday career sites, keyed by ``data-automation-id`` conventions."""
from __future__ import annotations

import logging
import re
from typing import Any, Dict

from ..context import FillContext
from ..fill.select import fill_option_menu
from .base import PageInfo, PlatformHandler, mapped_detector

logger = logging.getLogger(__name__)

WORKDAY_FIELD_MAP = {
    "legalNameSection_firstName": "first_name",
    "legalNameSection_lastName": "last_name",
    "addressSection_addressLine1": "address_line1",
    "addressSection_city": "city",
    "addressSection_countryRegion": "state",
    "addressSection_postalCode": "zip",
    "phone-number": "phone",
    "email": "email",
}

WORKDAY_MARKERS = ('[data-automation-id*="legalNameSection"]', '[data-automation-id*="progressBar"]')
PROMPT_OPTIONS = '[data-automation-id*="promptOption"], [role="option"]'
# Tenant hosts such as wd5.myworkday.com; the bare workday.com marketing site is excluded.
TENANT_HOST_RE = re.compile(r"(^|\.)wd\d+\.myworkday(site)?\.com$")

PROGRESS_JS = """
() => {
    const steps = Array.from(document.querySelectorAll('[data-automation-id*="progressBarStep"]'));
    const active = steps.find((step) => step.getAttribute('aria-current') === 'step');
    return {currentStep: active ? steps.indexOf(active) + 1 : 1, totalSteps: steps.length || 1};
}
"""


def detect(info: PageInfo) -> bool:
    if info.host_matches("myworkdayjobs.com", "myworkdaysite.com") or TENANT_HOST_RE.search(info.hostname):
        return True
    return info.has_marker(*WORKDAY_MARKERS)


async def handle_dropdown(element: Any, value: str, ctx: FillContext) -> bool:
    return await fill_option_menu(element, value, PROMPT_OPTIONS, open_wait=0.4)


async def handle_multi_step(page: Any, ctx: FillContext) -> Dict[str, int]:
    try:
        progress = await page.evaluate(PROGRESS_JS)
    except Exception as exc:
        logger.debug(f"Workday progress lookup failed: {exc}")
        return {"current_step": 1, "total_steps": 1}
    return {
        "current_step": int(progress.get("currentStep") or 1),
        "total_steps": int(progress.get("totalSteps") or 1),
    }


HANDLER = PlatformHandler(
    name="Workday",
    detect=detect,
    detect_fields=mapped_detector(
        lambda f: f.attributes.get("data-automation-id", ""), WORKDAY_FIELD_MAP, 0.95, partial=True
    ),
    handle_dropdown=handle_dropdown,
    handle_multi_step=handle_multi_step,
    dom_markers=WORKDAY_MARKERS,
)
