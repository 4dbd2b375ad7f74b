"""Ashby job boards (``jobs.ashbyhq.com``)."""
from __future__ import annotations

from typing import Any, List

from ..context import FillContext
from ..fill.select import fill_option_menu
from ..models import ClassifiedField
from .base import PageInfo, PlatformHandler, mapped_detector, override_identifiers

ASHBY_SYSTEM_FIELDS = {
    "_systemfield_name": "full_name",
    "_systemfield_email": "email",
    "_systemfield_resume": "resume_upload",
}

ASHBY_EEOC_FIELDS = {
    "__systemfield_eeoc_gender": "eeo_gender",
    "__systemfield_eeoc_race": "eeo_race",
    "__systemfield_eeoc_veteran": "eeo_veteran",
    "__systemfield_eeoc_disability": "eeo_disability",
}


def detect(info: PageInfo) -> bool:
    return info.host_matches("ashbyhq.com")


_detect_system = mapped_detector(lambda f: f.element_id, ASHBY_SYSTEM_FIELDS, 0.98)


async def detect_fields(page: Any, ctx: FillContext) -> List[ClassifiedField]:
    fields = await _detect_system(page, ctx)
    return override_identifiers(fields, lambda f: f.element_id, ASHBY_EEOC_FIELDS, 0.9, partial=True)


async def handle_dropdown(element: Any, value: str, ctx: FillContext) -> bool:
    return await fill_option_menu(element, value, '[role="option"]')


HANDLER = PlatformHandler(
    name="Ashby",
    detect=detect,
    detect_fields=detect_fields,
    handle_dropdown=handle_dropdown,
)
