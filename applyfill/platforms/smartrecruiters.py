"""SmartRecruiters (``jobs.smartrecruiters.com``).

The application is built from web components with open shadow roots, and its
resume parser pre-creates experience/education entries that are cleared and
re-added from the profile.
"""
from __future__ import annotations

import logging
from functools import partial
from typing import Any, List

from ..context import FillContext
from ..fill.repeatable import expand_sections
from ..fill.select import fill_option_menu
from ..models import ClassifiedField
from .base import PageInfo, PlatformHandler, generic_detect_fields

logger = logging.getLogger(__name__)

APPLICATION_FORM = ".js-application-form"
LISTBOX_OPTIONS = '[role="option"], [role="listbox"] li'


def detect(info: PageInfo) -> bool:
    return info.host_matches("jobs.smartrecruiters.com")


async def detect_fields(page: Any, ctx: FillContext) -> List[ClassifiedField]:
    fields = await generic_detect_fields(page, ctx)
    kept = []
    for field in fields:
        # City is an autocomplete web component that rejects programmatic input.
        if field.identifier == "city":
            logger.debug("Leaving SmartRecruiters city for the user")
            continue
        kept.append(field)
    return kept


async def handle_dropdown(element: Any, value: str, ctx: FillContext) -> bool:
    return await fill_option_menu(element, value, LISTBOX_OPTIONS, open_wait=0.4)


HANDLER = PlatformHandler(
    name="SmartRecruiters",
    detect=detect,
    detect_fields=detect_fields,
    handle_dropdown=handle_dropdown,
    handle_repeatable=partial(expand_sections, clear_parsed=True, save_entries=True),
    dom_markers=(APPLICATION_FORM,),
)
