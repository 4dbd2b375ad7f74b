"""Greenhouse boards (``boards.greenhouse.io`` and embedded ``#application-form``).

Standard inputs carry stable ids (``#first_name``, ``#email``); custom
questions use ``#question_<digits>``. Country is a React-Select combobox.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional

from ..classifier import OPEN_ENDED
from ..context import FillContext
from ..fill.select import fill_option_menu
from ..fill.typeahead import TypeaheadConfig, fill_typeahead
from ..models import ClassifiedField, MappedField
from .base import PageInfo, PlatformHandler, generic_detect_fields, override_identifiers

logger = logging.getLogger(__name__)

APPLICATION_FORM = "form#application-form.application--form"

GREENHOUSE_ID_MAP = {
    "first_name": "first_name",
    "last_name": "last_name",
    "preferred_name": "preferred_name",
    "email": "email",
    "phone": "phone",
    "country": "country",
    "resume": "resume_upload",
    "cover_letter": "cover_letter_upload",
    "location": "city",
}

SELECT2_OPTIONS = ".select2-results__option, .active-result, [role='option']"
COUNTRY_TYPEAHEAD = TypeaheadConfig(typing_delay_ms=50, dropdown_timeout_ms=1500, option_selector='[class*="option"]')


def detect(info: PageInfo) -> bool:
    return info.host_matches("boards.greenhouse.io", "job-boards.greenhouse.io") or info.has_marker(APPLICATION_FORM)


def _custom_question(field: ClassifiedField) -> ClassifiedField:
    label = field.label.lower()
    if "linkedin" in label:
        return ClassifiedField.from_scanned(field, identifier="linkedin", category="personal", confidence=0.95)
    if "website" in label or "portfolio" in label:
        return ClassifiedField.from_scanned(field, identifier="website", category="personal", confidence=0.9)
    if field.field_type == "textarea":
        return ClassifiedField.from_scanned(
            field, identifier=OPEN_ENDED, category="open_ended", confidence=0.85, is_open_ended=True
        )
    return field


async def detect_fields(page: Any, ctx: FillContext) -> List[ClassifiedField]:
    fields = override_identifiers(
        await generic_detect_fields(page, ctx), lambda f: f.element_id.lower(), GREENHOUSE_ID_MAP, 0.98
    )
    detected: List[ClassifiedField] = []
    for field in fields:
        element_id = field.element_id.lower()
        if element_id.startswith("question_") or "job_application_answers_attributes" in element_id:
            field = _custom_question(field)
        detected.append(field)
    return detected


async def fill_field(page: Any, field: MappedField, ctx: FillContext) -> Optional[bool]:
    if field.element_id.lower() == "country" and field.fill_method == "text":
        logger.debug("Greenhouse country uses React-Select")
        return await fill_typeahead(field.element, str(field.value), COUNTRY_TYPEAHEAD)
    return None


async def handle_dropdown(element: Any, value: str, ctx: FillContext) -> bool:
    # Select2 / Chosen widgets on embedded boards
    return await fill_option_menu(element, value, SELECT2_OPTIONS)


HANDLER = PlatformHandler(
    name="Greenhouse",
    detect=detect,
    detect_fields=detect_fields,
    fill_field=fill_field,
    handle_dropdown=handle_dropdown,
    dom_markers=(APPLICATION_FORM,),
)
