"""Lever postings (``jobs.lever.co``)."""
from __future__ import annotations

import logging
from typing import Any, List, Optional

from ..context import FillContext
from ..fill.typeahead import TypeaheadConfig, fill_typeahead
from ..models import ClassifiedField, MappedField
from .base import PageInfo, PlatformHandler, generic_detect_fields, override_identifiers

logger = logging.getLogger(__name__)

LEVER_NAME_MAP = {
    "name": "full_name",
    "email": "email",
    "phone": "phone",
    "org": "employer",
    "location": "location",
    "comments": "cover_letter",
    "resume": "resume_upload",
    "eeo[gender]": "eeo_gender",
    "eeo[race]": "eeo_race",
    "eeo[veteran]": "eeo_veteran",
}

LEVER_QA_MAP = {
    "name-input": "full_name",
    "email-input": "email",
    "phone-input": "phone",
    "org-input": "employer",
    "location-input": "location",
    "input-resume": "resume_upload",
}

LOCATION_TYPEAHEAD = TypeaheadConfig(
    typing_delay_ms=150,
    dropdown_timeout_ms=4000,
    option_selector=(
        '.pac-item, .autocomplete-dropdown-container li, [data-qa="location-result"], .location-option, '
        '[role="option"]'
    ),
)


def detect(info: PageInfo) -> bool:
    return info.host_matches("jobs.lever.co") or info.url_contains("lever.co/apply")


async def detect_fields(page: Any, ctx: FillContext) -> List[ClassifiedField]:
    fields = await generic_detect_fields(page, ctx)
    fields = override_identifiers(fields, lambda f: f.attributes.get("data-qa", ""), LEVER_QA_MAP, 0.98)
    fields = override_identifiers(fields, lambda f: f.name.lower(), LEVER_NAME_MAP, 0.95)
    return override_identifiers(
        fields, lambda f: "linkedin" if "urls[linkedin]" in f.name.lower() else "", {"linkedin": "linkedin"}, 0.98
    )


async def fill_field(page: Any, field: MappedField, ctx: FillContext) -> Optional[bool]:
    if field.name.lower() != "location" or field.fill_method != "text":
        return None
    value = str(field.value)
    if await fill_typeahead(field.element, value, LOCATION_TYPEAHEAD):
        return True
    city = value.split(",")[0].strip()
    if city and city != value:
        logger.debug(f"Retrying Lever location with {city!r}")
        if await fill_typeahead(field.element, city, LOCATION_TYPEAHEAD):
            return True
    return None


HANDLER = PlatformHandler(
    name="Lever",
    detect=detect,
    detect_fields=detect_fields,
    fill_field=fill_field,
    typeahead=LOCATION_TYPEAHEAD,
)
