"""Platform handler record and the generic behaviour every handler starts from.

A handler is a plain record of callables rather than a subclass: platform
modules build one with :func:`dataclasses.replace`-style keyword overrides of
:data:`GENERIC_HANDLER` and the registry picks the first whose pure ``detect``
predicate accepts the page.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import urlparse

from ..classifier import CATEGORY_BY_IDENTIFIER, classify_fields
from ..context import FillContext
from ..documents import DownloadedFile
from ..fill.files import upload_file
from ..fill.repeatable import expand_sections
from ..fill.select import fill_select
from ..fill.typeahead import TypeaheadConfig
from ..models import ClassifiedField, MappedField, ScannedField
from ..scanner import scan

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageInfo:
    """What handlers are allowed to look at when deciding whether they apply."""

    url: str
    hostname: str = ""
    markers: FrozenSet[str] = frozenset()

    @classmethod
    def from_url(cls, url: str, markers: Iterable[str] = ()) -> "PageInfo":
        return cls(url=url, hostname=(urlparse(url).hostname or "").lower(), markers=frozenset(markers))

    def host_matches(self, *suffixes: str) -> bool:
        return any(self.hostname == suffix or self.hostname.endswith("." + suffix) for suffix in suffixes)

    def url_contains(self, *fragments: str) -> bool:
        lowered = self.url.lower()
        return any(fragment.lower() in lowered for fragment in fragments)

    def has_marker(self, *selectors: str) -> bool:
        return any(selector in self.markers for selector in selectors)


DetectFn = Callable[[PageInfo], bool]
DetectFieldsFn = Callable[[Any, FillContext], Awaitable[List[ClassifiedField]]]
FillFieldFn = Callable[[Any, MappedField, FillContext], Awaitable[Optional[bool]]]
DropdownFn = Callable[[Any, str, FillContext], Awaitable[bool]]
FileUploadFn = Callable[[Any, MappedField, DownloadedFile, FillContext], Awaitable[bool]]
MultiStepFn = Callable[[Any, FillContext], Awaitable[Dict[str, Any]]]
RepeatableFn = Callable[[Any, FillContext, Any], Awaitable[int]]


async def generic_detect_fields(page: Any, ctx: FillContext) -> List[ClassifiedField]:
    scanned = await scan(page, include_cross_origin=ctx.settings.scan_cross_origin_frames)
    return classify_fields(scanned)


async def generic_dropdown(element: Any, value: str, ctx: FillContext) -> bool:
    return await fill_select(element, value)


async def generic_file_upload(page: Any, field: MappedField, document: DownloadedFile, ctx: FillContext) -> bool:
    return await upload_file(page, field.element, document)


@dataclass(frozen=True)
class PlatformHandler:
    name: str
    detect: DetectFn
    detect_fields: DetectFieldsFn = generic_detect_fields
    fill_field: Optional[FillFieldFn] = None
    handle_dropdown: DropdownFn = generic_dropdown
    handle_file_upload: FileUploadFn = generic_file_upload
    handle_multi_step: Optional[MultiStepFn] = None
    handle_repeatable: Optional[RepeatableFn] = None
    typeahead: TypeaheadConfig = field(default_factory=TypeaheadConfig)
    dom_markers: Tuple[str, ...] = ()


def override_identifiers(
    fields: Sequence[ClassifiedField],
    key: Callable[[ScannedField], str],
    mapping: Mapping[str, str],
    confidence: float,
    *,
    partial: bool = False,
) -> List[ClassifiedField]:
    """Re-label fields whose platform key appears in ``mapping``.

    With ``partial`` the mapping keys may appear anywhere in the field key
    (Workday automation ids embed section prefixes).
    """

    updated: List[ClassifiedField] = []
    for item in fields:
        raw = key(item) or ""
        identifier = mapping.get(raw)
        if identifier is None and partial and raw:
            identifier = next((value for fragment, value in mapping.items() if fragment in raw), None)
        if identifier is None or item.confidence > confidence:
            updated.append(item)
            continue
        updated.append(
            ClassifiedField.from_scanned(
                item,
                identifier=identifier,
                category=CATEGORY_BY_IDENTIFIER.get(identifier, item.category),
                confidence=confidence,
                is_open_ended=False,
            )
        )
    return updated


def mapped_detector(
    key: Callable[[ScannedField], str],
    mapping: Mapping[str, str],
    confidence: float,
    *,
    partial: bool = False,
) -> DetectFieldsFn:
    """Build a ``detect_fields`` that runs the generic pass then applies a platform map."""

    async def detect_fields(page: Any, ctx: FillContext) -> List[ClassifiedField]:
        fields = await generic_detect_fields(page, ctx)
        return override_identifiers(fields, key, mapping, confidence, partial=partial)

    return detect_fields


GENERIC_HANDLER = PlatformHandler(name="Generic", detect=lambda info: True, handle_repeatable=expand_sections)
