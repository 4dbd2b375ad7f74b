"""Ordered registry of applicant-tracking-system handlers.

The first handler whose ``detect`` predicate accepts the :class:`PageInfo`
wins; the generic handler is always last.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from .base import GENERIC_HANDLER, PageInfo, PlatformHandler, override_identifiers
from .ashby import HANDLER as ASHBY_HANDLER
from .easy_apply import INDEED_HANDLER, LINKEDIN_HANDLER
from .enterprise import ADP_HANDLER, ICIMS_HANDLER, TALEO_HANDLER
from .greenhouse import HANDLER as GREENHOUSE_HANDLER
from .lever import HANDLER as LEVER_HANDLER
from .smartrecruiters import HANDLER as SMARTRECRUITERS_HANDLER
from .workday import HANDLER as WORKDAY_HANDLER

logger = logging.getLogger(__name__)

HANDLERS: Tuple[PlatformHandler, ...] = (
    GREENHOUSE_HANDLER,
    LEVER_HANDLER,
    ASHBY_HANDLER,
    SMARTRECRUITERS_HANDLER,
    WORKDAY_HANDLER,
    ICIMS_HANDLER,
    TALEO_HANDLER,
    ADP_HANDLER,
    INDEED_HANDLER,
    LINKEDIN_HANDLER,
    GENERIC_HANDLER,
)

MATCH_MARKERS_JS = """
(selectors) => selectors.filter((selector) => {
    try {
        return !!document.querySelector(selector);
    } catch (e) {
        return false;
    }
})
"""


@dataclass(frozen=True)
class AtsSignature:
    name: str
    url_patterns: Tuple[str, ...]
    markers: Tuple[str, ...] = ()


ATS_SIGNATURES: Sequence[AtsSignature] = (
    AtsSignature("Workday", ("myworkdayjobs.com", "myworkdaysite.com", ".myworkday.com"), WORKDAY_HANDLER.dom_markers),
    AtsSignature("Greenhouse", ("boards.greenhouse.io", "job-boards.greenhouse.io"), GREENHOUSE_HANDLER.dom_markers),
    AtsSignature("Lever", ("jobs.lever.co", "lever.co/apply")),
    AtsSignature("iCIMS", ("icims.com",), ICIMS_HANDLER.dom_markers),
    AtsSignature("Ashby", ("jobs.ashbyhq.com", "ashbyhq.com")),
    AtsSignature("SmartRecruiters", ("jobs.smartrecruiters.com",), SMARTRECRUITERS_HANDLER.dom_markers),
    AtsSignature("BambooHR", ("bamboohr.com/careers", "bamboohr.com/jobs")),
)


def all_markers(handlers: Sequence[PlatformHandler] = HANDLERS) -> List[str]:
    markers: List[str] = []
    for handler in handlers:
        for marker in handler.dom_markers:
            if marker not in markers:
                markers.append(marker)
    return markers


async def collect_page_info(page: Any) -> PageInfo:
    """Snapshot the URL plus which handler DOM markers are present."""

    try:
        matched = await page.evaluate(MATCH_MARKERS_JS, all_markers())
    except Exception as exc:
        logger.debug(f"Marker probe failed: {exc}")
        matched = []
    return PageInfo.from_url(page.url, matched or [])


def get_active_handler(info: PageInfo, handlers: Sequence[PlatformHandler] = HANDLERS) -> PlatformHandler:
    for handler in handlers:
        if handler.detect(info):
            logger.info(f"Using {handler.name} handler for {info.hostname or info.url}")
            return handler
    return GENERIC_HANDLER


def detect_ats(info: PageInfo) -> Optional[Tuple[str, float]]:
    """Name the applicant tracking system for reporting.

    Returns ``(name, confidence)``: 0.95 when a DOM marker confirms the URL
    match, 0.7 on the URL alone, or ``None`` for unrecognised sites.
    """

    url = info.url.lower()
    for signature in ATS_SIGNATURES:
        if any(pattern in url or pattern in info.hostname for pattern in signature.url_patterns):
            confirmed = not signature.markers or info.has_marker(*signature.markers)
            return signature.name, 0.95 if confirmed else 0.7
    return None


__all__ = [
    "ATS_SIGNATURES",
    "AtsSignature",
    "GENERIC_HANDLER",
    "HANDLERS",
    "PageInfo",
    "PlatformHandler",
    "collect_page_info",
    "detect_ats",
    "get_active_handler",
    "override_identifiers",
]
