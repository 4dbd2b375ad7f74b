from __future__ import annotations

from typing import Any, List

import pytest

from applyfill.config import Settings
from applyfill.context import FillContext
from applyfill.models import ClassifiedField
from applyfill.platforms import (
    GENERIC_HANDLER,
    PageInfo,
    PlatformHandler,
    detect_ats,
    get_active_handler,
    override_identifiers,
)
from applyfill.platforms.greenhouse import APPLICATION_FORM
from applyfill.platforms.workday import WORKDAY_MARKERS
from applyfill.profile import CandidateProfile


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://boards.greenhouse.io/acme/jobs/123", "Greenhouse"),
        ("https://jobs.lever.co/acme/abc/apply", "Lever"),
        ("https://jobs.ashbyhq.com/acme/123/application", "Ashby"),
        ("https://jobs.smartrecruiters.com/Acme/123", "SmartRecruiters"),
        ("https://acme.wd5.myworkdayjobs.com/en-US/careers/job/123/apply", "Workday"),
        ("https://careers-acme.icims.com/jobs/123/job", "iCIMS"),
        ("https://www.indeed.com/viewjob?jk=1", "Indeed"),
        ("https://careers.example.org/apply", "Generic"),
    ],
)
def test_first_matching_handler_wins(url, expected):
    handler = get_active_handler(PageInfo.from_url(url))

    assert handler.name == expected


def test_dom_marker_selects_embedded_greenhouse_form():
    info = PageInfo.from_url("https://careers.example.org/jobs/42", [APPLICATION_FORM])

    assert get_active_handler(info).name == "Greenhouse"


def test_generic_handler_always_last():
    custom = PlatformHandler(name="Never", detect=lambda info: False)

    assert get_active_handler(PageInfo.from_url("https://x.test"), [custom]) is GENERIC_HANDLER


def test_detect_ats_confidence_depends_on_markers():
    url = "https://acme.wd5.myworkdayjobs.com/en-US/careers/job/123"

    assert detect_ats(PageInfo.from_url(url)) == ("Workday", 0.7)
    assert detect_ats(PageInfo.from_url(url, [WORKDAY_MARKERS[0]])) == ("Workday", 0.95)
    assert detect_ats(PageInfo.from_url("https://jobs.lever.co/acme/1")) == ("Lever", 0.95)
    assert detect_ats(PageInfo.from_url("https://example.org")) is None


def test_workday_marketing_site_is_not_an_application():
    marketing = PageInfo.from_url("https://www.workday.com/en-us/company/careers.html")

    assert get_active_handler(marketing).name == "Generic"
    assert detect_ats(marketing) is None


@pytest.mark.parametrize(
    "url,markers",
    [
        ("https://wd1.myworkdaysite.com/recruiting/acme/External/job/123", []),
        ("https://wd5.myworkday.com/acme/d/task/123.htmld", []),
        ("https://www.workday.com/en-us/apply", [WORKDAY_MARKERS[1]]),
    ],
)
def test_workday_tenant_hosts_and_markers(url, markers):
    assert get_active_handler(PageInfo.from_url(url, markers)).name == "Workday"


def test_platform_ids_override_weak_classifications():
    fields = [
        ClassifiedField(attributes={"id": "first_name"}, identifier="unknown", confidence=0.0),
        ClassifiedField(attributes={"id": "job_application_location"}, identifier="city", confidence=0.8),
        ClassifiedField(attributes={"id": "email"}, identifier="email", confidence=1.0),
    ]
    mapping = {"first_name": "first_name", "location": "location", "email": "phone"}

    updated = override_identifiers(fields, lambda item: item.element_id, mapping, 0.95, partial=True)

    assert [item.identifier for item in updated] == ["first_name", "location", "email"]
    assert updated[0].confidence == pytest.approx(0.95)
    assert updated[1].category == "personal"


class EmptyHandlerPage:
    url = "https://boards.greenhouse.io/acme/jobs/1"


@pytest.mark.asyncio
async def test_engine_falls_back_to_generic_detection(monkeypatch):
    from applyfill import engine as engine_module
    from applyfill.engine import AutofillEngine

    generic_calls: List[Any] = []

    async def empty(page: Any, ctx: FillContext) -> List[ClassifiedField]:
        return []

    async def fake_generic(page: Any, ctx: FillContext) -> List[ClassifiedField]:
        generic_calls.append(page)
        return [ClassifiedField(label="Email", identifier="email", confidence=1.0)]

    monkeypatch.setattr(engine_module, "generic_detect_fields", fake_generic)
    settings = Settings(api_token=None)
    engine = AutofillEngine(settings, profile=CandidateProfile())
    handler = PlatformHandler(name="Empty", detect=lambda info: True, detect_fields=empty)
    page = EmptyHandlerPage()

    fields = await engine.detect_fields(page, FillContext(profile=CandidateProfile(), settings=settings), handler)

    assert [item.identifier for item in fields] == ["email"]
    assert generic_calls == [page]


class RecordingExecutor:
    def __init__(self) -> None:
        self.batches: List[List[Any]] = []

    async def fill_fields(self, fields: List[Any]) -> Any:
        from applyfill.models import FillResult

        self.batches.append(list(fields))
        return FillResult(total=len(fields), filled=len(fields))


@pytest.mark.asyncio
async def test_late_rendered_fields_are_filled_once(monkeypatch):
    from applyfill import engine as engine_module
    from applyfill.context import field_key
    from applyfill.engine import AutofillEngine

    email = ClassifiedField(label="Email", attributes={"id": "email"}, identifier="email", confidence=1.0)
    phone = ClassifiedField(label="Phone", attributes={"id": "phone"}, identifier="phone", confidence=1.0)
    watches: List[float] = []

    async def fake_wait(page: Any, timeout_seconds: float) -> bool:
        watches.append(timeout_seconds)
        return True

    async def detect(page: Any, ctx: FillContext) -> List[ClassifiedField]:
        return [email, phone]

    monkeypatch.setattr(engine_module, "wait_for_dom_change", fake_wait)
    settings = Settings(api_token=None, mutation_watch_seconds=0.5)
    engine = AutofillEngine(settings, profile=CandidateProfile())
    handler = PlatformHandler(name="Late", detect=lambda info: True, detect_fields=detect)
    executor = RecordingExecutor()
    ctx = FillContext(profile=CandidateProfile(), settings=settings)

    result = await engine.rescan_after_mutations(object(), ctx, handler, executor, {field_key(email)})

    assert [[item.label for item in batch] for batch in executor.batches] == [["Phone"], []]
    assert result.total == 1
    assert watches == [0.5, 0.5]


@pytest.mark.asyncio
async def test_quiet_page_skips_rescan(monkeypatch):
    from applyfill import engine as engine_module
    from applyfill.engine import AutofillEngine

    async def no_change(page: Any, timeout_seconds: float) -> bool:
        return False

    async def detect(page: Any, ctx: FillContext) -> List[ClassifiedField]:
        raise AssertionError("should not re-scan")

    monkeypatch.setattr(engine_module, "wait_for_dom_change", no_change)
    settings = Settings(api_token=None)
    engine = AutofillEngine(settings, profile=CandidateProfile())
    handler = PlatformHandler(name="Quiet", detect=lambda info: True, detect_fields=detect)
    executor = RecordingExecutor()

    result = await engine.rescan_after_mutations(
        object(), FillContext(profile=CandidateProfile(), settings=settings), handler, executor, set()
    )

    assert result.total == 0
    assert executor.batches == []
