from __future__ import annotations

from typing import Any, List, Tuple

import pytest

from applyfill.context import FillContext
from applyfill.fill import repeatable
from applyfill.fill.repeatable import (
    EDUCATION_TEMPLATE,
    EXPERIENCE_TEMPLATE,
    entry_values,
    expand_sections,
    filter_block,
    group_by_row,
    plan_positional,
    section_entries,
    template_fits,
)
from applyfill.models import ClassifiedField, Rect, ScannedField
from applyfill.profile import CandidateProfile, EducationEntry, WorkExperienceEntry


def _at(x: float, y: float, label: str = "", **kwargs: Any) -> ScannedField:
    return ScannedField(label=label, rect=Rect(x=x, y=y, width=100, height=30), **kwargs)


def test_group_by_row_orders_left_to_right():
    fields = [_at(300, 102, "Company"), _at(10, 100, "Title"), _at(10, 160, "Location"), _at(10, 240, "Description")]

    rows = group_by_row(fields)

    assert [[item.label for item in row] for row in rows] == [["Title", "Company"], ["Location"], ["Description"]]


def test_filter_block_drops_country_and_outliers():
    fields = [
        _at(10, 100, "Title"),
        _at(10, 140, "Country"),
        _at(10, 180, "Company"),
        _at(10, 220, "Start"),
        _at(10, 2400, "Footer search"),
    ]

    kept = filter_block(fields)

    assert [item.label for item in kept] == ["Title", "Company", "Start"]


def test_positional_plan_follows_experience_template():
    entry = WorkExperienceEntry(
        job_title="Psychiatric NP",
        employer_name="Mercy Health",
        employer_city="Austin",
        employer_state="TX",
        start_date="2019-04-01",
        is_current=True,
        end_date="2024-01-01",
    )
    values = entry_values("experience", entry)
    rows = group_by_row(
        [
            _at(10, 100, "a"),
            _at(300, 100, "b"),
            _at(10, 160, "c"),
            _at(10, 220, "d", field_type="textarea"),
            _at(10, 320, "e"),
            _at(300, 320, "f"),
        ]
    )

    assert values["location"] == "Austin, TX"
    assert values["end_date"] == ""
    assert template_fits(rows, EXPERIENCE_TEMPLATE, values)
    plan = [(item.label, value, kind) for item, value, kind in plan_positional(rows, EXPERIENCE_TEMPLATE, values)]
    assert plan == [
        ("a", "Psychiatric NP", "typeahead"),
        ("b", "Mercy Health", "typeahead"),
        ("c", "Austin, TX", "typeahead"),
        ("e", "2019-04-01", "date"),
    ]


def test_short_block_does_not_fit_education_template():
    values = entry_values("education", EducationEntry(school_name="UT Austin", graduation_date="2015-05-01"))
    rows = group_by_row([_at(10, 100, "School"), _at(10, 160, "Field")])

    assert not template_fits(rows, EDUCATION_TEMPLATE, values)


def test_entries_keep_profile_order():
    bsn = EducationEntry(degree_type="BSN", school_name="UT Austin")
    msn = EducationEntry(degree_type="MSN", school_name="Vanderbilt", is_highest_degree=True)
    profile = CandidateProfile(education=[bsn, msn])

    assert section_entries("education", profile, FillContext(profile=profile)) == [bsn, msn]


def test_resume_entries_fill_in_for_empty_profile():
    profile = CandidateProfile()
    ctx = FillContext(profile=profile, resume_experience=[{"jobTitle": "RN", "employerName": "St. David's"}])

    entries = section_entries("experience", profile, ctx)

    assert [(entry.job_title, entry.employer_name) for entry in entries] == [("RN", "St. David's")]


class StubHandler:
    def __init__(self, fields: List[ClassifiedField]) -> None:
        self.fields = fields

    async def detect_fields(self, page: Any, ctx: FillContext) -> List[ClassifiedField]:
        return self.fields


class StubExecutor:
    def __init__(self, ctx: FillContext, handler: StubHandler) -> None:
        self.page = object()
        self.ctx = ctx
        self.handler = handler


@pytest.mark.asyncio
async def test_one_add_click_per_missing_entry(monkeypatch):
    first = EducationEntry(degree_type="MSN", school_name="Vanderbilt", is_highest_degree=True)
    second = EducationEntry(degree_type="BSN", school_name="UT Austin")
    profile = CandidateProfile(education=[first, second])
    ctx = FillContext(profile=profile)
    handler = StubHandler([ClassifiedField(label="School", identifier="school", confidence=1.0)])
    calls: List[Tuple[str, Any]] = []

    async def fake_add_entry(executor: Any, section: str, entry: Any) -> int:
        calls.append((section, entry))
        return 3

    monkeypatch.setattr(repeatable, "add_entry", fake_add_entry)
    monkeypatch.setattr(repeatable, "ENTRY_PAUSE_SECONDS", 0)

    written = await expand_sections(object(), ctx, StubExecutor(ctx, handler))

    assert calls == [("education", second)]
    assert written == 3
    assert ctx.section_progress == {"education": 2}


@pytest.mark.asyncio
async def test_missing_add_button_stops_the_section(monkeypatch):
    entries = [EducationEntry(school_name=name) for name in ("A", "B", "C")]
    profile = CandidateProfile(education=entries)
    ctx = FillContext(profile=profile)
    calls: List[Any] = []

    async def no_button(executor: Any, section: str, entry: Any) -> int:
        calls.append(entry)
        return -1

    monkeypatch.setattr(repeatable, "add_entry", no_button)

    written = await expand_sections(object(), ctx, StubExecutor(ctx, StubHandler([])))

    assert written == 0
    assert calls == [entries[1]]
    assert ctx.section_progress == {}


@pytest.mark.asyncio
async def test_empty_section_adds_one_block_for_two_entries(monkeypatch):
    bsn = EducationEntry(degree_type="BSN", school_name="UT Austin")
    msn = EducationEntry(degree_type="MSN", school_name="Vanderbilt", is_highest_degree=True)
    profile = CandidateProfile(education=[bsn, msn])
    ctx = FillContext(profile=profile)
    calls: List[Tuple[str, Any]] = []

    async def fake_add_entry(executor: Any, section: str, entry: Any) -> int:
        calls.append((section, entry))
        return 2

    monkeypatch.setattr(repeatable, "add_entry", fake_add_entry)
    monkeypatch.setattr(repeatable, "ENTRY_PAUSE_SECONDS", 0)

    written = await expand_sections(object(), ctx, StubExecutor(ctx, StubHandler([])))

    assert calls == [("education", msn)]
    assert written == 2
    assert ctx.section_progress == {"education": 2}


@pytest.mark.asyncio
async def test_cleared_parser_blocks_still_skip_the_first_entry(monkeypatch):
    entries = [EducationEntry(school_name=name) for name in ("A", "B", "C")]
    profile = CandidateProfile(education=entries)
    ctx = FillContext(profile=profile)
    added: List[Any] = []
    deleted: List[str] = []

    async def fake_delete(page: Any, section: str, limit: int = 0) -> int:
        deleted.append(section)
        return 2

    async def fake_add_entry(executor: Any, section: str, entry: Any) -> int:
        added.append(entry)
        return 1

    monkeypatch.setattr(repeatable, "delete_parsed_entries", fake_delete)
    monkeypatch.setattr(repeatable, "add_entry", fake_add_entry)
    monkeypatch.setattr(repeatable, "ENTRY_PAUSE_SECONDS", 0)

    written = await expand_sections(object(), ctx, StubExecutor(ctx, StubHandler([])), clear_parsed=True)

    assert added == entries[1:]
    assert written == 2
    assert deleted == ["education"]
    assert ctx.section_progress == {"education": 3}
