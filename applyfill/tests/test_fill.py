from __future__ import annotations

from typing import Any, List, Optional

import pytest

from applyfill.config import Settings
from applyfill.context import FillContext
from applyfill.errors import FillError
from applyfill.fill import text as text_module
from applyfill.fill.choice import choose_radio
from applyfill.fill.conditional import reveals_dependents
from applyfill.fill.date_input import split_parts
from applyfill.fill.dom import READ_VALUE_JS, values_match
from applyfill.fill.executor import FillExecutor, skip_reason, sort_for_fill
from applyfill.fill.multiselect import chip_exists, split_values
from applyfill.fill.rich_text import to_paragraph_html
from applyfill.fill.select import choose_native_option
from applyfill.fill.text import INSERT_TEXT_JS, UNCERTAIN_MESSAGE, fill_text
from applyfill.fill.typeahead import best_option_index, score_option
from applyfill.models import MappedField, Rect
from applyfill.platforms import PlatformHandler
from applyfill.profile import CandidateProfile


class FakeInput:
    """Records which write strategies ran; ``accepts`` names the ones that stick."""

    def __init__(self, accepts: set[str], *, broken: bool = False) -> None:
        self.accepts = accepts
        self.broken = broken
        self.value = ""
        self.calls: List[str] = []

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script == READ_VALUE_JS:
            return self.value
        if self.broken:
            raise RuntimeError("detached")
        strategy = "insert" if script == INSERT_TEXT_JS else "native"
        self.calls.append(strategy)
        if strategy in self.accepts:
            self.value = arg
        return True

    async def fill(self, value: str) -> None:
        if self.broken:
            raise RuntimeError("detached")
        self.calls.append("clear")
        self.value = value

    async def type(self, value: str, delay: int = 0) -> None:
        self.calls.append("type")
        if "type" in self.accepts:
            self.value += value


@pytest.fixture(autouse=True)
def no_settle(monkeypatch):
    monkeypatch.setattr(text_module, "SETTLE_SECONDS", 0)


@pytest.mark.asyncio
async def test_fill_text_stops_at_first_verified_tier():
    element = FakeInput({"insert"})

    outcome = await fill_text(element, "Ada")

    assert outcome.verified
    assert outcome.tier == 1
    assert element.calls == ["insert"]


@pytest.mark.asyncio
async def test_fill_text_escalates_to_native_setter():
    element = FakeInput({"native"})

    outcome = await fill_text(element, "Lovelace")

    assert outcome.verified
    assert outcome.tier == 2
    assert element.calls == ["insert", "native"]


@pytest.mark.asyncio
async def test_fill_text_reports_uncertain_after_last_tier():
    element = FakeInput(set())

    outcome = await fill_text(element, "555-0100")

    assert not outcome.verified
    assert outcome.tier == 3
    assert outcome.message == UNCERTAIN_MESSAGE
    assert element.calls == ["insert", "native", "clear", "type"]


@pytest.mark.asyncio
async def test_fill_text_raises_when_every_tier_raises():
    with pytest.raises(FillError):
        await fill_text(FakeInput(set(), broken=True), "x")


def test_values_match_tolerates_masks():
    assert values_match("(555) 010-0100", "(555) 010-0100")
    assert values_match("ADA", "ada")
    assert values_match("2024-03-05T00:00", "2024-03-05")
    assert not values_match("", "Ada")
    assert values_match("", "")
    assert not values_match("leftover", "")


def test_typeahead_scoring_order():
    assert score_option("Texas", "texas") == 2.0
    assert score_option("Texas A&M", "Texas") > score_option("North Texas", "Texas")
    assert score_option("Tex", "Texas") > 0
    assert score_option("Ohio", "Texas") == 0.0
    assert best_option_index(["North Texas", "Texas", "Texas A&M"], "Texas") == 1
    assert best_option_index([], "Texas") is None


def test_radio_choice_handles_sentence_options():
    members = [{"label": "Yes, I am authorized", "value": "1"}, {"label": "No, I am not", "value": "0"}]

    assert choose_radio(members, "Yes") == 0
    assert choose_radio(members, "No") == 1
    assert choose_radio(members, "") is None


def test_native_option_matches_value_or_text():
    options = [{"value": "", "text": "Select"}, {"value": "TX", "text": "Texas"}, {"value": "CA", "text": "California"}]

    assert choose_native_option(options, "tx") == 1
    assert choose_native_option(options, "California") == 2
    assert choose_native_option(options, "Calif") == 2


def test_multiselect_helpers():
    assert split_values("Epic, Cerner, ") == ["Epic", "Cerner"]
    assert split_values(["Epic", " "]) == ["Epic"]
    assert chip_exists(["epic systems"], "Epic")


def test_rich_text_paragraphs_are_escaped():
    assert to_paragraph_html("Hello <team>\n\nThanks") == "<p>Hello &lt;team&gt;</p><p><br></p><p>Thanks</p>"


def test_date_parts():
    parts = split_parts("2024-03-05")

    assert parts["monthPadded"] == "03"
    assert parts["monthName"] == "March"
    assert parts["year"] == 2024
    with pytest.raises(ValueError):
        split_parts("someday")


def test_conditional_dependents_only_for_trigger_value():
    assert reveals_dependents("Do you have a DEA registration?", "Yes") is not None
    assert reveals_dependents("Do you have a DEA registration?", "No") is None
    assert reveals_dependents("Are you legally authorized to work?", "Yes") is None
    assert reveals_dependents("First name", "Yes") is None


def test_skip_rules():
    ready = MappedField(value="Ada", status="ready")
    prefilled = MappedField(value="Ada", status="ready", current_value="Bob")
    checkbox = MappedField(value="Yes", status="ready", current_value="on", fill_method="checkbox")

    assert skip_reason(ready, overwrite=False) is None
    assert skip_reason(MappedField(status="no_data"), overwrite=True) == "No profile data"
    assert skip_reason(MappedField(status="ambiguous"), overwrite=True) == "Ambiguous match"
    assert skip_reason(prefilled, overwrite=False) == "Already has value"
    assert skip_reason(prefilled, overwrite=True) is None
    assert skip_reason(checkbox, overwrite=False) is None


def test_sort_for_fill_is_stable_by_method():
    fields = [
        MappedField(label="a", fill_method="select"),
        MappedField(label="b", fill_method="text"),
        MappedField(label="c", fill_method="file"),
        MappedField(label="d", fill_method="text"),
        MappedField(label="e", fill_method="date"),
    ]

    assert [item.label for item in sort_for_fill(fields)] == ["b", "d", "e", "a", "c"]


class RecordingHandler:
    def __init__(self) -> None:
        self.filled: List[str] = []

    async def fill_field(self, page: Any, field: MappedField, ctx: FillContext) -> Optional[bool]:
        self.filled.append(field.label)
        return field.label != "Phone"


@pytest.mark.asyncio
async def test_executor_reports_each_field_once():
    recorder = RecordingHandler()
    handler = PlatformHandler(name="Test", detect=lambda info: True, fill_field=recorder.fill_field)
    ctx = FillContext(profile=CandidateProfile(), settings=Settings(fill_speed="fast"))
    executor = FillExecutor(page=None, ctx=ctx, handler=handler)
    fields = [
        MappedField(element=object(), label="Email", value="ada@example.com", status="ready", rect=Rect(0, 10)),
        MappedField(element=object(), label="Phone", value="555", status="ready", rect=Rect(0, 50)),
        MappedField(element=object(), label="Middle", status="no_data", rect=Rect(0, 90)),
        MappedField(element=object(), label="Why us?", status="needs_ai", fill_method="ai_generate"),
        MappedField(element=object(), label="Resume", status="needs_file", fill_method="file"),
        # same element as "Email" seen twice in one pass
        MappedField(element=object(), label="Email", value="ada@example.com", status="ready", rect=Rect(0, 10)),
    ]

    result = await executor.fill_fields(fields)

    assert result.total == 6
    assert result.filled == 1
    assert result.failed == 1
    assert result.skipped == 2
    assert result.needs_ai == 1
    assert result.needs_file == 1
    assert recorder.filled == ["Email", "Phone"]
    statuses = {(detail.field, detail.status) for detail in result.details}
    assert ("Why us?", "needs_review") in statuses
    assert ("Middle", "skipped") in statuses


@pytest.mark.asyncio
async def test_executor_stops_when_cancelled():
    recorder = RecordingHandler()
    handler = PlatformHandler(name="Test", detect=lambda info: True, fill_field=recorder.fill_field)
    ctx = FillContext(profile=CandidateProfile(), settings=Settings(fill_speed="fast"))
    ctx.cancel()

    result = await FillExecutor(None, ctx, handler).fill_fields(
        [MappedField(element=object(), label="Email", value="x", status="ready")]
    )

    assert result.filled == 0
    assert recorder.filled == []


@pytest.mark.asyncio
async def test_unverified_date_text_counts_as_filled_with_note():
    handler = PlatformHandler(name="Plain", detect=lambda info: True)
    ctx = FillContext(profile=CandidateProfile(), settings=Settings(fill_speed="fast"))
    executor = FillExecutor(page=None, ctx=ctx, handler=handler)
    field = MappedField(
        element=FakeInput(set()), label="Start date", value="sometime soon", status="ready", fill_method="date"
    )

    detail = await executor.fill_field(field)

    assert detail.status == "filled"
    assert detail.error == UNCERTAIN_MESSAGE
