from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

import pytest

from applyfill import ai
from applyfill.ai import AIClassificationCache, build_answer_requests, classify_unknown_fields, fill_with_ai
from applyfill.config import Settings
from applyfill.context import FillContext, field_key
from applyfill.errors import APIError, RateLimitError
from applyfill.fill import text as text_module
from applyfill.fill.dom import READ_VALUE_JS
from applyfill.fill.text import INPUT_KIND_JS, INSERT_TEXT_JS
from applyfill.models import ClassifiedField, JobContext, MappedField, Rect
from applyfill.profile import CandidateProfile, Credentials


class StubAPI:
    def __init__(self, classify_response: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None) -> None:
        self.classify_response = classify_response or {}
        self.error = error
        self.classify_calls: List[Dict[str, Any]] = []
        self.answer_calls: List[Any] = []
        self.answers: List[Dict[str, Any]] = []

    @property
    def configured(self) -> bool:
        return True

    async def classify_fields(self, fields: Sequence[Mapping[str, Any]], job: Mapping[str, str] | None = None) -> Dict[str, Any]:
        self.classify_calls.append({"fields": list(fields), "job": job})
        if self.error is not None:
            raise self.error
        return self.classify_response

    async def generate_answer(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        self.answer_calls.append(request)
        if self.error is not None:
            raise self.error
        return self.answers[0]

    async def generate_bulk(self, questions: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        self.answer_calls.append(list(questions))
        if self.error is not None:
            raise self.error
        return self.answers


class Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _ctx(**settings: Any) -> FillContext:
    profile = CandidateProfile(credentials=Credentials(npi_number="1234567890"))
    return FillContext(
        profile=profile,
        settings=Settings(**settings),
        job=JobContext(job_title="Psychiatric NP", employer_name="Mercy Health"),
    )


def _unknown(label: str, name: str, y: float = 0.0) -> ClassifiedField:
    return ClassifiedField(label=label, attributes={"name": name}, rect=Rect(0, y))


def test_cache_entries_expire():
    clock = Clock()
    cache = AIClassificationCache(ttl_seconds=60, clock=clock)
    field = _unknown("Provider #", "prov")

    cache.put("example.org", field, {"identifier": "npi_number", "confidence": 0.9})
    clock.now += 30
    assert cache.get("example.org", field).identifier == "npi_number"
    assert cache.get("other.org", field) is None

    clock.now += 31
    assert cache.get("example.org", field) is None


def test_cache_persists_to_disk(tmp_path):
    path = tmp_path / "ai-cache.json"
    field = _unknown("Provider #", "prov")
    cache = AIClassificationCache(path, clock=Clock())
    cache.put("example.org", field, {"identifier": "npi_number", "profileKey": "npi_number", "confidence": 0.9})
    cache.save()

    reloaded = AIClassificationCache(path, clock=Clock())

    assert reloaded.get("example.org", field).profile_key == "npi_number"


@pytest.mark.asyncio
async def test_remote_classification_is_mapped_and_cached():
    ctx = _ctx()
    fields = [_unknown("Provider #", "prov", 10), _unknown("Favourite colour", "colour", 50)]
    api = StubAPI(
        {
            "classified": [
                {"index": 0, "identifier": "npi_number", "profileKey": "npi_number", "confidence": 0.85},
                {"index": 1, "identifier": "unknown", "confidence": 0.1},
                {"index": 7, "identifier": "email", "confidence": 0.9},
            ]
        }
    )
    cache = AIClassificationCache(clock=Clock())

    mapped = await classify_unknown_fields(fields, ctx, api, cache, "example.org")

    assert [(item.identifier, item.value, item.status) for item in mapped] == [("npi_number", "1234567890", "ready")]
    assert api.classify_calls[0]["job"]["jobTitle"] == "Psychiatric NP"
    assert api.classify_calls[0]["fields"][0]["attributes"]["name"] == "prov"

    again = await classify_unknown_fields(fields[:1], ctx, api, cache, "example.org")

    assert len(api.classify_calls) == 1
    assert again[0].value == "1234567890"


@pytest.mark.asyncio
async def test_question_classification_becomes_ai_generate():
    api = StubAPI({"classified": [{"index": 0, "identifier": "why_us", "confidence": 0.6, "isQuestion": True}]})

    mapped = await classify_unknown_fields([_unknown("Why us", "q")], _ctx(), api, AIClassificationCache(), "x.org")

    assert mapped[0].fill_method == "ai_generate"
    assert mapped[0].status == "needs_ai"


@pytest.mark.asyncio
async def test_remote_failure_keeps_cached_hits():
    clock = Clock()
    cache = AIClassificationCache(clock=clock)
    cached_field = _unknown("Provider #", "prov", 10)
    cache.put("example.org", cached_field, {"identifier": "npi_number", "profileKey": "npi_number", "confidence": 0.9})
    api = StubAPI(error=APIError(500, "boom"))

    mapped = await classify_unknown_fields(
        [cached_field, _unknown("Badge", "badge", 40)], _ctx(), api, cache, "example.org"
    )

    assert [item.identifier for item in mapped] == ["npi_number"]
    assert len(api.classify_calls) == 1


def test_answer_requests_respect_field_limit():
    ctx = _ctx(ai_response_length="detailed")
    fields = [
        MappedField(label="Why us?", ai_question_key="why_us", max_length=200),
        MappedField(label="Tell us about yourself", identifier="open_ended_question"),
    ]

    requests = build_answer_requests(fields, ctx)

    assert [request["maxLength"] for request in requests] == [200, 500]
    assert requests[0]["questionKey"] == "why_us"
    assert requests[1]["questionKey"] == "open_ended_question"
    assert requests[0]["employerName"] == "Mercy Health"


@pytest.mark.asyncio
async def test_rate_limit_marks_every_question():
    api = StubAPI(error=RateLimitError(429, "limit reached"))
    fields = [MappedField(element=object(), label="Why us?"), MappedField(element=object(), label="Goals?")]

    result = await fill_with_ai(fields, _ctx(), api)

    assert result.rate_limited
    assert [detail.status for detail in result.details] == ["rate_limited", "rate_limited"]
    assert result.generated == 0


class AnswerBox:
    def __init__(self) -> None:
        self.value = ""

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script == INPUT_KIND_JS:
            return "plain"
        if script == READ_VALUE_JS:
            return self.value
        if script == INSERT_TEXT_JS:
            self.value = arg
        return True


@pytest.mark.asyncio
async def test_single_answer_is_truncated_and_written(monkeypatch):
    monkeypatch.setattr(ai, "ANSWER_PAUSE_SECONDS", 0)
    monkeypatch.setattr(text_module, "SETTLE_SECONDS", 0)
    box = AnswerBox()
    field = MappedField(element=box, label="Why us?", max_length=12, rect=Rect(5, 500))
    api = StubAPI()
    api.answers = [{"answer": "Because I love community psychiatry", "basedOnStoredResponse": True}]
    ctx = _ctx()

    result = await fill_with_ai([field], ctx, api)

    assert box.value == "Because I lo"
    assert result.stored == 1
    assert result.details[0].status == "stored"
    assert ctx.is_claimed(field_key(field))
    assert api.answer_calls[0]["maxLength"] == 12
