from __future__ import annotations

import json
from typing import Any, Callable, List

import httpx
import pytest

from applyfill.api import BULK_ENDPOINT, CLASSIFY_ENDPOINT, TRACK_ENDPOINT, AutofillAPI
from applyfill.config import Settings, get_settings
from applyfill.documents import download_document, find_matching_document, is_plausible_document
from applyfill.errors import APIError, AuthenticationError, DocumentFetchError, ProfileUnavailableError, RateLimitError
from applyfill.profile import CandidateProfile, Document, ProfileMeta, ProfileClient, load_profile_file, readiness_issues

PROFILE_PAYLOAD = {
    "profile": {
        "personal": {
            "firstName": "Ada",
            "lastName": "Lovelace",
            "email": "ada@example.com",
            "phone": "555-0100",
            "address": {"city": "Austin", "state": "TX"},
            "yearsExperience": "8",
        },
        "eeo": {"workAuthorized": True, "requiresSponsorship": False},
        "credentials": {"licenses": [{"licenseType": "APRN", "licenseState": "TX", "status": "active"}]},
        "education": [{"degreeType": "MSN", "schoolName": "Vanderbilt", "isHighestDegree": True}],
        "workExperience": [{"jobTitle": "PMHNP", "employerName": "Mercy", "isCurrent": True}],
        "screeningAnswers": {"background": {"felony_conviction": {"answer": False}}},
    }
}


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _settings(**overrides: Any) -> Settings:
    values = {"api_base_url": "https://api.example.com/", "api_token": "secret"}
    values.update(overrides)
    return Settings(**values)


@pytest.mark.asyncio
async def test_classify_posts_fields_with_bearer_token():
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"classified": [], "resumeUsed": False})

    api = AutofillAPI(_settings(), http_client=_client(handler))

    data = await api.classify_fields([{"label": "Badge"}], {"jobTitle": "NP", "employerName": ""})

    assert data == {"classified": [], "resumeUsed": False}
    request = seen[0]
    assert str(request.url) == "https://api.example.com" + CLASSIFY_ENDPOINT
    assert request.headers["Authorization"] == "Bearer secret"
    body = json.loads(request.content)
    assert body == {"fields": [{"label": "Badge"}], "jobTitle": "NP"}


@pytest.mark.asyncio
async def test_status_codes_map_to_errors():
    statuses = iter([429, 401, 500])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(next(statuses), json={"error": "nope"})

    api = AutofillAPI(_settings(), http_client=_client(handler))

    with pytest.raises(RateLimitError) as limited:
        await api.generate_answer({"questionText": "Why us?"})
    assert limited.value.status == 429
    assert limited.value.message == "nope"
    with pytest.raises(AuthenticationError):
        await api.usage()
    with pytest.raises(APIError) as failed:
        await api.generate_answer({"questionText": "Why us?"})
    assert failed.value.status == 500


@pytest.mark.asyncio
async def test_bulk_answers_and_tracking_failures():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == BULK_ENDPOINT:
            return httpx.Response(200, json={"answers": [{"answer": "A"}, {"answer": "B"}]})
        if request.url.path == TRACK_ENDPOINT:
            return httpx.Response(503, text="")
        return httpx.Response(404)

    api = AutofillAPI(_settings(), http_client=_client(handler))

    answers = await api.generate_bulk([{"questionText": "1"}, {"questionText": "2"}])
    await api.track("https://jobs.example.com/1", "Lever", 12)

    assert [item["answer"] for item in answers] == ["A", "B"]


def test_unconfigured_api():
    assert not AutofillAPI(_settings(api_token=None)).configured


@pytest.mark.asyncio
async def test_profile_client_caches_until_ttl():
    calls: List[httpx.Request] = []
    now = [0.0]

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=PROFILE_PAYLOAD)

    client = ProfileClient(_settings(profile_cache_ttl_seconds=60), http_client=_client(handler), clock=lambda: now[0])

    profile = await client.fetch()
    again = await client.fetch()
    now[0] = 61.0
    await client.fetch()

    assert again is profile
    assert len(calls) == 2
    assert calls[0].url.path == "/api/profile/export"
    assert profile.full_name == "Ada Lovelace"
    assert profile.personal.years_experience == 8
    assert profile.credentials.licenses[0].license_type == "APRN"
    assert profile.screening_answers.lookup("felony_conviction").answer is False
    assert profile.current_job.is_current


@pytest.mark.asyncio
async def test_profile_client_errors():
    with pytest.raises(ProfileUnavailableError):
        await ProfileClient(_settings(api_token=None)).fetch()

    unauthorized = ProfileClient(_settings(), http_client=_client(lambda request: httpx.Response(401)))
    with pytest.raises(AuthenticationError):
        await unauthorized.fetch()

    broken = ProfileClient(_settings(), http_client=_client(lambda request: httpx.Response(502)))
    with pytest.raises(ProfileUnavailableError):
        await broken.fetch()


def test_profile_file_and_readiness(tmp_path):
    path = tmp_path / "profile.json"
    path.write_text(json.dumps(PROFILE_PAYLOAD["profile"]), encoding="utf-8")

    profile = load_profile_file(path)

    assert profile.personal.address.city == "Austin"
    assert readiness_issues(profile) == []
    assert readiness_issues(CandidateProfile()) == [
        "missing name",
        "missing email",
        "missing phone",
        "no education entries",
        "no work experience entries",
    ]


def test_resume_falls_back_to_meta_url():
    profile = CandidateProfile(meta=ProfileMeta(resume_url="https://files.example.com/u/ada-cv.pdf"))

    document = find_matching_document(profile, "resume")

    assert document.file_name == "ada-cv.pdf"
    assert find_matching_document(profile, "license") is None


@pytest.mark.asyncio
async def test_download_validates_document_bodies():
    pdf = b"%PDF-1.7" + b"0" * 4096

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("good.pdf"):
            return httpx.Response(200, content=pdf, headers={"content-type": "application/pdf"})
        return httpx.Response(200, content=b"<html>login</html>" * 100, headers={"content-type": "text/html"})

    async with _client(handler) as client:
        downloaded = await download_document(
            Document(document_type="resume", file_url="https://files.example.com/good.pdf"), client=client
        )
        with pytest.raises(DocumentFetchError):
            await download_document(
                Document(document_type="resume", file_url="https://files.example.com/expired.pdf"), client=client
            )

    assert downloaded.name == "good.pdf"
    assert downloaded.mime_type == "application/pdf"
    assert not is_plausible_document(b"tiny", "application/pdf")


def test_settings_derived_values():
    assert Settings(fill_speed="careful").fill_delay_seconds == pytest.approx(0.15)
    assert Settings(fill_speed="bogus").fill_delay_seconds == pytest.approx(0.05)
    assert Settings(ai_response_length="brief").ai_max_length == 150
    assert Settings(ai_response_length="whatever").ai_max_length == 300
    assert get_settings() is get_settings()
