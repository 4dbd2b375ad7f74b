from __future__ import annotations

from typing import Any, Dict, List

import pytest

from applyfill.context import FillContext, element_key
from applyfill.profile import (
    CandidateProfile,
    Credentials,
    EEOInfo,
    License,
    PersonalInfo,
    Preferences,
    ScreeningAnswers,
    ScreeningResponse,
)
from applyfill.screening import (
    CLICK_ANSWER_JS,
    COLLECT_QUESTIONS_JS,
    dedupe_questions,
    fill_screening_questions,
    pick_nearest_input,
    resolve_screening_answer,
)


def test_years_of_experience_question_is_text():
    profile = CandidateProfile(personal=PersonalInfo(years_experience=8))

    answer = resolve_screening_answer("Years of clinical experience", profile)

    assert (answer.answer, answer.field, answer.interaction) == ("8", "years_experience", "text")


def test_unmatched_question_is_unknown():
    answer = resolve_screening_answer("What is your favourite colour?", CandidateProfile())

    assert answer.field == "unknown"
    assert answer.answer is None


def test_rule_order_decides_field_even_without_answer():
    answer = resolve_screening_answer("Have you ever had a felony conviction?", CandidateProfile())

    assert answer.field == "felony"
    assert answer.interaction == "radio"
    assert answer.answer is None


def test_stored_answers_and_profile_facts():
    profile = CandidateProfile(
        eeo=EEOInfo(work_authorized=True, requires_sponsorship=False),
        credentials=Credentials(licenses=[License(license_type="RN", license_state="TX")]),
        personal=PersonalInfo(specialties=["Child & Adolescent Psychiatry"]),
        preferences=Preferences(desired_salary_min=125000.0, available_date="2025-07-01"),
        screening_answers=ScreeningAnswers(
            background={"consent_background_check": ScreeningResponse(answer=True)},
        ),
    )

    def answer(text: str) -> Any:
        return resolve_screening_answer(text, profile).answer

    assert answer("Are you legally authorized to work in the United States?") == "Yes"
    assert answer("Do you hold an active nursing license?") == "Yes"
    assert answer("Do you have experience treating children or adolescents?") == "Yes"
    assert answer("Will you now or in the future require sponsorship?") == "No"
    assert answer("Do you consent to a background check?") == "Yes"
    assert answer("What are your salary expectations?") == "125000"
    assert answer("What is your earliest available start date?") == "2025-07-01"


def test_duplicate_question_text_is_collapsed():
    blocks = [
        {"text": "Are you authorized to work?", "y": 100},
        {"text": "Are you authorized to work?", "y": 112},
        {"text": "Are you authorized to work?", "y": 400},
        {"text": "Years of experience", "y": 105},
    ]

    questions = dedupe_questions(blocks)

    assert [(item.text, item.y) for item in questions] == [
        ("Are you authorized to work?", 100.0),
        ("Are you authorized to work?", 400.0),
        ("Years of experience", 105.0),
    ]


def test_nearest_input_skips_standard_filled_and_claimed():
    ctx = FillContext(profile=CandidateProfile())
    candidates: List[Dict[str, Any]] = [
        {"tag": "input", "name": "email", "id": "", "ariaLabel": "", "value": "", "x": 0, "y": 110},
        {"tag": "input", "name": "q_1", "id": "", "ariaLabel": "", "value": "5", "x": 0, "y": 115},
        {"tag": "input", "name": "q_2", "id": "", "ariaLabel": "", "value": "", "x": 0, "y": 120},
        {"tag": "input", "name": "q_3", "id": "", "ariaLabel": "", "value": "", "x": 0, "y": 150},
        {"tag": "input", "name": "q_0", "id": "", "ariaLabel": "", "value": "", "x": 0, "y": 90},
        {"tag": "input", "name": "q_far", "id": "", "ariaLabel": "", "value": "", "x": 0, "y": 400},
    ]
    ctx.claim(element_key("input", "", "q_2", 0, 120))

    assert pick_nearest_input(candidates, 100, ctx) == 3
    assert pick_nearest_input(candidates, 450, ctx) is None


class ScreeningPage:
    def __init__(self, blocks: List[Dict[str, Any]]) -> None:
        self.blocks = blocks
        self.clicks: List[Dict[str, Any]] = []

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script == COLLECT_QUESTIONS_JS:
            return self.blocks
        if script == CLICK_ANSWER_JS:
            self.clicks.append(arg)
            return True
        raise AssertionError("unexpected script")


@pytest.mark.asyncio
async def test_radio_questions_are_clicked_once():
    profile = CandidateProfile(eeo=EEOInfo(work_authorized=True))
    ctx = FillContext(profile=profile)
    page = ScreeningPage(
        [
            {"text": "Are you legally authorized to work in the US?", "y": 200},
            {"text": "Are you legally authorized to work in the US?", "y": 210},
            {"text": "Have you ever been convicted of a felony?", "y": 500},
        ]
    )

    answered = await fill_screening_questions(page, ctx)

    assert answered == 1
    assert [click["answer"] for click in page.clicks] == ["Yes"]
    assert page.clicks[0]["y"] == 200
    assert ctx.near_answered(220)


@pytest.mark.asyncio
async def test_questions_near_answered_positions_are_skipped():
    ctx = FillContext(profile=CandidateProfile(eeo=EEOInfo(work_authorized=True)))
    ctx.mark_answered(195)
    page = ScreeningPage([{"text": "Are you legally authorized to work in the US?", "y": 200}])

    assert await fill_screening_questions(page, ctx) == 0
    assert page.clicks == []
