from __future__ import annotations

from datetime import date

import pytest

from applyfill.classifier import classify_field
from applyfill.config import Settings
from applyfill.context import FillContext
from applyfill.mapper import find_best_license, license_context, map_field, map_fields, years_of_experience
from applyfill.models import ClassifiedField, ScannedField
from applyfill.profile import (
    CandidateProfile,
    Credentials,
    Document,
    License,
    PersonalInfo,
    WorkExperienceEntry,
)


def _ctx(profile: CandidateProfile, **settings) -> FillContext:
    return FillContext(profile=profile, settings=Settings(**settings), today=date(2025, 6, 1))


def _profile_with_licenses(*licenses: License) -> CandidateProfile:
    return CandidateProfile(credentials=Credentials(licenses=list(licenses)))


def test_license_state_select_maps_abbreviation_to_option():
    profile = _profile_with_licenses(License(license_type="RN", license_state="TX", status="active"))
    field = classify_field(
        ScannedField(tag="select", field_type="select", label="State of Licensure", options=["Texas", "California"])
    )

    mapped = map_field(field, profile, _ctx(profile))

    assert mapped.identifier == "license_state"
    assert mapped.value == "Texas"
    assert mapped.fill_method == "select"
    assert mapped.status == "ready"


def test_no_licenses_means_no_data():
    profile = CandidateProfile()
    field = classify_field(ScannedField(label="License Number"))

    mapped = map_field(field, profile, _ctx(profile))

    assert mapped.identifier == "license_number"
    assert mapped.value == ""
    assert mapped.status == "no_data"


def test_current_job_has_no_end_date():
    profile = CandidateProfile(
        work_experience=[WorkExperienceEntry(employer_name="Mercy", start_date="2019-04-01", is_current=True)]
    )
    field = ClassifiedField(label="End Date", identifier="end_date", category="experience", confidence=1.0)

    mapped = map_field(field, profile, _ctx(profile))

    assert mapped.value == ""
    assert mapped.status == "no_data"
    assert mapped.fill_method == "date"


def test_unanswered_consent_question_defaults_to_yes():
    profile = CandidateProfile()
    field = ClassifiedField(
        field_type="radio",
        label="Do you consent to a background check?",
        options=["Yes", "No"],
        identifier="background_check",
        category="screening",
        confidence=0.9,
    )

    mapped = map_field(field, profile, _ctx(profile, screening_defaults=True))

    assert mapped.value == "Yes"
    assert mapped.confidence == pytest.approx(0.7)
    assert mapped.status == "ready"


def test_screening_defaults_can_be_disabled():
    profile = CandidateProfile()
    field = ClassifiedField(
        field_type="radio",
        label="Have you ever been convicted of a felony?",
        options=["Yes", "No"],
        identifier="felony",
        category="screening",
        confidence=0.9,
    )

    enabled = map_field(field, profile, _ctx(profile, screening_defaults=True))
    disabled = map_field(field, profile, _ctx(profile, screening_defaults=False))

    assert enabled.value == "No"
    assert disabled.value == ""
    assert disabled.status == "no_data"


def test_open_ended_question_needs_ai():
    profile = CandidateProfile()
    field = classify_field(
        ScannedField(
            tag="textarea",
            field_type="textarea",
            label="Describe your clinical approach to medication management",
        )
    )

    mapped = map_field(field, profile, _ctx(profile))

    assert mapped.fill_method == "ai_generate"
    assert mapped.status == "needs_ai"
    assert mapped.requires_ai
    assert mapped.ai_question_key == "describe_your_clinical_approach_to_medication_management"


def test_low_confidence_unknown_needs_ai():
    profile = CandidateProfile()

    mapped = map_field(ClassifiedField(label="Badge ID"), profile, _ctx(profile))

    assert mapped.status == "needs_ai"
    assert mapped.fill_method == "text"


def test_file_field_points_at_stored_document():
    profile = CandidateProfile(
        documents=[Document(document_type="resume", file_url="https://files.example.com/cv.pdf", file_name="cv.pdf")]
    )
    field = classify_field(ScannedField(field_type="file", label="Resume"))

    mapped = map_field(field, profile, _ctx(profile))

    assert mapped.status == "needs_file"
    assert mapped.document_type == "resume"
    assert mapped.value == "https://files.example.com/cv.pdf"


def test_map_fields_preserves_order_and_length():
    profile = CandidateProfile(personal=PersonalInfo(first_name="Ada", last_name="Lovelace", email="ada@example.com"))
    fields = [classify_field(ScannedField(label=label)) for label in ("Email", "First Name", "Last Name")]

    mapped = map_fields(fields, profile, _ctx(profile))

    assert [item.value for item in mapped] == ["ada@example.com", "Ada", "Lovelace"]
    assert all(item.status == "ready" for item in mapped)


def test_find_best_license_prefers_active_advanced():
    licenses = [
        License(license_type="RN", license_state="TX", status="active"),
        License(license_type="APRN", license_state="TX", status="expired"),
        License(license_type="APRN", license_state="TX", status="active"),
        License(license_type="RN", license_state="CA", status="active"),
    ]

    assert find_best_license(licenses, "Texas") is licenses[2]
    assert find_best_license(licenses, "CA") is licenses[3]
    # A filter that matches nothing does not narrow the candidates.
    assert find_best_license(licenses, "NY", "CRNA") is licenses[2]
    assert find_best_license([]) is None


def test_license_context_reads_state_and_type():
    assert license_context("Texas RN License Number") == {"state": "TX", "type": "RN"}
    assert license_context("License number") == {"state": None, "type": None}


def test_years_of_experience_from_earliest_start():
    profile = CandidateProfile(
        work_experience=[
            WorkExperienceEntry(start_date="2018-01-15"),
            WorkExperienceEntry(start_date="2015-03-01"),
        ]
    )

    assert years_of_experience(profile, date(2025, 6, 1)) == 10
    assert years_of_experience(CandidateProfile(personal=PersonalInfo(years_experience=8))) == 8
    assert years_of_experience(CandidateProfile()) is None
