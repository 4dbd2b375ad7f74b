from __future__ import annotations

import pytest

from applyfill.classifier import (
    OPEN_ENDED,
    classify,
    classify_field,
    detect_open_ended,
    is_application_page,
    match_patterns,
    summarize,
)
from applyfill.models import ScannedField


def test_label_exact_match_wins():
    field = ScannedField(tag="input", field_type="text", label="First Name", attributes={"name": "q1"})

    result = classify(field)

    assert result.identifier == "first_name"
    assert result.category == "personal"
    assert result.confidence == pytest.approx(1.0)


def test_classification_is_repeatable():
    field = ScannedField(tag="input", field_type="text", label="State of Licensure")

    first = classify(field)
    second = classify(field)

    assert first == second
    assert first.identifier == "license_state"


def test_long_question_textarea_becomes_open_ended():
    field = ScannedField(
        tag="textarea",
        field_type="textarea",
        label="Describe your clinical approach to medication management",
    )

    classified = classify_field(field)

    assert classified.identifier == OPEN_ENDED
    assert classified.category == "open_ended"
    assert classified.confidence == pytest.approx(0.7)
    assert classified.is_open_ended


def test_autocomplete_beats_weak_label():
    field = ScannedField(tag="input", field_type="text", label="", attributes={"autocomplete": "shipping given-name"})

    result = classify(field)

    assert result.identifier == "first_name"
    assert result.confidence == pytest.approx(0.9)


def test_autocomplete_checked_before_other_attributes():
    field = ScannedField(tag="input", field_type="text", attributes={"autocomplete": "tel", "name": "email"})

    result = classify(field)

    assert result.identifier == "phone"
    assert result.confidence == pytest.approx(0.9)


def test_attribute_match_is_penalized():
    field = ScannedField(tag="input", field_type="email", attributes={"name": "email"})

    result = classify(field)

    assert result.identifier == "email"
    assert result.confidence == pytest.approx(0.9)


def test_unlabelled_field_is_unknown():
    result = classify(ScannedField(tag="input", field_type="text"))

    assert result.identifier == "unknown"
    assert result.confidence == 0.0


def test_short_patterns_need_word_boundaries():
    # "to" must not match inside "total"
    assert match_patterns("Total", ("to",)) == 0.0
    assert match_patterns("From / To", ("to",)) > 0.6


def test_match_patterns_scores_contains_below_exact():
    exact = match_patterns("Email Address", ("email address",))
    contains = match_patterns("Your primary email address", ("email address",))

    assert exact == pytest.approx(1.0)
    assert 0.6 < contains < 0.95


def test_file_inputs_only_match_document_patterns():
    field = ScannedField(tag="input", field_type="file", label="Resume/CV")

    result = classify(field)

    assert result.identifier == "resume_upload"
    assert result.category == "document"


def test_short_single_line_question_is_not_open_ended():
    field = ScannedField(tag="input", field_type="text", label="Why?")

    assert not detect_open_ended(field)


def test_application_page_heuristic():
    fields = [
        classify_field(ScannedField(label="First Name")),
        classify_field(ScannedField(label="Last Name")),
        classify_field(ScannedField(label="Email")),
    ]

    assert is_application_page("https://example.org/careers/apply", fields)
    assert is_application_page("https://boards.greenhouse.io/acme/jobs/1", [])
    assert not is_application_page("https://example.org/blog", fields[:1])
    assert summarize(fields) == {"personal": 3}
