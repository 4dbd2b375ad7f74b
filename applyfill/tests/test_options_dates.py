from __future__ import annotations

from datetime import date

from applyfill.dates import detect_date_format, format_date, month_option_matches, parse_date, to_iso
from applyfill.options import (
    find_best_option,
    humanize_eeo,
    match_dropdown_option,
    matches_degree,
    real_options,
    yes_no,
)


def test_state_abbreviation_matches_full_name_option():
    assert match_dropdown_option("TX", ["Texas", "California"]) == "Texas"
    assert match_dropdown_option("California", ["TX", "CA"]) == "CA"


def test_dropdown_match_prefers_exact_then_substring():
    options = ["Select...", "Yes", "No", "Prefer not to say"]

    assert match_dropdown_option("yes", options) == "Yes"
    assert match_dropdown_option("prefer not", options) == "Prefer not to say"
    assert match_dropdown_option("", options) is None


def test_dropdown_without_reasonable_match_returns_none():
    assert match_dropdown_option("Doctorate", ["Red", "Blue"]) is None


def test_find_best_option_maps_boolean_words():
    options = ["-- Please select --", "Yes, I am authorized", "No, I am not"]

    assert find_best_option("true", options) == "Yes, I am authorized"
    assert find_best_option("0", options) == "No, I am not"
    assert find_best_option(True, options) == "Yes, I am authorized"


def test_real_options_drop_placeholders():
    assert real_options(["Select an option", "", "  ", "--", "Texas"]) == ["Texas"]


def test_degree_matching_understands_abbreviations():
    assert matches_degree("Master's Degree", "Master of Science in Nursing")
    assert matches_degree("Bachelor's", "bachelor")
    assert not matches_degree("High School", "Doctor of Nursing Practice")


def test_yes_no_and_eeo_wording():
    assert yes_no(True) == "Yes"
    assert yes_no(False) == "No"
    assert yes_no(None) == ""
    assert humanize_eeo("prefer_not_to_say", {}) == "Prefer Not To Say"
    assert humanize_eeo("", {}) == ""


def test_parse_date_formats():
    assert parse_date("2024-03-05") == date(2024, 3, 5)
    assert parse_date("3/5/2024") == date(2024, 3, 5)
    assert parse_date("05/03/2024", "DD/MM/YYYY") == date(2024, 3, 5)
    assert parse_date("2024/03/05") == date(2024, 3, 5)
    assert parse_date("03/2024") == date(2024, 3, 1)
    assert parse_date("March 5, 2024") == date(2024, 3, 5)
    assert parse_date("Sept 2020") == date(2020, 9, 1)
    assert parse_date("not a date") is None
    assert parse_date("2024-02-30") is None


def test_format_date_renders_each_format():
    value = "2024-03-05"

    assert format_date(value) == "03/05/2024"
    assert format_date(value, "DD/MM/YYYY") == "05/03/2024"
    assert format_date(value, "M/D/YYYY") == "3/5/2024"
    assert format_date(value, "MMM DD, YYYY") == "Mar 05, 2024"
    assert format_date(value, "YYYY-MM") == "2024-03"
    assert format_date("Present", "YYYY-MM-DD") == "Present"


def test_to_iso_passes_through_unparseable_values():
    assert to_iso("3/5/2024") == "2024-03-05"
    assert to_iso("soon") == "soon"
    assert to_iso(None) == ""


def test_detect_date_format_from_hints():
    assert detect_date_format(["DD/MM/YYYY"]) == "DD/MM/YYYY"
    assert detect_date_format([None, "Format: yyyy-mm-dd"]) == "YYYY-MM-DD"
    assert detect_date_format([]) == "MM/DD/YYYY"


def test_month_option_matching():
    assert month_option_matches("03", 3)
    assert month_option_matches("Mar", 3)
    assert month_option_matches("March", 3)
    assert not month_option_matches("May", 3)
