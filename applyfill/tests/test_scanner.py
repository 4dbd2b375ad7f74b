from __future__ import annotations

from typing import Any, Dict

from applyfill.scanner import (
    SEEN_MARKER,
    _same_origin,
    build_fields,
    field_snapshot_key,
    is_fillable,
    resolve_label,
    unseen_fields,
)


def _descriptor(**overrides: Any) -> Dict[str, Any]:
    descriptor: Dict[str, Any] = {
        "type": "text",
        "tag": "input",
        "labels": {},
        "attributes": {},
        "options": [],
        "value": "",
        "checked": False,
        "groupLabel": "",
        "placeholder": "",
        "required": False,
        "visible": True,
        "rect": {"x": 10, "y": 100, "width": 200, "height": 30},
        "maxLength": None,
    }
    descriptor.update(overrides)
    return descriptor


def test_explicit_label_beats_aria_and_proximity():
    label = resolve_label({"explicit": "Email", "aria": "Contact email", "sibling": "Email address"})

    assert label == "Email"


def test_long_proximity_text_is_not_a_label():
    paragraph = "Please read the following instructions carefully " * 3

    assert resolve_label({"sibling": paragraph, "container": "Phone"}) == "Phone"
    assert resolve_label({"sibling": paragraph}) == ""


def test_aria_label_is_not_length_bounded():
    text = "x" * 150

    assert resolve_label({"aria": text}) == text


def test_hidden_and_zero_size_fields_are_skipped():
    assert not is_fillable(_descriptor(type="hidden"))
    assert not is_fillable(_descriptor(visible=False))
    assert not is_fillable(_descriptor(rect={"x": 0, "y": 0, "width": 0, "height": 20}))
    assert is_fillable(_descriptor())


def test_radio_group_collapses_into_one_field():
    descriptors = [
        _descriptor(
            type="radio",
            labels={"wrapping": "Yes"},
            attributes={"name": "authorized", "value": "yes"},
            groupLabel="Are you authorized to work in the US?",
        ),
        _descriptor(
            type="radio",
            labels={"wrapping": "No"},
            attributes={"name": "authorized", "value": "no"},
            groupLabel="Are you authorized to work in the US?",
            checked=True,
        ),
    ]

    fields = build_fields(descriptors, ["yes-handle", "no-handle"])

    assert len(fields) == 1
    group = fields[0]
    assert group.label == "Are you authorized to work in the US?"
    assert group.options == ["Yes", "No"]
    assert group.current_value == "No"
    assert group.element == "yes-handle"


def test_select_placeholder_options_are_dropped():
    fields = build_fields(
        [
            _descriptor(
                type="select",
                tag="select",
                labels={"explicit": "State"},
                options=["Select...", "Texas", "California"],
                value="Select...",
            )
        ]
    )

    assert fields[0].options == ["Texas", "California"]
    assert fields[0].current_value == ""


def test_unseen_fields_and_snapshot_key():
    fields = build_fields(
        [
            _descriptor(attributes={"name": "school_0", SEEN_MARKER: "1"}),
            _descriptor(attributes={"name": "school_1"}, rect={"x": 10, "y": 300, "width": 200, "height": 30}),
        ]
    )

    fresh = unseen_fields(fields)

    assert [field.name for field in fresh] == ["school_1"]
    assert field_snapshot_key(reversed(fields)) == field_snapshot_key(fields)


def test_iframe_fields_keep_their_origin():
    fields = build_fields([_descriptor()], frame_url="https://forms.example.com/apply", from_iframe=True)

    assert fields[0].from_iframe
    assert fields[0].frame_url == "https://forms.example.com/apply"
    assert _same_origin("https://example.com/a", "https://example.com/b")
    assert not _same_origin("https://forms.example.com/a", "https://example.com/b")
