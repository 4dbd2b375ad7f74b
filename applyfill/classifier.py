"""Semantic classification of scanned form fields.

Each scanned field is scored against ``FIELD_PATTERNS``, a curated table of
identifier → keyword phrases → category. Three kinds of match are recognised:

1. Exact: the normalized text equals a pattern (confidence 1.0).
2. Contains: the pattern appears inside the text; scaled between 0.6 and 0.95
   by how much of the text the pattern covers.
3. Reverse: a short text (>= 3 chars) appears inside a longer pattern.

Label-sourced matches are preferred over attribute-sourced ones, which carry a
0.1 penalty. A mapped ``autocomplete`` token is authoritative at 0.9.
Open-ended questions are detected separately and only for free-text inputs.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import urlparse

from .models import ClassifiedField, ScannedField

UNKNOWN = "unknown"
OPEN_ENDED = "open_ended_question"

STRONG_LABEL_THRESHOLD = 0.7
AUTOCOMPLETE_CONFIDENCE = 0.9
OPEN_ENDED_CONFIDENCE = 0.7
ATTRIBUTE_PENALTY = 0.1
ATTRIBUTE_FLOOR = 0.5
# Patterns this short only match on word boundaries ("to" must not hit "customer").
SHORT_PATTERN_LENGTH = 4


@dataclass(frozen=True, slots=True)
class FieldPattern:
    identifier: str
    patterns: Tuple[str, ...]
    category: str


@dataclass(frozen=True, slots=True)
class Classification:
    identifier: str
    category: str
    confidence: float


FIELD_PATTERNS: Tuple[FieldPattern, ...] = (
    # ----------------------------
    # Personal
    # ----------------------------
    FieldPattern("first_name", ("first name", "first_name", "firstname", "fname", "given name", "legalnamefirstname"), "personal"),
    FieldPattern("last_name", ("last name", "last_name", "lastname", "lname", "surname", "family name", "legalnamelastname"), "personal"),
    FieldPattern("middle_name", ("middle name", "middle initial", "middlename"), "personal"),
    FieldPattern("preferred_name", ("preferred name", "preferred first name", "nickname"), "personal"),
    FieldPattern("full_name", ("full name", "fullname", "your name", "candidate name", "applicant name", "legal name"), "personal"),
    FieldPattern("email", ("email", "e-mail", "email address", "e-mail address"), "personal"),
    FieldPattern("phone", ("phone", "telephone", "mobile", "cell", "phone number", "contact number"), "personal"),
    FieldPattern("address_line1", ("address", "street", "address line 1", "street address", "address1"), "personal"),
    FieldPattern("address_line2", ("address line 2", "apt", "suite", "unit", "address2", "apartment"), "personal"),
    FieldPattern("city", ("city", "town"), "personal"),
    FieldPattern("state", ("state", "province", "region"), "personal"),
    FieldPattern("zip", ("zip", "postal", "zip code", "postal code", "zipcode"), "personal"),
    FieldPattern("country", ("country", "nation"), "personal"),
    FieldPattern("linkedin", ("linkedin", "linkedin url", "linkedin profile"), "personal"),
    FieldPattern("website", ("website", "portfolio", "personal website"), "personal"),
    # ----------------------------
    # Credentials
    # ----------------------------
    FieldPattern("npi_number", ("npi", "national provider", "npi number", "provider identifier"), "credential"),
    FieldPattern("dea_number", ("dea", "dea number", "dea license", "dea registration"), "credential"),
    FieldPattern("dea_expiration", ("dea expiration", "dea exp"), "credential"),
    FieldPattern(
        "license_number",
        ("license number", "license #", "license no", "rn license", "rn #", "aprn license", "aprn", "advanced practice"),
        "credential",
    ),
    FieldPattern("license_state", ("license state", "state of licensure", "licensing state"), "credential"),
    FieldPattern("license_expiration", ("license expiration", "license exp", "expiration date"), "credential"),
    FieldPattern("certification_number", ("certification number", "cert number", "ancc", "board certification"), "credential"),
    FieldPattern("prescriptive_authority", ("prescriptive authority", "prescribing authority"), "credential"),
    # ----------------------------
    # Education
    # ----------------------------
    FieldPattern("degree", ("degree", "highest degree", "education level", "degree type"), "education"),
    FieldPattern("school", ("school", "university", "college", "institution", "school name"), "education"),
    FieldPattern("graduation_date", ("graduation", "grad date", "date of graduation", "graduation date"), "education"),
    FieldPattern("field_of_study", ("field of study", "major", "program", "specialty", "area of study"), "education"),
    FieldPattern("gpa", ("gpa", "grade point", "grade point average"), "education"),
    # ----------------------------
    # Experience
    # ----------------------------
    FieldPattern("job_title", ("job title", "title", "position", "role", "current title"), "experience"),
    FieldPattern(
        "employer",
        ("employer", "company", "organization", "facility", "company name", "employer name"),
        "experience",
    ),
    FieldPattern("start_date", ("start date", "from date", "date started", "from"), "experience"),
    FieldPattern("end_date", ("end date", "to date", "date ended", "to"), "experience"),
    FieldPattern("supervisor", ("supervisor", "manager", "reporting to", "supervisor name"), "experience"),
    FieldPattern("reason_leaving", ("reason for leaving", "reason left", "why did you leave"), "experience"),
    FieldPattern("years_experience", ("years of experience", "years experience", "total experience"), "experience"),
    FieldPattern("telehealth", ("telehealth", "telemedicine", "virtual care"), "experience"),
    # ----------------------------
    # Screening
    # ----------------------------
    FieldPattern("felony", ("felony", "convicted of a felony", "felony conviction"), "screening"),
    FieldPattern("misdemeanor", ("misdemeanor", "misdemeanor conviction"), "screening"),
    FieldPattern("license_revoked", ("revoked", "suspended", "restricted", "license ever been revoked"), "screening"),
    FieldPattern("malpractice", ("malpractice", "lawsuit", "malpractice claim"), "screening"),
    FieldPattern("background_check", ("background check", "consent to background"), "screening"),
    FieldPattern("drug_screen", ("drug screen", "drug test"), "screening"),
    FieldPattern(
        "work_authorized",
        ("authorized to work", "legally authorized", "work authorization", "eligible to work"),
        "screening",
    ),
    FieldPattern("visa_sponsorship", ("sponsorship", "visa sponsorship", "require sponsorship"), "screening"),
    FieldPattern(
        "salary",
        ("salary", "desired salary", "compensation", "pay rate", "expected salary", "salary expectation"),
        "screening",
    ),
    FieldPattern(
        "start_date_available",
        ("start date", "earliest start", "available date", "when can you start", "availability"),
        "screening",
    ),
    FieldPattern("relocate", ("relocate", "relocation", "willing to relocate"), "screening"),
    FieldPattern("travel", ("willing to travel", "travel required", "travel"), "screening"),
    # ----------------------------
    # EEO
    # ----------------------------
    FieldPattern("veteran", ("veteran", "military", "veteran status"), "eeo"),
    FieldPattern("disability", ("disability", "disabled", "disability status"), "eeo"),
    FieldPattern("race_ethnicity", ("race", "ethnicity", "race/ethnicity", "racial"), "eeo"),
    FieldPattern("gender", ("gender", "sex", "gender identity"), "eeo"),
    # ----------------------------
    # Free text with a stored answer
    # ----------------------------
    FieldPattern("cover_letter", ("cover letter", "covering letter"), "open_ended"),
    FieldPattern("message", ("message", "message to hiring manager", "note to recruiter"), "open_ended"),
    # ----------------------------
    # Documents (file inputs only)
    # ----------------------------
    FieldPattern("resume_upload", ("resume", "cv", "curriculum vitae"), "document"),
    FieldPattern("cover_letter_upload", ("cover letter", "covering letter"), "document"),
    FieldPattern("license_upload", ("upload license", "license document", "attach license"), "document"),
    FieldPattern("certification_upload", ("upload certification", "certification document"), "document"),
    FieldPattern("other_upload", ("upload", "attach", "document", "attachment"), "document"),
)

CATEGORY_BY_IDENTIFIER: Dict[str, str] = {entry.identifier: entry.category for entry in FIELD_PATTERNS}
CATEGORY_BY_IDENTIFIER.update(
    {
        "eeo_gender": "eeo",
        "eeo_race": "eeo",
        "eeo_veteran": "eeo",
        "eeo_disability": "eeo",
        "location": "personal",
        "reference_name": "reference",
        "reference_email": "reference",
        "reference_phone": "reference",
    }
)

OPEN_ENDED_PATTERNS: Tuple[str, ...] = (
    "describe",
    "explain",
    "tell us",
    "why",
    "how do you",
    "what makes you",
    "clinical approach",
    "treatment philosophy",
    "leadership style",
    "career goals",
    "professional development",
    "additional information",
    "cover letter",
    "summary of qualifications",
    "anything else",
    "why are you interested",
    "what experience",
    "strengths",
)

QUESTION_WORDS = ("what", "why", "how", "describe", "explain", "tell", "please", "share", "discuss", "list")

AUTOCOMPLETE_MAP: Dict[str, str] = {
    "given-name": "first_name",
    "family-name": "last_name",
    "additional-name": "middle_name",
    "nickname": "preferred_name",
    "name": "full_name",
    "email": "email",
    "tel": "phone",
    "tel-national": "phone",
    "street-address": "address_line1",
    "address-line1": "address_line1",
    "address-line2": "address_line2",
    "address-level2": "city",
    "address-level1": "state",
    "postal-code": "zip",
    "country": "country",
    "country-name": "country",
    "organization": "employer",
    "organization-title": "job_title",
    "url": "website",
}

CLASSIFIER_ATTRIBUTES: Sequence[str] = (
    "name",
    "id",
    "placeholder",
    "aria-label",
    "data-automation-id",
    "data-test",
    "data-testid",
    "data-qa",
    "autocomplete",
)

KNOWN_ATS_HOSTS: Sequence[str] = (
    "greenhouse.io",
    "lever.co",
    "ashbyhq.com",
    "smartrecruiters.com",
    "myworkdayjobs.com",
    "myworkday.com",
    "icims.com",
    "taleo.net",
    "adp.com",
    "indeed.com",
    "bamboohr.com",
    "jobvite.com",
    "workable.com",
)

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize(text: Optional[str]) -> str:
    """Lowercase, drop punctuation, collapse whitespace."""

    if not text:
        return ""
    lowered = _NON_ALNUM.sub(" ", str(text).lower())
    return _WHITESPACE.sub(" ", lowered).strip()


def _contains(text: str, pattern: str) -> bool:
    if len(pattern) <= SHORT_PATTERN_LENGTH:
        return f" {pattern} " in f" {text} "
    return pattern in text


def match_patterns(text: Optional[str], patterns: Iterable[str]) -> float:
    """Score ``text`` against a pattern list, returning the best confidence.

    Parameters
    ----------
    text:
        Raw label or attribute value.
    patterns:
        Keyword phrases for one identifier.

    Returns
    -------
    float
        1.0 for an exact match, otherwise the best contains/reverse score, or
        0.0 when nothing matched.
    """

    normalized = normalize(text)
    if not normalized:
        return 0.0

    best = 0.0
    for raw in patterns:
        pattern = normalize(raw)
        if not pattern:
            continue
        if normalized == pattern:
            return 1.0
        if _contains(normalized, pattern):
            score = min(0.95, 0.6 + (len(pattern) / len(normalized)) * 0.35)
        elif len(normalized) >= 3 and _contains(pattern, normalized):
            score = 0.4 + (len(normalized) / len(pattern)) * 0.3
        else:
            continue
        best = max(best, score)
    return best


def _candidate_patterns(field: ScannedField) -> Iterable[FieldPattern]:
    is_file = field.field_type == "file"
    for entry in FIELD_PATTERNS:
        if (entry.category == "document") != is_file:
            continue
        yield entry


def _best_match(text: str, field: ScannedField) -> Optional[Classification]:
    best: Optional[Classification] = None
    for entry in _candidate_patterns(field):
        score = match_patterns(text, entry.patterns)
        if score > 0 and (best is None or score > best.confidence):
            best = Classification(entry.identifier, entry.category, score)
    return best


def _attribute_match(field: ScannedField) -> Optional[Classification]:
    best: Optional[Classification] = None
    for attribute in CLASSIFIER_ATTRIBUTES:
        if attribute == "placeholder":
            value = field.placeholder or field.attributes.get("placeholder", "")
        else:
            value = field.attributes.get(attribute, "")
        if not value:
            continue
        match = _best_match(value, field)
        if match is None:
            continue
        penalized = max(ATTRIBUTE_FLOOR, match.confidence - ATTRIBUTE_PENALTY)
        if best is None or penalized > best.confidence:
            best = Classification(match.identifier, match.category, penalized)
    return best


def _autocomplete_match(field: ScannedField) -> Optional[Classification]:
    token = (field.attributes.get("autocomplete") or "").strip().lower()
    if not token or token in {"on", "off"}:
        return None
    # Section/contact prefixes ("shipping given-name") precede the field token.
    identifier = AUTOCOMPLETE_MAP.get(token.split()[-1])
    if identifier is None:
        return None
    return Classification(identifier, CATEGORY_BY_IDENTIFIER.get(identifier, "personal"), AUTOCOMPLETE_CONFIDENCE)


def _has_question_indicator(text: str) -> bool:
    if "?" in text:
        return True
    first_word = normalize(text).split(" ", 1)[0]
    return first_word in QUESTION_WORDS


def detect_open_ended(field: ScannedField) -> bool:
    """Return True when a free-text field asks for a written answer.

    Textareas need one signal (curated phrasing, question indicator, or a
    label over 20 words). Single-line inputs need a question indicator with at
    least 6 words, or a label over 20 words.
    """

    if not field.is_free_text:
        return False
    text = field.label or field.placeholder or field.attributes.get("aria-label", "")
    if not text:
        return False

    normalized = normalize(text)
    word_count = len(normalized.split())
    has_phrase = any(_contains(normalized, normalize(p)) for p in OPEN_ENDED_PATTERNS)
    has_question = _has_question_indicator(text)
    is_long = word_count > 20

    multiline = field.field_type in {"textarea", "contenteditable"}
    if multiline and (field.max_length is None or field.max_length == 0 or field.max_length > 100):
        return has_phrase or has_question or is_long
    return (has_question and word_count >= 6) or is_long


def classify(field: ScannedField) -> Classification:
    """Classify one scanned field. Pure and order-independent."""

    label_match = _best_match(field.label, field) if field.label else None
    if label_match is not None and label_match.confidence > STRONG_LABEL_THRESHOLD:
        return label_match

    autocomplete = _autocomplete_match(field)
    if autocomplete is not None and field.field_type != "file":
        return autocomplete

    attribute_match = _attribute_match(field)
    if attribute_match is not None and (
        label_match is None or attribute_match.confidence > label_match.confidence
    ):
        return attribute_match

    if detect_open_ended(field):
        return Classification(OPEN_ENDED, "open_ended", OPEN_ENDED_CONFIDENCE)

    if label_match is not None:
        return label_match
    return Classification(UNKNOWN, UNKNOWN, 0.0)


def classify_field(field: ScannedField) -> ClassifiedField:
    result = classify(field)
    return ClassifiedField.from_scanned(
        field,
        identifier=result.identifier,
        category=result.category,
        confidence=round(result.confidence, 4),
        is_open_ended=result.identifier == OPEN_ENDED,
    )


def classify_fields(fields: Iterable[ScannedField]) -> List[ClassifiedField]:
    return [classify_field(field) for field in fields]


def is_known_ats_url(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return any(host == suffix or host.endswith("." + suffix) for suffix in KNOWN_ATS_HOSTS)


def is_application_page(url: str, fields: Sequence[ClassifiedField]) -> bool:
    """Heuristic check that a page hosts a job application form."""

    if is_known_ats_url(url):
        return True
    if len(fields) < 3:
        return False
    has_personal = any(f.category == "personal" and f.confidence > 0.5 for f in fields)
    confident = sum(1 for f in fields if f.confidence > 0.3)
    return has_personal and confident >= 3


def summarize(fields: Iterable[ClassifiedField]) -> Mapping[str, int]:
    """Count classified fields per category, for reporting."""

    counts: Dict[str, int] = {}
    for field in fields:
        counts[field.category] = counts.get(field.category, 0) + 1
    return counts
