"""Resolve profile values for classified fields and choose a fill strategy.

``map_field`` is the single entry point. A dispatch table keyed by identifier
(``IDENTIFIER_RESOLVERS``) produces a :class:`Resolution` per field; the
mapper then picks the fill method, re-targets select/radio values onto
options that actually exist and assigns a status:

* ``no_data``: the profile has nothing for this field.
* ``ambiguous``: the confidence is below 0.5.
* ``needs_ai``: open-ended questions and unclassifiable fields.
* ``needs_file``: upload inputs.
* ``ready``: safe to fill.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .classifier import OPEN_ENDED, UNKNOWN
from .context import FillContext
from .dates import parse_date, to_iso
from .documents import detect_document_type, find_matching_document
from .models import ClassifiedField, MappedField
from .options import (
    DISABILITY_MAP,
    GENDER_MAP,
    RACE_MAP,
    US_STATES,
    STATE_ABBREVIATIONS,
    VETERAN_MAP,
    humanize_eeo,
    match_dropdown_option,
    yes_no,
)
from .profile import CandidateProfile, License

logger = logging.getLogger(__name__)

AI_THRESHOLD = 0.3
AMBIGUOUS_THRESHOLD = 0.5
DAYS_PER_YEAR = 365.25

DATE_IDENTIFIER_HINTS = ("date", "expiration", "graduation")
OPTION_FILL_METHODS = {"select", "radio"}
ADVANCED_LICENSE_TYPES = ("aprn", "np", "crna", "cnm", "cns", "advanced")


@dataclass(slots=True)
class Resolution:
    value: str
    confidence: Optional[float] = None
    profile_key: str = ""


Resolver = Callable[[ClassifiedField, CandidateProfile, FillContext], Resolution]


# ----------------------------
# Collection helpers
# ----------------------------


def _state_variants(state: str) -> set[str]:
    text = (state or "").strip()
    if not text:
        return set()
    variants = {text.lower()}
    if text.upper() in US_STATES:
        variants.add(US_STATES[text.upper()].lower())
    abbreviation = STATE_ABBREVIATIONS.get(text.lower())
    if abbreviation:
        variants.add(abbreviation.lower())
    return variants


def _is_advanced(license: License) -> bool:
    kind = license.license_type.lower()
    return any(re.search(rf"\b{token}\b", kind) for token in ADVANCED_LICENSE_TYPES)


def find_best_license(
    licenses: Sequence[License],
    state: Optional[str] = None,
    license_type: Optional[str] = None,
) -> Optional[License]:
    """Choose the license that best fits the requested state and type.

    Filters narrow the candidates only when they match something. Ordering is
    active before inactive, then advanced-practice before base licenses, with
    ties kept in profile order (``sorted`` is stable).
    """

    if not licenses:
        return None
    candidates = list(licenses)

    if state:
        wanted = _state_variants(state)
        by_state = [item for item in candidates if _state_variants(item.license_state) & wanted]
        if by_state:
            candidates = by_state

    if license_type:
        by_type = [item for item in candidates if license_type.lower() in item.license_type.lower()]
        if by_type:
            candidates = by_type

    return sorted(
        candidates,
        key=lambda item: (item.status.lower() != "active", not _is_advanced(item)),
    )[0]


def license_context(label: str) -> Dict[str, Optional[str]]:
    """Pull a state and license type mentioned in a field label."""

    text = label or ""
    state: Optional[str] = None
    for abbreviation, name in US_STATES.items():
        if re.search(rf"\b{re.escape(name)}\b", text, re.IGNORECASE) or re.search(rf"\b{abbreviation}\b", text):
            state = abbreviation
            break
    license_type: Optional[str] = None
    for token in ("APRN", "CRNA", "NP", "RN", "PA", "MD", "DO"):
        if re.search(rf"\b{token}\b", text):
            license_type = token
            break
    return {"state": state, "type": license_type}


def years_of_experience(profile: CandidateProfile, today: Optional[date] = None) -> Optional[int]:
    if profile.personal.years_experience is not None:
        return profile.personal.years_experience
    starts = [parse_date(entry.start_date) for entry in profile.work_experience]
    starts = [start for start in starts if start is not None]
    if not starts:
        return None
    today = today or date.today()
    return int(math.floor((today - min(starts)).days / DAYS_PER_YEAR))


# ----------------------------
# Resolvers
# ----------------------------


def _const(getter: Callable[[CandidateProfile], object], key: str) -> Resolver:
    def resolve(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> Resolution:
        value = getter(profile)
        if isinstance(value, bool):
            value = yes_no(value)
        return Resolution("" if value is None else str(value), profile_key=key)

    return resolve


def _date(getter: Callable[[CandidateProfile], Optional[str]], key: str) -> Resolver:
    def resolve(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> Resolution:
        raw = getter(profile)
        return Resolution(to_iso(raw) if raw else "", profile_key=key)

    return resolve


def _country(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> Resolution:
    address = profile.personal.address
    if address.country:
        return Resolution(address.country, profile_key="personal.address.country")
    if address.state and _state_variants(address.state) & {name.lower() for name in US_STATES.values()}:
        return Resolution("United States", field.confidence * 0.9, "personal.address.country")
    return Resolution("", profile_key="personal.address.country")


def _location(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> Resolution:
    address = profile.personal.address
    parts = [part for part in (address.city, address.state) if part]
    return Resolution(", ".join(parts), profile_key="personal.address")


def _license_attr(attribute: str, as_date: bool = False) -> Resolver:
    def resolve(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> Resolution:
        hints = license_context(field.label)
        license = find_best_license(profile.credentials.licenses, hints["state"], hints["type"])
        if license is None:
            return Resolution("", 0.3, "credentials.licenses")
        value = getattr(license, attribute)
        return Resolution(to_iso(value) if as_date and value else value, profile_key=f"credentials.licenses.{attribute}")

    return resolve


def _certification_number(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> Resolution:
    certifications = profile.credentials.certifications
    if not certifications:
        return Resolution("", 0.3, "credentials.certifications")
    return Resolution(certifications[0].certification_number, profile_key="credentials.certifications.number")


def _education_attr(attribute: str, as_date: bool = False) -> Resolver:
    def resolve(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> Resolution:
        entry = profile.highest_education
        if entry is None:
            return Resolution("", profile_key="education")
        value = getattr(entry, attribute)
        return Resolution(to_iso(value) if as_date and value else value, profile_key=f"education.{attribute}")

    return resolve


def _work_attr(attribute: str, as_date: bool = False) -> Resolver:
    def resolve(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> Resolution:
        entry = profile.current_job
        if entry is None:
            return Resolution("", profile_key="workExperience")
        value = getattr(entry, attribute)
        return Resolution(to_iso(value) if as_date and value else value, profile_key=f"workExperience.{attribute}")

    return resolve


def _end_date(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> Resolution:
    entry = profile.current_job
    if entry is None:
        return Resolution("", profile_key="workExperience")
    # A current job has no end date; never write "Present" into a date input.
    if entry.is_current:
        return Resolution("", 0.0, "workExperience.endDate")
    return Resolution(to_iso(entry.end_date) if entry.end_date else "", profile_key="workExperience.endDate")


def _years_experience(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> Resolution:
    years = years_of_experience(profile, ctx.today)
    return Resolution("" if years is None else str(years), profile_key="personal.yearsExperience")


def _telehealth(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> Resolution:
    for entry in profile.work_experience:
        details = entry.clinical_details
        if details.telehealth_experience:
            platforms = ", ".join(details.telehealth_platforms)
            value = f"Yes - {platforms}" if platforms and fill_method_for(field) == "text" else "Yes"
            return Resolution(value, profile_key="workExperience.clinicalDetails.telehealth")
    return Resolution("No", 0.5, "workExperience.clinicalDetails.telehealth")


def _reference_attr(attribute: str) -> Resolver:
    def resolve(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> Resolution:
        if not profile.references:
            return Resolution("", profile_key="references")
        return Resolution(getattr(profile.references[0], attribute), profile_key=f"references.{attribute}")

    return resolve


def _screening(key: str, fallback: Optional[Callable[[CandidateProfile], Optional[bool]]] = None, default: bool = False) -> Resolver:
    """Answer a yes/no screening question, defaulting conservatively when unanswered."""

    def resolve(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> Resolution:
        response = profile.screening_answers.lookup(key)
        if response is not None and response.answer is not None:
            return Resolution(yes_no(response.answer), profile_key=f"screeningAnswers.{key}")
        if fallback is not None:
            answer = fallback(profile)
            if answer is not None:
                return Resolution(yes_no(answer), profile_key=f"screeningAnswers.{key}")
        if not ctx.settings.screening_defaults:
            return Resolution("", profile_key=f"screeningAnswers.{key}")
        return Resolution(yes_no(default), max(0.3, field.confidence - 0.2), f"screeningAnswers.{key}")

    return resolve


def _work_authorized(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> Resolution:
    value = profile.eeo.work_authorized
    return Resolution(yes_no(True if value is None else value), profile_key="eeo.workAuthorized")


def _sponsorship(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> Resolution:
    value = profile.eeo.requires_sponsorship
    return Resolution(yes_no(False if value is None else value), profile_key="eeo.requiresSponsorship")


def _salary(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> Resolution:
    prefs = profile.preferences
    if prefs.desired_salary_min and prefs.desired_salary_max:
        return Resolution(f"${_money(prefs.desired_salary_min)} - ${_money(prefs.desired_salary_max)}", profile_key="preferences.desiredSalary")
    if prefs.desired_salary_min:
        return Resolution(_money(prefs.desired_salary_min), profile_key="preferences.desiredSalaryMin")
    return Resolution("", profile_key="preferences.desiredSalaryMin")


def _money(value: float) -> str:
    number = float(value)
    return f"{int(number)}" if number.is_integer() else f"{number:.2f}"


def _eeo(attribute: str, mapping: Dict[str, str]) -> Resolver:
    def resolve(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> Resolution:
        return Resolution(humanize_eeo(getattr(profile.eeo, attribute), mapping), profile_key=f"eeo.{attribute}")

    return resolve


def _written(key: str) -> Resolver:
    def resolve(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> Resolution:
        stored = profile.open_ended_responses.get(key)
        if stored:
            return Resolution(stored, profile_key=f"openEndedResponses.{key}")
        return Resolution(default_message(profile, ctx), field.confidence * 0.9, f"openEndedResponses.{key}")

    return resolve


def default_message(profile: CandidateProfile, ctx: FillContext) -> str:
    """Short generic note used for cover-letter/message boxes without a stored answer."""

    role = f"the {ctx.job.job_title} position" if ctx.job.job_title else "this position"
    employer = f" at {ctx.job.employer_name}" if ctx.job.employer_name else ""
    headline = profile.personal.headline or "an experienced clinician"
    lines = [
        f"I am writing to express my strong interest in {role}{employer}.",
        f"As {headline}, I am confident I can make a meaningful contribution to your team.",
        "I look forward to discussing how my skills and experience align with your needs.",
        "",
        "Best regards,",
        profile.full_name,
    ]
    return "\n".join(lines).strip()


IDENTIFIER_RESOLVERS: Dict[str, Resolver] = {
    # personal
    "first_name": _const(lambda p: p.personal.first_name, "personal.firstName"),
    "last_name": _const(lambda p: p.personal.last_name, "personal.lastName"),
    "middle_name": lambda f, p, c: Resolution("", 0.3, "personal.middleName"),
    "preferred_name": _const(lambda p: p.personal.first_name, "personal.firstName"),
    "full_name": _const(lambda p: p.full_name, "personal.fullName"),
    "email": _const(lambda p: p.personal.email, "personal.email"),
    "phone": _const(lambda p: p.personal.phone, "personal.phone"),
    "address_line1": _const(lambda p: p.personal.address.line1, "personal.address.line1"),
    "address_line2": _const(lambda p: p.personal.address.line2, "personal.address.line2"),
    "city": _const(lambda p: p.personal.address.city, "personal.address.city"),
    "state": _const(lambda p: p.personal.address.state, "personal.address.state"),
    "zip": _const(lambda p: p.personal.address.zip, "personal.address.zip"),
    "country": _country,
    "location": _location,
    "linkedin": _const(lambda p: p.personal.linkedin_url, "personal.linkedinUrl"),
    "website": lambda f, p, c: Resolution("", 0.3, "personal.website"),
    # credentials
    "npi_number": _const(lambda p: p.credentials.npi_number, "credentials.npiNumber"),
    "dea_number": _const(lambda p: p.credentials.dea_number, "credentials.deaNumber"),
    "dea_expiration": _date(lambda p: p.credentials.dea_expiration_date, "credentials.deaExpirationDate"),
    "license_number": _license_attr("license_number"),
    "license_state": _license_attr("license_state"),
    "license_expiration": _license_attr("expiration_date", as_date=True),
    "certification_number": _certification_number,
    "prescriptive_authority": _const(
        lambda p: p.practice_authority.prescriptive_authority_status, "practiceAuthority.prescriptiveAuthorityStatus"
    ),
    # education
    "degree": _education_attr("degree_type"),
    "school": _education_attr("school_name"),
    "graduation_date": _education_attr("graduation_date", as_date=True),
    "field_of_study": _education_attr("field_of_study"),
    "gpa": _education_attr("gpa"),
    # experience
    "job_title": _work_attr("job_title"),
    "employer": _work_attr("employer_name"),
    "start_date": _work_attr("start_date", as_date=True),
    "end_date": _end_date,
    "supervisor": _work_attr("supervisor_name"),
    "reason_leaving": _work_attr("reason_for_leaving"),
    "years_experience": _years_experience,
    "telehealth": _telehealth,
    # references
    "reference_name": _reference_attr("full_name"),
    "reference_email": _reference_attr("email"),
    "reference_phone": _reference_attr("phone"),
    # screening
    "felony": _screening("felony_conviction"),
    "misdemeanor": _screening("misdemeanor_conviction"),
    "license_revoked": _screening("license_revoked"),
    "malpractice": _screening("malpractice_claim", lambda p: p.malpractice.claims_history),
    "relocate": _screening("willing_to_relocate", lambda p: p.preferences.willing_to_relocate),
    "travel": _screening("willing_to_travel", lambda p: p.preferences.willing_to_travel),
    "background_check": _screening("consent_background_check", default=True),
    "drug_screen": _screening("consent_drug_screen", default=True),
    "work_authorized": _work_authorized,
    "visa_sponsorship": _sponsorship,
    "salary": _salary,
    "start_date_available": _date(lambda p: p.preferences.available_date, "preferences.availableDate"),
    # eeo
    "veteran": _eeo("veteran_status", VETERAN_MAP),
    "disability": _eeo("disability_status", DISABILITY_MAP),
    "race_ethnicity": _eeo("race_ethnicity", RACE_MAP),
    "gender": _eeo("gender", GENDER_MAP),
    "eeo_veteran": _eeo("veteran_status", VETERAN_MAP),
    "eeo_disability": _eeo("disability_status", DISABILITY_MAP),
    "eeo_race": _eeo("race_ethnicity", RACE_MAP),
    "eeo_gender": _eeo("gender", GENDER_MAP),
    # written answers with a stored or templated value
    "cover_letter": _written("cover_letter"),
    "message": _written("message"),
}


# ----------------------------
# Mapping
# ----------------------------


def fill_method_for(field: ClassifiedField) -> str:
    field_type = field.field_type
    if field_type in {"select", "select-multiple", "listbox", "combobox"}:
        return "select"
    if field_type in {"radio", "checkbox", "file"}:
        return field_type
    if field_type in {"date", "month"} or any(hint in field.identifier for hint in DATE_IDENTIFIER_HINTS):
        return "date"
    return "text"


def _status(value: str, confidence: float) -> str:
    if not value:
        return "no_data"
    if confidence < AMBIGUOUS_THRESHOLD:
        return "ambiguous"
    return "ready"


def map_file_field(field: ClassifiedField, profile: CandidateProfile) -> MappedField:
    text = " ".join(
        part for part in (field.label, field.name, field.element_id, field.attributes.get("aria-label", "")) if part
    )
    document_type = detect_document_type(text)
    if document_type is None and field.identifier == "resume_upload":
        document_type = "resume"
    document = find_matching_document(profile, document_type)
    return MappedField.from_classified(
        field,
        value=document.file_url if document else "",
        fill_method="file",
        requires_file=True,
        document_type=document_type,
        status="needs_file",
        confidence=field.confidence if document_type else 0.3,
    )


def map_field(field: ClassifiedField, profile: CandidateProfile, ctx: FillContext) -> MappedField:
    """Resolve one classified field against the profile."""

    if field.field_type == "file":
        return map_file_field(field, profile)

    if field.identifier == UNKNOWN and field.confidence < AI_THRESHOLD:
        return MappedField.from_classified(field, fill_method="text", requires_ai=True, status="needs_ai")

    if field.identifier == OPEN_ENDED or (
        field.category == "open_ended" and field.identifier not in {"cover_letter", "message"}
    ):
        return MappedField.from_classified(
            field,
            fill_method="ai_generate",
            requires_ai=True,
            status="needs_ai",
            ai_question_key=_question_key(field.label),
        )

    resolver = IDENTIFIER_RESOLVERS.get(field.identifier)
    if resolver is None:
        return MappedField.from_classified(field, fill_method=fill_method_for(field), status="no_data")

    resolution = resolver(field, profile, ctx)
    confidence = field.confidence if resolution.confidence is None else resolution.confidence
    value = resolution.value or ""
    method = fill_method_for(field)

    if method in OPTION_FILL_METHODS and field.options and value:
        matched = match_dropdown_option(value, field.options)
        if matched is None:
            logger.debug(f"No option for {value!r} in {field.label!r}")
            return MappedField.from_classified(
                field, value=value, fill_method=method, confidence=confidence, status="ambiguous"
            )
        value = matched

    return MappedField.from_classified(
        field,
        value=value,
        fill_method=method,
        confidence=confidence,
        status=_status(value, confidence),
    )


def map_fields(fields: Iterable[ClassifiedField], profile: CandidateProfile, ctx: FillContext) -> List[MappedField]:
    mapped = [map_field(field, profile, ctx) for field in fields]
    ready = sum(1 for item in mapped if item.status == "ready")
    logger.info(f"Mapped {len(mapped)} fields ({ready} ready)")
    return mapped


def _question_key(label: str) -> str:
    words = re.sub(r"[^a-z0-9\s]", " ", (label or "").lower()).split()
    return "_".join(words[:8]) or "question"
