"""Candidate profile model and the client that loads it.

The profile arrives as the camelCase JSON export of the profile service. It is
parsed into slotted dataclasses once per pass and treated as read-only by the
mapper; every collection may be empty.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import httpx

from .config import Settings, get_settings
from .errors import AuthenticationError, ProfileUnavailableError

logger = logging.getLogger(__name__)

PROFILE_EXPORT_PATH = "/api/profile/export"


def _text(data: Mapping[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    if value is None:
        return default
    return str(value)


def _flag(data: Mapping[str, Any], key: str) -> Optional[bool]:
    value = data.get(key)
    if value is None:
        return None
    return bool(value)


@dataclass(slots=True)
class Address:
    line1: str = ""
    line2: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    country: str = ""


@dataclass(slots=True)
class PersonalInfo:
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: Address = field(default_factory=Address)
    linkedin_url: str = ""
    avatar_url: str = ""
    headline: str = ""
    years_experience: Optional[int] = None
    specialties: List[str] = field(default_factory=list)


@dataclass(slots=True)
class EEOInfo:
    work_authorized: Optional[bool] = None
    requires_sponsorship: Optional[bool] = None
    veteran_status: str = ""
    disability_status: str = ""
    race_ethnicity: str = ""
    gender: str = ""


@dataclass(slots=True)
class License:
    license_type: str = ""
    license_number: str = ""
    license_state: str = ""
    expiration_date: str = ""
    status: str = ""


@dataclass(slots=True)
class Certification:
    certification_name: str = ""
    certifying_body: str = ""
    certification_number: str = ""
    expiration_date: str = ""


@dataclass(slots=True)
class Credentials:
    licenses: List[License] = field(default_factory=list)
    certifications: List[Certification] = field(default_factory=list)
    npi_number: str = ""
    dea_number: str = ""
    dea_expiration_date: str = ""
    dea_schedule_authority: str = ""
    state_controlled_substance_reg: str = ""
    state_csr_expiration_date: str = ""
    pmp_registered: Optional[bool] = None


@dataclass(slots=True)
class Malpractice:
    carrier: str = ""
    policy_number: str = ""
    coverage: str = ""
    claims_history: Optional[bool] = None
    claims_details: str = ""


@dataclass(slots=True)
class PracticeAuthority:
    full_practice_authority: Optional[bool] = None
    collaborative_agreement_required: Optional[bool] = None
    collaborating_physician_name: str = ""
    collaborating_physician_contact: str = ""
    prescriptive_authority_status: str = ""


@dataclass(slots=True)
class EducationEntry:
    degree_type: str = ""
    field_of_study: str = ""
    school_name: str = ""
    graduation_date: str = ""
    gpa: str = ""
    is_highest_degree: bool = False


@dataclass(slots=True)
class ClinicalDetails:
    patient_volume: str = ""
    ehr_systems: List[str] = field(default_factory=list)
    telehealth_experience: Optional[bool] = None
    telehealth_platforms: List[str] = field(default_factory=list)
    practice_setting: str = ""


@dataclass(slots=True)
class WorkExperienceEntry:
    job_title: str = ""
    employer_name: str = ""
    employer_city: str = ""
    employer_state: str = ""
    start_date: str = ""
    end_date: str = ""
    is_current: bool = False
    supervisor_name: str = ""
    supervisor_phone: str = ""
    supervisor_email: str = ""
    may_contact: Optional[bool] = None
    reason_for_leaving: str = ""
    description: str = ""
    clinical_details: ClinicalDetails = field(default_factory=ClinicalDetails)


@dataclass(slots=True)
class ScreeningResponse:
    answer: Optional[bool] = None
    details: str = ""


@dataclass(slots=True)
class ScreeningAnswers:
    background: Dict[str, ScreeningResponse] = field(default_factory=dict)
    clinical: Dict[str, ScreeningResponse] = field(default_factory=dict)
    logistics: Dict[str, ScreeningResponse] = field(default_factory=dict)

    def lookup(self, key: str) -> Optional[ScreeningResponse]:
        """Return the answer for ``key`` from any group (background wins ties)."""

        for group in (self.background, self.clinical, self.logistics):
            if key in group:
                return group[key]
        return None


@dataclass(slots=True)
class Document:
    document_type: str = ""
    document_label: str = ""
    file_url: str = ""
    file_name: str = ""
    expiration_date: str = ""


@dataclass(slots=True)
class Reference:
    full_name: str = ""
    title: str = ""
    organization: str = ""
    phone: str = ""
    email: str = ""
    relationship: str = ""
    years_known: Optional[int] = None


@dataclass(slots=True)
class Preferences:
    preferred_work_mode: str = ""
    preferred_job_type: str = ""
    desired_salary_min: Optional[float] = None
    desired_salary_max: Optional[float] = None
    desired_salary_type: str = ""
    available_date: str = ""
    open_to_offers: Optional[bool] = None
    willing_to_relocate: Optional[bool] = None
    willing_to_travel: Optional[bool] = None


@dataclass(slots=True)
class ProfileMeta:
    last_updated: str = ""
    resume_url: str = ""


@dataclass(slots=True)
class CandidateProfile:
    """Read-only aggregate of everything the engine may write into a form."""

    personal: PersonalInfo = field(default_factory=PersonalInfo)
    eeo: EEOInfo = field(default_factory=EEOInfo)
    credentials: Credentials = field(default_factory=Credentials)
    malpractice: Malpractice = field(default_factory=Malpractice)
    practice_authority: PracticeAuthority = field(default_factory=PracticeAuthority)
    education: List[EducationEntry] = field(default_factory=list)
    work_experience: List[WorkExperienceEntry] = field(default_factory=list)
    screening_answers: ScreeningAnswers = field(default_factory=ScreeningAnswers)
    open_ended_responses: Dict[str, str] = field(default_factory=dict)
    documents: List[Document] = field(default_factory=list)
    references: List[Reference] = field(default_factory=list)
    preferences: Preferences = field(default_factory=Preferences)
    meta: ProfileMeta = field(default_factory=ProfileMeta)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.personal.first_name, self.personal.last_name) if part)

    @property
    def highest_education(self) -> Optional[EducationEntry]:
        for entry in self.education:
            if entry.is_highest_degree:
                return entry
        return self.education[0] if self.education else None

    @property
    def current_job(self) -> Optional[WorkExperienceEntry]:
        return self.work_experience[0] if self.work_experience else None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CandidateProfile":
        """Build a profile from the camelCase export payload."""

        data = data or {}
        personal = data.get("personal") or {}
        address = personal.get("address") or {}
        eeo = data.get("eeo") or {}
        creds = data.get("credentials") or {}
        malpractice = data.get("malpractice") or {}
        authority = data.get("practiceAuthority") or {}
        screening = data.get("screeningAnswers") or {}
        prefs = data.get("preferences") or {}
        meta = data.get("meta") or {}

        years = personal.get("yearsExperience")
        try:
            years_experience = int(years) if years not in (None, "") else None
        except (TypeError, ValueError):
            years_experience = None

        return cls(
            personal=PersonalInfo(
                first_name=_text(personal, "firstName"),
                last_name=_text(personal, "lastName"),
                email=_text(personal, "email"),
                phone=_text(personal, "phone"),
                address=Address(
                    line1=_text(address, "line1"),
                    line2=_text(address, "line2"),
                    city=_text(address, "city"),
                    state=_text(address, "state"),
                    zip=_text(address, "zip"),
                    country=_text(address, "country"),
                ),
                linkedin_url=_text(personal, "linkedinUrl"),
                avatar_url=_text(personal, "avatarUrl"),
                headline=_text(personal, "headline"),
                years_experience=years_experience,
                specialties=[str(item) for item in personal.get("specialties") or []],
            ),
            eeo=EEOInfo(
                work_authorized=_flag(eeo, "workAuthorized"),
                requires_sponsorship=_flag(eeo, "requiresSponsorship"),
                veteran_status=_text(eeo, "veteranStatus"),
                disability_status=_text(eeo, "disabilityStatus"),
                race_ethnicity=_text(eeo, "raceEthnicity"),
                gender=_text(eeo, "gender"),
            ),
            credentials=Credentials(
                licenses=[
                    License(
                        license_type=_text(item, "licenseType"),
                        license_number=_text(item, "licenseNumber"),
                        license_state=_text(item, "licenseState"),
                        expiration_date=_text(item, "expirationDate"),
                        status=_text(item, "status"),
                    )
                    for item in creds.get("licenses") or []
                ],
                certifications=[
                    Certification(
                        certification_name=_text(item, "certificationName"),
                        certifying_body=_text(item, "certifyingBody"),
                        certification_number=_text(item, "certificationNumber"),
                        expiration_date=_text(item, "expirationDate"),
                    )
                    for item in creds.get("certifications") or []
                ],
                npi_number=_text(creds, "npiNumber"),
                dea_number=_text(creds, "deaNumber"),
                dea_expiration_date=_text(creds, "deaExpirationDate"),
                dea_schedule_authority=_text(creds, "deaScheduleAuthority"),
                state_controlled_substance_reg=_text(creds, "stateControlledSubstanceReg"),
                state_csr_expiration_date=_text(creds, "stateCSRExpirationDate"),
                pmp_registered=_flag(creds, "pmpRegistered"),
            ),
            malpractice=Malpractice(
                carrier=_text(malpractice, "carrier"),
                policy_number=_text(malpractice, "policyNumber"),
                coverage=_text(malpractice, "coverage"),
                claims_history=_flag(malpractice, "claimsHistory"),
                claims_details=_text(malpractice, "claimsDetails"),
            ),
            practice_authority=PracticeAuthority(
                full_practice_authority=_flag(authority, "fullPracticeAuthority"),
                collaborative_agreement_required=_flag(authority, "collaborativeAgreementReq"),
                collaborating_physician_name=_text(authority, "collaboratingPhysicianName"),
                collaborating_physician_contact=_text(authority, "collaboratingPhysicianContact"),
                prescriptive_authority_status=_text(authority, "prescriptiveAuthorityStatus"),
            ),
            education=[parse_education_entry(item) for item in data.get("education") or []],
            work_experience=[parse_work_entry(item) for item in data.get("workExperience") or []],
            screening_answers=ScreeningAnswers(
                background=_parse_screening_group(screening.get("background")),
                clinical=_parse_screening_group(screening.get("clinical")),
                logistics=_parse_screening_group(screening.get("logistics")),
            ),
            open_ended_responses={
                str(key): str(value)
                for key, value in (data.get("openEndedResponses") or {}).items()
                if value
            },
            documents=[
                Document(
                    document_type=_text(item, "documentType"),
                    document_label=_text(item, "documentLabel"),
                    file_url=_text(item, "fileUrl"),
                    file_name=_text(item, "fileName"),
                    expiration_date=_text(item, "expirationDate"),
                )
                for item in data.get("documents") or []
            ],
            references=[
                Reference(
                    full_name=_text(item, "fullName"),
                    title=_text(item, "title"),
                    organization=_text(item, "organization"),
                    phone=_text(item, "phone"),
                    email=_text(item, "email"),
                    relationship=_text(item, "relationship"),
                    years_known=item.get("yearsKnown"),
                )
                for item in data.get("references") or []
            ],
            preferences=Preferences(
                preferred_work_mode=_text(prefs, "preferredWorkMode"),
                preferred_job_type=_text(prefs, "preferredJobType"),
                desired_salary_min=prefs.get("desiredSalaryMin"),
                desired_salary_max=prefs.get("desiredSalaryMax"),
                desired_salary_type=_text(prefs, "desiredSalaryType"),
                available_date=_text(prefs, "availableDate"),
                open_to_offers=_flag(prefs, "openToOffers"),
                willing_to_relocate=_flag(prefs, "willingToRelocate"),
                willing_to_travel=_flag(prefs, "willingToTravel"),
            ),
            meta=ProfileMeta(
                last_updated=_text(meta, "lastUpdated"),
                resume_url=_text(meta, "resumeUrl"),
            ),
        )


def parse_education_entry(item: Mapping[str, Any]) -> EducationEntry:
    return EducationEntry(
        degree_type=_text(item, "degreeType"),
        field_of_study=_text(item, "fieldOfStudy"),
        school_name=_text(item, "schoolName"),
        graduation_date=_text(item, "graduationDate"),
        gpa=_text(item, "gpa"),
        is_highest_degree=bool(item.get("isHighestDegree")),
    )


def parse_work_entry(item: Mapping[str, Any]) -> WorkExperienceEntry:
    clinical = item.get("clinicalDetails") or {}
    return WorkExperienceEntry(
        job_title=_text(item, "jobTitle"),
        employer_name=_text(item, "employerName"),
        employer_city=_text(item, "employerCity"),
        employer_state=_text(item, "employerState"),
        start_date=_text(item, "startDate"),
        end_date=_text(item, "endDate"),
        is_current=bool(item.get("isCurrent")),
        supervisor_name=_text(item, "supervisorName"),
        supervisor_phone=_text(item, "supervisorPhone"),
        supervisor_email=_text(item, "supervisorEmail"),
        may_contact=_flag(item, "mayContact"),
        reason_for_leaving=_text(item, "reasonForLeaving"),
        description=_text(item, "description"),
        clinical_details=ClinicalDetails(
            patient_volume=_text(clinical, "patientVolume"),
            ehr_systems=[str(x) for x in clinical.get("ehrSystems") or []],
            telehealth_experience=_flag(clinical, "telehealthExperience"),
            telehealth_platforms=[str(x) for x in clinical.get("telehealthPlatforms") or []],
            practice_setting=_text(clinical, "practiceSetting"),
        ),
    )


def _parse_screening_group(group: Optional[Mapping[str, Any]]) -> Dict[str, ScreeningResponse]:
    parsed: Dict[str, ScreeningResponse] = {}
    for key, entry in (group or {}).items():
        if isinstance(entry, Mapping):
            parsed[str(key)] = ScreeningResponse(answer=_flag(entry, "answer"), details=_text(entry, "details"))
        else:
            parsed[str(key)] = ScreeningResponse(answer=None if entry is None else bool(entry))
    return parsed


def load_profile_file(path: str | Path) -> CandidateProfile:
    """Read a profile export saved on disk."""

    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    # Export endpoint wraps the profile in {"profile": ...}; files may not.
    if isinstance(payload, dict) and "profile" in payload and isinstance(payload["profile"], dict):
        payload = payload["profile"]
    return CandidateProfile.from_dict(payload)


def readiness_issues(profile: CandidateProfile) -> List[str]:
    """List the gaps that make a profile unsuitable for autofill."""

    issues: List[str] = []
    if not profile.personal.first_name or not profile.personal.last_name:
        issues.append("missing name")
    if not profile.personal.email:
        issues.append("missing email")
    if not profile.personal.phone:
        issues.append("missing phone")
    if not profile.education:
        issues.append("no education entries")
    if not profile.work_experience:
        issues.append("no work experience entries")
    return issues


class ProfileClient:
    """Fetch the candidate profile from the profile service with a TTL cache."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        clock=time.monotonic,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = http_client
        self._clock = clock
        self._cached: CandidateProfile | None = None
        self._cached_at: float = 0.0

    def invalidate(self) -> None:
        self._cached = None
        self._cached_at = 0.0

    async def fetch(self, *, force: bool = False) -> CandidateProfile:
        """Return the profile, reusing the cached copy while it is fresh."""

        now = self._clock()
        ttl = self._settings.profile_cache_ttl_seconds
        if not force and self._cached is not None and now - self._cached_at < ttl:
            return self._cached

        if not self._settings.api_token:
            raise ProfileUnavailableError("No API token configured; cannot load profile")

        url = self._settings.api_base_url.rstrip("/") + PROFILE_EXPORT_PATH
        headers = {"Authorization": f"Bearer {self._settings.api_token}"}
        try:
            if self._client is not None:
                response = await self._client.get(url, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._settings.http_timeout_seconds) as client:
                    response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise ProfileUnavailableError(f"Profile request failed: {exc}") from exc

        if response.status_code == 401:
            raise AuthenticationError(401, "Profile service rejected the token")
        if response.status_code >= 400:
            raise ProfileUnavailableError(f"Profile request returned HTTP {response.status_code}")

        payload = response.json()
        if isinstance(payload, dict) and isinstance(payload.get("profile"), dict):
            payload = payload["profile"]
        profile = CandidateProfile.from_dict(payload)
        self._cached = profile
        self._cached_at = now
        logger.info("Loaded candidate profile", extra={"educationCount": len(profile.education)})
        return profile
