"""Dataclass-based records passed between the scan, classify, map and fill stages."""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

FIELD_STATUSES = ("ready", "no_data", "needs_ai", "needs_file", "ambiguous")
FILL_METHODS = ("text", "select", "radio", "checkbox", "file", "date", "ai_generate")
DETAIL_STATUSES = ("filled", "skipped", "failed", "needs_review")


@dataclass(slots=True)
class Rect:
    """Bounding box of an element in page coordinates."""

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @classmethod
    def from_mapping(cls, data: Optional[Dict[str, Any]]) -> "Rect":
        data = data or {}
        return cls(
            x=float(data.get("x") or 0.0),
            y=float(data.get("y") or 0.0),
            width=float(data.get("width") or 0.0),
            height=float(data.get("height") or 0.0),
        )


@dataclass(slots=True)
class ScannedField:
    """One visible, fillable element discovered during a detection pass.

    ``element`` is the live Playwright handle; it is only meaningful for the
    pass that produced it.
    """

    element: Any = None
    tag: str = "input"
    field_type: str = "text"
    label: str = ""
    placeholder: str = ""
    attributes: Dict[str, str] = field(default_factory=dict)
    options: List[str] = field(default_factory=list)
    current_value: str = ""
    required: bool = False
    visible: bool = True
    rect: Rect = field(default_factory=Rect)
    from_iframe: bool = False
    frame_url: str = ""
    max_length: Optional[int] = None

    @property
    def name(self) -> str:
        return self.attributes.get("name", "")

    @property
    def element_id(self) -> str:
        return self.attributes.get("id", "")

    @property
    def is_free_text(self) -> bool:
        return self.field_type in {"text", "textarea", "contenteditable", ""}


@dataclass(slots=True)
class ClassifiedField(ScannedField):
    """A scanned field annotated with its semantic identifier."""

    identifier: str = "unknown"
    category: str = "unknown"
    confidence: float = 0.0
    is_open_ended: bool = False

    @classmethod
    def from_scanned(cls, scanned: ScannedField, **overrides: Any) -> "ClassifiedField":
        return cls(**_copy_fields(scanned, overrides))


@dataclass(slots=True)
class MappedField(ClassifiedField):
    """A classified field with the profile value and fill strategy attached."""

    value: Any = ""
    fill_method: str = "text"
    requires_ai: bool = False
    requires_file: bool = False
    document_type: Optional[str] = None
    status: str = "no_data"
    ai_question_key: Optional[str] = None

    @classmethod
    def from_classified(cls, classified: ClassifiedField, **overrides: Any) -> "MappedField":
        return cls(**_copy_fields(classified, overrides))

    @property
    def display_name(self) -> str:
        return self.label or self.placeholder or self.name or self.element_id or self.identifier


def _copy_fields(source: Any, overrides: Dict[str, Any]) -> Dict[str, Any]:
    values = {item.name: getattr(source, item.name) for item in fields(source)}
    values.update(overrides)
    return values


@dataclass(slots=True)
class FillDetail:
    """Outcome of a single field within a pass."""

    field: str
    identifier: str
    value: str = ""
    status: str = "skipped"
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "identifier": self.identifier,
            "value": self.value,
            "status": self.status,
            "error": self.error,
        }


@dataclass(slots=True)
class FillResult:
    """Per-pass counters plus one detail entry per processed field."""

    total: int = 0
    filled: int = 0
    skipped: int = 0
    failed: int = 0
    needs_ai: int = 0
    needs_file: int = 0
    details: List[FillDetail] = field(default_factory=list)
    duration_ms: float = 0.0
    platform: str = "generic"

    def record(self, detail: FillDetail) -> None:
        self.details.append(detail)
        if detail.status == "filled":
            self.filled += 1
        elif detail.status == "failed":
            self.failed += 1
        elif detail.status == "skipped":
            self.skipped += 1

    def merge(self, other: "FillResult") -> None:
        self.total += other.total
        self.filled += other.filled
        self.skipped += other.skipped
        self.failed += other.failed
        self.needs_ai += other.needs_ai
        self.needs_file += other.needs_file
        self.details.extend(other.details)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "filled": self.filled,
            "skipped": self.skipped,
            "failed": self.failed,
            "needsAI": self.needs_ai,
            "needsFile": self.needs_file,
            "durationMs": round(self.duration_ms, 1),
            "platform": self.platform,
            "details": [detail.to_dict() for detail in self.details],
        }


@dataclass(slots=True)
class AIFillDetail:
    field: str
    status: str
    answer: str = ""
    error: Optional[str] = None


@dataclass(slots=True)
class AIFillResult:
    """Outcome of generating answers for open-ended questions."""

    total: int = 0
    generated: int = 0
    stored: int = 0
    failed: int = 0
    rate_limited: bool = False
    details: List[AIFillDetail] = field(default_factory=list)


@dataclass(slots=True)
class DocumentAttachResult:
    total: int = 0
    attached: int = 0
    failed: int = 0
    details: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(slots=True)
class JobContext:
    """Posting information sent along with AI requests."""

    job_title: str = ""
    employer_name: str = ""
    job_description: str = ""

    def to_payload(self) -> Dict[str, str]:
        return {
            "jobTitle": self.job_title,
            "employerName": self.employer_name,
            "jobDescription": self.job_description,
        }


@dataclass(slots=True)
class ScreeningAnswer:
    """Resolved answer for a free-floating screening question."""

    answer: Optional[str]
    field: str
    interaction: str  # radio | text | dropdown | unknown


__all__ = [
    "AIFillDetail",
    "AIFillResult",
    "ClassifiedField",
    "DocumentAttachResult",
    "FillDetail",
    "FillResult",
    "JobContext",
    "MappedField",
    "Rect",
    "ScannedField",
    "ScreeningAnswer",
]
