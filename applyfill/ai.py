"""Remote AI fallback: classify fields the pattern dictionary missed and answer open-ended questions."""
from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .api import AutofillAPI
from .context import FillContext, field_key
from .errors import APIError, RateLimitError
from .fill.dom import scroll_into_view
from .fill.rich_text import fill_rich_text
from .fill.text import detect_input_kind, fill_text
from .mapper import IDENTIFIER_RESOLVERS, fill_method_for, map_field
from .models import AIFillDetail, AIFillResult, ClassifiedField, JobContext, MappedField

logger = logging.getLogger(__name__)

MIN_AI_CONFIDENCE = 0.2
MIN_CACHED_CONFIDENCE = 0.3
MAX_DESCRIPTION_LENGTH = 3000
ANSWER_PAUSE_SECONDS = 0.2

JOB_CONTEXT_JS = """
(maxDescription) => {
    const first = (selectors, minLength) => {
        for (const selector of selectors) {
            const el = document.querySelector(selector);
            const text = el && el.textContent ? el.textContent.trim() : '';
            if (text && text.length > minLength) return text;
        }
        return '';
    };
    let jobTitle = first(['h1', '.job-title', '[class*="job-title"]', '[class*="jobTitle"]',
        '[data-automation-id="jobTitle"]', '.posting-headline h2'], 0);
    let employerName = first(['.company-name', '[class*="company"]', '[class*="employer"]',
        '[data-automation-id="companyName"]', '.posting-categories .company'], 0);
    const description = first(['.job-description', '[class*="job-description"]', '[class*="jobDescription"]',
        '[data-automation-id="jobDescription"]', '.posting-page .content', '#job-description', 'article'], 100);
    if (!jobTitle) {
        const og = document.querySelector('meta[property="og:title"]');
        jobTitle = (og && og.getAttribute('content')) || document.title || '';
    }
    if (!employerName) {
        const site = document.querySelector('meta[property="og:site_name"]');
        employerName = (site && site.getAttribute('content')) || '';
    }
    return {jobTitle, employerName, jobDescription: description.substring(0, maxDescription)};
}
"""

FIELD_CONTEXT_JS = """
(el) => {
    const parts = [];
    const fieldset = el.closest('fieldset');
    const legend = fieldset ? fieldset.querySelector('legend') : null;
    if (legend) parts.push(`section: ${(legend.textContent || '').trim()}`);
    let ancestor = el.parentElement;
    for (let i = 0; ancestor && i < 6; i++) {
        const heading = ancestor.querySelector('h1, h2, h3, h4, h5, h6');
        if (heading && !heading.contains(el)) {
            parts.push(`heading: ${(heading.textContent || '').trim()}`);
            break;
        }
        ancestor = ancestor.parentElement;
    }
    const prev = el.previousElementSibling;
    const adjacent = prev ? (prev.textContent || '').trim() : '';
    if (adjacent && adjacent.length < 150) parts.push(`adjacent: ${adjacent}`);
    for (const attr of el.attributes) {
        if (attr.name.startsWith('data-') && attr.value && attr.name !== 'data-reactid') {
            parts.push(`${attr.name}: ${attr.value}`);
        }
    }
    return parts.join(' | ');
}
"""


async def extract_job_context(page: Any) -> JobContext:
    """Read the posting title, employer and (capped) description from the page."""

    try:
        data = await page.evaluate(JOB_CONTEXT_JS, MAX_DESCRIPTION_LENGTH)
    except Exception as exc:
        logger.debug(f"Job context extraction failed: {exc}")
        return JobContext()
    return JobContext(
        job_title=str(data.get("jobTitle") or "").strip(),
        employer_name=str(data.get("employerName") or "").strip(),
        job_description=str(data.get("jobDescription") or "")[:MAX_DESCRIPTION_LENGTH],
    )


# ----------------------------
# Per-domain classification cache
# ----------------------------


@dataclass(slots=True)
class CachedMapping:
    identifier: str
    profile_key: Optional[str]
    confidence: float
    is_question: bool
    cached_at: float


def cache_key(field: ClassifiedField) -> str:
    return "|".join((field.label or "", field.name, field.element_id, field.field_type)).lower()


class AIClassificationCache:
    """Remembers AI classifications per domain so repeat visits skip the remote call.

    Entries expire after ``ttl_seconds``. When ``path`` is given the cache is
    persisted as JSON after every update.
    """

    def __init__(self, path: str | Path | None = None, *, ttl_seconds: float = 7 * 24 * 3600, clock=time.time):
        self.path = Path(path) if path else None
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._domains: Dict[str, Dict[str, CachedMapping]] = {}
        if self.path and self.path.exists():
            self._load()

    def _load(self) -> None:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning(f"Ignoring unreadable AI cache {self.path}: {exc}")
            return
        for domain, entries in (raw or {}).items():
            self._domains[domain] = {key: CachedMapping(**value) for key, value in entries.items()}

    def save(self) -> None:
        if self.path is None:
            return
        payload = {
            domain: {key: asdict(mapping) for key, mapping in entries.items()}
            for domain, entries in self._domains.items()
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            logger.warning(f"Could not persist AI cache: {exc}")

    def domain(self, name: str) -> Dict[str, CachedMapping]:
        """Live entries for ``name``; expired ones are pruned on access."""

        now = self._clock()
        entries = self._domains.get(name, {})
        fresh = {key: value for key, value in entries.items() if now - value.cached_at < self.ttl_seconds}
        self._domains[name] = fresh
        return fresh

    def get(self, name: str, field: ClassifiedField) -> Optional[CachedMapping]:
        return self.domain(name).get(cache_key(field))

    def put(self, name: str, field: ClassifiedField, classified: Dict[str, Any]) -> None:
        self._domains.setdefault(name, {})[cache_key(field)] = CachedMapping(
            identifier=str(classified.get("identifier") or "unknown"),
            profile_key=classified.get("profileKey"),
            confidence=float(classified.get("confidence") or 0.0),
            is_question=bool(classified.get("isQuestion")),
            cached_at=self._clock(),
        )


# ----------------------------
# Classification
# ----------------------------


def _from_classification(
    field: ClassifiedField,
    identifier: str,
    value: str,
    confidence: float,
    is_question: bool,
    ctx: FillContext,
) -> MappedField:
    if is_question:
        return MappedField.from_classified(
            field,
            identifier=identifier,
            category="open_ended",
            confidence=confidence,
            fill_method="ai_generate",
            requires_ai=True,
            status="needs_ai",
            ai_question_key=identifier,
        )
    if not value and identifier in IDENTIFIER_RESOLVERS:
        # A known profile key; let the mapper resolve the value.
        reclassified = ClassifiedField.from_scanned(field, identifier=identifier, confidence=confidence)
        return map_field(reclassified, ctx.profile, ctx)
    return MappedField.from_classified(
        field,
        identifier=identifier,
        confidence=confidence,
        value=value,
        fill_method=fill_method_for(field),
        status="ready" if value else "no_data",
    )


async def _field_context(field: ClassifiedField) -> str:
    if field.element is None:
        return ""
    try:
        return str(await field.element.evaluate(FIELD_CONTEXT_JS) or "")
    except Exception:
        return ""


async def _request_payload(field: ClassifiedField) -> Dict[str, Any]:
    return {
        "label": field.label,
        "placeholder": field.placeholder,
        "attributes": {
            "name": field.name,
            "id": field.element_id,
            "aria-label": field.attributes.get("aria-label", ""),
            "data-automation-id": field.attributes.get("data-automation-id", ""),
        },
        "fieldType": field.field_type,
        "options": list(field.options),
        "context": await _field_context(field),
    }


async def classify_unknown_fields(
    fields: Sequence[ClassifiedField],
    ctx: FillContext,
    api: AutofillAPI,
    cache: AIClassificationCache,
    domain: str,
) -> List[MappedField]:
    """Classify leftover fields remotely, reusing cached answers for this domain.

    Parameters
    ----------
    fields:
        Fields the pattern classifier left ``unknown`` or below the AI threshold.
    ctx:
        Pass context; supplies the profile and job context.
    api:
        Service client used for ``classify-fields``.
    cache:
        Per-domain cache consulted before and updated after the remote call.
    domain:
        Hostname the fields came from.

    Returns
    -------
    list of MappedField
        Cached hits first, then fresh classifications at or above 0.2
        confidence. On a remote error only the cached hits are returned.
    """

    if not fields:
        return []
    logger.info(f"Classifying {len(fields)} unknown field(s)")

    results: List[MappedField] = []
    pending: List[ClassifiedField] = []
    for field in fields:
        cached = cache.get(domain, field)
        if cached is not None and cached.confidence >= MIN_CACHED_CONFIDENCE:
            identifier = cached.profile_key or cached.identifier
            logger.debug(f"AI cache hit: {cache_key(field)!r} -> {identifier}")
            results.append(_from_classification(field, identifier, "", cached.confidence, cached.is_question, ctx))
        else:
            pending.append(field)

    if not pending:
        logger.info(f"All {len(fields)} field(s) resolved from cache")
        return results

    payload = [await _request_payload(field) for field in pending]
    try:
        response = await api.classify_fields(payload, ctx.job.to_payload())
    except APIError as exc:
        logger.warning(f"Field classification failed: {exc}")
        return results

    classified_items = response.get("classified") or []
    logger.info(
        f"Classification complete: {len(classified_items)} field(s)"
        + (" (resume used)" if response.get("resumeUsed") else "")
    )
    for item in classified_items:
        index = item.get("index")
        if not isinstance(index, int) or not 0 <= index < len(pending):
            continue
        confidence = float(item.get("confidence") or 0.0)
        if confidence < MIN_AI_CONFIDENCE:
            continue
        field = pending[index]
        identifier = item.get("profileKey") or item.get("identifier") or "unknown"
        results.append(
            _from_classification(
                field, identifier, str(item.get("value") or ""), confidence, bool(item.get("isQuestion")), ctx
            )
        )
        cache.put(domain, field, item)
    cache.save()
    return results


# ----------------------------
# Open-ended answers
# ----------------------------


def _question_text(field: MappedField) -> str:
    return field.label or field.placeholder or field.attributes.get("aria-label", "") or "Unknown question"


def build_answer_requests(fields: Sequence[MappedField], ctx: FillContext) -> List[Dict[str, Any]]:
    max_length = ctx.settings.ai_max_length
    requests = []
    for field in fields:
        limit = min(max_length, field.max_length) if field.max_length else max_length
        requests.append(
            {
                "questionText": _question_text(field),
                "questionKey": field.ai_question_key or field.identifier,
                **ctx.job.to_payload(),
                "maxLength": limit,
            }
        )
    return requests


async def _write_answer(element: Any, answer: str) -> None:
    await scroll_into_view(element)
    if await detect_input_kind(element) == "rich_text":
        await fill_rich_text(element, answer)
    else:
        await fill_text(element, answer)


async def fill_with_ai(fields: Sequence[MappedField], ctx: FillContext, api: AutofillAPI) -> AIFillResult:
    """Generate answers for open-ended fields and type them in.

    One question uses the single endpoint, several use the bulk endpoint. A
    429 marks every question ``rate_limited``; any other remote error marks
    them ``failed``.
    """

    result = AIFillResult(total=len(fields))
    if not fields:
        return result

    requests = build_answer_requests(fields, ctx)
    try:
        if len(requests) > 1:
            responses = await api.generate_bulk(requests)
        else:
            responses = [await api.generate_answer(requests[0])]
    except RateLimitError as exc:
        logger.warning(f"AI generation rate limited: {exc}")
        result.rate_limited = True
        result.details = [AIFillDetail(field=req["questionText"], status="rate_limited") for req in requests]
        return result
    except APIError as exc:
        logger.warning(f"AI generation failed: {exc}")
        result.failed = len(requests)
        result.details = [AIFillDetail(field=req["questionText"], status="failed", error=str(exc)) for req in requests]
        return result

    for index, field in enumerate(fields):
        question = requests[index]["questionText"]
        response = responses[index] if index < len(responses) else None
        answer = str((response or {}).get("answer") or "")
        if not answer:
            result.failed += 1
            result.details.append(AIFillDetail(field=question, status="failed", error="No answer returned"))
            continue
        if field.max_length:
            answer = answer[: field.max_length]
        try:
            await _write_answer(field.element, answer)
        except Exception as exc:
            logger.warning(f"Could not write AI answer for {question!r}: {exc}")
            result.failed += 1
            result.details.append(AIFillDetail(field=question, status="failed", answer=answer, error=str(exc)))
            continue
        ctx.claim(field_key(field))
        if response.get("basedOnStoredResponse"):
            result.stored += 1
            status = "stored"
        else:
            result.generated += 1
            status = "generated"
        result.details.append(AIFillDetail(field=question, status=status, answer=answer))
        await asyncio.sleep(ANSWER_PAUSE_SECONDS)

    logger.info(f"AI answers: {result.generated} generated, {result.stored} stored, {result.failed} failed")
    return result
