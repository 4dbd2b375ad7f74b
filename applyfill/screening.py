"""Second pass for screening questions the field pipeline cannot see.

Some boards render yes/no questions as free-floating text followed by styled
buttons, with no label association at all. This pass finds question-shaped
text blocks, answers them from the profile with
:func:`resolve_screening_answer` (pure, no DOM) and then clicks or types the
answer into the nearest matching control.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Pattern, Sequence

from .context import FillContext, element_key
from .fill.text import fill_text
from .fill.typeahead import click_option, wait_for_options
from .models import ScreeningAnswer
from .options import matches_degree, yes_no
from .profile import CandidateProfile, parse_education_entry

logger = logging.getLogger(__name__)

DEDUPE_DISTANCE_PX = 40
ANSWERED_TOLERANCE_PX = 40
INPUT_SEARCH_PX = 200
OPTION_ABOVE_PX = -20
OPTION_BELOW_PX = 300
DROPDOWN_WAIT_MS = 1000

STANDARD_FIELD_RE = re.compile(
    r"first|last|name|email|phone|zip|postal|city|state|address|street|country|password|username|login|company|employer",
    re.IGNORECASE,
)
DROPDOWN_OPTIONS = '[role="option"], [role="listbox"] li, [class*="option"], [class*="suggestion"]'


# ----------------------------
# Answer resolution (pure)
# ----------------------------


def _screening_flag(profile: CandidateProfile, key: str) -> Optional[str]:
    response = profile.screening_answers.lookup(key)
    return yes_no(response.answer) if response is not None and response.answer is not None else None


def _work_authorized(profile: CandidateProfile, ctx: Optional[FillContext]) -> Optional[str]:
    return yes_no(profile.eeo.work_authorized) or None


def _licensure(profile: CandidateProfile, ctx: Optional[FillContext]) -> Optional[str]:
    return "Yes" if profile.credentials.licenses else None


def _pediatric(profile: CandidateProfile, ctx: Optional[FillContext]) -> Optional[str]:
    stored = _screening_flag(profile, "experience_children")
    if stored is not None:
        return stored
    pediatric = any(re.search(r"child|adolescent|pediatric", item, re.IGNORECASE) for item in profile.personal.specialties)
    return yes_no(pediatric)


def _sponsorship(profile: CandidateProfile, ctx: Optional[FillContext]) -> Optional[str]:
    return yes_no(profile.eeo.requires_sponsorship) or None


def _education_level(profile: CandidateProfile, ctx: Optional[FillContext]) -> Optional[str]:
    entry = profile.highest_education
    if entry is None and ctx is not None and ctx.resume_education:
        entry = parse_education_entry(ctx.resume_education[0])
    return (entry.degree_type if entry else "") or None


def _years_experience(profile: CandidateProfile, ctx: Optional[FillContext]) -> Optional[str]:
    years = profile.personal.years_experience
    if years is None:
        return None
    return re.sub(r"[^0-9]", "", str(years)) or str(years)


def _salary(profile: CandidateProfile, ctx: Optional[FillContext]) -> Optional[str]:
    minimum = profile.preferences.desired_salary_min
    if not minimum:
        return None
    number = float(minimum)
    return str(int(number)) if number.is_integer() else f"{number:.2f}"


def _available_date(profile: CandidateProfile, ctx: Optional[FillContext]) -> Optional[str]:
    return profile.preferences.available_date or None


def _stored(key: str) -> Callable[[CandidateProfile, Optional[FillContext]], Optional[str]]:
    def resolve(profile: CandidateProfile, ctx: Optional[FillContext]) -> Optional[str]:
        return _screening_flag(profile, key)

    return resolve


@dataclass(frozen=True)
class ScreeningRule:
    field: str
    pattern: Pattern[str]
    interaction: str
    resolve: Callable[[CandidateProfile, Optional[FillContext]], Optional[str]]


SCREENING_RULES: Sequence[ScreeningRule] = (
    ScreeningRule("workAuthorized", re.compile(r"authorized.*work|work.*auth", re.I), "radio", _work_authorized),
    ScreeningRule("license/cert", re.compile(r"license|certification", re.I), "radio", _licensure),
    ScreeningRule(
        "experience_children",
        re.compile(r"experience.*(?:children|adolescent|pediatric)", re.I),
        "radio",
        _pediatric,
    ),
    ScreeningRule("sponsorship", re.compile(r"sponsor", re.I), "radio", _sponsorship),
    ScreeningRule("felony", re.compile(r"felony|conviction", re.I), "radio", _stored("felony_conviction")),
    ScreeningRule(
        "background_check", re.compile(r"background.*check", re.I), "radio", _stored("consent_background_check")
    ),
    ScreeningRule(
        "drug_screen",
        re.compile(r"drug.*(?:screen|test)|(?:screen|test).*drug", re.I),
        "radio",
        _stored("consent_drug_screen"),
    ),
    ScreeningRule(
        "education_level",
        re.compile(r"highest.*level.*education|education.*completed", re.I),
        "dropdown",
        _education_level,
    ),
    ScreeningRule(
        "years_experience",
        re.compile(r"years.*(?:relevant\s+)?experience|experience.*years", re.I),
        "text",
        _years_experience,
    ),
    ScreeningRule(
        "salary", re.compile(r"salary|compensation|pay.*(?:expect|requir|desir)", re.I), "text", _salary
    ),
    ScreeningRule(
        "available_date",
        re.compile(r"(?:start|available|earliest).*date|when.*(?:start|available|begin)", re.I),
        "text",
        _available_date,
    ),
)


def resolve_screening_answer(
    text: str, profile: CandidateProfile, ctx: Optional[FillContext] = None
) -> ScreeningAnswer:
    """Answer a screening question from the profile.

    Rules are tried in order and the first whose pattern matches decides the
    field, even when the profile has no answer for it (``answer`` is then
    ``None``). Unmatched questions come back with field ``"unknown"``.
    """

    for rule in SCREENING_RULES:
        if rule.pattern.search(text or ""):
            return ScreeningAnswer(answer=rule.resolve(profile, ctx), field=rule.field, interaction=rule.interaction)
    return ScreeningAnswer(answer=None, field="unknown", interaction="text")


# ----------------------------
# Question discovery
# ----------------------------


COLLECT_QUESTIONS_JS = """
() => {
    const HINT = /\\?|authorized|license|certification|experience|education|years|sponsor|felony|conviction|background|drug|salary|available/i;
    const INLINE = ['SPAN', 'STRONG', 'EM', 'B', 'I', 'A', 'LABEL'];
    const directText = (el) => {
        let text = '';
        for (const node of el.childNodes) {
            if (node.nodeType === Node.TEXT_NODE) text += node.textContent || '';
            else if (node.nodeType === Node.ELEMENT_NODE && INLINE.includes(node.tagName)) text += node.textContent || '';
        }
        return text.replace(/\\s+/g, ' ').trim();
    };
    const blocks = [];
    const visit = (root) => {
        for (const el of root.querySelectorAll('*')) {
            if (el.shadowRoot) visit(el.shadowRoot);
            if (el.children.length > 5) continue;
            const text = (el.textContent || '').trim();
            if (text.length < 15 || text.length > 300 || !HINT.test(text)) continue;
            const direct = directText(el);
            if (direct.length < 10) continue;
            const rect = el.getBoundingClientRect();
            if (rect.width === 0 || rect.height === 0) continue;
            blocks.push({text: direct, y: rect.top + window.scrollY});
        }
    };
    visit(document);
    return blocks;
}
"""

CLICK_ANSWER_JS = """
({y, answer, above, below}) => {
    const needle = answer.toLowerCase();
    const all = [];
    const visit = (root, selector) => {
        all.push(...root.querySelectorAll(selector));
        root.querySelectorAll('*').forEach((node) => { if (node.shadowRoot) visit(node.shadowRoot, selector); });
    };
    const offset = (el) => {
        const rect = el.getBoundingClientRect();
        if (rect.width === 0 || rect.height === 0) return null;
        return rect.top + window.scrollY - y;
    };
    let best = null;
    let bestDistance = below;
    visit(document, 'label, span, div, p, a, button, li, td');
    for (const el of all) {
        const text = (el.textContent || '').trim().toLowerCase();
        if (!text || text.length > 10 || !text.includes(needle)) continue;
        const distance = offset(el);
        if (distance === null || distance < above || distance > bestDistance) continue;
        if (distance < bestDistance) {
            bestDistance = distance;
            best = el;
        }
    }
    if (!best) {
        all.length = 0;
        visit(document, 'input[type="radio"], [role="radio"], [role="option"]');
        const labelOf = (el) => {
            if (el.id) {
                const label = document.querySelector(`label[for="${CSS.escape(el.id)}"]`);
                if (label) return (label.textContent || '').trim();
            }
            const wrapping = el.closest('label');
            if (wrapping) return (wrapping.textContent || '').trim();
            const next = el.nextElementSibling;
            if (next && (next.textContent || '').trim()) return next.textContent.trim();
            return el.value || el.textContent || '';
        };
        for (const el of all) {
            if (labelOf(el).trim().toLowerCase() !== needle) continue;
            const distance = offset(el);
            if (distance !== null && distance >= above && distance < bestDistance) {
                bestDistance = distance;
                best = el;
            }
        }
    }
    if (!best) return false;
    best.click();
    best.dispatchEvent(new Event('change', {bubbles: true}));
    return true;
}
"""

COLLECT_INPUTS_JS = """
() => {
    const SKIP = ['hidden', 'file', 'checkbox', 'radio', 'submit'];
    const found = [];
    const visit = (root) => {
        root.querySelectorAll('input, select').forEach((el) => found.push(el));
        root.querySelectorAll('*').forEach((node) => { if (node.shadowRoot) visit(node.shadowRoot); });
    };
    visit(document);
    const inputs = [];
    const descriptors = [];
    for (const el of found) {
        const type = (el.getAttribute('type') || 'text').toLowerCase();
        if (el.tagName === 'INPUT' && SKIP.includes(type)) continue;
        const rect = el.getBoundingClientRect();
        if (rect.width === 0 || rect.height === 0) continue;
        inputs.push(el);
        descriptors.push({
            tag: el.tagName.toLowerCase(),
            id: el.id || '',
            name: el.getAttribute('name') || '',
            ariaLabel: el.getAttribute('aria-label') || '',
            value: el.tagName === 'SELECT' ? '' : (el.value || ''),
            x: rect.left + window.scrollX,
            y: rect.top + window.scrollY,
        });
    }
    window.__applyfillScreeningInputs = inputs;
    return descriptors;
}
"""

INPUT_AT_JS = "(index) => (window.__applyfillScreeningInputs || [])[index] || null"


@dataclass(slots=True)
class QuestionBlock:
    text: str
    y: float


def dedupe_questions(blocks: Sequence[Mapping[str, Any]]) -> List[QuestionBlock]:
    """Drop repeated text that nested containers report at (almost) the same height."""

    unique: List[QuestionBlock] = []
    for block in blocks:
        text = str(block.get("text") or "").strip()
        y = float(block.get("y") or 0.0)
        if any(item.text == text and abs(item.y - y) < DEDUPE_DISTANCE_PX for item in unique):
            continue
        unique.append(QuestionBlock(text=text, y=y))
    return unique


def _descriptor_key(descriptor: Mapping[str, Any]) -> str:
    return element_key(
        str(descriptor.get("tag") or "input"),
        str(descriptor.get("id") or ""),
        str(descriptor.get("name") or ""),
        float(descriptor.get("x") or 0.0),
        float(descriptor.get("y") or 0.0),
    )


def pick_nearest_input(
    candidates: Sequence[Mapping[str, Any]], question_y: float, ctx: FillContext
) -> Optional[int]:
    """Index of the closest unclaimed, empty, non-standard input below a question."""

    best: Optional[int] = None
    best_distance = float(INPUT_SEARCH_PX)
    for index, candidate in enumerate(candidates):
        identity = " ".join(str(candidate.get(key) or "") for key in ("name", "id", "ariaLabel"))
        if STANDARD_FIELD_RE.search(identity):
            continue
        if str(candidate.get("value") or "").strip():
            continue
        if ctx.is_claimed(_descriptor_key(candidate)):
            continue
        distance = float(candidate.get("y") or 0.0) - question_y
        if 0 < distance < best_distance:
            best, best_distance = index, distance
    return best


# ----------------------------
# Browser steps
# ----------------------------


async def _click_answer(page: Any, question: QuestionBlock, answer: str) -> bool:
    try:
        clicked = await page.evaluate(
            CLICK_ANSWER_JS, {"y": question.y, "answer": answer, "above": OPTION_ABOVE_PX, "below": OPTION_BELOW_PX}
        )
    except Exception as exc:
        logger.debug(f"Answer click failed: {exc}")
        return False
    if clicked:
        await asyncio.sleep(0.2)
    return bool(clicked)


async def _nearest_input(page: Any, question: QuestionBlock, ctx: FillContext) -> Optional[Dict[str, Any]]:
    candidates = await page.evaluate(COLLECT_INPUTS_JS)
    index = pick_nearest_input(candidates or [], question.y, ctx)
    if index is None:
        return None
    element = (await page.evaluate_handle(INPUT_AT_JS, index)).as_element()
    if element is None:
        return None
    return {"element": element, "key": _descriptor_key(candidates[index])}


async def _fill_dropdown(element: Any, value: str) -> bool:
    await element.focus()
    outcome = await fill_text(element, value)
    options = await wait_for_options(element, DROPDOWN_OPTIONS, DROPDOWN_WAIT_MS, container=None, portals="body")
    for index, option in enumerate(options):
        if option and matches_degree(option, value):
            return await click_option(element, index)
    return outcome.verified


async def fill_screening_questions(page: Any, ctx: FillContext) -> int:
    """Answer free-floating screening questions; returns how many were answered."""

    try:
        blocks = await page.evaluate(COLLECT_QUESTIONS_JS)
    except Exception as exc:
        logger.warning(f"Screening scan failed: {exc}")
        return 0
    questions = dedupe_questions(blocks or [])
    if not questions:
        logger.debug("No screening questions found")
        return 0
    logger.info(f"Found {len(questions)} candidate screening question(s)")

    answered = 0
    for question in questions:
        if ctx.cancelled:
            break
        if ctx.near_answered(question.y, ANSWERED_TOLERANCE_PX):
            continue
        resolution = resolve_screening_answer(question.text, ctx.profile, ctx)
        if resolution.field == "unknown" or not resolution.answer:
            continue

        if resolution.interaction == "radio":
            if await _click_answer(page, question, resolution.answer):
                answered += 1
                ctx.mark_answered(question.y)
                logger.debug(f"Answered {resolution.field!r} with {resolution.answer!r}")
            continue

        target = await _nearest_input(page, question, ctx)
        if target is None:
            logger.debug(f"No input below {resolution.field!r} question")
            continue
        try:
            if resolution.interaction == "dropdown":
                ok = await _fill_dropdown(target["element"], resolution.answer)
            else:
                ok = (await fill_text(target["element"], resolution.answer)).verified
        except Exception as exc:
            logger.warning(f"Screening answer for {resolution.field!r} failed: {exc}")
            ok = False
        ctx.mark_answered(question.y)
        ctx.claim(target["key"])
        if ok:
            answered += 1
    logger.info(f"Answered {answered} screening question(s)")
    return answered
