"""Education and work-experience sections that grow through an "Add" button.

The main pipeline fills whatever entry blocks already exist. Expansion then
clicks "Add" once per missing entry, diffs the form controls before and after
the click to isolate the new block and fills it either positionally (row
templates) or, when the block does not have the expected shape, by label.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from statistics import median
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..classifier import classify_fields
from ..context import FillContext
from ..mapper import map_fields
from ..models import ClassifiedField, FillResult, ScannedField
from ..profile import CandidateProfile, EducationEntry, WorkExperienceEntry, parse_education_entry, parse_work_entry
from ..scanner import mark_seen, unseen_fields

logger = logging.getLogger(__name__)

ROW_TOLERANCE_PX = 20
OUTLIER_SPREAD_PX = 800
MAX_PARSER_DELETES = 10
ADD_SETTLE_SECONDS = 1.5
DELETE_SETTLE_SECONDS = 0.8
SAVE_SETTLE_SECONDS = 1.0
ENTRY_PAUSE_SECONDS = 0.8

SECTIONS = ("experience", "education")

ADD_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "education": (
        "add education",
        "add another education",
        "add school",
        "add degree",
        "+ education",
        "add entry",
    ),
    "experience": (
        "add experience",
        "add work experience",
        "add another work",
        "add employment",
        "add position",
        "+ experience",
        "add entry",
    ),
}

# Identifier whose count tells how many entry blocks a section already shows.
INSTANCE_IDENTIFIERS: Dict[str, Tuple[str, ...]] = {
    "education": ("school",),
    "experience": ("employer", "job_title"),
}

FIND_HEADING_JS = """
(name) => {
    const cap = name.charAt(0).toUpperCase() + name.slice(1);
    const candidates = [];
    const walk = (root) => {
        root.querySelectorAll('h1, h2, h3, h4, h5, h6, legend, span, div, p, label').forEach((el) => {
            const text = (el.textContent || '').trim();
            if (!text.includes(cap)) return;
            const rect = el.getBoundingClientRect();
            if (rect.width > 0 && rect.height > 0) candidates.push(el);
        });
        root.querySelectorAll('*').forEach((node) => { if (node.shadowRoot) walk(node.shadowRoot); });
    };
    walk(document);
    const heading = candidates.find((el) => /^H[1-6]$/.test(el.tagName))
        || candidates.find((el) => (el.textContent || '').trim().toLowerCase() === name)
        || candidates.find((el) => {
            const text = (el.textContent || '').trim();
            return text.length < 30 && text.toLowerCase().startsWith(name);
        });
    return heading || null;
}
"""

FIND_ADD_BUTTON_JS = """
([keywords, section, heading]) => {
    const visible = (el) => {
        const rect = el.getBoundingClientRect();
        return rect.width > 0 && rect.height > 0;
    };
    const candidates = Array.from(document.querySelectorAll(
        'button, a, [role="button"], .add-button, [class*="add-button"], [data-automation-id*="add"]'
    ));
    for (const el of candidates) {
        const text = (el.textContent || '').toLowerCase().trim();
        const aria = (el.getAttribute('aria-label') || '').toLowerCase();
        const title = (el.getAttribute('title') || '').toLowerCase();
        if (keywords.some((k) => text.includes(k) || aria.includes(k) || title.includes(k)) && visible(el)) {
            return el;
        }
    }
    if (heading) {
        const top = heading.getBoundingClientRect().top;
        let best = null;
        let bestDistance = 200;
        for (const el of candidates) {
            const text = (el.textContent || '').trim();
            if (!text.toLowerCase().includes('add') || text.length > 20 || !visible(el)) continue;
            const distance = Math.abs(el.getBoundingClientRect().top - top);
            if (distance < bestDistance) {
                bestDistance = distance;
                best = el;
            }
        }
        if (best) return best;
    }
    const scopes = document.querySelectorAll(
        `[class*="${section}" i], [id*="${section}" i], [data-section*="${section}" i]`
    );
    for (const scope of scopes) {
        for (const el of scope.querySelectorAll('button, a, [role="button"]')) {
            const text = (el.textContent || '').toLowerCase().trim();
            if ((text.includes('add') || text === '+' || text.includes('another')) && visible(el)) return el;
        }
    }
    return null;
}
"""

FIND_DELETE_BUTTON_JS = """
(heading) => {
    let scope = heading;
    for (let depth = 0; scope && depth < 4; depth++) {
        if (scope.querySelectorAll('button, [role="button"]').length) break;
        scope = scope.parentElement;
    }
    if (!scope) return null;
    const visible = (el) => {
        const rect = el.getBoundingClientRect();
        return rect.width > 0 && rect.height > 0;
    };
    for (const el of scope.querySelectorAll('button, [role="button"], a, [class*="delete"], [class*="remove"], [class*="trash"]')) {
        const text = (el.textContent || '').toLowerCase().trim();
        const aria = (el.getAttribute('aria-label') || '').toLowerCase();
        const title = (el.getAttribute('title') || '').toLowerCase();
        const hasTrash = !!el.querySelector('svg[class*="trash"], svg[class*="delete"], [class*="icon-delete"], [class*="icon-trash"]');
        const matches = ['delete', 'remove', 'trash'].some((w) => text.includes(w) || aria.includes(w) || title.includes(w));
        if ((matches || hasTrash) && text.length < 30 && visible(el)) return el;
    }
    return null;
}
"""

CONFIRM_DELETE_JS = """
() => {
    const words = ['yes', 'confirm', 'ok', 'delete', 'remove'];
    const scope = document.querySelector('[role="dialog"], [role="alertdialog"], .modal, [class*="dialog"]') || document;
    for (const el of scope.querySelectorAll('button, [role="button"]')) {
        const text = (el.textContent || '').toLowerCase().trim();
        const rect = el.getBoundingClientRect();
        if (text.length < 20 && words.some((w) => text.includes(w)) && rect.width > 0 && rect.height > 0) {
            el.click();
            return true;
        }
    }
    return false;
}
"""

CLICK_SAVE_JS = """
() => {
    for (const el of document.querySelectorAll('button, [role="button"], a')) {
        const text = (el.textContent || '').toLowerCase().trim();
        const rect = el.getBoundingClientRect();
        if ((text === 'save' || text === 'save entry') && rect.width > 0 && rect.height > 0) {
            el.click();
            return true;
        }
    }
    return false;
}
"""


@dataclass(frozen=True)
class TemplateSlot:
    row: int
    col: int
    attribute: str
    kind: str = "text"  # text | typeahead | date


EXPERIENCE_TEMPLATE: Sequence[TemplateSlot] = (
    TemplateSlot(0, 0, "job_title", "typeahead"),
    TemplateSlot(0, 1, "employer_name", "typeahead"),
    TemplateSlot(1, 0, "location", "typeahead"),
    TemplateSlot(2, 0, "description"),
    TemplateSlot(3, 0, "start_date", "date"),
    TemplateSlot(3, 1, "end_date", "date"),
)

EDUCATION_TEMPLATE: Sequence[TemplateSlot] = (
    TemplateSlot(0, 0, "school_name", "typeahead"),
    TemplateSlot(1, 0, "field_of_study"),
    TemplateSlot(1, 1, "degree_type"),
    # row 3 is the free-text description
    TemplateSlot(4, 1, "graduation_date", "date"),
)

TEMPLATES: Dict[str, Sequence[TemplateSlot]] = {
    "experience": EXPERIENCE_TEMPLATE,
    "education": EDUCATION_TEMPLATE,
}


# ----------------------------
# Pure helpers
# ----------------------------


def group_by_row(fields: Sequence[ScannedField], tolerance: float = ROW_TOLERANCE_PX) -> List[List[ScannedField]]:
    """Group fields into visual rows.

    A new row starts when a field sits more than ``tolerance`` pixels below the
    previous one; each row is ordered left to right.
    """

    ordered = sorted(fields, key=lambda item: (item.rect.y, item.rect.x))
    rows: List[List[ScannedField]] = []
    previous_y: Optional[float] = None
    for item in ordered:
        if previous_y is None or abs(item.rect.y - previous_y) > tolerance:
            rows.append([item])
        else:
            rows[-1].append(item)
        previous_y = item.rect.y
    return [sorted(row, key=lambda item: item.rect.x) for row in rows]


def filter_block(fields: Sequence[ScannedField], spread: float = OUTLIER_SPREAD_PX) -> List[ScannedField]:
    """Drop stray "Country" widgets and fields far from the block's median row."""

    kept = [
        item
        for item in fields
        if "country" not in (item.placeholder or "").lower() and item.label.strip().lower() != "country"
    ]
    if len(kept) < 3:
        return kept
    middle = median(item.rect.y for item in kept)
    return [item for item in kept if abs(item.rect.y - middle) < spread]


def section_entries(section: str, profile: CandidateProfile, ctx: FillContext) -> List[Any]:
    """Entries to place in ``section``, in profile order.

    Resume-extracted entries are used when the profile has none.
    """

    if section == "education":
        entries: List[Any] = list(profile.education)
        if not entries:
            entries = [parse_education_entry(item) for item in ctx.resume_education]
        return entries
    entries = list(profile.work_experience)
    if not entries:
        entries = [parse_work_entry(item) for item in ctx.resume_experience]
    return entries


def entry_values(section: str, entry: Any) -> Dict[str, str]:
    if section == "experience":
        work: WorkExperienceEntry = entry
        location = ", ".join(part for part in (work.employer_city, work.employer_state) if part)
        return {
            "job_title": work.job_title,
            "employer_name": work.employer_name,
            "location": location,
            "description": work.description,
            "start_date": work.start_date,
            "end_date": "" if work.is_current else work.end_date,
        }
    education: EducationEntry = entry
    return {
        "school_name": education.school_name,
        "field_of_study": education.field_of_study,
        "degree_type": education.degree_type,
        "graduation_date": education.graduation_date,
    }


def template_fits(rows: Sequence[Sequence[ScannedField]], template: Sequence[TemplateSlot], values: Dict[str, str]) -> bool:
    needed = [slot for slot in template if values.get(slot.attribute)]
    if not needed:
        return False
    return all(slot.row < len(rows) and slot.col < len(rows[slot.row]) for slot in needed)


def plan_positional(
    rows: Sequence[Sequence[ScannedField]], template: Sequence[TemplateSlot], values: Dict[str, str]
) -> List[Tuple[ScannedField, str, str]]:
    plan: List[Tuple[ScannedField, str, str]] = []
    for slot in template:
        value = values.get(slot.attribute) or ""
        if not value:
            logger.debug(f"Skip row{slot.row} col{slot.col} (no value)")
            continue
        if slot.row >= len(rows) or slot.col >= len(rows[slot.row]):
            logger.debug(f"Skip row{slot.row} col{slot.col} (out of range, {len(rows)} rows)")
            continue
        plan.append((rows[slot.row][slot.col], value, slot.kind))
    return plan


def single_entry_profile(profile: CandidateProfile, section: str, entry: Any) -> CandidateProfile:
    if section == "education":
        return replace(profile, education=[replace(entry, is_highest_degree=True)])
    return replace(profile, work_experience=[entry])


def count_instances(section: str, fields: Sequence[ClassifiedField]) -> int:
    identifiers = INSTANCE_IDENTIFIERS[section]
    return max((sum(1 for item in fields if item.identifier == identifier) for identifier in identifiers), default=0)


# ----------------------------
# Browser steps
# ----------------------------


async def find_heading(page: Any, section: str) -> Any:
    try:
        return (await page.evaluate_handle(FIND_HEADING_JS, section)).as_element()
    except Exception as exc:
        logger.debug(f"Heading lookup failed for {section}: {exc}")
        return None


async def find_add_button(page: Any, section: str) -> Any:
    heading = await find_heading(page, section)
    try:
        handle = await page.evaluate_handle(FIND_ADD_BUTTON_JS, [list(ADD_KEYWORDS[section]), section, heading])
    except Exception as exc:
        logger.debug(f"Add button lookup failed for {section}: {exc}")
        return None
    return handle.as_element()


async def delete_parsed_entries(page: Any, section: str, limit: int = MAX_PARSER_DELETES) -> int:
    """Remove entries a resume parser inserted, confirming any dialog."""

    heading = await find_heading(page, section)
    if heading is None:
        logger.debug(f"No {section} heading; nothing to delete")
        return 0
    deleted = 0
    while deleted < limit:
        button = (await page.evaluate_handle(FIND_DELETE_BUTTON_JS, heading)).as_element()
        if button is None:
            break
        await button.click()
        await asyncio.sleep(DELETE_SETTLE_SECONDS)
        try:
            await page.evaluate(CONFIRM_DELETE_JS)
        except Exception as exc:
            logger.debug(f"Delete confirmation failed: {exc}")
        await asyncio.sleep(0.5)
        deleted += 1
    if deleted:
        logger.info(f"Deleted {deleted} parsed {section} entr{'y' if deleted == 1 else 'ies'}")
    return deleted


async def click_save(page: Any, section: str) -> bool:
    try:
        saved = bool(await page.evaluate(CLICK_SAVE_JS))
    except Exception as exc:
        logger.debug(f"Save click failed for {section}: {exc}")
        return False
    if saved:
        await asyncio.sleep(SAVE_SETTLE_SECONDS)
    else:
        logger.debug(f"No Save button for {section}")
    return saved


async def fill_block(executor: Any, section: str, entry: Any, block: Sequence[ClassifiedField]) -> int:
    """Fill one freshly added entry block; returns the number of fields written."""

    values = entry_values(section, entry)
    template = TEMPLATES[section]
    rows = group_by_row(block)
    logger.debug(f"New {section} block has {len(block)} fields in {len(rows)} rows")

    if template_fits(rows, template, values):
        filled = 0
        for item, value, kind in plan_positional(rows, template, values):
            if await executor.fill_value(item, value, kind):
                filled += 1
        return filled

    logger.info(f"Row layout does not match the {section} template; matching by label")
    ctx: FillContext = executor.ctx
    profile = single_entry_profile(ctx.profile, section, entry)
    mapped = map_fields(classify_fields(block), profile, ctx)
    result: FillResult = await executor.fill_fields(mapped)
    return result.filled


async def add_entry(executor: Any, section: str, entry: Any) -> int:
    """Click Add once, isolate the fields it created and fill them.

    Returns -1 when no Add button exists or the click produced nothing.
    """

    page = executor.page
    ctx: FillContext = executor.ctx
    button = await find_add_button(page, section)
    if button is None:
        logger.info(f"No Add button for {section}")
        return -1
    await mark_seen(page)
    await button.click()
    await asyncio.sleep(ADD_SETTLE_SECONDS)

    detected = await executor.handler.detect_fields(page, ctx)
    block = filter_block(unseen_fields(detected))
    if not block:
        logger.info(f"Add for {section} produced no new fields")
        return -1
    return await fill_block(executor, section, entry, block)


async def expand_sections(
    page: Any,
    ctx: FillContext,
    executor: Any,
    *,
    clear_parsed: bool = False,
    save_entries: bool = False,
) -> int:
    """Add and fill the entries the page does not show yet.

    Parameters
    ----------
    page:
        Playwright page being filled.
    ctx:
        Pass state; ``section_progress`` records entries placed per section.
    executor:
        :class:`~applyfill.fill.executor.FillExecutor` used for the writes.
    clear_parsed:
        Delete blocks a resume parser inserted before adding our own.
    save_entries:
        Click the section's Save button after each entry.

    Returns
    -------
    int
        Fields written across all added entries.
    """

    total = 0
    for section in SECTIONS:
        if ctx.cancelled:
            break
        entries = section_entries(section, ctx.profile, ctx)
        if not entries:
            logger.debug(f"No {section} entries to place")
            continue

        if clear_parsed:
            await delete_parsed_entries(page, section)
            existing = 0
        else:
            existing = count_instances(section, await executor.handler.detect_fields(page, ctx))
        # The main pipeline always fills the first block.
        existing = max(existing, 1)

        missing = entries[existing:]
        logger.info(f"{section}: {existing} block(s) present, {len(missing)} to add")
        for entry in missing:
            if ctx.cancelled:
                break
            try:
                filled = await add_entry(executor, section, entry)
            except Exception as exc:
                logger.warning(f"Adding {section} entry failed: {exc}")
                continue
            if filled < 0:
                break
            total += filled
            ctx.section_progress[section] = ctx.section_progress.get(section, existing) + 1
            if save_entries:
                await click_save(page, section)
            await asyncio.sleep(ENTRY_PAUSE_SECONDS)
    return total
