"""Sequential fill loop: ordering, skip rules, strategy dispatch and reporting."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, List, Optional, Sequence, Tuple

from ..context import FillContext, field_key
from ..models import FillDetail, FillResult, MappedField, ScannedField
from .choice import fill_checkbox, fill_radio
from .conditional import reveals_dependents, wait_for_dependents
from .date_input import fill_date
from .dom import scroll_into_view
from .multiselect import fill_multiselect
from .rich_text import fill_rich_text
from .text import detect_input_kind, fill_text
from .typeahead import fill_typeahead

logger = logging.getLogger(__name__)

FILL_ORDER = {
    "text": 0,
    "date": 1,
    "select": 2,
    "radio": 3,
    "checkbox": 4,
    "file": 5,
    "ai_generate": 6,
}

SKIP_REASONS = {
    "no_data": "No profile data",
    "ambiguous": "Ambiguous match",
}

# Choice inputs report their checked state, not a value to preserve.
PREFILL_EXEMPT_METHODS = {"checkbox"}


def sort_for_fill(fields: Sequence[MappedField]) -> List[MappedField]:
    """Stable sort by fill method so typed values land before dependent widgets."""

    return sorted(fields, key=lambda item: FILL_ORDER.get(item.fill_method, len(FILL_ORDER)))


def skip_reason(field: MappedField, overwrite: bool) -> Optional[str]:
    if field.status in SKIP_REASONS:
        return SKIP_REASONS[field.status]
    if field.current_value and not overwrite and field.fill_method not in PREFILL_EXEMPT_METHODS:
        return "Already has value"
    return None


def _preview(value: Any) -> str:
    text = str(value or "")
    return text if len(text) <= 100 else text[:97] + "..."


class FillExecutor:
    """Writes mapped values into one page using a platform handler's overrides.

    One executor serves one pass; ``revealed`` counts dependent fields that
    appeared after trigger questions were answered so the engine knows to
    re-scan.
    """

    def __init__(self, page: Any, ctx: FillContext, handler: Any):
        self.page = page
        self.ctx = ctx
        self.handler = handler
        self.revealed = 0

    async def fill_fields(self, fields: Sequence[MappedField]) -> FillResult:
        started = time.perf_counter()
        result = FillResult(total=len(fields), platform=self.handler.name)

        for item in sort_for_fill(fields):
            if self.ctx.cancelled:
                logger.info("Fill cancelled; stopping before remaining fields")
                break
            if item.status == "needs_ai":
                result.needs_ai += 1
                result.details.append(
                    FillDetail(item.display_name, item.identifier, status="needs_review", error="Needs AI answer")
                )
                continue
            if item.status == "needs_file":
                result.needs_file += 1
                result.details.append(
                    FillDetail(item.display_name, item.identifier, status="needs_review", error="Document upload pending")
                )
                continue

            detail = await self.fill_field(item)
            result.record(detail)
            if detail.status == "filled":
                await asyncio.sleep(self.ctx.fill_delay)

        result.duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"Filled {result.filled}/{result.total} fields "
            f"({result.skipped} skipped, {result.failed} failed) in {result.duration_ms:.0f}ms"
        )
        return result

    async def fill_field(self, field: MappedField) -> FillDetail:
        """Fill a single mapped field; never raises."""

        detail = FillDetail(field.display_name, field.identifier, value=_preview(field.value))
        reason = skip_reason(field, self.ctx.settings.overwrite_existing)
        if reason is not None:
            detail.status = "skipped"
            detail.error = reason
            return detail
        key = field_key(field)
        if self.ctx.is_claimed(key):
            detail.status = "skipped"
            detail.error = "Already filled this pass"
            return detail

        try:
            ok, message = await self._apply(field)
        except Exception as exc:
            logger.warning(f"Failed to fill {field.display_name!r}: {exc}")
            detail.status = "failed"
            detail.error = str(exc) or exc.__class__.__name__
            return detail

        if not ok:
            detail.status = "failed"
            detail.error = message or "Could not set value"
            return detail

        detail.status = "filled"
        detail.error = message
        self.ctx.claim(key)
        await self._await_dependents(field)
        return detail

    async def fill_value(self, field: ScannedField, value: str, kind: str = "text") -> bool:
        """Write ``value`` into a raw scanned field (repeatable blocks)."""

        element = field.element
        if element is None or not value:
            return False
        try:
            if field.field_type in {"select", "listbox", "combobox"}:
                ok = await self.handler.handle_dropdown(element, value, self.ctx)
            elif kind == "date":
                ok, _ = await fill_date(element, value)
            elif kind == "typeahead":
                ok = await fill_typeahead(element, value, self.handler.typeahead)
            else:
                ok = (await fill_text(element, value)).verified
        except Exception as exc:
            logger.debug(f"Block field write failed: {exc}")
            return False
        if ok:
            self.ctx.claim(field_key(field))
        await asyncio.sleep(self.ctx.fill_delay)
        return ok

    async def _apply(self, field: MappedField) -> Tuple[bool, Optional[str]]:
        element = field.element
        if element is None:
            return False, "Element no longer available"

        if self.handler.fill_field is not None:
            handled = await self.handler.fill_field(self.page, field, self.ctx)
            if handled is not None:
                return handled, None

        await scroll_into_view(element)
        value = str(field.value)
        method = field.fill_method

        if method == "date":
            return await fill_date(element, value)
        if method == "select":
            if field.field_type == "select-multiple":
                return await fill_multiselect(element, field.value), None
            return await self.handler.handle_dropdown(element, value, self.ctx), None
        if method == "radio":
            return await fill_radio(element, value), None
        if method == "checkbox":
            return await fill_checkbox(element, value), None
        if method in {"file", "ai_generate"}:
            return False, f"{method} fields are handled outside the fill loop"
        return await self._fill_text_like(element, value)

    async def _fill_text_like(self, element: Any, value: str) -> Tuple[bool, Optional[str]]:
        kind = await detect_input_kind(element)
        if kind == "typeahead":
            return await fill_typeahead(element, value, self.handler.typeahead), None
        if kind == "rich_text":
            return await fill_rich_text(element, value) is not None, None
        outcome = await fill_text(element, value)
        return True, outcome.message

    async def _await_dependents(self, field: MappedField) -> None:
        pattern = reveals_dependents(field.label, field.value)
        if pattern is None:
            return
        appeared = await wait_for_dependents(self.page, pattern)
        if appeared:
            logger.info(f"{appeared} dependent field(s) appeared after {field.display_name!r}")
            self.revealed += appeared


async def fill_field(page: Any, field: MappedField, ctx: FillContext, handler: Any) -> FillDetail:
    return await FillExecutor(page, ctx, handler).fill_field(field)


async def fill_form(page: Any, fields: Sequence[MappedField], ctx: FillContext, handler: Any) -> FillResult:
    return await FillExecutor(page, ctx, handler).fill_fields(fields)
