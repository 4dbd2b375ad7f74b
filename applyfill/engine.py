"""End-to-end autofill pass over one Playwright page."""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from .ai import AIClassificationCache, classify_unknown_fields, extract_job_context, fill_with_ai
from .api import AutofillAPI
from .config import Settings, get_settings
from .context import FillContext, field_key
from .documents import download_document, find_matching_document
from .errors import AutofillError, ProfileUnavailableError
from .fill.executor import FillExecutor
from .mapper import map_fields
from .models import ClassifiedField, DocumentAttachResult, FillDetail, FillResult, MappedField
from .multipage import advance_page, is_last_page, wait_for_dom_change
from .platforms import HANDLERS, PageInfo, PlatformHandler, collect_page_info, detect_ats, get_active_handler
from .platforms.base import generic_detect_fields
from .profile import CandidateProfile, ProfileClient, load_profile_file
from .screening import fill_screening_questions
from .undo import FormSnapshot, restore_snapshot, take_snapshot

logger = logging.getLogger(__name__)

MAX_MUTATION_RESCANS = 2


class AutofillEngine:
    """Runs scan → classify → map → fill passes with one profile.

    The profile comes from ``profile`` when given, then ``profile_path``, then
    the profile service. Every :meth:`run` takes a fresh snapshot so
    :meth:`undo` rolls back the most recent pass.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        profile: CandidateProfile | None = None,
        profile_path: str | None = None,
        profile_client: ProfileClient | None = None,
        api: AutofillAPI | None = None,
        ai_cache: AIClassificationCache | None = None,
        handlers: Sequence[PlatformHandler] = HANDLERS,
    ) -> None:
        self.settings = settings or get_settings()
        self._profile = profile
        self._profile_path = profile_path
        self._profile_client = profile_client or ProfileClient(self.settings)
        self.api = api or AutofillAPI(self.settings)
        self.ai_cache = ai_cache or AIClassificationCache(ttl_seconds=self.settings.ai_cache_ttl_seconds)
        self.handlers = tuple(handlers)
        self._snapshot: Optional[FormSnapshot] = None
        self._ctx: Optional[FillContext] = None

    # ----------------------------
    # Lifecycle
    # ----------------------------

    async def load_profile(self) -> CandidateProfile:
        if self._profile is not None:
            return self._profile
        if self._profile_path:
            self._profile = load_profile_file(self._profile_path)
            return self._profile
        return await self._profile_client.fetch()

    @property
    def can_undo(self) -> bool:
        return self._snapshot is not None and self._snapshot.can_undo

    async def undo(self) -> Dict[str, int]:
        if self._snapshot is None:
            return {"restored": 0, "failed": 0}
        return await restore_snapshot(self._snapshot)

    def cancel(self) -> None:
        if self._ctx is not None:
            self._ctx.cancel()

    async def close(self) -> None:
        await self.api.close()

    # ----------------------------
    # Stages
    # ----------------------------

    async def detect_fields(self, page: Any, ctx: FillContext, handler: PlatformHandler) -> List[ClassifiedField]:
        try:
            fields = await handler.detect_fields(page, ctx)
        except Exception as exc:
            logger.warning(f"{handler.name} field detection failed: {exc}")
            fields = []
        if not fields and handler.detect_fields is not generic_detect_fields:
            logger.info(f"{handler.name} found no fields; falling back to generic detection")
            fields = await generic_detect_fields(page, ctx)
        return fields

    async def _ai_fallback(
        self, classified: Sequence[ClassifiedField], mapped: List[MappedField], ctx: FillContext, info: PageInfo
    ) -> List[MappedField]:
        unknown = [
            classified[index]
            for index, item in enumerate(mapped)
            if item.status == "needs_ai" and item.fill_method != "ai_generate"
        ]
        if not unknown:
            return mapped
        resolved = await classify_unknown_fields(unknown, ctx, self.api, self.ai_cache, info.hostname)
        replacements = {field_key(item): item for item in resolved}
        return [replacements.get(field_key(item), item) for item in mapped]

    async def _answer_open_ended(self, mapped: Sequence[MappedField], ctx: FillContext, result: FillResult) -> int:
        questions = [item for item in mapped if item.fill_method == "ai_generate" and item.element is not None]
        if not questions:
            return 0
        outcome = await fill_with_ai(questions, ctx, self.api)
        for detail in outcome.details:
            if detail.status in {"generated", "stored"}:
                _resolve_review(result, detail.field, "filled", None, value=detail.answer)
                result.needs_ai -= 1
        if outcome.rate_limited:
            logger.warning("AI answers rate limited; open-ended questions left for review")
        return outcome.generated + outcome.stored

    async def _fill_revealed(
        self,
        page: Any,
        ctx: FillContext,
        handler: PlatformHandler,
        executor: FillExecutor,
        known: set[str],
    ) -> FillResult:
        rescanned = await self.detect_fields(page, ctx, handler)
        fresh = [item for item in rescanned if field_key(item) not in known and not ctx.is_claimed(field_key(item))]
        logger.info(f"Re-scan found {len(fresh)} new field(s)")
        known.update(field_key(item) for item in fresh)
        return await executor.fill_fields(map_fields(fresh, ctx.profile, ctx))

    async def rescan_after_mutations(
        self,
        page: Any,
        ctx: FillContext,
        handler: PlatformHandler,
        executor: FillExecutor,
        known: set[str],
    ) -> FillResult:
        """Fill fields that page scripts render after the main pass."""

        combined = FillResult()
        for _ in range(MAX_MUTATION_RESCANS):
            if ctx.cancelled or not await wait_for_dom_change(page, self.settings.mutation_watch_seconds):
                break
            result = await self._fill_revealed(page, ctx, handler, executor, known)
            if not result.total:
                break
            combined.merge(result)
        return combined

    async def _load_resume_sections(self, ctx: FillContext) -> None:
        missing = []
        if not ctx.profile.education:
            missing.append("education")
        if not ctx.profile.work_experience:
            missing.append("experience")
        if not missing or not self.api.configured:
            return
        try:
            sections = await self.api.extract_resume_sections(missing)
        except AutofillError as exc:
            logger.warning(f"Resume section extraction failed: {exc}")
            return
        ctx.resume_education = sections.get("education", [])
        ctx.resume_experience = sections.get("experience", [])

    async def attach_documents(
        self, page: Any, mapped: Sequence[MappedField], ctx: FillContext, handler: PlatformHandler, result: FillResult
    ) -> DocumentAttachResult:
        files = [item for item in mapped if item.status == "needs_file" and item.element is not None]
        report = DocumentAttachResult(total=len(files))
        for item in files:
            if ctx.cancelled:
                break
            document = find_matching_document(ctx.profile, item.document_type)
            if document is None:
                report.details.append({"field": item.display_name, "status": "skipped", "error": "No stored document"})
                continue
            try:
                downloaded = await download_document(document, timeout=self.settings.http_timeout_seconds)
                attached = await handler.handle_file_upload(page, item, downloaded, ctx)
            except AutofillError as exc:
                logger.warning(f"Could not attach {item.document_type} to {item.display_name!r}: {exc}")
                attached = False
            except Exception as exc:
                logger.warning(f"Upload to {item.display_name!r} failed: {exc}")
                attached = False
            if attached:
                report.attached += 1
                result.needs_file -= 1
                _resolve_review(result, item.display_name, "filled", None, value=document.file_name)
                ctx.claim(field_key(item))
                report.details.append({"field": item.display_name, "status": "attached", "file": document.file_name})
            else:
                report.failed += 1
                report.details.append({"field": item.display_name, "status": "failed"})
        if files:
            logger.info(f"Attached {report.attached}/{report.total} document(s)")
        return report

    # ----------------------------
    # Pass
    # ----------------------------

    async def run(self, page: Any) -> FillResult:
        """One complete pass over the current page.

        Field-level failures never abort the pass; only a missing profile
        raises (:class:`ProfileUnavailableError`).
        """

        started = time.perf_counter()
        profile = await self.load_profile()
        if profile is None:
            raise ProfileUnavailableError("No candidate profile available")

        self._snapshot = await take_snapshot(page)
        info = await collect_page_info(page)
        handler = get_active_handler(info, self.handlers)
        ctx = FillContext(profile=profile, settings=self.settings, platform=handler.name)
        self._ctx = ctx
        ctx.job = await extract_job_context(page)

        classified = await self.detect_fields(page, ctx, handler)
        mapped = map_fields(classified, profile, ctx)
        if self.settings.ai_enabled and self.api.configured:
            mapped = await self._ai_fallback(classified, mapped, ctx, info)

        known = {field_key(item) for item in classified}
        executor = FillExecutor(page, ctx, handler)
        result = await executor.fill_fields(mapped)
        ai_generations = 0
        if self.settings.ai_enabled and self.api.configured and not ctx.cancelled:
            ai_generations = await self._answer_open_ended(mapped, ctx, result)

        if executor.revealed and not ctx.cancelled:
            result.merge(await self._fill_revealed(page, ctx, handler, executor, known))

        if handler.handle_repeatable is not None and not ctx.cancelled:
            await self._load_resume_sections(ctx)
            try:
                added = await handler.handle_repeatable(page, ctx, executor)
            except Exception as exc:
                logger.warning(f"Repeatable sections failed: {exc}")
                added = 0
            result.total += added
            result.filled += added

        if not ctx.cancelled:
            answered = await fill_screening_questions(page, ctx)
            result.total += answered
            result.filled += answered
            for _ in range(answered):
                result.details.append(FillDetail("Screening question", "screening", status="filled"))

        if self.settings.mutation_watch_seconds > 0 and not ctx.cancelled:
            result.merge(await self.rescan_after_mutations(page, ctx, handler, executor, known))

        if not ctx.cancelled:
            await self.attach_documents(page, mapped, ctx, handler, result)

        if handler.handle_multi_step is not None:
            progress = await handler.handle_multi_step(page, ctx)
            logger.info(f"{handler.name} step {progress.get('current_step')}/{progress.get('total_steps')}")

        result.platform = handler.name
        result.duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Autofill pass complete",
            extra={
                "platform": handler.name,
                "filled": result.filled,
                "failed": result.failed,
                "needsAI": result.needs_ai,
                "needsFile": result.needs_file,
            },
        )
        if self.settings.track_usage and self.api.configured:
            ats = detect_ats(info)
            await self.api.track(page.url, ats[0] if ats else None, result.filled, ai_generations)
        return result

    async def run_all_pages(self, page: Any) -> FillResult:
        """Fill every step of a multi-page application, stopping before submit."""

        combined = FillResult()
        pages = 0
        while True:
            result = await self.run(page)
            combined.merge(result)
            combined.platform = result.platform
            combined.duration_ms += result.duration_ms
            if self._ctx is not None and self._ctx.cancelled:
                break
            if await is_last_page(page):
                logger.info("Last page reached; leaving submission to the user")
                break
            if not await advance_page(page, pages):
                break
            pages += 1
        return combined


def _resolve_review(result: FillResult, name: str, status: str, error: Optional[str], *, value: str = "") -> None:
    """Turn a deferred ``needs_review`` detail into its final status."""

    for detail in result.details:
        if detail.field == name and detail.status == "needs_review":
            detail.status = status
            detail.error = error
            if value:
                detail.value = value if len(value) <= 100 else value[:97] + "..."
            break
    if status == "filled":
        result.filled += 1
