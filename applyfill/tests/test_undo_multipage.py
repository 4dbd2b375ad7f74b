from __future__ import annotations

from typing import Any, Dict, List

import pytest

from applyfill import multipage
from applyfill.multipage import (
    FIELD_SIGNATURE_JS,
    FIND_BUTTON_JS,
    MAX_PAGES,
    MUTATION_COUNT_JS,
    OBSERVE_MUTATIONS_JS,
    PAGE_SIGNALS_JS,
    advance_page,
    is_last_page,
    looks_final,
    step_position,
    wait_for_dom_change,
)
from applyfill.undo import RESTORE_ENTRY_JS, SNAPSHOT_JS, restore_snapshot, take_snapshot


class SnapshotPage:
    def __init__(self, entries: List[Dict[str, Any]], missing: set[str] = frozenset()) -> None:
        self.entries = entries
        self.missing = missing
        self.restored: List[Dict[str, Any]] = []

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script == SNAPSHOT_JS:
            return self.entries
        if script == RESTORE_ENTRY_JS:
            self.restored.append(arg)
            return arg["entry"]["selector"] not in self.missing
        raise AssertionError("unexpected script")


@pytest.mark.asyncio
async def test_restore_writes_back_every_captured_value():
    page = SnapshotPage(
        [
            {"selector": "#first", "tag": "input", "type": "text", "value": "", "checked": False, "selectedIndex": -1},
            {"selector": "#state", "tag": "select", "type": "select-one", "value": "", "selectedIndex": 0},
            {"selector": "[name=\"gone\"]", "tag": "input", "type": "checkbox", "checked": True},
        ],
        missing={"[name=\"gone\"]"},
    )

    snapshot = await take_snapshot(page)
    assert snapshot.can_undo

    outcome = await restore_snapshot(snapshot)

    assert outcome == {"restored": 2, "failed": 1}
    assert [call["index"] for call in page.restored] == [0, 1, 2]
    assert page.restored[1]["entry"]["selectedIndex"] == 0
    assert page.restored[2]["entry"]["checked"] is True
    assert not snapshot.can_undo
    assert await restore_snapshot(snapshot) == {"restored": 0, "failed": 0}


class SnapshotFrame(SnapshotPage):
    def __init__(self, url: str, entries: List[Dict[str, Any]]) -> None:
        super().__init__(entries)
        self.url = url


class FramedPage:
    url = "https://careers.example.org/apply"

    def __init__(self, frames: List[SnapshotFrame]) -> None:
        self.frames = frames


@pytest.mark.asyncio
async def test_snapshot_covers_same_origin_frames_only():
    main = SnapshotFrame("https://careers.example.org/apply", [{"selector": "#email", "tag": "input", "type": "email"}])
    child = SnapshotFrame("https://careers.example.org/form", [{"selector": "#phone", "tag": "input", "type": "tel"}])
    tracker = SnapshotFrame("https://ads.example.net/pixel", [{"selector": "#x", "tag": "input", "type": "text"}])
    snapshot = await take_snapshot(FramedPage([main, child, tracker]))

    assert [entry.selector for entry in snapshot.entries] == ["#email", "#phone"]

    outcome = await restore_snapshot(snapshot)

    assert outcome == {"restored": 2, "failed": 0}
    assert [call["index"] for call in main.restored] == [0]
    assert [call["entry"]["selector"] for call in child.restored] == ["#phone"]
    assert child.restored[0]["index"] == 0
    assert tracker.restored == []


@pytest.mark.asyncio
async def test_snapshot_failure_leaves_nothing_to_undo():
    class BrokenPage:
        async def evaluate(self, script: str, arg: Any = None) -> Any:
            raise RuntimeError("target closed")

    snapshot = await take_snapshot(BrokenPage())

    assert not snapshot.can_undo


def test_step_position_and_final_detection():
    assert step_position("Application - Step 2 of 5") == (2, 5)
    assert step_position("step 3/3") == (3, 3)
    assert step_position("Contact details") is None
    assert looks_final("Step 4 of 4", [])
    assert looks_final("", ["Review your application"])
    assert not looks_final("Step 1 of 4", ["Personal information"])


class Handle:
    def __init__(self, element: Any) -> None:
        self.element = element

    def as_element(self) -> Any:
        return self.element


class Button:
    def __init__(self, page: "WizardPage") -> None:
        self.page = page
        self.clicks = 0

    async def scroll_into_view_if_needed(self) -> None:
        return None

    async def click(self) -> None:
        self.clicks += 1
        self.page.signature = "INPUT:license:text"


class WizardPage:
    def __init__(self, *, has_next: bool = True, has_submit: bool = False, headings: List[str] | None = None) -> None:
        self.signature = "INPUT:email:text"
        self.button = Button(self)
        self.has_next = has_next
        self.has_submit = has_submit
        self.headings = headings or []

    async def evaluate_handle(self, script: str, arg: Any = None) -> Handle:
        assert script == FIND_BUTTON_JS
        wants_submit = "submit" in " ".join(arg["include"])
        if wants_submit:
            return Handle(object() if self.has_submit else None)
        return Handle(self.button if self.has_next else None)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script == FIELD_SIGNATURE_JS:
            return self.signature
        if script == PAGE_SIGNALS_JS:
            return {"text": "", "headings": self.headings}
        raise AssertionError("unexpected script")


@pytest.fixture
def fast_polling(monkeypatch):
    monkeypatch.setattr(multipage, "POLL_INTERVAL_SECONDS", 0)


@pytest.mark.asyncio
async def test_advance_clicks_next_and_waits_for_new_fields(fast_polling):
    page = WizardPage()

    assert await advance_page(page, settle_seconds=0)
    assert page.button.clicks == 1


@pytest.mark.asyncio
async def test_advance_refuses_past_page_limit(fast_polling):
    page = WizardPage()

    assert not await advance_page(page, MAX_PAGES)
    assert page.button.clicks == 0


@pytest.mark.asyncio
async def test_advance_without_next_button(fast_polling):
    assert not await advance_page(WizardPage(has_next=False))


@pytest.mark.asyncio
async def test_last_page_detection():
    assert await is_last_page(WizardPage(has_next=False, has_submit=True))
    assert await is_last_page(WizardPage(headings=["Review and Submit"]))
    assert not await is_last_page(WizardPage(headings=["Work history"]))


class MutatingPage:
    def __init__(self, counts: List[int]) -> None:
        self.counts = counts
        self.observed = 0

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script == OBSERVE_MUTATIONS_JS:
            self.observed += 1
            return None
        if script == MUTATION_COUNT_JS:
            return self.counts.pop(0) if len(self.counts) > 1 else self.counts[0]
        raise AssertionError("unexpected script")


@pytest.mark.asyncio
async def test_dom_change_reported_once_mutations_settle(fast_polling):
    page = MutatingPage([0, 4, 7, 7])

    assert await wait_for_dom_change(page, 5.0)
    assert page.observed == 1
    assert page.counts == [7]


@pytest.mark.asyncio
async def test_quiet_dom_reports_no_change(fast_polling):
    assert not await wait_for_dom_change(MutatingPage([0]), 0.05)
