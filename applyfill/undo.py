"""Snapshot form values before a pass so the whole pass can be rolled back.

The snapshot covers the same ground the scanner fills: the document, its open
shadow roots and every same-origin frame.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .scanner import _same_origin

logger = logging.getLogger(__name__)

SNAPSHOT_JS = """
() => {
    const selectorFor = (el) => {
        if (el.id) return `#${CSS.escape(el.id)}`;
        const name = el.getAttribute('name');
        if (name) return `[name="${CSS.escape(name)}"]`;
        const aria = el.getAttribute('aria-label');
        if (aria) return `[aria-label="${CSS.escape(aria)}"]`;
        const tag = el.tagName.toLowerCase();
        const parent = el.parentElement;
        if (!parent) return tag;
        const siblings = Array.from(parent.children).filter((node) => node.tagName === el.tagName);
        return `${tag}:nth-of-type(${siblings.indexOf(el) + 1})`;
    };
    const elements = [];
    const walk = (root) => {
        root.querySelectorAll('input, select, textarea, [contenteditable="true"]').forEach((el) => elements.push(el));
        root.querySelectorAll('*').forEach((el) => {
            if (el.shadowRoot) walk(el.shadowRoot);
        });
    };
    walk(document);
    window.__applyfillSnapshot = elements;
    return elements.map((el) => ({
        selector: selectorFor(el),
        tag: el.tagName.toLowerCase(),
        type: (el.type || '').toLowerCase(),
        value: el.isContentEditable && el.tagName !== 'INPUT' && el.tagName !== 'TEXTAREA'
            ? (el.textContent || '')
            : (el.value || ''),
        checked: !!el.checked,
        selectedIndex: el.tagName === 'SELECT' ? el.selectedIndex : -1,
        editable: el.isContentEditable && el.tagName !== 'INPUT' && el.tagName !== 'TEXTAREA',
    }));
}
"""

RESTORE_ENTRY_JS = """
({index, entry}) => {
    let el = (window.__applyfillSnapshot || [])[index];
    if (!el || !el.isConnected) {
        const find = (root) => {
            const hit = root.querySelector(entry.selector);
            if (hit) return hit;
            for (const host of root.querySelectorAll('*')) {
                const nested = host.shadowRoot && find(host.shadowRoot);
                if (nested) return nested;
            }
            return null;
        };
        el = find(document);
        if (!el) return false;
    }
    const fire = (type) => el.dispatchEvent(new Event(type, {bubbles: true}));
    if (entry.tag === 'select') {
        el.selectedIndex = entry.selectedIndex;
        fire('change');
    } else if (entry.tag === 'input' && (entry.type === 'checkbox' || entry.type === 'radio')) {
        el.checked = entry.checked;
        fire('change');
    } else if (entry.editable) {
        el.textContent = entry.value;
        fire('input');
    } else {
        const proto = el.tagName === 'TEXTAREA' ? HTMLTextAreaElement.prototype : HTMLInputElement.prototype;
        const setter = Object.getOwnPropertyDescriptor(proto, 'value');
        if (setter && setter.set) setter.set.call(el, entry.value);
        else el.value = entry.value;
        fire('input');
        fire('change');
    }
    return true;
}
"""


@dataclass(slots=True)
class FieldSnapshot:
    selector: str
    tag: str
    frame: Any = None
    index: int = 0
    type: str = ""
    value: str = ""
    checked: bool = False
    selected_index: int = -1
    editable: bool = False

    def to_payload(self) -> Dict[str, Any]:
        return {
            "selector": self.selector,
            "tag": self.tag,
            "type": self.type,
            "value": self.value,
            "checked": self.checked,
            "selectedIndex": self.selected_index,
            "editable": self.editable,
        }


@dataclass(slots=True)
class FormSnapshot:
    """Values of every form control on a page, captured before filling."""

    page: Any
    entries: List[FieldSnapshot] = field(default_factory=list)

    @property
    def can_undo(self) -> bool:
        return bool(self.entries)

    def clear(self) -> None:
        self.entries = []


async def take_snapshot(page: Any) -> FormSnapshot:
    entries: List[FieldSnapshot] = []
    frames = getattr(page, "frames", None) or [page]
    page_url = getattr(page, "url", "")
    for frame in frames:
        if frame is not page and not _same_origin(getattr(frame, "url", ""), page_url):
            continue
        try:
            raw = await frame.evaluate(SNAPSHOT_JS)
        except Exception as exc:
            logger.warning(f"Snapshot failed: {exc}")
            continue
        entries.extend(_entries(frame, raw))
    logger.debug(f"Snapshot taken: {len(entries)} fields")
    return FormSnapshot(page=page, entries=entries)


def _entries(frame: Any, raw: Any) -> List[FieldSnapshot]:
    return [
        FieldSnapshot(
            selector=str(item.get("selector") or ""),
            tag=str(item.get("tag") or ""),
            type=str(item.get("type") or ""),
            value=str(item.get("value") or ""),
            checked=bool(item.get("checked")),
            selected_index=int(item.get("selectedIndex", -1)),
            editable=bool(item.get("editable")),
            frame=frame,
            index=index,
        )
        for index, item in enumerate(raw or [])
    ]


async def restore_snapshot(snapshot: FormSnapshot) -> Dict[str, int]:
    """Write the captured values back; the snapshot is consumed.

    Elements re-rendered since the snapshot are re-found through their stored
    selector. Returns ``{"restored": n, "failed": m}``.
    """

    if not snapshot.can_undo:
        logger.info("No snapshot available")
        return {"restored": 0, "failed": 0}

    restored = failed = 0
    for entry in snapshot.entries:
        target = entry.frame if entry.frame is not None else snapshot.page
        try:
            ok = await target.evaluate(RESTORE_ENTRY_JS, {"index": entry.index, "entry": entry.to_payload()})
        except Exception as exc:
            logger.debug(f"Restore of {entry.selector!r} failed: {exc}")
            ok = False
        if ok:
            restored += 1
        else:
            failed += 1

    logger.info(f"Restored {restored}/{len(snapshot.entries)} fields ({failed} failed)")
    snapshot.clear()
    return {"restored": restored, "failed": failed}
