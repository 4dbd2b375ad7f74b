"""Field discovery across the document, its frames and open shadow roots.

The browser side (``COLLECT_FIELDS_JS``) walks the DOM and returns element
handles alongside plain descriptors carrying the raw label candidates for each
resolution tier. Everything else (visibility filtering, label priority and
radio-group collapsing) happens here in Python so it can be reasoned about
without a browser.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
from urllib.parse import urlparse

from .models import Rect, ScannedField

logger = logging.getLogger(__name__)

SKIPPED_INPUT_TYPES = frozenset({"hidden", "submit", "button", "image", "reset"})

LABEL_TIERS: Sequence[str] = (
    "explicit",
    "wrapping",
    "labelledby",
    "aria",
    "sibling",
    "container",
)
"""Label sources in priority order; explicit associations always win."""

MAX_SIBLING_LABEL_LENGTH = 99
MAX_CONTAINER_LABEL_LENGTH = 99

CAPTURED_ATTRIBUTES: Sequence[str] = (
    "name",
    "id",
    "aria-label",
    "aria-labelledby",
    "data-automation-id",
    "data-testid",
    "data-test",
    "autocomplete",
    "data-field",
    "data-qa",
    "class",
    "placeholder",
    "role",
    "aria-autocomplete",
    "contenteditable",
    "value",
    "data-applyfill-seen",
)

SEEN_MARKER = "data-applyfill-seen"

MARK_SEEN_JS = """
(marker) => {
    const SELECTOR = 'input, select, textarea, [role="combobox"], [role="listbox"], [contenteditable="true"]';
    const visit = (root) => {
        root.querySelectorAll(SELECTOR).forEach((el) => el.setAttribute(marker, '1'));
        root.querySelectorAll('*').forEach((node) => {
            if (node.shadowRoot) visit(node.shadowRoot);
        });
    };
    visit(document);
}
"""

PLACEHOLDER_OPTION = re.compile(r"^(select|choose|--)", re.IGNORECASE)

COLLECT_FIELDS_JS = """
(captured) => {
    const SELECTOR = 'input, select, textarea, [role="combobox"], [role="listbox"], [contenteditable="true"]';
    const elements = [];
    const descriptors = [];
    const seen = new Set();
    const clean = (value) => (value || '').replace(/\\s+/g, ' ').trim();
    const textOf = (node) => node ? clean(node.innerText || node.textContent) : '';

    const isVisible = (el) => {
        const style = window.getComputedStyle(el);
        if (style.display === 'none' || style.visibility === 'hidden' || style.opacity === '0') {
            return false;
        }
        if (!el.offsetParent && style.position !== 'fixed') {
            return false;
        }
        const rect = el.getBoundingClientRect();
        return rect.width > 0 && rect.height > 0;
    };

    const labelCandidates = (el, root) => {
        const out = {explicit: '', wrapping: '', labelledby: '', aria: '', sibling: '', container: ''};
        const id = el.getAttribute('id');
        if (id) {
            try {
                const explicit = root.querySelector(`label[for="${CSS.escape(id)}"]`);
                out.explicit = textOf(explicit);
            } catch (e) {}
        }
        const wrapping = el.closest('label');
        if (wrapping) {
            const clone = wrapping.cloneNode(true);
            clone.querySelectorAll('input, select, textarea').forEach((node) => node.remove());
            out.wrapping = textOf(clone);
        }
        const labelledby = el.getAttribute('aria-labelledby');
        if (labelledby) {
            out.labelledby = clean(labelledby.split(/\\s+/)
                .map((ref) => textOf((root.getElementById ? root : document).getElementById(ref)))
                .filter(Boolean)
                .join(' '));
        }
        out.aria = clean(el.getAttribute('aria-label'));
        const previous = el.previousElementSibling;
        if (previous && !['INPUT', 'SELECT', 'TEXTAREA'].includes(previous.tagName)) {
            out.sibling = textOf(previous);
        }
        const parent = el.parentElement;
        if (parent) {
            const node = parent.querySelector('label, .label, [class*="label"]');
            if (node && node !== el) {
                out.container = textOf(node);
            }
        }
        return out;
    };

    const groupLabel = (el) => {
        const group = el.closest('fieldset, [role="radiogroup"], [role="group"]');
        if (!group) return '';
        const legend = group.querySelector('legend');
        if (legend) return textOf(legend);
        const aria = group.getAttribute('aria-label');
        if (aria) return clean(aria);
        const ref = group.getAttribute('aria-labelledby');
        if (ref) return textOf(document.getElementById(ref.split(/\\s+/)[0]));
        return '';
    };

    const fieldType = (el) => {
        const tag = el.tagName.toLowerCase();
        if (tag === 'select') return el.multiple ? 'select-multiple' : 'select';
        if (tag === 'textarea') return 'textarea';
        if (el.getAttribute('contenteditable') === 'true') return 'contenteditable';
        const role = el.getAttribute('role');
        if (tag !== 'input' && (role === 'combobox' || role === 'listbox')) return role;
        return (el.getAttribute('type') || 'text').toLowerCase();
    };

    const collect = (el, root) => {
        if (seen.has(el)) return;
        seen.add(el);
        const type = fieldType(el);
        const attributes = {};
        for (const name of captured) {
            const value = el.getAttribute(name);
            if (value !== null) attributes[name] = value;
        }
        let options = [];
        if (el.tagName === 'SELECT') {
            options = Array.from(el.options).map((option) => clean(option.text));
        }
        let value = '';
        if (type === 'checkbox' || type === 'radio') {
            value = el.checked ? 'true' : '';
        } else if (el.tagName === 'SELECT') {
            value = el.multiple
                ? Array.from(el.selectedOptions).map((option) => clean(option.text)).join(', ')
                : (el.selectedIndex >= 0 && el.value ? clean(el.options[el.selectedIndex].text) : '');
        } else if (type === 'contenteditable') {
            value = textOf(el);
        } else if ('value' in el) {
            value = el.value || '';
        }
        const rect = el.getBoundingClientRect();
        const maxLength = el.maxLength !== undefined && el.maxLength > 0 ? el.maxLength : null;
        elements.push(el);
        descriptors.push({
            tag: el.tagName.toLowerCase(),
            type,
            labels: labelCandidates(el, root),
            groupLabel: (type === 'radio' || type === 'checkbox') ? groupLabel(el) : '',
            placeholder: el.getAttribute('placeholder') || '',
            attributes,
            options,
            value,
            checked: !!el.checked,
            required: el.required === true || el.getAttribute('aria-required') === 'true',
            visible: isVisible(el),
            rect: {x: rect.left + window.scrollX, y: rect.top + window.scrollY, width: rect.width, height: rect.height},
            maxLength,
        });
    };

    const visit = (root) => {
        root.querySelectorAll(SELECTOR).forEach((el) => collect(el, root));
        root.querySelectorAll('*').forEach((node) => {
            if (node.shadowRoot) visit(node.shadowRoot);
        });
    };

    visit(document);
    return {elements, descriptors};
}
"""


def _clean(text: Optional[str]) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def resolve_label(candidates: Mapping[str, Optional[str]]) -> str:
    """Return the first usable label following :data:`LABEL_TIERS` order.

    Proximity tiers (``sibling`` and ``container``) are length-bounded so a
    paragraph of instructions next to an input is never taken as its label.
    """

    for tier in LABEL_TIERS:
        text = _clean(candidates.get(tier))
        if not text:
            continue
        if tier == "sibling" and len(text) > MAX_SIBLING_LABEL_LENGTH:
            continue
        if tier == "container" and len(text) > MAX_CONTAINER_LABEL_LENGTH:
            continue
        return text
    return ""


def is_fillable(descriptor: Mapping[str, Any]) -> bool:
    field_type = str(descriptor.get("type") or "").lower()
    if field_type in SKIPPED_INPUT_TYPES:
        return False
    if not descriptor.get("visible", True):
        return False
    rect = descriptor.get("rect") or {}
    if rect and (not rect.get("width") or not rect.get("height")):
        return False
    return True


def build_fields(
    descriptors: Sequence[Mapping[str, Any]],
    elements: Optional[Sequence[Any]] = None,
    *,
    frame_url: str = "",
    from_iframe: bool = False,
) -> List[ScannedField]:
    """Turn raw descriptors into scanned fields, collapsing radio groups by name."""

    fields: List[ScannedField] = []
    radio_groups: Dict[str, ScannedField] = {}

    for index, descriptor in enumerate(descriptors):
        if not is_fillable(descriptor):
            continue
        element = elements[index] if elements is not None and index < len(elements) else None
        attributes = {str(k): str(v) for k, v in (descriptor.get("attributes") or {}).items()}
        field_type = str(descriptor.get("type") or "text").lower()
        own_label = resolve_label(descriptor.get("labels") or {})

        if field_type == "radio":
            name = attributes.get("name", "")
            group = radio_groups.get(name) if name else None
            if group is not None:
                if own_label:
                    group.options.append(own_label)
                if descriptor.get("checked"):
                    group.current_value = own_label or attributes.get("value", "")
                continue

        options = [_clean(option) for option in descriptor.get("options") or []]
        if field_type in {"select", "select-multiple"}:
            options = [option for option in options if option and not PLACEHOLDER_OPTION.match(option)]

        label = own_label
        group_label = _clean(descriptor.get("groupLabel"))
        if field_type == "radio":
            options = [own_label] if own_label else []
            label = group_label or own_label
        elif field_type == "checkbox" and group_label and not own_label:
            label = group_label

        current_value = str(descriptor.get("value") or "")
        if field_type == "select" and PLACEHOLDER_OPTION.match(current_value):
            current_value = ""
        if field_type == "radio":
            current_value = own_label if descriptor.get("checked") else ""

        field = ScannedField(
            element=element,
            tag=str(descriptor.get("tag") or "input").lower(),
            field_type=field_type,
            label=label,
            placeholder=str(descriptor.get("placeholder") or ""),
            attributes=attributes,
            options=options,
            current_value=current_value,
            required=bool(descriptor.get("required")),
            visible=bool(descriptor.get("visible", True)),
            rect=Rect.from_mapping(descriptor.get("rect")),
            from_iframe=from_iframe,
            frame_url=frame_url,
            max_length=descriptor.get("maxLength"),
        )
        fields.append(field)
        if field_type == "radio" and attributes.get("name"):
            radio_groups[attributes["name"]] = field

    return fields


def _origin(url: str) -> str:
    parsed = urlparse(url or "")
    return f"{parsed.scheme}://{parsed.netloc}"


def _same_origin(frame_url: str, page_url: str) -> bool:
    if not frame_url or frame_url.startswith("about:"):
        return True
    return _origin(frame_url) == _origin(page_url)


async def scan_frame(frame: Any, *, from_iframe: bool = False) -> List[ScannedField]:
    """Collect fields from a single Playwright frame."""

    handle = await frame.evaluate_handle(COLLECT_FIELDS_JS, list(CAPTURED_ATTRIBUTES))
    try:
        descriptors = await (await handle.get_property("descriptors")).json_value()
        element_array = await handle.get_property("elements")
        properties = await element_array.get_properties()
        elements = []
        for index in range(len(descriptors)):
            item = properties.get(str(index))
            elements.append(item.as_element() if item is not None else None)
    finally:
        await handle.dispose()
    return build_fields(descriptors, elements, frame_url=frame.url, from_iframe=from_iframe)


async def scan(page: Any, *, include_cross_origin: bool = False) -> List[ScannedField]:
    """Scan the page and every reachable child frame.

    Cross-origin frames are skipped unless ``include_cross_origin`` is set; a
    frame that fails to evaluate (detached, navigating) is skipped silently.
    """

    fields: List[ScannedField] = []
    main_frame = page.main_frame
    for frame in page.frames:
        is_child = frame is not main_frame
        if is_child and not include_cross_origin and not _same_origin(frame.url, page.url):
            logger.debug(f"Skipping cross-origin frame {frame.url}")
            continue
        try:
            fields.extend(await scan_frame(frame, from_iframe=is_child))
        except Exception as exc:
            if not is_child:
                raise
            logger.debug(f"Frame scan failed for {frame.url}: {exc}")
    logger.info(f"Scanned {len(fields)} fillable fields")
    return fields


def field_snapshot_key(fields: Iterable[ScannedField]) -> str:
    """Order-independent signature used to notice that a page changed."""

    parts = sorted(
        f"{field.tag.upper()}:{field.name or field.element_id}:{field.field_type}" for field in fields
    )
    return "|".join(parts)


async def mark_seen(page: Any) -> None:
    """Tag every current form control so later scans can tell new ones apart."""

    for frame in page.frames:
        try:
            await frame.evaluate(MARK_SEEN_JS, SEEN_MARKER)
        except Exception as exc:
            logger.debug(f"Could not mark fields in {frame.url}: {exc}")


def unseen_fields(fields: Iterable[ScannedField]) -> List[ScannedField]:
    """Fields created after the last :func:`mark_seen` call."""

    return [field for field in fields if SEEN_MARKER not in field.attributes]
