"""Attach downloaded documents to file inputs and drag-drop zones."""
from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any, Sequence

from ..documents import DownloadedFile

logger = logging.getLogger(__name__)

DROPZONE_SELECTORS: Sequence[str] = (
    '[class*="dropzone"]',
    '[class*="drop-zone"]',
    '[class*="upload-area"]',
    '[class*="file-upload"]',
    '[class*="drag-drop"]',
    '[class*="DragDrop"]',
    '[data-automation-id*="file"]',
    '[data-automation-id*="upload"]',
    '[data-testid*="upload"]',
    '.upload-widget',
    '.resume-upload',
    '.file-drop',
    '[role="button"][aria-label*="upload"]',
    '[role="button"][class*="upload"]',
)

FILE_COUNT_JS = "(el) => (el.files ? el.files.length : 0)"

HIDDEN_INPUT_JS = """
(zone) => {
    let scope = zone;
    for (let depth = 0; scope && depth < 3; depth++) {
        const input = scope.querySelector('input[type="file"]');
        if (input) return input;
        scope = scope.parentElement;
    }
    return null;
}
"""

SYNTHETIC_DROP_JS = """
async (target, file) => {
    const bytes = Uint8Array.from(atob(file.data), (c) => c.charCodeAt(0));
    const blob = new File([bytes], file.name, {type: file.mimeType});
    const transfer = new DataTransfer();
    transfer.items.add(blob);
    if (target.tagName === 'INPUT' && target.type === 'file') {
        target.files = transfer.files;
        target.dispatchEvent(new Event('input', {bubbles: true}));
        target.dispatchEvent(new Event('change', {bubbles: true}));
    }
    for (const type of ['dragenter', 'dragover', 'drop']) {
        target.dispatchEvent(new DragEvent(type, {bubbles: true, cancelable: true, dataTransfer: transfer}));
        await new Promise((resolve) => setTimeout(resolve, 100));
    }
    target.dispatchEvent(new DragEvent('dragleave', {bubbles: true}));
    return true;
}
"""


async def _file_count(element: Any) -> int:
    try:
        return int(await element.evaluate(FILE_COUNT_JS) or 0)
    except Exception:
        return 0


async def set_input_file(element: Any, document: DownloadedFile) -> bool:
    """Primary path: Playwright's ``set_input_files`` on an ``<input type=file>``."""

    try:
        await element.set_input_files(document.as_payload())
    except Exception as exc:
        logger.debug(f"set_input_files failed: {exc}")
        return False
    return await _file_count(element) > 0


async def synthesize_drop(target: Any, document: DownloadedFile) -> bool:
    """Secondary path: DataTransfer assignment plus a synthetic drag-and-drop."""

    payload = {
        "name": document.name,
        "mimeType": document.mime_type,
        "data": base64.b64encode(document.buffer).decode("ascii"),
    }
    try:
        return bool(await target.evaluate(SYNTHETIC_DROP_JS, payload))
    except Exception as exc:
        logger.debug(f"Synthetic drop failed: {exc}")
        return False


async def find_drop_zones(page: Any) -> list:
    zones = []
    for selector in DROPZONE_SELECTORS:
        try:
            for handle in await page.query_selector_all(selector):
                if await handle.is_visible():
                    zones.append(handle)
        except Exception:
            continue
    return zones


async def attach_to_element(element: Any, document: DownloadedFile) -> bool:
    """Try every attachment path for one candidate element."""

    if await set_input_file(element, document):
        return True
    hidden = (await element.evaluate_handle(HIDDEN_INPUT_JS)).as_element()
    if hidden is not None and await set_input_file(hidden, document):
        return True
    return await synthesize_drop(element, document)


async def upload_file(page: Any, element: Any, document: DownloadedFile) -> bool:
    """Attach ``document`` to ``element``, then to any visible drop zone."""

    if element is not None and await attach_to_element(element, document):
        logger.info(f"Attached {document.name}")
        return True
    for zone in await find_drop_zones(page):
        if await attach_to_element(zone, document):
            logger.info(f"Attached {document.name} via drop zone")
            await asyncio.sleep(0.2)
            return True
    return False
