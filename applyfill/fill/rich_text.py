"""Rich-text editors: CKEditor 5/4, TinyMCE, Quill, ProseMirror, contenteditable."""
from __future__ import annotations

import html
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

FILL_RICH_TEXT_JS = """
(el, args) => {
    const {html, text} = args;
    const fillEditable = (node) => {
        if (node.getAttribute('contenteditable') !== 'true' && !node.closest('[contenteditable="true"]')) {
            node.setAttribute('contenteditable', 'true');
        }
        node.focus();
        node.innerHTML = html;
        node.dispatchEvent(new InputEvent('input', {bubbles: true}));
        node.dispatchEvent(new Event('change', {bubbles: true}));
        node.dispatchEvent(new Event('blur', {bubbles: true}));
    };
    const within = (selector) => el.closest(selector) || el.querySelector(selector);

    const ck5 = within('.ck-editor');
    if (ck5) {
        const editable = ck5.querySelector('.ck-editor__editable');
        if (editable && editable.ckeditorInstance) {
            editable.ckeditorInstance.setData(html);
            return 'ckeditor5';
        }
        if (editable) {
            fillEditable(editable);
            return 'ckeditor5-editable';
        }
    }
    const CK4 = window.CKEDITOR;
    if (CK4 && CK4.instances) {
        for (const name in CK4.instances) {
            const editor = CK4.instances[name];
            const container = editor.container && editor.container.$;
            if (container && (container === el || container.contains(el) || el.contains(container))) {
                editor.setData(html);
                return 'ckeditor4';
            }
        }
    }
    const tiny = window.tinymce;
    if (tiny && tiny.editors) {
        for (const editor of tiny.editors) {
            const container = editor.getContainer();
            if (el === editor.getElement() || el === container || (container && (container.contains(el) || el.contains(container)))) {
                editor.setContent(html);
                editor.fire('change');
                return 'tinymce';
            }
        }
    }
    const quill = within('.ql-container');
    if (quill) {
        if (quill.__quill) {
            quill.__quill.setText(text);
            return 'quill';
        }
        const editor = quill.querySelector('.ql-editor');
        if (editor) {
            fillEditable(editor);
            return 'quill-editable';
        }
    }
    const prose = within('.ProseMirror');
    if (prose) {
        fillEditable(prose);
        return 'prosemirror';
    }
    fillEditable(el);
    return 'contenteditable';
}
"""


def to_paragraph_html(value: str) -> str:
    """Escape text and wrap each line in ``<p>`` the way editors store it."""

    lines = value.splitlines() or [""]
    return "".join(f"<p>{html.escape(line) if line else '<br>'}</p>" for line in lines)


async def fill_rich_text(element: Any, value: str) -> Optional[str]:
    """Fill the editor hosting ``element``; returns the editor kind used."""

    if not value:
        return None
    editor = await element.evaluate(FILL_RICH_TEXT_JS, {"html": to_paragraph_html(value), "text": value})
    logger.debug(f"Rich text filled via {editor}")
    return editor
