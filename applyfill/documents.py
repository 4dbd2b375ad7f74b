"""Stored candidate documents: type detection, lookup and download."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Dict, Optional, Sequence, Tuple
from urllib.parse import urlparse

import httpx

from .errors import DocumentFetchError
from .profile import CandidateProfile, Document

logger = logging.getLogger(__name__)

MIN_DOCUMENT_BYTES = 1024

DOCUMENT_KEYWORDS: Sequence[Tuple[str, str]] = (
    (r"resume|\bcv\b|curriculum vitae", "resume"),
    (r"cover letter|covering letter", "cover_letter"),
    (r"\bdea\b", "dea_registration"),
    (r"licen[sc]e", "license"),
    (r"certification|certificate of|\bancc\b|board cert", "certification"),
    (r"malpractice|insurance|liability", "malpractice_certificate"),
    (r"\bcpr\b|\bbls\b|\bacls\b", "cpr_card"),
    (r"transcript", "transcript"),
    (r"diploma", "diploma"),
    (r"reference letter|letter of recommendation", "reference_letter"),
)

DOCUMENT_TYPE_ALIASES: Dict[str, Sequence[str]] = {
    "resume": ("resume", "cv", "curriculum_vitae"),
    "cover_letter": ("cover_letter", "coverletter"),
    "license": ("license", "nursing_license", "aprn_license", "rn_license", "state_license"),
    "certification": ("certification", "board_certification", "ancc_certification"),
    "dea_registration": ("dea_registration", "dea", "dea_certificate"),
    "malpractice_certificate": ("malpractice_certificate", "malpractice", "insurance_certificate"),
    "cpr_card": ("cpr_card", "bls", "bls_card", "acls"),
    "transcript": ("transcript", "transcripts"),
    "diploma": ("diploma", "degree"),
    "reference_letter": ("reference_letter", "recommendation_letter"),
}

MIME_TYPES: Dict[str, str] = {
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "txt": "text/plain",
    "rtf": "application/rtf",
}

ACCEPTED_MIME_PREFIXES = ("application/pdf", "application/msword", "application/vnd.openxmlformats", "image/", "text/plain", "application/rtf", "application/octet-stream")


@dataclass(slots=True)
class DownloadedFile:
    name: str
    mime_type: str
    buffer: bytes

    def as_payload(self) -> Dict[str, object]:
        """Shape accepted by Playwright's ``set_input_files``."""

        return {"name": self.name, "mimeType": self.mime_type, "buffer": self.buffer}


def detect_document_type(text: str) -> Optional[str]:
    lowered = (text or "").lower()
    for pattern, document_type in DOCUMENT_KEYWORDS:
        if re.search(pattern, lowered):
            return document_type
    return None


def find_matching_document(profile: CandidateProfile, document_type: Optional[str]) -> Optional[Document]:
    """Return the stored document for ``document_type`` (resume falls back to meta.resumeUrl)."""

    if not document_type:
        return None
    aliases = DOCUMENT_TYPE_ALIASES.get(document_type, (document_type,))
    for document in profile.documents:
        if document.file_url and document.document_type.lower() in aliases:
            return document
    if document_type == "resume" and profile.meta.resume_url:
        return Document(
            document_type="resume",
            document_label="Resume",
            file_url=profile.meta.resume_url,
            file_name=_file_name_from_url(profile.meta.resume_url) or "resume.pdf",
        )
    return None


def guess_mime_type(file_name: str) -> str:
    extension = PurePosixPath(file_name or "").suffix.lower().lstrip(".")
    return MIME_TYPES.get(extension, "application/octet-stream")


def _file_name_from_url(url: str) -> str:
    return PurePosixPath(urlparse(url).path).name


def is_plausible_document(buffer: bytes, mime_type: str) -> bool:
    """Reject error pages and empty bodies served in place of a file."""

    if len(buffer) <= MIN_DOCUMENT_BYTES:
        return False
    mime = (mime_type or "").split(";")[0].strip().lower()
    if mime.startswith("text/html"):
        return False
    return any(mime.startswith(prefix) for prefix in ACCEPTED_MIME_PREFIXES)


async def download_document(
    document: Document,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = 30.0,
) -> DownloadedFile:
    """Fetch a stored document and validate it before it is attached."""

    if not document.file_url:
        raise DocumentFetchError("Document has no URL")
    try:
        if client is not None:
            response = await client.get(document.file_url, follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=timeout) as owned:
                response = await owned.get(document.file_url, follow_redirects=True)
    except httpx.HTTPError as exc:
        raise DocumentFetchError(f"Download failed for {document.file_url}: {exc}") from exc

    if response.status_code >= 400:
        raise DocumentFetchError(f"Download returned HTTP {response.status_code}")

    name = document.file_name or _file_name_from_url(document.file_url) or f"{document.document_type}.pdf"
    mime_type = response.headers.get("content-type") or guess_mime_type(name)
    if mime_type.startswith("application/octet-stream"):
        mime_type = guess_mime_type(name)
    buffer = response.content
    if not is_plausible_document(buffer, mime_type):
        raise DocumentFetchError(f"Downloaded file for {name} failed validation ({len(buffer)} bytes, {mime_type})")
    logger.debug(f"Downloaded {name} ({len(buffer)} bytes)")
    return DownloadedFile(name=name, mime_type=mime_type.split(";")[0].strip(), buffer=buffer)
