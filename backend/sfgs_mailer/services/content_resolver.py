"""Content resolver - final subject, bodies and attachments for one queue entry

Attachment references are either absolute http(s) URLs or R2 storage keys.
Each one resolves to exactly one of:

- AttachmentBytes: fetched/downloaded, sent as a real attachment
- AttachmentLink: could not be fetched, delivered as a hyperlink in the body
- AttachmentUnavailable: nothing to offer, delivered as a placeholder line
"""
import html
import logging
import mimetypes
import posixpath
import re
from dataclasses import dataclass, field
from typing import List, Optional, Union
from urllib.parse import urlparse, unquote

import httpx
from sqlalchemy.orm import Session

from sfgs_mailer.core.config import settings
from sfgs_mailer.core.metrics import attachment_fallbacks_counter
from sfgs_mailer.models.email_queue import QueueEntry
from sfgs_mailer.models.student import Student
from sfgs_mailer.models.uploaded_file import UploadedFile
from sfgs_mailer.services.storage.r2_service import ObjectNotFound, get_r2_service, public_url
from sfgs_mailer.utils.templates import BIRTHDAY_SUBJECT, render_birthday_email

logger = logging.getLogger(__name__)

FALLBACK_SUBJECT = "[Notification]"
FALLBACK_MESSAGE = "No message content provided."
DEFAULT_EXTENSION = ".pdf"


@dataclass(frozen=True)
class AttachmentBytes:
    name: str
    content: bytes
    mime_type: str


@dataclass(frozen=True)
class AttachmentLink:
    name: str
    url: str


@dataclass(frozen=True)
class AttachmentUnavailable:
    name: str


ResolvedAttachment = Union[AttachmentBytes, AttachmentLink, AttachmentUnavailable]


@dataclass
class ResolvedContent:
    subject: str
    html_body: str
    text_body: str
    attachments: List[ResolvedAttachment] = field(default_factory=list)

    @property
    def files(self) -> List[AttachmentBytes]:
        return [a for a in self.attachments if isinstance(a, AttachmentBytes)]

    def transport_attachments(self) -> list:
        """Attachment dicts in the shape the mail transport accepts"""
        return [
            {"filename": a.name, "content": a.content, "content_type": a.mime_type}
            for a in self.files
        ]


_BREAK_RE = re.compile(r"<\s*br\s*/?\s*>", re.IGNORECASE)
_BLOCK_END_RE = re.compile(r"<\s*/\s*(p|div|h[1-6]|li|tr|table|ul|ol|blockquote|section)\s*>", re.IGNORECASE)
_DROP_RE = re.compile(r"<\s*(script|style|head)[^>]*>.*?<\s*/\s*\1\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")
_SPACES_RE = re.compile(r"[^\S\n]+")
_NEWLINES_RE = re.compile(r"\n\s*\n+")


def html_to_text(value) -> str:
    """Plain-text rendering of an HTML fragment.

    <br> and block-element ends become newlines, remaining markup is removed,
    entities are unescaped and whitespace runs collapsed. Never raises.
    """
    if value is None:
        return ""
    text = value if isinstance(value, str) else str(value)
    text = _DROP_RE.sub("", text)
    text = _BREAK_RE.sub("\n", text)
    text = _BLOCK_END_RE.sub("\n", text)
    text = _TAG_RE.sub("", text)
    # Unclosed tag at the very end of malformed input
    text = re.sub(r"<[^>]*$", "", text)
    text = html.unescape(text)
    text = _SPACES_RE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = _NEWLINES_RE.sub("\n\n", text)
    return text.strip()


def is_url(reference: str) -> bool:
    return reference.lower().startswith(("http://", "https://"))


def _reference_extension(reference: str) -> str:
    path = urlparse(reference).path if is_url(reference) else reference
    return posixpath.splitext(unquote(path))[1]


def _basename(reference: str) -> str:
    path = urlparse(reference).path if is_url(reference) else reference
    return posixpath.basename(unquote(path).rstrip("/")) or "attachment"


def ensure_extension(name: str, reference: str) -> str:
    """Append the reference's extension (default .pdf) when the name has none"""
    if posixpath.splitext(name)[1]:
        return name
    return f"{name}{_reference_extension(reference) or DEFAULT_EXTENSION}"


def guess_mime_type(name: str) -> str:
    return mimetypes.guess_type(name)[0] or "application/octet-stream"


def build_download_section(attachments: List[ResolvedAttachment]) -> str:
    """HTML block listing links and placeholders for attachments that could not be attached"""
    items = []
    for a in attachments:
        if isinstance(a, AttachmentLink):
            items.append(
                f'<li><a href="{html.escape(a.url, quote=True)}">{html.escape(a.name)}</a></li>'
            )
        elif isinstance(a, AttachmentUnavailable):
            items.append(f"<li>{html.escape(a.name)} (could not be delivered)</li>")
    return (
        '<hr style="border: none; border-top: 1px solid #dddddd; margin: 24px 0;" />'
        "<h3>Download attachments</h3>"
        f"<ul>{''.join(items)}</ul>"
    )


class ContentResolver:
    """Computes the final content of a queue entry

    Storage and HTTP access are injected so tests can stub them; by default
    R2 is obtained lazily and URLs are fetched with httpx.
    """

    def __init__(self, db: Session, storage=None, http_client: Optional[httpx.Client] = None):
        self.db = db
        self._storage = storage
        self._http_client = http_client

    def _get_storage(self):
        if self._storage is None:
            self._storage = get_r2_service()
        return self._storage

    def resolve(self, entry: QueueEntry) -> ResolvedContent:
        if entry.is_birthday:
            subject = BIRTHDAY_SUBJECT
            html_body = render_birthday_email(self._student_name(entry))
        else:
            subject = entry.subject if entry.subject and entry.subject.strip() else FALLBACK_SUBJECT
            message = entry.message if entry.message and entry.message.strip() else FALLBACK_MESSAGE
            html_body = message

        attachments = [self.resolve_attachment(ref) for ref in (entry.attachments or []) if ref]

        if any(not isinstance(a, AttachmentBytes) for a in attachments):
            html_body = html_body + build_download_section(attachments)

        return ResolvedContent(
            subject=subject,
            html_body=html_body,
            text_body=html_to_text(html_body),
            attachments=attachments,
        )

    def _student_name(self, entry: QueueEntry) -> Optional[str]:
        if entry.student_id is None:
            return None
        student = self.db.query(Student).filter(Student.id == entry.student_id).first()
        return student.student_name if student else None

    def resolve_attachment(self, reference: str) -> ResolvedAttachment:
        if is_url(reference):
            return self._resolve_url(reference)
        return self._resolve_storage_key(reference)

    def _resolve_url(self, url: str) -> ResolvedAttachment:
        try:
            name = ensure_extension(_basename(url), url)
        except ValueError as e:
            logger.warning(f"Unusable attachment URL {url}: {e}")
            attachment_fallbacks_counter.labels(kind="unavailable").inc()
            return AttachmentUnavailable(name=f"attachment{DEFAULT_EXTENSION}")

        try:
            if self._http_client is not None:
                response = self._http_client.get(url, timeout=settings.ATTACHMENT_FETCH_TIMEOUT_SECONDS, follow_redirects=True)
            else:
                response = httpx.get(url, timeout=settings.ATTACHMENT_FETCH_TIMEOUT_SECONDS, follow_redirects=True)
            response.raise_for_status()
        except (httpx.InvalidURL, ValueError) as e:
            logger.warning(f"Unusable attachment URL {url}: {e}")
            attachment_fallbacks_counter.labels(kind="unavailable").inc()
            return AttachmentUnavailable(name=name)
        except httpx.HTTPError as e:
            logger.warning(f"Could not fetch attachment {url}: {e} - sending as link")
            attachment_fallbacks_counter.labels(kind="link").inc()
            return AttachmentLink(name=name, url=url)

        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        return AttachmentBytes(name=name, content=response.content, mime_type=content_type or guess_mime_type(name))

    def _resolve_storage_key(self, key: str) -> ResolvedAttachment:
        uploaded = self.db.query(UploadedFile).filter(UploadedFile.storage_path == key).first()
        display_name = (uploaded.original_file_name if uploaded and uploaded.original_file_name else None) or _basename(key)
        name = ensure_extension(display_name, key)

        try:
            content = self._get_storage().download_object(key)
        except ObjectNotFound:
            logger.warning(f"Attachment {key} does not exist in storage")
            attachment_fallbacks_counter.labels(kind="unavailable").inc()
            return AttachmentUnavailable(name=name)
        except Exception as e:
            url = public_url(key)
            logger.warning(f"Failed to download attachment {key}: {e} - {'sending as link' if url else 'no public URL'}")
            if url:
                attachment_fallbacks_counter.labels(kind="link").inc()
                return AttachmentLink(name=name, url=url)
            attachment_fallbacks_counter.labels(kind="unavailable").inc()
            return AttachmentUnavailable(name=name)

        return AttachmentBytes(name=name, content=content, mime_type=guess_mime_type(name))
