"""Gmail message parsing into the provider-neutral ``MailboxMessage``."""

import base64
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parseaddr, parsedate_to_datetime

from inboxsnap.services.priority_service import HeaderHints

logger = logging.getLogger(__name__)

BODY_MAX_CHARS = 1000
SNIPPET_MAX_CHARS = 1000

ZERO_WIDTH = re.compile("[\u200b\u200c\u200d\ufeff\u2060]")


@dataclass
class MailboxMessage:
    """One unread message as handed to the snapshot orchestrator."""

    message_id: str
    thread_id: str | None
    subject: str
    sender_name: str
    sender_email: str
    received_at: datetime
    label_ids: list[str] = field(default_factory=list)
    size_estimate: int = 0
    headers: HeaderHints = field(default_factory=HeaderHints)
    body_text: str | None = None
    snippet: str | None = None
    attachments: list[dict] = field(default_factory=list)
    provider: str = "gmail"

    @property
    def text_for_summary(self) -> str:
        return self.body_text or self.snippet or ""


def _decode_base64url(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except ValueError:
        logger.warning("Failed to decode base64url data")
        return ""


def _get_header(headers: list[dict], name: str) -> str | None:
    """Header value by name (case-insensitive)."""
    for h in headers:
        if h.get("name", "").lower() == name.lower():
            return h.get("value")
    return None


def _extract_body(payload: dict) -> tuple[str | None, str | None]:
    """Recursively extract text and HTML body from a message payload."""
    text_body = None
    html_body = None

    mime_type = payload.get("mimeType", "")
    data = payload.get("body", {}).get("data")

    if mime_type == "text/plain" and data:
        text_body = _decode_base64url(data)
    elif mime_type == "text/html" and data:
        html_body = _decode_base64url(data)
    elif mime_type.startswith("multipart/"):
        for part in payload.get("parts", []):
            t, h = _extract_body(part)
            if t and not text_body:
                text_body = t
            if h and not html_body:
                html_body = h

    return text_body, html_body


def _collect_attachments(payload: dict) -> list[dict]:
    """Filename / type / size of every attachment part. Never the bytes."""
    found: list[dict] = []
    if payload.get("filename"):
        found.append(
            {
                "filename": payload["filename"],
                "mime_type": payload.get("mimeType", "application/octet-stream"),
                "size": int(payload.get("body", {}).get("size", 0) or 0),
            }
        )
    for part in payload.get("parts", []):
        found.extend(_collect_attachments(part))
    return found


def html_to_text(html: str) -> str:
    """Strip markup, scripts and styles to plain text."""
    clean = re.sub(r"<(style|script)[^>]*>.*?</\1>", " ", html, flags=re.IGNORECASE | re.DOTALL)
    clean = re.sub(r"<!--.*?-->", " ", clean, flags=re.DOTALL)
    clean = re.sub(r"<br\s*/?>", "\n", clean, flags=re.IGNORECASE)
    clean = re.sub(r"<[^>]+>", " ", clean)
    return clean


def normalize_text(text: str, max_len: int) -> str:
    text = ZERO_WIDTH.sub("", text)
    return re.sub(r"\s+", " ", text).strip()[:max_len]


def _received_at(internal_date: str | None, date_header: str | None) -> datetime:
    if internal_date:
        try:
            return datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)
        except (ValueError, OSError):
            pass
    if date_header:
        try:
            parsed = parsedate_to_datetime(date_header)
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        except (TypeError, ValueError):
            pass
    return datetime.now(timezone.utc)


def parse_gmail_message(raw_message: dict) -> MailboxMessage:
    """Parse a raw Gmail API ``messages.get(format="full")`` response."""
    payload = raw_message.get("payload", {})
    headers = payload.get("headers", [])

    from_name, from_addr = parseaddr(_get_header(headers, "From") or "")

    text_body, html_body = _extract_body(payload)
    if not text_body and html_body:
        text_body = html_to_text(html_body)
    body = normalize_text(text_body, BODY_MAX_CHARS) if text_body else None

    snippet = raw_message.get("snippet")

    return MailboxMessage(
        message_id=raw_message.get("id", ""),
        thread_id=raw_message.get("threadId"),
        subject=_get_header(headers, "Subject") or "No Subject",
        sender_name=from_name or from_addr or "Unknown",
        sender_email=from_addr or "unknown",
        received_at=_received_at(raw_message.get("internalDate"), _get_header(headers, "Date")),
        label_ids=list(raw_message.get("labelIds", [])),
        size_estimate=int(raw_message.get("sizeEstimate", 0) or 0),
        headers=HeaderHints(
            importance=_get_header(headers, "Importance"),
            priority=_get_header(headers, "Priority"),
            x_priority=_get_header(headers, "X-Priority"),
        ),
        body_text=body or None,
        snippet=normalize_text(snippet, SNIPPET_MAX_CHARS) if snippet else None,
        attachments=_collect_attachments(payload),
    )
