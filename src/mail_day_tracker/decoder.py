"""Decode raw RFC 5322 messages into timestamps and body parts."""

from __future__ import annotations

from datetime import datetime
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import parsedate_to_datetime

from .models import BodyPart, DecodedMessage, PartKind

_PARSER = BytesParser(policy=policy.default)


def _parse_date(message: EmailMessage) -> datetime | None:
    # raw_items() skips the header factory, which rejects malformed dates
    # differently across Python versions
    raw = next((value for name, value in message.raw_items() if name.lower() == "date"), None)
    if raw is None:
        return None
    try:
        return parsedate_to_datetime(" ".join(str(raw).split()))
    except (TypeError, ValueError, IndexError):
        return None


def _part_text(part: EmailMessage) -> str:
    try:
        return part.get_content()
    except (LookupError, UnicodeDecodeError):
        # Unknown or lying charset
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


def _body_parts(message: EmailMessage) -> tuple[BodyPart, ...]:
    parts: list[BodyPart] = []
    for part in message.walk():
        if part.is_multipart():
            continue
        content_type = part.get_content_type()
        if part.get_content_disposition() == "attachment" or part.get_content_maintype() != "text":
            parts.append(BodyPart(kind=PartKind.OTHER, content_type=content_type))
            continue
        parts.append(BodyPart(kind=PartKind.INLINE, text=_part_text(part), content_type=content_type))
    return tuple(parts)


def decode_message(ref: str, raw: bytes | None) -> DecodedMessage:
    """Decode a fetched message.

    ``raw`` is None when the server returned no body section; the result then
    carries ``parts=None`` so the aggregator can report it.
    """
    if raw is None:
        return DecodedMessage(ref=ref, timestamp=None, parts=None)
    message = _PARSER.parsebytes(raw)
    return DecodedMessage(ref=ref, timestamp=_parse_date(message), parts=_body_parts(message))
