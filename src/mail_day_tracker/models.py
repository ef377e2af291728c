"""Data models for Mail Day Tracker."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime


class PartKind(enum.Enum):
    """Kind of a decoded body part."""

    INLINE = "inline"
    OTHER = "other"


@dataclass(frozen=True)
class BodyPart:
    """A single body part of a decoded message."""

    kind: PartKind
    text: str = ""
    content_type: str = ""


@dataclass
class DecodedMessage:
    """A message as handed to the aggregator by the mailbox layer."""

    ref: str  # IMAP UID
    timestamp: datetime | None
    parts: tuple[BodyPart, ...] | None = ()  # None when the body could not be fetched


@dataclass
class PresenceRecord:
    """Per-day presence flags for the tracked countries."""

    day: date
    country_flags: dict[str, bool] = field(default_factory=dict)

    def countries(self) -> list[str]:
        """Countries flagged present, in tracked order."""
        return [c for c, present in self.country_flags.items() if present]


@dataclass
class ScanSummary:
    """Result of a mailbox scan."""

    email_match_count: dict[str, int] = field(default_factory=dict)
    day_match_count: dict[str, int] = field(default_factory=dict)
    records: dict[date, PresenceRecord] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    cleaned: list[str] = field(default_factory=list)  # refs handed to the cleanup action
    scan_date: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict:
        return {
            "emails": dict(self.email_match_count),
            "days": dict(self.day_match_count),
            "records": {
                day.isoformat(): dict(record.country_flags)
                for day, record in sorted(self.records.items())
            },
            "warnings": list(self.warnings),
            "cleaned": list(self.cleaned),
            "scanDate": self.scan_date,
        }


@dataclass
class RemoteRecord:
    """A day as stored by the remote days API.

    Country flags travel as lowercase integer fields (``{"spain": 1}``).
    Fields this client does not track are kept in ``extra`` and written back
    untouched.
    """

    day: str
    flags: dict[str, bool] = field(default_factory=dict)
    note: str = ""
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_json(cls, payload: dict, countries: list[str] | tuple[str, ...]) -> RemoteRecord:
        keys = {c.lower(): c for c in countries}
        flags = {c: False for c in countries}
        extra: dict = {}
        for key, value in payload.items():
            if key in ("day", "note"):
                continue
            if key in keys:
                flags[keys[key]] = bool(value)
            else:
                extra[key] = value
        return cls(
            day=str(payload.get("day", "")),
            flags=flags,
            note=payload.get("note") or "",
            extra=extra,
        )

    def to_json(self) -> dict:
        payload: dict = dict(self.extra)
        payload["day"] = self.day
        for country, present in self.flags.items():
            payload[country.lower()] = int(present)
        if self.note:
            payload["note"] = self.note
        return payload


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass."""

    created: list[date] = field(default_factory=list)
    merged: list[date] = field(default_factory=list)
    unchanged: list[date] = field(default_factory=list)
    errors: list[tuple[date, Exception]] = field(default_factory=list)

    @property
    def applied(self) -> int:
        return len(self.created) + len(self.merged)
