"""Shared fixtures for tests."""

from __future__ import annotations

import itertools
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from mail_day_tracker.config import Settings
from mail_day_tracker.days_api import DaysApiError
from mail_day_tracker.models import BodyPart, DecodedMessage, PartKind, RemoteRecord

COUNTRIES = ("Andorra", "Spain")


class FakeStore:
    """In-memory days API keyed by ISO day."""

    def __init__(self, records: dict[str, RemoteRecord] | None = None) -> None:
        self.records: dict[str, RemoteRecord] = dict(records or {})
        self.upserts: list[RemoteRecord] = []
        self.fail_get: set[str] = set()
        self.fail_upsert: set[str] = set()

    def get_day(self, day):
        key = day.isoformat() if isinstance(day, date) else day
        if key in self.fail_get:
            raise DaysApiError("unexpected status code: 500 (body boom)", status_code=500)
        return self.records.get(key)

    def upsert_day(self, record: RemoteRecord) -> None:
        if record.day in self.fail_upsert:
            raise DaysApiError("unexpected status code: 502 (body bad gateway)", status_code=502)
        self.records[record.day] = record
        self.upserts.append(record)


@pytest.fixture
def countries() -> tuple[str, ...]:
    return COUNTRIES


@pytest.fixture
def zone() -> ZoneInfo:
    return ZoneInfo("Europe/Madrid")


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        imap_user="me@example.com",
        imap_password="secret",
        timezone="Europe/Madrid",
        countries=COUNTRIES,
        days_api_url="https://days.example.com",
        days_api_user="api",
        days_api_password="pass",
    )


@pytest.fixture
def make_message():
    """Build a DecodedMessage from a UTC timestamp string and plain-text bodies."""
    refs = itertools.count(1)

    def _make(when: str | None, *texts: str, ref: str | None = None) -> DecodedMessage:
        timestamp = None
        if when is not None:
            timestamp = datetime.strptime(when, "%Y-%m-%d %H:%M").replace(tzinfo=timezone.utc)
        return DecodedMessage(
            ref=ref or str(next(refs)),
            timestamp=timestamp,
            parts=tuple(BodyPart(kind=PartKind.INLINE, text=t, content_type="text/plain") for t in texts),
        )

    return _make
