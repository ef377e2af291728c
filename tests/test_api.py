"""Tests for the HTTP control surface."""

from datetime import date

from fastapi.testclient import TestClient

from mail_day_tracker.api import create_app
from mail_day_tracker.imap_client import MailboxError
from mail_day_tracker.models import PresenceRecord, ScanSummary
from mail_day_tracker.scheduler import SyncService


def _summary() -> ScanSummary:
    day = date(2024, 3, 1)
    return ScanSummary(
        email_match_count={"Andorra": 0, "Spain": 2},
        day_match_count={"Andorra": 0, "Spain": 1},
        records={day: PresenceRecord(day=day, country_flags={"Andorra": False, "Spain": True})},
        warnings=["No body for message 9"],
    )


def test_count_returns_summary(settings):
    service = SyncService(settings, scan=lambda s, cancel=None: _summary())
    client = TestClient(create_app(service, health_check=lambda s: None))

    resp = client.get("/api/count")
    assert resp.status_code == 200
    body = resp.json()
    assert body["emails"] == {"Andorra": 0, "Spain": 2}
    assert body["days"] == {"Andorra": 0, "Spain": 1}
    assert body["records"] == {"2024-03-01": {"Andorra": False, "Spain": True}}
    assert body["warnings"] == ["No body for message 9"]


def test_count_scan_failure(settings):
    def failing(s, cancel=None):
        raise MailboxError("searching emails: BAD")

    client = TestClient(create_app(SyncService(settings, scan=failing), health_check=lambda s: None))
    resp = client.get("/api/count")
    assert resp.status_code == 500
    assert resp.json() == {"error": "searching emails: BAD"}


def test_health_ok(settings):
    client = TestClient(create_app(SyncService(settings), health_check=lambda s: None))
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


def test_health_failure(settings):
    def unreachable(s):
        raise MailboxError("dialing IMAP server imap.gmail.com:993: timed out")

    client = TestClient(create_app(SyncService(settings), health_check=unreachable))
    resp = client.get("/api/health")
    assert resp.status_code == 500
    assert resp.json()["ok"] is False
    assert "timed out" in resp.json()["error"]
