"""Tests for the reconciler module."""

import threading
from datetime import date

import httpx
import pytest
from tenacity import wait_none

from mail_day_tracker.constants import AUTO_NOTE
from mail_day_tracker.days_api import DaysApiClient, DaysApiError
from mail_day_tracker.models import PresenceRecord, RemoteRecord, ScanSummary
from mail_day_tracker.reconciler import Action, plan_update, reconcile


def _summary(*records: PresenceRecord) -> ScanSummary:
    return ScanSummary(records={r.day: r for r in records})


def _local(day: date, **flags: bool) -> PresenceRecord:
    country_flags = {"Andorra": False, "Spain": False}
    country_flags.update(flags)
    return PresenceRecord(day=day, country_flags=country_flags)


def test_create_when_remote_absent(store):
    result = reconcile(_summary(_local(date(2024, 3, 1), Spain=True)), store)

    assert result.created == [date(2024, 3, 1)]
    assert result.applied == 1
    created = store.records["2024-03-01"]
    assert created.flags == {"Andorra": False, "Spain": True}
    assert created.note == AUTO_NOTE


def test_noop_never_downgrades(store):
    """Remote Spain=true stays even though the mailbox had no Spain ping."""
    store.records["2024-03-02"] = RemoteRecord(
        day="2024-03-02", flags={"Andorra": True, "Spain": True}, note="manual"
    )
    result = reconcile(_summary(_local(date(2024, 3, 2), Andorra=True)), store)

    assert result.applied == 0
    assert result.unchanged == [date(2024, 3, 2)]
    assert store.upserts == []
    assert store.records["2024-03-02"].flags["Spain"] is True


def test_merge_keeps_remote_flags_and_note(store):
    store.records["2024-03-03"] = RemoteRecord(
        day="2024-03-03",
        flags={"Andorra": True, "Spain": False},
        note="ski trip",
        extra={"world": 1},
    )
    result = reconcile(_summary(_local(date(2024, 3, 3), Spain=True)), store)

    assert result.merged == [date(2024, 3, 3)]
    merged = store.records["2024-03-03"]
    assert merged.flags == {"Andorra": True, "Spain": True}
    assert merged.note == f"{AUTO_NOTE} ski trip"
    assert merged.extra == {"world": 1}


def test_merge_with_empty_note():
    remote = RemoteRecord(day="2024-03-03", flags={"Andorra": False, "Spain": False})
    action, update = plan_update(_local(date(2024, 3, 3), Andorra=True), remote)

    assert action is Action.MERGE
    assert update.note == AUTO_NOTE
    assert remote.flags["Andorra"] is False  # input left untouched


def test_second_run_is_noop(store):
    summary = _summary(
        _local(date(2024, 3, 1), Spain=True),
        _local(date(2024, 3, 2), Andorra=True, Spain=True),
    )
    first = reconcile(summary, store)
    second = reconcile(summary, store)

    assert first.applied == 2
    assert second.applied == 0
    assert len(second.unchanged) == 2


def test_failures_do_not_stop_other_days(store):
    store.fail_get.add("2024-03-01")
    store.fail_upsert.add("2024-03-02")
    summary = _summary(
        _local(date(2024, 3, 1), Spain=True),
        _local(date(2024, 3, 2), Spain=True),
        _local(date(2024, 3, 3), Spain=True),
    )
    result = reconcile(summary, store)

    assert result.created == [date(2024, 3, 3)]
    assert [day for day, _ in result.errors] == [date(2024, 3, 1), date(2024, 3, 2)]
    assert "500" in str(result.errors[0][1])


def test_cancel_stops_before_next_day(store):
    cancel = threading.Event()
    cancel.set()
    result = reconcile(_summary(_local(date(2024, 3, 1), Spain=True)), store, cancel=cancel)

    assert result.applied == 0
    assert store.upserts == []


@pytest.mark.parametrize(
    "remote_flags, expected",
    [
        ({"Andorra": True, "Spain": False}, Action.NOOP),
        ({"Andorra": False, "Spain": False}, Action.MERGE),
        ({"Andorra": True, "Spain": True}, Action.NOOP),
    ],
)
def test_plan_update_decisions(remote_flags, expected):
    remote = RemoteRecord(day="2024-03-01", flags=remote_flags)
    action, _ = plan_update(_local(date(2024, 3, 1), Andorra=True), remote)
    assert action is expected


def test_unexpected_store_error_is_recorded_per_day(store):
    """A non-API exception for one day does not abort the others."""

    class FlakyStore(type(store)):
        def get_day(self, day):
            if day == date(2024, 3, 1):
                raise AttributeError("'NoneType' object has no attribute 'items'")
            return super().get_day(day)

    flaky = FlakyStore()
    result = reconcile(
        _summary(_local(date(2024, 3, 1), Spain=True), _local(date(2024, 3, 2), Spain=True)),
        flaky,
    )

    assert result.created == [date(2024, 3, 2)]
    assert [day for day, _ in result.errors] == [date(2024, 3, 1)]
    assert isinstance(result.errors[0][1], AttributeError)


def test_non_object_remote_body_is_a_day_error():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/days/2024-03-01":
            return httpx.Response(200, text="null", headers={"Content-Type": "application/json"})
        if request.method == "GET":
            return httpx.Response(404)
        return httpx.Response(200)

    with DaysApiClient(
        "https://days.example.com",
        "api",
        "pass",
        ("Andorra", "Spain"),
        transport=httpx.MockTransport(handler),
        retry_wait=wait_none(),
    ) as client:
        result = reconcile(
            _summary(_local(date(2024, 3, 1), Spain=True), _local(date(2024, 3, 2), Spain=True)),
            client,
        )

    assert result.created == [date(2024, 3, 2)]
    assert len(result.errors) == 1
    assert result.errors[0][0] == date(2024, 3, 1)
    assert isinstance(result.errors[0][1], DaysApiError)
