"""Tests for the sync service and loop."""

import threading
from datetime import date

from mail_day_tracker.imap_client import MailboxError
from mail_day_tracker.models import PresenceRecord, ScanSummary
from mail_day_tracker.scanner import ScanCancelled
from mail_day_tracker.scheduler import SyncService, run_forever


def _summary() -> ScanSummary:
    day = date(2024, 3, 1)
    return ScanSummary(records={day: PresenceRecord(day=day, country_flags={"Andorra": False, "Spain": True})})


def test_run_cycle_scans_then_reconciles(settings, store):
    service = SyncService(settings, store, scan=lambda s, cancel=None: _summary())
    result = service.run_cycle()

    assert result.created == [date(2024, 3, 1)]
    assert "2024-03-01" in store.records


def test_run_cycle_survives_scan_failure(settings, store):
    def failing(s, cancel=None):
        raise MailboxError("dialing IMAP server: refused")

    assert SyncService(settings, store, scan=failing).run_cycle() is None
    assert store.upserts == []


def test_run_cycle_cancelled_scan(settings, store):
    def cancelled(s, cancel=None):
        raise ScanCancelled("scan cancelled")

    assert SyncService(settings, store, scan=cancelled).run_cycle() is None


def test_tick_skipped_while_cycle_running(settings, store):
    started = threading.Event()
    release = threading.Event()

    def slow_scan(s, cancel=None):
        started.set()
        release.wait(5)
        return _summary()

    service = SyncService(settings, store, scan=slow_scan)
    worker = threading.Thread(target=service.run_cycle)
    worker.start()
    assert started.wait(5)

    assert service.run_cycle() is None  # coalesced
    release.set()
    worker.join(5)
    assert len(store.upserts) == 1


def test_on_demand_scan_waits_for_running_cycle(settings, store):
    order: list[str] = []
    started = threading.Event()
    release = threading.Event()

    def scan(s, cancel=None):
        if not started.is_set():
            started.set()
            release.wait(5)
            order.append("cycle")
        else:
            order.append("count")
        return _summary()

    service = SyncService(settings, store, scan=scan)
    worker = threading.Thread(target=service.run_cycle)
    worker.start()
    assert started.wait(5)

    counter = threading.Thread(target=service.scan)
    counter.start()
    release.set()
    worker.join(5)
    counter.join(5)
    assert order == ["cycle", "count"]


def test_run_forever_runs_immediately_until_stopped(settings, store):
    stop = threading.Event()
    calls: list[int] = []

    class CountingService:
        def run_cycle(self, cancel=None):
            calls.append(1)
            if len(calls) == 3:
                stop.set()

    cycles = run_forever(CountingService(), interval=0.01, stop=stop)
    assert cycles == 3


def test_run_forever_not_started_when_already_stopped():
    stop = threading.Event()
    stop.set()

    class Boom:
        def run_cycle(self, cancel=None):
            raise AssertionError("should not run")

    assert run_forever(Boom(), interval=1, stop=stop) == 0


def test_run_forever_survives_unexpected_cycle_error():
    stop = threading.Event()
    calls: list[int] = []

    class BrokenThenStop:
        def run_cycle(self, cancel=None):
            calls.append(1)
            if len(calls) == 1:
                raise AttributeError("unexpected")
            stop.set()

    assert run_forever(BrokenThenStop(), interval=0.01, stop=stop) == 2
