"""Periodic scan + reconcile loop."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from .config import Settings
from .imap_client import MailboxError
from .models import ReconcileResult, ScanSummary
from .reconciler import DayStore, reconcile
from .scanner import ScanCancelled, scan_mailbox

logger = logging.getLogger(__name__)


class SyncService:
    """Serializes scans and reconciliation passes behind one lock.

    Periodic cycles skip when a scan is already running; on-demand scans
    (the HTTP count endpoint) wait for it instead.
    """

    def __init__(
        self,
        settings: Settings,
        store: DayStore | None = None,
        scan: Callable[..., ScanSummary] = scan_mailbox,
    ) -> None:
        self.settings = settings
        self.store = store
        self._scan = scan
        self._lock = threading.Lock()

    def scan(self, cancel: threading.Event | None = None) -> ScanSummary:
        """Run one scan, queued behind any cycle in progress."""
        with self._lock:
            return self._scan(self.settings, cancel=cancel)

    def run_cycle(self, cancel: threading.Event | None = None) -> ReconcileResult | None:
        """Scan then reconcile. Returns None when skipped or the scan failed."""
        if self.store is None:
            raise RuntimeError("SyncService needs a day store to reconcile")
        if not self._lock.acquire(blocking=False):
            logger.info("[CRON] Previous cycle still running, skipping tick")
            return None
        try:
            try:
                summary = self._scan(self.settings, cancel=cancel)
            except MailboxError as exc:
                logger.warning("[CRON] scan failed: %s", exc)
                return None
            except ScanCancelled:
                logger.info("[CRON] scan cancelled")
                return None

            result = reconcile(summary, self.store, cancel=cancel)
        finally:
            self._lock.release()

        logger.info(
            "[CRON] Reconciled %d days: %d created, %d merged, %d unchanged, %d failed",
            len(summary.records),
            len(result.created),
            len(result.merged),
            len(result.unchanged),
            len(result.errors),
        )
        return result


def run_forever(
    service: SyncService,
    interval: float,
    stop: threading.Event,
    clock: Callable[[], float] = time.monotonic,
) -> int:
    """Run a cycle now and then every ``interval`` seconds until ``stop`` is set.

    Ticks missed while a cycle was running are dropped, not replayed.
    Returns the number of cycles run.
    """
    logger.info("starting cron to update days API (every %ss)", interval)
    cycles = 0
    next_tick = clock()
    while not stop.is_set():
        try:
            service.run_cycle(cancel=stop)
        except Exception:  # noqa: BLE001
            logger.exception("[CRON] cycle failed")
        cycles += 1

        next_tick += interval
        now = clock()
        if now > next_tick:
            missed = int((now - next_tick) // interval) + 1
            logger.debug("[CRON] dropping %d missed tick(s)", missed)
            next_tick += missed * interval
        if stop.wait(next_tick - now):
            break
    logger.info("cron stopped after %d cycle(s)", cycles)
    return cycles


def start_background_sync(service: SyncService, stop: threading.Event) -> threading.Thread:
    """Start the sync loop in a daemon thread (used by ``serve --update``)."""
    thread = threading.Thread(
        target=run_forever,
        args=(service, service.settings.sync_interval, stop),
        name="days-sync",
        daemon=True,
    )
    thread.start()
    return thread
