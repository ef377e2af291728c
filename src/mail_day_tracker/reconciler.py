"""Reconcile locally observed presence with the remote days API."""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import replace
from datetime import date
from typing import Protocol, Sequence

from .constants import AUTO_NOTE
from .models import PresenceRecord, ReconcileResult, RemoteRecord, ScanSummary

logger = logging.getLogger(__name__)


class DayStore(Protocol):
    def get_day(self, day: date | str) -> RemoteRecord | None: ...

    def upsert_day(self, record: RemoteRecord) -> None: ...


class Action(enum.Enum):
    CREATE = "create"
    MERGE = "merge"
    NOOP = "noop"


def plan_update(
    local: PresenceRecord,
    remote: RemoteRecord | None,
) -> tuple[Action, RemoteRecord | None]:
    """Decide what to write for one day.

    A remote flag is never cleared: a day missing from the mailbox is not
    evidence of absence.
    """
    if remote is None:
        return Action.CREATE, RemoteRecord(
            day=local.day.isoformat(),
            flags=dict(local.country_flags),
            note=AUTO_NOTE,
        )

    missing = [c for c, present in local.country_flags.items() if present and not remote.flags.get(c, False)]
    if not missing:
        return Action.NOOP, None

    flags = dict(remote.flags)
    for country in missing:
        flags[country] = True
    note = f"{AUTO_NOTE} {remote.note}" if remote.note else AUTO_NOTE
    return Action.MERGE, replace(remote, flags=flags, note=note, extra=dict(remote.extra))


def reconcile(
    summary: ScanSummary,
    store: DayStore,
    cancel: threading.Event | None = None,
) -> ReconcileResult:
    """Push every record of ``summary`` to ``store``.

    Each day is handled independently; failures are collected in
    ``result.errors`` and the remaining days are still processed.
    """
    result = ReconcileResult()
    records: Sequence[PresenceRecord] = [summary.records[d] for d in sorted(summary.records)]

    for record in records:
        if cancel is not None and cancel.is_set():
            logger.info("[CRON] Reconciliation cancelled before day %s", record.day)
            break

        try:
            remote = store.get_day(record.day)
        except Exception as exc:  # noqa: BLE001
            logger.warning("[CRON] GetDay %s failed: %s", record.day, exc)
            result.errors.append((record.day, exc))
            continue

        action, update = plan_update(record, remote)
        if action is Action.NOOP:
            logger.debug("[CRON] No updates needed for day %s", record.day)
            result.unchanged.append(record.day)
            continue

        try:
            store.upsert_day(update)
        except Exception as exc:  # noqa: BLE001
            logger.warning("[CRON] UpdateDay %s failed: %s", record.day, exc)
            result.errors.append((record.day, exc))
            continue

        if action is Action.CREATE:
            result.created.append(record.day)
        else:
            result.merged.append(record.day)
        logger.info("[CRON] Updated day %s (%s): %s", record.day, action.value, ", ".join(record.countries()))

    return result
