"""Day aggregation - turns decoded location pings into per-day presence."""

from __future__ import annotations

import logging
import re
from datetime import date, timezone, tzinfo
from typing import Callable, Iterable, Sequence

from .config import ConfigError
from .constants import DEFAULT_DEDUP_THRESHOLD, HTML_MARKER, LINE_DELIMITER
from .models import DecodedMessage, PartKind, PresenceRecord, ScanSummary

logger = logging.getLogger(__name__)

_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")


def normalize_body(text: str) -> str:
    """Trim a part and join its lines with a single delimiter."""
    return _LINE_BREAK_RE.sub(LINE_DELIMITER, text.strip())


class DayAggregator:
    """Accumulates a ScanSummary one message at a time.

    A match is counted once per (inline part, country). Only the first match
    of a (country, day) pair sets the presence flag and bumps the day count.
    Once a pair has more than ``dedup_threshold`` matches, the message is
    handed to ``cleanup`` (at most once per message).
    """

    def __init__(
        self,
        zone: tzinfo,
        countries: Sequence[str],
        dedup_threshold: int = DEFAULT_DEDUP_THRESHOLD,
        cleanup: Callable[[str], None] | None = None,
    ) -> None:
        if not countries:
            raise ConfigError("at least one country must be tracked")
        if len(set(countries)) != len(countries):
            raise ConfigError("tracked countries must be unique")
        if dedup_threshold < 1:
            raise ConfigError(f"dedup threshold must be positive, got {dedup_threshold}")

        self.zone = zone
        self.countries = tuple(countries)
        self.dedup_threshold = dedup_threshold
        self.cleanup = cleanup
        self.summary = ScanSummary(
            email_match_count={c: 0 for c in self.countries},
            day_match_count={c: 0 for c in self.countries},
        )
        self._matches: dict[tuple[str, date], int] = {}
        self._cleanup_attempted: set[str] = set()

    def day_key(self, message: DecodedMessage) -> date:
        timestamp = message.timestamp
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(self.zone).date()

    def add(self, message: DecodedMessage) -> None:
        if message.parts is None:
            self.summary.warnings.append(f"No body for message {message.ref}")
            logger.warning("FETCH did not return a body section for message %s", message.ref)
            return
        if message.timestamp is None:
            self.summary.warnings.append(f"No date for message {message.ref}")
            logger.warning("Message %s has no usable Date header, skipped", message.ref)
            return

        day = self.day_key(message)
        for part in message.parts:
            if part.kind is not PartKind.INLINE:
                continue
            body = normalize_body(part.text)
            if HTML_MARKER in body:
                continue
            for country in self.countries:
                if country in body:
                    self._record_match(message, day, country, body)

    def _record_match(self, message: DecodedMessage, day: date, country: str, body: str) -> None:
        summary = self.summary
        summary.email_match_count[country] += 1
        key = (country, day)
        count = self._matches.get(key, 0) + 1
        self._matches[key] = count

        if count == 1:
            summary.day_match_count[country] += 1
            record = summary.records.get(day)
            if record is None:
                record = PresenceRecord(day=day, country_flags={c: False for c in self.countries})
                summary.records[day] = record
            record.country_flags[country] = True
            logger.debug("Email %s %s body: %s", message.ref, message.timestamp.isoformat(), body)
            logger.debug("%s day: %s [%d]", country, day.isoformat(), summary.day_match_count[country])

        if count > self.dedup_threshold:
            self._clean(message.ref, day, country)

    def _clean(self, ref: str, day: date, country: str) -> None:
        if self.cleanup is None or ref in self._cleanup_attempted:
            return
        self._cleanup_attempted.add(ref)
        try:
            self.cleanup(ref)
        except Exception as exc:  # noqa: BLE001
            logger.error("Cleaning up redundant message %s (%s %s): %s", ref, country, day, exc)
            return
        self.summary.cleaned.append(ref)
        logger.debug("Cleaned up redundant message %s (%s %s)", ref, country, day)


def aggregate(
    messages: Iterable[DecodedMessage],
    zone: tzinfo,
    countries: Sequence[str],
    dedup_threshold: int = DEFAULT_DEDUP_THRESHOLD,
    cleanup: Callable[[str], None] | None = None,
) -> ScanSummary:
    """Aggregate ``messages`` into a ScanSummary.

    Message-level problems end up in ``summary.warnings``; only errors raised
    by the ``messages`` iterable itself propagate.
    """
    aggregator = DayAggregator(zone, countries, dedup_threshold=dedup_threshold, cleanup=cleanup)
    for message in messages:
        aggregator.add(message)
    return aggregator.summary
