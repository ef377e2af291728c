"""Scan orchestration - opens the mailbox and aggregates its messages."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, Iterator

from .aggregator import aggregate
from .config import Settings
from .imap_client import ImapMailbox
from .models import DecodedMessage, ScanSummary

logger = logging.getLogger(__name__)


class ScanCancelled(Exception):
    """Raised when a scan is interrupted by the stop event."""


def _until_cancelled(
    messages: Iterable[DecodedMessage], cancel: threading.Event | None
) -> Iterator[DecodedMessage]:
    for message in messages:
        if cancel is not None and cancel.is_set():
            raise ScanCancelled("scan cancelled")
        yield message


def open_mailbox(settings: Settings) -> ImapMailbox:
    return ImapMailbox(
        settings.imap_server,
        settings.imap_user,
        settings.imap_password,
        settings.mailbox,
    )


def scan_mailbox(
    settings: Settings,
    cancel: threading.Event | None = None,
    mailbox_factory: Callable[[Settings], ImapMailbox] = open_mailbox,
) -> ScanSummary:
    """Run a full scan: connect, list, fetch, aggregate, clean up, log out.

    Raises MailboxError when the mailbox cannot be opened or searched, and
    ScanCancelled when ``cancel`` is set mid-scan.
    """
    zone = settings.zone
    with mailbox_factory(settings) as mailbox:
        cleanup = mailbox.cleanup_action(settings.cleanup_action, settings.trash_mailbox)
        summary = aggregate(
            _until_cancelled(mailbox.messages(), cancel),
            zone,
            settings.countries,
            dedup_threshold=settings.dedup_threshold,
            cleanup=cleanup,
        )

    for country in settings.countries:
        logger.debug("Total Emails Count: %s: %d", country, summary.email_match_count[country])
        logger.info("Final Day Count: %s: %d", country, summary.day_match_count[country])
    if summary.cleaned:
        logger.info("Cleaned up %d redundant messages", len(summary.cleaned))
    return summary


def check_mailbox(
    settings: Settings,
    mailbox_factory: Callable[[Settings], ImapMailbox] = open_mailbox,
) -> None:
    """Open and close a session; raises MailboxError when unreachable."""
    with mailbox_factory(settings):
        pass
