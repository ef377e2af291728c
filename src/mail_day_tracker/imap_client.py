"""IMAP mailbox access - session handling, listing, fetching and cleanup."""

from __future__ import annotations

import imaplib
import logging
import re
from typing import Callable, Iterator

from .constants import DEFAULT_IMAP_PORT, DEFAULT_TRASH_MAILBOX
from .decoder import decode_message
from .models import DecodedMessage

logger = logging.getLogger(__name__)

_LIST_RE = re.compile(r'^\((?P<flags>[^)]*)\)\s+(?:"[^"]*"|NIL)\s+(?P<name>.+)$')


class MailboxError(Exception):
    """Raised when the mailbox cannot be reached or queried."""


def split_server(server: str) -> tuple[str, int]:
    """Split ``host[:port]``; the port defaults to IMAPS."""
    host, sep, port = server.rpartition(":")
    if not sep:
        return server, DEFAULT_IMAP_PORT
    try:
        return host, int(port)
    except ValueError as exc:
        raise MailboxError(f"invalid IMAP server address {server!r}") from exc


def parse_list_line(line: bytes) -> tuple[set[str], str] | None:
    """Parse one LIST response line into (attributes, mailbox name)."""
    text = line.decode("utf-8", errors="replace")
    m = _LIST_RE.match(text)
    if not m:
        return None
    flags = {f for f in m.group("flags").split() if f}
    name = m.group("name").strip()
    if name.startswith('"') and name.endswith('"'):
        name = name[1:-1].replace(r"\\", "\\").replace(r"\"", '"')
    return flags, name


def quote_mailbox(name: str) -> str:
    escaped = name.replace("\\", "\\\\").replace('"', r"\"")
    return f'"{escaped}"'


def _detail(data) -> str:
    if not isinstance(data, list):
        return ""
    return " | ".join(
        item.decode("utf-8", errors="replace") if isinstance(item, bytes) else str(item)
        for item in data
        if item is not None
    )


class ImapMailbox:
    """A logged-in IMAP session on a single selected mailbox.

    Use as a context manager; the session is logged out on exit whether or
    not the body raised.
    """

    def __init__(
        self,
        server: str,
        user: str,
        password: str,
        mailbox: str,
        imap_factory: Callable[[str, int], imaplib.IMAP4] = imaplib.IMAP4_SSL,
    ) -> None:
        self.server = server
        self.user = user
        self.password = password
        self.mailbox = mailbox
        self._imap_factory = imap_factory
        self._imap: imaplib.IMAP4 | None = None

    # --- session ---

    def open(self) -> None:
        host, port = split_server(self.server)
        try:
            self._imap = self._imap_factory(host, port)
        except (imaplib.IMAP4.error, OSError) as exc:
            raise MailboxError(f"dialing IMAP server {self.server}: {exc}") from exc
        logger.debug("connected to %s", self.server)

        try:
            self._imap.login(self.user, self.password)
        except (imaplib.IMAP4.error, OSError) as exc:
            self.close()
            raise MailboxError(f"logging in: {exc}") from exc
        logger.debug("logged in as %s", self.user)

        try:
            status, data = self._imap.select(quote_mailbox(self.mailbox))
        except (imaplib.IMAP4.error, OSError) as exc:
            self.close()
            raise MailboxError(f"selecting mailbox {self.mailbox}: {exc}") from exc
        if status != "OK":
            self.close()
            raise MailboxError(f"selecting mailbox {self.mailbox}: {_detail(data)}")

    def close(self) -> None:
        if self._imap is None:
            return
        imap, self._imap = self._imap, None
        try:
            imap.logout()
        except (imaplib.IMAP4.error, OSError) as exc:
            logger.debug("IMAP logout failed: %s", exc)

    def __enter__(self) -> ImapMailbox:
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()

    @property
    def imap(self) -> imaplib.IMAP4:
        if self._imap is None:
            raise MailboxError("mailbox session is not open")
        return self._imap

    # --- queries ---

    def find_trash_mailbox(self, fallback: str = DEFAULT_TRASH_MAILBOX) -> str:
        """Return the mailbox flagged \\Trash, or ``fallback``."""
        try:
            status, data = self.imap.list()
        except (imaplib.IMAP4.error, OSError) as exc:
            raise MailboxError(f"listing mailboxes: {exc}") from exc
        if status != "OK":
            raise MailboxError(f"listing mailboxes: {_detail(data)}")

        for line in data or []:
            if not isinstance(line, bytes):
                continue
            parsed = parse_list_line(line)
            if parsed is None:
                continue
            flags, name = parsed
            logger.debug("Mailbox: %s  Attrs: %s", name, sorted(flags))
            if any(f.lower() == "\\trash" for f in flags):
                return name
        return fallback

    def search_all(self) -> list[str]:
        try:
            status, data = self.imap.uid("SEARCH", None, "ALL")
        except (imaplib.IMAP4.error, OSError) as exc:
            raise MailboxError(f"searching emails: {exc}") from exc
        if status != "OK":
            raise MailboxError(f"searching emails: {_detail(data)}")
        if not data or not data[0]:
            return []
        raw = data[0]
        if isinstance(raw, bytes):
            raw = raw.decode("ascii", errors="ignore")
        return raw.split()

    def fetch(self, uid: str) -> bytes | None:
        """Fetch the full message without setting \\Seen; None if no body came back."""
        try:
            status, data = self.imap.uid("FETCH", uid, "(BODY.PEEK[])")
        except (imaplib.IMAP4.abort, OSError) as exc:
            raise MailboxError(f"fetching message {uid}: {exc}") from exc
        except imaplib.IMAP4.error as exc:
            logger.warning("FETCH %s failed: %s", uid, exc)
            return None
        if status != "OK" or not data:
            return None
        for item in data:
            if isinstance(item, tuple) and len(item) >= 2 and isinstance(item[1], bytes):
                return item[1]
        return None

    def messages(self) -> Iterator[DecodedMessage]:
        """Lazily fetch and decode every message in the mailbox."""
        for uid in self.search_all():
            yield decode_message(uid, self.fetch(uid))

    # --- cleanup ---

    def move(self, uid: str, target: str) -> None:
        mailbox = quote_mailbox(target)
        try:
            status, data = self.imap.uid("MOVE", uid, mailbox)
        except imaplib.IMAP4.error as exc:
            status, data = "NO", [str(exc).encode()]
        if status == "OK":
            return

        # Server without MOVE support
        status, copy_data = self.imap.uid("COPY", uid, mailbox)
        if status != "OK":
            raise MailboxError(f"moving {uid} to {target}: {_detail(copy_data) or _detail(data)}")
        self.delete(uid)

    def delete(self, uid: str) -> None:
        status, data = self.imap.uid("STORE", uid, "+FLAGS.SILENT", r"(\Deleted)")
        if status != "OK":
            raise MailboxError(f"flagging {uid} deleted: {_detail(data)}")
        if "UIDPLUS" in getattr(self.imap, "capabilities", ()):
            # Leaves other \Deleted messages alone
            status, data = self.imap.uid("EXPUNGE", uid)
        else:
            status, data = self.imap.expunge()
        if status != "OK":
            raise MailboxError(f"expunging {uid}: {_detail(data)}")

    def cleanup_action(self, action: str, trash_mailbox: str = "") -> Callable[[str], None] | None:
        """Return the callable applied to redundant messages, or None when disabled."""
        if action == "off":
            return None
        if action == "delete":
            return self.delete
        target = trash_mailbox or self.find_trash_mailbox()
        logger.info("Trash mailbox: %s", target)
        return lambda uid: self.move(uid, target)
