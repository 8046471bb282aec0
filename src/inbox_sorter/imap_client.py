"""IMAP mailbox access used by the cache, categorizer and action runner."""

from __future__ import annotations

import imaplib
import logging
import re
from datetime import date
from typing import Protocol, Sequence

from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from .constants import RETRY_ATTEMPTS, STATUS_FIELDS, TRANSIENT_RESPONSE_CODES
from .headers import parse_envelope
from .models import Envelope, Fingerprint, FolderInfo

logger = logging.getLogger(__name__)

_LIST_RE = re.compile(r'^\((?P<flags>[^)]*)\)\s+(?P<delim>"[^"]*"|NIL)\s+(?P<name>.+)$')
_STATUS_ITEM_RE = re.compile(r"([A-Z]+)\s+(\d+)")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


class MailboxError(Exception):
    """The server answered a command with something other than OK."""


class FolderAccessError(MailboxError):
    """A folder could not be selected or queried."""


class Mailbox(Protocol):
    """Mailbox operations the sorter needs from a connection."""

    def list_folders(self) -> list[FolderInfo]: ...

    def select(self, folder: str) -> int: ...

    def status(self, folder: str) -> Fingerprint: ...

    def search(self, criteria: Sequence[str]) -> list[str]: ...

    def fetch_envelopes(self, message_ids: Sequence[str]) -> list[Envelope]: ...

    def fetch_headers(self, message_ids: Sequence[str]) -> list[tuple[str, str]]: ...

    def copy(self, message_id: str, folder: str) -> None: ...

    def store(self, message_id: str, flags: str) -> None: ...

    def create(self, folder: str) -> None: ...

    def expunge(self) -> None: ...


def imap_date(value: date) -> str:
    """Render a date the way SEARCH SINCE expects it, e.g. 17-Oct-2026."""
    return f"{value.day:02d}-{_MONTHS[value.month - 1]}-{value.year}"


def quote_folder(name: str) -> str:
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _decode(value: bytes | str) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _is_retryable_imap_error(exc: BaseException) -> bool:
    return isinstance(exc, MailboxError) and any(
        code in str(exc) for code in TRANSIENT_RESPONSE_CODES
    )


def parse_list_line(line: bytes | str) -> FolderInfo | None:
    """Parse one LIST response line into a FolderInfo."""
    m = _LIST_RE.match(_decode(line).strip())
    if not m:
        return None
    name = m.group("name").strip()
    if len(name) >= 2 and name.startswith('"') and name.endswith('"'):
        name = name[1:-1].replace('\\"', '"').replace("\\\\", "\\")
    return FolderInfo(name=name, attributes=tuple(m.group("flags").split()))


def parse_status_line(line: bytes | str) -> Fingerprint:
    """Parse a STATUS response line into the folder fingerprint."""
    text = _decode(line)
    items_start = text.rfind("(")
    items = dict(
        (key, int(value)) for key, value in _STATUS_ITEM_RE.findall(text[items_start:])
    )
    return Fingerprint(
        message_count=items.get("MESSAGES", 0),
        next_id=items.get("UIDNEXT", 0),
        validity_id=items.get("UIDVALIDITY", 0),
    )


def parse_fetch_response(data: list) -> list[tuple[str, str]]:
    """Turn FETCH response data into (message id, header text) pairs."""
    results: list[tuple[str, str]] = []
    for part in data:
        if not isinstance(part, tuple) or len(part) < 2:
            continue
        message_id = _decode(part[0]).split()[0]
        results.append((message_id, _decode(part[1])))
    return results


class ImapMailbox:
    """Adapter from an authenticated ``imaplib.IMAP4`` connection to ``Mailbox``.

    Message ids are sequence numbers within the selected folder, so deletions
    are only flagged and the caller expunges once processing is done.
    """

    def __init__(self, connection: imaplib.IMAP4) -> None:
        self._conn = connection

    @retry(
        retry=retry_if_exception(_is_retryable_imap_error),
        wait=wait_exponential(multiplier=1, min=1, max=60),
        stop=stop_after_attempt(RETRY_ATTEMPTS),
        reraise=True,
    )
    def _command(self, name: str, *args) -> list:
        typ, data = getattr(self._conn, name)(*args)
        if typ != "OK":
            detail = " ".join(_decode(d) for d in data if isinstance(d, (bytes, str)))
            raise MailboxError(f"{name.upper()} failed: {detail}")
        return data

    def list_folders(self) -> list[FolderInfo]:
        data = self._command("list")
        folders = []
        for line in data:
            if line is None:
                continue
            info = parse_list_line(line)
            if info is not None:
                folders.append(info)
        return folders

    def select(self, folder: str) -> int:
        try:
            data = self._command("select", quote_folder(folder))
        except MailboxError as exc:
            raise FolderAccessError(f"Cannot select {folder}: {exc}") from exc
        return int(_decode(data[0]) or 0) if data and data[0] else 0

    def status(self, folder: str) -> Fingerprint:
        try:
            data = self._command("status", quote_folder(folder), f"({' '.join(STATUS_FIELDS)})")
        except MailboxError as exc:
            raise FolderAccessError(f"Cannot read status of {folder}: {exc}") from exc
        return parse_status_line(data[0])

    def search(self, criteria: Sequence[str]) -> list[str]:
        data = self._command("search", None, *criteria)
        if not data or not data[0]:
            return []
        return _decode(data[0]).split()

    def fetch_headers(self, message_ids: Sequence[str]) -> list[tuple[str, str]]:
        if not message_ids:
            return []
        data = self._command("fetch", ",".join(message_ids), "(BODY.PEEK[HEADER])")
        return parse_fetch_response(data)

    def fetch_envelopes(self, message_ids: Sequence[str]) -> list[Envelope]:
        if not message_ids:
            return []
        data = self._command(
            "fetch", ",".join(message_ids), "(BODY.PEEK[HEADER.FIELDS (FROM TO)])"
        )
        return [parse_envelope(msg_id, text) for msg_id, text in parse_fetch_response(data)]

    def copy(self, message_id: str, folder: str) -> None:
        self._command("copy", message_id, quote_folder(folder))

    def store(self, message_id: str, flags: str) -> None:
        self._command("store", message_id, "+FLAGS", f"({flags})")

    def create(self, folder: str) -> None:
        logger.debug("Creating folder %s", folder)
        self._command("create", quote_folder(folder))

    def expunge(self) -> None:
        self._command("expunge")
