"""Shared fixtures for tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import pytest

from inbox_sorter.headers import parse_envelope
from inbox_sorter.imap_client import FolderAccessError
from inbox_sorter.models import Fingerprint, FolderInfo, Message

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


def make_headers(
    sender: str,
    to: str = "me@home.test",
    auth: str | None = "mx.home.test; dkim=pass header.d=example.com",
    date: datetime | None = None,
    extra: str = "",
) -> str:
    """Build a raw header block."""
    lines = [f"From: {sender}", f"To: {to}", "Subject: Hello"]
    if date is not None:
        lines.append(f"Date: {format_datetime(date)}")
    if auth is not None:
        lines.append(f"Authentication-Results: {auth}")
    if extra:
        lines.append(extra.strip())
    return "\r\n".join(lines) + "\r\n\r\n"


class FakeMailbox:
    """In-memory Mailbox recording every call made to it."""

    def __init__(self, folders: dict[str, list[str]] | None = None, attributes=None) -> None:
        self.folders: dict[str, list[str]] = {k: list(v) for k, v in (folders or {}).items()}
        self.attributes: dict[str, tuple[str, ...]] = dict(attributes or {})
        self.fingerprints: dict[str, Fingerprint] = {}
        self.inaccessible: set[str] = set()
        self.selected: str | None = None
        self.calls: list[tuple] = []
        self.flags: dict[tuple[str, str], str] = {}

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    def list_folders(self) -> list[FolderInfo]:
        self.calls.append(("list_folders",))
        return [FolderInfo(name, self.attributes.get(name, ())) for name in self.folders]

    def select(self, folder: str) -> int:
        self.calls.append(("select", folder))
        if folder in self.inaccessible or folder not in self.folders:
            raise FolderAccessError(f"Cannot select {folder}")
        self.selected = folder
        return len(self.folders[folder])

    def status(self, folder: str) -> Fingerprint:
        self.calls.append(("status", folder))
        if folder in self.inaccessible or folder not in self.folders:
            raise FolderAccessError(f"Cannot read status of {folder}")
        if folder in self.fingerprints:
            return self.fingerprints[folder]
        count = len(self.folders[folder])
        return Fingerprint(count, count + 1, 1)

    def search(self, criteria) -> list[str]:
        self.calls.append(("search", tuple(criteria)))
        return [str(i) for i in range(1, len(self.folders[self.selected]) + 1)]

    def fetch_envelopes(self, message_ids):
        self.calls.append(("fetch_envelopes", tuple(message_ids)))
        return [parse_envelope(i, self.folders[self.selected][int(i) - 1]) for i in message_ids]

    def fetch_headers(self, message_ids):
        self.calls.append(("fetch_headers", tuple(message_ids)))
        return [(i, self.folders[self.selected][int(i) - 1]) for i in message_ids]

    def copy(self, message_id: str, folder: str) -> None:
        self.calls.append(("copy", message_id, folder))
        self.folders[folder].append(self.folders[self.selected][int(message_id) - 1])

    def store(self, message_id: str, flags: str) -> None:
        self.calls.append(("store", message_id, flags))
        self.flags[(self.selected, message_id)] = flags

    def create(self, folder: str) -> None:
        self.calls.append(("create", folder))
        self.folders.setdefault(folder, [])

    def expunge(self) -> None:
        self.calls.append(("expunge",))
        flagged = {int(i) for (folder, i) in self.flags if folder == self.selected}
        self.folders[self.selected] = [
            m for n, m in enumerate(self.folders[self.selected], start=1) if n not in flagged
        ]
        self.flags = {k: v for k, v in self.flags.items() if k[0] != self.selected}


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_message():
    def _make(
        address: str = "news@shop.example.com",
        days_old: float | None = 1,
        dkim: bool = True,
        spoofed: bool = False,
        message_id: str = "1",
    ) -> Message:
        return Message(
            message_id=message_id,
            from_address=address,
            from_domain=address.rsplit("@", 1)[-1],
            date=None if days_old is None else NOW - timedelta(days=days_old),
            authentication_result="mx; dkim=pass" if dkim else "mx; dkim=fail",
            has_spoof_indicator=spoofed,
        )

    return _make


@pytest.fixture
def mailbox() -> FakeMailbox:
    return FakeMailbox(
        {
            "INBOX": [],
            "Lists": [
                make_headers("Shop <news@shop.example.com>"),
                make_headers("Deals <DEALS@Shop.Example.com>"),
                make_headers("Shop <news@shop.example.com>"),
            ],
            "Friends": [make_headers("Alice Smith <alice.smith@mail.test>")],
        }
    )
