"""Data models for Inbox Sorter."""

from __future__ import annotations

import enum
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType

from .constants import DKIM_PASS_TOKEN


class AddressField(str, enum.Enum):
    """Which envelope participants a folder scan collects."""

    FROM = "from"
    TO = "to"


class Category(str, enum.Enum):
    WHITELIST = "whitelist"
    LIST = "list"
    SKIP = "skip"


class RetentionPolicy(str, enum.Enum):
    """How senders with no whitelist/blacklist history are treated."""

    SPAMMY = "spammy"
    HOLD = "hold"
    QUARANTINE = "quarantine"
    PARANOID = "paranoid"


class Action(str, enum.Enum):
    KEEP = "keep"
    MOVE = "move"
    JUNK = "junk"


@dataclass(frozen=True)
class Message:
    """Headers of a single inbox or junk message, as needed for a decision."""

    message_id: str
    from_address: str
    from_domain: str
    date: datetime | None = None
    authentication_result: str | None = None  # raw Authentication-Results value
    has_spoof_indicator: bool = False

    @property
    def dkim_passed(self) -> bool:
        """True only when the server reported a passing DKIM signature."""
        if not self.authentication_result:
            return False
        return DKIM_PASS_TOKEN in self.authentication_result.lower()


@dataclass
class Envelope:
    message_id: str
    from_addresses: list[str] = field(default_factory=list)
    to_addresses: list[str] = field(default_factory=list)

    def addresses(self, address_field: AddressField) -> list[str]:
        if address_field is AddressField.TO:
            return self.to_addresses
        return self.from_addresses


@dataclass(frozen=True)
class FolderInfo:
    name: str
    attributes: tuple[str, ...] = ()


@dataclass(frozen=True)
class Fingerprint:
    """Folder counters used as an opaque change indicator."""

    message_count: int
    next_id: int
    validity_id: int

    @classmethod
    def empty(cls) -> Fingerprint:
        return cls(0, 0, 0)

    def as_list(self) -> list[int]:
        return [self.message_count, self.next_id, self.validity_id]


@dataclass
class FolderCacheEntry:
    """Cached participant addresses of one folder."""

    folder_name: str
    addresses: list[str]
    fingerprint: Fingerprint
    cached_at: str = field(default_factory=lambda: datetime.now().isoformat())


@dataclass(frozen=True)
class FolderSnapshot:
    """Result of analysing one folder, consumed by the categorizer."""

    name: str
    message_count: int
    senders: frozenset[str] = frozenset()
    domains: frozenset[str] = frozenset()
    attributes: tuple[str, ...] = ()


@dataclass(frozen=True)
class Categorization:
    category: Category
    reason: str


@dataclass(frozen=True)
class FolderAnalysis:
    """A categorized folder snapshot."""

    snapshot: FolderSnapshot
    category: Category
    reason: str

    @property
    def name(self) -> str:
        return self.snapshot.name

    @property
    def domains(self) -> frozenset[str]:
        return self.snapshot.domains


class FolderMap(Mapping[str, str]):
    """Ordered key -> folder mapping where the first assignment wins.

    Keys are addresses or domain patterns.  ``add`` never replaces an
    existing entry, so the folder scanned first keeps ownership of a key.
    """

    def __init__(self, entries: Mapping[str, str] | Iterable[tuple[str, str]] = ()) -> None:
        self._entries: dict[str, str] = {}
        items = entries.items() if isinstance(entries, Mapping) else entries
        for key, folder in items:
            self.add(key, folder)

    def add(self, key: str, folder: str) -> bool:
        """Insert ``key`` unless it is already present.  Returns True on insert."""
        key = key.lower()
        if key in self._entries:
            return False
        self._entries[key] = folder
        return True

    def __getitem__(self, key: str) -> str:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"FolderMap({self._entries!r})"


@dataclass(frozen=True)
class Decision:
    action: Action
    folder: str | None = None

    @classmethod
    def keep(cls) -> Decision:
        return cls(Action.KEEP)

    @classmethod
    def junk(cls) -> Decision:
        return cls(Action.JUNK)

    @classmethod
    def move(cls, folder: str) -> Decision:
        return cls(Action.MOVE, folder)


@dataclass(frozen=True)
class DecisionContext:
    """Fixed inputs of the decision engine for one run."""

    whitelisted_emails: frozenset[str] = frozenset()
    whitelisted_domains: frozenset[str] = frozenset()
    blacklisted_emails: frozenset[str] = frozenset()
    junk_history_emails: frozenset[str] = frozenset()
    sender_map: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    list_domain_map: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    list_folder: str = "Lists"
    quarantine_folder: str = "Quarantine"
    retention_policy: RetentionPolicy = RetentionPolicy.SPAMMY
    hold_days: int = 7
    unjunking: bool = False
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def build(
        cls,
        *,
        whitelisted_emails: Iterable[str] = (),
        whitelisted_domains: Iterable[str] = (),
        blacklisted_emails: Iterable[str] = (),
        junk_history_emails: Iterable[str] = (),
        sender_map: Mapping[str, str] | None = None,
        list_domain_map: Mapping[str, str] | None = None,
        **kwargs,
    ) -> DecisionContext:
        """Build a context, normalising addresses and freezing the tables."""
        return cls(
            whitelisted_emails=frozenset(e.lower() for e in whitelisted_emails),
            whitelisted_domains=frozenset(d.lower() for d in whitelisted_domains),
            blacklisted_emails=frozenset(e.lower() for e in blacklisted_emails),
            junk_history_emails=frozenset(e.lower() for e in junk_history_emails),
            sender_map=MappingProxyType(dict(FolderMap(sender_map or {}))),
            list_domain_map=MappingProxyType(dict(FolderMap(list_domain_map or {}))),
            **kwargs,
        )


@dataclass
class RunSummary:
    """Outcome of one processing run."""

    processed: int = 0
    kept: int = 0
    moved: int = 0
    junked: int = 0
    changed_folders: set[str] = field(default_factory=set)
    pretend_folders: set[str] = field(default_factory=set)

    def record(self, decision: Decision) -> None:
        self.processed += 1
        action = Action(decision.action)
        if action is Action.KEEP:
            self.kept += 1
        elif action is Action.MOVE:
            self.moved += 1
        else:
            self.junked += 1
