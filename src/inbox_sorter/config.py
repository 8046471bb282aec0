"""Run configuration, built once at start-up and passed to each component."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from datetime import date
from pathlib import Path

from .constants import (
    CACHE_ENABLED_ENV,
    CACHE_SUBDIR,
    DATA_DIR,
    DATA_DIR_ENV,
    DEFAULT_FILING_SINCE_MONTHS,
    DEFAULT_HOLD_DAYS,
    DEFAULT_LIST_FOLDER,
    DEFAULT_LIST_SINCE_MONTHS,
    DEFAULT_QUARANTINE_FOLDER,
    DEFAULT_SENT_SINCE_MONTHS,
)
from .models import FolderMap, RetentionPolicy


def _as_tuple(value) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def _parse_date(value) -> date | None:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def resolve_data_dir(value: str | Path | None = None) -> Path:
    """Data directory from the option, then the environment, then the default."""
    if value:
        return Path(value).expanduser().resolve()
    env_value = os.environ.get(DATA_DIR_ENV)
    if env_value:
        return Path(env_value).expanduser().resolve()
    return DATA_DIR


def cache_enabled_from_env() -> bool:
    return os.environ.get(CACHE_ENABLED_ENV, "").lower() != "false"


@dataclass(frozen=True)
class Settings:
    """Options of one sorting run.

    ``junk_folder`` and ``sent_folder`` default to the folders the server
    flags as ``\\Junk`` and ``\\Sent``.
    """

    data_dir: Path = DATA_DIR
    list_folder: str = DEFAULT_LIST_FOLDER
    list_folders: tuple[str, ...] = ()
    whitelist_folders: tuple[str, ...] = ()
    file_from_folders: tuple[str, ...] = ()
    blacklist_folder: str | None = None
    junk_folder: str | None = None
    sent_folder: str | None = None
    quarantine_folder: str = DEFAULT_QUARANTINE_FOLDER
    whitelisted_domains: tuple[str, ...] = ()
    list_domain_map: Mapping[str, str] = field(default_factory=FolderMap)
    retention_policy: RetentionPolicy = RetentionPolicy.SPAMMY
    hold_days: int = DEFAULT_HOLD_DAYS
    list_since_months: int = DEFAULT_LIST_SINCE_MONTHS
    sent_since_months: int = DEFAULT_SENT_SINCE_MONTHS
    since_months: int = DEFAULT_FILING_SINCE_MONTHS
    valid_from: date | None = None
    since: date | None = None
    all_messages: bool = False
    file_unread: bool = False
    pretend: bool = False
    cache_enabled: bool = True

    @property
    def cache_dir(self) -> Path:
        return self.data_dir / CACHE_SUBDIR

    @property
    def sender_map_folders(self) -> tuple[str, ...]:
        """Folders whose senders are learned when cleaning new mail."""
        return self.list_folders or (self.list_folder,)

    @property
    def filing_folders(self) -> tuple[str, ...]:
        """Folders existing messages may be filed into."""
        return self.file_from_folders or (self.sender_map_folders + self.whitelist_folders)

    @classmethod
    def from_mapping(cls, options: Mapping) -> Settings:
        """Build settings from an already-loaded options mapping.

        Unknown keys are ignored; an unknown retention policy raises ValueError.
        """
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in options.items() if k in known and v is not None}

        values["data_dir"] = resolve_data_dir(options.get("data_dir"))
        for key in ("list_folders", "whitelist_folders", "file_from_folders", "whitelisted_domains"):
            if key in values:
                values[key] = _as_tuple(values[key])
        if "whitelisted_domains" in values:
            values["whitelisted_domains"] = tuple(d.lower() for d in values["whitelisted_domains"])
        if "list_domain_map" in values:
            values["list_domain_map"] = FolderMap(values["list_domain_map"])
        if "retention_policy" in values:
            values["retention_policy"] = RetentionPolicy(str(values["retention_policy"]).lower())
        for key in ("hold_days", "list_since_months", "sent_since_months", "since_months"):
            if key in values:
                values[key] = int(values[key])
        for key in ("valid_from", "since"):
            if key in values:
                values[key] = _parse_date(values[key])
        if "cache_enabled" not in values:
            values["cache_enabled"] = cache_enabled_from_env()
        return cls(**values)
