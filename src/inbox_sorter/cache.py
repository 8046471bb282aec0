"""Per-folder cache of participant addresses, invalidated by folder fingerprint."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from pathlib import Path
from urllib.parse import quote

from .constants import CACHE_SUBDIR, DATA_DIR, ENVELOPE_BATCH_SIZE
from .imap_client import FolderAccessError, Mailbox, imap_date
from .models import AddressField, FolderCacheEntry, Fingerprint

logger = logging.getLogger(__name__)


def _cache_filename(folder: str) -> str:
    return quote(folder, safe="") + ".json"


class FolderAddressCache:
    """Participant addresses per folder, backed by one JSON file per folder.

    An entry is served only while its stored fingerprint equals the folder's
    live fingerprint in every field; otherwise the folder is rescanned.
    """

    def __init__(
        self,
        mailbox: Mailbox,
        cache_dir: Path | None = None,
        enabled: bool = True,
    ) -> None:
        self.mailbox = mailbox
        self.cache_dir = Path(cache_dir or DATA_DIR / CACHE_SUBDIR)
        self.enabled = enabled

    # --- public API ---

    def addresses(
        self,
        folder: str,
        field: AddressField = AddressField.FROM,
        since: date | None = None,
        all_messages: bool = False,
    ) -> list[str]:
        """Return the sorted, lower-cased, unique addresses found in ``folder``."""
        if not self.folder_exists(folder):
            logger.debug("Folder %s does not exist", folder)
            return []

        try:
            fingerprint = self.live_fingerprint(folder)
            if self.enabled:
                entry = self.load(folder)
                if self.is_valid(entry, fingerprint):
                    logger.debug("Using cached email addresses for folder %s", folder)
                    return list(entry.addresses)

            logger.debug("Fetching email addresses for folder %s", folder)
            addresses = self._scan(folder, field, since, all_messages)
        except FolderAccessError as exc:
            logger.warning("Folder %s is not accessible: %s", folder, exc)
            return []

        if self.enabled:
            self.save(FolderCacheEntry(folder, addresses, fingerprint))
            logger.debug("Cached %d email addresses for folder %s", len(addresses), folder)
        return addresses

    def folder_exists(self, folder: str) -> bool:
        return any(f.name == folder for f in self.mailbox.list_folders())

    def live_fingerprint(self, folder: str) -> Fingerprint:
        return self.mailbox.status(folder)

    @staticmethod
    def is_valid(entry: FolderCacheEntry | None, fingerprint: Fingerprint) -> bool:
        """An entry is valid only while every fingerprint field matches."""
        return entry is not None and entry.fingerprint == fingerprint

    def load(self, folder: str) -> FolderCacheEntry | None:
        """Read the cache entry for ``folder``.  Unreadable files count as a miss."""
        path = self.path_for(folder)
        if not path.exists():
            return None
        try:
            with open(path) as f:
                data = json.load(f)
            return FolderCacheEntry(
                folder_name=folder,
                addresses=[str(a) for a in data["addresses"]],
                fingerprint=Fingerprint(*(int(n) for n in data["fingerprint"])),
                cached_at=str(data.get("cached_at", "")),
            )
        except (OSError, ValueError, TypeError, KeyError) as exc:
            logger.debug("Ignoring unreadable cache file %s: %s", path, exc)
            return None

    def save(self, entry: FolderCacheEntry) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(entry.folder_name)
        tmp_path = path.with_suffix(".tmp")
        with open(tmp_path, "w") as f:
            json.dump(
                {
                    "addresses": entry.addresses,
                    "fingerprint": entry.fingerprint.as_list(),
                    "cached_at": entry.cached_at,
                },
                f,
                indent=2,
            )
        tmp_path.replace(path)

    def refresh_fingerprint(self, folder: str) -> None:
        """Store the folder's current fingerprint, keeping the cached addresses.

        Used after moves change a folder's population, so later lookups in
        the same run hit the cache without a full rescan.
        """
        if not self.enabled:
            return
        entry = self.load(folder)
        if entry is None:
            return
        try:
            entry.fingerprint = self.live_fingerprint(folder)
        except FolderAccessError as exc:
            logger.warning("Could not refresh cache stats for %s: %s", folder, exc)
            return
        entry.cached_at = datetime.now().isoformat()
        self.save(entry)
        logger.debug("Refreshed cache stats for folder %s", folder)

    def path_for(self, folder: str) -> Path:
        return self.cache_dir / _cache_filename(folder)

    def clear(self) -> None:
        """Remove every cache entry."""
        if not self.cache_dir.exists():
            return
        for path in self.cache_dir.glob("*.json"):
            path.unlink()

    def get_info(self) -> dict:
        """Return cache statistics."""
        paths = list(self.cache_dir.glob("*.json")) if self.cache_dir.exists() else []
        address_count = 0
        for path in paths:
            try:
                with open(path) as f:
                    address_count += len(json.load(f).get("addresses", []))
            except (OSError, ValueError, AttributeError):
                continue
        return {
            "cache_dir": str(self.cache_dir),
            "folder_count": len(paths),
            "address_count": address_count,
            "size_bytes": sum(p.stat().st_size for p in paths),
        }

    # --- scanning ---

    def _scan(
        self,
        folder: str,
        field: AddressField,
        since: date | None,
        all_messages: bool,
    ) -> list[str]:
        self.mailbox.select(folder)
        message_ids = self.mailbox.search(self._search_terms(since, all_messages))
        if not message_ids:
            return []

        logger.debug("Found %d messages in folder %s", len(message_ids), folder)
        found: set[str] = set()
        for start in range(0, len(message_ids), ENVELOPE_BATCH_SIZE):
            chunk = message_ids[start:start + ENVELOPE_BATCH_SIZE]
            for envelope in self.mailbox.fetch_envelopes(chunk):
                found.update(a.lower() for a in envelope.addresses(field) if a)
        return sorted(found)

    @staticmethod
    def _search_terms(since: date | None, all_messages: bool) -> list[str]:
        terms = ["NOT", "DELETED"]
        if not all_messages and since is not None:
            terms += ["SINCE", imap_date(since)]
        return terms
