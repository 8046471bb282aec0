"""Folder categorization into whitelist, list or skip."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import cached_property
from typing import Callable

from .constants import (
    BULK_HEADER_PATTERNS,
    BULK_HEADER_RATIO,
    FEW_DOMAINS_LIMIT,
    FEW_DOMAINS_MIN_MESSAGES,
    HEADER_SAMPLE_SIZE,
    HIGH_VOLUME_MESSAGES,
    LIST_FOLDER_PATTERNS,
    MIN_FOLDER_MESSAGES,
    PERSONAL_LOCAL_PART_PATTERN,
    PERSONAL_SENDER_RATIO,
    SYSTEM_FOLDER_PATTERNS,
    WHITELIST_FOLDER_PATTERNS,
)
from .imap_client import Mailbox
from .models import Categorization, Category, FolderSnapshot

logger = logging.getLogger(__name__)

_SYSTEM_RES = [re.compile(p, re.IGNORECASE) for p in SYSTEM_FOLDER_PATTERNS]
_LIST_RES = [re.compile(p, re.IGNORECASE) for p in LIST_FOLDER_PATTERNS]
_WHITELIST_RES = [re.compile(p, re.IGNORECASE) for p in WHITELIST_FOLDER_PATTERNS]
_BULK_RES = [re.compile(p, re.IGNORECASE | re.MULTILINE) for p in BULK_HEADER_PATTERNS]
_PERSONAL_RE = re.compile(PERSONAL_LOCAL_PART_PATTERN)


def has_bulk_headers(header_text: str) -> bool:
    """Return True when a header block carries any bulk-mail signal."""
    return any(pattern.search(header_text) for pattern in _BULK_RES)


def _name_matches(name: str, patterns: list[re.Pattern]) -> bool:
    lowered = name.lower()
    return any(pattern.search(lowered) for pattern in patterns)


@dataclass(frozen=True)
class Rule:
    """One categorization rule: the first rule whose predicate holds wins."""

    name: str
    predicate: Callable[[FolderCategorizer], bool]
    category: Category
    reason: Callable[[FolderCategorizer], str]


class FolderCategorizer:
    """Classify a folder snapshot as whitelist, list or skip.

    When a mailbox is given, up to ``HEADER_SAMPLE_SIZE`` of the folder's most
    recent messages are sampled for bulk-mail headers.
    """

    RULES: tuple[Rule, ...] = (
        Rule(
            "low_volume",
            lambda c: c.snapshot.message_count < MIN_FOLDER_MESSAGES,
            Category.SKIP,
            lambda c: f"low volume ({c.snapshot.message_count} messages)",
        ),
        Rule(
            "system_folder",
            lambda c: _name_matches(c.snapshot.name, _SYSTEM_RES),
            Category.SKIP,
            lambda c: "system folder",
        ),
        Rule(
            "bulk_headers",
            lambda c: c.bulk_headers_found,
            Category.LIST,
            lambda c: "found newsletter/bulk email headers",
        ),
        Rule(
            "list_name",
            lambda c: _name_matches(c.snapshot.name, _LIST_RES),
            Category.LIST,
            lambda c: "folder name suggests list/newsletter content",
        ),
        Rule(
            "whitelist_name",
            lambda c: _name_matches(c.snapshot.name, _WHITELIST_RES),
            Category.WHITELIST,
            lambda c: "folder name suggests personal/professional emails",
        ),
    )

    def __init__(self, snapshot: FolderSnapshot, mailbox: Mailbox | None = None) -> None:
        self.snapshot = snapshot
        self.mailbox = mailbox

    def categorize(self) -> Categorization:
        return self.categorization

    @cached_property
    def categorization(self) -> Categorization:
        for rule in self.RULES:
            if rule.predicate(self):
                return Categorization(rule.category, rule.reason(self))
        return self._categorize_by_senders()

    @property
    def skip(self) -> bool:
        return self.categorization.category is Category.SKIP

    @cached_property
    def bulk_headers_found(self) -> bool:
        """Sample recent headers; more than 30% bulk signals means a list folder."""
        if self.mailbox is None:
            return False
        try:
            self.mailbox.select(self.snapshot.name)
            message_ids = self.mailbox.search(["ALL"])[-HEADER_SAMPLE_SIZE:]
            if not message_ids:
                return False
            headers = self.mailbox.fetch_headers(message_ids)
            bulk = sum(1 for _, text in headers if has_bulk_headers(text))
            return bulk / len(message_ids) > BULK_HEADER_RATIO
        except Exception as exc:  # noqa: BLE001
            logger.debug("Could not analyze headers for %s: %s", self.snapshot.name, exc)
            return False

    def _categorize_by_senders(self) -> Categorization:
        senders = self.snapshot.senders
        count = self.snapshot.message_count
        if not senders:
            return Categorization(Category.SKIP, "no known senders")

        domains = {s.rsplit("@", 1)[-1] for s in senders}
        if len(domains) <= FEW_DOMAINS_LIMIT and count > FEW_DOMAINS_MIN_MESSAGES:
            return Categorization(
                Category.LIST, "sender patterns suggest list/newsletter content"
            )

        personal = sum(1 for s in senders if _PERSONAL_RE.match(s.split("@", 1)[0]))
        if personal > len(senders) * PERSONAL_SENDER_RATIO:
            return Categorization(
                Category.WHITELIST, "sender patterns suggest personal correspondence"
            )

        if count > HIGH_VOLUME_MESSAGES:
            return Categorization(Category.LIST, "high volume folder")
        return Categorization(Category.SKIP, "no clear sender pattern")
