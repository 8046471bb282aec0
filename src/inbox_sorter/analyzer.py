"""Folder analysis - snapshot, categorize and recommend folder roles."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable

from .cache import FolderAddressCache
from .categorizer import FolderCategorizer
from .constants import (
    FREQUENT_CORRESPONDENTS_LIMIT,
    INBOX,
    SENT_ATTRIBUTE,
    SENT_FOLDER_NAMES,
    SENT_SAMPLE_SIZE,
)
from .domain_mapper import DomainMapper, DomainRules
from .imap_client import FolderAccessError, Mailbox, MailboxError
from .models import Category, FolderAnalysis, FolderInfo, FolderMap, FolderSnapshot

logger = logging.getLogger(__name__)


@dataclass
class SentAnalysis:
    """Recipients the mailbox owner writes to most often."""

    folder: str | None = None
    frequent_correspondents: list[tuple[str, int]] = field(default_factory=list)
    total_sent: int = 0
    sample_size: int = 0


@dataclass
class AnalysisResult:
    folders: list[FolderAnalysis] = field(default_factory=list)
    skipped_folders: list[str] = field(default_factory=list)
    total_folders: int = 0
    sent_items: SentAnalysis = field(default_factory=SentAnalysis)

    def names(self, category: Category) -> list[str]:
        return [f.name for f in self.folders if f.category is category]


@dataclass
class Recommendations:
    whitelist_folders: list[str] = field(default_factory=list)
    list_folders: list[str] = field(default_factory=list)
    domain_mappings: FolderMap = field(default_factory=FolderMap)
    frequent_correspondents: list[tuple[str, int]] = field(default_factory=list)


def find_sent_folder(folders: list[FolderInfo]) -> str | None:
    """The folder flagged ``\\Sent``, else the first well-known sent folder name."""
    for folder in folders:
        if any(attr.lower() == SENT_ATTRIBUTE.lower() for attr in folder.attributes):
            return folder.name
    names = {folder.name for folder in folders}
    return next((name for name in SENT_FOLDER_NAMES if name in names), None)


class FolderAnalyzer:
    """Walk the mailbox folders and categorize each one."""

    def __init__(self, mailbox: Mailbox, cache: FolderAddressCache) -> None:
        self.mailbox = mailbox
        self.cache = cache

    def snapshot(self, folder: FolderInfo) -> FolderSnapshot:
        """Build a snapshot; an inaccessible folder gives an empty one."""
        try:
            message_count = self.mailbox.status(folder.name).message_count
        except FolderAccessError as exc:
            logger.error("Could not analyze folder %s: %s", folder.name, exc)
            return FolderSnapshot(name=folder.name, message_count=0, attributes=folder.attributes)

        senders: frozenset[str] = frozenset()
        if message_count:
            try:
                senders = frozenset(self.cache.addresses(folder.name, all_messages=True))
            except MailboxError as exc:
                logger.error("Could not analyze senders for %s: %s", folder.name, exc)
        return FolderSnapshot(
            name=folder.name,
            message_count=message_count,
            senders=senders,
            domains=frozenset(s.rsplit("@", 1)[-1] for s in senders),
            attributes=folder.attributes,
        )

    def analyze_folders(
        self,
        callback: Callable[[int, int, str], None] | None = None,
    ) -> AnalysisResult:
        folders = self.mailbox.list_folders()
        result = AnalysisResult(total_folders=len(folders))
        logger.debug("Found %d folders to analyze", len(folders))

        for index, folder in enumerate(folders, start=1):
            if folder.name.upper() == INBOX:
                continue
            if callback:
                callback(index, len(folders), folder.name)

            snapshot = self.snapshot(folder)
            categorization = FolderCategorizer(snapshot, mailbox=self.mailbox).categorize()
            if categorization.category is Category.SKIP:
                logger.debug("Skipping %s (%s)", folder.name, categorization.reason)
                result.skipped_folders.append(folder.name)
                continue

            logger.debug(
                "Categorized %s as %s (%s)",
                folder.name, categorization.category.value, categorization.reason,
            )
            result.folders.append(
                FolderAnalysis(snapshot, categorization.category, categorization.reason)
            )

        result.folders.sort(key=lambda f: -f.snapshot.message_count)
        result.sent_items = self.analyze_sent_items(find_sent_folder(folders))
        logger.debug(
            "Analysis complete: %d folders analyzed, %d skipped",
            len(result.folders), len(result.skipped_folders),
        )
        return result

    def analyze_sent_items(self, sent_folder: str | None = None) -> SentAnalysis:
        """Count recipients of the most recent sent messages.

        The sent folder is detected when not given.  Mailbox errors give an
        empty analysis.
        """
        if sent_folder is None:
            sent_folder = find_sent_folder(self.mailbox.list_folders())
        if sent_folder is None:
            logger.debug("No sent folder found")
            return SentAnalysis()

        logger.debug("Analyzing sent items from %s", sent_folder)
        try:
            self.mailbox.select(sent_folder)
            message_ids = self.mailbox.search(["ALL"])
            sample = message_ids[-SENT_SAMPLE_SIZE:]
            recipients: Counter[str] = Counter()
            if sample:
                for envelope in self.mailbox.fetch_envelopes(sample):
                    recipients.update(list(dict.fromkeys(envelope.to_addresses)))
        except MailboxError as exc:
            logger.error("Could not analyze sent items: %s", exc)
            return SentAnalysis(folder=sent_folder)

        frequent = recipients.most_common(FREQUENT_CORRESPONDENTS_LIMIT)
        logger.debug("Found %d frequent correspondents", len(frequent))
        return SentAnalysis(
            folder=sent_folder,
            frequent_correspondents=frequent,
            total_sent=len(message_ids),
            sample_size=len(sample),
        )

    @staticmethod
    def recommendations(result: AnalysisResult, rules: DomainRules) -> Recommendations:
        return Recommendations(
            whitelist_folders=result.names(Category.WHITELIST),
            list_folders=result.names(Category.LIST),
            domain_mappings=DomainMapper(result.folders, rules).generate_mappings(),
            frequent_correspondents=list(result.sent_items.frequent_correspondents),
        )
