"""Run orchestration - build address tables, decide and act on each message."""

from __future__ import annotations

import logging
from calendar import monthrange
from datetime import date, datetime, timezone
from typing import Callable

from .actions import ActionRunner
from .cache import FolderAddressCache
from .config import Settings
from .constants import (
    DEFAULT_JUNK_FOLDER,
    DEFAULT_SENT_FOLDER,
    HEADER_BATCH_SIZE,
    INBOX,
    JUNK_ATTRIBUTE,
    SENT_ATTRIBUTE,
)
from .decision import DecisionEngine
from .headers import parse_message
from .imap_client import FolderAccessError, Mailbox, imap_date
from .models import AddressField, Decision, DecisionContext, FolderMap, Message, RunSummary

logger = logging.getLogger(__name__)


def months_ago(today: date, months: int) -> date:
    """Same day ``months`` calendar months before ``today``, clamped to month end."""
    total = today.year * 12 + (today.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    return date(year, month, min(today.day, monthrange(year, month)[1]))


class MailboxSorter:
    """Sort a mailbox the way its owner has organised it so far."""

    def __init__(
        self,
        mailbox: Mailbox,
        settings: Settings,
        cache: FolderAddressCache | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.mailbox = mailbox
        self.settings = settings
        self.cache = cache or FolderAddressCache(
            mailbox, settings.cache_dir, enabled=settings.cache_enabled
        )
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.blacklisted_emails: list[str] = []
        self.junk_history_emails: list[str] = []
        self.whitelisted_emails: list[str] = []
        self.sender_map = FolderMap()
        self._attribute_folders: dict[str, str] | None = None

    # --- public runs ---

    def clean_inbox(self) -> RunSummary:
        """Sort unseen inbox messages into keep / folder / junk."""
        self.build_blacklist()
        self.build_whitelist()
        self.build_sender_map(self.settings.sender_map_folders)
        engine = DecisionEngine(self.decision_context())
        messages = self._messages(INBOX, ["UNSEEN", "NOT", "DELETED"])
        summary = self._process(INBOX, messages, engine.decide_for_new_message, "new inbox messages")
        logger.info("Finished cleaning")
        return summary

    def file_messages(self) -> RunSummary:
        """File existing inbox messages into the folders their senders belong to."""
        self.build_blacklist()
        self.build_sender_map(self.settings.filing_folders)
        engine = DecisionEngine(self.decision_context(filing=True))
        criteria = ["NOT", "DELETED"] + self._date_search()
        if not self.settings.file_unread:
            criteria.append("SEEN")
        messages = self._messages(INBOX, criteria)
        return self._process(INBOX, messages, engine.decide_for_filing, "filing existing messages")

    def unjunk(self) -> RunSummary:
        """Move messages out of the junk folder when their sender is known."""
        self.build_blacklist()
        self.build_sender_map(self.settings.filing_folders)
        engine = DecisionEngine(self.decision_context(filing=True, unjunking=True))
        messages = self._messages(self.junk_folder, ["NOT", "DELETED"] + self._date_search())
        return self._process(self.junk_folder, messages, engine.decide_for_unjunking, "unjunking")

    # --- tables ---

    def build_blacklist(self) -> None:
        logger.info("Building blacklist....")
        self.blacklisted_emails = []
        if self.settings.blacklist_folder:
            self.blacklisted_emails = self.cache.addresses(
                self.settings.blacklist_folder, all_messages=True
            )
        self.junk_history_emails = self.cache.addresses(self.junk_folder)
        logger.info(
            "Found %d blacklisted emails and %d junk folder emails",
            len(self.blacklisted_emails), len(self.junk_history_emails),
        )

    def build_whitelist(self) -> None:
        logger.info("Building whitelist....")
        found: list[str] = []
        for folder in self.settings.whitelist_folders:
            found.extend(self.cache.addresses(folder))
        sent_since = months_ago(self.clock().date(), self.settings.sent_since_months)
        found.extend(self.cache.addresses(self.sent_folder, field=AddressField.TO, since=sent_since))
        self.whitelisted_emails = list(dict.fromkeys(found))

    def build_sender_map(self, folders) -> None:
        """Map each known sender to the first folder (in priority order) holding its mail."""
        logger.info("Building sender maps....")
        since = self.settings.valid_from or months_ago(
            self.clock().date(), self.settings.list_since_months
        )
        for folder in folders:
            logger.debug("  adding addresses from %s", folder)
            for address in self.cache.addresses(folder, since=since):
                self.sender_map.add(address, folder)

    def decision_context(self, filing: bool = False, unjunking: bool = False) -> DecisionContext:
        domain_map = self.settings.list_domain_map
        if filing:
            allowed = set(self.settings.filing_folders)
            domain_map = FolderMap((d, f) for d, f in domain_map.items() if f in allowed)
        return DecisionContext.build(
            whitelisted_emails=self.whitelisted_emails,
            whitelisted_domains=self.settings.whitelisted_domains,
            blacklisted_emails=self.blacklisted_emails,
            junk_history_emails=self.junk_history_emails,
            sender_map=self.sender_map,
            list_domain_map=domain_map,
            list_folder=self.settings.list_folder,
            quarantine_folder=self.settings.quarantine_folder,
            retention_policy=self.settings.retention_policy,
            hold_days=self.settings.hold_days,
            unjunking=unjunking,
            now=self.clock(),
        )

    # --- folders ---

    @property
    def junk_folder(self) -> str:
        return (
            self.settings.junk_folder
            or self._folder_with_attribute(JUNK_ATTRIBUTE)
            or DEFAULT_JUNK_FOLDER
        )

    @property
    def sent_folder(self) -> str:
        return (
            self.settings.sent_folder
            or self._folder_with_attribute(SENT_ATTRIBUTE)
            or DEFAULT_SENT_FOLDER
        )

    def _folder_with_attribute(self, attribute: str) -> str | None:
        if self._attribute_folders is None:
            self._attribute_folders = {}
            for folder in self.mailbox.list_folders():
                for attr in folder.attributes:
                    self._attribute_folders.setdefault(attr.lower(), folder.name)
        return self._attribute_folders.get(attribute.lower())

    # --- processing ---

    def _date_search(self) -> list[str]:
        if self.settings.all_messages:
            return []
        since = self.settings.since or months_ago(self.clock().date(), self.settings.since_months)
        return ["SINCE", imap_date(since)]

    def _messages(self, folder: str, criteria: list[str]) -> list[Message]:
        try:
            self.mailbox.select(folder)
            message_ids = self.mailbox.search(criteria)
        except FolderAccessError as exc:
            logger.warning("Folder %s is not accessible: %s", folder, exc)
            return []

        messages: list[Message] = []
        for start in range(0, len(message_ids), HEADER_BATCH_SIZE):
            chunk = message_ids[start:start + HEADER_BATCH_SIZE]
            for message_id, header_text in self.mailbox.fetch_headers(chunk):
                messages.append(parse_message(message_id, header_text))
        return messages

    def _process(
        self,
        source_folder: str,
        messages: list[Message],
        decide: Callable[[Message], Decision],
        context_name: str,
    ) -> RunSummary:
        logger.info("Processing %d messages for %s", len(messages), context_name)
        runner = ActionRunner(self.mailbox, junk_folder=self.junk_folder, pretend=self.settings.pretend)
        summary = RunSummary()

        for message in messages:
            decision = decide(message)
            runner.execute(decision, message)
            summary.record(decision)

        summary.changed_folders = set(runner.changed_folders)
        summary.pretend_folders = set(runner.pretend_folders)
        if summary.changed_folders:
            logger.info(
                "Updated %d folders: %s",
                len(summary.changed_folders), ", ".join(sorted(summary.changed_folders)),
            )
        else:
            logger.info("No messages were moved")

        runner.expunge()
        if summary.changed_folders:
            for folder in sorted(summary.changed_folders | {source_folder}):
                self.cache.refresh_fingerprint(folder)
        return summary
