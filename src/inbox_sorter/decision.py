"""Per-message decisions: keep in the inbox, file into a folder, or junk."""

from __future__ import annotations

import logging
from datetime import timedelta

from .domain_mapper import lookup_domain_folder
from .models import Decision, DecisionContext, Message, RetentionPolicy

logger = logging.getLogger(__name__)


class DecisionEngine:
    """Turn a message into exactly one Decision given a fixed run context.

    Decisions depend only on the message and the context (including its clock
    reading), so evaluating the same message twice gives the same result.
    """

    def __init__(self, context: DecisionContext) -> None:
        self.context = context

    def decide_for_new_message(self, message: Message) -> Decision:
        if self.is_blacklisted(message):
            return Decision.junk()
        if self.is_whitelisted(message):
            return Decision.keep()
        if self.is_held(message):
            return Decision.keep()

        folder = self.list_folder_for(message)
        if folder is not None:
            return Decision.move(folder)
        return Decision.junk()

    def decide_for_filing(self, message: Message) -> Decision:
        folder = self.destination_for(message)
        if folder:
            return Decision.move(folder)
        return Decision.keep()

    def decide_for_unjunking(self, message: Message) -> Decision:
        return self.decide_for_filing(message)

    # --- tables ---

    def destination_for(self, message: Message) -> str | None:
        """Folder a sender is known to belong to, from the sender or domain maps."""
        folder = self.context.sender_map.get(message.from_address)
        if folder:
            return folder
        return lookup_domain_folder(message.from_domain, self.context.list_domain_map)

    def is_whitelisted(self, message: Message) -> bool:
        if self.context.unjunking:
            return False
        return self._whitelisted(message)

    def is_blacklisted(self, message: Message) -> bool:
        """User blacklist always wins; junk history applies only to unknown senders."""
        if self.context.unjunking:
            return False
        if message.from_address in self.context.blacklisted_emails:
            return True
        if self._whitelisted(message):
            return False
        return message.from_address in self.context.junk_history_emails

    def _whitelisted(self, message: Message) -> bool:
        return (
            message.from_address in self.context.whitelisted_emails
            or message.from_domain in self.context.whitelisted_domains
        )

    # --- retention policy ---

    def is_held(self, message: Message) -> bool:
        """Unknown, authenticated senders stay in the inbox for ``hold_days`` under HOLD.

        A message dated in the future is never held.
        """
        if self.context.retention_policy is not RetentionPolicy.HOLD:
            return False
        if message.has_spoof_indicator or not message.dkim_passed:
            return False
        if self.destination_for(message):
            return False
        if message.date is None:
            return False
        age = self.context.now - message.date
        return timedelta(0) <= age <= timedelta(days=self.context.hold_days)

    def list_folder_for(self, message: Message) -> str | None:
        """Folder for valid list mail, or None when the message is not list mail."""
        if message.has_spoof_indicator:
            logger.debug("Message from %s carries a spoofing indicator", message.from_address)
            return None

        folder = self.destination_for(message)
        if folder:
            return folder

        policy = self.context.retention_policy
        if policy is RetentionPolicy.PARANOID or policy is RetentionPolicy.HOLD:
            return None
        if not message.dkim_passed:
            return None
        if policy is RetentionPolicy.QUARANTINE:
            return self.context.quarantine_folder
        return self.context.list_folder
