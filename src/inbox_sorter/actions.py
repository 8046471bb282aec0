"""Execution of decisions against the mailbox."""

from __future__ import annotations

import logging

from .constants import DEFAULT_JUNK_FOLDER, DELETED_FLAG
from .imap_client import Mailbox
from .models import Action, Decision, Message

logger = logging.getLogger(__name__)


class ActionRunner:
    """Apply decisions and remember which folders received messages.

    Moves are copy + flag-deleted; the expunge is a separate call so that
    deletions can be batched at the end of a run.  In pretend mode nothing is
    changed and target folders are only collected in ``pretend_folders``.
    """

    def __init__(self, mailbox: Mailbox, junk_folder: str = DEFAULT_JUNK_FOLDER, pretend: bool = False) -> None:
        self.mailbox = mailbox
        self.junk_folder = junk_folder
        self.pretend = pretend
        self.changed_folders: set[str] = set()
        self.pretend_folders: set[str] = set()
        self._known_folders: set[str] | None = None

    def execute(self, decision: Decision, message: Message) -> None:
        try:
            action = Action(decision.action)
        except ValueError:
            raise ValueError(f"Unknown action: {decision.action}") from None

        if action is Action.KEEP:
            logger.debug(
                "Keeping message %s from '%s' in inbox", message.message_id, message.from_address
            )
        elif action is Action.MOVE:
            if not decision.folder:
                raise ValueError("Move decision without a target folder")
            self._move(message, decision.folder)
        else:
            self._move(message, self.junk_folder, label="junk folder")

    def expunge(self) -> None:
        if self.pretend:
            return
        self.mailbox.expunge()

    def _move(self, message: Message, folder: str, label: str = "folder") -> None:
        if self.pretend:
            logger.info(
                "PRETEND: Would move message %s from '%s' to %s '%s'",
                message.message_id, message.from_address, label, folder,
            )
            self.pretend_folders.add(folder)
            return

        logger.info(
            "Moving message %s from '%s' to %s '%s'",
            message.message_id, message.from_address, label, folder,
        )
        self._ensure_folder(folder)
        self.mailbox.copy(message.message_id, folder)
        self.mailbox.store(message.message_id, DELETED_FLAG)
        self.changed_folders.add(folder)

    def _ensure_folder(self, folder: str) -> None:
        if self._known_folders is None:
            self._known_folders = {f.name for f in self.mailbox.list_folders()}
        if folder not in self._known_folders:
            self.mailbox.create(folder)
            self._known_folders.add(folder)
