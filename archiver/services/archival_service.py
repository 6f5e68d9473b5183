"""Archival service: look up, merge and persist each lifecycle event."""

import threading
from collections import Counter
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from archiver.exceptions import DatabaseError, RecordEncodingError, TranslationError
from archiver.logging_config import logger
from archiver.models.events import (
    ArchiveEvent,
    MessageBulkDeleteEvent,
    MessageCreateEvent,
    MessageDeleteEvent,
    MessageEditEvent,
    MessageEvent,
)
from archiver.services.merge_engine import MergeAction, merge
from archiver.services.message_store import MessageStore


class ArchiveOutcome(str, Enum):
    """How the handling of one event ended."""

    STORED = "stored"
    IGNORED = "ignored"
    ANOMALY = "anomaly"
    TRANSLATION_FAILED = "translation_failed"
    STORE_FAILED = "store_failed"
    UNHANDLED = "unhandled"


class ArchivalService:
    """
    Records the observed history of every message into the store.

    For each event:
    - Suppression check by guild and channel, before touching the store
    - Lookup of the current record by message id
    - Merge of the event into that record
    - Insert (first-seen creation) or upsert (everything else)

    No failure escapes ``handle_event``. Anything that goes wrong drops the
    event with a log line and the service keeps going; a dropped event
    shows up later as a gap in the message's history.
    """

    def __init__(
        self,
        store: MessageStore,
        session_id: UUID,
        ignored_guild_ids: Optional[Iterable[str]] = None,
        ignored_channel_ids: Optional[Iterable[str]] = None,
        decompose_bulk_delete: bool = False,
    ):
        """
        Initialize the archival service.

        Args:
            store: Document store for archived records
            session_id: Id of this archiver run, stamped on every iteration
            ignored_guild_ids: Guilds whose messages are never archived
            ignored_channel_ids: Channels whose messages are never archived
            decompose_bulk_delete: Handle bulk deletes as one delete per id
        """
        self.store = store
        self.session_id = session_id
        self.ignored_guild_ids = frozenset(str(i) for i in ignored_guild_ids or ())
        self.ignored_channel_ids = frozenset(str(i) for i in ignored_channel_ids or ())
        self.decompose_bulk_delete = decompose_bulk_delete
        self.outcomes: Counter = Counter()
        # Events are handled from several worker threads at once
        self._outcomes_lock = threading.Lock()

    def _count(self, outcome: ArchiveOutcome) -> ArchiveOutcome:
        with self._outcomes_lock:
            self.outcomes[outcome] += 1
        return outcome

    def is_ignored(self, event: ArchiveEvent) -> bool:
        """Check whether the event's guild or channel is suppressed."""
        if event.guild_id is not None and event.guild_id in self.ignored_guild_ids:
            return True
        return event.channel_id in self.ignored_channel_ids

    def expand(self, event: ArchiveEvent) -> List[MessageEvent]:
        """
        Turn an event into the single-message events to archive.

        Bulk deletes become one delete per id when decomposition is enabled.
        Otherwise, and for suppressed channels, they become nothing and the
        drop is counted here.
        """
        if isinstance(event, MessageBulkDeleteEvent):
            parts, _ = self._split_bulk_delete(event)
            return parts
        return [event]

    def _split_bulk_delete(
        self, event: MessageBulkDeleteEvent
    ) -> Tuple[List[MessageDeleteEvent], Optional[ArchiveOutcome]]:
        if self.is_ignored(event):
            logger.debug(
                f"Ignoring bulk delete of {len(event.ids)} messages "
                f"(guild={event.guild_id}, channel={event.channel_id})"
            )
            return [], self._count(ArchiveOutcome.IGNORED)
        if not self.decompose_bulk_delete:
            logger.warning(
                f"Unhandled bulk delete of {len(event.ids)} messages "
                f"in channel {event.channel_id}: {event.ids}"
            )
            return [], self._count(ArchiveOutcome.UNHANDLED)
        return event.split(), None

    def handle_event(self, event: ArchiveEvent) -> ArchiveOutcome:
        """
        Archive one event.

        Args:
            event: Decoded create, edit, delete or bulk delete event

        Returns:
            The outcome of handling the event
        """
        if isinstance(event, MessageBulkDeleteEvent):
            return self._handle_bulk_delete(event)

        return self._count(self._archive(event))

    def _handle_bulk_delete(self, event: MessageBulkDeleteEvent) -> ArchiveOutcome:
        parts, dropped = self._split_bulk_delete(event)
        if dropped is not None:
            return dropped

        results = [self.handle_event(part) for part in parts]
        if all(result is ArchiveOutcome.STORED for result in results):
            return ArchiveOutcome.STORED
        # Report the first part that did not store
        return next(result for result in results if result is not ArchiveOutcome.STORED)

    def _archive(self, event: MessageEvent) -> ArchiveOutcome:
        message_id = event.id
        event_name = _event_name(event)

        if self.is_ignored(event):
            logger.debug(
                f"Ignoring {event_name} for message {message_id} "
                f"(guild={event.guild_id}, channel={event.channel_id})"
            )
            return ArchiveOutcome.IGNORED

        try:
            existing = self.store.find_by_id(message_id)
        except (DatabaseError, RecordEncodingError) as e:
            logger.error(f"Couldn't fetch message {message_id} from the store: {e}")
            return ArchiveOutcome.STORE_FAILED

        try:
            result = merge(existing, event, self.session_id)
        except TranslationError as e:
            logger.error(
                f"Failed to create incomplete message from {event_name}: {e} "
                f"[{e.code}]"
            )
            return ArchiveOutcome.TRANSLATION_FAILED

        if result.is_skip:
            logger.warning(f"Dropping {event_name}: {result.reason}")
            return ArchiveOutcome.ANOMALY

        try:
            if result.action is MergeAction.INSERT:
                self.store.insert(result.record)
            else:
                self.store.upsert_by_id(message_id, result.record)
        except (DatabaseError, RecordEncodingError) as e:
            logger.error(f"Failed to store {event_name} for message {message_id}: {e}")
            return ArchiveOutcome.STORE_FAILED

        logger.info(
            f"Stored {event_name} for message {message_id} "
            f"as {result.record.archive_type}"
        )
        return ArchiveOutcome.STORED

    def get_stats(self) -> Dict[str, int]:
        """
        Get per-outcome counters.

        Returns:
            Dictionary keyed by outcome value, plus a total
        """
        with self._outcomes_lock:
            counts = dict(self.outcomes)
        stats = {outcome.value: counts.get(outcome, 0) for outcome in ArchiveOutcome}
        stats["total"] = sum(counts.values())
        return stats

    def reset_stats(self) -> None:
        """Reset outcome counters."""
        with self._outcomes_lock:
            self.outcomes.clear()
        logger.info("Archival statistics reset")


def _event_name(event: MessageEvent) -> str:
    if isinstance(event, MessageCreateEvent):
        return "creation"
    if isinstance(event, MessageEditEvent):
        return "update"
    if isinstance(event, MessageDeleteEvent):
        return "deletion"
    raise TypeError(f"Unsupported event type: {type(event).__name__}")


__all__ = ["ArchivalService", "ArchiveOutcome"]
