"""
Folding an incoming lifecycle event into the stored record.

``merge`` looks only at the record currently stored (or its absence) and the
event, and decides what should be written next:

    existing      event    result
    ----------    ------   -------------------------------------------
    none          create   insert Full
    none          edit     upsert Incomplete (or TranslationError)
    none          delete   upsert UnknownDeleted
    Full/Incompl. edit     upsert with one more iteration
    Full/Incompl. delete   upsert FullDeleted / IncompleteDeleted
    any           create   skip (duplicate creation)
    *Deleted      edit     skip (anomaly)
    *Deleted      delete   skip (anomaly)

Bulk deletes never reach this module; the archival service decides whether
to split them.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from archiver.models.events import (
    MessageCreateEvent,
    MessageDeleteEvent,
    MessageEditEvent,
    MessageEvent,
)
from archiver.models.records import (
    ArchivedMessage,
    FullDeletedRecord,
    FullRecord,
    IncompleteDeletedRecord,
    IncompleteRecord,
    UnknownDeletedRecord,
    append_iteration,
    promote_to_deleted,
)
from archiver.services.translator import (
    full_from_creation,
    incomplete_from_edit,
    iteration_from_edit,
)


class MergeAction(str, Enum):
    INSERT = "insert"
    UPSERT = "upsert"
    SKIP = "skip"


@dataclass(frozen=True)
class MergeResult:
    """What to do with the store after folding in one event."""

    action: MergeAction
    record: Optional[ArchivedMessage] = None
    reason: Optional[str] = None

    @classmethod
    def insert(cls, record: ArchivedMessage) -> "MergeResult":
        return cls(MergeAction.INSERT, record)

    @classmethod
    def upsert(cls, record: ArchivedMessage) -> "MergeResult":
        return cls(MergeAction.UPSERT, record)

    @classmethod
    def skip(cls, reason: str) -> "MergeResult":
        return cls(MergeAction.SKIP, None, reason)

    @property
    def is_skip(self) -> bool:
        return self.action is MergeAction.SKIP


def edit_observed_at(event: MessageEditEvent) -> datetime:
    """The platform's edit time when it reports one, otherwise our receipt time."""
    return event.edited_timestamp or event.received_at


def merge(
    existing: Optional[ArchivedMessage],
    event: MessageEvent,
    session_id: UUID,
) -> MergeResult:
    """
    Compute the next state of a message's record.

    Args:
        existing: The stored record for the event's message id, if any
        event: A create, edit or delete event
        session_id: Id of the running archiver session

    Returns:
        MergeResult describing the write to perform, or a skip with reason

    Raises:
        TranslationError: an edit for an unseen message lacks author or timestamp
        TypeError: the event or record is of a type this engine does not handle
    """
    if isinstance(event, MessageCreateEvent):
        return _merge_create(existing, event, session_id)
    if isinstance(event, MessageEditEvent):
        return _merge_edit(existing, event, session_id)
    if isinstance(event, MessageDeleteEvent):
        return _merge_delete(existing, event)
    raise TypeError(f"Unsupported event type for merge: {type(event).__name__}")


def _merge_create(
    existing: Optional[ArchivedMessage],
    event: MessageCreateEvent,
    session_id: UUID,
) -> MergeResult:
    if existing is None:
        return MergeResult.insert(full_from_creation(event, session_id))
    return MergeResult.skip(
        f"Received creation for message {event.id} which is already "
        f"archived as {existing.archive_type}"
    )


def _merge_edit(
    existing: Optional[ArchivedMessage],
    event: MessageEditEvent,
    session_id: UUID,
) -> MergeResult:
    observed_at = edit_observed_at(event)

    if existing is None:
        return MergeResult.upsert(incomplete_from_edit(event, observed_at, session_id))

    if isinstance(existing, (FullRecord, IncompleteRecord)):
        iteration = iteration_from_edit(event, observed_at, session_id)
        return MergeResult.upsert(
            append_iteration(
                existing,
                iteration,
                marked_as_edited=existing.marked_as_edited or event.is_edited,
            )
        )

    if isinstance(existing, (FullDeletedRecord, IncompleteDeletedRecord, UnknownDeletedRecord)):
        return MergeResult.skip(
            f"Received update for message {event.id} which is already "
            f"archived as {existing.archive_type}"
        )

    raise TypeError(f"Unhandled record type: {type(existing).__name__}")


def _merge_delete(
    existing: Optional[ArchivedMessage],
    event: MessageDeleteEvent,
) -> MergeResult:
    deleted_at = event.received_at

    if existing is None:
        return MergeResult.upsert(
            UnknownDeletedRecord(
                id=event.id,
                channel_id=event.channel_id,
                guild_id=event.guild_id,
                deleted_timestamp=deleted_at,
            )
        )

    if isinstance(existing, (FullRecord, IncompleteRecord)):
        return MergeResult.upsert(promote_to_deleted(existing, deleted_at))

    if isinstance(existing, (FullDeletedRecord, IncompleteDeletedRecord, UnknownDeletedRecord)):
        return MergeResult.skip(
            f"Received delete event for message {event.id} which is already "
            f"archived as {existing.archive_type}"
        )

    raise TypeError(f"Unhandled record type: {type(existing).__name__}")


__all__ = ["MergeAction", "MergeResult", "edit_observed_at", "merge"]
