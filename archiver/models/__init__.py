"""Record, event and database models."""

from archiver.models.archived_message import ArchivedMessageDocument
from archiver.models.events import (
    ArchiveEvent,
    MessageBulkDeleteEvent,
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
    MessageIteration,
    MessageKind,
    UnknownDeletedRecord,
)


__all__ = [
    "ArchivedMessageDocument",
    "ArchiveEvent",
    "MessageBulkDeleteEvent",
    "MessageCreateEvent",
    "MessageDeleteEvent",
    "MessageEditEvent",
    "MessageEvent",
    "ArchivedMessage",
    "FullDeletedRecord",
    "FullRecord",
    "IncompleteDeletedRecord",
    "IncompleteRecord",
    "MessageIteration",
    "MessageKind",
    "UnknownDeletedRecord",
]
