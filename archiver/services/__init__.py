"""Services package."""

from archiver.services.archival_service import ArchivalService, ArchiveOutcome
from archiver.services.event_dispatcher import EventDispatcher
from archiver.services.merge_engine import MergeAction, MergeResult, merge
from archiver.services.message_store import MessageStore
from archiver.services.translator import (
    full_from_creation,
    incomplete_from_edit,
    iteration_from_edit,
)

__all__ = [
    "ArchivalService",
    "ArchiveOutcome",
    "EventDispatcher",
    "MergeAction",
    "MergeResult",
    "merge",
    "MessageStore",
    "full_from_creation",
    "incomplete_from_edit",
    "iteration_from_edit",
]
