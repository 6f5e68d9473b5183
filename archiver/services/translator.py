"""
Conversions from decoded platform events to archive records.

Everything here is pure: no I/O, no clock reads beyond what the event
already carries, and the session id is always passed in.
"""

from datetime import datetime
from uuid import UUID

from archiver.exceptions import MissingAuthorError, MissingTimestampError
from archiver.models.events import MessageCreateEvent, MessageEditEvent
from archiver.models.records import (
    FullRecord,
    IncompleteRecord,
    MessageIteration,
    MessageKind,
)


def full_from_creation(event: MessageCreateEvent, session_id: UUID) -> FullRecord:
    """
    Build a ``Full`` record for a message we saw being created.

    The founding iteration is stamped with the event's receipt time and the
    record starts out not marked as edited.
    """
    iteration = MessageIteration(
        timestamp=event.received_at,
        may_contain_gap=False,
        session_id=session_id,
        content=event.content,
        attachments=tuple(event.attachments),
        embeds=tuple(event.embeds),
        components=tuple(event.components),
        sticker_items=tuple(event.sticker_items),
    )
    return FullRecord(
        id=event.id,
        channel_id=event.channel_id,
        guild_id=event.guild_id,
        author_id=event.author_id,
        timestamp=event.timestamp,
        kind=MessageKind.from_code(event.kind),
        message_reference=event.message_reference,
        webhook_id=event.webhook_id,
        application_id=event.application_id,
        interaction=event.interaction,
        iterations=(iteration,),
        marked_as_edited=False,
    )


def incomplete_from_edit(
    event: MessageEditEvent, observed_at: datetime, session_id: UUID
) -> IncompleteRecord:
    """
    Build an ``Incomplete`` record from the first edit we hear of.

    The edit itself proves the message was edited, so the record is always
    marked as edited.

    Raises:
        MissingAuthorError: the update carries no author
        MissingTimestampError: the update carries no creation timestamp
    """
    if event.author_id is None:
        raise MissingAuthorError(event.id)
    if event.timestamp is None:
        raise MissingTimestampError(event.id)

    return IncompleteRecord(
        id=event.id,
        channel_id=event.channel_id,
        guild_id=event.guild_id,
        author_id=event.author_id,
        timestamp=event.timestamp,
        iterations=(iteration_from_edit(event, observed_at, session_id),),
        marked_as_edited=True,
    )


def iteration_from_edit(
    event: MessageEditEvent, observed_at: datetime, session_id: UUID
) -> MessageIteration:
    """
    Build one log entry from an edit.

    Facets the update leaves out are stored empty. An empty facet in an
    iteration therefore means "not reported by this update" as much as
    "actually empty".
    """
    return MessageIteration(
        timestamp=observed_at,
        may_contain_gap=False,
        session_id=session_id,
        content=event.content or "",
        attachments=tuple(event.attachments or ()),
        embeds=tuple(event.embeds or ()),
        components=tuple(event.components or ()),
        sticker_items=tuple(event.sticker_items or ()),
    )


__all__ = ["full_from_creation", "incomplete_from_edit", "iteration_from_edit"]
