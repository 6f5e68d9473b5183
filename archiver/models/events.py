"""Decoded message lifecycle events, as handed over by the gateway client."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from archiver.models.records import (
    MessageInteraction,
    MessageReference,
    Payload,
    Snowflake,
    utcnow,
)


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Wall-clock time at which we decoded the event
    received_at: datetime = Field(default_factory=utcnow)


class MessageCreateEvent(_Event):
    """A newly posted message, with everything the platform reports about it."""

    id: Snowflake
    channel_id: Snowflake
    guild_id: Optional[Snowflake] = None
    author_id: Snowflake
    timestamp: datetime
    kind: int = 0
    message_reference: Optional[MessageReference] = None
    webhook_id: Optional[Snowflake] = None
    application_id: Optional[Snowflake] = None
    interaction: Optional[MessageInteraction] = None

    content: str = ""
    attachments: List[Payload] = Field(default_factory=list)
    embeds: List[Payload] = Field(default_factory=list)
    components: List[Payload] = Field(default_factory=list)
    sticker_items: List[Payload] = Field(default_factory=list)

    @property
    def message_id(self) -> Snowflake:
        return self.id


class MessageEditEvent(_Event):
    """
    A partial message update.

    Only ``id`` and ``channel_id`` are guaranteed. ``None`` on a content
    facet means the platform did not report it in this update, not that it
    is empty.
    """

    id: Snowflake
    channel_id: Snowflake
    guild_id: Optional[Snowflake] = None
    author_id: Optional[Snowflake] = None
    timestamp: Optional[datetime] = None
    edited_timestamp: Optional[datetime] = None

    content: Optional[str] = None
    attachments: Optional[List[Payload]] = None
    embeds: Optional[List[Payload]] = None
    components: Optional[List[Payload]] = None
    sticker_items: Optional[List[Payload]] = None

    @property
    def message_id(self) -> Snowflake:
        return self.id

    @property
    def is_edited(self) -> bool:
        """Whether the platform flags this update as a content edit."""
        return self.edited_timestamp is not None

    @classmethod
    def from_gateway_payload(
        cls, data: Dict[str, Any], received_at: Optional[datetime] = None
    ) -> "MessageEditEvent":
        """
        Build an edit event from a raw MESSAGE_UPDATE payload.

        Args:
            data: The gateway payload's ``d`` object
            received_at: Receipt time, defaults to now
        """
        author = data.get("author") or {}
        fields: Dict[str, Any] = {
            "id": str(data["id"]),
            "channel_id": str(data["channel_id"]),
            "guild_id": _optional_id(data.get("guild_id")),
            "author_id": _optional_id(author.get("id")),
            "timestamp": data.get("timestamp"),
            "edited_timestamp": data.get("edited_timestamp"),
        }
        for facet in ("content", "attachments", "embeds", "components", "sticker_items"):
            if facet in data:
                fields[facet] = data[facet]
        if received_at is not None:
            fields["received_at"] = received_at
        return cls.model_validate(fields)


class MessageDeleteEvent(_Event):
    id: Snowflake
    channel_id: Snowflake
    guild_id: Optional[Snowflake] = None

    @property
    def message_id(self) -> Snowflake:
        return self.id


class MessageBulkDeleteEvent(_Event):
    """Several messages of one channel deleted at once."""

    ids: List[Snowflake]
    channel_id: Snowflake
    guild_id: Optional[Snowflake] = None

    def split(self) -> List[MessageDeleteEvent]:
        """One single-message delete per id, sharing this event's receipt time."""
        return [
            MessageDeleteEvent(
                id=message_id,
                channel_id=self.channel_id,
                guild_id=self.guild_id,
                received_at=self.received_at,
            )
            for message_id in self.ids
        ]


def _optional_id(value: Any) -> Optional[str]:
    return None if value is None else str(value)


MessageEvent = Union[MessageCreateEvent, MessageEditEvent, MessageDeleteEvent]
ArchiveEvent = Union[MessageEvent, MessageBulkDeleteEvent]


__all__ = [
    "ArchiveEvent",
    "MessageBulkDeleteEvent",
    "MessageCreateEvent",
    "MessageDeleteEvent",
    "MessageEditEvent",
    "MessageEvent",
]
