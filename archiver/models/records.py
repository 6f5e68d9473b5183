"""
Archived message records.

A message's observed lifecycle is stored as exactly one of five record
shapes, selected by ``archive_type``:

- ``Full``: created while we were listening for new messages
- ``FullDeleted``: a ``Full`` record whose message was later deleted
- ``Incomplete``: first heard of through an edit, so the original body is unknown
- ``IncompleteDeleted``: an ``Incomplete`` record whose message was later deleted
- ``UnknownDeleted``: a deletion for a message we never saw at all

Records are frozen. Every change produces a new value, and a record's shape
only ever moves forward (``Full`` -> ``FullDeleted``,
``Incomplete`` -> ``IncompleteDeleted``).
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union
from uuid import UUID

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    TypeAdapter,
    ValidationError,
)

from archiver.exceptions import RecordEncodingError

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_epoch_millis(value: datetime) -> int:
    """Convert a datetime to integer milliseconds since the Unix epoch."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - EPOCH) // timedelta(milliseconds=1)


def from_epoch_millis(value: Any) -> Any:
    """Accept epoch milliseconds as stored; anything else is left to pydantic."""
    if isinstance(value, int) and not isinstance(value, bool):
        return EPOCH + timedelta(milliseconds=value)
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# In memory an aware UTC datetime, in the document an epoch-millisecond int
Timestamp = Annotated[
    datetime,
    BeforeValidator(from_epoch_millis),
    PlainSerializer(to_epoch_millis, return_type=int, when_used="json"),
]

# Platform ids are snowflakes, carried as decimal strings
Snowflake = str

Payload = Dict[str, Any]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageKind(str, Enum):
    """Message subtype as reported by the platform, persisted by name."""

    REGULAR = "Regular"
    GROUP_RECIPIENT_ADDITION = "GroupRecipientAddition"
    GROUP_RECIPIENT_REMOVAL = "GroupRecipientRemoval"
    GROUP_CALL_CREATION = "GroupCallCreation"
    GROUP_NAME_UPDATE = "GroupNameUpdate"
    GROUP_ICON_UPDATE = "GroupIconUpdate"
    PINS_ADD = "PinsAdd"
    MEMBER_JOIN = "MemberJoin"
    NITRO_BOOST = "NitroBoost"
    NITRO_TIER_1 = "NitroTier1"
    NITRO_TIER_2 = "NitroTier2"
    NITRO_TIER_3 = "NitroTier3"
    CHANNEL_FOLLOW_ADD = "ChannelFollowAdd"
    GUILD_DISCOVERY_DISQUALIFIED = "GuildDiscoveryDisqualified"
    GUILD_DISCOVERY_REQUALIFIED = "GuildDiscoveryRequalified"
    GUILD_DISCOVERY_GRACE_PERIOD_INITIAL_WARNING = "GuildDiscoveryGracePeriodInitialWarning"
    GUILD_DISCOVERY_GRACE_PERIOD_FINAL_WARNING = "GuildDiscoveryGracePeriodFinalWarning"
    THREAD_CREATED = "ThreadCreated"
    INLINE_REPLY = "InlineReply"
    CHAT_INPUT_COMMAND = "ChatInputCommand"
    THREAD_STARTER_MESSAGE = "ThreadStarterMessage"
    GUILD_INVITE_REMINDER = "GuildInviteReminder"
    CONTEXT_MENU_COMMAND = "ContextMenuCommand"
    AUTO_MODERATION_ACTION = "AutoModerationAction"
    UNKNOWN = "Unknown"

    @classmethod
    def from_code(cls, code: Optional[int]) -> "MessageKind":
        """Map the platform's integer message type, unlisted codes become UNKNOWN."""
        if code is None:
            return cls.UNKNOWN
        return _KIND_BY_CODE.get(code, cls.UNKNOWN)


# Code 13 was never assigned
_KIND_BY_CODE = {
    0: MessageKind.REGULAR,
    1: MessageKind.GROUP_RECIPIENT_ADDITION,
    2: MessageKind.GROUP_RECIPIENT_REMOVAL,
    3: MessageKind.GROUP_CALL_CREATION,
    4: MessageKind.GROUP_NAME_UPDATE,
    5: MessageKind.GROUP_ICON_UPDATE,
    6: MessageKind.PINS_ADD,
    7: MessageKind.MEMBER_JOIN,
    8: MessageKind.NITRO_BOOST,
    9: MessageKind.NITRO_TIER_1,
    10: MessageKind.NITRO_TIER_2,
    11: MessageKind.NITRO_TIER_3,
    12: MessageKind.CHANNEL_FOLLOW_ADD,
    14: MessageKind.GUILD_DISCOVERY_DISQUALIFIED,
    15: MessageKind.GUILD_DISCOVERY_REQUALIFIED,
    16: MessageKind.GUILD_DISCOVERY_GRACE_PERIOD_INITIAL_WARNING,
    17: MessageKind.GUILD_DISCOVERY_GRACE_PERIOD_FINAL_WARNING,
    18: MessageKind.THREAD_CREATED,
    19: MessageKind.INLINE_REPLY,
    20: MessageKind.CHAT_INPUT_COMMAND,
    21: MessageKind.THREAD_STARTER_MESSAGE,
    22: MessageKind.GUILD_INVITE_REMINDER,
    23: MessageKind.CONTEXT_MENU_COMMAND,
    24: MessageKind.AUTO_MODERATION_ACTION,
}


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class MessageReference(_Frozen):
    """The message a reply, crosspost or pin notice points at."""

    message_id: Optional[Snowflake] = None
    channel_id: Optional[Snowflake] = None
    guild_id: Optional[Snowflake] = None


class MessageInteraction(_Frozen):
    """The slash command or context-menu invocation that produced a message."""

    id: Snowflake
    type: int
    name: str
    user_id: Snowflake


class MessageIteration(_Frozen):
    """
    One captured revision of a message's mutable content.

    Attributes:
        timestamp: When the platform says this revision was made, or when we
            received it if the platform did not say
        may_contain_gap: True when revisions before this one may have been
            missed (e.g. backfilled after a reconnect)
        session_id: The archiver run that captured this revision
    """

    timestamp: Timestamp
    may_contain_gap: bool = False
    session_id: UUID

    content: str = ""
    attachments: Tuple[Payload, ...] = ()
    embeds: Tuple[Payload, ...] = ()
    components: Tuple[Payload, ...] = ()
    sticker_items: Tuple[Payload, ...] = ()


class _MessageFields(_Frozen):
    """Fields shared by every record that carries an iteration log."""

    # Assumed to be static
    id: Snowflake
    channel_id: Snowflake
    guild_id: Optional[Snowflake] = None
    author_id: Snowflake
    timestamp: Timestamp

    # Tracked when editing. The original body and later modifications,
    # which may or may not be the full history
    iterations: Tuple[MessageIteration, ...] = Field(min_length=1)
    marked_as_edited: bool = False


class _FullFields(_MessageFields):
    """Static fields only a creation event reports."""

    kind: MessageKind = Field(default=MessageKind.REGULAR, alias="type")
    message_reference: Optional[MessageReference] = None
    webhook_id: Optional[Snowflake] = None
    application_id: Optional[Snowflake] = None
    interaction: Optional[MessageInteraction] = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class FullRecord(_FullFields):
    """A message we saw being created."""

    archive_type: Literal["Full"] = "Full"


class FullDeletedRecord(_FullFields):
    archive_type: Literal["FullDeleted"] = "FullDeleted"
    deleted_timestamp: Optional[Timestamp] = None


class IncompleteRecord(_MessageFields):
    """We first heard of this message when it was edited."""

    archive_type: Literal["Incomplete"] = "Incomplete"


class IncompleteDeletedRecord(_MessageFields):
    archive_type: Literal["IncompleteDeleted"] = "IncompleteDeleted"
    deleted_timestamp: Optional[Timestamp] = None


class UnknownDeletedRecord(_Frozen):
    """We have very little data on this message and it has been deleted."""

    archive_type: Literal["UnknownDeleted"] = "UnknownDeleted"

    id: Snowflake
    channel_id: Snowflake
    guild_id: Optional[Snowflake] = None
    deleted_timestamp: Optional[Timestamp] = None


ArchivedMessage = Annotated[
    Union[
        FullRecord,
        FullDeletedRecord,
        IncompleteRecord,
        IncompleteDeletedRecord,
        UnknownDeletedRecord,
    ],
    Field(discriminator="archive_type"),
]

LiveRecord = Union[FullRecord, IncompleteRecord]
DeletedRecord = Union[FullDeletedRecord, IncompleteDeletedRecord, UnknownDeletedRecord]

_record_adapter: TypeAdapter = TypeAdapter(ArchivedMessage)


def is_deleted(record: ArchivedMessage) -> bool:
    """True for the three terminal, deleted shapes."""
    return isinstance(
        record, (FullDeletedRecord, IncompleteDeletedRecord, UnknownDeletedRecord)
    )


def promote_to_deleted(
    record: LiveRecord, deleted_timestamp: Optional[datetime]
) -> Union[FullDeletedRecord, IncompleteDeletedRecord]:
    """
    Build the deleted counterpart of a live record.

    All fields and iterations are carried over unchanged. The argument is
    left untouched; callers must drop their reference to it and keep only
    the returned record.

    Raises:
        TypeError: if the record is not ``Full`` or ``Incomplete``
    """
    if isinstance(record, FullRecord):
        return FullDeletedRecord(
            **_carried_fields(record), deleted_timestamp=deleted_timestamp
        )
    if isinstance(record, IncompleteRecord):
        return IncompleteDeletedRecord(
            **_carried_fields(record), deleted_timestamp=deleted_timestamp
        )
    raise TypeError(f"Cannot promote {type(record).__name__} to a deleted record")


def _carried_fields(record: LiveRecord) -> Dict[str, Any]:
    return {
        name: getattr(record, name)
        for name in type(record).model_fields
        if name != "archive_type"
    }


def append_iteration(
    record: LiveRecord, iteration: MessageIteration, marked_as_edited: bool
) -> LiveRecord:
    """Return a copy of ``record`` with ``iteration`` added at the end of its log."""
    if not isinstance(record, (FullRecord, IncompleteRecord)):
        raise TypeError(f"Record {record.id} is {record.archive_type}, it takes no new iterations")
    return record.model_copy(
        update={
            "iterations": record.iterations + (iteration,),
            "marked_as_edited": marked_as_edited,
        }
    )


def record_has_gap(record: ArchivedMessage) -> bool:
    """
    Whether the recorded history may be missing revisions.

    History is only known to be continuous when every iteration after the
    first was captured by the same session as the one before it and none
    is flagged ``may_contain_gap``. ``Incomplete`` records always have a
    gap in front of their first iteration; this only looks between
    iterations.
    """
    iterations: List[MessageIteration] = list(getattr(record, "iterations", ()))
    for previous, current in zip(iterations, iterations[1:]):
        if current.may_contain_gap or current.session_id != previous.session_id:
            return True
    return False


def encode_record(record: ArchivedMessage) -> Payload:
    """Encode a record as the stored document."""
    try:
        return record.model_dump(mode="json", by_alias=True)
    except Exception as e:
        raise RecordEncodingError(
            f"Failed to encode record: {e}", getattr(record, "id", None)
        ) from e


def decode_record(document: Payload) -> ArchivedMessage:
    """Decode a stored document back into its record shape."""
    try:
        return _record_adapter.validate_python(document)
    except ValidationError as e:
        raise RecordEncodingError(
            f"Failed to decode stored document: {e}", document.get("id")
        ) from e


__all__ = [
    "ArchivedMessage",
    "DeletedRecord",
    "FullDeletedRecord",
    "FullRecord",
    "IncompleteDeletedRecord",
    "IncompleteRecord",
    "LiveRecord",
    "MessageInteraction",
    "MessageIteration",
    "MessageKind",
    "MessageReference",
    "Snowflake",
    "Timestamp",
    "UnknownDeletedRecord",
    "append_iteration",
    "decode_record",
    "encode_record",
    "from_epoch_millis",
    "is_deleted",
    "promote_to_deleted",
    "record_has_gap",
    "to_epoch_millis",
    "utcnow",
]
