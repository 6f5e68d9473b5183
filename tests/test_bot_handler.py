"""Tests for decoding Discord gateway events."""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from archiver.exceptions import GatewayError
from archiver.models.events import (
    MessageBulkDeleteEvent,
    MessageCreateEvent,
    MessageDeleteEvent,
    MessageEditEvent,
)
from archiver.services.event_dispatcher import EventDispatcher
from discord_bot.bot_handler import (
    ArchiverBotHandler,
    bulk_delete_event_from_payload,
    create_event_from_message,
    delete_event_from_payload,
    edit_event_from_payload,
)

CREATED = datetime(2023, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class _Dictable(SimpleNamespace):
    def to_dict(self):
        return dict(vars(self))


def fake_message(**overrides):
    fields = dict(
        id=1077,
        channel=SimpleNamespace(id=100),
        guild=SimpleNamespace(id=10),
        author=SimpleNamespace(id=42),
        created_at=CREATED,
        type=SimpleNamespace(value=19),
        reference=SimpleNamespace(message_id=1000, channel_id=100, guild_id=10),
        webhook_id=None,
        application_id=None,
        interaction=None,
        content="hi",
        attachments=[_Dictable(id="9", filename="cat.png")],
        embeds=[],
        components=[],
        stickers=[SimpleNamespace(id=3, name="wave", format=SimpleNamespace(value=1))],
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestCreateEvent:
    """Test decoding of newly created messages."""

    def test_decodes_message(self):
        """Test every reported field is carried onto the event."""
        event = create_event_from_message(fake_message())

        assert isinstance(event, MessageCreateEvent)
        assert event.id == "1077"
        assert event.channel_id == "100"
        assert event.guild_id == "10"
        assert event.author_id == "42"
        assert event.timestamp == CREATED
        assert event.kind == 19
        assert event.message_reference.message_id == "1000"
        assert event.content == "hi"
        assert event.attachments == [{"id": "9", "filename": "cat.png"}]
        assert event.sticker_items == [{"id": "3", "name": "wave", "format_type": 1}]

    def test_direct_message_has_no_guild(self):
        """Test direct messages decode without a guild id."""
        event = create_event_from_message(fake_message(guild=None, reference=None))
        assert event.guild_id is None
        assert event.message_reference is None

    def test_legacy_interaction(self):
        """Test the interaction descriptor is read from older clients."""
        invocation = SimpleNamespace(
            id=555, type=SimpleNamespace(value=2), name="ping", user=SimpleNamespace(id=42)
        )
        event = create_event_from_message(fake_message(interaction=invocation, application_id=66))

        assert event.interaction.id == "555"
        assert event.interaction.type == 2
        assert event.interaction.name == "ping"
        assert event.interaction.user_id == "42"
        assert event.application_id == "66"

    def test_interaction_metadata_preferred(self):
        """Test interaction metadata is used when the client reports it."""
        metadata = SimpleNamespace(
            id=556, type=SimpleNamespace(value=2), user=SimpleNamespace(id=43)
        )
        event = create_event_from_message(fake_message(interaction_metadata=metadata))

        assert event.interaction.id == "556"
        assert event.interaction.type == 2
        assert event.interaction.name == ""
        assert event.interaction.user_id == "43"

    def test_deprecated_interaction_not_read(self):
        """Test the deprecated attribute is untouched on current clients."""

        class CurrentMessage(SimpleNamespace):
            interaction_metadata = None

            @property
            def interaction(self):
                raise AssertionError("deprecated attribute read")

        fields = vars(fake_message())
        del fields["interaction"]
        event = create_event_from_message(CurrentMessage(**fields))

        assert event.interaction is None


class TestRawPayloadEvents:
    """Test decoding of raw update and delete payloads."""

    def test_edit_from_payload(self):
        """Test a full update payload becomes an edit event."""
        payload = SimpleNamespace(
            message_id=1077,
            channel_id=100,
            guild_id=10,
            data={
                "id": "1077",
                "channel_id": "100",
                "author": {"id": "42", "username": "someone"},
                "timestamp": "2023-03-01T12:00:00+00:00",
                "edited_timestamp": "2023-03-01T12:05:00+00:00",
                "content": "hi!",
                "embeds": [],
            },
        )

        event = edit_event_from_payload(payload)

        assert isinstance(event, MessageEditEvent)
        assert event.guild_id == "10"
        assert event.author_id == "42"
        assert event.timestamp == CREATED
        assert event.is_edited
        assert event.content == "hi!"
        assert event.embeds == []
        assert event.attachments is None

    def test_sparse_edit_payload(self):
        """Test unreported fields stay unset on the edit event."""
        payload = SimpleNamespace(
            message_id=1077,
            channel_id=100,
            guild_id=None,
            data={"id": "1077", "channel_id": "100", "embeds": [{"title": "x"}]},
        )

        event = edit_event_from_payload(payload)

        assert event.author_id is None
        assert event.timestamp is None
        assert event.content is None
        assert not event.is_edited

    def test_delete_from_payload(self):
        """Test a delete payload becomes a delete event."""
        payload = SimpleNamespace(message_id=1077, channel_id=100, guild_id=None)
        event = delete_event_from_payload(payload)
        assert event == MessageDeleteEvent(
            id="1077", channel_id="100", guild_id=None, received_at=event.received_at
        )

    def test_bulk_delete_from_payload(self):
        """Test bulk delete ids are sorted and stringified."""
        payload = SimpleNamespace(message_ids={3, 1, 2}, channel_id=100, guild_id=10)
        event = bulk_delete_event_from_payload(payload)
        assert isinstance(event, MessageBulkDeleteEvent)
        assert event.ids == ["1", "2", "3"]
        assert event.guild_id == "10"


class TestArchiverBotHandler:
    """Test handler wiring without a gateway connection."""

    def test_missing_token(self):
        """Test initialization fails without a token."""
        handler = ArchiverBotHandler(dispatcher=MagicMock(spec=EventDispatcher), token="")
        with pytest.raises(GatewayError):
            handler.initialize_bot()

    def test_initialize_registers_events(self):
        """Test the client gets message content intent and our handlers."""
        handler = ArchiverBotHandler(dispatcher=MagicMock(spec=EventDispatcher), token="token")
        handler.initialize_bot()

        assert handler.client is not None
        assert handler.client.intents.message_content is True
        assert handler.client.on_message == handler.on_message
        assert handler.client.on_raw_message_edit == handler.on_raw_message_edit

    def test_events_are_submitted(self):
        """Test decoded events are handed to the dispatcher."""
        import asyncio

        dispatcher = MagicMock(spec=EventDispatcher)
        handler = ArchiverBotHandler(dispatcher=dispatcher, token="token")

        asyncio.run(handler.on_message(fake_message()))
        asyncio.run(
            handler.on_raw_message_delete(
                SimpleNamespace(message_id=1077, channel_id=100, guild_id=10)
            )
        )

        submitted = [call.args[0] for call in dispatcher.submit.call_args_list]
        assert isinstance(submitted[0], MessageCreateEvent)
        assert isinstance(submitted[1], MessageDeleteEvent)

    def test_undecodable_message_is_not_submitted(self):
        """Test a message that fails to decode is dropped."""
        import asyncio

        dispatcher = MagicMock(spec=EventDispatcher)
        handler = ArchiverBotHandler(dispatcher=dispatcher, token="token")

        asyncio.run(handler.on_message(fake_message(author=None)))

        dispatcher.submit.assert_not_called()
