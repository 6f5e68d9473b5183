"""Discord gateway handler feeding message lifecycle events to the archiver."""

from typing import Any, Dict, List, Optional

import discord

from archiver.exceptions import GatewayError
from archiver.logging_config import logger
from archiver.models.events import (
    MessageBulkDeleteEvent,
    MessageCreateEvent,
    MessageDeleteEvent,
    MessageEditEvent,
)
from archiver.models.records import MessageInteraction, MessageReference
from archiver.services.event_dispatcher import EventDispatcher


def _id(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _to_dicts(items: Any) -> List[Dict[str, Any]]:
    return [item.to_dict() for item in items or ()]


def _invocation_of(message: discord.Message) -> Any:
    metadata = getattr(message, "interaction_metadata", None)
    if metadata is not None:
        return metadata
    # discord.py 2.4 deprecated Message.interaction; reading it warns
    if hasattr(type(message), "interaction_metadata"):
        return None
    return getattr(message, "interaction", None)


def create_event_from_message(message: discord.Message) -> MessageCreateEvent:
    """
    Decode a freshly received message into a creation event.

    Args:
        message: Message object handed to ``on_message``
    """
    reference = None
    if message.reference is not None:
        reference = MessageReference(
            message_id=_id(message.reference.message_id),
            channel_id=_id(message.reference.channel_id),
            guild_id=_id(message.reference.guild_id),
        )

    interaction = None
    invocation = _invocation_of(message)
    if invocation is not None:
        interaction = MessageInteraction(
            id=str(invocation.id),
            type=int(getattr(invocation.type, "value", invocation.type)),
            name=getattr(invocation, "name", None) or "",
            user_id=str(invocation.user.id),
        )

    stickers = [
        {
            "id": str(sticker.id),
            "name": sticker.name,
            "format_type": getattr(sticker.format, "value", sticker.format),
        }
        for sticker in message.stickers or ()
    ]

    return MessageCreateEvent(
        id=str(message.id),
        channel_id=str(message.channel.id),
        guild_id=_id(message.guild.id) if message.guild else None,
        author_id=str(message.author.id),
        timestamp=message.created_at,
        kind=int(getattr(message.type, "value", message.type)),
        message_reference=reference,
        webhook_id=_id(message.webhook_id),
        application_id=_id(getattr(message, "application_id", None)),
        interaction=interaction,
        content=message.content or "",
        attachments=_to_dicts(message.attachments),
        embeds=_to_dicts(message.embeds),
        components=_to_dicts(message.components),
        sticker_items=stickers,
    )


def edit_event_from_payload(payload: discord.RawMessageUpdateEvent) -> MessageEditEvent:
    """Decode a raw MESSAGE_UPDATE, which arrives whether or not the message is cached."""
    data = dict(payload.data)
    data.setdefault("id", payload.message_id)
    data.setdefault("channel_id", payload.channel_id)
    if payload.guild_id is not None:
        data.setdefault("guild_id", payload.guild_id)
    return MessageEditEvent.from_gateway_payload(data)


def delete_event_from_payload(payload: discord.RawMessageDeleteEvent) -> MessageDeleteEvent:
    return MessageDeleteEvent(
        id=str(payload.message_id),
        channel_id=str(payload.channel_id),
        guild_id=_id(payload.guild_id),
    )


def bulk_delete_event_from_payload(
    payload: discord.RawBulkMessageDeleteEvent,
) -> MessageBulkDeleteEvent:
    return MessageBulkDeleteEvent(
        ids=[str(message_id) for message_id in sorted(payload.message_ids)],
        channel_id=str(payload.channel_id),
        guild_id=_id(payload.guild_id),
    )


class ArchiverBotHandler:
    """
    Handles the Discord gateway connection for the archiver.

    Responsible for:
    - Client initialization
    - Decoding message create / update / delete events
    - Handing decoded events to the dispatcher

    Connecting, reconnecting and resuming are left to discord.py.
    """

    def __init__(self, dispatcher: EventDispatcher, token: str):
        """Initialize the gateway handler."""
        self.client: Optional[discord.Client] = None
        self.dispatcher = dispatcher
        self.token = token

    def initialize_bot(self) -> None:
        """
        Create the Discord client and register event handlers.

        Raises:
            GatewayError: If the bot token is not configured
        """
        if not self.token:
            raise GatewayError(
                "Discord token is not configured. Please set the "
                "DISCORD_TOKEN environment variable."
            )

        logger.info("Initializing Discord client...")

        intents = discord.Intents.default()
        intents.message_content = True
        self.client = discord.Client(intents=intents)

        self._setup_handlers()

        logger.info("Discord client initialized successfully")

    def _setup_handlers(self) -> None:
        """Register gateway event handlers on the client."""
        if not self.client:
            raise RuntimeError("Client not initialized")

        for handler in (
            self.on_ready,
            self.on_resumed,
            self.on_message,
            self.on_raw_message_edit,
            self.on_raw_message_delete,
            self.on_raw_bulk_message_delete,
        ):
            self.client.event(handler)

        logger.debug("Discord event handlers setup completed")

    async def start(self) -> None:
        """Connect to the gateway and run until the client is closed."""
        if not self.client:
            raise RuntimeError("Client not initialized")
        logger.info("Starting client")
        await self.client.start(self.token)

    async def close(self) -> None:
        if self.client and not self.client.is_closed():
            await self.client.close()
            logger.info("Discord client closed")

    async def on_ready(self) -> None:
        logger.info(f"Connected to Discord as {self.client.user}")

    async def on_resumed(self) -> None:
        logger.info("Discord session resumed")

    async def on_message(self, message: discord.Message) -> None:
        """Archive a newly created message."""
        try:
            event = create_event_from_message(message)
        except Exception as e:
            logger.error(f"Failed to decode message {message.id}: {e}", exc_info=True)
            return
        self.dispatcher.submit(event)

    async def on_raw_message_edit(self, payload: discord.RawMessageUpdateEvent) -> None:
        """Archive a message update."""
        try:
            event = edit_event_from_payload(payload)
        except Exception as e:
            logger.error(
                f"Failed to decode update for message {payload.message_id}: {e}",
                exc_info=True,
            )
            return
        self.dispatcher.submit(event)

    async def on_raw_message_delete(self, payload: discord.RawMessageDeleteEvent) -> None:
        """Archive a message deletion."""
        logger.info(f"Message {payload.message_id} deleted")
        self.dispatcher.submit(delete_event_from_payload(payload))

    async def on_raw_bulk_message_delete(
        self, payload: discord.RawBulkMessageDeleteEvent
    ) -> None:
        """Hand a bulk deletion to the dispatcher, which decides whether to split it."""
        logger.info(
            f"{len(payload.message_ids)} messages bulk deleted "
            f"in channel {payload.channel_id}"
        )
        self.dispatcher.submit(bulk_delete_event_from_payload(payload))


__all__ = [
    "ArchiverBotHandler",
    "bulk_delete_event_from_payload",
    "create_event_from_message",
    "delete_event_from_payload",
    "edit_event_from_payload",
]
