"""Discord gateway adapter for the message archiver."""

from discord_bot.bot_handler import ArchiverBotHandler

__all__ = ["ArchiverBotHandler"]
