"""Main entry point for the message archiver."""

import argparse
import asyncio
import sys
from typing import List, Optional
from uuid import uuid4

from archiver.config import settings
from archiver.database import SessionLocal, init_db
from archiver.exceptions import ArchiverException
from archiver.logging_config import logger
from archiver.services import ArchivalService, EventDispatcher, MessageStore
from discord_bot.bot_handler import ArchiverBotHandler

MODE_ARCHIVE_NEW_MESSAGES = "archive-new-messages"


class Application:
    """Main application manager."""

    def __init__(self):
        """Initialize application."""
        self.bot_handler: Optional[ArchiverBotHandler] = None
        self.dispatcher: Optional[EventDispatcher] = None
        self.archival_service: Optional[ArchivalService] = None

    async def initialize(self) -> None:
        """Initialize application components."""
        logger.info(f"Initializing {settings.app_name}")
        logger.info(f"Environment: {settings.app_env}")
        logger.info(f"Debug mode: {settings.app_debug}")

        try:
            logger.info("Initializing database...")
            init_db()

            # A fresh session id per run lets readers spot possible gaps
            session_id = uuid4()
            logger.info(f"Archiver session id: {session_id}")

            self.archival_service = ArchivalService(
                store=MessageStore(session_factory=SessionLocal),
                session_id=session_id,
                ignored_guild_ids=settings.ignored_guild_ids,
                ignored_channel_ids=settings.ignored_channel_ids,
                decompose_bulk_delete=settings.decompose_bulk_delete,
            )
            logger.info(
                f"Archival service initialized "
                f"(ignored guilds={len(settings.ignored_guild_ids)}, "
                f"ignored channels={len(settings.ignored_channel_ids)}, "
                f"decompose bulk deletes={settings.decompose_bulk_delete})"
            )

            self.dispatcher = EventDispatcher(
                handler=self.archival_service.handle_event,
                expand=self.archival_service.expand,
                worker_count=settings.dispatch_workers,
                max_queue_size=settings.dispatch_queue_max_size,
            )
            logger.info("Event dispatcher initialized")

            self.bot_handler = ArchiverBotHandler(
                dispatcher=self.dispatcher,
                token=settings.discord_token,
            )
            self.bot_handler.initialize_bot()

            logger.info("Application initialization complete")

        except Exception as e:
            logger.error(f"Failed to initialize application: {e}", exc_info=True)
            raise

    async def run(self) -> None:
        """Run the application until the gateway client stops."""
        try:
            logger.info("Starting application services...")

            if self.dispatcher:
                await self.dispatcher.start_workers()

            if self.bot_handler:
                await self.bot_handler.start()

        except Exception as e:
            logger.error(f"Application error: {e}", exc_info=True)
            raise
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Shutdown application. In-flight events may be abandoned."""
        try:
            logger.info("Shutting down application...")

            if self.bot_handler:
                try:
                    await self.bot_handler.close()
                except Exception as e:
                    logger.warning(f"Error closing Discord client: {e}")

            if self.dispatcher and self.dispatcher.is_running:
                await self.dispatcher.stop_workers()

            if self.archival_service:
                logger.info(f"Archival stats: {self.archival_service.get_stats()}")

            logger.info("Application shutdown complete")

        except Exception as e:
            logger.error(f"Error during shutdown: {e}", exc_info=True)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Chat message archiver")
    parser.add_argument(
        "mode",
        choices=[MODE_ARCHIVE_NEW_MESSAGES],
        help="What to run",
    )
    return parser.parse_args(argv)


async def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point - initialize and run the selected mode."""
    args = parse_args(argv)
    app = Application()

    try:
        if args.mode == MODE_ARCHIVE_NEW_MESSAGES:
            await app.initialize()
            await app.run()

    except KeyboardInterrupt:
        logger.info("Application terminated by user")
    except ArchiverException as e:
        logger.error(f"Fatal error [{e.code}]: {e.message}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Shutdown complete")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        sys.exit(1)
