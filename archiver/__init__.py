"""Message Archiver - records the full observed history of chat messages."""

from archiver.config import get_settings, settings
from archiver.database import Base, SessionLocal, engine, init_db
from archiver.exceptions import ArchiverException
from archiver.logging_config import logger, setup_logging

__version__ = "0.1.0"

__all__ = [
    "settings",
    "get_settings",
    "logger",
    "setup_logging",
    "ArchiverException",
    "Base",
    "engine",
    "SessionLocal",
    "init_db",
]
