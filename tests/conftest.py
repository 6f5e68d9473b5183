"""Pytest configuration and fixtures."""

import os

# Set PYTEST_RUNNING before any imports that might use settings
# This ensures .env.test is loaded instead of .env
os.environ["PYTEST_RUNNING"] = "true"
# Keep the module-level engine off any real server
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime, timezone
from uuid import UUID

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from archiver.database import Base
from archiver.models import ArchivedMessageDocument  # noqa: F401  (registers the table)
from archiver.models.events import (
    MessageCreateEvent,
    MessageDeleteEvent,
    MessageEditEvent,
)
from archiver.services.message_store import MessageStore

SESSION_ID = UUID("8d3c1f3e-4a7b-4c2e-9a51-0f6d2b7e9c10")
OTHER_SESSION_ID = UUID("1b0e6a44-2f5c-4f0e-8f43-9d2a7c31e5ab")

CREATED_AT = datetime(2023, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
RECEIVED_AT = datetime(2023, 3, 1, 12, 0, 1, 250000, tzinfo=timezone.utc)
EDITED_AT = datetime(2023, 3, 1, 12, 5, 0, tzinfo=timezone.utc)
DELETED_AT = datetime(2023, 3, 1, 13, 0, 0, tzinfo=timezone.utc)


def make_create(message_id: str = "1", content: str = "hi", **overrides) -> MessageCreateEvent:
    fields = dict(
        id=message_id,
        channel_id="100",
        guild_id="10",
        author_id="42",
        timestamp=CREATED_AT,
        kind=0,
        content=content,
        received_at=RECEIVED_AT,
    )
    fields.update(overrides)
    return MessageCreateEvent(**fields)


def make_edit(message_id: str = "1", content: str = "hi!", **overrides) -> MessageEditEvent:
    fields = dict(
        id=message_id,
        channel_id="100",
        guild_id="10",
        author_id="42",
        timestamp=CREATED_AT,
        edited_timestamp=EDITED_AT,
        content=content,
        received_at=EDITED_AT,
    )
    fields.update(overrides)
    return MessageEditEvent(**fields)


def make_delete(message_id: str = "1", **overrides) -> MessageDeleteEvent:
    fields = dict(id=message_id, channel_id="100", guild_id="10", received_at=DELETED_AT)
    fields.update(overrides)
    return MessageDeleteEvent(**fields)


@pytest.fixture(scope="function")
def test_engine():
    """
    In-memory SQLite engine shared across threads.

    StaticPool keeps one connection, so every session (including those
    opened from worker threads) sees the same database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    """Session factory bound to the test engine."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_engine,
        expire_on_commit=False,
    )


@pytest.fixture(scope="function")
def store(session_factory) -> MessageStore:
    """Message store over the in-memory database."""
    return MessageStore(session_factory=session_factory)
