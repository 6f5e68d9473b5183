"""Document store for archived message records."""

from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from archiver.database import SessionLocal
from archiver.exceptions import DatabaseError, DuplicateRecordError
from archiver.logging_config import logger
from archiver.models.archived_message import ArchivedMessageDocument
from archiver.models.records import ArchivedMessage, decode_record, encode_record


class MessageStore:
    """
    Keyed access to archived records, one document per message id.

    Each call runs in its own session and commits before returning. Lookups
    and writes are never grouped into one transaction, so two writers for
    the same id resolve as last-write-wins.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        """
        Initialize the store.

        Args:
            session_factory: Database session factory
        """
        self.session_factory = session_factory

    def find_by_id(self, message_id: str) -> Optional[ArchivedMessage]:
        """
        Look up the record stored for a message.

        Args:
            message_id: Platform message id

        Returns:
            The decoded record, or None if the message was never archived

        Raises:
            DatabaseError: If the lookup fails
            RecordEncodingError: If the stored document cannot be decoded
        """
        session = self.session_factory()
        try:
            row = session.get(ArchivedMessageDocument, message_id)
            if row is None:
                return None
            return decode_record(row.document)
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch message {message_id}: {e}")
            raise DatabaseError(f"Failed to fetch message {message_id}: {e}")
        finally:
            session.close()

    def insert(self, record: ArchivedMessage) -> None:
        """
        Store a record under an id that must not be taken yet.

        Raises:
            DuplicateRecordError: If a record already exists for the id
            DatabaseError: If the write fails
            RecordEncodingError: If the record cannot be encoded
        """
        row = self._to_row(record)
        session = self.session_factory()
        try:
            session.add(row)
            session.commit()
            logger.debug(f"Inserted {record.archive_type} record for message {record.id}")
        except IntegrityError as e:
            session.rollback()
            raise DuplicateRecordError(
                f"Message {record.id} is already archived", record.id
            ) from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to insert message {record.id}: {e}")
            raise DatabaseError(f"Failed to insert message {record.id}: {e}")
        finally:
            session.close()

    def upsert_by_id(self, message_id: str, record: ArchivedMessage) -> None:
        """
        Replace whatever is stored under ``message_id`` with ``record``.

        Raises:
            DatabaseError: If the write fails or the ids disagree
            RecordEncodingError: If the record cannot be encoded
        """
        if record.id != message_id:
            raise DatabaseError(
                f"Refusing to store record {record.id} under id {message_id}"
            )

        row = self._to_row(record)
        session = self.session_factory()
        try:
            session.merge(row)
            session.commit()
            logger.debug(f"Upserted {record.archive_type} record for message {message_id}")
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to upsert message {message_id}: {e}")
            raise DatabaseError(f"Failed to upsert message {message_id}: {e}")
        finally:
            session.close()

    @staticmethod
    def _to_row(record: ArchivedMessage) -> ArchivedMessageDocument:
        return ArchivedMessageDocument(
            id=record.id,
            archive_type=record.archive_type,
            channel_id=record.channel_id,
            guild_id=record.guild_id,
            document=encode_record(record),
        )


__all__ = ["MessageStore"]
