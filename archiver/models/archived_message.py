"""Document table holding one archived record per platform message."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, String

from archiver.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ArchivedMessageDocument(Base):
    """
    Stored form of an archived message record.

    The full record lives in ``document``; the other columns copy the parts
    of it that are useful to filter on without decoding.

    Attributes:
        id: Platform message id (snowflake string), the document key
        archive_type: Record shape tag (Full, FullDeleted, ...)
        channel_id: Channel the message was posted in
        guild_id: Guild of the channel, if any
        document: The encoded record
        updated_at: Last time this row was written
    """

    __tablename__ = "archived_messages"

    id = Column(String(32), primary_key=True)
    archive_type = Column(String(32), nullable=False, index=True)
    channel_id = Column(String(32), nullable=False, index=True)
    guild_id = Column(String(32), nullable=True, index=True)
    document = Column(JSON, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<ArchivedMessageDocument(id={self.id}, "
            f"archive_type={self.archive_type}, channel_id={self.channel_id})>"
        )


__all__ = ["ArchivedMessageDocument"]
