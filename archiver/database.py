from typing import Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool

from archiver.config import settings
from archiver.exceptions import DatabaseError
from archiver.logging_config import logger

Base = declarative_base()


def get_engine(database_url: Optional[str] = None) -> Engine:
    """
    Create and return SQLAlchemy engine

    args:
        database_url: Connection string, defaults to settings.database_url

    returns:
        SQLAlchemy engine instance
    """
    url = database_url or settings.database_url
    try:
        if url.startswith("sqlite"):
            # SQLite picks its own pool; QueuePool sizing does not apply
            engine = create_engine(url, echo=settings.sqlalchemy_echo)
        else:
            engine = create_engine(
                url,
                echo=settings.sqlalchemy_echo,
                poolclass=QueuePool,
                pool_size=10,
                max_overflow=20,
                pool_pre_ping=True,
                pool_recycle=1800,
            )
        logger.info("Database engine created successfully")
        return engine
    except Exception as e:
        logger.error(f"Failed to create database engine: {e}")
        raise DatabaseError(f"Failed to create database engine: {e}")


# Create engine
engine = get_engine()

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)


def init_db(bind: Optional[Engine] = None) -> None:
    """
    Initialize database by creating all tables.

    Raises:
        DatabaseError: If initialization fails
    """
    # Register models with Base before create_all
    import archiver.models  # noqa: F401

    try:
        Base.metadata.create_all(bind=bind or engine)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise DatabaseError(f"Failed to initialize database: {e}")


__all__ = [
    "get_engine",
    "engine",
    "SessionLocal",
    "init_db",
]
