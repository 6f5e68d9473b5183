"""Standalone script to manage the archive's database schema."""

import sys
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import inspect, text

from archiver.config import settings
from archiver.database import engine, init_db
from archiver.logging_config import logger

PROJECT_ROOT = Path(__file__).parent
ALEMBIC_INI = PROJECT_ROOT / "alembic.ini"
ALEMBIC_DIR = PROJECT_ROOT / "alembic"


def setup_alembic_config() -> Config:
    """Build the Alembic configuration, pointed at DATABASE_URL."""
    alembic_cfg = Config(str(ALEMBIC_INI))
    alembic_cfg.set_main_option("script_location", str(ALEMBIC_DIR))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)
    return alembic_cfg


def check_migrations_initialized() -> bool:
    """Check that alembic.ini and the alembic/ directory are present."""
    if not ALEMBIC_INI.exists():
        logger.error(f"alembic.ini not found at {ALEMBIC_INI}")
        return False

    if not ALEMBIC_DIR.exists():
        logger.error(f"alembic/ directory not found at {ALEMBIC_DIR}")
        return False

    return True


def get_current_revision() -> Optional[str]:
    """Get the revision the database is at, None for a fresh database."""
    try:
        if not inspect(engine).has_table("alembic_version"):
            logger.info("alembic_version table doesn't exist - database is fresh")
            return None

        with engine.connect() as conn:
            row = conn.execute(text("SELECT version_num FROM alembic_version")).fetchone()
            return row[0] if row else None
    except Exception as e:
        logger.warning(f"Could not determine current revision: {e}")
        return None


def get_head_revision(alembic_cfg: Config) -> Optional[str]:
    """Get head (latest) revision."""
    try:
        return ScriptDirectory.from_config(alembic_cfg).get_current_head()
    except Exception as e:
        logger.error(f"Could not determine head revision: {e}")
        return None


def run_migrations() -> bool:
    """Upgrade the database to the head revision."""
    if not check_migrations_initialized():
        return False

    try:
        alembic_cfg = setup_alembic_config()
        current = get_current_revision()
        head = get_head_revision(alembic_cfg)

        logger.info(f"Current revision: {current or 'None (fresh database)'}")
        logger.info(f"Head revision: {head}")

        if current == head:
            logger.info("Database is already at the latest revision")
            return True

        logger.info("Running migrations...")
        command.upgrade(alembic_cfg, "head")
        logger.info(f"Migration completed, now at {get_current_revision()}")
        return True

    except Exception as e:
        logger.error(f"Migration failed: {e}", exc_info=True)
        return False


def show_migration_status() -> None:
    """Show migration status without running anything."""
    if not check_migrations_initialized():
        return

    alembic_cfg = setup_alembic_config()
    current = get_current_revision()
    head = get_head_revision(alembic_cfg)

    logger.info(f"Current revision: {current or 'None (fresh database)'}")
    logger.info(f"Head revision: {head}")

    if current == head:
        logger.info("Database is up to date")
    else:
        logger.warning("Database is behind head. Run: python migrate.py --run")


def main() -> int:
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Database migration tool for the message archiver"
    )
    parser.add_argument("--run", action="store_true", help="Run migrations")
    parser.add_argument(
        "--status", action="store_true", help="Show migration status (default)"
    )
    parser.add_argument(
        "--init", action="store_true", help="Create tables directly, without Alembic"
    )
    args = parser.parse_args()

    try:
        if args.init:
            init_db()
            return 0

        if args.run:
            return 0 if run_migrations() else 1

        show_migration_status()
        return 0

    except KeyboardInterrupt:
        logger.info("Migration cancelled by user")
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
