"""
Database base configuration and utilities.

This module provides the foundation for the aliasync audit log using
Peewee ORM with SQLite backend.

Components:
    - db: Global SQLite database instance
    - BaseModel: Base class for all aliasync database models
    - initialize_database: Database setup function
    - close_database: Connection teardown
"""

import os

import peewee

from aliasync.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Database Instance
# =============================================================================

# Global database instance - path set via initialize_database()
db = peewee.SqliteDatabase(None)


# =============================================================================
# Base Model
# =============================================================================


class BaseModel(peewee.Model):
    """
    Base model for all aliasync database models.

    All models inherit from this class to share the database connection.
    """

    class Meta:
        database = db


# =============================================================================
# Database Lifecycle
# =============================================================================


def initialize_database(db_path: str) -> None:
    """
    Connect to the database and create tables.

    Args:
        db_path: Path to the SQLite database file.

    Raises:
        peewee.OperationalError: If database connection fails.
    """
    # Import models here to avoid circular imports
    from aliasync.db.audit import AuditEntry

    db_path = os.path.expanduser(db_path)
    logger.debug(f"Initializing database at: {db_path}")

    parent = os.path.dirname(db_path)
    if parent:
        os.makedirs(parent, exist_ok=True)

    try:
        if not db.is_closed():
            db.close()
        db.init(db_path)
        db.connect()
        db.create_tables([AuditEntry], safe=True)
        logger.debug(f"Audit log ready: {db_path} ({AuditEntry.select().count()} entries)")

    except peewee.OperationalError as e:
        logger.error(f"Failed to initialize database '{db_path}': {e}")
        raise


def close_database() -> None:
    """Close the database connection if open."""
    if not db.is_closed():
        db.close()
        logger.debug("Database connection closed")
