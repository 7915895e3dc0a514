"""Data access layer for cached match sets.

Repositories encapsulate database operations and return domain models rather
than ORM models.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from jobmatch.domain.models import CacheEntry
from jobmatch.utils.timestamps import format_timestamp

from .exceptions import DataIntegrityError, PersistenceError
from .schema import MatchCacheModel, _results_to_json

logger = logging.getLogger(__name__)


class MatchCacheRepository:
    """Repository for match_cache rows."""

    def __init__(self, session: Session):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy session for database operations
        """
        self.session = session

    def get(self, fingerprint: str) -> Optional[CacheEntry]:
        """Retrieve a cache entry by fingerprint, expired or not.

        Returns:
            CacheEntry if found, None otherwise

        Raises:
            DataIntegrityError: If the stored row cannot be decoded
            PersistenceError: If database error occurs
        """
        try:
            model = self.session.get(MatchCacheModel, fingerprint)
            if model is None:
                return None
            return model.to_domain()

        except SQLAlchemyError as e:
            logger.error(f"Error retrieving cache entry {fingerprint}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve cache entry: {e}") from e

    def upsert(self, entry: CacheEntry) -> CacheEntry:
        """Insert a cache entry or replace the existing one for its fingerprint.

        Raises:
            DataIntegrityError: If a constraint is violated
            PersistenceError: If database error occurs
        """
        try:
            existing = self.session.get(MatchCacheModel, entry.fingerprint)

            if existing:
                existing.results_json = _results_to_json(entry)
                existing.source_method = entry.source_method
                existing.created_at = format_timestamp(entry.created_at, include_microseconds=True)
                existing.expires_at = format_timestamp(entry.expires_at, include_microseconds=True)
                logger.debug(f"Updated cache entry: {entry.fingerprint}")
            else:
                self.session.add(MatchCacheModel.from_domain(entry))
                logger.debug(f"Inserted cache entry: {entry.fingerprint}")

            self.session.flush()
            return entry

        except IntegrityError as e:
            logger.error(f"Integrity error upserting cache entry {entry.fingerprint}: {e}")
            raise DataIntegrityError(f"Failed to upsert cache entry: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error upserting cache entry {entry.fingerprint}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to upsert cache entry: {e}") from e

    def delete(self, fingerprint: str) -> bool:
        """Delete one entry. Returns True if a row was removed."""
        try:
            result = self.session.execute(
                delete(MatchCacheModel).where(MatchCacheModel.fingerprint == fingerprint)
            )
            return result.rowcount > 0

        except SQLAlchemyError as e:
            logger.error(f"Error deleting cache entry {fingerprint}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to delete cache entry: {e}") from e

    def purge_expired(self, now: datetime) -> int:
        """Delete every entry whose expiry is at or before `now`.

        ISO 8601 strings in UTC with a fixed format sort chronologically, so the
        comparison happens in SQL.

        Returns:
            Number of rows deleted
        """
        cutoff = format_timestamp(now, include_microseconds=True)
        try:
            result = self.session.execute(
                delete(MatchCacheModel).where(MatchCacheModel.expires_at <= cutoff)
            )
            deleted = result.rowcount
            if deleted:
                logger.info(f"Purged {deleted} expired cache entries")
            return deleted

        except SQLAlchemyError as e:
            logger.error(f"Error purging expired cache entries: {e}", exc_info=True)
            raise PersistenceError(f"Failed to purge cache entries: {e}") from e

    def count(self) -> int:
        try:
            return self.session.execute(select(func.count()).select_from(MatchCacheModel)).scalar_one()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to count cache entries: {e}") from e

    def clear(self) -> int:
        """Delete every entry. Returns the number of rows deleted."""
        try:
            return self.session.execute(delete(MatchCacheModel)).rowcount
        except SQLAlchemyError as e:
            logger.error(f"Error clearing cache entries: {e}", exc_info=True)
            raise PersistenceError(f"Failed to clear cache entries: {e}") from e
