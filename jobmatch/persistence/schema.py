"""Database schema definition and ORM models.

This module defines the SQLAlchemy ORM model for cached match sets and the
conversion between rows and CacheEntry domain objects.
"""

import json
import logging

from pydantic import ValidationError
from sqlalchemy import Column, Index, String, Text, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from jobmatch.domain.models import CacheEntry, MatchResult
from jobmatch.utils.timestamps import format_timestamp, parse_iso_datetime

from .exceptions import DataIntegrityError

logger = logging.getLogger(__name__)

Base = declarative_base()


class MatchCacheModel(Base):
    """ORM model for the match_cache table.

    One row per match fingerprint. Results are stored as a JSON array of
    MatchResult objects; timestamps as ISO 8601 strings.
    """

    __tablename__ = "match_cache"

    fingerprint = Column(String(64), primary_key=True, nullable=False)
    results_json = Column(Text, nullable=False)
    source_method = Column(String(20), nullable=False)
    created_at = Column(String(50), nullable=False)
    expires_at = Column(String(50), nullable=False)

    __table_args__ = (Index("idx_match_cache_expires", "expires_at"),)

    def to_domain(self) -> CacheEntry:
        """Convert the row to a CacheEntry.

        Raises:
            DataIntegrityError: If the stored JSON no longer validates
        """
        try:
            results = tuple(MatchResult.model_validate(item) for item in json.loads(self.results_json))
            return CacheEntry(
                fingerprint=self.fingerprint,
                results=results,
                source_method=self.source_method,
                created_at=parse_iso_datetime(self.created_at),
                expires_at=parse_iso_datetime(self.expires_at),
            )
        except (ValueError, ValidationError) as e:
            raise DataIntegrityError(f"Corrupt cache row {self.fingerprint}: {e}") from e

    @classmethod
    def from_domain(cls, entry: CacheEntry) -> "MatchCacheModel":
        return cls(
            fingerprint=entry.fingerprint,
            results_json=_results_to_json(entry),
            source_method=entry.source_method,
            created_at=format_timestamp(entry.created_at, include_microseconds=True),
            expires_at=format_timestamp(entry.expires_at, include_microseconds=True),
        )


def _results_to_json(entry: CacheEntry) -> str:
    return json.dumps([result.model_dump(mode="json") for result in entry.results])


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes if they don't exist (idempotent).

    Args:
        engine: SQLAlchemy engine instance
    """
    logger.info("Creating database schema if not exists")

    try:
        Base.metadata.create_all(engine, checkfirst=True)
        tables = inspect(engine).get_table_names()
        logger.info(f"Database schema ready. Tables: {', '.join(tables)}")
    except Exception as e:
        logger.error(f"Failed to create database schema: {e}", exc_info=True)
        raise
