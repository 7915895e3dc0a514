"""Persistence layer for the durable result cache.

Public API:
    # Database initialization and session management
    - init_database(database_url: str) -> None
    - get_session() -> ContextManager[Session]
    - close_database() -> None
    - get_engine() -> Engine

    # Repository classes
    - MatchCacheRepository: CRUD operations for cached match sets

    # Exceptions
    - PersistenceError: Base exception for all persistence errors
    - DatabaseConnectionError: Database connection/initialization failures
    - DataIntegrityError: Constraint violations and undecodable rows

Example usage:
    >>> from jobmatch.persistence import init_database, get_session, MatchCacheRepository
    >>>
    >>> init_database("sqlite:///./data/job_match.db")
    >>>
    >>> with get_session() as session:
    ...     repo = MatchCacheRepository(session)
    ...     entry = repo.get("3f2a...")
"""

from .database import close_database, get_engine, get_session, init_database, is_initialized
from .exceptions import DatabaseConnectionError, DataIntegrityError, PersistenceError
from .repositories import MatchCacheRepository

__all__ = [
    "init_database",
    "get_session",
    "close_database",
    "get_engine",
    "is_initialized",
    "MatchCacheRepository",
    "PersistenceError",
    "DatabaseConnectionError",
    "DataIntegrityError",
]
