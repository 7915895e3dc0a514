"""Persistence layer exceptions.

All persistence exceptions inherit from PersistenceError so callers can catch
every database failure with a single except clause.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""

    pass


class DatabaseConnectionError(PersistenceError):
    """Raised when database connection or initialization fails.

    Examples:
    - Invalid database URL format
    - Database file not accessible
    - Database used before init_database() was called
    """

    pass


class DataIntegrityError(PersistenceError):
    """Raised when a stored row cannot be written or decoded.

    Examples:
    - Primary key violation
    - Cached results JSON that no longer validates against MatchResult
    """

    pass
