"""Loading candidate pools and user profiles from YAML or JSON files.

A pool file is either a list of postings or a mapping with `jobs` and an
optional `version`. A profiles file is either a list of profiles or a mapping
with a `users` list. JSON is read with the YAML loader, since JSON is valid YAML.
"""

from pathlib import Path
from typing import Any, List, Optional, Union

import yaml
from pydantic import ValidationError

from jobmatch.config.exceptions import format_validation_errors
from jobmatch.domain.models import CandidatePool, JobPosting, UserProfile
from jobmatch.logging import get_logger

logger = get_logger(__name__, component="pool")


class PoolLoadError(Exception):
    """A pool or profiles file could not be read or contains an invalid record.

    Attributes:
        path: File that failed to load
        record_index: 0-based index of the offending record, if any
        errors: Field-level validation messages
    """

    def __init__(
        self,
        message: str,
        path: Union[str, Path],
        record_index: Optional[int] = None,
        errors: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.path = str(path)
        self.record_index = record_index
        self.errors = errors or []

    def __str__(self) -> str:
        lines = [f"{self.message} ({self.path})"]
        for error in self.errors:
            lines.append(f"  - {error}")
        return "\n".join(lines)


def _read_file(path: Path) -> Any:
    if not path.exists():
        raise PoolLoadError("File not found", path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise PoolLoadError(f"Could not parse file: {e}", path) from e
    except OSError as e:
        raise PoolLoadError(f"Could not read file: {e}", path) from e


def _records(data: Any, key: str, path: Path) -> List[Any]:
    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get(key, [])
    if not isinstance(data, list):
        raise PoolLoadError(f"Expected a list of records or a mapping with '{key}'", path)
    return data


def load_pool(path: Union[str, Path], version: Optional[str] = None) -> CandidatePool:
    """Load a candidate pool.

    Args:
        path: YAML or JSON file
        version: Pool version; overrides the file's version. When neither is set,
            the version is derived from the postings.

    Returns:
        CandidatePool

    Raises:
        PoolLoadError: If the file is missing, unparseable, or has an invalid posting
    """
    path = Path(path)
    data = _read_file(path)
    file_version = data.get("version") if isinstance(data, dict) else None

    jobs: List[JobPosting] = []
    for index, record in enumerate(_records(data, "jobs", path)):
        try:
            jobs.append(JobPosting.model_validate(record))
        except ValidationError as e:
            raise PoolLoadError(
                f"Invalid job posting at index {index}",
                path,
                record_index=index,
                errors=format_validation_errors(e),
            ) from e

    pool = CandidatePool.from_jobs(jobs, version=version or (str(file_version) if file_version else None))
    logger.info(
        f"Loaded candidate pool with {len(pool)} postings",
        extra={"event": "pool.loaded", "path": str(path), "job_count": len(pool), "pool_version": pool.version},
    )
    return pool


def load_profiles(path: Union[str, Path]) -> List[UserProfile]:
    """Load user profiles.

    Raises:
        PoolLoadError: If the file is missing, unparseable, or has an invalid profile
    """
    path = Path(path)
    data = _read_file(path)

    users: List[UserProfile] = []
    for index, record in enumerate(_records(data, "users", path)):
        try:
            users.append(UserProfile.model_validate(record))
        except ValidationError as e:
            raise PoolLoadError(
                f"Invalid user profile at index {index}",
                path,
                record_index=index,
                errors=format_validation_errors(e),
            ) from e

    logger.info(
        f"Loaded {len(users)} user profiles",
        extra={"event": "pool.profiles_loaded", "path": str(path), "user_count": len(users)},
    )
    return users
