"""Hashing utilities for match fingerprints and candidate-pool versions.

This module provides deterministic hashing functions for:
- match fingerprint: cache key from the user attributes that shape a match set
- pool version: identifier for a candidate-pool snapshot
"""

import hashlib
import json
import re
from typing import Any, Iterable, Optional


def hash_string(value: str) -> str:
    """Compute SHA256 hash of a string value.

    Args:
        value: String to hash

    Returns:
        Hexadecimal string representation of SHA256 hash (64 characters)
    """
    hash_obj = hashlib.sha256(value.encode("utf-8"))
    return hash_obj.hexdigest()


def compute_match_fingerprint(
    user_email: str,
    target_cities: Iterable[str],
    career_path: Iterable[str],
    visa_status: Optional[str],
    pool_version: str,
    subscription_tier: str = "free",
    languages_spoken: Iterable[str] = (),
    experience_level: Optional[str] = None,
) -> str:
    """Compute the cache key for a (user, candidate pool) request.

    List inputs are normalized and sorted so that ordering differences in a
    profile do not produce distinct keys. The payload is serialized as canonical
    JSON before hashing.

    Args:
        user_email: User email address
        target_cities: Cities the user wants to work in
        career_path: Career paths of interest
        visa_status: Free-text visa status, or None
        pool_version: Candidate-pool version identifier
        subscription_tier: free or premium (changes result count)
        languages_spoken: Languages the user speaks
        experience_level: User's experience level

    Returns:
        Hexadecimal SHA256 fingerprint (64 characters)

    Example:
        >>> a = compute_match_fingerprint("a@x.com", ["Paris", "London"], ["tech"], None, "v1")
        >>> b = compute_match_fingerprint("A@x.com", ["london", "paris"], ["tech"], None, "v1")
        >>> a == b
        True
    """
    payload = {
        "user_email": _normalize_text(user_email),
        "target_cities": _normalized_sorted(target_cities),
        "career_path": _normalized_sorted(career_path),
        "visa_status": _normalize_text(visa_status) if visa_status else None,
        "pool_version": pool_version,
        "subscription_tier": _normalize_text(subscription_tier),
        "languages_spoken": _normalized_sorted(languages_spoken),
        "experience_level": _normalize_text(experience_level) if experience_level else None,
    }
    return hash_string(_canonical_json(payload))


def compute_pool_version(job_records: Iterable[Any]) -> str:
    """Compute a version identifier for a candidate pool.

    The version is order-independent: it hashes the sorted records, so the same
    postings always produce the same version. Each record is a tuple starting
    with job_hash; every field that can change eligibility belongs in it.

    Args:
        job_records: Iterable of tuples of strings, bools or None

    Returns:
        First 16 hex characters of the SHA256 digest
    """
    entries = sorted("|".join("" if part is None else str(part) for part in record) for record in job_records)
    return hash_string("\n".join(entries))[:16]


def _normalized_sorted(values: Iterable[str]) -> list:
    return sorted({_normalize_text(v) for v in values if v and v.strip()})


def _canonical_json(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _normalize_text(text: str) -> str:
    """Normalize text for consistent hashing.

    Lowercases, strips, and collapses internal whitespace.
    """
    return re.sub(r"\s+", " ", text.lower().strip())
