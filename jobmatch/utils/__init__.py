"""Utility functions for hashing, time handling, and token similarity."""

from .hashing import compute_match_fingerprint, compute_pool_version, hash_string
from .text import coverage, cosine_count_similarity, normalize_for_matching, token_set, tokenize
from .timestamps import age_in_days, ensure_utc, format_timestamp, parse_iso_datetime, utc_now

__all__ = [
    # Hashing
    "compute_match_fingerprint",
    "compute_pool_version",
    "hash_string",
    # Text
    "normalize_for_matching",
    "tokenize",
    "token_set",
    "coverage",
    "cosine_count_similarity",
    # Timestamps
    "utc_now",
    "ensure_utc",
    "parse_iso_datetime",
    "format_timestamp",
    "age_in_days",
]
