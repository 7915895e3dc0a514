"""Candidate pool and user profile loading."""

from .loader import PoolLoadError, load_pool, load_profiles

__all__ = ["load_pool", "load_profiles", "PoolLoadError"]
