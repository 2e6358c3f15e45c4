"""Persisted domain models."""

from .auth import AuthRecord, User, utcnow

__all__ = ["AuthRecord", "User", "utcnow"]
