"""Core primitives shared by every liftoff component."""

from liftoff.core.exceptions import (
    ConfigurationError,
    DuplicateProfileError,
    LiftoffError,
    NoActiveProfileError,
    ProfileNotFoundError,
    ProviderError,
    ValidationError,
)

__all__ = [
    "ConfigurationError",
    "DuplicateProfileError",
    "LiftoffError",
    "NoActiveProfileError",
    "ProfileNotFoundError",
    "ProviderError",
    "ValidationError",
]
