"""Custom exception hierarchy for liftoff.

All liftoff-specific exceptions inherit from LiftoffError, enabling
callers to catch every liftoff failure with a single except clause.
"""

from __future__ import annotations


class LiftoffError(Exception):
    """Base exception for all liftoff errors."""


class ValidationError(LiftoffError, ValueError):
    """Raised synchronously for malformed input. Never reaches the provider."""


class ProfileNotFoundError(LiftoffError, KeyError):
    """Raised when selecting a profile that is not registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Profile '{name}' not found")

    def __str__(self) -> str:
        return self.args[0]


class DuplicateProfileError(LiftoffError):
    """Raised when creating a profile whose name is already registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Profile '{name}' already exists")


class ProviderError(LiftoffError):
    """Raised by cloud provider adapters for network, permission or throttling failures."""

    def __init__(self, operation: str, message: str, code: str | None = None) -> None:
        self.operation = operation
        self.code = code
        detail = f"{operation} failed: {message}"
        if code:
            detail = f"{detail} ({code})"
        super().__init__(detail)


class ConfigurationError(LiftoffError):
    """Raised for invalid configuration or missing required settings."""


class NoActiveProfileError(LiftoffError):
    """Raised when an operation needs an active profile and none is selected."""

    def __init__(self) -> None:
        super().__init__("No active profile. Select a profile first.")
