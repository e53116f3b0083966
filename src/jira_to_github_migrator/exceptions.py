"""
Custom exception classes for the Jira to GitHub migration tool.
"""

from __future__ import annotations


class MigrationError(Exception):
    """Base exception for migration errors."""


class ConfigurationError(MigrationError):
    """Raised when options or the settings file are invalid."""


class JiraRequestError(MigrationError):
    """Raised when a backbone Jira read (issue search) fails."""


class IntegrityMismatchError(MigrationError):
    """Raised when a downloaded attachment does not match its declared length."""


class CriticalSetupError(MigrationError):
    """Raised when a GitHub call the run cannot continue without fails."""


class MigrationCancelledError(MigrationError):
    """Raised when cancellation is observed before a network call."""
