"""
Jira to GitHub Migration Tool

Migrates Jira issues to GitHub issues, including descriptions, comments,
attachments, labels, milestones, parent/child and related links, linked
pull requests and project board placement.
"""

from __future__ import annotations

from .cli import main
from .exceptions import CriticalSetupError, MigrationCancelledError, MigrationError
from .migrator import JiraToGithubMigrator
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

__all__ = [
    "CriticalSetupError",
    "JiraToGithubMigrator",
    "MigrationCancelledError",
    "MigrationError",
    "main",
    "setup_logging",
]
