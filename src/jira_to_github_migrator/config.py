"""
Typed configuration for the Jira to GitHub migration tool.

Run options come from the command line (``MigrationOptions``); the mapping
tables and the description template come from a JSON settings file
(``ParserSettings``).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .exceptions import ConfigurationError

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION_TEMPLATE = """{{Description}}

---

**Jira:** {{JiraLink}}
**Reporter:** {{Reporter}}
**Components:** {{Components}}
**Sprints:** {{Sprints}}
**Fix versions:** {{FixVersions}}
**Story points:** {{StoryPoints}}
**Attachments:** {{Attachments}}
**Pull requests:** {{PullRequests}}
"""

DEFAULT_STATE_MAPPING: dict[str, list[str]] = {
    "open": ["To Do", "Open", "In Progress", "In Review", "Reopened"],
    "closed": ["Done", "Closed", "Resolved"],
}


@dataclass(frozen=True)
class EmailMapping:
    """Maps a Jira display name to a GitHub login."""

    jira_username: str
    github_name: str


@dataclass
class ParserSettings:
    """Settings that drive the conversion of Jira issues."""

    state_mapping: dict[str, list[str]] = field(default_factory=lambda: dict(DEFAULT_STATE_MAPPING))
    email_mappings: list[EmailMapping] = field(default_factory=list)
    description_template: str = DEFAULT_DESCRIPTION_TEMPLATE
    story_points_field: str = "customfield_10028"
    sprints_field: str = "customfield_10020"

    def validate(self) -> None:
        unknown = set(self.state_mapping) - {"open", "closed"}
        if unknown:
            msg = f"Invalid state mapping keys: {', '.join(sorted(unknown))}. Expected 'open' and/or 'closed'"
            raise ConfigurationError(msg)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ParserSettings:
        defaults = cls()
        try:
            settings = cls(
                state_mapping={
                    str(state).lower(): [str(name) for name in names]
                    for state, names in data.get("state_mapping", defaults.state_mapping).items()
                },
                email_mappings=[
                    EmailMapping(jira_username=m["jira_username"], github_name=m["github_name"])
                    for m in data.get("email_mappings", [])
                ],
                description_template=data.get("description_template", defaults.description_template),
                story_points_field=data.get("story_points_field", defaults.story_points_field),
                sprints_field=data.get("sprints_field", defaults.sprints_field),
            )
        except (KeyError, TypeError, AttributeError) as e:
            msg = f"Invalid settings: {e}"
            raise ConfigurationError(msg) from e
        settings.validate()
        return settings


def load_settings(path: str | Path | None) -> ParserSettings:
    """Load parser settings from a JSON file, or return the defaults."""
    if path is None:
        return ParserSettings()

    settings_path = Path(path)
    try:
        data = json.loads(settings_path.read_text(encoding="utf-8"))
    except OSError as e:
        msg = f"Cannot read settings file {settings_path}: {e}"
        raise ConfigurationError(msg) from e
    except json.JSONDecodeError as e:
        msg = f"Settings file {settings_path} is not valid JSON: {e}"
        raise ConfigurationError(msg) from e

    if not isinstance(data, dict):
        msg = f"Settings file {settings_path} must contain a JSON object"
        raise ConfigurationError(msg)

    logger.debug(f"Loaded settings from {settings_path}")
    return ParserSettings.from_dict(data)


def split_repo_path(repo_path: str) -> tuple[str, str]:
    """Split ``owner/repo`` into its parts."""
    parts = repo_path.strip().split("/")
    if len(parts) != 2 or not all(parts):
        msg = f"Invalid GitHub repository path '{repo_path}'. Expected format: 'owner/repository'"
        raise ConfigurationError(msg)
    return parts[0], parts[1]


@dataclass
class MigrationOptions:
    """Options for one migration run."""

    search_query: str
    owner: str
    repo: str
    jira_url: str
    max_results: int = 100
    # Transfer attachments into an upload repository instead of linking to Jira
    export: bool = False
    import_owner: str | None = None
    upload_repo: str | None = None
    import_path: str | None = None
    branch: str = "main"
    # Render attachments as links instead of embedded images
    link: bool = False
    link_children: bool = False
    link_related: bool = False
    link_prs: bool = False
    additional_label: str | None = None
    project_owner: str | None = None
    project_number: int | None = None
    batch_size: int = 10
    cooldown_seconds: float = 20.0
    enrichment_workers: int = 8
    github_host: str = "github.com"

    @property
    def repo_path(self) -> str:
        return f"{self.owner}/{self.repo}"

    def validate(self) -> None:
        """Check option combinations that cannot work together."""
        if not self.search_query.strip():
            msg = "A JQL search query is required"
            raise ConfigurationError(msg)
        if self.max_results < 1:
            msg = f"max_results must be positive, got {self.max_results}"
            raise ConfigurationError(msg)
        if self.batch_size < 1:
            msg = f"batch_size must be positive, got {self.batch_size}"
            raise ConfigurationError(msg)
        if self.cooldown_seconds < 0:
            msg = f"cooldown_seconds must not be negative, got {self.cooldown_seconds}"
            raise ConfigurationError(msg)
        if self.export and not (self.import_owner and self.upload_repo):
            msg = "Exporting attachments requires an upload repository (owner/repo)"
            raise ConfigurationError(msg)
        if self.project_number is not None and not self.project_owner:
            msg = "A project number requires a project owner"
            raise ConfigurationError(msg)
        if not self.jira_url.startswith(("http://", "https://")):
            msg = f"Invalid Jira URL: {self.jira_url}"
            raise ConfigurationError(msg)
