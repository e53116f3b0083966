"""Data models for migration between Jira and GitHub.

Source models mirror the subset of the Jira REST v3 issue payload the
migration reads. They are created once by ``jira_utils.parse_issue`` and are
not modified afterwards, except for remote links which the enrichment step
fills in by building a new record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

IDENTITY_TAG_FORMAT = "(jira: {key})"


def identity_tag(key: str) -> str:
    """Return the marker embedded in every migrated GitHub issue title."""
    return IDENTITY_TAG_FORMAT.format(key=key)


@dataclass(frozen=True)
class RichText:
    """A Jira text field decoded at the deserialization boundary.

    Jira v3 returns descriptions and comment bodies either as ``null``, as a
    plain string, or as an Atlassian Document Format tree.
    """

    kind: Literal["absent", "text", "document"]
    text: str = ""
    document: dict[str, Any] | None = None

    @classmethod
    def from_api(cls, value: object) -> RichText:
        if value is None:
            return cls(kind="absent")
        if isinstance(value, str):
            return cls(kind="text", text=value)
        if isinstance(value, dict):
            return cls(kind="document", document=value)
        return cls(kind="absent")


@dataclass(frozen=True)
class JiraAttachment:
    filename: str
    url: str  # Jira "content" URL
    size: int | None = None  # Declared length in bytes


@dataclass(frozen=True)
class JiraIssueLink:
    """A typed link as seen from the issue that carries it."""

    inward: str  # e.g. "Child of"
    outward: str  # e.g. "Parent of"
    inward_key: str | None = None
    outward_key: str | None = None


@dataclass(frozen=True)
class JiraComment:
    author: str
    body: RichText
    created: str


@dataclass(frozen=True)
class RemoteLink:
    """A remote link or a development-panel pull request."""

    id: str
    url: str
    title: str
    summary: str | None = None


@dataclass(frozen=True)
class IssueFields:
    issue_type: str
    summary: str
    status: str
    issue_type_description: str = ""
    status_color: str | None = None  # Status category colour name
    priority: str | None = None
    description: RichText = field(default_factory=lambda: RichText(kind="absent"))
    attachments: tuple[JiraAttachment, ...] = ()
    labels: tuple[str, ...] = ()
    components: tuple[str, ...] = ()
    fix_versions: tuple[str, ...] = ()
    versions: tuple[str, ...] = ()
    story_points: float | None = None
    sprints: tuple[str, ...] = ()
    issue_links: tuple[JiraIssueLink, ...] | None = None
    comments: tuple[JiraComment, ...] = ()
    assignee: str | None = None  # Display name
    reporter: str | None = None  # Display name
    remote_links: tuple[RemoteLink, ...] = ()


@dataclass(frozen=True)
class JiraIssue:
    id: str
    key: str
    fields: IssueFields


@dataclass(frozen=True)
class Asset:
    """A file stored in (or referenced from) the destination.

    ``name`` is ``{issue key}-{original filename}`` so that re-runs find
    assets uploaded earlier without a separate index.
    """

    name: str
    url: str
    download_url: str

    def matches(self, name: str) -> bool:
        return self.name.lower() == name.lower()


def asset_name(issue_key: str, filename: str) -> str:
    return f"{issue_key}-{filename}"


@dataclass(frozen=True)
class DownloadedAttachment:
    content: bytes
    sha512: str  # Base64 encoded digest


@dataclass(frozen=True)
class PullRequestReference:
    owner: str
    repo: str
    number: int
    url: str


@dataclass
class IssueRequest:
    """Everything needed to create one GitHub issue."""

    title: str
    body: str
    state: Literal["open", "closed"]
    labels: list[str] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)
    milestone: int | None = None  # GitHub milestone number
    assets: list[Asset] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)
    original_status: str | None = None
    original_priority: str | None = None
    pull_requests: list[PullRequestReference] = field(default_factory=list)


@dataclass(frozen=True)
class BoardOption:
    id: str
    name: str


@dataclass(frozen=True)
class BoardField:
    id: str
    name: str
    options: tuple[BoardOption, ...] = ()


@dataclass(frozen=True)
class ProjectBoard:
    """GitHub Projects (v2) board metadata, fetched once per run."""

    id: str
    fields: tuple[BoardField, ...] = ()

    def get_field(self, name: str) -> BoardField | None:
        return next((f for f in self.fields if f.name.lower() == name.lower()), None)
