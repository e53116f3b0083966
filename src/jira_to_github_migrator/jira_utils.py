"""Jira REST access: tokens, transport and payload decoding."""

from __future__ import annotations

import base64
import hashlib
import logging
import os
import threading
from typing import TYPE_CHECKING, Any, Final
from urllib.parse import urljoin

import requests

from . import utils
from .exceptions import IntegrityMismatchError
from .models import (
    DownloadedAttachment,
    IssueFields,
    JiraAttachment,
    JiraComment,
    JiraIssue,
    JiraIssueLink,
    RemoteLink,
    RichText,
)

if TYPE_CHECKING:
    from .config import ParserSettings

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_TOKEN_ENV_VAR: Final[str] = "JIRA_TOKEN"  # noqa: S105
_USER_ENV_VAR: Final[str] = "JIRA_USER"
_DEFAULT_TOKEN_PASS_PATH: Final[str] = "jira/cli/token"  # noqa: S105
DEFAULT_TIMEOUT: Final[int] = 30

ISSUE_FIELDS: Final[tuple[str, ...]] = (
    "id",
    "key",
    "labels",
    "issuetype",
    "project",
    "status",
    "description",
    "summary",
    "components",
    "fixVersions",
    "versions",
    "attachment",
    "assignee",
    "issuelinks",
    "reporter",
    "comment",
    "priority",
)


def get_token(pass_path: str | None = None) -> str | None:
    """Get Jira API token from pass path, env var JIRA_TOKEN, or default pass location."""
    if pass_path:
        return utils.get_pass_value(pass_path)

    token: str | None = os.environ.get(_TOKEN_ENV_VAR)
    if token:
        return token

    try:
        return utils.get_pass_value(_DEFAULT_TOKEN_PASS_PATH)
    except (ValueError, utils.PassError):
        logger.warning("No Jira token specified nor found")
        return None


def get_user(user: str | None = None) -> str | None:
    """Get the Jira account e-mail from the argument or env var JIRA_USER."""
    return user or os.environ.get(_USER_ENV_VAR)


class JiraClient:
    """Thin wrapper around ``requests`` sessions bound to one Jira instance.

    The session passed in (or created) serves the thread that built the
    client. Other threads, such as the enrichment workers, each get their own
    session carrying the same auth and headers.
    """

    base_url: str
    timeout: int
    _session: requests.Session
    _owner_thread: int
    _local: threading.local
    _cancel_event: threading.Event | None

    def __init__(
        self,
        base_url: str,
        *,
        user: str | None = None,
        token: str | None = None,
        session: requests.Session | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        self._session = session or requests.Session()
        if user and token:
            self._session.auth = (user, token)
        self._session.headers.setdefault("Accept", "application/json")
        self._owner_thread = threading.get_ident()
        self._local = threading.local()
        self._cancel_event = cancel_event

    def _thread_session(self) -> requests.Session:
        if threading.get_ident() == self._owner_thread:
            return self._session
        session: requests.Session | None = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.auth = self._session.auth
            session.headers.update(self._session.headers)
            self._local.session = session
        return session

    def browse_url(self, key: str) -> str:
        return urljoin(self.base_url, f"browse/{key}")

    def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:  # noqa: ANN401 - JSON payload
        """GET a JSON resource relative to the instance URL.

        Raises:
            requests.RequestException: On transport errors and non-2xx responses
        """
        utils.check_cancelled(self._cancel_event, f"GET {path}")
        response = self._thread_session().get(urljoin(self.base_url, path), params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def download_attachment(self, url: str, declared_size: int | None = None) -> DownloadedAttachment:
        """Download attachment bytes and verify their length.

        The content is hashed with SHA-512 so uploads can be traced back to
        the exact bytes that were transferred.

        Raises:
            requests.RequestException: If the download fails
            IntegrityMismatchError: If the received length differs from the declared one
        """
        utils.check_cancelled(self._cancel_event, f"download of {url}")
        response = self._thread_session().get(url, timeout=self.timeout)
        response.raise_for_status()
        content = response.content

        filename = url.rsplit("/", 1)[-1]
        # Content-Length counts encoded bytes when the body was compressed in transit
        header_length = None if response.headers.get("Content-Encoding") else response.headers.get("Content-Length")
        expected_lengths = [declared_size] if declared_size is not None else []
        if header_length is not None and header_length.isdigit():
            expected_lengths.append(int(header_length))
        for expected in expected_lengths:
            if expected != len(content):
                msg = f"Asset {filename} transmitted length {expected} doesn't match actual length {len(content)}."
                raise IntegrityMismatchError(msg)

        digest = base64.b64encode(hashlib.sha512(content).digest()).decode("ascii")
        logger.debug(f"Downloaded {filename}: {len(content)} bytes, sha512 {digest}")
        return DownloadedAttachment(content=content, sha512=digest)


def _names(items: list[dict[str, Any]] | None) -> tuple[str, ...]:
    return tuple(item["name"] for item in items or [] if item.get("name"))


def _display_name(person: dict[str, Any] | None) -> str | None:
    if not person:
        return None
    return person.get("displayName")


def parse_sprint_name(sprint: object) -> str | None:
    """Return a sprint name from a Jira Cloud sprint object or a legacy sprint string.

    Legacy format: ``com.atlassian.greenhopper.service.sprint.Sprint@1[id=1,name=Sprint 1,...]``
    """
    if isinstance(sprint, dict):
        return sprint.get("name")
    if isinstance(sprint, str):
        return sprint.split("name=")[-1].split(",")[0].strip() or None
    return None


def _parse_link(raw: dict[str, Any]) -> JiraIssueLink:
    link_type = raw.get("type") or {}
    inward_issue = raw.get("inwardIssue") or {}
    outward_issue = raw.get("outwardIssue") or {}
    return JiraIssueLink(
        inward=link_type.get("inward", ""),
        outward=link_type.get("outward", ""),
        inward_key=inward_issue.get("key"),
        outward_key=outward_issue.get("key"),
    )


def parse_remote_link(raw: dict[str, Any]) -> RemoteLink:
    obj = raw.get("object") or {}
    return RemoteLink(
        id=str(raw.get("id", "")),
        url=obj.get("url", ""),
        title=obj.get("title", ""),
        summary=obj.get("summary"),
    )


def parse_issue(raw: dict[str, Any], settings: ParserSettings) -> JiraIssue:
    """Decode one issue from the search payload.

    Text fields are decoded into ``RichText`` here so that later stages never
    need to inspect the JSON shape again.
    """
    fields: dict[str, Any] = raw.get("fields") or {}
    issue_type = fields.get("issuetype") or {}
    status = fields.get("status") or {}
    priority = fields.get("priority") or {}

    story_points = fields.get(settings.story_points_field)
    sprints = [parse_sprint_name(s) for s in fields.get(settings.sprints_field) or []]

    raw_links = fields.get("issuelinks")
    comment_page = fields.get("comment") or {}

    return JiraIssue(
        id=str(raw["id"]),
        key=raw["key"],
        fields=IssueFields(
            issue_type=issue_type.get("name", ""),
            issue_type_description=issue_type.get("description") or "",
            summary=fields.get("summary") or "",
            status=status.get("name", ""),
            status_color=(status.get("statusCategory") or {}).get("colorName"),
            priority=priority.get("name"),
            description=RichText.from_api(fields.get("description")),
            attachments=tuple(
                JiraAttachment(filename=a["filename"], url=a["content"], size=a.get("size"))
                for a in fields.get("attachment") or []
            ),
            labels=tuple(fields.get("labels") or []),
            components=_names(fields.get("components")),
            fix_versions=_names(fields.get("fixVersions")),
            versions=_names(fields.get("versions")),
            story_points=float(story_points) if isinstance(story_points, (int, float)) else None,
            sprints=tuple(s for s in sprints if s),
            issue_links=tuple(_parse_link(link) for link in raw_links) if raw_links is not None else None,
            comments=tuple(
                JiraComment(
                    author=_display_name(c.get("author")) or "N/A",
                    body=RichText.from_api(c.get("body")),
                    created=c.get("created", ""),
                )
                for c in comment_page.get("comments") or []
            ),
            assignee=_display_name(fields.get("assignee")),
            reporter=_display_name(fields.get("reporter")),
        ),
    )
