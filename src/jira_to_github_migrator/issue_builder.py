"""Build GitHub issue requests from Jira issue data."""

from __future__ import annotations

import datetime as dt
import logging
import re
from typing import TYPE_CHECKING, Final, Literal
from urllib.parse import urlparse

from .adf import rich_text_to_str
from .labels import compute_labels
from .models import IssueRequest, PullRequestReference, identity_tag

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from github.Milestone import Milestone

    from .attachments import AttachmentResolver
    from .config import EmailMapping, MigrationOptions, ParserSettings
    from .labels import LabelCache
    from .models import Asset, JiraComment, JiraIssue, RemoteLink
    from .orchestrator import GithubOrchestrator

logger: logging.Logger = logging.getLogger(__name__)

NOT_AVAILABLE: Final[str] = "N/A"

# [label|url] or [url], not already followed by a markdown link target
WIKI_LINK_PATTERN: Final[re.Pattern[str]] = re.compile(r"\[([^\[\]\n]{1,255})\](?!\()")
PULL_REQUEST_PATH_PATTERN: Final[re.Pattern[str]] = re.compile(r"^/([^/]+)/([^/]+)/pull/(\d+)")


def map_state(status: str, state_mapping: dict[str, list[str]]) -> Literal["open", "closed"]:
    """Map a Jira status name to a GitHub issue state (case-insensitive).

    Statuses missing from the mapping are opened, with a warning.
    """
    wanted = status.lower()
    for state in ("closed", "open"):
        if any(name.lower() == wanted for name in state_mapping.get(state, [])):
            return state
    logger.warning(f"Could not find {status} in state mapping, automatically set to open")
    return "open"


def map_assignee(display_name: str | None, mappings: Sequence[EmailMapping]) -> list[str]:
    if not display_name:
        return []
    wanted = display_name.lower()
    return [m.github_name for m in mappings if m.jira_username.lower() == wanted][:1]


def format_timestamp(timestamp: str) -> str:
    """Format a Jira timestamp as ``dd.mm.yyyy HH:MM``.

    Returns the original value if it cannot be parsed.
    """
    for parse in (dt.datetime.fromisoformat, lambda v: dt.datetime.strptime(v, "%Y-%m-%dT%H:%M:%S.%f%z")):
        try:
            return parse(timestamp).strftime("%d.%m.%Y %H:%M")
        except (ValueError, TypeError):
            continue
    return timestamp


def format_comment(comment: JiraComment) -> str:
    return f"*{comment.author}* wrote on {format_timestamp(comment.created)}:\n\n{rich_text_to_str(comment.body)}"


def _replace_wiki_link(match: re.Match[str]) -> str:
    link = match.group(1)
    if not link.strip():
        return match.group(0)
    if "|" in link:
        label, url = link.split("|", 1)
        return f"[{label}]({url})"
    return f"[{link.rsplit('/', 1)[-1]}]({link})"


def rewrite_wiki_links(text: str) -> str:
    """Turn ``[label|url]`` into ``[label](url)`` and ``[url]`` into ``[basename](url)``."""
    return WIKI_LINK_PATTERN.sub(_replace_wiki_link, text)


def parse_pull_request(url: str, host: str) -> PullRequestReference | None:
    """Parse ``https://{host}/{owner}/{repo}/pull/{number}`` URLs."""
    parsed = urlparse(url)
    if (parsed.hostname or "").lower() != host.lower():
        return None
    match = PULL_REQUEST_PATH_PATTERN.match(parsed.path)
    if match is None:
        return None
    owner, repo, number = match.groups()
    return PullRequestReference(owner=owner, repo=repo, number=int(number), url=url)


def extract_pull_requests(
    links: Iterable[RemoteLink], host: str
) -> list[tuple[RemoteLink, PullRequestReference]]:
    """Pick the links pointing at pull requests on the GitHub host, deduplicated by URL."""
    found: list[tuple[RemoteLink, PullRequestReference]] = []
    seen: set[str] = set()
    for link in links:
        reference = parse_pull_request(link.url, host)
        if reference is None or link.url in seen:
            continue
        seen.add(link.url)
        found.append((link, reference))
    return found


def render_template(template: str, values: dict[str, str]) -> str:
    """Substitute ``{{Token}}`` placeholders; empty values become ``N/A``."""
    result = template
    for token, value in values.items():
        result = result.replace(f"{{{{{token}}}}}", value or NOT_AVAILABLE)
    return result


def _join(values: Iterable[str]) -> str:
    return ", ".join(v for v in values if v)


class IssueConverter:
    """Turns Jira issues into GitHub issue requests.

    Creates missing labels and milestones on the way, so the requests only
    refer to objects present in the repository.
    """

    def __init__(
        self,
        options: MigrationOptions,
        settings: ParserSettings,
        orchestrator: GithubOrchestrator,
        attachments: AttachmentResolver,
        labels: LabelCache,
        milestones: list[Milestone],
    ) -> None:
        self.options = options
        self.settings = settings
        self._orchestrator = orchestrator
        self._attachments = attachments
        self._labels = labels
        # Shared with the caller and appended to when milestones are created
        self._milestones = milestones

    def resolve_milestone(self, fix_versions: Sequence[str]) -> int | None:
        """Milestone number for the issue's last fix version, creating the milestone if needed.

        Raises:
            CriticalSetupError: If the milestone cannot be created
        """
        if not fix_versions:
            return None

        title = fix_versions[-1]
        for milestone in self._milestones:
            if milestone.title.lower() == title.lower():
                return milestone.number

        milestone = self._orchestrator.create_milestone(title)
        self._milestones.append(milestone)
        return milestone.number

    def build_description(
        self,
        issue: JiraIssue,
        pull_requests: Sequence[tuple[RemoteLink, PullRequestReference]] = (),
    ) -> tuple[str, list[Asset]]:
        """Render the description template.

        Returns:
            The body and the attachments that were not linked from the text
        """
        fields = issue.fields
        assets = self._attachments.resolve_assets(issue)

        text = rich_text_to_str(fields.description).replace("\u00a0", " ")
        processed = self._attachments.link_placeholders(text, assets, context=issue.key)
        description = rewrite_wiki_links(processed.content)

        body = render_template(
            self.settings.description_template,
            {
                "Description": description,
                "Components": _join(fields.components),
                "Sprints": _join(fields.sprints),
                "FixVersions": _join(fields.fix_versions),
                "StoryPoints": f"{fields.story_points:g}" if fields.story_points is not None else "",
                "Attachments": self._attachments.format_asset_list(processed.unlinked_assets),
                "Reporter": fields.reporter or "",
                "JiraLink": f"{self.options.jira_url.rstrip('/')}/browse/{issue.key}",
                "PullRequests": _join(f"[{link.title or link.url}]({link.url})" for link, _ in pull_requests),
            },
        )
        return body, processed.unlinked_assets

    def convert(self, issue: JiraIssue) -> IssueRequest:
        """Build the creation request for one issue.

        Raises:
            CriticalSetupError: If a milestone cannot be created or an attachment cannot be uploaded
        """
        fields = issue.fields
        logger.debug(f"Converting {issue.key}")

        pull_requests = (
            extract_pull_requests(fields.remote_links, self.options.github_host) if self.options.link_prs else []
        )
        body, unlinked_assets = self.build_description(issue, pull_requests)

        labels = compute_labels(fields, self.options.additional_label)
        self._labels.ensure(labels, self._orchestrator)

        return IssueRequest(
            title=f"{fields.summary} {identity_tag(issue.key)}",
            body=body,
            state=map_state(fields.status, self.settings.state_mapping),
            labels=[label.name for label in labels],
            assignees=map_assignee(fields.assignee, self.settings.email_mappings),
            milestone=self.resolve_milestone(fields.fix_versions),
            assets=unlinked_assets,
            comments=[format_comment(comment) for comment in fields.comments],
            original_status=fields.status or None,
            original_priority=fields.priority,
            pull_requests=[reference for _, reference in pull_requests],
        )

    def convert_all(self, issues: Sequence[JiraIssue]) -> list[IssueRequest]:
        issue_requests = [self.convert(issue) for issue in issues]
        logger.info(f"Converted {len(issue_requests)} issues")
        return issue_requests
