"""Read Jira issues: paginated search plus per-issue enrichment.

Search uses the continuation-token endpoint ``rest/api/3/search/jql``. After
each page, the remote links and development-panel pull requests of that
page's issues are fetched concurrently; the page is only handed on once all
of them have returned, and results keep the listing order.
"""

from __future__ import annotations

import dataclasses
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, Final

import requests

from .exceptions import JiraRequestError
from .jira_utils import ISSUE_FIELDS, parse_issue, parse_remote_link
from .models import JiraIssue, RemoteLink

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from .config import ParserSettings
    from .jira_utils import JiraClient

logger: logging.Logger = logging.getLogger(__name__)

SEARCH_PATH: Final[str] = "rest/api/3/search/jql"
DEV_STATUS_PATH: Final[str] = "rest/dev-status/1.0/issue/details"
_DEV_STATUS_PREFIX: Final[str] = "PR Status: "


def _is_development_link(link: RemoteLink) -> bool:
    return bool(link.summary and link.summary.startswith(_DEV_STATUS_PREFIX))


def dev_status_variants(issue_id: str) -> list[dict[str, str]]:
    """Query variants for the development-panel endpoint, most specific first."""
    return [
        {"issueId": issue_id, "applicationType": "github", "dataType": "pullrequest"},
        {"issueId": issue_id},
    ]


def _request_page(
    client: JiraClient,
    jql: str,
    max_results: int,
    next_page_token: str | None,
    fields: Sequence[str],
) -> dict[str, Any]:
    params: dict[str, Any] = {"jql": jql, "maxResults": max_results, "fields": ",".join(fields)}
    if next_page_token:
        params["nextPageToken"] = next_page_token

    logger.info(f"[Jira] Requesting up to {max_results} issues with JQL: {jql}")
    try:
        payload = client.get_json(SEARCH_PATH, params=params)
    except (requests.RequestException, ValueError) as e:
        msg = f"Jira issue search failed: {e}"
        raise JiraRequestError(msg) from e

    if not isinstance(payload, dict):
        msg = "Jira issue search returned an unexpected payload"
        raise JiraRequestError(msg)

    logger.info(f"[Jira] Received {len(payload.get('issues') or [])} issues")
    return payload


def iter_issue_pages(
    client: JiraClient,
    jql: str,
    max_results: int,
    fields: Sequence[str] = ISSUE_FIELDS,
) -> Iterator[list[dict[str, Any]]]:
    """Yield raw issue pages until the search is exhausted.

    Every request after the first asks for ``min(max_results, total - received)``
    issues. Iteration stops when a page is shorter than requested, the
    reported total is reached, or no continuation token is returned.

    Raises:
        JiraRequestError: If any page request fails
    """
    received = 0
    requested = max_results
    next_page_token: str | None = None

    while True:
        payload = _request_page(client, jql, requested, next_page_token, fields)
        issues: list[dict[str, Any]] = payload.get("issues") or []
        received += len(issues)
        yield issues

        next_page_token = payload.get("nextPageToken")
        if len(issues) < requested or not next_page_token or payload.get("isLast") is True:
            break

        total = payload.get("total")
        if total is None:
            requested = max_results
            continue

        remaining = int(total) - received
        if remaining <= 0:
            break
        requested = min(max_results, remaining)


def fetch_remote_links(client: JiraClient, issue: JiraIssue) -> list[RemoteLink]:
    """Fetch the issue's remote links; failures degrade to an empty list."""
    logger.debug(f"Requesting remote links for issue {issue.key}")
    try:
        data = client.get_json(f"rest/api/3/issue/{issue.key}/remotelink")
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Couldn't fetch remote links for issue {issue.key}: {e}")
        return []

    links = [parse_remote_link(item) for item in data or [] if isinstance(item, dict)]
    logger.debug(f"Found {len(links)} remote links for issue {issue.key}")
    return links


def fetch_development_links(client: JiraClient, issue: JiraIssue) -> list[RemoteLink]:
    """Fetch pull requests from the issue's development panel.

    Each endpoint variant is tried in order. A failing variant and a variant
    that yields no pull request both move on to the next one; when all are
    exhausted the result is empty.
    """
    for params in dev_status_variants(issue.id):
        try:
            data = client.get_json(DEV_STATUS_PATH, params=params)
        except (requests.RequestException, ValueError) as e:
            logger.debug(f"Development info endpoint {params} failed for {issue.key}, trying next: {e}")
            continue

        details = data.get("detail") if isinstance(data, dict) else None
        pull_requests: list[dict[str, Any]] = [
            pr for detail in details or [] if isinstance(detail, dict) for pr in detail.get("pullRequests") or []
        ]
        if not pull_requests:
            logger.debug(f"Found 0 pull requests for {issue.key} with {params}")
            continue

        logger.info(f"Found {len(pull_requests)} pull requests in the development panel of {issue.key}")
        return [
            RemoteLink(
                id=str(pr.get("id", "")),
                url=pr.get("url", ""),
                title=pr.get("name", ""),
                summary=f"{_DEV_STATUS_PREFIX}{pr.get('status', '')}",
            )
            for pr in pull_requests
        ]

    logger.debug(f"No development info found for {issue.key} with any known endpoint")
    return []


def enrich_issue(client: JiraClient, issue: JiraIssue, *, include_development: bool) -> JiraIssue:
    """Return a copy of the issue with remote links (and development PRs) attached."""
    links = fetch_remote_links(client, issue)
    if include_development:
        links.extend(fetch_development_links(client, issue))
    return dataclasses.replace(issue, fields=dataclasses.replace(issue.fields, remote_links=tuple(links)))


def fetch_issues(
    client: JiraClient,
    jql: str,
    max_results: int,
    settings: ParserSettings,
    *,
    include_development: bool = False,
    workers: int = 8,
) -> list[JiraIssue]:
    """Fetch, decode and enrich all issues matching ``jql``, in listing order."""
    fields = (*ISSUE_FIELDS, settings.story_points_field, settings.sprints_field)
    issues: list[JiraIssue] = []

    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        for raw_page in iter_issue_pages(client, jql, max_results, fields):
            page = [parse_issue(raw, settings) for raw in raw_page]
            # map() preserves input order and re-raises worker exceptions
            enriched = list(
                executor.map(lambda i: enrich_issue(client, i, include_development=include_development), page)
            )
            issues.extend(enriched)

    logger.info(f"Received {len(issues)} Jira issues")

    if include_development and issues:
        with_prs = sum(1 for i in issues if any(_is_development_link(link) for link in i.fields.remote_links))
        if with_prs == 0:
            logger.warning(
                "No development-panel pull requests were found for any issue. "
                "Check that the GitHub for Jira app is installed and the token can read development info."
            )
    return issues
