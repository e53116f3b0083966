"""
Pytest configuration and fixtures.

Jira payloads are built as plain dicts shaped like the REST v3 responses;
GitHub objects are ``Mock`` instances carrying the attributes the code reads.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from unittest.mock import Mock

import pytest

from jira_to_github_migrator.config import MigrationOptions, ParserSettings
from jira_to_github_migrator.orchestrator import GithubOrchestrator

if TYPE_CHECKING:
    from collections.abc import Callable


def _raw_issue(
    key: str = "ABC-1",
    *,
    issue_id: str = "10001",
    summary: str = "Login fails",
    status: str = "To Do",
    **fields: Any,
) -> dict[str, Any]:
    raw_fields: dict[str, Any] = {
        "summary": summary,
        "issuetype": {"name": "Bug", "description": "A problem"},
        "status": {"name": status, "statusCategory": {"colorName": "blue-gray"}},
        "priority": {"name": "High"},
        "labels": [],
        "components": [],
        "fixVersions": [],
        "versions": [],
        "attachment": [],
        "issuelinks": [],
        "comment": {"comments": []},
        "reporter": {"displayName": "Rita Reporter"},
        "assignee": None,
        "description": None,
    }
    raw_fields.update(fields)
    return {"id": issue_id, "key": key, "fields": raw_fields}


def _github_issue(number: int, title: str, body: str = "") -> Mock:
    issue = Mock()
    issue.number = number
    issue.title = title
    issue.body = body
    issue.node_id = f"I_node{number}"
    return issue


@pytest.fixture
def raw_issue() -> Callable[..., dict[str, Any]]:
    """Factory for Jira search result entries."""
    return _raw_issue


@pytest.fixture
def github_issue() -> Callable[..., Mock]:
    """Factory for GitHub issues."""
    return _github_issue


@pytest.fixture
def settings() -> ParserSettings:
    return ParserSettings()


@pytest.fixture
def options() -> MigrationOptions:
    return MigrationOptions(
        search_query="project = ABC",
        owner="acme",
        repo="tracker",
        jira_url="https://acme.atlassian.net",
    )


@pytest.fixture
def sleeps() -> list[float]:
    """Cooldowns requested by the orchestrator fixture."""
    return []


@pytest.fixture
def github_client() -> Mock:
    return Mock()


@pytest.fixture
def github_repo() -> Mock:
    repo = Mock()
    repo.full_name = "acme/tracker"
    return repo


@pytest.fixture
def orchestrator(github_client: Mock, github_repo: Mock, sleeps: list[float]) -> GithubOrchestrator:
    return GithubOrchestrator(github_client, github_repo, batch_size=10, cooldown_seconds=20.0, sleep=sleeps.append)
