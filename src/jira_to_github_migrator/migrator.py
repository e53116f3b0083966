"""
Main migration class for Jira to GitHub migration.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

import requests
from github import GithubException

from . import github_utils as ghu
from .attachments import AttachmentResolver
from .exceptions import JiraRequestError, MigrationError
from .issue_builder import IssueConverter
from .jira_fetch import fetch_issues
from .labels import LabelCache
from .orchestrator import GithubOrchestrator
from .relationships import CHILDREN_RELATION, RELATED_RELATION, build_link_graph, find_issue

if TYPE_CHECKING:
    import threading
    from collections.abc import Callable, Sequence

    from github import Github
    from github.Issue import Issue

    from .config import MigrationOptions, ParserSettings
    from .jira_utils import JiraClient
    from .models import IssueRequest, JiraIssue

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)


class JiraToGithubMigrator:
    """Main migration class.

    A run has three phases: read all Jira issues, convert them all, then
    create them all. GitHub is listed once before converting; issues whose
    identity tag is already present in a GitHub title are skipped, which
    makes re-running after a partial run safe.
    """

    def __init__(
        self,
        options: MigrationOptions,
        settings: ParserSettings,
        *,
        jira_client: JiraClient,
        github_client: Github,
        cancel_event: threading.Event | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.options: MigrationOptions = options
        self.settings: ParserSettings = settings
        self.jira_client: JiraClient = jira_client
        self.github_client: Github = github_client

        upload_repo = (
            ghu.get_repo(github_client, f"{options.import_owner}/{options.upload_repo}") if options.export else None
        )
        self.orchestrator: GithubOrchestrator = GithubOrchestrator(
            github_client,
            ghu.get_repo(github_client, options.repo_path),
            upload_repo=upload_repo,
            import_path=options.import_path,
            branch=options.branch,
            project_owner=options.project_owner,
            project_number=options.project_number,
            batch_size=options.batch_size,
            cooldown_seconds=options.cooldown_seconds,
            cancel_event=cancel_event,
            sleep=sleep,
        )

        # Jira key -> number of the GitHub issue that already carries it
        self.excluded: dict[str, int] = {}

        logger.info(f"Initialized migrator for '{options.search_query}' -> {options.repo_path}")

    def validate_api_access(self) -> None:
        """Validate Jira and GitHub API access."""
        try:
            self.jira_client.get_json("rest/api/3/myself")
            logger.info("Jira API access validated")
        except (requests.RequestException, ValueError) as e:
            msg = f"Jira API access failed: {e}"
            raise JiraRequestError(msg) from e

        self.orchestrator.validate_access()

    def fetch_jira_issues(self) -> list[JiraIssue]:
        return fetch_issues(
            self.jira_client,
            self.options.search_query,
            self.options.max_results,
            self.settings,
            include_development=self.options.link_prs,
            workers=self.options.enrichment_workers,
        )

    def exclude_migrated(self, issues: Sequence[JiraIssue], existing: Sequence[Issue]) -> list[JiraIssue]:
        """Drop issues whose identity tag already appears in a GitHub issue title."""
        remaining: list[JiraIssue] = []
        for issue in issues:
            match = find_issue(existing, issue.key)
            if match is None:
                remaining.append(issue)
                continue
            self.excluded[issue.key] = match.number
            logger.info(f"Skipping {issue.key}: already migrated as #{match.number} ({match.title})")

        if self.excluded:
            logger.info(f"Excluded {len(self.excluded)} issues that already exist in {self.options.repo_path}")
        return remaining

    def convert_issues(self, issues: Sequence[JiraIssue]) -> list[IssueRequest]:
        """Convert all issues, creating the labels and milestones they need."""
        label_cache = LabelCache(label.name for label in self.orchestrator.list_labels())
        milestones = self.orchestrator.list_milestones()
        attachments = AttachmentResolver(
            self.jira_client,
            self.orchestrator,
            self.orchestrator.list_assets() if self.options.export else (),
            transfer=self.options.export,
            render_as_link=self.options.link,
        )
        converter = IssueConverter(self.options, self.settings, self.orchestrator, attachments, label_cache, milestones)
        return converter.convert_all(issues)

    def link_relationships(
        self,
        issues: Sequence[JiraIssue],
        existing: Sequence[Issue],
        created: Sequence[Issue],
    ) -> dict[str, int]:
        """Wire children and related issues among the existing and created issues."""
        linked: dict[str, int] = {"parents_linked": 0, "related_comments": 0}
        if not created:
            return linked

        if self.options.link_children:
            graph = build_link_graph(issues, CHILDREN_RELATION)
            linked["parents_linked"] = self.orchestrator.link_children(graph, existing, created)

        if self.options.link_related:
            graph = build_link_graph(issues, RELATED_RELATION)
            linked["related_comments"] = self.orchestrator.link_related(graph, existing, created)

        return linked

    def migrate(self) -> dict[str, Any]:
        """Execute the complete migration process.

        Returns:
            Report with ``success``, ``errors`` and ``statistics``

        Raises:
            MigrationError: If the run cannot continue
        """
        errors: list[str] = []
        statistics: dict[str, int] = {}
        report: dict[str, Any] = {
            "jira_query": self.options.search_query,
            "github_repo": self.options.repo_path,
            "success": True,
            "errors": errors,
            "statistics": statistics,
        }

        try:
            logger.info("Starting Jira to GitHub migration")
            self.validate_api_access()

            issues = self.fetch_jira_issues()
            existing = self.orchestrator.list_issues()
            to_create = self.exclude_migrated(issues, existing)

            issue_requests = self.convert_issues(to_create)
            created = self.orchestrator.create_issues(issue_requests)
            linked = self.link_relationships(issues, existing, created)

        except (GithubException, requests.RequestException) as e:
            logger.exception("Migration failed")
            msg = f"Migration failed: {e}"
            raise MigrationError(msg) from e

        statistics.update(
            {
                "jira_issues_total": len(issues),
                "jira_issues_excluded": len(self.excluded),
                "github_issues_existing": len(existing),
                "github_issues_requested": len(issue_requests),
                "github_issues_created": len(created),
                "github_mutations": self.orchestrator.mutation_count,
                **linked,
            }
        )

        failed = len(issue_requests) - len(created)
        if failed:
            errors.append(f"Failed to create {failed} of {len(issue_requests)} issues")
            report["success"] = False

        logger.info("Migration completed" if report["success"] else "Migration completed with errors")
        return report
