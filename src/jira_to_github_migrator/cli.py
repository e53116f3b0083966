"""
Command-line interface for the Jira to GitHub migration tool.
"""

from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import threading
from typing import TYPE_CHECKING, Any

from . import github_utils as ghu
from . import jira_utils
from .config import MigrationOptions, load_settings, split_repo_path
from .exceptions import ConfigurationError, MigrationCancelledError
from .jira_utils import JiraClient
from .migrator import JiraToGithubMigrator
from .utils import setup_logging

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

logger: logging.Logger = logging.getLogger(__name__)


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Migrate Jira issues to GitHub issues")

    # Positional arguments
    _ = parser.add_argument("jql", help="JQL query selecting the Jira issues to migrate")
    _ = parser.add_argument("github_repo", help="GitHub repository path (owner/repo)")

    # Jira connection
    _ = parser.add_argument(
        "--jira-url", default=os.environ.get("JIRA_URL"), help="Jira instance URL (default: env var JIRA_URL)"
    )
    _ = parser.add_argument("--jira-user", help="Jira account e-mail (default: env var JIRA_USER)")
    _ = parser.add_argument(
        "--jira-pass-token", help="Path for Jira API token in pass utility (default: env var JIRA_TOKEN, then jira/cli/token)"
    )
    _ = parser.add_argument(
        "--github-pass-token", help="Path for GitHub token in pass utility (default: env var GITHUB_TOKEN, then github/cli/token)"
    )
    _ = parser.add_argument("--settings", "-s", help="JSON file with state/assignee mappings and the description template")
    _ = parser.add_argument("--max-results", type=int, default=100, help="Issues requested per Jira page (default: 100)")

    # Attachments
    _ = parser.add_argument(
        "--export", action="store_true", help="Copy attachments into the upload repository instead of linking to Jira"
    )
    _ = parser.add_argument("--upload-repo", help="Repository receiving the attachments (owner/repo)")
    _ = parser.add_argument("--import-path", help="Directory of the attachments in the upload repository")
    _ = parser.add_argument("--branch", default="main", help="Branch of the upload repository (default: main)")
    _ = parser.add_argument("--link", action="store_true", help="Render attachments as links instead of embedding them")

    # Relationships
    _ = parser.add_argument("--link-children", action="store_true", help="Add a children checklist to parent issues")
    _ = parser.add_argument("--link-related", action="store_true", help="Comment with related issues")
    _ = parser.add_argument(
        "--link-prs", action="store_true", help="Reference linked pull requests and comment on them"
    )
    _ = parser.add_argument("--github-host", default="github.com", help="Host of pull request URLs (default: github.com)")

    # Labels and project board
    _ = parser.add_argument("--label", help="Additional label added to every migrated issue")
    _ = parser.add_argument("--project-owner", help="Owner (user or organization) of the GitHub project board")
    _ = parser.add_argument("--project-number", type=int, help="Number of the GitHub project board")

    # Rate limiting
    _ = parser.add_argument("--batch-size", type=int, default=10, help="Writes between two cooldowns (default: 10)")
    _ = parser.add_argument("--cooldown", type=float, default=20.0, help="Cooldown in seconds (default: 20)")
    _ = parser.add_argument("--workers", type=int, default=8, help="Concurrent Jira enrichment requests (default: 8)")

    _ = parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    return parser.parse_args(argv)


def build_options(args: argparse.Namespace) -> MigrationOptions:
    """Turn parsed arguments into validated migration options."""
    if not args.jira_url:
        msg = "A Jira URL is required (--jira-url or env var JIRA_URL)"
        raise ConfigurationError(msg)

    owner, repo = split_repo_path(args.github_repo)
    import_owner, upload_repo = split_repo_path(args.upload_repo) if args.upload_repo else (None, None)

    options = MigrationOptions(
        search_query=args.jql,
        owner=owner,
        repo=repo,
        jira_url=args.jira_url,
        max_results=args.max_results,
        export=args.export,
        import_owner=import_owner,
        upload_repo=upload_repo,
        import_path=args.import_path,
        branch=args.branch,
        link=args.link,
        link_children=args.link_children,
        link_related=args.link_related,
        link_prs=args.link_prs,
        additional_label=args.label,
        project_owner=args.project_owner,
        project_number=args.project_number,
        batch_size=args.batch_size,
        cooldown_seconds=args.cooldown,
        enrichment_workers=args.workers,
        github_host=args.github_host,
    )
    options.validate()
    return options


def install_signal_handlers(cancel_event: threading.Event) -> None:
    """Set the cancellation event on SIGINT/SIGTERM so the run stops at the next call."""

    def handle(signum: int, _frame: FrameType | None) -> None:
        logger.warning(f"Received {signal.Signals(signum).name}, stopping after the current request")
        cancel_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        _ = signal.signal(signum, handle)


def print_report(report: dict[str, Any]) -> None:
    print(f"Migration of '{report['jira_query']}' to {report['github_repo']}")
    for key, value in report["statistics"].items():
        print(f"  {key}: {value}")
    for error in report["errors"]:
        print(f"  ERROR: {error}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)

    # Setup logging
    verbose: bool = getattr(args, "verbose", False)
    setup_logging(verbose=verbose)

    cancel_event = threading.Event()
    install_signal_handlers(cancel_event)

    try:
        options = build_options(args)
        settings = load_settings(args.settings)

        github_token = ghu.get_token(args.github_pass_token)
        if not github_token:
            msg = "A GitHub token is required (--github-pass-token or env var GITHUB_TOKEN)"
            raise ConfigurationError(msg)

        jira_client = JiraClient(
            options.jira_url,
            user=jira_utils.get_user(args.jira_user),
            token=jira_utils.get_token(args.jira_pass_token),
            cancel_event=cancel_event,
        )

        migrator = JiraToGithubMigrator(
            options,
            settings,
            jira_client=jira_client,
            github_client=ghu.get_client(github_token),
            cancel_event=cancel_event,
        )

        # Execute migration
        report = migrator.migrate()
        print_report(report)

        if report["success"]:
            sys.exit(0)
        else:
            sys.exit(1)

    except MigrationCancelledError as e:
        logger.warning(str(e))
        sys.exit(1)
    except Exception:
        logger.exception("Migration failed")
        sys.exit(1)
