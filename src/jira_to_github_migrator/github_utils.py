from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Final, TypeVar

from github import Auth, Github, GithubException, InputGitAuthor

from . import utils
from .exceptions import CriticalSetupError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from github.ContentFile import ContentFile
    from github.Repository import Repository

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_TOKEN_ENV_VAR: Final[str] = "GITHUB_TOKEN"  # noqa: S105
_DEFAULT_TOKEN_PASS_PATH: Final[str] = "github/cli/token"  # noqa: S105

T = TypeVar("T")


def get_token(pass_path: str | None = None) -> str | None:
    """Get GitHub token from pass path, env var GITHUB_TOKEN, or default pass location."""
    if pass_path:
        return utils.get_pass_value(pass_path)

    token: str | None = os.environ.get(_TOKEN_ENV_VAR)
    if token:
        return token

    try:
        return utils.get_pass_value(_DEFAULT_TOKEN_PASS_PATH)
    except (ValueError, utils.PassError):
        logger.warning("No GitHub token specified nor found")
        return None


def get_client(token: str | None = None) -> Github:
    """Get a GitHub client using the token."""
    if token:
        return Github(auth=Auth.Token(token))
    return Github()


def get_repo(client: Github, repo_path: str) -> Repository:
    """Get a repository handle without fetching it.

    Listing calls on a repository that does not exist yet return 404, which
    the listing helpers below treat as empty.
    """
    return client.get_repo(repo_path, lazy=True)


def list_or_empty(what: str, fetch: Callable[[], Iterable[T]]) -> list[T]:
    """Run a listing read, degrading failures to an empty list.

    404 means there is nothing yet (first run) and is logged at INFO; any
    other failure is logged as an error.
    """
    try:
        items = list(fetch())
    except GithubException as e:
        if e.status == 404:
            logger.info(f"{what} not found (this is normal if it's the first run).")
        else:
            logger.error(f"Couldn't receive {what} because of status code {e.status}: {e.data}")
        return []

    logger.info(f"[GitHub] Received {len(items)} {what}")
    return items


def list_repo_files(repo: Repository, path: str = "", ref: str | None = None) -> list[ContentFile]:
    """List all files below ``path`` in a repository, descending into directories."""

    def fetch() -> list[ContentFile]:
        contents = repo.get_contents(path, ref=ref) if ref else repo.get_contents(path)
        return contents if isinstance(contents, list) else [contents]

    entries = list_or_empty(f"contents of '{path or '/'}'", fetch)
    files = [entry for entry in entries if entry.type == "file"]
    for directory in (entry for entry in entries if entry.type == "dir"):
        files.extend(list_repo_files(repo, directory.path, ref))
    return files


def get_login(client: Github) -> str:
    """Return the authenticated user's login.

    Raises:
        CriticalSetupError: If the token cannot be used
    """
    try:
        return client.get_user().login
    except GithubException as e:
        msg = f"GitHub API access failed: {e}"
        raise CriticalSetupError(msg) from e


def get_committer(client: Github) -> InputGitAuthor:
    """Build the committer identity for uploads from the authenticated user.

    Raises:
        CriticalSetupError: If the user or its e-mails cannot be read, or the
            user does not have exactly one primary e-mail
    """
    try:
        user = client.get_user()
        emails = user.get_emails()
        name = user.name or user.login
    except GithubException as e:
        msg = f"Couldn't receive user information: {e}"
        raise CriticalSetupError(msg) from e

    primary = [e.email for e in emails if e.primary]
    if len(primary) != 1:
        msg = "There must be exactly one primary email"
        raise CriticalSetupError(msg)

    return InputGitAuthor(name, primary[0])


def _structured_errors(exc: GithubException) -> list[dict[str, object]]:
    if not isinstance(exc.data, dict):
        return []
    errors: object = exc.data.get("errors")  # pyright: ignore[reportUnknownVariableType]
    if not isinstance(errors, list):
        return []
    return [e for e in errors if isinstance(e, dict)]  # pyright: ignore[reportUnknownVariableType]


def is_already_exists_error(exc: GithubException) -> bool:
    """Check if a GithubException is a 422 'already_exists' validation error."""
    if exc.status != 422:
        return False
    errors = _structured_errors(exc)
    if errors:
        return any(e.get("code") == "already_exists" for e in errors)
    return "already_exists" in str(exc.data).lower()


def is_invalid_assignee_error(exc: GithubException) -> bool:
    """Check if a GithubException is a 422 rejection of the issue's assignees.

    GitHub reports these as ``{"field": "assignees", "code": "invalid"}``.
    Payloads without structured errors fall back to a text match.
    """
    if exc.status != 422:
        return False
    errors = _structured_errors(exc)
    if errors:
        return any(e.get("field") == "assignees" for e in errors)
    return "assignees" in str(exc.data).lower()
