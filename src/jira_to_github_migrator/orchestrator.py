"""Write side of the migration: every call that changes GitHub goes through here.

The GithubOrchestrator owns the state that the writes share for one run:

- the mutation counter driving the cooldown (rate budget),
- the committer identity used for asset uploads,
- the milestone objects known by number,
- the project board metadata, fetched at most once.

Rate Budget
-----------
Before each mutation the counter is checked: when it is a non-zero multiple
of the batch size, the orchestrator sleeps for the cooldown before issuing
the call. With a batch size of 10, calls 1-10 go out immediately and the
pause happens between call 10 and call 11. Label, milestone, issue, comment,
update, upload, GraphQL and pull request comment calls all count, and so does
the retry of an issue creation.

Failure Policy
--------------
- Identity lookup, milestone creation and asset upload failures raise
  CriticalSetupError.
- Issue creation failures skip that one issue (logged as an error). A
  rejection of the assignees is retried once without assignees.
- Comments, updates, board placement and pull request cross-posts only log.

Instances are not thread-safe; all writes of a run are issued sequentially.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from github import GithubException

from . import board as board_queries
from . import github_utils as ghu
from . import utils
from .exceptions import CriticalSetupError
from .models import Asset
from .relationships import find_issue, format_children_section, format_related_comment

if TYPE_CHECKING:
    import threading
    from collections.abc import Callable, Sequence

    from github import Github, InputGitAuthor
    from github.Issue import Issue
    from github.Label import Label
    from github.Milestone import Milestone
    from github.Repository import Repository

    from .models import IssueRequest, ProjectBoard, PullRequestReference

logger: logging.Logger = logging.getLogger(__name__)


class GithubOrchestrator:
    """Issues GitHub reads and writes for one migration run."""

    batch_size: int
    cooldown_seconds: float
    _client: Github
    _repo: Repository
    _upload_repo: Repository | None
    _import_path: str | None
    _branch: str
    _project_owner: str | None
    _project_number: int | None
    _cancel_event: threading.Event | None
    _sleep: Callable[[float], None]
    _mutation_count: int
    _committer: InputGitAuthor | None
    _milestones: dict[int, Milestone]
    _board: ProjectBoard | None
    _board_loaded: bool

    def __init__(
        self,
        client: Github,
        repo: Repository,
        *,
        upload_repo: Repository | None = None,
        import_path: str | None = None,
        branch: str = "main",
        project_owner: str | None = None,
        project_number: int | None = None,
        batch_size: int = 10,
        cooldown_seconds: float = 20.0,
        cancel_event: threading.Event | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.batch_size = batch_size
        self.cooldown_seconds = cooldown_seconds
        self._client = client
        self._repo = repo
        self._upload_repo = upload_repo
        self._import_path = import_path.strip("/") if import_path else None
        self._branch = branch
        self._project_owner = project_owner
        self._project_number = project_number
        self._cancel_event = cancel_event
        self._sleep = sleep
        self._mutation_count = 0
        self._committer = None
        self._milestones = {}
        self._board = None
        self._board_loaded = False

    @property
    def mutation_count(self) -> int:
        return self._mutation_count

    @property
    def repo_path(self) -> str:
        return self._repo.full_name

    def _throttle(self, action: str) -> None:
        """Account for one mutation, pausing first when a batch is complete."""
        utils.check_cancelled(self._cancel_event, action)
        if self._mutation_count > 0 and self._mutation_count % self.batch_size == 0:
            logger.info(f"Delaying {self.cooldown_seconds} seconds for GitHub to catch some air (rate limiting)...")
            self._sleep(self.cooldown_seconds)
            utils.check_cancelled(self._cancel_event, action)
        self._mutation_count += 1

    # Reads

    def validate_access(self) -> str:
        utils.check_cancelled(self._cancel_event, "validating GitHub access")
        login = ghu.get_login(self._client)
        logger.info(f"GitHub API access validated as {login}")
        return login

    def list_issues(self) -> list[Issue]:
        utils.check_cancelled(self._cancel_event, "listing issues")
        return ghu.list_or_empty("issues", lambda: self._repo.get_issues(state="all"))

    def list_labels(self) -> list[Label]:
        utils.check_cancelled(self._cancel_event, "listing labels")
        return ghu.list_or_empty("labels", self._repo.get_labels)

    def list_milestones(self) -> list[Milestone]:
        utils.check_cancelled(self._cancel_event, "listing milestones")
        milestones = ghu.list_or_empty("milestones", lambda: self._repo.get_milestones(state="all"))
        self._milestones.update({m.number: m for m in milestones})
        return milestones

    def list_assets(self) -> list[Asset]:
        """List files already stored in the upload repository."""
        if self._upload_repo is None:
            return []
        utils.check_cancelled(self._cancel_event, "listing uploaded assets")
        files = ghu.list_repo_files(self._upload_repo, self._import_path or "", self._branch)
        return [Asset(name=f.name, url=f.html_url or f.url, download_url=f.download_url or f.url) for f in files]

    def _get_committer(self) -> InputGitAuthor:
        if self._committer is None:
            utils.check_cancelled(self._cancel_event, "looking up the committer")
            self._committer = ghu.get_committer(self._client)
        return self._committer

    # Writes

    def create_label(self, name: str, color: str, description: str = "") -> bool:
        """Create a label; an existing label with the same name counts as success."""
        self._throttle(f"creating label {name}")
        try:
            self._repo.create_label(name=name, color=color, description=description)
        except GithubException as e:
            if ghu.is_already_exists_error(e):
                logger.warning(f"Label {name} already exists")
                return True
            logger.error(f"Couldn't create label {name}: {e.status} {e.data}")
            return False
        logger.info(f"Created label {name}")
        return True

    def create_milestone(self, title: str) -> Milestone:
        """Create a milestone.

        Raises:
            CriticalSetupError: If GitHub rejects the milestone
        """
        self._throttle(f"creating milestone {title}")
        try:
            milestone = self._repo.create_milestone(title=title)
        except GithubException as e:
            msg = f"Couldn't create milestone {title}: {e.status} {e.data}"
            raise CriticalSetupError(msg) from e
        self._milestones[milestone.number] = milestone
        logger.info(f"Created milestone {title} (#{milestone.number})")
        return milestone

    def upload_asset(self, name: str, content: bytes) -> Asset:
        """Commit a file to the upload repository.

        Raises:
            CriticalSetupError: If there is no upload repository or the commit fails
        """
        if self._upload_repo is None:
            msg = f"Cannot upload {name}: no upload repository configured"
            raise CriticalSetupError(msg)

        committer = self._get_committer()
        path = f"{self._import_path}/{name}" if self._import_path else name
        self._throttle(f"uploading {name}")
        try:
            result = self._upload_repo.create_file(
                path,
                f"Upload file {name}",
                content,
                branch=self._branch,
                committer=committer,
                author=committer,
            )
        except GithubException as e:
            msg = f"Couldn't upload file {name}: {e.status} {e.data}"
            raise CriticalSetupError(msg) from e

        uploaded = result["content"]
        logger.info(f"Uploaded {name} to {self._upload_repo.full_name}/{path}")
        return Asset(
            name=uploaded.name,
            url=uploaded.html_url or uploaded.url,
            download_url=uploaded.download_url or uploaded.url,
        )

    def _milestone(self, number: int) -> Milestone:
        if number not in self._milestones:
            self._milestones[number] = self._repo.get_milestone(number)
        return self._milestones[number]

    def _post_issue(self, request: IssueRequest, assignees: list[str]) -> Issue:
        kwargs: dict[str, Any] = {"title": request.title, "body": request.body, "labels": request.labels}
        if assignees:
            kwargs["assignees"] = assignees
        if request.milestone is not None:
            kwargs["milestone"] = self._milestone(request.milestone)
        return self._repo.create_issue(**kwargs)

    def create_issue(self, request: IssueRequest) -> Issue | None:
        """Create one issue with its comments, closing it if its state is closed.

        Returns:
            The created issue, or None if GitHub rejected it
        """
        self._throttle(f"creating issue {request.title}")
        logger.info(f"Creating issue: {request.title}")
        try:
            issue = self._post_issue(request, request.assignees)
        except GithubException as e:
            if not (request.assignees and ghu.is_invalid_assignee_error(e)):
                logger.error(f"Couldn't create issue: {request.title}. Error: {e.status} {e.data}")
                return None

            logger.warning(
                f"Assignees {', '.join(request.assignees)} were rejected for {request.title}, retrying without"
            )
            self._throttle(f"creating issue {request.title} without assignees")
            try:
                issue = self._post_issue(request, [])
            except GithubException as retry_error:
                logger.error(
                    f"Couldn't create issue: {request.title}. Error: {retry_error.status} {retry_error.data}"
                )
                return None

        logger.info(f"Created issue #{issue.number}: {request.title}")

        for comment in request.comments:
            self.create_comment(issue, comment)
        if request.state == "closed":
            self.update_issue(issue, state="closed")
        return issue

    def create_comment(self, issue: Issue, body: str) -> bool:
        self._throttle(f"commenting on #{issue.number}")
        try:
            issue.create_comment(body)
        except GithubException as e:
            logger.error(f"Couldn't comment on issue #{issue.number}: {e.status} {e.data}")
            return False
        logger.debug(f"Commented on issue #{issue.number}")
        return True

    def update_issue(self, issue: Issue, **changes: Any) -> bool:  # noqa: ANN401 - forwarded to Issue.edit
        self._throttle(f"updating #{issue.number}")
        try:
            issue.edit(**changes)
        except GithubException as e:
            logger.error(f"Couldn't update issue #{issue.number}: {e.status} {e.data}")
            return False
        logger.debug(f"Updated issue #{issue.number}: {', '.join(changes)}")
        return True

    def comment_on_pull_request(self, reference: PullRequestReference, body: str) -> bool:
        """Post a comment on a pull request, logging a warning on failure."""
        self._throttle(f"commenting on {reference.url}")
        endpoint = f"/repos/{reference.owner}/{reference.repo}/issues/{reference.number}/comments"
        try:
            self._client.requester.requestJsonAndCheck("POST", endpoint, input={"body": body})
        except GithubException as e:
            logger.warning(f"Couldn't comment on pull request {reference.url}: {e.status} {e.data}")
            return False
        logger.info(f"Cross-posted to pull request {reference.url}")
        return True

    def _back_reference(self, issue: Issue, reference: PullRequestReference) -> str:
        if f"{reference.owner}/{reference.repo}".lower() == self.repo_path.lower():
            return f"Relates to #{issue.number}"
        return f"Relates to {self.repo_path}#{issue.number}"

    def create_issues(self, issue_requests: Sequence[IssueRequest]) -> list[Issue]:
        """Create all issues in order, placing each on the board and cross-posting its pull requests."""
        created: list[Issue] = []
        for request in issue_requests:
            issue = self.create_issue(request)
            if issue is None:
                continue
            created.append(issue)

            if self._project_number is not None:
                self.add_to_board(issue, request.original_status, request.original_priority)

            for reference in request.pull_requests:
                self.comment_on_pull_request(reference, self._back_reference(issue, reference))

        logger.info(f"Created {len(created)} of {len(issue_requests)} issues")
        return created

    # Relationships

    def link_children(
        self,
        graph: dict[str, list[str]],
        existing: Sequence[Issue],
        created: Sequence[Issue],
    ) -> int:
        """Add a checklist of children created in this run to each parent's body.

        Returns:
            Number of parents updated
        """
        all_issues = [*existing, *created]
        updated = 0
        for parent_key, child_keys in graph.items():
            children = [child for key in child_keys if (child := find_issue(created, key)) is not None]
            if not children:
                continue
            parent = find_issue(all_issues, parent_key)
            if parent is None:
                logger.debug(f"Parent {parent_key} not found in {self.repo_path}")
                continue

            body = format_children_section(parent.body, [child.number for child in children])
            if self.update_issue(parent, body=body):
                logger.info(f"Linked {len(children)} children to #{parent.number} ({parent_key})")
                updated += 1
        return updated

    def link_related(
        self,
        graph: dict[str, list[str]],
        existing: Sequence[Issue],
        created: Sequence[Issue],
    ) -> int:
        """Comment on each issue with the related issues created in this run.

        The commented issue may be one created earlier; a comment is only
        posted when at least one related issue was created now.

        Returns:
            Number of comments posted
        """
        all_issues = [*existing, *created]
        commented = 0
        for key, related_keys in graph.items():
            numbers = [issue.number for k in related_keys if (issue := find_issue(created, k)) is not None]
            if not numbers:
                continue
            source = find_issue(all_issues, key)
            if source is None:
                logger.debug(f"Issue {key} not found in {self.repo_path}")
                continue
            if self.create_comment(source, format_related_comment(numbers)):
                commented += 1
        return commented

    # Project board

    def post_graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any] | None:
        """Run a GraphQL call through the rate budget.

        Errors are logged; errors about an owner that is not a user (or not
        an organization) are expected for board lookups and only logged at
        debug level. Returns the ``data`` member, or None on transport failure.
        """
        self._throttle("GraphQL request")
        try:
            _, payload = self._client.requester.requestJsonAndCheck(
                "POST", "/graphql", input={"query": query, "variables": variables}
            )
        except GithubException as e:
            logger.error(f"GraphQL request failed: {e.status} {e.data}")
            return None

        for error in (payload or {}).get("errors") or []:
            if board_queries.is_missing_owner_error(error):
                logger.debug(f"Ignoring GraphQL error: {error.get('message')}")
            else:
                logger.error(f"GraphQL error: {error.get('message', error)}")
        return (payload or {}).get("data")

    def get_board(self) -> ProjectBoard | None:
        """Board metadata for the configured project, looked up on first use only."""
        if not self._board_loaded:
            self._board_loaded = True
            if self._project_owner and self._project_number is not None:
                data = self.post_graphql(
                    board_queries.PROJECT_QUERY,
                    {"owner": self._project_owner, "number": self._project_number},
                )
                self._board = board_queries.parse_project_board(data)
            if self._board is None:
                logger.error(f"Project {self._project_owner}/{self._project_number} not found")
        return self._board

    def add_to_board(self, issue: Issue, status: str | None, priority: str | None) -> bool:
        """Add the issue to the project board and set its Status and Priority fields."""
        board = self.get_board()
        if board is None:
            return False

        data = self.post_graphql(board_queries.ADD_ITEM_MUTATION, {"projectId": board.id, "contentId": issue.node_id})
        item_id = (((data or {}).get("addProjectV2ItemById") or {}).get("item") or {}).get("id")
        if not item_id:
            logger.error(f"Couldn't add issue #{issue.number} to the project board")
            return False
        logger.info(f"Added issue #{issue.number} to the project board")

        for field_name, value in ((board_queries.STATUS_FIELD, status), (board_queries.PRIORITY_FIELD, priority)):
            if value:
                self._set_board_field(board, item_id, field_name, value)
        return True

    def _set_board_field(self, board: ProjectBoard, item_id: str, field_name: str, value: str) -> None:
        board_field = board.get_field(field_name)
        if board_field is None:
            logger.warning(f"Project board has no field named {field_name}")
            return

        option = board_queries.resolve_option(board_field, value)
        if option is None:
            return

        variables = {"projectId": board.id, "itemId": item_id, "fieldId": board_field.id, "optionId": option.id}
        if self.post_graphql(board_queries.SET_FIELD_MUTATION, variables) is not None:
            logger.debug(f"Set {field_name} to {option.name} on item {item_id}")
