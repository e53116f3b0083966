"""Issue relationship graphs built from Jira issue links."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

from .models import identity_tag

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from github.Issue import Issue

    from .models import JiraIssue

logger: logging.Logger = logging.getLogger(__name__)

CHILDREN_RELATION: Final[str] = "Parent of"
RELATED_RELATION: Final[str] = "relates to"


def build_link_graph(issues: Sequence[JiraIssue], relation: str) -> dict[str, list[str]]:
    """Map each issue key to the keys it links to under ``relation``.

    A link counts when its inward label equals ``relation`` and it names an
    inward issue, or when its outward label equals ``relation`` and it names
    an outward issue. Labels are compared ignoring case. Every issue that carries an issue-link list gets an
    entry, possibly empty; issues without one are left out.
    """
    wanted = relation.lower()
    graph: dict[str, list[str]] = {}
    for issue in issues:
        links = issue.fields.issue_links
        if links is None:
            continue

        keys: list[str] = []
        for link in links:
            if link.inward.lower() == wanted and link.inward_key:
                keys.append(link.inward_key)
            elif link.outward.lower() == wanted and link.outward_key:
                keys.append(link.outward_key)
        graph[issue.key] = keys

    linked = sum(1 for keys in graph.values() if keys)
    logger.debug(f"Built '{relation}' graph: {linked} of {len(graph)} issues have links")
    return graph


def find_issue(issues: Iterable[Issue], key: str) -> Issue | None:
    """Return the first GitHub issue whose title carries the identity tag for ``key``."""
    tag = identity_tag(key)
    return next((issue for issue in issues if tag in issue.title), None)


def format_children_section(body: str | None, child_numbers: Sequence[int]) -> str:
    """Append child checkboxes to an issue body, adding the header once."""
    updated = body or ""
    if "### Children" not in updated:
        updated += "\n\n### Children"
    updated += "".join(f"\n- [ ] #{number}" for number in child_numbers)
    return updated


def format_related_comment(numbers: Sequence[int]) -> str:
    return "Relates to: " + ", ".join(f"#{number}" for number in numbers)
