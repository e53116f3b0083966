"""GitHub Projects (v2) board queries and option matching.

The board is looked up once per run under both the user and the
organization namespace of the project owner; GitHub answers with an error
for the namespace that does not exist, which is expected and ignored.
"""

from __future__ import annotations

import logging
from typing import Any, Final

from .models import BoardField, BoardOption, ProjectBoard

logger: logging.Logger = logging.getLogger(__name__)

STATUS_FIELD: Final[str] = "Status"
PRIORITY_FIELD: Final[str] = "Priority"

_FIELDS_FRAGMENT = """
      id
      fields(first: 50) {
        nodes {
          ... on ProjectV2FieldCommon { id name }
          ... on ProjectV2SingleSelectField { id name options { id name } }
        }
      }
"""

PROJECT_QUERY: Final[str] = f"""
query($owner: String!, $number: Int!) {{
  user(login: $owner) {{
    projectV2(number: $number) {{{_FIELDS_FRAGMENT}    }}
  }}
  organization(login: $owner) {{
    projectV2(number: $number) {{{_FIELDS_FRAGMENT}    }}
  }}
}}
"""

ADD_ITEM_MUTATION: Final[str] = """
mutation($projectId: ID!, $contentId: ID!) {
  addProjectV2ItemById(input: {projectId: $projectId, contentId: $contentId}) {
    item { id }
  }
}
"""

SET_FIELD_MUTATION: Final[str] = """
mutation($projectId: ID!, $itemId: ID!, $fieldId: ID!, $optionId: String!) {
  updateProjectV2ItemFieldValue(input: {
    projectId: $projectId
    itemId: $itemId
    fieldId: $fieldId
    value: {singleSelectOptionId: $optionId}
  }) {
    projectV2Item { id }
  }
}
"""

_MISSING_OWNER_MARKERS: Final[tuple[str, ...]] = (
    "Could not resolve to a User",
    "Could not resolve to an Organization",
)


def is_missing_owner_error(error: dict[str, Any]) -> bool:
    """True for the error GitHub reports for the namespace the owner is not."""
    message = str(error.get("message", ""))
    return any(marker in message for marker in _MISSING_OWNER_MARKERS)


def _parse_field(node: dict[str, Any]) -> BoardField | None:
    if not node.get("id") or not node.get("name"):
        return None
    options = tuple(
        BoardOption(id=option["id"], name=option["name"])
        for option in node.get("options") or []
        if option.get("id") and option.get("name")
    )
    return BoardField(id=node["id"], name=node["name"], options=options)


def parse_project_board(data: dict[str, Any] | None) -> ProjectBoard | None:
    """Extract the board from a ``PROJECT_QUERY`` response, trying user then organization."""
    for owner_kind in ("user", "organization"):
        project = ((data or {}).get(owner_kind) or {}).get("projectV2")
        if not project or not project.get("id"):
            continue
        nodes = (project.get("fields") or {}).get("nodes") or []
        fields = tuple(f for f in (_parse_field(node) for node in nodes if node) if f is not None)
        logger.debug(f"Found project board {project['id']} with {len(fields)} fields under {owner_kind}")
        return ProjectBoard(id=project["id"], fields=fields)
    return None


def resolve_option(board_field: BoardField, value: str) -> BoardOption | None:
    """Find the option for ``value``.

    An exact case-insensitive match wins; otherwise the first option whose
    name contains the value, or is contained in it, is used.
    """
    wanted = value.strip().lower()
    if not wanted:
        return None

    for option in board_field.options:
        if option.name.lower() == wanted:
            return option

    for option in board_field.options:
        name = option.name.lower()
        if wanted in name or name in wanted:
            return option

    available = ", ".join(option.name for option in board_field.options)
    logger.warning(f"No option matching '{value}' in field '{board_field.name}'. Available options: {available}")
    return None
