"""
Label computation and creation for Jira to GitHub.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final, NamedTuple

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .models import IssueFields
    from .orchestrator import GithubOrchestrator

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_COLOR: Final[str] = "c5c5c5"
TYPE_COLOR: Final[str] = "d4ecff"
STATIC_COLOR: Final[str] = "d4c5f9"
STATIC_DESCRIPTION: Final[str] = "Static label for import source"
MAX_DESCRIPTION_LENGTH: Final[int] = 100

# Jira status category colour names
STATUS_COLORS: Final[dict[str, str]] = {
    "green": "0e8a16",
    "yellow": "fbca04",
    "medium-gray": "d4c5f9",
    "blue-gray": "d4c5f9",
    "red": "b60205",
}

# Includes the French priority names some Jira instances use
PRIORITY_COLORS: Final[dict[str, str]] = {
    "haute": "b60205",
    "high": "b60205",
    "highest": "b60205",
    "critical": "b60205",
    "urgent": "b60205",
    "moyenne": "fbca04",
    "medium": "fbca04",
    "normal": "fbca04",
    "basse": "0e8a16",
    "low": "0e8a16",
    "lowest": "0e8a16",
    "trivial": "0e8a16",
}


class LabelSpec(NamedTuple):
    """A label to attach to an issue, with what to create it with if missing."""

    name: str
    description: str
    color: str


def status_color(color_name: str | None) -> str:
    return STATUS_COLORS.get((color_name or "").lower(), DEFAULT_COLOR)


def priority_color(priority: str | None) -> str:
    return PRIORITY_COLORS.get((priority or "").lower(), DEFAULT_COLOR)


def _truncate(description: str) -> str:
    if len(description) > MAX_DESCRIPTION_LENGTH:
        return description[: MAX_DESCRIPTION_LENGTH - 3] + "..."
    return description


def compute_labels(fields: IssueFields, additional_label: str | None = None) -> list[LabelSpec]:
    """Labels for an issue: its Jira labels, type, status, priority and the static label.

    Names are deduplicated ignoring case; the first occurrence wins.
    """
    candidates = [LabelSpec(name, "", DEFAULT_COLOR) for name in fields.labels]
    candidates.append(LabelSpec(f"type: {fields.issue_type}", _truncate(fields.issue_type_description), TYPE_COLOR))
    candidates.append(
        LabelSpec(f"status: {fields.status}", f"Jira status: {fields.status}", status_color(fields.status_color))
    )
    if fields.priority:
        candidates.append(
            LabelSpec(
                f"priority: {fields.priority}", f"Jira priority: {fields.priority}", priority_color(fields.priority)
            )
        )
    if additional_label:
        candidates.append(LabelSpec(additional_label, STATIC_DESCRIPTION, STATIC_COLOR))

    seen: set[str] = set()
    labels: list[LabelSpec] = []
    for label in candidates:
        if label.name.lower() in seen:
            continue
        seen.add(label.name.lower())
        labels.append(label)
    return labels


class LabelCache:
    """Names of the labels present in the GitHub repository (case-insensitive)."""

    _names: dict[str, str]

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._names = {name.lower(): name for name in names}

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._names

    def __len__(self) -> int:
        return len(self._names)

    def add(self, name: str) -> None:
        self._names.setdefault(name.lower(), name)

    def ensure(self, labels: Sequence[LabelSpec], orchestrator: GithubOrchestrator) -> int:
        """Create the labels not present in the repository yet.

        Returns:
            Number of labels created (or found to exist already)
        """
        created = 0
        for label in labels:
            if label.name in self:
                continue
            if orchestrator.create_label(label.name, label.color, label.description):
                self.add(label.name)
                created += 1
        return created
