"""Attachment migration between Jira and GitHub."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

import requests

from .exceptions import IntegrityMismatchError
from .models import Asset, asset_name

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .jira_utils import JiraClient
    from .models import JiraAttachment, JiraIssue
    from .orchestrator import GithubOrchestrator

logger: logging.Logger = logging.getLogger(__name__)

# Jira inline attachment syntax: !path! or !path|options!
PLACEHOLDER_PATTERN: Final[re.Pattern[str]] = re.compile(r"!([^!\n]{1,1024})!")


def _placeholder_path(placeholder_body: str) -> str:
    return placeholder_body.split("|", 1)[0]


def _basename(path: str) -> str:
    return path.rstrip("/").rsplit("/", 1)[-1] or path


@dataclass
class ProcessedContent:
    """Result of linking attachment placeholders in a description."""

    content: str
    unlinked_assets: list[Asset]
    linked_count: int


class AttachmentResolver:
    """Finds, transfers or references the attachments of Jira issues.

    For every attachment, in order of preference:

    1. an asset with the deterministic name already in the upload repository is reused,
    2. with transfer enabled, the file is downloaded from Jira and uploaded,
    3. otherwise the Jira URL is referenced directly.
    """

    _jira: JiraClient
    _orchestrator: GithubOrchestrator | None
    _existing_assets: list[Asset]
    transfer: bool
    render_as_link: bool

    def __init__(
        self,
        jira: JiraClient,
        orchestrator: GithubOrchestrator | None,
        existing_assets: Sequence[Asset] = (),
        *,
        transfer: bool = False,
        render_as_link: bool = False,
    ) -> None:
        self._jira = jira
        self._orchestrator = orchestrator
        self._existing_assets = list(existing_assets)
        self.transfer = transfer
        self.render_as_link = render_as_link

    @property
    def link_prefix(self) -> str:
        """``!`` embeds the file (images render inline), empty renders a plain link."""
        return "" if self.render_as_link else "!"

    def find_existing(self, name: str) -> Asset | None:
        return next((asset for asset in self._existing_assets if asset.matches(name)), None)

    def _transfer(self, issue_key: str, attachment: JiraAttachment, name: str) -> Asset | None:
        if self._orchestrator is None:
            logger.error(f"Cannot transfer {name}: no GitHub upload target")
            return None

        try:
            downloaded = self._jira.download_attachment(attachment.url, attachment.size)
        except IntegrityMismatchError as e:
            logger.error(f"Skipping attachment {attachment.filename} of {issue_key}: {e}")
            return None
        except requests.RequestException as e:
            logger.error(f"Couldn't download attachment {attachment.filename} of {issue_key}: {e}")
            return None

        logger.debug(f"Transferring {name} ({len(downloaded.content)} bytes, sha512 {downloaded.sha512})")
        asset = self._orchestrator.upload_asset(name, downloaded.content)
        self._existing_assets.append(asset)
        return asset

    def resolve_assets(self, issue: JiraIssue) -> list[Asset]:
        """Return one asset per attachment of the issue, in attachment order.

        Attachments whose transfer fails are left out.

        Raises:
            CriticalSetupError: If an upload to GitHub fails
        """
        assets: list[Asset] = []
        for attachment in issue.fields.attachments:
            name = asset_name(issue.key, attachment.filename)

            existing = self.find_existing(name)
            if existing is not None:
                logger.debug(f"Reusing existing asset {existing.name}")
                assets.append(existing)
                continue

            if not self.transfer:
                assets.append(Asset(name=name, url=attachment.url, download_url=attachment.url))
                continue

            transferred = self._transfer(issue.key, attachment, name)
            if transferred is not None:
                assets.append(transferred)

        return assets

    def link_placeholders(self, content: str, assets: Sequence[Asset], context: str = "") -> ProcessedContent:
        """Replace attachment placeholders with links to the assets.

        Placeholders are paired left to right with the first remaining asset
        whose name contains the placeholder's path. An asset is used for at
        most one placeholder. Placeholders without an asset become a link to
        their own path.

        Args:
            content: Description text possibly containing ``!path|title!`` placeholders
            assets: Assets of the issue
            context: Context for log messages (e.g., the issue key)

        Returns:
            ProcessedContent with the rewritten text and the assets no placeholder used
        """
        remaining = list(assets)
        linked = 0

        def replace(match: re.Match[str]) -> str:
            nonlocal linked
            path = _placeholder_path(match.group(1))
            label = _basename(path)

            asset = next((a for a in remaining if path and path in a.name), None)
            if asset is None:
                ctx = f" in {context}" if context else ""
                logger.error(f"Asset {match.group(1)} couldn't be found{ctx}")
                return f"{self.link_prefix}[{label}]({path})"

            remaining.remove(asset)
            linked += 1
            return f"{self.link_prefix}[{label}]({asset.download_url})"

        updated = PLACEHOLDER_PATTERN.sub(replace, content)
        return ProcessedContent(content=updated, unlinked_assets=remaining, linked_count=linked)

    def format_asset_list(self, assets: Sequence[Asset]) -> str:
        return ", ".join(f"{self.link_prefix}[{asset.name}]({asset.download_url})" for asset in assets)
