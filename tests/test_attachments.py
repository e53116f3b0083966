"""Tests for attachment handling."""

from unittest.mock import Mock

import pytest
import requests

from jira_to_github_migrator.attachments import AttachmentResolver
from jira_to_github_migrator.exceptions import CriticalSetupError, IntegrityMismatchError
from jira_to_github_migrator.models import Asset, DownloadedAttachment, IssueFields, JiraAttachment, JiraIssue


def _issue(*filenames: str, key: str = "ABC-1") -> JiraIssue:
    return JiraIssue(
        id="1",
        key=key,
        fields=IssueFields(
            issue_type="Bug",
            summary="s",
            status="Open",
            attachments=tuple(
                JiraAttachment(filename=name, url=f"https://acme.atlassian.net/att/{name}", size=4) for name in filenames
            ),
        ),
    )


def _asset(name: str) -> Asset:
    return Asset(name=name, url=f"https://github.com/acme/files/blob/main/{name}", download_url=f"https://raw/{name}")


@pytest.mark.unit
class TestResolveAssets:
    def setup_method(self) -> None:
        self.jira: Mock = Mock()
        self.orchestrator: Mock = Mock()

    def test_reuses_existing_asset_case_insensitively(self) -> None:
        existing = _asset("abc-1-IMG.png")
        resolver = AttachmentResolver(self.jira, self.orchestrator, [existing], transfer=True)

        assert resolver.resolve_assets(_issue("img.png")) == [existing]
        self.jira.download_attachment.assert_not_called()
        self.orchestrator.upload_asset.assert_not_called()

    def test_references_jira_url_without_transfer(self) -> None:
        resolver = AttachmentResolver(self.jira, self.orchestrator, transfer=False)

        [asset] = resolver.resolve_assets(_issue("img.png"))

        assert asset.name == "ABC-1-img.png"
        assert asset.download_url == "https://acme.atlassian.net/att/img.png"
        self.jira.download_attachment.assert_not_called()

    def test_transfers_under_deterministic_name(self) -> None:
        self.jira.download_attachment.return_value = DownloadedAttachment(content=b"data", sha512="x")
        uploaded = _asset("ABC-1-img.png")
        self.orchestrator.upload_asset.return_value = uploaded
        resolver = AttachmentResolver(self.jira, self.orchestrator, transfer=True)

        assert resolver.resolve_assets(_issue("img.png")) == [uploaded]
        self.jira.download_attachment.assert_called_once_with("https://acme.atlassian.net/att/img.png", 4)
        self.orchestrator.upload_asset.assert_called_once_with("ABC-1-img.png", b"data")
        assert resolver.find_existing("ABC-1-img.png") == uploaded

    def test_integrity_mismatch_skips_only_that_asset(self) -> None:
        self.jira.download_attachment.side_effect = [
            IntegrityMismatchError("length"),
            DownloadedAttachment(content=b"ok", sha512="x"),
        ]
        self.orchestrator.upload_asset.return_value = _asset("ABC-1-b.txt")
        resolver = AttachmentResolver(self.jira, self.orchestrator, transfer=True)

        assets = resolver.resolve_assets(_issue("a.txt", "b.txt"))

        assert [a.name for a in assets] == ["ABC-1-b.txt"]

    def test_download_failure_skips_asset(self) -> None:
        self.jira.download_attachment.side_effect = requests.ConnectionError("down")
        resolver = AttachmentResolver(self.jira, self.orchestrator, transfer=True)

        assert resolver.resolve_assets(_issue("a.txt")) == []
        self.orchestrator.upload_asset.assert_not_called()

    def test_upload_failure_is_critical(self) -> None:
        self.jira.download_attachment.return_value = DownloadedAttachment(content=b"data", sha512="x")
        self.orchestrator.upload_asset.side_effect = CriticalSetupError("upload")
        resolver = AttachmentResolver(self.jira, self.orchestrator, transfer=True)

        with pytest.raises(CriticalSetupError):
            resolver.resolve_assets(_issue("a.txt"))


@pytest.mark.unit
class TestLinkPlaceholders:
    def setup_method(self) -> None:
        self.resolver = AttachmentResolver(Mock(), None)

    def test_placeholder_becomes_asset_link(self) -> None:
        asset = _asset("ABC-1-img.png")

        result = self.resolver.link_placeholders("see !img.png|Title! more", [asset])

        assert result.content == "see ![img.png](https://raw/ABC-1-img.png) more"
        assert "[img.png](https://raw/ABC-1-img.png)" in result.content
        assert result.unlinked_assets == []
        assert result.linked_count == 1

    def test_one_matching_and_one_unmatched_placeholder(self) -> None:
        asset = _asset("ABC-1-img.png")

        result = self.resolver.link_placeholders("!img.png! and !other/diagram.svg|thumb!", [asset])

        assert result.linked_count == 1
        assert result.content == "![img.png](https://raw/ABC-1-img.png) and ![diagram.svg](other/diagram.svg)"

    def test_asset_is_paired_at_most_once(self) -> None:
        asset = _asset("ABC-1-img.png")

        result = self.resolver.link_placeholders("!img.png! !img.png!", [asset])

        assert result.content == "![img.png](https://raw/ABC-1-img.png) ![img.png](img.png)"

    def test_unused_assets_are_returned(self) -> None:
        used, unused = _asset("ABC-1-a.png"), _asset("ABC-1-b.png")

        result = self.resolver.link_placeholders("!a.png!", [used, unused])

        assert result.unlinked_assets == [unused]

    def test_render_as_link_drops_embed_prefix(self) -> None:
        resolver = AttachmentResolver(Mock(), None, render_as_link=True)

        result = resolver.link_placeholders("!a.png!", [_asset("ABC-1-a.png")])

        assert result.content == "[a.png](https://raw/ABC-1-a.png)"

    def test_pathological_input_is_left_alone(self) -> None:
        text = "!" + "a" * 5000

        assert self.resolver.link_placeholders(text, []).content == text

    def test_format_asset_list(self) -> None:
        assert self.resolver.format_asset_list([_asset("ABC-1-a.png"), _asset("ABC-1-b.png")]) == (
            "![ABC-1-a.png](https://raw/ABC-1-a.png), ![ABC-1-b.png](https://raw/ABC-1-b.png)"
        )
