"""Tests for run options and parser settings."""

import json
from pathlib import Path

import pytest

from jira_to_github_migrator.config import (
    DEFAULT_DESCRIPTION_TEMPLATE,
    EmailMapping,
    MigrationOptions,
    ParserSettings,
    load_settings,
    split_repo_path,
)
from jira_to_github_migrator.exceptions import ConfigurationError


@pytest.mark.unit
class TestLoadSettings:
    def test_defaults_without_file(self) -> None:
        settings = load_settings(None)

        assert settings.description_template == DEFAULT_DESCRIPTION_TEMPLATE
        assert "Done" in settings.state_mapping["closed"]

    def test_reads_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        path.write_text(
            json.dumps(
                {
                    "state_mapping": {"Closed": ["Shipped"]},
                    "email_mappings": [{"jira_username": "Alice", "github_name": "alice-gh"}],
                    "description_template": "{{Description}}",
                    "story_points_field": "customfield_1",
                }
            )
        )

        settings = load_settings(path)

        assert settings.state_mapping == {"closed": ["Shipped"]}
        assert settings.email_mappings == [EmailMapping("Alice", "alice-gh")]
        assert settings.description_template == "{{Description}}"
        assert settings.story_points_field == "customfield_1"
        assert settings.sprints_field == "customfield_10020"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Cannot read settings file"):
            _ = load_settings(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        path.write_text("{not json")

        with pytest.raises(ConfigurationError, match="not valid JSON"):
            _ = load_settings(path)

    def test_not_an_object(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        path.write_text("[]")

        with pytest.raises(ConfigurationError, match="must contain a JSON object"):
            _ = load_settings(path)

    def test_incomplete_email_mapping(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid settings"):
            _ = ParserSettings.from_dict({"email_mappings": [{"jira_username": "Alice"}]})

    def test_unknown_state(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid state mapping keys: pending"):
            _ = ParserSettings.from_dict({"state_mapping": {"pending": ["Waiting"]}})


@pytest.mark.unit
class TestSplitRepoPath:
    def test_valid(self) -> None:
        assert split_repo_path("  acme/tracker ") == ("acme", "tracker")

    @pytest.mark.parametrize("path", ["", "acme", "acme/", "/tracker", "acme//tracker", "a/b/c"])
    def test_invalid(self, path: str) -> None:
        with pytest.raises(ConfigurationError, match="Invalid GitHub repository path"):
            _ = split_repo_path(path)


@pytest.mark.unit
class TestMigrationOptions:
    def test_valid(self, options: MigrationOptions) -> None:
        options.validate()

        assert options.repo_path == "acme/tracker"

    def test_export_requires_upload_repo(self, options: MigrationOptions) -> None:
        options.export = True

        with pytest.raises(ConfigurationError, match="upload repository"):
            options.validate()

        options.import_owner, options.upload_repo = "acme", "files"
        options.validate()

    def test_project_number_requires_owner(self, options: MigrationOptions) -> None:
        options.project_number = 3

        with pytest.raises(ConfigurationError, match="project owner"):
            options.validate()

    @pytest.mark.parametrize(
        ("field", "value", "message"),
        [
            ("search_query", "  ", "JQL search query"),
            ("max_results", 0, "max_results"),
            ("batch_size", 0, "batch_size"),
            ("cooldown_seconds", -1.0, "cooldown_seconds"),
            ("jira_url", "acme.atlassian.net", "Invalid Jira URL"),
        ],
    )
    def test_invalid_values(self, options: MigrationOptions, field: str, value: object, message: str) -> None:
        setattr(options, field, value)

        with pytest.raises(ConfigurationError, match=message):
            options.validate()
