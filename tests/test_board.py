"""Tests for project board parsing and option matching."""

import pytest

from jira_to_github_migrator.board import is_missing_owner_error, parse_project_board, resolve_option
from jira_to_github_migrator.models import BoardField, BoardOption

STATUS = BoardField(
    id="F1",
    name="Status",
    options=(BoardOption("o1", "Todo"), BoardOption("o2", "In Progress"), BoardOption("o3", "Done")),
)


@pytest.mark.unit
class TestParseProjectBoard:
    def test_organization_board(self) -> None:
        data = {
            "user": None,
            "organization": {
                "projectV2": {
                    "id": "PVT_1",
                    "fields": {
                        "nodes": [
                            {"id": "F0", "name": "Title"},
                            {"id": "F1", "name": "Status", "options": [{"id": "o1", "name": "Todo"}]},
                            {},
                        ]
                    },
                }
            },
        }

        board = parse_project_board(data)

        assert board is not None
        assert board.id == "PVT_1"
        assert [f.name for f in board.fields] == ["Title", "Status"]
        assert board.get_field("status").options == (BoardOption("o1", "Todo"),)

    def test_no_board(self) -> None:
        assert parse_project_board(None) is None
        assert parse_project_board({"user": {"projectV2": None}, "organization": None}) is None

    def test_missing_owner_error(self) -> None:
        assert is_missing_owner_error({"message": "Could not resolve to an Organization with the login of 'me'."})
        assert not is_missing_owner_error({"message": "Something else"})


@pytest.mark.unit
class TestResolveOption:
    def test_exact_match_ignores_case(self) -> None:
        assert resolve_option(STATUS, "done").id == "o3"

    def test_partial_match(self) -> None:
        assert resolve_option(STATUS, "progress").id == "o2"
        assert resolve_option(STATUS, "Todo later").id == "o1"

    def test_no_match_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        assert resolve_option(STATUS, "Blocked") is None
        assert "Available options: Todo, In Progress, Done" in caplog.text

    def test_empty_value(self) -> None:
        assert resolve_option(STATUS, "  ") is None
