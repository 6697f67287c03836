from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest
import requests

from prsheet.errors import (
    AuthenticationError,
    GitHubAPIError,
    MissingToolError,
    RateLimitError,
    RepoNotFoundError,
)
from prsheet.github import GitHubClient, parse_timestamp, resolve_token


def _response(status: int = 200, payload=None, headers=None, text: str = ""):
    response = Mock()
    response.status_code = status
    response.headers = headers or {}
    response.json.return_value = payload if payload is not None else []
    response.text = text
    return response


def _item(number: int, merged_at: str | None, updated_at: str = "2024-10-01T00:00:00Z", labels=()):
    return {
        "number": number,
        "state": "closed",
        "title": f"PR {number}",
        "labels": [{"name": name} for name in labels],
        "updated_at": updated_at,
        "merged_at": merged_at,
    }


def test_parse_timestamp_utc():
    result = parse_timestamp("2024-06-15T12:30:00Z")
    assert result == datetime(2024, 6, 15, 12, 30, tzinfo=timezone.utc)


def test_parse_timestamp_converts_offsets():
    result = parse_timestamp("2024-06-15T14:30:00+02:00")
    assert result == datetime(2024, 6, 15, 12, 30, tzinfo=timezone.utc)


def test_parse_timestamp_none():
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None


def test_client_sets_headers():
    client = GitHubClient(token="test-token")
    assert client.session.headers["Authorization"] == "token test-token"
    assert client.session.headers["User-Agent"].startswith("prsheet/")


def test_list_closed_pulls_sends_listing_params():
    client = GitHubClient(token="test-token", api_url="https://ghe.example.com/api/v3/")
    response = _response(200, [_item(1, "2024-10-02T00:00:00Z")])

    with patch.object(client.session, "request", return_value=response) as request:
        prs = client.list_closed_pulls("o/r", page=3)

    method, url = request.call_args.args
    assert method == "GET"
    assert url == "https://ghe.example.com/api/v3/repos/o/r/pulls"
    assert request.call_args.kwargs["params"] == {
        "state": "closed",
        "sort": "updated",
        "direction": "desc",
        "per_page": 100,
        "page": 3,
    }
    assert request.call_args.kwargs["timeout"] == client.timeout
    assert [pr.number for pr in prs] == [1]


def test_list_closed_pulls_parses_records():
    client = GitHubClient(token="test-token")
    items = [
        _item(1, "2024-10-02T00:00:00Z", labels=("bug", "ui")),
        _item(2, None),
    ]

    with patch.object(client.session, "request", return_value=_response(200, items)):
        prs = client.list_closed_pulls("o/r", page=1)

    assert prs[0].labels == ["bug", "ui"]
    assert prs[0].merged_at == datetime(2024, 10, 2, tzinfo=timezone.utc)
    assert prs[0].is_merged
    assert prs[1].merged_at is None
    assert not prs[1].is_merged


def test_list_closed_pulls_404_is_repo_not_found():
    client = GitHubClient(token="test-token")
    response = _response(404, {"message": "Not Found"})

    with patch.object(client.session, "request", return_value=response):
        with pytest.raises(RepoNotFoundError) as excinfo:
            client.list_closed_pulls("o/missing", page=1)

    assert excinfo.value.status_code == 404
    assert "o/missing" in str(excinfo.value)


def test_list_closed_pulls_other_errors_carry_message():
    client = GitHubClient(token="test-token")
    response = _response(500, {"message": "Server Error"})

    with patch.object(client.session, "request", return_value=response):
        with pytest.raises(GitHubAPIError) as excinfo:
            client.list_closed_pulls("o/r", page=1)

    assert not isinstance(excinfo.value, RepoNotFoundError)
    assert excinfo.value.status_code == 500
    assert "Server Error" in str(excinfo.value)


def test_request_rate_limited():
    client = GitHubClient(token="test-token")
    response = _response(
        403, {"message": "API rate limit exceeded"},
        headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"},
    )

    with patch.object(client.session, "request", return_value=response):
        with pytest.raises(RateLimitError) as excinfo:
            client.list_closed_pulls("o/r", page=1)

    assert excinfo.value.reset_time == 1700000000


def test_request_rate_limited_with_unreadable_reset():
    client = GitHubClient(token="test-token")
    response = _response(
        403, {"message": "API rate limit exceeded"},
        headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "soon"},
    )

    with patch.object(client.session, "request", return_value=response):
        with pytest.raises(RateLimitError) as excinfo:
            client.list_closed_pulls("o/r", page=1)

    assert excinfo.value.reset_time is None


def test_request_transport_error_is_not_retried():
    client = GitHubClient(token="test-token")

    with patch.object(
        client.session, "request", side_effect=requests.ConnectionError("boom")
    ) as request:
        with pytest.raises(GitHubAPIError, match="Request failed"):
            client.list_closed_pulls("o/r", page=1)

    assert request.call_count == 1


def test_error_message_falls_back_to_text():
    client = GitHubClient(token="test-token")
    response = _response(502, text="Bad gateway")
    response.json.side_effect = ValueError("no json")

    with patch.object(client.session, "request", return_value=response):
        with pytest.raises(GitHubAPIError, match="Bad gateway"):
            client.list_closed_pulls("o/r", page=1)


def test_resolve_token_prefers_environment():
    with patch("prsheet.github.subprocess.run") as run:
        assert resolve_token({"GITHUB_TOKEN": "abc", "GH_TOKEN": "def"}) == "abc"
        assert resolve_token({"GH_TOKEN": "def"}) == "def"
    run.assert_not_called()


def test_resolve_token_uses_gh_cli():
    completed = Mock(returncode=0, stdout="gho_token\n")
    with patch("prsheet.github.shutil.which", return_value="/usr/bin/gh"), \
         patch("prsheet.github.subprocess.run", return_value=completed):
        assert resolve_token({}) == "gho_token"


def test_resolve_token_gh_not_logged_in():
    completed = Mock(returncode=1, stdout="")
    with patch("prsheet.github.shutil.which", return_value="/usr/bin/gh"), \
         patch("prsheet.github.subprocess.run", return_value=completed):
        with pytest.raises(AuthenticationError, match="gh auth login"):
            resolve_token({})


def test_resolve_token_gh_missing():
    with patch("prsheet.github.shutil.which", return_value=None):
        with pytest.raises(MissingToolError, match="GitHub CLI"):
            resolve_token({})
