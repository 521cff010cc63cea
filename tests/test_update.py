"""Tests for the release notice."""

from unittest.mock import patch

import httpx
import pytest

from labractl.update import check_latest_version, fetch_latest_tag, is_newer


def _client(status=200, payload=None, content=None, exc=None):
    def handler(request):
        if exc is not None:
            raise exc
        if content is not None:
            return httpx.Response(status, content=content)
        return httpx.Response(status, json=payload if payload is not None else {})
    return httpx.Client(transport=httpx.MockTransport(handler))


@pytest.mark.parametrize("latest, current, expected", [
    ("v0.2.0", "0.1.0", True),
    ("0.1.10", "0.1.9", True),
    ("v1.0.0", "1.0.0", False),
    ("v0.9.0", "1.0.0", False),
    ("v1.2.0-rc1", "1.1.0", True),
    ("nightly", "1.0.0", False),
    ("v1.2.0", "1.2", False),
    ("v1.2", "1.2.0", False),
    ("v1.3", "1.2.9", True),
])
def test_is_newer(latest, current, expected):
    assert is_newer(latest, current) is expected


class TestFetchLatestTag:

    def test_reads_tag_name(self):
        assert fetch_latest_tag(_client(payload={"tag_name": "v0.3.0"})) == "v0.3.0"

    def test_non_200(self):
        assert fetch_latest_tag(_client(status=404, payload={"message": "Not Found"})) is None

    def test_network_error(self):
        assert fetch_latest_tag(_client(exc=httpx.ConnectError("offline"))) is None

    def test_bad_json(self):
        assert fetch_latest_tag(_client(content=b"<html>")) is None

    def test_missing_tag(self):
        assert fetch_latest_tag(_client(payload={"name": "release"})) is None

    def test_caller_client_left_open(self):
        client = _client(payload={"tag_name": "v0.3.0"})
        fetch_latest_tag(client)
        assert client.is_closed is False


class TestCheckLatestVersion:

    def test_newer_release_prints_notice(self):
        with patch("labractl.update.err_console") as mock_console:
            tag = check_latest_version("0.1.0", _client(payload={"tag_name": "0.2.0"}))
        assert tag == "v0.2.0"
        mock_console.print.assert_called_once_with("A new version of labractl is available: v0.2.0")

    def test_up_to_date_is_silent(self):
        with patch("labractl.update.err_console") as mock_console:
            assert check_latest_version("0.2.0", _client(payload={"tag_name": "v0.2.0"})) is None
        mock_console.print.assert_not_called()

    def test_dev_build_skips_network(self):
        with patch("labractl.update.fetch_latest_tag") as mock_fetch:
            assert check_latest_version("dev") is None
        mock_fetch.assert_not_called()
