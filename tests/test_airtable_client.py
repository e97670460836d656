"""
tests/test_airtable_client.py — Poll Source Client Tests
=========================================================

HTTP is served by ``httpx.MockTransport``; nothing leaves the process.
"""

from __future__ import annotations

import httpx
import pytest

from clubpoints.services.airtable_client import AirtableClient, PollSourceError


def _client(handler) -> AirtableClient:
    return AirtableClient("appTEST", "Attendance", "key-123", transport=httpx.MockTransport(handler))


class TestFetchAllRows:
    def test_follows_offset_pagination(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if "offset" not in request.url.params:
                return httpx.Response(200, json={
                    "records": [{"id": "rec1", "fields": {"Person": "Quinn"}}],
                    "offset": "page2",
                })
            return httpx.Response(200, json={
                "records": [{"id": "rec2", "fields": {"Person": "Kit"}}, {"id": "rec3"}],
            })

        rows = _client(handler).fetch_all_rows()

        assert rows == [{"Person": "Quinn"}, {"Person": "Kit"}, {}]
        assert len(seen) == 2
        assert seen[1].url.params["offset"] == "page2"
        assert seen[0].url.path == "/v0/appTEST/Attendance"
        assert seen[0].headers["Authorization"] == "Bearer key-123"

    def test_http_error_status(self):
        client = _client(lambda request: httpx.Response(401, json={"error": "nope"}))
        with pytest.raises(PollSourceError, match="401"):
            client.fetch_all_rows()

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(PollSourceError, match="unreachable"):
            _client(handler).fetch_all_rows()


class TestFromConfig:
    def test_requires_api_key(self, club_config, monkeypatch):
        monkeypatch.delenv("AIRTABLE_API_KEY", raising=False)
        with pytest.raises(RuntimeError, match="AIRTABLE_API_KEY"):
            AirtableClient.from_config(club_config)

    def test_requires_base_and_table(self, monkeypatch):
        from clubpoints.config import ClubConfig

        monkeypatch.setenv("AIRTABLE_API_KEY", "key")
        with pytest.raises(RuntimeError, match="base_id"):
            AirtableClient.from_config(ClubConfig(club_name="C", dashboard_port=1))

    def test_builds_client(self, club_config, monkeypatch):
        monkeypatch.setenv("AIRTABLE_API_KEY", "key")
        client = AirtableClient.from_config(club_config)
        assert client.url == "https://api.airtable.com/v0/appTEST/Attendance"
