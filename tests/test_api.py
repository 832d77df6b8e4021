"""Tests for the HTTP surface: topic registry, publishing, streaming and capability headers."""

import pytest
from httpx import AsyncClient

import main
from utilities import render_message


class TestTopicsAPI:

    @pytest.mark.asyncio
    async def test_create_list_delete(self, client: AsyncClient):
        response = await client.post("/topics", json={"name": "orders"})
        assert response.status_code == 201
        assert response.json() == {"status": "created", "topic": "orders"}

        response = await client.post("/topics", json={"name": "orders"})
        assert response.status_code == 409

        response = await client.get("/topics")
        assert response.json() == {"topics": [{"name": "orders", "subscribers": 0}]}

        response = await client.delete("/topics/orders")
        assert response.status_code == 200
        response = await client.delete("/topics/orders")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_empty_name_rejected(self, client: AsyncClient):
        response = await client.post("/topics", json={"name": ""})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_options_rejected(self, client: AsyncClient):
        response = await client.post("/topics", json={"name": "t", "options": {"history_size": -1}})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_create_with_options(self, client: AsyncClient):
        await client.post("/topics", json={"name": "t", "options": {"history_size": 7, "ping_interval": 0}})
        channel = await main.get_topic("t")
        assert channel.options.history_size == 7
        assert channel.ping_task is None


class TestPublishAPI:

    @pytest.mark.asyncio
    async def test_publish_assigns_ids(self, client: AsyncClient):
        await client.post("/topics", json={"name": "t", "options": {"ping_interval": 0}})
        first = await client.post("/topics/t/events", json={"event": "ev", "data": {"n": 1}})
        second = await client.post("/topics/t/events", json={"data": "plain"})
        assert first.json() == {"status": "ok", "topic": "t", "id": 1}
        assert second.json()["id"] == 2

    @pytest.mark.asyncio
    async def test_ping_without_subscribers_has_no_id(self, client: AsyncClient):
        await client.post("/topics", json={"name": "t", "options": {"ping_interval": 0}})
        response = await client.post("/topics/t/events", json={})
        assert response.json()["id"] is None

    @pytest.mark.asyncio
    async def test_unknown_topic(self, client: AsyncClient):
        response = await client.post("/topics/missing/events", json={"data": "x"})
        assert response.status_code == 404


class TestStreamAPI:

    @pytest.mark.asyncio
    async def test_stream_replays_from_last_event_id(self, client: AsyncClient):
        options = {"ping_interval": 0, "max_stream_duration": 50, "history_size": 5}
        await client.post("/topics", json={"name": "t", "options": options})
        await client.post("/topics/t/events", json={"event": "ev", "data": "one"})
        await client.post("/topics/t/events", json={"event": "other", "data": "two"})
        await client.post("/topics/t/events", json={"event": "ev", "data": "three"})

        response = await client.get(
            "/topics/t/events",
            params={"event": "ev"},
            headers={"Last-Event-ID": "1"},
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.text == "retry: 10000\n\n" + render_message(3, "ev", "three")

        channel = await main.get_topic("t")
        assert channel.get_subscriber_count() == 0

    @pytest.mark.asyncio
    async def test_invalid_pattern(self, client: AsyncClient):
        await client.post("/topics", json={"name": "t"})
        response = await client.get("/topics/t/events", params={"pattern": "("})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_topic(self, client: AsyncClient):
        response = await client.get("/topics/missing/events")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_streaming_disabled(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(main.settings, "enable_event_stream", False)
        await client.post("/topics", json={"name": "t"})
        response = await client.get("/topics/t/events")
        assert response.status_code == 404


class TestCapabilityHeaders:

    @pytest.mark.asyncio
    async def test_headers_when_enabled(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(main.settings, "enable_event_stream", True)
        response = await client.get("/health")
        assert response.headers["x-sse-support"] == "enabled"
        assert response.headers["access-control-expose-headers"] == "x-sse-support"

    @pytest.mark.asyncio
    async def test_no_headers_when_disabled(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(main.settings, "enable_event_stream", False)
        response = await client.get("/health")
        assert "x-sse-support" not in response.headers
        assert response.json()["event_stream"] is False


class TestStatusAPI:

    @pytest.mark.asyncio
    async def test_health_and_stats(self, client: AsyncClient):
        await client.post("/topics", json={"name": "t", "options": {"ping_interval": 0}})
        await client.post("/topics/t/events", json={"event": "ev", "data": "x"})

        health = (await client.get("/health")).json()
        assert health["topics"] == 1
        assert health["subscribers"] == 0

        stats = (await client.get("/stats")).json()
        assert stats["topics"]["t"]["messages_published"] == 1
        assert stats["topics"]["t"]["next_id"] == 2

    @pytest.mark.asyncio
    async def test_clients(self, client: AsyncClient):
        await client.post("/topics", json={"name": "t", "options": {"ping_interval": 0}})
        response = await client.get("/topics/t/clients")
        assert response.json() == {"topic": "t", "subscribers": 0, "clients": {}}

    @pytest.mark.asyncio
    async def test_clients_unknown_topic(self, client: AsyncClient):
        response = await client.get("/topics/missing/clients")
        assert response.status_code == 404
        assert response.json()["detail"] == "topic missing not found"
