"""Pytest fixtures for the SSE broadcast channel tests."""

from typing import AsyncGenerator, Callable, List

import asyncio
import pytest
from httpx import ASGITransport, AsyncClient

import main
from models import Channel, EventStream
from schemas import ChannelOptions


def read_chunks(stream: EventStream) -> List[str]:
    """Pop every chunk queued on a stream without awaiting, skipping the end marker."""
    chunks = []
    while True:
        try:
            chunk = stream.queue.get_nowait()
        except asyncio.QueueEmpty:
            return chunks
        if chunk is not None:
            chunks.append(chunk)


@pytest.fixture
def drain() -> Callable[[EventStream], List[str]]:
    return read_chunks


@pytest.fixture
async def make_channel() -> AsyncGenerator[Callable[..., Channel], None]:
    """Factory for channels; keepalive is off unless a test asks for it.

    Every channel built here is closed at teardown so no ping task outlives
    its test.
    """
    channels: List[Channel] = []

    def factory(**options) -> Channel:
        options.setdefault("ping_interval", 0)
        channel = Channel(ChannelOptions(**options), name="test")
        channels.append(channel)
        return channel

    yield factory

    for channel in channels:
        await channel.close()


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app with an empty topic registry."""
    await main.close_all_topics()
    transport = ASGITransport(app=main.app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await main.close_all_topics()
