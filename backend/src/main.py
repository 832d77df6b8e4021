import re
import asyncio
import logging
from typing import Dict, List, Optional
from contextlib import asynccontextmanager
from datetime import datetime, timezone


from starlette.background import BackgroundTask
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi import Depends, FastAPI, HTTPException, Query, Request

from models import Channel, EventStream
from schemas import ChannelOptions, CreateTopicRequest, PublishRequest
from utilities import compile_event_filter, get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Global registry
TOPICS: Dict[str, Channel] = {}
TOPICS_LOCK = asyncio.Lock()

# Stats
START_TS = datetime.now(timezone.utc)

# -------------- Utilities --------------
def default_options() -> ChannelOptions:
    return ChannelOptions(**settings.model_dump(include=set(ChannelOptions.model_fields)))

async def get_topic(name: str) -> Optional[Channel]:
    async with TOPICS_LOCK:
        return TOPICS.get(name)

async def require_topic(name: str) -> Channel:
    """Path dependency: the channel for `{name}` or 404."""
    channel = await get_topic(name)
    if channel is None:
        raise HTTPException(status_code=404, detail=f"topic {name} not found")
    return channel

async def create_topic(name: str, options: Optional[ChannelOptions] = None) -> Optional[Channel]:
    """Register a new channel; None when the name is taken."""
    async with TOPICS_LOCK:
        if name in TOPICS:
            return None
        channel = Channel(options or default_options(), name=name, verbose=settings.verbose_debugging)
        TOPICS[name] = channel
    logger.info("Topic %s created", name)
    return channel

async def delete_topic(name: str) -> bool:
    async with TOPICS_LOCK:
        channel = TOPICS.pop(name, None)
    if channel is None:
        return False
    # ends every subscriber stream
    await channel.close()
    return True

async def close_all_topics():
    async with TOPICS_LOCK:
        topics = list(TOPICS.values())
        TOPICS.clear()
    for t in topics:
        await t.close()

# -------------- App --------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.default_topic:
        await create_topic(settings.default_topic)
    yield
    await close_all_topics()

app = FastAPI(title="SSE Broadcast Channel", lifespan=lifespan)

@app.middleware("http")
async def sse_support(request: Request, call_next):
    """Advertise streaming support to clients when it is enabled."""
    response = await call_next(request)
    if settings.enable_event_stream:
        response.headers["x-sse-support"] = "enabled"
        response.headers["Access-Control-Expose-Headers"] = "x-sse-support"
    return response

# -------------- SSE endpoint --------------
@app.get("/topics/{name}/events")
async def rest_stream_events(
    request: Request,
    channel: Channel = Depends(require_topic),
    event: Optional[List[str]] = Query(None),
    pattern: Optional[List[str]] = Query(None),
):
    if not settings.enable_event_stream:
        raise HTTPException(status_code=404, detail="event streaming disabled")
    try:
        events = compile_event_filter(event, pattern)
    except re.error as exc:
        raise HTTPException(status_code=400, detail=f"invalid pattern: {exc}")

    stream = EventStream(
        client_host=request.client.host if request.client else None,
        last_event_id=request.headers.get("last-event-id"),
    )
    await channel.subscribe(stream, events)
    # background is skipped on ASGI 2.4 disconnects; body() finally covers that path
    return StreamingResponse(
        stream,
        status_code=stream.status_code or 200,
        headers=stream.headers,
        background=BackgroundTask(stream.finish),
    )

# -------------- REST endpoints --------------

@app.post("/topics", status_code=201)
async def rest_create_topic(req: CreateTopicRequest):
    if not req.name:
        raise HTTPException(status_code=400, detail="name required")
    if await create_topic(req.name, req.options) is None:
        return JSONResponse(status_code=409, content={"status": "conflict", "topic": req.name})
    return {"status": "created", "topic": req.name}

@app.delete("/topics/{name}")
async def rest_delete_topic(name: str):
    if not await delete_topic(name):
        raise HTTPException(status_code=404, detail=f"topic {name} not found")
    return {"status": "deleted", "topic": name}

@app.get("/topics")
async def rest_list_topics():
    async with TOPICS_LOCK:
        topics = list(TOPICS.values())
    return {"topics": [{"name": t.name, "subscribers": t.get_subscriber_count()} for t in topics]}

@app.post("/topics/{name}/events")
async def rest_publish(req: PublishRequest, channel: Channel = Depends(require_topic)):
    message_id = await channel.publish(req.data, req.event)
    return {"status": "ok", "topic": channel.name, "id": message_id}

@app.get("/topics/{name}/clients")
async def rest_list_clients(channel: Channel = Depends(require_topic)):
    return {
        "topic": channel.name,
        "subscribers": channel.get_subscriber_count(),
        "clients": channel.list_clients(),
    }

@app.get("/health")
async def rest_health():
    now = datetime.now(timezone.utc)
    uptime_sec = int((now - START_TS).total_seconds())
    async with TOPICS_LOCK:
        topics_count = len(TOPICS)
        subscribers_count = sum(t.get_subscriber_count() for t in TOPICS.values())
    return {
        "uptime_sec": uptime_sec,
        "topics": topics_count,
        "subscribers": subscribers_count,
        "event_stream": settings.enable_event_stream,
    }

@app.get("/stats")
async def rest_stats():
    async with TOPICS_LOCK:
        topic_items = list(TOPICS.items())
    return {"topics": {name: t.stats() for name, t in topic_items}}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
