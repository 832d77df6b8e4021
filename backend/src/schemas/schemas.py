from typing import Any, Optional
from pydantic import BaseModel, Field

from utilities import (
    CLIENT_RETRY_INTERVAL,
    HISTORY_SIZE,
    MAX_STREAM_DURATION,
    PING_INTERVAL,
    REWIND,
    START_ID,
)


class ChannelOptions(BaseModel):
    ''' Per-channel tuning; intervals and durations are in milliseconds.'''

    ping_interval: int = Field(default=PING_INTERVAL, ge=0)            # 0 disables keepalive
    max_stream_duration: int = Field(default=MAX_STREAM_DURATION, ge=0)  # 0 = unbounded
    client_retry_interval: int = Field(default=CLIENT_RETRY_INTERVAL, ge=0)
    start_id: int = START_ID
    history_size: int = Field(default=HISTORY_SIZE, ge=0)
    rewind: int = Field(default=REWIND, ge=0)


class CreateTopicRequest(BaseModel):
    name: str
    options: Optional[ChannelOptions] = None


class PublishRequest(BaseModel):
    # both absent -> keepalive ping
    data: Optional[Any] = None
    event: Optional[str] = None
