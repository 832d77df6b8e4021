from models.stream import EventStream, StreamClosedError  # noqa: F401
from models.models import Channel, Connection, Message  # noqa: F401
