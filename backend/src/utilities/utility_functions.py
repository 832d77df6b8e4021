import re
import json
from typing import Any, Iterable, Optional, Union

EventMatcher = Union[str, re.Pattern]

_LINE_BREAKS = re.compile(r"[\r\n]+")


def encode_data(data: Any) -> str:
    """Flatten a payload to text: strings pass through, anything else is compact JSON."""
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    return json.dumps(data, separators=(",", ":"))


def render_data_lines(text: str) -> str:
    # one `data:` line per payload line so embedded newlines stay valid
    if not text:
        return "data: "
    return "\n".join("data: " + line for line in _LINE_BREAKS.split(text))


def render_message(message_id: int, event_name: str, data: Any) -> str:
    output = f"id: {message_id} \n"
    if event_name:
        output += f"event: {event_name}\n"
    return output + render_data_lines(encode_data(data)) + "\n\n"


def render_retry(interval_ms: int) -> str:
    return f"retry: {interval_ms}\n\n"


def matches_event(events: Optional[Iterable[EventMatcher]], event_name: str) -> bool:
    """
    Decide whether a connection filtered on `events` receives `event_name`.

    No filter means everything; unnamed messages (including pings) reach
    every connection. Otherwise a literal must equal the name, or a compiled
    pattern must match somewhere in it.
    """
    if not events or not event_name:
        return True
    for pattern in events:
        if isinstance(pattern, str):
            if pattern == event_name:
                return True
        elif pattern.search(event_name):
            return True
    return False


def parse_last_event_id(raw: Optional[str]) -> Optional[int]:
    # malformed or missing header means "no prior id"
    if raw is None:
        return None
    match = re.match(r"\s*([+-]?\d+)", raw)
    if match is None:
        return None
    return int(match.group(1))


def compile_event_filter(events: Optional[Iterable[str]] = None,
                         patterns: Optional[Iterable[str]] = None) -> Optional[list]:
    """Build a connection filter from literal names and regex sources. Raises re.error on bad patterns."""
    matchers: list = list(events or [])
    matchers.extend(re.compile(p) for p in patterns or [])
    return matchers or None
