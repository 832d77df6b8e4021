from utilities.constants import *  # noqa: F401,F403
from utilities.utility_functions import (  # noqa: F401
    EventMatcher,
    compile_event_filter,
    encode_data,
    matches_event,
    parse_last_event_id,
    render_data_lines,
    render_message,
    render_retry,
)
from utilities.settings import Settings, get_settings  # noqa: F401
