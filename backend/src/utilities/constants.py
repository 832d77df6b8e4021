# ------------ Config ------------
SUBSCRIBER_QUEUE_SIZE = 50        # bounded per-subscriber write queue
PING_INTERVAL = 30000             # ms between keepalive pings (0 disables)
MAX_STREAM_DURATION = 0           # ms before a stream is force-closed (0 = unbounded)
CLIENT_RETRY_INTERVAL = 10000     # ms clients wait before reconnecting
START_ID = 1                      # first message id of a fresh channel
HISTORY_SIZE = 1                  # last N messages kept for replay
REWIND = 0                        # replay depth when no Last-Event-ID is sent

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
PING_OUTPUT = "data: \n\n"
# --------------------------------
