import asyncio
from typing import Optional
import httpx  # to install: pip install httpx

async def main():
    url = "http://localhost:8000/topics/default/events"
    last_event_id: Optional[str] = None
    print("Awaiting messages... (press Ctrl+C to exit)")
    # reconnect with Last-Event-ID so nothing buffered is missed
    while True:
        headers = {"Last-Event-ID": last_event_id} if last_event_id else {}
        try:
            async with httpx.AsyncClient(timeout=None) as client:
                async with client.stream("GET", url, params={"event": "order"}, headers=headers) as resp:
                    print("x-sse-support:", resp.headers.get("x-sse-support"))
                    async for line in resp.aiter_lines():
                        if line.startswith("id:"):
                            last_event_id = line[3:].strip()
                        if line:
                            print("Received:", line)
        except httpx.TransportError as exc:
            print("Disconnected:", exc)
        await asyncio.sleep(1)

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("Unsubscribed.")
