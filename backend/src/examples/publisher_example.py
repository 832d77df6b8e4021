import asyncio
import uuid
import httpx  # to install: pip install httpx

async def main():
    base = "http://localhost:8000"
    async with httpx.AsyncClient(base_url=base) as client:
        # publish a test message to topic 'default'
        msg = {
            "event": "order",
            "data": {"order_id": str(uuid.uuid4()), "amount": 9.99, "currency": "USD"},
        }
        print("Client Message: ", msg)
        resp = await client.post("/topics/default/events", json=msg)
        print("Server:", resp.json())

if __name__ == "__main__":
    asyncio.run(main())
