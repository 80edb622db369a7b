import json

import httpx
import pytest
from httpx import AsyncClient, ASGITransport
from typing import AsyncGenerator

from lightx_relay.core.config import Settings
from lightx_relay.main import app
from lightx_relay.api.dependencies import get_settings, get_http_client


class FakeUpstream:
    """Answers outbound relay traffic (LightX, image host, S3) with canned replies."""

    LIGHTX_BASE = "https://lightx.test/external/api/v2"
    SOURCE_URL = "https://cdn.example.com/photo.jpg"
    UPLOAD_URL = "https://s3.example.com/upload/abc?sig=1"
    STAGED_URL = "https://lightx-cdn.example.com/abc.jpg"
    IMAGE_BYTES = b"\xff\xd8\xff\xe0fake-jpeg-bytes"

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method: str, url: str, *responses):
        """Queue replies for a route; the last one repeats once the queue drains."""
        self.routes.setdefault((method, url), []).extend(responses)

    def lightx(self, path: str, *responses):
        self.add("POST", f"{self.LIGHTX_BASE}{path}", *responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, str(request.url)))
        if not queue:
            return httpx.Response(404, json={"message": f"no route for {request.method} {request.url}"})
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    def calls(self, method: str, url: str):
        return [r for r in self.requests if r.method == method and str(r.url) == url]

    def lightx_calls(self, path: str):
        return self.calls("POST", f"{self.LIGHTX_BASE}{path}")

    @staticmethod
    def body(request: httpx.Request):
        return json.loads(request.content)

    def stage_image(self, content_type: str = "image/png"):
        """Register a working probe, upload slot, fetch and transfer."""
        self.add("HEAD", self.SOURCE_URL, httpx.Response(
            200,
            headers={"Content-Length": str(len(self.IMAGE_BYTES)), "Content-Type": content_type}
        ))
        self.lightx("/uploadImageUrl", httpx.Response(200, json={
            "statusCode": 2000,
            "message": "SUCCESS",
            "body": {"uploadImage": self.UPLOAD_URL, "imageUrl": self.STAGED_URL},
        }))
        self.add("GET", self.SOURCE_URL, httpx.Response(200, content=self.IMAGE_BYTES))
        self.add("PUT", self.UPLOAD_URL, httpx.Response(200))

    def order(self, tool: str, order_id: str = "order-1", max_retries=5):
        body = {"orderId": order_id, "status": "init"}
        if max_retries is not None:
            body["maxRetriesAllowed"] = max_retries
        self.lightx(f"/{tool}", httpx.Response(200, json={"statusCode": 2000, "body": body}))

    @staticmethod
    def status(status: str, output=None) -> httpx.Response:
        body = {"orderId": "order-1", "status": status}
        if output is not None:
            body["output"] = output
        return httpx.Response(200, json={"statusCode": 2000, "body": body})

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def relay_settings() -> Settings:
    return Settings(
        LIGHTX_API_KEY="test-key",
        LIGHTX_BASE_URL=FakeUpstream.LIGHTX_BASE,
        POLL_INTERVAL_SECONDS=0,
    )


@pytest.fixture
async def http_client(upstream) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with upstream.http_client() as client:
        yield client


@pytest.fixture
async def client(http_client, relay_settings) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_settings] = lambda: relay_settings
    app.dependency_overrides[get_http_client] = lambda: http_client
    try:
        # Trigger lifespan events (startup/shutdown)
        async with app.router.lifespan_context(app):
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
                yield ac
    finally:
        app.dependency_overrides.clear()
