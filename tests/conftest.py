"""Shared pytest fixtures for image edit proxy tests."""

import base64
import json
import sys
from pathlib import Path
from typing import Callable, Optional

import httpx
import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from utils.config import ServiceConfig  # noqa: E402

API_BASE = "https://api.replicate.test/v1"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + b"\x00" * 16
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 16


class FakeReplicate:
    """Scripted stand-in for the Replicate predictions API.

    Each queued job is a list of status payloads. The first payload is merged
    into the creation response; the rest are returned by successive polls
    (the last one repeats). A queued httpx.Response is returned as-is for the
    creation call.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._queued: list = []
        self._jobs: dict[str, list[dict]] = {}
        self._counter = 0

    def queue(self, *payloads) -> "FakeReplicate":
        self._queued.append(list(payloads))
        return self

    def queue_response(self, response: httpx.Response) -> "FakeReplicate":
        self._queued.append(response)
        return self

    @property
    def created_inputs(self) -> list[dict]:
        return [
            json.loads(request.content)["input"]
            for request in self.requests
            if request.method == "POST"
        ]

    @property
    def create_calls(self) -> int:
        return sum(1 for request in self.requests if request.method == "POST")

    @property
    def poll_calls(self) -> int:
        return sum(1 for request in self.requests if request.method == "GET")

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.method == "POST" and request.url.path.endswith("/predictions"):
            script = self._queued.pop(0) if self._queued else [
                {"status": "succeeded", "output": ["https://replicate.delivery/out.png"]}
            ]
            if isinstance(script, httpx.Response):
                return script

            self._counter += 1
            job_id = f"pred{self._counter}"
            body = {
                "id": job_id,
                "status": "starting",
                "urls": {"get": f"{API_BASE}/predictions/{job_id}"},
                "output": None,
                "error": None,
            }
            if script:
                body.update(script[0])
            self._jobs[job_id] = script[1:] or [body]
            return httpx.Response(201, json=body)

        if request.method == "GET":
            job_id = request.url.path.rsplit("/", 1)[-1]
            payloads = self._jobs[job_id]
            payload = payloads.pop(0) if len(payloads) > 1 else payloads[0]
            return httpx.Response(200, json={"id": job_id, **payload})

        return httpx.Response(404, json={"detail": "not found"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


class FakeSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self, on_sleep: Optional[Callable[[int], None]] = None):
        self.calls: list[float] = []
        self._on_sleep = on_sleep

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self._on_sleep:
            self._on_sleep(len(self.calls))


@pytest.fixture
def service_config() -> ServiceConfig:
    """Configuration with a token and a short polling ceiling."""
    return ServiceConfig(
        replicate_api_token="r8_test_token",
        model_version="owner/model:abc123",
        api_base=API_BASE,
        poll_interval=1.5,
        max_poll_attempts=5,
    )


@pytest.fixture
def fake_replicate() -> FakeReplicate:
    return FakeReplicate()


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def png_base64() -> str:
    return base64.b64encode(PNG_BYTES).decode("ascii")


@pytest.fixture
def png_data_url(png_base64) -> str:
    return f"data:image/png;base64,{png_base64}"


@pytest.fixture
def jpeg_base64() -> str:
    return base64.b64encode(JPEG_BYTES).decode("ascii")
