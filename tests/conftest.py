from __future__ import annotations

import json
import threading
import time
from typing import Any

import pytest
import requests

from nimbuschain_pipeline.client import BinaryImage, ProcessingClient
from nimbuschain_pipeline.controller import PipelineController
from nimbuschain_pipeline.settings import Settings

TEST_API_URL = "http://pipeline.test"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def make_response(
    status_code: int,
    *,
    body: bytes = b"",
    json_body: Any = None,
    content_type: str | None = None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    if json_body is not None:
        body = json.dumps(json_body).encode("utf-8")
        content_type = content_type or "application/json"
    response._content = body
    if content_type:
        response.headers["Content-Type"] = content_type
    response.url = f"{TEST_API_URL}/api/sentinel-hub/process"
    response.reason = "OK" if status_code < 400 else "Error"
    response.encoding = "utf-8"
    return response


def image_response(content: bytes = PNG_BYTES) -> requests.Response:
    return make_response(200, body=content, content_type="image/png")


def temporal_response(results: Any) -> requests.Response:
    return make_response(200, json_body={"results": results})


class FakeSession:
    """Stands in for ``requests.Session`` and replays queued responses."""

    def __init__(self, responses: list[Any] | None = None):
        self.responses = list(responses or [])
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def queue(self, *responses: Any) -> None:
        self.responses.extend(responses)

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


class GatedBackend:
    """Backend whose first call blocks until ``gate`` is set."""

    def __init__(self):
        self.gate = threading.Event()
        self.calls = 0
        self._lock = threading.Lock()

    def process(self, payload: dict[str, Any]) -> BinaryImage:
        with self._lock:
            self.calls += 1
            call = self.calls
        if call == 1:
            self.gate.wait(timeout=10)
            return BinaryImage(content=b"first", content_type="image/png")
        return BinaryImage(content=f"call-{call}".encode(), content_type="image/png")

    def close(self) -> None:
        pass


def wait_until(predicate, timeout: float = 5.0) -> None:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return
        time.sleep(0.01)
    raise TimeoutError("condition not met in time")


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        nimbus_pipeline_api_url=TEST_API_URL,
        nimbus_pipeline_timeout_seconds=5,
        nimbus_enable_metrics=False,
    )


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def client(fake_session: FakeSession) -> ProcessingClient:
    return ProcessingClient(service_url=TEST_API_URL, timeout=5, session=fake_session)


@pytest.fixture
def controller(test_settings: Settings, client: ProcessingClient) -> PipelineController:
    ctrl = PipelineController(settings=test_settings, client=client, enable_metrics=False)
    yield ctrl
    ctrl.close()
