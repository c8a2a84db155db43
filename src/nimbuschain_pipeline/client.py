from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any

import requests
from loguru import logger
from pydantic import ValidationError

from nimbuschain_pipeline.errors import PipelineRequestError, ResponseDecodeError
from nimbuschain_pipeline.models import PROCESS_PATH, ErrorBody, ProcessingMode, TemporalResponse
from nimbuschain_pipeline.settings import get_settings


@dataclass(frozen=True)
class BinaryImage:
    content: bytes
    content_type: str


def extract_error_detail(response: requests.Response | None) -> str | None:
    """Return the server supplied ``detail`` string of an error response, if any."""
    if response is None:
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    try:
        return ErrorBody.model_validate(body).message
    except ValidationError:
        return None


class ProcessingClient(AbstractContextManager["ProcessingClient"]):
    """HTTP client for the imagery-processing service."""

    def __init__(
        self,
        *,
        service_url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        settings = get_settings()
        self.service_url = (service_url or settings.api_url).rstrip("/")
        self.timeout = float(timeout or settings.nimbus_pipeline_timeout_seconds)
        self._owns_session = session is None
        self._session: requests.Session | None = session or requests.Session()

    @property
    def process_url(self) -> str:
        return f"{self.service_url}{PROCESS_PATH}"

    def close(self) -> None:
        if self._session is not None and self._owns_session:
            self._session.close()
        self._session = None

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _post(self, payload: dict[str, Any], *, expect_binary: bool) -> requests.Response:
        assert self._session is not None, "client is closed"
        headers = {"Accept": "image/*" if expect_binary else "application/json"}
        try:
            response = self._session.post(
                self.process_url,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise PipelineRequestError(f"Transport failure: {exc}") from exc

        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            detail = extract_error_detail(response)
            raise PipelineRequestError(
                f"Processing service returned {response.status_code}",
                detail=detail,
                status_code=response.status_code,
            ) from exc
        return response

    def process_image(self, payload: dict[str, Any]) -> BinaryImage:
        response = self._post(payload, expect_binary=True)
        content_type = response.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()
        if not response.content:
            raise ResponseDecodeError("Empty image body", status_code=response.status_code)
        if content_type in {"application/json", "text/html"}:
            raise ResponseDecodeError(
                f"Expected an image body, got {content_type}",
                status_code=response.status_code,
            )
        if content_type and not content_type.startswith("image/"):
            logger.warning("Image response has unexpected content type {}", content_type)
        return BinaryImage(content=response.content, content_type=content_type or "image/png")

    def process_temporal(self, payload: dict[str, Any]) -> TemporalResponse:
        response = self._post(payload, expect_binary=False)
        try:
            body = response.json()
        except ValueError as exc:
            raise ResponseDecodeError(
                "Temporal response is not JSON",
                status_code=response.status_code,
            ) from exc
        if not isinstance(body, dict):
            raise ResponseDecodeError(
                "Temporal response is not a JSON object",
                status_code=response.status_code,
            )
        try:
            return TemporalResponse.model_validate(body)
        except ValidationError as exc:
            raise ResponseDecodeError(
                f"Temporal response has an unexpected shape: {exc.error_count()} errors",
                status_code=response.status_code,
            ) from exc

    def process(self, payload: dict[str, Any]) -> BinaryImage | TemporalResponse:
        # The decoding strategy must be fixed before the request goes out.
        if expects_binary(payload.get("scriptType")):
            return self.process_image(payload)
        return self.process_temporal(payload)


def expects_binary(mode: Any) -> bool:
    return mode != ProcessingMode.temporal_list.value
