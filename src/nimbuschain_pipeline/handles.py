"""Client-side handles for binary results.

A handle plays the part of a browser object URL: it owns the bytes of one
image returned by the processing service and must be released once the
outcome holding it is superseded.
"""

from __future__ import annotations

import threading
import uuid
from contextlib import AbstractContextManager

from loguru import logger

from nimbuschain_pipeline.errors import HandleReleasedError


class ImageHandle(AbstractContextManager["ImageHandle"]):
    def __init__(self, *, content: bytes, content_type: str, registry: "HandleRegistry | None" = None):
        self.handle_id = f"blob:{uuid.uuid4().hex}"
        self.content_type = content_type or "application/octet-stream"
        self.size = len(content)
        self._content: bytes | None = content
        self._registry = registry

    @property
    def released(self) -> bool:
        return self._content is None

    @property
    def content(self) -> bytes:
        if self._content is None:
            raise HandleReleasedError(f"Handle {self.handle_id} has been released.")
        return self._content

    def release(self) -> None:
        if self._content is None:
            return
        self._content = None
        if self._registry is not None:
            self._registry._forget(self)
        logger.debug("Released image handle {} ({} bytes)", self.handle_id, self.size)

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"ImageHandle({self.handle_id!r}, {self.content_type!r}, {self.size} bytes, {state})"


class HandleRegistry:
    """Tracks live image handles so that nothing outlives its owner."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._live: dict[str, ImageHandle] = {}

    @property
    def live_count(self) -> int:
        with self._lock:
            return len(self._live)

    def allocate(self, content: bytes, content_type: str) -> ImageHandle:
        handle = ImageHandle(content=content, content_type=content_type, registry=self)
        with self._lock:
            self._live[handle.handle_id] = handle
        logger.debug("Allocated image handle {} ({} bytes)", handle.handle_id, handle.size)
        return handle

    def release(self, handle: ImageHandle | None) -> None:
        if handle is not None:
            handle.release()

    def release_all(self) -> None:
        with self._lock:
            handles = list(self._live.values())
        for handle in handles:
            handle.release()

    def _forget(self, handle: ImageHandle) -> None:
        with self._lock:
            self._live.pop(handle.handle_id, None)
