from __future__ import annotations

import pytest

from nimbuschain_pipeline.errors import HandleReleasedError
from nimbuschain_pipeline.handles import HandleRegistry


def test_allocate_and_release() -> None:
    registry = HandleRegistry()
    handle = registry.allocate(b"abc", "image/png")

    assert handle.handle_id.startswith("blob:")
    assert handle.content == b"abc"
    assert handle.size == 3
    assert registry.live_count == 1

    registry.release(handle)
    assert handle.released
    assert registry.live_count == 0
    with pytest.raises(HandleReleasedError):
        _ = handle.content

    handle.release()
    assert registry.live_count == 0


def test_handle_context_manager_releases() -> None:
    registry = HandleRegistry()
    with registry.allocate(b"xyz", "") as handle:
        assert handle.content_type == "application/octet-stream"
        assert registry.live_count == 1
    assert handle.released
    assert registry.live_count == 0


def test_release_all() -> None:
    registry = HandleRegistry()
    handles = [registry.allocate(bytes([i]), "image/png") for i in range(3)]
    registry.release(None)

    registry.release_all()

    assert registry.live_count == 0
    assert all(handle.released for handle in handles)
