"""Shared fixtures for image-relay tests."""

import base64

import httpx
import pytest

from image_relay.config.settings import ProviderConfig
from image_relay.core.models import ReferenceImage

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + b"\x01" * 16


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture
def png_b64():
    return base64.b64encode(PNG_BYTES).decode("utf-8")


@pytest.fixture
def mock_client():
    """Factory for an AsyncClient whose requests are answered by handler."""
    def _make(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def provider_config():
    """Default endpoint config for a service, ignoring the process environment."""

    def _make(service):
        return ProviderConfig.for_service(service, environ={})

    return _make


@pytest.fixture
def reference_image():
    return ReferenceImage(
        data=PNG_BYTES,
        encoded=base64.b64encode(PNG_BYTES).decode("utf-8"),
        mime_type="image/png",
        source_path="/tmp/ref.png",
    )


@pytest.fixture
def no_sleep():
    """Awaitable sleep that records requested delays without waiting."""
    delays = []

    async def _sleep(seconds):
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep
