"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import base64
import json
import tempfile
from io import BytesIO
from pathlib import Path

import numpy as np
import pytest
from PIL import Image


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def make_raster(width: int, height: int, color: tuple[int, int, int] = (200, 120, 40)) -> np.ndarray:
    image = np.empty((height, width, 3), dtype=np.uint8)
    image[:, :] = color
    return image


def png_b64(image: np.ndarray) -> str:
    buffer = BytesIO()
    Image.fromarray(image).save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


@pytest.fixture
def write_image(temp_dir):
    """Factory writing a solid JPEG into the temp dir and returning its path."""

    def _factory(name: str, width: int, height: int, color=(200, 120, 40)) -> str:
        path = temp_dir / name
        Image.fromarray(make_raster(width, height, color)).save(path, format="JPEG", quality=95)
        return str(path)

    return _factory


class FakeResponse:
    """Minimal stand-in for an aiohttp response context manager."""

    def __init__(self, status: int = 200, payload=None, *, text: str | None = None) -> None:
        self.status = status
        self._text = text if text is not None else json.dumps(payload if payload is not None else {})

    async def text(self) -> str:
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> bool:
        return False


class FakeSession:
    """Records POST calls and replays queued responses or exceptions."""

    def __init__(self, responses) -> None:
        self._responses = list(responses)
        self.calls: list[tuple[str, dict]] = []
        self.closed = False

    def post(self, url: str, **kwargs):
        self.calls.append((url, kwargs))
        item = self._responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


class StubTokenProvider:
    def __init__(self, token: str = "test-token") -> None:
        self.token = token
        self.calls = 0

    async def get_token(self) -> str:
        self.calls += 1
        return self.token


@pytest.fixture
def token_provider():
    return StubTokenProvider()
