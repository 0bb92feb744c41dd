"""
Shared test configuration and fixtures.

Stores run against real files under pytest's ``tmp_path``; images are
generated with Pillow.
"""

import io

import pytest
from PIL import Image

from keepsake_storage import KeepsakeRepository, StorageConfig


def _encode_image(
    width: int = 64,
    height: int = 48,
    mode: str = "RGB",
    color: tuple = (200, 80, 40),
    fmt: str = "PNG",
) -> bytes:
    """Encode a solid-color test image."""
    img = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    img.save(buffer, fmt)
    return buffer.getvalue()


class RecordingChannel:
    """Outbound channel that records what it was asked to do."""

    def __init__(self, share_fails: bool | None = None):
        self.shared: list[tuple[str, str]] = []
        self.opened: list[str] = []
        self.copied: list[str] = []
        if share_fails is None:
            self.share = None
        else:
            self._share_fails = share_fails
            self.share = self._share

    async def _share(self, text: str, title: str) -> None:
        if self._share_fails:
            raise RuntimeError("share cancelled")
        self.shared.append((text, title))

    async def open_url(self, url: str) -> None:
        self.opened.append(url)

    async def copy_to_clipboard(self, text: str) -> None:
        self.copied.append(text)


@pytest.fixture
def image_bytes() -> bytes:
    return _encode_image()


@pytest.fixture
def config(tmp_path) -> StorageConfig:
    return StorageConfig(base_path=tmp_path / "keepsake")


@pytest.fixture
async def repository(config):
    """Repository over fresh on-disk stores."""
    repo = await KeepsakeRepository.open(config)
    yield repo
    await repo.close()


@pytest.fixture
def make_image():
    """Factory for encoded test images: make_image(width, height, mode, color, fmt)."""
    return _encode_image


@pytest.fixture
def make_channel():
    """Factory for recording outbound channels: make_channel(share_fails=None)."""
    return RecordingChannel
