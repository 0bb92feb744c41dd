"""
Photo compression.

Downsizes and re-encodes an input image into a bounded-size JPEG before it
enters the blob store. Decoding runs in a worker thread so large images do
not block the event loop.
"""

from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from PIL import Image, ImageOps, UnidentifiedImageError

from ..exceptions import CodecError

logger = logging.getLogger(__name__)

DEFAULT_MAX_WIDTH = 1280
DEFAULT_QUALITY = 0.82
OUTPUT_MIME = "image/jpeg"

ImageSource = bytes | bytearray | str | Path | BinaryIO


@dataclass
class CompressedImage:
    """Re-encoded image ready for the blob store."""

    data: bytes
    width: int
    height: int
    mime: str = OUTPUT_MIME


def scaled_size(width: int, height: int, max_width: int) -> tuple[int, int]:
    """Target size for a uniform downscale that never upscales.

    Args:
        width: Source width in pixels
        height: Source height in pixels
        max_width: Maximum output width

    Returns:
        (width, height) after scaling by min(1, max_width / width)
    """
    scale = min(1.0, max_width / width)
    return max(1, round(width * scale)), max(1, round(height * scale))


def _open_source(source: ImageSource) -> Image.Image:
    if isinstance(source, (bytes, bytearray)):
        return Image.open(io.BytesIO(bytes(source)))
    return Image.open(source)


def _compress_sync(source: ImageSource, max_width: int, quality: float) -> CompressedImage:
    try:
        with _open_source(source) as img:
            img.load()
            oriented = ImageOps.exif_transpose(img)
            size = scaled_size(oriented.width, oriented.height, max_width)
            if size != oriented.size:
                oriented = oriented.resize(size, Image.Resampling.LANCZOS)

            if oriented.mode in ("RGBA", "LA", "P"):
                rgba = oriented.convert("RGBA")
                canvas = Image.new("RGB", rgba.size, (255, 255, 255))
                canvas.paste(rgba, mask=rgba.getchannel("A"))
                oriented = canvas
            elif oriented.mode != "RGB":
                oriented = oriented.convert("RGB")

            buffer = io.BytesIO()
            oriented.save(buffer, "JPEG", quality=round(quality * 100), optimize=True)
            return CompressedImage(data=buffer.getvalue(), width=oriented.width, height=oriented.height)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise CodecError("could not decode source image", e) from e


async def compress(
    source: ImageSource,
    max_width: int = DEFAULT_MAX_WIDTH,
    quality: float = DEFAULT_QUALITY,
) -> CompressedImage:
    """Downscale and re-encode an image as JPEG.

    Args:
        source: Raw image bytes, a file path, or a binary file object
        max_width: Maximum output width; smaller images keep their size
        quality: JPEG quality as a fraction in (0, 1]

    Returns:
        CompressedImage with the encoded bytes and output dimensions

    Raises:
        ValueError: If max_width or quality is out of range
        CodecError: If the source cannot be decoded
    """
    if max_width <= 0:
        raise ValueError(f"max_width must be positive, got {max_width}")
    if not 0 < quality <= 1:
        raise ValueError(f"quality must be in (0, 1], got {quality}")

    result = await asyncio.to_thread(_compress_sync, source, max_width, quality)
    logger.debug(f"Compressed image to {result.width}x{result.height} ({len(result.data)} bytes)")
    return result
