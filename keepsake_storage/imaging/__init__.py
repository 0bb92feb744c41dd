"""
Image compression for photos entering the blob store.
"""

from .codec import (
    DEFAULT_MAX_WIDTH,
    DEFAULT_QUALITY,
    CompressedImage,
    ImageSource,
    compress,
    scaled_size,
)

__all__ = [
    "compress",
    "scaled_size",
    "CompressedImage",
    "ImageSource",
    "DEFAULT_MAX_WIDTH",
    "DEFAULT_QUALITY",
]
