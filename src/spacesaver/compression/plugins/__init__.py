"""
Built-in transcoders. Each one satisfies the Transcoder protocol without a common base class.
"""

from .webp_converter import WebPConverter
from .animated_webp_converter import AnimatedWebPConverter, ExternalEncoder, ffmpeg_encoder, gif2webp_encoder
from .image_zip_to_webp import ImageZipToWebpZip

__all__ = [
    "WebPConverter",
    "AnimatedWebPConverter",
    "ExternalEncoder",
    "ffmpeg_encoder",
    "gif2webp_encoder",
    "ImageZipToWebpZip",
]
