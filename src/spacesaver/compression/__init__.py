"""
Transcoding: the plugin registry, its negotiation logic and the built-in transcoders.
"""

from .registry import PluginRegistry, build_registry, global_registry, reset_global_registry
from .plugins import AnimatedWebPConverter, ImageZipToWebpZip, WebPConverter

__all__ = [
    "PluginRegistry",
    "build_registry",
    "global_registry",
    "reset_global_registry",
    "AnimatedWebPConverter",
    "ImageZipToWebpZip",
    "WebPConverter",
]
