"""
SpaceSaver: reclaim disk space without losing data.

Core features:
- Byte-exact duplicate detection: size buckets first, then a streaming content hash
- Safe deletion of duplicates to system trash (via send2trash)
- Pluggable transcoders: still images to WebP, animated GIF to animated WebP,
  image ZIP archives repacked with WebP entries
- Async scheduler with bounded concurrency and progress events
- CLI interface for headless/server usage
"""

# Get version
try:
    from importlib.metadata import version as _version
    __version__ = _version("spacesaver")
except Exception:
    __version__ = "0.0.0"

# Public API: only what users should import directly
from spacesaver.commands import DeduplicationCommand, DeduplicationParams
from spacesaver.compression import PluginRegistry, build_registry, global_registry
from spacesaver.config import AppConfig, load_config
from spacesaver.core import DuplicateGroup, FileDescriptor, FilterSpec, find_duplicates
from spacesaver.services import CompressService, DuplicateService, FileService, Scheduler, StatsService
from spacesaver.utils.convert_utils import ConvertUtils
