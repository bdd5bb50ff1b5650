"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

config.py
Application configuration: built-in tunables plus an optional TOML file.

Lookup order for the file: explicit path, then $SPACESAVER_CONFIG, then
~/.config/spacesaver/config.toml. A missing file means "all defaults".
"""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Python < 3.11: pip install tomli

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SPACESAVER_CONFIG"
DEFAULT_CONFIG_PATH = Path("~/.config/spacesaver/config.toml")

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


class TranscodeConfig:
    DEFAULT_QUALITY = 85
    JPEG_BPP_THRESHOLD = 0.5  # JPEGs at or below this are already well compressed
    ZIP_IMAGE_SATURATION = 1.0  # Fraction of entries that must be images
    ZIP_DEFLATE_LEVEL = 6
    COPY_CHUNK_SIZE = 1024 * 1024  # Pass-through archive entries are streamed in chunks of this size
    GIF_ENCODERS = ("gif2webp", "ffmpeg")
    FFMPEG_GIF_QUALITY = 75

    @staticmethod
    def validate_quality(quality: int) -> None:
        if not 0 <= quality <= 100:
            raise ValueError(f"Quality must be between 0 and 100, got {quality}")


@dataclass
class ScanConfig:
    follow_links: bool = False
    max_depth: Optional[int] = None
    excluded_dirs: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.max_depth is not None and self.max_depth < 0:
            raise ValueError("scan.max_depth cannot be negative")


@dataclass
class WebPConfig:
    quality: int = TranscodeConfig.DEFAULT_QUALITY
    jpeg_bpp_threshold: float = TranscodeConfig.JPEG_BPP_THRESHOLD

    def __post_init__(self):
        TranscodeConfig.validate_quality(self.quality)
        if self.jpeg_bpp_threshold < 0:
            raise ValueError("webp.jpeg_bpp_threshold cannot be negative")


@dataclass
class ZipConfig:
    quality: int = TranscodeConfig.DEFAULT_QUALITY
    min_image_ratio: float = TranscodeConfig.ZIP_IMAGE_SATURATION

    def __post_init__(self):
        TranscodeConfig.validate_quality(self.quality)
        if not 0.0 <= self.min_image_ratio <= 1.0:
            raise ValueError("zip.min_image_ratio must be between 0.0 and 1.0")


@dataclass
class GifConfig:
    encoders: List[str] = field(default_factory=lambda: list(TranscodeConfig.GIF_ENCODERS))
    quality: Optional[int] = None  # None: gif2webp 85, ffmpeg 75
    keep_original_extension: bool = True

    def __post_init__(self):
        if self.quality is not None:
            TranscodeConfig.validate_quality(self.quality)
        unknown = [name for name in self.encoders if name not in TranscodeConfig.GIF_ENCODERS]
        if unknown:
            raise ValueError(
                f"Unknown GIF encoder(s): {', '.join(unknown)}. "
                f"Valid options: {', '.join(TranscodeConfig.GIF_ENCODERS)}"
            )
        if not self.encoders:
            raise ValueError("gif.encoders must list at least one encoder")


@dataclass
class AppConfig:
    log_level: str = "warning"
    max_concurrent_tasks: int = 4
    hash_algorithm: str = "blake2b"
    hash_chunk_size: int = 64 * 1024
    hash_cache_path: str = ""
    scan: ScanConfig = field(default_factory=ScanConfig)
    webp: WebPConfig = field(default_factory=WebPConfig)
    zip: ZipConfig = field(default_factory=ZipConfig)
    gif: GifConfig = field(default_factory=GifConfig)

    def __post_init__(self):
        from spacesaver.core.hasher import ALGORITHM_NAMES

        self.log_level = self.log_level.lower()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level '{self.log_level}'. Valid options: {', '.join(LOG_LEVELS)}")
        if self.max_concurrent_tasks < 1:
            raise ValueError("max_concurrent_tasks must be at least 1")
        if self.hash_algorithm.lower() not in ALGORITHM_NAMES:
            raise ValueError(
                f"Unknown hash_algorithm '{self.hash_algorithm}'. Valid options: {', '.join(ALGORITHM_NAMES)}"
            )
        if self.hash_chunk_size <= 0:
            raise ValueError("hash_chunk_size must be positive")

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level.upper())

    def create_hasher(self):
        """HasherImpl with the configured algorithm, chunk size and (optional) persistent cache."""
        from spacesaver.core.cache import SqliteHashCache
        from spacesaver.core.hasher import HasherImpl, get_algorithm

        cache = SqliteHashCache(Path(self.hash_cache_path).expanduser()) if self.hash_cache_path else None
        return HasherImpl(get_algorithm(self.hash_algorithm), self.hash_chunk_size, cache)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AppConfig':
        """Builds a config from parsed TOML. Unknown keys are rejected."""
        data = dict(data)
        sections = {
            "scan": ScanConfig,
            "webp": WebPConfig,
            "zip": ZipConfig,
            "gif": GifConfig,
        }
        kwargs = {}
        for name, section_cls in sections.items():
            if name in data:
                section = data.pop(name)
                if not isinstance(section, dict):
                    raise ValueError(f"[{name}] must be a table")
                kwargs[name] = _build(section_cls, section, prefix=f"{name}.")
        return _build(cls, data, **kwargs)


def _build(cls, values: Dict[str, Any], prefix: str = "", **extra):
    known = set(cls.__dataclass_fields__)
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown configuration key(s): {', '.join(prefix + k for k in unknown)}")
    return cls(**values, **extra)


def resolve_config_path(path: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """Returns the config file to read, or None when there is nothing to read."""
    if path is not None:
        return Path(path).expanduser()

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()

    default = DEFAULT_CONFIG_PATH.expanduser()
    return default if default.is_file() else None


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """
    Loads configuration from TOML.

    Raises:
        FileNotFoundError: If an explicitly requested file does not exist
        ValueError: If the file is not valid TOML or holds invalid values
    """
    config_path = resolve_config_path(path)
    if config_path is None:
        logger.debug("No configuration file found, using defaults")
        return AppConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {config_path}") from None
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {config_path}: {e}") from e

    logger.debug(f"Loaded configuration from {config_path}")
    return AppConfig.from_dict(data)
