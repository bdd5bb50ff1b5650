"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

compression/registry.py
Ordered collection of transcoders plus the negotiation logic that picks one per file.

Registration order is the default priority: the first registered transcoder that
accepts a file wins unless the caller passes an explicit preference list.

The process-wide registry is built lazily, once, and frozen afterwards. Tests and
alternate configurations build their own instance with build_registry().
"""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Set, Union

from spacesaver.core.interfaces import Transcoder
from spacesaver.core.models import (
    BatchOutcome,
    CapabilityReport,
    CapabilityVerdict,
    CompressionResult,
    PluginMetadata,
)
from spacesaver.exceptions import (
    NoSuitableTranscoderError,
    PluginNotFoundError,
    PluginRejectedError,
    RegistryFrozenError,
    SpaceSaverError,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class ReadWriteLock:
    """
    Many concurrent readers or one writer.
    Readers may nest (process_batch → process_file); writers only run at setup time.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._readers > 0:
                self._cond.wait()
            yield


class PluginRegistry:
    """
    Holds transcoders in registration order and dispatches files to them.
    Safe to share between threads: every read path takes the shared side of the lock.
    """

    def __init__(self, transcoders: Optional[Iterable[Transcoder]] = None):
        self._transcoders: List[Transcoder] = []
        self._lock = ReadWriteLock()
        self._frozen = False
        for transcoder in transcoders or ():
            self.register(transcoder)

    # ---- Registration ----------------------------------------------------

    def register(self, transcoder: Transcoder) -> None:
        """Appends a transcoder. Names must be unique."""
        name = transcoder.metadata().name
        with self._lock.write():
            if self._frozen:
                raise RegistryFrozenError(f"Cannot register '{name}': registry is frozen")
            if any(t.metadata().name == name for t in self._transcoders):
                raise ValueError(f"Transcoder '{name}' is already registered")
            self._transcoders.append(transcoder)
        logger.debug(f"Registered transcoder: {name}")

    def freeze(self) -> None:
        with self._lock.write():
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ---- Lookup ------------------------------------------------------------

    def plugins(self) -> List[PluginMetadata]:
        with self._lock.read():
            return [t.metadata() for t in self._transcoders]

    def names(self) -> List[str]:
        return [meta.name for meta in self.plugins()]

    def get(self, name: str) -> Optional[Transcoder]:
        with self._lock.read():
            return self._find(name)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._transcoders)

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def find_first_capable(self, path: PathLike) -> Optional[Transcoder]:
        """First transcoder in registration order that accepts the file."""
        path = Path(path)
        with self._lock.read():
            for transcoder in self._transcoders:
                if self._verdict(transcoder, path):
                    return transcoder
        return None

    def find_all_capable(self, path: PathLike) -> List[Transcoder]:
        path = Path(path)
        with self._lock.read():
            return [t for t in self._transcoders if self._verdict(t, path)]

    def plugins_by_extension(self, extension: str) -> List[PluginMetadata]:
        """Transcoders that list the extension ("png" or ".PNG")."""
        ext = extension.strip().lower().lstrip(".")
        with self._lock.read():
            return [t.metadata() for t in self._transcoders if ext in t.supported_extensions()]

    def supported_extensions(self, name: str) -> Set[str]:
        """Extensions of one transcoder; empty for unknown names."""
        transcoder = self.get(name)
        return set(transcoder.supported_extensions()) if transcoder else set()

    def all_extensions(self, names: Optional[Iterable[str]] = None) -> Set[str]:
        """Union of extensions of the named transcoders (all when names is None)."""
        with self._lock.read():
            selected = self._transcoders if names is None else [
                t for t in self._transcoders if t.metadata().name in set(names)
            ]
            result = set()
            for transcoder in selected:
                result |= set(transcoder.supported_extensions())
            return result

    def check_capability(self, path: PathLike, name: str) -> Optional[CapabilityReport]:
        """
        Full diagnostic answer of one transcoder for one file.
        Returns None if no transcoder has that name. The estimate is only
        computed when the transcoder accepts the file.
        """
        path = Path(path)
        with self._lock.read():
            transcoder = self._find(name)
            if transcoder is None:
                return None
            verdict = self._verdict(transcoder, path)
            estimate = self._estimate(transcoder, path) if verdict.can_handle else None
            return CapabilityReport(transcoder.metadata(), verdict.can_handle, verdict.reason, estimate)

    # ---- Processing --------------------------------------------------------

    def process_file(self,
                     source: PathLike,
                     output_dir: PathLike,
                     preferred_order: Optional[Sequence[str]] = None) -> CompressionResult:
        """
        Resolves a transcoder for source and runs it.

        Names in preferred_order are tried first, in that order. Unknown names and
        transcoders that decline are skipped; so is a transcoder that accepts and
        then fails, so the next preference gets its turn. Without a success, the
        remaining transcoders are tried in registration order and the first capable
        one decides the outcome.

        Raises:
            NoSuitableTranscoderError: Nothing accepts the file
            TranscodeError: The chosen transcoder failed
        """
        source = Path(source)
        output_dir = Path(output_dir)

        with self._lock.read():
            attempted = set()
            first_error: Optional[Exception] = None

            for name in preferred_order or ():
                transcoder = self._find(name)
                if transcoder is None:
                    logger.debug(f"Preferred transcoder '{name}' is not registered, skipping")
                    continue
                if name in attempted:
                    continue
                verdict = self._verdict(transcoder, source)
                if not verdict:
                    logger.debug(f"Preferred transcoder '{name}' declined {source}: {verdict.reason}")
                    continue

                attempted.add(name)
                try:
                    return transcoder.process(source, output_dir)
                except SpaceSaverError as e:
                    logger.warning(f"Transcoder '{name}' failed on {source}: {e}")
                    if first_error is None:
                        first_error = e

            for transcoder in self._transcoders:
                name = transcoder.metadata().name
                if name in attempted:
                    continue
                if self._verdict(transcoder, source):
                    return transcoder.process(source, output_dir)

            if first_error is not None:
                raise first_error

        raise NoSuitableTranscoderError(f"No suitable transcoder found for file: {source}")

    def process_with_plugin(self, source: PathLike, output_dir: PathLike, name: str) -> CompressionResult:
        """Runs exactly one named transcoder, without any fallback."""
        source = Path(source)
        with self._lock.read():
            transcoder = self._find(name)
            if transcoder is None:
                raise PluginNotFoundError(f"Transcoder not found: {name}")

            verdict = self._verdict(transcoder, source)
            if not verdict:
                raise PluginRejectedError(
                    f"Transcoder '{name}' cannot handle file: {source} "
                    f"(Reason: {verdict.reason or 'Unknown reason'})"
                )
            return transcoder.process(source, Path(output_dir))

    def process_batch(self,
                      sources: Iterable[PathLike],
                      output_dir: PathLike,
                      preferred_order: Optional[Sequence[str]] = None) -> List[BatchOutcome]:
        """
        Processes every source independently. One outcome per source, in input order;
        a failing file never aborts the rest of the batch.
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        outcomes = []
        for source in sources:
            outcomes.append(self.process_one(source, output_dir, preferred_order))
        return outcomes

    def process_one(self,
                    source: PathLike,
                    output_dir: PathLike,
                    preferred_order: Optional[Sequence[str]] = None) -> BatchOutcome:
        """process_file() with the error turned into a BatchOutcome."""
        source = Path(source)
        try:
            return BatchOutcome(source, result=self.process_file(source, output_dir, preferred_order))
        except Exception as e:
            logger.warning(f"Failed to process {source}: {e}")
            return BatchOutcome(source, error=str(e) or type(e).__name__)

    # ---- Internals ---------------------------------------------------------

    def _find(self, name: str) -> Optional[Transcoder]:
        for transcoder in self._transcoders:
            if transcoder.metadata().name == name:
                return transcoder
        return None

    @staticmethod
    def _verdict(transcoder: Transcoder, path: Path) -> CapabilityVerdict:
        try:
            return transcoder.can_handle(path)
        except OSError as e:
            return CapabilityVerdict.reject(f"Cannot inspect file: {e}")

    @staticmethod
    def _estimate(transcoder: Transcoder, path: Path) -> Optional[float]:
        try:
            return transcoder.estimate_ratio(path)
        except (OSError, SpaceSaverError) as e:
            logger.debug(f"No estimate from '{transcoder.metadata().name}' for {path}: {e}")
            return None


# ---- Process-wide registry -------------------------------------------------

_GLOBAL_REGISTRY: Optional[PluginRegistry] = None
_GLOBAL_LOCK = threading.Lock()


def default_transcoders(config=None) -> List[Transcoder]:
    """
    The built-in transcoders in their default priority: ZIP, WebP, animated WebP.
    Takes an AppConfig; None means built-in defaults.
    """
    from spacesaver.compression.plugins import (
        AnimatedWebPConverter,
        ImageZipToWebpZip,
        WebPConverter,
    )
    from spacesaver.config import AppConfig

    config = config or AppConfig()
    return [
        ImageZipToWebpZip(quality=config.zip.quality, min_image_ratio=config.zip.min_image_ratio),
        WebPConverter(quality=config.webp.quality, jpeg_bpp_threshold=config.webp.jpeg_bpp_threshold),
        AnimatedWebPConverter.from_names(
            config.gif.encoders,
            quality=config.gif.quality,
            keep_original_extension=config.gif.keep_original_extension,
        ),
    ]


def build_registry(transcoders: Optional[Iterable[Transcoder]] = None, config=None) -> PluginRegistry:
    """
    Fresh, caller-owned, unfrozen registry. With no transcoders given, the
    built-in set is registered.
    """
    if transcoders is None:
        transcoders = default_transcoders(config)
    return PluginRegistry(transcoders)


def global_registry(config=None) -> PluginRegistry:
    """
    Shared registry, created on first use. config only matters for that first call.
    """
    global _GLOBAL_REGISTRY
    if _GLOBAL_REGISTRY is None:
        with _GLOBAL_LOCK:
            if _GLOBAL_REGISTRY is None:
                registry = build_registry(config=config)
                registry.freeze()
                _GLOBAL_REGISTRY = registry
                logger.debug(f"Global registry initialized with {len(registry)} transcoders")
    elif config is not None:
        logger.debug("Global registry already initialized, ignoring config")
    return _GLOBAL_REGISTRY


def reset_global_registry() -> None:
    """Drops the shared registry so the next global_registry() call builds a new one."""
    global _GLOBAL_REGISTRY
    with _GLOBAL_LOCK:
        _GLOBAL_REGISTRY = None
