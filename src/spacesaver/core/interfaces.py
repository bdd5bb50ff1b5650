"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/interfaces.py

Defines core interfaces (Protocols) used throughout SpaceSaver.
These protocols enforce structural typing using Python's `typing.Protocol` so that
hash algorithms, caches and transcoders can be swapped without inheritance.

Key Components:
---------------
- HashAlgorithm: Factory for streaming hash objects (BLAKE2b, SHA-256, xxHash128).
- Hasher: Computes the full content hash of a FileDescriptor.
- HashCache: Persistence collaborator that remembers hashes per (path, mtime).
- FileScanner: Walks a root and returns FileDescriptors.
- Transcoder: Capability set every compression plugin implements.
"""

from pathlib import Path
from typing import Protocol, List, Optional, Set, Callable, Union

from spacesaver.core.models import (
    FileDescriptor,
    PluginMetadata,
    CapabilityVerdict,
    CompressionResult,
)


class StreamingHash(Protocol):
    """Subset of the hashlib object API the hasher relies on."""
    def update(self, data: bytes) -> None: ...
    def hexdigest(self) -> str: ...


class HashAlgorithm(Protocol):
    """
    Interface for generic hash algorithms.

    Allows plugging in BLAKE2b, SHA-256 or xxHash without affecting the rest
    of the deduplication logic.
    """
    name: str

    def new(self) -> StreamingHash:
        """Returns a fresh streaming hash object."""
        ...


class Hasher(Protocol):
    """Interface for computing the full content hash of a file."""
    def compute_full_hash(self, descriptor: FileDescriptor) -> str: ...


class HashCache(Protocol):
    """
    Key/value lookup of previously computed content hashes.
    A file is identified by its path together with its modification time, so an
    edited file never reuses a stale hash.
    """
    def get(self, path: str, modified: int) -> Optional[str]: ...
    def set(self, path: str, modified: int, content_hash: str) -> None: ...


class FileScanner(Protocol):
    """
    Interface for scanning file systems and collecting file metadata.
    """
    def scan(
        self,
        root: Union[str, Path],
        stopped_flag: Optional[Callable[[], bool]] = None,
        progress_callback: Optional[Callable[[str, int, object], None]] = None
    ) -> List[FileDescriptor]:
        """
        Scan files below root.

        Args:
            root: Directory to walk.
            stopped_flag: Function that returns True if operation should be canceled.
            progress_callback: Optional callback for reporting progress (stage, current, total).

        Returns:
            Flat list of FileDescriptors.
        """
        ...


class Transcoder(Protocol):
    """
    Capability set of a compression plugin.

    can_handle() must be idempotent and must never touch the filesystem beyond
    reading. process() is the only mutating call: on return the filesystem is
    either fully transformed or exactly as it was before the call.
    """

    def metadata(self) -> PluginMetadata:
        ...

    def can_handle(self, path: Path) -> CapabilityVerdict:
        """Cheap check based on the extension and, at most, header bytes."""
        ...

    def estimate_ratio(self, path: Path) -> Optional[float]:
        """
        Best-effort fraction of bytes saved, in [0, 1].
        None means "no estimate", not "no savings".
        """
        ...

    def process(self, source: Path, output_dir: Path) -> CompressionResult:
        """Performs the transform or raises TranscodeError."""
        ...

    def supported_extensions(self) -> Set[str]:
        """Lowercase extensions without dot, e.g. {"png", "jpg"}."""
        ...
