"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/hasher.py
Implements streaming content hashing for FileDescriptors with pluggable algorithms.

Files are read in bounded chunks, so memory use does not depend on file size.
Results can be remembered in an optional HashCache keyed by (path, mtime); each
entry records which algorithm produced it.
"""

import hashlib
import logging
from typing import Dict, Optional

import xxhash

from spacesaver.core.interfaces import HashAlgorithm, HashCache, Hasher, StreamingHash
from spacesaver.core.models import FileDescriptor
from spacesaver.exceptions import HashError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


# Use the same way to implement and use any other hashing algorithm
class Blake2bAlgorithmImpl(HashAlgorithm):
    name = "blake2b"

    def new(self) -> StreamingHash:
        return hashlib.blake2b()


class Sha256AlgorithmImpl(HashAlgorithm):
    name = "sha256"

    def new(self) -> StreamingHash:
        return hashlib.sha256()


class XXHash128AlgorithmImpl(HashAlgorithm):
    """Much faster, but not cryptographic. Fine for trusted local trees."""
    name = "xxh128"

    def new(self) -> StreamingHash:
        return xxhash.xxh3_128()


_ALGORITHMS: Dict[str, HashAlgorithm] = {
    algo.name: algo
    for algo in (Blake2bAlgorithmImpl(), Sha256AlgorithmImpl(), XXHash128AlgorithmImpl())
}

ALGORITHM_NAMES = tuple(_ALGORITHMS)


def get_algorithm(name: str) -> HashAlgorithm:
    try:
        return _ALGORITHMS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown hash algorithm: '{name}'. Valid options: {', '.join(ALGORITHM_NAMES)}"
        ) from None


class HasherImpl(Hasher):
    """
    A hasher implementation that supports any algorithm via the HashAlgorithm interface.
    Consults the optional cache before touching the disk.
    """

    def __init__(self,
                 algorithm: Optional[HashAlgorithm] = None,
                 chunk_size: int = DEFAULT_CHUNK_SIZE,
                 cache: Optional[HashCache] = None):
        if chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        self.algorithm = algorithm or Blake2bAlgorithmImpl()
        self.chunk_size = chunk_size
        self.cache = cache

    def compute_full_hash(self, descriptor: FileDescriptor) -> str:
        if descriptor.hash is not None:
            return descriptor.hash

        # Cached values are stored as "<algorithm>:<hex>"; another algorithm's entry is a miss
        prefix = f"{self.algorithm.name}:"
        if self.cache is not None:
            cached = self.cache.get(descriptor.path, descriptor.modified)
            if cached is not None and cached.startswith(prefix):
                logger.debug(f"Hash cache hit: {descriptor.path}")
                return cached[len(prefix):]

        result = self.hash_path(descriptor.path)

        if self.cache is not None:
            self.cache.set(descriptor.path, descriptor.modified, prefix + result)
        return result

    def hash_path(self, path: str) -> str:
        """Streams the whole file through the algorithm."""
        digest = self.algorithm.new()
        try:
            with open(path, 'rb') as f:
                while chunk := f.read(self.chunk_size):
                    digest.update(chunk)
        except OSError as e:
            raise HashError(f"Failed to read {path}: {e}") from e
        return digest.hexdigest()
