"""
Core engine: descriptors, scanner, filters, hasher, grouper and pipeline orchestrator.

This package contains the I/O-bound foundation of spacesaver:
- FileScannerImpl: recursive directory traversal producing FileDescriptors
- FilterSpec: size / extension / name predicates applied before any I/O
- HasherImpl + hash algorithms: streaming full-content hashing with optional cache
- FileGrouperImpl: size and hash based grouping with duplicate filtering
- DeduplicatorImpl: two-phase pipeline (size → full content hash)
- Models: FileDescriptor, DuplicateGroup and transcoder result types

Nothing here depends on the CLI; everything is usable as a library.
"""

from .models import (
    FileKind, FileDescriptor, DuplicateGroup, DeduplicationStats, StorageStats,
    PluginMetadata, CapabilityVerdict, CompressionResult, CapabilityReport, BatchOutcome)
from .filters import FilterSpec, apply_filter, merge_extensions
from .scanner import FileScannerImpl
from .hasher import (
    HasherImpl, Blake2bAlgorithmImpl, Sha256AlgorithmImpl, XXHash128AlgorithmImpl, get_algorithm)
from .cache import InMemoryHashCache, SqliteHashCache
from .grouper import FileGrouperImpl
from .deduplicator import DeduplicatorImpl, find_duplicates

__all__ = [
    "FileKind",
    "FileDescriptor",
    "DuplicateGroup",
    "DeduplicationStats",
    "StorageStats",
    "PluginMetadata",
    "CapabilityVerdict",
    "CompressionResult",
    "CapabilityReport",
    "BatchOutcome",
    "FilterSpec",
    "apply_filter",
    "merge_extensions",
    "FileScannerImpl",
    "HasherImpl",
    "Blake2bAlgorithmImpl",
    "Sha256AlgorithmImpl",
    "XXHash128AlgorithmImpl",
    "get_algorithm",
    "InMemoryHashCache",
    "SqliteHashCache",
    "FileGrouperImpl",
    "DeduplicatorImpl",
    "find_duplicates",
]
