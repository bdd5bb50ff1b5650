"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/models.py
Data models for file scanning, deduplication and transcoding.
"""

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import List, Dict, Optional, Union, Callable, NamedTuple


# =============================
# Enums
# =============================

class FileKind(Enum):
    """
    Coarse file type, derived from the extension only.
    """
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"
    ARCHIVE = "archive"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        """Human-readable name for UI display."""
        return self.value.capitalize()

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> 'FileKind':
        ext = os.path.splitext(str(path))[1].lower().lstrip(".")
        for kind, extensions in _KIND_EXTENSIONS.items():
            if ext in extensions:
                return kind
        return cls.OTHER

    def __repr__(self) -> str:
        return self.value


_KIND_EXTENSIONS = {
    FileKind.IMAGE: {"jpg", "jpeg", "png", "gif", "bmp", "webp", "svg", "tif", "tiff"},
    FileKind.VIDEO: {"mp4", "avi", "mkv", "mov", "wmv", "flv", "webm"},
    FileKind.DOCUMENT: {"pdf", "doc", "docx", "txt", "rtf", "odt"},
    FileKind.ARCHIVE: {"zip", "rar", "7z", "tar", "gz", "bz2"},
}


# ======================
#  Core Data Models
# ======================

@dataclass(frozen=True)
class FileDescriptor:
    """
    Immutable record of a single file on the file system.
    The content hash is filled in lazily, only when grouping needs it;
    a transcoded file gets a brand new descriptor via from_path().
    """
    path: str
    size: int  # in bytes
    modified: int = 0  # seconds since epoch
    kind: FileKind = FileKind.OTHER
    hash: Optional[str] = None

    def __post_init__(self):
        if self.size < 0:
            raise ValueError(f"File size cannot be negative: {self.path}")

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    @property
    def extension(self) -> str:
        """Lowercase extension with leading dot (".JPG" → ".jpg")."""
        return os.path.splitext(self.name)[1].lower()

    def with_hash(self, content_hash: str) -> 'FileDescriptor':
        return replace(self, hash=content_hash)

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> 'FileDescriptor':
        """Builds a fresh descriptor from the current state on disk."""
        stat_result = os.stat(path)
        return cls(
            path=str(path),
            size=stat_result.st_size,
            modified=int(stat_result.st_mtime),
            kind=FileKind.from_path(path),
        )

    def __repr__(self):
        return f"<FileDescriptor path={self.path}, size={self.size}>"


@dataclass
class DuplicateGroup:
    """
    A group of files with identical size and identical content hash.
    Member order is the order in which files were handed to the engine.
    """
    content_hash: str
    members: List[FileDescriptor]

    def __post_init__(self):
        if len(self.members) < 2:
            raise ValueError("A duplicate group needs at least two members")
        sizes = {member.size for member in self.members}
        if len(sizes) != 1:
            raise ValueError("Cannot group files with different sizes")

    @property
    def size(self) -> int:
        """Size of one member."""
        return self.members[0].size

    @property
    def count(self) -> int:
        return len(self.members)

    @property
    def total_size(self) -> int:
        return self.size * self.count

    @property
    def wasted_space(self) -> int:
        """Bytes freed by keeping exactly one copy."""
        return self.total_size - self.size

    @property
    def paths(self) -> List[str]:
        return [member.path for member in self.members]

    def __repr__(self):
        return f"<DuplicateGroup size={self.size}, count={self.count}>"


@dataclass
class DeduplicationStats:
    """
    Statistics collected during the deduplication process.
    """
    total_time: float = 0.0
    stage_stats: Dict[str, Dict[str, Union[int, float]]] = field(default_factory=dict)
    _listeners: List[Callable[[str, Dict], None]] = field(default_factory=list, repr=False)

    def add_listener(self, listener: Callable[[str, Dict], None]):
        """Adds a listener to receive updates when stats are updated."""
        self._listeners.append(listener)

    def update_stage(
            self,
            stage_name: str,
            groups_found: int,
            files_processed: int,
            duration: float
    ) -> None:
        stage = self.stage_stats.setdefault(stage_name, {"groups": 0, "files": 0, "time": 0.0})
        stage["groups"] += groups_found
        stage["files"] += files_processed
        stage["time"] += duration

        for listener in self._listeners:
            listener(stage_name, stage)

    def summary(self) -> str:
        labels = {
            "filter": "Filtered files",
            "size": "Size Groups",
            "hash": "Content Hash Groups",
        }

        lines = [
            "Deduplication Statistics:",
            f"Total Execution Time: {self.total_time:.3f}s\n",
            "Stage: GROUPS / FILES / TIME"
        ]
        for stage, data in self.stage_stats.items():
            label = labels.get(stage, stage.title())
            lines.append(f"{label}: {data['groups']} / {data['files']} / {data['time']:.3f}s")

        return "\n".join(lines)


@dataclass
class StorageStats:
    """
    File counts per kind over a set of scanned files.
    Every file is counted in exactly one kind; empty_files is counted on top of that.
    """
    total_files: int = 0
    total_size: int = 0
    images: int = 0
    videos: int = 0
    documents: int = 0
    archives: int = 0
    others: int = 0
    empty_files: int = 0
    size_by_kind: Dict[FileKind, int] = field(default_factory=dict)

    _KIND_FIELDS = {
        FileKind.IMAGE: "images",
        FileKind.VIDEO: "videos",
        FileKind.DOCUMENT: "documents",
        FileKind.ARCHIVE: "archives",
        FileKind.OTHER: "others",
    }

    def add(self, descriptor: 'FileDescriptor') -> None:
        self.total_files += 1
        self.total_size += descriptor.size
        if descriptor.size == 0:
            self.empty_files += 1
        field_name = self._KIND_FIELDS[descriptor.kind]
        setattr(self, field_name, getattr(self, field_name) + 1)
        self.size_by_kind[descriptor.kind] = self.size_by_kind.get(descriptor.kind, 0) + descriptor.size

    def count(self, kind: FileKind) -> int:
        return getattr(self, self._KIND_FIELDS[kind])


# =============================
# Transcoder Models
# =============================

@dataclass(frozen=True)
class PluginMetadata:
    name: str  # unique, stable identity
    description: str
    version: str


@dataclass(frozen=True)
class CapabilityVerdict:
    """
    Answer of a transcoder to "can you handle this file?".
    Always carries a reason when one is known, including on acceptance.
    """
    can_handle: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.can_handle

    @classmethod
    def accept(cls, reason: Optional[str] = None) -> 'CapabilityVerdict':
        return cls(True, reason)

    @classmethod
    def reject(cls, reason: str) -> 'CapabilityVerdict':
        return cls(False, reason)


@dataclass(frozen=True)
class CompressionResult:
    original_size: int
    compressed_size: int
    output_path: Path
    plugin_name: str
    files_processed: int = 1
    backup_path: Optional[Path] = None

    @property
    def saved_bytes(self) -> int:
        return max(0, self.original_size - self.compressed_size)

    @property
    def ratio(self) -> float:
        """Fraction of the original size that was saved."""
        if self.original_size == 0:
            return 0.0
        return self.saved_bytes / self.original_size


class CapabilityReport(NamedTuple):
    """Full diagnostic answer of one named transcoder for one file."""
    metadata: PluginMetadata
    can_handle: bool
    reason: Optional[str]
    estimate_ratio: Optional[float]


@dataclass(frozen=True)
class BatchOutcome:
    """One entry of a batch: either a result or a human-readable error."""
    source: Path
    result: Optional[CompressionResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.result is not None
