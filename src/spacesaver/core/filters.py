"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/filters.py
Pure predicates applied to scan results before any hashing or transcoding.
"""

import fnmatch
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional, Set

from spacesaver.core.models import FileDescriptor


def normalize_extension(ext: str) -> str:
    """'JPG', '.jpg', ' .Jpg ' → '.jpg'"""
    ext = ext.strip().lower()
    if ext and not ext.startswith("."):
        ext = f".{ext}"
    return ext


@dataclass
class FilterSpec:
    """
    Optional size / extension / name constraints, combined with logical AND.
    Unset fields do not constrain anything; an empty FilterSpec matches every file.
    """
    min_size: Optional[int] = None
    max_size: Optional[int] = None
    extensions: Set[str] = field(default_factory=set)
    name_pattern: Optional[str] = None

    def __post_init__(self):
        if self.min_size is not None and self.min_size < 0:
            raise ValueError("Minimum size cannot be negative")
        if self.max_size is not None and self.max_size < 0:
            raise ValueError("Maximum size cannot be negative")
        if self.min_size is not None and self.max_size is not None and self.max_size < self.min_size:
            raise ValueError("Maximum size cannot be less than minimum size")

        self.extensions = {normalize_extension(ext) for ext in self.extensions if ext.strip()}

    @property
    def is_empty(self) -> bool:
        return (self.min_size is None and self.max_size is None
                and not self.extensions and not self.name_pattern)

    def matches(self, descriptor: FileDescriptor) -> bool:
        if self.min_size is not None and descriptor.size < self.min_size:
            return False
        if self.max_size is not None and descriptor.size > self.max_size:
            return False
        if self.extensions and descriptor.extension not in self.extensions:
            return False
        if self.name_pattern and not self._name_matches(descriptor.name):
            return False
        return True

    def apply(self, descriptors: Iterable[FileDescriptor]) -> List[FileDescriptor]:
        return [d for d in descriptors if self.matches(d)]

    def _name_matches(self, name: str) -> bool:
        if any(ch in self.name_pattern for ch in "*?["):
            return fnmatch.fnmatch(name, self.name_pattern)
        return self.name_pattern in name


def apply_filter(descriptors: Iterable[FileDescriptor],
                 spec: Optional[FilterSpec]) -> List[FileDescriptor]:
    """Applies spec if given; returns a new list either way."""
    if spec is None:
        return list(descriptors)
    return spec.apply(descriptors)


def merge_extensions(spec: Optional[FilterSpec], extensions: Iterable[str]) -> FilterSpec:
    """
    Narrows a filter to the extensions some transcoders can work with.
    If the filter already lists extensions, the intersection is kept; when the
    intersection is empty (or the filter had none) the transcoder extensions win.
    """
    wanted = {normalize_extension(ext) for ext in extensions if ext.strip()}
    spec = spec or FilterSpec()
    if not wanted:
        return replace(spec)

    if spec.extensions:
        common = spec.extensions & wanted
        return replace(spec, extensions=common or wanted)
    return replace(spec, extensions=wanted)
