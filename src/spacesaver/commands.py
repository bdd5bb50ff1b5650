"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

commands.py
Unified command orchestrator for duplicate search: scan every root, then deduplicate.
Used by the CLI and usable directly as a library entry point.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from spacesaver.core.deduplicator import DeduplicatorImpl
from spacesaver.core.filters import FilterSpec
from spacesaver.core.grouper import FileGrouperImpl
from spacesaver.core.interfaces import Hasher
from spacesaver.core.models import DeduplicationStats, DuplicateGroup, FileDescriptor
from spacesaver.core.scanner import FileScannerImpl

logger = logging.getLogger(__name__)


@dataclass
class DeduplicationParams:
    """
    Everything a duplicate search needs.
    Roots are resolved to absolute paths; at least one is required.
    """
    roots: List[str]
    filter_spec: FilterSpec = field(default_factory=FilterSpec)
    max_depth: Optional[int] = None
    follow_links: bool = False
    excluded_dirs: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.roots:
            raise ValueError("At least one root directory is required")
        if self.max_depth is not None and self.max_depth < 0:
            raise ValueError("Maximum depth cannot be negative")
        self.roots = [str(Path(root).expanduser().resolve()) for root in self.roots]
        self.excluded_dirs = [str(Path(d).expanduser().resolve()) for d in self.excluded_dirs]


class DeduplicationCommand:
    """
    Orchestrates the duplicate search workflow:
    1. Scan every root (files reachable from two roots are counted once)
    2. Filter, bucket by size, hash the survivors

    Usage:
        params = DeduplicationParams(roots=["~/Pictures"], filter_spec=FilterSpec(min_size=1024))
        groups, stats = DeduplicationCommand().execute(
            params,
            progress_callback=cli_progress_printer,
            stopped_flag=signal_handler_check
        )
    """

    def __init__(self, hasher: Optional[Hasher] = None):
        self.hasher = hasher
        self.files: List[FileDescriptor] = []

    def execute(
            self,
            params: DeduplicationParams,
            progress_callback: Optional[Callable[[str, int, Optional[int]], None]] = None,
            stopped_flag: Optional[Callable[[], bool]] = None
    ) -> Tuple[List[DuplicateGroup], DeduplicationStats]:
        """
        Execute the duplicate search with given parameters.

        Args:
            params: Validated deduplication parameters
            progress_callback: (stage: str, current: int, total: Optional[int]) -> None
            stopped_flag: () -> bool (returns True if operation should stop)

        Returns:
            Tuple of (duplicate_groups, statistics)

        Raises:
            RuntimeError: If a root is missing or nothing was found to compare
        """
        scanner = FileScannerImpl(
            max_depth=params.max_depth,
            follow_links=params.follow_links,
            excluded_dirs=params.excluded_dirs,
        )
        self.files = scanner.scan_many(params.roots, stopped_flag, progress_callback)

        if not self.files:
            raise RuntimeError(f"No files found in: {', '.join(params.roots)}")
        logger.debug(f"Scanned {len(self.files)} files in {len(params.roots)} root(s)")

        deduplicator = DeduplicatorImpl(FileGrouperImpl(self.hasher))
        return deduplicator.find_duplicates(
            self.files,
            params.filter_spec,
            stopped_flag=stopped_flag,
            progress_callback=progress_callback
        )

    def get_files(self) -> List[FileDescriptor]:
        """Get scanned files after execution."""
        if not self.files:
            raise RuntimeError("Execute command first before accessing files")
        return self.files
