"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/deduplicator.py
Two-phase duplicate detection: filter → size buckets → content hash buckets.

Hashing reads whole files and is the expensive part, so it only ever runs on
files that share their exact size with at least one other file.
"""
import logging
import time
from typing import Callable, List, Optional, Tuple

from spacesaver.core.filters import FilterSpec, apply_filter
from spacesaver.core.grouper import FileGrouperImpl
from spacesaver.core.interfaces import Hasher
from spacesaver.core.models import DeduplicationStats, DuplicateGroup, FileDescriptor
from spacesaver.core.stages import ContentHashStage, SizeStageImpl

logger = logging.getLogger(__name__)


class DeduplicatorImpl:
    """
    Runs the size and content-hash stages and collects statistics.
    """
    def __init__(self, grouper: Optional[FileGrouperImpl] = None):
        self.grouper = grouper or FileGrouperImpl()

    def find_duplicates(
        self,
        files: List[FileDescriptor],
        filter_spec: Optional[FilterSpec] = None,
        stopped_flag: Optional[Callable[[], bool]] = None,
        progress_callback: Optional[Callable[[str, int, object], None]] = None
    ) -> Tuple[List[DuplicateGroup], DeduplicationStats]:
        """
        Main deduplication pipeline.
        Args:
            files: Scanned file descriptors
            filter_spec: Optional AND-composed predicates applied before any I/O
            stopped_flag (Optional[Callable[[], bool]]): Function that returns True if operation should be stopped.
            progress_callback (Optional[Callable[[str, int, int], None]]): Reports progress per stage.
        Returns:
            Tuple[List[DuplicateGroup], DeduplicationStats]
        """
        stats = DeduplicationStats()
        total_start_time = time.time()

        start_time = time.time()
        candidates = apply_filter(files, filter_spec)
        stats.update_stage("filter", 0, len(candidates), time.time() - start_time)

        start_time = time.time()
        buckets = SizeStageImpl(self.grouper).process(
            candidates,
            stopped_flag=stopped_flag,
            progress_callback=progress_callback
        )
        stats.update_stage("size", len(buckets), sum(len(b) for b in buckets), time.time() - start_time)

        start_time = time.time()
        groups = ContentHashStage(self.grouper).process(
            buckets,
            stopped_flag=stopped_flag,
            progress_callback=progress_callback
        )
        stats.update_stage("hash", len(groups), sum(g.count for g in groups), time.time() - start_time)

        stats.total_time = time.time() - total_start_time
        logger.debug(f"Found {len(groups)} duplicate groups among {len(candidates)} files")
        return groups, stats


def find_duplicates(descriptors: List[FileDescriptor],
                    filter_spec: Optional[FilterSpec] = None,
                    hasher: Optional[Hasher] = None) -> List[DuplicateGroup]:
    """Convenience wrapper returning only the groups."""
    groups, _ = DeduplicatorImpl(FileGrouperImpl(hasher)).find_duplicates(descriptors, filter_spec)
    return groups
