"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/stages.py
Stages of the two-phase duplicate detection pipeline.

STAGE CONTRACTS
---------------
SizeStageImpl      : Buckets descriptors by exact size. Buckets with a single file
                     can hold no duplicate and are discarded without reading anything.
ContentHashStage   : Streams every member of the remaining buckets through the
                     configured hash algorithm and keeps hash buckets with 2+ files.

Each stage:
  • Reports progress via callback (stage name, processed count, total count)
  • Respects cancellation via stopped_flag callback (returns an empty result)
"""

import logging
from typing import Callable, List, Optional

from spacesaver.core.grouper import FileGrouperImpl
from spacesaver.core.models import DuplicateGroup, FileDescriptor

logger = logging.getLogger(__name__)


class SizeStageImpl:
    STAGE_NAME = "Size grouping"

    def __init__(self, grouper: FileGrouperImpl):
        self.grouper = grouper

    def process(
            self,
            files: List[FileDescriptor],
            stopped_flag: Optional[Callable[[], bool]] = None,
            progress_callback: Optional[Callable[[str, int, object], None]] = None
    ) -> List[List[FileDescriptor]]:
        """
        Returns same-size buckets with 2+ files. Zero-byte files form a bucket like any other.
        """
        if stopped_flag and stopped_flag():
            return []

        buckets = list(self.grouper.group_by_size(files).values())
        skipped = len(files) - sum(len(b) for b in buckets)
        logger.debug(f"Size stage: {len(buckets)} candidate buckets, {skipped} files with unique size")

        if progress_callback:
            total_files = len(files)
            progress_callback(self.STAGE_NAME, total_files, total_files)  # Instant: no I/O

        return buckets


class ContentHashStage:
    STAGE_NAME = "Content Hash"

    def __init__(self, grouper: FileGrouperImpl):
        self.grouper = grouper

    def process(
            self,
            buckets: List[List[FileDescriptor]],
            stopped_flag: Optional[Callable[[], bool]] = None,
            progress_callback: Optional[Callable[[str, int, object], None]] = None
    ) -> List[DuplicateGroup]:
        if stopped_flag and stopped_flag():
            return []

        groups = []
        total_files = sum(len(bucket) for bucket in buckets)
        processed_files = 0

        for bucket in buckets:
            if stopped_flag and stopped_flag():
                return []

            hash_groups = self.grouper.group_by_full_hash(bucket)
            for (_size, content_hash), members in hash_groups.items():
                groups.append(DuplicateGroup(content_hash=content_hash, members=members))

            processed_files += len(bucket)
            if progress_callback:
                progress_callback(self.STAGE_NAME, processed_files, total_files)

        return groups
