"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

services/stats_service.py
Storage statistics over scanned files: how much of what kind is taking up space.
"""
from typing import Iterable, Optional

from spacesaver.core.filters import FilterSpec, apply_filter
from spacesaver.core.models import FileDescriptor, StorageStats


class StatsService:
    @staticmethod
    def storage_stats(descriptors: Iterable[FileDescriptor],
                      filter_spec: Optional[FilterSpec] = None) -> StorageStats:
        """
        Counts files and bytes per kind, after the filter is applied.

        Args:
            descriptors (Iterable[FileDescriptor]): Scanned files.
            filter_spec (Optional[FilterSpec]): Files not matching are left out.

        Returns:
            StorageStats: Totals, per-kind counts and the number of empty files.
        """
        stats = StorageStats()
        for descriptor in apply_filter(descriptors, filter_spec):
            stats.add(descriptor)
        return stats
