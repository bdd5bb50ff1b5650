"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/grouper.py
Implements file grouping by size and by full content hash.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Tuple

from spacesaver.core.hasher import HasherImpl
from spacesaver.core.interfaces import Hasher
from spacesaver.core.models import FileDescriptor
from spacesaver.exceptions import HashError

logger = logging.getLogger(__name__)


class FileGrouperImpl:
    """
    Groups FileDescriptors by a computed key and drops keys with fewer than two files.
    Uses an injected Hasher instance for flexibility and testability.
    """

    def __init__(self, hasher: Optional[Hasher] = None):
        self.hasher = hasher or HasherImpl()

    def group_by_size(self, files: List[FileDescriptor]) -> Dict[int, List[FileDescriptor]]:
        """Groups files by their size. No file content is read."""
        return self._group_by(files, lambda f: f.size)

    def group_by_full_hash(
            self, files: List[FileDescriptor]
    ) -> Dict[Tuple[int, str], List[FileDescriptor]]:
        """
        Groups files by (size, content hash). Returned descriptors carry their hash.
        Files that cannot be read are left out of every group.
        """
        hashed = []
        for file in files:
            try:
                hashed.append(file.with_hash(self.hasher.compute_full_hash(file)))
            except HashError as e:
                logger.warning(f"Skipping unreadable file {file.path}: {e}")
        return self._group_by(hashed, lambda f: (f.size, f.hash))

    @staticmethod
    def _group_by(files: List[FileDescriptor],
                  key_func: Callable[[FileDescriptor], Any]) -> Dict[Any, List[FileDescriptor]]:
        """
        Helper method to group files by any computed key.
        Args:
            files: List of files to group
            key_func: Function that computes a hashable key from a FileDescriptor
        Returns:
            Dict[key, List[FileDescriptor]] with only the keys shared by 2+ files,
            each list in input order
        """
        groups = defaultdict(list)
        for file in files:
            key = key_func(file)
            if key is not None:
                groups[key].append(file)

        return {key: group for key, group in groups.items() if len(group) >= 2}
