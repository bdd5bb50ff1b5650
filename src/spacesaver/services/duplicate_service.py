"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

services/duplicate_service.py
Pure operations on duplicate groups: choosing what to delete and updating groups afterwards.
"""
from typing import Iterable, List, Tuple

from spacesaver.core.models import DuplicateGroup


class DuplicateService:
    @staticmethod
    def remove_files_from_groups(groups: List[DuplicateGroup], file_paths: Iterable[str]) -> List[DuplicateGroup]:
        """
        Removes files with the specified paths from all duplicate groups.

        Groups that contain fewer than 2 files after removal are discarded.

        Args:
            groups (List[DuplicateGroup]): List of duplicate groups to update.
            file_paths (Iterable[str]): Paths of files to remove.

        Returns:
            List[DuplicateGroup]: New list of groups; the input groups are not modified.
        """
        to_remove = set(file_paths)
        updated_groups = []
        for group in groups:
            remaining = [f for f in group.members if f.path not in to_remove]
            if len(remaining) >= 2:
                updated_groups.append(DuplicateGroup(content_hash=group.content_hash, members=remaining))
        return updated_groups

    @staticmethod
    def keep_only_one_file_per_group(groups: List[DuplicateGroup]) -> Tuple[List[str], List[DuplicateGroup]]:
        """
        Keeps the first file of each group and marks the rest for deletion.
        Returns:
            - List of file paths to be deleted
            - Updated list of duplicate groups
        """
        files_to_delete = []
        for group in groups:
            for file in group.members[1:]:
                files_to_delete.append(file.path)

        updated_groups = DuplicateService.remove_files_from_groups(groups, files_to_delete)
        return files_to_delete, updated_groups

    @staticmethod
    def calculate_space_savings(groups: List[DuplicateGroup], files_to_delete: Iterable[str]) -> int:
        """Total bytes freed by deleting the given files."""
        delete_set = set(files_to_delete)
        total_bytes = 0
        for group in groups:
            for file in group.members:
                if file.path in delete_set:
                    total_bytes += file.size
        return total_bytes
