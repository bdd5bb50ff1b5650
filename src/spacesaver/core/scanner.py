"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/scanner.py
Implements file scanning: walks a root and returns a flat list of FileDescriptors.
Features:
- Optional depth limit and symlink-following policy
- Skips OS trash folders and user-excluded directories
- Keeps zero-byte files (they are valid duplicate candidates)
"""

import logging
import os
import sys
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from spacesaver.core.interfaces import FileScanner
from spacesaver.core.models import FileDescriptor, FileKind

logger = logging.getLogger(__name__)


class FileScannerImpl(FileScanner):
    """
    Scans directories recursively.

    Attributes:
        max_depth: How many directory levels below the root to enter (None = unlimited,
                   0 = only the root's own files)
        follow_links: Whether symlinked files and directories are followed
        excluded_dirs: Directories that are never entered
    """

    PROGRESS_INTERVAL = 5000  # Update every 5,000 files

    def __init__(
        self,
        max_depth: Optional[int] = None,
        follow_links: bool = False,
        excluded_dirs: Optional[Iterable[str]] = None
    ):
        if max_depth is not None and max_depth < 0:
            raise ValueError("Maximum depth cannot be negative")
        self.max_depth = max_depth
        self.follow_links = follow_links
        self.excluded_dirs = [str(Path(d).resolve()) for d in excluded_dirs] if excluded_dirs else []

    def scan(self,
             root: Union[str, Path],
             stopped_flag: Optional[Callable[[], bool]] = None,
             progress_callback: Optional[Callable[[str, int, object], None]] = None) -> List[FileDescriptor]:
        """
        Single-pass scanner with throttled progress updates.
        """
        root_path = Path(root)
        logger.debug(f"Starting scan of {root_path} (max_depth={self.max_depth}, follow_links={self.follow_links})")

        if stopped_flag and stopped_flag():
            logger.debug("Scan cancelled before start")
            return []

        if not root_path.exists():
            error_msg = f"Directory does not exist: {root_path}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)
        if not root_path.is_dir():
            error_msg = f"Not a directory: {root_path}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

        found_files = []
        processed_files = 0
        progress_counter = 0
        root_depth = len(root_path.parts)
        start_time = time.time()

        for current, dirs, files in os.walk(str(root_path), followlinks=self.follow_links,
                                            onerror=self._on_walk_error):
            if stopped_flag and stopped_flag():
                logger.debug("Scan interrupted by user")
                return []

            depth = len(Path(current).parts) - root_depth
            if self.max_depth is not None and depth >= self.max_depth:
                dirs[:] = []
            else:
                dirs[:] = [d for d in dirs if self._prefilter_dirs(Path(current) / d)]

            for filename in files:
                descriptor = self._process_file(Path(current) / filename)
                if descriptor:
                    found_files.append(descriptor)
                processed_files += 1
                progress_counter += 1

                if progress_callback and progress_counter >= self.PROGRESS_INTERVAL:
                    progress_callback('scanning', processed_files, None)
                    progress_counter = 0

        if progress_callback and progress_counter > 0:
            progress_callback('scanning', processed_files, None)

        logger.debug(f"Scan of {root_path} completed in {time.time() - start_time:.2f}s. "
                     f"Found {len(found_files)} files.")
        return found_files

    def scan_many(self, roots: Iterable[Union[str, Path]],
                  stopped_flag: Optional[Callable[[], bool]] = None,
                  progress_callback: Optional[Callable[[str, int, object], None]] = None) -> List[FileDescriptor]:
        """Scans several roots; a file reachable from two roots is listed once."""
        seen = set()
        result = []
        for root in roots:
            for descriptor in self.scan(root, stopped_flag, progress_callback):
                key = os.path.realpath(descriptor.path)
                if key not in seen:
                    seen.add(key)
                    result.append(descriptor)
        return result

    @staticmethod
    def _on_walk_error(error: OSError) -> None:
        logger.warning(f"Permission denied or unreadable directory during scan: {error}")

    @staticmethod
    def _is_system_trash(path: Path) -> bool:
        """
        Check if path belongs to OS trash/recycle bin (cross-platform).
        Returns False on any error (better to scan than skip valid data).
        """
        try:
            path_str = str(path.resolve(strict=False))

            if sys.platform == "win32":
                return "$Recycle.Bin" in path_str or "\\Recycler\\" in path_str
            if sys.platform == "darwin":
                return "/.Trash/" in path_str or path_str.endswith("/.Trash")
            return ".local/share/Trash" in path_str or "/.trash/" in path_str
        except (OSError, ValueError):
            return False

    def _is_excluded_directory(self, path: Path) -> bool:
        try:
            path_str = str(path.resolve(strict=False))
        except (OSError, ValueError):
            return False
        for excluded_dir in self.excluded_dirs:
            if path_str == excluded_dir or path_str.startswith(excluded_dir + os.sep):
                return True
        return False

    def _prefilter_dirs(self, path: Path) -> bool:
        """Pre-filter directories: skip system trash, excluded and inaccessible locations."""
        if self._is_system_trash(path):
            logger.debug(f"Skipping system trash directory: {path}")
            return False

        if self.excluded_dirs and self._is_excluded_directory(path):
            logger.debug(f"Skipping excluded directory: {path}")
            return False

        try:
            return os.access(path, os.R_OK | os.X_OK)
        except OSError:
            logger.debug(f"Skipping inaccessible directory: {path}")
            return False

    def _process_file(self, path: Path) -> Optional[FileDescriptor]:
        """
        Turns one directory entry into a FileDescriptor, or None if it is not a
        regular file we may look at.
        """
        try:
            if path.is_symlink() and not self.follow_links:
                logger.debug(f"Skipping symbolic link: {path}")
                return None
            stat_result = path.stat()
        except OSError as e:
            logger.debug(f"Could not stat {path}: {e}")
            return None

        return FileDescriptor(
            path=str(path),
            size=stat_result.st_size,
            modified=int(stat_result.st_mtime),
            kind=FileKind.from_path(path),
        )
