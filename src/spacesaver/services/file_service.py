"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

services/file_service.py
Safe deletion of duplicates and recovery of transcoder backups.
Deleting always goes through the system trash, never a permanent erase.
"""
import logging
import os
from pathlib import Path
from typing import Union

from send2trash import send2trash

from spacesaver.core.models import CompressionResult

logger = logging.getLogger(__name__)


class FileService:

    @staticmethod
    def move_to_trash(file_path: Union[str, Path]) -> None:
        """Moves a file to the system trash."""
        path = Path(file_path).resolve()

        if not path.exists():
            raise RuntimeError(f"File not found: {path}")

        try:
            send2trash(str(path))
        except Exception as e:
            raise RuntimeError(f"Failed to move to trash: {e}") from e
        logger.debug(f"Moved to trash: {path}")

    @staticmethod
    def restore_backup(result: CompressionResult) -> Path:
        """
        Puts the pre-transform file back in place of the transcoded one.
        Only works for results whose backup file still exists (the ZIP transcoder).
        """
        backup = result.backup_path
        if backup is None or not Path(backup).is_file() or Path(backup) == Path(result.output_path):
            raise RuntimeError(f"No backup available for {result.output_path}")

        try:
            os.replace(backup, result.output_path)
        except OSError as e:
            raise RuntimeError(f"Failed to restore {result.output_path} from {backup}: {e}") from e
        logger.info(f"Restored {result.output_path} from {backup}")
        return Path(result.output_path)

    @classmethod
    def discard_backup(cls, result: CompressionResult) -> None:
        """Sends a transcoder backup to the trash once the new file has been accepted."""
        backup = result.backup_path
        if backup is None or not Path(backup).is_file() or Path(backup) == Path(result.output_path):
            return
        cls.move_to_trash(backup)
