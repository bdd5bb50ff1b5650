"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

compression/helpers.py
Small path utilities shared by the transcoders.
"""
import logging
import os
from pathlib import Path
from typing import Iterable, Union

from spacesaver.exceptions import TranscodeError

logger = logging.getLogger(__name__)


def has_extension(path: Union[str, Path], extensions: Iterable[str]) -> bool:
    """Case-insensitive check against extensions given without dot ("png", "jpg")."""
    ext = Path(path).suffix.lower().lstrip(".")
    if not ext:
        return False
    return ext in {e.lower().lstrip(".") for e in extensions}


def get_file_size(path: Union[str, Path]) -> int:
    try:
        return os.path.getsize(path)
    except OSError as e:
        raise TranscodeError(f"Cannot read size of {path}: {e}") from e


def generate_output_filename(source: Union[str, Path], new_ext: str, suffix: str = "") -> str:
    """'photos/cat.png', 'webp' → 'cat.webp'; with suffix '_webp' → 'cat_webp.webp'"""
    stem = Path(source).stem or "output"
    return f"{stem}{suffix}.{new_ext.lstrip('.')}"


def remove_quietly(path: Union[str, Path]) -> None:
    """Removes a file left behind by a failed transform. Missing files are fine."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove {path}: {e}")
