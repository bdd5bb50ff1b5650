"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

compression/plugins/image_zip_to_webp.py
Rewrites the raster images inside a ZIP archive as WebP.

The capability check only reads the central directory (entry names and sizes).
On success the original archive is kept next to the new one as <name>.backup.
"""
import io
import logging
import os
import shutil
import zipfile
from pathlib import Path
from typing import List, Optional, Set, Tuple

from PIL import Image

from spacesaver.compression.helpers import get_file_size, has_extension, remove_quietly
from spacesaver.compression.plugins.webp_converter import encode_webp
from spacesaver.config import TranscodeConfig
from spacesaver.core.models import CapabilityVerdict, CompressionResult, PluginMetadata
from spacesaver.exceptions import NoBenefitError, OutputExistsError, TranscodeError

logger = logging.getLogger(__name__)

CONVERTIBLE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".bmp", ".tiff", ".tif")
WEBP_EXTENSION = ".webp"

# Reading a damaged or encrypted archive can fail in any of these
_ARCHIVE_ERRORS = (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, EOFError, ValueError, RuntimeError)
_IMAGE_ERRORS = (OSError, ValueError, Image.DecompressionBombError)


def is_convertible_entry(name: str) -> bool:
    return name.lower().endswith(CONVERTIBLE_EXTENSIONS)


def is_webp_entry(name: str) -> bool:
    return name.lower().endswith(WEBP_EXTENSION)


def webp_entry_name(name: str) -> str:
    """'scans/page1.PNG' → 'scans/page1.webp'"""
    base, dot, _ext = name.rpartition(".")
    return f"{base}{WEBP_EXTENSION}" if dot else f"{name}{WEBP_EXTENSION}"


class ImageZipToWebpZip:
    NAME = "Image ZIP to WebP ZIP"
    SAVINGS_PER_IMAGE_BYTE = 0.28

    def __init__(self,
                 quality: int = TranscodeConfig.DEFAULT_QUALITY,
                 min_image_ratio: float = TranscodeConfig.ZIP_IMAGE_SATURATION):
        TranscodeConfig.validate_quality(quality)
        if not 0.0 <= min_image_ratio <= 1.0:
            raise ValueError("Minimum image ratio must be between 0.0 and 1.0")
        self.quality = quality
        self.min_image_ratio = min_image_ratio

    def metadata(self) -> PluginMetadata:
        return PluginMetadata(
            name=self.NAME,
            description="Converts images inside ZIP archives to WebP format",
            version="1.0.0",
        )

    def supported_extensions(self) -> Set[str]:
        return {"zip"}

    def can_handle(self, path: Path) -> CapabilityVerdict:
        path = Path(path)
        if not path.is_file():
            return CapabilityVerdict.reject("Not a file")
        if not has_extension(path, ["zip"]):
            return CapabilityVerdict.reject("Not a ZIP file")

        try:
            entries = self._file_entries(path)
        except _ARCHIVE_ERRORS as e:
            return CapabilityVerdict.reject(f"Cannot read ZIP archive: {e}")

        if not entries:
            return CapabilityVerdict.reject("ZIP archive is empty")

        convertible = sum(1 for info in entries if is_convertible_entry(info.filename))
        webp = sum(1 for info in entries if is_webp_entry(info.filename))
        if convertible == 0:
            if webp:
                return CapabilityVerdict.reject("All images in ZIP file are already WebP")
            return CapabilityVerdict.reject("ZIP file contains no convertible images")

        image_ratio = (convertible + webp) / len(entries)
        if image_ratio < self.min_image_ratio:
            return CapabilityVerdict.reject(
                f"Only {image_ratio:.0%} of ZIP entries are images "
                f"(at least {self.min_image_ratio:.0%} required)"
            )
        return CapabilityVerdict.accept("ZIP file contains convertible images")

    def estimate_ratio(self, path: Path) -> Optional[float]:
        try:
            entries = self._file_entries(Path(path))
        except _ARCHIVE_ERRORS as e:
            logger.debug(f"Cannot estimate {path}: {e}")
            return None

        total_size = sum(info.file_size for info in entries)
        image_size = sum(info.file_size for info in entries if is_convertible_entry(info.filename))
        if image_size == 0 or total_size == 0:
            return None
        return image_size / total_size * self.SAVINGS_PER_IMAGE_BYTE

    def process(self, source: Path, output_dir: Path) -> CompressionResult:
        source = Path(source)
        output_dir = Path(output_dir)
        original_size = get_file_size(source)
        output_path = output_dir / f"{source.stem or 'converted'}_webp.zip"
        backup_path = source.with_name(source.name + ".backup")

        if output_path.exists():
            raise OutputExistsError(f"Output file {output_path} already exists")
        if backup_path.exists():
            raise OutputExistsError(f"Backup file {backup_path} already exists")

        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise TranscodeError(f"Cannot create output directory {output_dir}: {e}") from e

        try:
            files_processed = self._repackage(source, output_path)
        except FileExistsError:
            raise OutputExistsError(f"Output file {output_path} already exists") from None
        except _ARCHIVE_ERRORS as e:
            remove_quietly(output_path)
            raise TranscodeError(f"Failed to process ZIP file {source}: {e}") from e

        compressed_size = get_file_size(output_path)
        if compressed_size >= original_size:
            remove_quietly(output_path)
            raise NoBenefitError(original_size, compressed_size)

        self._swap_in(source, output_path, backup_path)

        logger.info(f"Repackaged {source}: {files_processed} images converted, "
                    f"{original_size} → {compressed_size} bytes (backup: {backup_path.name})")
        return CompressionResult(
            original_size=original_size,
            compressed_size=compressed_size,
            output_path=source,
            plugin_name=self.NAME,
            files_processed=files_processed,
            backup_path=backup_path,
        )

    # ---- Internals ---------------------------------------------------------

    @staticmethod
    def _file_entries(path: Path) -> List[zipfile.ZipInfo]:
        with zipfile.ZipFile(path) as archive:
            return [info for info in archive.infolist() if not info.is_dir()]

    def _repackage(self, source: Path, output_path: Path) -> int:
        """Writes the new archive; returns how many entries were converted."""
        converted = 0
        with zipfile.ZipFile(source) as src, \
                zipfile.ZipFile(output_path, "x", compression=zipfile.ZIP_DEFLATED,
                                compresslevel=TranscodeConfig.ZIP_DEFLATE_LEVEL) as dst:
            taken = {info.filename for info in src.infolist()}

            for info in src.infolist():
                entry = self._convert_entry(src, info, taken)
                if entry is None:
                    self._copy_entry(src, dst, info)
                    continue
                name, payload = entry
                taken.add(name)
                converted += 1
                dst.writestr(self._clone_info(info, name), payload,
                             compress_type=zipfile.ZIP_DEFLATED,
                             compresslevel=TranscodeConfig.ZIP_DEFLATE_LEVEL)
        return converted

    def _convert_entry(self, src: zipfile.ZipFile, info: zipfile.ZipInfo,
                       taken: Set[str]) -> Optional[Tuple[str, bytes]]:
        """Returns (new entry name, WebP bytes), or None when the entry is to be copied unchanged."""
        if info.is_dir() or not is_convertible_entry(info.filename):
            return None

        new_name = webp_entry_name(info.filename)
        if new_name in taken:
            logger.warning(f"Entry {new_name} already exists, keeping {info.filename} as is")
            return None

        try:
            with Image.open(io.BytesIO(src.read(info))) as img:
                img.load()
                buffer = io.BytesIO()
                encode_webp(img, buffer, self.quality)
        except _IMAGE_ERRORS as e:
            logger.warning(f"Failed to convert {info.filename}: {e}. Copying original.")
            return None
        return new_name, buffer.getvalue()

    def _copy_entry(self, src: zipfile.ZipFile, dst: zipfile.ZipFile, info: zipfile.ZipInfo) -> None:
        """Streams an entry into the new archive without holding it in memory."""
        clone = self._clone_info(info, info.filename)
        if info.is_dir():
            dst.writestr(clone, b"")
            return
        # file_size lets zipfile pick ZIP64 for large entries up front
        clone.file_size = info.file_size
        with src.open(info) as reader, dst.open(clone, "w") as writer:
            shutil.copyfileobj(reader, writer, TranscodeConfig.COPY_CHUNK_SIZE)

    @staticmethod
    def _clone_info(info: zipfile.ZipInfo, name: str) -> zipfile.ZipInfo:
        clone = zipfile.ZipInfo(name, date_time=info.date_time)
        clone.external_attr = info.external_attr
        clone.comment = info.comment
        # zipfile's default deflate level equals ZIP_DEFLATE_LEVEL
        clone.compress_type = zipfile.ZIP_DEFLATED
        return clone

    @staticmethod
    def _swap_in(source: Path, output_path: Path, backup_path: Path) -> None:
        """source → backup, new archive → source. Restores the original on failure."""
        try:
            os.rename(source, backup_path)
        except OSError as e:
            remove_quietly(output_path)
            raise TranscodeError(f"Failed to create backup {backup_path}: {e}") from e

        try:
            shutil.move(str(output_path), str(source))
        except OSError as e:
            try:
                os.replace(backup_path, source)
            except OSError as restore_error:
                logger.error(f"Could not restore {source} from {backup_path}: {restore_error}")
            remove_quietly(output_path)
            raise TranscodeError(
                f"Failed to move converted ZIP to original location {source}: {e}"
            ) from e
