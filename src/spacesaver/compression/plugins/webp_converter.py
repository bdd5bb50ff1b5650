"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

compression/plugins/webp_converter.py
Converts still images (PNG, JPEG, BMP, TIFF) to WebP with Pillow.

The original is deleted only after a smaller WebP has been written; every
failure path removes the partial output and leaves the source untouched.
"""
import logging
import os
from pathlib import Path
from typing import BinaryIO, Optional, Set

from PIL import Image

from spacesaver.compression.helpers import (
    generate_output_filename,
    get_file_size,
    has_extension,
    remove_quietly,
)
from spacesaver.config import TranscodeConfig
from spacesaver.core.models import CapabilityVerdict, CompressionResult, PluginMetadata
from spacesaver.exceptions import NoBenefitError, OutputExistsError, TranscodeError

logger = logging.getLogger(__name__)

_IMAGE_ERRORS = (OSError, ValueError, Image.DecompressionBombError)


class WebPConverter:
    NAME = "WebP Converter"
    EXTENSIONS = frozenset({"png", "jpg", "jpeg", "bmp", "tiff", "tif"})
    JPEG_EXTENSIONS = ("jpg", "jpeg")

    # Typical savings of WebP over the source format
    ESTIMATES = {"png": 0.26, "jpg": 0.30, "jpeg": 0.30}
    DEFAULT_ESTIMATE = 0.25

    def __init__(self,
                 quality: int = TranscodeConfig.DEFAULT_QUALITY,
                 jpeg_bpp_threshold: float = TranscodeConfig.JPEG_BPP_THRESHOLD):
        TranscodeConfig.validate_quality(quality)
        self.quality = quality
        self.jpeg_bpp_threshold = jpeg_bpp_threshold

    def metadata(self) -> PluginMetadata:
        return PluginMetadata(
            name=self.NAME,
            description="Converts PNG, JPEG, and other image formats to WebP",
            version="1.0.0",
        )

    def supported_extensions(self) -> Set[str]:
        return set(self.EXTENSIONS)

    def can_handle(self, path: Path) -> CapabilityVerdict:
        path = Path(path)
        if not path.is_file():
            return CapabilityVerdict.reject("Not a file")
        if has_extension(path, ["webp"]):
            return CapabilityVerdict.reject("Already a WebP file")
        if not has_extension(path, self.EXTENSIONS):
            return CapabilityVerdict.reject("File extension not supported")

        if has_extension(path, self.JPEG_EXTENSIONS):
            threshold = self.jpeg_bpp_threshold
            bpp = self.calculate_bpp(path)
            if bpp is None:
                return CapabilityVerdict.reject(
                    f"Cannot determine JPEG BPP, assuming below threshold ({threshold})"
                )
            if bpp <= threshold:
                logger.debug(f"Skipping {path}: BPP {bpp:.2f} <= {threshold}")
                return CapabilityVerdict.reject(f"JPEG BPP below threshold ({threshold})")
            return CapabilityVerdict.accept(f"JPEG with high BPP (above {threshold})")

        return CapabilityVerdict.accept()

    def estimate_ratio(self, path: Path) -> Optional[float]:
        ext = Path(path).suffix.lower().lstrip(".")
        return self.ESTIMATES.get(ext, self.DEFAULT_ESTIMATE)

    @staticmethod
    def calculate_bpp(path: Path) -> Optional[float]:
        """
        Bits per pixel = file size * 8 / (width * height).
        Pillow reads only the header here, the pixel data is never decoded.
        Returns None if the header cannot be read.
        """
        try:
            file_size = os.path.getsize(path)
            with Image.open(path) as img:
                width, height = img.size
        except _IMAGE_ERRORS as e:
            logger.debug(f"Failed to read image dimensions of {path}: {e}")
            return None

        pixels = width * height
        if pixels == 0:
            return None

        bpp = file_size * 8 / pixels
        logger.debug(f"{path}: {width}x{height}, {file_size} bytes, BPP {bpp:.2f}")
        return bpp

    def process(self, source: Path, output_dir: Path) -> CompressionResult:
        source = Path(source)
        output_dir = Path(output_dir)
        original_size = get_file_size(source)
        output_path = output_dir / generate_output_filename(source, "webp")

        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise TranscodeError(f"Cannot create output directory {output_dir}: {e}") from e

        try:
            with open(output_path, "xb") as out:
                self._encode_webp(source, out)
        except FileExistsError:
            raise OutputExistsError(f"Output file already exists: {output_path}") from None
        except _IMAGE_ERRORS as e:
            remove_quietly(output_path)
            raise TranscodeError(f"Failed to convert {source} to WebP: {e}") from e

        compressed_size = get_file_size(output_path)
        if compressed_size >= original_size:
            remove_quietly(output_path)
            logger.info(f"WebP conversion of {source} did not reduce size "
                        f"({compressed_size} vs {original_size} bytes), keeping original")
            raise NoBenefitError(
                original_size, compressed_size,
                f"WebP conversion resulted in larger file ({compressed_size} bytes vs "
                f"{original_size} bytes), keeping original"
            )

        try:
            os.remove(source)
        except OSError as e:
            remove_quietly(output_path)
            raise TranscodeError(f"Failed to remove original file {source}: {e}") from e

        logger.info(f"Converted {source} to WebP: {original_size} → {compressed_size} bytes")
        return CompressionResult(
            original_size=original_size,
            compressed_size=compressed_size,
            output_path=output_path,
            plugin_name=self.NAME,
        )

    def _encode_webp(self, source: Path, out: BinaryIO) -> None:
        with Image.open(source) as img:
            img.load()
            encode_webp(img, out, self.quality)


def encode_webp(img: Image.Image, out: BinaryIO, quality: int) -> None:
    """Writes a decoded image as lossy WebP. Shared with the ZIP transcoder."""
    if img.mode not in ("RGB", "RGBA"):
        has_alpha = "A" in img.getbands() or "transparency" in img.info
        img = img.convert("RGBA" if has_alpha else "RGB")
    img.save(out, format="WEBP", quality=quality, method=6)
