"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

compression/plugins/animated_webp_converter.py
Converts animated GIFs to animated WebP by running external encoders.

Encoders are tried in order (gif2webp, then ffmpeg); the first one that produces
output wins. Every encoder writes to a temporary file next to the source, which
only replaces the original once it is known to be smaller.
"""
import logging
import os
import subprocess
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Set

from spacesaver.compression.helpers import get_file_size, has_extension, remove_quietly
from spacesaver.config import TranscodeConfig
from spacesaver.core.models import CapabilityVerdict, CompressionResult, PluginMetadata
from spacesaver.exceptions import (
    EncoderUnavailableError,
    NoBenefitError,
    OutputExistsError,
    TranscodeError,
)

logger = logging.getLogger(__name__)


class EncoderFailed(Exception):
    """One encoder strategy did not produce output. Carries a short reason."""
    pass


class ExternalEncoder:
    """
    One way of turning a GIF into an animated WebP with an external program.

    Attributes:
        name: Display name used in logs and error reports
        executable: Program to run
        build_args: Builds the argument list from (source, output)
    """

    def __init__(self, name: str, executable: str,
                 build_args: Callable[[Path, Path], List[str]],
                 timeout: Optional[float] = 600):
        self.name = name
        self.executable = executable
        self.build_args = build_args
        self.timeout = timeout

    def command(self, source: Path, output: Path) -> List[str]:
        return [self.executable, *self.build_args(source, output)]

    def encode(self, source: Path, output: Path) -> None:
        """Runs the encoder. Raises EncoderFailed if it is missing, fails or writes nothing."""
        cmd = self.command(source, output)
        logger.debug(f"Running {self.name}: {' '.join(cmd)}")
        try:
            completed = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError:
            raise EncoderFailed(f"{self.name} is not installed") from None
        except subprocess.TimeoutExpired:
            raise EncoderFailed(f"{self.name} timed out after {self.timeout}s") from None
        except OSError as e:
            raise EncoderFailed(f"{self.name} could not be started: {e}") from e

        if completed.returncode != 0:
            stderr = (completed.stderr or "").strip().splitlines()
            detail = stderr[-1] if stderr else "no error output"
            raise EncoderFailed(f"{self.name} exited with code {completed.returncode}: {detail}")
        if not output.is_file():
            raise EncoderFailed(f"{self.name} did not produce an output file")

    def __repr__(self):
        return f"<ExternalEncoder {self.name}>"


def gif2webp_encoder(quality: int = TranscodeConfig.DEFAULT_QUALITY) -> ExternalEncoder:
    return ExternalEncoder(
        "gif2webp", "gif2webp",
        lambda source, output: ["-q", str(quality), "-m", "6", "-lossy", str(source), "-o", str(output)],
    )


def ffmpeg_encoder(quality: int = TranscodeConfig.FFMPEG_GIF_QUALITY) -> ExternalEncoder:
    return ExternalEncoder(
        "ffmpeg", "ffmpeg",
        lambda source, output: [
            "-i", str(source),
            "-c:v", "libwebp",
            "-lossless", "0",
            "-quality", str(quality),
            "-loop", "0",
            "-f", "webp",  # temp file has no .webp suffix to infer from
            "-y", str(output),
        ],
    )


ENCODER_FACTORIES = {
    "gif2webp": gif2webp_encoder,
    "ffmpeg": ffmpeg_encoder,
}


class AnimatedWebPConverter:
    NAME = "Animated WebP Converter"
    ESTIMATE = 0.5

    def __init__(self,
                 encoders: Optional[Sequence[ExternalEncoder]] = None,
                 keep_original_extension: bool = True):
        """
        Args:
            encoders: Strategies in the order they are tried
            keep_original_extension: Write the WebP back under the .gif name (default),
                                     or as <stem>.webp with the GIF removed
        """
        self.encoders = list(encoders) if encoders is not None else [gif2webp_encoder(), ffmpeg_encoder()]
        if not self.encoders:
            raise ValueError("At least one encoder is required")
        self.keep_original_extension = keep_original_extension

    @classmethod
    def from_names(cls, names: Iterable[str],
                   quality: Optional[int] = None,
                   keep_original_extension: bool = True) -> 'AnimatedWebPConverter':
        """Builds the encoders by name. quality None keeps each encoder's own default."""
        encoders = []
        for name in names:
            if name not in ENCODER_FACTORIES:
                raise ValueError(f"Unknown encoder: {name}")
            factory = ENCODER_FACTORIES[name]
            encoders.append(factory() if quality is None else factory(quality))
        return cls(encoders, keep_original_extension=keep_original_extension)

    def metadata(self) -> PluginMetadata:
        return PluginMetadata(
            name=self.NAME,
            description="Convert GIF to Animated WebP with lossy compression for better file size",
            version="1.0.0",
        )

    def supported_extensions(self) -> Set[str]:
        return {"gif"}

    def can_handle(self, path: Path) -> CapabilityVerdict:
        path = Path(path)
        ext = path.suffix.lower().lstrip(".")
        if not ext:
            return CapabilityVerdict.reject("No file extension")
        if ext != "gif":
            return CapabilityVerdict.reject(f"Not a GIF file (extension: {ext})")
        return CapabilityVerdict.accept("GIF file for animated WebP conversion")

    def estimate_ratio(self, path: Path) -> Optional[float]:
        return self.ESTIMATE

    def process(self, source: Path, output_dir: Path) -> CompressionResult:
        # The result always lands next to the source; output_dir is not used.
        source = Path(source)
        if not source.is_file():
            raise TranscodeError(f"Source file does not exist: {source}")

        original_size = get_file_size(source)
        temp_path = source.with_name(source.name + ".tmp")
        final_path = source if self.keep_original_extension else source.with_suffix(".webp")

        if temp_path.exists():
            raise OutputExistsError(f"Temporary file already exists: {temp_path}")
        if final_path != source and final_path.exists():
            raise OutputExistsError(f"Output file already exists: {final_path}")

        try:
            used = self._encode(source, temp_path)
            compressed_size = get_file_size(temp_path)

            if compressed_size >= original_size:
                logger.info(f"Animated WebP ({compressed_size} bytes) is not smaller than "
                            f"{source} ({original_size} bytes), keeping original")
                raise NoBenefitError(original_size, compressed_size,
                                     "WebP conversion did not reduce file size")

            self._swap_in(source, temp_path, final_path)
        except BaseException:
            remove_quietly(temp_path)
            raise

        logger.info(f"Converted {source} with {used}: {original_size} → {compressed_size} bytes")
        return CompressionResult(
            original_size=original_size,
            compressed_size=compressed_size,
            output_path=final_path,
            plugin_name=self.NAME,
            backup_path=source,
        )

    def _encode(self, source: Path, temp_path: Path) -> str:
        """Tries each encoder in turn; returns the name of the one that worked."""
        failures = []
        for encoder in self.encoders:
            try:
                encoder.encode(source, temp_path)
                return encoder.name
            except EncoderFailed as e:
                logger.warning(f"Encoder failed for {source}: {e}")
                failures.append(str(e))
                remove_quietly(temp_path)

        raise EncoderUnavailableError(
            f"Animated WebP conversion failed for {source}: " + "; ".join(failures)
        )

    @staticmethod
    def _swap_in(source: Path, temp_path: Path, final_path: Path) -> None:
        try:
            os.replace(temp_path, final_path)
        except OSError as e:
            raise TranscodeError(f"Failed to move converted file to {final_path}: {e}") from e

        if final_path != source:
            try:
                os.remove(source)
            except OSError as e:
                remove_quietly(final_path)
                raise TranscodeError(f"Failed to remove original file {source}: {e}") from e
