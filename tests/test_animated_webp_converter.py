"""
Tests for AnimatedWebPConverter. Real encoders are replaced by small Python
scripts run through the same subprocess path: argv[1] is the GIF, argv[2] the output.
"""
import sys
from pathlib import Path

import pytest

from spacesaver.compression.plugins.animated_webp_converter import (
    AnimatedWebPConverter,
    EncoderFailed,
    ExternalEncoder,
    ffmpeg_encoder,
    gif2webp_encoder,
)
from spacesaver.exceptions import EncoderUnavailableError, NoBenefitError, OutputExistsError

SHRINK = "import sys; d = open(sys.argv[1], 'rb').read(); open(sys.argv[2], 'wb').write(d[:len(d) // 2])"
GROW = "import sys; d = open(sys.argv[1], 'rb').read(); open(sys.argv[2], 'wb').write(d + d)"
FAIL = "import sys; sys.stderr.write('warming up\\nbad input\\n'); sys.exit(3)"
SILENT = "pass"


def script_encoder(name: str, code: str) -> ExternalEncoder:
    return ExternalEncoder(name, sys.executable, lambda source, output: ["-c", code, str(source), str(output)])


def missing_encoder() -> ExternalEncoder:
    return ExternalEncoder("ghost", "/nonexistent/bin/ghost-encoder", lambda source, output: [])


@pytest.fixture
def gif_file(temp_dir) -> Path:
    path = temp_dir / "anim.gif"
    path.write_bytes(b"GIF89a" + bytes(range(256)) * 8)
    return path


class TestCanHandle:

    def test_accepts_gif_by_extension(self, temp_dir):
        verdict = AnimatedWebPConverter().can_handle(temp_dir / "Party.GIF")
        assert verdict.can_handle
        assert verdict.reason == "GIF file for animated WebP conversion"

    def test_rejects_other_extensions(self, temp_dir):
        verdict = AnimatedWebPConverter().can_handle(temp_dir / "photo.png")
        assert verdict.reason == "Not a GIF file (extension: png)"

    def test_rejects_missing_extension(self, temp_dir):
        assert AnimatedWebPConverter().can_handle(temp_dir / "README").reason == "No file extension"


class TestProcess:

    def test_first_working_encoder_wins(self, gif_file, temp_dir):
        original = gif_file.read_bytes()
        converter = AnimatedWebPConverter([missing_encoder(), script_encoder("shrink", SHRINK)])

        result = converter.process(gif_file, temp_dir / "ignored")

        assert result.output_path == gif_file
        assert result.backup_path == gif_file
        assert result.original_size == len(original)
        assert result.compressed_size == len(original) // 2
        assert gif_file.read_bytes() == original[:len(original) // 2]
        assert not (temp_dir / "anim.gif.tmp").exists()

    def test_all_encoders_failing(self, gif_file, temp_dir):
        original = gif_file.read_bytes()
        converter = AnimatedWebPConverter([missing_encoder(), script_encoder("broken", FAIL)])

        with pytest.raises(EncoderUnavailableError) as exc_info:
            converter.process(gif_file, temp_dir)

        message = str(exc_info.value)
        assert "ghost is not installed" in message
        assert "broken exited with code 3: bad input" in message
        assert gif_file.read_bytes() == original
        assert not (temp_dir / "anim.gif.tmp").exists()

    def test_encoder_without_output_counts_as_failure(self, gif_file, temp_dir):
        converter = AnimatedWebPConverter([script_encoder("silent", SILENT)])
        with pytest.raises(EncoderUnavailableError, match="did not produce an output file"):
            converter.process(gif_file, temp_dir)

    def test_larger_result_keeps_original(self, gif_file, temp_dir):
        original = gif_file.read_bytes()
        converter = AnimatedWebPConverter([script_encoder("grow", GROW)])

        with pytest.raises(NoBenefitError, match="did not reduce file size"):
            converter.process(gif_file, temp_dir)

        assert gif_file.read_bytes() == original
        assert not (temp_dir / "anim.gif.tmp").exists()

    def test_webp_extension_mode(self, gif_file, temp_dir):
        converter = AnimatedWebPConverter([script_encoder("shrink", SHRINK)], keep_original_extension=False)

        result = converter.process(gif_file, temp_dir)

        assert result.output_path == temp_dir / "anim.webp"
        assert result.output_path.exists()
        assert not gif_file.exists()

    def test_leftover_temp_file_blocks_processing(self, gif_file, temp_dir):
        leftover = temp_dir / "anim.gif.tmp"
        leftover.write_bytes(b"someone else's")

        with pytest.raises(OutputExistsError):
            AnimatedWebPConverter([script_encoder("shrink", SHRINK)]).process(gif_file, temp_dir)
        assert leftover.read_bytes() == b"someone else's"


class TestEncoders:

    def test_gif2webp_command(self):
        cmd = gif2webp_encoder(70).command(Path("in.gif"), Path("out.tmp"))
        assert cmd == ["gif2webp", "-q", "70", "-m", "6", "-lossy", "in.gif", "-o", "out.tmp"]

    def test_ffmpeg_command_forces_webp_muxer(self):
        cmd = ffmpeg_encoder().command(Path("in.gif"), Path("out.tmp"))
        assert cmd[0] == "ffmpeg"
        assert cmd[cmd.index("-f") + 1] == "webp"
        assert cmd[-2:] == ["-y", "out.tmp"]

    def test_missing_executable(self, temp_dir):
        with pytest.raises(EncoderFailed, match="not installed"):
            missing_encoder().encode(temp_dir / "a.gif", temp_dir / "a.tmp")

    def test_from_names(self):
        converter = AnimatedWebPConverter.from_names(["ffmpeg"], keep_original_extension=False)
        assert [e.name for e in converter.encoders] == ["ffmpeg"]
        assert not converter.keep_original_extension

    def test_from_names_passes_quality(self):
        converter = AnimatedWebPConverter.from_names(["gif2webp", "ffmpeg"], quality=60)
        gif2webp, ffmpeg = (e.command(Path("a.gif"), Path("a.tmp")) for e in converter.encoders)
        assert gif2webp[gif2webp.index("-q") + 1] == "60"
        assert ffmpeg[ffmpeg.index("-quality") + 1] == "60"

    def test_from_names_keeps_encoder_defaults(self):
        converter = AnimatedWebPConverter.from_names(["gif2webp", "ffmpeg"])
        gif2webp, ffmpeg = (e.command(Path("a.gif"), Path("a.tmp")) for e in converter.encoders)
        assert gif2webp[gif2webp.index("-q") + 1] == "85"
        assert ffmpeg[ffmpeg.index("-quality") + 1] == "75"

    def test_from_names_unknown(self):
        with pytest.raises(ValueError, match="Unknown encoder"):
            AnimatedWebPConverter.from_names(["imagemagick"])

    def test_needs_an_encoder(self):
        with pytest.raises(ValueError):
            AnimatedWebPConverter([])
