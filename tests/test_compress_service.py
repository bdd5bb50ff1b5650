"""
Tests for CompressService: the dry-run report of what could be transcoded and why not.
"""
import pytest

from spacesaver.compression.registry import PluginRegistry, build_registry
from spacesaver.core.models import FileDescriptor
from spacesaver.core.scanner import FileScannerImpl
from spacesaver.exceptions import PluginNotFoundError
from spacesaver.services.compress_service import CompressService


def descriptors(directory, files):
    result = []
    for name, size in files:
        path = directory / name
        path.write_bytes(b"x" * size)
        result.append(FileDescriptor.from_path(path))
    return result


class TestScanCompressible:

    def test_first_accepting_transcoder_claims_file(self, make_transcoder, temp_dir):
        registry = PluginRegistry([
            make_transcoder("Picky", accept=False, reason="too small"),
            make_transcoder("Eager", reason="sure", estimate=0.25),
        ])
        files = descriptors(temp_dir, [("a.png", 1000)])

        report = CompressService(registry).scan_compressible(files)

        assert report.rejected == []
        item, = report.compressible
        assert item.plugin_name == "Eager"
        assert item.reason == "sure"
        assert item.estimated_compressed_size == 750
        assert item.estimated_savings == 250
        assert report.estimated_savings == 250

    def test_rejected_file_collects_every_reason(self, make_transcoder, temp_dir):
        registry = PluginRegistry([
            make_transcoder("One", accept=False, reason="reason one"),
            make_transcoder("Two", accept=False, reason="reason two"),
            make_transcoder("Zips", extensions=("zip",)),
        ])
        files = descriptors(temp_dir, [("a.png", 10)])

        report = CompressService(registry).scan_compressible(files)

        rejected, = report.rejected
        assert rejected.extension == "png"
        assert [(r.plugin_name, r.reason) for r in rejected.reasons] == [
            ("One", "reason one"), ("Two", "reason two")
        ]

    def test_unknown_extension_asks_every_active_transcoder(self, make_transcoder, temp_dir):
        registry = PluginRegistry([make_transcoder("Images"), make_transcoder("Zips", extensions=("zip",))])
        files = descriptors(temp_dir, [("notes.txt", 10)])

        rejected, = CompressService(registry).scan_compressible(files).rejected
        assert [r.plugin_name for r in rejected.reasons] == ["Images", "Zips"]
        assert all(r.reason == "File extension not supported" for r in rejected.reasons)

    def test_active_plugins_order_decides(self, make_transcoder, temp_dir):
        registry = PluginRegistry([make_transcoder("First"), make_transcoder("Second")])
        files = descriptors(temp_dir, [("a.png", 100)])

        report = CompressService(registry).scan_compressible(files, ["Second", "First"])
        assert report.compressible[0].plugin_name == "Second"

    def test_inactive_transcoders_are_ignored(self, make_transcoder, temp_dir):
        registry = PluginRegistry([make_transcoder("Images"), make_transcoder("Zips", extensions=("zip",))])
        files = descriptors(temp_dir, [("a.png", 100)])

        report = CompressService(registry).scan_compressible(files, ["Zips"])
        assert report.compressible == []
        assert [r.plugin_name for r in report.rejected[0].reasons] == ["Zips"]

    def test_unknown_active_plugin(self, make_transcoder):
        service = CompressService(PluginRegistry([make_transcoder("A")]))
        with pytest.raises(PluginNotFoundError):
            service.scan_compressible([], ["Missing"])

    def test_missing_estimate_stays_unknown(self, make_transcoder, temp_dir):
        registry = PluginRegistry([
            make_transcoder("Vague", estimate=None),
            make_transcoder("Sure", extensions=("jpg",), estimate=0.5),
        ])
        files = descriptors(temp_dir, [("a.png", 100), ("b.png", 200), ("c.jpg", 400)])

        report = CompressService(registry).scan_compressible(files)

        vague = [item for item in report.compressible if item.plugin_name == "Vague"]
        assert len(vague) == 2
        assert all(item.estimated_compressed_size is None for item in vague)
        assert all(item.estimated_savings is None for item in vague)
        assert report.estimated_savings == 200

    def test_zero_estimate_is_not_missing(self, make_transcoder, temp_dir):
        registry = PluginRegistry([make_transcoder("Flat", estimate=0.0)])
        item, = CompressService(registry).scan_compressible(descriptors(temp_dir, [("a.png", 100)])).compressible
        assert item.estimated_compressed_size == 100
        assert item.estimated_savings == 0

    def test_does_not_modify_files(self, temp_dir, solid_image):
        source = solid_image(temp_dir / "picture.bmp", fmt="BMP")
        before = source.read_bytes()

        report = CompressService(build_registry()).scan_compressible([FileDescriptor.from_path(source)])

        assert report.compressible[0].plugin_name == "WebP Converter"
        assert source.read_bytes() == before


class TestCandidateFilter:

    def test_narrows_scan_to_known_extensions(self, test_files, temp_dir):
        (temp_dir / "photo.png").write_bytes(b"p")
        service = CompressService(build_registry())

        spec = service.candidate_filter()
        names = {d.name for d in spec.apply(FileScannerImpl().scan(temp_dir))}

        assert names == {"photo.png", "dup2_a.jpg", "dup2_b.jpg"}

    def test_only_active_transcoders(self):
        spec = CompressService(build_registry()).candidate_filter(["Image ZIP to WebP ZIP"])
        assert spec.extensions == {".zip"}
