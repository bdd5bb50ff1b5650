"""
Shared fixtures for spacesaver tests.
Creates isolated temporary directories with controlled test files, images and
in-memory transcoders whose behaviour each test decides.
"""
import os
import threading
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from PIL import Image

from spacesaver.compression.registry import reset_global_registry
from spacesaver.config import CONFIG_ENV_VAR
from spacesaver.core.models import CapabilityVerdict, CompressionResult, PluginMetadata


@pytest.fixture
def temp_dir():
    """Creates isolated temporary directory, auto-cleanup after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def no_user_config(monkeypatch, tmp_path):
    """Hides any real config of the person running the tests."""
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


@pytest.fixture(autouse=True)
def fresh_global_registry():
    """Every test starts without a shared registry."""
    reset_global_registry()
    yield
    reset_global_registry()


@pytest.fixture
def test_files(temp_dir) -> Dict[str, Path]:
    """
    Creates controlled test files for deduplication scenarios:
    - 2 identical files (duplicates) + 1 more copy in a subdirectory
    - 2 identical files of another size
    - 2 unique files (different content)
    - 2 empty files (zero-byte files are duplicates of each other)
    """
    files = {}

    # Duplicate group #1 (1KB of 'A')
    content_a = b"A" * 1024
    files["dup1_a"] = temp_dir / "dup1_a.txt"
    files["dup1_b"] = temp_dir / "dup1_b.txt"
    files["dup1_a"].write_bytes(content_a)
    files["dup1_b"].write_bytes(content_a)

    # Duplicate pair #2 (2KB of 'B')
    content_b = b"B" * 2048
    files["dup2_a"] = temp_dir / "dup2_a.jpg"
    files["dup2_b"] = temp_dir / "dup2_b.jpg"
    files["dup2_a"].write_bytes(content_b)
    files["dup2_b"].write_bytes(content_b)

    # Unique files
    files["unique1"] = temp_dir / "unique1.txt"
    files["unique1"].write_bytes(b"C" * 1500)
    files["unique2"] = temp_dir / "unique2.txt"
    files["unique2"].write_bytes(b"D" * 2500)

    # Empty files
    files["empty1"] = temp_dir / "empty1.txt"
    files["empty1"].write_bytes(b"")
    files["empty2"] = temp_dir / "empty2.log"
    files["empty2"].write_bytes(b"")

    # Subdirectory with a third copy of group #1
    subdir = temp_dir / "subdir"
    subdir.mkdir()
    files["sub_dup"] = subdir / "dup_in_subdir.txt"
    files["sub_dup"].write_bytes(content_a)

    return files


class MockTranscoder:
    """
    Transcoder double. Records every process() call; the outcome is whatever the test asked for.

    Attributes:
        accept: Verdict returned by can_handle (for files with a listed extension)
        error: Exception raised by process, if any
        block: If set, process() waits for this event (to keep a worker busy)
    """

    def __init__(self, name: str, extensions=("png",), accept: bool = True,
                 reason: Optional[str] = None, error: Optional[Exception] = None,
                 estimate: Optional[float] = 0.5, block: Optional[threading.Event] = None):
        self.name = name
        self.extensions = set(extensions)
        self.accept = accept
        self.reason = reason
        self.error = error
        self.estimate = estimate
        self.block = block
        self.started = threading.Event()
        self.processed: List[Path] = []

    def metadata(self) -> PluginMetadata:
        return PluginMetadata(name=self.name, description=f"{self.name} (test double)", version="0.1")

    def supported_extensions(self):
        return set(self.extensions)

    def can_handle(self, path: Path) -> CapabilityVerdict:
        if Path(path).suffix.lower().lstrip(".") not in self.extensions:
            return CapabilityVerdict.reject("File extension not supported")
        if self.accept:
            return CapabilityVerdict.accept(self.reason)
        return CapabilityVerdict.reject(self.reason or "Declined")

    def estimate_ratio(self, path: Path):
        return self.estimate

    def process(self, source: Path, output_dir: Path) -> CompressionResult:
        self.started.set()
        if self.block is not None:
            self.block.wait(timeout=10)
        self.processed.append(Path(source))
        if self.error is not None:
            raise self.error
        size = os.path.getsize(source) if Path(source).exists() else 100
        return CompressionResult(
            original_size=size,
            compressed_size=size // 2,
            output_path=Path(output_dir) / Path(source).name,
            plugin_name=self.name,
        )


@pytest.fixture
def make_transcoder():
    """Factory for MockTranscoder instances."""
    return MockTranscoder


def save_solid_image(path: Path, size=(200, 200), color=(200, 30, 30), fmt: Optional[str] = None, **params) -> Path:
    """Single-colour image; compresses to almost nothing in any lossy format."""
    Image.new("RGB", size, color).save(path, format=fmt, **params)
    return path


def save_noise_image(path: Path, size=(64, 64), fmt: Optional[str] = None, **params) -> Path:
    """Random pixels; nearly incompressible for lossless formats."""
    Image.frombytes("RGB", size, os.urandom(size[0] * size[1] * 3)).save(path, format=fmt, **params)
    return path


@pytest.fixture
def solid_image():
    return save_solid_image


@pytest.fixture
def noise_image():
    return save_noise_image
