"""
Unit tests for HasherImpl, hash algorithms and hash caches.
"""
import hashlib

import pytest
import xxhash

from spacesaver.core.cache import InMemoryHashCache, SqliteHashCache
from spacesaver.core.deduplicator import find_duplicates
from spacesaver.core.hasher import (
    ALGORITHM_NAMES,
    Blake2bAlgorithmImpl,
    HasherImpl,
    Sha256AlgorithmImpl,
    XXHash128AlgorithmImpl,
    get_algorithm,
)
from spacesaver.core.models import FileDescriptor
from spacesaver.exceptions import HashError


def descriptor_for(path):
    return FileDescriptor.from_path(path)


class TestHasherImpl:

    def test_default_algorithm_is_blake2b(self, test_files):
        path = test_files["unique1"]
        expected = hashlib.blake2b(path.read_bytes()).hexdigest()
        assert HasherImpl().compute_full_hash(descriptor_for(path)) == expected

    @pytest.mark.parametrize("algorithm,reference", [
        (Sha256AlgorithmImpl(), lambda data: hashlib.sha256(data).hexdigest()),
        (XXHash128AlgorithmImpl(), lambda data: xxhash.xxh3_128(data).hexdigest()),
    ])
    def test_algorithms_match_reference(self, test_files, algorithm, reference):
        path = test_files["unique2"]
        assert HasherImpl(algorithm).compute_full_hash(descriptor_for(path)) == reference(path.read_bytes())

    def test_small_chunks_give_same_digest(self, test_files):
        """Streaming must not depend on the chunk size."""
        path = test_files["unique2"]
        assert HasherImpl(chunk_size=7).hash_path(str(path)) == HasherImpl().hash_path(str(path))

    def test_identical_content_same_hash(self, test_files):
        hasher = HasherImpl()
        assert (hasher.compute_full_hash(descriptor_for(test_files["dup1_a"]))
                == hasher.compute_full_hash(descriptor_for(test_files["dup1_b"])))

    def test_empty_file_hash(self, test_files):
        expected = hashlib.blake2b(b"").hexdigest()
        assert HasherImpl().compute_full_hash(descriptor_for(test_files["empty1"])) == expected

    def test_existing_hash_is_reused(self):
        descriptor = FileDescriptor("/does/not/exist", 10, hash="known")
        assert HasherImpl().compute_full_hash(descriptor) == "known"

    def test_unreadable_file_raises_hash_error(self, temp_dir):
        with pytest.raises(HashError, match="Failed to read"):
            HasherImpl().compute_full_hash(FileDescriptor(str(temp_dir / "missing.bin"), 10))

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            HasherImpl(chunk_size=0)


class TestAlgorithmLookup:

    def test_known_names(self):
        assert set(ALGORITHM_NAMES) == {"blake2b", "sha256", "xxh128"}
        assert isinstance(get_algorithm("SHA256"), Sha256AlgorithmImpl)
        assert isinstance(get_algorithm("blake2b"), Blake2bAlgorithmImpl)

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown hash algorithm"):
            get_algorithm("md4")


class TestHashCaches:

    def test_cache_hit_skips_disk(self, test_files):
        cache = InMemoryHashCache()
        descriptor = descriptor_for(test_files["unique1"])
        cache.set(descriptor.path, descriptor.modified, "blake2b:cached-value")

        assert HasherImpl(cache=cache).compute_full_hash(descriptor) == "cached-value"

    def test_hash_is_stored_after_computation(self, test_files):
        cache = InMemoryHashCache()
        descriptor = descriptor_for(test_files["unique1"])

        result = HasherImpl(cache=cache).compute_full_hash(descriptor)
        assert cache.get(descriptor.path, descriptor.modified) == f"blake2b:{result}"
        assert len(cache) == 1

    def test_modified_time_is_part_of_key(self):
        cache = InMemoryHashCache()
        cache.set("/a", 1, "old")
        assert cache.get("/a", 2) is None

    def test_sqlite_cache_persists_across_instances(self, temp_dir):
        db_path = temp_dir / "cache" / "hashes.db"
        with SqliteHashCache(db_path) as cache:
            cache.set("/a", 5, "abc")
            cache.set("/a", 5, "def")
            assert len(cache) == 1

        with SqliteHashCache(db_path) as cache:
            assert cache.get("/a", 5) == "def"
            cache.forget("/a")
            assert cache.get("/a", 5) is None

    def test_sqlite_cache_with_hasher(self, test_files):
        with SqliteHashCache() as cache:
            descriptor = descriptor_for(test_files["dup2_a"])
            hasher = HasherImpl(cache=cache)
            first = hasher.compute_full_hash(descriptor)
            assert cache.get(descriptor.path, descriptor.modified) == f"blake2b:{first}"
            assert hasher.compute_full_hash(descriptor) == first

    def test_other_algorithm_entry_is_a_miss(self, test_files):
        cache = InMemoryHashCache()
        descriptor = descriptor_for(test_files["unique1"])
        HasherImpl(Sha256AlgorithmImpl(), cache=cache).compute_full_hash(descriptor)

        result = HasherImpl(XXHash128AlgorithmImpl(), cache=cache).compute_full_hash(descriptor)

        assert result == xxhash.xxh3_128(test_files["unique1"].read_bytes()).hexdigest()
        assert cache.get(descriptor.path, descriptor.modified) == f"xxh128:{result}"

    def test_switching_algorithm_keeps_duplicates(self, test_files):
        """A file cached under one algorithm must still match its copy hashed with another."""
        cache = InMemoryHashCache()
        first = descriptor_for(test_files["dup2_a"])
        second = descriptor_for(test_files["dup2_b"])
        HasherImpl(Sha256AlgorithmImpl(), cache=cache).compute_full_hash(first)

        groups = find_duplicates([first, second], hasher=HasherImpl(XXHash128AlgorithmImpl(), cache=cache))

        assert len(groups) == 1
        assert groups[0].count == 2

    def test_legacy_bare_entry_is_a_miss(self, test_files):
        cache = InMemoryHashCache()
        descriptor = descriptor_for(test_files["unique1"])
        cache.set(descriptor.path, descriptor.modified, "deadbeef")

        assert HasherImpl(cache=cache).compute_full_hash(descriptor) != "deadbeef"
