"""
Tests for the async Scheduler: progress event ordering, bounded concurrency,
batch semantics and shutdown behaviour.
"""
import asyncio
import threading
import time
from pathlib import Path

import pytest

from spacesaver.compression.registry import PluginRegistry, global_registry
from spacesaver.config import AppConfig
from spacesaver.core.scanner import FileScannerImpl
from spacesaver.exceptions import NoSuitableTranscoderError, SchedulerClosedError
from spacesaver.services.progress import Cancelled, Completed, Failed, Progress, Started
from spacesaver.services.scheduler import Scheduler


def run(coro):
    return asyncio.run(coro)


def make_sources(directory: Path, names):
    paths = []
    for name in names:
        path = directory / name
        path.write_bytes(b"data" * 25)
        paths.append(path)
    return paths


class ConcurrencyRecorder:
    """Transcoder that records how many process() calls overlap."""

    def __init__(self, make_transcoder):
        self.inner = make_transcoder("Recorder")
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def process(self, source, output_dir):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(0.05)
            return self.inner.process(source, output_dir)
        finally:
            with self._lock:
                self.active -= 1


class TestOperations:

    def test_process_file_events(self, make_transcoder, temp_dir):
        source, = make_sources(temp_dir, ["a.png"])
        events = []

        async def scenario():
            scheduler = Scheduler(PluginRegistry([make_transcoder("Images")]))
            scheduler.add_listener(events.append)
            return await scheduler.process_file(source, temp_dir)

        result = run(scenario())

        assert result.plugin_name == "Images"
        assert [type(e) for e in events] == [Started, Completed]
        assert events[0].operation_id == events[1].operation_id == "process_file-1"
        assert events[0].task_type == "process_file"

    def test_failed_operation_emits_failed_and_raises(self, make_transcoder, temp_dir):
        source, = make_sources(temp_dir, ["a.txt"])
        events = []

        async def scenario():
            scheduler = Scheduler(PluginRegistry([make_transcoder("Images")]))
            scheduler.add_listener(events.append)
            await scheduler.process_file(source, temp_dir)

        with pytest.raises(NoSuitableTranscoderError):
            run(scenario())
        assert [type(e) for e in events] == [Started, Failed]
        assert "No suitable transcoder" in events[-1].error

    def test_batch_keeps_input_order_and_reports_each_file(self, make_transcoder, temp_dir):
        sources = make_sources(temp_dir, ["a.png", "b.txt", "c.png"])
        events = []

        async def scenario():
            scheduler = Scheduler(PluginRegistry([make_transcoder("Images")]), max_concurrent=2)
            scheduler.add_listener(events.append)
            return await scheduler.process_batch(sources, temp_dir / "out")

        outcomes = run(scenario())

        assert [o.source for o in outcomes] == sources
        assert [o.ok for o in outcomes] == [True, False, True]
        assert isinstance(events[0], Started) and events[0].total == 3
        progress = [e for e in events if isinstance(e, Progress)]
        assert [p.current for p in progress] == [1, 2, 3]
        assert events[-1] == Completed(events[0].operation_id, "2/3 files processed")

    def test_concurrency_is_bounded(self, make_transcoder, temp_dir):
        sources = make_sources(temp_dir, [f"{i}.png" for i in range(6)])
        recorder = ConcurrencyRecorder(make_transcoder)

        async def scenario():
            scheduler = Scheduler(PluginRegistry([recorder]), max_concurrent=2)
            return await scheduler.process_batch(sources, temp_dir)

        outcomes = run(scenario())

        assert all(o.ok for o in outcomes)
        assert 1 <= recorder.max_active <= 2

    def test_find_duplicates(self, test_files, temp_dir):
        files = FileScannerImpl().scan(temp_dir)
        events = []

        async def scenario():
            scheduler = Scheduler(PluginRegistry())
            scheduler.add_listener(events.append)
            return await scheduler.find_duplicates(files)

        groups = run(scenario())

        assert {g.size for g in groups} == {0, 1024, 2048}
        assert isinstance(events[0], Started)
        assert any(isinstance(e, Progress) for e in events)
        assert events[-1] == Completed(events[0].operation_id, "Found 3 duplicate groups")
        assert sum(1 for e in events if e.is_terminal) == 1

    def test_check_capability(self, make_transcoder, temp_dir):
        source, = make_sources(temp_dir, ["a.png"])

        async def scenario():
            scheduler = Scheduler(PluginRegistry([make_transcoder("Images", reason="fine")]))
            known = await scheduler.check_capability(source, "Images")
            unknown = await scheduler.check_capability(source, "Other")
            return known, unknown

        known, unknown = run(scenario())
        assert known.can_handle and known.reason == "fine"
        assert unknown is None

    def test_broken_listener_does_not_break_operation(self, make_transcoder, temp_dir):
        source, = make_sources(temp_dir, ["a.png"])

        def broken(event):
            raise ValueError("listener bug")

        async def scenario():
            scheduler = Scheduler(PluginRegistry([make_transcoder("Images")]))
            scheduler.add_listener(broken)
            return await scheduler.process_file(source, temp_dir)

        assert run(scenario()).plugin_name == "Images"

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            Scheduler(PluginRegistry(), max_concurrent=0)

    def test_from_config(self):
        config = AppConfig(max_concurrent_tasks=2, hash_algorithm="sha256")
        scheduler = Scheduler.from_config(config)

        assert scheduler.max_concurrent == 2
        assert scheduler.registry is global_registry()
        assert scheduler.hasher.algorithm.name == "sha256"


class TestShutdown:

    def test_closed_scheduler_rejects_work(self, make_transcoder, temp_dir):
        source, = make_sources(temp_dir, ["a.png"])

        async def scenario():
            scheduler = Scheduler(PluginRegistry([make_transcoder("Images")]))
            await scheduler.shutdown()
            assert scheduler.closed
            await scheduler.process_file(source, temp_dir)

        with pytest.raises(SchedulerClosedError):
            run(scenario())

    def test_context_manager_shuts_down(self):
        async def scenario():
            async with Scheduler(PluginRegistry()) as scheduler:
                pass
            return scheduler.closed

        assert run(scenario())

    def test_cancel_pending_spares_running_work(self, make_transcoder, temp_dir):
        """Running file finishes; files still waiting for a slot become error outcomes."""
        sources = make_sources(temp_dir, ["a.png", "b.png", "c.png"])
        release = threading.Event()
        transcoder = make_transcoder("Slow", block=release)
        events = []

        async def scenario():
            scheduler = Scheduler(PluginRegistry([transcoder]), max_concurrent=1)
            scheduler.add_listener(events.append)
            batch = asyncio.ensure_future(scheduler.process_batch(sources, temp_dir))

            while not transcoder.started.is_set():
                await asyncio.sleep(0.01)
            stopping = asyncio.ensure_future(scheduler.shutdown(cancel_pending=True))
            await asyncio.sleep(0.05)
            assert not stopping.done(), "shutdown waits for running work"

            release.set()
            outcomes = await batch
            await stopping
            return outcomes

        outcomes = run(scenario())

        assert [o.ok for o in outcomes] == [True, False, False]
        assert "cancelled" in outcomes[1].error
        assert transcoder.processed == [sources[0]]
        assert isinstance(events[-1], Completed)
        assert not any(isinstance(e, Cancelled) for e in events)

    def test_wait_for_running_work_without_cancel(self, make_transcoder, temp_dir):
        sources = make_sources(temp_dir, ["a.png", "b.png"])
        release = threading.Event()
        transcoder = make_transcoder("Slow", block=release)

        async def scenario():
            scheduler = Scheduler(PluginRegistry([transcoder]), max_concurrent=1)
            batch = asyncio.ensure_future(scheduler.process_batch(sources, temp_dir))
            while not transcoder.started.is_set():
                await asyncio.sleep(0.01)
            stopping = asyncio.ensure_future(scheduler.shutdown())
            release.set()
            await stopping
            return batch.done(), batch.result()

        done, outcomes = run(scenario())
        assert done
        assert all(o.ok for o in outcomes)

    def test_cancelled_caller_keeps_slot_until_thread_ends(self, make_transcoder, temp_dir):
        """The worker thread cannot be stopped, so its slot and shutdown both wait for it."""
        first, = make_sources(temp_dir, ["a.png"])
        second, = make_sources(temp_dir, ["b.jpg"])
        release = threading.Event()
        slow = make_transcoder("Slow", extensions=("png",), block=release)
        fast = make_transcoder("Fast", extensions=("jpg",))
        events = []

        async def scenario():
            scheduler = Scheduler(PluginRegistry([slow, fast]), max_concurrent=1)
            scheduler.add_listener(events.append)
            task = asyncio.ensure_future(scheduler.process_file(first, temp_dir))
            while not slow.started.is_set():
                await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

            follow_up = asyncio.ensure_future(scheduler.process_file(second, temp_dir))
            await asyncio.sleep(0.05)
            stopping = asyncio.ensure_future(scheduler.shutdown())
            await asyncio.sleep(0.05)
            assert not fast.started.is_set(), "slot is still held by the running thread"
            assert not stopping.done(), "shutdown waits for the running thread"

            release.set()
            result = await follow_up
            await stopping
            return result

        result = run(scenario())

        assert result.plugin_name == "Fast"
        assert slow.processed == [first]
        assert [type(e) for e in events if e.operation_id == "process_file-1"] == [Started, Cancelled]
