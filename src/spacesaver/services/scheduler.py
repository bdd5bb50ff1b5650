"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

services/scheduler.py
Asynchronous front door to the engine: duplicate search, capability checks and
transcoding, bounded by a fixed number of concurrent slots.

Blocking work (hashing, encoding, subprocesses) runs in worker threads; the event
loop only coordinates and emits progress events.

Precondition: callers must not submit the same path twice concurrently. Nothing
here locks individual files.
"""
import asyncio
import itertools
import logging
from pathlib import Path
from typing import (
    Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar, Union)

from spacesaver.compression.registry import PluginRegistry, global_registry
from spacesaver.core.deduplicator import DeduplicatorImpl
from spacesaver.core.filters import FilterSpec
from spacesaver.core.grouper import FileGrouperImpl
from spacesaver.core.interfaces import Hasher
from spacesaver.core.models import (
    BatchOutcome, CapabilityReport, CompressionResult, DuplicateGroup, FileDescriptor)
from spacesaver.exceptions import OperationCancelledError, SchedulerClosedError
from spacesaver.services.progress import ProgressEvent, ProgressTracker

logger = logging.getLogger(__name__)

T = TypeVar("T")
PathLike = Union[str, Path]
Listener = Callable[[ProgressEvent], None]


class Scheduler:
    """
    Runs engine operations with at most max_concurrent of them doing work at once.

    Every operation emits Started, optional Progress and exactly one terminal event
    to the registered listeners, in that order.
    """

    def __init__(self,
                 registry: Optional[PluginRegistry] = None,
                 max_concurrent: int = 4,
                 hasher: Optional[Hasher] = None):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.registry = registry if registry is not None else global_registry()
        self.max_concurrent = max_concurrent
        self.hasher = hasher
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._cancel_pending = asyncio.Event()
        self._idle = asyncio.Event()
        self._active = 0
        self._running = 0
        self._closed = False
        self._listeners: List[Listener] = []
        self._ids = itertools.count(1)

    @classmethod
    def from_config(cls, config) -> 'Scheduler':
        """Builds a scheduler from an AppConfig, using the shared registry."""
        return cls(
            registry=global_registry(config),
            max_concurrent=config.max_concurrent_tasks,
            hasher=config.create_hasher(),
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    # ---- Operations ----------------------------------------------------------

    async def find_duplicates(self,
                              descriptors: Sequence[FileDescriptor],
                              filter_spec: Optional[FilterSpec] = None) -> List[DuplicateGroup]:
        loop = asyncio.get_running_loop()

        async def body(tracker: ProgressTracker) -> Tuple[List[DuplicateGroup], str]:
            def report(current: int, stage: str, total: int) -> None:
                if not tracker.finished:
                    tracker.update(current, stage, total)

            def on_progress(stage: str, current: int, total: Optional[int]) -> None:
                loop.call_soon_threadsafe(report, current, stage, total or 0)

            deduplicator = DeduplicatorImpl(FileGrouperImpl(self.hasher))
            groups, _stats = await self._run_blocking(
                deduplicator.find_duplicates, list(descriptors), filter_spec, None, on_progress
            )
            return groups, f"Found {len(groups)} duplicate groups"

        return await self._operation("find_duplicates", len(descriptors), body)

    async def check_capability(self, path: PathLike, name: str) -> Optional[CapabilityReport]:
        async def body(tracker: ProgressTracker) -> Tuple[Optional[CapabilityReport], str]:
            report = await self._run_blocking(self.registry.check_capability, path, name)
            if report is None:
                return None, f"Transcoder not found: {name}"
            return report, report.reason or ("Accepted" if report.can_handle else "Rejected")

        return await self._operation("check_capability", 1, body)

    async def process_file(self,
                           source: PathLike,
                           output_dir: PathLike,
                           preferred_order: Optional[Sequence[str]] = None) -> CompressionResult:
        async def body(tracker: ProgressTracker) -> Tuple[CompressionResult, str]:
            result = await self._run_blocking(
                self.registry.process_file, source, output_dir, preferred_order
            )
            return result, f"{result.plugin_name}: saved {result.saved_bytes} bytes"

        return await self._operation("process_file", 1, body)

    async def process_batch(self,
                            sources: Iterable[PathLike],
                            output_dir: PathLike,
                            preferred_order: Optional[Sequence[str]] = None) -> List[BatchOutcome]:
        """
        Fans the files out over the worker slots. Outcomes keep input order;
        a Progress event is emitted whenever one file finishes. Files still waiting
        for a slot when the scheduler is shut down with cancel_pending end up as
        error outcomes.
        """
        sources = [Path(s) for s in sources]
        output_dir = Path(output_dir)

        async def run_one(source: Path, tracker: ProgressTracker) -> BatchOutcome:
            try:
                outcome = await self._run_blocking(
                    self.registry.process_one, source, output_dir, preferred_order
                )
            except OperationCancelledError as e:
                outcome = BatchOutcome(source, error=str(e))
            tracker.increment(f"{source.name}: {'ok' if outcome.ok else outcome.error}")
            return outcome

        async def body(tracker: ProgressTracker) -> Tuple[List[BatchOutcome], str]:
            await asyncio.to_thread(output_dir.mkdir, parents=True, exist_ok=True)
            outcomes = await asyncio.gather(*(run_one(source, tracker) for source in sources))
            succeeded = sum(1 for outcome in outcomes if outcome.ok)
            return list(outcomes), f"{succeeded}/{len(outcomes)} files processed"

        return await self._operation("process_batch", len(sources), body)

    # ---- Lifecycle -------------------------------------------------------------

    async def shutdown(self, cancel_pending: bool = False) -> None:
        """
        Stops accepting work and waits until every running operation has finished.
        With cancel_pending, operations still waiting for a slot are cancelled instead.
        Work whose caller was cancelled is still waited for while its thread runs.
        """
        self._closed = True
        if cancel_pending:
            self._cancel_pending.set()
        while self._active or self._running:
            self._idle.clear()
            await self._idle.wait()
        logger.debug("Scheduler shut down")

    async def __aenter__(self) -> 'Scheduler':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    # ---- Internals ---------------------------------------------------------------

    async def _operation(self, task_type: str, total: int,
                         body: Callable[[ProgressTracker], Awaitable[Tuple[T, str]]]) -> T:
        if self._closed:
            raise SchedulerClosedError("Scheduler is shut down, no new work accepted")

        tracker = ProgressTracker(f"{task_type}-{next(self._ids)}", total, self._emit, task_type)
        self._active += 1
        try:
            tracker.start()
            try:
                result, message = await body(tracker)
            except (OperationCancelledError, asyncio.CancelledError):
                tracker.cancel()
                raise
            except Exception as e:
                tracker.fail(str(e) or type(e).__name__)
                raise
            tracker.complete(message)
            return result
        finally:
            self._active -= 1
            self._check_idle()

    async def _run_blocking(self, func: Callable[..., T], *args) -> T:
        """
        Runs func in a worker thread inside one of the max_concurrent slots.

        A thread cannot be interrupted: if the caller is cancelled it stops waiting,
        but the slot stays taken (and shutdown keeps waiting) until the thread returns.
        """
        await self._acquire_slot()
        self._running += 1
        work = asyncio.ensure_future(asyncio.to_thread(func, *args))
        work.add_done_callback(self._work_done)
        return await asyncio.shield(work)

    def _work_done(self, work: 'asyncio.Future') -> None:
        self._semaphore.release()
        self._running -= 1
        if not work.cancelled() and work.exception() is not None:
            logger.debug(f"Worker thread finished with error: {work.exception()}")
        self._check_idle()

    def _check_idle(self) -> None:
        if self._active == 0 and self._running == 0:
            self._idle.set()

    async def _acquire_slot(self) -> None:
        """Takes one of the max_concurrent slots, unless pending work gets cancelled first."""
        if self._cancel_pending.is_set():
            raise OperationCancelledError("Operation cancelled before it started")

        acquire = asyncio.ensure_future(self._semaphore.acquire())
        stop = asyncio.ensure_future(self._cancel_pending.wait())
        try:
            await asyncio.wait({acquire, stop}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            self._abandon(acquire)
            raise
        finally:
            stop.cancel()

        if not (acquire.done() and not acquire.cancelled()):
            self._abandon(acquire)
            raise OperationCancelledError("Operation cancelled before it started")

    def _abandon(self, acquire: 'asyncio.Future') -> None:
        if acquire.done() and not acquire.cancelled():
            self._semaphore.release()
        else:
            acquire.cancel()

    def _emit(self, event: ProgressEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Progress listener failed on {event}: {e}")
