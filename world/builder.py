"""Grid world builder: parallel per-cell block generation, serialized integration.

Every grid cell becomes one unit of work on a bounded thread pool. A unit
looks up the cell height, builds an immutable :class:`BlockDescriptor` and
hands it to a :class:`SerialSink`, whose single owner integrates it into the
world. Workers never touch the world themselves.

Each cell ends up in exactly one bucket of the returned :class:`BuildReport`:
integrated, failed, cancelled or excluded. ``report.wait()`` returns once all
of them are accounted for.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional, Union

from config_io.schema import BlockDescriptor, BlockSize, BlockSizeLike, CellFailure, FailureStage
from world.elevation import ElevationSampler
from world.grid import WorldGrid
from world.sink import SerialSink

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
CellFilter = Callable[[int, int], bool]
SinkLike = Union[SerialSink, Callable[[BlockDescriptor], None]]


class BuildReport:
    """Completion handle and tally for one build pass."""

    def __init__(
        self,
        grid_size: int,
        world: WorldGrid | None = None,
        progress: ProgressCallback | None = None,
        progress_every: int = 100_000,
    ):
        self.grid_size = grid_size
        self.total = grid_size * grid_size
        self.world = world
        self.submitted = 0
        self.completed = 0
        self.integrated = 0
        self.excluded = 0
        self.cancelled = 0
        self.failures: list[CellFailure] = []

        self._progress = progress
        self._progress_every = max(1, progress_every)
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._sealed = False
        self._cancel_requested = threading.Event()
        self._executor: ThreadPoolExecutor | None = None
        self._on_finish: list[Callable[[], None]] = []
        self._started_at = time.perf_counter()
        self._finished_at: float | None = None

    # ── Caller API ─────────────────────────────────────────────────────

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def ok(self) -> bool:
        return self.done and not self.failures and self.cancelled == 0

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested.is_set()

    @property
    def elapsed(self) -> float:
        end = self._finished_at if self._finished_at is not None else time.perf_counter()
        return end - self._started_at

    def wait(self, timeout: float | None = None) -> bool:
        """Block until every cell is accounted for. Returns False on timeout."""
        return self._done.wait(timeout)

    def cancel(self) -> None:
        """Stop dispatching. Queued units are dropped, running ones finish."""
        self._cancel_requested.set()
        executor = self._executor
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    def summary(self) -> dict[str, Any]:
        with self._lock:
            return {
                "grid_size": self.grid_size,
                "total": self.total,
                "submitted": self.submitted,
                "integrated": self.integrated,
                "excluded": self.excluded,
                "cancelled": self.cancelled,
                "failed": len(self.failures),
                "done": self.done,
                "elapsed_s": round(self.elapsed, 3),
                "failures": [f.to_dict() for f in self.failures],
            }

    # ── Bookkeeping (worker, sink and submitter threads) ────────────────

    def _record_submitted(self) -> None:
        with self._lock:
            self.submitted += 1

    def _record_excluded(self) -> None:
        with self._lock:
            self.excluded += 1

    def _record_completed(self) -> None:
        with self._lock:
            self.completed += 1
            completed = self.completed
        if completed % self._progress_every == 0:
            self._report_progress(completed)

    def _record_cancelled(self, count: int = 1) -> None:
        with self._lock:
            self.cancelled += count
        self._check_finished()

    def _record_failure(self, x: int, y: int, stage: FailureStage, error: BaseException) -> None:
        failure = CellFailure(x, y, stage, f"{type(error).__name__}: {error}")
        with self._lock:
            self.failures.append(failure)
        self._check_finished()

    def _on_integrated(self, block: BlockDescriptor, error: Optional[BaseException]) -> None:
        if error is not None:
            self._record_failure(block.grid_x, block.grid_y, FailureStage.INTEGRATE, error)
            return
        with self._lock:
            self.integrated += 1
        self._check_finished()

    def _seal(self) -> None:
        with self._lock:
            self._sealed = True
        self._check_finished()

    def _check_finished(self) -> None:
        with self._lock:
            if self._finished_at is not None or not self._sealed:
                return
            accounted = self.integrated + len(self.failures) + self.cancelled + self.excluded
            if accounted < self.total:
                return
            self._finished_at = time.perf_counter()
            completed = self.completed
            hooks = list(self._on_finish)
        self._report_progress(completed)
        for hook in hooks:
            hook()
        self._done.set()

    def _report_progress(self, completed: int) -> None:
        if self._progress is None:
            return
        try:
            self._progress(completed, self.total)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")


class GridWorldBuilder:
    """Dispatches one unit per grid cell to a fixed-size worker pool."""

    def __init__(
        self,
        worker_count: int | None = None,
        max_pending: int | None = None,
        progress: ProgressCallback | None = None,
        progress_every: int = 100_000,
    ):
        if worker_count is None:
            worker_count = os.cpu_count() or 1
        if worker_count < 1:
            raise ValueError(f"worker_count must be >= 1, got {worker_count}")
        if max_pending is None:
            max_pending = worker_count * 64
        if max_pending < 1:
            raise ValueError(f"max_pending must be >= 1, got {max_pending}")

        self.worker_count = worker_count
        self.max_pending = max_pending
        self.progress = progress
        self.progress_every = progress_every
        self._active: list[BuildReport] = []
        self._active_lock = threading.Lock()

    def __enter__(self) -> "GridWorldBuilder":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close(cancel=exc_type is not None)

    def build(
        self,
        sampler: ElevationSampler,
        grid_size: int | None = None,
        block_size: BlockSizeLike = 1.0,
        sink: SinkLike | None = None,
        include: CellFilter | None = None,
    ) -> BuildReport:
        """Submit every cell of a ``grid_size`` x ``grid_size`` grid and return immediately.

        ``sink`` may be a :class:`SerialSink` the caller drains, or a plain
        callable; a callable (or ``None``, which integrates into a new
        :class:`WorldGrid` exposed as ``report.world``) gets a private drain
        thread that stops once the report is done.
        """
        if grid_size is None:
            grid_size = sampler.grid_size
        if grid_size < 0:
            raise ValueError(f"grid_size must be >= 0, got {grid_size}")
        size = BlockSize.coerce(block_size)

        if sink is None:
            sink = WorldGrid()
        world = sink if isinstance(sink, WorldGrid) else None
        report = BuildReport(grid_size, world, self.progress, self.progress_every)

        if isinstance(sink, SerialSink):
            serial = sink
        else:
            serial = SerialSink(sink).start(name="block-sink")
            report._on_finish.append(serial.stop)

        logger.info(
            f"Building {grid_size}x{grid_size} blocks on {self.worker_count} workers "
            f"(raster {sampler.width}x{sampler.height})"
        )

        if report.total == 0:
            report._seal()
            return report

        # Creating the pool is the only step that can fail before dispatch starts.
        executor = ThreadPoolExecutor(max_workers=self.worker_count, thread_name_prefix="block-worker")
        report._executor = executor
        with self._active_lock:
            self._active.append(report)
        report._on_finish.append(lambda: self._forget(report))

        slots = threading.BoundedSemaphore(self.max_pending)

        def unit(x: int, y: int) -> None:
            if report.cancel_requested:
                report._record_cancelled()
                return
            try:
                height = sampler.elevation_at(x, y)
                block = BlockDescriptor.at(x, y, height, size)
            except Exception as e:
                logger.warning(f"Skipping cell ({x}, {y}): {e}")
                report._record_completed()
                report._record_failure(x, y, FailureStage.SAMPLE, e)
                return
            report._record_completed()
            serial.put(block, report._on_integrated)

        def release(future: Future) -> None:
            slots.release()
            if future.cancelled():
                report._record_cancelled()

        remaining = report.total
        try:
            for x in range(grid_size):
                for y in range(grid_size):
                    if report.cancel_requested:
                        break
                    # a cell leaves `remaining` only once it sits in a report bucket
                    if include is not None:
                        try:
                            keep = include(x, y)
                        except Exception as e:
                            logger.warning(f"Include hook failed on cell ({x}, {y}): {e}")
                            remaining -= 1
                            report._record_failure(x, y, FailureStage.FILTER, e)
                            continue
                        if not keep:
                            remaining -= 1
                            report._record_excluded()
                            continue
                    slots.acquire()
                    try:
                        future = executor.submit(unit, x, y)
                    except RuntimeError:
                        # pool was shut down by cancel() between the check and submit
                        slots.release()
                        remaining -= 1
                        report._record_cancelled()
                        continue
                    remaining -= 1
                    report._record_submitted()
                    future.add_done_callback(release)
                if report.cancel_requested:
                    break
        finally:
            if remaining:
                report._record_cancelled(remaining)
            executor.shutdown(wait=False)
            report._seal()

        logger.debug(f"Dispatched {report.submitted} units, {report.excluded} excluded")
        return report

    def cancel(self) -> None:
        """Cancel every build still in flight."""
        with self._active_lock:
            reports = list(self._active)
        for report in reports:
            report.cancel()

    def close(self, cancel: bool = False, timeout: float | None = None) -> None:
        if cancel:
            self.cancel()
        with self._active_lock:
            reports = list(self._active)
        for report in reports:
            report.wait(timeout)

    def _forget(self, report: BuildReport) -> None:
        with self._active_lock:
            if report in self._active:
                self._active.remove(report)
