"""Background writer thread for batched delivery to the Opik backend."""

import asyncio
import contextlib
from collections.abc import Callable
from dataclasses import dataclass, field
from threading import Event, Lock, Thread

from pydantic import BaseModel

from opik_tracing.exceptions import NetworkError, OpikError
from opik_tracing.logging import get_tracing_logger

from ._models import DELIVERY_ORDER
from ._rest import OpikRestClient

logger = get_tracing_logger(__name__)


@dataclass(frozen=True)
class RecordBatch:
    """Rows of a single record kind waiting for delivery."""

    kind: str
    rows: list[BaseModel] = field(default_factory=list)


_SENTINEL = object()


class DeliveryWriter:
    """Background writer that batches records and sends them to the backend.

    Uses a dedicated thread with its own asyncio event loop. Callers push rows
    via ``write()``, which is thread-safe and never waits on the network. The
    writer drains the queue in batches, flushing when ``batch_size`` rows are
    pending or every ``flush_interval_seconds``.

    At most ``max_queue_size`` rows may wait in the queue; further writes are
    rejected, logged and counted in ``dropped_count``. Transient delivery
    failures are retried with exponential backoff; rows that still cannot be
    delivered are logged and counted in ``failed_count``.
    """

    def __init__(
        self,
        rest_client_factory: Callable[[], OpikRestClient],
        *,
        batch_size: int = 100,
        flush_interval_seconds: float = 1.0,
        max_queue_size: int = 10_000,
        max_retries: int = 3,
        retry_base_delay_seconds: float = 0.5,
    ) -> None:
        """Store config. Does NOT start the writer thread."""
        self._rest_client_factory = rest_client_factory
        self._batch_size = batch_size
        self._flush_interval = flush_interval_seconds
        self._max_queue_size = max_queue_size
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay_seconds

        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[RecordBatch | Event | object] | None = None
        self._thread: Thread | None = None
        self._shutdown = False
        self._crashed = False
        self._ready = Event()

        # Counters are touched from caller threads and the writer thread
        self._count_lock = Lock()
        self._queued_rows = 0
        self._dropped_count = 0
        self._failed_count = 0
        self._delivered_count = 0

    @property
    def dropped_count(self) -> int:
        """Rows rejected because the queue was full or the writer was stopped."""
        return self._dropped_count

    @property
    def failed_count(self) -> int:
        """Rows given up on after delivery errors."""
        return self._failed_count

    @property
    def running(self) -> bool:
        """True while the writer thread is alive and accepting rows."""
        return self._thread is not None and self._thread.is_alive() and not self._shutdown

    @property
    def delivered_count(self) -> int:
        """Rows acknowledged by the backend."""
        return self._delivered_count

    def start(self) -> None:
        """Start the background writer thread."""
        if self._thread is not None:
            return
        self._thread = Thread(target=self._thread_main, name="opik-writer", daemon=True)
        self._thread.start()
        if not self._ready.wait(timeout=10.0):
            logger.warning("Opik writer thread did not start within 10 seconds")

    def _thread_main(self) -> None:
        """Entry point for background thread: creates event loop and runs."""
        self._loop = asyncio.new_event_loop()
        self._queue = asyncio.Queue()
        self._ready.set()
        try:
            self._loop.run_until_complete(self._run())
        except Exception as e:
            self._crashed = True
            logger.error(f"Opik writer stopped unexpectedly: {e}")
        finally:
            self._release_waiters()
            self._loop.close()
            self._loop = None

    def _release_waiters(self) -> None:
        """Wake flush() callers whose barrier will never be reached by the loop."""
        assert self._queue is not None
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if isinstance(item, Event):
                item.set()
            elif isinstance(item, RecordBatch):
                self._release(len(item.rows))
                with self._count_lock:
                    self._dropped_count += len(item.rows)

    async def _run(self) -> None:
        """Main async loop: open the transport, then drain the queue.

        Pending rows are flushed when ``batch_size`` is reached or when
        ``flush_interval_seconds`` have passed since the previous flush,
        however steadily rows keep arriving.
        """
        assert self._queue is not None, "_run() must be called after _queue is initialized"

        loop = asyncio.get_running_loop()
        pending: dict[str, list[BaseModel]] = {}

        async with self._rest_client_factory() as rest:
            deadline = loop.time() + self._flush_interval
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    await self._flush_batches(rest, pending)
                    deadline = loop.time() + self._flush_interval
                    continue
                try:
                    item = await asyncio.wait_for(self._queue.get(), timeout=remaining)
                except TimeoutError:
                    continue

                if item is _SENTINEL:
                    await self._flush_batches(rest, pending)
                    break

                if isinstance(item, RecordBatch):
                    self._release(len(item.rows))
                    pending.setdefault(item.kind, []).extend(item.rows)
                    if sum(len(v) for v in pending.values()) >= self._batch_size:
                        await self._flush_batches(rest, pending)
                        deadline = loop.time() + self._flush_interval
                elif isinstance(item, Event):
                    await self._flush_batches(rest, pending)
                    deadline = loop.time() + self._flush_interval
                    item.set()

    def _release(self, count: int) -> None:
        with self._count_lock:
            self._queued_rows -= count

    async def _flush_batches(self, rest: OpikRestClient, pending: dict[str, list[BaseModel]]) -> None:
        """Deliver all pending rows: traces first, then spans, then feedback scores."""
        for kind in DELIVERY_ORDER:
            rows = pending.pop(kind, None)
            if not rows:
                continue
            for start in range(0, len(rows), self._batch_size):
                await self._deliver(rest, kind, rows[start : start + self._batch_size])

    async def _deliver(self, rest: OpikRestClient, kind: str, rows: list[BaseModel]) -> bool:
        """Send one batch, retrying transient failures with exponential backoff.

        Never raises: a batch that cannot be delivered is logged and counted
        in ``failed_count`` so the rows queued behind it still go out.
        """
        for attempt in range(self._max_retries + 1):
            try:
                await rest.send_batch(kind, rows)
            except NetworkError as e:
                if attempt < self._max_retries:
                    delay = self._retry_base_delay * (2**attempt)
                    logger.warning(f"Delivering {len(rows)} {kind} failed (attempt {attempt + 1}/{self._max_retries + 1}): {e}. Retrying in {delay:.1f}s")
                    await asyncio.sleep(delay)
                    continue
                logger.error(f"Giving up on {len(rows)} {kind} after {attempt + 1} attempts: {e}")
            except OpikError as e:
                logger.error(f"Backend rejected {len(rows)} {kind}: {e}")
            except Exception as e:
                logger.error(f"Unexpected error delivering {len(rows)} {kind}, dropping batch: {type(e).__name__}: {e}")
            else:
                with self._count_lock:
                    self._delivered_count += len(rows)
                return True
            with self._count_lock:
                self._failed_count += len(rows)
            return False
        return False  # unreachable

    def write(self, kind: str, rows: list[BaseModel]) -> bool:
        """Enqueue rows for delivery. Thread-safe, non-blocking.

        Returns False if the rows were rejected (queue full or writer stopped).
        """
        if not rows:
            return True
        if self._shutdown or self._loop is None or self._queue is None:
            logger.warning(f"Opik writer is not running, dropping {len(rows)} {kind}")
            with self._count_lock:
                self._dropped_count += len(rows)
            return False
        with self._count_lock:
            if self._queued_rows + len(rows) > self._max_queue_size:
                self._dropped_count += len(rows)
                dropped_total = self._dropped_count
                accepted = False
            else:
                self._queued_rows += len(rows)
                accepted = True
        if not accepted:
            logger.warning(f"Opik delivery queue is full ({self._max_queue_size} rows), dropping {len(rows)} {kind} ({dropped_total} dropped so far)")
            return False
        batch = RecordBatch(kind=kind, rows=list(rows))
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, batch)
        except RuntimeError:
            self._release(len(rows))
            with self._count_lock:
                self._dropped_count += len(rows)
            logger.warning(f"Opik writer loop is closed, dropping {len(rows)} {kind}")
            return False
        return True

    def flush(self, timeout: float = 30.0) -> bool:
        """Block until all rows queued so far have been delivered or given up on.

        Returns False if the timeout expired first or the writer thread died,
        since queued rows can no longer reach the backend.
        """
        if self._crashed:
            return False
        if self._shutdown or self._loop is None or self._queue is None:
            return True
        barrier = Event()
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, barrier)
        except RuntimeError:
            return not self._crashed
        completed = barrier.wait(timeout=timeout)
        if not completed:
            logger.warning(f"Opik writer flush did not complete within {timeout}s")
        return completed and not self._crashed

    def shutdown(self, timeout: float = 30.0) -> None:
        """Signal shutdown and wait for the writer thread to drain and finish."""
        if self._shutdown:
            return
        self._shutdown = True
        if self._loop is not None and self._queue is not None:
            with contextlib.suppress(RuntimeError):
                self._loop.call_soon_threadsafe(self._queue.put_nowait, _SENTINEL)
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning(f"Opik writer thread did not stop within {timeout}s")
