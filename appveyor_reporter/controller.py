"""Batching scheduler that relays queued results to a remote sink.

Everything here runs on a single asyncio event loop. The only suspension
point is the call to ``RemoteSink.send_batch``, so state transitions need no
locking. Reentrancy still matters: a record may be appended from inside a
completion callback or while a send is awaiting.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from enum import StrEnum

from appveyor_reporter.models.result import ResultRecord
from appveyor_reporter.queue import ResultQueue
from appveyor_reporter.sinks.base import RemoteSink

log = logging.getLogger(__name__)

DrainCallback = Callable[[], None]


class ControllerState(StrEnum):
    """Observable state of the transmission controller."""

    IDLE = "idle"
    FLUSHING = "flushing"
    DRAINING = "draining"
    DONE = "done"


class _Once:
    """Wrap a drain callback so it can only run a single time."""

    def __init__(self, callback: DrainCallback) -> None:
        self._callback = callback
        self.invoked = False

    def __call__(self) -> None:
        if self.invoked:
            return
        self.invoked = True
        self._callback()


def _chain(first: DrainCallback, second: DrainCallback) -> DrainCallback:
    def _both() -> None:
        try:
            first()
        finally:
            second()

    return _both


class TransmissionController:
    """Sends queued results in batches, one batch at a time.

    A flush is requested either by the periodic timer or by the queue reaching
    ``batch_size``. At most one ``send_batch`` call is ever outstanding. When
    a send finishes the controller flushes again at once if more results
    arrived meanwhile, otherwise it re-arms the timer. Failed batches are
    logged and dropped.

    With ``sink=None`` the controller is inert: nothing is queued, no timer
    runs and ``drain`` completes immediately.

    Note: a send that never resolves stalls ``drain`` indefinitely, since the
    in-flight call is not cancelled and no timeout is applied to it.
    """

    def __init__(
        self,
        sink: RemoteSink | None,
        *,
        batch_size: int = 100,
        batch_interval: float = 1.0,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        if batch_interval <= 0:
            raise ValueError("batch_interval must be > 0")

        self._sink = sink
        self._batch_size = batch_size
        self._batch_interval = batch_interval
        self._loop = loop
        self._queue = ResultQueue()

        self._timer: asyncio.TimerHandle | None = None
        self._in_flight: asyncio.Task[None] | None = None
        self._on_drained: DrainCallback | None = None
        self._done = False

    @property
    def enabled(self) -> bool:
        return self._sink is not None

    @property
    def state(self) -> ControllerState:
        if self._done:
            return ControllerState.DONE
        if self._in_flight is not None:
            if self._on_drained is not None:
                return ControllerState.DRAINING
            return ControllerState.FLUSHING
        return ControllerState.IDLE

    @property
    def pending(self) -> int:
        """Number of queued records not yet handed to the sink."""
        return len(self._queue)

    def start(self) -> None:
        """Arm the first flush timer."""
        if not self.enabled or self._done:
            return
        self._arm_timer()

    def append(self, record: ResultRecord) -> None:
        """Queue a record, flushing right away once a full batch is waiting."""
        if not self.enabled:
            return
        if self._done:
            log.warning(
                "Dropping result for %s reported after shutdown", record.test_name
            )
            return

        self._queue.append(record)
        self._maybe_flush()

    def flush(self) -> None:
        """Send everything queued now, unless a send is already in flight."""
        if not self.enabled or self._done or self._in_flight is not None:
            return

        self._cancel_timer()

        batch = self._queue.snapshot_and_clear()
        if not batch:
            if self._on_drained is not None:
                self._finish()
            else:
                self._arm_timer()
            return

        self._in_flight = self._get_loop().create_task(self._transmit(batch))

    def drain(self, callback: DrainCallback) -> None:
        """Invoke ``callback`` once every queued record has been sent.

        The callback runs synchronously when there is nothing left to send.
        Calling ``drain`` again while a drain is pending chains the callbacks;
        each one runs exactly once. Exceptions raised by the callback are logged.
        """
        once = _Once(callback)

        if not self.enabled or self._done:
            self._invoke(once)
            return

        if self._on_drained is None:
            self._on_drained = once
        else:
            self._on_drained = _chain(self._on_drained, once)

        if self._in_flight is None:
            # Finishes synchronously when the queue is empty.
            self.flush()

    async def shutdown(self) -> None:
        """Drain and wait for completion."""
        drained = self._get_loop().create_future()

        def _set_drained() -> None:
            if not drained.done():
                drained.set_result(None)

        self.drain(_set_drained)
        await drained

    async def _transmit(self, batch: Sequence[ResultRecord]) -> None:
        if self._sink is None:
            raise RuntimeError("Cannot transmit without a sink")
        try:
            log.debug("Sending batch of %d result(s)", len(batch))
            await self._sink.send_batch(batch)
        except Exception as e:
            log.error(
                "Error posting %d test result(s) to AppVeyor, dropping batch: %s",
                len(batch),
                e,
                exc_info=e,
            )
        finally:
            self._in_flight = None
            self._on_sent()

    def _on_sent(self) -> None:
        # Identical after success and failure.
        if self._on_drained is not None and not self._queue:
            self._finish()
        elif self._queue:
            self.flush()
        else:
            self._arm_timer()

    def _maybe_flush(self) -> None:
        if self._in_flight is None and len(self._queue) >= self._batch_size:
            self.flush()

    def _finish(self) -> None:
        self._cancel_timer()
        self._done = True
        callback, self._on_drained = self._on_drained, None
        if callback is not None:
            self._invoke(callback)

    def _invoke(self, callback: DrainCallback) -> None:
        try:
            callback()
        except Exception:
            # May run inside a send task nobody awaits.
            log.exception("Drain callback failed")

    def _arm_timer(self) -> None:
        self._cancel_timer()
        self._timer = self._get_loop().call_later(self._batch_interval, self.flush)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop
