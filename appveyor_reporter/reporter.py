"""Host-facing reporter: turns test events into batched uploads."""

import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import cast

from appveyor_reporter.capture import CapturedOutput
from appveyor_reporter.config import ReporterSettings
from appveyor_reporter.controller import TransmissionController
from appveyor_reporter.mapper import build_record
from appveyor_reporter.models.result import Outcome, ResultRecord
from appveyor_reporter.sinks.appveyor import AppVeyorSink

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class Reporter:
    """Receives test outcome events and queues them for upload.

    Must be used from the event loop that runs ``controller``.
    """

    controller: TransmissionController
    test_framework: str = "pytest"

    @classmethod
    @asynccontextmanager
    async def from_settings(
        cls, settings: ReporterSettings, *, test_framework: str = "pytest"
    ) -> AsyncGenerator["Reporter", None]:
        """Create reporter with managed sink lifecycle.

        Leaving the context waits for pending results to be sent, so the HTTP
        session is never closed under an in-flight batch.
        """
        if not settings.enabled:
            log.warning(
                "api_url option and APPVEYOR_API_URL environment variable not set, "
                "will not report to AppVeyor."
            )
            yield cls(
                controller=TransmissionController(None),
                test_framework=test_framework,
            )
            return

        log.info(
            "Reporting to %s (batch_size=%d, batch_interval_in_ms=%d)",
            settings.api_url,
            settings.batch_size,
            settings.batch_interval_in_ms,
        )
        async with AppVeyorSink.from_url(cast(str, settings.api_url)) as sink:
            controller = TransmissionController(
                sink,
                batch_size=settings.batch_size,
                batch_interval=settings.batch_interval,
            )
            controller.start()
            try:
                yield cls(controller=controller, test_framework=test_framework)
            finally:
                await controller.shutdown()

    def add_record(self, record: ResultRecord) -> None:
        """Queue an already mapped record."""
        self.controller.append(record)

    def on_pass(
        self,
        test_name: str,
        file_name: str,
        *,
        duration_ms: float | None = None,
        output: CapturedOutput | None = None,
    ) -> None:
        self._add(test_name, file_name, Outcome.PASSED, duration_ms, output)

    def on_pending(
        self,
        test_name: str,
        file_name: str,
        *,
        output: CapturedOutput | None = None,
    ) -> None:
        self._add(test_name, file_name, Outcome.IGNORED, None, output)

    def on_fail(
        self,
        test_name: str,
        file_name: str,
        *,
        duration_ms: float | None = None,
        output: CapturedOutput | None = None,
        error: BaseException | None = None,
        error_message: str | None = None,
        error_stack_trace: str | None = None,
    ) -> None:
        self.add_record(
            build_record(
                test_name=test_name,
                file_name=file_name,
                outcome=Outcome.FAILED,
                duration_ms=duration_ms,
                output=output,
                error=error,
                error_message=error_message,
                error_stack_trace=error_stack_trace,
                test_framework=self.test_framework,
            )
        )

    def done(self, failures: int, fn: Callable[[int], None]) -> None:
        """Call ``fn(failures)`` once every queued result has been sent."""
        self.controller.drain(lambda: fn(failures))

    async def shutdown(self) -> None:
        """Wait until every queued result has been sent."""
        await self.controller.shutdown()

    def _add(
        self,
        test_name: str,
        file_name: str,
        outcome: Outcome,
        duration_ms: float | None,
        output: CapturedOutput | None,
    ) -> None:
        self.add_record(
            build_record(
                test_name=test_name,
                file_name=file_name,
                outcome=outcome,
                duration_ms=duration_ms,
                output=output,
                test_framework=self.test_framework,
            )
        )
