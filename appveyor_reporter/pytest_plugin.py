"""pytest plugin that reports test results to AppVeyor.

pytest drives tests synchronously, while the reporter is asyncio based. The
plugin runs the reporter's event loop on a dedicated thread and hands every
event to it with ``call_soon_threadsafe``, so all reporter state is only ever
touched from that one thread.
"""

import asyncio
import functools
import threading
from collections.abc import Callable, Coroutine, Generator
from contextlib import AbstractContextManager, AsyncExitStack, nullcontext
from typing import Any, TypeVar

import pytest

from appveyor_reporter.capture import CapturedOutput, ConsoleCapture
from appveyor_reporter.config import ReporterSettings
from appveyor_reporter.reporter import Reporter

PLUGIN_NAME = "appveyor-reporter"

T = TypeVar("T")


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command line options."""
    group = parser.getgroup("appveyor", "reporting test results to AppVeyor")
    group.addoption(
        "--appveyor",
        action="store_true",
        default=False,
        help="Report test results to the AppVeyor build worker API",
    )
    group.addoption(
        "--appveyor-api-url",
        default=None,
        help="AppVeyor API URL (APPVEYOR_API_URL takes precedence)",
    )
    group.addoption(
        "--appveyor-batch-size",
        type=int,
        default=None,
        help="Results queued before an immediate upload (default: 100)",
    )
    group.addoption(
        "--appveyor-batch-interval-ms",
        type=int,
        default=None,
        help="Milliseconds between periodic uploads (default: 1000)",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Start the reporter when ``--appveyor`` is given."""
    if not config.getoption("appveyor"):
        return

    settings = ReporterSettings.from_options(
        api_url=config.getoption("appveyor_api_url"),
        batch_size=config.getoption("appveyor_batch_size"),
        batch_interval_in_ms=config.getoption("appveyor_batch_interval_ms"),
    )
    plugin = AppVeyorPlugin(
        settings=settings,
        tee_console=config.getoption("capture") == "no",
    )
    plugin.start()
    config.pluginmanager.register(plugin, PLUGIN_NAME)


def pytest_unconfigure(config: pytest.Config) -> None:
    """Flush outstanding results and stop the reporter thread."""
    plugin = config.pluginmanager.get_plugin(PLUGIN_NAME)
    if isinstance(plugin, AppVeyorPlugin):
        config.pluginmanager.unregister(plugin)
        plugin.close()


def crash_message(report: pytest.TestReport) -> str:
    """Short failure message for a failed report."""
    reprcrash = getattr(report.longrepr, "reprcrash", None)
    if message := getattr(reprcrash, "message", None):
        return str(message)
    lines = report.longreprtext.strip().splitlines()
    return lines[-1] if lines else "failed"


class AppVeyorPlugin:
    """Collects per-test reports and forwards one result per test."""

    def __init__(self, settings: ReporterSettings, *, tee_console: bool = False):
        self.settings = settings
        # pytest is not capturing, so capture the console ourselves.
        self.tee_console = tee_console

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever, name="appveyor-reporter", daemon=True
        )
        self._stack = AsyncExitStack()
        self._reporter: Reporter | None = None
        self._reports: dict[str, list[pytest.TestReport]] = {}

    @property
    def reporter(self) -> Reporter:
        if self._reporter is None:
            raise RuntimeError("AppVeyor reporter is not started")
        return self._reporter

    def start(self) -> None:
        self._thread.start()
        self._reporter = self._run(self._open())

    def close(self) -> None:
        if self._thread.is_alive():
            self._run(self._stack.aclose())
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join()
        self._loop.close()

    @pytest.hookimpl(wrapper=True)
    def pytest_runtest_protocol(
        self, item: pytest.Item, nextitem: pytest.Item | None
    ) -> Generator[None, object, object]:
        self._reports[item.nodeid] = []
        with self._capture() as captured:
            result = yield
        reports = self._reports.pop(item.nodeid, [])
        self._forward(item, reports, captured)
        return result

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        if (reports := self._reports.get(report.nodeid)) is not None:
            reports.append(report)

    @pytest.hookimpl(trylast=True)
    def pytest_sessionfinish(self, session: pytest.Session) -> None:
        drained = threading.Event()
        self._call_soon(
            self.reporter.done, session.testsfailed, lambda failures: drained.set()
        )
        # No timeout: a send that never resolves blocks here.
        drained.wait()

    def _forward(
        self,
        item: pytest.Item,
        reports: list[pytest.TestReport],
        captured: CapturedOutput | None,
    ) -> None:
        if not reports:
            return

        output = captured or CapturedOutput(
            stdout=reports[-1].capstdout, stderr=reports[-1].capstderr
        )
        test_name = item.nodeid.split("::", 1)[-1]
        file_name = item.location[0]
        call = next((r for r in reports if r.when == "call"), None)
        duration_ms = call.duration * 1000 if call is not None else None

        if failed := next((r for r in reports if r.failed), None):
            self._call_soon(
                self.reporter.on_fail,
                test_name,
                file_name,
                duration_ms=duration_ms,
                output=output,
                error_message=crash_message(failed),
                error_stack_trace=failed.longreprtext,
            )
        elif any(r.skipped for r in reports):
            self._call_soon(
                self.reporter.on_pending, test_name, file_name, output=output
            )
        else:
            self._call_soon(
                self.reporter.on_pass,
                test_name,
                file_name,
                duration_ms=duration_ms,
                output=output,
            )

    def _capture(self) -> AbstractContextManager[CapturedOutput | None]:
        if self.tee_console:
            return ConsoleCapture()
        return nullcontext()

    async def _open(self) -> Reporter:
        return await self._stack.enter_async_context(
            Reporter.from_settings(self.settings)
        )

    def _run(self, coro: Coroutine[Any, Any, T]) -> T:
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result()

    def _call_soon(
        self, callback: Callable[..., object], *args: Any, **kwargs: Any
    ) -> None:
        self._loop.call_soon_threadsafe(functools.partial(callback, *args, **kwargs))
