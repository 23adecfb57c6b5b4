"""Scoped capture of console output written while a test runs."""

import io
import sys
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any, TextIO


class _Tee:
    """Text stream that writes through to ``target`` and records a copy."""

    def __init__(self, target: TextIO, record: io.StringIO) -> None:
        self._target = target
        self._record = record

    def write(self, s: str) -> int:
        self._record.write(s)
        return self._target.write(s)

    def flush(self) -> None:
        self._target.flush()

    def __getattr__(self, name: str) -> Any:
        return getattr(self._target, name)


@dataclass(kw_only=True)
class CapturedOutput:
    """Text written to stdout and stderr during one capture scope."""

    stdout: str = ""
    stderr: str = ""


@dataclass
class ConsoleCapture:
    """Tee ``sys.stdout`` and ``sys.stderr`` for the duration of a ``with`` block.

    Output still reaches the original streams. The originals are restored on
    exit whether or not the block raised.

    Usage:

        with ConsoleCapture() as output:
            print("hello")
        assert output.stdout == "hello\\n"
    """

    output: CapturedOutput = field(default_factory=CapturedOutput)
    _stdout: io.StringIO = field(default_factory=io.StringIO, repr=False)
    _stderr: io.StringIO = field(default_factory=io.StringIO, repr=False)
    _saved: tuple[TextIO, TextIO] | None = field(default=None, repr=False)

    def __enter__(self) -> CapturedOutput:
        if self._saved is not None:
            raise RuntimeError("ConsoleCapture is already active")
        self._saved = (sys.stdout, sys.stderr)
        sys.stdout = _Tee(sys.stdout, self._stdout)  # type: ignore[assignment]
        sys.stderr = _Tee(sys.stderr, self._stderr)  # type: ignore[assignment]
        return self.output

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._saved is None:
            raise RuntimeError("ConsoleCapture is not active")
        sys.stdout, sys.stderr = self._saved
        self._saved = None
        self.output.stdout = self._stdout.getvalue()
        self.output.stderr = self._stderr.getvalue()

