"""Map raw test outcomes to result records."""

import traceback

from appveyor_reporter.capture import CapturedOutput
from appveyor_reporter.models.result import Outcome, ResultRecord


def format_error(error: BaseException) -> tuple[str, str]:
    """Return ``(message, stack_trace)`` for an exception."""
    stack = "".join(traceback.format_exception(error))
    return str(error) or type(error).__name__, stack


def build_record(
    *,
    test_name: str,
    file_name: str,
    outcome: Outcome,
    duration_ms: float | None = None,
    output: CapturedOutput | None = None,
    error: BaseException | None = None,
    error_message: str | None = None,
    error_stack_trace: str | None = None,
    test_framework: str = "pytest",
) -> ResultRecord:
    """Build a record for one finished test.

    Error details come from ``error`` when given, otherwise from the explicit
    ``error_message``/``error_stack_trace``. They are kept on failed results
    only.
    """
    output = output or CapturedOutput()
    if error is not None:
        error_message, error_stack_trace = format_error(error)
    if outcome is not Outcome.FAILED:
        error_message = error_stack_trace = None

    return ResultRecord(
        test_name=test_name,
        test_framework=test_framework,
        file_name=file_name,
        outcome=outcome,
        duration_milliseconds=(
            max(0, round(duration_ms)) if duration_ms is not None else None
        ),
        stdout=output.stdout,
        stderr=output.stderr,
        error_message=error_message,
        error_stack_trace=error_stack_trace,
    )
