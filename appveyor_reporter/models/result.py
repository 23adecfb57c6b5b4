"""Models for test results reported to AppVeyor."""

from enum import StrEnum
from typing import Any, Self

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    model_validator,
)


class Outcome(StrEnum):
    """Outcome values accepted by the AppVeyor test API."""

    PASSED = "Passed"
    FAILED = "Failed"
    IGNORED = "Ignored"


def api_field(name: str, api_name: str, **kwargs: Any) -> Any:
    """Field serialized as ``api_name``, accepting either spelling on input."""
    return Field(
        validation_alias=AliasChoices(name, api_name),
        serialization_alias=api_name,
        **kwargs,
    )


class ResultRecord(BaseModel):
    """Normalized result of a single test, ready to be sent in a batch.

    Serialized names are the ones expected by ``api/tests/batch``.
    """

    model_config = ConfigDict(frozen=True)

    test_name: str = api_field("test_name", "testName")
    test_framework: str = api_field("test_framework", "testFramework", default="pytest")
    file_name: str = api_field("file_name", "fileName", default="")
    outcome: Outcome
    duration_milliseconds: NonNegativeInt | None = api_field(
        "duration_milliseconds", "durationMilliseconds", default=None
    )
    stdout: str = api_field("stdout", "StdOut", default="")
    stderr: str = api_field("stderr", "StdErr", default="")
    error_message: str | None = api_field("error_message", "ErrorMessage", default=None)
    error_stack_trace: str | None = api_field(
        "error_stack_trace", "ErrorStackTrace", default=None
    )

    @model_validator(mode="after")
    def _error_only_when_failed(self) -> Self:
        if self.outcome is not Outcome.FAILED and (
            self.error_message is not None or self.error_stack_trace is not None
        ):
            raise ValueError("error details are only allowed on failed results")
        return self

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the JSON object sent to AppVeyor."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
