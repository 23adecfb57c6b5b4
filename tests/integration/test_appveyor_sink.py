"""Integration tests for the AppVeyor sink."""

from collections.abc import AsyncGenerator

import pytest
from aioresponses import aioresponses as aioresponses_cls
from yarl import URL

from appveyor_reporter.models.result import Outcome
from appveyor_reporter.sinks import AppVeyorSink, SinkError
from appveyor_reporter.testing.factories import ResultRecordFactory

API_URL = "http://appveyor.test/"
BATCH_URL = "http://appveyor.test/api/tests/batch"


@pytest.fixture
async def sink(aioresponses: aioresponses_cls) -> AsyncGenerator[AppVeyorSink, None]:
    """Create sink with managed session."""
    async with AppVeyorSink.from_url(API_URL) as impl:
        yield impl


class TestSendBatch:
    """Tests for send_batch."""

    async def test_posts_json_array(
        self, sink: AppVeyorSink, aioresponses: aioresponses_cls
    ) -> None:
        """Posts all records as one JSON array using API field names."""
        aioresponses.post(BATCH_URL, status=204)
        records = [
            ResultRecordFactory.build(test_name="test_one"),
            ResultRecordFactory.build(
                test_name="test_two",
                outcome=Outcome.FAILED,
                error_message="boom",
                error_stack_trace="trace",
            ),
        ]

        await sink.send_batch(records)

        aioresponses.assert_called_once()  # type: ignore[no-untyped-call]
        call = aioresponses.requests[("POST", URL(BATCH_URL))][0]
        payload = call.kwargs["json"]
        assert [r["testName"] for r in payload] == ["test_one", "test_two"]
        assert payload[1]["outcome"] == "Failed"
        assert payload[1]["ErrorMessage"] == "boom"
        assert payload == [record.to_payload() for record in records]

    async def test_raises_on_error_status(
        self, sink: AppVeyorSink, aioresponses: aioresponses_cls
    ) -> None:
        """Non-2xx responses fail the whole batch."""
        aioresponses.post(BATCH_URL, status=500, body="Internal Server Error")

        with pytest.raises(SinkError, match="Failed to post test results: 500"):
            await sink.send_batch([ResultRecordFactory.build()])

    async def test_raises_on_transport_error(self, sink: AppVeyorSink) -> None:
        """Connection errors are reported as SinkError."""
        # No response registered, so the mocked request fails to connect.
        with pytest.raises(SinkError, match="Failed to post test results"):
            await sink.send_batch([ResultRecordFactory.build()])


def test_batch_url_tolerates_missing_trailing_slash() -> None:
    """Joins the API URL and batch path with exactly one slash."""
    for api_url in ("http://appveyor.test", API_URL):
        sink = AppVeyorSink(api_url=api_url, session=None)  # type: ignore[arg-type]
        assert sink.batch_url == BATCH_URL
