"""AppVeyor build worker API sink."""

import logging
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import aiohttp

from appveyor_reporter.models.result import ResultRecord
from appveyor_reporter.sinks.base import RemoteSink, SinkError

log = logging.getLogger(__name__)

BATCH_PATH = "api/tests/batch"


@dataclass(frozen=True, kw_only=True)
class AppVeyorSink(RemoteSink):
    """Posts batches of results to the AppVeyor build worker API."""

    api_url: str
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_url(cls, api_url: str) -> AsyncGenerator["AppVeyorSink", None]:
        """Create sink with managed session lifecycle."""
        async with aiohttp.ClientSession() as session:
            yield cls(api_url=api_url, session=session)

    @property
    def batch_url(self) -> str:
        """Absolute URL of the batch endpoint."""
        return f"{self.api_url.rstrip('/')}/{BATCH_PATH}"

    async def send_batch(self, records: Sequence[ResultRecord]) -> None:
        """Post records as a JSON array."""
        payload = [record.to_payload() for record in records]

        log.debug("Posting %d result(s) to %s", len(payload), self.batch_url)

        try:
            async with self.session.post(self.batch_url, json=payload) as response:
                if not 200 <= response.status < 300:
                    text = await response.text()
                    raise SinkError(
                        f"Failed to post test results: {response.status} {text}"
                    )
        except aiohttp.ClientError as e:
            raise SinkError(f"Failed to post test results: {e}") from e
