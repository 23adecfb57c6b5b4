"""Abstract base class for remote result sinks."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass

from appveyor_reporter.models.result import ResultRecord


class SinkError(Exception):
    """Raised when a batch could not be delivered."""


@dataclass(frozen=True, kw_only=True)
class RemoteSink(ABC):
    """Abstract destination for batches of test results."""

    @abstractmethod
    async def send_batch(self, records: Sequence[ResultRecord]) -> None:
        """Deliver a batch of records.

        The batch succeeds or fails as a unit.

        Args:
            records: Records in the order they were reported

        Raises:
            SinkError: If the batch was not accepted

        """
