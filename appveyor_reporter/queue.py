"""Ordered buffer of results waiting to be sent."""

from appveyor_reporter.models.result import ResultRecord


class ResultQueue:
    """Append-only queue that is emptied one whole batch at a time."""

    def __init__(self) -> None:
        self._records: list[ResultRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    def __bool__(self) -> bool:
        return bool(self._records)

    def append(self, record: ResultRecord) -> None:
        """Add a record to the tail of the queue."""
        self._records.append(record)

    def snapshot_and_clear(self) -> list[ResultRecord]:
        """Take every queued record, in insertion order, leaving the queue empty."""
        batch, self._records = self._records, []
        return batch
