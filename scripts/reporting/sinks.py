"""Report sinks receiving rendered key validation error records."""

from __future__ import annotations


class ReportSink:
    """Destination of error records drained from an ErrorCollector."""

    # Failure description of an ERROR run, set before close()
    failure: str | None = None

    def report(self, record: dict) -> None:
        raise NotImplementedError

    def close(self, status: str) -> None:
        """Called once after the last record with the run status."""
        pass


class ListReportSink(ReportSink):
    """Keeps records in memory, in report order."""

    def __init__(self):
        self.records: list[dict] = []
        self.status: str | None = None

    def report(self, record: dict) -> None:
        self.records.append(record)

    def close(self, status: str) -> None:
        self.status = status
