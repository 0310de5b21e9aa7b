"""Error collector: the single synchronization point of a validation run.

Validators never share mutable state; each rule returns its own buffer of
RowErrors and the engine merges the buffers here. Identical violations
(same file type, file name, line number, kind and key) are kept once.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable

from reporting.messages import to_record
from reporting.sinks import ReportSink
from validators.row_error import RowError

log = logging.getLogger(__name__)


class ErrorCollector:
    """Deduplicating, thread-safe accumulation of RowErrors.

    Args:
        type_order: File type names in report order (dictionary order);
            unknown types sort after them by name
    """

    def __init__(self, type_order: Iterable[str] = ()):
        self._type_rank = {name: i for i, name in enumerate(type_order)}
        self._errors: list[RowError] = []
        self._seen: set[tuple] = set()
        self._lock = threading.Lock()

    def add(self, error: RowError) -> bool:
        """Add one error; returns False if an identical error was already added."""
        with self._lock:
            if error.identity in self._seen:
                return False
            self._seen.add(error.identity)
            self._errors.append(error)
        log.debug(
            "Reporting '%s' error for '%s.%s.%s': %s",
            error.kind, error.file_type, error.file_name, error.line_number, error.key,
        )
        return True

    def extend(self, errors: Iterable[RowError]) -> int:
        return sum(1 for error in errors if self.add(error))

    def merge(self, buffers: Iterable[list[RowError]]) -> int:
        """Merge per-worker buffers; returns the number of new errors."""
        added = 0
        for buffer in buffers:
            added += self.extend(buffer)
        return added

    def clear(self) -> None:
        with self._lock:
            self._errors.clear()
            self._seen.clear()

    def __len__(self) -> int:
        return len(self._errors)

    def has_errors(self) -> bool:
        return bool(self._errors)

    def _sort_key(self, error: RowError) -> tuple:
        rank = self._type_rank.get(error.file_type, len(self._type_rank))
        return (rank, error.file_type, error.file_name, error.line_number)

    def errors(self) -> list[RowError]:
        """Errors sorted by (file type, file name, line number).

        The sort is stable: errors of the same line keep their arrival order.
        """
        with self._lock:
            snapshot = list(self._errors)
        return sorted(snapshot, key=self._sort_key)

    def ledger(self) -> dict[str, dict[str, dict[int, list[RowError]]]]:
        """File type -> file name -> line number -> errors."""
        ledger: dict[str, dict[str, dict[int, list[RowError]]]] = {}
        for error in self.errors():
            (
                ledger.setdefault(error.file_type, {})
                .setdefault(error.file_name, {})
                .setdefault(error.line_number, [])
                .append(error)
            )
        return ledger

    def counts_by_kind(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for error in self.errors():
            counts[error.kind] = counts.get(error.kind, 0) + 1
        return counts

    def report_all(self, sink: ReportSink) -> bool:
        """Drain every error into a sink.

        Args:
            sink: Destination of the rendered records

        Returns:
            True if the submission is valid (no error recorded), False otherwise
        """
        status = True
        for file_type, files in self.ledger().items():
            log.info("Reporting file type errors for '%s' (%d file(s))", file_type, len(files))
            for file_name, lines in files.items():
                log.info("Reporting file errors for '%s' (%d line(s))", file_name, len(lines))
                for row_errors in lines.values():
                    for error in row_errors:
                        sink.report(to_record(error))
                        status = False
        return status
