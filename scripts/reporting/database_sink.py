"""Report sink storing key validation results through SQLAlchemy.

Called with a session bound to the orchestrator's database. The run summary
row is created when the sink is opened, error rows are added as they are
reported, and the summary is completed when the sink is closed. Committing
is left to the caller.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from reporting.sinks import ReportSink

log = logging.getLogger(__name__)


class DatabaseReportSink(ReportSink):
    """Store a run summary and its error records.

    Args:
        session: SQLAlchemy database session
        project: Project identifier
        dictionary_version: Optional dictionary version string
    """

    def __init__(self, session: Session, project: str, dictionary_version: str | None = None):
        from models import KeyValidationRun

        self.session = session
        self.failure: str | None = None
        self.run = KeyValidationRun(
            project=project,
            dictionary_version=dictionary_version,
            error_count=0,
        )
        session.add(self.run)
        session.flush()
        log.info("Opened key validation run %s for project %s", self.run.id, project)

    def report(self, record: dict) -> None:
        from models import ReportedKeyError

        self.session.add(
            ReportedKeyError(
                run_id=self.run.id,
                file_type=record["file_type"],
                file_name=record["file_name"],
                line_number=record["line_number"],
                error_type=record["type"],
                field_names_json=json.dumps(record["field_names"]),
                value_json=json.dumps(record["value"]),
                params_json=json.dumps(record["params"]) if record["params"] else None,
                message=record.get("message"),
            )
        )
        self.run.error_count += 1

    def close(self, status: str) -> None:
        self.run.status = status
        self.run.failure = self.failure
        self.run.finished_at = datetime.now(UTC)
        self.session.flush()
        log.info(
            "Closed key validation run %s: %s (%d error(s))",
            self.run.id, status, self.run.error_count,
        )
