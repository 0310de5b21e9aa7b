"""JSON report generation for key validation runs.

Produces a structured, versioned JSON report containing run metadata, the
run status, error counts per kind, and the error records grouped per file
type and per file.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import UTC, datetime

from constants import RunStatus
from reporting.sinks import ReportSink

log = logging.getLogger(__name__)

REPORT_VERSION = "1.0"
REPORT_TYPE = "key_validation"


def generate_json_report(
    project: str,
    status: str,
    records: list[dict] | None = None,
    run_metadata: dict | None = None,
    failure: str | None = None,
) -> dict:
    """Generate a structured JSON report.

    Args:
        project: Project (submission) identifier
        status: constants.RunStatus value
        records: Error records in report order (see messages.to_record)
        run_metadata: Dict with dictionary version, file list, etc.
        failure: Failure description for ERROR runs

    Returns:
        Complete JSON report as a dict
    """
    records = records or []
    report = {
        "report_type": REPORT_TYPE,
        "report_version": REPORT_VERSION,
        "generated_at": datetime.now(UTC).isoformat(),
        "project": project,
        "status": status,
        "valid": status == RunStatus.VALID,
        "run_metadata": run_metadata or {},
        "summary": _summarize(records),
        "file_types": _group_records(records),
    }
    if failure:
        report["failure"] = failure

    log.info(
        "Generated %s JSON report (version=%s, project=%s, status=%s, errors=%d)",
        REPORT_TYPE, REPORT_VERSION, project, status, len(records),
    )
    return report


def _summarize(records: list[dict]) -> dict:
    by_kind: dict[str, int] = {}
    for record in records:
        by_kind[record["type"]] = by_kind.get(record["type"], 0) + 1
    return {"total_errors": len(records), "errors_by_type": by_kind}


def _group_records(records: list[dict]) -> list[dict]:
    """Group records per file type, then per file, keeping report order."""
    file_types: dict[str, dict[str, list[dict]]] = {}
    for record in records:
        files = file_types.setdefault(record["file_type"], {})
        files.setdefault(record["file_name"], []).append(
            {k: v for k, v in record.items() if k not in ("file_type", "file_name")}
        )

    return [
        {
            "file_type": file_type,
            "files": [
                {"file_name": file_name, "error_count": len(errors), "errors": errors}
                for file_name, errors in files.items()
            ],
        }
        for file_type, files in file_types.items()
    ]


class JsonReportSink(ReportSink):
    """Collects records and builds the JSON report when closed.

    Args:
        project: Project identifier stamped on the report
        run_metadata: Extra metadata stamped on the report
    """

    def __init__(self, project: str, run_metadata: dict | None = None):
        self.project = project
        self.run_metadata = run_metadata or {}
        self.records: list[dict] = []
        self.failure: str | None = None
        self.report_dict: dict | None = None

    def report(self, record: dict) -> None:
        self.records.append(record)

    def close(self, status: str) -> None:
        self.report_dict = generate_json_report(
            self.project, status, self.records, self.run_metadata, self.failure
        )


def serialize_report(report: dict) -> str:
    """Serialize a report dict to a JSON string.

    Args:
        report: Report dict

    Returns:
        Pretty-printed JSON string
    """
    return json.dumps(report, indent=2, default=str)


def compute_report_checksum(report_json: str) -> str:
    """Compute SHA-256 checksum of a serialized report.

    Args:
        report_json: JSON string

    Returns:
        Hex digest
    """
    return hashlib.sha256(report_json.encode()).hexdigest()
