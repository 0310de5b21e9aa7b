"""Storage and naming convention for key validation reports.

A report is written as ``{project}_{date}_key_validation_{status}.json``
next to a ``.sha256`` checksum file in ``sha256sum`` format, so a stored
report can be checked with ``sha256sum -c``.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

from reporting.json_report import compute_report_checksum, serialize_report

log = logging.getLogger(__name__)

CHECKSUM_SUFFIX = ".sha256"


def generate_report_name(
    project: str,
    status: str,
    extension: str = "json",
    date: datetime | None = None,
) -> str:
    """Generate a report filename following the naming convention.

    Format: {project}_{date}_key_validation_{status}.{ext}

    Args:
        project: Project identifier
        status: Run status (VALID/INVALID/ERROR/CANCELLED)
        extension: File extension
        date: Report date (defaults to now)

    Returns:
        Formatted filename string
    """
    dt = date or datetime.now(UTC)
    date_str = dt.strftime("%Y%m%d_%H%M%S")

    safe_project = project.replace(" ", "_").replace("/", "_")

    return f"{safe_project}_{date_str}_key_validation_{status.lower()}.{extension}"


def checksum_path(report_path: str | Path) -> Path:
    """Path of the checksum file written next to a report."""
    path = Path(report_path)
    return path.with_name(path.name + CHECKSUM_SUFFIX)


def save_report(report: dict, output_dir: str | Path, filename: str) -> tuple[Path, str]:
    """Serialize a report, save it with its checksum file and return both.

    Args:
        report: Report dict (see reporting.json_report.generate_json_report)
        output_dir: Directory to save the report in (created if missing)
        filename: Report filename

    Returns:
        (path of the saved report, SHA-256 hex digest of its content)
    """
    content = serialize_report(report)
    checksum = compute_report_checksum(content)

    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    file_path = out_dir / filename
    file_path.write_text(content, encoding="utf-8")
    checksum_path(file_path).write_text(f"{checksum}  {filename}\n")

    log.info(
        "Saved %s key validation report: %s (sha256=%s)",
        report.get("status", "unknown"), file_path, checksum[:12],
    )
    return file_path, checksum
