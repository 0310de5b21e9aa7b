"""Read tab-separated submission files into key validation row streams.

Values are read as plain strings: no type inference and no NA coercion,
so missing codes reach the digest builder exactly as submitted. The header
is line 1 of the file, so the first data row is reported as line 2. Every
physical line is one row: a blank line is a row without fields, and a row
with fewer fields than the header only carries the fields it has.
"""

import csv
import logging
from pathlib import Path

import pandas as pd

from constants import SubmissionType
from digest.submission import SubmissionFile
from validators.base import ConfigurationError, SubmissionReadError, validate_file_exists

log = logging.getLogger(__name__)

FIRST_DATA_LINE = 2
DELIMITER = "\t"


def _split_line(line: str) -> list[str]:
    line = line.rstrip("\r\n")
    if not line:
        return []
    return line.split(DELIMITER)


class TsvRowStream:
    """Restartable iterable of (line number, field -> value) rows.

    Each iteration reopens the file, so a stream can be consumed more than
    once (e.g. when a run is repeated on the same submission).

    Args:
        path: Path to the TSV file

    Raises:
        SubmissionReadError: While iterating, if the file cannot be read or
            a row has more fields than the header
    """

    def __init__(self, path):
        self.path = Path(path)

    def __iter__(self):
        try:
            with open(self.path, encoding="utf-8") as f:
                header = _split_line(f.readline())
                if not header:
                    log.warning("Submission file %s is empty", self.path)
                    return

                for line_number, line in enumerate(f, start=FIRST_DATA_LINE):
                    values = _split_line(line)
                    if len(values) > len(header):
                        raise SubmissionReadError(
                            f"Failed to read submission file {self.path}: line {line_number} "
                            f"has {len(values)} fields, expected {len(header)}"
                        )
                    if len(values) < len(header):
                        log.debug(
                            "%s line %d has %d of %d fields",
                            self.path.name, line_number, len(values), len(header),
                        )
                    yield line_number, dict(zip(header, values))
        except (OSError, UnicodeDecodeError) as e:
            raise SubmissionReadError(f"Failed to read submission file {self.path}: {e}") from e

    def __repr__(self) -> str:
        return f"<TsvRowStream(path={self.path})>"


def read_key_table(path, fields: list[str] | tuple[str, ...]) -> pd.DataFrame:
    """Read the key columns of a TSV table (e.g. a reference key list).

    Args:
        path: Path to the TSV file
        fields: Columns to read, in key order

    Returns:
        DataFrame with exactly the requested columns, all values as strings

    Raises:
        ConfigurationError: If the file lacks one of the columns
        SubmissionReadError: If the file is missing or cannot be parsed
    """
    file_path = validate_file_exists(path, "Key table")
    try:
        df = pd.read_csv(
            file_path,
            sep=DELIMITER,
            dtype=str,
            keep_default_na=False,
            quoting=csv.QUOTE_NONE,
        )
    except pd.errors.EmptyDataError:
        raise ConfigurationError(f"Key table {file_path} is empty") from None
    except (OSError, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise SubmissionReadError(f"Failed to read key table {file_path}: {e}") from e

    missing = [f for f in fields if f not in df.columns]
    if missing:
        raise ConfigurationError(
            f"Key table {file_path} missing column(s): {missing}. "
            f"Found: {list(df.columns)}"
        )
    return df[list(fields)]


def open_submission_file(
    path,
    file_type: str,
    submission_type: str = SubmissionType.INCREMENTAL,
    file_name: str | None = None,
) -> SubmissionFile:
    """Wrap a TSV file as a SubmissionFile.

    Args:
        path: Path to the TSV file
        file_type: Dictionary file type of the file
        submission_type: constants.SubmissionType of the file
        file_name: Name used in reports (defaults to the file's base name)

    Returns:
        SubmissionFile whose rows are streamed lazily from disk

    Raises:
        SubmissionReadError: If the file does not exist
        ConfigurationError: If the submission type is unknown
    """
    file_path = validate_file_exists(path, "Submission file")
    log.debug("Opening %s as %s (%s)", file_path, file_type, submission_type)
    return SubmissionFile(
        file_type=file_type,
        file_name=file_name or file_path.name,
        submission_type=submission_type,
        rows=TsvRowStream(file_path),
    )


def discover_submission_files(submission_dir, file_patterns: dict[str, str]) -> list[SubmissionFile]:
    """Find submission files laid out in per-submission-type sub-directories.

    The submission directory holds one sub-directory per submission type
    ("original" for existing data, "new" for incremental data). Files are
    matched to file types with glob patterns.

    Args:
        submission_dir: Root directory of the submission
        file_patterns: File type -> glob pattern (e.g. {"donor": "donor*.txt"})

    Returns:
        SubmissionFiles sorted by (submission type, file type, file name)
    """
    root = Path(submission_dir)
    files = []
    for submission_type in (SubmissionType.EXISTING, SubmissionType.INCREMENTAL):
        sub_dir = SubmissionType.SUB_DIRECTORIES[submission_type]
        directory = root / sub_dir
        if not directory.is_dir():
            log.debug("No %s directory under %s", sub_dir, root)
            continue
        for file_type, pattern in sorted(file_patterns.items()):
            for path in sorted(directory.glob(pattern)):
                files.append(open_submission_file(path, file_type, submission_type))

    log.info("Discovered %d submission file(s) under %s", len(files), root)
    return files
