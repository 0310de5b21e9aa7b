"""Key validation runner for a project submission.

Loads a run configuration, compiles the dictionary, validates every
submission file and writes a JSON report. All configuration problems are
collected and reported at once before any submission file is read.

Run configuration (YAML)::

    project: PACA-CA
    dictionary: dictionary.yaml
    max_workers: 4
    output_dir: reports
    files:
      - path: submission/new/donor.txt
        file_type: donor
        submission_type: INCREMENTAL
    # or discover files by sub-directory ("original" / "new")
    submission_dir: submission
    file_patterns:
      donor: "donor*.txt"
    new_relations:
      - from: specimen
        to: donor
    reference_keys:
      donor: reference/donor_ids.txt

Usage: python validate_keys.py <run_config.yaml> [log_file]
"""

import logging
import sys
from pathlib import Path
from typing import Any

import yaml

SCRIPTS_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(SCRIPTS_DIR))

from constants import DEFAULT_MAX_WORKERS, RunStatus, SubmissionType  # noqa: E402
from dictionary import KeyDictionary, load_dictionary  # noqa: E402
from parsers.submission_file import (  # noqa: E402
    discover_submission_files,
    open_submission_file,
    read_key_table,
)
from reporting.json_report import JsonReportSink  # noqa: E402
from reporting.report_storage import generate_report_name, save_report  # noqa: E402
from utils import key_value  # noqa: E402
from validation.engine import KeyValidationEngine  # noqa: E402
from validators import ConfigurationError, KeyValidationError  # noqa: E402

EXIT_VALID = 0
EXIT_INVALID = 1
EXIT_ERROR = 2

REQUIRED_KEYS = {"project", "dictionary"}
VALID_KEYS = REQUIRED_KEYS | {
    "files",
    "submission_dir",
    "file_patterns",
    "new_relations",
    "reference_keys",
    "max_workers",
    "output_dir",
}


class ConfigContext:
    """Context for collecting configuration errors without failing fast."""

    def __init__(self):
        self.errors: list[ConfigurationError] = []

    def check(self, func, *args, **kwargs) -> Any:
        """Run a check, collecting ConfigurationErrors instead of raising.

        Returns:
            Result of the check, or None if it failed
        """
        try:
            return func(*args, **kwargs)
        except ConfigurationError as e:
            self.errors.append(e)
            return None

    def raise_if_errors(self):
        """Raise combined error if any check failed."""
        if self.errors:
            error_list = "\n".join(f"  {i+1}. {e}" for i, e in enumerate(self.errors))
            raise ConfigurationError(
                f"Run configuration invalid with {len(self.errors)} error(s):\n{error_list}"
            )


def load_run_config(config_path: str | Path) -> dict:
    """Load the run configuration from YAML.

    Raises:
        ConfigurationError: If the file is missing, unparsable or malformed
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Run configuration file not found: {path}")

    try:
        with open(path, "r") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse run configuration {path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Run configuration {path} does not contain a valid YAML dictionary"
        )

    missing = REQUIRED_KEYS - set(config)
    if missing:
        raise ConfigurationError(f"Missing required run configuration keys: {sorted(missing)}")
    unknown = set(config) - VALID_KEYS
    if unknown:
        raise ConfigurationError(
            f"Unknown run configuration keys: {sorted(unknown)}. "
            f"Valid options are: {sorted(VALID_KEYS)}"
        )
    if "files" not in config and "submission_dir" not in config:
        raise ConfigurationError("Run configuration must list 'files' or a 'submission_dir'")

    # Relative paths are resolved against the configuration file
    config["_base_dir"] = path.resolve().parent
    return config


def _resolve(config: dict, value: str) -> Path:
    path = Path(value)
    return path if path.is_absolute() else config["_base_dir"] / path


def resolve_files(config: dict) -> list:
    """Build the SubmissionFiles named by the run configuration."""
    files = []
    for i, entry in enumerate(config.get("files") or []):
        if not isinstance(entry, dict) or not {"path", "file_type"} <= set(entry):
            raise ConfigurationError(f"files[{i}] must have 'path' and 'file_type': {entry!r}")
        submission_type = entry.get("submission_type", SubmissionType.INCREMENTAL)
        if submission_type not in SubmissionType.ALL:
            raise ConfigurationError(
                f"files[{i}] has invalid submission_type '{submission_type}'. "
                f"Valid options are: {sorted(SubmissionType.ALL)}"
            )
        files.append(
            open_submission_file(
                _resolve(config, entry["path"]),
                entry["file_type"],
                submission_type,
                file_name=entry.get("file_name"),
            )
        )

    if config.get("submission_dir"):
        patterns = config.get("file_patterns")
        if not isinstance(patterns, dict) or not patterns:
            raise ConfigurationError("'submission_dir' requires a 'file_patterns' mapping")
        files.extend(
            discover_submission_files(_resolve(config, config["submission_dir"]), patterns)
        )
    return files


def resolve_new_relations(config: dict, dictionary: KeyDictionary) -> list:
    """Match the configured new relations against the dictionary's relations."""
    relations = []
    for i, entry in enumerate(config.get("new_relations") or []):
        if not isinstance(entry, dict) or not {"from", "to"} <= set(entry):
            raise ConfigurationError(f"new_relations[{i}] must have 'from' and 'to': {entry!r}")
        matches = [
            r for r in dictionary.relations
            if r.referencing_type == entry["from"] and r.referenced_type == entry["to"]
            and ("fields" not in entry or list(r.referencing_fields) == entry["fields"])
        ]
        if len(matches) != 1:
            raise ConfigurationError(
                f"new_relations[{i}] ({entry['from']} -> {entry['to']}) matches "
                f"{len(matches)} declared relation(s), expected exactly one"
            )
        relations.append(matches[0])
    return relations


def load_reference_keys(config: dict, dictionary: KeyDictionary) -> dict[str, set[tuple]]:
    """Read reference key files (TSV with the root type's primary key columns)."""
    reference_keys = {}
    for file_type, value in (config.get("reference_keys") or {}).items():
        fields = dictionary.primary_key_fields(file_type)
        path = _resolve(config, value)
        if not path.is_file():
            raise ConfigurationError(f"Reference key file not found: {path}")
        table = read_key_table(path, fields)
        reference_keys[file_type] = {
            tuple(key_value(v, dictionary.missing_codes) for v in values)
            for values in table.itertuples(index=False, name=None)
        }
    return reference_keys


def run_key_validation(config_path: str | Path, log: logging.Logger) -> str:
    """Validate a submission and save its JSON report.

    Args:
        config_path: Path to the run configuration
        log: Logger instance

    Returns:
        constants.RunStatus value

    Raises:
        ConfigurationError: If the run configuration or dictionary is invalid
    """
    log.info("Loading run configuration from: %s", config_path)
    config = load_run_config(config_path)

    dictionary = load_dictionary(_resolve(config, config["dictionary"]))

    ctx = ConfigContext()
    files = ctx.check(resolve_files, config) or []
    new_relations = ctx.check(resolve_new_relations, config, dictionary) or []
    reference_keys = ctx.check(load_reference_keys, config, dictionary) or {}
    engine = ctx.check(
        KeyValidationEngine, dictionary, config.get("max_workers", DEFAULT_MAX_WORKERS)
    )
    if engine is not None:
        ctx.check(engine.check_files, files)
    ctx.raise_if_errors()

    result = engine.run(files, new_relations, reference_keys)

    sink = JsonReportSink(
        config["project"],
        run_metadata={
            "dictionary": str(config["dictionary"]),
            "files": [
                {"file_name": f.file_name, "file_type": f.file_type,
                 "submission_type": f.submission_type}
                for f in files
            ],
            "rules": [rule.name for rule in result.rules],
        },
    )
    result.report(sink)

    output_dir = _resolve(config, config.get("output_dir", "."))
    filename = generate_report_name(config["project"], result.status)
    report_path, checksum = save_report(sink.report_dict, output_dir, filename)
    log.info("Report: %s (sha256 %s)", report_path, checksum)

    return result.status


def main(config_path: str, log_file: str) -> int:
    """Main entry point for the key validation runner.

    Args:
        config_path: Path to run configuration file
        log_file: Path to log file

    Returns:
        Process exit code
    """
    logging.basicConfig(
        filename=log_file,
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s"
    )
    log = logging.getLogger(__name__)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    log.addHandler(console)

    log.info("=" * 60)
    log.info("Submission Key Validation")
    log.info("=" * 60)

    try:
        status = run_key_validation(config_path, log)
    except KeyValidationError as e:
        log.error("=" * 60)
        log.error("KEY VALIDATION COULD NOT RUN")
        log.error("=" * 60)
        log.error(str(e))
        return EXIT_ERROR
    except Exception:
        log.exception("Unexpected error during key validation")
        return EXIT_ERROR

    log.info("=" * 60)
    log.info("Key validation finished: %s", status)
    log.info("=" * 60)

    if status == RunStatus.VALID:
        return EXIT_VALID
    if status == RunStatus.INVALID:
        return EXIT_INVALID
    return EXIT_ERROR


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python validate_keys.py <run_config.yaml> [log_file]")
        sys.exit(EXIT_ERROR)

    config_path = sys.argv[1]
    log_file = sys.argv[2] if len(sys.argv) > 2 else "key_validation.log"

    sys.exit(main(config_path, log_file))
