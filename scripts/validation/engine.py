"""Two-phase key validation engine.

Phase 1 streams every submission file once into per file type, per
partition digests. Phase 2 plans the validation rules in dependency order
and evaluates them against the complete, read-only submission digest.
Both phases run on a bounded thread pool; phase 2 starts only once every
digest is built.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Iterable

from constants import DEFAULT_MAX_WORKERS, Partition, RunStatus
from dictionary.model import KeyDictionary, Relation
from digest.builder import DigestBuilder
from digest.file_digest import FileDigest
from digest.submission import SubmissionDigest, SubmissionFile
from reporting.ledger import ErrorCollector
from reporting.sinks import ReportSink
from validators.base import ConfigurationError, ValidationCancelled, check_cancelled
from validators.row_error import RowError
from validators.rules import ValidationRule, evaluate, plan_rules

log = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Outcome of one validation run.

    Attributes:
        status: constants.RunStatus value
        collector: Errors recorded by the run (empty when cancelled)
        failure: Description of the failure for ERROR runs
        rules: Rules planned for the run
    """

    status: str
    collector: ErrorCollector
    failure: str | None = None
    rules: list[ValidationRule] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return self.status == RunStatus.VALID

    def errors(self) -> list[RowError]:
        return self.collector.errors()

    def report(self, sink: ReportSink) -> bool:
        """Drain the recorded errors into a sink and close it with the run status.

        Returns:
            True if the run is VALID
        """
        if self.status != RunStatus.CANCELLED:
            self.collector.report_all(sink)
        if self.failure is not None:
            sink.failure = self.failure
        sink.close(self.status)
        return self.valid


class KeyValidationEngine:
    """Validates the keys of a submission against a compiled dictionary.

    The engine holds no state between runs: every call to run() builds a
    fresh submission digest and error collector.

    Args:
        dictionary: Compiled key dictionary
        max_workers: Size of the worker pool used by both phases
        cancel_event: Optional threading.Event; setting it cancels the run
            between files and between rules

    Example:
        >>> engine = KeyValidationEngine(load_dictionary("dictionary.yaml"))
        >>> result = engine.run(files)
        >>> result.status
        'VALID'
    """

    def __init__(
        self,
        dictionary: KeyDictionary,
        max_workers: int = DEFAULT_MAX_WORKERS,
        cancel_event: threading.Event | None = None,
    ):
        if max_workers < 1:
            raise ConfigurationError(f"max_workers must be at least 1, got {max_workers}")
        self.dictionary = dictionary
        self.max_workers = max_workers
        self.cancel_event = cancel_event or threading.Event()

    def cancel(self) -> None:
        self.cancel_event.set()

    def check_files(self, files: Iterable[SubmissionFile]) -> None:
        """Check the file types of a submission before anything is read.

        Raises:
            ConfigurationError: If a file has an undeclared file type or a
                file name is used twice within one file type
        """
        declared = set(self.dictionary.file_type_names)
        seen: set[tuple[str, str]] = set()
        for submission_file in files:
            if submission_file.file_type not in declared:
                raise ConfigurationError(
                    f"File {submission_file.file_name} has undeclared file type "
                    f"'{submission_file.file_type}'. Valid options are: {sorted(declared)}"
                )
            name = (submission_file.file_type, submission_file.file_name)
            if name in seen:
                raise ConfigurationError(
                    f"Duplicate file name {submission_file.file_name} "
                    f"for file type {submission_file.file_type}"
                )
            seen.add(name)

    def build_digest(
        self, files: list[SubmissionFile], collector: ErrorCollector
    ) -> SubmissionDigest:
        """Phase 1: digest every file, one task per (file type, partition).

        Row defects of every digest that completed are added to the
        collector, also when another file fails to read.

        Returns:
            The submission digest

        Raises:
            SubmissionReadError: If a file cannot be read
            ValidationCancelled: If the run is cancelled
        """
        groups: dict[tuple[str, str], list[SubmissionFile]] = {}
        for submission_file in files:
            key = (submission_file.file_type, submission_file.partition)
            groups.setdefault(key, []).append(submission_file)

        builder = DigestBuilder(self.dictionary, self.cancel_event)
        built: dict[tuple[str, str], FileDigest] = {}
        failure: BaseException | None = None
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(builder.build_partition, file_type, partition, group): (
                    file_type, partition,
                )
                for (file_type, partition), group in groups.items()
            }
            for future in as_completed(futures):
                try:
                    built[futures[future]] = future.result()
                except BaseException as e:
                    if failure is None:
                        failure = e
                        for pending in futures:
                            pending.cancel()

        defects = [error for group in sorted(built) for error in built[group].defects]
        collector.extend(defects)
        if failure is not None:
            raise failure

        bundles: dict[str, dict] = {}
        for (file_type, partition), digest in built.items():
            bundles.setdefault(partition, {})[file_type] = digest

        log.info(
            "Built %d digest(s) for %d file(s) (%d row defect(s))",
            len(built), len(files), len(defects),
        )
        return SubmissionDigest(
            existing=bundles.get(Partition.EXISTING),
            incremental=bundles.get(Partition.INCREMENTAL),
        )

    def _evaluate(self, rule: ValidationRule, submission: SubmissionDigest) -> list[RowError]:
        check_cancelled(self.cancel_event)
        errors = evaluate(rule, submission, self.dictionary)
        log.info("Rule %s: %d error(s)", rule.name, len(errors))
        return errors

    def validate_digest(
        self,
        submission: SubmissionDigest,
        rules: list[ValidationRule],
        collector: ErrorCollector,
    ) -> None:
        """Phase 2: evaluate rules concurrently and merge their buffers in plan order.

        Buffers of rules that completed are merged even when another rule
        fails, so the collector keeps the partial errors of a failed run.
        """
        buffers: list[list[RowError] | None] = [None] * len(rules)
        failure: BaseException | None = None
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self._evaluate, rule, submission): i
                for i, rule in enumerate(rules)
            }
            for future in as_completed(futures):
                try:
                    buffers[futures[future]] = future.result()
                except BaseException as e:
                    if failure is None:
                        failure = e
                        for pending in futures:
                            pending.cancel()

        collector.merge(buffer for buffer in buffers if buffer is not None)
        if failure is not None:
            raise failure

    def run(
        self,
        files: Iterable[SubmissionFile],
        new_relations: Iterable[Relation] = (),
        reference_keys: dict[str, Iterable] | None = None,
    ) -> ValidationResult:
        """Validate a submission.

        Args:
            files: Every file instance of the submission
            new_relations: Relations introduced by a dictionary change;
                existing rows are re-checked against them
            reference_keys: Root file type -> keys every complex surjection
                must cover regardless of the data submitted

        Returns:
            ValidationResult with status VALID, INVALID, ERROR or CANCELLED

        Raises:
            ConfigurationError: If the submission does not fit the dictionary
        """
        files = list(files)
        self.check_files(files)
        collector = ErrorCollector(type_order=self.dictionary.file_type_names)
        rules: list[ValidationRule] = []

        log.info("Starting key validation of %d file(s)", len(files))
        try:
            submission = self.build_digest(files, collector)
            rules = plan_rules(self.dictionary, submission, new_relations, reference_keys)
            self.validate_digest(submission, rules, collector)
        except ValidationCancelled:
            log.warning("Key validation cancelled; discarding %d error(s)", len(collector))
            collector.clear()
            return ValidationResult(RunStatus.CANCELLED, collector, rules=rules)
        except Exception as e:
            log.exception("Key validation failed")
            return ValidationResult(
                RunStatus.ERROR, collector, failure=f"{type(e).__name__}: {e}", rules=rules
            )

        status = RunStatus.INVALID if collector.has_errors() else RunStatus.VALID
        log.info(
            "Key validation finished: %s (%d error(s) from %d rule(s))",
            status, len(collector), len(rules),
        )
        return ValidationResult(status, collector, rules=rules)
