"""Tests for the two-phase key validation engine."""

from __future__ import annotations

import sys
import threading
from pathlib import Path

import pytest

# Add scripts directory to path
SCRIPTS_DIR = str(Path(__file__).resolve().parent.parent.parent / "scripts")
if SCRIPTS_DIR not in sys.path:
    sys.path.insert(0, SCRIPTS_DIR)

import validation.engine as engine_module  # noqa: E402
from constants import ErrorKind, RunStatus, SubmissionType  # noqa: E402
from reporting.json_report import JsonReportSink  # noqa: E402
from reporting.sinks import ListReportSink  # noqa: E402
from validation.engine import KeyValidationEngine  # noqa: E402
from validators import ConfigurationError  # noqa: E402
from validators.rules import ComplexSurjectionRule, evaluate  # noqa: E402


class BrokenRows:
    def __iter__(self):
        yield 2, {"donor_id": "D1", "donor_sex": "female"}
        raise OSError("connection reset")


@pytest.fixture
def scenario_files(make_file, rows):
    """DONOR = {D1, D2}; SPECIMEN references D1 (line 3) and D3 (line 9)."""
    specimen_rows = rows.specimen(("SP1", "D1"), ("SP2", "D3"))
    return [
        make_file("donor", rows.donor("D1", "D2")),
        make_file("specimen", [(3, specimen_rows[0]), (9, specimen_rows[1])]),
    ]


def _chain_files(make_file, rows):
    """D1 has a specimen and a sample but no ssm_m row; D2 is fully covered."""
    return [
        make_file("donor", rows.donor("D1", "D2")),
        make_file("specimen", rows.specimen(("SP1", "D1"), ("SP2", "D2"))),
        make_file("sample", rows.sample(("SA1", "SP1"), ("SA2", "SP2"))),
        make_file("ssm_m", rows.ssm_m(("AN1", "SA2"))),
    ]


def _summary(result):
    return [(e.kind, e.file_type, e.line_number, e.key) for e in result.errors()]


class TestScenarios:
    def test_dangling_foreign_key(self, dictionary, scenario_files):
        result = KeyValidationEngine(dictionary).run(scenario_files)
        assert result.status == RunStatus.INVALID
        assert _summary(result) == [(ErrorKind.PRIMARY_RELATION, "specimen", 9, ("D3",))]

    def test_bidirectional_relation(self, make_dictionary, scenario_files):
        dictionary = make_dictionary(relation_flags={0: {"bidirectional": True}})
        result = KeyValidationEngine(dictionary).run(scenario_files)
        assert _summary(result) == [
            (ErrorKind.SECONDARY_RELATION, "donor", 0, ("D2",)),
            (ErrorKind.PRIMARY_RELATION, "specimen", 9, ("D3",)),
        ]

    def test_bidirectional_relation_without_child_file(self, make_dictionary, make_file, rows):
        dictionary = make_dictionary(relation_flags={0: {"bidirectional": True}})
        result = KeyValidationEngine(dictionary).run([make_file("donor", rows.donor("D1", "D2"))])
        assert result.status == RunStatus.INVALID
        assert _summary(result) == [
            (ErrorKind.SECONDARY_RELATION, "donor", 0, ("D1",)),
            (ErrorKind.SECONDARY_RELATION, "donor", 0, ("D2",)),
        ]

    def test_simple_surjection(self, make_dictionary, make_file, rows):
        dictionary = make_dictionary(relation_flags={0: {"surjective": True}})
        files = [
            make_file("donor", rows.donor("D1", "D2")),
            make_file("specimen", rows.specimen(("SP1", "D1"))),
        ]
        result = KeyValidationEngine(dictionary).run(files)
        assert _summary(result) == [(ErrorKind.SIMPLE_SURJECTION, "donor", -1, ("D2",))]

    def test_complex_surjection(self, make_dictionary, make_file, rows):
        dictionary = make_dictionary(
            complex_surjections=[{"chain": ["donor", "specimen", "sample", "ssm_m"]}]
        )
        result = KeyValidationEngine(dictionary).run(_chain_files(make_file, rows))
        assert _summary(result) == [(ErrorKind.COMPLEX_SURJECTION, "donor", -2, ("D1",))]

    def test_valid_submission(self, dictionary, make_file, rows):
        files = [
            make_file("donor", rows.donor("D1")),
            make_file("specimen", rows.specimen(("SP1", "D1"))),
        ]
        result = KeyValidationEngine(dictionary).run(files)
        assert result.status == RunStatus.VALID
        assert result.valid
        assert result.errors() == []

    def test_row_defects_reported(self, dictionary, make_file, rows):
        files = [
            make_file("donor", rows.donor("D1", "D1", "")),
            make_file("specimen", [{"specimen_id": "SP1", "specimen_type": "Normal"}]),
        ]
        result = KeyValidationEngine(dictionary).run(files)
        assert sorted(e.kind for e in result.errors()) == [
            ErrorKind.PRIMARY_KEY_INCOMPLETE,
            ErrorKind.STRUCTURAL,
            ErrorKind.UNIQUENESS,
            ErrorKind.UNIQUENESS,
        ]


class TestEngineRuns:
    def test_idempotent(self, make_dictionary, make_file, rows):
        dictionary = make_dictionary(
            relation_flags={0: {"bidirectional": True}, 1: {"surjective": True}},
            complex_surjections=[{"chain": ["donor", "specimen", "sample", "ssm_m"]}],
        )
        files = _chain_files(make_file, rows) + [
            make_file("specimen", rows.specimen(("SP9", "D7")), file_name="specimen.2.txt"),
        ]
        engine = KeyValidationEngine(dictionary, max_workers=3)

        first = engine.run(files)
        second = engine.run(files)

        assert first.status == second.status == RunStatus.INVALID
        assert set(first.errors()) == set(second.errors())
        assert first.errors() == second.errors()

    def test_worker_count_does_not_change_result(self, make_dictionary, make_file, rows):
        dictionary = make_dictionary(
            relation_flags={0: {"surjective": True}},
            complex_surjections=[{"chain": ["donor", "specimen", "sample", "ssm_m"]}],
        )
        files = _chain_files(make_file, rows)
        single = KeyValidationEngine(dictionary, max_workers=1).run(files)
        pooled = KeyValidationEngine(dictionary, max_workers=8).run(files)
        assert single.errors() == pooled.errors()

    def test_undeclared_file_type_raises(self, dictionary, make_file):
        with pytest.raises(ConfigurationError, match="undeclared file type"):
            KeyValidationEngine(dictionary).run([make_file("biomarker", [])])

    def test_duplicate_file_name_raises(self, dictionary, make_file, rows):
        files = [make_file("donor", rows.donor("D1")), make_file("donor", rows.donor("D2"))]
        with pytest.raises(ConfigurationError, match="Duplicate file name"):
            KeyValidationEngine(dictionary).run(files)

    def test_invalid_worker_count_raises(self, dictionary):
        with pytest.raises(ConfigurationError, match="max_workers"):
            KeyValidationEngine(dictionary, max_workers=0)

    def test_new_relation_rechecks_existing_rows(self, dictionary, make_file, rows):
        files = [
            make_file("donor", rows.donor("D1")),
            make_file("specimen", rows.specimen(("SP1", "D4")), SubmissionType.EXISTING),
        ]
        engine = KeyValidationEngine(dictionary)
        assert engine.run(files).status == RunStatus.VALID

        (relation,) = dictionary.relations_for("specimen")
        result = engine.run(files, new_relations=[relation])
        assert _summary(result) == [(ErrorKind.PRIMARY_RELATION, "specimen", 2, ("D4",))]

    def test_reference_keys(self, make_dictionary, make_file, rows):
        dictionary = make_dictionary(
            complex_surjections=[{"chain": ["donor", "specimen", "sample", "ssm_m"]}]
        )
        files = [
            make_file("donor", rows.donor("D1"), SubmissionType.EXISTING),
            make_file("ssm_m", []),
        ]
        engine = KeyValidationEngine(dictionary)
        assert engine.run(files).status == RunStatus.VALID
        result = engine.run(files, reference_keys={"donor": ["D1"]})
        assert _summary(result) == [(ErrorKind.COMPLEX_SURJECTION, "donor", -2, ("D1",))]


class TestFailures:
    def test_read_failure_is_error(self, dictionary, make_file, rows):
        files = [
            make_file("donor", BrokenRows()),
            make_file("specimen", rows.specimen(("SP1", "D1"))),
        ]
        result = KeyValidationEngine(dictionary).run(files)
        assert result.status == RunStatus.ERROR
        assert "connection reset" in result.failure
        assert not result.valid

    def test_read_failure_keeps_row_defects_of_built_digests(self, dictionary, make_file, rows):
        files = [
            make_file("donor", rows.donor("D1", "")),
            make_file("specimen", BrokenRows()),
        ]
        result = KeyValidationEngine(dictionary, max_workers=1).run(files)

        assert result.status == RunStatus.ERROR
        assert result.failure.startswith("SubmissionReadError")
        assert _summary(result) == [(ErrorKind.PRIMARY_KEY_INCOMPLETE, "donor", 3, (None,))]

    def test_failing_rule_keeps_partial_errors(self, make_dictionary, make_file, rows, monkeypatch):
        dictionary = make_dictionary(
            complex_surjections=[{"chain": ["donor", "specimen", "sample", "ssm_m"]}]
        )

        def flaky_evaluate(rule, submission, dictionary):
            if isinstance(rule, ComplexSurjectionRule):
                raise RuntimeError("index corrupted")
            return evaluate(rule, submission, dictionary)

        monkeypatch.setattr(engine_module, "evaluate", flaky_evaluate)
        files = _chain_files(make_file, rows) + [
            make_file("specimen", rows.specimen(("SP9", "D7")), file_name="specimen.2.txt"),
        ]

        result = KeyValidationEngine(dictionary, max_workers=1).run(files)

        assert result.status == RunStatus.ERROR
        assert result.failure == "RuntimeError: index corrupted"
        assert _summary(result) == [(ErrorKind.PRIMARY_RELATION, "specimen", 2, ("D7",))]

        sink = ListReportSink()
        assert result.report(sink) is False
        assert sink.status == RunStatus.ERROR
        assert len(sink.records) == 1

    def test_cancelled_before_start(self, dictionary, scenario_files):
        cancel = threading.Event()
        cancel.set()
        result = KeyValidationEngine(dictionary, cancel_event=cancel).run(scenario_files)
        assert result.status == RunStatus.CANCELLED
        assert result.errors() == []

    def test_cancelled_between_rules(self, dictionary, scenario_files, monkeypatch):
        engine = KeyValidationEngine(dictionary, max_workers=1)

        def cancelling_evaluate(rule, submission, dictionary):
            errors = evaluate(rule, submission, dictionary)
            engine.cancel()
            return errors

        monkeypatch.setattr(engine_module, "evaluate", cancelling_evaluate)
        result = engine.run(scenario_files)

        assert result.status == RunStatus.CANCELLED
        assert result.errors() == []
        sink = ListReportSink()
        result.report(sink)
        assert sink.records == []
        assert sink.status == RunStatus.CANCELLED


class TestReporting:
    def test_json_report_from_tsv_files(self, dictionary, temp_tsv_file):
        from parsers.submission_file import open_submission_file

        files = [
            open_submission_file(
                temp_tsv_file("donor_id\tdonor_sex\nD1\tfemale\nD2\tmale\n", "donor.txt"),
                "donor",
            ),
            open_submission_file(
                temp_tsv_file(
                    "specimen_id\tdonor_id\tspecimen_type\nSP1\tD1\tNormal\nSP2\tD3\tNormal\n",
                    "specimen.txt",
                ),
                "specimen",
            ),
        ]
        result = KeyValidationEngine(dictionary).run(files)
        sink = JsonReportSink("PACA-CA")

        assert result.report(sink) is False

        report = sink.report_dict
        assert report["status"] == RunStatus.INVALID
        (file_type,) = report["file_types"]
        (error,) = file_type["files"][0]["errors"]
        assert file_type["file_type"] == "specimen"
        assert error["line_number"] == 3
        assert error["value"] == ["D3"]

    def test_truncated_and_blank_lines_in_tsv(self, dictionary, temp_tsv_file):
        from parsers.submission_file import open_submission_file

        files = [
            open_submission_file(
                temp_tsv_file("donor_id\tdonor_sex\nD1\tfemale\n", "donor.txt"), "donor"
            ),
            open_submission_file(
                temp_tsv_file(
                    "specimen_id\tdonor_id\tspecimen_type\n"
                    "SP1\n"
                    "\n"
                    "SP2\tD9\tNormal\n",
                    "specimen.txt",
                ),
                "specimen",
            ),
        ]
        result = KeyValidationEngine(dictionary).run(files)

        assert _summary(result) == [
            (ErrorKind.STRUCTURAL, "specimen", 2, ()),
            (ErrorKind.STRUCTURAL, "specimen", 3, ()),
            (ErrorKind.PRIMARY_RELATION, "specimen", 4, ("D9",)),
        ]
