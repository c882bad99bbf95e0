"""
Bug Report Model Tests
======================
"""
import pytest
from pydantic import ValidationError

from bugbot.models.bug_report import CanonicalReport, ReportInput


def test_report_input_is_immutable():
    report_input = ReportInput(raw_summary="Crash")
    with pytest.raises(ValidationError):
        report_input.raw_summary = "Other"


def test_report_input_accepts_wire_keys():
    report_input = ReportInput.model_validate({"rawSummary": "Crash", "environmentNotes": "Windows"})
    assert report_input.environment_notes == "Windows"


def test_merge_appends_environment_notes():
    original = ReportInput(raw_summary="Crash", environment_notes="Windows 11", steps=["Open"])
    merged = original.merge(environment_notes=["App Version: stable 1", "  "])

    assert merged.environment_notes == "Windows 11 | App Version: stable 1"
    assert merged.steps == ["Open"]
    assert original.environment_notes == "Windows 11"


def test_merge_replaces_description_only_when_given():
    original = ReportInput(raw_summary="Crash", detailed_description="old")
    assert original.merge().detailed_description == "old"
    assert original.merge(detailed_description="new").detailed_description == "new"


def test_canonical_report_limits_enforced():
    with pytest.raises(ValidationError):
        CanonicalReport(title="t" * 201, description="d", steps_to_reproduce=[], environment={})
    with pytest.raises(ValidationError):
        CanonicalReport(title="t", description="d", steps_to_reproduce=[], environment={}, severity="blocker")
    with pytest.raises(ValidationError):
        CanonicalReport(
            title="t", description="d", steps_to_reproduce=[], environment={}, reproducibility_score=101
        )


def test_to_wire_uses_camel_case_and_omits_none():
    report = CanonicalReport(
        title="t", description="d", steps_to_reproduce=["s"], environment={}, actual_result="boom"
    )
    assert report.to_wire() == {
        "title": "t",
        "description": "d",
        "stepsToReproduce": ["s"],
        "actualResult": "boom",
        "environment": {},
        "severity": "unspecified",
    }
